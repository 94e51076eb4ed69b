"""
Protocol definitions for the real-time chat client.

This module defines the message structure exchanged with the broker, the
JSON wire codec, and the file reference marker produced by the upload flow.
"""

import json
import re
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from common.constants import (
    FIELD_CONTENT, FIELD_ID, FIELD_SENDER, FIELD_TARGET_USER, FIELD_TYPE,
    FILE_MARKER_PREFIX, FILE_MARKER_SEPARATOR, FILES_PATH, SYSTEM_SENDER
)


class ProtocolError(Exception):
    """Base class for malformed protocol frames."""


class EncodingError(ProtocolError):
    """Raised when an outgoing message cannot be serialized."""


class DecodingError(ProtocolError):
    """Raised when an inbound frame is not a valid message."""


class MessageType(str, Enum):
    """Message types understood by the broker."""
    LOGIN = 'LOGIN'
    LOGOUT = 'LOGOUT'
    BROADCAST = 'BROADCAST'
    PRIVATE = 'PRIVATE'


@dataclass(frozen=True)
class Message:
    """Chat message structure.

    ``received_at`` and ``local`` are client-side bookkeeping and are never
    put on the wire.
    """
    type: MessageType
    sender: str
    content: str = ''
    id: Optional[str] = None
    target_user: Optional[str] = None
    received_at: Optional[datetime] = None
    local: bool = False

    @property
    def is_system(self) -> bool:
        return self.sender == SYSTEM_SENDER

    @property
    def is_identified(self) -> bool:
        return bool(self.id)

    def stamped(self, received_at: datetime, local: bool = False) -> 'Message':
        """Return a copy carrying the local ingestion timestamp."""
        return replace(self, received_at=received_at, local=local)


@dataclass(frozen=True)
class FileReference:
    """File reference extracted from a chat message."""
    filename: str
    url: str


_FILENAME_PATTERN = re.compile(re.escape(FILE_MARKER_PREFIX) + r' ([^\s' + FILE_MARKER_SEPARATOR + r']+)')
_FILE_URL_PATTERN = re.compile(r'https?://\S*?' + re.escape(FILES_PATH) + r'\S+')


def encode_message(message: Message) -> str:
    """Serialize a message into a JSON text frame."""
    if not isinstance(message.content, str):
        raise EncodingError(f"content must be text, got {type(message.content).__name__}")
    try:
        message.content.encode('utf-8')
    except UnicodeEncodeError as e:
        raise EncodingError(f"content is not valid UTF-8 text: {e}") from e

    try:
        msg_type = MessageType(message.type)
    except (TypeError, ValueError):
        raise EncodingError(f"unknown message type: {message.type!r}") from None
    if msg_type is MessageType.PRIVATE and not message.target_user:
        raise EncodingError("PRIVATE message requires a target user")

    payload: Dict[str, Any] = {}
    if message.id:
        payload[FIELD_ID] = message.id
    payload[FIELD_TYPE] = msg_type.value
    payload[FIELD_SENDER] = message.sender
    if msg_type is MessageType.PRIVATE:
        payload[FIELD_TARGET_USER] = message.target_user
    payload[FIELD_CONTENT] = message.content
    return json.dumps(payload, ensure_ascii=False)


def _optional_text(data: Dict[str, Any], field: str) -> Optional[str]:
    value = data.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise DecodingError(f"'{field}' must be a string")
    return value


def decode_frame(frame: Union[str, bytes, bytearray]) -> Message:
    """Parse a wire frame into a message.

    Frames without an ``id`` (older senders) and non-PRIVATE frames without a
    ``targetUser`` are accepted.
    """
    if isinstance(frame, (bytes, bytearray)):
        try:
            frame = bytes(frame).decode('utf-8')
        except UnicodeDecodeError as e:
            raise DecodingError(f"frame is not valid UTF-8: {e}") from e

    try:
        data = json.loads(frame)
    except (TypeError, ValueError, RecursionError) as e:
        raise DecodingError(f"malformed JSON: {e}") from e

    if not isinstance(data, dict):
        raise DecodingError("frame is not a JSON object")

    raw_type = data.get(FIELD_TYPE)
    if raw_type is None:
        raise DecodingError("frame has no type")
    try:
        msg_type = MessageType(raw_type)
    except (TypeError, ValueError):
        raise DecodingError(f"unknown message type: {raw_type!r}") from None

    msg_id = _optional_text(data, FIELD_ID) or None
    sender = _optional_text(data, FIELD_SENDER) or ''
    content = _optional_text(data, FIELD_CONTENT) or ''
    target_user = _optional_text(data, FIELD_TARGET_USER)

    return Message(
        type=msg_type,
        sender=sender,
        content=content,
        id=msg_id,
        target_user=target_user,
    )


def create_login_message(msg_id: str, username: str) -> Message:
    """Create a login message."""
    return Message(type=MessageType.LOGIN, sender=username, content='', id=msg_id)


def create_logout_message(msg_id: str, username: str) -> Message:
    """Create a logout message."""
    return Message(type=MessageType.LOGOUT, sender=username, content='', id=msg_id)


def create_broadcast_message(msg_id: str, username: str, text: str) -> Message:
    """Create a broadcast message."""
    return Message(type=MessageType.BROADCAST, sender=username, content=text, id=msg_id)


def create_private_message(msg_id: str, username: str, target_user: str, text: str) -> Message:
    """Create a private message."""
    return Message(
        type=MessageType.PRIVATE,
        sender=username,
        content=text,
        id=msg_id,
        target_user=target_user,
    )


def format_file_marker(filename: str, url: str) -> str:
    """Build the chat content announcing an uploaded file."""
    return f"{FILE_MARKER_PREFIX} {filename} {FILE_MARKER_SEPARATOR} {url}"


def parse_file_marker(content: str) -> Optional[FileReference]:
    """Extract the file reference from chat content, if it carries one."""
    name_match = _FILENAME_PATTERN.search(content)
    url_match = _FILE_URL_PATTERN.search(content)
    if not name_match or not url_match:
        return None
    return FileReference(filename=name_match.group(1), url=url_match.group(0))
