"""
Session engine.

The single entry point for the view layer: takes user intents (login, send,
share a file, disconnect, reconnect now), drives the connection controller,
admits inbound frames through the dedup store and presence tracker, and
publishes an immutable ``SessionSnapshot`` after every change.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, FrozenSet, List, Optional, Tuple

from common.protocol_definitions import (
    Message, ProtocolError, EncodingError,
    decode_frame, encode_message,
    create_broadcast_message, create_private_message, create_logout_message,
    format_file_marker
)
from client.chat.dedup_store import DeduplicationStore
from client.chat.presence import PresenceTracker
from client.connection.lifecycle import ConnectionController, ConnectionState
from client.files.upload_client import UploadError
from client.utils.logger import logger


@dataclass(frozen=True)
class SessionSnapshot:
    """What the view layer renders."""
    state: ConnectionState
    username: str
    attempt: int
    active_users: FrozenSet[str]
    messages: Tuple[Message, ...]
    status: Optional[str] = None


Listener = Callable[[SessionSnapshot], None]


class SessionEngine:
    """Client-side chat session."""

    def __init__(self, transport_factory, scheduler=None, uploader=None,
                 clock: Callable[[], datetime] = datetime.now,
                 id_factory: Optional[Callable[[], str]] = None,
                 backoff_base: float = None, backoff_max: float = None):
        self.clock = clock
        self.id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self.uploader = uploader

        backoff = {}
        if backoff_base is not None:
            backoff['backoff_base'] = backoff_base
        if backoff_max is not None:
            backoff['backoff_max'] = backoff_max
        self.connection = ConnectionController(
            transport_factory,
            scheduler=scheduler,
            on_frame=self.handle_frame,
            on_state_change=self._on_state_change,
            id_factory=self.id_factory,
            **backoff
        )

        self.dedup = DeduplicationStore()
        self.presence = PresenceTracker()
        self._history: List[Message] = []
        self._status: Optional[str] = None
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------
    # Read side

    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    @property
    def username(self) -> str:
        return self.connection.username

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._history)

    @property
    def active_users(self) -> FrozenSet[str]:
        return self.presence.active_users

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            state=self.connection.state,
            username=self.connection.username,
            attempt=self.connection.attempt,
            active_users=self.presence.active_users,
            messages=tuple(self._history),
            status=self._status,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a snapshot listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    # ------------------------------------------------------------------
    # Intents

    def login(self, username: str) -> bool:
        """Connect as ``username``. A fresh login starts a fresh session."""
        username = (username or '').strip()
        if not username:
            logger.warning("Login ignored: username is empty")
            return False
        if self.connection.state != ConnectionState.DISCONNECTED:
            logger.warning(f"Login ignored: already {self.connection.state.value}")
            return False
        self._reset_session()
        return self.connection.connect(username)

    def send_broadcast(self, text: str) -> Optional[Message]:
        """Send a message to everyone."""
        if not text:
            return None
        message = create_broadcast_message(self.id_factory(), self.username, text)
        return self._send_with_echo(message)

    def send_private(self, text: str, target_user: str) -> Optional[Message]:
        """Send a message to one user.

        Raises EncodingError if no target is given.
        """
        if not text:
            return None
        if not target_user:
            raise EncodingError("PRIVATE message requires a target user")
        message = create_private_message(self.id_factory(), self.username, target_user, text)
        return self._send_with_echo(message)

    def attach_uploaded_file(self, filename: str, url: str) -> Optional[Message]:
        """Announce an uploaded file to everyone."""
        return self.send_broadcast(format_file_marker(filename, url))

    async def share_file(self, file_path: str) -> Optional[Message]:
        """Upload a local file and announce it.

        Failures are reported through the snapshot status; nothing is
        retried and the connection is left alone.
        """
        if self.uploader is None:
            self._set_status("File upload is not configured")
            return None
        try:
            filename, url = await self.uploader.upload(file_path)
        except UploadError as e:
            logger.log_error("upload", e)
            self._set_status(f"Upload failed: {e}")
            return None
        return self.attach_uploaded_file(filename, url)

    def disconnect(self):
        """End the session: say goodbye, close the socket, forget ids and presence.

        History stays visible until the next login.
        """
        if self.connection.state == ConnectionState.DISCONNECTED:
            return
        if self.connection.state == ConnectionState.CONNECTED:
            logout = create_logout_message(self.id_factory(), self.username)
            if not self.connection.send(encode_message(logout)):
                logger.log_send_skipped(logout.type.value)
        # cleared before the transition so the Disconnected snapshot is consistent
        self.dedup.clear()
        self.presence.clear()
        self._status = None
        self.connection.disconnect()

    def reconnect_now(self):
        """Retry immediately instead of waiting out the backoff."""
        if self.connection.state != ConnectionState.RECONNECTING:
            logger.debug("Reconnect now ignored: not reconnecting")
            return
        self.connection.reconnect_now()

    def report_status(self, text: str):
        """Show a transient status line in the view."""
        self._set_status(text)

    # ------------------------------------------------------------------
    # Inbound

    def handle_frame(self, frame):
        """Admit one frame received from the broker."""
        try:
            message = decode_frame(frame)
        except ProtocolError as e:
            logger.log_frame_dropped(str(e), frame)
            return

        if not self.dedup.admit(message.id):
            logger.log_duplicate(message.id)
            return

        admitted = message.stamped(self.clock(), local=False)
        self.presence.apply(admitted)
        self._history.append(admitted)
        self._emit()

    # ------------------------------------------------------------------
    # Internals

    def _send_with_echo(self, message: Message) -> Message:
        # encode first so a malformed message is neither echoed nor marked seen
        frame = encode_message(message)
        self.dedup.mark_seen(message.id)
        echo = message.stamped(self.clock(), local=True)
        self._history.append(echo)
        self._status = None
        if not self.connection.send(frame):
            logger.log_send_skipped(message.type.value)
        self._emit()
        return echo

    def _set_status(self, text: Optional[str]):
        self._status = text
        self._emit()

    def _reset_session(self):
        self.dedup.clear()
        self.presence.clear()
        self._history.clear()

    def _on_state_change(self, state: ConnectionState):
        self._emit()

    def _emit(self):
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.log_error("snapshot listener", e)
