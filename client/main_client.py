#!/usr/bin/env python3
"""
Chat Client - Console front-end

A thin line-oriented view over the session engine: prints new history
entries and connection changes, and turns typed lines into intents.
"""

import asyncio
import sys
from typing import Optional, Tuple

from client.chat.session_engine import SessionEngine, SessionSnapshot
from client.connection.lifecycle import AsyncioScheduler, ConnectionState
from client.connection.transport import websocket_transport_factory
from client.files.upload_client import UploadClient
from client.utils.config import ClientConfig
from client.utils.logger import logger
from common.protocol_definitions import EncodingError, Message, MessageType, parse_file_marker

HELP_TEXT = """Commands:
  /msg <user> <text>   private message
  /upload <path>       share a file
  /users               list active users
  /reconnect           retry now while reconnecting
  /quit                disconnect and exit
  /help                this text
Anything else is broadcast to everyone."""


def parse_command(line: str) -> Tuple[str, Tuple[str, ...]]:
    """Split a typed line into (command, args).

    Plain text becomes ('say', (text,)).
    """
    line = line.strip()
    if not line.startswith('/'):
        return 'say', (line,)
    name, _, rest = line[1:].partition(' ')
    name = name.lower()
    rest = rest.strip()
    if name == 'msg':
        target, _, text = rest.partition(' ')
        return 'msg', (target, text.strip())
    if name == 'upload':
        return 'upload', (rest,)
    return name, ()


def format_message(message: Message) -> str:
    """One display line for a history entry."""
    stamp = message.received_at.strftime('%H:%M:%S') if message.received_at else '--:--:--'
    if message.type == MessageType.LOGIN:
        return f"[{stamp}] >>> {message.sender} joined"
    if message.type == MessageType.LOGOUT:
        return f"[{stamp}] <<< {message.sender} left"

    text = message.content
    ref = parse_file_marker(text)
    if ref is not None:
        text = f"shared {ref.filename}: {ref.url}"
    pending = ' (sending)' if message.local else ''
    if message.type == MessageType.PRIVATE:
        return f"[{stamp}] 📨 {message.sender} → {message.target_user}: {text}{pending}"
    if message.is_system:
        return f"[{stamp}] * {text}"
    return f"[{stamp}] {message.sender}: {text}{pending}"


class ChatConsole:
    """Console view wired to a session engine."""

    def __init__(self, config: ClientConfig, engine: Optional[SessionEngine] = None, out=None):
        self.config = config
        self.out = out or sys.stdout
        self.engine = engine or self.build_engine(config)
        self._printed = 0
        self._last_state: Optional[ConnectionState] = None
        self._last_status: Optional[str] = None
        self._unsubscribe = self.engine.subscribe(self.render)

    @staticmethod
    def build_engine(config: ClientConfig, transport_factory=None, scheduler=None) -> SessionEngine:
        """Wire a session engine to the endpoints in ``config``."""
        backoff = config.get_backoff_settings()
        return SessionEngine(
            transport_factory or websocket_transport_factory(config.ws_url),
            scheduler=scheduler or AsyncioScheduler(),
            uploader=UploadClient(config.upload_url, config.max_file_size, config.upload_timeout),
            backoff_base=backoff['base'],
            backoff_max=backoff['maximum'],
        )

    def _print(self, text: str):
        print(text, file=self.out, flush=True)

    def render(self, snapshot: SessionSnapshot):
        """Print whatever changed since the previous snapshot."""
        if len(snapshot.messages) < self._printed:
            # new session, history was reset
            self._printed = 0
        for message in snapshot.messages[self._printed:]:
            self._print(format_message(message))
        self._printed = len(snapshot.messages)

        if snapshot.state != self._last_state:
            self._last_state = snapshot.state
            line = f"-- {snapshot.state.value}"
            if snapshot.state == ConnectionState.RECONNECTING:
                line += f" (attempt {snapshot.attempt + 1}, /reconnect to retry now)"
            self._print(line)

        if snapshot.status and snapshot.status != self._last_status:
            self._print(f"!! {snapshot.status}")
        self._last_status = snapshot.status

    async def handle_line(self, line: str) -> bool:
        """Run one typed line; returns False when the user wants to quit."""
        command, args = parse_command(line)
        if command == 'say':
            if args[0]:
                self.engine.send_broadcast(args[0])
        elif command == 'msg':
            target, text = args
            try:
                self.engine.send_private(text, target)
            except EncodingError as e:
                self.engine.report_status(str(e))
        elif command == 'upload':
            if not args[0]:
                self.engine.report_status("Usage: /upload <path>")
            else:
                await self.engine.share_file(args[0])
        elif command == 'users':
            users = sorted(self.engine.active_users)
            self._print(f"Active users ({len(users)}): {', '.join(users) or '-'}")
        elif command == 'reconnect':
            self.engine.reconnect_now()
        elif command == 'help':
            self._print(HELP_TEXT)
        elif command in ('quit', 'exit'):
            return False
        else:
            self.engine.report_status(f"Unknown command /{command}, try /help")
        return True

    async def run(self, username: str):
        """Log in and process stdin until EOF or /quit."""
        info = self.config.get_connection_info()
        logger.info(f"Connecting to {info['host']}:{info['ws_port']} "
                    f"(uploads on port {info['upload_port']})")
        if not self.engine.login(username):
            logger.error("Login requires a username")
            return
        self._print(HELP_TEXT)
        loop = asyncio.get_running_loop()
        try:
            while True:
                line = await loop.run_in_executor(None, sys.stdin.readline)
                if not line:
                    break
                if not line.strip():
                    continue
                if not await self.handle_line(line):
                    break
        except asyncio.CancelledError:
            pass
        finally:
            self.engine.disconnect()
            # let the socket task finish closing
            await asyncio.sleep(0.1)
            self._unsubscribe()
            logger.info("Disconnected from server")


async def main(config: ClientConfig):
    """Main entry point."""
    username = config.username
    if not username:
        username = input("Enter username: ").strip()
    console = ChatConsole(config)
    await console.run(username)
