"""
Connection lifecycle controller.

Owns the broker socket, the Disconnected/Connecting/Connected/Reconnecting
state machine and the reconnect backoff timer. Socket notifications and user
intents are both fed to ``handle_event`` as ``ConnectionEvent`` values, so the
whole machine is synchronous and can be driven by a fake transport and a fake
scheduler in tests.
"""

import asyncio
import uuid
from enum import Enum
from typing import Any, Callable, Optional

from common.constants import RECONNECT_DELAY_BASE, RECONNECT_DELAY_MAX
from common.protocol_definitions import create_login_message, encode_message
from client.utils.logger import logger


class ConnectionState(str, Enum):
    DISCONNECTED = 'Disconnected'
    CONNECTING = 'Connecting'
    CONNECTED = 'Connected'
    RECONNECTING = 'Reconnecting'


class ConnectionEvent(str, Enum):
    """Inputs to the state machine."""
    CONNECT_REQUESTED = 'connect_requested'
    SOCKET_OPENED = 'socket_opened'
    SOCKET_MESSAGE = 'socket_message'
    SOCKET_CLOSED = 'socket_closed'
    RETRY_TIMER_FIRED = 'retry_timer_fired'
    RECONNECT_NOW = 'reconnect_now'
    DISCONNECT_REQUESTED = 'disconnect_requested'


def compute_backoff_delay(attempt: int, base: float = RECONNECT_DELAY_BASE,
                          maximum: float = RECONNECT_DELAY_MAX) -> float:
    """Delay in seconds before the ``attempt``-th retry (1-indexed).

    1s, 2s, 4s, 8s, 16s, then capped at 30s.
    """
    attempt = max(1, attempt)
    # cap the exponent so huge attempt counts don't build huge ints
    exponent = min(attempt - 1, 64)
    return min(maximum, base * (2 ** exponent))


class AsyncioScheduler:
    """Timer source backed by the asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


class ConnectionController:
    """State machine for the single broker connection of a session."""

    def __init__(self, transport_factory: Callable[[], Any], scheduler=None,
                 on_frame: Optional[Callable[[Any], None]] = None,
                 on_state_change: Optional[Callable[[ConnectionState], None]] = None,
                 id_factory: Optional[Callable[[], str]] = None,
                 backoff_base: float = RECONNECT_DELAY_BASE,
                 backoff_max: float = RECONNECT_DELAY_MAX):
        self.transport_factory = transport_factory
        self.scheduler = scheduler or AsyncioScheduler()
        self.on_frame = on_frame
        self.on_state_change = on_state_change
        self.id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max

        self.state = ConnectionState.DISCONNECTED
        self.username = ''
        self.attempt = 0
        self.retry_delay: Optional[float] = None

        self._transport = None
        self._draining = None  # socket closed by us, close event still pending
        self._retry_handle = None

    # ------------------------------------------------------------------
    # Intents

    def connect(self, username: str) -> bool:
        """Start a fresh connection for ``username``.

        No-op when ``username`` is empty or the controller is not
        disconnected.
        """
        if not username:
            logger.warning("Connect ignored: username is empty")
            return False
        if self.state != ConnectionState.DISCONNECTED:
            logger.debug(f"Connect ignored in state {self.state.value}")
            return False
        self.username = username
        self.handle_event(ConnectionEvent.CONNECT_REQUESTED)
        return True

    def disconnect(self):
        """Drop the connection and cancel any pending retry."""
        self.handle_event(ConnectionEvent.DISCONNECT_REQUESTED)

    def reconnect_now(self):
        """Skip the remaining backoff delay while reconnecting."""
        self.handle_event(ConnectionEvent.RECONNECT_NOW)

    def send(self, frame: str) -> bool:
        """Best-effort transmit; frames are dropped unless connected."""
        transport = self._transport
        if self.state != ConnectionState.CONNECTED or transport is None or not transport.is_open:
            return False
        return transport.send(frame) is not False

    @property
    def has_pending_retry(self) -> bool:
        return self._retry_handle is not None

    # ------------------------------------------------------------------
    # Transition function

    def handle_event(self, event: ConnectionEvent, data: Any = None):
        """Apply one event to the state machine."""
        if event == ConnectionEvent.CONNECT_REQUESTED:
            if self.state == ConnectionState.DISCONNECTED and self.username:
                self.attempt = 0
                self._set_state(ConnectionState.CONNECTING)
                self._dial()

        elif event == ConnectionEvent.SOCKET_OPENED:
            if self.state == ConnectionState.CONNECTING:
                self.attempt = 0
                self.retry_delay = None
                self._set_state(ConnectionState.CONNECTED, notify=False)
                self._send_login()
                self._notify_state()

        elif event == ConnectionEvent.SOCKET_MESSAGE:
            if self.state == ConnectionState.CONNECTED and self.on_frame:
                self.on_frame(data)

        elif event == ConnectionEvent.SOCKET_CLOSED:
            if self.state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
                self._transport = None
                self._set_state(ConnectionState.RECONNECTING, notify=False)
                self._schedule_retry()
                self._notify_state()

        elif event in (ConnectionEvent.RETRY_TIMER_FIRED, ConnectionEvent.RECONNECT_NOW):
            if self.state == ConnectionState.RECONNECTING:
                self._cancel_retry()
                self.attempt += 1
                self._set_state(ConnectionState.CONNECTING)
                self._dial()

        elif event == ConnectionEvent.DISCONNECT_REQUESTED:
            if self.state != ConnectionState.DISCONNECTED:
                self._cancel_retry()
                transport, self._transport = self._transport, None
                self.attempt = 0
                self.retry_delay = None
                self._set_state(ConnectionState.DISCONNECTED)
                if transport is not None:
                    self._draining = transport
                    transport.close()

    # ------------------------------------------------------------------
    # Internals

    def _set_state(self, new_state: ConnectionState, notify: bool = True):
        old_state = self.state
        self.state = new_state
        logger.log_state_change(old_state, new_state, self.attempt)
        if notify:
            self._notify_state()

    def _notify_state(self):
        if self.on_state_change:
            self.on_state_change(self.state)

    def _dial(self):
        if self._draining is not None:
            # previous socket still closing; _on_transport_event dials when it is gone
            logger.debug("Waiting for previous socket to close before dialing")
            return
        transport = self.transport_factory()
        self._transport = transport

        def on_event(event: ConnectionEvent, data: Any = None):
            self._on_transport_event(transport, event, data)

        transport.open(on_event)

    def _on_transport_event(self, transport, event: ConnectionEvent, data: Any = None):
        if transport is self._draining:
            if event == ConnectionEvent.SOCKET_CLOSED:
                self._draining = None
                if self.state == ConnectionState.CONNECTING and self._transport is None:
                    self._dial()
            return
        if transport is not self._transport:
            return
        self.handle_event(event, data)

    def _send_login(self):
        frame = encode_message(create_login_message(self.id_factory(), self.username))
        if not self.send(frame):
            logger.log_send_skipped('LOGIN')

    def _schedule_retry(self):
        self._cancel_retry()
        delay = compute_backoff_delay(self.attempt + 1, self.backoff_base, self.backoff_max)
        self.retry_delay = delay
        logger.log_retry(self.attempt + 1, delay)
        self._retry_handle = self.scheduler.call_later(delay, self._on_retry_timer)

    def _on_retry_timer(self):
        self._retry_handle = None
        self.handle_event(ConnectionEvent.RETRY_TIMER_FIRED)

    def _cancel_retry(self):
        handle, self._retry_handle = self._retry_handle, None
        if handle is not None:
            handle.cancel()
