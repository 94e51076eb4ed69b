"""
Broker transport.

A transport is one socket: it is dialed once, reports open/message/close
through a single event callback, and is thrown away after it closes. The
WebSocket implementation runs its reader as an asyncio task.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import aiohttp

from client.connection.lifecycle import ConnectionEvent
from client.utils.logger import logger

EventCallback = Callable[..., None]


class Transport(ABC):
    """One dial of the broker connection."""

    @abstractmethod
    def open(self, on_event: EventCallback) -> None:
        """Start dialing; must not block."""

    @abstractmethod
    def send(self, frame: str) -> bool:
        """Queue a text frame; returns False if the socket is not open."""

    @abstractmethod
    def close(self) -> None:
        """Close the socket; a SOCKET_CLOSED event follows."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...


class WebSocketTransport(Transport):
    """WebSocket connection to the broker using aiohttp."""

    def __init__(self, url: str, heartbeat: Optional[float] = 20.0):
        self.url = url
        self.heartbeat = heartbeat
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._task: Optional[asyncio.Task] = None
        self._pending_sends = set()
        self._close_reported = False

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._ws.closed

    def open(self, on_event: EventCallback) -> None:
        if self._task is not None:
            raise RuntimeError("transport already opened")
        self._task = asyncio.get_running_loop().create_task(self._run(on_event))
        self._task.add_done_callback(lambda task: self._on_task_done(task, on_event))

    def send(self, frame: str) -> bool:
        if not self.is_open:
            return False
        task = asyncio.get_running_loop().create_task(self._send(frame))
        self._pending_sends.add(task)
        task.add_done_callback(self._pending_sends.discard)
        return True

    def close(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def _send(self, frame: str):
        ws = self._ws
        if ws is None or ws.closed:
            return
        try:
            await ws.send_str(frame)
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
            logger.log_error("send", e)

    def _report_close(self, on_event: EventCallback, reason: str):
        if self._close_reported:
            return
        self._close_reported = True
        self._ws = None
        logger.info(f"Socket closed ({reason})")
        on_event(ConnectionEvent.SOCKET_CLOSED, reason)

    def _on_task_done(self, task: asyncio.Task, on_event: EventCallback):
        if not task.cancelled() and task.exception() is not None:
            logger.log_error("socket reader", task.exception())
        # a task cancelled before its first step never runs _run's finally
        self._report_close(on_event, 'closed by client')

    def _dispatch(self, on_event: EventCallback, data):
        try:
            on_event(ConnectionEvent.SOCKET_MESSAGE, data)
        except Exception as e:
            logger.log_error("inbound frame", e)

    async def _run(self, on_event: EventCallback):
        reason = 'closed by server'
        try:
            async with aiohttp.ClientSession() as session:
                async with session.ws_connect(self.url, heartbeat=self.heartbeat) as ws:
                    self._ws = ws
                    logger.info(f"Connected to {self.url}")
                    on_event(ConnectionEvent.SOCKET_OPENED)
                    async for msg in ws:
                        if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                            self._dispatch(on_event, msg.data)
                        elif msg.type in (aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                            reason = f"socket {msg.type.name.lower()}"
                            break
        except asyncio.CancelledError:
            reason = 'closed by client'
            raise
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
            reason = str(e) or type(e).__name__
            logger.warning(f"Connection to {self.url} failed: {reason}")
        finally:
            self._report_close(on_event, reason)


def websocket_transport_factory(url: str, heartbeat: Optional[float] = 20.0) -> Callable[[], Any]:
    """Build a factory that creates a fresh WebSocketTransport per dial."""
    def factory():
        return WebSocketTransport(url, heartbeat=heartbeat)
    return factory
