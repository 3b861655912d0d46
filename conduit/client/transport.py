"""Message-oriented transports.

A transport moves whole binary frames and reports what happens to it through
four events:

- ``open``: fired at most once, when the transport becomes usable
- ``message``: one inbound frame (``bytes``)
- ``error``: a terminal :class:`TransportError`; the transport is closed afterwards
- ``close``: the transport is gone, cleanly or not
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Dict, List, Optional, Tuple

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, WebSocketException

from conduit.protocol.constants import ENCODING
from conduit.protocol.errors import TransportError

logger = logging.getLogger(__name__)

EVENTS = ("open", "message", "error", "close")

Listener = Callable[[Any], None]


class Transport:
    """Base class holding the listener registry shared by every transport."""

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Listener]] = {event: [] for event in EVENTS}
        self._opened = False
        self.closed = False

    def add_listener(self, event: str, listener: Listener) -> None:
        self._check_event(event)
        self._listeners[event].append(listener)

    def remove_listener(self, event: str, listener: Listener) -> None:
        self._check_event(event)
        try:
            self._listeners[event].remove(listener)
        except ValueError:
            pass

    def listener_count(self, event: str) -> int:
        self._check_event(event)
        return len(self._listeners[event])

    def emit(self, event: str, arg: Any = None) -> None:
        self._check_event(event)
        if event == "open":
            if self._opened:
                return
            self._opened = True
        # Snapshot: listeners may deregister themselves (or others) while we deliver.
        for listener in list(self._listeners[event]):
            try:
                listener(arg)
            except Exception as exc:
                logger.exception("Listener error for %s event: %s", event, exc)

    async def send(self, data: bytes) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        raise NotImplementedError

    def _fail(self, error: TransportError) -> None:
        if self.closed:
            return
        self.closed = True
        logger.warning("Transport failed: %s", error)
        self.emit("error", error)
        self.emit("close")

    @staticmethod
    def _check_event(event: str) -> None:
        if event not in EVENTS:
            raise ValueError(f"Unknown transport event {event!r}")


class WebSocketTransport(Transport):
    """Transport over a ``websockets`` asyncio connection (client or server side)."""

    def __init__(self, websocket: Any) -> None:
        super().__init__()
        self.websocket = websocket
        self._reader_task: Optional[asyncio.Task] = None

    @classmethod
    async def open(cls, url: str, timeout: Optional[float] = None) -> "WebSocketTransport":
        try:
            websocket = await ws_connect(url, open_timeout=timeout)
        except (OSError, TimeoutError, WebSocketException) as exc:
            raise TransportError(f"Could not connect to {url}: {exc}") from exc
        transport = cls(websocket)
        transport.start()
        return transport

    def start(self) -> None:
        if self._reader_task is None:
            self._reader_task = asyncio.create_task(self._read_loop(), name="conduit-ws-reader")
        self.emit("open")

    async def wait_closed(self) -> None:
        if self._reader_task is not None:
            await asyncio.shield(self._reader_task)

    async def send(self, data: bytes) -> None:
        if self.closed:
            raise TransportError("Transport is closed")
        try:
            await self.websocket.send(bytes(data))
        except ConnectionClosed as exc:
            error = TransportError(f"Connection lost during send: {exc}")
            self._fail(error)
            raise error from exc

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self.websocket.close()
        if self._reader_task is not None and self._reader_task is not asyncio.current_task():
            await self._reader_task

    async def _read_loop(self) -> None:
        try:
            async for frame in self.websocket:
                if isinstance(frame, str):
                    frame = frame.encode(ENCODING)
                self.emit("message", frame)
        except ConnectionClosedOK:
            pass
        except ConnectionClosed as exc:
            self._fail(TransportError(f"Connection closed abnormally: {exc}"))
            return
        except OSError as exc:
            self._fail(TransportError(f"Receive failed: {exc}"))
            return
        logger.info("WebSocket connection closed")
        self.closed = True
        self.emit("close")


class LoopbackTransport(Transport):
    """In-process transport; frames sent on one end arrive on its peer."""

    def __init__(self) -> None:
        super().__init__()
        self.peer: Optional["LoopbackTransport"] = None
        self.sent: List[bytes] = []

    @classmethod
    def pair(cls) -> Tuple["LoopbackTransport", "LoopbackTransport"]:
        left, right = cls(), cls()
        left.peer, right.peer = right, left
        left.emit("open")
        right.emit("open")
        return left, right

    async def send(self, data: bytes) -> None:
        if self.closed:
            raise TransportError("Transport is closed")
        frame = bytes(data)
        self.sent.append(frame)
        if self.peer is not None:
            self.peer.inject(frame)

    def inject(self, frame: bytes) -> None:
        """Schedule delivery of an inbound frame on the running loop."""
        asyncio.get_running_loop().call_soon(self._deliver, frame)

    def fail(self, error: Optional[TransportError] = None) -> None:
        self._fail(error or TransportError("Loopback transport failed"))

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.emit("close")
        peer, self.peer = self.peer, None
        if peer is not None and not peer.closed:
            await peer.close()

    def _deliver(self, frame: bytes) -> None:
        if not self.closed:
            self.emit("message", frame)


__all__ = ["EVENTS", "Listener", "Transport", "WebSocketTransport", "LoopbackTransport"]
