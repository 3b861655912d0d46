from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional
from urllib.parse import quote

from conduit.protocol.constants import SESSION_SUB_PATH
from conduit.protocol.errors import ConduitError, MalformedFrame, TransportError
from conduit.protocol.framing import BytesLike, Message, Options, decode_message, encode_message
from conduit.utils.common import session_id

from .transport import Transport, WebSocketTransport

if TYPE_CHECKING:
    from .correlator import Correlator

logger = logging.getLogger(__name__)

ReadyCallback = Callable[[Optional[Exception]], Any]
ReceiveCallback = Callable[[Optional[ConduitError], Optional[Message]], Any]
TransportFactory = Callable[[str, Optional[float]], Awaitable[Transport]]


@dataclass
class Connection:
    """One bidirectional transport endpoint."""

    id: int
    url: str
    transport: Transport
    correlator: Optional["Correlator"] = field(default=None, repr=False)

    @property
    def closed(self) -> bool:
        return self.transport.closed

    async def close(self) -> None:
        if self.correlator is not None:
            self.correlator.close()
        await self.transport.close()


class Subscription:
    """Listener pair registered by :func:`receive`; calling it deregisters both.

    Disposal is idempotent, and once disposed the callback is never invoked
    again, even for an event already being delivered.
    """

    def __init__(self, transport: Transport, callback: ReceiveCallback) -> None:
        self.transport = transport
        self.callback = callback
        self.active = True
        transport.add_listener("message", self._on_message)
        transport.add_listener("error", self._on_error)

    def __call__(self) -> None:
        if not self.active:
            return
        self.active = False
        self.transport.remove_listener("message", self._on_message)
        self.transport.remove_listener("error", self._on_error)

    dispose = __call__

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self()

    def _on_message(self, data: bytes) -> None:
        if not self.active:
            return
        try:
            message = decode_message(data)
        except MalformedFrame as exc:
            self.callback(exc, None)
            return
        self.callback(None, message)

    def _on_error(self, error: Any) -> None:
        if not self.active:
            return
        if not isinstance(error, TransportError):
            error = TransportError(str(error) or "Transport error")
        self.callback(error, None)


def build_url(origin: str, session: int, key: str) -> str:
    """`{origin}/{sessionId}/0?key={key}`"""
    return f"{origin.rstrip('/')}/{session}/{SESSION_SUB_PATH}?key={quote(key, safe='')}"


async def connect(
    origin: str,
    key: str,
    on_ready: Optional[ReadyCallback] = None,
    *,
    transport_factory: Optional[TransportFactory] = None,
    timeout: Optional[float] = None,
) -> Connection:
    """Open a connection to ``origin`` under a fresh random session id.

    ``on_ready`` (if given) is called exactly once: with ``None`` when the
    transport is open, or with the error when opening failed. A failure is
    also raised as :class:`TransportError`.
    """
    sid = session_id()
    url = build_url(origin, sid, key)
    factory = transport_factory or WebSocketTransport.open
    try:
        transport = await factory(url, timeout)
    except TransportError as exc:
        logger.warning("Connect to %s failed: %s", url, exc)
        if on_ready is not None:
            on_ready(exc)
        raise
    except (OSError, TimeoutError) as exc:
        error = TransportError(f"Could not connect to {url}: {exc}")
        logger.warning("Connect to %s failed: %s", url, exc)
        if on_ready is not None:
            on_ready(error)
        raise error from exc

    logger.info("Connected session %s to %s", sid, origin)
    if on_ready is not None:
        on_ready(None)
    return Connection(id=sid, url=url, transport=transport)


async def send(connection: Connection, options: Options, payload: Optional[BytesLike] = None) -> None:
    """Encode and write one frame; no acknowledgement is awaited."""
    frame = encode_message(options, payload if payload is not None else b"")
    await connection.transport.send(frame)
    logger.debug("Sent %d byte frame on session %s", len(frame), connection.id)


def receive(connection: Connection, callback: ReceiveCallback) -> Subscription:
    """Invoke ``callback(error, message)`` for every inbound frame or transport error."""
    return Subscription(connection.transport, callback)


__all__ = ["Connection", "Subscription", "build_url", "connect", "send", "receive"]
