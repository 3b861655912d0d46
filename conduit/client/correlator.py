from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

from conduit.protocol.constants import DEFAULT_REQUEST_TIMEOUT, ROUTE_OPTION, TOKEN_OPTION
from conduit.protocol.errors import ApplicationError, ConduitError, RequestTimeout, TransportError
from conduit.protocol.framing import Message
from conduit.protocol.messages import dump_json, parse_result
from conduit.utils.common import random_token

from .connection import Connection, Subscription, receive, send

logger = logging.getLogger(__name__)

_DEFAULT = object()


@dataclass
class PendingCall:
    """An outstanding request awaiting the response that carries its token."""

    token: str
    route: str
    future: asyncio.Future
    timer: Optional[asyncio.TimerHandle] = field(default=None, repr=False)


class Correlator:
    """Matches response frames to pending requests by token.

    Owns a single ``receive`` subscription on the connection and a
    token -> PendingCall map, so each inbound frame costs one lookup.
    A transport error or a clean transport close rejects every pending
    call and closes the correlator.
    """

    def __init__(self, connection: Connection, timeout: Optional[float] = DEFAULT_REQUEST_TIMEOUT) -> None:
        self.connection = connection
        self.timeout = timeout
        self._pending: Dict[str, PendingCall] = {}
        self._failure: Optional[TransportError] = None
        self._subscription: Optional[Subscription] = receive(connection, self._on_event)
        connection.transport.add_listener("close", self._on_close)

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def closed(self) -> bool:
        return self._subscription is None

    async def request(
        self,
        command: str,
        options: Optional[Mapping[str, Any]] = None,
        payload: Any = None,
        *,
        timeout: Any = _DEFAULT,
    ) -> Any:
        """Send ``command`` and wait for the response carrying the same token.

        ``payload`` may be raw bytes or any JSON-serialisable value.
        Raises :class:`ApplicationError` when the response carries ``err``,
        :class:`TransportError` when the connection fails, and
        :class:`RequestTimeout` when no response arrives in time.
        """
        if self._failure is not None:
            raise TransportError(f"Connection unusable: {self._failure.message}")
        if self._subscription is None:
            raise TransportError("Correlator is closed")

        token = self._new_token()
        frame_options: Dict[str, Any] = {ROUTE_OPTION: command, TOKEN_OPTION: token}
        frame_options.update(options or {})
        body = _payload_bytes(payload)

        loop = asyncio.get_running_loop()
        call = PendingCall(token=token, route=command, future=loop.create_future())
        self._pending[token] = call
        try:
            await send(self.connection, frame_options, body)
            deadline = self.timeout if timeout is _DEFAULT else timeout
            if deadline and not call.future.done():
                call.timer = loop.call_later(deadline, self._expire, call, deadline)
            logger.debug("Request %s pending with token %s", command, token)
            return await call.future
        finally:
            # Covers send failures and caller cancellation; a settled call was already released.
            self._release(call)

    def close(self) -> None:
        """Reject every pending call and drop the subscription."""
        if self._subscription is None:
            return
        self._subscription()
        self._subscription = None
        self.connection.transport.remove_listener("close", self._on_close)
        self._reject_all(TransportError("Connection closed"))

    async def __aenter__(self) -> "Correlator":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()

    def _new_token(self) -> str:
        token = random_token()
        while token in self._pending:
            token = random_token()
        return token

    def _release(self, call: PendingCall) -> None:
        if self._pending.get(call.token) is call:
            del self._pending[call.token]
        if call.timer is not None:
            call.timer.cancel()
            call.timer = None

    def _settle(self, call: PendingCall, result: Any = None, error: Optional[BaseException] = None) -> None:
        self._release(call)
        if call.future.done():
            return
        if error is not None:
            call.future.set_exception(error)
        else:
            call.future.set_result(result)

    def _expire(self, call: PendingCall, deadline: float) -> None:
        logger.warning("Request %s (token %s) timed out after %ss", call.route, call.token, deadline)
        self._settle(call, error=RequestTimeout(f"No response to {call.route} within {deadline}s"))

    def _reject_all(self, error: TransportError) -> None:
        calls = list(self._pending.values())
        if calls:
            logger.warning("Rejecting %d pending call(s): %s", len(calls), error)
        for call in calls:
            self._settle(call, error=error)

    def _on_event(self, error: Optional[ConduitError], message: Optional[Message]) -> None:
        if isinstance(error, TransportError):
            self._failure = error
            self._reject_all(error)
            self.close()
            return
        if error is not None:
            logger.warning("Dropping undecodable frame: %s", error)
            return
        if message is not None:
            self._on_message(message)

    def _on_close(self, _: Any = None) -> None:
        if self._subscription is None:
            return
        logger.info("Connection %s closed", self.connection.id)
        self._failure = TransportError("Connection closed")
        self.close()

    def _on_message(self, message: Message) -> None:
        record = parse_result(message.payload)
        if record is None:
            logger.debug("Ignoring frame without a result record (options=%s)", message.options)
            return

        call = None
        for candidate in (record.token, message.options.get(TOKEN_OPTION)):
            if isinstance(candidate, str) and candidate in self._pending:
                call = self._pending[candidate]
                break
        if call is None:
            logger.debug("No pending call for response token %s", record.token)
            return

        if record.failed:
            self._settle(call, error=ApplicationError.from_err(record.err))
        else:
            self._settle(call, result=record.result())


def _payload_bytes(payload: Any) -> bytes:
    if payload is None:
        return b""
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bytes(payload)
    return dump_json(payload)


def correlator_for(connection: Connection, timeout: Optional[float] = DEFAULT_REQUEST_TIMEOUT) -> Correlator:
    """Correlator cached on the connection, created on first use."""
    if connection.correlator is None or connection.correlator.closed:
        connection.correlator = Correlator(connection, timeout=timeout)
    return connection.correlator


async def request(
    connection: Connection,
    command: str,
    options: Optional[Mapping[str, Any]] = None,
    payload: Union[bytes, Any] = None,
    *,
    timeout: Any = _DEFAULT,
) -> Any:
    """Issue ``command`` on ``connection`` and await its matching response."""
    return await correlator_for(connection).request(command, options, payload, timeout=timeout)


__all__ = ["PendingCall", "Correlator", "correlator_for", "request"]
