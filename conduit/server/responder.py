from __future__ import annotations

import asyncio
import logging
from typing import Optional, Set

from conduit.client.connection import Connection, Subscription, receive, send
from conduit.protocol.constants import ROUTE_OPTION, TOKEN_OPTION
from conduit.protocol.errors import ConduitError, EncodingError, ErrorCode, TransportError
from conduit.protocol.framing import Message
from conduit.protocol.messages import build_result

from .router import CommandRouter

logger = logging.getLogger(__name__)


class Responder:
    """Answers request frames arriving on one connection.

    Every frame carrying a ``route`` option is dispatched through the router
    and answered with a result record echoing the request's token, either as
    ``{"token", "data"}`` or ``{"token", "err"}``.
    """

    def __init__(self, connection: Connection, router: CommandRouter) -> None:
        self.connection = connection
        self.router = router
        self._tasks: Set[asyncio.Task] = set()
        self._subscription: Optional[Subscription] = receive(connection, self._on_event)

    @property
    def closed(self) -> bool:
        return self._subscription is None

    def close(self) -> None:
        if self._subscription is None:
            return
        self._subscription()
        self._subscription = None
        for task in list(self._tasks):
            task.cancel()

    async def drain(self) -> None:
        """Wait for every in-flight request to be answered."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _on_event(self, error: Optional[ConduitError], message: Optional[Message]) -> None:
        if isinstance(error, TransportError):
            logger.info("Session %s transport failed: %s", self.connection.id, error)
            self.close()
            return
        if error is not None:
            logger.warning("Session %s sent an undecodable frame: %s", self.connection.id, error)
            return
        if message is None or not message.options.get(ROUTE_OPTION):
            logger.debug("Ignoring frame without a route on session %s", self.connection.id)
            return
        task = asyncio.create_task(self._handle(message), name=f"conduit-respond-{message.options[ROUTE_OPTION]}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _handle(self, message: Message) -> None:
        route = message.options.get(ROUTE_OPTION)
        token = message.options.get(TOKEN_OPTION)
        try:
            data = await self.router.dispatch(message, self.connection)
            body = build_result(token, data=data)
        except ConduitError as exc:
            logger.warning("Request %s failed: %s", route, exc)
            body = build_result(token, err=exc.to_payload())
        except Exception as exc:
            logger.exception("Handler error for %s: %s", route, exc)
            body = build_result(token, err=ConduitError(str(exc), ErrorCode.INTERNAL_ERROR).to_payload())

        options = {TOKEN_OPTION: token} if token else {}
        try:
            try:
                await send(self.connection, options, body)
            except EncodingError as exc:
                await send(self.connection, options, build_result(token, err=exc.to_payload()))
        except TransportError as exc:
            logger.warning("Could not answer %s on session %s: %s", route, self.connection.id, exc)


__all__ = ["Responder"]
