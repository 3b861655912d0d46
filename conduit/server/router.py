from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from conduit.protocol import validator
from conduit.protocol.constants import ROUTE_OPTION, TOKEN_OPTION
from conduit.protocol.errors import CommandError, ErrorCode
from conduit.protocol.framing import Message

if TYPE_CHECKING:
    from conduit.client.connection import Connection


@dataclass
class RequestContext:
    connection: "Connection"
    route: str
    token: Optional[str]


Handler = Callable[[Dict[str, str], bytes, RequestContext], Awaitable[Any]]


class CommandRouter:
    """Maps request routes to async handlers."""

    def __init__(self) -> None:
        self._handlers: Dict[str, Tuple[Handler, Optional[dict]]] = {}

    def register(self, route: str, handler: Handler, schema: Optional[dict] = None) -> None:
        if schema is None:
            schema = validator.load_schema(route)
        self._handlers[route] = (handler, schema)

    @property
    def routes(self) -> List[str]:
        return sorted(self._handlers)

    async def dispatch(self, message: Message, connection: "Connection") -> Any:
        options = message.options
        route = options.get(ROUTE_OPTION, "")
        entry = self._handlers.get(route)
        if entry is None:
            raise CommandError(f"Unknown route {route!r}", ErrorCode.NOT_FOUND)
        handler, schema = entry
        validator.validate_options(options, schema)
        ctx = RequestContext(connection=connection, route=route, token=options.get(TOKEN_OPTION))
        return await handler(options, bytes(message.payload), ctx)


__all__ = ["CommandRouter", "Handler", "RequestContext"]
