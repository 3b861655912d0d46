from __future__ import annotations

import hmac
import logging
import re
from http import HTTPStatus
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, urlsplit

from websockets.asyncio.server import Server, ServerConnection, serve

from conduit.client.connection import Connection
from conduit.client.transport import WebSocketTransport
from conduit.protocol.constants import SESSION_SUB_PATH

from .responder import Responder
from .router import CommandRouter

logger = logging.getLogger(__name__)

SESSION_PATH = re.compile(rf"^/(\d+)/{SESSION_SUB_PATH}$")


def parse_session_path(path: str) -> tuple[Optional[int], Optional[str]]:
    """Split `/{sessionId}/0?key={key}` into (session id, key)."""
    parts = urlsplit(path)
    match = SESSION_PATH.match(parts.path)
    if not match:
        return None, None
    session = int(match.group(1))
    if session > 0xFFFFFFFF:
        return None, None
    keys = parse_qs(parts.query).get("key")
    return session, keys[0] if keys else None


class ConduitServer:
    """WebSocket server attaching a Responder to every accepted session."""

    def __init__(self, host: str, port: int, router: CommandRouter, key: str) -> None:
        self.host = host
        self.port = port
        self.router = router
        self.key = key
        self.sessions: Dict[int, Connection] = {}
        self._server: Optional[Server] = None

    async def start(self) -> None:
        self._server = await serve(self._handle_client, self.host, self.port, process_request=self._check_request)
        logger.info("Server listening on %s:%s", self.host, self.port)

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("Server stopped")

    def _check_request(self, connection: ServerConnection, request: Any) -> Any:
        session, key = parse_session_path(request.path)
        if session is None:
            return connection.respond(HTTPStatus.NOT_FOUND, "Unknown path\n")
        if key is None or not hmac.compare_digest(key.encode(), self.key.encode()):
            logger.warning("Rejected session %s: bad access key", session)
            return connection.respond(HTTPStatus.FORBIDDEN, "Invalid key\n")
        return None

    async def _handle_client(self, websocket: ServerConnection) -> None:
        session, _ = parse_session_path(websocket.request.path)
        transport = WebSocketTransport(websocket)
        connection = Connection(id=session, url=websocket.request.path, transport=transport)
        responder = Responder(connection, self.router)
        self.sessions[session] = connection
        transport.start()
        logger.info("Session %s connected from %s", session, websocket.remote_address)
        try:
            await transport.wait_closed()
        finally:
            responder.close()
            if self.sessions.get(session) is connection:
                del self.sessions[session]
            logger.info("Session %s disconnected", session)


__all__ = ["ConduitServer", "parse_session_path"]
