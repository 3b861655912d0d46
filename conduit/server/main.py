from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

from conduit.server.config import SERVER_CONFIG, load_server_config
from conduit.server.router import CommandRouter, RequestContext
from conduit.server.server import ConduitServer


async def handle_ping(options: Dict[str, str], payload: bytes, ctx: RequestContext) -> Dict[str, Any]:
    return {"pong": True, "echo": options.get("echo"), "payload_size": len(payload), "session": ctx.connection.id}


def build_router() -> CommandRouter:
    router = CommandRouter()
    router.register("ping", handle_ping)
    return router


async def run_server() -> None:
    load_server_config()
    logging.basicConfig(level=SERVER_CONFIG["log_level"])

    server = ConduitServer(SERVER_CONFIG["host"], SERVER_CONFIG["port"], build_router(), SERVER_CONFIG["key"])
    await server.start()
    try:
        await asyncio.Event().wait()  # keep running
    finally:
        await server.stop()


if __name__ == "__main__":
    asyncio.run(run_server())
