from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from conduit.client.config import CLIENT_CONFIG, load_config
from conduit.client.connection import connect
from conduit.client.correlator import Correlator
from conduit.protocol.errors import ConduitError

logger = logging.getLogger(__name__)

USAGE = "usage: python -m conduit.client.main COMMAND [OPTIONS_JSON]"


def _parse_args(argv: List[str]) -> tuple[str, Dict[str, Any]]:
    if not argv:
        raise SystemExit(USAGE)
    command = argv[0]
    options: Dict[str, Any] = {}
    if len(argv) > 1:
        try:
            options = json.loads(argv[1])
        except json.JSONDecodeError as exc:
            raise SystemExit(f"OPTIONS_JSON is not valid JSON: {exc}") from exc
        if not isinstance(options, dict):
            raise SystemExit("OPTIONS_JSON must be a JSON object")
    return command, options


async def run_client(argv: Optional[List[str]] = None) -> int:
    command, options = _parse_args(sys.argv[1:] if argv is None else argv)
    load_config()
    logging.basicConfig(level=CLIENT_CONFIG["log_level"])

    try:
        connection = await connect(
            CLIENT_CONFIG["origin"],
            CLIENT_CONFIG["key"],
            timeout=CLIENT_CONFIG["connect_timeout"],
        )
    except ConduitError as exc:
        logger.error("Could not connect to %s: %s", CLIENT_CONFIG["origin"], exc)
        return 1
    correlator = Correlator(connection, timeout=CLIENT_CONFIG["request_timeout"] or None)
    connection.correlator = correlator
    try:
        result = await correlator.request(command, options)
    except ConduitError as exc:
        logger.error("Request %s failed: %s", command, exc)
        return 1
    finally:
        await connection.close()

    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(run_client()))
