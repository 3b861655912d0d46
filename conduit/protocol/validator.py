from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import jsonschema

from .errors import CommandError, ErrorCode

SCHEMA_DIR = Path(__file__).parent / "schemas"

REQUEST_SCHEMA = "request.json"

# Mapping route -> schema filename (relative to SCHEMA_DIR)
SCHEMA_REGISTRY: Dict[str, str] = {
    "ping": "ping.json",
}


def _schema_path(name: str) -> Optional[Path]:
    filename = SCHEMA_REGISTRY.get(name)
    if not filename:
        # "serviceWorker.fetch" -> "serviceWorker.fetch.json"
        filename = f"{name}.json"
    path = SCHEMA_DIR / filename
    return path if path.exists() else None


@lru_cache(maxsize=16)
def load_schema(route: str) -> Optional[dict]:
    """Load the JSON schema for a route's options if one ships with the package."""
    path = _schema_path(route)
    if not path:
        return None
    with path.open("r", encoding="utf-8") as fp:
        return json.load(fp)


@lru_cache(maxsize=1)
def request_schema() -> dict:
    with (SCHEMA_DIR / REQUEST_SCHEMA).open("r", encoding="utf-8") as fp:
        return json.load(fp)


def validate_options(options: Mapping[str, Any], schema: Optional[dict] = None) -> None:
    """Check request options against the envelope schema and, if given, a route schema."""
    for candidate in (request_schema(), schema):
        if not candidate:
            continue
        try:
            jsonschema.validate(instance=dict(options), schema=candidate)
        except jsonschema.ValidationError as exc:
            raise CommandError(f"Option validation failed: {exc.message}", ErrorCode.BAD_REQUEST) from exc


__all__ = ["SCHEMA_DIR", "SCHEMA_REGISTRY", "load_schema", "request_schema", "validate_options"]
