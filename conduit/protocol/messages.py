from __future__ import annotations

import json
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .constants import ENCODING
from .errors import EncodingError
from .framing import BytesLike


class ResultRecord(BaseModel):
    """Structured result carried in a response payload."""

    model_config = ConfigDict(extra="allow")

    token: Any = Field(default=None, description="Correlation token echoed by the responder")
    data: Any = Field(default=None, description="Result of a successful call")
    err: Any = Field(default=None, description="Error record or message of a failed call")

    @property
    def failed(self) -> bool:
        # Falsy scalars ("", 0, false) do not count as an error; an empty mapping does.
        return self.err not in (None, False, "")

    def result(self) -> Any:
        """Value a successful call resolves with: `data`, else the whole record."""
        if self.data is not None:
            return self.data
        return self.model_dump(exclude_unset=True)


def parse_result(payload: BytesLike) -> Optional[ResultRecord]:
    """Parse a payload as a JSON result record; None when it is not one."""
    try:
        obj = json.loads(bytes(payload).decode(ENCODING))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    if not isinstance(obj, dict):
        return None
    try:
        return ResultRecord.model_validate(obj)
    except ValidationError:
        return None


def dump_json(obj: Any) -> bytes:
    """Encode a structured value as compact UTF-8 JSON."""
    try:
        return json.dumps(obj, ensure_ascii=False, separators=(",", ":")).encode(ENCODING)
    except (TypeError, ValueError) as exc:
        raise EncodingError(f"Payload is not JSON serialisable: {exc}") from exc


def build_result(token: Optional[str], data: Any = None, err: Optional[Dict[str, Any]] = None) -> bytes:
    """Build the payload of a response frame."""
    record: Dict[str, Any] = {"token": token}
    if err is not None:
        record["err"] = err
    else:
        record["data"] = data
    return dump_json(record)


__all__ = ["ResultRecord", "parse_result", "dump_json", "build_result"]
