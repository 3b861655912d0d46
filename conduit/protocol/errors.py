from __future__ import annotations

from enum import IntEnum
from typing import Any, Optional


class ErrorCode(IntEnum):
    """Error codes carried in `err` records and on raised exceptions."""

    ENCODING = 1001
    MALFORMED_FRAME = 1002
    TRANSPORT = 1003
    APPLICATION = 1004
    TIMEOUT = 1005
    BAD_REQUEST = 1400
    NOT_FOUND = 1404
    INTERNAL_ERROR = 1500


class ConduitError(Exception):
    """Structured protocol exception carrying code + message."""

    default_code = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str = "", code: Optional[ErrorCode] = None) -> None:
        self.code = code if code is not None else self.default_code
        self.message = message
        super().__init__(f"{self.code.name} ({int(self.code)}): {message}")

    def to_payload(self) -> dict:
        """Map error into an `err` record consumable by the requesting side."""
        return {"message": self.message, "code": int(self.code)}


class EncodingError(ConduitError):
    """A key, value, option count or payload exceeds its wire bound."""

    default_code = ErrorCode.ENCODING


class MalformedFrame(ConduitError):
    """A frame ended before one of its length prefixes was satisfied."""

    default_code = ErrorCode.MALFORMED_FRAME


class TransportError(ConduitError):
    """The underlying connection failed independently of any frame."""

    default_code = ErrorCode.TRANSPORT


class ApplicationError(ConduitError):
    """A response payload carried an explicit `err` field."""

    default_code = ErrorCode.APPLICATION

    def __init__(self, message: str = "", code: Optional[ErrorCode] = None, error: Any = None) -> None:
        super().__init__(message, code)
        self.error = error

    @classmethod
    def from_err(cls, err: Any) -> "ApplicationError":
        if isinstance(err, dict):
            message = err.get("message")
            try:
                code: Optional[ErrorCode] = ErrorCode(err.get("code"))
            except ValueError:
                code = None
            if message is not None:
                return cls(str(message), code, error=err)
            return cls(str(err), code, error=err)
        return cls(str(err), error=err)


class RequestTimeout(ConduitError, TimeoutError):
    """No matching response arrived before the call's deadline."""

    default_code = ErrorCode.TIMEOUT


class CommandError(ConduitError):
    """Raised on the answering side for unknown routes or invalid options."""

    default_code = ErrorCode.BAD_REQUEST


class ConfigError(Exception):
    """Raised when configuration values are invalid."""

    pass


__all__ = [
    "ErrorCode",
    "ConduitError",
    "EncodingError",
    "MalformedFrame",
    "TransportError",
    "ApplicationError",
    "RequestTimeout",
    "CommandError",
    "ConfigError",
]
