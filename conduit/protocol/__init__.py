"""
Shared protocol package: frame codec, error types, result records and option
validation used by both the requesting and the answering side.
"""

from .constants import (
    ENCODING,
    MAX_KEY_LENGTH,
    MAX_OPTIONS,
    MAX_PAYLOAD_LENGTH,
    MAX_VALUE_LENGTH,
    ROUTE_OPTION,
    TOKEN_OPTION,
)
from .errors import (
    ApplicationError,
    CommandError,
    ConduitError,
    ConfigError,
    EncodingError,
    ErrorCode,
    MalformedFrame,
    RequestTimeout,
    TransportError,
)
from .framing import Message, decode_message, encode_message, encode_option
from .messages import ResultRecord, build_result, dump_json, parse_result
from .validator import load_schema, validate_options

__all__ = [
    "ENCODING",
    "MAX_KEY_LENGTH",
    "MAX_OPTIONS",
    "MAX_PAYLOAD_LENGTH",
    "MAX_VALUE_LENGTH",
    "ROUTE_OPTION",
    "TOKEN_OPTION",
    "ErrorCode",
    "ConduitError",
    "EncodingError",
    "MalformedFrame",
    "TransportError",
    "ApplicationError",
    "RequestTimeout",
    "CommandError",
    "ConfigError",
    "Message",
    "encode_option",
    "encode_message",
    "decode_message",
    "ResultRecord",
    "parse_result",
    "dump_json",
    "build_result",
    "load_schema",
    "validate_options",
]
