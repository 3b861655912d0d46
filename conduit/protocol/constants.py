"""Protocol-wide constants shared by client and server."""

ENCODING = "utf-8"
BYTE_ORDER = "big"

MAX_KEY_LENGTH = 0xFF  # one-byte key length prefix
MAX_VALUE_LENGTH = 0xFFFF  # two-byte value length prefix
MAX_PAYLOAD_LENGTH = 0xFFFF  # two-byte payload length prefix
MAX_OPTIONS = 0xFF  # one-byte option count

ROUTE_OPTION = "route"
TOKEN_OPTION = "token"

SESSION_SUB_PATH = "0"
DEFAULT_REQUEST_TIMEOUT = 30  # seconds

__all__ = [
    "ENCODING",
    "BYTE_ORDER",
    "MAX_KEY_LENGTH",
    "MAX_VALUE_LENGTH",
    "MAX_PAYLOAD_LENGTH",
    "MAX_OPTIONS",
    "ROUTE_OPTION",
    "TOKEN_OPTION",
    "SESSION_SUB_PATH",
    "DEFAULT_REQUEST_TIMEOUT",
]
