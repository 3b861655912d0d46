"""Binary frame codec.

Frame layout::

    +--------------+--------------------+-------------+--------------------+
    | Option count |  Option * count    | Payload len |      Payload       |
    | 1 byte       |  variable          | 2 bytes BE  |  Payload len bytes |
    +--------------+--------------------+-------------+--------------------+

    Option := [key len: 1][key: UTF-8][value len: 2 BE][value: UTF-8]

Duplicate option keys decode last-write-wins.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Tuple, Union

from .constants import BYTE_ORDER, ENCODING, MAX_KEY_LENGTH, MAX_OPTIONS, MAX_PAYLOAD_LENGTH, MAX_VALUE_LENGTH
from .errors import EncodingError, MalformedFrame

BytesLike = Union[bytes, bytearray, memoryview]
Options = Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]


@dataclass
class Message:
    """One decoded (or to-be-encoded) frame."""

    options: Dict[str, str] = field(default_factory=dict)
    payload: BytesLike = b""

    def __repr__(self) -> str:
        return f"Message(options={self.options!r}, payload={len(self.payload)} bytes)"


def encode_option(key: str, value: Any) -> bytes:
    """Encode a single key/value option.

    Raises:
        EncodingError: if the key exceeds 255 bytes or the value 65535 bytes
            once UTF-8 encoded, or if either cannot be UTF-8 encoded.
    """
    try:
        key_bytes = str(key).encode(ENCODING)
        value_bytes = _stringify(value).encode(ENCODING)
    except UnicodeEncodeError as exc:
        raise EncodingError(f"Option {key!r} is not valid {ENCODING}: {exc.reason}") from exc
    if len(key_bytes) > MAX_KEY_LENGTH:
        raise EncodingError(f"Option key too long: {len(key_bytes)} bytes (max {MAX_KEY_LENGTH})")
    if len(value_bytes) > MAX_VALUE_LENGTH:
        raise EncodingError(f"Option value for {key!r} too long: {len(value_bytes)} bytes (max {MAX_VALUE_LENGTH})")
    return (
        len(key_bytes).to_bytes(1, BYTE_ORDER)
        + key_bytes
        + len(value_bytes).to_bytes(2, BYTE_ORDER)
        + value_bytes
    )


def encode_message(options: Options, payload: BytesLike = b"") -> bytes:
    """Encode options (in iteration order) and a binary payload into one frame."""
    items = list(options.items()) if isinstance(options, Mapping) else list(options)
    if len(items) > MAX_OPTIONS:
        raise EncodingError(f"Too many options: {len(items)} (max {MAX_OPTIONS})")
    if payload is None:
        payload = b""
    payload = memoryview(payload).cast("B")
    if len(payload) > MAX_PAYLOAD_LENGTH:
        raise EncodingError(f"Payload too large: {len(payload)} bytes (max {MAX_PAYLOAD_LENGTH})")

    # Encode every option before assembling so a failure never yields a partial frame.
    encoded = [encode_option(key, value) for key, value in items]
    parts = [len(encoded).to_bytes(1, BYTE_ORDER), *encoded, len(payload).to_bytes(2, BYTE_ORDER), bytes(payload)]
    return b"".join(parts)


def decode_message(data: BytesLike) -> Message:
    """Decode one frame.

    The returned payload is a ``memoryview`` over ``data``; nothing is copied.

    Raises:
        MalformedFrame: if any length prefix points past the end of ``data``
            or a key/value is not valid UTF-8.
    """
    reader = _Reader(memoryview(data).cast("B"))

    count = reader.uint(1, "option count")
    options: Dict[str, str] = {}
    for index in range(count):
        key_length = reader.uint(1, f"key length of option {index}")
        key = reader.text(key_length, f"key of option {index}")
        value_length = reader.uint(2, f"value length of option {index}")
        value = reader.text(value_length, f"value of option {key!r}")
        options[key] = value

    payload_length = reader.uint(2, "payload length")
    payload = reader.take(payload_length, "payload")
    return Message(options=options, payload=payload)


class _Reader:
    """Cursor over a byte view that checks bounds before every read."""

    def __init__(self, view: memoryview) -> None:
        self.view = view
        self.offset = 0

    def take(self, length: int, what: str) -> memoryview:
        end = self.offset + length
        if end > len(self.view):
            raise MalformedFrame(
                f"Frame truncated reading {what}: need {length} bytes at offset {self.offset}, "
                f"have {len(self.view) - self.offset}"
            )
        chunk = self.view[self.offset : end]
        self.offset = end
        return chunk

    def uint(self, size: int, what: str) -> int:
        return int.from_bytes(self.take(size, what), BYTE_ORDER)

    def text(self, length: int, what: str) -> str:
        raw = self.take(length, what)
        try:
            return str(raw, ENCODING)
        except UnicodeDecodeError as exc:
            raise MalformedFrame(f"Invalid {ENCODING} in {what}: {exc}") from exc


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


__all__ = ["Message", "BytesLike", "Options", "encode_option", "encode_message", "decode_message"]
