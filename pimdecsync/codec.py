"""
Value codec for DecSync entries.

libdecsync stores every value as raw text holding a single JSON scalar, not a
full JSON document. Item payloads are stored as a JSON string literal and a
deletion as JSON ``null``. The helpers below wrap the raw text in ``[ ]`` so
it parses as a one-element array, and strip the brackets again on the way out.
"""
import json
from typing import Any, Optional


# Value written to mark an item as deleted
DELETED_VALUE = "null"


class ValueDecodeError(ValueError):
    """A DecSync value that is not a single JSON string or null."""
    pass


def _unwrap(value: str) -> Any:
    try:
        parsed = json.loads(f"[{value}]")
    except json.JSONDecodeError as e:
        raise ValueDecodeError(f"Malformed DecSync value {value!r}: {e}") from e

    if len(parsed) != 1:
        raise ValueDecodeError(f"Expected exactly one JSON value, got {len(parsed)}: {value!r}")

    return parsed[0]


def encode_value(payload: bytes) -> str:
    """
    Encode a raw item payload as a DecSync value.

    Args:
        payload: Opaque item payload (vCard, iCalendar, ...)

    Returns:
        JSON string literal, e.g. '"BEGIN:VCARD\\n..."'
    """
    text = payload.decode("utf-8", "surrogateescape")
    json_array = json.dumps([text], separators=(",", ":"))
    # Remove leading '[' and trailing ']' so only the string literal is left
    return json_array[1:-1]


def decode_value(value: str) -> Optional[bytes]:
    """
    Decode a DecSync value into a raw item payload.

    Args:
        value: Raw value as stored by libdecsync

    Returns:
        Payload bytes, or None if the value marks a deleted item

    Raises:
        ValueDecodeError: If the value is not a JSON string or null
    """
    payload = _unwrap(value)
    if payload is None:
        return None

    if not isinstance(payload, str):
        raise ValueDecodeError(f"Expected a JSON string, got {type(payload).__name__}: {value!r}")

    try:
        return payload.encode("utf-8", "surrogateescape")
    except UnicodeEncodeError as e:
        raise ValueDecodeError(f"Unencodable payload in {value!r}: {e}") from e


def decode_static_info(value: str) -> Optional[str]:
    """Decode a static info value (e.g. a collection's display name) to text."""
    info = _unwrap(value)
    if info is None:
        return None

    if not isinstance(info, str):
        raise ValueDecodeError(f"Expected a JSON string, got {type(info).__name__}: {value!r}")

    return info
