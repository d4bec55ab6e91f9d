"""Base64url and JSON helpers for compact-serialized tokens."""

import base64
import binascii
import json
from typing import Any


def b64url_encode(data: bytes) -> str:
    """Encode bytes as unpadded base64url text."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(text: str) -> bytes:
    """Decode base64url text, with or without padding.

    Args:
        text: base64url encoded text

    Returns:
        Decoded bytes

    Raises:
        ValueError: If the text is not valid base64url
    """
    if any(c in text for c in "+/"):
        raise ValueError("not base64url (contains '+' or '/')")
    padded = text + "=" * (-len(text) % 4)
    try:
        return base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"invalid base64url: {e}") from e


def compact_json(obj: Any) -> str:
    """Serialize to JSON without insignificant whitespace."""
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)


def decode_json_segment(segment: str) -> Any:
    """Decode a base64url segment holding UTF-8 JSON.

    Args:
        segment: base64url text

    Returns:
        Parsed JSON value

    Raises:
        ValueError: If the segment is not base64url, UTF-8, or JSON
    """
    raw = b64url_decode(segment)
    try:
        return json.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise ValueError(f"not UTF-8: {e}") from e
    except json.JSONDecodeError as e:
        raise ValueError(f"invalid JSON: {e.msg}") from e


def encode_json_segment(obj: Any) -> str:
    """Encode a JSON value as a compact base64url segment."""
    return b64url_encode(compact_json(obj).encode("utf-8"))
