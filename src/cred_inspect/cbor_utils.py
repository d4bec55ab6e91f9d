"""CBOR utilities module.

This module provides a unified interface for CBOR operations, isolating the
underlying CBOR library implementation from the mDOC decoder.

Currently uses cbor2 as the underlying implementation.
"""

import math
from datetime import date, datetime
from typing import Any, Union

import cbor2

# Type aliases for CBOR special values
CBORTag = cbor2.CBORTag
CBORSimpleValue = cbor2.CBORSimpleValue
CBORDecodeError = cbor2.CBORDecodeError

# Encoded CBOR data item (ISO 18013-5 wraps IssuerSignedItem and MSO in it)
ENCODED_CBOR_TAG = 24
COSE_SIGN1_TAG = 18


def encode(obj: Any, canonical: bool = False) -> bytes:
    """Encode an object to CBOR bytes.

    Args:
        obj: The object to encode
        canonical: Whether to use canonical encoding (deterministic)

    Returns:
        CBOR-encoded bytes
    """
    return cbor2.dumps(obj, canonical=canonical)


def decode(data: bytes) -> Any:
    """Decode CBOR bytes to an object.

    Args:
        data: CBOR-encoded bytes

    Returns:
        The decoded object

    Raises:
        CBORDecodeError: If the data is not valid CBOR
    """
    return cbor2.loads(data)


def is_tag(obj: Any, tag_number: Union[int, None] = None) -> bool:
    """Check if an object is a CBOR tag.

    Args:
        obj: The object to check
        tag_number: Optional specific tag number to check for

    Returns:
        True if the object is a CBOR tag (and matches tag_number if specified)
    """
    if not isinstance(obj, CBORTag):
        return False
    if tag_number is not None:
        return obj.tag == tag_number
    return True


def get_tag_value(obj: CBORTag) -> Any:
    """Get the tagged value from a CBOR tag.

    Args:
        obj: A CBOR tag object

    Returns:
        The tagged value
    """
    return obj.value


def unwrap_embedded(obj: Any) -> Any:
    """Decode an embedded CBOR data item (tag 24) if present.

    Bare byte strings are decoded as well, since some encoders drop the tag.

    Args:
        obj: Tag 24 wrapper, byte string, or already-decoded value

    Returns:
        The decoded inner value, or obj unchanged
    """
    if is_tag(obj, ENCODED_CBOR_TAG):
        obj = get_tag_value(obj)
    if isinstance(obj, (bytes, bytearray)):
        return decode(bytes(obj))
    return obj


def to_json_safe(obj: Any) -> Any:
    """Convert a decoded CBOR tree into JSON-serializable values.

    Byte strings become lowercase hex, dates and datetimes ISO-8601 strings,
    tags their (converted) value, sets sorted lists, map keys strings, and
    any other scalar (Decimal, UUID, non-finite float, ...) its str().

    Args:
        obj: Decoded CBOR value

    Returns:
        Value composed only of dict, list, str, int, float, bool and None
    """
    # CBORSimpleValue subclasses tuple
    if isinstance(obj, CBORSimpleValue):
        return obj.value
    if isinstance(obj, dict):
        return {str(k): to_json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_json_safe(item) for item in obj]
    if isinstance(obj, (bytes, bytearray)):
        return bytes(obj).hex()
    if isinstance(obj, datetime):
        return obj.isoformat().replace("+00:00", "Z")
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, CBORTag):
        return to_json_safe(obj.value)
    if isinstance(obj, (set, frozenset)):
        items = [to_json_safe(item) for item in obj]
        try:
            return sorted(items)
        except TypeError:
            return sorted(items, key=repr)
    if isinstance(obj, float) and not math.isfinite(obj):
        return str(obj)
    if obj is None or isinstance(obj, (str, int, float)):
        return obj
    if obj is cbor2.undefined:
        return None
    # Decimal, Fraction, UUID, IP addresses, regular expressions, ...
    return str(obj)
