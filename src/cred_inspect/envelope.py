"""Format sniffing and envelope decoding.

Classification is an explicit decision table over structural facts of the
input (tilde-part count, dot-segment count). Parse success only matters after
the shape has been chosen: a token whose header cannot be read is a
MalformedEnvelope, never a fallback to another format.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from . import jose_utils
from .exceptions import MalformedEnvelope, UnrecognizedFormat
from .mdoc import CBORDocumentParser, DocumentParser, DocumentParseError
from .models import (
    Disclosure,
    DocumentEnvelope,
    Envelope,
    SelectiveDisclosureEnvelope,
    SimpleEnvelope,
)

logger = logging.getLogger(__name__)

DISCLOSURE_SEPARATOR = "~"
SEGMENT_SEPARATOR = "."


class Format(str, Enum):
    SIMPLE = "simple"
    SELECTIVE_DISCLOSURE = "selective-disclosure"
    DOCUMENT = "document"


@dataclass(frozen=True)
class Shape:
    """Structural facts about a raw input."""

    tilde_parts: int
    token_segments: int

    @classmethod
    def of(cls, raw: str) -> "Shape":
        parts = raw.split(DISCLOSURE_SEPARATOR)
        return cls(
            tilde_parts=len(parts),
            token_segments=len(parts[0].split(SEGMENT_SEPARATOR)),
        )


# Evaluated top to bottom, first match wins
DECISION_TABLE: tuple[tuple[Callable[[Shape], bool], Format], ...] = (
    (lambda s: s.token_segments < 2, Format.DOCUMENT),
    (lambda s: s.tilde_parts == 1, Format.SIMPLE),
    (lambda s: s.tilde_parts > 1, Format.SELECTIVE_DISCLOSURE),
)


def classify(raw: str) -> Format:
    """Classify raw input by its structure alone.

    Args:
        raw: Trimmed credential text

    Returns:
        The envelope shape to decode the input as
    """
    shape = Shape.of(raw)
    for predicate, detected in DECISION_TABLE:
        if predicate(shape):
            logger.debug("classified input as %s (%s)", detected.value, shape)
            return detected
    raise UnrecognizedFormat.undetected()


def find_holder_binding_index(parts: list[str]) -> Optional[int]:
    """Locate the holder-binding token among the tilde-parts.

    Scans from the last part backward for the first non-empty part that is
    itself a compact token. Index 0 (the issuer token) is never considered.

    Args:
        parts: The input split on "~"

    Returns:
        Index of the holder-binding part, or None
    """
    for i in range(len(parts) - 1, 0, -1):
        if parts[i] and len(parts[i].split(SEGMENT_SEPARATOR)) >= 2:
            return i
    return None


def _decode_object(segments: list[str], index: int, name: str) -> dict:
    if index >= len(segments) or not segments[index]:
        raise MalformedEnvelope.missing(name, index)
    try:
        value = jose_utils.decode_json_segment(segments[index])
    except ValueError as e:
        raise MalformedEnvelope(name, index, str(e)) from e
    if not isinstance(value, dict):
        raise MalformedEnvelope(name, index, "expected a JSON object")
    return value


def decode_simple(token: str) -> SimpleEnvelope:
    """Decode a compact token into header, payload and signature.

    Args:
        token: header.payload[.signature]

    Returns:
        SimpleEnvelope

    Raises:
        MalformedEnvelope: If the header or payload is missing or unreadable
    """
    segments = token.split(SEGMENT_SEPARATOR)
    header = _decode_object(segments, 0, "header")
    payload = _decode_object(segments, 1, "payload")

    # JWE-style extra segments stay part of the signature text
    raw_signature = SEGMENT_SEPARATOR.join(segments[2:])

    return SimpleEnvelope(
        header=header,
        payload=payload,
        signature_present=bool(raw_signature),
        raw_header=segments[0],
        raw_payload=segments[1],
        raw_signature=raw_signature,
    )


def decode_disclosure(encoded: str) -> Disclosure:
    """Decode one base64url disclosure.

    Object disclosures are [salt, name, value]; array-entry disclosures are
    [salt, value]. The digest is left empty for the resolver.

    Args:
        encoded: The tilde-part text

    Returns:
        Disclosure with encoded preserved byte-exact

    Raises:
        ValueError: If the part is not a well-formed disclosure
    """
    decoded = jose_utils.decode_json_segment(encoded)
    if not isinstance(decoded, list) or len(decoded) not in (2, 3):
        raise ValueError("expected [salt, name, value] or [salt, value]")

    salt = decoded[0]
    if not isinstance(salt, str):
        raise ValueError("salt must be a string")

    if len(decoded) == 2:
        return Disclosure(
            salt=salt, name=None, value=decoded[1], is_array_entry=True, encoded=encoded
        )

    name = decoded[1]
    if not isinstance(name, str):
        raise ValueError("claim name must be a string")
    return Disclosure(
        salt=salt, name=name, value=decoded[2], is_array_entry=False, encoded=encoded
    )


def decode_selective_disclosure(raw: str) -> SelectiveDisclosureEnvelope:
    """Decode an SD-JWT with its disclosures and optional holder-binding token.

    A single unreadable disclosure is kept as a stub with a warning; only an
    unreadable issuer header or payload fails the decode.

    Args:
        raw: issuer-token~disclosure~...~[holder-binding-token]

    Returns:
        SelectiveDisclosureEnvelope

    Raises:
        MalformedEnvelope: If the issuer token header or payload is unreadable
    """
    parts = raw.split(DISCLOSURE_SEPARATOR)
    main = decode_simple(parts[0])
    warnings: list[str] = []

    holder_binding: Optional[SimpleEnvelope] = None
    kb_index = find_holder_binding_index(parts)
    if kb_index is not None:
        try:
            holder_binding = decode_simple(parts[kb_index])
        except MalformedEnvelope as e:
            warnings.append(f"Key binding JWT unreadable: {e.message}")
            logger.warning("holder-binding token unreadable: %s", e.message)

    disclosures: list[Disclosure] = []
    for i, part in enumerate(parts[1:], start=1):
        if not part or i == kb_index:
            continue
        try:
            disclosures.append(decode_disclosure(part))
        except ValueError as e:
            position = len(disclosures)
            warnings.append(f"Disclosure {position} is malformed: {e}")
            logger.warning("malformed disclosure %d: %s", position, e)
            disclosures.append(
                Disclosure(
                    salt="",
                    name=None,
                    value=None,
                    is_array_entry=False,
                    encoded=part,
                    error=str(e),
                )
            )

    return SelectiveDisclosureEnvelope(
        header=main.header,
        payload=main.payload,
        disclosures=tuple(disclosures),
        holder_binding_token=holder_binding,
        raw_header=main.raw_header,
        raw_payload=main.raw_payload,
        raw_signature=main.raw_signature,
        warnings=tuple(warnings),
    )


def decode_document(raw: str, document_parser: Optional[DocumentParser] = None) -> DocumentEnvelope:
    """Delegate non-token input to the document parser.

    Raises:
        UnrecognizedFormat: If the parser cannot make sense of the input
    """
    parser = document_parser or CBORDocumentParser()
    try:
        return parser.parse(raw)
    except DocumentParseError as e:
        logger.debug("document parser rejected input: %s", e)
        raise UnrecognizedFormat.undetected() from e


def decode(raw: str, document_parser: Optional[DocumentParser] = None) -> Envelope:
    """Detect the credential format and decode its envelope.

    Args:
        raw: Credential text (surrounding whitespace is ignored)
        document_parser: Collaborator for mDOC input (CBOR parser by default)

    Returns:
        Exactly one of SimpleEnvelope, SelectiveDisclosureEnvelope or
        DocumentEnvelope

    Raises:
        UnrecognizedFormat: If the input matches no envelope shape
        MalformedEnvelope: If a token's header or payload is unreadable
    """
    text = raw.strip()
    if not text:
        raise UnrecognizedFormat.empty()

    detected = classify(text)
    if detected is Format.DOCUMENT:
        return decode_document(text, document_parser)
    if detected is Format.SIMPLE:
        return decode_simple(text)
    return decode_selective_disclosure(text)
