"""Raw-input segment ranges and their decoded-side counterparts.

Segment ids on the raw side:
- header, payload, signature: dot-segments of the issuer token
- disc-<i>: the i-th disclosure tilde-part
- kb-jwt: the holder-binding token, with kb-jwt.header, kb-jwt.payload and
  kb-jwt.signature sub-segments

The decoded side uses the same ids plus the aggregate "disclosures" section.
"""

from enum import Enum

from .envelope import DISCLOSURE_SEPARATOR, SEGMENT_SEPARATOR, find_holder_binding_index
from .models import DocumentEnvelope, Envelope, SelectiveDisclosureEnvelope, Segment, SegmentKind

DISCLOSURES_SECTION = "disclosures"
DISCLOSURE_PREFIX = "disc-"
HOLDER_BINDING_ID = "kb-jwt"

_TOKEN_PARTS = (
    ("header", SegmentKind.HEADER),
    ("payload", SegmentKind.PAYLOAD),
    ("signature", SegmentKind.SIGNATURE),
)


class Side(str, Enum):
    RAW = "raw"
    DECODED = "decoded"


def disclosure_id(index: int) -> str:
    return f"{DISCLOSURE_PREFIX}{index}"


def _token_segments(token: str, start: int, prefix: str = "") -> list[Segment]:
    segments = []
    pos = start
    # header, payload, and everything after the second dot
    for (name, kind), piece in zip(_TOKEN_PARTS, token.split(SEGMENT_SEPARATOR, 2)):
        if piece or kind is not SegmentKind.SIGNATURE:
            segments.append(Segment(f"{prefix}{name}", pos, pos + len(piece), kind))
        pos += len(piece) + 1
    return segments


def build_segments(raw: str, envelope: Envelope) -> list[Segment]:
    """Compute the character ranges of every addressable part of the input.

    Ranges are half-open offsets into raw as given, so surrounding whitespace
    shifts them but is never part of a segment.

    Args:
        raw: The raw input text
        envelope: The envelope decoded from it

    Returns:
        Segments in input order; empty for document envelopes
    """
    if isinstance(envelope, DocumentEnvelope):
        return []

    offset = len(raw) - len(raw.lstrip())
    text = raw.strip()
    if not isinstance(envelope, SelectiveDisclosureEnvelope):
        return _token_segments(text, offset)

    parts = text.split(DISCLOSURE_SEPARATOR)
    kb_index = find_holder_binding_index(parts)
    segments = _token_segments(parts[0], offset)

    pos = offset + len(parts[0]) + 1
    disclosure_index = 0
    for i, part in enumerate(parts[1:], start=1):
        start, pos = pos, pos + len(part) + 1
        if not part:
            continue
        if i == kb_index:
            if envelope.holder_binding_token is not None:
                segments.append(
                    Segment(HOLDER_BINDING_ID, start, start + len(part), SegmentKind.HOLDER_BINDING)
                )
                segments.extend(_token_segments(part, start, prefix=f"{HOLDER_BINDING_ID}."))
            continue
        segments.append(
            Segment(
                disclosure_id(disclosure_index),
                start,
                start + len(part),
                SegmentKind.DISCLOSURE,
                index=disclosure_index,
            )
        )
        disclosure_index += 1

    return segments


class SegmentMap:
    """Correlates raw-side segment ids with decoded-side section ids."""

    def __init__(self, segments: list[Segment]):
        self.segments = {s.id: s for s in segments}
        self.disclosure_ids = frozenset(
            s.id for s in segments if s.kind is SegmentKind.DISCLOSURE
        )

    def decoded_sections(self) -> list[str]:
        """Section ids present on the decoded side."""
        sections = list(self.segments)
        if self.disclosure_ids:
            sections.append(DISCLOSURES_SECTION)
        return sections

    def counterparts(self, side: Side, element_id: str) -> frozenset[str]:
        """Ids on the other side that correspond to element_id.

        A single disclosure maps to itself only; the aggregate disclosures
        section maps to every disclosure. Unknown ids map to nothing.
        """
        if side is Side.DECODED and element_id == DISCLOSURES_SECTION:
            return self.disclosure_ids
        if element_id in self.segments:
            return frozenset({element_id})
        return frozenset()
