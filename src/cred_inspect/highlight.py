"""Hover-driven highlight synchronization between the raw and decoded views.

Each hover records the ids it added; leaving the same element removes
exactly that contribution, so overlapping hovers never clear each other.
"""

from dataclasses import dataclass, replace
from typing import Sequence

from .models import Segment
from .segments import SegmentMap, Side

_NOTHING: frozenset[str] = frozenset()


@dataclass(frozen=True)
class HighlightState:
    """Active highlights, keyed by the (side, id) hover that produced them."""

    segment_map: SegmentMap
    contributions: tuple[tuple[Side, str, frozenset[str]], ...] = ()

    @classmethod
    def for_segments(cls, segments: Sequence[Segment]) -> "HighlightState":
        return cls(segment_map=SegmentMap(list(segments)))

    @classmethod
    def empty(cls) -> "HighlightState":
        return cls.for_segments([])

    def highlighted(self, side: Side) -> frozenset[str]:
        """Ids currently highlighted on the given side."""
        ids: set[str] = set()
        for hovered_side, _, added in self.contributions:
            if hovered_side is not side:
                ids.update(added)
        return frozenset(ids)

    def _find(self, side: Side, element_id: str) -> int:
        for i, (hovered_side, hovered_id, _) in enumerate(self.contributions):
            if hovered_side is side and hovered_id == element_id:
                return i
        return -1


def on_hover(
    state: HighlightState, side: Side, element_id: str
) -> tuple[HighlightState, frozenset[str]]:
    """Pointer entered an element on one side.

    Args:
        state: Current highlight state
        side: Side the hovered element lives on
        element_id: Segment or section id

    Returns:
        Tuple of (new state, ids to highlight on the other side)
    """
    existing = state._find(side, element_id)
    if existing >= 0:
        return state, state.contributions[existing][2]

    ids = state.segment_map.counterparts(side, element_id)
    if not ids:
        return state, _NOTHING
    return replace(state, contributions=state.contributions + ((side, element_id, ids),)), ids


def on_leave(
    state: HighlightState, side: Side, element_id: str
) -> tuple[HighlightState, frozenset[str]]:
    """Pointer left an element; drop only what its hover added."""
    existing = state._find(side, element_id)
    if existing < 0:
        return state, _NOTHING
    contributions = state.contributions[:existing] + state.contributions[existing + 1:]
    return replace(state, contributions=contributions), _NOTHING
