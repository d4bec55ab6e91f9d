"""Inspector session state and its asyncio driver.

All state lives in one frozen SessionState. Each transition function takes
a state and returns the next one; InspectorSession only schedules them on
the event loop. Reset rules:
- a new decode cycle bumps the generation, unpins and clears highlights
- clearing the input does the same and drops the live result
- a result or error is published only for the current generation
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Awaitable, Callable, Optional

from . import config
from .exceptions import DecodeError
from .highlight import HighlightState, on_hover, on_leave
from .inspector import inspect_credential
from .models import DecodeResult
from .segments import Side

logger = logging.getLogger(__name__)

Pipeline = Callable[[str, int], Awaitable[DecodeResult]]


class PinState(str, Enum):
    UNPINNED = "unpinned"
    PINNED = "pinned"


@dataclass(frozen=True)
class SessionState:
    generation: int = 0
    input: str = ""
    result: Optional[DecodeResult] = None
    error: Optional[str] = None
    pin: PinState = PinState.UNPINNED
    pointer_over: bool = False
    highlights: HighlightState = field(default_factory=HighlightState.empty)


def begin_cycle(state: SessionState, text: str) -> SessionState:
    """Start a decode cycle for text; outstanding cycles become stale."""
    return replace(
        state,
        generation=state.generation + 1,
        input=text,
        pin=PinState.UNPINNED,
        highlights=HighlightState.empty(),
    )


def publish_result(state: SessionState, generation: int, result: DecodeResult) -> SessionState:
    """Make result live, unless a newer cycle has started since."""
    if generation != state.generation:
        logger.debug("discarding stale result (generation %d, current %d)", generation, state.generation)
        return state
    return replace(
        state,
        result=result,
        error=None,
        highlights=HighlightState.for_segments(result.segments),
    )


def publish_error(state: SessionState, generation: int, message: str) -> SessionState:
    """Record a decode failure, unless a newer cycle has started since."""
    if generation != state.generation:
        logger.debug("discarding stale error (generation %d, current %d)", generation, state.generation)
        return state
    return replace(state, result=None, error=message, highlights=HighlightState.empty())


def clear(state: SessionState) -> SessionState:
    return replace(
        state,
        generation=state.generation + 1,
        input="",
        result=None,
        error=None,
        pin=PinState.UNPINNED,
        highlights=HighlightState.empty(),
    )


def toggle_pin(state: SessionState) -> SessionState:
    """Click on the validity indicator."""
    pin = PinState.UNPINNED if state.pin is PinState.PINNED else PinState.PINNED
    return replace(state, pin=pin)


def pointer_enter(state: SessionState) -> SessionState:
    return replace(state, pointer_over=True)


def pointer_leave(state: SessionState) -> SessionState:
    return replace(state, pointer_over=False)


def detail_visible(state: SessionState) -> bool:
    """Whether the checklist detail is shown."""
    if state.result is None:
        return False
    return state.pin is PinState.PINNED or state.pointer_over


def hover(state: SessionState, side: Side, element_id: str) -> tuple[SessionState, frozenset[str]]:
    highlights, ids = on_hover(state.highlights, side, element_id)
    return replace(state, highlights=highlights), ids


def leave(state: SessionState, side: Side, element_id: str) -> tuple[SessionState, frozenset[str]]:
    highlights, ids = on_leave(state.highlights, side, element_id)
    return replace(state, highlights=highlights), ids


class InspectorSession:
    """Debounces input events and runs decode cycles on the event loop.

    Must be used from within a running asyncio loop.
    """

    def __init__(
        self,
        pipeline: Optional[Pipeline] = None,
        verify_key: Optional[str] = None,
        debounce: float = config.DEBOUNCE_SECONDS,
        paste_delay: float = config.PASTE_DELAY_SECONDS,
        on_change: Optional[Callable[[SessionState], None]] = None,
    ):
        """Initialize the session.

        Args:
            pipeline: Async decode function (text, generation) -> DecodeResult;
                defaults to inspect_credential with verify_key
            verify_key: Verification key used by the default pipeline
            debounce: Quiet period after an edit, in seconds
            paste_delay: Delay after a paste, in seconds
            on_change: Called with every new state
        """
        self.state = SessionState()
        self.verify_key = verify_key
        self.debounce = debounce
        self.paste_delay = paste_delay
        self._pipeline = pipeline or self._default_pipeline
        self._on_change = on_change
        self._pending: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task] = set()

    async def _default_pipeline(self, text: str, generation: int) -> DecodeResult:
        return inspect_credential(text, verify_key=self.verify_key, generation=generation)

    def _set(self, state: SessionState) -> None:
        if state is self.state:
            return
        self.state = state
        if self._on_change is not None:
            self._on_change(state)

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _schedule(self, text: str, delay: float) -> None:
        self._cancel_pending()
        if not text.strip():
            self._set(clear(self.state))
            return
        loop = asyncio.get_running_loop()
        self._pending = loop.call_later(delay, self._start_cycle, text)

    def _start_cycle(self, text: str) -> None:
        self._pending = None
        self._set(begin_cycle(self.state, text))
        task = asyncio.ensure_future(self._run(text, self.state.generation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, text: str, generation: int) -> None:
        try:
            result = await self._pipeline(text, generation)
        except DecodeError as e:
            logger.info("decode failed: %s", e.message, extra={"generation": generation})
            self._set(publish_error(self.state, generation, e.message))
            return
        except Exception as e:  # pipeline collaborator boundary
            logger.exception("decode pipeline raised", extra={"generation": generation})
            self._set(publish_error(self.state, generation, str(e)))
            return
        self._set(publish_result(self.state, generation, result))

    def on_edit(self, text: str) -> None:
        """Input changed by typing; decode after the debounce period."""
        self._schedule(text, self.debounce)

    def on_paste(self, text: str) -> None:
        """Input changed by a paste; decode almost immediately."""
        self._schedule(text, self.paste_delay)

    def on_clear(self) -> None:
        self._cancel_pending()
        self._set(clear(self.state))

    async def decode_now(self, text: str) -> SessionState:
        """Run a decode cycle immediately and wait for it."""
        self._cancel_pending()
        if not text.strip():
            self._set(clear(self.state))
            return self.state
        self._set(begin_cycle(self.state, text))
        await self._run(text, self.state.generation)
        return self.state

    async def wait_idle(self) -> SessionState:
        """Wait until no decode is scheduled or in flight."""
        while self._pending is not None or self._tasks:
            if self._tasks:
                await asyncio.gather(*self._tasks)
            else:
                await asyncio.sleep(self.paste_delay or 0.001)
        return self.state

    def toggle_pin(self) -> None:
        self._set(toggle_pin(self.state))

    def pointer_enter(self) -> None:
        self._set(pointer_enter(self.state))

    def pointer_leave(self) -> None:
        self._set(pointer_leave(self.state))

    def hover(self, side: Side, element_id: str) -> frozenset[str]:
        state, ids = hover(self.state, side, element_id)
        self._set(state)
        return ids

    def leave(self, side: Side, element_id: str) -> None:
        state, _ = leave(self.state, side, element_id)
        self._set(state)

    @property
    def detail_visible(self) -> bool:
        return detail_visible(self.state)
