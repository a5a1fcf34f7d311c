"""
Typewriter - paced character reveal with timed inline events.

Driven entirely by tick(dt), so a game loop, a timer callback or a test
stepping fake time can all run it. Per character:

1. run the inline events scheduled at the current visible offset
2. reveal one character
3. wait char_delay, plus char_delay * pause multiplier for punctuation

An event whose handler returns an unfinished Future suspends the reveal
until the Future is done. should_stop is checked after every event and
before every character; once it returns True the reveal goes no further.
"""

from __future__ import annotations

import logging
from collections import deque
from concurrent.futures import Future
from typing import Callable, Optional

from parley.core.config import DEFAULT_PUNCTUATION_PAUSES
from parley.dialog.models import InlineEvent
from parley.dialog.registry import EventResult, resolved_value

logger = logging.getLogger(__name__)

ELLIPSIS_KEY = "..."


def pause_multiplier(text: str, index: int, pauses: dict[str, float]) -> float:
    """
    Extra pause after text[index], as a multiple of the base delay.

    Only the last dot of a run of dots pauses, with the ellipsis weight.
    """
    char = text[index]
    if char == '.':
        next_is_dot = index + 1 < len(text) and text[index + 1] == '.'
        prev_is_dot = index > 0 and text[index - 1] == '.'
        if next_is_dot:
            return 0.0
        if prev_is_dot:
            return pauses.get(ELLIPSIS_KEY, 0.0)
        return pauses.get('.', 0.0)
    if char == '…':
        return pauses.get(ELLIPSIS_KEY, 0.0)
    return pauses.get(char, 0.0)


class Typewriter:
    """
    Reveal state for one line of visible text.

    Attributes:
        text: Visible text (inline events already removed)
        visible_count: Characters revealed so far
        complete: True once every character and event has been handled
    """

    def __init__(
        self,
        text: str,
        events: list[InlineEvent],
        char_delay: float,
        run_event: Callable[[InlineEvent], EventResult],
        pauses: Optional[dict[str, float]] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ):
        self.text = text
        self.visible_count = 0
        self.complete = False

        # sorted() is stable, so same-offset events keep source order
        self._events: deque[InlineEvent] = deque(sorted(events, key=lambda e: e.offset))
        self._char_delay = char_delay
        self._run_event = run_event
        self._pauses = pauses if pauses is not None else DEFAULT_PUNCTUATION_PAUSES

        self._wait = 0.0
        self._pending: Optional[Future] = None
        self._skipping = False
        self._stopped = False
        self._should_stop = should_stop

    @property
    def is_waiting_on_event(self) -> bool:
        return self._pending is not None and not self._pending.done()

    @property
    def pending_events(self) -> int:
        return len(self._events)

    def stop(self) -> None:
        """Abandon the reveal; no further events run."""
        self._stopped = True
        self.complete = True

    def fast_forward(self) -> None:
        """Reveal everything now. Remaining events still run, in order."""
        if self.complete:
            return
        self._skipping = True
        self.visible_count = len(self.text)

    def tick(self, dt: float) -> int:
        """
        Advance by dt seconds.

        Returns:
            Number of characters revealed during this call
        """
        if self.complete:
            return 0

        if self._pending is None:
            self._wait -= dt

        revealed = 0
        while not self.complete:
            if self._aborted():
                break

            if self._pending is not None:
                if not self._pending.done():
                    break
                resolved_value(self._pending)
                self._pending = None

            if self._wait > 0 and not self._skipping:
                break

            if self._run_due_events():
                break

            if self.visible_count >= len(self.text):
                self.complete = True
                break

            self.visible_count += 1
            revealed += 1
            multiplier = pause_multiplier(self.text, self.visible_count - 1, self._pauses)
            self._wait += self._char_delay * (1.0 + multiplier)

        return revealed

    def _run_due_events(self) -> bool:
        """Run events at or before the current offset. True if suspended."""
        while self._events and self._events[0].offset <= self.visible_count:
            event = self._events.popleft()
            result = self._run_event(event)
            if self._aborted():
                return True

            if isinstance(result, Future):
                if not result.done():
                    self._pending = result
                    return True
                resolved_value(result)
        return False

    def _aborted(self) -> bool:
        return self._stopped or (self._should_stop is not None and self._should_stop())
