"""
Typed event bus for decoupled communication.

Event types are Enums so subscribers never match on magic strings.
The dialogue interpreter publishes here; audio, UI and game code
subscribe without the interpreter knowing about them.

Usage:
    bus = EventBus()
    bus.subscribe(UIEvent.DIALOG_ENDED, on_dialog_ended)
    bus.publish(UIEvent.DIALOG_ENDED, conversation_id="intro")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable

logger = logging.getLogger(__name__)


class UIEvent(Enum):
    """Conversation lifecycle events for the presentation layer."""
    DIALOG_STARTED = auto()
    DIALOG_ENDED = auto()


class DialogEvent(Enum):
    """Fine-grained dialogue progress events."""
    LINE_ENTERED = auto()      # A line started presenting
    TEXT_ADVANCED = auto()     # One or more characters were revealed
    TEXT_COMPLETED = auto()    # All text of the line is visible
    CHOICE_SELECTED = auto()   # Player picked a choice
    INLINE_EVENT = auto()      # An inline event ran


class AudioEvent(Enum):
    """Audio cues requested by the dialogue layer."""
    VOICE_CUE = auto()


@dataclass
class Event:
    """
    Event data container.

    Attributes:
        type: The event type (Enum member)
        data: Event-specific payload
        consumed: Set by a handler to stop propagation
    """
    type: Enum
    data: dict[str, Any] = field(default_factory=dict)
    consumed: bool = False

    def consume(self) -> None:
        """Stop delivery to lower-priority handlers."""
        self.consumed = True

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]


EventHandler = Callable[[Event], None]


@dataclass
class _Subscription:
    handler: EventHandler
    priority: int
    one_shot: bool


class EventBus:
    """
    Publish/subscribe hub.

    Features:
    - Priority ordering (higher first, ties in subscription order)
    - One-shot handlers
    - Event consumption
    - Re-entrant publishing (events raised inside a handler are queued)
    """

    def __init__(self):
        self._subscriptions: dict[Enum, list[_Subscription]] = {}
        self._queue: list[Event] = []
        self._dispatching = False

    def subscribe(
        self,
        event_type: Enum,
        handler: EventHandler,
        priority: int = 0,
        one_shot: bool = False,
    ) -> None:
        """
        Subscribe to an event type.

        Args:
            event_type: The event type to listen for
            handler: Callback function(event: Event)
            priority: Higher priority handlers are called first
            one_shot: Remove the handler after its first call
        """
        subs = self._subscriptions.setdefault(event_type, [])
        entry = _Subscription(handler, priority, one_shot)

        index = len(subs)
        for i, existing in enumerate(subs):
            if priority > existing.priority:
                index = i
                break
        subs.insert(index, entry)

    def unsubscribe(self, event_type: Enum, handler: EventHandler) -> None:
        """Remove every subscription of handler for event_type."""
        subs = self._subscriptions.get(event_type)
        if not subs:
            return
        self._subscriptions[event_type] = [s for s in subs if s.handler != handler]

    def publish(self, event_type: Enum, **data: Any) -> Event:
        """
        Publish an event.

        Returns:
            The Event object (check .consumed to see if it was handled)
        """
        event = Event(type=event_type, data=data)
        if self._dispatching:
            self._queue.append(event)
        else:
            self._dispatch(event)
        return event

    def clear(self, event_type: Enum | None = None) -> None:
        """Drop handlers for one event type, or all of them."""
        if event_type is None:
            self._subscriptions.clear()
        else:
            self._subscriptions.pop(event_type, None)

    def _dispatch(self, event: Event) -> None:
        self._dispatching = True
        try:
            self._deliver(event)
            while self._queue:
                self._deliver(self._queue.pop(0))
        finally:
            self._dispatching = False

    def _deliver(self, event: Event) -> None:
        subs = self._subscriptions.get(event.type)
        if not subs:
            return

        spent: list[_Subscription] = []
        for sub in list(subs):
            try:
                sub.handler(event)
            except Exception:
                logger.exception("Error in event handler for %s", event.type)

            if sub.one_shot:
                spent.append(sub)
            if event.consumed:
                break

        for sub in spent:
            if sub in subs:
                subs.remove(sub)
