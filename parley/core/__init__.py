"""
Core module.

Exports:
- Record: Pydantic base for data-only dialogue records
- EventBus, Event: Event system
- UIEvent, DialogEvent, AudioEvent: Event types
- DialogConfig: Engine configuration
"""

from parley.core.model import Record
from parley.core.events import EventBus, Event, UIEvent, DialogEvent, AudioEvent
from parley.core.config import DialogConfig, CONFIG_SCHEMA, DEFAULT_PUNCTUATION_PAUSES

__all__ = [
    "Record",
    # Events
    "EventBus",
    "Event",
    "UIEvent",
    "DialogEvent",
    "AudioEvent",
    # Config
    "DialogConfig",
    "CONFIG_SCHEMA",
    "DEFAULT_PUNCTUATION_PAUSES",
]
