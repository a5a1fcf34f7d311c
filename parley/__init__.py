"""
Parley

A branching-dialogue engine: compiles conversation markup into graphs,
merges translations without losing inline events, and presents lines
with a typewriter effect.

Quick Start:
    from parley import DialogLibrary, DialogInterpreter, EventRegistry, FlagStore

    library = DialogLibrary("game/data/dialogue")
    library.load()

    flags = FlagStore({"party_size": 3})
    interpreter = DialogInterpreter(library.graphs, EventRegistry(), flags.lookup)
    interpreter.start("guard")

    # every frame
    interpreter.tick(dt)
"""

__version__ = "0.1.0"

from parley.core import DialogConfig, EventBus, Event, UIEvent, DialogEvent, AudioEvent
from parley.dialog import (
    DialogueGraph,
    GraphCompiler,
    compile_file,
    compile_string,
    select,
    merge,
    apply_translation,
    EventRegistry,
    FlagStore,
    ConversationSession,
    DialogState,
    DialogInterpreter,
    DialogLibrary,
)

__all__ = [
    # Config
    "DialogConfig",
    # Events
    "EventBus",
    "Event",
    "UIEvent",
    "DialogEvent",
    "AudioEvent",
    # Dialog
    "DialogueGraph",
    "GraphCompiler",
    "compile_file",
    "compile_string",
    "select",
    "merge",
    "apply_translation",
    "EventRegistry",
    "FlagStore",
    "ConversationSession",
    "DialogState",
    "DialogInterpreter",
    "DialogLibrary",
]
