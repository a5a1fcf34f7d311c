"""
Dialog module - branching conversations.

Provides:
- Markup compilation to dialogue graphs
- Condition evaluation for starters and branches
- Translation merging that keeps inline events
- Typewriter presentation with timed inline events
- Choice handling and conditional branching
"""

from parley.dialog.models import (
    Choice,
    Condition,
    ConditionGroup,
    ConditionalBranch,
    DialogueGraph,
    InlineEvent,
    Line,
    Operator,
    Position,
    Quantifier,
    Starter,
)
from parley.dialog.errors import (
    DialogueError,
    DocumentNotFoundError,
    MalformedDocumentError,
    MissingLineTextError,
    NoValidEntryError,
    UnknownLineReferenceError,
)
from parley.dialog.compiler import GraphCompiler, compile_dialog_file, compile_file, compile_string
from parley.dialog.conditions import check, passes, select
from parley.dialog.translation import apply_translation, classify_events, merge
from parley.dialog.registry import EventRegistry
from parley.dialog.flags import FlagStore
from parley.dialog.session import ConversationSession, DialogState, Presenter
from parley.dialog.typewriter import Typewriter
from parley.dialog.interpreter import DialogInterpreter
from parley.dialog.loader import DialogLibrary

__all__ = [
    # Graph
    "Choice",
    "Condition",
    "ConditionGroup",
    "ConditionalBranch",
    "DialogueGraph",
    "InlineEvent",
    "Line",
    "Operator",
    "Position",
    "Quantifier",
    "Starter",
    # Errors
    "DialogueError",
    "DocumentNotFoundError",
    "MalformedDocumentError",
    "MissingLineTextError",
    "NoValidEntryError",
    "UnknownLineReferenceError",
    # Compilation
    "GraphCompiler",
    "compile_dialog_file",
    "compile_file",
    "compile_string",
    # Conditions
    "check",
    "passes",
    "select",
    # Translation
    "apply_translation",
    "classify_events",
    "merge",
    # Runtime
    "EventRegistry",
    "FlagStore",
    "ConversationSession",
    "DialogState",
    "Presenter",
    "Typewriter",
    "DialogInterpreter",
    "DialogLibrary",
]
