"""
Conversation session - runtime state of the active conversation.
"""

from __future__ import annotations

from enum import Enum, auto
from typing import Any, Optional, Protocol

from pydantic import Field

from parley.core.model import Record
from parley.dialog.models import Choice, DialogueGraph


class DialogState(Enum):
    """State of the dialogue interpreter."""
    IDLE = auto()
    SELECTING_STARTER = auto()
    SUBSTITUTING = auto()       # Waiting on an asynchronous %substitution%
    PRESENTING = auto()         # Typewriter running
    AWAITING_ADVANCE = auto()   # Text complete, waiting for confirm
    AWAITING_CHOICE = auto()    # Waiting for a choice selection
    BRANCHING = auto()
    HALTED = auto()             # Event-only line, its events own what comes next


class ConversationSession(Record):
    """
    Runtime state of one conversation.

    Created by the interpreter on start and dropped when the conversation
    ends. It references the graph but owns none of it.

    Attributes:
        conversation_id: Name of the graph being walked
        graph: The compiled graph
        language: Language the graph was loaded in
        state: Current interpreter state
        line_id: Line being presented
        nametag: Speaker name set by the last %Speaker% substitution
        full_text: Visible text of the current line
        visible_count: Characters of full_text revealed so far
        choices: Choices offered for the current line
        invalidated: Set when the owner tears the conversation down
        error: Runtime error that ended the conversation, if any
    """
    conversation_id: str = ""
    graph: Optional[DialogueGraph] = None
    language: str = ""
    state: DialogState = DialogState.IDLE
    line_id: str = ""
    nametag: str = ""
    full_text: str = ""
    visible_count: int = 0
    choices: list[Choice] = Field(default_factory=list)
    invalidated: bool = False
    error: Optional[Any] = None

    @property
    def is_active(self) -> bool:
        return self.state is not DialogState.IDLE and not self.invalidated

    @property
    def displayed_text(self) -> str:
        return self.full_text[:self.visible_count]

    @property
    def is_text_complete(self) -> bool:
        return self.visible_count >= len(self.full_text)

    def invalidate(self) -> None:
        """Ask the interpreter to drop this conversation at its next step."""
        self.invalidated = True


class Presenter(Protocol):
    """
    Presentation collaborator.

    Owns text rendering, box visibility and input. Confirm and choice
    input go back through DialogInterpreter.confirm() and
    DialogInterpreter.select_choice().
    """

    def show_line(self, session: ConversationSession, visible_count: int, full_text: str) -> None:
        ...

    def request_choice(self, session: ConversationSession, choices: list[Choice]) -> None:
        ...

    def conversation_ended(self, session: ConversationSession) -> None:
        ...
