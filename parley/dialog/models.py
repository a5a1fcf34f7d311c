"""
Dialogue graph records - starters, lines, choices, conditions.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import Field

from parley.core.model import Record


class Quantifier(str, Enum):
    """How many conditions of a group must hold."""
    ALL = "all"
    ANY = "any"


class Operator(str, Enum):
    """Comparison applied between a looked-up value and a condition value."""
    EQ = "eq"
    GT = "gt"
    LT = "lt"
    GTE = "gte"
    LTE = "lte"


class Position(str, Enum):
    """Where an inline event sits relative to the visible text of a line."""
    BEFORE = "before"
    MID = "mid"
    AFTER = "after"


class Condition(Record):
    """A single key/operator/value test."""
    key: str = ""
    operator: Operator = Operator.EQ
    value: str = ""


class ConditionGroup(Record):
    """
    An id gated by a list of conditions.

    Attributes:
        id: Starter id or branch target line id
        quantifier: ALL needs every condition, ANY needs one
        conditions: Evaluated in order
    """
    id: str = ""
    quantifier: Quantifier = Quantifier.ANY
    conditions: list[Condition] = Field(default_factory=list)


class Starter(ConditionGroup):
    """Conditionally-gated entry point. Its id is also the first line id."""


class ConditionalBranch(ConditionGroup):
    """Conditional successor of a line. Its id is the target line id."""


class Choice(Record):
    """A player choice. Addressed by its index in Line.choices."""
    text: str = ""
    next: str = ""


class Line(Record):
    """
    A single node of the dialogue graph.

    Attributes:
        id: Line id
        text: Raw text with inline events; None if the document gave none
        next: Default successor, empty to end the conversation
        choices: Player choices, in document order
        conditional_next: Branches keyed by branch id, in document order
    """
    id: str = ""
    text: Optional[str] = None
    next: str = ""
    choices: list[Choice] = Field(default_factory=list)
    conditional_next: dict[str, ConditionalBranch] = Field(default_factory=dict)

    @property
    def has_choices(self) -> bool:
        return len(self.choices) > 0

    @property
    def has_branches(self) -> bool:
        return len(self.conditional_next) > 0


class InlineEvent(Record):
    """
    A marker-delimited command found in a line's text.

    `position` is filled in when classifying baseline text for merging,
    `offset` when scheduling the event for presentation.
    """
    body: str
    position: Optional[Position] = None
    offset: int = 0

    @property
    def command(self) -> str:
        return self.body.split('|', 1)[0].strip()

    @property
    def args(self) -> list[str]:
        return self.body.split('|')[1:]


class DialogueGraph(Record):
    """All starters and lines compiled from one document."""
    name: str = ""
    starters: dict[str, Starter] = Field(default_factory=dict)
    lines: dict[str, Line] = Field(default_factory=dict)

    def get_line(self, line_id: str) -> Optional[Line]:
        return self.lines.get(line_id)

    def get_starters(self) -> list[Starter]:
        """Starters in document order."""
        return list(self.starters.values())

    def to_json(self) -> dict[str, Any]:
        """Convert the graph to its JSON form."""
        return self.to_dict()

    def save_json(self, path: str | Path) -> None:
        """Save the graph as JSON."""
        path = Path(path)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.to_json(), f, indent=2, ensure_ascii=False)

    @classmethod
    def load_json(cls, path: str | Path) -> DialogueGraph:
        """Load a graph previously written by save_json."""
        path = Path(path)
        with open(path, 'r', encoding='utf-8') as f:
            return cls.model_validate(json.load(f))
