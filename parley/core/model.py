"""
Base class for data-only dialogue records.

Records are pure data containers. Compilation, evaluation and traversal
live in the dialog modules, never on the records themselves. Keeping
them as Pydantic models gives:
- Validation of compiled documents
- JSON export of compiled graphs
- Cheap deep copies for translation passes

Usage:
    class Choice(Record):
        text: str = ""
        next: str = ""
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class Record(BaseModel):
    """
    Base class for all dialogue records.

    IMPORTANT: Records carry no behaviour beyond read-only helpers.
    """

    model_config = ConfigDict(
        # Sessions hold graph references and futures
        arbitrary_types_allowed=True,
        # Translation patches assign text in place
        validate_assignment=True,
        extra='forbid',
    )

    def clone(self) -> Record:
        """Create a deep copy of this record."""
        return self.model_copy(deep=True)

    def to_dict(self) -> dict[str, Any]:
        """Plain-dict form used for JSON export."""
        return self.model_dump(mode='json')
