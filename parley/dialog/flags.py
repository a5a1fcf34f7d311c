"""
Flag store - the default condition lookup.

Game code owns persistence; this keeps the live values conditions are
tested against and renders them the way documents spell them.
"""

from __future__ import annotations

from typing import Any, Optional


class FlagStore:
    """
    In-memory game flags.

    Usage:
        flags = FlagStore({"party_size": 3})
        flags.set_flag("met_guard", True)
        interpreter = DialogInterpreter(graphs, lookup=flags.lookup)
    """

    def __init__(self, flags: Optional[dict[str, Any]] = None):
        self._flags: dict[str, Any] = dict(flags or {})

    def get_flag(self, key: str, default: Any = None) -> Any:
        return self._flags.get(key, default)

    def set_flag(self, key: str, value: Any) -> None:
        self._flags[key] = value

    def clear_flag(self, key: str) -> None:
        self._flags.pop(key, None)

    def lookup(self, key: str) -> Optional[str]:
        """Condition lookup: the flag as document text, or None if unset."""
        if key not in self._flags:
            return None
        value = self._flags[key]
        if value is None:
            return None
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    def to_dict(self) -> dict[str, Any]:
        return self._flags.copy()
