"""
Dialogue engine configuration.

Settings can be built in code or read from a JSON file. Files are
validated against CONFIG_SCHEMA before use.

Example config file:
    {
        "text_speed": 0.04,
        "language": "fr",
        "punctuation_pauses": {".": 10}
    }
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

import jsonschema

logger = logging.getLogger(__name__)


# Extra pause after a revealed character, as a multiple of the base delay.
# "..." is the multiplier for the last dot of an ellipsis run.
DEFAULT_PUNCTUATION_PAUSES: dict[str, float] = {
    ".": 8.0,
    "...": 3.0,
    "!": 8.0,
    "?": 8.0,
    ",": 3.0,
    ":": 4.0,
    ";": 4.0,
    "—": 6.0,
    "-": 1.5,
}


CONFIG_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "text_speed": {"type": "number", "exclusiveMinimum": 0},
        "speed_mult": {"type": "number", "exclusiveMinimum": 0},
        "event_marker": {"type": "string", "minLength": 1, "maxLength": 1},
        "substitution_marker": {"type": "string", "minLength": 1, "maxLength": 1},
        "baseline_language": {"type": "string", "minLength": 1},
        "language": {"type": ["string", "null"]},
        "document_suffix": {"type": "string", "pattern": "^\\."},
        "voice_cues": {"type": "boolean"},
        "punctuation_pauses": {
            "type": "object",
            "additionalProperties": {"type": "number", "minimum": 0},
        },
    },
}


class DialogConfig:
    """Configuration for compiling, loading and presenting dialogue."""

    def __init__(
        self,
        text_speed: float = 0.03,
        speed_mult: float = 1.0,
        event_marker: str = "`",
        substitution_marker: str = "%",
        baseline_language: str = "en",
        language: Optional[str] = None,
        document_suffix: str = ".xml",
        voice_cues: bool = True,
        punctuation_pauses: Optional[dict[str, float]] = None,
    ):
        self.text_speed = text_speed
        self.speed_mult = speed_mult
        self.event_marker = event_marker
        self.substitution_marker = substitution_marker
        self.baseline_language = baseline_language
        self.language = language
        self.document_suffix = document_suffix
        self.voice_cues = voice_cues

        self.punctuation_pauses = dict(DEFAULT_PUNCTUATION_PAUSES)
        if punctuation_pauses:
            self.punctuation_pauses.update(punctuation_pauses)

    @property
    def char_delay(self) -> float:
        """Seconds between two revealed characters."""
        return self.text_speed / self.speed_mult

    @property
    def active_language(self) -> str:
        return self.language or self.baseline_language

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DialogConfig:
        """
        Build a config from a parsed JSON object.

        Raises:
            jsonschema.ValidationError: if data does not match CONFIG_SCHEMA
        """
        jsonschema.validate(instance=data, schema=CONFIG_SCHEMA)
        return cls(**data)

    @classmethod
    def from_file(cls, path: str | Path) -> DialogConfig:
        """Load a config file, falling back to defaults if it is unusable."""
        path = Path(path)
        if not path.exists():
            logger.warning(f"Config file not found: {path}, using defaults")
            return cls()

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return cls.from_dict(data)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse config {path}: {e}")
        except jsonschema.ValidationError as e:
            logger.error(f"Validation error in {path}: {e.message}")
        return cls()

    def to_dict(self) -> dict[str, Any]:
        return {
            "text_speed": self.text_speed,
            "speed_mult": self.speed_mult,
            "event_marker": self.event_marker,
            "substitution_marker": self.substitution_marker,
            "baseline_language": self.baseline_language,
            "language": self.language,
            "document_suffix": self.document_suffix,
            "voice_cues": self.voice_cues,
            "punctuation_pauses": dict(self.punctuation_pauses),
        }
