"""
Dialogue error taxonomy.

Load-time errors are raised by the compiler and caught per document by
the library loader. Runtime errors are never raised out of the
interpreter: they end the active conversation and are reported on the
session.
"""

from __future__ import annotations


class DialogueError(Exception):
    """Base class for every dialogue error."""


class DocumentNotFoundError(DialogueError, FileNotFoundError):
    """A dialogue file or language directory is missing."""


class MalformedDocumentError(DialogueError):
    """The markup stream could not be opened or tokenized."""


class UnknownLineReferenceError(DialogueError):
    """A next, choice or branch target names a line absent from the graph."""

    def __init__(self, line_id: str, conversation_id: str = ""):
        self.line_id = line_id
        self.conversation_id = conversation_id
        super().__init__(f"Unknown line '{line_id}' in '{conversation_id}'")


class MissingLineTextError(DialogueError):
    """A referenced line exists but the document gave it no text."""

    def __init__(self, line_id: str, conversation_id: str = ""):
        self.line_id = line_id
        self.conversation_id = conversation_id
        super().__init__(f"Line '{line_id}' in '{conversation_id}' has no text")


class NoValidEntryError(DialogueError):
    """No starter of the conversation is satisfied (or it has none)."""

    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"No valid entry for '{conversation_id}'")
