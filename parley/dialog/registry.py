"""
Inline event registry.

Inline events are written in line text as `command|arg|arg`, and
substitutions as %command|arg%. Each command name maps to a handler
registered at startup:

    registry = EventRegistry()

    @registry.handler("give_item")
    def give_item(args, session):
        inventory.add(args[0])

A handler returns a string to splice into the text, None, or a
concurrent.futures.Future when the result arrives later. The
interpreter waits on futures without blocking.

The built-in Speaker handler (%Speaker|Name%) only sets the session
nametag and splices nothing. Hosts that draw the name inside the text
box register their own Speaker handler returning the tag to splice,
such as "[b]Name:[/b] ". The nametag is set either way.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

if TYPE_CHECKING:
    from parley.dialog.session import ConversationSession

logger = logging.getLogger(__name__)

EventResult = Union[str, None, Future]
EventHandler = Callable[[list[str], "ConversationSession"], EventResult]

SPEAKER_COMMAND = "Speaker"


def split_command(body: str) -> tuple[str, list[str]]:
    """Split `name|a|b` into ("name", ["a", "b"])."""
    name, *args = body.split('|')
    return name.strip(), args


def default_speaker(args: list[str], session: ConversationSession) -> EventResult:
    """Splices nothing; replace it to put a name tag into the text."""
    return ""


class EventRegistry:
    """Maps inline event command names to handlers."""

    def __init__(self):
        self._handlers: dict[str, EventHandler] = {SPEAKER_COMMAND: default_speaker}

    def register(self, name: str, handler: EventHandler) -> None:
        """Register (or replace) the handler for a command name."""
        self._handlers[name] = handler

    def handler(self, name: str) -> Callable[[EventHandler], EventHandler]:
        """Decorator form of register()."""
        def decorator(func: EventHandler) -> EventHandler:
            self.register(name, func)
            return func
        return decorator

    def unregister(self, name: str) -> None:
        self._handlers.pop(name, None)

    def has(self, name: str) -> bool:
        return name in self._handlers

    def dispatch(self, body: str, session: ConversationSession) -> EventResult:
        """
        Run the handler for an event body.

        Unknown commands and failing handlers are logged and give None.
        """
        name, args = split_command(body)
        handler = self._handlers.get(name)
        if handler is None:
            logger.warning(f"Unknown dialogue command '{name}' in '{body}'")
            return None

        try:
            return handler(args, session)
        except Exception:
            logger.exception(f"Dialogue command '{name}' failed")
            return None


def resolved_value(result: Any) -> Optional[str]:
    """The text a finished handler result stands for."""
    if isinstance(result, Future):
        if result.cancelled():
            return None
        error = result.exception()
        if error is not None:
            logger.error(f"Asynchronous dialogue command failed: {error}")
            return None
        result = result.result()
    if result is None:
        return None
    return str(result)
