"""
Dialogue interpreter - walks a compiled graph for one conversation.

Flow of a conversation:

    IDLE -> SELECTING_STARTER -> PRESENTING(line) -> AWAITING_ADVANCE
         -> BRANCHING -> PRESENTING(next line) -> ... -> IDLE

Lines without visible text skip AWAITING_ADVANCE. All waiting happens
between calls: tick(dt) drives the typewriter and polls asynchronous
event results, confirm() and select_choice() deliver player input.
Nothing here blocks and no runtime error escapes; a broken reference
ends the conversation and is reported on the session.

Usage:
    interpreter = DialogInterpreter(library.graphs, registry, flags.lookup,
                                    presenter=dialog_box, event_bus=bus)
    interpreter.start("guard")

    # every frame
    interpreter.tick(dt)
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from enum import Enum, auto
from typing import Mapping, Optional

from parley.core.config import DialogConfig
from parley.core.events import AudioEvent, DialogEvent, EventBus, UIEvent
from parley.dialog.conditions import Lookup, select
from parley.dialog.errors import (
    DialogueError,
    DocumentNotFoundError,
    MissingLineTextError,
    NoValidEntryError,
    UnknownLineReferenceError,
)
from parley.dialog.models import DialogueGraph, InlineEvent, Line
from parley.dialog.registry import (
    SPEAKER_COMMAND,
    EventRegistry,
    EventResult,
    resolved_value,
    split_command,
)
from parley.dialog.session import ConversationSession, DialogState, Presenter
from parley.dialog.translation import split_segments
from parley.dialog.typewriter import Typewriter

logger = logging.getLogger(__name__)

# Lines entered back to back without waiting on anything
MAX_AUTO_HOPS = 1000


class LineKind(Enum):
    """What a line shows once its substitutions are resolved."""
    TEXT = auto()        # Has visible text
    EVENT_ONLY = auto()  # Only inline events
    EMPTY = auto()       # Nothing at all


class _Substitution:
    """Progress through the %command% segments of a line."""

    def __init__(self, segments: list[tuple[bool, str]]):
        self.segments = segments
        self.index = 0
        self.parts: list[str] = []
        self.pending: Optional[Future] = None


def _empty_lookup(key: str) -> Optional[str]:
    return None


class DialogInterpreter:
    """
    Runs one conversation at a time.

    Starting a conversation while another is active drops the old one.
    """

    def __init__(
        self,
        graphs: Mapping[str, DialogueGraph],
        registry: Optional[EventRegistry] = None,
        lookup: Optional[Lookup] = None,
        presenter: Optional[Presenter] = None,
        event_bus: Optional[EventBus] = None,
        config: Optional[DialogConfig] = None,
    ):
        self.graphs = graphs
        self.registry = registry or EventRegistry()
        self.lookup = lookup or _empty_lookup
        self.presenter = presenter
        self.event_bus = event_bus or EventBus()
        self.config = config or DialogConfig()

        self.session: Optional[ConversationSession] = None
        self.last_error: Optional[DialogueError] = None

        self._typewriter: Optional[Typewriter] = None
        self._substitution: Optional[_Substitution] = None
        self._line_kind = LineKind.EMPTY
        self._skip_requested = False

        # Bumped whenever the current line is left, so callbacks can
        # tell that the line they ran for is gone
        self._generation = 0
        self._next_line_id: Optional[str] = None
        self._stepping = False

    # Queries

    @property
    def state(self) -> DialogState:
        return self.session.state if self.session else DialogState.IDLE

    @property
    def is_active(self) -> bool:
        return self.session is not None and self.session.is_active

    def current_line(self) -> Optional[Line]:
        session = self.session
        if not session or not session.graph:
            return None
        return session.graph.get_line(session.line_id)

    # Conversation flow

    def start(self, conversation_id: str) -> bool:
        """
        Start a conversation at its first satisfied starter.

        Returns:
            True if a line is being presented (or the conversation already
            finished cleanly), False if it could not start
        """
        if self.session is not None:
            logger.debug(f"Dropping conversation '{self.session.conversation_id}'")
            self._leave_line()
            self.session = None

        self.last_error = None
        graph = self.graphs.get(conversation_id)
        session = ConversationSession(
            conversation_id=conversation_id,
            graph=graph,
            language=self.config.active_language,
            state=DialogState.SELECTING_STARTER,
        )
        self.session = session

        if graph is None:
            self._fail(DocumentNotFoundError(f"No dialogue named '{conversation_id}'"))
            return False

        starter_id = select(graph.get_starters(), self.lookup, "")
        if not starter_id:
            self._fail(NoValidEntryError(conversation_id))
            return False

        self.event_bus.publish(
            UIEvent.DIALOG_STARTED,
            conversation_id=conversation_id,
            starter_id=starter_id,
        )

        self._goto(starter_id)
        return session.error is None

    def tick(self, dt: float) -> None:
        """Advance timers and poll asynchronous results."""
        session = self.session
        if session is None or self._observe_invalidation():
            return

        if session.state is DialogState.SUBSTITUTING:
            self._continue_substitution()
        elif session.state is DialogState.PRESENTING:
            self._advance_reveal(dt)

    def confirm(self) -> bool:
        """
        Confirm input: skips the typewriter while presenting, moves on
        while awaiting advance.

        Returns:
            True if the input was used
        """
        if self.session is None or self._observe_invalidation():
            return False

        state = self.session.state
        if state in (DialogState.PRESENTING, DialogState.SUBSTITUTING):
            return self.fast_forward()
        if state is DialogState.AWAITING_ADVANCE:
            self._branch()
            return True
        return False

    def fast_forward(self) -> bool:
        """Reveal the rest of the line, running its remaining events in order."""
        if self.session is None or self._observe_invalidation():
            return False

        state = self.session.state
        if state is DialogState.SUBSTITUTING:
            # Applied as soon as the reveal can begin
            self._skip_requested = True
            return True
        if state is DialogState.PRESENTING:
            self._advance_reveal(0.0, skip=True)
            return True
        return False

    def select_choice(self, index: int) -> bool:
        """
        Resolve a pending choice.

        Returns:
            True if the choice was accepted
        """
        session = self.session
        if session is None or self._observe_invalidation():
            return False

        if session.state is not DialogState.AWAITING_CHOICE:
            logger.warning(f"Choice {index} selected while {session.state.name}")
            return False

        if not 0 <= index < len(session.choices):
            logger.warning(f"Choice index {index} out of range in '{session.line_id}'")
            return False

        choice = session.choices[index]
        self.event_bus.publish(
            DialogEvent.CHOICE_SELECTED,
            conversation_id=session.conversation_id,
            line_id=session.line_id,
            choice_index=index,
            choice_text=choice.text,
        )
        session.choices = []
        self._goto(choice.next)
        return True

    def jump_to(self, line_id: str) -> bool:
        """
        Continue the active conversation at line_id.

        Meant for inline events that take over sequencing, such as the
        events of a halted event-only line.
        """
        if not self.is_active:
            return False
        self._leave_line()
        self._goto(line_id)
        return True

    def end(self) -> None:
        """End the active conversation normally."""
        if self.session is not None:
            self._finish()

    def invalidate(self) -> None:
        """Drop the active conversation without reporting an error."""
        if self.session is not None:
            self.session.invalidate()
            self._observe_invalidation()

    # Line traversal

    def _goto(self, line_id: str) -> None:
        """Enter line_id, following lines that need no waiting."""
        self._next_line_id = line_id
        if self._stepping:
            return

        self._stepping = True
        try:
            hops = 0
            while self._next_line_id is not None:
                target, self._next_line_id = self._next_line_id, None
                hops += 1
                if hops > MAX_AUTO_HOPS:
                    self._fail(DialogueError(f"Lines loop without waiting near '{target}'"))
                    break
                self._enter_line(target)
        finally:
            self._stepping = False

    def _enter_line(self, line_id: str) -> None:
        session = self.session
        if session is None or self._observe_invalidation():
            return

        self._leave_line()
        if not line_id:
            self._finish()
            return

        line = session.graph.get_line(line_id) if session.graph else None
        if line is None:
            self._fail(UnknownLineReferenceError(line_id, session.conversation_id))
            return
        if line.text is None:
            self._fail(MissingLineTextError(line_id, session.conversation_id))
            return

        session.line_id = line_id
        session.full_text = ""
        session.visible_count = 0
        session.choices = []

        segments = split_segments(line.text, self.config.substitution_marker)
        self._substitution = _Substitution(segments)
        session.state = DialogState.SUBSTITUTING
        self._continue_substitution()

    def _leave_line(self) -> None:
        self._generation += 1
        if self._typewriter is not None:
            self._typewriter.stop()
        self._typewriter = None
        self._substitution = None
        self._skip_requested = False

    def _continue_substitution(self) -> None:
        session = self.session
        sub = self._substitution
        if session is None or sub is None:
            return
        generation = self._generation

        while sub.index < len(sub.segments):
            if sub.pending is not None:
                if not sub.pending.done():
                    return
                sub.parts.append(resolved_value(sub.pending) or "")
                sub.pending = None
                sub.index += 1
                continue

            is_command, body = sub.segments[sub.index]
            if not is_command:
                sub.parts.append(body)
                sub.index += 1
                continue

            name, args = split_command(body)
            if name == SPEAKER_COMMAND:
                session.nametag = args[0].strip() if args else ""

            result = self.registry.dispatch(body, session)
            if self._generation != generation or self._observe_invalidation():
                return

            if isinstance(result, Future) and not result.done():
                if name == SPEAKER_COMMAND:
                    # The nametag never waits
                    result = None
                else:
                    sub.pending = result
                    return

            sub.parts.append(resolved_value(result) or "")
            sub.index += 1

        self._begin_reveal(''.join(sub.parts))

    def _begin_reveal(self, text: str) -> None:
        session = self.session
        self._substitution = None

        visible_parts: list[str] = []
        events: list[InlineEvent] = []
        offset = 0
        for is_event, body in split_segments(text, self.config.event_marker):
            if is_event:
                events.append(InlineEvent(body=body, offset=offset))
            else:
                visible_parts.append(body)
                offset += len(body)

        visible = ''.join(visible_parts)
        if visible.strip():
            self._line_kind = LineKind.TEXT
        elif events:
            self._line_kind = LineKind.EVENT_ONLY
        else:
            self._line_kind = LineKind.EMPTY

        session.full_text = visible
        session.visible_count = 0
        session.state = DialogState.PRESENTING

        self.event_bus.publish(
            DialogEvent.LINE_ENTERED,
            conversation_id=session.conversation_id,
            line_id=session.line_id,
            nametag=session.nametag,
        )
        if self._line_kind is LineKind.TEXT and self.config.voice_cues:
            self.event_bus.publish(
                AudioEvent.VOICE_CUE,
                conversation_id=session.conversation_id,
                line_id=session.line_id,
                language=session.language,
                nametag=session.nametag,
            )

        self._typewriter = Typewriter(
            visible,
            events,
            self.config.char_delay,
            self._run_inline_event,
            self.config.punctuation_pauses,
            should_stop=lambda: session.invalidated,
        )
        skip = self._skip_requested
        self._skip_requested = False
        self._advance_reveal(0.0, skip=skip)

    def _run_inline_event(self, event: InlineEvent) -> EventResult:
        session = self.session
        self.event_bus.publish(
            DialogEvent.INLINE_EVENT,
            conversation_id=session.conversation_id,
            line_id=session.line_id,
            command=event.command,
            args=event.args,
            offset=event.offset,
        )
        return self.registry.dispatch(event.body, session)

    def _advance_reveal(self, dt: float, skip: bool = False) -> None:
        session = self.session
        typewriter = self._typewriter
        if session is None or typewriter is None:
            return
        generation = self._generation

        before = typewriter.visible_count
        if skip:
            typewriter.fast_forward()
        typewriter.tick(dt)

        if self._generation != generation or self._observe_invalidation():
            return

        if typewriter.visible_count != before:
            session.visible_count = typewriter.visible_count
            self.event_bus.publish(
                DialogEvent.TEXT_ADVANCED,
                conversation_id=session.conversation_id,
                line_id=session.line_id,
                visible_count=session.visible_count,
            )
            if self.presenter:
                self.presenter.show_line(session, session.visible_count, session.full_text)

        if typewriter.complete:
            self._complete_line()

    def _complete_line(self) -> None:
        session = self.session
        self.event_bus.publish(
            DialogEvent.TEXT_COMPLETED,
            conversation_id=session.conversation_id,
            line_id=session.line_id,
        )
        if self._line_kind is LineKind.TEXT:
            session.state = DialogState.AWAITING_ADVANCE
            return
        self._branch()

    def _branch(self) -> None:
        session = self.session
        line = self.current_line()
        if session is None or line is None:
            return
        session.state = DialogState.BRANCHING

        if line.has_choices:
            session.choices = list(line.choices)
            session.state = DialogState.AWAITING_CHOICE
            if self.presenter:
                self.presenter.request_choice(session, session.choices)
            return

        if line.has_branches:
            next_id = select(line.conditional_next.values(), self.lookup, line.next)
        elif self._line_kind is LineKind.EVENT_ONLY:
            # The line's events decide what happens next (jump_to / end)
            logger.debug(f"Line '{line.id}' halts after its events")
            session.state = DialogState.HALTED
            return
        else:
            next_id = line.next

        self._goto(next_id)

    # Endings

    def _observe_invalidation(self) -> bool:
        """Drop an invalidated session. True if it was dropped."""
        session = self.session
        if session is None or not session.invalidated:
            return False

        logger.debug(f"Conversation '{session.conversation_id}' invalidated")
        self._leave_line()
        self._next_line_id = None
        session.state = DialogState.IDLE
        self.session = None
        self.event_bus.publish(
            UIEvent.DIALOG_ENDED,
            conversation_id=session.conversation_id,
            error=None,
            cancelled=True,
        )
        return True

    def _fail(self, error: DialogueError) -> None:
        logger.error(f"Dialogue error: {error}")
        self.last_error = error
        if self.session is not None:
            self.session.error = error
        self._finish()

    def _finish(self) -> None:
        session = self.session
        if session is None:
            return

        self._leave_line()
        self._next_line_id = None
        session.state = DialogState.IDLE
        self.session = None

        self.event_bus.publish(
            UIEvent.DIALOG_ENDED,
            conversation_id=session.conversation_id,
            error=session.error,
            cancelled=False,
        )
        if self.presenter:
            self.presenter.conversation_ended(session)
