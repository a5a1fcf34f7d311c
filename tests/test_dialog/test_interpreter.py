import pytest
from concurrent.futures import Future

from parley.core.events import AudioEvent, DialogEvent, UIEvent
from parley.dialog.compiler import compile_string
from parley.dialog.errors import (
    DocumentNotFoundError,
    MissingLineTextError,
    NoValidEntryError,
    UnknownLineReferenceError,
)
from parley.dialog.session import DialogState


def finish_reveal(interpreter):
    interpreter.tick(100.0)


def types_of(received):
    return [event.type for event in received]


# Starting

def test_start_selects_first_satisfied_starter(make_interpreter, guard_graph):
    interpreter = make_interpreter(guard=guard_graph)

    assert interpreter.start("guard")
    assert interpreter.session.line_id == "greet"
    assert interpreter.session.nametag == "Guard"
    assert interpreter.session.full_text == "Halt!"
    assert interpreter.state is DialogState.PRESENTING


def test_start_uses_conditional_starter(make_interpreter, guard_graph, flags):
    flags.set_flag("met_guard", True)
    flags.set_flag("gold", 25)
    interpreter = make_interpreter(guard=guard_graph)

    interpreter.start("guard")
    assert interpreter.session.line_id == "greet_again"


def test_missing_conversation(make_interpreter, presenter):
    interpreter = make_interpreter()

    assert not interpreter.start("nobody")
    assert isinstance(interpreter.last_error, DocumentNotFoundError)
    assert interpreter.state is DialogState.IDLE
    presenter.conversation_ended.assert_called_once()


def test_no_valid_entry(make_interpreter, received):
    graph = compile_string("""
        <d>
            <starter id="a"><condition key="never" value="true"/></starter>
            <line id="a">Hi</line>
        </d>
    """, name="locked")
    interpreter = make_interpreter(locked=graph)

    assert not interpreter.start("locked")
    assert isinstance(interpreter.last_error, NoValidEntryError)
    assert types_of(received) == [UIEvent.DIALOG_ENDED]
    assert received[0]["error"] is interpreter.last_error


def test_last_start_wins(make_interpreter, guard_graph):
    other = compile_string('<d><starter id="x"/><line id="x">Other.</line></d>', name="other")
    interpreter = make_interpreter(guard=guard_graph, other=other)

    interpreter.start("guard")
    interpreter.start("other")

    assert interpreter.session.conversation_id == "other"
    assert interpreter.session.line_id == "x"
    finish_reveal(interpreter)
    assert interpreter.session.full_text == "Other."


# Presenting

def test_visible_line_waits_for_confirm(make_interpreter, guard_graph, presenter):
    interpreter = make_interpreter(guard=guard_graph)
    interpreter.start("guard")

    finish_reveal(interpreter)
    assert interpreter.state is DialogState.AWAITING_ADVANCE
    assert interpreter.session.displayed_text == "Halt!"
    presenter.show_line.assert_called_with(interpreter.session, 5, "Halt!")

    finish_reveal(interpreter)
    assert interpreter.session.line_id == "greet"

    assert interpreter.confirm()
    assert interpreter.session.line_id == "ask"


def test_typewriter_pacing(make_interpreter):
    graph = compile_string('<d><starter id="a"/><line id="a">abcd</line></d>', name="t")
    interpreter = make_interpreter(t=graph)
    interpreter.start("t")

    assert interpreter.session.visible_count == 1
    interpreter.tick(0.1)
    assert interpreter.session.visible_count == 2
    interpreter.tick(0.05)
    assert interpreter.session.visible_count == 2


def test_confirm_while_presenting_fast_forwards(make_interpreter, guard_graph):
    interpreter = make_interpreter(guard=guard_graph)
    interpreter.start("guard")

    assert interpreter.confirm()
    assert interpreter.state is DialogState.AWAITING_ADVANCE
    assert interpreter.session.is_text_complete


def test_fast_forward_runs_remaining_events_in_order(make_interpreter, registry):
    ran = []
    registry.register("a", lambda args, session: ran.append("a"))
    registry.register("b", lambda args, session: ran.append("b"))
    registry.register("c", lambda args, session: ran.append("c"))
    graph = compile_string(
        '<d><starter id="l"/><line id="l">Hi`a` there`b``c`!</line></d>', name="ff"
    )
    interpreter = make_interpreter(ff=graph)
    interpreter.start("ff")
    assert ran == []

    interpreter.fast_forward()

    assert ran == ["a", "b", "c"]
    assert interpreter.session.full_text == "Hi there!"
    assert interpreter.state is DialogState.AWAITING_ADVANCE


def test_events_run_at_character_offset(make_interpreter, event_bus):
    graph = compile_string('<d><starter id="l"/><line id="l">ab`mark`cd</line></d>', name="o")
    interpreter = make_interpreter(o=graph)

    offsets = []
    event_bus.subscribe(DialogEvent.INLINE_EVENT, lambda e: offsets.append(e["offset"]))

    interpreter.start("o")
    interpreter.tick(0.1)
    assert interpreter.session.visible_count == 2
    assert offsets == []

    # Runs right before the third character appears
    interpreter.tick(0.1)
    assert offsets == [2]
    assert interpreter.session.visible_count == 3


def test_voice_cue_for_visible_lines(make_interpreter, guard_graph, received):
    interpreter = make_interpreter(guard=guard_graph)
    interpreter.start("guard")

    cues = [event for event in received if event.type is AudioEvent.VOICE_CUE]
    assert len(cues) == 1
    assert cues[0]["line_id"] == "greet"
    assert cues[0]["nametag"] == "Guard"
    assert cues[0]["language"] == "en"


def test_voice_cues_can_be_disabled(make_interpreter, guard_graph, received, config):
    config.voice_cues = False
    interpreter = make_interpreter(guard=guard_graph)
    interpreter.start("guard")

    assert AudioEvent.VOICE_CUE not in types_of(received)


def test_event_order_on_start(make_interpreter, guard_graph, received):
    interpreter = make_interpreter(guard=guard_graph)
    interpreter.start("guard")

    assert types_of(received)[:4] == [
        UIEvent.DIALOG_STARTED,
        DialogEvent.LINE_ENTERED,
        AudioEvent.VOICE_CUE,
        DialogEvent.TEXT_ADVANCED,
    ]


# Branching

def walk_to_choice(interpreter):
    interpreter.start("guard")
    interpreter.confirm()
    interpreter.confirm()
    interpreter.confirm()
    interpreter.confirm()


def test_choices_are_requested_after_confirm(make_interpreter, guard_graph, presenter):
    interpreter = make_interpreter(guard=guard_graph)
    walk_to_choice(interpreter)

    assert interpreter.session.line_id == "ask"
    assert interpreter.state is DialogState.AWAITING_CHOICE
    presenter.request_choice.assert_called_once()
    _, choices = presenter.request_choice.call_args[0]
    assert [c.text for c in choices] == ["Just passing through.", "I have gold."]


def test_select_choice(make_interpreter, guard_graph, received):
    interpreter = make_interpreter(guard=guard_graph)
    walk_to_choice(interpreter)

    assert interpreter.select_choice(0)
    assert interpreter.session.line_id == "pass"

    selected = [event for event in received if event.type is DialogEvent.CHOICE_SELECTED]
    assert selected[0]["choice_index"] == 0


def test_select_choice_rejects_bad_input(make_interpreter, guard_graph):
    interpreter = make_interpreter(guard=guard_graph)
    interpreter.start("guard")
    assert not interpreter.select_choice(0)

    interpreter.confirm()
    interpreter.confirm()
    interpreter.confirm()
    interpreter.confirm()
    assert not interpreter.select_choice(5)
    assert not interpreter.select_choice(-1)
    assert interpreter.state is DialogState.AWAITING_CHOICE


@pytest.mark.parametrize("gold,expected", [(15, "accept"), (3, "refuse")])
def test_conditional_next_after_event_only_line(make_interpreter, guard_graph, flags,
                                                 received, gold, expected):
    flags.set_flag("gold", gold)
    interpreter = make_interpreter(guard=guard_graph)
    walk_to_choice(interpreter)

    interpreter.select_choice(1)

    assert interpreter.session.line_id == expected
    inline = [event for event in received if event.type is DialogEvent.INLINE_EVENT]
    assert inline[0]["command"] == "sfx"
    assert inline[0]["args"] == ["coins"]


def test_conversation_ends_on_empty_next(make_interpreter, guard_graph, presenter, received):
    interpreter = make_interpreter(guard=guard_graph)
    walk_to_choice(interpreter)
    interpreter.select_choice(0)
    interpreter.confirm()
    interpreter.confirm()

    assert interpreter.state is DialogState.IDLE
    assert interpreter.session is None
    assert interpreter.last_error is None
    presenter.conversation_ended.assert_called_once()

    ended = received[-1]
    assert ended.type is UIEvent.DIALOG_ENDED
    assert ended["error"] is None
    assert ended["cancelled"] is False


def test_empty_line_advances_without_confirm(make_interpreter, registry):
    registry.register("noop", lambda args, session: "")
    graph = compile_string("""
        <d>
            <starter id="a"/>
            <line id="a" next="b">%noop%</line>
            <line id="b" next="">Arrived.</line>
        </d>
    """, name="skip")
    interpreter = make_interpreter(skip=graph)

    interpreter.start("skip")

    assert interpreter.session.line_id == "b"
    assert interpreter.state is DialogState.PRESENTING


def test_event_only_line_halts(make_interpreter, registry):
    ran = []
    registry.register("cutscene", lambda args, session: ran.append(args))
    graph = compile_string("""
        <d>
            <starter id="a"/>
            <line id="a" next="b">`cutscene|intro`</line>
            <line id="b" next="">After.</line>
        </d>
    """, name="halt")
    interpreter = make_interpreter(halt=graph)

    interpreter.start("halt")
    finish_reveal(interpreter)
    interpreter.confirm()

    assert ran == [["intro"]]
    assert interpreter.state is DialogState.HALTED
    assert interpreter.session.line_id == "a"

    assert interpreter.jump_to("b")
    assert interpreter.session.line_id == "b"


def test_event_can_take_over_sequencing(make_interpreter, registry):
    graph = compile_string("""
        <d>
            <starter id="a"/>
            <line id="a">`goto|c`Never finished.</line>
            <line id="c" next="">Elsewhere.</line>
        </d>
    """, name="jump")
    interpreter = make_interpreter(jump=graph)
    registry.register("goto", lambda args, session: interpreter.jump_to(args[0]) and None)

    interpreter.start("jump")

    assert interpreter.session.line_id == "c"
    assert interpreter.session.full_text == "Elsewhere."


def test_lines_that_never_wait_are_stopped(make_interpreter, registry):
    registry.register("noop", lambda args, session: "")
    graph = compile_string("""
        <d>
            <starter id="a"/>
            <line id="a" next="b">%noop%</line>
            <line id="b" next="a">%noop%</line>
        </d>
    """, name="loop")
    interpreter = make_interpreter(loop=graph)

    assert not interpreter.start("loop")
    assert interpreter.state is DialogState.IDLE


# Runtime errors

def test_unknown_line_reference_ends_conversation(make_interpreter, presenter, received):
    graph = compile_string(
        '<d><starter id="a"/><line id="a" next="nowhere">Hi</line></d>', name="broken"
    )
    interpreter = make_interpreter(broken=graph)
    interpreter.start("broken")
    interpreter.confirm()
    interpreter.confirm()

    assert isinstance(interpreter.last_error, UnknownLineReferenceError)
    assert interpreter.last_error.line_id == "nowhere"
    assert interpreter.state is DialogState.IDLE
    presenter.conversation_ended.assert_called_once()
    assert received[-1]["error"] is interpreter.last_error

    # Ready for the next conversation
    fine = compile_string('<d><starter id="a"/><line id="a">Fine.</line></d>', name="fine")
    interpreter.graphs["fine"] = fine
    assert interpreter.start("fine")
    assert interpreter.last_error is None


def test_unknown_starter_line(make_interpreter):
    graph = compile_string('<d><starter id="gone"/></d>', name="s")
    interpreter = make_interpreter(s=graph)

    assert not interpreter.start("s")
    assert isinstance(interpreter.last_error, UnknownLineReferenceError)


def test_missing_line_text(make_interpreter):
    graph = compile_string('<d><starter id="a"/><line id="a" next=""/></d>', name="mute")
    interpreter = make_interpreter(mute=graph)

    assert not interpreter.start("mute")
    assert isinstance(interpreter.last_error, MissingLineTextError)
    assert interpreter.session is None


# Asynchronous events

def test_async_substitution(make_interpreter, registry):
    future = Future()
    registry.register("name", lambda args, session: future)
    graph = compile_string('<d><starter id="a"/><line id="a">Hello %name%.</line></d>', name="n")
    interpreter = make_interpreter(n=graph)

    interpreter.start("n")
    interpreter.tick(1.0)
    assert interpreter.state is DialogState.SUBSTITUTING

    future.set_result("Ada")
    interpreter.tick(0.0)
    assert interpreter.state is DialogState.PRESENTING
    assert interpreter.session.full_text == "Hello Ada."


def test_fast_forward_during_substitution(make_interpreter, registry):
    future = Future()
    registry.register("name", lambda args, session: future)
    graph = compile_string('<d><starter id="a"/><line id="a">Hello %name%.</line></d>', name="n")
    interpreter = make_interpreter(n=graph)

    interpreter.start("n")
    assert interpreter.fast_forward()
    future.set_result("Ada")
    interpreter.tick(0.0)

    assert interpreter.state is DialogState.AWAITING_ADVANCE
    assert interpreter.session.displayed_text == "Hello Ada."


def test_async_inline_event_suspends_reveal(make_interpreter, registry):
    future = Future()
    registry.register("wait", lambda args, session: future)
    graph = compile_string('<d><starter id="a"/><line id="a">`wait`Hi</line></d>', name="w")
    interpreter = make_interpreter(w=graph)

    interpreter.start("w")
    interpreter.tick(10.0)
    assert interpreter.session.visible_count == 0

    future.set_result(None)
    finish_reveal(interpreter)
    assert interpreter.state is DialogState.AWAITING_ADVANCE


def test_async_speaker_does_not_wait(make_interpreter, registry):
    registry.register("Speaker", lambda args, session: Future())
    graph = compile_string(
        '<d><starter id="a"/><line id="a">%Speaker|Ada%Hello.</line></d>', name="s"
    )
    interpreter = make_interpreter(s=graph)

    interpreter.start("s")

    assert interpreter.session.nametag == "Ada"
    assert interpreter.state is DialogState.PRESENTING


# Invalidation

def test_invalidate_is_a_quiet_exit(make_interpreter, guard_graph, presenter, received):
    interpreter = make_interpreter(guard=guard_graph)
    interpreter.start("guard")

    interpreter.invalidate()

    assert interpreter.state is DialogState.IDLE
    assert interpreter.last_error is None
    presenter.conversation_ended.assert_not_called()
    assert received[-1].type is UIEvent.DIALOG_ENDED
    assert received[-1]["cancelled"] is True


def test_session_invalidated_by_owner(make_interpreter, guard_graph):
    interpreter = make_interpreter(guard=guard_graph)
    interpreter.start("guard")
    session = interpreter.session

    session.invalidate()
    interpreter.tick(0.1)

    assert interpreter.session is None
    assert not interpreter.confirm()


def test_invalidated_while_event_pending(make_interpreter, registry):
    future = Future()
    registry.register("wait", lambda args, session: future)
    graph = compile_string('<d><starter id="a"/><line id="a">`wait`Hi</line></d>', name="w")
    interpreter = make_interpreter(w=graph)
    interpreter.start("w")

    interpreter.session.invalidate()
    future.set_result(None)
    interpreter.tick(1.0)

    assert interpreter.state is DialogState.IDLE


def test_end(make_interpreter, guard_graph, presenter):
    interpreter = make_interpreter(guard=guard_graph)
    interpreter.start("guard")

    interpreter.end()

    assert not interpreter.is_active
    presenter.conversation_ended.assert_called_once()


def test_invalidated_by_event_stops_the_line(make_interpreter, registry, received):
    ran = []

    def kill(args, session):
        ran.append("kill")
        session.invalidate()

    registry.register("kill", kill)
    registry.register("after", lambda args, session: ran.append("after"))
    graph = compile_string(
        '<d><starter id="a"/><line id="a">`kill``after`Hello world</line></d>', name="k"
    )
    interpreter = make_interpreter(k=graph)

    interpreter.start("k")
    interpreter.tick(10.0)

    assert ran == ["kill"]
    assert interpreter.state is DialogState.IDLE
    assert DialogEvent.TEXT_ADVANCED not in types_of(received)
    assert received[-1]["cancelled"] is True


def test_speaker_override_splices_tag(make_interpreter, registry):
    registry.register("Speaker", lambda args, session: f"{args[0]}: ")
    graph = compile_string(
        '<d><starter id="a"/><line id="a">%Speaker|Ada%Hello.</line></d>', name="s"
    )
    interpreter = make_interpreter(s=graph)

    interpreter.start("s")

    assert interpreter.session.nametag == "Ada"
    assert interpreter.session.full_text == "Ada: Hello."
