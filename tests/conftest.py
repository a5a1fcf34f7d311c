import pytest
from unittest.mock import MagicMock

from parley.core.config import DialogConfig
from parley.core.events import EventBus
from parley.dialog.compiler import compile_string
from parley.dialog.flags import FlagStore
from parley.dialog.interpreter import DialogInterpreter
from parley.dialog.registry import EventRegistry


GUARD_DOCUMENT = """
<dialogue>
    <starter id="greet_again" all_true="true">
        <condition key="met_guard" value="true"/>
        <condition key="gold" operator="gte" value="10"/>
    </starter>
    <starter id="greet"/>

    <line id="greet" next="ask">%Speaker|Guard%Halt!</line>
    <line id="greet_again" next="">Back again?</line>
    <line id="ask">
        State your business.
        <choice text="Just passing through." next="pass"/>
        <choice text="I have gold." next="bribe"/>
    </line>
    <line id="pass" next="">Move along.</line>
    <line id="bribe" next="refuse">
        `sfx|coins`
        <conditional_next id="accept" all_true="true">
            <condition key="gold" operator="gte" value="10"/>
        </conditional_next>
    </line>
    <line id="accept" next="">Pleasure doing business.</line>
    <line id="refuse" next="">That's not enough.</line>
</dialogue>
"""


@pytest.fixture
def event_bus():
    """Fresh EventBus for each test."""
    return EventBus()


@pytest.fixture
def flags():
    return FlagStore()


@pytest.fixture
def registry():
    return EventRegistry()


@pytest.fixture
def config():
    # 10 characters per second keeps timing arithmetic readable
    return DialogConfig(text_speed=0.1)


@pytest.fixture
def presenter():
    """Stand-in for the dialog box."""
    return MagicMock()


@pytest.fixture
def guard_graph():
    return compile_string(GUARD_DOCUMENT, name="guard")


@pytest.fixture
def make_interpreter(registry, flags, presenter, event_bus, config):
    """Build an interpreter over the given graphs with the shared fixtures."""
    def _make(**graphs):
        return DialogInterpreter(
            graphs,
            registry=registry,
            lookup=flags.lookup,
            presenter=presenter,
            event_bus=event_bus,
            config=config,
        )
    return _make


@pytest.fixture
def received(event_bus):
    """Collects every published dialogue event, in order."""
    from parley.core.events import AudioEvent, DialogEvent, UIEvent

    events = []
    for event_type in (*UIEvent, *DialogEvent, *AudioEvent):
        event_bus.subscribe(event_type, events.append)
    return events
