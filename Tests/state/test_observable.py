"""Tests for observable state containers."""

from llmchat.Chat.chat_errors import ChatTransportError
from llmchat.Chat.chat_models import EMPTY_PARAMETERS
from llmchat.state import ChatSessionState, Observable, observable


class Counter(Observable):
    count: int = observable(0)
    items: list = observable(list)

    def __init__(self):
        super().__init__()
        self.watched = []

    def watch_count(self, old, new):
        self.watched.append((old, new))


def test_defaults_are_per_instance():
    first, second = Counter(), Counter()
    first.items = first.items + [1]
    assert second.items == []


def test_watcher_and_subscribers_receive_changes():
    counter = Counter()
    events = []
    counter.subscribe(lambda name, old, new: events.append((name, old, new)))

    counter.count = 1
    counter.count = 1
    counter.items = ["a"]

    assert counter.watched == [(0, 1)]
    assert events == [("count", 0, 1), ("items", [], ["a"])]


def test_unsubscribe():
    counter = Counter()
    events = []
    unsubscribe = counter.subscribe(lambda name, old, new: events.append(name))
    unsubscribe()
    unsubscribe()

    counter.count = 5
    assert events == []


def test_failing_subscriber_does_not_block_others():
    counter = Counter()
    events = []

    def broken(name, old, new):
        raise RuntimeError("view exploded")

    counter.subscribe(broken)
    counter.subscribe(lambda name, old, new: events.append(new))

    counter.count = 3
    assert events == [3]


def test_session_state_defaults():
    state = ChatSessionState()
    assert state.messages == []
    assert state.conversations == []
    assert state.current_conversation is None
    assert state.is_sending is False
    assert state.error is None
    assert state.selected_model is None
    assert state.is_loading_models is False
    assert state.model_parameters == EMPTY_PARAMETERS
    assert state.models == []


def test_new_error_overwrites_previous():
    state = ChatSessionState()
    seen = []
    state.subscribe(lambda name, old, new: seen.append(new) if name == "error" else None)

    first, second = ChatTransportError("one"), ChatTransportError("two")
    state.error = first
    state.error = second
    state.error = None

    assert seen == [first, second, None]
