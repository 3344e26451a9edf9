"""Tests for the event emitter."""

import pytest

from velvet.game.events import EventEmitter, EventType, GameEvent


class TestEventEmitter:
    """Tests for event publishing."""

    def test_catch_all_and_typed_handlers(self):
        emitter = EventEmitter()
        typed, everything = [], []
        emitter.subscribe(typed.append, EventType.PUSH)
        emitter.subscribe(everything.append)

        emitter.emit(GameEvent(EventType.PUSH, {"bet": 10.0}))
        emitter.emit(GameEvent(EventType.BET_CLEARED))

        assert [e.event_type for e in typed] == [EventType.PUSH]
        assert [e.event_type for e in everything] == [EventType.PUSH, EventType.BET_CLEARED]
        assert typed[0].data == {"bet": 10.0}

    def test_unsubscribe(self):
        emitter = EventEmitter()
        received = []
        emitter.subscribe(received.append, EventType.PUSH)
        emitter.unsubscribe(received.append, EventType.PUSH)
        emitter.unsubscribe(received.append)

        emitter.emit(GameEvent(EventType.PUSH))
        assert received == []

    def test_handler_error_propagates(self):
        emitter = EventEmitter()

        def broken(event):
            raise RuntimeError("handler failed")

        emitter.subscribe(broken)
        with pytest.raises(RuntimeError):
            emitter.emit(GameEvent(EventType.BET_CLEARED))
        assert len(emitter.history) == 1

    def test_history_is_bounded(self):
        emitter = EventEmitter(history_limit=3)
        for _ in range(5):
            emitter.emit(GameEvent(EventType.BET_CLEARED))

        assert len(emitter.history) == 3
        emitter.clear_history()
        assert emitter.history == []
