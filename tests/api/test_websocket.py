"""Tests for the table WebSocket."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from api.main import app
from api.session import TableRegistry, get_registry
from api.websocket import ConnectionManager
from velvet.game import BlackjackTable, ManualScheduler
from velvet.game.events import EventType, GameEvent
from velvet.rules import TableRules


@pytest.fixture
def registry(stacked_deck):
    """A registry whose tables deal known cards on a virtual clock."""

    class StackedRegistry(TableRegistry):
        cards: tuple[str, ...] = ()

        def _new_table(self) -> BlackjackTable:
            return BlackjackTable(
                rules=self.rules,
                scheduler=self.scheduler,
                deck=stacked_deck(*self.cards),
            )

    registry = StackedRegistry(rules=TableRules())
    registry.scheduler = ManualScheduler()
    app.dependency_overrides[get_registry] = lambda: registry
    yield registry
    app.dependency_overrides.pop(get_registry, None)


@pytest.fixture
def client():
    return TestClient(app)


def _receive_until(websocket, msg_type, event_type=None, limit=50):
    """Read messages until one of the wanted kind arrives."""
    for _ in range(limit):
        message = websocket.receive_json()
        if message["type"] != msg_type:
            continue
        if event_type is None or message.get("event_type") == event_type:
            return message
    raise AssertionError(f"no {msg_type} {event_type or ''} message received")


def test_invalid_token_is_rejected(client, registry):
    """Test a forged token gets an error and the socket closes."""
    with client.websocket_connect("/ws/table/forged") as websocket:
        message = websocket.receive_json()
        assert message["type"] == "error"
        assert message["error"] == "invalid_session"


def test_initial_state_sent_on_connect(client, registry):
    """Test the current state arrives as soon as the socket opens."""
    token = registry.create()
    with client.websocket_connect(f"/ws/table/{token}") as websocket:
        message = websocket.receive_json()
        assert message["type"] == "state_update"
        assert message["state"]["state"] == "BETTING"
        assert message["state"]["balance"] == 2000


def test_round_over_socket(client, registry):
    """Test betting, dealing and the round result over the socket."""
    registry.cards = ("10S", "9H", "10D", "7S")
    token = registry.create()

    with client.websocket_connect(f"/ws/table/{token}") as websocket:
        _receive_until(websocket, "state_update")

        websocket.send_json({"type": "bet", "value": 100})
        message = _receive_until(websocket, "state_update")
        assert message["state"]["bet"] == 100

        websocket.send_json({"type": "action", "action": "deal"})
        message = _receive_until(websocket, "state_update")
        assert message["state"]["state"] == "PLAYER_TURN"
        assert message["state"]["dealer_cards"][0]["hidden"] is True

        websocket.send_json({"type": "action", "action": "stand"})
        message = _receive_until(websocket, "event", "ROUND_ENDED")
        assert message["round_result"] == {
            "outcome": "win",
            "net_result": 100.0,
            "bankroll": 2100.0,
        }


def test_rejected_command_reports_error(client, registry):
    """Test a refused command comes back as an error message."""
    token = registry.create()
    with client.websocket_connect(f"/ws/table/{token}") as websocket:
        _receive_until(websocket, "state_update")

        websocket.send_json({"type": "action", "action": "deal"})
        message = _receive_until(websocket, "error")
        assert message["error"] == "no_bet_placed"
        assert message["message"] == "Check your bet amount."


def test_bad_messages(client, registry):
    """Test malformed input is answered, not fatal."""
    token = registry.create()
    with client.websocket_connect(f"/ws/table/{token}") as websocket:
        _receive_until(websocket, "state_update")

        websocket.send_text("not json")
        assert _receive_until(websocket, "error")["message"] == "Malformed JSON"

        websocket.send_json({"type": "bet", "value": "lots"})
        assert _receive_until(websocket, "error")["error"] == "bad_request"

        websocket.send_json({"type": "bet", "value": 25.9})
        assert _receive_until(websocket, "error")["message"] == "Chip value must be a whole number"

        websocket.send_json({"type": "bet", "value": True})
        assert _receive_until(websocket, "error")["error"] == "bad_request"

        websocket.send_json({"type": "action", "action": "split"})
        assert "Unknown action" in _receive_until(websocket, "error")["message"]

        websocket.send_json({"type": "dance"})
        assert "Unknown message type" in _receive_until(websocket, "error")["message"]

        websocket.send_json({"type": "get_state"})
        message = _receive_until(websocket, "state_update")
        assert message["state"]["state"] == "BETTING"
        assert message["state"]["bet"] == 0


def test_auto_advance_is_pushed(client, registry):
    """Test a timer-driven next round reaches the client."""
    registry.cards = ("10S", "9H", "10D", "7S")
    token = registry.create()

    with client.websocket_connect(f"/ws/table/{token}") as websocket:
        _receive_until(websocket, "state_update")
        websocket.send_json({"type": "bet", "value": 100})
        websocket.send_json({"type": "action", "action": "deal"})
        websocket.send_json({"type": "action", "action": "stand"})
        _receive_until(websocket, "event", "AUTO_ADVANCE_SCHEDULED")

        registry.scheduler.advance(2.2)
        websocket.send_json({"type": "get_state"})
        for _ in range(50):
            message = _receive_until(websocket, "state_update")
            if message["state"]["round_number"] == 1 and message["state"]["state"] == "BETTING":
                break
        else:
            raise AssertionError("next round never opened")
        assert message["state"]["bet"] == 100
        assert message["state"]["player_cards"] == []


def test_second_socket_survives_first_closing(client, registry):
    """Test two sockets on one session keep separate event streams."""
    token = registry.create()

    with client.websocket_connect(f"/ws/table/{token}") as second:
        _receive_until(second, "state_update")

        with client.websocket_connect(f"/ws/table/{token}") as first:
            _receive_until(first, "state_update")

        second.send_json({"type": "bet", "value": 25})
        message = _receive_until(second, "event", "BET_PLACED")
        assert message["state"]["bet"] == 25

        second.send_json({"type": "bet", "value": 25})
        message = _receive_until(second, "event", "BET_PLACED")
        assert message["state"]["bet"] == 50


class TestConnectionManager:
    """Tests for per-socket event queues."""

    @pytest.mark.asyncio
    async def test_next_event_after_disconnect(self):
        manager = ConnectionManager()
        assert await manager.next_event("gone") is None

        manager._event_queues["conn"] = asyncio.Queue()
        manager.queue_event("conn", GameEvent(EventType.BET_CLEARED))
        event = await manager.next_event("conn")
        assert event.event_type is EventType.BET_CLEARED

        manager.disconnect("conn")
        manager.disconnect("conn")
        manager.queue_event("conn", GameEvent(EventType.BET_CLEARED))
        assert await manager.next_event("conn") is None
        assert manager.active_connections == 0
