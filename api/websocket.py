"""WebSocket connection management with table event streaming."""

import asyncio
import json
import logging
from functools import partial
from uuid import uuid4
from typing import Any

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from api.routes.table import table_actions
from api.schemas import TableStateResponse
from api.session import TableRegistry, extract_session_id, get_registry
from velvet.errors import TableError
from velvet.game import BlackjackTable
from velvet.game.events import EventType, GameEvent

logger = logging.getLogger(__name__)

router = APIRouter()


class ConnectionManager:
    """Manage WebSocket connections and their event queues, keyed per socket."""

    def __init__(self) -> None:
        self._connections: dict[str, WebSocket] = {}
        self._event_queues: dict[str, asyncio.Queue] = {}

    async def connect(self, websocket: WebSocket, connection_id: str) -> None:
        """Accept and register a new connection."""
        await websocket.accept()
        self._connections[connection_id] = websocket
        self._event_queues[connection_id] = asyncio.Queue(maxsize=1000)

    def disconnect(self, connection_id: str) -> None:
        """Remove a connection; the table is kept for reconnection."""
        self._connections.pop(connection_id, None)
        self._event_queues.pop(connection_id, None)

    def queue_event(self, connection_id: str, event: GameEvent) -> None:
        """Queue an event for async delivery."""
        queue = self._event_queues.get(connection_id)
        if queue is None:
            return
        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("event queue full for %s, dropping %s", connection_id, event.event_type.name)

    async def next_event(self, connection_id: str) -> GameEvent | None:
        """Wait for the next queued event, or None once the connection is gone."""
        queue = self._event_queues.get(connection_id)
        if queue is None:
            return None
        return await queue.get()

    async def send_message(self, connection_id: str, message: dict[str, Any]) -> None:
        """Send a message to a specific connection."""
        websocket = self._connections.get(connection_id)
        if websocket is not None:
            await websocket.send_json(message)

    @property
    def active_connections(self) -> int:
        """Return number of active connections."""
        return len(self._connections)


# Global connection manager
manager = ConnectionManager()


def _state_message(table: BlackjackTable) -> dict[str, Any]:
    return {
        "type": "state_update",
        "state": TableStateResponse.from_view(table.view()).model_dump(),
    }


def _event_to_message(event: GameEvent, table: BlackjackTable) -> dict[str, Any]:
    """Convert a table event to a WebSocket message."""
    message: dict[str, Any] = {
        "type": "event",
        "event_type": event.event_type.name,
        "data": event.data,
        "state": TableStateResponse.from_view(table.view()).model_dump(),
    }

    if event.event_type == EventType.ROUND_ENDED:
        message["round_result"] = {
            "outcome": event.data.get("outcome"),
            "net_result": event.data.get("result", 0),
            "bankroll": event.data.get("bankroll", 0),
        }

    return message


def _error_message(message: str, code: str = "bad_request") -> dict[str, Any]:
    return {"type": "error", "error": code, "message": message}


@router.websocket("/table/{session_token}")
async def table_websocket(
    websocket: WebSocket,
    session_token: str,
    registry: TableRegistry = Depends(get_registry),
) -> None:
    """
    WebSocket endpoint for real-time table updates.

    Messages from client:
    - {"type": "bet", "value": 25}
    - {"type": "action", "action": "clear"|"all_in"|"rebet"|"deal"|"hit"|"stand"|"next_round"|"reset"}
    - {"type": "get_state"}

    Messages to client:
    - {"type": "state_update", "state": {...}}
    - {"type": "event", "event_type": "...", "data": {...}, "state": {...}}
    - {"type": "error", "error": "...", "message": "..."}
    """
    session_id = extract_session_id(session_token)
    if session_id is None:
        await websocket.accept()
        await websocket.send_json(_error_message("Invalid or expired session", "invalid_session"))
        await websocket.close(code=1008)
        return

    table = registry.get(session_id) or registry.replace(session_id)
    connection_id = uuid4().hex
    await manager.connect(websocket, connection_id)

    def forward(event: GameEvent) -> None:
        manager.queue_event(connection_id, event)

    table.subscribe(forward)
    await manager.send_message(connection_id, _state_message(table))

    async def process_events() -> None:
        """Push table events, including timer-driven ones, to the client."""
        while True:
            event = await manager.next_event(connection_id)
            if event is None:
                return
            await manager.send_message(connection_id, _event_to_message(event, table))

    event_task = asyncio.create_task(process_events())

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                message = None
            if not isinstance(message, dict):
                await manager.send_message(connection_id, _error_message("Malformed JSON"))
                continue

            msg_type = message.get("type")

            if msg_type == "get_state":
                await manager.send_message(connection_id, _state_message(table))
                continue

            if msg_type == "bet":
                value = message.get("value")
                if isinstance(value, bool) or not isinstance(value, int):
                    await manager.send_message(
                        connection_id, _error_message("Chip value must be a whole number")
                    )
                    continue
                command = partial(table.place_bet, value)
            elif msg_type == "action":
                action = message.get("action")
                command = table_actions(table).get(action)
                if command is None:
                    await manager.send_message(connection_id, _error_message(f"Unknown action: {action}"))
                    continue
            else:
                await manager.send_message(
                    connection_id, _error_message(f"Unknown message type: {msg_type}")
                )
                continue

            try:
                command()
            except TableError as exc:
                await manager.send_message(connection_id, _error_message(exc.message, exc.code))
                continue
            await manager.send_message(connection_id, _state_message(table))

    except WebSocketDisconnect:
        logger.debug("session %s disconnected", session_id)
    finally:
        table.unsubscribe(forward)
        event_task.cancel()
        try:
            await event_task
        except asyncio.CancelledError:
            pass
        manager.disconnect(connection_id)
