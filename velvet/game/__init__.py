"""Round engine, events and the table session."""

from velvet.game.events import GameEvent, EventType
from velvet.game.state import CommandType, RoundState
from velvet.game.engine import TableSnapshot, TableView, transition
from velvet.game.scheduler import AsyncioScheduler, ManualScheduler
from velvet.game.table import BlackjackTable

__all__ = [
    "GameEvent",
    "EventType",
    "CommandType",
    "RoundState",
    "TableSnapshot",
    "TableView",
    "transition",
    "AsyncioScheduler",
    "ManualScheduler",
    "BlackjackTable",
]
