"""Table API endpoints."""

from typing import Annotated, Callable

from fastapi import APIRouter, Depends, Header, HTTPException

from api.schemas import (
    ActionRequest,
    ChipRequest,
    ErrorDetail,
    RulesResponse,
    SessionResponse,
    TableStateResponse,
)
from api.session import TableRegistry, extract_session_id, get_registry
from velvet.errors import TableError
from velvet.game import BlackjackTable, TableView

router = APIRouter()


def table_actions(table: BlackjackTable) -> dict[str, Callable[[], TableView]]:
    """Map action names to table commands."""
    return {
        "clear": table.clear_bet,
        "all_in": table.all_in,
        "rebet": table.rebet,
        "deal": table.deal,
        "hit": table.hit,
        "stand": table.stand,
        "next_round": table.next_round,
        "reset": table.reset,
    }


def _rejected(exc: TableError) -> HTTPException:
    """Convert a rejected command to a 400 response."""
    detail = ErrorDetail(error=exc.code, message=exc.message)
    return HTTPException(status_code=400, detail=detail.model_dump())


def _session_id(token: str) -> str:
    session_id = extract_session_id(token)
    if session_id is None:
        raise HTTPException(status_code=401, detail="Invalid or expired session")
    return session_id


async def get_table(
    session_token: Annotated[str, Header(alias="X-Session-ID")],
    registry: Annotated[TableRegistry, Depends(get_registry)],
) -> BlackjackTable:
    """Resolve the session header to its table."""
    table = registry.get(_session_id(session_token))
    if table is None:
        raise HTTPException(status_code=404, detail="Unknown session")
    return table


@router.post("/new")
async def new_table(
    registry: Annotated[TableRegistry, Depends(get_registry)],
) -> SessionResponse:
    """Open a new table session."""
    registry.cleanup_expired()
    return SessionResponse(session_id=registry.create())


@router.get("/rules")
async def get_rules(
    registry: Annotated[TableRegistry, Depends(get_registry)],
) -> RulesResponse:
    """Get the table rules and chip denominations."""
    return RulesResponse.from_rules(registry.rules)


@router.get("/state")
async def get_state(
    table: Annotated[BlackjackTable, Depends(get_table)],
) -> TableStateResponse:
    """Get current table state."""
    return TableStateResponse.from_view(table.view())


@router.post("/bet")
async def place_bet(
    request: ChipRequest,
    table: Annotated[BlackjackTable, Depends(get_table)],
) -> TableStateResponse:
    """Place a chip on the current bet."""
    try:
        view = table.place_bet(request.value)
    except TableError as exc:
        raise _rejected(exc) from exc
    return TableStateResponse.from_view(view)


@router.post("/action")
async def table_action(
    request: ActionRequest,
    table: Annotated[BlackjackTable, Depends(get_table)],
) -> TableStateResponse:
    """Execute a table command."""
    action_fn = table_actions(table)[request.action]
    try:
        view = action_fn()
    except TableError as exc:
        raise _rejected(exc) from exc
    return TableStateResponse.from_view(view)
