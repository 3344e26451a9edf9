"""Pydantic schemas for API requests and responses."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from velvet.game import TableView
from velvet.rules import TableRules

TableAction = Literal[
    "clear", "all_in", "rebet", "deal", "hit", "stand", "next_round", "reset"
]


class ChipRequest(BaseModel):
    """Request to place a chip on the bet."""

    value: int = Field(..., ge=1, description="Chip denomination")


class ActionRequest(BaseModel):
    """Request for a table command."""

    action: TableAction


class SessionResponse(BaseModel):
    """A newly opened table session."""

    session_id: str


class CardResponse(BaseModel):
    """Card representation; hidden cards have '?' for rank and suit."""

    model_config = ConfigDict(from_attributes=True)

    rank: str
    suit: str
    value: int
    hidden: bool = False


class TableStateResponse(BaseModel):
    """Current observable table state."""

    state: str
    balance: float
    bet: float
    last_bet: float
    player_cards: list[CardResponse]
    dealer_cards: list[CardResponse]
    player_score: int
    player_soft: bool
    dealer_score: int | None
    reveal_dealer: bool
    message: str
    outcome: Literal["win", "lose", "push"] | None
    payout_multiplier: float | None
    can_bet: bool
    can_deal: bool
    can_hit: bool
    can_stand: bool
    can_rebet: bool
    can_next_round: bool
    cards_remaining: int
    round_number: int

    @classmethod
    def from_view(cls, view: TableView) -> "TableStateResponse":
        """Convert an engine view to a response."""
        return cls(
            state=view.state.name,
            balance=float(view.balance),
            bet=float(view.bet),
            last_bet=float(view.last_bet),
            player_cards=[CardResponse.model_validate(c) for c in view.player_cards],
            dealer_cards=[CardResponse.model_validate(c) for c in view.dealer_cards],
            player_score=view.player_score,
            player_soft=view.player_soft,
            dealer_score=view.dealer_score,
            reveal_dealer=view.reveal_dealer,
            message=view.message,
            outcome=view.outcome.value if view.outcome else None,
            payout_multiplier=(
                float(view.payout_multiplier) if view.payout_multiplier is not None else None
            ),
            can_bet=view.can_bet,
            can_deal=view.can_deal,
            can_hit=view.can_hit,
            can_stand=view.can_stand,
            can_rebet=view.can_rebet,
            can_next_round=view.can_next_round,
            cards_remaining=view.cards_remaining,
            round_number=view.round_number,
        )


class RulesResponse(BaseModel):
    """Table constants a client needs to draw its controls."""

    initial_balance: float
    chip_values: list[int]
    blackjack_payout: float
    refresh_threshold: int
    dealer_stand_total: int
    auto_advance_delay_ms: int
    currency: str

    @classmethod
    def from_rules(cls, rules: TableRules) -> "RulesResponse":
        return cls(
            initial_balance=float(rules.initial_balance),
            chip_values=list(rules.chip_values),
            blackjack_payout=float(rules.blackjack_payout),
            refresh_threshold=rules.refresh_threshold,
            dealer_stand_total=rules.dealer_stand_total,
            auto_advance_delay_ms=round(rules.auto_advance_delay * 1000),
            currency=rules.currency,
        )


class ErrorDetail(BaseModel):
    """Body of a rejected table command."""

    error: str
    message: str
