"""Payout resolution: hand comparison to balance credit."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class Outcome(Enum):
    """Result of a round from the player's side."""

    WIN = "win"
    LOSE = "lose"
    PUSH = "push"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Resolution:
    """An outcome with the multiplier applied to a winning bet."""

    outcome: Outcome
    multiplier: Decimal = Decimal("0")

    @classmethod
    def win(cls, multiplier: Decimal | int = 1) -> "Resolution":
        return cls(Outcome.WIN, Decimal(str(multiplier)))

    @classmethod
    def lose(cls) -> "Resolution":
        return cls(Outcome.LOSE)

    @classmethod
    def push(cls) -> "Resolution":
        return cls(Outcome.PUSH)


def compare_totals(player_total: int, dealer_total: int) -> Resolution:
    """
    Compare final totals.

    A player bust loses even if the dealer also busts.
    """
    if player_total > 21:
        return Resolution.lose()
    if dealer_total > 21:
        return Resolution.win(1)
    if player_total > dealer_total:
        return Resolution.win(1)
    if player_total < dealer_total:
        return Resolution.lose()
    return Resolution.push()


def resolve_naturals(
    player_blackjack: bool,
    dealer_blackjack: bool,
    blackjack_payout: Decimal,
) -> Resolution | None:
    """
    Settle blackjacks found on the initial deal.

    Returns None when neither side has a natural and play continues.
    """
    if player_blackjack and dealer_blackjack:
        return Resolution.push()
    if player_blackjack:
        return Resolution.win(blackjack_payout)
    if dealer_blackjack:
        return Resolution.lose()
    return None


def credit(bet: Decimal | int, resolution: Resolution) -> Decimal:
    """
    Return the amount credited back to the balance.

    The bet was already deducted when it was committed, so a win returns the
    stake plus winnings, a push returns the stake and a loss returns nothing.
    """
    bet = Decimal(bet)
    if resolution.outcome is Outcome.WIN:
        return bet * (1 + resolution.multiplier)
    if resolution.outcome is Outcome.PUSH:
        return bet
    return Decimal("0")
