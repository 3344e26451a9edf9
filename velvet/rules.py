"""Table configuration."""

from dataclasses import dataclass
from decimal import Decimal

from velvet.cards import DECK_REFRESH_THRESHOLD


@dataclass(frozen=True)
class TableRules:
    """
    Fixed rules and constants for a single-player table.

    House rules (split, double, insurance, surrender) are not offered.
    """

    # Bankroll the table starts with and returns to on reset
    initial_balance: Decimal = Decimal("2000")

    # Chip denominations offered to the player
    chip_values: tuple[int, ...] = (5, 25, 100, 500)

    # Blackjack payout (3:2 = 1.5)
    blackjack_payout: Decimal = Decimal("1.5")

    # Shoe is replaced when fewer cards than this remain at deal time
    refresh_threshold: int = DECK_REFRESH_THRESHOLD

    # Dealer draws below this total and stands on it, soft or hard
    dealer_stand_total: int = 17

    # Seconds between a resolved round and the automatic next round
    auto_advance_delay: float = 2.2

    currency: str = "$"

    def __post_init__(self) -> None:
        """Normalise money fields and validate the combination."""
        object.__setattr__(self, "initial_balance", Decimal(str(self.initial_balance)))
        object.__setattr__(self, "blackjack_payout", Decimal(str(self.blackjack_payout)))
        object.__setattr__(self, "chip_values", tuple(sorted(self.chip_values)))

        if self.initial_balance <= 0:
            raise ValueError("initial_balance must be positive")
        if not self.chip_values or any(v <= 0 for v in self.chip_values):
            raise ValueError("chip_values must be positive")
        if self.blackjack_payout < 1:
            raise ValueError("blackjack_payout must be at least 1.0")
        if not 4 <= self.refresh_threshold <= 52:
            raise ValueError("refresh_threshold must be between 4 and 52")
        if self.auto_advance_delay < 0:
            raise ValueError("auto_advance_delay cannot be negative")

    def format_amount(self, amount: Decimal | int) -> str:
        """Format an amount for status messages, e.g. ``$2,100``."""
        amount = Decimal(amount)
        if amount == amount.to_integral_value():
            return f"{self.currency}{int(amount):,}"
        return f"{self.currency}{amount:,.2f}"
