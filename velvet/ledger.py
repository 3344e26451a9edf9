"""Betting ledger: balance, current bet and last bet."""

from dataclasses import dataclass, replace
from decimal import Decimal

from velvet.errors import InsufficientBalance, InvalidChip, NoPriorBet
from velvet.payout import Resolution, credit


@dataclass(frozen=True)
class Ledger:
    """
    Immutable betting ledger.

    Every operation returns a new ledger or raises a ``BettingError``.
    Round-state gating (chips only while betting) is the state machine's job.
    """

    balance: Decimal = Decimal("0")
    current_bet: Decimal = Decimal("0")
    last_bet: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        for name in ("balance", "current_bet", "last_bet"):
            object.__setattr__(self, name, Decimal(str(getattr(self, name))))
        if self.balance < 0:
            raise ValueError("balance cannot be negative")

    @classmethod
    def opening(cls, balance: Decimal | int) -> "Ledger":
        """A ledger with a fresh stake and no betting history."""
        return cls(balance=Decimal(str(balance)))

    def add_chip(self, value: Decimal | int) -> "Ledger":
        """Add a chip to the current bet."""
        value = Decimal(str(value))
        if value <= 0:
            raise InvalidChip(f"Chip value must be positive, got {value}")
        if self.current_bet + value > self.balance:
            raise InsufficientBalance("Not enough balance for that chip.")
        return replace(self, current_bet=self.current_bet + value)

    def clear_bet(self) -> "Ledger":
        """Take every chip off the table."""
        return replace(self, current_bet=Decimal("0"))

    def all_in(self) -> "Ledger":
        """Bet the whole balance."""
        return replace(self, current_bet=self.balance)

    def rebet(self) -> "Ledger":
        """Repeat the previous round's bet."""
        if self.last_bet == 0:
            raise NoPriorBet("There is no previous bet to repeat.")
        if self.last_bet > self.balance:
            raise InsufficientBalance("Not enough balance to repeat the last bet.")
        return replace(self, current_bet=self.last_bet)

    def commit_bet(self) -> "Ledger":
        """Move the current bet off the balance and remember it."""
        if self.current_bet > self.balance:
            raise InsufficientBalance("Bet exceeds the available balance.")
        return replace(
            self,
            balance=self.balance - self.current_bet,
            last_bet=self.current_bet,
        )

    def settle(self, resolution: Resolution) -> "Ledger":
        """Credit the payout for ``resolution``; the bet stays until the next round."""
        return replace(self, balance=self.balance + credit(self.current_bet, resolution))

    def for_next_round(self, automatic: bool = False) -> "Ledger":
        """
        Prepare the bet for a new betting phase.

        A manual next round starts from an empty bet; an automatic one
        carries the last bet forward, capped at the balance.
        """
        if automatic:
            return replace(self, current_bet=min(self.last_bet, self.balance))
        return replace(self, current_bet=Decimal("0"))

    @property
    def can_deal(self) -> bool:
        """Check if the current bet is a legal stake."""
        return 0 < self.current_bet <= self.balance
