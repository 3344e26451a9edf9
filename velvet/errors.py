"""Recoverable table errors.

Every error leaves the table as it was; the caller is expected to issue a
different command. ``code`` is a stable identifier for API clients.
"""


class TableError(Exception):
    """Base class for rejected table commands."""

    code = "table_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BettingError(TableError):
    """A chip, rebet or deal request broke a betting rule."""

    code = "betting_error"


class InsufficientBalance(BettingError):
    """The bet would exceed the available balance."""

    code = "insufficient_balance"


class NoPriorBet(BettingError):
    """Rebet was requested before any bet was ever committed."""

    code = "no_prior_bet"


class NoBetPlaced(BettingError):
    """Deal was requested with nothing on the table."""

    code = "no_bet_placed"


class InvalidChip(BettingError):
    """The chip value is not positive or not an offered denomination."""

    code = "invalid_chip"


class IllegalTransition(TableError):
    """The command is not valid in the current round state."""

    code = "illegal_transition"


class NoBalance(TableError):
    """A new round cannot start with an empty balance."""

    code = "no_balance"
