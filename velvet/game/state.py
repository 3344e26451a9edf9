"""Round state and command legality."""

from enum import Enum, auto


class RoundState(Enum):
    """
    Round state machine states.

    Flow: BETTING → PLAYER_TURN → ROUND_OVER → BETTING
    """

    # Placing chips, waiting for a deal
    BETTING = auto()

    # Player decides to hit or stand
    PLAYER_TURN = auto()

    # Outcome settled, waiting for the next round
    ROUND_OVER = auto()

    def __str__(self) -> str:
        return self.name.replace("_", " ").title()


class CommandType(Enum):
    """Commands the presentation layer can issue."""

    PLACE_BET = "place_bet"
    CLEAR_BET = "clear_bet"
    ALL_IN = "all_in"
    REBET = "rebet"
    DEAL = "deal"
    HIT = "hit"
    STAND = "stand"
    NEXT_ROUND = "next_round"
    RESET = "reset"


_BETTING_COMMANDS = frozenset(
    {
        CommandType.PLACE_BET,
        CommandType.CLEAR_BET,
        CommandType.ALL_IN,
        CommandType.REBET,
        CommandType.DEAL,
    }
)

# Commands accepted in each state; RESET is accepted everywhere
ALLOWED_COMMANDS: dict[RoundState, frozenset[CommandType]] = {
    RoundState.BETTING: _BETTING_COMMANDS | {CommandType.RESET},
    RoundState.PLAYER_TURN: frozenset({CommandType.HIT, CommandType.STAND, CommandType.RESET}),
    RoundState.ROUND_OVER: frozenset({CommandType.NEXT_ROUND, CommandType.RESET}),
}


def is_command_allowed(state: RoundState, command: CommandType) -> bool:
    """
    Check if a command may be issued in a state.

    Args:
        state: Current round state
        command: Requested command

    Returns:
        True if the command is accepted
    """
    return command in ALLOWED_COMMANDS.get(state, frozenset())
