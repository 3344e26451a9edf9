"""Blackjack round engine as a pure state-transition function."""

import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal
from fractions import Fraction
from random import Random
from typing import Any, Callable, ClassVar, NamedTuple, Union

from velvet.cards import Card, Deck
from velvet.errors import IllegalTransition, InsufficientBalance, InvalidChip, NoBalance, NoBetPlaced
from velvet.game.events import EventType, GameEvent
from velvet.game.state import CommandType, RoundState, is_command_allowed
from velvet.hand import Hand
from velvet.ledger import Ledger
from velvet.payout import Outcome, Resolution, compare_totals, credit, resolve_naturals
from velvet.rules import TableRules

logger = logging.getLogger(__name__)

OPENING_MESSAGE = "Place your chips and deal to start."


# Commands


@dataclass(frozen=True)
class PlaceBet:
    value: int
    type: ClassVar[CommandType] = CommandType.PLACE_BET


@dataclass(frozen=True)
class ClearBet:
    type: ClassVar[CommandType] = CommandType.CLEAR_BET


@dataclass(frozen=True)
class AllIn:
    type: ClassVar[CommandType] = CommandType.ALL_IN


@dataclass(frozen=True)
class Rebet:
    type: ClassVar[CommandType] = CommandType.REBET


@dataclass(frozen=True)
class Deal:
    type: ClassVar[CommandType] = CommandType.DEAL


@dataclass(frozen=True)
class Hit:
    type: ClassVar[CommandType] = CommandType.HIT


@dataclass(frozen=True)
class Stand:
    type: ClassVar[CommandType] = CommandType.STAND


@dataclass(frozen=True)
class NextRound:
    """Return to betting; ``automatic`` carries the last bet forward."""

    automatic: bool = False
    type: ClassVar[CommandType] = CommandType.NEXT_ROUND


@dataclass(frozen=True)
class Reset:
    type: ClassVar[CommandType] = CommandType.RESET


Command = Union[PlaceBet, ClearBet, AllIn, Rebet, Deal, Hit, Stand, NextRound, Reset]


# State


@dataclass(frozen=True)
class CardView:
    """A card as seen by an observer; hidden cards carry no rank or suit."""

    rank: str
    suit: str
    value: int
    hidden: bool = False

    @classmethod
    def of(cls, card: Card) -> "CardView":
        return cls(rank=str(card.rank), suit=str(card.suit), value=card.value)

    @classmethod
    def face_down(cls) -> "CardView":
        return cls(rank="?", suit="?", value=0, hidden=True)


@dataclass(frozen=True)
class TableView:
    """Everything a presentation layer may observe about the table."""

    state: RoundState
    balance: Decimal
    bet: Decimal
    last_bet: Decimal
    player_cards: tuple[CardView, ...]
    dealer_cards: tuple[CardView, ...]
    player_score: int
    player_soft: bool
    dealer_score: int | None
    reveal_dealer: bool
    message: str
    outcome: Outcome | None
    payout_multiplier: Decimal | None
    can_bet: bool
    can_deal: bool
    can_hit: bool
    can_stand: bool
    can_rebet: bool
    can_next_round: bool
    cards_remaining: int
    round_number: int


@dataclass(frozen=True)
class TableSnapshot:
    """The complete state of one table at a point in time."""

    ledger: Ledger
    deck: Deck
    round_state: RoundState = RoundState.BETTING
    player_hand: Hand = field(default_factory=Hand)
    dealer_hand: Hand = field(default_factory=Hand)
    reveal_dealer: bool = False
    message: str = OPENING_MESSAGE
    resolution: Resolution | None = None
    round_number: int = 0

    @classmethod
    def opening(
        cls,
        rules: TableRules,
        rng: Random | None = None,
        deck: Deck | None = None,
    ) -> "TableSnapshot":
        """A table with the initial stake and a freshly shuffled deck."""
        return cls(
            ledger=Ledger.opening(rules.initial_balance),
            deck=deck if deck is not None else Deck.fresh(rng),
        )

    def view(self) -> TableView:
        """Project the snapshot onto what observers are allowed to see."""
        ledger = self.ledger
        state = self.round_state

        dealer_cards = tuple(
            CardView.face_down() if i == 0 and not self.reveal_dealer else CardView.of(card)
            for i, card in enumerate(self.dealer_hand)
        )
        dealer_score = self.dealer_hand.value if self.reveal_dealer else None
        player_score = self.player_hand.score

        return TableView(
            state=state,
            balance=ledger.balance,
            bet=ledger.current_bet,
            last_bet=ledger.last_bet,
            player_cards=tuple(CardView.of(c) for c in self.player_hand),
            dealer_cards=dealer_cards,
            player_score=player_score.total,
            player_soft=player_score.is_soft,
            dealer_score=dealer_score,
            reveal_dealer=self.reveal_dealer,
            message=self.message,
            outcome=self.resolution.outcome if self.resolution else None,
            payout_multiplier=self.resolution.multiplier if self.resolution else None,
            can_bet=state is RoundState.BETTING,
            can_deal=state is RoundState.BETTING and ledger.can_deal,
            can_hit=state is RoundState.PLAYER_TURN,
            can_stand=state is RoundState.PLAYER_TURN,
            can_rebet=(
                state is RoundState.BETTING and 0 < ledger.last_bet <= ledger.balance
            ),
            can_next_round=state is RoundState.ROUND_OVER and ledger.balance > 0,
            cards_remaining=len(self.deck),
            round_number=self.round_number,
        )


class Transition(NamedTuple):
    """The new snapshot and the events produced on the way to it."""

    snapshot: TableSnapshot
    events: tuple[GameEvent, ...]


class _Effects:
    """Collects events and context while a single transition runs."""

    def __init__(self, rules: TableRules, rng: Random | None) -> None:
        self.rules = rules
        self.rng = rng
        self.events: list[GameEvent] = []

    def emit(self, event_type: EventType, **data: Any) -> None:
        self.events.append(GameEvent(event_type=event_type, data=data))

    def money(self, amount: Decimal) -> str:
        return self.rules.format_amount(amount)


def transition(
    snapshot: TableSnapshot,
    command: Command,
    rules: TableRules,
    rng: Random | None = None,
) -> Transition:
    """
    Apply one command to a table snapshot.

    The input snapshot is never modified. Rejected commands raise a
    ``TableError`` subclass and produce no events.

    Args:
        snapshot: Current table state
        command: Command issued by the player
        rules: Table rules and constants
        rng: Random source for deck shuffles

    Returns:
        The resulting snapshot and the events emitted along the way
    """
    if not is_command_allowed(snapshot.round_state, command.type):
        raise IllegalTransition(
            f"Cannot {command.type.value.replace('_', ' ')} during {snapshot.round_state}."
        )

    effects = _Effects(rules, rng)
    handler = _HANDLERS[command.type]
    new_snapshot = handler(snapshot, command, effects)
    return Transition(new_snapshot, tuple(effects.events))


# Betting phase


def _place_bet(snapshot: TableSnapshot, command: PlaceBet, fx: _Effects) -> TableSnapshot:
    if command.value not in fx.rules.chip_values:
        raise InvalidChip(f"{fx.money(Decimal(command.value))} is not a table chip.")

    ledger = snapshot.ledger.add_chip(command.value)
    fx.emit(EventType.BET_PLACED, chip=command.value, bet=float(ledger.current_bet))
    return replace(snapshot, ledger=ledger, message=f"Bet: {fx.money(ledger.current_bet)}.")


def _clear_bet(snapshot: TableSnapshot, command: ClearBet, fx: _Effects) -> TableSnapshot:
    fx.emit(EventType.BET_CLEARED)
    return replace(snapshot, ledger=snapshot.ledger.clear_bet(), message="Bet cleared.")


def _all_in(snapshot: TableSnapshot, command: AllIn, fx: _Effects) -> TableSnapshot:
    ledger = snapshot.ledger.all_in()
    fx.emit(EventType.BET_PLACED, chip=None, bet=float(ledger.current_bet))
    return replace(snapshot, ledger=ledger, message="All in. Are you sure?")


def _rebet(snapshot: TableSnapshot, command: Rebet, fx: _Effects) -> TableSnapshot:
    ledger = snapshot.ledger.rebet()
    fx.emit(EventType.BET_PLACED, chip=None, bet=float(ledger.current_bet))
    return replace(snapshot, ledger=ledger, message="Last bet placed again.")


def _deal(snapshot: TableSnapshot, command: Deal, fx: _Effects) -> TableSnapshot:
    ledger = snapshot.ledger
    if ledger.current_bet <= 0:
        raise NoBetPlaced("Check your bet amount.")
    if ledger.current_bet > ledger.balance:
        raise InsufficientBalance("Check your bet amount.")

    deck = snapshot.deck
    if deck.needs_refresh(fx.rules.refresh_threshold):
        deck = Deck.fresh(fx.rng)
        fx.emit(EventType.SHOE_SHUFFLED, cards_remaining=len(deck))
        logger.debug("deck refreshed at %d cards", len(snapshot.deck))

    # The stake leaves the balance before any card is seen
    ledger = ledger.commit_bet()
    fx.emit(EventType.BET_COMMITTED, amount=float(ledger.last_bet), balance=float(ledger.balance))

    player_cards, deck = deck.draw(2)
    dealer_cards, deck = deck.draw(2)
    player = Hand(player_cards)
    dealer = Hand(dealer_cards)

    for card in player_cards:
        fx.emit(EventType.CARD_DEALT, hand="player", card=str(card))
    # The dealer's first card is the hole card
    for i, card in enumerate(dealer_cards):
        fx.emit(EventType.CARD_DEALT, hand="dealer", card="??" if i == 0 else str(card))

    round_number = snapshot.round_number + 1
    fx.emit(EventType.ROUND_STARTED, round_number=round_number, bet=float(ledger.last_bet))
    logger.info("round %d dealt, bet %s", round_number, ledger.last_bet)

    snapshot = replace(
        snapshot,
        ledger=ledger,
        deck=deck,
        player_hand=player,
        dealer_hand=dealer,
        round_state=RoundState.PLAYER_TURN,
        reveal_dealer=False,
        resolution=None,
        round_number=round_number,
        message="Hit or stand?",
    )

    player_bj = player.is_blackjack
    dealer_bj = dealer.is_blackjack
    resolution = resolve_naturals(player_bj, dealer_bj, fx.rules.blackjack_payout)
    if resolution is None:
        return snapshot

    if player_bj:
        fx.emit(EventType.PLAYER_BLACKJACK)
    if dealer_bj:
        fx.emit(EventType.DEALER_BLACKJACK)
    fx.emit(EventType.DEALER_REVEALS, card=str(dealer.cards[0]), hand_value=dealer.value)

    if player_bj and dealer_bj:
        message = "Both have blackjack. Push."
    elif player_bj:
        ratio = Fraction(fx.rules.blackjack_payout)
        message = f"Blackjack! Paid {ratio.numerator}:{ratio.denominator}."
    else:
        message = "Dealer has blackjack."
    return _finish_round(snapshot, resolution, message, fx)


# Player turn


def _hit(snapshot: TableSnapshot, command: Hit, fx: _Effects) -> TableSnapshot:
    cards, deck = snapshot.deck.draw(1)
    player = snapshot.player_hand.add(*cards)
    for card in cards:
        fx.emit(EventType.CARD_DEALT, hand="player", card=str(card))
    fx.emit(EventType.PLAYER_HIT, hand_value=player.value)

    snapshot = replace(snapshot, deck=deck, player_hand=player)

    if player.is_busted:
        dealer = snapshot.dealer_hand
        fx.emit(EventType.PLAYER_BUSTS, hand_value=player.value)
        fx.emit(EventType.DEALER_REVEALS, card=str(dealer.cards[0]), hand_value=dealer.value)
        return _finish_round(snapshot, Resolution.lose(), "Bust. Dealer wins.", fx)

    # A drawn 21 cannot improve; it stands with no bonus
    if player.value == 21:
        return _stand(snapshot, Stand(), fx)

    return replace(snapshot, message="Hit or stand?")


def _stand(snapshot: TableSnapshot, command: Stand, fx: _Effects) -> TableSnapshot:
    fx.emit(EventType.PLAYER_STAND, hand_value=snapshot.player_hand.value)
    snapshot = _play_dealer(snapshot, fx)

    player_total = snapshot.player_hand.value
    dealer_total = snapshot.dealer_hand.value
    resolution = compare_totals(player_total, dealer_total)

    if resolution.outcome is Outcome.WIN:
        message = "Dealer busts. You win!" if dealer_total > 21 else "You win! Chips collected."
    elif resolution.outcome is Outcome.LOSE:
        message = "So close. Dealer wins."
    else:
        message = "Push. Your bet is returned."
    return _finish_round(snapshot, resolution, message, fx)


def _play_dealer(snapshot: TableSnapshot, fx: _Effects) -> TableSnapshot:
    """Reveal the hole card and draw until the stand total is reached."""
    dealer = snapshot.dealer_hand
    deck = snapshot.deck
    fx.emit(EventType.DEALER_REVEALS, card=str(dealer.cards[0]), hand_value=dealer.value)

    # Stands on every 17, soft or hard
    while dealer.value < fx.rules.dealer_stand_total:
        cards, deck = deck.draw(1)
        if not cards:
            logger.warning("deck exhausted during dealer play at %d", dealer.value)
            break
        dealer = dealer.add(*cards)
        fx.emit(EventType.CARD_DEALT, hand="dealer", card=str(cards[0]))
        fx.emit(EventType.DEALER_HITS, hand_value=dealer.value)

    if dealer.is_busted:
        fx.emit(EventType.DEALER_BUSTS, hand_value=dealer.value)
    else:
        fx.emit(EventType.DEALER_STANDS, hand_value=dealer.value)

    return replace(snapshot, deck=deck, dealer_hand=dealer, reveal_dealer=True)


def _finish_round(
    snapshot: TableSnapshot,
    resolution: Resolution,
    message: str,
    fx: _Effects,
) -> TableSnapshot:
    """Settle the bet and close the round."""
    bet = snapshot.ledger.current_bet
    ledger = snapshot.ledger.settle(resolution)
    paid = credit(bet, resolution)

    outcome_events = {
        Outcome.WIN: EventType.PLAYER_WINS,
        Outcome.LOSE: EventType.PLAYER_LOSES,
        Outcome.PUSH: EventType.PUSH,
    }
    fx.emit(
        outcome_events[resolution.outcome],
        bet=float(bet),
        multiplier=float(resolution.multiplier),
        credited=float(paid),
    )
    fx.emit(
        EventType.ROUND_ENDED,
        outcome=resolution.outcome.value,
        result=float(paid - bet),
        bankroll=float(ledger.balance),
        player_value=snapshot.player_hand.value,
        dealer_value=snapshot.dealer_hand.value,
    )
    logger.info(
        "round %d %s: player %d dealer %d balance %s",
        snapshot.round_number,
        resolution.outcome,
        snapshot.player_hand.value,
        snapshot.dealer_hand.value,
        ledger.balance,
    )

    return replace(
        snapshot,
        ledger=ledger,
        round_state=RoundState.ROUND_OVER,
        reveal_dealer=True,
        resolution=resolution,
        message=message,
    )


# Round over


def _next_round(snapshot: TableSnapshot, command: NextRound, fx: _Effects) -> TableSnapshot:
    if snapshot.ledger.balance <= 0:
        raise NoBalance("No balance left. Reset the table.")

    ledger = snapshot.ledger.for_next_round(automatic=command.automatic)
    fx.emit(EventType.BETTING_OPENED, automatic=command.automatic, bet=float(ledger.current_bet))
    return replace(
        snapshot,
        ledger=ledger,
        round_state=RoundState.BETTING,
        player_hand=Hand(),
        dealer_hand=Hand(),
        reveal_dealer=False,
        resolution=None,
        message="Place your next bet.",
    )


def _reset(snapshot: TableSnapshot, command: Reset, fx: _Effects) -> TableSnapshot:
    fresh = TableSnapshot.opening(fx.rules, fx.rng)
    fx.emit(EventType.SHOE_SHUFFLED, cards_remaining=len(fresh.deck))
    fx.emit(EventType.TABLE_RESET, balance=float(fresh.ledger.balance))
    logger.info("table reset to %s", fresh.ledger.balance)
    # Keep counting rounds so timers from before the reset stay stale
    return replace(fresh, round_number=snapshot.round_number, message="Welcome back to the table.")


_HANDLERS: dict[CommandType, Callable[[TableSnapshot, Any, _Effects], TableSnapshot]] = {
    CommandType.PLACE_BET: _place_bet,
    CommandType.CLEAR_BET: _clear_bet,
    CommandType.ALL_IN: _all_in,
    CommandType.REBET: _rebet,
    CommandType.DEAL: _deal,
    CommandType.HIT: _hit,
    CommandType.STAND: _stand,
    CommandType.NEXT_ROUND: _next_round,
    CommandType.RESET: _reset,
}
