"""Table session: owns the snapshot, the round machine and the auto-advance timer."""

import logging
from collections import deque
from dataclasses import replace
from random import Random
from typing import Any, Callable

from transitions import Machine

from velvet.cards import Deck
from velvet.errors import InsufficientBalance, TableError
from velvet.game.engine import (
    AllIn,
    ClearBet,
    Command,
    Deal,
    Hit,
    NextRound,
    PlaceBet,
    Rebet,
    Reset,
    Stand,
    TableSnapshot,
    TableView,
    transition,
)
from velvet.game.events import EventEmitter, EventType, GameEvent
from velvet.game.scheduler import ManualScheduler, ScheduledTask, Scheduler
from velvet.game.state import CommandType, RoundState
from velvet.rules import TableRules

logger = logging.getLogger(__name__)


class BlackjackTable:
    """
    A single-player blackjack table.

    Rules live in the pure ``transition`` function; this object holds the
    current snapshot, publishes events and runs the auto-advance timer.
    The round state is mirrored in a ``transitions`` machine whose
    ``round_over`` callbacks arm and cancel that timer.
    """

    # State machine states
    STATES = [
        {"name": "betting"},
        {"name": "player_turn"},
        {
            "name": "round_over",
            "on_enter": "_on_enter_round_over",
            "on_exit": "_on_exit_round_over",
        },
    ]

    # State machine transitions
    TRANSITIONS = [
        {"trigger": "begin_play", "source": "betting", "dest": "player_turn"},
        {"trigger": "settle_round", "source": "player_turn", "dest": "round_over"},
        {"trigger": "open_betting", "source": "round_over", "dest": "betting"},
        {"trigger": "restart", "source": "*", "dest": "betting"},
    ]

    def __init__(
        self,
        rules: TableRules | None = None,
        rng: Random | None = None,
        scheduler: Scheduler | None = None,
        deck: Deck | None = None,
    ) -> None:
        """
        Initialize a new table.

        Args:
            rules: Table rules (uses defaults if not provided)
            rng: Random number generator for reproducible shuffles
            scheduler: Timer source for auto-advance; a ``ManualScheduler``
                if not provided, so nothing fires until it is advanced
            deck: Starting deck, drawn from the front (shuffled if not provided)
        """
        self.rules = rules or TableRules()
        self._rng = rng or Random()
        self.scheduler = scheduler or ManualScheduler()
        self.events = EventEmitter()
        self._snapshot = TableSnapshot.opening(self.rules, self._rng, deck=deck)
        self._auto_task: ScheduledTask | None = None
        self._outbox: deque[GameEvent] = deque()
        self._publishing = False

        # Initialize state machine
        self.machine = Machine(
            model=self,
            states=self.STATES,
            transitions=self.TRANSITIONS,
            initial="betting",
            auto_transitions=False,
            model_attribute="_machine_state",
        )

    @property
    def state(self) -> RoundState:
        """Get current round state as enum."""
        return self._snapshot.round_state

    @property
    def snapshot(self) -> TableSnapshot:
        """Return the current immutable snapshot."""
        return self._snapshot

    def view(self) -> TableView:
        """Return the observable table state."""
        return self._snapshot.view()

    def subscribe(
        self,
        handler: Callable[[GameEvent], None],
        event_type: EventType | None = None,
    ) -> None:
        """Subscribe to table events."""
        self.events.subscribe(handler, event_type)

    def unsubscribe(
        self,
        handler: Callable[[GameEvent], None],
        event_type: EventType | None = None,
    ) -> None:
        """Unsubscribe from table events."""
        self.events.unsubscribe(handler, event_type)

    # Commands

    def place_bet(self, value: int) -> TableView:
        """Add a chip of ``value`` to the current bet."""
        return self.dispatch(PlaceBet(value))

    def clear_bet(self) -> TableView:
        """Take the current bet off the table."""
        return self.dispatch(ClearBet())

    def all_in(self) -> TableView:
        """Bet the whole balance."""
        return self.dispatch(AllIn())

    def rebet(self) -> TableView:
        """Repeat the last committed bet."""
        return self.dispatch(Rebet())

    def deal(self) -> TableView:
        """Commit the bet and deal the initial cards."""
        return self.dispatch(Deal())

    def hit(self) -> TableView:
        """Player takes another card."""
        return self.dispatch(Hit())

    def stand(self) -> TableView:
        """Player keeps the hand; the dealer plays out."""
        return self.dispatch(Stand())

    def next_round(self, automatic: bool = False) -> TableView:
        """Clear the table and reopen betting."""
        return self.dispatch(NextRound(automatic=automatic))

    def reset(self) -> TableView:
        """Restore the initial stake with a fresh deck."""
        return self.dispatch(Reset())

    def dispatch(self, command: Command) -> TableView:
        """
        Apply a command to the table.

        Rejected commands leave the table unchanged apart from the status
        message, emit an error event and re-raise the ``TableError``.

        The snapshot and the round machine are both updated before any
        subscriber runs. A handler may issue further commands; their events
        are delivered after the ones already queued.
        """
        before = self._snapshot
        try:
            result = transition(before, command, self.rules, self._rng)
        except TableError as exc:
            self._snapshot = replace(before, message=exc.message)
            event_type = (
                EventType.INSUFFICIENT_FUNDS
                if isinstance(exc, InsufficientBalance)
                else EventType.INVALID_ACTION
            )
            self._queue_event(
                event_type,
                error=exc.code,
                message=exc.message,
                command=command.type.value,
                state=before.round_state.name,
            )
            logger.info("rejected %s in %s: %s", command.type.value, before.round_state.name, exc.code)
            self._publish()
            raise

        self._snapshot = result.snapshot
        self._outbox.extend(result.events)
        self._sync_machine(command.type, before.round_state, result.snapshot.round_state)
        self._publish()
        return self.view()

    def close(self) -> None:
        """Cancel any pending timer; the table stays usable."""
        self._cancel_auto_advance()
        self._publish()

    # Event delivery

    def _queue_event(self, event_type: EventType, **data: Any) -> None:
        self._outbox.append(GameEvent(event_type=event_type, data=data))

    def _publish(self) -> None:
        """
        Deliver queued events in order.

        Only the outermost call delivers; nested commands issued by handlers
        just append to the queue. If a handler raises, undelivered events
        are dropped and the error propagates with the table already settled.
        """
        if self._publishing:
            return
        self._publishing = True
        try:
            while self._outbox:
                self.events.emit(self._outbox.popleft())
        except Exception:
            self._outbox.clear()
            raise
        finally:
            self._publishing = False

    # State machine mirroring

    def _sync_machine(
        self,
        command: CommandType,
        before: RoundState,
        after: RoundState,
    ) -> None:
        """Fire the machine triggers matching a completed transition."""
        if command is CommandType.RESET:
            self.restart()
            return

        if before is RoundState.BETTING and after is not RoundState.BETTING:
            self.begin_play()
        if before is not RoundState.ROUND_OVER and after is RoundState.ROUND_OVER:
            self.settle_round()
        if before is RoundState.ROUND_OVER and after is RoundState.BETTING:
            self.open_betting()

    def _on_enter_round_over(self) -> None:
        """Arm the auto-advance timer unless the balance is exhausted."""
        if self._snapshot.ledger.balance <= 0:
            logger.info("balance exhausted, waiting for reset")
            return

        round_number = self._snapshot.round_number
        delay = self.rules.auto_advance_delay
        self._auto_task = self.scheduler.call_later(delay, lambda: self._auto_advance(round_number))
        self._queue_event(
            EventType.AUTO_ADVANCE_SCHEDULED,
            delay=delay,
            round_number=round_number,
        )
        logger.debug("auto-advance for round %d in %.2fs", round_number, delay)

    def _on_exit_round_over(self) -> None:
        self._cancel_auto_advance()

    def _cancel_auto_advance(self) -> None:
        task, self._auto_task = self._auto_task, None
        if task is not None and task.pending:
            task.cancel()
            self._queue_event(EventType.AUTO_ADVANCE_CANCELLED)
            logger.debug("auto-advance cancelled")

    def _auto_advance(self, round_number: int) -> None:
        """Timer callback: start the next round with the last bet carried over."""
        if self.state is not RoundState.ROUND_OVER or self._snapshot.round_number != round_number:
            logger.debug("stale auto-advance for round %d ignored", round_number)
            return
        self.next_round(automatic=True)

    @property
    def auto_advance_pending(self) -> bool:
        """Check if the auto-advance timer is armed."""
        return self._auto_task is not None and self._auto_task.pending
