"""Tests for the table session and auto-advance."""

import pytest

from velvet.errors import IllegalTransition, InsufficientBalance, NoBalance, NoPriorBet
from velvet.game.events import EventType
from velvet.game.state import RoundState
from velvet.payout import Outcome
from velvet.rules import TableRules


@pytest.fixture
def recorder():
    """Collects every event a table publishes."""

    class Recorder:
        def __init__(self):
            self.events = []

        def __call__(self, event):
            self.events.append(event)

        @property
        def types(self):
            return [e.event_type for e in self.events]

    return Recorder()


class TestCommands:
    """Tests for commands issued through the session."""

    def test_initial_state(self, table):
        """Test a new table waits for a bet."""
        view = table.view()
        assert table.state is RoundState.BETTING
        assert view.balance == 2000
        assert view.bet == 0
        assert view.message == "Place your chips and deal to start."
        assert view.cards_remaining == 52
        assert table._machine_state == "betting"

    def test_full_round(self, make_table, recorder):
        """Test bet, deal and stand through the session."""
        table = make_table("10S", "9H", "10D", "7S")
        table.subscribe(recorder)

        table.place_bet(100)
        view = table.deal()
        assert view.state is RoundState.PLAYER_TURN
        assert table._machine_state == "player_turn"

        view = table.stand()
        assert view.state is RoundState.ROUND_OVER
        assert view.outcome is Outcome.WIN
        assert view.balance == 2100
        assert table._machine_state == "round_over"
        assert EventType.ROUND_ENDED in recorder.types

    def test_hit_to_21_wins(self, make_table):
        """Test A-A against K-8, hit 9 ends the round at 2100."""
        table = make_table("AS", "AH", "KS", "8S", "9C")
        table.place_bet(100)
        table.deal()
        view = table.hit()
        assert view.state is RoundState.ROUND_OVER
        assert view.player_score == 21
        assert view.dealer_score == 18
        assert view.balance == 2100

    def test_natural_on_deal_goes_straight_to_round_over(self, make_table):
        """Test the machine follows a deal that resolves immediately."""
        table = make_table("AS", "KH", "9S", "8S")
        table.place_bet(100)
        view = table.deal()
        assert view.state is RoundState.ROUND_OVER
        assert view.balance == 2150
        assert table._machine_state == "round_over"

    def test_unsubscribe(self, table, recorder):
        """Test an unsubscribed handler gets nothing."""
        table.subscribe(recorder)
        table.unsubscribe(recorder)
        table.place_bet(25)
        assert recorder.events == []

    def test_subscribe_to_one_type(self, table, recorder):
        """Test type-filtered subscriptions."""
        table.subscribe(recorder, EventType.BET_CLEARED)
        table.place_bet(25)
        table.clear_bet()
        assert recorder.types == [EventType.BET_CLEARED]


class TestRejectedCommands:
    """Tests for commands the table refuses."""

    def test_illegal_command_keeps_state(self, table, recorder):
        """Test a rejected hit changes only the message."""
        table.subscribe(recorder)
        table.place_bet(25)
        before = table.snapshot

        with pytest.raises(IllegalTransition):
            table.hit()

        after = table.snapshot
        assert after.message == "Cannot hit during Betting."
        assert after.ledger == before.ledger
        assert after.deck == before.deck
        assert after.round_state is before.round_state
        assert recorder.types[-1] is EventType.INVALID_ACTION
        assert recorder.events[-1].data["error"] == "illegal_transition"

    def test_insufficient_funds_event(self, make_table, recorder):
        """Test an over-balance chip publishes an insufficient-funds event."""
        table = make_table(rules=TableRules(initial_balance=100))
        table.subscribe(recorder)
        table.place_bet(100)

        with pytest.raises(InsufficientBalance):
            table.place_bet(5)

        assert table.view().bet == 100
        assert recorder.types[-1] is EventType.INSUFFICIENT_FUNDS

    def test_rebet_without_history(self, table, recorder):
        """Test rebet on a fresh table is rejected."""
        table.subscribe(recorder)
        with pytest.raises(NoPriorBet):
            table.rebet()
        assert recorder.types == [EventType.INVALID_ACTION]

    def test_all_in_bust_then_reset(self, make_table):
        """Test a lost all-in blocks the next round until reset."""
        table = make_table("10S", "6H", "9S", "8S", "KC")
        table.all_in()
        table.deal()
        view = table.hit()
        assert view.balance == 0
        assert not view.can_next_round

        with pytest.raises(NoBalance):
            table.next_round()
        assert table.view().message == "No balance left. Reset the table."

        view = table.reset()
        assert view.state is RoundState.BETTING
        assert view.balance == 2000
        assert table._machine_state == "betting"


class TestAutoAdvance:
    """Tests for the timer that opens the next round."""

    def _win_round(self, table):
        table.place_bet(100)
        table.deal()
        table.stand()

    def test_fires_after_delay(self, make_table, scheduler, recorder):
        """Test the next round opens once the delay has passed."""
        table = make_table("10S", "9H", "10D", "7S")
        table.subscribe(recorder)
        self._win_round(table)

        assert table.auto_advance_pending
        assert EventType.AUTO_ADVANCE_SCHEDULED in recorder.types

        scheduler.advance(1.0)
        assert table.state is RoundState.ROUND_OVER

        scheduler.advance(1.5)
        view = table.view()
        assert view.state is RoundState.BETTING
        assert view.bet == 100
        assert len(view.player_cards) == 0
        assert not table.auto_advance_pending
        assert table._machine_state == "betting"

    def test_carried_bet_capped_at_balance(self, make_table, scheduler):
        """Test the carried bet shrinks to what is left."""
        table = make_table("10S", "6H", "9S", "8S", "KC", rules=TableRules(initial_balance=600))
        table.place_bet(500)
        table.deal()
        table.hit()
        assert table.view().balance == 100

        scheduler.advance(2.2)
        view = table.view()
        assert view.state is RoundState.BETTING
        assert view.bet == 100
        assert view.last_bet == 500

    def test_manual_next_round_cancels(self, make_table, scheduler, recorder):
        """Test a manual next round cancels the pending timer."""
        table = make_table("10S", "9H", "10D", "7S")
        table.subscribe(recorder)
        self._win_round(table)

        view = table.next_round()
        assert view.bet == 0
        assert not table.auto_advance_pending
        assert EventType.AUTO_ADVANCE_CANCELLED in recorder.types

        assert scheduler.advance(5.0) == 0
        assert table.view().bet == 0

    def test_reset_cancels(self, make_table, scheduler):
        """Test reset cancels the pending timer."""
        table = make_table("10S", "9H", "10D", "7S")
        self._win_round(table)

        table.reset()
        assert not table.auto_advance_pending
        assert scheduler.pending == []
        assert scheduler.advance(5.0) == 0
        assert table.view().balance == 2000

    def test_not_armed_without_balance(self, make_table, scheduler, recorder):
        """Test nothing is scheduled once the balance is gone."""
        table = make_table("10S", "6H", "9S", "8S", "KC")
        table.subscribe(recorder)
        table.all_in()
        table.deal()
        table.hit()

        assert not table.auto_advance_pending
        assert EventType.AUTO_ADVANCE_SCHEDULED not in recorder.types
        assert scheduler.advance(10.0) == 0
        assert table.state is RoundState.ROUND_OVER

    def test_stale_callback_ignored(self, make_table):
        """Test a callback for an earlier round does nothing."""
        table = make_table("10S", "9H", "10D", "7S")
        self._win_round(table)
        assert table.view().round_number == 1

        table._auto_advance(0)
        assert table.state is RoundState.ROUND_OVER

    def test_close_cancels(self, make_table, scheduler):
        """Test closing the table stops the timer."""
        table = make_table("10S", "9H", "10D", "7S")
        self._win_round(table)

        table.close()
        assert not table.auto_advance_pending
        assert scheduler.advance(5.0) == 0

    def test_custom_delay(self, make_table, scheduler):
        """Test the delay comes from the rules."""
        table = make_table("10S", "9H", "10D", "7S", rules=TableRules(auto_advance_delay=0.5))
        self._win_round(table)
        scheduler.advance(0.5)
        assert table.state is RoundState.BETTING

    def test_repeated_rounds_on_timer(self, make_table, scheduler):
        """Test the carried bet can be dealt straight away."""
        table = make_table("10S", "9H", "10D", "7S")
        self._win_round(table)
        scheduler.advance(2.2)

        view = table.deal()
        assert view.round_number == 2
        assert view.last_bet == 100


class TestSubscribers:
    """Tests for handlers that act on the table they listen to."""

    def test_handler_starts_next_round(self, make_table, scheduler, recorder):
        """Test a round-ended handler can open the next round itself."""
        table = make_table("AS", "AH", "KD", "9C", "9S")
        table.subscribe(recorder)
        table.subscribe(lambda event: table.next_round(), EventType.ROUND_ENDED)

        table.place_bet(100)
        table.deal()
        view = table.hit()

        assert view.state is RoundState.BETTING
        assert view.balance == 2100
        assert table._machine_state == "betting"
        assert not table.auto_advance_pending
        assert scheduler.pending == []
        assert scheduler.advance(5.0) == 0

        types = recorder.types
        assert (
            types.index(EventType.ROUND_ENDED)
            < types.index(EventType.AUTO_ADVANCE_SCHEDULED)
            < types.index(EventType.BETTING_OPENED)
            < types.index(EventType.AUTO_ADVANCE_CANCELLED)
        )

        table.place_bet(100)
        view = table.deal()
        assert view.state in (RoundState.PLAYER_TURN, RoundState.ROUND_OVER)
        assert table._machine_state == view.state.name.lower()

    def test_failing_handler_leaves_table_settled(self, make_table, scheduler, recorder):
        """Test an exception from a handler propagates without wedging the round."""
        table = make_table("10S", "9H", "10D", "7S")

        def broken(event):
            raise RuntimeError("display went away")

        table.subscribe(broken, EventType.PLAYER_WINS)
        table.subscribe(recorder)
        table.place_bet(100)
        table.deal()

        with pytest.raises(RuntimeError):
            table.stand()

        assert table.state is RoundState.ROUND_OVER
        assert table.view().balance == 2100
        assert table._machine_state == "round_over"
        assert table.auto_advance_pending
        assert EventType.ROUND_ENDED not in recorder.types

        table.unsubscribe(broken, EventType.PLAYER_WINS)
        scheduler.advance(2.2)
        view = table.view()
        assert view.state is RoundState.BETTING
        assert view.bet == 100
        assert table._machine_state == "betting"
        assert EventType.BETTING_OPENED in recorder.types
