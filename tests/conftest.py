"""Pytest fixtures for table engine tests."""

import pytest
from random import Random

from velvet.cards import Card, Deck, build_deck
from velvet.game import BlackjackTable, ManualScheduler
from velvet.hand import Hand
from velvet.rules import TableRules


def _stacked_deck(*cards: str) -> Deck:
    """
    A deck that deals ``cards`` first.

    The rest of a standard deck follows in build order, so the deck stays
    above the refresh threshold and never repeats a card.
    """
    front = [Card.from_string(c) for c in cards]
    rest = [c for c in build_deck() if c not in front]
    return Deck(tuple(front + rest))


def _hand_of(*cards: str) -> Hand:
    """Build a hand from card strings like 'AS', 'K♥'."""
    return Hand(tuple(Card.from_string(c) for c in cards))


@pytest.fixture
def stacked_deck():
    """Builder for decks that deal known cards first."""
    return _stacked_deck


@pytest.fixture
def hand_of():
    """Builder for hands from card strings."""
    return _hand_of


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return Random(42)


@pytest.fixture
def rules():
    """Default table rules."""
    return TableRules()


@pytest.fixture
def deck(rng):
    """A shuffled deck."""
    return Deck.fresh(rng)


@pytest.fixture
def scheduler():
    """A virtual-clock scheduler."""
    return ManualScheduler()


@pytest.fixture
def make_table(rng, scheduler):
    """Factory for a table whose deck deals the given cards first."""

    def _make(*cards: str, rules: TableRules | None = None) -> BlackjackTable:
        return BlackjackTable(
            rules=rules,
            rng=rng,
            scheduler=scheduler,
            deck=_stacked_deck(*cards) if cards else None,
        )

    return _make


@pytest.fixture
def table(make_table):
    """A table with a shuffled deck."""
    return make_table()


@pytest.fixture
def blackjack_hand():
    """A natural blackjack hand."""
    return _hand_of("AS", "KH")


@pytest.fixture
def soft_17_hand():
    """A soft 17 hand (A-6)."""
    return _hand_of("AS", "6H")


@pytest.fixture
def hard_16_hand():
    """A hard 16 hand (10-6)."""
    return _hand_of("10S", "6H")


@pytest.fixture
def bust_hand():
    """A busted hand."""
    return _hand_of("10S", "6H", "KC")
