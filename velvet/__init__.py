"""Blackjack table rules engine - 100% UI-agnostic."""

from velvet.cards import Card, Deck, Rank, Suit
from velvet.hand import Hand, HandScore
from velvet.ledger import Ledger
from velvet.payout import Outcome, Resolution
from velvet.rules import TableRules

__all__ = [
    "Card",
    "Deck",
    "Rank",
    "Suit",
    "Hand",
    "HandScore",
    "Ledger",
    "Outcome",
    "Resolution",
    "TableRules",
]
