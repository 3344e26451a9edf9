"""Hand evaluation for blackjack."""

from dataclasses import dataclass
from typing import Iterable, Iterator, NamedTuple

from velvet.cards import Card


class HandScore(NamedTuple):
    """Best total of a hand and whether an Ace still counts as 11."""

    total: int
    is_soft: bool


def score(cards: Iterable[Card]) -> HandScore:
    """
    Calculate the best hand total.

    Every Ace starts at 11 and is softened to 1, one at a time, while the
    total is over 21. The result is the highest total that doesn't bust, or
    the lowest bust total.
    """
    total = 0
    aces = 0

    for card in cards:
        total += card.value
        if card.is_ace:
            aces += 1

    # Reduce aces from 11 to 1 as needed
    while total > 21 and aces > 0:
        total -= 10
        aces -= 1

    return HandScore(total=total, is_soft=aces > 0)


def is_blackjack(cards: Iterable[Card]) -> bool:
    """Check for a natural: exactly two cards totalling 21."""
    cards = tuple(cards)
    return len(cards) == 2 and score(cards).total == 21


@dataclass(frozen=True)
class Hand:
    """An immutable blackjack hand; drawing a card yields a new hand."""

    cards: tuple[Card, ...] = ()

    def add(self, *cards: Card) -> "Hand":
        """Return a new hand with ``cards`` appended."""
        return Hand(self.cards + tuple(cards))

    @property
    def score(self) -> HandScore:
        """Return the evaluated score of this hand."""
        return score(self.cards)

    @property
    def value(self) -> int:
        """Return the best total."""
        return self.score.total

    @property
    def is_soft(self) -> bool:
        """Check if the hand is soft (has an ace counted as 11)."""
        return self.score.is_soft

    @property
    def is_blackjack(self) -> bool:
        """Check if the hand is a natural blackjack (21 with 2 cards)."""
        return is_blackjack(self.cards)

    @property
    def is_busted(self) -> bool:
        """Check if the hand has busted (value > 21)."""
        return self.value > 21

    def __len__(self) -> int:
        return len(self.cards)

    def __iter__(self) -> Iterator[Card]:
        return iter(self.cards)

    def __str__(self) -> str:
        cards_str = " ".join(str(card) for card in self.cards)
        value_str = f"({self.value})"
        if self.is_soft:
            value_str = f"(soft {self.value})"
        if self.is_blackjack:
            value_str = "(BLACKJACK)"
        if self.is_busted:
            value_str = "(BUST)"
        return f"{cards_str} {value_str}"

    def __repr__(self) -> str:
        return f"Hand({list(self.cards)!r}, value={self.value})"
