"""Card and Deck - immutable card representations and shoe operations."""

from dataclasses import dataclass
from enum import Enum
from random import Random
from typing import Iterator, Sequence

# Fewer cards than this at deal time triggers a fresh shuffled deck
DECK_REFRESH_THRESHOLD = 18


class Suit(Enum):
    """Card suits, valued by their display symbol."""

    SPADES = "♠"
    HEARTS = "♥"
    DIAMONDS = "♦"
    CLUBS = "♣"

    def __str__(self) -> str:
        return self.value

    @property
    def is_red(self) -> bool:
        """Check if this suit is printed in red."""
        return self in (Suit.HEARTS, Suit.DIAMONDS)


class Rank(Enum):
    """Card ranks, valued by their display symbol."""

    ACE = "A"
    KING = "K"
    QUEEN = "Q"
    JACK = "J"
    TEN = "10"
    NINE = "9"
    EIGHT = "8"
    SEVEN = "7"
    SIX = "6"
    FIVE = "5"
    FOUR = "4"
    THREE = "3"
    TWO = "2"

    def __str__(self) -> str:
        return self.value

    @property
    def blackjack_value(self) -> int:
        """Return the base point value (Ace = 11, face cards = 10)."""
        if self == Rank.ACE:
            return 11
        if self in (Rank.KING, Rank.QUEEN, Rank.JACK):
            return 10
        return int(self.value)

    @property
    def is_ace(self) -> bool:
        """Check if this rank is an Ace."""
        return self == Rank.ACE


@dataclass(frozen=True, slots=True)
class Card:
    """Immutable playing card."""

    rank: Rank
    suit: Suit

    def __str__(self) -> str:
        return f"{self.rank}{self.suit}"

    def __repr__(self) -> str:
        return f"Card({self.rank.name}, {self.suit.name})"

    @property
    def value(self) -> int:
        """Return the base point value; the evaluator may soften an Ace."""
        return self.rank.blackjack_value

    @property
    def is_ace(self) -> bool:
        """Check if this card is an Ace."""
        return self.rank.is_ace

    @classmethod
    def from_string(cls, s: str) -> "Card":
        """Create a card from a string like '2♣', 'AS', 'Kh', '10D'."""
        s = s.strip().upper()
        if len(s) < 2:
            raise ValueError(f"Invalid card string: {s}")

        rank_str = s[:-1]
        suit_str = s[-1]
        if rank_str == "T":
            rank_str = "10"

        suit_letters = {"S": Suit.SPADES, "H": Suit.HEARTS, "D": Suit.DIAMONDS, "C": Suit.CLUBS}

        try:
            rank = Rank(rank_str)
        except ValueError:
            raise ValueError(f"Invalid rank: {rank_str}") from None

        if suit_str in suit_letters:
            suit = suit_letters[suit_str]
        else:
            try:
                suit = Suit(suit_str)
            except ValueError:
                raise ValueError(f"Invalid suit: {suit_str}") from None

        return cls(rank, suit)


def build_deck() -> "Deck":
    """Return all 52 suit/rank combinations in suit-major order."""
    return Deck(tuple(Card(rank, suit) for suit in Suit for rank in Rank))


def shuffle(deck: "Deck", rng: Random | None = None) -> "Deck":
    """
    Return a uniformly random permutation of ``deck``.

    ``Random.shuffle`` is a Fisher-Yates shuffle; it runs on a copy so the
    input deck is left untouched.
    """
    cards = list(deck.cards)
    (rng or Random()).shuffle(cards)
    return Deck(tuple(cards))


def draw(deck: "Deck", n: int) -> tuple[tuple[Card, ...], "Deck"]:
    """
    Remove the first ``n`` cards from the front of the deck.

    Returns the drawn cards and the remaining deck. If fewer than ``n``
    cards remain, all of them are returned without error.
    """
    if n < 0:
        raise ValueError("Cannot draw a negative number of cards")
    return deck.cards[:n], Deck(deck.cards[n:])


def needs_refresh(deck: "Deck", threshold: int = DECK_REFRESH_THRESHOLD) -> bool:
    """Check if the deck has run low enough to be replaced."""
    return len(deck) < threshold


@dataclass(frozen=True)
class Deck:
    """An ordered, immutable sequence of cards; the front is drawn next."""

    cards: tuple[Card, ...] = ()

    @classmethod
    def fresh(cls, rng: Random | None = None) -> "Deck":
        """Build and shuffle a full 52-card deck."""
        return shuffle(build_deck(), rng)

    @classmethod
    def stacked(cls, cards: Sequence[Card | str]) -> "Deck":
        """Build a deck in exactly the given order (cards or card strings)."""
        return cls(tuple(c if isinstance(c, Card) else Card.from_string(c) for c in cards))

    def shuffled(self, rng: Random | None = None) -> "Deck":
        """Return a shuffled copy of this deck."""
        return shuffle(self, rng)

    def draw(self, n: int = 1) -> tuple[tuple[Card, ...], "Deck"]:
        """Draw ``n`` cards from the front."""
        return draw(self, n)

    def needs_refresh(self, threshold: int = DECK_REFRESH_THRESHOLD) -> bool:
        """Check if fewer than ``threshold`` cards remain."""
        return needs_refresh(self, threshold)

    @property
    def cards_remaining(self) -> int:
        """Return the number of cards remaining."""
        return len(self.cards)

    def __len__(self) -> int:
        return len(self.cards)

    def __iter__(self) -> Iterator[Card]:
        return iter(self.cards)
