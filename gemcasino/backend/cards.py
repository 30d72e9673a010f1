"""Deck construction, shuffling and blackjack hand evaluation."""

from __future__ import annotations

from dataclasses import dataclass

from .errors import EmptyDeckError
from .rng import RandomOutcomeSource, randbelow

SUITS = ("♠", "♥", "♦", "♣")
RANKS = ("A", "2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K")
BLACKJACK = 21


@dataclass(frozen=True)
class Card:
    suit: str
    rank: str
    rank_value: int

    def __str__(self) -> str:
        return f"{self.rank}{self.suit}"


def rank_value(rank: str) -> int:
    if rank == "A":
        return 11
    if rank in ("J", "Q", "K"):
        return 10
    return int(rank)


def make_card(label: str) -> Card:
    """Parse labels such as ``"A♠"`` or ``"10♥"``."""
    rank, suit = label[:-1], label[-1]
    if suit not in SUITS or rank not in RANKS:
        raise ValueError(f"Unknown card label: {label!r}")
    return Card(suit=suit, rank=rank, rank_value=rank_value(rank))


def build_deck() -> tuple[Card, ...]:
    """Return the 52 cards suit-major: every rank of ♠, then ♥, ♦ and ♣."""
    return tuple(Card(suit=suit, rank=rank, rank_value=rank_value(rank)) for suit in SUITS for rank in RANKS)


def shuffle_deck(deck: tuple[Card, ...], rng: RandomOutcomeSource) -> tuple[Card, ...]:
    cards = list(deck)
    for i in range(len(cards) - 1, 0, -1):
        j = randbelow(rng, i + 1)
        cards[i], cards[j] = cards[j], cards[i]
    return tuple(cards)


def fresh_deck(rng: RandomOutcomeSource) -> tuple[Card, ...]:
    return shuffle_deck(build_deck(), rng)


def draw_card(deck: tuple[Card, ...]) -> tuple[Card, tuple[Card, ...]]:
    if not deck:
        raise EmptyDeckError("No cards left in the deck")
    return deck[0], deck[1:]


def hand_value(hand: tuple[Card, ...] | list[Card]) -> int:
    total = 0
    soft_aces = 0
    for card in hand:
        total += card.rank_value
        if card.rank == "A":
            soft_aces += 1
    while total > BLACKJACK and soft_aces > 0:
        total -= 10
        soft_aces -= 1
    return total


def is_blackjack(hand: tuple[Card, ...] | list[Card]) -> bool:
    return len(hand) == 2 and hand_value(hand) == BLACKJACK


def describe_hand(hand: tuple[Card, ...] | list[Card]) -> list[str]:
    return [str(card) for card in hand]
