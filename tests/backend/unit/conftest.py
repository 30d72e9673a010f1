from __future__ import annotations

from collections.abc import Callable

import pytest

from gemcasino.backend.cards import Card, build_deck, make_card
from gemcasino.backend.rng import FixedSequenceSource


def stacked_source(top_labels: list[str]) -> FixedSequenceSource:
    """Uniform draws that make the deck shuffle put ``top_labels`` on top, in order."""
    top = [make_card(label) for label in top_labels]
    desired: list[Card] = top + [card for card in build_deck() if card not in top]
    cards = list(build_deck())
    values: list[float] = []
    for i in range(len(cards) - 1, 0, -1):
        j = cards.index(desired[i])
        values.append((j + 0.5) / (i + 1))
        cards[i], cards[j] = cards[j], cards[i]
    return FixedSequenceSource(values)


@pytest.fixture
def stacked_deck() -> Callable[[list[str]], FixedSequenceSource]:
    return stacked_source
