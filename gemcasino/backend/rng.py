"""Injectable sources of uniform randomness.

Every chance event in the engines is derived from ``uniform()`` so tests can
replace the source with a fixed sequence and replay exact outcomes.
"""

from __future__ import annotations

import random
from collections.abc import Iterable
from typing import Protocol


class RandomOutcomeSource(Protocol):
    def uniform(self) -> float:
        """Return a float in [0, 1)."""


class SystemRandomSource:
    def __init__(self, seed: int | None = None) -> None:
        self._random = random.Random(seed)

    def uniform(self) -> float:
        return self._random.random()


class FixedSequenceSource:
    """Replays the given values in order, wrapping around at the end."""

    def __init__(self, values: Iterable[float]) -> None:
        self._values = [float(value) for value in values]
        if not self._values:
            raise ValueError("FixedSequenceSource needs at least one value")
        for value in self._values:
            if not 0.0 <= value < 1.0:
                raise ValueError(f"value {value!r} is outside [0, 1)")
        self._index = 0

    @property
    def consumed(self) -> int:
        return self._index

    def uniform(self) -> float:
        value = self._values[self._index % len(self._values)]
        self._index += 1
        return value


def randbelow(rng: RandomOutcomeSource, upper: int) -> int:
    """Uniform integer in [0, upper)."""
    if upper <= 0:
        raise ValueError("upper must be positive")
    return min(int(rng.uniform() * upper), upper - 1)
