"""Weighted reward tiers and case reels."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from .errors import InvalidConfigurationError
from .rng import RandomOutcomeSource

REEL_LENGTH = 100
REEL_STOP_INDEX = 80


@dataclass(frozen=True)
class RewardTier:
    name: str
    value_factor: float
    probability: float


@dataclass(frozen=True)
class SampledReward:
    tier: RewardTier
    actual_value: int

    def to_dict(self) -> dict[str, Any]:
        return {"tier": self.tier.name, "valueFactor": self.tier.value_factor, "actualValue": self.actual_value}


@dataclass(frozen=True)
class CaseReel:
    """Items shown while a case spins; the item at ``stop_index`` is the one won."""

    items: tuple[SampledReward, ...]
    stop_index: int

    @property
    def revealed(self) -> SampledReward:
        return self.items[self.stop_index]


def validate_tiers(tiers: Sequence[RewardTier]) -> tuple[RewardTier, ...]:
    if not tiers:
        raise InvalidConfigurationError("At least one reward tier is required")
    for tier in tiers:
        if tier.probability < 0 or tier.value_factor < 0:
            raise InvalidConfigurationError(f"Tier {tier.name!r} has a negative probability or value")
    total = sum(tier.probability for tier in tiers)
    if not math.isclose(total, 1.0, abs_tol=1e-9):
        raise InvalidConfigurationError(f"Tier probabilities sum to {total}, expected 1.0")
    return tuple(tiers)


REWARD_TIERS = validate_tiers(
    (
        RewardTier(name="Common", value_factor=0.5, probability=0.5),
        RewardTier(name="Uncommon", value_factor=1.0, probability=0.25),
        RewardTier(name="Rare", value_factor=2.0, probability=0.15),
        RewardTier(name="Epic", value_factor=5.0, probability=0.07),
        RewardTier(name="Legendary", value_factor=10.0, probability=0.03),
    )
)


def case_multiplier(case_type: int) -> float:
    return (case_type + 1) * 0.2


def pick_tier(u: float, tiers: Sequence[RewardTier] = REWARD_TIERS) -> RewardTier:
    cumulative = 0.0
    for tier in tiers:
        cumulative += tier.probability
        if u < cumulative:
            return tier
    # Rounding can leave the last bound a hair below 1.0.
    return tiers[-1]


def sample_reward(
    rng: RandomOutcomeSource,
    case_multiplier: float,
    base_price: int,
    tiers: Sequence[RewardTier] = REWARD_TIERS,
) -> SampledReward:
    tier = pick_tier(rng.uniform(), tiers)
    return SampledReward(tier=tier, actual_value=math.floor(tier.value_factor * case_multiplier * base_price))


def spin_reel(
    rng: RandomOutcomeSource,
    case_multiplier: float,
    base_price: int,
    tiers: Sequence[RewardTier] = REWARD_TIERS,
    length: int = REEL_LENGTH,
    stop_index: int = REEL_STOP_INDEX,
) -> CaseReel:
    if not 0 <= stop_index < length:
        raise InvalidConfigurationError("Reel stop index must fall inside the reel")
    items = tuple(sample_reward(rng, case_multiplier, base_price, tiers) for _ in range(length))
    return CaseReel(items=items, stop_index=stop_index)
