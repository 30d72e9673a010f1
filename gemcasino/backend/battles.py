"""Case battle lifecycle and settlement.

A battle collects ``max_players`` stakes, every participant opens the same
number of cases and the participant whose final revealed item is worth the
most takes the pot minus the house fee. Battles cross the API boundary as a
tagged ``CaseBattleTicket`` and are validated before the engine touches them.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from .cases import REWARD_TIERS, CaseReel, RewardTier, case_multiplier, spin_reel
from .errors import InsufficientFundsError, InvalidActionError, InvalidConfigurationError
from .models import ActionResult, notification
from .rng import RandomOutcomeSource

logger = logging.getLogger(__name__)

FEE_RATE = 0.10
OPPONENT_PREFIX = "bot-"


class BattleStatus(str, Enum):
    WAITING = "waiting"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class CaseBattleTicket(BaseModel):
    kind: Literal["case-battle"] = "case-battle"
    id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=200)
    price_per_player: int = Field(gt=0)
    cases_to_open: int = Field(ge=1)
    max_players: int = Field(ge=2)
    participant_ids: list[str] = Field(default_factory=list)
    status: BattleStatus = BattleStatus.WAITING
    case_type: int = Field(default=0, ge=0)


@dataclass(frozen=True)
class CaseBattle:
    id: str
    name: str
    price_per_player: int
    cases_to_open: int
    max_players: int
    participant_ids: tuple[str, ...] = ()
    status: BattleStatus = BattleStatus.WAITING
    case_type: int = 0

    @property
    def current_players(self) -> int:
        return len(self.participant_ids)

    @property
    def is_full(self) -> bool:
        return self.current_players >= self.max_players

    @property
    def winner_payout(self) -> int:
        return math.floor(self.price_per_player * self.max_players * (1 - FEE_RATE))

    def to_ticket(self) -> CaseBattleTicket:
        return CaseBattleTicket(
            id=self.id,
            name=self.name,
            price_per_player=self.price_per_player,
            cases_to_open=self.cases_to_open,
            max_players=self.max_players,
            participant_ids=list(self.participant_ids),
            status=self.status,
            case_type=self.case_type,
        )

    def to_dict(self) -> dict[str, Any]:
        payload = self.to_ticket().model_dump(mode="json")
        payload["current_players"] = self.current_players
        payload["winner_payout"] = self.winner_payout
        return payload


@dataclass(frozen=True)
class CaseOpening:
    participant_id: str
    reels: tuple[CaseReel, ...]

    @property
    def final_value(self) -> int:
        return self.reels[-1].revealed.actual_value

    @property
    def total_value(self) -> int:
        return sum(reel.revealed.actual_value for reel in self.reels)

    def to_dict(self) -> dict[str, Any]:
        return {
            "participant_id": self.participant_id,
            "items": [reel.revealed.to_dict() for reel in self.reels],
            "final_value": self.final_value,
            "total_value": self.total_value,
        }


@dataclass(frozen=True)
class BattleSettlement:
    battle: CaseBattle
    openings: tuple[CaseOpening, ...]
    winner_id: str | None
    payouts: dict[str, int]

    def delta_for(self, participant_id: str) -> int:
        return self.payouts.get(participant_id, 0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "battle": self.battle.to_dict(),
            "openings": [opening.to_dict() for opening in self.openings],
            "winner_id": self.winner_id,
            "payouts": dict(self.payouts),
        }


def battle_from_ticket(payload: CaseBattleTicket | dict[str, Any]) -> CaseBattle:
    try:
        ticket = payload if isinstance(payload, CaseBattleTicket) else CaseBattleTicket.model_validate(payload)
    except ValidationError as exc:
        raise InvalidConfigurationError("Please enter valid battle details") from exc
    battle = CaseBattle(
        id=ticket.id,
        name=ticket.name,
        price_per_player=ticket.price_per_player,
        cases_to_open=ticket.cases_to_open,
        max_players=ticket.max_players,
        participant_ids=tuple(ticket.participant_ids),
        status=ticket.status,
        case_type=ticket.case_type,
    )
    if battle.current_players > battle.max_players:
        raise InvalidConfigurationError("Battle has more participants than seats")
    if len(set(battle.participant_ids)) != battle.current_players:
        raise InvalidConfigurationError("Battle participants must be unique")
    return battle


def create_battle(
    creator_id: str,
    balance: int,
    price_per_player: Any,
    cases_to_open: Any,
    max_players: Any,
    name: str = "",
    case_type: int = 0,
) -> ActionResult[CaseBattle]:
    battle = battle_from_ticket(
        {
            "id": f"battle_{uuid.uuid4().hex[:12]}",
            "name": name or f"{creator_id}'s Battle",
            "price_per_player": price_per_player,
            "cases_to_open": cases_to_open,
            "max_players": max_players,
            "participant_ids": [creator_id],
            "case_type": case_type,
        }
    )
    if battle.price_per_player > balance:
        raise InsufficientFundsError("Insufficient balance to create this battle")
    logger.info("battle %s created by %s price=%s", battle.id, creator_id, battle.price_per_player)
    return ActionResult(
        state=battle,
        balance_delta=-battle.price_per_player,
        events=[notification("info", "Battle created successfully!")],
    )


def join_battle(battle: CaseBattle, participant_id: str, balance: int) -> ActionResult[CaseBattle]:
    if battle.status is not BattleStatus.WAITING or battle.is_full:
        raise InvalidActionError("This battle is no longer accepting players")
    if participant_id in battle.participant_ids:
        raise InvalidActionError("You already joined this battle")
    if battle.price_per_player > balance:
        raise InsufficientFundsError("Insufficient balance to join this battle")
    joined = _seat(battle, (participant_id,))
    events = [notification("info", "Battle starting!")] if joined.status is BattleStatus.IN_PROGRESS else []
    return ActionResult(state=joined, balance_delta=-battle.price_per_player, events=events)


def fill_with_opponents(battle: CaseBattle) -> CaseBattle:
    """Seat simulated opponents in every empty seat, which starts the battle."""
    if battle.status is not BattleStatus.WAITING:
        raise InvalidActionError("This battle is no longer accepting players")
    taken = set(battle.participant_ids)
    opponents: list[str] = []
    counter = 1
    while battle.current_players + len(opponents) < battle.max_players:
        candidate = f"{OPPONENT_PREFIX}{counter}"
        counter += 1
        if candidate not in taken:
            opponents.append(candidate)
    return _seat(battle, tuple(opponents))


def is_simulated(participant_id: str) -> bool:
    return participant_id.startswith(OPPONENT_PREFIX)


def open_cases(
    battle: CaseBattle,
    participant_id: str,
    rng: RandomOutcomeSource,
    tiers: tuple[RewardTier, ...] = REWARD_TIERS,
    reel_length: int = 1,
    stop_index: int = 0,
) -> CaseOpening:
    multiplier = case_multiplier(battle.case_type)
    reels = tuple(
        spin_reel(rng, multiplier, battle.price_per_player, tiers, length=reel_length, stop_index=stop_index)
        for _ in range(battle.cases_to_open)
    )
    return CaseOpening(participant_id=participant_id, reels=reels)


def settle_battle(battle: CaseBattle, openings: tuple[CaseOpening, ...]) -> BattleSettlement:
    if battle.status is not BattleStatus.IN_PROGRESS:
        raise InvalidActionError("Only a full battle can be settled")
    if sorted(opening.participant_id for opening in openings) != sorted(battle.participant_ids):
        raise InvalidActionError("Every participant needs exactly one case opening")

    best = max(opening.final_value for opening in openings)
    leaders = [opening.participant_id for opening in openings if opening.final_value == best]
    if len(leaders) == 1:
        winner_id: str | None = leaders[0]
        payouts = {winner_id: battle.winner_payout}
    else:
        winner_id = None
        payouts = {participant_id: battle.price_per_player for participant_id in battle.participant_ids}

    completed = replace(battle, status=BattleStatus.COMPLETED)
    logger.info("battle %s settled winner=%s best=%s payouts=%s", battle.id, winner_id, best, payouts)
    return BattleSettlement(battle=completed, openings=openings, winner_id=winner_id, payouts=payouts)


def run_battle(
    battle: CaseBattle,
    rng: RandomOutcomeSource,
    reel_length: int = 1,
    stop_index: int = 0,
) -> BattleSettlement:
    openings = tuple(
        open_cases(battle, participant_id, rng, reel_length=reel_length, stop_index=stop_index)
        for participant_id in battle.participant_ids
    )
    return settle_battle(battle, openings)


def settlement_events(settlement: BattleSettlement, participant_id: str) -> list[dict[str, Any]]:
    amount = settlement.delta_for(participant_id)
    if settlement.winner_id is None:
        return [notification("push", "It's a tie! Your bet has been returned.", amount)]
    if settlement.winner_id == participant_id:
        return [notification("win", f"You won {amount} gems!", amount)]
    return [notification("lose", "Better luck next time!")]


def _seat(battle: CaseBattle, participant_ids: tuple[str, ...]) -> CaseBattle:
    seated = replace(battle, participant_ids=battle.participant_ids + participant_ids)
    if seated.is_full:
        seated = replace(seated, status=BattleStatus.IN_PROGRESS)
    return seated
