"""Gem rain: a timed pool split equally between everyone who joined in time.

``Rain`` values are immutable; ``RainScheduler`` owns the current rain and
moves it through pending, active and completed on scheduler ticks.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .errors import InvalidActionError, InvalidConfigurationError
from .models import notification
from .scheduler import TickScheduler

logger = logging.getLogger(__name__)

DEFAULT_TOTAL_AMOUNT = 5000
DEFAULT_COUNTDOWN_SECONDS = 30 * 60
DEFAULT_DISPLAY_SECONDS = 3
RAIN_OWNER = "rain"


class RainStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Rain:
    id: str
    total_amount: int
    time_remaining_seconds: int
    participant_ids: tuple[str, ...] = ()
    status: RainStatus = RainStatus.PENDING
    distributed_at: datetime | None = None
    amount_per_participant: int | None = None

    @property
    def participants_count(self) -> int:
        return len(self.participant_ids)

    @property
    def undistributed(self) -> int:
        if self.amount_per_participant is None:
            return 0
        return self.total_amount - self.amount_per_participant * self.participants_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "totalAmount": self.total_amount,
            "participantsCount": self.participants_count,
            "status": self.status.value,
            "timeRemaining": self.time_remaining_seconds,
            "distributedAt": self.distributed_at.isoformat() if self.distributed_at else None,
            "amountPerParticipant": self.amount_per_participant,
        }


def join_rain(rain: Rain, participant_id: str) -> Rain:
    """Return the rain with the participant added; unchanged when joining is not possible."""
    if rain.status is not RainStatus.PENDING or participant_id in rain.participant_ids:
        return rain
    return replace(rain, participant_ids=rain.participant_ids + (participant_id,))


def countdown(rain: Rain) -> Rain:
    if rain.status is not RainStatus.PENDING or rain.time_remaining_seconds <= 0:
        return rain
    return replace(rain, time_remaining_seconds=rain.time_remaining_seconds - 1)


def begin_distribution(rain: Rain) -> Rain:
    if rain.status is not RainStatus.PENDING:
        raise InvalidActionError("Only a pending rain can start distributing")
    if not rain.participant_ids:
        raise InvalidActionError("A rain without participants is discarded, not distributed")
    return replace(rain, status=RainStatus.ACTIVE)


def complete_distribution(rain: Rain, distributed_at: datetime) -> Rain:
    if rain.status is not RainStatus.ACTIVE:
        raise InvalidActionError("Only an active rain can complete")
    # The floor remainder stays undistributed.
    amount = rain.total_amount // rain.participants_count
    return replace(
        rain,
        status=RainStatus.COMPLETED,
        distributed_at=distributed_at,
        amount_per_participant=amount,
    )


class RainScheduler:
    def __init__(
        self,
        scheduler: TickScheduler,
        credit: Callable[[str, int, dict[str, Any]], None],
        total_amount: int = DEFAULT_TOTAL_AMOUNT,
        countdown_seconds: int = DEFAULT_COUNTDOWN_SECONDS,
        interval_seconds: int = DEFAULT_COUNTDOWN_SECONDS,
        display_seconds: float = DEFAULT_DISPLAY_SECONDS,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        if total_amount <= 0 or countdown_seconds <= 0 or interval_seconds <= 0:
            raise InvalidConfigurationError("Rain amount, countdown and interval must be positive")
        self._scheduler = scheduler
        self._credit = credit
        self._total_amount = total_amount
        self._countdown_seconds = countdown_seconds
        self._interval_seconds = interval_seconds
        self._display_seconds = display_seconds
        self._now = now if now is not None else (lambda: datetime.now(timezone.utc))
        self._sequence = 0
        self._started_at = 0.0
        self.current: Rain | None = None
        self.history: list[Rain] = []

    def start(self) -> Rain:
        if self.current is not None:
            return self.current
        rain = self._begin_new_rain()
        self._scheduler.call_every(1, self._tick, owner=RAIN_OWNER)
        self._scheduler.call_every(self._interval_seconds, self._on_interval, owner=RAIN_OWNER)
        return rain

    def join(self, participant_id: str) -> bool:
        if self.current is None:
            return False
        joined = join_rain(self.current, participant_id)
        if joined is self.current:
            return False
        self.current = joined
        logger.info("rain %s joined by %s (%s participants)", joined.id, participant_id, joined.participants_count)
        return True

    def _begin_new_rain(self) -> Rain:
        self._sequence += 1
        self._started_at = self._scheduler.now()
        self.current = Rain(
            id=f"rain_{self._sequence}",
            total_amount=self._total_amount,
            time_remaining_seconds=self._countdown_seconds,
        )
        logger.info("rain %s started with %s gems", self.current.id, self._total_amount)
        return self.current

    def _tick(self) -> None:
        rain = self.current
        if rain is None or rain.status is not RainStatus.PENDING:
            return
        if self._started_at >= self._scheduler.now():
            return
        rain = countdown(rain)
        self.current = rain
        if rain.time_remaining_seconds > 0:
            return
        if not rain.participant_ids:
            logger.info("rain %s expired without participants, discarded", rain.id)
            self._begin_new_rain()
            return
        self.current = begin_distribution(rain)
        self._scheduler.call_later(self._display_seconds, self._complete, owner=RAIN_OWNER)

    def _complete(self) -> None:
        rain = self.current
        if rain is None or rain.status is not RainStatus.ACTIVE:
            return
        completed = complete_distribution(rain, self._now())
        amount = completed.amount_per_participant or 0
        for participant_id in completed.participant_ids:
            self._credit(
                participant_id,
                amount,
                notification("win", f"Rain completed! You received {amount} gems from the rain.", amount),
            )
        logger.info(
            "rain %s distributed %s gems to %s participants, %s undistributed",
            completed.id,
            amount,
            completed.participants_count,
            completed.undistributed,
        )
        self.history.append(completed)
        self._begin_new_rain()

    def _on_interval(self) -> None:
        rain = self.current
        if rain is None or self._started_at >= self._scheduler.now():
            return
        # Joined participants and a running distribution are never thrown away.
        if rain.status is RainStatus.PENDING and not rain.participant_ids:
            self._begin_new_rain()
