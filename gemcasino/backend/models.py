"""Shared result types and wager checks used by every game engine."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from .errors import InsufficientFundsError, InvalidBetError

StateT = TypeVar("StateT")


@dataclass(frozen=True)
class ActionResult(Generic[StateT]):
    """New engine state plus the signed balance delta and notification events."""

    state: StateT
    balance_delta: int = 0
    events: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class Profile:
    id: str
    username: str
    balance: int

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "username": self.username, "balance": self.balance}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Profile":
        return cls(id=str(payload["id"]), username=str(payload["username"]), balance=int(payload["balance"]))


def notification(kind: str, message: str, amount: int | None = None) -> dict[str, Any]:
    event: dict[str, Any] = {"kind": kind, "message": message}
    if amount is not None:
        event["amount"] = amount
    return event


def validate_bet(bet: Any, balance: int, label: str = "bet") -> int:
    """Return the bet as whole gems or raise when it cannot be placed."""
    if isinstance(bet, bool) or not isinstance(bet, (int, float)):
        raise InvalidBetError(f"Please enter a valid {label} amount")
    if not math.isfinite(bet) or bet <= 0 or bet != int(bet):
        raise InvalidBetError(f"Please enter a valid {label} amount")
    if bet > balance:
        raise InsufficientFundsError("Insufficient balance")
    return int(bet)
