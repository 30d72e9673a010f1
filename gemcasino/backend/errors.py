"""Typed errors raised when an engine rejects an action.

Every error leaves the engine state untouched, so callers can surface the
message and carry on with the previous state.
"""

from __future__ import annotations


class GameError(Exception):
    kind = "error"

    def to_event(self) -> dict[str, object]:
        return {"kind": self.kind, "message": str(self)}


class InvalidBetError(GameError):
    kind = "invalid-bet"


class InsufficientFundsError(GameError):
    kind = "insufficient-funds"


class InvalidActionError(GameError):
    kind = "invalid-action"


class InvalidConfigurationError(GameError):
    kind = "invalid-configuration"


class EmptyDeckError(GameError):
    """Drawing from an exhausted deck. Game rules make this unreachable."""

    kind = "empty-deck"
