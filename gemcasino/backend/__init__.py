"""Backend package for the gem casino game engines."""

from .account import Account
from .config import BackendSettings, load_settings
from .errors import (
    EmptyDeckError,
    GameError,
    InsufficientFundsError,
    InvalidActionError,
    InvalidBetError,
    InvalidConfigurationError,
)
from .models import ActionResult, Profile
from .rng import FixedSequenceSource, RandomOutcomeSource, SystemRandomSource
from .scheduler import ManualClock, TickScheduler
from .session import GameSession, SessionRegistry
from .store import InMemoryProfileStore, PostgresProfileStore, ProfileStore, create_store

__all__ = [
    "Account",
    "ActionResult",
    "BackendSettings",
    "create_store",
    "EmptyDeckError",
    "FixedSequenceSource",
    "GameError",
    "GameSession",
    "InMemoryProfileStore",
    "InsufficientFundsError",
    "InvalidActionError",
    "InvalidBetError",
    "InvalidConfigurationError",
    "load_settings",
    "ManualClock",
    "PostgresProfileStore",
    "Profile",
    "ProfileStore",
    "RandomOutcomeSource",
    "SessionRegistry",
    "SystemRandomSource",
    "TickScheduler",
]
