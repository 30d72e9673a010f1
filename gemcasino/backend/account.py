"""The player's account: a profile whose balance only moves by signed deltas."""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import replace

from .models import Profile
from .store import ProfileStore

logger = logging.getLogger(__name__)

DEFAULT_STARTING_BALANCE = 5000


def profile_key(username: str) -> str:
    return f"profile:{username.strip().lower()}"


class Account:
    def __init__(self, store: ProfileStore, key: str, profile: Profile) -> None:
        self._store = store
        self._key = key
        self._profile = profile
        self._lock = threading.Lock()

    @classmethod
    def load_or_create(
        cls,
        store: ProfileStore,
        username: str,
        starting_balance: int = DEFAULT_STARTING_BALANCE,
    ) -> "Account":
        if not username.strip():
            raise ValueError("username must not be empty")
        key = profile_key(username)
        stored = store.load(key)
        if stored is not None:
            return cls(store=store, key=key, profile=Profile.from_dict(stored))
        profile = Profile(id=f"user_{uuid.uuid4().hex[:12]}", username=username.strip(), balance=starting_balance)
        store.save(key, profile.to_dict())
        logger.info("created profile %s for %s with %s gems", profile.id, profile.username, starting_balance)
        return cls(store=store, key=key, profile=profile)

    @property
    def profile(self) -> Profile:
        return self._profile

    @property
    def id(self) -> str:
        return self._profile.id

    def get_balance(self) -> int:
        return self._profile.balance

    def apply_delta(self, amount: int) -> int:
        """Apply a signed change, clamped at zero, and persist it."""
        with self._lock:
            balance = max(0, self._profile.balance + int(amount))
            self._profile = replace(self._profile, balance=balance)
            self._store.save(self._key, self._profile.to_dict())
        logger.debug("profile %s balance %+d -> %s", self._profile.id, amount, balance)
        return balance

    def logout(self) -> None:
        self._store.delete(self._key)
