"""Key-value persistence for player profiles."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol


class ProfileStore(Protocol):
    def load(self, key: str) -> dict[str, Any] | None:
        """Return the stored value for key, or None."""

    def save(self, key: str, value: dict[str, Any]) -> None:
        """Insert or replace the value for key."""

    def delete(self, key: str) -> None:
        """Remove key if present."""


@dataclass
class InMemoryProfileStore:
    def __post_init__(self) -> None:
        self._values: dict[str, str] = {}

    def load(self, key: str) -> dict[str, Any] | None:
        raw = self._values.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def save(self, key: str, value: dict[str, Any]) -> None:
        # Stored serialized so callers never share a mutable dict with the store.
        self._values[key] = json.dumps(value)

    def delete(self, key: str) -> None:
        self._values.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._values)


@dataclass
class PostgresProfileStore:
    database_url: str

    def _connect(self) -> Any:
        import psycopg

        return psycopg.connect(self.database_url)

    def load(self, key: str) -> dict[str, Any] | None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT value FROM profiles WHERE key = %s", (key,))
                row = cur.fetchone()
        if row is None:
            return None
        (value,) = row
        return value if isinstance(value, dict) else json.loads(value)

    def save(self, key: str, value: dict[str, Any]) -> None:
        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO profiles (key, value, updated_at)
                    VALUES (%s, %s::jsonb, %s)
                    ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value, updated_at = EXCLUDED.updated_at
                    """,
                    (key, json.dumps(value), now),
                )
            conn.commit()

    def delete(self, key: str) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM profiles WHERE key = %s", (key,))
            conn.commit()


def create_store(database_url: str | None) -> ProfileStore:
    if database_url:
        return PostgresProfileStore(database_url=database_url)
    return InMemoryProfileStore()
