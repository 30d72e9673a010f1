"""Configuration helpers for backend runtime."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class BackendSettings:
    database_url: str | None
    host: str
    port: int
    log_level: str
    starting_balance: int
    rain_amount: int
    rain_interval_seconds: int
    rng_seed: int | None


def load_settings() -> BackendSettings:
    port_raw = os.getenv("GEMCASINO_PORT", "8000")
    seed_raw = os.getenv("GEMCASINO_RNG_SEED")
    return BackendSettings(
        database_url=os.getenv("GEMCASINO_DATABASE_URL"),
        host=os.getenv("GEMCASINO_HOST", "127.0.0.1"),
        port=int(port_raw),
        log_level=os.getenv("GEMCASINO_LOG_LEVEL", "INFO").upper(),
        starting_balance=int(os.getenv("GEMCASINO_STARTING_BALANCE", "5000")),
        rain_amount=int(os.getenv("GEMCASINO_RAIN_AMOUNT", "5000")),
        rain_interval_seconds=int(os.getenv("GEMCASINO_RAIN_INTERVAL_SECONDS", "1800")),
        rng_seed=int(seed_raw) if seed_raw else None,
    )


def configure_logging(settings: BackendSettings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("psycopg").setLevel(logging.WARNING)
