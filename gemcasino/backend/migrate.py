"""Create the profile table in PostgreSQL.

Usage: ``python -m gemcasino.backend.migrate [--database-url URL]``
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from gemcasino.backend.config import configure_logging, load_settings

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).with_name("db_schema.sql")


def apply_schema(database_url: str) -> None:
    import psycopg

    schema_sql = SCHEMA_PATH.read_text(encoding="utf-8")
    with psycopg.connect(database_url) as conn:
        with conn.cursor() as cur:
            cur.execute(schema_sql)
        conn.commit()
    logger.info("profile schema applied from %s", SCHEMA_PATH.name)


def main(argv: list[str] | None = None) -> None:
    settings = load_settings()
    parser = argparse.ArgumentParser(description="Apply the gem casino profile schema")
    parser.add_argument("--database-url", default=settings.database_url)
    args = parser.parse_args(argv)
    configure_logging(settings)

    if not args.database_url:
        raise RuntimeError("GEMCASINO_DATABASE_URL or --database-url is required for migration")
    apply_schema(args.database_url)


if __name__ == "__main__":
    main()
