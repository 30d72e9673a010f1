"""Session identifier helpers."""

from __future__ import annotations

import secrets


TOKEN_BYTES = 24


def generate_session_id() -> str:
    """Generate a URL-safe identifier for a player session."""
    return secrets.token_urlsafe(TOKEN_BYTES)
