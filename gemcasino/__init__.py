"""Gem casino game engines."""
