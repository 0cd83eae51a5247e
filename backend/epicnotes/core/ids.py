"""Opaque identifiers for users, notes and images."""

import uuid


def generate_id() -> str:
    """Return a new 32-char lowercase hex id (uuid4 without dashes)."""
    return uuid.uuid4().hex
