"""
Identifier helpers.

Every entity uses a readable, prefixed string id ("match-3f9c...") so ids stay
unique across tables and can be generated before anything is persisted.
"""

import uuid


def generate_id(prefix: str) -> str:
    """Return a new id of the form "<prefix>-<12 hex chars>"."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"
