"""ULID generation helper utilities."""

from datetime import datetime
from typing import Optional

import ulid


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ulid.ULID())


def get_timestamp_from_ulid(ulid_str: str) -> Optional[datetime]:
    """Extract the creation timestamp encoded in an approval record id."""
    try:
        return ulid.ULID.from_str(ulid_str).datetime
    except (ValueError, TypeError):
        return None
