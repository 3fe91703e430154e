"""
Identifier and time helpers shared by the schedule and governance aggregates.
"""

from __future__ import annotations

import os
import time
from datetime import datetime, timezone


_CROCKFORD32 = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"


def _encode_crockford_base32(value: int, length: int) -> str:
    chars: list[str] = []
    for _ in range(length):
        chars.append(_CROCKFORD32[value & 31])
        value >>= 5
    return "".join(reversed(chars))


def new_ulid() -> str:
    """
    Generate a ULID (26 chars, Crockford base32).

    Used as the opaque identity of steps, versions, change requests,
    releases and transitions. Lexicographic order follows creation time.
    """
    timestamp_ms = int(time.time() * 1000)
    randomness = int.from_bytes(os.urandom(10), "big")
    return _encode_crockford_base32((timestamp_ms << 80) | randomness, 26)


def new_id(prefix: str) -> str:
    """Prefixed ULID, e.g. ``step-01J...``."""
    return f"{prefix}-{new_ulid()}"


def ensure_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def isoformat_or_none(moment: datetime | None) -> str | None:
    return moment.isoformat() if moment is not None else None
