from __future__ import annotations

import secrets
import time
import uuid


def generate_uuid7() -> str:
    """
    Return a time-ordered UUIDv7 string.

    Rows created later sort after earlier ones, which keeps the primary key
    index of append-heavy tables (assignments, actions, audit) compact.
    Called by SQLAlchemy as a column default, so it takes no arguments.
    """
    millis = time.time_ns() // 1_000_000
    value = (millis & ((1 << 48) - 1)) << 80
    value |= int.from_bytes(secrets.token_bytes(10), "big")
    raw = bytearray(value.to_bytes(16, "big"))
    raw[6] = (raw[6] & 0x0F) | 0x70
    raw[8] = (raw[8] & 0x3F) | 0x80
    return str(uuid.UUID(bytes=bytes(raw)))
