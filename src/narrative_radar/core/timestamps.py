"""
UTC timestamp and run-id utilities (stdlib-only).

Every run stamps ``stageChangedAt`` and report metadata with UTC ISO 8601
strings; these helpers keep the format identical everywhere. Run ids are
ULID-like so run logs sort by start time.
"""

import random
from datetime import UTC, datetime

# Crockford base32
_ENCODING = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def generate_ulid(at: datetime | None = None) -> str:
    """
    Generate a ULID-like identifier.

    Format: 26 characters, base32 encoded. The first 10 characters encode
    the millisecond timestamp of ``at`` (default: now), so ids sort by time.
    """
    at = at or utc_now()
    if at.tzinfo is None:
        at = at.replace(tzinfo=UTC)
    timestamp_chars = _encode_base32(int(at.timestamp() * 1000), 10)
    random_part = "".join(random.choices(_ENCODING, k=16))
    return timestamp_chars + random_part


def _encode_base32(value: int, length: int) -> str:
    chars = []
    for _ in range(length):
        value, rem = divmod(value, len(_ENCODING))
        chars.append(_ENCODING[rem])
    return "".join(reversed(chars))


def to_iso8601(dt: datetime | None) -> str | None:
    """Serialize to ISO 8601 with a ``Z`` suffix, or None."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat().replace("+00:00", "Z")


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return to_iso8601(utc_now())
