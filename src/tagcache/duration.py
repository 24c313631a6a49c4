"""TTL parsing utilities."""

import re
import time

from tagcache.types import TTL, DefaultTTL, Duration

_DURATION_PATTERN = re.compile(r"^(\d+)(ms|s|m|h|d)$")
_UNITS: dict[str, int] = {
    "ms": 1,
    "s": 1000,
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
}


def parse_duration(duration: Duration) -> int:
    """Parse duration string to milliseconds. Passthrough if already int."""
    if isinstance(duration, bool):
        raise ValueError(f"Invalid duration: {duration!r}")
    if isinstance(duration, int):
        if duration < 0:
            raise ValueError(f"Duration must not be negative: {duration!r}")
        return duration

    match = _DURATION_PATTERN.match(duration.strip())
    if not match:
        raise ValueError(f"Invalid duration: {duration!r}")

    value, unit = match.groups()
    return int(value) * _UNITS[unit]


def now_ms() -> int:
    """Current Unix time in milliseconds."""
    return int(time.time() * 1000)


def resolve_ttl(ttl: TTL, default: Duration | None = None) -> int | None:
    """Resolve a save TTL to milliseconds, or None for an infinite lifetime.

    Raises:
        ValueError: if the TTL is not positive.
    """
    if isinstance(ttl, DefaultTTL):
        ttl = default
    if ttl is None:
        return None
    ttl_ms = parse_duration(ttl)
    if ttl_ms <= 0:
        raise ValueError(f"TTL must be positive, got {ttl!r}")
    return ttl_ms
