"""Time sources.

Everything that compares against "now" goes through this module so tests can
move the clock.
"""
import time
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)
