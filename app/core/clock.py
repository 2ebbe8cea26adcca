"""
Wall-clock source for expiry comparisons
"""
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current UTC time as a naive datetime, matching how timestamps are stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)
