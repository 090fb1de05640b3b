import math
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class DateUtils:
    """Window arithmetic for the cancellation and return rules"""

    @staticmethod
    def elapsed(since: datetime, now: datetime) -> timedelta:
        return now - since

    @staticmethod
    def within_window(since: datetime, now: datetime, window: timedelta, inclusive: bool = True) -> bool:
        """
        Whether ``now`` still lies inside ``window`` measured from ``since``.

        Args:
            since: start of the window
            now: moment being checked
            window: window length
            inclusive: whether the exact end instant still counts as inside

        Returns:
            bool: True when inside the window
        """
        elapsed = now - since
        if inclusive:
            return elapsed <= window
        return elapsed < window

    @staticmethod
    def days_remaining(since: datetime, now: datetime, window: timedelta) -> int:
        """Whole days left in the window, rounded up"""
        remaining = window - (now - since)
        if remaining <= timedelta(0):
            return 0
        return math.ceil(remaining / timedelta(days=1))
