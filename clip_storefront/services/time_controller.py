"""Virtual clock used for credential expiry.

Real wall-clock time plus an adjustable offset, so expiry behaviour can be
exercised without waiting: advance the clock past a link's expiry and the
next redemption fails exactly as it would two days later.
"""

import threading
from datetime import datetime, timedelta
from typing import Optional

from clip_storefront.logging_config import get_logger
from clip_storefront.models.base import ensure_utc, utcnow

logger = get_logger(__name__)

__all__ = [
    "TimeController",
    "ensure_utc",
    "get_time_controller",
    "reset_time_controller",
]


class TimeController:
    """Thread-safe UTC clock with a forward-only offset."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._offset = timedelta(0)

    def now(self) -> datetime:
        """Current (virtual) time, timezone-aware UTC."""
        with self._lock:
            return utcnow() + self._offset

    @property
    def offset(self) -> timedelta:
        with self._lock:
            return self._offset

    def advance_time(self, days: int = 0, hours: int = 0, minutes: int = 0) -> dict:
        """Move the clock forward.

        Args:
            days: number of days to advance
            hours: number of hours to advance
            minutes: number of minutes to advance

        Returns:
            Dictionary with old_time, new_time and advanced_seconds

        Raises:
            ValueError: if any value is negative
        """
        if days < 0 or hours < 0 or minutes < 0:
            raise ValueError("Cannot advance time backwards, negative values are not allowed.")

        delta = timedelta(days=days, hours=hours, minutes=minutes)
        with self._lock:
            old_time = self.now()
            self._offset += delta
            new_time = self.now()

        logger.info(
            "time_advanced",
            old_time=old_time.isoformat(),
            new_time=new_time.isoformat(),
            advanced_seconds=int(delta.total_seconds()),
        )
        return {
            "old_time": old_time,
            "new_time": new_time,
            "advanced_seconds": int(delta.total_seconds()),
        }

    def reset_time(self) -> None:
        """Return to real wall-clock time."""
        with self._lock:
            self._offset = timedelta(0)
        logger.info("time_reset")


_time_controller_instance: Optional[TimeController] = None
_controller_lock = threading.Lock()


def get_time_controller() -> TimeController:
    global _time_controller_instance
    if _time_controller_instance is None:
        with _controller_lock:
            if _time_controller_instance is None:
                _time_controller_instance = TimeController()
    return _time_controller_instance


def reset_time_controller() -> None:
    global _time_controller_instance
    with _controller_lock:
        _time_controller_instance = TimeController()
