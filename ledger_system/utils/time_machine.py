# ledger_system/utils/time_machine.py
"""
Time machine - the ledger clock, with virtual time for tests and operators.
"""
from datetime import datetime, timezone, timedelta
from typing import Optional, Tuple
from zoneinfo import ZoneInfo
import logging

import config

logger = logging.getLogger(__name__)


class TimeMachine:
    """Singleton for managing system time."""

    _instance = None
    _virtualTime: Optional[datetime] = None
    _isTestMode: bool = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @property
    def now(self) -> datetime:
        """Get current system time (real or virtual), UTC."""
        if self._isTestMode and self._virtualTime:
            return self._virtualTime
        return datetime.now(timezone.utc)

    @property
    def localZone(self) -> ZoneInfo:
        return ZoneInfo(config.LOCAL_TIMEZONE)

    @property
    def localNow(self) -> datetime:
        """Current time in the marketplace's local timezone."""
        return self.now.astimezone(self.localZone)

    @property
    def currentPeriod(self) -> Tuple[int, int]:
        """Current local (month, year)."""
        local = self.localNow
        return local.month, local.year

    def startOfMonth(self, at: Optional[datetime] = None) -> datetime:
        """
        First day of the local calendar month, 00:00:00 local, returned in UTC.
        """
        local = (at or self.now).astimezone(self.localZone)
        start = local.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        return start.astimezone(timezone.utc)

    def timeOfDay(self, at: Optional[datetime] = None) -> str:
        """Local time of day as "HH:MM"."""
        return (at or self.now).astimezone(self.localZone).strftime('%H:%M')

    def setTime(self, newTime: datetime, adminId: Optional[int] = None):
        """Set virtual time for testing."""
        if newTime.tzinfo is None:
            newTime = newTime.replace(tzinfo=timezone.utc)
        self._isTestMode = True
        self._virtualTime = newTime
        logger.info(f"Virtual time set to {newTime} by admin {adminId}")

    def advanceTime(self, days: int = 0, hours: int = 0, minutes: int = 0):
        """Advance virtual time forward."""
        if not self._isTestMode:
            raise ValueError("Cannot advance time when not in test mode")

        self._virtualTime += timedelta(days=days, hours=hours, minutes=minutes)
        logger.info(f"Time advanced to {self._virtualTime}")

    def resetToRealTime(self):
        """Return to real time."""
        self._isTestMode = False
        self._virtualTime = None
        logger.info("Returned to real time")


# Global instance
timeMachine = TimeMachine()
