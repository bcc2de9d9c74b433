# ledger_system/services/availability.py
"""
Availability check consumed by the catalog: quota AND open now.
"""
import re
from datetime import datetime
from typing import Dict, Iterable, Optional
from sqlalchemy.orm import Session
import logging

from models import Merchant
from ledger_system.errors import RecordNotFound
from ledger_system.services.quota_ledger import QuotaPoolLedger
from ledger_system.utils.time_machine import timeMachine

logger = logging.getLogger(__name__)

_TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):[0-5]\d')


def normalizeTime(value: Optional[str]) -> Optional[str]:
    """'8:00' -> '08:00', '08:00:00' -> '08:00'; empty -> None."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if len(value) >= 4 and value[1] == ':':
        value = '0' + value
    if not _TIME_PATTERN.match(value):
        raise ValueError(f"Invalid time of day: {value!r}")
    return value[:5]


def isWithinWindow(now: str, openTime: str, closeTime: str) -> bool:
    """Inclusive HH:MM window test; closeTime < openTime wraps past midnight."""
    if closeTime < openTime:
        return now >= openTime or now <= closeTime
    return openTime <= now <= closeTime


class AvailabilityEvaluator:
    """Combines quota, manual open flag and operating hours."""

    def __init__(self, session: Session, quotaLedger: QuotaPoolLedger = None):
        self.session = session
        self.quotaLedger = quotaLedger or QuotaPoolLedger(session)

    def isCurrentlyOpen(self, merchant: Merchant, at: Optional[datetime] = None) -> bool:
        if not merchant.isOpenManual:
            return False

        try:
            openTime = normalizeTime(merchant.openTime)
            closeTime = normalizeTime(merchant.closeTime)
        except ValueError as e:
            # Битые часы работы: мерчант закрыт
            logger.warning(f"Merchant {merchant.merchantID} has invalid operating hours, treated as closed: {e}")
            return False

        # Без расписания решает только ручной флаг
        if not openTime or not closeTime:
            return True

        return isWithinWindow(timeMachine.timeOfDay(at), openTime, closeTime)

    def isAvailable(self, merchantId: int) -> bool:
        merchant = self.session.query(Merchant).filter_by(merchantID=merchantId).first()
        if not merchant:
            raise RecordNotFound(f"Merchant {merchantId} not found", merchantId=merchantId)

        return self._evaluate(merchant)

    def availabilityFor(self, merchantIds: Iterable[int]) -> Dict[int, bool]:
        """Batch form for catalog listings. Unknown merchants are omitted."""
        ids = list(set(merchantIds))
        if not ids:
            return {}

        merchants = self.session.query(Merchant).filter(Merchant.merchantID.in_(ids)).all()
        return {m.merchantID: self._evaluate(m) for m in merchants}

    def _evaluate(self, merchant: Merchant) -> bool:
        # Часы работы - без запросов к БД
        if not self.isCurrentlyOpen(merchant):
            return False
        available = self.quotaLedger.hasActiveQuota(merchant.merchantID)
        if not available:
            logger.debug(f"Merchant {merchant.merchantID} is open but has no quota")
        return available
