# ledger_system/services/commission_ledger.py
"""
Commission ledger - verifikator commissions for approved quota packages.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Dict, Optional
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import logging

from models import CommissionEntry
from ledger_system.config.constants import CommissionStatus, MONEY_QUANTUM
from ledger_system.errors import InvalidStateTransition, RecordNotFound
from ledger_system.events.event_bus import eventBus, LedgerEvents
from ledger_system.services.tier_resolver import toMoney
from ledger_system.utils.time_machine import timeMachine

logger = logging.getLogger(__name__)


def calculateCommission(packageAmount, percent) -> Decimal:
    """round(packageAmount * percent / 100), half away from zero, whole units."""
    amount = toMoney(packageAmount) * toMoney(percent) / Decimal("100")
    return amount.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


@dataclass
class TransitionResult:
    entityId: int
    previousStatus: str
    newStatus: str


def accruedPayload(entry: CommissionEntry) -> Dict:
    return {
        "entryId": entry.entryID,
        "verifikatorId": entry.verifikatorID,
        "merchantId": entry.merchantID,
        "subscriptionId": entry.subscriptionID,
        "amount": entry.amount
    }


class CommissionLedger:
    """Service for accruing and settling verifikator commissions."""

    def __init__(self, session: Session):
        self.session = session

    def accrue(
            self,
            verifikatorId: int,
            merchantId: int,
            subscriptionId: int,
            packageAmount,
            percent,
            packageId: Optional[int] = None,
            commit: bool = True
    ) -> CommissionEntry:
        """
        Create the PENDING commission for one subscription purchase.

        Idempotent per subscriptionId: a retried approval returns the entry
        already recorded. The unique constraint on subscriptionID catches
        concurrent retries that both pass the lookup.

        With commit=False the caller owns the transaction and the
        commission.accrued event.
        """
        existing = self.getBySubscription(subscriptionId)
        if existing:
            logger.info(f"Commission for subscription {subscriptionId} already exists: {existing.entryID}")
            return existing

        entry = CommissionEntry(
            verifikatorID=verifikatorId,
            merchantID=merchantId,
            subscriptionID=subscriptionId,
            packageID=packageId,
            packageAmount=toMoney(packageAmount),
            percent=toMoney(percent),
            amount=calculateCommission(packageAmount, percent),
            status=CommissionStatus.PENDING.value
        )

        try:
            with self.session.begin_nested():
                self.session.add(entry)
        except IntegrityError:
            logger.warning(f"Concurrent commission accrual for subscription {subscriptionId}")
            existing = self.getBySubscription(subscriptionId)
            if existing is None:
                raise
            return existing

        logger.info(
            f"Commission {entry.amount} ({entry.percent}%) accrued to verifikator {verifikatorId} "
            f"for subscription {subscriptionId}"
        )

        if commit:
            payload = accruedPayload(entry)
            self.session.commit()
            eventBus.emit(LedgerEvents.COMMISSION_ACCRUED, payload)

        return entry

    def getBySubscription(self, subscriptionId: int) -> Optional[CommissionEntry]:
        return self.session.query(CommissionEntry).filter_by(subscriptionID=subscriptionId).first()

    def getEntry(self, entryId: int) -> CommissionEntry:
        entry = self.session.query(CommissionEntry).filter_by(entryID=entryId).first()
        if not entry:
            raise RecordNotFound(f"Commission entry {entryId} not found", entryId=entryId)
        return entry

    def markPaid(self, entryId: int) -> TransitionResult:
        return self._transition(entryId, CommissionStatus.PAID)

    def markRejected(self, entryId: int, reason: str) -> TransitionResult:
        return self._transition(entryId, CommissionStatus.REJECTED, reason=reason)

    def _transition(self, entryId: int, target: CommissionStatus, reason: str = None) -> TransitionResult:
        """PENDING -> PAID | REJECTED. Terminal entries never move again."""
        entry = self.session.query(CommissionEntry).filter_by(
            entryID=entryId
        ).with_for_update().first()

        if not entry:
            self.session.rollback()
            raise RecordNotFound(f"Commission entry {entryId} not found", entryId=entryId)

        if entry.status != CommissionStatus.PENDING.value:
            previous = entry.status
            self.session.rollback()
            raise InvalidStateTransition(
                f"Commission entry {entryId} is {previous}, cannot become {target.value}",
                entryId=entryId, status=previous
            )

        entry.status = target.value
        if target == CommissionStatus.PAID:
            entry.paidAt = timeMachine.now
        else:
            entry.rejectionReason = reason

        payload = {
            "entryId": entryId,
            "verifikatorId": entry.verifikatorID,
            "amount": entry.amount,
            "reason": reason
        }
        self.session.commit()
        logger.info(f"Commission entry {entryId}: PENDING -> {target.value}")

        event = LedgerEvents.COMMISSION_PAID if target == CommissionStatus.PAID else LedgerEvents.COMMISSION_REJECTED
        eventBus.emit(event, payload)

        return TransitionResult(entityId=entryId, previousStatus=CommissionStatus.PENDING.value, newStatus=target.value)

    def listEntries(self, verifikatorId: int, status: Optional[str] = None) -> List[CommissionEntry]:
        query = self.session.query(CommissionEntry).filter_by(verifikatorID=verifikatorId)
        if status:
            query = query.filter_by(status=status)
        return query.order_by(CommissionEntry.createdAt.desc(), CommissionEntry.entryID.desc()).all()

    def getTotals(self, verifikatorId: int) -> Dict[str, Decimal]:
        rows = self.session.query(
            CommissionEntry.status, func.coalesce(func.sum(CommissionEntry.amount), 0)
        ).filter(
            CommissionEntry.verifikatorID == verifikatorId
        ).group_by(CommissionEntry.status).all()

        totals = {s.value.lower(): Decimal("0") for s in CommissionStatus}
        for status, total in rows:
            totals[status.lower()] = toMoney(total)
        return totals
