# ledger_system/services/subscription_service.py
"""
Quota package purchases: request, admin approval and rejection.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional
from sqlalchemy.orm import Session
import logging

from models import Merchant, TransactionPackage, QuotaPool
from ledger_system.config.constants import PoolStatus, PaymentStatus
from ledger_system.errors import InvalidStateTransition, RecordNotFound
from ledger_system.events.event_bus import eventBus, LedgerEvents
from ledger_system.services.commission_ledger import CommissionLedger, TransitionResult, accruedPayload
from ledger_system.services.tier_resolver import toMoney
from ledger_system.utils.time_machine import timeMachine

logger = logging.getLogger(__name__)


@dataclass
class ApprovalResult:
    poolId: int
    merchantId: int
    quotaSize: int
    expiresAt: datetime
    commissionEntryId: Optional[int] = None
    commissionAmount: Optional[Decimal] = None


class SubscriptionService:
    """Service for merchant quota package purchases."""

    def __init__(self, session: Session):
        self.session = session
        self.commissionLedger = CommissionLedger(session)

    def requestPackage(self, merchantId: int, packageId: int) -> QuotaPool:
        """Create a PENDING pool awaiting payment confirmation by an admin."""
        merchant = self.session.query(Merchant).filter_by(merchantID=merchantId).first()
        if not merchant:
            raise RecordNotFound(f"Merchant {merchantId} not found", merchantId=merchantId)

        package = self.session.query(TransactionPackage).filter_by(packageID=packageId).first()
        if not package:
            raise RecordNotFound(f"Package {packageId} not found", packageId=packageId)
        if not package.isActive:
            raise ValueError(f"Package {package.name} is not available")

        pool = QuotaPool(
            merchantID=merchantId,
            packageID=packageId,
            quotaSize=package.transactionQuota,
            consumed=0,
            status=PoolStatus.PENDING.value,
            paymentAmount=package.price,
            paymentStatus=PaymentStatus.PENDING.value
        )
        self.session.add(pool)
        self.session.commit()

        logger.info(f"Merchant {merchantId} requested package {package.name}: pool {pool.poolID}")
        return pool

    def _lockPending(self, poolId: int) -> QuotaPool:
        pool = self.session.query(QuotaPool).filter_by(poolID=poolId).with_for_update().first()
        if not pool:
            raise RecordNotFound(f"Quota pool {poolId} not found", poolId=poolId)
        if pool.status != PoolStatus.PENDING.value:
            raise InvalidStateTransition(
                f"Quota pool {poolId} is {pool.status}, expected PENDING",
                poolId=poolId, status=pool.status
            )
        return pool

    def approve(self, poolId: int, adminNotes: Optional[str] = None, adminId: Optional[int] = None) -> ApprovalResult:
        """
        Activate the pool and accrue the verifikator's commission in the
        same transaction. Either both are stored or neither is.
        """
        try:
            pool = self._lockPending(poolId)
            now = timeMachine.now
            package = pool.package
            validityDays = package.validityDays if package else 30

            pool.status = PoolStatus.ACTIVE.value
            pool.startedAt = now
            pool.expiresAt = now + timedelta(days=validityDays)
            pool.paymentStatus = PaymentStatus.PAID.value
            pool.paidAt = now
            if adminNotes:
                pool.adminNotes = adminNotes

            result = ApprovalResult(
                poolId=poolId,
                merchantId=pool.merchantID,
                quotaSize=pool.quotaSize,
                expiresAt=pool.expiresAt
            )

            commissionPayload = None
            merchant = pool.merchant
            percent = toMoney(package.groupCommissionPercent or 0) if package else Decimal("0")

            if merchant.verifikatorID and percent > 0:
                entry = self.commissionLedger.accrue(
                    verifikatorId=merchant.verifikatorID,
                    merchantId=merchant.merchantID,
                    subscriptionId=poolId,
                    packageAmount=pool.paymentAmount or package.price,
                    percent=percent,
                    packageId=package.packageID,
                    commit=False
                )
                result.commissionEntryId = entry.entryID
                result.commissionAmount = entry.amount
                commissionPayload = accruedPayload(entry)

            approvedPayload = {
                "poolId": poolId,
                "merchantId": pool.merchantID,
                "packageName": package.name if package else None,
                "quotaSize": pool.quotaSize,
                "expiresAt": pool.expiresAt
            }
            self.session.commit()

        except Exception:
            self.session.rollback()
            raise

        logger.info(
            f"Quota pool {poolId} approved by admin {adminId}: {result.quotaSize} credits "
            f"until {result.expiresAt}, commission={result.commissionAmount}"
        )

        eventBus.emit(LedgerEvents.SUBSCRIPTION_APPROVED, approvedPayload)
        if commissionPayload:
            eventBus.emit(LedgerEvents.COMMISSION_ACCRUED, commissionPayload)

        return result

    def reject(self, poolId: int, adminNotes: Optional[str] = None) -> TransitionResult:
        try:
            pool = self._lockPending(poolId)
            pool.status = PoolStatus.REJECTED.value
            pool.paymentStatus = PaymentStatus.REJECTED.value
            pool.adminNotes = adminNotes

            payload = {
                "poolId": poolId,
                "merchantId": pool.merchantID,
                "notes": adminNotes
            }
            self.session.commit()

        except Exception:
            self.session.rollback()
            raise

        logger.info(f"Quota pool {poolId} rejected: {adminNotes}")
        eventBus.emit(LedgerEvents.SUBSCRIPTION_REJECTED, payload)

        return TransitionResult(
            entityId=poolId,
            previousStatus=PoolStatus.PENDING.value,
            newStatus=PoolStatus.REJECTED.value
        )
