# ledger_system/services/quota_ledger.py
"""
Quota pool ledger - subscription pools, free-tier fallback and debits.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import func
from sqlalchemy.orm import Session
import logging

import config
from models import QuotaPool, Order, QuotaUsageLog
from ledger_system.config.constants import (
    PoolStatus, QuotaSource, FREE_TIER_PACKAGE_NAME, DEFAULT_PACKAGE_NAME, USAGE_LOG_DEFAULT_LIMIT
)
from ledger_system.errors import InsufficientQuota
from ledger_system.utils.time_machine import timeMachine

logger = logging.getLogger(__name__)


@dataclass
class QuotaInfo:
    merchantID: int
    hasActiveSubscription: bool
    remainingQuota: int
    totalQuota: int
    usedQuota: int
    expiresAt: Optional[datetime]
    packageName: Optional[str]
    type: str

    @property
    def usagePercent(self) -> float:
        if not self.totalQuota:
            return 100.0
        return self.usedQuota * 100.0 / self.totalQuota


@dataclass
class DebitResult:
    merchantID: int
    creditsUsed: int
    source: str
    remainingQuota: int
    totalQuota: int
    allocations: List[Tuple[int, int]] = field(default_factory=list)  # (poolID, credits)


class QuotaPoolLedger:
    """
    Owns QuotaPool balances.

    A merchant with at least one ACTIVE, non-expired pool is metered only
    against its pools; the free tier applies only when no such pool exists.
    """

    def __init__(self, session: Session):
        self.session = session

    def _activePoolsQuery(self, merchantId: int, forUpdate: bool = False):
        query = self.session.query(QuotaPool).filter(
            QuotaPool.merchantID == merchantId,
            QuotaPool.status == PoolStatus.ACTIVE.value,
            QuotaPool.expiresAt > timeMachine.now  # expiresAt == now уже истек
        ).order_by(QuotaPool.expiresAt.asc(), QuotaPool.poolID.asc())

        if forUpdate:
            query = query.with_for_update()
        return query

    def getActivePools(self, merchantId: int) -> List[QuotaPool]:
        return self._activePoolsQuery(merchantId).all()

    def countOrdersThisMonth(self, merchantId: int, excludeOrderId: Optional[int] = None) -> int:
        """Orders created since local 00:00 on the 1st of the current month."""
        query = self.session.query(func.count(Order.orderID)).filter(
            Order.merchantID == merchantId,
            Order.createdAt >= timeMachine.startOfMonth()
        )
        if excludeOrderId is not None:
            query = query.filter(Order.orderID != excludeOrderId)

        return query.scalar() or 0

    def getQuotaInfo(self, merchantId: int) -> QuotaInfo:
        """Quota summary used by dashboards, alerts and the availability check."""
        pools = self.getActivePools(merchantId)

        if pools:
            totalQuota = sum(p.quotaSize for p in pools)
            usedQuota = sum(p.consumed for p in pools)
            firstPool = pools[0]

            baseName = firstPool.package.name if firstPool.package else DEFAULT_PACKAGE_NAME
            packageName = f"{baseName} (+{len(pools) - 1} paket)" if len(pools) > 1 else baseName

            return QuotaInfo(
                merchantID=merchantId,
                hasActiveSubscription=True,
                remainingQuota=sum(p.remaining for p in pools),
                totalQuota=totalQuota,
                usedQuota=usedQuota,
                expiresAt=firstPool.expiresAt,
                packageName=packageName,
                type=QuotaSource.PREMIUM.value
            )

        # Free tier fallback
        currentUsage = self.countOrdersThisMonth(merchantId)
        return QuotaInfo(
            merchantID=merchantId,
            hasActiveSubscription=False,
            remainingQuota=max(0, config.FREE_TIER_LIMIT - currentUsage),
            totalQuota=config.FREE_TIER_LIMIT,
            usedQuota=currentUsage,
            expiresAt=None,
            packageName=FREE_TIER_PACKAGE_NAME,
            type=QuotaSource.FREE.value
        )

    def hasActiveQuota(self, merchantId: int) -> bool:
        return self.getQuotaInfo(merchantId).remainingQuota > 0

    def debit(
            self,
            merchantId: int,
            credits: int,
            excludeOrderId: Optional[int] = None,
            commit: bool = True
    ) -> DebitResult:
        """
        Consume credits from the merchant's pools, soonest-expiring first.

        Pools are locked for the duration of the transaction and every
        decrement is a conditional UPDATE, so two concurrent debits can
        never both spend the last credit.
        """
        if not isinstance(credits, int) or credits <= 0:
            raise ValueError(f"credits must be a positive integer, got {credits!r}")

        try:
            pools = self._activePoolsQuery(merchantId, forUpdate=True).all()

            if not pools:
                result = self._admitFreeTier(merchantId, credits, excludeOrderId)
            else:
                result = self._debitPools(merchantId, credits, pools)

            if commit:
                self.session.commit()
            return result

        except Exception:
            self.session.rollback()
            raise

    def _admitFreeTier(self, merchantId: int, credits: int, excludeOrderId: Optional[int]) -> DebitResult:
        used = self.countOrdersThisMonth(merchantId, excludeOrderId=excludeOrderId)

        if used >= config.FREE_TIER_LIMIT:
            logger.warning(f"Merchant {merchantId} exhausted free tier: {used}/{config.FREE_TIER_LIMIT}")
            raise InsufficientQuota(
                f"Free tier exhausted for merchant {merchantId}",
                merchantId=merchantId, used=used, limit=config.FREE_TIER_LIMIT
            )

        return DebitResult(
            merchantID=merchantId,
            creditsUsed=credits,
            source=QuotaSource.FREE.value,
            remainingQuota=config.FREE_TIER_LIMIT - used - 1,
            totalQuota=config.FREE_TIER_LIMIT
        )

    def _debitPools(self, merchantId: int, credits: int, pools: List[QuotaPool]) -> DebitResult:
        totalRemaining = sum(p.remaining for p in pools)
        totalQuota = sum(p.quotaSize for p in pools)

        if totalRemaining < credits:
            logger.warning(
                f"Merchant {merchantId} has {totalRemaining} credits left, {credits} required"
            )
            raise InsufficientQuota(
                f"Insufficient quota for merchant {merchantId}",
                merchantId=merchantId, remaining=totalRemaining, required=credits
            )

        needed = credits
        allocations = []

        for pool in pools:
            if needed == 0:
                break

            take = min(pool.remaining, needed)
            if take == 0:
                continue

            updated = self.session.query(QuotaPool).filter(
                QuotaPool.poolID == pool.poolID,
                QuotaPool.consumed + take <= QuotaPool.quotaSize
            ).update(
                {QuotaPool.consumed: QuotaPool.consumed + take},
                synchronize_session=False
            )

            if updated != 1:
                # Пул изменен параллельной транзакцией
                logger.warning(f"Pool {pool.poolID} changed concurrently while debiting merchant {merchantId}")
                raise InsufficientQuota(
                    f"Quota changed concurrently for merchant {merchantId}",
                    merchantId=merchantId, poolId=pool.poolID
                )

            self.session.expire(pool, ['consumed'])
            allocations.append((pool.poolID, take))
            needed -= take

        logger.info(f"Debited {credits} credits from merchant {merchantId}: {allocations}")

        return DebitResult(
            merchantID=merchantId,
            creditsUsed=credits,
            source=QuotaSource.PREMIUM.value,
            remainingQuota=totalRemaining - credits,
            totalQuota=totalQuota,
            allocations=allocations
        )

    def getUsageLogs(self, merchantId: int, limit: int = USAGE_LOG_DEFAULT_LIMIT) -> List[QuotaUsageLog]:
        return self.session.query(QuotaUsageLog).filter_by(
            merchantID=merchantId
        ).order_by(
            QuotaUsageLog.createdAt.desc(), QuotaUsageLog.logID.desc()
        ).limit(limit).all()

    def expirePools(self) -> int:
        """Mark ACTIVE pools past their expiry as EXPIRED."""
        count = self.session.query(QuotaPool).filter(
            QuotaPool.status == PoolStatus.ACTIVE.value,
            QuotaPool.expiresAt <= timeMachine.now
        ).update(
            {QuotaPool.status: PoolStatus.EXPIRED.value},
            synchronize_session=False
        )
        self.session.commit()

        logger.info(f"Expired {count} quota pools")
        return count
