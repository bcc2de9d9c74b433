# ledger_system/services/metering_service.py
"""
Transaction metering - resolves the tier cost of a finalized order and
debits the merchant's quota in one transaction.
"""
from typing import Optional
from sqlalchemy.orm import Session
import logging

import config
from models import Order, QuotaUsageLog
from ledger_system.config.constants import QuotaSource
from ledger_system.errors import RecordNotFound
from ledger_system.events.event_bus import eventBus, LedgerEvents
from ledger_system.services.quota_ledger import QuotaPoolLedger, DebitResult
from ledger_system.services.tier_resolver import TierResolver, toMoney

logger = logging.getLogger(__name__)


class MeteringService:
    """Entry point for order finalization: resolveAndDebit."""

    def __init__(self, session: Session):
        self.session = session
        self.tierResolver = TierResolver(session)
        self.quotaLedger = QuotaPoolLedger(session)

    def resolveAndDebit(self, merchantId: int, price, orderId: Optional[int] = None) -> DebitResult:
        """
        Charge one transaction at `price` to the merchant.

        The tier cost is resolved now and recorded on the order and in the
        usage log; later tier edits never change it. NoMatchingTier and
        InsufficientQuota leave nothing written.
        """
        price = toMoney(price)

        try:
            order = None
            if orderId is not None:
                order = self.session.query(Order).filter_by(orderID=orderId).first()
                if not order:
                    raise RecordNotFound(f"Order {orderId} not found", orderId=orderId)

            tier = self.tierResolver.resolveTier(price)
            result = self.quotaLedger.debit(
                merchantId, tier.creditCost, excludeOrderId=orderId, commit=False
            )

            if order is not None:
                order.creditsUsed = result.creditsUsed
                order.quotaTierID = tier.tierID

            self.session.add(QuotaUsageLog(
                merchantID=merchantId,
                orderID=orderId,
                orderTotal=price,
                creditsUsed=result.creditsUsed,
                remainingQuota=result.remainingQuota,
                source=result.source,
                notes=f"tier={tier.tierID}"
            ))

            self.session.commit()

        except Exception:
            self.session.rollback()
            raise

        logger.info(
            f"Order {orderId} of merchant {merchantId}: price={price}, "
            f"credits={result.creditsUsed}, source={result.source}, remaining={result.remainingQuota}"
        )

        eventBus.emit(LedgerEvents.QUOTA_DEBITED, {
            "merchantId": merchantId,
            "orderId": orderId,
            "creditsUsed": result.creditsUsed,
            "remainingQuota": result.remainingQuota,
            "source": result.source
        })
        self._emitQuotaAlerts(result)

        return result

    def _emitQuotaAlerts(self, result: DebitResult):
        """Alert once when usage crosses the warning threshold and when quota runs out."""
        if result.source != QuotaSource.PREMIUM.value or not result.totalQuota:
            return

        payload = {
            "merchantId": result.merchantID,
            "remainingQuota": result.remainingQuota,
            "totalQuota": result.totalQuota
        }

        if result.remainingQuota <= 0:
            eventBus.emit(LedgerEvents.QUOTA_EMPTY, payload)
            return

        threshold = config.QUOTA_WARNING_PERCENT
        usedAfter = result.totalQuota - result.remainingQuota
        usedBefore = usedAfter - result.creditsUsed

        if usedBefore * 100 <= threshold * result.totalQuota < usedAfter * 100:
            eventBus.emit(LedgerEvents.QUOTA_LOW, payload)
