from decimal import Decimal

import pytest

import config
from models import Order, QuotaPool, QuotaUsageLog
from ledger_system.config.constants import QuotaSource
from ledger_system.errors import InsufficientQuota, NoMatchingTier, RecordNotFound
from ledger_system.events.event_bus import LedgerEvents
from ledger_system.services.metering_service import MeteringService
from ledger_system.services.quota_ledger import QuotaPoolLedger
from ledger_system.services.tier_resolver import TierResolver


@pytest.fixture
def tiers(seed):
    return seed.standardTiers()


class TestResolveAndDebit:
    def test_records_cost_on_order_and_log(self, session, seed, tiers):
        merchant = seed.merchant()
        pool = seed.pool(merchant, quotaSize=10)
        order = seed.order(merchant, total=20000)

        result = MeteringService(session).resolveAndDebit(merchant.merchantID, Decimal("20000"), order.orderID)

        assert result.creditsUsed == 3
        assert result.source == QuotaSource.PREMIUM.value
        assert result.remainingQuota == 7

        session.expire_all()
        stored = session.get(Order, order.orderID)
        assert stored.creditsUsed == 3
        assert stored.quotaTierID == tiers[2].tierID
        assert session.get(QuotaPool, pool.poolID).consumed == 3

        logs = QuotaPoolLedger(session).getUsageLogs(merchant.merchantID)
        assert len(logs) == 1
        assert logs[0].creditsUsed == 3
        assert logs[0].remainingQuota == 7
        assert logs[0].orderID == order.orderID

    def test_tier_edit_does_not_change_recorded_cost(self, session, seed, tiers):
        merchant = seed.merchant()
        seed.pool(merchant, quotaSize=10)
        order = seed.order(merchant, total=6000)

        MeteringService(session).resolveAndDebit(merchant.merchantID, 6000, order.orderID)
        TierResolver(session).updateTier(tiers[1].tierID, creditCost=9)

        session.expire_all()
        assert session.get(Order, order.orderID).creditsUsed == 2

    def test_no_matching_tier_writes_nothing(self, session, seed):
        seed.tiers((1000, None, 1))
        merchant = seed.merchant()
        pool = seed.pool(merchant, quotaSize=10)

        with pytest.raises(NoMatchingTier):
            MeteringService(session).resolveAndDebit(merchant.merchantID, 500)

        session.expire_all()
        assert session.get(QuotaPool, pool.poolID).consumed == 0
        assert session.query(QuotaUsageLog).count() == 0

    def test_insufficient_quota_writes_nothing(self, session, seed, tiers):
        merchant = seed.merchant()
        seed.pool(merchant, quotaSize=2, consumed=1)
        order = seed.order(merchant, total=25000)

        with pytest.raises(InsufficientQuota):
            MeteringService(session).resolveAndDebit(merchant.merchantID, 25000, order.orderID)

        session.expire_all()
        assert session.get(Order, order.orderID).creditsUsed is None
        assert session.query(QuotaUsageLog).count() == 0

    def test_unknown_order(self, session, seed, tiers):
        merchant = seed.merchant()
        with pytest.raises(RecordNotFound):
            MeteringService(session).resolveAndDebit(merchant.merchantID, 1000, orderId=12345)

    def test_free_tier_order(self, session, seed, tiers):
        merchant = seed.merchant()
        order = seed.order(merchant, total=1000)

        result = MeteringService(session).resolveAndDebit(merchant.merchantID, 1000, order.orderID)

        assert result.source == QuotaSource.FREE.value
        assert result.remainingQuota == config.FREE_TIER_LIMIT - 1


class TestQuotaAlerts:
    def test_low_quota_emitted_once_on_crossing(self, session, seed, tiers, recorder):
        recorder.subscribe(LedgerEvents.QUOTA_LOW, LedgerEvents.QUOTA_EMPTY)
        merchant = seed.merchant()
        seed.pool(merchant, quotaSize=10, consumed=7)
        metering = MeteringService(session)

        metering.resolveAndDebit(merchant.merchantID, 100)  # 8/10, exactly at threshold
        assert recorder.names() == []

        metering.resolveAndDebit(merchant.merchantID, 100)  # 9/10
        metering.resolveAndDebit(merchant.merchantID, 100)  # 10/10

        assert recorder.names() == [LedgerEvents.QUOTA_LOW, LedgerEvents.QUOTA_EMPTY]

    def test_debited_event_per_order(self, session, seed, tiers, recorder):
        recorder.subscribe(LedgerEvents.QUOTA_DEBITED)
        merchant = seed.merchant()
        seed.pool(merchant, quotaSize=10)

        MeteringService(session).resolveAndDebit(merchant.merchantID, 100)
        MeteringService(session).resolveAndDebit(merchant.merchantID, 6000)

        assert [p["creditsUsed"] for p in recorder.payloads(LedgerEvents.QUOTA_DEBITED)] == [1, 2]

    def test_low_quota_when_crossing_threshold(self, session, seed, tiers, recorder):
        recorder.subscribe(LedgerEvents.QUOTA_LOW)
        merchant = seed.merchant()
        seed.pool(merchant, quotaSize=10, consumed=8)

        MeteringService(session).resolveAndDebit(merchant.merchantID, 100)

        assert recorder.payloads(LedgerEvents.QUOTA_LOW) == [
            {"merchantId": merchant.merchantID, "remainingQuota": 1, "totalQuota": 10}
        ]

    def test_empty_quota(self, session, seed, tiers, recorder):
        recorder.subscribe(LedgerEvents.QUOTA_LOW, LedgerEvents.QUOTA_EMPTY)
        merchant = seed.merchant()
        seed.pool(merchant, quotaSize=10, consumed=9)

        MeteringService(session).resolveAndDebit(merchant.merchantID, 100)

        assert recorder.names() == [LedgerEvents.QUOTA_EMPTY]

    def test_free_tier_emits_no_alerts(self, session, seed, tiers, recorder):
        recorder.subscribe(LedgerEvents.QUOTA_LOW, LedgerEvents.QUOTA_EMPTY)
        merchant = seed.merchant()
        seed.orders(merchant, config.FREE_TIER_LIMIT - 1)

        MeteringService(session).resolveAndDebit(merchant.merchantID, 100)

        assert recorder.names() == []
