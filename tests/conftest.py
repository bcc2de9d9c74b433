"""
Shared fixtures: a temporary SQLite ledger database, a frozen ledger clock
and seed helpers for merchants, pools, tiers, verifikators and groups.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from init import get_session, init_tables
from models import (
    Verifikator, Merchant, Order, TransactionPackage, QuotaPool, QuotaTier,
    CommissionEntry, TradeGroup, GroupMember
)
from ledger_system.config.constants import PoolStatus, PaymentStatus, CommissionStatus, MemberStatus
from ledger_system.events.event_bus import eventBus
from ledger_system.utils.time_machine import timeMachine

# 15 June 2025, 12:00 in Asia/Jakarta
FROZEN_NOW = datetime(2025, 6, 15, 5, 0, tzinfo=timezone.utc)


@pytest.fixture
def session_factory(tmp_path):
    factory, engine = get_session(f"sqlite:///{tmp_path / 'ledger.db'}")
    init_tables(engine)
    yield factory
    engine.dispose()


@pytest.fixture
def session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def frozen_clock():
    timeMachine.setTime(FROZEN_NOW)
    yield timeMachine
    timeMachine.resetToRealTime()
    eventBus.clear()


class EventRecorder:
    def __init__(self):
        self.events = []

    def subscribe(self, *eventNames):
        for name in eventNames:
            eventBus.subscribe(name, lambda data, name=name: self.events.append((name, data)))
        return self

    def names(self):
        return [name for name, _ in self.events]

    def payloads(self, eventName):
        return [data for name, data in self.events if name == eventName]


@pytest.fixture
def recorder():
    return EventRecorder()


class Seed:
    """Commits each created row so services start from a clean transaction."""

    def __init__(self, session):
        self.session = session
        self._codes = 0

    def _save(self, obj):
        self.session.add(obj)
        self.session.commit()
        return obj

    def verifikator(self, name="Budi"):
        self._codes += 1
        return self._save(Verifikator(name=name, referralCode=f"VRF{self._codes:03d}"))

    def merchant(self, name="Warung Sari", verifikator=None, isOpenManual=True, openTime=None, closeTime=None):
        return self._save(Merchant(
            name=name,
            isOpenManual=isOpenManual,
            openTime=openTime,
            closeTime=closeTime,
            verifikatorID=verifikator.verifikatorID if verifikator else None
        ))

    def pool(self, merchant, quotaSize=100, consumed=0, expiresIn=timedelta(days=30),
             status=PoolStatus.ACTIVE.value):
        return self._save(QuotaPool(
            merchantID=merchant.merchantID,
            quotaSize=quotaSize,
            consumed=consumed,
            startedAt=timeMachine.now,
            expiresAt=timeMachine.now + expiresIn,
            status=status,
            paymentStatus=PaymentStatus.PAID.value
        ))

    def tiers(self, *bands):
        """bands: (minPrice, maxPrice, creditCost) in sort order."""
        created = []
        for sortOrder, (minPrice, maxPrice, creditCost) in enumerate(bands, start=1):
            created.append(QuotaTier(
                minPrice=Decimal(str(minPrice)),
                maxPrice=Decimal(str(maxPrice)) if maxPrice is not None else None,
                creditCost=creditCost,
                sortOrder=sortOrder
            ))
        self.session.add_all(created)
        self.session.commit()
        return created

    def standardTiers(self):
        return self.tiers((0, 5000, 1), (5000, 20000, 2), (20000, None, 3))

    def order(self, merchant, total=10000, createdAt=None):
        return self._save(Order(
            merchantID=merchant.merchantID,
            total=Decimal(str(total)),
            createdAt=createdAt or timeMachine.now
        ))

    def orders(self, merchant, count, createdAt=None):
        self.session.add_all([
            Order(merchantID=merchant.merchantID, total=Decimal("10000"), createdAt=createdAt or timeMachine.now)
            for _ in range(count)
        ])
        self.session.commit()

    def package(self, name="Paket Hemat", price=100000, quota=500, validityDays=30, percent=10, isActive=True):
        return self._save(TransactionPackage(
            name=name,
            price=Decimal(str(price)),
            transactionQuota=quota,
            validityDays=validityDays,
            groupCommissionPercent=Decimal(str(percent)),
            isActive=isActive
        ))

    def commission(self, verifikator, merchant, amount, status=CommissionStatus.PENDING.value):
        pool = self.pool(merchant, status=PoolStatus.ACTIVE.value)
        return self._save(CommissionEntry(
            verifikatorID=verifikator.verifikatorID,
            merchantID=merchant.merchantID,
            subscriptionID=pool.poolID,
            packageAmount=Decimal(str(amount)) * 10,
            percent=Decimal("10"),
            amount=Decimal(str(amount)),
            status=status
        ))

    def group(self, verifikator, members=(), monthlyFee=15000, inactive=()):
        group = self._save(TradeGroup(
            verifikatorID=verifikator.verifikatorID,
            name="Paguyuban Pasar Baru",
            monthlyFee=Decimal(str(monthlyFee))
        ))
        for merchant in members:
            self.session.add(GroupMember(groupID=group.groupID, merchantID=merchant.merchantID))
        for merchant in inactive:
            self.session.add(GroupMember(
                groupID=group.groupID, merchantID=merchant.merchantID, status=MemberStatus.INACTIVE.value
            ))
        self.session.commit()
        return group


@pytest.fixture
def seed(session):
    return Seed(session)
