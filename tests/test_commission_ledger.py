from decimal import Decimal

import pytest

from models import CommissionEntry
from ledger_system.config.constants import CommissionStatus
from ledger_system.errors import InvalidStateTransition, RecordNotFound
from ledger_system.events.event_bus import LedgerEvents
from ledger_system.services.commission_ledger import CommissionLedger, calculateCommission


@pytest.fixture
def parties(seed):
    verifikator = seed.verifikator()
    merchant = seed.merchant(verifikator=verifikator)
    pool = seed.pool(merchant)
    return verifikator, merchant, pool


def accrue(session, parties, amount=150000, percent=10):
    verifikator, merchant, pool = parties
    return CommissionLedger(session).accrue(
        verifikator.verifikatorID, merchant.merchantID, pool.poolID, amount, percent
    )


class TestCalculation:
    @pytest.mark.parametrize("amount, percent, expected", [
        (150000, 10, Decimal("15000")),
        (99999, 10, Decimal("10000")),
        (12345, "2.5", Decimal("309")),
        (15, 10, Decimal("2")),
        (0, 10, Decimal("0")),
    ])
    def test_rounds_half_up_to_whole_units(self, amount, percent, expected):
        assert calculateCommission(amount, percent) == expected


class TestAccrue:
    def test_creates_pending_entry(self, session, parties, recorder):
        recorder.subscribe(LedgerEvents.COMMISSION_ACCRUED)

        entry = accrue(session, parties)

        assert entry.status == CommissionStatus.PENDING.value
        assert entry.amount == Decimal("15000")
        assert recorder.payloads(LedgerEvents.COMMISSION_ACCRUED)[0]["entryId"] == entry.entryID

    def test_retry_returns_existing_entry(self, session, parties, recorder):
        recorder.subscribe(LedgerEvents.COMMISSION_ACCRUED)

        first = accrue(session, parties)
        second = accrue(session, parties, amount=999999)

        assert second.entryID == first.entryID
        assert session.query(CommissionEntry).count() == 1
        assert len(recorder.events) == 1

    def test_unique_constraint_catches_racing_insert(self, session, session_factory, parties):
        verifikator, merchant, pool = parties
        verifikatorId, merchantId, poolId = verifikator.verifikatorID, merchant.merchantID, pool.poolID
        # Release the read transaction so the racing session can write
        session.rollback()

        ledger = CommissionLedger(session)
        realLookup = ledger.getBySubscription
        calls = []

        def lookupMissingFirst(subscriptionId):
            calls.append(subscriptionId)
            return None if len(calls) == 1 else realLookup(subscriptionId)

        ledger.getBySubscription = lookupMissingFirst

        racing = session_factory()
        racing.add(CommissionEntry(
            verifikatorID=verifikatorId, merchantID=merchantId, subscriptionID=poolId,
            packageAmount=Decimal("1000"), percent=Decimal("10"), amount=Decimal("100"),
            status=CommissionStatus.PENDING.value
        ))
        racing.commit()
        racing.close()

        entry = ledger.accrue(verifikatorId, merchantId, poolId, 150000, 10)

        assert entry.amount == Decimal("100")
        assert len(calls) == 2
        assert session.query(CommissionEntry).count() == 1


class TestTransitions:
    def test_mark_paid(self, session, parties, recorder):
        recorder.subscribe(LedgerEvents.COMMISSION_PAID)
        entry = accrue(session, parties)

        result = CommissionLedger(session).markPaid(entry.entryID)

        assert (result.previousStatus, result.newStatus) == ("PENDING", "PAID")
        assert session.get(CommissionEntry, entry.entryID).paidAt is not None
        assert recorder.payloads(LedgerEvents.COMMISSION_PAID)[0]["amount"] == Decimal("15000")

    def test_mark_rejected_stores_reason(self, session, parties):
        entry = accrue(session, parties)

        CommissionLedger(session).markRejected(entry.entryID, "refund")

        stored = session.get(CommissionEntry, entry.entryID)
        assert stored.status == CommissionStatus.REJECTED.value
        assert stored.rejectionReason == "refund"

    @pytest.mark.parametrize("first", ["markPaid", "markRejected"])
    @pytest.mark.parametrize("second", ["markPaid", "markRejected"])
    def test_terminal_states_are_final(self, session, parties, first, second):
        entry = accrue(session, parties)
        ledger = CommissionLedger(session)
        args = {"markPaid": (), "markRejected": ("reason",)}

        getattr(ledger, first)(entry.entryID, *args[first])

        with pytest.raises(InvalidStateTransition):
            getattr(ledger, second)(entry.entryID, *args[second])

    def test_missing_entry(self, session):
        with pytest.raises(RecordNotFound):
            CommissionLedger(session).markPaid(42)


class TestQueries:
    def test_totals_and_listing(self, session, seed):
        verifikator = seed.verifikator()
        merchant = seed.merchant(verifikator=verifikator)
        seed.commission(verifikator, merchant, 5000)
        seed.commission(verifikator, merchant, 7000, status=CommissionStatus.PAID.value)
        seed.commission(verifikator, merchant, 1000, status=CommissionStatus.REJECTED.value)
        ledger = CommissionLedger(session)

        totals = ledger.getTotals(verifikator.verifikatorID)

        assert totals == {"pending": Decimal("5000"), "paid": Decimal("7000"), "rejected": Decimal("1000")}
        assert len(ledger.listEntries(verifikator.verifikatorID)) == 3
        assert [e.amount for e in ledger.listEntries(verifikator.verifikatorID, status="PAID")] == [Decimal("7000")]

    def test_totals_empty(self, session, seed):
        verifikator = seed.verifikator()
        totals = CommissionLedger(session).getTotals(verifikator.verifikatorID)
        assert totals == {"pending": 0, "paid": 0, "rejected": 0}
