from datetime import datetime, timezone
from decimal import Decimal

import pytest

from models import KasPayment, GroupMember
from ledger_system.config.constants import KasStatus
from ledger_system.errors import DuplicateBilling, InvalidStateTransition, RecordNotFound
from ledger_system.events.event_bus import LedgerEvents
from ledger_system.services.dues_billing import DuesBillingEngine


@pytest.fixture
def group(seed):
    verifikator = seed.verifikator()
    members = [seed.merchant(name=f"Toko {i}") for i in range(3)]
    leaver = seed.merchant(name="Toko Tutup")
    return seed.group(verifikator, members=members, inactive=[leaver], monthlyFee=15000)


def periodRows(session, groupId, month=6, year=2025):
    return session.query(KasPayment).filter_by(groupID=groupId, month=month, year=year).all()


class TestGenerateMonthly:
    def test_bills_active_members_once(self, session, group):
        engine = DuesBillingEngine(session)
        groupId = group.groupID

        assert engine.generateMonthly(groupId, 6, 2025) == 3
        first = {(p.merchantID, p.amount, p.status) for p in periodRows(session, groupId)}

        assert engine.generateMonthly(groupId, 6, 2025) == 0
        second = {(p.merchantID, p.amount, p.status) for p in periodRows(session, groupId)}

        assert first == second
        assert {amount for _, amount, _ in first} == {Decimal("15000")}
        assert {status for _, _, status in first} == {KasStatus.UNPAID.value}

    def test_new_member_billed_on_rerun(self, session, seed, group):
        engine = DuesBillingEngine(session)
        engine.generateMonthly(group.groupID, 6, 2025)

        newcomer = seed.merchant(name="Toko Baru")
        session.add(GroupMember(groupID=group.groupID, merchantID=newcomer.merchantID))
        session.commit()

        assert engine.generateMonthly(group.groupID, 6, 2025) == 1

    def test_uses_current_fee(self, session, group):
        engine = DuesBillingEngine(session)
        engine.generateMonthly(group.groupID, 6, 2025)

        group.monthlyFee = Decimal("20000")
        session.commit()
        engine.generateMonthly(group.groupID, 7, 2025)

        assert {p.amount for p in periodRows(session, group.groupID, 6)} == {Decimal("15000")}
        assert {p.amount for p in periodRows(session, group.groupID, 7)} == {Decimal("20000")}

    def test_emits_generated(self, session, group, recorder):
        recorder.subscribe(LedgerEvents.KAS_GENERATED)
        DuesBillingEngine(session).generateMonthly(group.groupID, 6, 2025)

        payload = recorder.payloads(LedgerEvents.KAS_GENERATED)[0]
        assert payload["created"] == 3
        assert (payload["month"], payload["year"]) == (6, 2025)

    @pytest.mark.parametrize("month", [0, 13])
    def test_invalid_month(self, session, group, month):
        with pytest.raises(ValueError):
            DuesBillingEngine(session).generateMonthly(group.groupID, month, 2025)

    def test_unknown_group(self, session):
        with pytest.raises(RecordNotFound):
            DuesBillingEngine(session).generateMonthly(99, 6, 2025)


class TestManualBilling:
    def test_defaults_to_monthly_fee(self, session, seed, group, recorder):
        recorder.subscribe(LedgerEvents.KAS_BILLED)
        merchant = seed.merchant(name="Toko Tamu")

        payment = DuesBillingEngine(session).createManualBilling(
            group.groupID, merchant.merchantID, 5, 2025, note="tunggakan"
        )

        assert payment.amount == Decimal("15000")
        assert payment.notes == "tunggakan"
        assert recorder.payloads(LedgerEvents.KAS_BILLED)[0]["paymentId"] == payment.paymentID

    def test_duplicate_period(self, session, group):
        engine = DuesBillingEngine(session)
        engine.generateMonthly(group.groupID, 6, 2025)
        merchantId = periodRows(session, group.groupID)[0].merchantID

        with pytest.raises(DuplicateBilling):
            engine.createManualBilling(group.groupID, merchantId, 6, 2025, amount=5000)

        assert len(periodRows(session, group.groupID)) == 3

    def test_generate_skips_manually_billed_member(self, session, group):
        engine = DuesBillingEngine(session)
        memberId = next(m.merchantID for m in group.members if m.status == "ACTIVE")
        engine.createManualBilling(group.groupID, memberId, 6, 2025, amount=5000)

        assert engine.generateMonthly(group.groupID, 6, 2025) == 2


class TestPaymentToggle:
    def test_mark_paid_and_undo(self, session, group):
        engine = DuesBillingEngine(session)
        engine.generateMonthly(group.groupID, 6, 2025)
        paymentId = periodRows(session, group.groupID)[0].paymentID
        paidOn = datetime(2025, 6, 10, 3, 0, tzinfo=timezone.utc)

        result = engine.markPaid(paymentId, collectedBy="bendahara", paymentDate=paidOn)
        assert (result.previousStatus, result.newStatus) == ("UNPAID", "PAID")

        paid = session.get(KasPayment, paymentId)
        assert paid.collectedBy == "bendahara"
        assert paid.paymentDate == paidOn.replace(tzinfo=None)

        engine.markUnpaid(paymentId)
        unpaid = session.get(KasPayment, paymentId)
        assert unpaid.status == KasStatus.UNPAID.value
        assert unpaid.paymentDate is None
        assert unpaid.collectedBy is None

    def test_mark_paid_twice(self, session, group):
        engine = DuesBillingEngine(session)
        engine.generateMonthly(group.groupID, 6, 2025)
        paymentId = periodRows(session, group.groupID)[0].paymentID
        engine.markPaid(paymentId, collectedBy="bendahara")

        with pytest.raises(InvalidStateTransition):
            engine.markPaid(paymentId, collectedBy="bendahara")

    def test_unknown_payment(self, session):
        with pytest.raises(RecordNotFound):
            DuesBillingEngine(session).markUnpaid(1)


class TestRemindersAndSummary:
    def test_reminders_for_unpaid_only(self, session, group, recorder, frozen_clock):
        recorder.subscribe(LedgerEvents.KAS_REMINDER)
        engine = DuesBillingEngine(session)
        engine.generateMonthly(group.groupID, 6, 2025)
        rows = periodRows(session, group.groupID)
        engine.markPaid(rows[0].paymentID, collectedBy="bendahara")

        assert engine.sendReminders(group.groupID, 6, 2025) == 2

        reminded = {p["merchantId"] for p in recorder.payloads(LedgerEvents.KAS_REMINDER)}
        stamped = {p.merchantID for p in periodRows(session, group.groupID) if p.reminderSentAt is not None}
        assert reminded == stamped
        assert len(stamped) == 2

    def test_period_summary(self, session, group):
        engine = DuesBillingEngine(session)
        engine.generateMonthly(group.groupID, 6, 2025)
        rows = periodRows(session, group.groupID)
        engine.markPaid(rows[0].paymentID, collectedBy="bendahara")

        summary = engine.getPeriodSummary(group.groupID, 6, 2025)

        assert summary["paidCount"] == 1
        assert summary["unpaidCount"] == 2
        assert summary["collected"] == Decimal("15000")
        assert summary["outstanding"] == Decimal("30000")

    def test_list_payments(self, session, group):
        engine = DuesBillingEngine(session)
        engine.generateMonthly(group.groupID, 5, 2025)
        engine.generateMonthly(group.groupID, 6, 2025)

        assert len(engine.listPayments(group.groupID)) == 6
        assert len(engine.listPayments(group.groupID, month=6, year=2025, status="UNPAID")) == 3
