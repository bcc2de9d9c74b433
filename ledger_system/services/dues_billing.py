# ledger_system/services/dues_billing.py
"""
Dues billing engine - monthly kas for trade group members.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Dict, Optional
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import logging

from models import TradeGroup, GroupMember, KasPayment
from ledger_system.config.constants import KasStatus, MemberStatus
from ledger_system.errors import DuplicateBilling, InvalidStateTransition, RecordNotFound
from ledger_system.events.event_bus import eventBus, LedgerEvents
from ledger_system.services.commission_ledger import TransitionResult
from ledger_system.services.tier_resolver import toMoney
from ledger_system.utils.time_machine import timeMachine

logger = logging.getLogger(__name__)


def _validatePeriod(month: int, year: int):
    if not isinstance(month, int) or not 1 <= month <= 12:
        raise ValueError(f"month must be 1-12, got {month!r}")
    if not isinstance(year, int) or year < 1:
        raise ValueError(f"Invalid year: {year!r}")


def billedPayload(payment: KasPayment, groupName: str) -> Dict:
    return {
        "paymentId": payment.paymentID,
        "groupId": payment.groupID,
        "groupName": groupName,
        "merchantId": payment.merchantID,
        "month": payment.month,
        "year": payment.year,
        "amount": payment.amount
    }


class DuesBillingEngine:
    """Service for generating and reconciling KasPayment rows."""

    def __init__(self, session: Session):
        self.session = session

    def _getGroup(self, groupId: int) -> TradeGroup:
        group = self.session.query(TradeGroup).filter_by(groupID=groupId).first()
        if not group:
            raise RecordNotFound(f"Trade group {groupId} not found", groupId=groupId)
        return group

    def generateMonthly(self, groupId: int, month: int, year: int) -> int:
        """
        Bill every ACTIVE member of the group for the period at the group's
        current monthlyFee. Safe to run repeatedly: members already billed
        are skipped, and a concurrent run loses on the unique period key.

        Returns the number of rows created (0 on a repeated run).
        """
        _validatePeriod(month, year)

        try:
            group = self._getGroup(groupId)
            fee = toMoney(group.monthlyFee)

            members = self.session.query(GroupMember).filter_by(
                groupID=groupId,
                status=MemberStatus.ACTIVE.value
            ).order_by(GroupMember.memberID).all()

            billed = {
                row.merchantID for row in self.session.query(KasPayment.merchantID).filter_by(
                    groupID=groupId, month=month, year=year
                )
            }

            created = 0
            for member in members:
                if member.merchantID in billed:
                    continue

                try:
                    with self.session.begin_nested():
                        self.session.add(KasPayment(
                            groupID=groupId,
                            merchantID=member.merchantID,
                            month=month,
                            year=year,
                            amount=fee,
                            status=KasStatus.UNPAID.value
                        ))
                    created += 1
                except IntegrityError:
                    # Уже создан параллельным запуском
                    logger.info(f"Kas {month}/{year} for merchant {member.merchantID} already billed")

            payload = {
                "groupId": groupId,
                "groupName": group.name,
                "verifikatorId": group.verifikatorID,
                "month": month,
                "year": year,
                "created": created
            }
            self.session.commit()

        except Exception:
            self.session.rollback()
            raise

        logger.info(f"Kas generated for group {groupId}, {month}/{year}: {created} new bills")
        eventBus.emit(LedgerEvents.KAS_GENERATED, payload)

        return created

    def createManualBilling(
            self,
            groupId: int,
            merchantId: int,
            month: int,
            year: int,
            amount=None,
            note: Optional[str] = None
    ) -> KasPayment:
        """Single bill outside the monthly run. Raises DuplicateBilling if the period is already billed."""
        _validatePeriod(month, year)

        try:
            group = self._getGroup(groupId)
            amount = toMoney(amount) if amount is not None else toMoney(group.monthlyFee)
            if amount <= 0:
                raise ValueError(f"Kas amount must be positive, got {amount}")

            payment = KasPayment(
                groupID=groupId,
                merchantID=merchantId,
                month=month,
                year=year,
                amount=amount,
                status=KasStatus.UNPAID.value,
                notes=note
            )

            try:
                with self.session.begin_nested():
                    self.session.add(payment)
            except IntegrityError:
                raise DuplicateBilling(
                    f"Merchant {merchantId} already billed for {month}/{year} in group {groupId}",
                    groupId=groupId, merchantId=merchantId, month=month, year=year
                )

            payload = billedPayload(payment, group.name)
            self.session.commit()

        except Exception:
            self.session.rollback()
            raise

        logger.info(f"Manual kas {payload['paymentId']} created: merchant {merchantId}, {month}/{year}, {amount}")
        eventBus.emit(LedgerEvents.KAS_BILLED, payload)

        return payment

    def markPaid(self, paymentId: int, collectedBy: str, paymentDate: Optional[datetime] = None) -> TransitionResult:
        return self._toggle(paymentId, KasStatus.PAID, collectedBy=collectedBy, paymentDate=paymentDate)

    def markUnpaid(self, paymentId: int) -> TransitionResult:
        """Undo a mistaken PAID mark."""
        return self._toggle(paymentId, KasStatus.UNPAID)

    def _toggle(self, paymentId: int, target: KasStatus, collectedBy: str = None,
                paymentDate: Optional[datetime] = None) -> TransitionResult:
        payment = self.session.query(KasPayment).filter_by(
            paymentID=paymentId
        ).with_for_update().first()

        if not payment:
            self.session.rollback()
            raise RecordNotFound(f"Kas payment {paymentId} not found", paymentId=paymentId)

        previous = payment.status
        if previous == target.value:
            self.session.rollback()
            raise InvalidStateTransition(
                f"Kas payment {paymentId} is already {previous}",
                paymentId=paymentId, status=previous
            )

        payment.status = target.value
        if target == KasStatus.PAID:
            payment.paymentDate = paymentDate or timeMachine.now
            payment.collectedBy = collectedBy
        else:
            payment.paymentDate = None
            payment.collectedBy = None

        self.session.commit()
        logger.info(f"Kas payment {paymentId}: {previous} -> {target.value} (collected by {collectedBy})")

        return TransitionResult(entityId=paymentId, previousStatus=previous, newStatus=target.value)

    def sendReminders(self, groupId: int, month: int, year: int) -> int:
        """Emit kas.reminder for each UNPAID bill of the period."""
        _validatePeriod(month, year)

        try:
            group = self._getGroup(groupId)
            unpaid = self.session.query(KasPayment).filter_by(
                groupID=groupId,
                month=month,
                year=year,
                status=KasStatus.UNPAID.value
            ).order_by(KasPayment.paymentID).all()

            now = timeMachine.now
            payloads = []
            for payment in unpaid:
                payment.reminderSentAt = now
                payloads.append(billedPayload(payment, group.name))

            self.session.commit()

        except Exception:
            self.session.rollback()
            raise

        for payload in payloads:
            eventBus.emit(LedgerEvents.KAS_REMINDER, payload)

        logger.info(f"Kas reminders for group {groupId}, {month}/{year}: {len(payloads)} sent")
        return len(payloads)

    def listPayments(self, groupId: int, month: Optional[int] = None, year: Optional[int] = None,
                     status: Optional[str] = None) -> List[KasPayment]:
        query = self.session.query(KasPayment).filter_by(groupID=groupId)
        if month is not None:
            query = query.filter_by(month=month)
        if year is not None:
            query = query.filter_by(year=year)
        if status:
            query = query.filter_by(status=status)
        return query.order_by(KasPayment.year.desc(), KasPayment.month.desc(), KasPayment.merchantID).all()

    def getPeriodSummary(self, groupId: int, month: int, year: int) -> Dict:
        _validatePeriod(month, year)

        rows = self.session.query(
            KasPayment.status,
            func.count(KasPayment.paymentID),
            func.coalesce(func.sum(KasPayment.amount), 0)
        ).filter(
            KasPayment.groupID == groupId,
            KasPayment.month == month,
            KasPayment.year == year
        ).group_by(KasPayment.status).all()

        summary = {
            "groupId": groupId,
            "month": month,
            "year": year,
            "paidCount": 0,
            "unpaidCount": 0,
            "collected": Decimal("0"),
            "outstanding": Decimal("0")
        }
        for status, count, total in rows:
            if status == KasStatus.PAID.value:
                summary["paidCount"] = count
                summary["collected"] = toMoney(total)
            else:
                summary["unpaidCount"] += count
                summary["outstanding"] += toMoney(total)

        return summary
