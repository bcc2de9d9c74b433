# ledger_system/services/withdrawal_processor.py
"""
Withdrawal processing for verifikator commission balances.

Balance policy (commit-on-approve):
    available = earned commission (PENDING + PAID)
              - committed withdrawals (PENDING + APPROVED)

A PENDING withdrawal reserves its amount at request time. Approval keeps
the amount committed, rejection releases it. Marking a commission entry
PAID is settlement bookkeeping and does not move the balance.
"""
from decimal import Decimal
from typing import List, Dict, Optional, Union
from sqlalchemy import func
from sqlalchemy.orm import Session
import logging

import config
from models import Verifikator, CommissionEntry, Withdrawal
from ledger_system.config.constants import (
    WithdrawalStatus, CommissionStatus, COMMITTED_WITHDRAWAL_STATUSES, EARNED_COMMISSION_STATUSES
)
from ledger_system.errors import InsufficientBalance, BelowMinimum, InvalidStateTransition, RecordNotFound
from ledger_system.events.event_bus import eventBus, LedgerEvents
from ledger_system.services.commission_ledger import TransitionResult
from ledger_system.services.tier_resolver import toMoney
from ledger_system.utils.time_machine import timeMachine

logger = logging.getLogger(__name__)


class WithdrawalProcessor:
    """Service for verifikator payout requests."""

    def __init__(self, session: Session):
        self.session = session

    def _commissionTotal(self, verifikatorId: int, statuses) -> Decimal:
        total = self.session.query(
            func.coalesce(func.sum(CommissionEntry.amount), 0)
        ).filter(
            CommissionEntry.verifikatorID == verifikatorId,
            CommissionEntry.status.in_(statuses)
        ).scalar()
        return toMoney(total or 0)

    def _withdrawalTotal(self, verifikatorId: int, statuses) -> Decimal:
        total = self.session.query(
            func.coalesce(func.sum(Withdrawal.amount), 0)
        ).filter(
            Withdrawal.verifikatorID == verifikatorId,
            Withdrawal.status.in_(statuses)
        ).scalar()
        return toMoney(total or 0)

    def getAvailableBalance(self, verifikatorId: int) -> Decimal:
        earned = self._commissionTotal(verifikatorId, EARNED_COMMISSION_STATUSES)
        committed = self._withdrawalTotal(verifikatorId, COMMITTED_WITHDRAWAL_STATUSES)
        return earned - committed

    def getEarningsSummary(self, verifikatorId: int) -> Dict[str, Decimal]:
        pendingCommission = self._commissionTotal(verifikatorId, (CommissionStatus.PENDING.value,))
        paidCommission = self._commissionTotal(verifikatorId, (CommissionStatus.PAID.value,))
        pendingWithdrawals = self._withdrawalTotal(verifikatorId, (WithdrawalStatus.PENDING.value,))
        approvedWithdrawals = self._withdrawalTotal(verifikatorId, (WithdrawalStatus.APPROVED.value,))

        return {
            "pendingCommission": pendingCommission,
            "paidCommission": paidCommission,
            "pendingWithdrawals": pendingWithdrawals,
            "approvedWithdrawals": approvedWithdrawals,
            "available": pendingCommission + paidCommission - pendingWithdrawals - approvedWithdrawals
        }

    def requestWithdrawal(
            self,
            verifikatorId: int,
            amount,
            bankName: str,
            accountNumber: str,
            accountHolder: str
    ) -> Withdrawal:
        """
        Reserve `amount` from the available balance as a PENDING withdrawal.

        The verifikator row is locked before the balance is read, so two
        concurrent requests are serialized and the second one sees the
        first reservation.
        """
        amount = toMoney(amount)
        if amount <= 0:
            raise ValueError(f"Withdrawal amount must be positive, got {amount}")

        if amount < config.MIN_WITHDRAWAL:
            raise BelowMinimum(
                f"Minimum withdrawal is {config.MIN_WITHDRAWAL}",
                amount=str(amount), minimum=config.MIN_WITHDRAWAL
            )

        bankDetails = {
            "bankName": bankName,
            "accountNumber": accountNumber,
            "accountHolder": accountHolder
        }
        for field, value in bankDetails.items():
            if value is None or not str(value).strip():
                raise ValueError(f"Withdrawal {field} must not be blank")
            bankDetails[field] = str(value).strip()

        try:
            verifikator = self.session.query(Verifikator).filter_by(
                verifikatorID=verifikatorId
            ).with_for_update().first()

            if not verifikator:
                raise RecordNotFound(f"Verifikator {verifikatorId} not found", verifikatorId=verifikatorId)

            available = self.getAvailableBalance(verifikatorId)
            if amount > available:
                logger.warning(
                    f"Verifikator {verifikatorId} requested {amount}, available {available}"
                )
                raise InsufficientBalance(
                    f"Insufficient balance: available {available}",
                    amount=str(amount), available=str(available)
                )

            withdrawal = Withdrawal(
                verifikatorID=verifikatorId,
                amount=amount,
                **bankDetails,
                status=WithdrawalStatus.PENDING.value
            )
            self.session.add(withdrawal)
            self.session.flush()

            payload = {
                "withdrawalId": withdrawal.withdrawalID,
                "verifikatorId": verifikatorId,
                "amount": amount,
                "bankName": bankDetails["bankName"]
            }
            self.session.commit()

        except Exception:
            self.session.rollback()
            raise

        logger.info(f"Withdrawal {payload['withdrawalId']} requested: verifikator {verifikatorId}, amount {amount}")
        eventBus.emit(LedgerEvents.WITHDRAWAL_REQUESTED, payload)

        return withdrawal

    def process(
            self,
            withdrawalId: int,
            decision: Union[str, WithdrawalStatus],
            notes: Optional[str] = None,
            adminId: Optional[str] = None
    ) -> TransitionResult:
        """PENDING -> APPROVED | REJECTED. Commission entries are not touched."""
        target = WithdrawalStatus(decision.upper() if isinstance(decision, str) else decision)
        if target == WithdrawalStatus.PENDING:
            raise ValueError("Decision must be APPROVED or REJECTED")

        withdrawal = self.session.query(Withdrawal).filter_by(
            withdrawalID=withdrawalId
        ).with_for_update().first()

        if not withdrawal:
            self.session.rollback()
            raise RecordNotFound(f"Withdrawal {withdrawalId} not found", withdrawalId=withdrawalId)

        if withdrawal.status != WithdrawalStatus.PENDING.value:
            previous = withdrawal.status
            self.session.rollback()
            raise InvalidStateTransition(
                f"Withdrawal {withdrawalId} already {previous}",
                withdrawalId=withdrawalId, status=previous
            )

        withdrawal.status = target.value
        withdrawal.adminNotes = notes
        withdrawal.processedAt = timeMachine.now
        withdrawal.processedBy = str(adminId) if adminId is not None else None

        payload = {
            "withdrawalId": withdrawalId,
            "verifikatorId": withdrawal.verifikatorID,
            "amount": withdrawal.amount,
            "bankName": withdrawal.bankName,
            "notes": notes
        }
        self.session.commit()

        logger.info(f"Withdrawal {withdrawalId}: PENDING -> {target.value} by admin {adminId}")

        event = LedgerEvents.WITHDRAWAL_APPROVED if target == WithdrawalStatus.APPROVED else LedgerEvents.WITHDRAWAL_REJECTED
        eventBus.emit(event, payload)

        return TransitionResult(
            entityId=withdrawalId,
            previousStatus=WithdrawalStatus.PENDING.value,
            newStatus=target.value
        )

    def listWithdrawals(self, verifikatorId: Optional[int] = None, status: Optional[str] = None) -> List[Withdrawal]:
        query = self.session.query(Withdrawal)
        if verifikatorId is not None:
            query = query.filter_by(verifikatorID=verifikatorId)
        if status:
            query = query.filter_by(status=status)
        return query.order_by(Withdrawal.createdAt.desc(), Withdrawal.withdrawalID.desc()).all()
