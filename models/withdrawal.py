# models/withdrawal.py
"""
Withdrawal model - verifikator payout request against accrued commission.
"""
from sqlalchemy import Column, Integer, String, DECIMAL, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from models.base import Base, AuditMixin


class Withdrawal(Base, AuditMixin):
    __tablename__ = 'withdrawals'

    withdrawalID = Column(Integer, primary_key=True, autoincrement=True)
    verifikatorID = Column(Integer, ForeignKey('verifikators.verifikatorID'), nullable=False, index=True)

    amount = Column(DECIMAL(12, 2), nullable=False)

    # Bank details
    bankName = Column(String, nullable=False)
    accountNumber = Column(String, nullable=False)
    accountHolder = Column(String, nullable=False)

    # Processing
    status = Column(String, default="PENDING")  # PENDING, APPROVED, REJECTED
    adminNotes = Column(Text, nullable=True)
    processedAt = Column(DateTime, nullable=True)
    processedBy = Column(String, nullable=True)  # кто обработал (админ)

    verifikator = relationship('Verifikator', backref='withdrawals')

    def __repr__(self):
        return f"<Withdrawal(withdrawalID={self.withdrawalID}, verifikator={self.verifikatorID}, amount={self.amount})>"
