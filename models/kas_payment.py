# models/kas_payment.py
"""
KasPayment model - one monthly dues bill per group member and period.
"""
from sqlalchemy import Column, Integer, String, DECIMAL, DateTime, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from models.base import Base, AuditMixin


class KasPayment(Base, AuditMixin):
    __tablename__ = 'kas_payments'

    paymentID = Column(Integer, primary_key=True, autoincrement=True)

    groupID = Column(Integer, ForeignKey('trade_groups.groupID'), nullable=False)
    merchantID = Column(Integer, ForeignKey('merchants.merchantID'), nullable=False)

    # Period
    month = Column(Integer, nullable=False)  # 1-12
    year = Column(Integer, nullable=False)

    amount = Column(DECIMAL(12, 2), nullable=False)
    status = Column(String, default="UNPAID")  # UNPAID, PAID

    # Collection
    paymentDate = Column(DateTime, nullable=True)
    collectedBy = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    reminderSentAt = Column(DateTime, nullable=True)

    group = relationship('TradeGroup', backref='kas_payments')
    merchant = relationship('Merchant', backref='kas_payments')

    __table_args__ = (
        UniqueConstraint('groupID', 'merchantID', 'month', 'year', name='uq_kas_payments_period'),
    )

    def __repr__(self):
        return f"<KasPayment(paymentID={self.paymentID}, merchant={self.merchantID}, {self.month}/{self.year}, {self.status})>"
