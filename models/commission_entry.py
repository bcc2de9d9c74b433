# models/commission_entry.py
"""
CommissionEntry model - verifikator commission for one approved quota package.
"""
from sqlalchemy import Column, Integer, String, DECIMAL, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from models.base import Base, AuditMixin


class CommissionEntry(Base, AuditMixin):
    __tablename__ = 'commission_entries'

    entryID = Column(Integer, primary_key=True, autoincrement=True)

    # Relations
    verifikatorID = Column(Integer, ForeignKey('verifikators.verifikatorID'), nullable=False, index=True)
    merchantID = Column(Integer, ForeignKey('merchants.merchantID'), nullable=False)
    subscriptionID = Column(Integer, ForeignKey('quota_pools.poolID'), unique=True, nullable=False)  # одна комиссия на покупку
    packageID = Column(Integer, ForeignKey('transaction_packages.packageID'), nullable=True)

    # Calculation
    packageAmount = Column(DECIMAL(12, 2), nullable=False)
    percent = Column(DECIMAL(5, 2), nullable=False)  # 10 = 10%
    amount = Column(DECIMAL(12, 2), nullable=False)

    # Status
    status = Column(String, default="PENDING")  # PENDING, PAID, REJECTED
    paidAt = Column(DateTime, nullable=True)
    rejectionReason = Column(Text, nullable=True)

    verifikator = relationship('Verifikator', backref='commission_entries')
    subscription = relationship('QuotaPool')

    def __repr__(self):
        return f"<CommissionEntry(entryID={self.entryID}, verifikator={self.verifikatorID}, amount={self.amount})>"
