# models/quota_pool.py
"""
QuotaPool model - a purchased, time-bounded bundle of transaction credits.
"""
from sqlalchemy import Column, Integer, String, DECIMAL, DateTime, Text, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import relationship
from models.base import Base, AuditMixin


class QuotaPool(Base, AuditMixin):
    __tablename__ = 'quota_pools'

    poolID = Column(Integer, primary_key=True, autoincrement=True)

    merchantID = Column(Integer, ForeignKey('merchants.merchantID'), nullable=False)
    packageID = Column(Integer, ForeignKey('transaction_packages.packageID'), nullable=True)

    # Credits
    quotaSize = Column(Integer, nullable=False)
    consumed = Column(Integer, nullable=False, default=0)

    # Validity
    startedAt = Column(DateTime, nullable=True)
    expiresAt = Column(DateTime, nullable=True)  # NULL пока пакет не одобрен
    status = Column(String, nullable=False, default="PENDING")  # PENDING, ACTIVE, EXPIRED, REJECTED

    # Purchase
    paymentAmount = Column(DECIMAL(12, 2), nullable=True)
    paymentStatus = Column(String, default="PENDING")  # PENDING, PAID, REJECTED
    paidAt = Column(DateTime, nullable=True)
    adminNotes = Column(Text, nullable=True)

    merchant = relationship('Merchant', backref='quota_pools')
    package = relationship('TransactionPackage')

    __table_args__ = (
        CheckConstraint('consumed >= 0 AND consumed <= "quotaSize"', name='ck_quota_pools_consumed'),
        Index('ix_quota_pools_merchant_status', 'merchantID', 'status', 'expiresAt'),
    )

    @property
    def remaining(self) -> int:
        return max(0, (self.quotaSize or 0) - (self.consumed or 0))

    def __repr__(self):
        return f"<QuotaPool(poolID={self.poolID}, merchant={self.merchantID}, {self.consumed}/{self.quotaSize})>"
