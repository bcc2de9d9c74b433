# models/quota_usage_log.py
from sqlalchemy import Column, Integer, String, DECIMAL, Text, ForeignKey
from models.base import Base, AuditMixin


class QuotaUsageLog(Base, AuditMixin):
    __tablename__ = 'quota_usage_logs'

    logID = Column(Integer, primary_key=True, autoincrement=True)

    merchantID = Column(Integer, ForeignKey('merchants.merchantID'), nullable=False, index=True)
    orderID = Column(Integer, ForeignKey('orders.orderID'), nullable=True)

    orderTotal = Column(DECIMAL(12, 2), nullable=False)
    creditsUsed = Column(Integer, nullable=False)
    remainingQuota = Column(Integer, nullable=False)
    source = Column(String, nullable=False)  # premium, free
    notes = Column(Text, nullable=True)

    def __repr__(self):
        return f"<QuotaUsageLog(logID={self.logID}, merchant={self.merchantID}, credits={self.creditsUsed})>"
