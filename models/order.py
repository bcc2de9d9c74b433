# models/order.py
"""
Order model - only the columns the quota ledger reads or stamps.
"""
from sqlalchemy import Column, Integer, DECIMAL, ForeignKey, Index
from sqlalchemy.orm import relationship
from models.base import Base, AuditMixin


class Order(Base, AuditMixin):
    __tablename__ = 'orders'

    orderID = Column(Integer, primary_key=True, autoincrement=True)
    merchantID = Column(Integer, ForeignKey('merchants.merchantID'), nullable=False)

    total = Column(DECIMAL(12, 2), nullable=False)

    # Audit of the quota charge, set once at debit time
    creditsUsed = Column(Integer, nullable=True)
    quotaTierID = Column(Integer, ForeignKey('quota_tiers.tierID'), nullable=True)

    merchant = relationship('Merchant', backref='orders')

    # Free tier counts orders per merchant since the start of the month
    __table_args__ = (
        Index('ix_orders_merchant_created', 'merchantID', 'createdAt'),
    )

    def __repr__(self):
        return f"<Order(orderID={self.orderID}, merchant={self.merchantID}, total={self.total})>"
