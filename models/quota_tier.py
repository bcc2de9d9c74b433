# models/quota_tier.py
from sqlalchemy import Column, Integer, DECIMAL
from models.base import Base, AuditMixin


class QuotaTier(Base, AuditMixin):
    __tablename__ = 'quota_tiers'

    tierID = Column(Integer, primary_key=True, autoincrement=True)

    minPrice = Column(DECIMAL(12, 2), nullable=False)  # включительно
    maxPrice = Column(DECIMAL(12, 2), nullable=True)  # исключительно, NULL = без ограничения
    creditCost = Column(Integer, nullable=False, default=1)
    sortOrder = Column(Integer, nullable=False, default=0)

    def contains(self, price) -> bool:
        if price < self.minPrice:
            return False
        return self.maxPrice is None or price < self.maxPrice

    def __repr__(self):
        return f"<QuotaTier(tierID={self.tierID}, [{self.minPrice}, {self.maxPrice}) cost={self.creditCost})>"
