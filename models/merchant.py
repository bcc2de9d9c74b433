# models/merchant.py
"""
Merchant model - seller account as seen by the quota ledger.
"""
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from models.base import Base, AuditMixin


class Merchant(Base, AuditMixin):
    __tablename__ = 'merchants'

    merchantID = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    status = Column(String, default="ACTIVE")  # ACTIVE, PENDING, SUSPENDED

    # Operating hours
    isOpenManual = Column(Boolean, default=True)  # ручной переключатель открыт/закрыт
    openTime = Column(String(5), nullable=True)  # "08:00"
    closeTime = Column(String(5), nullable=True)  # "17:00", может быть < openTime (ночной режим)

    # Referral
    verifikatorID = Column(Integer, ForeignKey('verifikators.verifikatorID'), nullable=True, index=True)

    # Note: createdAt, updatedAt - от AuditMixin

    verifikator = relationship('Verifikator', backref='merchants')

    def __repr__(self):
        return f"<Merchant(merchantID={self.merchantID}, name={self.name})>"
