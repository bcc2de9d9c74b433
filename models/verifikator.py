# models/verifikator.py
"""
Verifikator model - regional reseller who recruits merchants by referral code.
"""
from sqlalchemy import Column, Integer, String, Boolean
from models.base import Base, AuditMixin


class Verifikator(Base, AuditMixin):
    __tablename__ = 'verifikators'

    verifikatorID = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    referralCode = Column(String, unique=True, nullable=False)
    isActive = Column(Boolean, default=True)

    def __repr__(self):
        return f"<Verifikator(verifikatorID={self.verifikatorID}, code={self.referralCode})>"
