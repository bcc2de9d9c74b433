# models/transaction_package.py
from sqlalchemy import Column, Integer, String, DECIMAL, Boolean, Text
from models.base import Base, AuditMixin


class TransactionPackage(Base, AuditMixin):
    __tablename__ = 'transaction_packages'

    packageID = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    price = Column(DECIMAL(12, 2), nullable=False)
    transactionQuota = Column(Integer, nullable=False)
    validityDays = Column(Integer, nullable=False, default=30)

    groupCommissionPercent = Column(DECIMAL(5, 2), default=0)  # 10 = 10% верификатору
    isActive = Column(Boolean, default=True)

    def __repr__(self):
        return f"<TransactionPackage(packageID={self.packageID}, name={self.name}, quota={self.transactionQuota})>"
