# models/trade_group.py
"""
TradeGroup and GroupMember models - merchant groups that pay monthly kas.
"""
from sqlalchemy import Column, Integer, String, DECIMAL, Boolean, DateTime, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from models.base import Base, AuditMixin


class TradeGroup(Base, AuditMixin):
    __tablename__ = 'trade_groups'

    groupID = Column(Integer, primary_key=True, autoincrement=True)
    verifikatorID = Column(Integer, ForeignKey('verifikators.verifikatorID'), nullable=False, index=True)

    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    monthlyFee = Column(DECIMAL(12, 2), nullable=False)
    isActive = Column(Boolean, default=True)

    verifikator = relationship('Verifikator', backref='trade_groups')
    members = relationship('GroupMember', back_populates='group')

    def __repr__(self):
        return f"<TradeGroup(groupID={self.groupID}, name={self.name}, fee={self.monthlyFee})>"


class GroupMember(Base):
    __tablename__ = 'group_members'

    memberID = Column(Integer, primary_key=True, autoincrement=True)
    groupID = Column(Integer, ForeignKey('trade_groups.groupID'), nullable=False)
    merchantID = Column(Integer, ForeignKey('merchants.merchantID'), nullable=False)

    status = Column(String, default="ACTIVE")  # ACTIVE, INACTIVE
    joinedAt = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    group = relationship('TradeGroup', back_populates='members')
    merchant = relationship('Merchant', backref='group_memberships')

    __table_args__ = (
        UniqueConstraint('groupID', 'merchantID', name='uq_group_members_group_merchant'),
    )

    def __repr__(self):
        return f"<GroupMember(group={self.groupID}, merchant={self.merchantID}, status={self.status})>"
