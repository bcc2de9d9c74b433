from sqlalchemy import Column, Integer, String, Text, DateTime
from datetime import datetime, timezone
from models.base import Base


class Notification(Base):
    __tablename__ = 'notifications'

    notificationID = Column(Integer, primary_key=True, autoincrement=True)
    createdAt = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    source = Column(String, nullable=False)
    title = Column(String, nullable=False)
    text = Column(Text, nullable=False)
    link = Column(String, nullable=True)

    targetType = Column(String, nullable=False)  # merchant, verifikator, admin
    targetValue = Column(String, nullable=False)

    category = Column(String, nullable=True)  # quota, withdrawal, withdrawal_review, kas, kas_summary, commission
    importance = Column(String, default='normal')  # critical, high, normal, low

    # Доставка - внешний обработчик очереди
    status = Column(String, default='pending')
    sentAt = Column(DateTime, nullable=True)
    failureReason = Column(Text, nullable=True)
