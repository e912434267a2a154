from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text
from sqlalchemy.sql import func
import enum

from ..core.database import Base

class DeliveryStatus(str, enum.Enum):
    QUEUED = "queued"
    SENT = "sent"
    FAILED = "failed"

class MailDelivery(Base):
    """Outbox row for one outbound email."""
    __tablename__ = "mail_deliveries"

    id = Column(Integer, primary_key=True, index=True)
    recipient = Column(String(255), nullable=False, index=True)
    subject = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    html = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default=DeliveryStatus.QUEUED.value, index=True)
    error = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    sent_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<MailDelivery(id={self.id}, recipient='{self.recipient}', status='{self.status}')>"
