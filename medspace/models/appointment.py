from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
import re
import uuid

from ..core.database import Base

APPOINTMENT_ID_PATTERN = re.compile(r"[0-9a-f]{32}")

class AppointmentStatus(str, enum.Enum):
    """Statuses set by the booking paths. Updates may store any string."""
    PENDING = "pending"
    EMERGENCY = "emergency"

def new_appointment_id() -> str:
    return uuid.uuid4().hex

def is_valid_appointment_id(value: str) -> bool:
    return bool(APPOINTMENT_ID_PATTERN.fullmatch(value or ""))

class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String(32), primary_key=True, default=new_appointment_id)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    # Appointment details
    date = Column(DateTime, nullable=False)
    reason = Column(Text, nullable=False)
    status = Column(String(50), nullable=False, default=AppointmentStatus.PENDING.value)

    # Tracking
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="appointments")

    def __repr__(self):
        return f"<Appointment(id={self.id}, user_id={self.user_id}, date='{self.date}', status='{self.status}')>"
