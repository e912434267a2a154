from sqlalchemy import Column, Integer, String, Date, DateTime, Boolean, JSON, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from sqlalchemy.ext.orderinglist import ordering_list

from ..core.database import Base
from ..core.security import UserRole
from .appointment import Appointment  # noqa: F401  registers the relationship target

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.PATIENT)

    # Profile
    name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=True)
    dob = Column(Date, nullable=True)
    gender = Column(String(20), nullable=True)
    age = Column(Integer, nullable=True)
    address = Column(JSON, nullable=True)
    medical_history = Column(JSON, nullable=False, default=list)

    # OAuth fields
    oauth_provider = Column(String(50), nullable=True)
    oauth_id = Column(String(255), nullable=True)

    # Password reset state
    otp = Column(String(12), nullable=True)
    otp_expires_at = Column(DateTime, nullable=True)
    reset_verified_until = Column(DateTime, nullable=True)
    # Set for accounts created on the user's behalf (emergency booking, OAuth)
    must_reset_password = Column(Boolean, nullable=False, default=False)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Owned sub-collection, kept in insertion order
    appointments = relationship(
        "Appointment",
        back_populates="user",
        order_by="Appointment.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )

    def clear_reset_state(self):
        self.otp = None
        self.otp_expires_at = None
        self.reset_verified_until = None

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
