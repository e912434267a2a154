from datetime import datetime, timezone
from typing import Optional
from pydantic import EmailStr, Field, field_validator

from .common import RequestModel, ResponseModel
from .user import Gender, PHONE_PATTERN

def to_naive_utc(value: datetime) -> datetime:
    """Store timestamps as naive UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

class AppointmentCreate(RequestModel):
    date: datetime
    reason: str = Field(..., min_length=1, max_length=1000)
    # Accepted for client compatibility and discarded: bookings start pending
    status: Optional[str] = None

    normalize_date = field_validator("date")(to_naive_utc)

class AppointmentUpdate(RequestModel):
    date: datetime
    reason: str = Field(..., min_length=1, max_length=1000)
    status: str = Field(..., min_length=1, max_length=50)

    normalize_date = field_validator("date")(to_naive_utc)

class EmergencyAppointmentCreate(RequestModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    age: Optional[int] = Field(None, ge=0, le=150)
    gender: Optional[Gender] = None
    contact: str = Field(..., pattern=PHONE_PATTERN)
    reason: str = Field(..., min_length=1, max_length=1000)
    date: datetime

    normalize_date = field_validator("date")(to_naive_utc)

class AppointmentResponse(ResponseModel):
    id: str
    date: datetime
    reason: str
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class AppointmentMessageResponse(ResponseModel):
    message: str
    appointment: AppointmentResponse
