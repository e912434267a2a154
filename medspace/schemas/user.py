from datetime import date, datetime
from typing import List, Literal, Optional
from pydantic import EmailStr, Field, field_validator

from .common import RequestModel, ResponseModel
from ..core.security import UserRole

Gender = Literal["Male", "Female", "Other"]

PHONE_PATTERN = r"^\+?[0-9][0-9\- ]{6,19}$"

def check_password_length(value: str) -> str:
    if len(value) < 8:
        raise ValueError("Password must be at least 8 characters long")
    return value

class Address(RequestModel):
    street: str = Field(..., min_length=1, max_length=200)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    postal_code: str = Field(..., min_length=3, max_length=12)
    country: Optional[str] = Field(None, max_length=100)

class UserCreate(RequestModel):
    """Full profile, as submitted on registration."""
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., max_length=72)
    phone: str = Field(..., pattern=PHONE_PATTERN)
    dob: date
    gender: Gender
    address: Address
    medical_history: List[str] = Field(default_factory=list)

    @field_validator("password")
    @classmethod
    def password_length(cls, value: str) -> str:
        return check_password_length(value)

class UserUpdate(RequestModel):
    """Partial profile update; every field optional."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, max_length=72)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    dob: Optional[date] = None
    gender: Optional[Gender] = None
    address: Optional[Address] = None
    medical_history: Optional[List[str]] = None

    @field_validator("password")
    @classmethod
    def password_length(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return check_password_length(value)

class AddressResponse(ResponseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None

class UserResponse(ResponseModel):
    id: int
    email: str
    name: str
    phone: Optional[str] = None
    dob: Optional[date] = None
    gender: Optional[str] = None
    age: Optional[int] = None
    address: Optional[AddressResponse] = None
    medical_history: List[str] = Field(default_factory=list)
    role: UserRole
    must_reset_password: bool = False
    created_at: Optional[datetime] = None

class RegisterResponse(ResponseModel):
    message: str
    user: UserResponse
