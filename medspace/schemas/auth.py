from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

from .common import RequestModel
from .user import check_password_length

class UserLogin(RequestModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

class TokenResponse(BaseModel):
    token: str
    message: str

class EmailCheck(RequestModel):
    email: EmailStr

class OTPVerification(RequestModel):
    email: EmailStr
    otp: str = Field(..., min_length=4, max_length=12)

class PasswordResetConfirm(RequestModel):
    email: EmailStr
    new_password: str = Field(..., max_length=72)

    @field_validator("new_password")
    @classmethod
    def password_length(cls, value: str) -> str:
        return check_password_length(value)

class OAuthCallback(RequestModel):
    code: str
    state: str

class OAuthUserInfo(BaseModel):
    """Profile handed over by an OAuth provider."""
    oauth_id: str
    provider: str
    email: EmailStr
    email_verified: bool = False
    display_name: Optional[str] = None
