from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import status
from fastapi.security import HTTPBearer, HTTPBasic
from pydantic import BaseModel
import secrets
import string
from enum import Enum

from .config import Settings
from .errors import APIError

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Credentials are checked by the dependencies so the error body stays uniform
bearer_scheme = HTTPBearer(auto_error=False)
basic_scheme = HTTPBasic(auto_error=False)

class UserRole(str, Enum):
    ADMIN = "admin"
    PATIENT = "patient"

class TokenPayload(BaseModel):
    sub: Optional[str] = None
    exp: Optional[int] = None

# Password utilities
def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    """Generate password hash."""
    return pwd_context.hash(password)

def generate_random_password(length: int = 16) -> str:
    """Password for accounts created on someone's behalf."""
    return secrets.token_urlsafe(length)

def generate_otp(length: int = 6) -> str:
    """Numeric one-time code for password resets."""
    return "".join(secrets.choice(string.digits) for _ in range(length))

def otp_is_valid(submitted: str, stored: Optional[str], expires_at: Optional[datetime]) -> bool:
    """Check a submitted OTP against the stored code and its expiry."""
    if not stored or not expires_at:
        return False
    if datetime.utcnow() >= expires_at:
        return False
    return secrets.compare_digest(submitted.encode(), stored.encode())

# JWT utilities
def create_access_token(
    user_id: int,
    settings: Settings,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create a signed token carrying only the user id."""
    if expires_delta is None:
        expires_delta = timedelta(days=settings.TOKEN_EXPIRE_DAYS)

    to_encode = {
        "sub": str(user_id),
        "exp": datetime.utcnow() + expires_delta,
    }

    return jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )

def verify_token(token: str, settings: Settings) -> Optional[TokenPayload]:
    """Verify and decode JWT token."""
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )

        return TokenPayload(**payload)

    except JWTError:
        return None

# Security exceptions
class AuthenticationError(APIError):
    def __init__(self, detail: str = "Could not validate credentials", scheme: str = "Bearer"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": scheme},
        )

class AuthorizationError(APIError):
    def __init__(self, detail: str = "Not enough permissions", code: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            code=code,
        )

# OAuth 2.0 utilities
class OAuthProvider(str, Enum):
    GOOGLE = "google"

def generate_oauth_state() -> str:
    """Generate state parameter for OAuth 2.0 flow."""
    return secrets.token_urlsafe(32)
