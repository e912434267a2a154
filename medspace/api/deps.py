from fastapi import Depends, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBasicCredentials
from sqlalchemy.orm import Session
from typing import List, Optional

from ..core.config import Settings, get_settings
from ..core.database import get_db, get_redis
from ..core.errors import APIError
from ..core.mail import Mailer, get_mailer
from ..core.security import (
    bearer_scheme, basic_scheme, verify_token, verify_password,
    AuthenticationError, AuthorizationError, UserRole, TokenPayload
)
from ..models.user import User
from ..services.mail_service import MailService

async def get_current_user_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings)
) -> TokenPayload:
    """Extract and verify JWT token from Authorization header."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    token_payload = verify_token(credentials.credentials, settings)
    if not token_payload or not token_payload.sub:
        raise AuthenticationError("Invalid or expired token")

    return token_payload

async def get_current_user(
    token_payload: TokenPayload = Depends(get_current_user_token),
    db: Session = Depends(get_db)
) -> User:
    """Get current authenticated user from database."""
    try:
        user_id = int(token_payload.sub)
    except ValueError:
        raise AuthenticationError("Invalid token payload")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise AuthenticationError("User not found")

    return user

# Role-based access control dependencies
def require_role(allowed_roles: List[UserRole]):
    """Create a dependency that requires specific user roles."""
    async def role_checker(
        current_user: User = Depends(get_current_user)
    ) -> User:
        if current_user.role not in allowed_roles:
            raise AuthorizationError(
                f"Access denied. Required roles: {[role.value for role in allowed_roles]}"
            )
        return current_user

    return role_checker

def ensure_self_or_admin(current_user: User, user_id: int):
    if current_user.id != user_id and current_user.role != UserRole.ADMIN:
        raise AuthorizationError("You can only access your own account")

async def get_basic_admin(
    credentials: Optional[HTTPBasicCredentials] = Depends(basic_scheme),
    db: Session = Depends(get_db)
) -> User:
    """Admin routes: HTTP Basic with email and password both verified."""
    if credentials is None:
        raise AuthenticationError("No authorization header provided", scheme="Basic")

    user = db.query(User).filter(User.email == credentials.username).first()
    if not user or not verify_password(credentials.password, user.password_hash):
        raise AuthenticationError("Invalid email or password", scheme="Basic")

    if user.role != UserRole.ADMIN:
        raise AuthorizationError("Admin access required")

    return user

def get_mail_service(
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer)
) -> MailService:
    return MailService(db, mailer)

# Rate limiting dependency
async def rate_limit_check(
    request: Request,
    redis_client = Depends(get_redis),
    settings: Settings = Depends(get_settings)
) -> None:
    """Fixed-window request limit per client IP for unauthenticated auth endpoints."""
    client_ip = request.client.host if request.client else "unknown"
    key = f"rate_limit:{request.url.path}:{client_ip}"

    current_requests = redis_client.get(key)
    if current_requests is None:
        redis_client.setex(key, settings.RATE_LIMIT_WINDOW_SECONDS, 1)
    else:
        if int(current_requests) >= settings.RATE_LIMIT_REQUESTS:
            raise APIError(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests. Please try again later."
            )
        redis_client.incr(key)
