from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session
import httpx
import logging
from urllib.parse import urlencode

from ...core.config import Settings, get_settings
from ...core.database import get_db, get_redis
from ...core.errors import BadRequestError
from ...core.security import generate_oauth_state, OAuthProvider
from ...api.deps import get_current_user, get_mail_service, rate_limit_check
from ...services.auth_service import AuthService
from ...services.mail_service import MailService
from ...schemas.auth import (
    UserLogin, TokenResponse, EmailCheck, OTPVerification,
    PasswordResetConfirm, OAuthCallback, OAuthUserInfo
)
from ...schemas.common import MessageResponse
from ...schemas.user import UserCreate, UserResponse, RegisterResponse
from ...models.user import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

OAUTH_STATE_TTL_SECONDS = 600

@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    _: None = Depends(rate_limit_check)
):
    """Register a new user. No token is issued; the client logs in next."""
    auth_service = AuthService(db, settings)
    user = auth_service.register_user(user_data)

    return RegisterResponse(
        message="User registered successfully",
        user=UserResponse.model_validate(user)
    )

@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: UserLogin,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    _: None = Depends(rate_limit_check)
):
    """Authenticate user and return a bearer token."""
    auth_service = AuthService(db, settings)
    return auth_service.authenticate_user(login_data)

@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """Get current user information."""
    return UserResponse.model_validate(current_user)

@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    reset_data: EmailCheck,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    mail_service: MailService = Depends(get_mail_service),
    _: None = Depends(rate_limit_check)
):
    """Email a one-time code. Delivery happens after the response."""
    auth_service = AuthService(db, settings)
    auth_service.request_password_reset(reset_data.email, mail_service, background_tasks)

    return {"message": "OTP sent successfully"}

@router.post("/verify-otp", response_model=MessageResponse)
async def verify_otp(
    otp_data: OTPVerification,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    _: None = Depends(rate_limit_check)
):
    """Check the one-time code and allow a password reset."""
    auth_service = AuthService(db, settings)
    auth_service.verify_otp(otp_data)

    return {"message": "OTP verified successfully"}

@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    reset_data: PasswordResetConfirm,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """Set a new password after OTP verification."""
    auth_service = AuthService(db, settings)
    auth_service.reset_password(reset_data)

    return {"message": "Password updated successfully"}

# OAuth 2.0 routes
@router.get("/oauth/{provider}/login")
async def oauth_login(
    provider: str,
    settings: Settings = Depends(get_settings),
    redis_client = Depends(get_redis)
):
    """Initiate OAuth login flow."""
    if provider != OAuthProvider.GOOGLE.value:
        raise BadRequestError("Unsupported OAuth provider")

    # Generate state parameter for CSRF protection
    state = generate_oauth_state()
    redis_client.setex(f"oauth_state:{state}", OAUTH_STATE_TTL_SECONDS, provider)

    params = {
        "client_id": settings.GOOGLE_CLIENT_ID,
        "redirect_uri": settings.OAUTH_REDIRECT_URI,
        "scope": "openid email profile",
        "response_type": "code",
        "state": state,
    }

    return {"auth_url": f"https://accounts.google.com/o/oauth2/auth?{urlencode(params)}"}

@router.post("/oauth/callback", response_model=TokenResponse)
async def oauth_callback(
    callback_data: OAuthCallback,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    redis_client = Depends(get_redis)
):
    """Handle OAuth callback."""
    stored_provider = redis_client.get(f"oauth_state:{callback_data.state}")
    if not stored_provider:
        raise BadRequestError("Invalid or expired state parameter")

    # States are single use
    redis_client.delete(f"oauth_state:{callback_data.state}")

    if stored_provider == OAuthProvider.GOOGLE.value:
        oauth_user = await _fetch_google_profile(callback_data.code, settings)
        auth_service = AuthService(db, settings)
        return auth_service.oauth_login(oauth_user)

    raise BadRequestError("Unsupported OAuth provider")

async def _fetch_google_profile(code: str, settings: Settings) -> OAuthUserInfo:
    """Exchange the authorization code and read the Google profile."""
    token_data = {
        "client_id": settings.GOOGLE_CLIENT_ID,
        "client_secret": settings.GOOGLE_CLIENT_SECRET,
        "code": code,
        "grant_type": "authorization_code",
        "redirect_uri": settings.OAUTH_REDIRECT_URI,
    }

    async with httpx.AsyncClient(timeout=10.0) as client:
        token_response = await client.post(
            "https://oauth2.googleapis.com/token",
            data=token_data
        )

        if token_response.status_code != 200:
            logger.warning(f"Google token exchange failed with {token_response.status_code}")
            raise BadRequestError("Failed to exchange code for token")

        access_token = token_response.json().get("access_token")

        user_response = await client.get(
            "https://www.googleapis.com/oauth2/v2/userinfo",
            headers={"Authorization": f"Bearer {access_token}"}
        )

        if user_response.status_code != 200:
            raise BadRequestError("Failed to get user information")

        user_info = user_response.json()

    return OAuthUserInfo(
        oauth_id=str(user_info["id"]),
        provider=OAuthProvider.GOOGLE.value,
        email=user_info["email"],
        email_verified=bool(user_info.get("verified_email")),
        display_name=user_info.get("name"),
    )
