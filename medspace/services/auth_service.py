from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from fastapi import BackgroundTasks
from datetime import date, datetime, timedelta
import logging

from ..models.user import User
from ..core.config import Settings
from ..core.errors import BadRequestError, NotFoundError
from ..core.security import (
    verify_password, get_password_hash, create_access_token, UserRole,
    generate_otp, generate_random_password, otp_is_valid, AuthorizationError
)
from ..schemas.auth import (
    UserLogin, TokenResponse, OAuthUserInfo, OTPVerification, PasswordResetConfirm
)
from ..schemas.user import UserCreate
from .mail_service import MailService, otp_email

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"

# Placeholders for accounts built from an OAuth profile
OAUTH_PLACEHOLDER_PHONE = "0000000000"
OAUTH_PLACEHOLDER_ADDRESS = {
    "street": "Unknown",
    "city": "Unknown",
    "state": "Unknown",
    "postal_code": "000000",
}

class AuthService:
    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings

    def _get_by_email(self, email: str):
        return self.db.query(User).filter(User.email == email).first()

    def register_user(self, user_data: UserCreate, role: UserRole = UserRole.PATIENT) -> User:
        """Register a new user."""
        if self._get_by_email(user_data.email):
            raise BadRequestError("Email already registered")

        new_user = User(
            email=user_data.email,
            password_hash=get_password_hash(user_data.password),
            role=role,
            name=user_data.name,
            phone=user_data.phone,
            dob=user_data.dob,
            gender=user_data.gender,
            address=user_data.address.model_dump(),
            medical_history=list(user_data.medical_history),
        )

        self.db.add(new_user)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration of the same email
            self.db.rollback()
            raise BadRequestError("Email already registered")
        self.db.refresh(new_user)

        logger.info(f"Registered user {new_user.id}")
        return new_user

    def authenticate_user(self, login_data: UserLogin) -> TokenResponse:
        """Check credentials and issue a token."""
        user = self._get_by_email(login_data.email)

        # Same message for unknown email and wrong password
        if not user or not verify_password(login_data.password, user.password_hash):
            logger.info("Rejected login attempt")
            raise BadRequestError(INVALID_CREDENTIALS)

        if user.must_reset_password:
            raise AuthorizationError(
                "Password reset required before first login",
                code="password_reset_required"
            )

        logger.info(f"User {user.id} logged in")
        return TokenResponse(
            token=create_access_token(user.id, self.settings),
            message="User logged in successfully"
        )

    def oauth_login(self, oauth_data: OAuthUserInfo) -> TokenResponse:
        """Log in, link or create an account from an OAuth profile."""
        user = self.db.query(User).filter(
            User.oauth_provider == oauth_data.provider,
            User.oauth_id == oauth_data.oauth_id
        ).first()

        if not user:
            user = self._get_by_email(oauth_data.email)

            if user:
                # Only a provider-verified address may take over an existing account
                if not oauth_data.email_verified:
                    logger.warning(f"Refused to link unverified {oauth_data.provider} email to user {user.id}")
                    raise BadRequestError("OAuth email is not verified")
                # Link OAuth account to existing user
                user.oauth_provider = oauth_data.provider
                user.oauth_id = oauth_data.oauth_id
            else:
                # The password is never shown to anyone; password login needs a reset first
                user = User(
                    email=oauth_data.email,
                    password_hash=get_password_hash(generate_random_password()),
                    role=UserRole.PATIENT,
                    name=oauth_data.display_name or "Google User",
                    phone=OAUTH_PLACEHOLDER_PHONE,
                    address=dict(OAUTH_PLACEHOLDER_ADDRESS),
                    gender="Other",
                    dob=date.today(),
                    medical_history=[],
                    oauth_provider=oauth_data.provider,
                    oauth_id=oauth_data.oauth_id,
                    must_reset_password=True,
                )
                self.db.add(user)

        self.db.commit()
        self.db.refresh(user)

        logger.info(f"User {user.id} signed in with {oauth_data.provider}")
        return TokenResponse(
            token=create_access_token(user.id, self.settings),
            message="User logged in successfully"
        )

    def request_password_reset(
        self,
        email: str,
        mail_service: MailService,
        background_tasks: BackgroundTasks
    ) -> None:
        """Store a fresh OTP and queue it for delivery."""
        user = self._get_by_email(email)
        if not user:
            raise NotFoundError("Email not found")

        otp = generate_otp()
        user.otp = otp
        user.otp_expires_at = datetime.utcnow() + timedelta(minutes=self.settings.OTP_EXPIRE_MINUTES)
        user.reset_verified_until = None
        self.db.commit()

        subject, body = otp_email(otp, self.settings.OTP_EXPIRE_MINUTES)
        mail_service.queue(background_tasks, user.email, subject, body)
        logger.info(f"Issued password reset OTP for user {user.id}")

    def verify_otp(self, otp_data: OTPVerification) -> None:
        """Consume a valid OTP and open the reset window."""
        user = self._get_by_email(otp_data.email)
        if not user:
            raise NotFoundError("User not found")

        if not otp_is_valid(otp_data.otp, user.otp, user.otp_expires_at):
            raise BadRequestError("Invalid or expired OTP")

        user.otp = None
        user.otp_expires_at = None
        user.reset_verified_until = datetime.utcnow() + timedelta(
            minutes=self.settings.RESET_VERIFIED_MINUTES
        )
        self.db.commit()
        logger.info(f"OTP verified for user {user.id}")

    def reset_password(self, reset_data: PasswordResetConfirm) -> None:
        """Set a new password after a successful OTP verification."""
        user = self._get_by_email(reset_data.email)
        if not user:
            raise NotFoundError("User not found")

        if not user.reset_verified_until or user.reset_verified_until <= datetime.utcnow():
            raise BadRequestError("OTP verification required")

        user.password_hash = get_password_hash(reset_data.new_password)
        user.clear_reset_state()
        user.must_reset_password = False
        self.db.commit()
        logger.info(f"Password reset for user {user.id}")

    def ensure_admin(self) -> None:
        """Create the configured admin account if it does not exist yet."""
        email, password = self.settings.ADMIN_EMAIL, self.settings.ADMIN_PASSWORD
        if not email or not password:
            return

        user = self._get_by_email(email)
        if user:
            if user.role != UserRole.ADMIN:
                logger.warning(f"Configured admin {email} exists without the admin role")
            return

        self.db.add(User(
            email=email,
            password_hash=get_password_hash(password),
            role=UserRole.ADMIN,
            name="Administrator",
            medical_history=[],
        ))
        self.db.commit()
        logger.info(f"Seeded admin account {email}")
