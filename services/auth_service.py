"""
Authentication flows built on the OTP store and the rate limiter.

AuthService owns signup-with-verification, password login, code resend and
the forgot/reset-password sequence. Route handlers only translate HTTP to
these calls; every failure is raised as an AppError subclass.

Rules shared by all flows:
- emails are normalized (trimmed, lowercased) before any lookup or key
- validation and rate limiting run before any state is mutated
- a code that could not be emailed is deleted again, so nothing claims to
  have been sent when it was not
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Optional

from config import AppSettings
from errors import (
    AuthenticationError,
    EmailDeliveryError,
    ForbiddenError,
    NotFoundError,
    OtpVerificationError,
    RateLimitError,
    ValidationError,
    VerificationRequiredError,
)
from infrastructure.email.protocol import EmailProvider
from repositories.user_repository import UserRepository
from schemas.models.otp import (
    OTP_PURPOSES,
    PURPOSE_EMAIL_VERIFICATION,
    PURPOSE_PASSWORD_RESET,
)
from schemas.models.user import UserDoc
from services.otp_store import OtpStore
from services.rate_limiter import RateLimiter
from services.token_service import TokenService
from shared.crypto import hash_password, verify_password
from shared.datetime_utils import ensure_utc, utc_now
from shared.logging import get_logger, mask_email
from shared.validators import (
    is_allowed_email_domain,
    normalize_email,
    validate_email,
    validate_password_strength,
)

log = get_logger(__name__)

WEAK_PASSWORD_MESSAGE = (
    "Password must be at least 8 characters and include uppercase, lowercase, and a number"
)
INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"


class SignupAction(Enum):
    """What a successful signup verification does to the users collection."""

    CREATE_NEW = "create_new"
    UPDATE_EXISTING = "update_existing"


@dataclass(frozen=True)
class CodeSent:
    message: str
    email: str
    expires_in: int  # seconds


@dataclass(frozen=True)
class AuthResult:
    message: str
    token: str
    user: UserDoc


def _require(**fields: Optional[str]) -> None:
    for name, value in fields.items():
        if value is None or not str(value).strip():
            raise ValidationError("All fields are required", field=name)


class AuthService:
    def __init__(
        self,
        users: UserRepository,
        otp_store: OtpStore,
        rate_limiter: RateLimiter,
        email_provider: EmailProvider,
        tokens: TokenService,
        settings: AppSettings,
    ) -> None:
        self._users = users
        self._otp = otp_store
        self._limiter = rate_limiter
        self._email = email_provider
        self._tokens = tokens
        self._settings = settings

    # ── Helpers ──────────────────────────────────────────────────────────────

    async def _enforce_rate_limit(
        self, key: str, max_attempts: int, window_seconds: int, message: str
    ) -> None:
        result = await self._limiter.check(key, max_attempts, window_seconds)
        if result.allowed:
            return
        operation = key.split(":", 1)[0]
        log.warning(
            "rate_limited",
            operation=operation,
            reset_in_minutes=result.reset_in_minutes,
        )
        raise RateLimitError(
            f"{message}. Please try again in {result.reset_in_minutes} minutes",
            retry_after_minutes=result.reset_in_minutes,
        )

    async def _send_code(
        self,
        email: str,
        purpose: str,
        user_name: Optional[str] = None,
        expiry_minutes: Optional[int] = None,
    ) -> bool:
        """Create a code for (email, purpose) and email it.

        Returns False, with the code already rolled back, if delivery failed.
        """
        if expiry_minutes is None:
            expiry_minutes = self._settings.otp.otp_expiry_minutes
        record, code = await self._otp.create(email, purpose, expiry_minutes)

        if purpose == PURPOSE_PASSWORD_RESET:
            sent = await self._email.send_password_reset_email(
                email, user_name, code, expiry_minutes
            )
        else:
            sent = await self._email.send_verification_email(
                email, user_name, code, expiry_minutes
            )

        if not sent:
            await self._otp.delete(record)
            log.error("otp_delivery_failed", email=mask_email(email), purpose=purpose)
        return sent

    def _check_password_strength(self, password: str) -> None:
        if not validate_password_strength(password):
            raise ValidationError(WEAK_PASSWORD_MESSAGE, field="password")

    @staticmethod
    def _raise_for_otp_failure(result) -> None:
        raise OtpVerificationError(
            result.message,
            reason=result.reason,
            attempts_remaining=result.attempts_remaining,
        )

    # ── Signup ───────────────────────────────────────────────────────────────

    async def request_signup_code(self, name: str, email: str, password: str) -> CodeSent:
        _require(name=name, email=email, password=password)
        email = normalize_email(email)

        if not validate_email(email):
            raise ValidationError("Invalid email format", field="email")
        allowed = self._settings.allowed_email_domains
        if not is_allowed_email_domain(email, allowed):
            domains = ", ".join(allowed)
            raise ValidationError(
                f"Only {domains} addresses are allowed for registration", field="email"
            )
        self._check_password_strength(password)

        limits = self._settings.rate_limit
        await self._enforce_rate_limit(
            f"signup:{email}",
            limits.rate_limit_signup_max,
            limits.rate_limit_signup_window_seconds,
            "Too many code requests",
        )

        existing = await self._users.find_by_email(email)
        if existing is not None and existing.email_verified:
            raise ValidationError("Email already registered and verified", field="email")

        expiry = self._settings.otp.otp_expiry_minutes
        if not await self._send_code(email, PURPOSE_EMAIL_VERIFICATION, name.strip(), expiry):
            raise EmailDeliveryError("Failed to send verification email. Please try again.")

        return CodeSent(
            message=f"Verification code sent to your email. Please verify within {expiry} minute(s)",
            email=email,
            expires_in=expiry * 60,
        )

    def _plan_signup(self, existing: Optional[UserDoc]) -> SignupAction:
        if existing is None:
            return SignupAction.CREATE_NEW
        if existing.email_verified or existing.is_deleted:
            raise ValidationError("Email already registered", field="email")
        return SignupAction.UPDATE_EXISTING

    async def verify_signup_code(
        self, name: str, email: str, password: str, code: str
    ) -> AuthResult:
        _require(name=name, email=email, password=password, code=code)
        email = normalize_email(email)
        name = name.strip()
        self._check_password_strength(password)

        result = await self._otp.verify(email, code.strip(), PURPOSE_EMAIL_VERIFICATION)
        if not result.success:
            self._raise_for_otp_failure(result)

        existing = await self._users.find_by_email(email)
        action = self._plan_signup(existing)

        now = utc_now()
        password_hash = hash_password(password)
        if action is SignupAction.UPDATE_EXISTING:
            user = await self._users.update(
                existing.id,
                {
                    "name": name,
                    "password_hash": password_hash,
                    "email_verified": True,
                    "email_verified_at": now,
                    "updated_at": now,
                },
            )
        else:
            user = await self._users.insert(
                UserDoc(
                    email=email,
                    name=name,
                    password_hash=password_hash,
                    email_verified=True,
                    email_verified_at=now,
                    created_at=now,
                    updated_at=now,
                )
            )

        log.info(
            "user_registered",
            user_id=str(user.id),
            email=mask_email(email),
            action=action.value,
        )

        if not await self._email.send_welcome_email(email, name):
            log.warning("welcome_email_failed", user_id=str(user.id))

        token = self._tokens.issue_session_token(str(user.id))
        return AuthResult(message="Account created successfully", token=token, user=user)

    # ── Login ────────────────────────────────────────────────────────────────

    async def login(self, email: str, password: str) -> AuthResult:
        _require(email=email, password=password)
        email = normalize_email(email)

        limits = self._settings.rate_limit
        await self._enforce_rate_limit(
            f"login:{email}",
            limits.rate_limit_login_max,
            limits.rate_limit_login_window_seconds,
            "Too many login attempts",
        )

        user = await self._users.find_by_email(email)
        if user is None:
            log.info("login_failed", reason="unknown_email")
            raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

        if user.is_deleted:
            raise ForbiddenError("This account has been deleted")

        now = utc_now()
        locked_until = ensure_utc(user.account_locked_until)
        if locked_until is not None and locked_until > now:
            minutes = max(1, math.ceil((locked_until - now).total_seconds() / 60))
            raise ForbiddenError(
                f"Account temporarily locked. Please try again in {minutes} minutes"
            )

        if not user.email_verified:
            sent = await self._send_code(
                email,
                PURPOSE_EMAIL_VERIFICATION,
                user.name,
                self._settings.otp.otp_login_expiry_minutes,
            )
            log.info("login_requires_verification", user_id=str(user.id), code_sent=sent)
            message = (
                "Email not verified. A new verification code has been sent to your email"
                if sent
                else "Email not verified. We could not send a verification code, please request a new one"
            )
            raise VerificationRequiredError(message, email=email, verification_sent=sent)

        if not user.password_hash or not verify_password(password, user.password_hash):
            await self._record_failed_login(user)
            raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

        user = await self._users.update(
            user.id,
            {
                "last_login_at": now,
                "failed_login_attempts": 0,
                "account_locked_until": None,
                "updated_at": now,
            },
        )
        log.info("login_success", user_id=str(user.id), method="password")

        token = self._tokens.issue_session_token(str(user.id))
        return AuthResult(message="Login successful", token=token, user=user)

    async def _record_failed_login(self, user: UserDoc) -> None:
        policy = self._settings.login
        updated = await self._users.update(user.id, {}, inc={"failed_login_attempts": 1})
        if updated is None:
            return
        log.info(
            "login_failed",
            reason="bad_password",
            user_id=str(user.id),
            failed_attempts=updated.failed_login_attempts,
        )
        if updated.failed_login_attempts >= policy.max_failed_logins:
            await self._users.update(
                user.id,
                {
                    "account_locked_until": utc_now() + timedelta(minutes=policy.lockout_minutes),
                    "failed_login_attempts": 0,
                },
            )
            log.warning("account_locked", user_id=str(user.id), minutes=policy.lockout_minutes)

    # ── Resend ───────────────────────────────────────────────────────────────

    async def resend_code(self, email: str, purpose: str) -> CodeSent:
        _require(email=email, purpose=purpose)
        email = normalize_email(email)
        if purpose not in OTP_PURPOSES:
            raise ValidationError("Invalid purpose", field="purpose")

        limits = self._settings.rate_limit
        await self._enforce_rate_limit(
            f"resend:{email}:{purpose}",
            limits.rate_limit_resend_max,
            limits.rate_limit_resend_window_seconds,
            "Too many code requests",
        )

        user = await self._users.find_by_email(email)
        expiry = self._settings.otp.otp_expiry_minutes
        sent = await self._send_code(email, purpose, user.name if user else None, expiry)
        if not sent:
            raise EmailDeliveryError("Failed to send email. Please try again.")

        return CodeSent(message="Code sent successfully", email=email, expires_in=expiry * 60)

    # ── Forgot / reset password ──────────────────────────────────────────────

    async def request_password_reset(self, email: str) -> CodeSent:
        _require(email=email)
        email = normalize_email(email)

        limits = self._settings.rate_limit
        await self._enforce_rate_limit(
            f"forgot:{email}",
            limits.rate_limit_forgot_max,
            limits.rate_limit_forgot_window_seconds,
            "Too many password reset requests",
        )

        # TODO: answer uniformly for unknown emails once the app no longer
        # relies on the 404 to suggest signing up instead.
        user = await self._users.find_by_email(email)
        if user is None:
            raise NotFoundError("No account found with this email address")
        if user.is_deleted:
            raise ForbiddenError("This account has been deleted. Please contact support.")

        expiry = self._settings.otp.otp_expiry_minutes
        if not await self._send_code(email, PURPOSE_PASSWORD_RESET, user.name, expiry):
            raise EmailDeliveryError("Failed to send password reset email. Please try again.")

        return CodeSent(
            message="Password reset code sent to your email",
            email=email,
            expires_in=expiry * 60,
        )

    async def verify_password_reset_code(self, email: str, code: str) -> str:
        """Check a reset code and return the short-lived reset credential."""
        _require(email=email, code=code)
        email = normalize_email(email)

        result = await self._otp.verify(email, code.strip(), PURPOSE_PASSWORD_RESET)
        if not result.success:
            self._raise_for_otp_failure(result)

        log.info("password_reset_code_verified", email=mask_email(email))
        return self._tokens.issue_reset_token(email)

    async def reset_password(self, reset_token: str, new_password: str) -> None:
        _require(reset_token=reset_token, new_password=new_password)
        if not validate_password_strength(new_password):
            raise ValidationError(WEAK_PASSWORD_MESSAGE, field="new_password")

        claims = self._tokens.verify_reset_token(reset_token)
        email = normalize_email(claims["email"])

        user = await self._users.find_by_email(email)
        if user is None:
            raise NotFoundError("User not found")
        if user.is_deleted:
            raise ForbiddenError("This account has been deleted")

        now = utc_now()
        await self._users.update(
            user.id,
            {
                "password_hash": hash_password(new_password),
                "password_reset_at": now,
                "failed_login_attempts": 0,
                "account_locked_until": None,
                "updated_at": now,
            },
        )
        log.info("password_reset_success", user_id=str(user.id))

    # ── Sessions ─────────────────────────────────────────────────────────────

    async def authenticate_session(self, token: str) -> UserDoc:
        """Resolve a session token to an active user, failing closed."""
        claims = self._tokens.verify_session_token(token)
        user = await self._users.find_by_id(claims["sub"])
        if user is None or user.is_deleted:
            raise AuthenticationError("Invalid session token")
        return user
