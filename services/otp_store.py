"""
OTP lifecycle: creation, expiry, attempt limiting and single-use verification.

State machine per (email, purpose):

    absent -> unverified(attempts=0) -> verified (terminal)
                                     -> expired   -> absent
                                     -> exhausted -> absent

create() always collapses an existing unverified record to absent first, so
at most one live code exists per pair. Attempts are only counted on checked
comparisons; "not found" never touches another record's budget.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from config import OtpSettings
from repositories.otp_repository import OtpRepository
from schemas.models.otp import OTP_PURPOSES, OtpDoc
from shared.crypto import hash_token, token_matches
from shared.datetime_utils import ensure_utc, utc_now
from shared.generators import generate_otp_code
from shared.logging import get_logger, mask_email

log = get_logger(__name__)

REASON_NOT_FOUND = "not_found"
REASON_EXPIRED = "expired"
REASON_TOO_MANY_ATTEMPTS = "too_many_attempts"
REASON_INVALID = "invalid"


@dataclass(frozen=True)
class OtpVerificationResult:
    success: bool
    message: str
    reason: Optional[str] = None
    attempts_remaining: Optional[int] = None


class OtpStore:
    def __init__(self, repository: OtpRepository, settings: OtpSettings) -> None:
        self._repo = repository
        self._settings = settings

    @property
    def max_attempts(self) -> int:
        return self._settings.otp_max_attempts

    async def create(
        self, email: str, purpose: str, expiry_minutes: Optional[int] = None
    ) -> tuple[OtpDoc, str]:
        """Issue a fresh code for (email, purpose).

        Prior unverified codes for the pair are deleted first. Returns the
        stored record and the plaintext code; the caller delivers the code
        out-of-band and it is not recoverable afterwards.
        """
        if purpose not in OTP_PURPOSES:
            raise ValueError(f"Unknown OTP purpose: {purpose!r}")
        if expiry_minutes is None:
            expiry_minutes = self._settings.otp_expiry_minutes

        replaced = await self._repo.delete_unverified(email, purpose)

        code = generate_otp_code(self._settings.otp_length)
        now = utc_now()
        record = await self._repo.insert(
            OtpDoc(
                email=email,
                code_hash=hash_token(code),
                purpose=purpose,
                attempts=0,
                expires_at=now + timedelta(minutes=expiry_minutes),
                verified=False,
                created_at=now,
            )
        )

        log.info(
            "otp_created",
            email=mask_email(email),
            purpose=purpose,
            otp_id=str(record.id),
            expiry_minutes=expiry_minutes,
            replaced=replaced,
        )
        return record, code

    async def delete(self, record: OtpDoc) -> None:
        """Remove a record, e.g. when its code could not be delivered."""
        if record.id is None:
            return
        await self._repo.delete(record.id)
        log.info("otp_deleted", email=mask_email(record.email), purpose=record.purpose)

    async def verify(self, email: str, code: str, purpose: str) -> OtpVerificationResult:
        record = await self._repo.find_latest_unverified(email, purpose)
        if record is None:
            return self._fail(
                email, purpose, REASON_NOT_FOUND, "Verification code not found or already used"
            )

        if utc_now() >= ensure_utc(record.expires_at):
            await self._repo.delete(record.id)
            return self._fail(
                email, purpose, REASON_EXPIRED, "Verification code has expired. Please request a new one"
            )

        if record.attempts >= self.max_attempts:
            await self._repo.delete(record.id)
            return self._fail(
                email,
                purpose,
                REASON_TOO_MANY_ATTEMPTS,
                "Too many failed attempts. Please request a new code",
            )

        if not token_matches(code, record.code_hash):
            updated = await self._repo.increment_attempts(record.id, self.max_attempts)
            if updated is None:
                # Consumed or exhausted by a concurrent request
                return self._fail(
                    email, purpose, REASON_NOT_FOUND, "Verification code not found or already used"
                )
            remaining = max(self.max_attempts - updated.attempts, 0)
            return self._fail(
                email,
                purpose,
                REASON_INVALID,
                f"Invalid verification code. {remaining} attempts remaining",
                attempts_remaining=remaining,
            )

        verified = await self._repo.mark_verified(record.id, self.max_attempts, utc_now())
        if verified is None:
            return self._fail(
                email, purpose, REASON_NOT_FOUND, "Verification code not found or already used"
            )

        log.info(
            "otp_verified_success",
            email=mask_email(email),
            purpose=purpose,
            otp_id=str(verified.id),
        )
        return OtpVerificationResult(success=True, message="Verification code accepted")

    def _fail(
        self,
        email: str,
        purpose: str,
        reason: str,
        message: str,
        attempts_remaining: Optional[int] = None,
    ) -> OtpVerificationResult:
        log.warning(
            "otp_verification_failed",
            email=mask_email(email),
            purpose=purpose,
            reason=reason,
            attempts_remaining=attempts_remaining,
        )
        return OtpVerificationResult(
            success=False,
            message=message,
            reason=reason,
            attempts_remaining=attempts_remaining,
        )
