"""
OTP document model.

Maps to the `otps` MongoDB collection.

Used for both email verification and password reset codes.
code_hash stores SHA-256(code); the plain code is never stored.
attempts counts checked comparisons (wrong codes plus the final successful
one); the record is dead once it reaches the configured maximum.
A TTL index on expires_at evicts codes nobody ever tried to verify.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from schemas.models.base import MongoBaseModel


PURPOSE_EMAIL_VERIFICATION = "email_verification"
PURPOSE_PASSWORD_RESET = "password_reset"

OTP_PURPOSES = (PURPOSE_EMAIL_VERIFICATION, PURPOSE_PASSWORD_RESET)


class OtpDoc(MongoBaseModel):
    """Document model for the `otps` collection."""

    email: str
    code_hash: str
    purpose: str
    attempts: int = Field(default=0, ge=0)
    expires_at: datetime
    verified: bool = False
    verified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
