"""
Response DTOs for authentication endpoints.

UserResponse        — sanitized user view (never the password hash)
AuthResponse        — signup/verify-code (201), login, google (200)
CodeSentResponse    — signup/request-code, resend-code, forgot-password/request-code
ResetTokenResponse  — forgot-password/verify-code
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

from schemas.models.user import UserDoc


class UserResponse(BaseModel):
    """User shape returned by login, signup, google and /me."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: Optional[str] = None
    email: str
    role: str
    is_admin: bool
    is_email_verified: bool
    # Absent from the JSON when None (route handlers use exclude_none=True)
    profile_picture: Optional[str] = None

    @classmethod
    def from_user(cls, user: UserDoc) -> "UserResponse":
        return cls(
            id=str(user.id),
            name=user.name,
            email=user.email,
            role=user.role,
            is_admin=user.is_admin,
            is_email_verified=user.email_verified,
            profile_picture=user.profile_picture,
        )


class AuthResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    token: str
    user: UserResponse


class CodeSentResponse(BaseModel):
    """Returned whenever a fresh OTP has been emailed.

    ``expires_in`` is the code lifetime in seconds.
    """

    model_config = ConfigDict(populate_by_name=True)

    message: str
    email: Optional[str] = None
    expires_in: int


class ResetTokenResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    reset_token: str
