"""
Request DTOs for authentication endpoints.

SignupRequestCodeRequest          — POST /api/auth/signup/request-code
SignupVerifyCodeRequest           — POST /api/auth/signup/verify-code
LoginRequest                      — POST /api/auth/login
ResendCodeRequest                 — POST /api/auth/resend-code
ForgotPasswordRequestCodeRequest  — POST /api/auth/forgot-password/request-code
ForgotPasswordVerifyCodeRequest   — POST /api/auth/forgot-password/verify-code
ResetPasswordRequest              — POST /api/auth/reset-password
GoogleAuthRequest                 — POST /api/auth/google

Shape validation only; emptiness, email syntax and password strength are
checked by AuthService so the same rules apply outside HTTP.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class SignupRequestCodeRequest(BaseModel):
    """Request body for POST /api/auth/signup/request-code."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    email: str
    password: str


class SignupVerifyCodeRequest(BaseModel):
    """Request body for POST /api/auth/signup/verify-code.

    ``code`` is the 6-digit OTP sent to the user's email address.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str
    email: str
    password: str
    code: str


class LoginRequest(BaseModel):
    """Request body for POST /api/auth/login."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
    password: str


class ResendCodeRequest(BaseModel):
    """Request body for POST /api/auth/resend-code.

    ``purpose`` is ``email_verification`` or ``password_reset``.
    """

    model_config = ConfigDict(populate_by_name=True)

    email: str
    purpose: str


class ForgotPasswordRequestCodeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str


class ForgotPasswordVerifyCodeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    code: str


class ResetPasswordRequest(BaseModel):
    """Request body for POST /api/auth/reset-password."""

    model_config = ConfigDict(populate_by_name=True)

    reset_token: str
    new_password: str


class GoogleAuthRequest(BaseModel):
    """Request body for POST /api/auth/google.

    Native apps send an ``id_token``; the web flow sends an ``access_token``.
    """

    model_config = ConfigDict(populate_by_name=True)

    id_token: Optional[str] = None
    access_token: Optional[str] = None
