"""
Authentication endpoints under /api/auth.

Handlers are thin: they unpack the request DTO, call the auth services and
shape the response. Errors propagate as AppError and are rendered by the
global handlers in errors.py.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from dependencies import get_auth_service, get_current_user, get_google_auth_service
from schemas.dto.requests.auth import (
    ForgotPasswordRequestCodeRequest,
    ForgotPasswordVerifyCodeRequest,
    GoogleAuthRequest,
    LoginRequest,
    ResendCodeRequest,
    ResetPasswordRequest,
    SignupRequestCodeRequest,
    SignupVerifyCodeRequest,
)
from schemas.dto.responses.auth import (
    AuthResponse,
    CodeSentResponse,
    ResetTokenResponse,
    UserResponse,
)
from schemas.dto.responses.common import MessageResponse
from schemas.models.user import UserDoc
from services.auth_service import AuthResult, AuthService, CodeSent
from services.google_auth_service import GoogleAuthService

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _auth_payload(result: AuthResult) -> dict:
    return AuthResponse(
        message=result.message,
        token=result.token,
        user=UserResponse.from_user(result.user),
    ).model_dump(exclude_none=True)


def _code_sent_payload(result: CodeSent) -> dict:
    return CodeSentResponse(
        message=result.message,
        email=result.email,
        expires_in=result.expires_in,
    ).model_dump(exclude_none=True)


@router.post("/signup/request-code")
async def signup_request_code(
    body: SignupRequestCodeRequest,
    auth: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    result = await auth.request_signup_code(body.name, body.email, body.password)
    return JSONResponse(status_code=200, content=_code_sent_payload(result))


@router.post("/signup/verify-code")
async def signup_verify_code(
    body: SignupVerifyCodeRequest,
    auth: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    result = await auth.verify_signup_code(body.name, body.email, body.password, body.code)
    return JSONResponse(status_code=201, content=_auth_payload(result))


@router.post("/login")
async def login(
    body: LoginRequest,
    auth: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    result = await auth.login(body.email, body.password)
    return JSONResponse(status_code=200, content=_auth_payload(result))


@router.post("/resend-code")
async def resend_code(
    body: ResendCodeRequest,
    auth: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    result = await auth.resend_code(body.email, body.purpose)
    return JSONResponse(status_code=200, content=_code_sent_payload(result))


@router.post("/forgot-password/request-code")
async def forgot_password_request_code(
    body: ForgotPasswordRequestCodeRequest,
    auth: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    result = await auth.request_password_reset(body.email)
    return JSONResponse(status_code=200, content=_code_sent_payload(result))


@router.post("/forgot-password/verify-code")
async def forgot_password_verify_code(
    body: ForgotPasswordVerifyCodeRequest,
    auth: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    reset_token = await auth.verify_password_reset_code(body.email, body.code)
    payload = ResetTokenResponse(
        message="Code verified. You can now reset your password",
        reset_token=reset_token,
    )
    return JSONResponse(status_code=200, content=payload.model_dump())


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordRequest,
    auth: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    await auth.reset_password(body.reset_token, body.new_password)
    payload = MessageResponse(
        message="Password reset successful. Please log in with your new password"
    )
    return JSONResponse(status_code=200, content=payload.model_dump())


@router.post("/google")
async def google_login(
    body: GoogleAuthRequest,
    google_auth: GoogleAuthService = Depends(get_google_auth_service),
) -> JSONResponse:
    result = await google_auth.authenticate(body.id_token, body.access_token)
    return JSONResponse(status_code=200, content=_auth_payload(result))


@router.get("/me")
async def me(user: UserDoc = Depends(get_current_user)) -> JSONResponse:
    return JSONResponse(
        status_code=200,
        content={"user": UserResponse.from_user(user).model_dump(exclude_none=True)},
    )
