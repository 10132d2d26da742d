"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The global exception handler
converts AppError subclasses to consistent JSON responses.

Non-AppError exceptions bubble up as 500s (with Sentry reporting in production).
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shared.logging import get_logger

log = get_logger(__name__)


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class AuthenticationError(AppError):
    status_code = 401
    error_code = "authentication_error"


class ForbiddenError(AppError):
    status_code = 403
    error_code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class RateLimitError(AppError):
    status_code = 429
    error_code = "rate_limit_exceeded"

    def __init__(self, message: str, *, retry_after_minutes: Optional[int] = None) -> None:
        super().__init__(message)
        self.retry_after_minutes = retry_after_minutes

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.retry_after_minutes is not None:
            payload["retry_after_minutes"] = self.retry_after_minutes
        return payload


class OtpVerificationError(ValidationError):
    """A submitted code was rejected by the OTP store."""

    error_code = "otp_invalid"

    def __init__(
        self,
        message: str,
        *,
        reason: str,
        attempts_remaining: Optional[int] = None,
    ) -> None:
        super().__init__(message, field="code")
        self.reason = reason
        self.attempts_remaining = attempts_remaining

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["reason"] = self.reason
        if self.attempts_remaining is not None:
            payload["attempts_remaining"] = self.attempts_remaining
        return payload


class VerificationRequiredError(ForbiddenError):
    """Login refused until the email address is verified.

    Clients redirect to the verification screen instead of retrying login.
    """

    error_code = "email_not_verified"

    def __init__(self, message: str, *, email: str, verification_sent: bool) -> None:
        super().__init__(message)
        self.email = email
        self.verification_sent = verification_sent

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["requires_verification"] = True
        payload["email"] = self.email
        payload["verification_sent"] = self.verification_sent
        return payload


class EmailDeliveryError(AppError):
    status_code = 500
    error_code = "email_delivery_failed"


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        field = None
        message = "Invalid request body"
        if errors:
            if errors[0].get("loc"):
                field = str(errors[0]["loc"][-1])
            if errors[0].get("type") == "missing":
                message = "All fields are required"
        err = ValidationError(message, field=field)
        return JSONResponse(status_code=err.status_code, content=err.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry integration: if sentry_sdk is initialized it will auto-capture
        # unhandled exceptions before this handler fires.
        log.error(
            "unhandled_exception",
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return JSONResponse(
            status_code=500,
            content={"error": "An internal server error occurred.", "code": "internal_error"},
        )
