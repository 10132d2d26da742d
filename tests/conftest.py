"""
Shared fixtures.

Services run against an in-memory MongoDB (mongomock-motor) and a recording
email provider, so no network access is needed anywhere in the suite.
"""

from __future__ import annotations

import os
import uuid
from typing import Optional

import pytest
from mongomock_motor import AsyncMongoMockClient

# Ensure a MONGODB_URI is present so AppSettings can be instantiated
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017/")

from config import (  # noqa: E402
    AppSettings,
    DatabaseSettings,
    GoogleSettings,
    JWTSettings,
)
from repositories.otp_repository import OtpRepository  # noqa: E402
from repositories.user_repository import UserRepository  # noqa: E402
from services.auth_service import AuthService  # noqa: E402
from services.otp_store import OtpStore  # noqa: E402
from services.rate_limiter import InMemoryRateLimiter  # noqa: E402
from services.token_service import TokenService  # noqa: E402

TEST_JWT_SECRET = "test-secret-key-that-is-long-enough-for-hs256"
GOOGLE_CLIENT_ID = "test-client.apps.googleusercontent.com"


class RecordingEmailProvider:
    """EmailProvider that keeps every message in memory."""

    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.fail = False

    def _record(self, kind: str, email: str, **extra) -> bool:
        if self.fail:
            return False
        self.sent.append({"kind": kind, "email": email, **extra})
        return True

    async def send_verification_email(
        self, email: str, user_name: Optional[str], otp_code: str, expiry_minutes: int
    ) -> bool:
        return self._record(
            "verification", email, code=otp_code, user_name=user_name, expiry_minutes=expiry_minutes
        )

    async def send_password_reset_email(
        self, email: str, user_name: Optional[str], otp_code: str, expiry_minutes: int
    ) -> bool:
        return self._record(
            "password_reset", email, code=otp_code, user_name=user_name, expiry_minutes=expiry_minutes
        )

    async def send_welcome_email(self, email: str, user_name: Optional[str]) -> bool:
        return self._record("welcome", email, user_name=user_name)

    def last_code(self, email: str) -> str:
        for message in reversed(self.sent):
            if message["email"] == email and "code" in message:
                return message["code"]
        raise AssertionError(f"no code was sent to {email}")


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(
        db=DatabaseSettings(mongodb_uri="mongodb://localhost:27017/"),
        jwt=JWTSettings(jwt_secret=TEST_JWT_SECRET, jwt_private_key="", jwt_public_key=""),
        google=GoogleSettings(google_client_ids=GOOGLE_CLIENT_ID),
    )


@pytest.fixture
def db():
    client = AsyncMongoMockClient()
    return client[f"test_{uuid.uuid4().hex}"]


@pytest.fixture
def user_repo(db) -> UserRepository:
    return UserRepository(db)


@pytest.fixture
def otp_repo(db) -> OtpRepository:
    return OtpRepository(db)


@pytest.fixture
def otp_store(otp_repo, settings) -> OtpStore:
    return OtpStore(otp_repo, settings.otp)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rate_limiter(clock) -> InMemoryRateLimiter:
    return InMemoryRateLimiter(clock=clock)


@pytest.fixture
def email_provider() -> RecordingEmailProvider:
    return RecordingEmailProvider()


@pytest.fixture
def token_service(settings) -> TokenService:
    return TokenService(settings.jwt)


@pytest.fixture
def auth_service(
    user_repo, otp_store, rate_limiter, email_provider, token_service, settings
) -> AuthService:
    return AuthService(
        user_repo, otp_store, rate_limiter, email_provider, token_service, settings
    )
