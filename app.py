"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import redis.asyncio as aioredis
import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.cache.redis_client import create_redis_client
from infrastructure.email.protocol import EmailProvider
from infrastructure.email.smtp import SmtpEmailProvider
from infrastructure.google_identity import GoogleIdentityClient
from infrastructure.http_client import HttpClient
from repositories.otp_repository import OtpRepository
from repositories.user_repository import UserRepository
from routes.auth_routes import router as auth_router
from routes.health_routes import router as health_router
from services.auth_service import AuthService
from services.google_auth_service import GoogleAuthService
from services.otp_store import OtpStore
from services.rate_limiter import InMemoryRateLimiter, RateLimiter, RedisRateLimiter
from services.token_service import TokenService
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def wire_services(
    app: FastAPI,
    settings: AppSettings,
    db: AsyncDatabase,
    redis_client: Optional[aioredis.Redis],
    *,
    email_provider: Optional[EmailProvider] = None,
    http_client: Optional[HttpClient] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> None:
    """Build repositories and services and attach them to app.state."""
    app.state.db = db
    app.state.redis = redis_client

    users = UserRepository(db)
    otps = OtpRepository(db)

    if rate_limiter is None:
        if redis_client is not None:
            rate_limiter = RedisRateLimiter(redis_client)
        else:
            rate_limiter = InMemoryRateLimiter()
    if email_provider is None:
        email_provider = SmtpEmailProvider(
            settings.email,
            app_name=settings.app_name,
            is_production=settings.is_production,
        )
    if http_client is None:
        http_client = HttpClient(timeout=settings.google.google_timeout_seconds)

    tokens = TokenService(settings.jwt)
    otp_store = OtpStore(otps, settings.otp)
    google = GoogleIdentityClient(http_client, settings.google.audiences)

    app.state.user_repository = users
    app.state.otp_repository = otps
    app.state.rate_limiter = rate_limiter
    app.state.http_client = http_client
    app.state.auth_service = AuthService(
        users, otp_store, rate_limiter, email_provider, tokens, settings
    )
    app.state.google_auth_service = GoogleAuthService(users, google, tokens)


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(
        log_level=settings.logging.log_level,
        log_format=settings.logging.log_format,
        env=settings.env,
    )

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            profiles_sample_rate=settings.sentry.sentry_profile_sample_rate,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(
            settings.db.mongodb_uri, tz_aware=True
        )
        app.state.mongo_client = mongo_client

        # Redis is optional; without it rate limits are per-process
        redis_client = await create_redis_client(settings.redis.redis_uri)

        wire_services(app, settings, mongo_client[settings.db.db_name], redis_client)
        await app.state.user_repository.ensure_indexes()
        await app.state.otp_repository.ensure_indexes()
        log.info(
            "app_started",
            env=settings.env,
            rate_limiter=type(app.state.rate_limiter).__name__,
            smtp_enabled=settings.email.smtp_enabled,
        )

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await app.state.http_client.aclose()
        await mongo_client.close()
        if redis_client is not None:
            await redis_client.aclose()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)

    return app
