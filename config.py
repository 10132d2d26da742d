"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

Policy knobs for the OTP lifecycle, rate limiting and login lockout live in
their own sub-configs so tests can build them directly without touching the
rest of the application settings.
"""

from __future__ import annotations

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "mealvista"


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Optional; without Redis the rate limiter falls back to process memory
    redis_uri: Optional[str] = None


class JWTSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    jwt_issuer: str = "mealvista"
    jwt_audience: str = "mealvista.app"
    session_token_ttl_seconds: int = 604800  # 7 days
    reset_token_ttl_seconds: int = 900  # 15 minutes

    # RS256 keys (preferred)
    jwt_private_key: str = ""
    jwt_public_key: str = ""

    # HS256 fallback (used when RS256 keys are absent)
    jwt_secret: str = ""

    @property
    def use_rs256(self) -> bool:
        return bool(self.jwt_private_key and self.jwt_public_key)


class GoogleSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Comma-separated: one client id per platform (android, ios, web)
    google_client_ids: str = ""
    google_timeout_seconds: float = 10.0

    @property
    def audiences(self) -> list[str]:
        return [cid.strip() for cid in self.google_client_ids.split(",") if cid.strip()]


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    smtp_from_email: str = "noreply@mealvista.app"
    smtp_from_name: str = "MealVista"

    @property
    def smtp_enabled(self) -> bool:
        return bool(self.smtp_host and self.smtp_username and self.smtp_password)


class OtpSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    otp_length: int = 6
    otp_max_attempts: int = 5
    otp_expiry_minutes: int = 1
    # Codes sent automatically on login of an unverified account live longer
    otp_login_expiry_minutes: int = 10


class RateLimitSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    rate_limit_signup_max: int = 3
    rate_limit_signup_window_seconds: int = 900
    rate_limit_login_max: int = 5
    rate_limit_login_window_seconds: int = 900
    rate_limit_forgot_max: int = 3
    rate_limit_forgot_window_seconds: int = 900
    rate_limit_resend_max: int = 3
    rate_limit_resend_window_seconds: int = 900


class LoginSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    max_failed_logins: int = 5
    lockout_minutes: int = 15


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1
    sentry_profile_sample_rate: float = 0.05


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    env: str = "development"
    app_url: str = "https://mealvista.app"
    app_name: str = "MealVista"

    cors_origins: list[str] = ["*"]

    # Signup is restricted to these domains; an empty list allows any domain
    allowed_email_domains: list[str] = ["gmail.com"]

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    redis: Optional[RedisSettings] = None
    jwt: Optional[JWTSettings] = None
    google: Optional[GoogleSettings] = None
    email: Optional[EmailSettings] = None
    otp: Optional[OtpSettings] = None
    rate_limit: Optional[RateLimitSettings] = None
    login: Optional[LoginSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        # Populate sub-configs from the same env/dotenv source
        if self.db is None:
            self.db = DatabaseSettings()
        if self.redis is None:
            self.redis = RedisSettings()
        if self.jwt is None:
            self.jwt = JWTSettings()
        if self.google is None:
            self.google = GoogleSettings()
        if self.email is None:
            self.email = EmailSettings()
        if self.otp is None:
            self.otp = OtpSettings()
        if self.rate_limit is None:
            self.rate_limit = RateLimitSettings()
        if self.login is None:
            self.login = LoginSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
