"""
JWT issuance and verification.

Two kinds of token share the signing keys but never each other's role:

- session tokens: ``sub`` = user id, ``type`` = "access", long-lived
- purpose tokens: ``sub`` = email, ``purpose`` claim, short-lived; the only
  purpose issued today is the password reset credential

RS256 is used when a key pair is configured, HS256 with JWT_SECRET otherwise.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt

from config import JWTSettings
from errors import AuthenticationError
from schemas.models.otp import PURPOSE_PASSWORD_RESET
from shared.logging import get_logger

log = get_logger(__name__)

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_PURPOSE = "purpose"


class TokenService:
    def __init__(self, settings: JWTSettings) -> None:
        self._settings = settings

    @property
    def algorithm(self) -> str:
        return "RS256" if self._settings.use_rs256 else "HS256"

    def _keys(self) -> tuple[Any, Any]:
        if self._settings.use_rs256:
            # Support keys provided via env with literal \n sequences
            priv = self._settings.jwt_private_key.replace("\\n", "\n").encode("utf-8")
            pub = self._settings.jwt_public_key.replace("\\n", "\n").encode("utf-8")
            return priv, pub
        secret = self._settings.jwt_secret
        if not secret:
            raise RuntimeError("JWT_SECRET must be set when RS256 keys are not provided")
        return secret, secret

    def _encode(self, claims: dict[str, Any], ttl_seconds: int) -> str:
        private_key, _ = self._keys()
        now = datetime.now(timezone.utc)
        payload = {
            "iss": self._settings.jwt_issuer,
            "aud": self._settings.jwt_audience,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=ttl_seconds)).timestamp()),
            **claims,
        }
        return jwt.encode(payload, private_key, algorithm=self.algorithm)

    def _decode(self, token: str) -> dict[str, Any]:
        _, public_key = self._keys()
        return jwt.decode(
            token,
            public_key,
            algorithms=[self.algorithm],
            audience=self._settings.jwt_audience,
            issuer=self._settings.jwt_issuer,
            options={"require": ["exp", "iat", "sub"]},
        )

    # ── Session tokens ───────────────────────────────────────────────────────

    def issue_session_token(self, user_id: str, auth_method: str = "pwd") -> str:
        return self._encode(
            {
                "sub": str(user_id),
                "type": TOKEN_TYPE_ACCESS,
                "amr": [auth_method],  # Authentication Methods References
            },
            self._settings.session_token_ttl_seconds,
        )

    def verify_session_token(self, token: str) -> dict[str, Any]:
        try:
            claims = self._decode(token)
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Session expired. Please log in again")
        except jwt.InvalidTokenError:
            raise AuthenticationError("Invalid session token")
        if claims.get("type") != TOKEN_TYPE_ACCESS:
            raise AuthenticationError("Invalid session token")
        return claims

    # ── Purpose-scoped tokens ────────────────────────────────────────────────

    def issue_purpose_token(
        self, email: str, purpose: str, ttl_seconds: Optional[int] = None
    ) -> str:
        if ttl_seconds is None:
            ttl_seconds = self._settings.reset_token_ttl_seconds
        return self._encode(
            {
                "sub": email,
                "email": email,
                "type": TOKEN_TYPE_PURPOSE,
                "purpose": purpose,
            },
            ttl_seconds,
        )

    def issue_reset_token(self, email: str) -> str:
        return self.issue_purpose_token(email, PURPOSE_PASSWORD_RESET)

    def verify_reset_token(self, token: str) -> dict[str, Any]:
        """Decode a password reset credential.

        Fails closed: bad signature, expiry, wrong token type or any purpose
        other than password_reset raise AuthenticationError.
        """
        try:
            claims = self._decode(token)
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Reset token has expired")
        except jwt.InvalidTokenError:
            raise AuthenticationError("Invalid or expired reset token")
        if (
            claims.get("type") != TOKEN_TYPE_PURPOSE
            or claims.get("purpose") != PURPOSE_PASSWORD_RESET
            or not claims.get("email")
        ):
            log.warning("reset_token_rejected", reason="purpose_mismatch")
            raise AuthenticationError("Invalid reset token")
        return claims
