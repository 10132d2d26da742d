"""
FastAPI dependency providers.

All injectable dependencies are plain functions used with Depends(). The
objects themselves are built once in the app lifespan and kept on app.state.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from errors import AuthenticationError
from schemas.models.user import UserDoc
from services.auth_service import AuthService
from services.google_auth_service import GoogleAuthService

_bearer = HTTPBearer(auto_error=False)


async def get_db(request: Request):
    """Return the async MongoDB database from app.state."""
    return request.app.state.db


async def get_redis(request: Request):
    """Return the async Redis client from app.state (may be None if not configured)."""
    return request.app.state.redis


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_google_auth_service(request: Request) -> GoogleAuthService:
    return request.app.state.google_auth_service


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    auth: AuthService = Depends(get_auth_service),
) -> UserDoc:
    """Resolve ``Authorization: Bearer <token>`` to the signed-in user."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authentication required")
    return await auth.authenticate_session(credentials.credentials)
