"""
User document model.

Maps to the `users` MongoDB collection.

Two creation paths produce slightly different shapes:
- OTP signup: password_hash set, email_verified True from the start
- Google login: password_hash is None, google_id and profile_picture set

Accounts are soft-deleted (is_deleted) and never removed by this service.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from schemas.models.base import MongoBaseModel


ROLE_USER = "user"


class UserDoc(MongoBaseModel):
    """Document model for the `users` collection."""

    email: str
    name: Optional[str] = None
    password_hash: Optional[str] = None
    email_verified: bool = False
    email_verified_at: Optional[datetime] = None
    role: str = ROLE_USER
    is_admin: bool = False
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    google_id: Optional[str] = None
    profile_picture: Optional[str] = None
    failed_login_attempts: int = 0
    account_locked_until: Optional[datetime] = None
    password_reset_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
