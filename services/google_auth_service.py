"""
Sign in with Google.

The client posts either an ID token or an access token obtained from Google.
The verified identity is matched to a user by email:

- unverified Google email -> 401, nothing is created or linked
- no user      -> create one with a verified email
- user exists  -> link google_id and fill in the profile picture and name
- deleted user, or one linked to another Google account -> 403
"""

from __future__ import annotations

from typing import Optional

from errors import AuthenticationError, ForbiddenError, ValidationError
from infrastructure.google_identity import GoogleIdentityClient, GoogleTokenError
from repositories.user_repository import UserRepository
from schemas.models.user import UserDoc
from services.auth_service import AuthResult
from services.token_service import TokenService
from shared.datetime_utils import utc_now
from shared.logging import get_logger, mask_email

log = get_logger(__name__)


class GoogleAuthService:
    def __init__(
        self,
        users: UserRepository,
        google: GoogleIdentityClient,
        tokens: TokenService,
    ) -> None:
        self._users = users
        self._google = google
        self._tokens = tokens

    async def _resolve_identity(
        self, id_token: Optional[str], access_token: Optional[str]
    ) -> dict:
        try:
            if id_token:
                return await self._google.verify_id_token(id_token)
            return await self._google.fetch_userinfo(access_token)
        except GoogleTokenError as e:
            log.warning("google_token_rejected", reason=e.reason)
            raise AuthenticationError("Invalid Google token")

    async def authenticate(
        self, id_token: Optional[str] = None, access_token: Optional[str] = None
    ) -> AuthResult:
        if not (id_token and id_token.strip()) and not (access_token and access_token.strip()):
            raise ValidationError("Google token is required", field="id_token")

        info = await self._resolve_identity(
            id_token.strip() if id_token else None,
            access_token.strip() if access_token else None,
        )
        email = info["email"]
        if not email:
            raise ValidationError("Google account has no email address")
        if not info["email_verified"]:
            log.warning("google_email_unverified", email=mask_email(email))
            raise AuthenticationError("Google email address is not verified")

        now = utc_now()
        user = await self._users.find_by_email(email)

        if user is None:
            name = info["name"] or " ".join(
                p for p in (info["given_name"], info["family_name"]) if p
            ) or email.split("@", 1)[0]
            user = await self._users.insert(
                UserDoc(
                    email=email,
                    name=name,
                    google_id=info["provider_user_id"] or None,
                    profile_picture=info["picture"] or None,
                    email_verified=True,
                    email_verified_at=now,
                    created_at=now,
                    updated_at=now,
                    last_login_at=now,
                )
            )
            log.info("google_user_created", user_id=str(user.id), email=mask_email(email))
        else:
            if user.is_deleted:
                raise ForbiddenError("This account has been deleted")
            google_id = info["provider_user_id"]
            if user.google_id and google_id and user.google_id != google_id:
                log.warning("google_account_mismatch", user_id=str(user.id))
                raise ForbiddenError("This account is linked to a different Google account")
            fields: dict = {"last_login_at": now, "updated_at": now}
            if not user.google_id and google_id:
                fields["google_id"] = google_id
            if info["picture"] and not user.profile_picture:
                fields["profile_picture"] = info["picture"]
            if not user.name and info["name"]:
                fields["name"] = info["name"]
            if not user.email_verified:
                fields["email_verified"] = True
                fields["email_verified_at"] = now
            linked = "google_id" in fields
            user = await self._users.update(user.id, fields)
            log.info("google_login", user_id=str(user.id), linked=linked)

        token = self._tokens.issue_session_token(str(user.id), auth_method="google")
        return AuthResult(message="Login successful", token=token, user=user)
