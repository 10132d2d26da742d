"""Google identity verification for native and web sign-in.

The mobile app signs in with Google itself and posts either an ID token
(native flow) or an access token (web flow). ID tokens are checked with
Google's tokeninfo endpoint (signature, expiry, issuer, audience); access
tokens are exchanged for the userinfo profile. Both paths end in the same
normalized user-info dict.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Sequence

import httpx

from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)

TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"
USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"
GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")


class GoogleTokenError(Exception):
    """A Google credential could not be verified."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.lower() == "true"
    return bool(value)


def extract_user_info_from_google(userinfo: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "provider_user_id": str(userinfo.get("sub", "")),
        "email": (userinfo.get("email") or "").lower().strip(),
        "email_verified": _as_bool(userinfo.get("email_verified", False)),
        "name": userinfo.get("name", "") or "",
        "picture": userinfo.get("picture", "") or "",
        "given_name": userinfo.get("given_name", "") or "",
        "family_name": userinfo.get("family_name", "") or "",
    }


class GoogleIdentityClient:
    def __init__(self, http_client: HttpClient, audiences: Sequence[str]) -> None:
        self._http = http_client
        self._audiences = list(audiences)
        if not self._audiences:
            log.warning("google_auth_not_configured")

    async def verify_id_token(self, id_token: str) -> Dict[str, Any]:
        if not self._audiences:
            raise GoogleTokenError("not_configured")
        try:
            resp = await self._http.get(TOKENINFO_URL, params={"id_token": id_token})
        except httpx.HTTPError as e:
            log.error("google_tokeninfo_error", error=str(e), error_type=type(e).__name__)
            raise GoogleTokenError("unreachable")
        if resp.status_code != 200:
            raise GoogleTokenError("rejected")

        claims = resp.json()
        if claims.get("aud") not in self._audiences:
            raise GoogleTokenError("audience_mismatch")
        if claims.get("iss") not in GOOGLE_ISSUERS:
            raise GoogleTokenError("issuer_mismatch")
        try:
            exp = int(claims.get("exp", 0))
        except (TypeError, ValueError):
            raise GoogleTokenError("invalid_expiry")
        if exp <= int(datetime.now(timezone.utc).timestamp()):
            raise GoogleTokenError("expired")

        return extract_user_info_from_google(claims)

    async def fetch_userinfo(self, access_token: str) -> Dict[str, Any]:
        try:
            resp = await self._http.get(
                USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"}
            )
        except httpx.HTTPError as e:
            log.error("google_userinfo_error", error=str(e), error_type=type(e).__name__)
            raise GoogleTokenError("unreachable")
        if resp.status_code != 200:
            log.warning("google_userinfo_rejected", status_code=resp.status_code)
            raise GoogleTokenError("rejected")
        return extract_user_info_from_google(resp.json())
