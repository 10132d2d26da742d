"""Unit tests for GoogleAuthService with a mocked identity client."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from errors import AuthenticationError, ForbiddenError, ValidationError
from infrastructure.google_identity import GoogleTokenError
from schemas.models.user import UserDoc
from services.google_auth_service import GoogleAuthService
from shared.datetime_utils import utc_now

EMAIL = "jane@gmail.com"


def _identity(**overrides) -> dict:
    info = {
        "provider_user_id": "google-123",
        "email": EMAIL,
        "email_verified": True,
        "name": "Jane Doe",
        "picture": "https://lh3.googleusercontent.com/a/jane",
        "given_name": "Jane",
        "family_name": "Doe",
    }
    info.update(overrides)
    return info


@pytest.fixture
def google_client():
    client = MagicMock()
    client.verify_id_token = AsyncMock(return_value=_identity())
    client.fetch_userinfo = AsyncMock(return_value=_identity())
    return client


@pytest.fixture
def google_auth(user_repo, google_client, token_service) -> GoogleAuthService:
    return GoogleAuthService(user_repo, google_client, token_service)


class TestGoogleAuthService:
    async def test_requires_a_token(self, google_auth):
        with pytest.raises(ValidationError, match="Google token is required"):
            await google_auth.authenticate(None, "  ")

    async def test_creates_new_user(self, google_auth, user_repo, token_service):
        result = await google_auth.authenticate(id_token="id-token")
        assert result.user.email == EMAIL
        assert result.user.google_id == "google-123"
        assert result.user.email_verified is True
        assert result.user.password_hash is None
        assert result.user.profile_picture.startswith("https://")
        claims = token_service.verify_session_token(result.token)
        assert claims["amr"] == ["google"]
        assert await user_repo._col.count_documents({}) == 1

    async def test_unverified_email_creates_no_user(self, google_auth, google_client, user_repo):
        google_client.verify_id_token.return_value = _identity(email_verified=False)
        with pytest.raises(AuthenticationError, match="not verified"):
            await google_auth.authenticate(id_token="id-token")
        assert await user_repo._col.count_documents({}) == 0

    async def test_unverified_email_cannot_take_over_account(
        self, google_auth, google_client, user_repo
    ):
        victim = await user_repo.insert(
            UserDoc(email=EMAIL, name="Jane", password_hash="hash", email_verified=True)
        )
        google_client.verify_id_token.return_value = _identity(
            email_verified=False, provider_user_id="attacker-sub"
        )
        with pytest.raises(AuthenticationError):
            await google_auth.authenticate(id_token="id-token")

        stored = await user_repo.find_by_id(victim.id)
        assert stored.google_id is None
        assert stored.last_login_at is None

    async def test_account_linked_to_other_google_account(
        self, google_auth, google_client, user_repo
    ):
        await user_repo.insert(UserDoc(email=EMAIL, name="Jane", google_id="google-999"))
        with pytest.raises(ForbiddenError, match="different Google account"):
            await google_auth.authenticate(id_token="id-token")

    async def test_returning_google_user(self, google_auth, user_repo):
        existing = await user_repo.insert(
            UserDoc(email=EMAIL, name="Jane", google_id="google-123", email_verified=True)
        )
        result = await google_auth.authenticate(id_token="id-token")
        assert result.user.id == existing.id

    async def test_name_falls_back_to_given_and_family(self, google_auth, google_client):
        google_client.verify_id_token.return_value = _identity(name="")
        result = await google_auth.authenticate(id_token="id-token")
        assert result.user.name == "Jane Doe"

    async def test_access_token_uses_userinfo(self, google_auth, google_client):
        await google_auth.authenticate(access_token="access-token")
        google_client.fetch_userinfo.assert_awaited_once_with("access-token")
        google_client.verify_id_token.assert_not_called()

    async def test_id_token_preferred(self, google_auth, google_client):
        await google_auth.authenticate(id_token="id-token", access_token="access-token")
        google_client.verify_id_token.assert_awaited_once_with("id-token")
        google_client.fetch_userinfo.assert_not_called()

    async def test_links_existing_password_user(self, google_auth, user_repo):
        existing = await user_repo.insert(
            UserDoc(email=EMAIL, name="Jane", password_hash="hash", email_verified=True)
        )
        result = await google_auth.authenticate(id_token="id-token")
        assert result.user.id == existing.id
        assert result.user.google_id == "google-123"
        assert result.user.name == "Jane"
        assert result.user.password_hash == "hash"
        assert result.user.last_login_at is not None
        assert await user_repo._col.count_documents({}) == 1

    async def test_verifies_existing_unverified_user(self, google_auth, user_repo):
        await user_repo.insert(UserDoc(email=EMAIL, name="Jane", email_verified=False))
        result = await google_auth.authenticate(id_token="id-token")
        assert result.user.email_verified is True

    async def test_deleted_user_rejected(self, google_auth, user_repo):
        await user_repo.insert(UserDoc(email=EMAIL, is_deleted=True, deleted_at=utc_now()))
        with pytest.raises(ForbiddenError):
            await google_auth.authenticate(id_token="id-token")

    async def test_rejected_token(self, google_auth, google_client):
        google_client.verify_id_token.side_effect = GoogleTokenError("audience_mismatch")
        with pytest.raises(AuthenticationError, match="Invalid Google token"):
            await google_auth.authenticate(id_token="id-token")

    async def test_identity_without_email(self, google_auth, google_client):
        google_client.verify_id_token.return_value = _identity(email="")
        with pytest.raises(ValidationError):
            await google_auth.authenticate(id_token="id-token")
