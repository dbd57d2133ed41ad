"""
Unit Tests for the Authentication Service

Tests registration, login with lockout, token verification, refresh tokens
and self-service profile changes.
"""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from cloudpc.core.exceptions import (
    AccountLockedError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    TokenExpiredError,
    ValidationError,
)


@pytest.mark.unit
class TestRegisterAndLogin:
    """Test account creation and credential checks."""

    async def test_register_returns_token(self, auth_service):
        """Test a new account gets a token carrying its id and role."""
        user, token = await auth_service.register("Ada Lovelace", "ada@example.com", "secret123")

        payload = auth_service.decode_token(token)
        assert payload["id"] == user.id
        assert payload["email"] == "ada@example.com"
        assert payload["role"] == "user"

    async def test_duplicate_email_conflicts(self, auth_service, user):
        """Test registering an existing email is rejected."""
        with pytest.raises(ConflictError):
            await auth_service.register("Someone", "ADA@example.com", "secret123")

    async def test_login_issues_tokens_and_caches_session(self, auth_service, cache_service, user):
        """Test a good login returns both tokens and caches the session."""
        logged_in, token, refresh_token = await auth_service.login("ada@example.com", "secret123")

        assert auth_service.decode_token(token)["id"] == user.id
        assert len(refresh_token) == 80
        assert logged_in.last_login_at is not None
        assert (await cache_service.get_user_session(user.id))["userId"] == user.id

    async def test_unknown_email(self, auth_service):
        """Test an unknown email is a 401."""
        with pytest.raises(AuthenticationError):
            await auth_service.login("nobody@example.com", "secret123")

    async def test_wrong_password_counts_attempt(self, auth_service, user_repository, user):
        """Test a bad password is a 401 and the attempt is persisted."""
        with pytest.raises(AuthenticationError):
            await auth_service.login("ada@example.com", "wrong-pass1")

        assert (await user_repository.get(user.id)).login_attempts == 1

    async def test_lockout_after_five_failures(self, auth_service, user):
        """Test the account locks and then refuses even the right password."""
        for _ in range(5):
            with pytest.raises(AuthenticationError):
                await auth_service.login("ada@example.com", "wrong-pass1")

        with pytest.raises(AccountLockedError) as exc_info:
            await auth_service.login("ada@example.com", "secret123")
        assert exc_info.value.status_code == 423

    async def test_successful_login_resets_attempts(self, auth_service, user):
        """Test a good login clears earlier failures."""
        with pytest.raises(AuthenticationError):
            await auth_service.login("ada@example.com", "wrong-pass1")

        logged_in, _, _ = await auth_service.login("ada@example.com", "secret123")

        assert logged_in.login_attempts == 0

    @pytest.mark.parametrize("status", ["suspended", "deactivated"])
    async def test_disabled_accounts_forbidden(self, auth_service, user_repository, user, status):
        """Test suspended and deactivated accounts get a 403."""
        user.status = status
        await user_repository.update(user)

        with pytest.raises(AuthorizationError):
            await auth_service.login("ada@example.com", "secret123")


@pytest.mark.unit
class TestTokens:
    """Test access token verification."""

    def _token(self, test_settings, **claims) -> str:
        return jwt.encode(claims, test_settings.JWT_SECRET, algorithm="HS256")

    async def test_expired_token(self, auth_service, test_settings, user):
        """Test an expired token raises the dedicated error."""
        past = datetime.now(timezone.utc) - timedelta(minutes=5)
        token = self._token(test_settings, id=user.id, email=user.email, role=user.role, exp=past)

        with pytest.raises(TokenExpiredError):
            auth_service.decode_token(token)

    async def test_garbage_token(self, auth_service):
        """Test a non-JWT string is a 401."""
        with pytest.raises(AuthenticationError):
            auth_service.decode_token("not-a-token")

    async def test_wrong_secret(self, auth_service, user):
        """Test a token signed with another secret is rejected."""
        token = jwt.encode({"id": user.id}, "other-secret", algorithm="HS256")

        with pytest.raises(AuthenticationError):
            auth_service.decode_token(token)

    async def test_token_without_id(self, auth_service, test_settings):
        """Test a valid signature without an id claim is rejected."""
        with pytest.raises(AuthenticationError):
            auth_service.decode_token(self._token(test_settings, email="x@example.com"))

    async def test_authenticate_inactive_user(self, auth_service, user_repository, user):
        """Test a disabled user cannot authenticate with a valid token."""
        token = auth_service.create_access_token(user)
        user.is_active = False
        await user_repository.update(user)

        with pytest.raises(AuthenticationError):
            await auth_service.authenticate(token)

    async def test_authenticate_deleted_user(self, auth_service, user_repository, user):
        """Test a token for a removed user is rejected."""
        token = auth_service.create_access_token(user)
        await user_repository.delete(user.id)

        with pytest.raises(AuthenticationError):
            await auth_service.authenticate(token)


@pytest.mark.unit
class TestRefreshAndLogout:
    """Test refresh tokens."""

    async def test_refresh_with_stored_token(self, auth_service, user):
        """Test a stored refresh token yields a new access token."""
        logged_in, _, refresh_token = await auth_service.login("ada@example.com", "secret123")

        token = await auth_service.refresh(logged_in, refresh_token)

        assert auth_service.decode_token(token)["id"] == user.id

    async def test_refresh_with_unknown_token(self, auth_service, user):
        """Test an unknown refresh token is rejected."""
        logged_in, _, _ = await auth_service.login("ada@example.com", "secret123")

        with pytest.raises(AuthenticationError):
            await auth_service.refresh(logged_in, "f" * 80)

    async def test_logout_revokes_token_and_session(self, auth_service, cache_service, user):
        """Test logout removes the refresh token and the cached session."""
        logged_in, _, refresh_token = await auth_service.login("ada@example.com", "secret123")

        await auth_service.logout(logged_in, refresh_token)

        assert await cache_service.get_user_session(user.id) is None
        with pytest.raises(AuthenticationError):
            await auth_service.refresh(logged_in, refresh_token)


@pytest.mark.unit
class TestProfile:
    """Test self-service profile changes."""

    async def test_profile_served_from_cache_second_time(self, auth_service, user):
        """Test the profile is cached after the first read."""
        first, first_cached = await auth_service.get_profile(user)
        second, second_cached = await auth_service.get_profile(user)

        assert first == second
        assert not first_cached
        assert second_cached

    async def test_update_profile_invalidates_cache(self, auth_service, cache_service, user):
        """Test a profile change purges the cached user."""
        await auth_service.get_profile(user)

        updated = await auth_service.update_profile(user, name="  Countess  ")

        assert updated.name == "Countess"
        assert await cache_service.get_user(user.id) is None

    async def test_change_password_requires_current(self, auth_service, user):
        """Test a wrong current password is a validation error."""
        with pytest.raises(ValidationError):
            await auth_service.change_password(user, "wrong-pass1", "newpass456")

    async def test_change_password_revokes_refresh_tokens(self, auth_service, user_repository, user):
        """Test the new password works and refresh tokens are cleared."""
        logged_in, _, _ = await auth_service.login("ada@example.com", "secret123")

        await auth_service.change_password(logged_in, "secret123", "newpass456")

        stored = await user_repository.get(user.id)
        assert stored.verify_password("newpass456")
        assert stored.refresh_tokens == []
