"""
Authentication Service
======================

Accounts, credentials and tokens.

TOKENS:
-------
- Access token: HS256 JWT carrying ``{id, email, role, exp, iat}``, signed
  with JWT_SECRET and valid for JWT_EXPIRE_MINUTES.
- Refresh token: 80 hex chars stored on the user row with an expiry of
  REFRESH_TOKEN_EXPIRE_DAYS. Expired ones are pruned on every login.

LOCKOUT:
--------
MAX_LOGIN_ATTEMPTS consecutive bad passwords lock the account for
ACCOUNT_LOCK_MINUTES. A successful login resets the counter.

CACHE BOOKKEEPING:
------------------
- login:           invalidate ``session:{id}`` (userLogin), then cache the new session
- logout:          invalidate ``session:{id}`` (userLogout)
- profile/password: invalidate ``user:{id}`` and ``session:{id}`` (userUpdated)
- register:        invalidate stats (user counts changed)
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from cloudpc.core.config.constants import Stage, UserStatus
from cloudpc.core.config.settings import Settings
from cloudpc.core.exceptions import (
    AccountLockedError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    TokenExpiredError,
    ValidationError,
)
from cloudpc.core.logging.logger import get_logger, log_stage
from cloudpc.infrastructure.cache.cache_service import CacheService
from cloudpc.infrastructure.cache.cache_strategy import CacheCategory, InvalidationEvent
from cloudpc.infrastructure.persistence.models import User, as_utc, utcnow
from cloudpc.infrastructure.persistence.repositories import UserRepository

logger = get_logger(__name__)


class AuthService:
    """
    Registration, login, token issue/verification and self-service profile
    changes.
    """

    def __init__(self, users: UserRepository, cache: CacheService, settings: Settings):
        self.users = users
        self.cache = cache
        self.settings = settings
        self._auth = settings.auth

    # =========================================================================
    # Tokens
    # =========================================================================

    def create_access_token(self, user: User) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "id": user.id,
            "email": user.email,
            "role": user.role,
            "iat": now,
            "exp": now + timedelta(minutes=self._auth.JWT_EXPIRE_MINUTES),
        }
        return jwt.encode(payload, self._auth.JWT_SECRET, algorithm=self._auth.JWT_ALGORITHM)

    def decode_token(self, token: str) -> dict[str, Any]:
        """
        Verify an access token.

        Raises:
            TokenExpiredError: signature valid but ``exp`` has passed
            AuthenticationError: anything else wrong, including a missing ``id``
        """
        try:
            payload = jwt.decode(token, self._auth.JWT_SECRET, algorithms=[self._auth.JWT_ALGORITHM])
        except ExpiredSignatureError:
            raise TokenExpiredError("Access token has expired")
        except JWTError as e:
            logger.warning("Token verification failed", stage=Stage.AUTHENTICATION.value, error=str(e))
            raise AuthenticationError("Invalid access token")

        if not payload.get("id"):
            raise AuthenticationError("Invalid access token")
        return payload

    async def authenticate(self, token: str) -> User:
        """
        Resolve a bearer token to an active, unlocked user.

        Raises:
            AuthenticationError / TokenExpiredError: 401
            AccountLockedError: 423
        """
        payload = self.decode_token(token)
        user = await self.users.get(payload["id"])
        if user is None:
            raise AuthenticationError("User no longer exists")
        if not user.is_active:
            raise AuthenticationError("Account is disabled")
        if user.is_locked:
            raise AccountLockedError(
                "Account is locked, try again later",
                details={"lock_until": as_utc(user.lock_until).isoformat()},
            )
        return user

    def _issue_refresh_token(self, user: User) -> str:
        token = secrets.token_hex(40)
        now = utcnow()
        live = [t for t in user.refresh_tokens if datetime.fromisoformat(t["expires_at"]) > now]
        user.refresh_tokens = [
            *live,
            {
                "token": token,
                "created_at": now.isoformat(),
                "expires_at": (now + timedelta(days=self._auth.REFRESH_TOKEN_EXPIRE_DAYS)).isoformat(),
            },
        ]
        return token

    # =========================================================================
    # Account operations
    # =========================================================================

    async def register(
        self, name: str, email: str, password: str, phone: str | None = None
    ) -> tuple[User, str]:
        """
        Create an account.

        Raises:
            ConflictError: email already registered
        """
        if await self.users.get_by_email(email):
            raise ConflictError("Email is already registered")

        user = await self.users.create(User.create(name=name, email=email, password=password, phone=phone))
        await self.cache.invalidate_stats()

        log_stage(logger, Stage.AUTHENTICATION, "User registered", user_id=user.id, email=user.email)
        return user, self.create_access_token(user)

    async def login(self, email: str, password: str) -> tuple[User, str, str]:
        """
        Verify credentials and issue an access/refresh token pair.

        Raises:
            AuthenticationError: unknown email or wrong password (401)
            AuthorizationError: suspended or deactivated account (403)
            AccountLockedError: too many failed attempts (423)
        """
        user = await self.users.get_by_email(email)
        if user is None:
            raise AuthenticationError("Invalid email or password")

        if user.status == UserStatus.SUSPENDED.value:
            raise AuthorizationError("Account is suspended, contact support")
        if user.status == UserStatus.DEACTIVATED.value:
            raise AuthorizationError("Account has been deactivated")
        if user.is_locked:
            raise AccountLockedError(
                "Account is locked, try again later",
                details={"lock_until": as_utc(user.lock_until).isoformat()},
            )

        if not user.verify_password(password):
            user.register_failed_login(self._auth.MAX_LOGIN_ATTEMPTS, self._auth.ACCOUNT_LOCK_MINUTES)
            await self.users.update(user)
            logger.warning(
                "Login failed",
                stage=Stage.AUTHENTICATION.value,
                email=email,
                attempts=user.login_attempts,
                locked=user.is_locked,
            )
            raise AuthenticationError("Invalid email or password")

        user.reset_login_attempts()
        user.last_login_at = utcnow()
        refresh_token = self._issue_refresh_token(user)
        user = await self.users.update(user)

        await self.cache.invalidate(InvalidationEvent.USER_LOGIN, {"userId": user.id})
        await self.cache.cache_user_session(
            user.id,
            {"userId": user.id, "email": user.email, "role": user.role, "loginAt": as_utc(user.last_login_at).isoformat()},
        )

        log_stage(logger, Stage.AUTHENTICATION, "User logged in", user_id=user.id)
        return user, self.create_access_token(user), refresh_token

    async def refresh(self, user: User, refresh_token: str) -> str:
        """
        Exchange a stored, unexpired refresh token for a new access token.

        Raises:
            AuthenticationError: token unknown or expired
        """
        now = utcnow()
        for record in user.refresh_tokens:
            if record["token"] == refresh_token and datetime.fromisoformat(record["expires_at"]) > now:
                return self.create_access_token(user)
        raise AuthenticationError("Invalid refresh token")

    async def logout(self, user: User, refresh_token: str | None = None) -> None:
        if refresh_token:
            user.refresh_tokens = [t for t in user.refresh_tokens if t["token"] != refresh_token]
            await self.users.update(user)
        await self.cache.invalidate_user_session(user.id)
        log_stage(logger, Stage.AUTHENTICATION, "User logged out", user_id=user.id)

    async def get_profile(self, user: User) -> tuple[dict[str, Any], bool]:
        """Public view of ``user``, served from ``user:{id}`` when cached."""

        async def load() -> dict[str, Any]:
            return user.to_public()

        return await self.cache.get_or_compute(CacheCategory.USER, user.id, load)

    async def update_profile(
        self,
        user: User,
        name: str | None = None,
        phone: str | None = None,
        avatar: str | None = None,
    ) -> User:
        changed = []
        if name:
            user.name = name.strip()
            changed.append("name")
        if phone:
            user.phone = phone
            changed.append("phone")
        if avatar:
            user.avatar = avatar
            changed.append("avatar")

        user = await self.users.update(user)
        await self.cache.invalidate_user(user.id)
        logger.info("Profile updated", user_id=user.id, fields=changed)
        return user

    async def change_password(self, user: User, current_password: str, new_password: str) -> None:
        """
        Replace the password and revoke every refresh token.

        Raises:
            ValidationError: current password does not match
        """
        if not user.verify_password(current_password):
            raise ValidationError("Current password is incorrect")

        user.set_password(new_password)
        user.refresh_tokens = []
        await self.users.update(user)
        await self.cache.invalidate_user(user.id)
        log_stage(logger, Stage.AUTHENTICATION, "Password changed", user_id=user.id)
