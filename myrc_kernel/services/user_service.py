"""
UserService -- account management and LOCAL authentication.

Responsibility:
    Creates, updates and removes user accounts; verifies LOCAL credentials
    with bcrypt and applies the failed-login lockout policy; serves
    self-registration under the login-method configuration.

Architecture position:
    Kernel > Services.  Configuration values arrive through ``AccountPolicy``
    (built by ``myrc_config.bridges``); the kernel never reads config itself.

Invariants enforced:
    - Passwords are stored only as bcrypt hashes.
    - ``max_failed_attempts`` consecutive failures lock the account for
      ``lockout_minutes``; an expired lock is cleared on the next attempt.
    - A successful login resets the failure counter.

Failure modes:
    - DuplicateNameError for a taken username or email.
    - ValidationError for malformed registration / missing LOCAL password.
    - RegistrationError when the login-method configuration forbids it.
    - UserNotFoundError for unknown usernames, NotFoundError for unknown ids.

Audit relevance:
    Authentication failures and lockouts are logged at WARNING with the
    username so incidents can be reconstructed.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from datetime import timedelta
from uuid import UUID

import bcrypt
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from myrc_kernel.db.base import as_utc, utcnow
from myrc_kernel.domain.dtos import UserInfo, UserStats
from myrc_kernel.exceptions import (
    DuplicateNameError,
    InvalidEnumValueError,
    NotFoundError,
    RegistrationError,
    UserNotFoundError,
    ValidationError,
)
from myrc_kernel.logging_config import get_logger
from myrc_kernel.models.user import DEFAULT_ROLE, AuthProvider, Theme, User
from myrc_kernel.services.base import BaseService

logger = get_logger("services.user")

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 8
_USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


@dataclass(frozen=True)
class AccountPolicy:
    """Login and registration rules applied by ``UserService``."""

    max_failed_attempts: int = 5
    lockout_minutes: int = 30
    app_account_enabled: bool = True
    allow_registration: bool = True


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, password_hash: str | None) -> bool:
    if not password_hash or password is None:
        return False
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def validate_username(username: str | None) -> str | None:
    """Return the first problem with ``username``, or None when acceptable."""
    if username is None or not username.strip():
        return "Username is required"
    if len(username) < USERNAME_MIN_LENGTH:
        return f"Username must be at least {USERNAME_MIN_LENGTH} characters"
    if len(username) > USERNAME_MAX_LENGTH:
        return f"Username must not exceed {USERNAME_MAX_LENGTH} characters"
    if not _USERNAME_PATTERN.match(username):
        return "Username can only contain letters, numbers, underscores, and hyphens"
    return None


class UserService(BaseService[User]):
    """
    Service for user accounts.

    Contract:
        Public methods return ``UserInfo`` DTOs (never password hashes).

    Guarantees:
        - ``authenticate`` never raises for bad credentials; it returns None
          so the caller can persist the updated failure counter.

    Non-goals:
        - Does NOT verify LDAP or OAuth2 credentials.
    """

    def __init__(self, session: Session, policy: AccountPolicy | None = None):
        super().__init__(session)
        self.policy = policy or AccountPolicy()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _get_by_id(self, user_id: UUID) -> User:
        user = self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def _find_by_username(self, username: str) -> User | None:
        stmt = select(User).where(User.username == username)
        return self.session.execute(stmt).scalar_one_or_none()

    def _find_by_email(self, email: str) -> User | None:
        stmt = select(User).where(func.lower(User.email) == email.strip().lower())
        return self.session.execute(stmt).scalar_one_or_none()

    def _get_by_username(self, username: str) -> User:
        user = self._find_by_username(username)
        if user is None:
            raise UserNotFoundError(username)
        return user

    def get_user(self, user_id: UUID) -> UserInfo:
        return UserInfo.from_model(self._get_by_id(user_id))

    def get_user_by_username(self, username: str) -> UserInfo:
        return UserInfo.from_model(self._get_by_username(username))

    def find_user_by_username(self, username: str) -> UserInfo | None:
        user = self._find_by_username(username)
        return UserInfo.from_model(user) if user else None

    def get_user_by_email(self, email: str) -> UserInfo:
        user = self._find_by_email(email)
        if user is None:
            raise NotFoundError("User", email)
        return UserInfo.from_model(user)

    def list_users(self) -> list[UserInfo]:
        users = self.session.execute(select(User).order_by(User.username)).scalars()
        return [UserInfo.from_model(u) for u in users]

    def list_enabled(self) -> list[UserInfo]:
        stmt = select(User).where(User.enabled == True).order_by(User.username)  # noqa: E712
        return [UserInfo.from_model(u) for u in self.session.execute(stmt).scalars()]

    def is_username_available(self, username: str) -> bool:
        """
        Raises:
            ValidationError: ``username`` is not a legal username.
        """
        problem = validate_username(username)
        if problem:
            raise ValidationError(problem, field="username")
        return self._find_by_username(username) is None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_user(
        self,
        username: str,
        password: str | None = None,
        email: str | None = None,
        full_name: str | None = None,
        auth_provider: AuthProvider | str = AuthProvider.LOCAL,
        external_id: str | None = None,
        roles: set[str] | None = None,
        actor: str | None = None,
    ) -> UserInfo:
        """
        Create an account.

        Preconditions:
            - LOCAL accounts supply a non-empty ``password``.
        Raises:
            DuplicateNameError: username or email already in use.
            ValidationError: missing username or LOCAL password.
        """
        if not username or not username.strip():
            raise ValidationError("Username is required", field="username")
        try:
            provider = AuthProvider(str(getattr(auth_provider, "value", auth_provider)).upper())
        except ValueError as exc:
            raise InvalidEnumValueError("auth provider", auth_provider, "auth_provider") from exc

        if self._find_by_username(username) is not None:
            raise DuplicateNameError("user", username, f"Username already exists: {username}")
        email = email.strip() if email and email.strip() else None
        if email is not None and self._find_by_email(email) is not None:
            raise DuplicateNameError("user", email, f"Email already registered: {email}")

        user = User(
            username=username,
            email=email,
            full_name=full_name,
            auth_provider=provider.value,
            external_id=external_id,
            enabled=True,
            account_locked=False,
            email_verified=provider is AuthProvider.OAUTH2,
            failed_login_attempts=0,
            roles=",".join(sorted(roles)) if roles else DEFAULT_ROLE,
            created_by=actor,
        )
        if provider is AuthProvider.LOCAL:
            if not password:
                raise ValidationError("Password required for LOCAL authentication", field="password")
            user.password_hash = hash_password(password)

        self.session.add(user)
        self._flush(user)
        logger.info("user_created", extra={"username": username, "auth_provider": provider.value})
        return UserInfo.from_model(user)

    def register(
        self,
        username: str,
        password: str,
        email: str | None,
        full_name: str | None = None,
    ) -> UserInfo:
        """
        Self-registration of a LOCAL account.

        Raises:
            RegistrationError: app accounts or self-registration disabled.
            ValidationError: malformed username, email or password.
            DuplicateNameError: username or email taken.
        """
        if not self.policy.app_account_enabled:
            logger.warning("registration_rejected", extra={"reason": "app_account_disabled"})
            raise RegistrationError("App Account login is currently disabled")
        if not self.policy.allow_registration:
            logger.warning("registration_rejected", extra={"reason": "registration_disabled"})
            raise RegistrationError("Self-registration is currently disabled")

        problem = validate_username(username)
        if problem:
            raise ValidationError(problem, field="username")
        if not email or not email.strip():
            raise ValidationError("Email is required", field="email")
        if "@" not in email:
            raise ValidationError("Invalid email format", field="email")
        if not password:
            raise ValidationError("Password is required", field="password")
        if len(password) < PASSWORD_MIN_LENGTH:
            raise ValidationError(
                f"Password must be at least {PASSWORD_MIN_LENGTH} characters", field="password"
            )
        if self._find_by_username(username) is not None:
            raise DuplicateNameError("user", username, "Username is already taken")

        return self.create_user(
            username=username,
            password=password,
            email=email,
            full_name=full_name or username,
            auth_provider=AuthProvider.LOCAL,
            roles={DEFAULT_ROLE},
            actor=username,
        )

    def update_user(
        self,
        user_id: UUID,
        *,
        full_name: str | None = None,
        email: str | None = None,
        enabled: bool | None = None,
        account_locked: bool | None = None,
        email_verified: bool | None = None,
        roles: set[str] | None = None,
        expected_version: int | None = None,
        actor: str | None = None,
    ) -> UserInfo:
        user = self._get_by_id(user_id)
        self._check_version(user, expected_version)

        if full_name is not None:
            user.full_name = full_name
        if email is not None and email != user.email:
            if self._find_by_email(email) is not None:
                raise DuplicateNameError("user", email, f"Email already registered: {email}")
            user.email = email
            user.email_verified = False
        if enabled is not None:
            user.enabled = enabled
        if account_locked is not None:
            user.account_locked = account_locked
        if email_verified is not None:
            user.email_verified = email_verified
        if roles is not None:
            user.roles = ",".join(sorted(roles)) or DEFAULT_ROLE
        user.updated_by = actor

        self._flush(user)
        logger.info("user_updated", extra={"username": user.username})
        return UserInfo.from_model(user)

    def change_password(self, user_id: UUID, current_password: str, new_password: str) -> None:
        """
        Raises:
            ValidationError: current password wrong or new password empty.
        """
        user = self._get_by_id(user_id)
        if not new_password:
            raise ValidationError("New password cannot be empty", field="new_password")
        if not check_password(current_password, user.password_hash):
            logger.warning("password_change_rejected", extra={"username": user.username})
            raise ValidationError("Current password is incorrect", field="current_password")
        user.password_hash = hash_password(new_password)
        user.failed_login_attempts = 0
        self._flush(user)
        logger.info("password_changed", extra={"username": user.username})

    def reset_password(self, user_id: UUID, new_password: str) -> None:
        if not new_password:
            raise ValidationError("New password cannot be empty", field="new_password")
        user = self._get_by_id(user_id)
        user.password_hash = hash_password(new_password)
        user.failed_login_attempts = 0
        self._flush(user)
        logger.warning("password_reset", extra={"username": user.username})

    def enable(self, user_id: UUID) -> UserInfo:
        user = self._get_by_id(user_id)
        user.enabled = True
        self._flush(user)
        logger.info("user_enabled", extra={"username": user.username})
        return UserInfo.from_model(user)

    def disable(self, user_id: UUID) -> UserInfo:
        user = self._get_by_id(user_id)
        user.enabled = False
        self._flush(user)
        logger.info("user_disabled", extra={"username": user.username})
        return UserInfo.from_model(user)

    def lock(self, user_id: UUID) -> UserInfo:
        user = self._get_by_id(user_id)
        self._lock(user)
        self._flush(user)
        return UserInfo.from_model(user)

    def unlock(self, user_id: UUID) -> UserInfo:
        user = self._get_by_id(user_id)
        user.account_locked = False
        user.account_locked_until = None
        user.failed_login_attempts = 0
        self._flush(user)
        logger.info("user_unlocked", extra={"username": user.username})
        return UserInfo.from_model(user)

    def delete_user(self, user_id: UUID) -> None:
        user = self._get_by_id(user_id)
        self.session.delete(user)
        self._flush()
        logger.warning("user_deleted", extra={"username": user.username})

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def _lock(self, user: User) -> None:
        user.account_locked = True
        user.account_locked_until = utcnow() + timedelta(minutes=self.policy.lockout_minutes)
        logger.warning(
            "account_locked",
            extra={"username": user.username, "lockout_minutes": self.policy.lockout_minutes},
        )

    def authenticate(self, username: str, password: str) -> UserInfo | None:
        """
        Verify LOCAL credentials.

        Postconditions:
            - On failure the failure counter / lock state is updated and
              flushed; the caller must commit for it to persist.
            - Returns None on any failure, the account DTO on success.
        """
        user = self._find_by_username(username)
        if user is None:
            logger.warning("authentication_failed", extra={"username": username, "reason": "unknown_user"})
            return None

        if user.account_locked:
            locked_until = as_utc(user.account_locked_until)
            if locked_until is not None and utcnow() > locked_until:
                user.account_locked = False
                user.account_locked_until = None
                user.failed_login_attempts = 0
                logger.info("account_lock_expired", extra={"username": username})
            else:
                logger.warning("authentication_failed", extra={"username": username, "reason": "locked"})
                return None

        if not user.enabled:
            logger.warning("authentication_failed", extra={"username": username, "reason": "disabled"})
            return None

        if user.auth_provider != AuthProvider.LOCAL.value or not check_password(
            password, user.password_hash
        ):
            user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
            if user.failed_login_attempts >= self.policy.max_failed_attempts:
                self._lock(user)
            self._flush(user)
            logger.warning(
                "authentication_failed",
                extra={
                    "username": username,
                    "reason": "bad_password",
                    "failed_attempts": user.failed_login_attempts,
                },
            )
            return None

        user.failed_login_attempts = 0
        user.account_locked = False
        user.last_login_at = utcnow()
        self._flush(user)
        logger.info("authentication_succeeded", extra={"username": username})
        return UserInfo.from_model(user)

    # ------------------------------------------------------------------
    # Preferences and stats
    # ------------------------------------------------------------------

    def get_theme(self, username: str) -> str:
        return self._get_by_username(username).theme

    def update_theme(self, username: str, theme: str) -> str:
        try:
            value = Theme(str(getattr(theme, "value", theme)).lower())
        except ValueError as exc:
            raise InvalidEnumValueError("theme", theme, "theme") from exc
        user = self._get_by_username(username)
        user.theme = value.value
        self._flush(user)
        return user.theme

    def stats(self) -> UserStats:
        users = list(self.session.execute(select(User)).scalars())
        return UserStats(
            total=len(users),
            enabled=sum(1 for u in users if u.enabled),
            locked=sum(1 for u in users if u.account_locked),
            by_provider=dict(Counter(u.auth_provider for u in users)),
        )
