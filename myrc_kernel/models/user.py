"""
Module: myrc_kernel.models.user
Responsibility: ORM persistence for user accounts -- identity, credentials,
    lockout state and UI preferences.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - username and email are unique.
    - LOCAL accounts carry a bcrypt password hash; LDAP / OAUTH2 accounts
      carry an external_id instead.
    - failed_login_attempts resets to 0 on every successful login.

Audit relevance:
    last_login_at, failed_login_attempts and account_locked_until are the
    evidence trail for authentication incidents.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from myrc_kernel.db.base import TrackedBase


class AuthProvider(str, Enum):
    """Where the account's credentials live."""

    LOCAL = "LOCAL"
    LDAP = "LDAP"
    OAUTH2 = "OAUTH2"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


DEFAULT_ROLE = "USER"


class User(TrackedBase):
    """
    Application user.

    Contract:
        Users are identified by ``username`` everywhere above the ORM
        (permission checks, audit rows, created_by columns).

    Guarantees:
        - username is unique (uq on column).
        - roles is a comma-separated set, never empty (defaults to USER).
    """

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    auth_provider: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AuthProvider.LOCAL.value
    )
    external_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    account_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    failed_login_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    account_locked_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    theme: Mapped[str] = mapped_column(String(20), nullable=False, default=Theme.LIGHT.value)
    roles: Mapped[str] = mapped_column(String(255), nullable=False, default=DEFAULT_ROLE)

    @property
    def role_set(self) -> frozenset[str]:
        return frozenset(r for r in self.roles.split(",") if r)

    def __repr__(self) -> str:
        return f"<User {self.username} [{self.auth_provider}]>"
