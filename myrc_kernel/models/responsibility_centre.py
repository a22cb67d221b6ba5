"""
Module: myrc_kernel.models.responsibility_centre
Responsibility: ORM persistence for Responsibility Centres and the access
    grants that share them with users, groups and distribution lists.
Architecture position: Kernel > Models.  May import from db/base.py and
    sibling kernel models only.

Invariants enforced:
    - RC names are globally unique.
    - One access row per (rc, principal_identifier, principal_type).
    - Deleting an RC deletes its access rows and fiscal years (ORM cascade),
      and everything below the fiscal years (database ON DELETE CASCADE).

Audit relevance:
    RCAccess.granted_by / granted_at record who shared an RC and when.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from myrc_kernel.db.base import TrackedBase, utcnow
from myrc_kernel.models.user import User

DEMO_RC_NAME = "Demo"


class AccessLevel(str, Enum):
    """Access granted on an RC, ordered by ``rank``."""

    OWNER = "OWNER"
    READ_WRITE = "READ_WRITE"
    READ_ONLY = "READ_ONLY"

    @property
    def rank(self) -> int:
        return _ACCESS_RANK[self]

    @property
    def can_write(self) -> bool:
        return self in (AccessLevel.OWNER, AccessLevel.READ_WRITE)


_ACCESS_RANK = {
    AccessLevel.OWNER: 3,
    AccessLevel.READ_WRITE: 2,
    AccessLevel.READ_ONLY: 1,
}


class PrincipalType(str, Enum):
    USER = "USER"
    GROUP = "GROUP"
    DISTRIBUTION_LIST = "DISTRIBUTION_LIST"


class ResponsibilityCentre(TrackedBase):
    """
    Organizational budget unit.

    Guarantees:
        - ``owner`` is the creating user ("original owner") and always holds
          OWNER access regardless of access rows.
        - Training and travel sections are enabled by default and excluded
          from summaries by default.
    """

    __tablename__ = "responsibility_centres"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    owner_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    training_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    travel_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    training_include_in_summary: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    travel_include_in_summary: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    owner: Mapped[User] = relationship(User, lazy="joined")

    access_entries: Mapped[list["RCAccess"]] = relationship(
        "RCAccess",
        back_populates="rc",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    fiscal_years: Mapped[list["FiscalYear"]] = relationship(  # noqa: F821
        "FiscalYear",
        back_populates="rc",
        cascade="all, delete-orphan",
        order_by="FiscalYear.name",
    )

    @property
    def owner_username(self) -> str:
        return self.owner.username

    @property
    def is_demo(self) -> bool:
        return self.name == DEMO_RC_NAME

    def __repr__(self) -> str:
        return f"<ResponsibilityCentre {self.name}>"


class RCAccess(TrackedBase):
    """
    A single access grant on an RC.

    Guarantees:
        - ``user_id`` is set only when the principal is a local user account.
        - ``principal_identifier`` is always set (username for USER rows).
    """

    __tablename__ = "rc_access"

    __table_args__ = (
        UniqueConstraint(
            "rc_id", "principal_identifier", "principal_type",
            name="uq_rc_access_principal",
        ),
        Index("idx_rc_access_principal", "principal_identifier"),
    )

    rc_id: Mapped[UUID] = mapped_column(
        ForeignKey("responsibility_centres.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )
    principal_identifier: Mapped[str] = mapped_column(String(255), nullable=False)
    principal_display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    principal_type: Mapped[str] = mapped_column(String(30), nullable=False)
    access_level: Mapped[str] = mapped_column(String(20), nullable=False)
    granted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    granted_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    rc: Mapped[ResponsibilityCentre] = relationship(
        ResponsibilityCentre, back_populates="access_entries"
    )

    @property
    def level(self) -> AccessLevel:
        return AccessLevel(self.access_level)

    def __repr__(self) -> str:
        return f"<RCAccess {self.principal_type}:{self.principal_identifier} {self.access_level}>"
