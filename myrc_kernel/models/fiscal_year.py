"""
Module: myrc_kernel.models.fiscal_year
Responsibility: ORM persistence for fiscal years and their display settings.
Architecture position: Kernel > Models.

Invariants enforced:
    - name is unique within its RC.
    - -100 <= on_target_min <= on_target_max <= 100 (clamped by the service).
    - An inactive fiscal year is read-only (enforced by services and the API
      guard; the flag itself is toggled by the RC owner).
    - Deleting a fiscal year deletes its monies and categories (ORM cascade)
      and every module row below it (database ON DELETE CASCADE).
"""

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from myrc_kernel.db.base import TrackedBase
from myrc_kernel.models.responsibility_centre import ResponsibilityCentre

DEFAULT_ON_TARGET_MIN = -2
DEFAULT_ON_TARGET_MAX = 2
ON_TARGET_LIMIT = 100


class FiscalYear(TrackedBase):
    """A budget period under an RC."""

    __tablename__ = "fiscal_years"

    __table_args__ = (
        UniqueConstraint("rc_id", "name", name="uq_fiscal_year_rc_name"),
    )

    rc_id: Mapped[UUID] = mapped_column(
        ForeignKey("responsibility_centres.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Display settings
    show_search_box: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    show_category_filter: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    group_by_category: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    on_target_min: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_ON_TARGET_MIN
    )
    on_target_max: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_ON_TARGET_MAX
    )

    rc: Mapped[ResponsibilityCentre] = relationship(
        ResponsibilityCentre, back_populates="fiscal_years"
    )

    monies: Mapped[list["Money"]] = relationship(  # noqa: F821
        "Money",
        back_populates="fiscal_year",
        cascade="all, delete-orphan",
        order_by="(Money.display_order, Money.code)",
    )

    categories: Mapped[list["Category"]] = relationship(  # noqa: F821
        "Category",
        back_populates="fiscal_year",
        cascade="all, delete-orphan",
        order_by="(Category.display_order, Category.name)",
    )

    def __repr__(self) -> str:
        return f"<FiscalYear {self.name} active={self.active}>"
