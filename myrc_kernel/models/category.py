"""
Module: myrc_kernel.models.category
Responsibility: ORM persistence for fiscal-year categories used to group
    funding, spending and procurement items.
Architecture position: Kernel > Models.

Invariants enforced:
    - name is unique within the fiscal year.
    - Default categories (seeded on FY creation) are read-only.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from myrc_kernel.db.base import TrackedBase
from myrc_kernel.models.fiscal_year import FiscalYear


class FundingType(str, Enum):
    """Which allocation columns a category accepts."""

    BOTH = "BOTH"
    CAP_ONLY = "CAP_ONLY"
    OM_ONLY = "OM_ONLY"


class Category(TrackedBase):
    """A category within a fiscal year."""

    __tablename__ = "categories"

    __table_args__ = (
        UniqueConstraint("fiscal_year_id", "name", name="uq_category_fy_name"),
    )

    fiscal_year_id: Mapped[UUID] = mapped_column(
        ForeignKey("fiscal_years.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    funding_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=FundingType.BOTH.value
    )
    translation_key: Mapped[str | None] = mapped_column(String(100), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    fiscal_year: Mapped[FiscalYear] = relationship(FiscalYear, back_populates="categories")

    def __repr__(self) -> str:
        return f"<Category {self.name}>"
