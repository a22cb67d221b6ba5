"""
Module: myrc_kernel.models.money
Responsibility: ORM persistence for money types -- the funding envelopes of a
    fiscal year (e.g. AB / A-Base) that funding and spending amounts are
    split across as CAP and OM allocations.
Architecture position: Kernel > Models.

Invariants enforced:
    - code is upper-case and unique within the fiscal year.
    - Exactly one default money (AB) per fiscal year, seeded on creation.
"""

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from myrc_kernel.db.base import TrackedBase
from myrc_kernel.models.fiscal_year import FiscalYear

DEFAULT_MONEY_CODE = "AB"
DEFAULT_MONEY_NAME = "A-Base"
DEFAULT_MONEY_DESCRIPTION = "Default A-Base funding allocation"


class Money(TrackedBase):
    """A money type within a fiscal year."""

    __tablename__ = "monies"

    __table_args__ = (
        UniqueConstraint("fiscal_year_id", "code", name="uq_money_fy_code"),
    )

    fiscal_year_id: Mapped[UUID] = mapped_column(
        ForeignKey("fiscal_years.id", ondelete="CASCADE"), nullable=False
    )
    code: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    fiscal_year: Mapped[FiscalYear] = relationship(FiscalYear, back_populates="monies")

    def __repr__(self) -> str:
        return f"<Money {self.code}{' (default)' if self.is_default else ''}>"
