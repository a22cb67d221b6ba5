"""
Funding ORM Models (``myrc_modules.funding.orm``).

Responsibility
--------------
SQLAlchemy persistence for funding items and their per-money CAP / OM
allocations.  Maps to the frozen DTOs in ``models.py``.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``myrc_kernel`` and sibling
``models.py``.  MUST NOT be imported by ``myrc_kernel``.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from myrc_kernel.db.base import TrackedBase
from myrc_kernel.models.category import Category
from myrc_kernel.models.money import Money
from myrc_modules._common import allocation_view


class FundingItemModel(TrackedBase):
    """A funding line; one allocation row per money of its fiscal year."""

    __tablename__ = "funding_items"

    __table_args__ = (
        UniqueConstraint("fiscal_year_id", "name", name="uq_funding_item_fy_name"),
        Index("idx_funding_items_category", "category_id"),
    )

    fiscal_year_id: Mapped[UUID] = mapped_column(
        ForeignKey("fiscal_years.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    source: Mapped[str] = mapped_column(String(30), nullable=False, default="BUSINESS_PLAN")
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="CAD")
    exchange_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    category_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )

    category: Mapped[Category | None] = relationship(Category, lazy="joined")
    allocations: Mapped[list["FundingAllocationModel"]] = relationship(
        back_populates="funding_item",
        cascade="all, delete-orphan",
        lazy="selectin",
        passive_deletes=True,
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from myrc_modules.funding.models import FundingItem, FundingSource

        ordered = sorted(self.allocations, key=lambda a: (a.money.display_order, a.money.code))
        return FundingItem(
            id=self.id,
            fiscal_year_id=self.fiscal_year_id,
            name=self.name,
            description=self.description,
            source=FundingSource(self.source),
            comments=self.comments,
            currency=self.currency,
            exchange_rate=self.exchange_rate,
            category_id=self.category_id,
            category_name=self.category.name if self.category is not None else None,
            money_allocations=tuple(a.to_dto() for a in ordered),
            created_at=self.created_at,
            updated_at=self.updated_at,
            version=self.version,
        )


class FundingAllocationModel(TrackedBase):
    """CAP / OM amounts of one funding item for one money."""

    __tablename__ = "funding_money_allocations"

    __table_args__ = (
        UniqueConstraint("funding_item_id", "money_id", name="uq_funding_allocation_money"),
        Index("idx_funding_allocation_money", "money_id"),
    )

    funding_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("funding_items.id", ondelete="CASCADE"), nullable=False
    )
    money_id: Mapped[UUID] = mapped_column(
        ForeignKey("monies.id", ondelete="CASCADE"), nullable=False
    )
    cap_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    om_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    funding_item: Mapped[FundingItemModel] = relationship(back_populates="allocations")
    money: Mapped[Money] = relationship(Money, lazy="joined")

    def to_dto(self):
        return allocation_view(self.id, self.money, self.cap_amount, self.om_amount)
