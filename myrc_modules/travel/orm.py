"""
Travel ORM Models (``myrc_modules.travel.orm``).

SQLAlchemy persistence for travel items, travellers and O&M allocations.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from myrc_kernel.db.base import TrackedBase
from myrc_kernel.models.money import Money
from myrc_modules._planned import CostColumns, cost_totals, om_allocation_view


class TravelItemModel(TrackedBase):
    __tablename__ = "travel_items"

    __table_args__ = (
        UniqueConstraint("fiscal_year_id", "name", name="uq_travel_item_fy_name"),
    )

    fiscal_year_id: Mapped[UUID] = mapped_column(
        ForeignKey("fiscal_years.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Event management approval reference.
    emap: Mapped[str | None] = mapped_column(String(100), nullable=True)
    destination: Mapped[str | None] = mapped_column(String(255), nullable=True)
    purpose: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PLANNED")
    travel_type: Mapped[str] = mapped_column(String(20), nullable=False, default="DOMESTIC")
    departure_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    return_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    travellers: Mapped[list["TravelTravellerModel"]] = relationship(
        back_populates="travel_item",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="TravelTravellerModel.created_at",
    )
    allocations: Mapped[list["TravelAllocationModel"]] = relationship(
        back_populates="travel_item",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    def to_dto(self):
        from myrc_modules.travel.models import PlanStatus, TravelItem, TravelType

        estimated, final = cost_totals(self.travellers, "approval_status")
        ordered = sorted(self.allocations, key=lambda a: (a.money.display_order, a.money.code))
        return TravelItem(
            id=self.id,
            fiscal_year_id=self.fiscal_year_id,
            name=self.name,
            description=self.description,
            emap=self.emap,
            destination=self.destination,
            purpose=self.purpose,
            status=PlanStatus(self.status),
            travel_type=TravelType(self.travel_type),
            departure_date=self.departure_date,
            return_date=self.return_date,
            travellers=tuple(t.to_dto() for t in self.travellers),
            money_allocations=tuple(om_allocation_view(a) for a in ordered),
            estimated_total_cad=estimated,
            final_total_cad=final,
            created_at=self.created_at,
            updated_at=self.updated_at,
            version=self.version,
        )


class TravelTravellerModel(CostColumns, TrackedBase):
    __tablename__ = "travel_travellers"

    travel_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("travel_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    taac: Mapped[str | None] = mapped_column(String(100), nullable=True)
    approval_status: Mapped[str] = mapped_column(String(30), nullable=False, default="PLANNED")

    travel_item: Mapped[TravelItemModel] = relationship(back_populates="travellers")

    def to_dto(self):
        from myrc_modules.travel.models import ApprovalStatus, TravelTraveller

        return TravelTraveller(
            id=self.id,
            travel_item_id=self.travel_item_id,
            name=self.name,
            taac=self.taac,
            approval_status=ApprovalStatus(self.approval_status),
            estimated_cost=self.estimated_cost,
            estimated_currency=self.estimated_currency,
            estimated_exchange_rate=self.estimated_exchange_rate,
            estimated_cost_cad=self.estimated_cost_cad,
            final_cost=self.final_cost,
            final_currency=self.final_currency,
            final_exchange_rate=self.final_exchange_rate,
            final_cost_cad=self.final_cost_cad,
            version=self.version,
        )


class TravelAllocationModel(TrackedBase):
    __tablename__ = "travel_money_allocations"

    __table_args__ = (
        UniqueConstraint("travel_item_id", "money_id", name="uq_travel_allocation_money"),
        Index("idx_travel_allocation_money", "money_id"),
    )

    travel_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("travel_items.id", ondelete="CASCADE"), nullable=False
    )
    money_id: Mapped[UUID] = mapped_column(
        ForeignKey("monies.id", ondelete="CASCADE"), nullable=False
    )
    om_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    travel_item: Mapped[TravelItemModel] = relationship(back_populates="allocations")
    money: Mapped[Money] = relationship(Money, lazy="joined")
