"""
Training ORM Models (``myrc_modules.training.orm``).

SQLAlchemy persistence for training items, participants and O&M
allocations.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from myrc_kernel.db.base import TrackedBase
from myrc_kernel.models.money import Money
from myrc_modules._planned import CostColumns, cost_totals, om_allocation_view


class TrainingItemModel(TrackedBase):
    __tablename__ = "training_items"

    __table_args__ = (
        UniqueConstraint("fiscal_year_id", "name", name="uq_training_item_fy_name"),
    )

    fiscal_year_id: Mapped[UUID] = mapped_column(
        ForeignKey("fiscal_years.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    provider: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PLANNED")
    training_type: Mapped[str] = mapped_column(String(30), nullable=False, default="OTHER")
    format: Mapped[str] = mapped_column(String(20), nullable=False, default="IN_PERSON")
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)

    participants: Mapped[list["TrainingParticipantModel"]] = relationship(
        back_populates="training_item",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="TrainingParticipantModel.created_at",
    )
    allocations: Mapped[list["TrainingAllocationModel"]] = relationship(
        back_populates="training_item",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    def to_dto(self):
        from myrc_modules.training.models import (
            PlanStatus,
            TrainingFormat,
            TrainingItem,
            TrainingType,
        )

        estimated, final = cost_totals(self.participants, "status")
        ordered = sorted(self.allocations, key=lambda a: (a.money.display_order, a.money.code))
        return TrainingItem(
            id=self.id,
            fiscal_year_id=self.fiscal_year_id,
            name=self.name,
            description=self.description,
            provider=self.provider,
            status=PlanStatus(self.status),
            training_type=TrainingType(self.training_type),
            format=TrainingFormat(self.format),
            start_date=self.start_date,
            end_date=self.end_date,
            location=self.location,
            participants=tuple(p.to_dto() for p in self.participants),
            money_allocations=tuple(om_allocation_view(a) for a in ordered),
            estimated_total_cad=estimated,
            final_total_cad=final,
            created_at=self.created_at,
            updated_at=self.updated_at,
            version=self.version,
        )


class TrainingParticipantModel(CostColumns, TrackedBase):
    __tablename__ = "training_participants"

    training_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("training_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    eco: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PLANNED")

    training_item: Mapped[TrainingItemModel] = relationship(back_populates="participants")

    def to_dto(self):
        from myrc_modules.training.models import ParticipantStatus, TrainingParticipant

        return TrainingParticipant(
            id=self.id,
            training_item_id=self.training_item_id,
            name=self.name,
            eco=self.eco,
            status=ParticipantStatus(self.status),
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


class TrainingAllocationModel(TrackedBase):
    """O&M amount of one training item for one money."""

    __tablename__ = "training_money_allocations"

    __table_args__ = (
        UniqueConstraint("training_item_id", "money_id", name="uq_training_allocation_money"),
        Index("idx_training_allocation_money", "money_id"),
    )

    training_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("training_items.id", ondelete="CASCADE"), nullable=False
    )
    money_id: Mapped[UUID] = mapped_column(
        ForeignKey("monies.id", ondelete="CASCADE"), nullable=False
    )
    om_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    training_item: Mapped[TrainingItemModel] = relationship(back_populates="allocations")
    money: Mapped[Money] = relationship(Money, lazy="joined")
