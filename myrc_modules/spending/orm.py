"""
Spending ORM Models (``myrc_modules.spending.orm``).

Responsibility
--------------
SQLAlchemy persistence for spending items, their per-money allocations,
tracking events, invoices and invoice files.

Architecture position
---------------------
**Modules layer** -- persistence.  ``procurement_item_id`` references the
procurement table by name only; the procurement module owns that link.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from myrc_kernel.db.base import TrackedBase
from myrc_kernel.models.category import Category
from myrc_kernel.models.money import Money
from myrc_modules._attachments import AttachmentColumns
from myrc_modules._common import allocation_view


class SpendingItemModel(TrackedBase):
    __tablename__ = "spending_items"

    __table_args__ = (
        UniqueConstraint("fiscal_year_id", "name", name="uq_spending_item_fy_name"),
        Index("idx_spending_items_category", "category_id"),
        Index("idx_spending_items_procurement", "procurement_item_id"),
    )

    fiscal_year_id: Mapped[UUID] = mapped_column(
        ForeignKey("fiscal_years.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    vendor: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    eco_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PLANNING")
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="CAD")
    exchange_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    # Required on create; SET NULL keeps the item when its category is deleted.
    category_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )
    procurement_item_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("procurement_items.id", ondelete="SET NULL"), nullable=True
    )
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    category: Mapped[Category | None] = relationship(Category, lazy="joined")
    allocations: Mapped[list["SpendingAllocationModel"]] = relationship(
        back_populates="spending_item",
        cascade="all, delete-orphan",
        lazy="selectin",
        passive_deletes=True,
    )
    events: Mapped[list["SpendingEventModel"]] = relationship(
        back_populates="spending_item",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="(SpendingEventModel.event_date.desc(), SpendingEventModel.created_at.desc())",
    )
    invoices: Mapped[list["SpendingInvoiceModel"]] = relationship(
        back_populates="spending_item",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SpendingInvoiceModel.created_at",
    )

    def to_dto(self):
        from myrc_modules.spending.models import SpendingItem, SpendingStatus

        ordered = sorted(self.allocations, key=lambda a: (a.money.display_order, a.money.code))
        return SpendingItem(
            id=self.id,
            fiscal_year_id=self.fiscal_year_id,
            name=self.name,
            description=self.description,
            vendor=self.vendor,
            reference_number=self.reference_number,
            amount=self.amount,
            eco_amount=self.eco_amount,
            status=SpendingStatus(self.status),
            currency=self.currency,
            exchange_rate=self.exchange_rate,
            category_id=self.category_id,
            category_name=self.category.name if self.category is not None else None,
            procurement_item_id=self.procurement_item_id,
            active=self.active,
            money_allocations=tuple(a.to_dto() for a in ordered),
            created_at=self.created_at,
            updated_at=self.updated_at,
            version=self.version,
        )


class SpendingAllocationModel(TrackedBase):
    __tablename__ = "spending_money_allocations"

    __table_args__ = (
        UniqueConstraint("spending_item_id", "money_id", name="uq_spending_allocation_money"),
        Index("idx_spending_allocation_money", "money_id"),
    )

    spending_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("spending_items.id", ondelete="CASCADE"), nullable=False
    )
    money_id: Mapped[UUID] = mapped_column(
        ForeignKey("monies.id", ondelete="CASCADE"), nullable=False
    )
    cap_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    om_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    spending_item: Mapped[SpendingItemModel] = relationship(back_populates="allocations")
    money: Mapped[Money] = relationship(Money, lazy="joined")

    def to_dto(self):
        return allocation_view(self.id, self.money, self.cap_amount, self.om_amount)


class SpendingEventModel(TrackedBase):
    __tablename__ = "spending_events"

    __table_args__ = (Index("idx_spending_events_item", "spending_item_id"),)

    spending_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("spending_items.id", ondelete="CASCADE"), nullable=False
    )
    event_type: Mapped[str] = mapped_column(String(50), nullable=False, default="PENDING")
    event_date: Mapped[date] = mapped_column(Date, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    spending_item: Mapped[SpendingItemModel] = relationship(back_populates="events")

    def to_dto(self):
        from myrc_modules.spending.models import SpendingEvent, SpendingEventType

        return SpendingEvent(
            id=self.id,
            spending_item_id=self.spending_item_id,
            event_type=SpendingEventType(self.event_type),
            event_date=self.event_date,
            comment=self.comment,
            created_by=self.created_by,
            created_at=self.created_at,
            version=self.version,
        )


class SpendingInvoiceModel(TrackedBase):
    __tablename__ = "spending_invoices"

    __table_args__ = (Index("idx_spending_invoices_item", "spending_item_id"),)

    spending_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("spending_items.id", ondelete="CASCADE"), nullable=False
    )
    date_received: Mapped[date | None] = mapped_column(Date, nullable=True)
    date_processed: Mapped[date | None] = mapped_column(Date, nullable=True)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="CAD")
    exchange_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    amount_cad: Mapped[Decimal | None] = mapped_column(nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    spending_item: Mapped[SpendingItemModel] = relationship(back_populates="invoices")
    files: Mapped[list["InvoiceFileModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="InvoiceFileModel.created_at",
    )

    def to_dto(self):
        from myrc_modules.spending.models import SpendingInvoice

        return SpendingInvoice(
            id=self.id,
            spending_item_id=self.spending_item_id,
            date_received=self.date_received,
            date_processed=self.date_processed,
            comments=self.comments,
            amount=self.amount,
            currency=self.currency,
            exchange_rate=self.exchange_rate,
            amount_cad=self.amount_cad,
            files=tuple(f.file_info() for f in self.files if f.active),
            created_by=self.created_by,
            created_at=self.created_at,
            version=self.version,
        )


class InvoiceFileModel(AttachmentColumns, TrackedBase):
    __tablename__ = "spending_invoice_files"

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("spending_invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )

    invoice: Mapped[SpendingInvoiceModel] = relationship(back_populates="files")
