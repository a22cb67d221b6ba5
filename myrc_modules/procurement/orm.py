"""
Procurement ORM Models (``myrc_modules.procurement.orm``).

Responsibility
--------------
SQLAlchemy persistence for procurement items, quotes, quote files,
tracking events and event files.

Architecture position
---------------------
**Modules layer** -- persistence.  Spending items reference
``procurement_items.id``; that foreign key is declared on the spending side.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from myrc_kernel.db.base import TrackedBase
from myrc_kernel.models.category import Category
from myrc_modules._attachments import AttachmentColumns


class ProcurementItemModel(TrackedBase):
    __tablename__ = "procurement_items"

    __table_args__ = (
        Index("idx_procurement_items_fy_pr", "fiscal_year_id", "purchase_requisition"),
        Index("idx_procurement_items_category", "category_id"),
    )

    fiscal_year_id: Mapped[UUID] = mapped_column(
        ForeignKey("fiscal_years.id", ondelete="CASCADE"), nullable=False
    )
    # Unique among active items of the fiscal year (checked by the service).
    purchase_requisition: Mapped[str | None] = mapped_column(String(100), nullable=True)
    purchase_order: Mapped[str | None] = mapped_column(String(100), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    vendor: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contract_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    contract_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    contract_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    final_price: Mapped[Decimal | None] = mapped_column(nullable=True)
    final_price_currency: Mapped[str] = mapped_column(String(3), nullable=False, default="CAD")
    final_price_exchange_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    final_price_cad: Mapped[Decimal | None] = mapped_column(nullable=True)
    quoted_price: Mapped[Decimal | None] = mapped_column(nullable=True)
    quoted_price_currency: Mapped[str] = mapped_column(String(3), nullable=False, default="CAD")
    quoted_price_exchange_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    quoted_price_cad: Mapped[Decimal | None] = mapped_column(nullable=True)

    procurement_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    procurement_completed_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    tracking_status: Mapped[str] = mapped_column(String(20), nullable=False, default="ON_TRACK")
    procurement_type: Mapped[str] = mapped_column(
        String(30), nullable=False, default="RC_INITIATED"
    )
    category_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    category: Mapped[Category | None] = relationship(Category, lazy="joined")
    quotes: Mapped[list["QuoteModel"]] = relationship(
        back_populates="procurement_item",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="QuoteModel.created_at",
    )
    events: Mapped[list["ProcurementEventModel"]] = relationship(
        back_populates="procurement_item",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ProcurementEventModel.created_at",
    )

    def to_dto(self, include_quotes: bool = False, linked_spending_item_id: UUID | None = None):
        from myrc_modules.procurement.models import (
            ProcurementItem,
            ProcurementType,
            TrackingStatus,
        )

        quotes = (
            tuple(q.to_dto() for q in self.quotes if q.active) if include_quotes else ()
        )
        return ProcurementItem(
            id=self.id,
            fiscal_year_id=self.fiscal_year_id,
            purchase_requisition=self.purchase_requisition,
            purchase_order=self.purchase_order,
            name=self.name,
            description=self.description,
            vendor=self.vendor,
            contract_number=self.contract_number,
            contract_start_date=self.contract_start_date,
            contract_end_date=self.contract_end_date,
            final_price=self.final_price,
            final_price_currency=self.final_price_currency,
            final_price_exchange_rate=self.final_price_exchange_rate,
            final_price_cad=self.final_price_cad,
            quoted_price=self.quoted_price,
            quoted_price_currency=self.quoted_price_currency,
            quoted_price_exchange_rate=self.quoted_price_exchange_rate,
            quoted_price_cad=self.quoted_price_cad,
            procurement_completed=self.procurement_completed,
            procurement_completed_date=self.procurement_completed_date,
            tracking_status=TrackingStatus(self.tracking_status),
            procurement_type=ProcurementType(self.procurement_type),
            category_id=self.category_id,
            category_name=self.category.name if self.category is not None else None,
            linked_spending_item_id=linked_spending_item_id,
            quotes=quotes,
            created_at=self.created_at,
            updated_at=self.updated_at,
            version=self.version,
        )


class QuoteModel(TrackedBase):
    __tablename__ = "procurement_quotes"

    __table_args__ = (Index("idx_procurement_quotes_item", "procurement_item_id"),)

    procurement_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("procurement_items.id", ondelete="CASCADE"), nullable=False
    )
    vendor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    vendor_contact: Mapped[str | None] = mapped_column(String(255), nullable=True)
    quote_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    amount_cap: Mapped[Decimal | None] = mapped_column(nullable=True)
    amount_om: Mapped[Decimal | None] = mapped_column(nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="CAD")
    exchange_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    amount_cap_cad: Mapped[Decimal | None] = mapped_column(nullable=True)
    amount_om_cad: Mapped[Decimal | None] = mapped_column(nullable=True)
    received_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    selected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    procurement_item: Mapped[ProcurementItemModel] = relationship(back_populates="quotes")
    files: Mapped[list["QuoteFileModel"]] = relationship(
        back_populates="quote",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="QuoteFileModel.created_at",
    )

    def to_dto(self):
        from myrc_modules.procurement.models import ProcurementQuote, QuoteStatus

        return ProcurementQuote(
            id=self.id,
            procurement_item_id=self.procurement_item_id,
            vendor_name=self.vendor_name,
            vendor_contact=self.vendor_contact,
            quote_reference=self.quote_reference,
            amount=self.amount,
            amount_cap=self.amount_cap,
            amount_om=self.amount_om,
            currency=self.currency,
            exchange_rate=self.exchange_rate,
            amount_cap_cad=self.amount_cap_cad,
            amount_om_cad=self.amount_om_cad,
            received_date=self.received_date,
            expiry_date=self.expiry_date,
            notes=self.notes,
            status=QuoteStatus(self.status),
            selected=self.selected,
            files=tuple(f.file_info() for f in self.files if f.active),
            created_at=self.created_at,
            version=self.version,
        )


class QuoteFileModel(AttachmentColumns, TrackedBase):
    __tablename__ = "procurement_quote_files"

    quote_id: Mapped[UUID] = mapped_column(
        ForeignKey("procurement_quotes.id", ondelete="CASCADE"), nullable=False, index=True
    )

    quote: Mapped[QuoteModel] = relationship(back_populates="files")


class ProcurementEventModel(TrackedBase):
    __tablename__ = "procurement_events"

    __table_args__ = (Index("idx_procurement_events_item_date", "procurement_item_id", "event_date"),)

    procurement_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("procurement_items.id", ondelete="CASCADE"), nullable=False
    )
    event_type: Mapped[str] = mapped_column(String(50), nullable=False, default="NOT_STARTED")
    event_date: Mapped[date] = mapped_column(Date, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    old_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    new_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    procurement_item: Mapped[ProcurementItemModel] = relationship(back_populates="events")
    files: Mapped[list["EventFileModel"]] = relationship(
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="EventFileModel.created_at",
    )

    def to_dto(self):
        from myrc_modules.procurement.models import ProcurementEvent, ProcurementEventType

        return ProcurementEvent(
            id=self.id,
            procurement_item_id=self.procurement_item_id,
            event_type=ProcurementEventType(self.event_type),
            event_date=self.event_date,
            comment=self.comment,
            old_status=self.old_status,
            new_status=self.new_status,
            created_by=self.created_by,
            files=tuple(f.file_info() for f in self.files if f.active),
            created_at=self.created_at,
            version=self.version,
        )


class EventFileModel(AttachmentColumns, TrackedBase):
    __tablename__ = "procurement_event_files"

    event_id: Mapped[UUID] = mapped_column(
        ForeignKey("procurement_events.id", ondelete="CASCADE"), nullable=False, index=True
    )

    event: Mapped[ProcurementEventModel] = relationship(back_populates="files")
