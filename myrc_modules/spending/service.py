"""
Spending Module Service (``myrc_modules.spending.service``).

Responsibility
--------------
Spending items of a fiscal year with their per-money allocations, the
tracking events of items handled outside procurement, and the invoices
(with attached files) received against each item.

Architecture position
---------------------
**Modules layer** -- ``SpendingService`` is the sole public entry point for
spending operations.  Authorization and the inactive fiscal-year guard go
through ``PermissionService.require_fiscal_year``; upload limits come from
an injected ``AttachmentPolicy``.

Invariants enforced
-------------------
* Name is required and unique within the fiscal year; a category of the
  same fiscal year is required on create.
* Every item carries exactly one allocation per money of its fiscal year,
  and at least one allocation is above zero.
* Items linked to a procurement item take no tracking events of their own.
* Events, invoices and invoice files are soft-deleted (``active = False``).
* ``amount_cad`` of an invoice is always ``to_cad(amount, currency, rate)``.

Failure modes
-------------
* ``ValidationError`` family for malformed requests (status, event type,
  currency, allocations, missing fields).
* ``DuplicateNameError`` for a reused name.
* ``BusinessRuleError`` for events on procurement-linked items.
* ``AttachmentError`` for rejected uploads.
* ``NotFoundError`` for unknown or soft-deleted rows.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from myrc_kernel.domain.currency import parse_currency, resolve_currency, to_cad
from myrc_kernel.exceptions import (
    BusinessRuleError,
    DuplicateNameError,
    NotFoundError,
    ValidationError,
)
from myrc_kernel.logging_config import get_logger
from myrc_kernel.models.fiscal_year import FiscalYear
from myrc_kernel.models.money import Money
from myrc_kernel.services.base import BaseService
from myrc_kernel.services.permission_service import PermissionService
from myrc_modules._attachments import (
    AttachmentPolicy,
    FileContent,
    FileInfo,
    Upload,
    apply_upload,
)
from myrc_modules._common import (
    ZERO,
    AllocationInput,
    apply_currency_update,
    MoneyAllocation,
    check_allocation_monies,
    has_positive_allocation,
    parse_enum,
    require_text,
    resolve_category,
    upsert_allocations,
)
from myrc_modules.spending.models import (
    SpendingEvent,
    SpendingEventType,
    SpendingInvoice,
    SpendingItem,
    SpendingStatus,
)
from myrc_modules.spending.orm import (
    InvoiceFileModel,
    SpendingAllocationModel,
    SpendingEventModel,
    SpendingInvoiceModel,
    SpendingItemModel,
)

logger = get_logger("modules.spending")

DUPLICATE_SPENDING_MESSAGE = "A Spending Item with this name already exists for this Fiscal Year"
ALLOCATION_REQUIRED_MESSAGE = (
    "At least one money type must have a CAP or OM amount greater than $0.00"
)
PROCUREMENT_LINKED_MESSAGE = (
    "Cannot create tracking events for spending items linked to procurement. "
    "Use the linked procurement item's tracking events instead."
)


def new_spending_allocation(money: Money) -> SpendingAllocationModel:
    return SpendingAllocationModel(money_id=money.id, money=money)


def parse_status(value: SpendingStatus | str | None) -> SpendingStatus:
    return parse_enum(SpendingStatus, value, "status", SpendingStatus.PLANNING, "status")


def parse_event_type(value: SpendingEventType | str | None) -> SpendingEventType:
    return parse_enum(
        SpendingEventType, value, "event type", SpendingEventType.PENDING, "event_type"
    )


class SpendingAllocationHook:
    """``MoneyAllocationHook`` over spending allocations."""

    def __init__(self, session: Session):
        self.session = session

    def money_in_use(self, money_id: UUID) -> bool:
        row = self.session.execute(
            select(SpendingAllocationModel.id)
            .where(SpendingAllocationModel.money_id == money_id)
            .where(
                or_(
                    SpendingAllocationModel.cap_amount != ZERO,
                    SpendingAllocationModel.om_amount != ZERO,
                )
            )
            .limit(1)
        ).first()
        return row is not None

    def money_added(self, fiscal_year_id: UUID, money_id: UUID) -> None:
        money = self.session.get(Money, money_id)
        items = self.session.execute(
            select(SpendingItemModel).where(SpendingItemModel.fiscal_year_id == fiscal_year_id)
        ).scalars()
        added = 0
        for item in items:
            if all(a.money_id != money_id for a in item.allocations):
                item.allocations.append(new_spending_allocation(money))
                added += 1
        logger.debug(
            "spending_allocations_backfilled",
            extra={"money_id": str(money_id), "count": added},
        )


class SpendingService(BaseService[SpendingItemModel]):
    """
    Spending items, events and invoices scoped to (rc, fiscal year).

    Contract:
        Reads require RC read access; every mutation requires write access
        on an active fiscal year.
    """

    def __init__(
        self,
        session: Session,
        permissions: PermissionService | None = None,
        attachments: AttachmentPolicy | None = None,
    ):
        super().__init__(session)
        self.permissions = permissions or PermissionService(session)
        self.attachments = attachments or AttachmentPolicy.with_defaults()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _fy(self, rc_id: UUID, fiscal_year_id: UUID, username: str, write: bool) -> FiscalYear:
        return self.permissions.require_fiscal_year(
            rc_id, fiscal_year_id, username, "WRITE" if write else "READ"
        )

    def _get_item(self, fy: FiscalYear, item_id: UUID) -> SpendingItemModel:
        item = self.session.get(SpendingItemModel, item_id)
        if item is None or item.fiscal_year_id != fy.id or not item.active:
            raise NotFoundError("Spending item", item_id, "Spending item not found")
        return item

    def _get_event(self, item: SpendingItemModel, event_id: UUID) -> SpendingEventModel:
        event = self.session.get(SpendingEventModel, event_id)
        if event is None or event.spending_item_id != item.id or not event.active:
            raise NotFoundError("Spending event", event_id, "Event not found")
        return event

    def _get_invoice(self, item: SpendingItemModel, invoice_id: UUID) -> SpendingInvoiceModel:
        invoice = self.session.get(SpendingInvoiceModel, invoice_id)
        if invoice is None or invoice.spending_item_id != item.id or not invoice.active:
            raise NotFoundError("Invoice", invoice_id, f"Invoice not found: {invoice_id}")
        return invoice

    def _get_file(self, invoice: SpendingInvoiceModel, file_id: UUID) -> InvoiceFileModel:
        row = self.session.get(InvoiceFileModel, file_id)
        if row is None or row.invoice_id != invoice.id or not row.active:
            raise NotFoundError("File", file_id, f"File not found: {file_id}")
        return row

    def _name_taken(self, fy: FiscalYear, name: str, exclude_id: UUID | None = None) -> bool:
        stmt = select(SpendingItemModel.id).where(
            SpendingItemModel.fiscal_year_id == fy.id, SpendingItemModel.name == name
        )
        if exclude_id is not None:
            stmt = stmt.where(SpendingItemModel.id != exclude_id)
        return self.session.execute(stmt.limit(1)).first() is not None

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def list_items(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        username: str,
        category_id: UUID | None = None,
    ) -> list[SpendingItem]:
        fy = self._fy(rc_id, fiscal_year_id, username, write=False)
        stmt = select(SpendingItemModel).where(
            SpendingItemModel.fiscal_year_id == fy.id, SpendingItemModel.active.is_(True)
        )
        if category_id is not None:
            stmt = stmt.where(SpendingItemModel.category_id == category_id)
        rows = self.session.execute(stmt.order_by(SpendingItemModel.name)).scalars().unique()
        return [row.to_dto() for row in rows]

    def get(self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str) -> SpendingItem:
        fy = self._fy(rc_id, fiscal_year_id, username, write=False)
        return self._get_item(fy, item_id).to_dto()

    def create(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        username: str,
        *,
        name: str,
        category_id: UUID | None,
        description: str | None = None,
        vendor: str | None = None,
        reference_number: str | None = None,
        amount: Decimal | None = None,
        eco_amount: Decimal | None = None,
        status: SpendingStatus | str | None = None,
        currency: str | None = None,
        exchange_rate: Decimal | None = None,
        allocations: Sequence[AllocationInput] | None = None,
    ) -> SpendingItem:
        fy = self._fy(rc_id, fiscal_year_id, username, write=True)
        name = require_text(name, "Name is required", "name")
        if category_id is None:
            raise ValidationError("Category ID is required", field="category_id")
        if self._name_taken(fy, name):
            raise DuplicateNameError("spending item", name, DUPLICATE_SPENDING_MESSAGE)
        category = resolve_category(self.session, fy, category_id)
        item_status = parse_status(status)
        resolved_currency, rate = resolve_currency(currency, exchange_rate)
        check_allocation_monies(fy, allocations)
        if not has_positive_allocation(allocations):
            raise ValidationError(ALLOCATION_REQUIRED_MESSAGE, field="money_allocations")

        item = SpendingItemModel(
            fiscal_year_id=fy.id,
            name=name,
            description=description,
            vendor=vendor,
            reference_number=reference_number,
            amount=amount,
            eco_amount=eco_amount,
            status=item_status.value,
            currency=resolved_currency.value,
            exchange_rate=rate,
            category_id=category.id,
            active=True,
            created_by=username,
        )
        item.category = category
        upsert_allocations(fy, item.allocations, allocations, new_spending_allocation)
        self.session.add(item)
        self._flush(item)

        logger.info(
            "spending_item_created",
            extra={
                "fiscal_year_id": str(fy.id),
                "item_id": str(item.id),
                "item_name": name,
                "status": item.status,
            },
        )
        return item.to_dto()

    def update(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        username: str,
        *,
        name: str | None = None,
        description: str | None = None,
        vendor: str | None = None,
        reference_number: str | None = None,
        amount: Decimal | None = None,
        eco_amount: Decimal | None = None,
        status: SpendingStatus | str | None = None,
        currency: str | None = None,
        exchange_rate: Decimal | None = None,
        category_id: UUID | None = None,
        allocations: Sequence[AllocationInput] | None = None,
        expected_version: int | None = None,
    ) -> SpendingItem:
        fy = self._fy(rc_id, fiscal_year_id, username, write=True)
        item = self._get_item(fy, item_id)
        self._check_version(item, expected_version)

        if name is not None:
            name = require_text(name, "Name is required", "name")
            if name != item.name and self._name_taken(fy, name, exclude_id=item.id):
                raise DuplicateNameError("spending item", name, DUPLICATE_SPENDING_MESSAGE)
            item.name = name
        if description is not None:
            item.description = description
        if vendor is not None:
            item.vendor = vendor
        if reference_number is not None:
            item.reference_number = reference_number
        if amount is not None:
            item.amount = amount
        if eco_amount is not None:
            item.eco_amount = eco_amount
        if status is not None:
            item.status = parse_status(status).value
        apply_currency_update(item, currency, exchange_rate)
        if category_id is not None:
            category = resolve_category(self.session, fy, category_id)
            item.category = category
            item.category_id = category.id
        if allocations is not None:
            self._apply_allocations(fy, item, allocations)
        item.updated_by = username

        self._flush(item)
        logger.info(
            "spending_item_updated",
            extra={"item_id": str(item.id), "item_name": item.name, "version": item.version},
        )
        return item.to_dto()

    def delete(self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str) -> None:
        fy = self._fy(rc_id, fiscal_year_id, username, write=True)
        item = self._get_item(fy, item_id)
        self.session.delete(item)
        self._flush()
        logger.info(
            "spending_item_deleted",
            extra={"fiscal_year_id": str(fy.id), "item_id": str(item_id), "item_name": item.name},
        )

    def update_status(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        username: str,
        status: SpendingStatus | str,
    ) -> SpendingItem:
        fy = self._fy(rc_id, fiscal_year_id, username, write=True)
        item = self._get_item(fy, item_id)
        new_status = parse_enum(SpendingStatus, status, "status", field="status")
        previous = item.status
        item.status = new_status.value
        item.updated_by = username
        self._flush(item)
        logger.info(
            "spending_status_changed",
            extra={"item_id": str(item.id), "from_status": previous, "to_status": item.status},
        )
        return item.to_dto()

    # ------------------------------------------------------------------
    # Allocations
    # ------------------------------------------------------------------

    def _apply_allocations(
        self, fy: FiscalYear, item: SpendingItemModel, allocations: Sequence[AllocationInput]
    ) -> None:
        check_allocation_monies(fy, allocations)
        if not has_positive_allocation(allocations, item.allocations):
            raise ValidationError(ALLOCATION_REQUIRED_MESSAGE, field="money_allocations")
        upsert_allocations(fy, item.allocations, allocations, new_spending_allocation)

    def get_allocations(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str
    ) -> list[MoneyAllocation]:
        return list(self.get(rc_id, fiscal_year_id, item_id, username).money_allocations)

    def update_allocations(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        username: str,
        allocations: Sequence[AllocationInput],
    ) -> SpendingItem:
        fy = self._fy(rc_id, fiscal_year_id, username, write=True)
        item = self._get_item(fy, item_id)
        self._apply_allocations(fy, item, allocations)
        item.updated_by = username
        self._flush(item)
        logger.info("spending_allocations_updated", extra={"item_id": str(item.id)})
        return item.to_dto()

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _active_events(self, item: SpendingItemModel) -> list[SpendingEventModel]:
        return list(
            self.session.execute(
                select(SpendingEventModel)
                .where(
                    SpendingEventModel.spending_item_id == item.id,
                    SpendingEventModel.active.is_(True),
                )
                .order_by(SpendingEventModel.event_date.desc(), SpendingEventModel.created_at.desc())
            ).scalars()
        )

    def list_events(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str
    ) -> list[SpendingEvent]:
        """Active events, newest event date first."""
        fy = self._fy(rc_id, fiscal_year_id, username, write=False)
        item = self._get_item(fy, item_id)
        return [e.to_dto() for e in self._active_events(item)]

    def get_event(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, event_id: UUID, username: str
    ) -> SpendingEvent:
        fy = self._fy(rc_id, fiscal_year_id, username, write=False)
        return self._get_event(self._get_item(fy, item_id), event_id).to_dto()

    def count_events(self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str) -> int:
        fy = self._fy(rc_id, fiscal_year_id, username, write=False)
        item = self._get_item(fy, item_id)
        return self.session.execute(
            select(func.count(SpendingEventModel.id)).where(
                SpendingEventModel.spending_item_id == item.id,
                SpendingEventModel.active.is_(True),
            )
        ).scalar_one()

    def latest_event(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str
    ) -> SpendingEvent | None:
        events = self.list_events(rc_id, fiscal_year_id, item_id, username)
        return events[0] if events else None

    def create_event(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        username: str,
        *,
        event_type: SpendingEventType | str | None = None,
        event_date: date | None = None,
        comment: str | None = None,
    ) -> SpendingEvent:
        fy = self._fy(rc_id, fiscal_year_id, username, write=True)
        item = self._get_item(fy, item_id)
        if item.procurement_item_id is not None:
            raise BusinessRuleError(PROCUREMENT_LINKED_MESSAGE)
        event = SpendingEventModel(
            event_type=parse_event_type(event_type).value,
            event_date=event_date or date.today(),
            comment=comment,
            active=True,
            created_by=username,
        )
        item.events.append(event)
        self._flush(event)
        logger.info(
            "spending_event_created",
            extra={"item_id": str(item.id), "event_id": str(event.id), "event_type": event.event_type},
        )
        return event.to_dto()

    def update_event(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        event_id: UUID,
        username: str,
        *,
        event_type: SpendingEventType | str | None = None,
        event_date: date | None = None,
        comment: str | None = None,
    ) -> SpendingEvent:
        fy = self._fy(rc_id, fiscal_year_id, username, write=True)
        event = self._get_event(self._get_item(fy, item_id), event_id)
        if event_type is not None and str(getattr(event_type, "value", event_type)).strip():
            event.event_type = parse_event_type(event_type).value
        if event_date is not None:
            event.event_date = event_date
        if comment is not None:
            event.comment = comment
        event.updated_by = username
        self._flush(event)
        logger.info("spending_event_updated", extra={"event_id": str(event.id)})
        return event.to_dto()

    def delete_event(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, event_id: UUID, username: str
    ) -> None:
        fy = self._fy(rc_id, fiscal_year_id, username, write=True)
        event = self._get_event(self._get_item(fy, item_id), event_id)
        event.active = False
        event.updated_by = username
        self._flush(event)
        logger.info("spending_event_deleted", extra={"event_id": str(event_id)})

    # ------------------------------------------------------------------
    # Invoices
    # ------------------------------------------------------------------

    def list_invoices(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str
    ) -> list[SpendingInvoice]:
        fy = self._fy(rc_id, fiscal_year_id, username, write=False)
        item = self._get_item(fy, item_id)
        return [inv.to_dto() for inv in item.invoices if inv.active]

    def get_invoice(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, invoice_id: UUID, username: str
    ) -> SpendingInvoice:
        fy = self._fy(rc_id, fiscal_year_id, username, write=False)
        return self._get_invoice(self._get_item(fy, item_id), invoice_id).to_dto()

    def create_invoice(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        username: str,
        *,
        amount: Decimal | None,
        currency: str | None = None,
        exchange_rate: Decimal | None = None,
        date_received: date | None = None,
        date_processed: date | None = None,
        comments: str | None = None,
    ) -> SpendingInvoice:
        fy = self._fy(rc_id, fiscal_year_id, username, write=True)
        item = self._get_item(fy, item_id)
        if amount is None:
            raise ValidationError("Invoice amount is required", field="amount")
        invoice_currency = parse_currency(currency)
        invoice = SpendingInvoiceModel(
            amount=Decimal(amount),
            currency=invoice_currency.value,
            exchange_rate=exchange_rate,
            amount_cad=to_cad(Decimal(amount), invoice_currency, exchange_rate),
            date_received=date_received,
            date_processed=date_processed,
            comments=comments,
            active=True,
            created_by=username,
        )
        item.invoices.append(invoice)
        self._flush(invoice)
        logger.info(
            "spending_invoice_created",
            extra={
                "item_id": str(item.id),
                "invoice_id": str(invoice.id),
                "amount_cad": str(invoice.amount_cad) if invoice.amount_cad is not None else None,
            },
        )
        return invoice.to_dto()

    def update_invoice(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        invoice_id: UUID,
        username: str,
        *,
        amount: Decimal | None = None,
        currency: str | None = None,
        exchange_rate: Decimal | None = None,
        date_received: date | None = None,
        date_processed: date | None = None,
        comments: str | None = None,
        expected_version: int | None = None,
    ) -> SpendingInvoice:
        """Dates, comments and rate are replaced as given; amount and currency patch."""
        fy = self._fy(rc_id, fiscal_year_id, username, write=True)
        invoice = self._get_invoice(self._get_item(fy, item_id), invoice_id)
        self._check_version(invoice, expected_version)
        if amount is not None:
            invoice.amount = Decimal(amount)
        if currency is not None:
            invoice.currency = parse_currency(currency).value
        invoice.exchange_rate = exchange_rate
        invoice.date_received = date_received
        invoice.date_processed = date_processed
        invoice.comments = comments
        invoice.amount_cad = to_cad(invoice.amount, invoice.currency, invoice.exchange_rate)
        invoice.updated_by = username
        self._flush(invoice)
        logger.info("spending_invoice_updated", extra={"invoice_id": str(invoice.id)})
        return invoice.to_dto()

    def delete_invoice(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, invoice_id: UUID, username: str
    ) -> None:
        fy = self._fy(rc_id, fiscal_year_id, username, write=True)
        invoice = self._get_invoice(self._get_item(fy, item_id), invoice_id)
        invoice.active = False
        invoice.updated_by = username
        self._flush(invoice)
        logger.info("spending_invoice_deleted", extra={"invoice_id": str(invoice_id)})

    # ------------------------------------------------------------------
    # Invoice files
    # ------------------------------------------------------------------

    def _invoice_for(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        invoice_id: UUID,
        username: str,
        write: bool,
    ) -> SpendingInvoiceModel:
        fy = self._fy(rc_id, fiscal_year_id, username, write=write)
        return self._get_invoice(self._get_item(fy, item_id), invoice_id)

    def list_invoice_files(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, invoice_id: UUID, username: str
    ) -> list[FileInfo]:
        invoice = self._invoice_for(rc_id, fiscal_year_id, item_id, invoice_id, username, False)
        return [f.file_info() for f in invoice.files if f.active]

    def get_invoice_file(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        invoice_id: UUID,
        file_id: UUID,
        username: str,
    ) -> FileInfo:
        invoice = self._invoice_for(rc_id, fiscal_year_id, item_id, invoice_id, username, False)
        return self._get_file(invoice, file_id).file_info()

    def download_invoice_file(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        invoice_id: UUID,
        file_id: UUID,
        username: str,
    ) -> FileContent:
        invoice = self._invoice_for(rc_id, fiscal_year_id, item_id, invoice_id, username, False)
        return self._get_file(invoice, file_id).file_content()

    def upload_invoice_file(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        invoice_id: UUID,
        username: str,
        upload: Upload,
    ) -> FileInfo:
        invoice = self._invoice_for(rc_id, fiscal_year_id, item_id, invoice_id, username, True)
        row = InvoiceFileModel(active=True, created_by=username)
        apply_upload(row, upload, self.attachments)
        invoice.files.append(row)
        self._flush(row)
        logger.info(
            "invoice_file_uploaded",
            extra={
                "invoice_id": str(invoice.id),
                "file_id": str(row.id),
                "file_name": row.file_name,
                "file_size": row.file_size,
            },
        )
        return row.file_info()

    def replace_invoice_file(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        invoice_id: UUID,
        file_id: UUID,
        username: str,
        upload: Upload,
    ) -> FileInfo:
        invoice = self._invoice_for(rc_id, fiscal_year_id, item_id, invoice_id, username, True)
        row = self._get_file(invoice, file_id)
        apply_upload(row, upload, self.attachments)
        row.updated_by = username
        self._flush(row)
        logger.info("invoice_file_replaced", extra={"file_id": str(row.id), "file_name": row.file_name})
        return row.file_info()

    def update_invoice_file_description(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        invoice_id: UUID,
        file_id: UUID,
        username: str,
        description: str | None,
    ) -> FileInfo:
        invoice = self._invoice_for(rc_id, fiscal_year_id, item_id, invoice_id, username, True)
        row = self._get_file(invoice, file_id)
        row.description = description.strip() if description and description.strip() else None
        row.updated_by = username
        self._flush(row)
        return row.file_info()

    def delete_invoice_file(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        invoice_id: UUID,
        file_id: UUID,
        username: str,
    ) -> None:
        invoice = self._invoice_for(rc_id, fiscal_year_id, item_id, invoice_id, username, True)
        row = self._get_file(invoice, file_id)
        row.active = False
        row.updated_by = username
        self._flush(row)
        logger.info("invoice_file_deleted", extra={"file_id": str(file_id)})
