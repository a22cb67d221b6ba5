"""
Procurement Module Service (``myrc_modules.procurement.service``).

Responsibility
--------------
Procurement items (purchase requisitions through contract award and
invoicing), vendor quotes with attached files, tracking events with
attached files, and the link that turns a procurement item into a
spending item.

Architecture position
---------------------
**Modules layer** -- two entry points share this module:

* ``ProcurementService``: items, quotes, quote files, spending link.
* ``ProcurementEventService``: tracking events and event files.

The spending link writes ``myrc_modules.spending`` rows directly; the
spending module never imports procurement.

Invariants enforced
-------------------
* A non-empty purchase requisition is unique among the active items of
  the fiscal year.
* CAD equivalents are recomputed with ``to_cad`` whenever a price,
  currency or rate changes.
* At most one active quote of an item is selected; selecting a quote
  rejects the previously selected one.
* A cancelled item cannot be linked to spending.
* Items, quotes, events and files are soft-deleted; deleting an item also
  deactivates its quotes, events and linked spending items.

Failure modes
-------------
* ``ValidationError`` family for malformed requests.
* ``DuplicateNameError`` for a reused purchase requisition.
* ``BusinessRuleError`` for linking a cancelled item.
* ``AttachmentError`` for rejected uploads.
* ``NotFoundError`` for unknown or soft-deleted rows.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from myrc_kernel.domain.currency import parse_currency, to_cad
from myrc_kernel.exceptions import (
    BusinessRuleError,
    DuplicateNameError,
    NotFoundError,
    ValidationError,
)
from myrc_kernel.logging_config import get_logger
from myrc_kernel.models.fiscal_year import FiscalYear
from myrc_kernel.services.base import BaseService
from myrc_kernel.services.permission_service import PermissionService
from myrc_modules._attachments import (
    AttachmentColumns,
    AttachmentPolicy,
    FileContent,
    FileInfo,
    Upload,
    apply_upload,
)
from myrc_modules._common import parse_enum, require_text, resolve_category, upsert_allocations
from myrc_modules.procurement.models import (
    ProcurementEvent,
    ProcurementEventType,
    ProcurementItem,
    ProcurementQuote,
    ProcurementType,
    QuoteStatus,
    SpendingLinkResult,
    TrackingStatus,
)
from myrc_modules.procurement.orm import (
    EventFileModel,
    ProcurementEventModel,
    ProcurementItemModel,
    QuoteFileModel,
    QuoteModel,
)
from myrc_modules.spending.models import SpendingStatus
from myrc_modules.spending.orm import SpendingItemModel
from myrc_modules.spending.service import DUPLICATE_SPENDING_MESSAGE, new_spending_allocation

logger = get_logger("modules.procurement")

DUPLICATE_PR_MESSAGE = "A procurement item with this PR already exists for this fiscal year"
CANCELLED_LINK_MESSAGE = "Cannot link a cancelled procurement item to spending"
MODIFIED_SPENDING_WARNING = (
    "The linked spending item has been modified. Are you sure you want to unlink it?"
)


def _clean(value: str | None) -> str | None:
    """Strip; blank becomes None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def _parse_tracking_status(value: TrackingStatus | str | None) -> TrackingStatus:
    return parse_enum(TrackingStatus, value, "status", TrackingStatus.ON_TRACK, "tracking_status")


def _parse_procurement_type(value: ProcurementType | str | None) -> ProcurementType:
    return parse_enum(
        ProcurementType, value, "procurement type", ProcurementType.RC_INITIATED, "procurement_type"
    )


def _parse_event_type(value: ProcurementEventType | str | None) -> ProcurementEventType:
    return parse_enum(
        ProcurementEventType, value, "event type", ProcurementEventType.NOT_STARTED, "event_type"
    )


class _AttachmentOps:
    """File operations shared by quote files and event files."""

    session: Session
    attachments: AttachmentPolicy

    def _file_in(self, model: type[AttachmentColumns], parent_attr: str, parent_id: UUID, file_id: UUID):
        row = self.session.get(model, file_id)
        if row is None or getattr(row, parent_attr) != parent_id or not row.active:
            raise NotFoundError("File", file_id, "File not found")
        return row

    def _add_file(self, files: list, row: AttachmentColumns, upload: Upload, username: str) -> FileInfo:
        apply_upload(row, upload, self.attachments)
        row.active = True
        row.created_by = username
        files.append(row)
        self.session.flush()
        logger.info(
            "attachment_uploaded",
            extra={
                "file_id": str(row.id),
                "file_name": row.file_name,
                "file_size": row.file_size,
                "content_type": row.content_type,
            },
        )
        return row.file_info()

    def _describe_file(self, row: AttachmentColumns, description: str | None, username: str) -> FileInfo:
        row.description = _clean(description)
        row.updated_by = username
        self.session.flush()
        return row.file_info()

    def _drop_file(self, row: AttachmentColumns, username: str) -> None:
        row.active = False
        row.updated_by = username
        self.session.flush()
        logger.info("attachment_deleted", extra={"file_id": str(row.id)})


class ProcurementService(_AttachmentOps, BaseService[ProcurementItemModel]):
    """Procurement items, quotes and quote files scoped to (rc, fiscal year)."""

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

    def _get_item(self, fy: FiscalYear, item_id: UUID) -> ProcurementItemModel:
        item = self.session.get(ProcurementItemModel, item_id)
        if item is None or item.fiscal_year_id != fy.id or not item.active:
            raise NotFoundError("Procurement item", item_id, "Procurement item not found")
        return item

    def _item_for(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str, write: bool = False
    ) -> ProcurementItemModel:
        return self._get_item(self._fy(rc_id, fiscal_year_id, username, write), item_id)

    def _get_quote(self, item: ProcurementItemModel, quote_id: UUID) -> QuoteModel:
        quote = self.session.get(QuoteModel, quote_id)
        if quote is None or quote.procurement_item_id != item.id or not quote.active:
            raise NotFoundError("Quote", quote_id, "Quote not found")
        return quote

    def _pr_taken(self, fy: FiscalYear, pr: str, exclude_id: UUID | None = None) -> bool:
        stmt = select(ProcurementItemModel.id).where(
            ProcurementItemModel.fiscal_year_id == fy.id,
            ProcurementItemModel.purchase_requisition == pr,
            ProcurementItemModel.active.is_(True),
        )
        if exclude_id is not None:
            stmt = stmt.where(ProcurementItemModel.id != exclude_id)
        return self.session.execute(stmt.limit(1)).first() is not None

    def _linked_spending(self, item: ProcurementItemModel, active: bool = True) -> list[SpendingItemModel]:
        return list(
            self.session.execute(
                select(SpendingItemModel)
                .where(
                    SpendingItemModel.procurement_item_id == item.id,
                    SpendingItemModel.active.is_(active),
                )
                .order_by(SpendingItemModel.updated_at.desc())
            )
            .scalars()
            .unique()
        )

    def _dto(self, item: ProcurementItemModel, include_quotes: bool = False) -> ProcurementItem:
        linked = self._linked_spending(item)
        return item.to_dto(
            include_quotes=include_quotes,
            linked_spending_item_id=linked[0].id if linked else None,
        )

    @staticmethod
    def _reprice(item: ProcurementItemModel) -> None:
        item.final_price_cad = to_cad(
            item.final_price, item.final_price_currency, item.final_price_exchange_rate
        )
        item.quoted_price_cad = to_cad(
            item.quoted_price, item.quoted_price_currency, item.quoted_price_exchange_rate
        )

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def list_items(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        username: str,
        status: TrackingStatus | str | None = None,
    ) -> list[ProcurementItem]:
        """Active items ordered by purchase requisition, optionally by status."""
        fy = self._fy(rc_id, fiscal_year_id, username, write=False)
        stmt = select(ProcurementItemModel).where(
            ProcurementItemModel.fiscal_year_id == fy.id,
            ProcurementItemModel.active.is_(True),
        )
        if status is not None:
            wanted = parse_enum(TrackingStatus, status, "status", field="status")
            stmt = stmt.where(ProcurementItemModel.tracking_status == wanted.value)
        stmt = stmt.order_by(
            ProcurementItemModel.purchase_requisition, ProcurementItemModel.name
        )
        return [self._dto(row) for row in self.session.execute(stmt).scalars().unique()]

    def search(
        self, rc_id: UUID, fiscal_year_id: UUID, username: str, term: str
    ) -> list[ProcurementItem]:
        """Case-insensitive substring match on name, PR or PO."""
        fy = self._fy(rc_id, fiscal_year_id, username, write=False)
        needle = f"%{(term or '').strip().lower()}%"
        stmt = (
            select(ProcurementItemModel)
            .where(
                ProcurementItemModel.fiscal_year_id == fy.id,
                ProcurementItemModel.active.is_(True),
                or_(
                    func.lower(ProcurementItemModel.name).like(needle),
                    func.lower(ProcurementItemModel.purchase_requisition).like(needle),
                    func.lower(ProcurementItemModel.purchase_order).like(needle),
                ),
            )
            .order_by(ProcurementItemModel.purchase_requisition, ProcurementItemModel.name)
        )
        return [self._dto(row) for row in self.session.execute(stmt).scalars().unique()]

    def get(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str
    ) -> ProcurementItem:
        """Item detail including its active quotes."""
        return self._dto(self._item_for(rc_id, fiscal_year_id, item_id, username), include_quotes=True)

    def create(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        username: str,
        *,
        name: str,
        purchase_requisition: str | None = None,
        purchase_order: str | None = None,
        description: str | None = None,
        vendor: str | None = None,
        contract_number: str | None = None,
        contract_start_date: date | None = None,
        contract_end_date: date | None = None,
        final_price: Decimal | None = None,
        final_price_currency: str | None = None,
        final_price_exchange_rate: Decimal | None = None,
        quoted_price: Decimal | None = None,
        quoted_price_currency: str | None = None,
        quoted_price_exchange_rate: Decimal | None = None,
        procurement_completed: bool = False,
        procurement_completed_date: date | None = None,
        tracking_status: TrackingStatus | str | None = None,
        procurement_type: ProcurementType | str | None = None,
        category_id: UUID | None = None,
    ) -> ProcurementItem:
        fy = self._fy(rc_id, fiscal_year_id, username, write=True)
        name = require_text(name, "Name is required", "name")
        pr = _clean(purchase_requisition)
        if pr is not None and self._pr_taken(fy, pr):
            raise DuplicateNameError("procurement item", pr, DUPLICATE_PR_MESSAGE)
        category = resolve_category(self.session, fy, category_id)

        item = ProcurementItemModel(
            fiscal_year_id=fy.id,
            purchase_requisition=pr,
            purchase_order=_clean(purchase_order),
            name=name,
            description=description,
            vendor=_clean(vendor),
            contract_number=_clean(contract_number),
            contract_start_date=contract_start_date,
            contract_end_date=contract_end_date,
            final_price=final_price,
            final_price_currency=parse_currency(final_price_currency).value,
            final_price_exchange_rate=final_price_exchange_rate,
            quoted_price=quoted_price,
            quoted_price_currency=parse_currency(quoted_price_currency).value,
            quoted_price_exchange_rate=quoted_price_exchange_rate,
            procurement_completed=bool(procurement_completed),
            procurement_completed_date=procurement_completed_date,
            tracking_status=_parse_tracking_status(tracking_status).value,
            procurement_type=_parse_procurement_type(procurement_type).value,
            category_id=category.id if category is not None else None,
            active=True,
            created_by=username,
        )
        item.category = category
        if item.procurement_completed and item.procurement_completed_date is None:
            item.procurement_completed_date = date.today()
        self._reprice(item)
        self.session.add(item)
        self._flush(item)

        logger.info(
            "procurement_item_created",
            extra={
                "fiscal_year_id": str(fy.id),
                "item_id": str(item.id),
                "purchase_requisition": pr,
                "tracking_status": item.tracking_status,
            },
        )
        return self._dto(item)

    def update(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        username: str,
        *,
        name: str | None = None,
        purchase_requisition: str | None = None,
        purchase_order: str | None = None,
        description: str | None = None,
        vendor: str | None = None,
        contract_number: str | None = None,
        contract_start_date: date | None = None,
        contract_end_date: date | None = None,
        final_price: Decimal | None = None,
        final_price_currency: str | None = None,
        final_price_exchange_rate: Decimal | None = None,
        quoted_price: Decimal | None = None,
        quoted_price_currency: str | None = None,
        quoted_price_exchange_rate: Decimal | None = None,
        procurement_completed: bool | None = None,
        procurement_completed_date: date | None = None,
        tracking_status: TrackingStatus | str | None = None,
        procurement_type: ProcurementType | str | None = None,
        category_id: UUID | None = None,
        clear_category: bool = False,
        expected_version: int | None = None,
    ) -> ProcurementItem:
        """Patch non-null fields; blank text fields other than name clear the value."""
        fy = self._fy(rc_id, fiscal_year_id, username, write=True)
        item = self._get_item(fy, item_id)
        self._check_version(item, expected_version)

        pr = _clean(purchase_requisition)
        if pr is not None:
            if pr != item.purchase_requisition and self._pr_taken(fy, pr, exclude_id=item.id):
                raise DuplicateNameError("procurement item", pr, DUPLICATE_PR_MESSAGE)
            item.purchase_requisition = pr
        if purchase_order is not None:
            item.purchase_order = _clean(purchase_order)
        if name is not None and name.strip():
            item.name = name.strip()
        if description is not None:
            item.description = description
        if vendor is not None:
            item.vendor = _clean(vendor)
        if contract_number is not None:
            item.contract_number = _clean(contract_number)
        if contract_start_date is not None:
            item.contract_start_date = contract_start_date
        if contract_end_date is not None:
            item.contract_end_date = contract_end_date
        if final_price is not None:
            item.final_price = final_price
        if final_price_currency is not None and final_price_currency.strip():
            item.final_price_currency = parse_currency(final_price_currency).value
        if final_price_exchange_rate is not None:
            item.final_price_exchange_rate = final_price_exchange_rate
        if quoted_price is not None:
            item.quoted_price = quoted_price
        if quoted_price_currency is not None and quoted_price_currency.strip():
            item.quoted_price_currency = parse_currency(quoted_price_currency).value
        if quoted_price_exchange_rate is not None:
            item.quoted_price_exchange_rate = quoted_price_exchange_rate
        if procurement_completed_date is not None:
            item.procurement_completed_date = procurement_completed_date
        if procurement_completed is not None:
            if procurement_completed and not item.procurement_completed:
                item.procurement_completed_date = item.procurement_completed_date or date.today()
            item.procurement_completed = procurement_completed
        if tracking_status is not None:
            item.tracking_status = _parse_tracking_status(tracking_status).value
        if procurement_type is not None:
            item.procurement_type = _parse_procurement_type(procurement_type).value
        if clear_category:
            item.category = None
            item.category_id = None
        elif category_id is not None:
            category = resolve_category(self.session, fy, category_id)
            item.category = category
            item.category_id = category.id
        self._reprice(item)
        item.updated_by = username

        self._flush(item)
        logger.info(
            "procurement_item_updated",
            extra={"item_id": str(item.id), "version": item.version},
        )
        return self._dto(item)

    def update_status(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        username: str,
        status: TrackingStatus | str,
    ) -> ProcurementItem:
        item = self._item_for(rc_id, fiscal_year_id, item_id, username, write=True)
        new_status = parse_enum(TrackingStatus, status, "status", field="status")
        previous = item.tracking_status
        item.tracking_status = new_status.value
        item.updated_by = username
        self._flush(item)
        logger.info(
            "procurement_status_changed",
            extra={"item_id": str(item.id), "from_status": previous, "to_status": new_status.value},
        )
        return self._dto(item)

    def delete(self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str) -> None:
        """Soft-delete the item with its quotes, events and linked spending items."""
        item = self._item_for(rc_id, fiscal_year_id, item_id, username, write=True)
        for quote in item.quotes:
            quote.active = False
        for event in item.events:
            event.active = False
        linked = self._linked_spending(item)
        for spending in linked:
            spending.active = False
            spending.updated_by = username
        item.active = False
        item.updated_by = username
        self._flush(item)
        logger.info(
            "procurement_item_deleted",
            extra={
                "item_id": str(item_id),
                "quotes": len(item.quotes),
                "events": len(item.events),
                "spending_items": len(linked),
            },
        )

    # ------------------------------------------------------------------
    # Quotes
    # ------------------------------------------------------------------

    @staticmethod
    def _reprice_quote(quote: QuoteModel) -> None:
        quote.amount_cap_cad = to_cad(quote.amount_cap, quote.currency, quote.exchange_rate)
        quote.amount_om_cad = to_cad(quote.amount_om, quote.currency, quote.exchange_rate)

    def list_quotes(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str
    ) -> list[ProcurementQuote]:
        item = self._item_for(rc_id, fiscal_year_id, item_id, username)
        return [q.to_dto() for q in item.quotes if q.active]

    def get_quote(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, quote_id: UUID, username: str
    ) -> ProcurementQuote:
        item = self._item_for(rc_id, fiscal_year_id, item_id, username)
        return self._get_quote(item, quote_id).to_dto()

    def create_quote(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        username: str,
        *,
        vendor_name: str,
        vendor_contact: str | None = None,
        quote_reference: str | None = None,
        amount: Decimal | None = None,
        amount_cap: Decimal | None = None,
        amount_om: Decimal | None = None,
        currency: str | None = None,
        exchange_rate: Decimal | None = None,
        received_date: date | None = None,
        expiry_date: date | None = None,
        notes: str | None = None,
    ) -> ProcurementQuote:
        item = self._item_for(rc_id, fiscal_year_id, item_id, username, write=True)
        vendor_name = require_text(vendor_name, "Vendor name is required", "vendor_name")
        quote = QuoteModel(
            vendor_name=vendor_name,
            vendor_contact=vendor_contact,
            quote_reference=quote_reference,
            amount=amount,
            amount_cap=amount_cap,
            amount_om=amount_om,
            currency=parse_currency(currency).value,
            exchange_rate=exchange_rate,
            received_date=received_date,
            expiry_date=expiry_date,
            notes=notes,
            status=QuoteStatus.PENDING.value,
            selected=False,
            active=True,
            created_by=username,
        )
        self._reprice_quote(quote)
        item.quotes.append(quote)
        self._flush(quote)
        logger.info(
            "procurement_quote_created",
            extra={"item_id": str(item.id), "quote_id": str(quote.id), "vendor": vendor_name},
        )
        return quote.to_dto()

    def update_quote(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        quote_id: UUID,
        username: str,
        *,
        vendor_name: str | None = None,
        vendor_contact: str | None = None,
        quote_reference: str | None = None,
        amount: Decimal | None = None,
        amount_cap: Decimal | None = None,
        amount_om: Decimal | None = None,
        currency: str | None = None,
        exchange_rate: Decimal | None = None,
        received_date: date | None = None,
        expiry_date: date | None = None,
        notes: str | None = None,
        status: QuoteStatus | str | None = None,
        expected_version: int | None = None,
    ) -> ProcurementQuote:
        """Patch non-null fields; CAP / OM amounts and the rate are replaced as given."""
        item = self._item_for(rc_id, fiscal_year_id, item_id, username, write=True)
        quote = self._get_quote(item, quote_id)
        self._check_version(quote, expected_version)
        if vendor_name is not None and vendor_name.strip():
            quote.vendor_name = vendor_name.strip()
        if vendor_contact is not None:
            quote.vendor_contact = vendor_contact
        if quote_reference is not None:
            quote.quote_reference = quote_reference
        if amount is not None:
            quote.amount = amount
        quote.amount_cap = amount_cap
        quote.amount_om = amount_om
        quote.exchange_rate = exchange_rate
        if currency is not None and currency.strip():
            quote.currency = parse_currency(currency).value
        if received_date is not None:
            quote.received_date = received_date
        if expiry_date is not None:
            quote.expiry_date = expiry_date
        if notes is not None:
            quote.notes = notes
        if status is not None and str(getattr(status, "value", status)).strip():
            quote.status = parse_enum(QuoteStatus, status, "status", field="status").value
        self._reprice_quote(quote)
        quote.updated_by = username
        self._flush(quote)
        logger.info("procurement_quote_updated", extra={"quote_id": str(quote.id)})
        return quote.to_dto()

    def delete_quote(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, quote_id: UUID, username: str
    ) -> None:
        item = self._item_for(rc_id, fiscal_year_id, item_id, username, write=True)
        quote = self._get_quote(item, quote_id)
        quote.active = False
        quote.selected = False
        quote.updated_by = username
        self._flush(quote)
        logger.info("procurement_quote_deleted", extra={"quote_id": str(quote_id)})

    def select_quote(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, quote_id: UUID, username: str
    ) -> ProcurementQuote:
        item = self._item_for(rc_id, fiscal_year_id, item_id, username, write=True)
        quote = self._get_quote(item, quote_id)
        for other in item.quotes:
            if other.active and other.selected and other.id != quote.id:
                other.selected = False
                other.status = QuoteStatus.REJECTED.value
                other.updated_by = username
        quote.selected = True
        quote.status = QuoteStatus.SELECTED.value
        quote.updated_by = username
        self._flush(quote)
        logger.info(
            "procurement_quote_selected",
            extra={"item_id": str(item.id), "quote_id": str(quote.id)},
        )
        return quote.to_dto()

    # ------------------------------------------------------------------
    # Quote files
    # ------------------------------------------------------------------

    def _quote_for(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        quote_id: UUID,
        username: str,
        write: bool = False,
    ) -> QuoteModel:
        item = self._item_for(rc_id, fiscal_year_id, item_id, username, write=write)
        return self._get_quote(item, quote_id)

    def list_quote_files(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, quote_id: UUID, username: str
    ) -> list[FileInfo]:
        quote = self._quote_for(rc_id, fiscal_year_id, item_id, quote_id, username)
        return [f.file_info() for f in quote.files if f.active]

    def get_quote_file(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        quote_id: UUID,
        file_id: UUID,
        username: str,
    ) -> FileInfo:
        quote = self._quote_for(rc_id, fiscal_year_id, item_id, quote_id, username)
        return self._file_in(QuoteFileModel, "quote_id", quote.id, file_id).file_info()

    def download_quote_file(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        quote_id: UUID,
        file_id: UUID,
        username: str,
    ) -> FileContent:
        quote = self._quote_for(rc_id, fiscal_year_id, item_id, quote_id, username)
        return self._file_in(QuoteFileModel, "quote_id", quote.id, file_id).file_content()

    def upload_quote_file(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        quote_id: UUID,
        username: str,
        upload: Upload,
    ) -> FileInfo:
        quote = self._quote_for(rc_id, fiscal_year_id, item_id, quote_id, username, write=True)
        return self._add_file(quote.files, QuoteFileModel(), upload, username)

    def replace_quote_file(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        quote_id: UUID,
        file_id: UUID,
        username: str,
        upload: Upload,
    ) -> FileInfo:
        quote = self._quote_for(rc_id, fiscal_year_id, item_id, quote_id, username, write=True)
        row = self._file_in(QuoteFileModel, "quote_id", quote.id, file_id)
        apply_upload(row, upload, self.attachments)
        row.updated_by = username
        self._flush(row)
        return row.file_info()

    def update_quote_file_description(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        quote_id: UUID,
        file_id: UUID,
        username: str,
        description: str | None,
    ) -> FileInfo:
        quote = self._quote_for(rc_id, fiscal_year_id, item_id, quote_id, username, write=True)
        row = self._file_in(QuoteFileModel, "quote_id", quote.id, file_id)
        return self._describe_file(row, description, username)

    def delete_quote_file(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        quote_id: UUID,
        file_id: UUID,
        username: str,
    ) -> None:
        quote = self._quote_for(rc_id, fiscal_year_id, item_id, quote_id, username, write=True)
        self._drop_file(self._file_in(QuoteFileModel, "quote_id", quote.id, file_id), username)

    # ------------------------------------------------------------------
    # Spending link
    # ------------------------------------------------------------------

    def toggle_spending_link(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        username: str,
        force: bool = False,
    ) -> SpendingLinkResult:
        """
        Link the item to spending, or unlink it when already linked.

        Linking creates a new PLANNING spending item from the item's current
        name, price and category, replacing any row left by an earlier unlink.
        Unlinking deactivates the spending item; when it was edited after
        creation (``version > 1``) and ``force`` is false, nothing changes and
        a warning is returned instead.
        """
        fy = self._fy(rc_id, fiscal_year_id, username, write=True)
        item = self._get_item(fy, item_id)
        if item.tracking_status == TrackingStatus.CANCELLED.value:
            raise BusinessRuleError(CANCELLED_LINK_MESSAGE)

        linked = self._linked_spending(item)
        if not linked:
            spending = self._link(fy, item, username)
            logger.info(
                "procurement_spending_linked",
                extra={"item_id": str(item.id), "spending_item_id": str(spending.id)},
            )
            return SpendingLinkResult(
                item=self._dto(item), linked=True, spending_item_id=spending.id
            )

        spending = linked[0]
        if spending.version > 1 and not force:
            logger.info(
                "procurement_unlink_needs_confirmation",
                extra={"item_id": str(item.id), "spending_item_id": str(spending.id)},
            )
            return SpendingLinkResult(
                item=self._dto(item),
                linked=True,
                warning=MODIFIED_SPENDING_WARNING,
                spending_item_id=spending.id,
            )
        spending.active = False
        spending.updated_by = username
        self._flush(spending)
        logger.info(
            "procurement_spending_unlinked",
            extra={"item_id": str(item.id), "spending_item_id": str(spending.id), "forced": force},
        )
        return SpendingLinkResult(item=self._dto(item), linked=False, spending_item_id=spending.id)

    def _link(
        self, fy: FiscalYear, item: ProcurementItemModel, username: str
    ) -> SpendingItemModel:
        category = item.category or (fy.categories[0] if fy.categories else None)
        amount = item.final_price if item.final_price is not None else item.quoted_price
        currency = item.final_price_currency or "CAD"
        rate = item.final_price_exchange_rate if item.final_price is not None else None

        # Rows left behind by an earlier unlink still hold the item's name.
        for stale in self._linked_spending(item, active=False):
            self.session.delete(stale)
        self.session.flush()

        taken = self.session.execute(
            select(SpendingItemModel.id)
            .where(
                SpendingItemModel.fiscal_year_id == fy.id,
                SpendingItemModel.name == item.name,
            )
            .limit(1)
        ).first()
        if taken is not None:
            raise DuplicateNameError("spending item", item.name, DUPLICATE_SPENDING_MESSAGE)
        spending = SpendingItemModel(
            fiscal_year_id=fy.id,
            name=item.name,
            description=item.description,
            vendor=item.vendor,
            reference_number=item.purchase_order,
            amount=amount,
            status=SpendingStatus.PLANNING.value,
            currency=currency,
            exchange_rate=rate if currency != "CAD" else None,
            category_id=category.id if category is not None else None,
            procurement_item_id=item.id,
            active=True,
            created_by=username,
        )
        spending.category = category
        upsert_allocations(fy, spending.allocations, None, new_spending_allocation)
        self.session.add(spending)
        self._flush(spending)
        return spending


class ProcurementEventService(_AttachmentOps, BaseService[ProcurementEventModel]):
    """Tracking events and event files of procurement items."""

    def __init__(
        self,
        session: Session,
        permissions: PermissionService | None = None,
        attachments: AttachmentPolicy | None = None,
    ):
        super().__init__(session)
        self.permissions = permissions or PermissionService(session)
        self.attachments = attachments or AttachmentPolicy.with_defaults()

    def _item_for(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str, write: bool = False
    ) -> ProcurementItemModel:
        fy = self.permissions.require_fiscal_year(
            rc_id, fiscal_year_id, username, "WRITE" if write else "READ"
        )
        item = self.session.get(ProcurementItemModel, item_id)
        if item is None or item.fiscal_year_id != fy.id or not item.active:
            raise NotFoundError("Procurement item", item_id, "Procurement item not found")
        return item

    def _get_event(self, item: ProcurementItemModel, event_id: UUID) -> ProcurementEventModel:
        event = self.session.get(ProcurementEventModel, event_id)
        if event is None or event.procurement_item_id != item.id or not event.active:
            raise NotFoundError("Procurement event", event_id, "Event not found")
        return event

    def _event_for(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        event_id: UUID,
        username: str,
        write: bool = False,
    ) -> ProcurementEventModel:
        return self._get_event(
            self._item_for(rc_id, fiscal_year_id, item_id, username, write=write), event_id
        )

    def _query(self, item: ProcurementItemModel):
        return (
            select(ProcurementEventModel)
            .where(
                ProcurementEventModel.procurement_item_id == item.id,
                ProcurementEventModel.active.is_(True),
            )
            .order_by(ProcurementEventModel.event_date.desc(), ProcurementEventModel.created_at.desc())
        )

    def _apply_status(self, item: ProcurementItemModel, event: ProcurementEventModel) -> None:
        """A ``new_status`` naming a tracking status moves the item to it."""
        if not event.new_status:
            return
        try:
            status = TrackingStatus(event.new_status.strip().upper())
        except ValueError:
            return
        if event.old_status is None:
            event.old_status = item.tracking_status
        event.new_status = status.value
        item.tracking_status = status.value

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def list_events(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str
    ) -> list[ProcurementEvent]:
        """Active events, newest event date first."""
        item = self._item_for(rc_id, fiscal_year_id, item_id, username)
        return [e.to_dto() for e in self.session.execute(self._query(item)).scalars()]

    def get_event(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, event_id: UUID, username: str
    ) -> ProcurementEvent:
        return self._event_for(rc_id, fiscal_year_id, item_id, event_id, username).to_dto()

    def count_events(self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str) -> int:
        item = self._item_for(rc_id, fiscal_year_id, item_id, username)
        return self.session.execute(
            select(func.count(ProcurementEventModel.id)).where(
                ProcurementEventModel.procurement_item_id == item.id,
                ProcurementEventModel.active.is_(True),
            )
        ).scalar_one()

    def latest_event(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str
    ) -> ProcurementEvent | None:
        item = self._item_for(rc_id, fiscal_year_id, item_id, username)
        row = self.session.execute(self._query(item).limit(1)).scalars().first()
        return row.to_dto() if row is not None else None

    def events_by_type(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        username: str,
        event_type: ProcurementEventType | str,
    ) -> list[ProcurementEvent]:
        item = self._item_for(rc_id, fiscal_year_id, item_id, username)
        wanted = parse_enum(ProcurementEventType, event_type, "event type", field="event_type")
        stmt = self._query(item).where(ProcurementEventModel.event_type == wanted.value)
        return [e.to_dto() for e in self.session.execute(stmt).scalars()]

    def events_between(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        username: str,
        start_date: date | None,
        end_date: date | None,
    ) -> list[ProcurementEvent]:
        """Active events with ``start_date <= event_date <= end_date``."""
        if start_date is None or end_date is None:
            raise ValidationError("Start date and end date are required", field="start_date")
        if start_date > end_date:
            raise ValidationError(
                "Start date must be before or equal to end date", field="start_date"
            )
        item = self._item_for(rc_id, fiscal_year_id, item_id, username)
        stmt = self._query(item).where(
            ProcurementEventModel.event_date >= start_date,
            ProcurementEventModel.event_date <= end_date,
        )
        return [e.to_dto() for e in self.session.execute(stmt).scalars()]

    def create_event(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        username: str,
        *,
        event_type: ProcurementEventType | str | None = None,
        event_date: date | None = None,
        comment: str | None = None,
        old_status: str | None = None,
        new_status: str | None = None,
    ) -> ProcurementEvent:
        item = self._item_for(rc_id, fiscal_year_id, item_id, username, write=True)
        event = ProcurementEventModel(
            event_type=_parse_event_type(event_type).value,
            event_date=event_date or date.today(),
            comment=comment,
            old_status=old_status,
            new_status=new_status,
            active=True,
            created_by=username,
        )
        self._apply_status(item, event)
        item.events.append(event)
        self._flush(event)
        logger.info(
            "procurement_event_created",
            extra={
                "item_id": str(item.id),
                "event_id": str(event.id),
                "event_type": event.event_type,
                "new_status": event.new_status,
            },
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
        event_type: ProcurementEventType | str | None = None,
        event_date: date | None = None,
        comment: str | None = None,
        old_status: str | None = None,
        new_status: str | None = None,
    ) -> ProcurementEvent:
        item = self._item_for(rc_id, fiscal_year_id, item_id, username, write=True)
        event = self._get_event(item, event_id)
        if event_type is not None and str(getattr(event_type, "value", event_type)).strip():
            event.event_type = _parse_event_type(event_type).value
        if event_date is not None:
            event.event_date = event_date
        if comment is not None:
            event.comment = comment
        if old_status is not None:
            event.old_status = old_status
        if new_status is not None and new_status != event.new_status:
            event.new_status = new_status
            self._apply_status(item, event)
        event.updated_by = username
        self._flush(event)
        logger.info("procurement_event_updated", extra={"event_id": str(event.id)})
        return event.to_dto()

    def delete_event(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, event_id: UUID, username: str
    ) -> None:
        event = self._event_for(rc_id, fiscal_year_id, item_id, event_id, username, write=True)
        event.active = False
        event.updated_by = username
        self._flush(event)
        logger.info("procurement_event_deleted", extra={"event_id": str(event_id)})

    # ------------------------------------------------------------------
    # Event files
    # ------------------------------------------------------------------

    def list_event_files(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, event_id: UUID, username: str
    ) -> list[FileInfo]:
        event = self._event_for(rc_id, fiscal_year_id, item_id, event_id, username)
        return [f.file_info() for f in event.files if f.active]

    def get_event_file(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        event_id: UUID,
        file_id: UUID,
        username: str,
    ) -> FileInfo:
        event = self._event_for(rc_id, fiscal_year_id, item_id, event_id, username)
        return self._file_in(EventFileModel, "event_id", event.id, file_id).file_info()

    def download_event_file(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        event_id: UUID,
        file_id: UUID,
        username: str,
    ) -> FileContent:
        event = self._event_for(rc_id, fiscal_year_id, item_id, event_id, username)
        return self._file_in(EventFileModel, "event_id", event.id, file_id).file_content()

    def upload_event_file(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        event_id: UUID,
        username: str,
        upload: Upload,
    ) -> FileInfo:
        event = self._event_for(rc_id, fiscal_year_id, item_id, event_id, username, write=True)
        return self._add_file(event.files, EventFileModel(), upload, username)

    def update_event_file_description(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        event_id: UUID,
        file_id: UUID,
        username: str,
        description: str | None,
    ) -> FileInfo:
        event = self._event_for(rc_id, fiscal_year_id, item_id, event_id, username, write=True)
        row = self._file_in(EventFileModel, "event_id", event.id, file_id)
        return self._describe_file(row, description, username)

    def delete_event_file(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        event_id: UUID,
        file_id: UUID,
        username: str,
    ) -> None:
        event = self._event_for(rc_id, fiscal_year_id, item_id, event_id, username, write=True)
        self._drop_file(self._file_in(EventFileModel, "event_id", event.id, file_id), username)
