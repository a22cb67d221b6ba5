"""
myrc_services.export_import -- Fiscal-year export to, and import from, JSON documents.

Responsibility:
    ``export`` serialises the funding, spending and procurement items of a
    fiscal year (with invoices, quotes, events and base64-encoded files)
    into a JSON-serialisable dict.  ``import_`` recreates those items in
    another fiscal year, mapping categories by name and monies by code.

Architecture position:
    Services -- cross-module orchestration over module ORM models.

Invariants enforced:
    - Imported rows start at version 1 and are created by the importer.
    - An item that fails validation (missing name, duplicate name or PR,
      unknown currency, missing exchange rate, no positive funding
      allocation, malformed value) or whose insert violates a database
      constraint is skipped and logged; each item is written under its own
      savepoint, so the rest of the document is still imported.
    - A spending item exported with a procurement link is re-linked to the
      imported copy of that procurement item, or left unlinked.

Failure modes:
    - ValidationError: not an export document, or an unsupported
      ``export_version``.
    - AccessDeniedError / FiscalYearInactiveError from the permission check.

Document layout::

    {
      "metadata": {"export_version": "1.0.0", "exported_at": ..., ...},
      "funding_items": [{..., "category_name", "money_allocations": [...]}],
      "spending_items": [{..., "money_allocations", "events", "invoices": [{..., "files"}]}],
      "procurement_items": [{..., "quotes": [{..., "files"}], "events": [{..., "files"}]}]
    }
"""

from __future__ import annotations

import base64
from collections.abc import Callable, Mapping
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from myrc_kernel.domain.currency import parse_currency, resolve_currency, to_cad
from myrc_kernel.exceptions import DuplicateNameError, MyRCError, ValidationError
from myrc_kernel.logging_config import get_logger
from myrc_kernel.models.fiscal_year import FiscalYear
from myrc_kernel.services.permission_service import PermissionService
from myrc_modules._attachments import AttachmentPolicy
from myrc_modules._common import has_positive_allocation
from myrc_modules.funding.models import FundingSource
from myrc_modules.funding.orm import FundingAllocationModel, FundingItemModel
from myrc_modules.funding.service import ALLOCATION_REQUIRED_MESSAGE, DUPLICATE_FUNDING_MESSAGE
from myrc_modules.procurement.orm import (
    EventFileModel,
    ProcurementEventModel,
    ProcurementItemModel,
    QuoteFileModel,
    QuoteModel,
)
from myrc_modules.procurement.models import ProcurementType, TrackingStatus
from myrc_modules.procurement.service import DUPLICATE_PR_MESSAGE
from myrc_modules.spending.orm import (
    InvoiceFileModel,
    SpendingAllocationModel,
    SpendingEventModel,
    SpendingInvoiceModel,
    SpendingItemModel,
)
from myrc_modules.spending.models import SpendingStatus
from myrc_modules.spending.service import DUPLICATE_SPENDING_MESSAGE

logger = get_logger("services.export_import")

EXPORT_VERSION = "1.0.0"

_SKIPPED = frozenset({"id", "version", "created_at", "updated_at", "created_by", "updated_by", "content"})

# Per-item failures that mean "skip this item", not "abort the import".
_ITEM_ERRORS = (MyRCError, IntegrityError, KeyError, TypeError, ValueError, ArithmeticError)


def _columns(model) -> list[tuple[str, Any]]:
    """(key, python type) of the plain data columns of ``model``."""
    out = []
    for prop in inspect(model).column_attrs:
        column = prop.columns[0]
        if prop.key in _SKIPPED or column.foreign_keys:
            continue
        out.append((prop.key, column.type.python_type))
    return out


def _to_json(value: Any) -> Any:
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def _from_json(value: Any, python_type: type) -> Any:
    if value is None:
        return None
    if python_type is Decimal:
        return Decimal(str(value))
    if python_type is date:
        return date.fromisoformat(value)
    if python_type is bool:
        return bool(value)
    if python_type is int:
        return int(value)
    return value


def row_to_dict(row: Any) -> dict[str, Any]:
    """Plain data columns of ``row`` (no ids, foreign keys or audit columns)."""
    data = {key: _to_json(getattr(row, key)) for key, _ in _columns(type(row))}
    data["id"] = str(row.id)
    return data


def row_from_dict(model, data: Mapping[str, Any], actor: str, **overrides: Any) -> Any:
    """New ``model`` instance from an exported dict; unknown keys are ignored."""
    values = {
        key: _from_json(data.get(key), python_type)
        for key, python_type in _columns(model)
        if key in data and key not in overrides
    }
    values.update(overrides)
    return model(created_by=actor, **values)


class ExportImportService:
    """
    Fiscal-year export and import.

    Contract:
        ``export`` needs read access, ``import_`` write access on the RC.
        Flushes only; the caller commits.
    """

    def __init__(
        self,
        session: Session,
        permissions: PermissionService | None = None,
        attachments: AttachmentPolicy | None = None,
    ):
        self.session = session
        self.permissions = permissions or PermissionService(session)
        self.attachments = attachments or AttachmentPolicy.with_defaults()

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def _rows(self, model, fiscal_year_id: UUID, active_only: bool) -> list:
        stmt = select(model).where(model.fiscal_year_id == fiscal_year_id)
        if active_only:
            stmt = stmt.where(model.active.is_(True))
        return list(self.session.execute(stmt.order_by(model.name)).scalars().unique())

    @staticmethod
    def _files(rows) -> list[dict[str, Any]]:
        return [
            {
                "file_name": f.file_name,
                "content_type": f.content_type,
                "file_size": f.file_size,
                "description": f.description,
                "base64_content": base64.b64encode(f.content).decode("ascii"),
            }
            for f in rows
            if f.active
        ]

    @staticmethod
    def _allocations(rows) -> list[dict[str, Any]]:
        return [
            {
                "money_code": a.money.code,
                "cap_amount": str(a.cap_amount),
                "om_amount": str(a.om_amount),
            }
            for a in rows
        ]

    def export(self, rc_id: UUID, fiscal_year_id: UUID, username: str) -> dict[str, Any]:
        fy = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username)

        funding = []
        for item in self._rows(FundingItemModel, fy.id, active_only=False):
            data = row_to_dict(item)
            data["category_name"] = item.category.name if item.category else None
            data["money_allocations"] = self._allocations(item.allocations)
            funding.append(data)

        spending = []
        for item in self._rows(SpendingItemModel, fy.id, active_only=True):
            data = row_to_dict(item)
            data["category_name"] = item.category.name if item.category else None
            data["procurement_item_id"] = (
                str(item.procurement_item_id) if item.procurement_item_id else None
            )
            data["money_allocations"] = self._allocations(item.allocations)
            data["events"] = [row_to_dict(e) for e in item.events if e.active]
            data["invoices"] = [
                {**row_to_dict(inv), "files": self._files(inv.files)}
                for inv in item.invoices
                if inv.active
            ]
            spending.append(data)

        procurement = []
        for item in self._rows(ProcurementItemModel, fy.id, active_only=True):
            data = row_to_dict(item)
            data["category_name"] = item.category.name if item.category else None
            data["quotes"] = [
                {**row_to_dict(q), "files": self._files(q.files)} for q in item.quotes if q.active
            ]
            data["events"] = [
                {**row_to_dict(e), "files": self._files(e.files)} for e in item.events if e.active
            ]
            procurement.append(data)

        metadata = {
            "export_version": EXPORT_VERSION,
            "exported_at": datetime.now(timezone.utc).isoformat(),
            "exported_by": username,
            "rc_id": str(fy.rc_id),
            "rc_name": fy.rc.name,
            "fiscal_year_id": str(fy.id),
            "fiscal_year_name": fy.name,
            "funding_item_count": len(funding),
            "spending_item_count": len(spending),
            "procurement_item_count": len(procurement),
        }
        logger.info("fiscal_year_exported", extra=metadata)
        return {
            "metadata": metadata,
            "funding_items": funding,
            "spending_items": spending,
            "procurement_items": procurement,
        }

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def import_(
        self, rc_id: UUID, fiscal_year_id: UUID, username: str, document: Mapping[str, Any]
    ) -> dict[str, Any]:
        """
        Recreate the items of ``document`` in the fiscal year.

        Returns metadata with the number of items imported and skipped per
        kind.
        """
        fy = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username, "WRITE")
        if not isinstance(document, Mapping) or "metadata" not in document:
            raise ValidationError("Not a fiscal year export document", field="metadata")
        version = str(document["metadata"].get("export_version", ""))
        if version.split(".")[0] != EXPORT_VERSION.split(".")[0]:
            raise ValidationError(f"Unsupported export version: {version}", field="export_version")

        categories = {c.name: c for c in fy.categories}
        procurement_ids: dict[str, ProcurementItemModel] = {}
        counts: dict[str, int] = {}

        def run(
            kind: str,
            rows,
            build: Callable[[Mapping[str, Any]], Any],
            on_imported: Callable[[Mapping[str, Any], Any], None] | None = None,
        ) -> None:
            imported = skipped = 0
            for data in rows or ():
                try:
                    # One savepoint per item: a failed insert discards only that item.
                    with self.session.begin_nested():
                        row = build(data)
                        self.session.add(row)
                        self.session.flush()
                except _ITEM_ERRORS as exc:
                    skipped += 1
                    logger.warning(
                        "import_item_skipped",
                        extra={
                            "item_kind": kind,
                            "item_name": data.get("name") if isinstance(data, Mapping) else None,
                            "reason": str(exc),
                        },
                    )
                    continue
                if on_imported is not None:
                    on_imported(data, row)
                imported += 1
            counts[f"{kind}_item_count"] = imported
            counts[f"{kind}_skipped_count"] = skipped

        def remember_procurement(data, row) -> None:
            procurement_ids[str(data.get("id"))] = row

        run(
            "procurement",
            document.get("procurement_items"),
            lambda data: self._procurement(fy, data, categories, username),
            remember_procurement,
        )
        run(
            "funding",
            document.get("funding_items"),
            lambda data: self._funding(fy, data, categories, username),
        )
        run(
            "spending",
            document.get("spending_items"),
            lambda data: self._spending(fy, data, categories, procurement_ids, username),
        )

        result = {
            "export_version": version,
            "imported_at": datetime.now(timezone.utc).isoformat(),
            "imported_by": username,
            "rc_id": str(fy.rc_id),
            "rc_name": fy.rc.name,
            "fiscal_year_id": str(fy.id),
            "fiscal_year_name": fy.name,
            **counts,
        }
        logger.info("fiscal_year_imported", extra=result)
        return result

    @staticmethod
    def _name(data: Mapping[str, Any]) -> str:
        name = data.get("name")
        if not name or not str(name).strip():
            raise ValidationError("Name is required", field="name")
        return str(name).strip()

    def _name_taken(self, model, fy: FiscalYear, name: str) -> bool:
        return (
            self.session.execute(
                select(model.id).where(model.fiscal_year_id == fy.id, model.name == name).limit(1)
            ).first()
            is not None
        )

    @staticmethod
    def _category_id(categories, data: Mapping[str, Any]) -> UUID | None:
        category = categories.get(data.get("category_name"))
        return category.id if category is not None else None

    @staticmethod
    def _fill_allocations(fy: FiscalYear, rows: list, exported, factory) -> None:
        """One row per money of ``fy``, amounts taken from the matching money code."""
        by_code = {a["money_code"]: a for a in exported or ()}
        for money in fy.monies:
            source = by_code.get(money.code, {})
            row = factory(money)
            row.cap_amount = Decimal(str(source.get("cap_amount", "0")))
            row.om_amount = Decimal(str(source.get("om_amount", "0")))
            rows.append(row)

    def _decode_files(self, model, exported) -> list:
        files = []
        for f in exported or ():
            try:
                content = base64.b64decode(f["base64_content"], validate=True)
                self.attachments.validate(f["file_name"], f.get("content_type"), content)
            except _ITEM_ERRORS as exc:
                logger.warning(
                    "import_file_skipped",
                    extra={"file_name": f.get("file_name"), "reason": str(exc)},
                )
                continue
            files.append(
                model(
                    file_name=f["file_name"],
                    content_type=f["content_type"],
                    file_size=len(content),
                    content=content,
                    description=f.get("description"),
                    active=True,
                )
            )
        return files

    def _funding(self, fy, data, categories, actor) -> FundingItemModel:
        name = self._name(data)
        if self._name_taken(FundingItemModel, fy, name):
            raise DuplicateNameError("funding item", name, DUPLICATE_FUNDING_MESSAGE)
        currency, rate = resolve_currency(
            data.get("currency"), _from_json(data.get("exchange_rate"), Decimal)
        )
        row = row_from_dict(
            FundingItemModel,
            data,
            actor,
            fiscal_year_id=fy.id,
            name=name,
            source=FundingSource.parse(data.get("source")).value,
            currency=currency.value,
            exchange_rate=rate,
            category_id=self._category_id(categories, data),
        )
        self._fill_allocations(
            fy,
            row.allocations,
            data.get("money_allocations"),
            lambda money: FundingAllocationModel(money_id=money.id, money=money),
        )
        if not has_positive_allocation((), row.allocations):
            raise ValidationError(ALLOCATION_REQUIRED_MESSAGE, field="money_allocations")
        return row

    def _spending(self, fy, data, categories, procurement_ids, actor) -> SpendingItemModel:
        name = self._name(data)
        if self._name_taken(SpendingItemModel, fy, name):
            raise DuplicateNameError("spending item", name, DUPLICATE_SPENDING_MESSAGE)
        linked = procurement_ids.get(str(data.get("procurement_item_id")))
        row = row_from_dict(
            SpendingItemModel,
            data,
            actor,
            fiscal_year_id=fy.id,
            name=name,
            currency=parse_currency(data.get("currency")).value,
            category_id=self._category_id(categories, data),
            procurement_item_id=linked.id if linked is not None else None,
            active=True,
        )
        row.status = SpendingStatus(row.status or SpendingStatus.PLANNING.value).value
        self._fill_allocations(
            fy,
            row.allocations,
            data.get("money_allocations"),
            lambda money: SpendingAllocationModel(money_id=money.id, money=money),
        )
        row.events = [
            row_from_dict(SpendingEventModel, e, actor, active=True) for e in data.get("events") or ()
        ]
        for exported in data.get("invoices") or ():
            invoice = row_from_dict(SpendingInvoiceModel, exported, actor, active=True)
            invoice.currency = parse_currency(invoice.currency).value
            invoice.amount_cad = to_cad(invoice.amount, invoice.currency, invoice.exchange_rate)
            invoice.files = self._decode_files(InvoiceFileModel, exported.get("files"))
            row.invoices.append(invoice)
        return row

    def _procurement(self, fy, data, categories, actor) -> ProcurementItemModel:
        name = self._name(data)
        pr = (data.get("purchase_requisition") or "").strip() or None
        if pr is not None:
            taken = self.session.execute(
                select(ProcurementItemModel.id)
                .where(
                    ProcurementItemModel.fiscal_year_id == fy.id,
                    ProcurementItemModel.purchase_requisition == pr,
                    ProcurementItemModel.active.is_(True),
                )
                .limit(1)
            ).first()
            if taken is not None:
                raise DuplicateNameError("procurement item", pr, DUPLICATE_PR_MESSAGE)
        row = row_from_dict(
            ProcurementItemModel,
            data,
            actor,
            fiscal_year_id=fy.id,
            name=name,
            purchase_requisition=pr,
            category_id=self._category_id(categories, data),
            active=True,
        )
        # An unknown enum value raises ValueError and the item is skipped.
        row.tracking_status = TrackingStatus(row.tracking_status or TrackingStatus.ON_TRACK.value).value
        row.procurement_type = ProcurementType(
            row.procurement_type or ProcurementType.RC_INITIATED.value
        ).value
        row.final_price_currency = parse_currency(row.final_price_currency).value
        row.quoted_price_currency = parse_currency(row.quoted_price_currency).value
        row.final_price_cad = to_cad(
            row.final_price, row.final_price_currency, row.final_price_exchange_rate
        )
        row.quoted_price_cad = to_cad(
            row.quoted_price, row.quoted_price_currency, row.quoted_price_exchange_rate
        )
        for exported in data.get("quotes") or ():
            quote = row_from_dict(QuoteModel, exported, actor, active=True)
            quote.currency = parse_currency(quote.currency).value
            quote.amount_cap_cad = to_cad(quote.amount_cap, quote.currency, quote.exchange_rate)
            quote.amount_om_cad = to_cad(quote.amount_om, quote.currency, quote.exchange_rate)
            quote.files = self._decode_files(QuoteFileModel, exported.get("files"))
            row.quotes.append(quote)
        for exported in data.get("events") or ():
            event = row_from_dict(ProcurementEventModel, exported, actor, active=True)
            event.files = self._decode_files(EventFileModel, exported.get("files"))
            row.events.append(event)
        return row
