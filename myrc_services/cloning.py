"""
myrc_services.cloning -- Deep copies of fiscal years and responsibility centres.

Responsibility:
    Copies a fiscal year with everything below it (monies, categories and
    every module's items) into the same RC or another one, and copies a
    whole RC with all its fiscal years.  Audit trails are copied alongside,
    each copied row pointing back through ``cloned_from_audit_id``.

Architecture position:
    Services -- cross-module orchestration.  Reads and writes kernel models
    and every ``myrc_modules`` ORM model; nothing in kernel or modules
    imports this.

Invariants enforced:
    - Cloned rows start at version 1 and are created by the caller.
    - Allocations, categories and the spending -> procurement link point at
      the cloned rows, never at the source fiscal year's rows.
    - Soft-deleted procurement and spending rows (and their quotes, events,
      invoices and files) are not copied.

Failure modes:
    - ValidationError: blank name.
    - DuplicateNameError: fiscal-year name taken in the target RC, or RC
      name taken globally.
    - AccessDeniedError: read access on the source or write access on the
      target missing.

Usage:
    cloning = CloningService(session)
    view = cloning.clone_fiscal_year(rc_id, fy_id, "alice", "FY 2026-27")
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import inspect, select
from sqlalchemy.orm import Session

from myrc_kernel.domain.dtos import FiscalYearView, ResponsibilityCentreView
from myrc_kernel.exceptions import DuplicateNameError, ValidationError
from myrc_kernel.logging_config import get_logger
from myrc_kernel.models.fiscal_year import FiscalYear
from myrc_kernel.models.responsibility_centre import ResponsibilityCentre
from myrc_kernel.services.audit_service import AuditService
from myrc_kernel.services.fiscal_year_service import DUPLICATE_FY_MESSAGE
from myrc_kernel.services.permission_service import PermissionService
from myrc_kernel.services.responsibility_centre_service import ResponsibilityCentreService
from myrc_modules.funding.orm import FundingItemModel
from myrc_modules.procurement.orm import ProcurementItemModel
from myrc_modules.spending.orm import SpendingItemModel
from myrc_modules.training.orm import TrainingItemModel
from myrc_modules.travel.orm import TravelItemModel

logger = get_logger("services.cloning")

_NOT_COPIED = frozenset({"id", "version", "created_at", "updated_at", "created_by", "updated_by"})


def copy_row(source: Any, actor: str | None, **overrides: Any) -> Any:
    """
    New instance of ``type(source)`` with the same column values.

    Identity, version and audit columns are left for the new row;
    ``overrides`` replace individual columns (typically foreign keys).
    """
    model = type(source)
    values = {
        attr.key: getattr(source, attr.key)
        for attr in inspect(model).column_attrs
        if attr.key not in _NOT_COPIED and attr.key not in overrides
    }
    values.update(overrides)
    return model(created_by=actor, **values)


def _active(rows):
    return [row for row in rows if row.active]


class CloningService:
    """
    Deep cloning of fiscal years and responsibility centres.

    Contract:
        Flushes within the caller's transaction; the caller commits.
    """

    def __init__(
        self,
        session: Session,
        permissions: PermissionService | None = None,
        audit: AuditService | None = None,
    ):
        self.session = session
        self.permissions = permissions or PermissionService(session)
        self.audit = audit or AuditService(session, permissions=self.permissions)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def clone_fiscal_year(
        self, rc_id: UUID, fiscal_year_id: UUID, username: str, new_name: str
    ) -> FiscalYearView:
        """Copy a fiscal year within its own RC (write access)."""
        return self.clone_fiscal_year_to_rc(rc_id, fiscal_year_id, rc_id, username, new_name)

    def clone_fiscal_year_to_rc(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        target_rc_id: UUID,
        username: str,
        new_name: str,
    ) -> FiscalYearView:
        """Copy a fiscal year into ``target_rc_id`` (read on source, write on target)."""
        source = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username)
        target_rc = self.permissions.require_write(target_rc_id, username)
        name = self._fiscal_year_name(target_rc, new_name)
        fy = self.deep_clone_fiscal_year(source, name, target_rc, username)
        return FiscalYearView.from_model(fy)

    def clone_responsibility_centre(
        self, rc_id: UUID, username: str, new_name: str
    ) -> ResponsibilityCentreView:
        """
        Copy an RC with all its fiscal years; the caller owns the copy.

        Any access level on the source suffices, so the Demo RC can be
        cloned by everyone.
        """
        source = self.permissions.require_read(rc_id, username)
        rcs = ResponsibilityCentreService(self.session, self.permissions)
        created = rcs.create(username, new_name, source.description)
        target = rcs.get_model(created.id)
        target.training_enabled = source.training_enabled
        target.travel_enabled = source.travel_enabled
        target.training_include_in_summary = source.training_include_in_summary
        target.travel_include_in_summary = source.travel_include_in_summary

        for fy in list(source.fiscal_years):
            self.deep_clone_fiscal_year(fy, fy.name, target, username)
        copied = self.audit.clone_for_rc(source.id, target.id, target.name)

        logger.info(
            "rc_cloned",
            extra={
                "source_rc_id": str(source.id),
                "target_rc_id": str(target.id),
                "fiscal_years": len(source.fiscal_years),
                "audit_events": copied,
            },
        )
        return rcs.get(target.id, username)

    # ------------------------------------------------------------------
    # Deep clone
    # ------------------------------------------------------------------

    def _fiscal_year_name(self, rc: ResponsibilityCentre, new_name: str | None) -> str:
        if not new_name or not new_name.strip():
            raise ValidationError("Name is required", field="name")
        name = new_name.strip()
        if any(fy.name == name for fy in rc.fiscal_years):
            raise DuplicateNameError("Fiscal Year", name, DUPLICATE_FY_MESSAGE)
        return name

    def deep_clone_fiscal_year(
        self,
        source: FiscalYear,
        name: str,
        target_rc: ResponsibilityCentre,
        actor: str,
    ) -> FiscalYear:
        """
        Copy ``source`` and everything below it into ``target_rc`` as ``name``.

        No access checks; callers authorize first.
        """
        fy = copy_row(source, actor, rc_id=target_rc.id, name=name)
        target_rc.fiscal_years.append(fy)
        self.session.flush()

        monies = {}
        for money in source.monies:
            clone = copy_row(money, actor, fiscal_year_id=fy.id)
            fy.monies.append(clone)
            monies[money.id] = clone
        categories = {}
        for category in source.categories:
            clone = copy_row(category, actor, fiscal_year_id=fy.id)
            fy.categories.append(clone)
            categories[category.id] = clone
        self.session.flush()

        def money_id(old: UUID) -> UUID:
            return monies[old].id

        def category_id(old: UUID | None) -> UUID | None:
            clone = categories.get(old) if old is not None else None
            return clone.id if clone is not None else None

        procurement = self._clone_procurement(source, fy, category_id, actor)
        counts = {
            "procurement_items": len(procurement),
            "funding_items": self._clone_funding(source, fy, category_id, money_id, actor),
            "spending_items": self._clone_spending(
                source, fy, category_id, money_id, procurement, actor
            ),
            "training_items": self._clone_people_items(
                TrainingItemModel, "participants", source, fy, money_id, actor
            ),
            "travel_items": self._clone_people_items(
                TravelItemModel, "travellers", source, fy, money_id, actor
            ),
        }
        self.session.flush()

        counts["audit_events"] = self.audit.clone_for_fiscal_year(
            source.rc_id, source.id, target_rc.id, target_rc.name, fy.id, fy.name
        )
        logger.info(
            "fiscal_year_cloned",
            extra={
                "source_fiscal_year_id": str(source.id),
                "target_fiscal_year_id": str(fy.id),
                "target_rc_id": str(target_rc.id),
                "monies": len(monies),
                "categories": len(categories),
                **counts,
            },
        )
        return fy

    def _items(self, model, fiscal_year_id: UUID, active_only: bool = False) -> list:
        stmt = select(model).where(model.fiscal_year_id == fiscal_year_id)
        if active_only:
            stmt = stmt.where(model.active.is_(True))
        return list(self.session.execute(stmt.order_by(model.created_at)).scalars().unique())

    def _clone_procurement(self, source, fy, category_id, actor) -> dict[UUID, ProcurementItemModel]:
        clones = {}
        for item in self._items(ProcurementItemModel, source.id, active_only=True):
            clone = copy_row(
                item, actor, fiscal_year_id=fy.id, category_id=category_id(item.category_id)
            )
            for quote in _active(item.quotes):
                quote_clone = copy_row(quote, actor)
                quote_clone.files = [copy_row(f, actor) for f in _active(quote.files)]
                clone.quotes.append(quote_clone)
            for event in _active(item.events):
                event_clone = copy_row(event, actor)
                event_clone.files = [copy_row(f, actor) for f in _active(event.files)]
                clone.events.append(event_clone)
            self.session.add(clone)
            clones[item.id] = clone
        self.session.flush()
        return clones

    def _clone_funding(self, source, fy, category_id, money_id, actor) -> int:
        items = self._items(FundingItemModel, source.id)
        for item in items:
            clone = copy_row(
                item, actor, fiscal_year_id=fy.id, category_id=category_id(item.category_id)
            )
            clone.allocations = [
                copy_row(a, actor, money_id=money_id(a.money_id)) for a in item.allocations
            ]
            self.session.add(clone)
        return len(items)

    def _clone_spending(self, source, fy, category_id, money_id, procurement, actor) -> int:
        items = self._items(SpendingItemModel, source.id, active_only=True)
        for item in items:
            linked = procurement.get(item.procurement_item_id) if item.procurement_item_id else None
            clone = copy_row(
                item,
                actor,
                fiscal_year_id=fy.id,
                category_id=category_id(item.category_id),
                procurement_item_id=linked.id if linked is not None else None,
            )
            clone.allocations = [
                copy_row(a, actor, money_id=money_id(a.money_id)) for a in item.allocations
            ]
            clone.events = [copy_row(e, actor) for e in _active(item.events)]
            for invoice in _active(item.invoices):
                invoice_clone = copy_row(invoice, actor)
                invoice_clone.files = [copy_row(f, actor) for f in _active(invoice.files)]
                clone.invoices.append(invoice_clone)
            self.session.add(clone)
        return len(items)

    def _clone_people_items(self, model, people_attr: str, source, fy, money_id, actor) -> int:
        items = self._items(model, source.id)
        for item in items:
            clone = copy_row(item, actor, fiscal_year_id=fy.id)
            setattr(clone, people_attr, [copy_row(p, actor) for p in getattr(item, people_attr)])
            clone.allocations = [
                copy_row(a, actor, money_id=money_id(a.money_id)) for a in item.allocations
            ]
            self.session.add(clone)
        return len(items)
