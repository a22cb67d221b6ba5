"""
Funding Module Service (``myrc_modules.funding.service``).

Responsibility
--------------
CRUD for funding items of a fiscal year together with their per-money
CAP / OM allocations, and the allocation hook that lets the kernel
``MoneyService`` see funding usage.

Architecture position
---------------------
**Modules layer** -- ``FundingService`` is the sole public entry point for
funding operations.  Authorization and the inactive fiscal-year guard go
through ``PermissionService.require_fiscal_year``.

Invariants enforced
-------------------
* Name is required and unique within the fiscal year.
* Every item carries exactly one allocation per money of its fiscal year.
* At least one allocation has a CAP or OM amount above zero.
* Non-CAD currencies carry a positive exchange rate; CAD carries none.
* The category, when set, belongs to the same fiscal year.

Failure modes
-------------
* ``ValidationError`` / ``InvalidCurrencyError`` / ``InvalidExchangeRateError``
  for malformed requests.
* ``DuplicateNameError`` for a reused name.
* ``NotFoundError`` for an unknown item, category, or money.
* ``AccessDeniedError`` / ``FiscalYearInactiveError`` from the permission check.

Usage::

    service = FundingService(session)
    item = service.create(
        rc_id, fy_id, "alice",
        name="Base allocation",
        allocations=[AllocationInput(money_id=ab_id, cap_amount=Decimal("1000"))],
    )
    session.commit()
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from myrc_kernel.domain.currency import resolve_currency
from myrc_kernel.exceptions import DuplicateNameError, NotFoundError, ValidationError
from myrc_kernel.logging_config import get_logger
from myrc_kernel.models.fiscal_year import FiscalYear
from myrc_kernel.models.money import Money
from myrc_kernel.services.base import BaseService
from myrc_kernel.services.permission_service import PermissionService
from myrc_modules._common import (
    ZERO,
    AllocationInput,
    apply_currency_update,
    check_allocation_monies,
    has_positive_allocation,
    require_text,
    resolve_category,
    upsert_allocations,
)
from myrc_modules.funding.models import FundingItem, FundingSource
from myrc_modules.funding.orm import FundingAllocationModel, FundingItemModel

logger = get_logger("modules.funding")

DUPLICATE_FUNDING_MESSAGE = "A Funding Item with this name already exists for this Fiscal Year"
ALLOCATION_REQUIRED_MESSAGE = (
    "At least one money type must have a CAP or OM amount greater than $0.00"
)


def _new_allocation(money: Money) -> FundingAllocationModel:
    return FundingAllocationModel(money_id=money.id, money=money)


class FundingAllocationHook:
    """``MoneyAllocationHook`` over funding allocations."""

    def __init__(self, session: Session):
        self.session = session

    def money_in_use(self, money_id: UUID) -> bool:
        row = self.session.execute(
            select(FundingAllocationModel.id)
            .where(FundingAllocationModel.money_id == money_id)
            .where(
                or_(
                    FundingAllocationModel.cap_amount != ZERO,
                    FundingAllocationModel.om_amount != ZERO,
                )
            )
            .limit(1)
        ).first()
        return row is not None

    def money_added(self, fiscal_year_id: UUID, money_id: UUID) -> None:
        money = self.session.get(Money, money_id)
        items = self.session.execute(
            select(FundingItemModel).where(FundingItemModel.fiscal_year_id == fiscal_year_id)
        ).scalars()
        added = 0
        for item in items:
            if all(a.money_id != money_id for a in item.allocations):
                item.allocations.append(_new_allocation(money))
                added += 1
        logger.debug(
            "funding_allocations_backfilled",
            extra={"money_id": str(money_id), "count": added},
        )


class FundingService(BaseService[FundingItemModel]):
    """Funding items scoped to (rc, fiscal year)."""

    def __init__(self, session: Session, permissions: PermissionService | None = None):
        super().__init__(session)
        self.permissions = permissions or PermissionService(session)

    def _get_in_fy(self, fy: FiscalYear, item_id: UUID) -> FundingItemModel:
        item = self.session.get(FundingItemModel, item_id)
        if item is None or item.fiscal_year_id != fy.id:
            raise NotFoundError("Funding item", item_id, "Funding item not found")
        return item

    def _name_taken(self, fy: FiscalYear, name: str, exclude_id: UUID | None = None) -> bool:
        stmt = select(FundingItemModel.id).where(
            FundingItemModel.fiscal_year_id == fy.id, FundingItemModel.name == name
        )
        if exclude_id is not None:
            stmt = stmt.where(FundingItemModel.id != exclude_id)
        return self.session.execute(stmt.limit(1)).first() is not None

    # ------------------------------------------------------------------

    def list_items(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        username: str,
        category_id: UUID | None = None,
    ) -> list[FundingItem]:
        fy = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username)
        stmt = select(FundingItemModel).where(FundingItemModel.fiscal_year_id == fy.id)
        if category_id is not None:
            stmt = stmt.where(FundingItemModel.category_id == category_id)
        rows = self.session.execute(stmt.order_by(FundingItemModel.name)).scalars().unique()
        return [row.to_dto() for row in rows]

    def get(self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str) -> FundingItem:
        fy = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username)
        return self._get_in_fy(fy, item_id).to_dto()

    def create(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        username: str,
        *,
        name: str,
        description: str | None = None,
        source: FundingSource | str | None = None,
        comments: str | None = None,
        currency: str | None = None,
        exchange_rate: Decimal | None = None,
        category_id: UUID | None = None,
        allocations: Sequence[AllocationInput] | None = None,
    ) -> FundingItem:
        """
        Create a funding item.

        Postconditions:
            - One allocation per money of the fiscal year; monies missing
              from ``allocations`` get zero amounts.
        """
        fy = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username, "WRITE")
        name = require_text(name, "Name is required", "name")
        if self._name_taken(fy, name):
            raise DuplicateNameError("funding item", name, DUPLICATE_FUNDING_MESSAGE)
        resolved_currency, rate = resolve_currency(currency, exchange_rate)
        category = resolve_category(self.session, fy, category_id)
        check_allocation_monies(fy, allocations)
        if not has_positive_allocation(allocations):
            raise ValidationError(ALLOCATION_REQUIRED_MESSAGE, field="money_allocations")

        item = FundingItemModel(
            fiscal_year_id=fy.id,
            name=name,
            description=description,
            source=(
                source if isinstance(source, FundingSource) else FundingSource.parse(source)
            ).value,
            comments=comments,
            currency=resolved_currency.value,
            exchange_rate=rate,
            category_id=category.id if category is not None else None,
            created_by=username,
        )
        item.category = category
        upsert_allocations(fy, item.allocations, allocations, _new_allocation)
        self.session.add(item)
        self._flush(item)

        logger.info(
            "funding_item_created",
            extra={
                "fiscal_year_id": str(fy.id),
                "item_id": str(item.id),
                "item_name": name,
                "currency": item.currency,
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
        source: FundingSource | str | None = None,
        comments: str | None = None,
        currency: str | None = None,
        exchange_rate: Decimal | None = None,
        category_id: UUID | None = None,
        clear_category: bool = False,
        allocations: Sequence[AllocationInput] | None = None,
        expected_version: int | None = None,
    ) -> FundingItem:
        """Patch non-null fields; ``clear_category`` unsets the category."""
        fy = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username, "WRITE")
        item = self._get_in_fy(fy, item_id)
        self._check_version(item, expected_version)

        if name is not None:
            name = require_text(name, "Name is required", "name")
            if name != item.name and self._name_taken(fy, name, exclude_id=item.id):
                raise DuplicateNameError("funding item", name, DUPLICATE_FUNDING_MESSAGE)
            item.name = name
        if description is not None:
            item.description = description
        if source is not None:
            item.source = (
                source if isinstance(source, FundingSource) else FundingSource.parse(source)
            ).value
        if comments is not None:
            item.comments = comments
        apply_currency_update(item, currency, exchange_rate)
        if clear_category:
            item.category = None
            item.category_id = None
        elif category_id is not None:
            category = resolve_category(self.session, fy, category_id)
            item.category = category
            item.category_id = category.id
        if allocations is not None:
            check_allocation_monies(fy, allocations)
            if not has_positive_allocation(allocations, item.allocations):
                raise ValidationError(ALLOCATION_REQUIRED_MESSAGE, field="money_allocations")
            upsert_allocations(fy, item.allocations, allocations, _new_allocation)
        item.updated_by = username

        self._flush(item)
        logger.info(
            "funding_item_updated",
            extra={"item_id": str(item.id), "item_name": item.name, "version": item.version},
        )
        return item.to_dto()

    def delete(self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str) -> None:
        fy = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username, "WRITE")
        item = self._get_in_fy(fy, item_id)
        self.session.delete(item)
        self._flush()
        logger.info(
            "funding_item_deleted",
            extra={"fiscal_year_id": str(fy.id), "item_id": str(item_id), "item_name": item.name},
        )
