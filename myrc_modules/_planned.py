"""
Shared base for people-based planning modules (``myrc_modules._planned``).

Responsibility
--------------
Training and travel are the same shape: an item with a lifecycle status,
a list of people each carrying an estimated and a final cost in any
supported currency, and O&M allocations per money.  This module holds the
pieces they share:

* ``PlanStatus`` -- the item lifecycle.
* ``CostColumns`` -- declarative mixin for per-person costs.
* ``CostInput`` / ``apply_costs`` -- cost fields of a person request.
* ``PlannedItemService`` -- item, allocation and people operations,
  parameterized by the concrete ORM classes.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from ``myrc_kernel`` and
``myrc_modules._common`` only.

Invariants enforced
-------------------
* Item name is unique within a fiscal year.
* Allocations are O&M only; exactly one row per money of the fiscal year.
* A person can only be modified through the item it belongs to.
* Per-person CAD costs and item totals are derived with ``to_cad``;
  cancelled people do not count toward the totals.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar
from uuid import UUID

from sqlalchemy import String, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from myrc_kernel.domain.currency import parse_currency, to_cad
from myrc_kernel.exceptions import DuplicateNameError, NotFoundError, ValidationError
from myrc_kernel.logging_config import get_logger
from myrc_kernel.models.fiscal_year import FiscalYear
from myrc_kernel.services.base import BaseService
from myrc_kernel.services.permission_service import PermissionService
from myrc_modules._common import (
    ZERO,
    AllocationInput,
    MoneyAllocation,
    check_allocation_monies,
    parse_enum,
    require_text,
)

_CENTS = Decimal("0.01")


class PlanStatus(Enum):
    PLANNED = "PLANNED"
    APPROVED = "APPROVED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class CostColumns:
    """Estimated and final cost of one person, each with its own currency."""

    estimated_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    estimated_currency: Mapped[str] = mapped_column(String(3), nullable=False, default="CAD")
    estimated_exchange_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    final_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    final_currency: Mapped[str] = mapped_column(String(3), nullable=False, default="CAD")
    final_exchange_rate: Mapped[Decimal | None] = mapped_column(nullable=True)

    @property
    def estimated_cost_cad(self) -> Decimal | None:
        return to_cad(self.estimated_cost, self.estimated_currency, self.estimated_exchange_rate)

    @property
    def final_cost_cad(self) -> Decimal | None:
        return to_cad(self.final_cost, self.final_currency, self.final_exchange_rate)


@dataclass(frozen=True)
class CostInput:
    estimated_cost: Decimal | None = None
    estimated_currency: str | None = None
    estimated_exchange_rate: Decimal | None = None
    final_cost: Decimal | None = None
    final_currency: str | None = None
    final_exchange_rate: Decimal | None = None


def apply_costs(row: CostColumns, costs: CostInput, creating: bool) -> None:
    """Copy cost fields; on update only the supplied (non-null) ones."""
    if creating or costs.estimated_cost is not None:
        row.estimated_cost = costs.estimated_cost
    if creating or costs.final_cost is not None:
        row.final_cost = costs.final_cost
    if creating or costs.estimated_currency is not None:
        row.estimated_currency = parse_currency(costs.estimated_currency).value
    if creating or costs.final_currency is not None:
        row.final_currency = parse_currency(costs.final_currency).value
    if creating or costs.estimated_exchange_rate is not None:
        row.estimated_exchange_rate = costs.estimated_exchange_rate
    if creating or costs.final_exchange_rate is not None:
        row.final_exchange_rate = costs.final_exchange_rate


def cost_totals(people: Sequence[Any], status_attr: str) -> tuple[Decimal, Decimal]:
    """(estimated, final) CAD totals over people that are not cancelled."""
    estimated = ZERO
    final = ZERO
    for person in people:
        if getattr(person, status_attr) == "CANCELLED":
            continue
        if person.estimated_cost_cad is not None:
            estimated += person.estimated_cost_cad
        if person.final_cost_cad is not None:
            final += person.final_cost_cad
    return estimated.quantize(_CENTS), final.quantize(_CENTS)


def om_allocation_view(row: Any) -> MoneyAllocation:
    return MoneyAllocation(
        id=row.id,
        money_id=row.money_id,
        money_code=row.money.code,
        money_name=row.money.name,
        cap_amount=ZERO,
        om_amount=row.om_amount,
    )


class PlannedItemService(BaseService, ABC):
    """
    Item, O&M allocation and people operations shared by training and travel.

    Subclasses bind the ORM classes and labels, and translate their typed
    keyword arguments into column values in ``create`` / ``update`` and
    ``_person_values``.
    """

    item_model: ClassVar[type]
    allocation_model: ClassVar[type]
    person_model: ClassVar[type]
    people_attr: ClassVar[str]
    item_fk: ClassVar[str]
    item_label: ClassVar[str]
    person_label: ClassVar[str]
    logger_name: ClassVar[str]

    def __init__(self, session: Session, permissions: PermissionService | None = None):
        super().__init__(session)
        self.permissions = permissions or PermissionService(session)
        self.logger = get_logger(self.logger_name)

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _person_values(self, person: Any, request: Any, creating: bool) -> None:
        """Copy a person request onto ``person``; ``creating`` applies defaults."""

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _fy(self, rc_id: UUID, fiscal_year_id: UUID, username: str, write: bool) -> FiscalYear:
        return self.permissions.require_fiscal_year(
            rc_id, fiscal_year_id, username, "WRITE" if write else "READ"
        )

    def _get_item(self, fy: FiscalYear, item_id: UUID):
        item = self.session.get(self.item_model, item_id)
        if item is None or item.fiscal_year_id != fy.id:
            raise NotFoundError(
                self.item_label, item_id, f"{self.item_label.capitalize()} not found: {item_id}"
            )
        return item

    def _item_for(self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str, write: bool = False):
        return self._get_item(self._fy(rc_id, fiscal_year_id, username, write), item_id)

    def _get_person(self, item: Any, person_id: UUID):
        person = self.session.get(self.person_model, person_id)
        if person is None:
            raise NotFoundError(
                self.person_label, person_id, f"{self.person_label} not found: {person_id}"
            )
        if getattr(person, self.item_fk) != item.id:
            raise ValidationError(
                f"{self.person_label} does not belong to this {self.item_label}"
            )
        return person

    def _check_name(self, fy: FiscalYear, name: str, exclude_id: UUID | None = None) -> None:
        model = self.item_model
        stmt = select(model.id).where(model.fiscal_year_id == fy.id, model.name == name)
        if exclude_id is not None:
            stmt = stmt.where(model.id != exclude_id)
        if self.session.execute(stmt.limit(1)).first() is not None:
            raise DuplicateNameError(
                self.item_label,
                name,
                f"A {self.item_label} with name '{name}' already exists in this fiscal year",
            )

    def _new_allocation(self, money) -> Any:
        return self.allocation_model(money_id=money.id, money=money, om_amount=ZERO)

    def _sync_allocations(
        self, fy: FiscalYear, item: Any, requested: Sequence[AllocationInput] | None
    ) -> None:
        """One O&M row per money of ``fy``; requested amounts overwrite."""
        check_allocation_monies(fy, requested)
        by_money = {row.money_id: row for row in item.allocations}
        wanted = {a.money_id: a for a in requested or ()}
        for money in fy.monies:
            row = by_money.get(money.id)
            if row is None:
                row = self._new_allocation(money)
                item.allocations.append(row)
            if money.id in wanted:
                row.om_amount = wanted[money.id].om

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def list_items(self, rc_id: UUID, fiscal_year_id: UUID, username: str) -> list:
        """Items of the fiscal year ordered by name."""
        fy = self._fy(rc_id, fiscal_year_id, username, write=False)
        model = self.item_model
        rows = self.session.execute(
            select(model).where(model.fiscal_year_id == fy.id).order_by(model.name)
        ).scalars().unique()
        return [row.to_dto() for row in rows]

    def get(self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str):
        return self._item_for(rc_id, fiscal_year_id, item_id, username).to_dto()

    def _create(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        username: str,
        name: str | None,
        values: dict[str, Any],
        people: Sequence[Any] | None,
        allocations: Sequence[AllocationInput] | None,
    ):
        fy = self._fy(rc_id, fiscal_year_id, username, write=True)
        name = require_text(name, "Name is required", "name")
        self._check_name(fy, name)

        item = self.item_model(fiscal_year_id=fy.id, name=name, created_by=username, **values)
        for request in people or ():
            person = self.person_model(created_by=username)
            self._person_values(person, request, creating=True)
            getattr(item, self.people_attr).append(person)
        self._sync_allocations(fy, item, allocations)
        self.session.add(item)
        self._flush(item)

        self.logger.info(
            "planned_item_created",
            extra={
                "item_kind": self.item_label,
                "fiscal_year_id": str(fy.id),
                "item_id": str(item.id),
                "item_name": name,
                "people": len(getattr(item, self.people_attr)),
            },
        )
        return item.to_dto()

    def _update(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        username: str,
        name: str | None,
        values: dict[str, Any],
        expected_version: int | None,
    ):
        fy = self._fy(rc_id, fiscal_year_id, username, write=True)
        item = self._get_item(fy, item_id)
        self._check_version(item, expected_version)
        if name is not None and name.strip() and name.strip() != item.name:
            self._check_name(fy, name.strip(), exclude_id=item.id)
            item.name = name.strip()
        for column, value in values.items():
            setattr(item, column, value)
        item.updated_by = username
        self._flush(item)
        self.logger.info(
            "planned_item_updated",
            extra={"item_kind": self.item_label, "item_id": str(item.id), "version": item.version},
        )
        return item.to_dto()

    def delete(self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str) -> None:
        item = self._item_for(rc_id, fiscal_year_id, item_id, username, write=True)
        self.session.delete(item)
        self._flush()
        self.logger.info(
            "planned_item_deleted",
            extra={"item_kind": self.item_label, "item_id": str(item_id)},
        )

    def update_status(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        username: str,
        status: PlanStatus | str,
    ):
        item = self._item_for(rc_id, fiscal_year_id, item_id, username, write=True)
        new_status = parse_enum(PlanStatus, status, "status", field="status")
        previous = item.status
        item.status = new_status.value
        item.updated_by = username
        self._flush(item)
        self.logger.info(
            "planned_item_status_changed",
            extra={
                "item_kind": self.item_label,
                "item_id": str(item.id),
                "from_status": previous,
                "to_status": new_status.value,
            },
        )
        return item.to_dto()

    # ------------------------------------------------------------------
    # Allocations
    # ------------------------------------------------------------------

    def get_allocations(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str
    ) -> list[MoneyAllocation]:
        return list(self._item_for(rc_id, fiscal_year_id, item_id, username).to_dto().money_allocations)

    def update_allocations(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        username: str,
        allocations: Sequence[AllocationInput],
    ):
        """Replace O&M amounts; monies missing from the request drop to zero."""
        fy = self._fy(rc_id, fiscal_year_id, username, write=True)
        item = self._get_item(fy, item_id)
        for row in item.allocations:
            row.om_amount = ZERO
        self._sync_allocations(fy, item, allocations)
        item.updated_by = username
        self._flush(item)
        self.logger.info(
            "planned_allocations_updated",
            extra={"item_kind": self.item_label, "item_id": str(item.id)},
        )
        return item.to_dto()

    # ------------------------------------------------------------------
    # People
    # ------------------------------------------------------------------

    def _list_people(self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str) -> list:
        item = self._item_for(rc_id, fiscal_year_id, item_id, username)
        return [p.to_dto() for p in getattr(item, self.people_attr)]

    def _add_person(self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str, request: Any):
        item = self._item_for(rc_id, fiscal_year_id, item_id, username, write=True)
        person = self.person_model(created_by=username)
        self._person_values(person, request, creating=True)
        getattr(item, self.people_attr).append(person)
        self._flush(person)
        self.logger.info(
            "planned_person_added",
            extra={"item_kind": self.item_label, "item_id": str(item.id), "person_id": str(person.id)},
        )
        return person.to_dto()

    def _update_person(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        person_id: UUID,
        username: str,
        request: Any,
    ):
        item = self._item_for(rc_id, fiscal_year_id, item_id, username, write=True)
        person = self._get_person(item, person_id)
        self._person_values(person, request, creating=False)
        person.updated_by = username
        self._flush(person)
        return person.to_dto()

    def _delete_person(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, person_id: UUID, username: str
    ) -> None:
        item = self._item_for(rc_id, fiscal_year_id, item_id, username, write=True)
        person = self._get_person(item, person_id)
        getattr(item, self.people_attr).remove(person)
        self._flush()
        self.logger.info(
            "planned_person_removed",
            extra={"item_kind": self.item_label, "item_id": str(item.id), "person_id": str(person_id)},
        )
