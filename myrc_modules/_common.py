"""
Shared helpers for line-level modules (``myrc_modules._common``).

Responsibility
--------------
Small pieces every module needs: money-allocation request/response values,
enum parsing with the user-facing "Invalid <label>: X" message, required
text checks, and category / money resolution scoped to a fiscal year.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from ``myrc_kernel`` only.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from myrc_kernel.domain.currency import resolve_currency
from myrc_kernel.exceptions import InvalidEnumValueError, NotFoundError, ValidationError
from myrc_kernel.models.category import Category
from myrc_kernel.models.fiscal_year import FiscalYear
from myrc_kernel.models.money import Money

ZERO = Decimal("0")

E = TypeVar("E", bound=Enum)


@dataclass(frozen=True)
class AllocationInput:
    """Requested CAP / OM split for one money."""

    money_id: UUID
    cap_amount: Decimal | None = None
    om_amount: Decimal | None = None

    @property
    def cap(self) -> Decimal:
        return Decimal(self.cap_amount) if self.cap_amount is not None else ZERO

    @property
    def om(self) -> Decimal:
        return Decimal(self.om_amount) if self.om_amount is not None else ZERO


@dataclass(frozen=True)
class MoneyAllocation:
    """A persisted CAP / OM split, with the money's code and name for display."""

    id: UUID
    money_id: UUID
    money_code: str
    money_name: str
    cap_amount: Decimal
    om_amount: Decimal


def has_positive_allocation(
    allocations: Iterable[AllocationInput] | None,
    current: Iterable = (),
) -> bool:
    """
    True when some money has CAP or OM above zero once ``allocations`` are
    applied over the ``current`` allocation rows of the item.
    """
    merged = {row.money_id: (row.cap_amount or ZERO, row.om_amount or ZERO) for row in current}
    for allocation in allocations or ():
        merged[allocation.money_id] = (allocation.cap, allocation.om)
    return any(cap > 0 or om > 0 for cap, om in merged.values())


def parse_enum(
    enum_cls: type[E],
    value: E | str | None,
    label: str,
    default: E | None = None,
    field: str | None = None,
) -> E:
    """
    Parse ``value`` into ``enum_cls`` by member value, case-insensitively.

    Raises:
        InvalidEnumValueError: "Invalid <label>: <value>".
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise InvalidEnumValueError(label, value, field)
        return default
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().upper())
    except ValueError as exc:
        raise InvalidEnumValueError(label, value, field) from exc


def require_text(value: str | None, message: str, field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(message, field=field)
    return value.strip()


def resolve_category(
    session: Session,
    fy: FiscalYear,
    category_id: UUID | None,
) -> Category | None:
    """
    Load a category that must belong to ``fy``; None passes through.

    Raises:
        NotFoundError: unknown category.
        ValidationError: category of another fiscal year.
    """
    if category_id is None:
        return None
    category = session.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category", category_id, "Category not found")
    if category.fiscal_year_id != fy.id:
        raise ValidationError(
            "Category does not belong to the specified Fiscal Year", field="category_id"
        )
    return category


def check_allocation_monies(fy: FiscalYear, allocations: Sequence[AllocationInput] | None) -> None:
    """Every requested money must be a money of ``fy``."""
    if not allocations:
        return
    fy_money_ids = {m.id for m in fy.monies}
    for allocation in allocations:
        if allocation.money_id not in fy_money_ids:
            raise ValidationError(
                f"Money type not found in this Fiscal Year: {allocation.money_id}",
                field="money_allocations",
            )


def allocation_view(allocation_id: UUID, money: Money, cap: Decimal, om: Decimal) -> MoneyAllocation:
    return MoneyAllocation(
        id=allocation_id,
        money_id=money.id,
        money_code=money.code,
        money_name=money.name,
        cap_amount=cap,
        om_amount=om,
    )


def upsert_allocations(
    fy: FiscalYear,
    rows: list,
    requested: Sequence[AllocationInput] | None,
    factory: Callable[[Money], object],
) -> None:
    """
    Keep exactly one allocation row per money of ``fy`` in ``rows``.

    Rows missing for a money are created through ``factory`` with zero
    amounts; requested amounts overwrite the matching rows.  Monies absent
    from ``requested`` keep their current amounts.
    """
    by_money = {row.money_id: row for row in rows}
    wanted = {a.money_id: a for a in requested or ()}
    for money in fy.monies:
        row = by_money.get(money.id)
        if row is None:
            row = factory(money)
            row.cap_amount = ZERO
            row.om_amount = ZERO
            rows.append(row)
        request = wanted.get(money.id)
        if request is not None:
            row.cap_amount = request.cap
            row.om_amount = request.om


def apply_currency_update(item, currency: str | None, exchange_rate: Decimal | None) -> None:
    """
    Re-resolve ``item.currency`` / ``item.exchange_rate`` when either is
    submitted; the half that was not submitted keeps its stored value.
    """
    if currency is None and exchange_rate is None:
        return
    resolved, rate = resolve_currency(
        currency if currency is not None else item.currency,
        exchange_rate if exchange_rate is not None else item.exchange_rate,
    )
    item.currency = resolved.value
    item.exchange_rate = rate
