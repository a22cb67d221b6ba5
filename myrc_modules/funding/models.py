"""
Funding Domain Models (``myrc_modules.funding.models``).

Responsibility
--------------
Frozen value objects for funding items: the money an RC receives in a
fiscal year, split into CAP and OM amounts across the fiscal year's monies.

Architecture position
---------------------
**Modules layer** -- pure data definitions.  No I/O, no database.

Invariants enforced
-------------------
* All monetary fields use ``Decimal``.
* ``FundingSource.parse`` never fails: unknown input means BUSINESS_PLAN.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from myrc_modules._common import MoneyAllocation


class FundingSource(Enum):
    """Where a funding item comes from."""

    BUSINESS_PLAN = "BUSINESS_PLAN"
    ON_RAMP = "ON_RAMP"
    APPROVED_DEFICIT = "APPROVED_DEFICIT"

    @property
    def label(self) -> str:
        return _SOURCE_LABELS[self]

    @classmethod
    def parse(cls, value: str | None) -> FundingSource:
        """Lenient parse: enum name (spaces / hyphens as underscores) or label."""
        if value is None or not value.strip():
            return cls.BUSINESS_PLAN
        normalized = value.strip().upper().replace(" ", "_").replace("-", "_")
        try:
            return cls(normalized)
        except ValueError:
            pass
        for source in cls:
            if source.label.lower() == value.strip().lower():
                return source
        return cls.BUSINESS_PLAN


_SOURCE_LABELS = {
    FundingSource.BUSINESS_PLAN: "Business Plan",
    FundingSource.ON_RAMP: "On-Ramp",
    FundingSource.APPROVED_DEFICIT: "Approved Deficit",
}


@dataclass(frozen=True)
class FundingItem:
    """A funding line of a fiscal year."""

    id: UUID
    fiscal_year_id: UUID
    name: str
    description: str | None
    source: FundingSource
    comments: str | None
    currency: str
    exchange_rate: Decimal | None
    category_id: UUID | None
    category_name: str | None
    money_allocations: tuple[MoneyAllocation, ...]
    created_at: datetime | None
    updated_at: datetime | None
    version: int

    @property
    def total_cap(self) -> Decimal:
        return sum((a.cap_amount for a in self.money_allocations), Decimal("0"))

    @property
    def total_om(self) -> Decimal:
        return sum((a.om_amount for a in self.money_allocations), Decimal("0"))
