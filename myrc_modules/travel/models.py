"""
Travel Domain Models (``myrc_modules.travel.models``).

Responsibility
--------------
Frozen value objects for travel items and their travellers.  Each
traveller follows the travel authorisation and advance claim (TAAC)
approval workflow: estimate submitted, estimate approved, final
submitted, final approved.

Architecture position
---------------------
**Modules layer** -- pure data definitions.  No I/O, no database.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from myrc_modules._common import MoneyAllocation
from myrc_modules._planned import CostInput, PlanStatus

TravelStatus = PlanStatus


class TravelType(Enum):
    DOMESTIC = "DOMESTIC"
    NORTH_AMERICA = "NORTH_AMERICA"
    INTERNATIONAL = "INTERNATIONAL"
    LOCAL = "LOCAL"


class ApprovalStatus(Enum):
    PLANNED = "PLANNED"
    TAAC_ESTIMATE_SUBMITTED = "TAAC_ESTIMATE_SUBMITTED"
    TAAC_ESTIMATE_APPROVED = "TAAC_ESTIMATE_APPROVED"
    TAAC_FINAL_SUBMITTED = "TAAC_FINAL_SUBMITTED"
    TAAC_FINAL_APPROVED = "TAAC_FINAL_APPROVED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class TravellerInput(CostInput):
    name: str | None = None
    taac: str | None = None
    approval_status: ApprovalStatus | str | None = None


@dataclass(frozen=True)
class TravelTraveller:
    id: UUID
    travel_item_id: UUID
    name: str
    taac: str | None
    approval_status: ApprovalStatus
    estimated_cost: Decimal | None
    estimated_currency: str
    estimated_exchange_rate: Decimal | None
    estimated_cost_cad: Decimal | None
    final_cost: Decimal | None
    final_currency: str
    final_exchange_rate: Decimal | None
    final_cost_cad: Decimal | None
    version: int = 1


@dataclass(frozen=True)
class TravelItem:
    id: UUID
    fiscal_year_id: UUID
    name: str
    description: str | None
    emap: str | None
    destination: str | None
    purpose: str | None
    status: PlanStatus
    travel_type: TravelType
    departure_date: date | None
    return_date: date | None
    travellers: tuple[TravelTraveller, ...]
    money_allocations: tuple[MoneyAllocation, ...]
    estimated_total_cad: Decimal
    final_total_cad: Decimal
    created_at: datetime | None
    updated_at: datetime | None
    version: int

    @property
    def total_om(self) -> Decimal:
        return sum((a.om_amount for a in self.money_allocations), Decimal("0"))
