"""
Spending Domain Models (``myrc_modules.spending.models``).

Responsibility
--------------
Frozen value objects for spending items, their tracking events, and the
invoices received against them.

Architecture position
---------------------
**Modules layer** -- pure data definitions.  No I/O, no database.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from myrc_kernel.logging_config import get_logger
from myrc_modules._attachments import FileInfo
from myrc_modules._common import MoneyAllocation

logger = get_logger("modules.spending.models")


class SpendingStatus(Enum):
    PLANNING = "PLANNING"
    COMMITTED = "COMMITTED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class SpendingEventType(Enum):
    """Milestones of a spending item that is not tracked through procurement."""

    PENDING = "PENDING"
    ECO_REQUESTED = "ECO_REQUESTED"
    ECO_RECEIVED = "ECO_RECEIVED"
    EXTERNAL_APPROVAL_REQUESTED = "EXTERNAL_APPROVAL_REQUESTED"
    EXTERNAL_APPROVAL_RECEIVED = "EXTERNAL_APPROVAL_RECEIVED"
    SECTION_32_PROVIDED = "SECTION_32_PROVIDED"
    RECEIVED_GOODS_SERVICES = "RECEIVED_GOODS_SERVICES"
    SECTION_34_PROVIDED = "SECTION_34_PROVIDED"
    CREDIT_CARD_CLEARED = "CREDIT_CARD_CLEARED"
    CANCELLED = "CANCELLED"
    ON_HOLD = "ON_HOLD"


@dataclass(frozen=True)
class SpendingItem:
    id: UUID
    fiscal_year_id: UUID
    name: str
    description: str | None
    vendor: str | None
    reference_number: str | None
    amount: Decimal | None
    eco_amount: Decimal | None
    status: SpendingStatus
    currency: str
    exchange_rate: Decimal | None
    category_id: UUID | None
    category_name: str | None
    procurement_item_id: UUID | None
    active: bool
    money_allocations: tuple[MoneyAllocation, ...]
    created_at: datetime | None
    updated_at: datetime | None
    version: int

    @property
    def linked_to_procurement(self) -> bool:
        return self.procurement_item_id is not None

    @property
    def total_cap(self) -> Decimal:
        return sum((a.cap_amount for a in self.money_allocations), Decimal("0"))

    @property
    def total_om(self) -> Decimal:
        return sum((a.om_amount for a in self.money_allocations), Decimal("0"))


@dataclass(frozen=True)
class SpendingEvent:
    id: UUID
    spending_item_id: UUID
    event_type: SpendingEventType
    event_date: date
    comment: str | None
    created_by: str | None
    created_at: datetime | None
    version: int


@dataclass(frozen=True)
class SpendingInvoice:
    """An invoice with its CAD equivalent and attached files (metadata only)."""

    id: UUID
    spending_item_id: UUID
    date_received: date | None
    date_processed: date | None
    comments: str | None
    amount: Decimal
    currency: str
    exchange_rate: Decimal | None
    amount_cad: Decimal | None
    files: tuple[FileInfo, ...] = field(default_factory=tuple)
    created_by: str | None = None
    created_at: datetime | None = None
    version: int = 1
