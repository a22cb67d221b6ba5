"""
Procurement Domain Models (``myrc_modules.procurement.models``).

Responsibility
--------------
Frozen value objects for procurement items (purchase requisitions and
orders), vendor quotes, tracking events, and the result of toggling the
link between a procurement item and spending.

Architecture position
---------------------
**Modules layer** -- pure data definitions.  No I/O, no database.

Invariants enforced
-------------------
* CAD equivalents (``final_price_cad``, ``quoted_price_cad``,
  ``amount_cap_cad``, ``amount_om_cad``) are derived, never client-supplied.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from myrc_kernel.logging_config import get_logger
from myrc_modules._attachments import FileInfo

logger = get_logger("modules.procurement.models")


class TrackingStatus(Enum):
    PLANNING = "PLANNING"
    ON_TRACK = "ON_TRACK"
    AT_RISK = "AT_RISK"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ProcurementType(Enum):
    RC_INITIATED = "RC_INITIATED"
    CENTRALLY_MANAGED = "CENTRALLY_MANAGED"


class QuoteStatus(Enum):
    PENDING = "PENDING"
    UNDER_REVIEW = "UNDER_REVIEW"
    SELECTED = "SELECTED"
    REJECTED = "REJECTED"


class ProcurementEventType(Enum):
    """Milestones of the procurement process."""

    NOT_STARTED = "NOT_STARTED"
    QUOTE = "QUOTE"
    SAM_ACKNOWLEDGEMENT_REQUESTED = "SAM_ACKNOWLEDGEMENT_REQUESTED"
    SAM_ACKNOWLEDGEMENT_RECEIVED = "SAM_ACKNOWLEDGEMENT_RECEIVED"
    PACKAGE_SENT_TO_PROCUREMENT = "PACKAGE_SENT_TO_PROCUREMENT"
    ACKNOWLEDGED_BY_PROCUREMENT = "ACKNOWLEDGED_BY_PROCUREMENT"
    PAUSED = "PAUSED"
    CANCELLED = "CANCELLED"
    CONTRACT_AWARDED = "CONTRACT_AWARDED"
    GOODS_RECEIVED = "GOODS_RECEIVED"
    FULL_INVOICE_RECEIVED = "FULL_INVOICE_RECEIVED"
    PARTIAL_INVOICE_RECEIVED = "PARTIAL_INVOICE_RECEIVED"
    MONTHLY_INVOICE_RECEIVED = "MONTHLY_INVOICE_RECEIVED"
    FULL_INVOICE_SIGNED = "FULL_INVOICE_SIGNED"
    PARTIAL_INVOICE_SIGNED = "PARTIAL_INVOICE_SIGNED"
    MONTHLY_INVOICE_SIGNED = "MONTHLY_INVOICE_SIGNED"
    CONTRACT_AMENDED = "CONTRACT_AMENDED"


@dataclass(frozen=True)
class ProcurementQuote:
    id: UUID
    procurement_item_id: UUID
    vendor_name: str
    vendor_contact: str | None
    quote_reference: str | None
    amount: Decimal | None
    amount_cap: Decimal | None
    amount_om: Decimal | None
    currency: str
    exchange_rate: Decimal | None
    amount_cap_cad: Decimal | None
    amount_om_cad: Decimal | None
    received_date: date | None
    expiry_date: date | None
    notes: str | None
    status: QuoteStatus
    selected: bool
    files: tuple[FileInfo, ...] = field(default_factory=tuple)
    created_at: datetime | None = None
    version: int = 1


@dataclass(frozen=True)
class ProcurementItem:
    """A procurement line; ``quotes`` is only populated by detail reads."""

    id: UUID
    fiscal_year_id: UUID
    purchase_requisition: str | None
    purchase_order: str | None
    name: str
    description: str | None
    vendor: str | None
    contract_number: str | None
    contract_start_date: date | None
    contract_end_date: date | None
    final_price: Decimal | None
    final_price_currency: str
    final_price_exchange_rate: Decimal | None
    final_price_cad: Decimal | None
    quoted_price: Decimal | None
    quoted_price_currency: str
    quoted_price_exchange_rate: Decimal | None
    quoted_price_cad: Decimal | None
    procurement_completed: bool
    procurement_completed_date: date | None
    tracking_status: TrackingStatus
    procurement_type: ProcurementType
    category_id: UUID | None
    category_name: str | None
    linked_spending_item_id: UUID | None
    quotes: tuple[ProcurementQuote, ...]
    created_at: datetime | None
    updated_at: datetime | None
    version: int


@dataclass(frozen=True)
class ProcurementEvent:
    id: UUID
    procurement_item_id: UUID
    event_type: ProcurementEventType
    event_date: date
    comment: str | None
    old_status: str | None
    new_status: str | None
    created_by: str | None
    files: tuple[FileInfo, ...] = field(default_factory=tuple)
    created_at: datetime | None = None
    version: int = 1


@dataclass(frozen=True)
class SpendingLinkResult:
    """Outcome of toggling the spending link of a procurement item.

    ``warning`` is set (and nothing changed) when unlinking would discard a
    spending item that has been edited since it was created.
    """

    item: ProcurementItem
    linked: bool
    warning: str | None = None
    spending_item_id: UUID | None = None

    @property
    def changed(self) -> bool:
        return self.warning is None
