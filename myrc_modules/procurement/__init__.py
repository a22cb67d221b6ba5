"""
Procurement Module (``myrc_modules.procurement``).

Procurement items with vendor quotes, tracking events, attached files, and
the link that creates spending items from procurement data.
"""

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
from myrc_modules.procurement.service import ProcurementEventService, ProcurementService

__all__ = [
    "ProcurementEvent",
    "ProcurementEventService",
    "ProcurementEventType",
    "ProcurementItem",
    "ProcurementQuote",
    "ProcurementService",
    "ProcurementType",
    "QuoteStatus",
    "SpendingLinkResult",
    "TrackingStatus",
]
