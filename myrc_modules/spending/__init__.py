"""
Spending Module (``myrc_modules.spending``).

Spending items with CAP / OM allocations per money, tracking events for
items handled outside procurement, and invoices with attached files.
"""

from myrc_modules.spending.models import (
    SpendingEvent,
    SpendingEventType,
    SpendingInvoice,
    SpendingItem,
    SpendingStatus,
)
from myrc_modules.spending.service import SpendingAllocationHook, SpendingService

__all__ = [
    "SpendingAllocationHook",
    "SpendingEvent",
    "SpendingEventType",
    "SpendingInvoice",
    "SpendingItem",
    "SpendingService",
    "SpendingStatus",
]
