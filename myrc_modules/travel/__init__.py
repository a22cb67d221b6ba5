"""
Travel Module (``myrc_modules.travel``).

Travel items with travellers, travel authorisation (TAAC) approval
tracking, estimated / final costs and O&M allocations per money.
"""

from myrc_modules.travel.models import (
    ApprovalStatus,
    TravelItem,
    TravelStatus,
    TravelTraveller,
    TravelType,
    TravellerInput,
)
from myrc_modules.travel.service import TravelService

__all__ = [
    "ApprovalStatus",
    "TravelItem",
    "TravelService",
    "TravelStatus",
    "TravelTraveller",
    "TravelType",
    "TravellerInput",
]
