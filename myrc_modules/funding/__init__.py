"""
Funding Module (``myrc_modules.funding``).

Responsibility
--------------
Funding items of a fiscal year: the amounts an RC receives, by source
(business plan, on-ramp, approved deficit), split into CAP and OM across
the fiscal year's monies.

Failure modes
-------------
* Validation and uniqueness failures raise typed kernel exceptions; the
  caller rolls back.
"""

from myrc_modules.funding.models import FundingItem, FundingSource
from myrc_modules.funding.service import FundingAllocationHook, FundingService

__all__ = [
    "FundingAllocationHook",
    "FundingItem",
    "FundingService",
    "FundingSource",
]
