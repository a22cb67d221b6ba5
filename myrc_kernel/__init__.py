"""
myRC Kernel

Core of the budget and procurement tracker:
- Users, directory lookups and RC access control
- Responsibility Centres and Fiscal Years
- Fiscal-year reference data (monies, categories)
- Audit trail of mutating requests
- Optimistic locking through row version columns
"""

__version__ = "0.1.0"
