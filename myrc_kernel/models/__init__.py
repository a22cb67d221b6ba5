"""Domain models for the myRC kernel."""

from myrc_kernel.models.audit_event import AuditEvent, AuditOutcome
from myrc_kernel.models.category import Category, FundingType
from myrc_kernel.models.fiscal_year import FiscalYear
from myrc_kernel.models.money import (
    DEFAULT_MONEY_CODE,
    DEFAULT_MONEY_DESCRIPTION,
    DEFAULT_MONEY_NAME,
    Money,
)
from myrc_kernel.models.responsibility_centre import (
    DEMO_RC_NAME,
    AccessLevel,
    PrincipalType,
    RCAccess,
    ResponsibilityCentre,
)
from myrc_kernel.models.user import AuthProvider, Theme, User

__all__ = [
    "AccessLevel",
    "AuditEvent",
    "AuditOutcome",
    "AuthProvider",
    "Category",
    "DEFAULT_MONEY_CODE",
    "DEFAULT_MONEY_DESCRIPTION",
    "DEFAULT_MONEY_NAME",
    "DEMO_RC_NAME",
    "FiscalYear",
    "FundingType",
    "Money",
    "PrincipalType",
    "RCAccess",
    "ResponsibilityCentre",
    "Theme",
    "User",
]
