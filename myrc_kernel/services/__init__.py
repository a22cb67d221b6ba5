"""Services for the myRC kernel."""

from myrc_kernel.services.audit_service import AuditService
from myrc_kernel.services.base import BaseService
from myrc_kernel.services.category_service import DEFAULT_CATEGORIES, CategoryService
from myrc_kernel.services.directory_service import (
    DirectoryGroup,
    DirectoryService,
    DirectoryUser,
)
from myrc_kernel.services.fiscal_year_service import FiscalYearService
from myrc_kernel.services.money_service import MoneyAllocationHook, MoneyService
from myrc_kernel.services.permission_service import PermissionService
from myrc_kernel.services.responsibility_centre_service import ResponsibilityCentreService
from myrc_kernel.services.user_service import AccountPolicy, UserService

__all__ = [
    "AccountPolicy",
    "AuditService",
    "BaseService",
    "CategoryService",
    "DEFAULT_CATEGORIES",
    "DirectoryGroup",
    "DirectoryService",
    "DirectoryUser",
    "FiscalYearService",
    "MoneyAllocationHook",
    "MoneyService",
    "PermissionService",
    "ResponsibilityCentreService",
    "UserService",
]
