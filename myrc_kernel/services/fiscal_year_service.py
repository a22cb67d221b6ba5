"""
FiscalYearService -- budget periods of a Responsibility Centre.

Responsibility:
    Lists, creates, renames and deletes fiscal years; maintains their display
    settings and active flag.  A new fiscal year is seeded with the default
    AB money and the default categories.

Architecture position:
    Kernel > Services.  Uses MoneyService and CategoryService for seeding.
    Deep cloning spans every module and lives in ``myrc_services.cloning``.

Invariants enforced:
    - Names are unique per RC.
    - on_target_min / on_target_max stay within [-100, 100] and min <= max.
    - Only the RC owner changes display settings or toggles ``active``.
    - An inactive fiscal year accepts no change except toggling it back.

Failure modes:
    - ValidationError, DuplicateNameError, FiscalYearNotFoundError,
      AccessDeniedError, FiscalYearInactiveError.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from myrc_kernel.domain.dtos import FiscalYearView
from myrc_kernel.exceptions import DuplicateNameError, ValidationError
from myrc_kernel.logging_config import get_logger
from myrc_kernel.models.fiscal_year import ON_TARGET_LIMIT, FiscalYear
from myrc_kernel.models.responsibility_centre import ResponsibilityCentre
from myrc_kernel.services.base import BaseService
from myrc_kernel.services.category_service import CategoryService
from myrc_kernel.services.money_service import MoneyService
from myrc_kernel.services.permission_service import PermissionService

logger = get_logger("services.fiscal_year")

DUPLICATE_FY_MESSAGE = "A Fiscal Year with this name already exists for this RC"


def clamp_on_target(value: int) -> int:
    """Clamp an on-target threshold (percent) into [-100, 100]."""
    return max(-ON_TARGET_LIMIT, min(ON_TARGET_LIMIT, int(value)))


class FiscalYearService(BaseService[FiscalYear]):
    """
    Fiscal-year lifecycle within an RC.

    Contract:
        Reads need RC read access; create / update / delete need write
        access; display settings and toggle_active need ownership.
    """

    def __init__(
        self,
        session: Session,
        permissions: PermissionService | None = None,
        monies: MoneyService | None = None,
        categories: CategoryService | None = None,
    ):
        super().__init__(session)
        self.permissions = permissions or PermissionService(session)
        self.monies = monies or MoneyService(session, self.permissions)
        self.categories = categories or CategoryService(session, self.permissions)

    @staticmethod
    def _name_taken(rc: ResponsibilityCentre, name: str, exclude_id: UUID | None = None) -> bool:
        return any(fy.name == name and fy.id != exclude_id for fy in rc.fiscal_years)

    def list_fiscal_years(self, rc_id: UUID, username: str) -> list[FiscalYearView]:
        rc = self.permissions.require_read(rc_id, username)
        return [FiscalYearView.from_model(fy) for fy in rc.fiscal_years]

    def get(self, rc_id: UUID, fiscal_year_id: UUID, username: str) -> FiscalYearView:
        fy = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username)
        return FiscalYearView.from_model(fy)

    def get_model(self, rc_id: UUID, fiscal_year_id: UUID, username: str) -> FiscalYear:
        return self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username)

    def create(
        self,
        rc_id: UUID,
        username: str,
        name: str,
        description: str | None = None,
    ) -> FiscalYearView:
        """
        Create a fiscal year with its default money and categories.

        Raises:
            ValidationError: blank name.
            DuplicateNameError: name already used in the RC.
        """
        rc = self.permissions.require_write(rc_id, username)
        if not name or not name.strip():
            raise ValidationError("Name is required", field="name")
        name = name.strip()
        if self._name_taken(rc, name):
            raise DuplicateNameError("Fiscal Year", name, DUPLICATE_FY_MESSAGE)

        fy = FiscalYear(name=name, description=description, active=True, created_by=username)
        rc.fiscal_years.append(fy)
        self._flush(fy)
        self.monies.ensure_default_money(fy, username)
        self.categories.seed_defaults(fy, username)
        logger.info(
            "fiscal_year_created",
            extra={"rc_id": str(rc.id), "fiscal_year_id": str(fy.id), "fiscal_year_name": name},
        )
        return FiscalYearView.from_model(fy)

    def update(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        username: str,
        *,
        name: str | None = None,
        description: str | None = None,
        expected_version: int | None = None,
    ) -> FiscalYearView:
        fy = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username, "WRITE")
        self._check_version(fy, expected_version)
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Name is required", field="name")
            if name != fy.name and self._name_taken(fy.rc, name, exclude_id=fy.id):
                raise DuplicateNameError("Fiscal Year", name, DUPLICATE_FY_MESSAGE)
            fy.name = name
        if description is not None:
            fy.description = description
        fy.updated_by = username
        self._flush(fy)
        logger.info("fiscal_year_updated", extra={"fiscal_year_id": str(fy.id)})
        return FiscalYearView.from_model(fy)

    def delete(self, rc_id: UUID, fiscal_year_id: UUID, username: str) -> None:
        fy = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username, "WRITE")
        name = fy.name
        fy.rc.fiscal_years.remove(fy)
        self._flush()
        logger.info(
            "fiscal_year_deleted",
            extra={"rc_id": str(rc_id), "fiscal_year_id": str(fiscal_year_id), "fiscal_year_name": name},
        )

    def update_display_settings(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        username: str,
        *,
        show_search_box: bool | None = None,
        show_category_filter: bool | None = None,
        group_by_category: bool | None = None,
        on_target_min: int | None = None,
        on_target_max: int | None = None,
    ) -> FiscalYearView:
        fy = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username, "OWNER")

        new_min = clamp_on_target(on_target_min) if on_target_min is not None else fy.on_target_min
        new_max = clamp_on_target(on_target_max) if on_target_max is not None else fy.on_target_max
        if new_min > new_max:
            raise ValidationError(
                "On-target minimum cannot be greater than on-target maximum",
                field="on_target_min",
            )

        if show_search_box is not None:
            fy.show_search_box = show_search_box
        if show_category_filter is not None:
            fy.show_category_filter = show_category_filter
        if group_by_category is not None:
            fy.group_by_category = group_by_category
        fy.on_target_min = new_min
        fy.on_target_max = new_max
        fy.updated_by = username

        self._flush(fy)
        logger.info(
            "fiscal_year_display_settings_updated",
            extra={
                "fiscal_year_id": str(fy.id),
                "show_search_box": fy.show_search_box,
                "show_category_filter": fy.show_category_filter,
                "group_by_category": fy.group_by_category,
                "on_target_min": fy.on_target_min,
                "on_target_max": fy.on_target_max,
            },
        )
        return FiscalYearView.from_model(fy)

    def toggle_active(self, rc_id: UUID, fiscal_year_id: UUID, username: str) -> FiscalYearView:
        fy = self.permissions.require_fiscal_year(
            rc_id, fiscal_year_id, username, "OWNER", allow_inactive=True
        )
        fy.active = not fy.active
        fy.updated_by = username
        self._flush(fy)
        logger.info(
            "fiscal_year_active_toggled",
            extra={"fiscal_year_id": str(fy.id), "active": fy.active},
        )
        return FiscalYearView.from_model(fy)
