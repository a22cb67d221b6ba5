"""
Service layer for Responsibility Centres.

Lists the RCs visible to a user, creates them (the creator becomes the
original owner), and lets owners rename, reconfigure or delete them.
Cloning an RC needs every module and lives in ``myrc_services.cloning``.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from myrc_kernel.domain.dtos import ResponsibilityCentreView
from myrc_kernel.exceptions import (
    DuplicateNameError,
    ResponsibilityCentreNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from myrc_kernel.logging_config import get_logger
from myrc_kernel.models.responsibility_centre import (
    DEMO_RC_NAME,
    AccessLevel,
    PrincipalType,
    RCAccess,
    ResponsibilityCentre,
)
from myrc_kernel.models.user import User
from myrc_kernel.services.base import BaseService
from myrc_kernel.services.permission_service import PermissionService

logger = get_logger("services.responsibility_centre")

DUPLICATE_RC_MESSAGE = (
    "A Responsibility Centre with this name already exists. RC names must be unique."
)


class ResponsibilityCentreService(BaseService[ResponsibilityCentre]):
    """
    RC lifecycle.

    Contract:
        Every method takes the acting ``username`` and returns views carrying
        that user's effective access level.

    Guarantees:
        - RC names are globally unique (checked before flush, enforced by a
          unique constraint).
        - Deleting an RC removes its fiscal years and everything below them.
    """

    def __init__(self, session, permissions: PermissionService | None = None):
        super().__init__(session)
        self.permissions = permissions or PermissionService(session)

    def _user(self, username: str) -> User:
        user = self.session.execute(
            select(User).where(User.username == username)
        ).scalar_one_or_none()
        if user is None:
            raise UserNotFoundError(username)
        return user

    def _name_taken(self, name: str, exclude_id: UUID | None = None) -> bool:
        stmt = select(ResponsibilityCentre.id).where(ResponsibilityCentre.name == name)
        if exclude_id is not None:
            stmt = stmt.where(ResponsibilityCentre.id != exclude_id)
        return self.session.execute(stmt).first() is not None

    def _view(self, rc: ResponsibilityCentre, username: str) -> ResponsibilityCentreView:
        level = self.permissions.access_for(rc, username)
        return ResponsibilityCentreView.from_model(rc, level, username)

    def list_for_user(self, username: str) -> list[ResponsibilityCentreView]:
        """
        RCs the user can see: owned first, then direct user grants, then
        group / distribution-list grants, then the Demo RC.  Each RC appears
        once with the user's best access level.
        """
        ordered: dict[UUID, ResponsibilityCentre] = {}

        owned = self.session.execute(
            select(ResponsibilityCentre)
            .join(User, ResponsibilityCentre.owner_id == User.id)
            .where(User.username == username)
            .order_by(ResponsibilityCentre.name)
        ).scalars()
        for rc in owned:
            ordered.setdefault(rc.id, rc)

        groups = self.permissions.directory.groups_for(username)
        user_rows = self.session.execute(
            select(RCAccess).where(
                RCAccess.principal_type == PrincipalType.USER.value,
                RCAccess.principal_identifier == username,
            )
        ).scalars()
        for access in user_rows:
            ordered.setdefault(access.rc_id, access.rc)

        if groups:
            group_rows = self.session.execute(
                select(RCAccess).where(
                    RCAccess.principal_type != PrincipalType.USER.value,
                    RCAccess.principal_identifier.in_(groups),
                )
            ).scalars()
            for access in group_rows:
                ordered.setdefault(access.rc_id, access.rc)

        demo = self.session.execute(
            select(ResponsibilityCentre).where(ResponsibilityCentre.name == DEMO_RC_NAME)
        ).scalar_one_or_none()
        if demo is not None:
            ordered.setdefault(demo.id, demo)

        return [self._view(rc, username) for rc in ordered.values()]

    def get(self, rc_id: UUID, username: str) -> ResponsibilityCentreView:
        rc = self.permissions.require_read(rc_id, username)
        return self._view(rc, username)

    def create(self, username: str, name: str, description: str | None = None) -> ResponsibilityCentreView:
        """
        Raises:
            ValidationError: blank name.
            DuplicateNameError: name already used by any RC.
        """
        if not name or not name.strip():
            raise ValidationError("Name is required", field="name")
        name = name.strip()
        owner = self._user(username)
        if self._name_taken(name):
            raise DuplicateNameError("Responsibility Centre", name, DUPLICATE_RC_MESSAGE)

        rc = ResponsibilityCentre(
            name=name,
            description=description,
            owner=owner,
            created_by=username,
        )
        self.session.add(rc)
        self._flush(rc)
        logger.info("rc_created", extra={"rc_id": str(rc.id), "rc_name": name, "owner": username})
        return ResponsibilityCentreView.from_model(
            rc, AccessLevel.READ_ONLY if rc.is_demo else AccessLevel.OWNER, username
        )

    def update(
        self,
        rc_id: UUID,
        username: str,
        *,
        name: str | None = None,
        description: str | None = None,
        active: bool | None = None,
        training_enabled: bool | None = None,
        travel_enabled: bool | None = None,
        training_include_in_summary: bool | None = None,
        travel_include_in_summary: bool | None = None,
        expected_version: int | None = None,
    ) -> ResponsibilityCentreView:
        rc = self.permissions.require_owner(rc_id, username)
        self._check_version(rc, expected_version)

        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Name is required", field="name")
            if name != rc.name and self._name_taken(name, exclude_id=rc.id):
                raise DuplicateNameError("Responsibility Centre", name, DUPLICATE_RC_MESSAGE)
            rc.name = name
        if description is not None:
            rc.description = description
        if active is not None:
            rc.active = active
        if training_enabled is not None:
            rc.training_enabled = training_enabled
        if travel_enabled is not None:
            rc.travel_enabled = travel_enabled
        if training_include_in_summary is not None:
            rc.training_include_in_summary = training_include_in_summary
        if travel_include_in_summary is not None:
            rc.travel_include_in_summary = travel_include_in_summary
        rc.updated_by = username

        self._flush(rc)
        logger.info("rc_updated", extra={"rc_id": str(rc.id), "rc_name": rc.name})
        return self._view(rc, username)

    def delete(self, rc_id: UUID, username: str) -> None:
        rc = self.permissions.require_owner(rc_id, username)
        name = rc.name
        self.session.delete(rc)
        self._flush()
        logger.info("rc_deleted", extra={"rc_id": str(rc_id), "rc_name": name})

    def get_model(self, rc_id: UUID) -> ResponsibilityCentre:
        rc = self.session.get(ResponsibilityCentre, rc_id)
        if rc is None:
            raise ResponsibilityCentreNotFoundError(rc_id)
        return rc
