"""
PermissionService -- effective access resolution and RC sharing.

Responsibility:
    Decides what a user may do on a Responsibility Centre and manages the
    access rows that share an RC with users, groups and distribution lists.

Architecture position:
    Kernel > Services.  Every other RC-scoped service (fiscal years, monies,
    categories, modules) authorizes through ``require_read`` /
    ``require_write`` / ``require_owner``.

Invariants enforced:
    - Access rank: OWNER (3) > READ_WRITE (2) > READ_ONLY (1).
    - The RC creator ("original owner") is always OWNER and cannot be
      demoted or revoked.
    - An RC never loses its last owner.  The effective owner count is the
      number of explicit OWNER rows, plus one when the original owner has no
      explicit OWNER row.
    - The Demo RC is READ_ONLY for everyone and its permissions are frozen.

Failure modes:
    - ResponsibilityCentreNotFoundError: unknown RC.
    - AccessDeniedError: caller below the required level.
    - DemoRCProtectedError, LastOwnerError, OriginalOwnerProtectedError.
    - DuplicateNameError: principal already has a row on the RC.
    - UserNotFoundError: USER principal unknown locally and in the directory.

Audit relevance:
    Each grant records ``granted_by`` / ``granted_at``; every grant, update
    and revoke is logged.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from myrc_kernel.db.base import utcnow
from myrc_kernel.domain.dtos import PermissionEntry
from myrc_kernel.exceptions import (
    AccessDeniedError,
    DemoRCProtectedError,
    DuplicateNameError,
    FiscalYearInactiveError,
    FiscalYearNotFoundError,
    InvalidEnumValueError,
    LastOwnerError,
    NotFoundError,
    OriginalOwnerProtectedError,
    ResponsibilityCentreNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from myrc_kernel.logging_config import get_logger
from myrc_kernel.models.fiscal_year import FiscalYear
from myrc_kernel.models.responsibility_centre import (
    AccessLevel,
    PrincipalType,
    RCAccess,
    ResponsibilityCentre,
)
from myrc_kernel.models.user import User
from myrc_kernel.services.base import BaseService
from myrc_kernel.services.directory_service import DirectoryService

logger = get_logger("services.permission")

_DENIED_MESSAGES = {
    "READ": "User does not have access to this Responsibility Centre",
    "WRITE": "User does not have write access to this Responsibility Centre",
    "OWNER": "Only owners can manage this Responsibility Centre",
}


def parse_access_level(value: AccessLevel | str) -> AccessLevel:
    try:
        return AccessLevel(str(getattr(value, "value", value)).upper())
    except ValueError as exc:
        raise InvalidEnumValueError("access level", value, "access_level") from exc


def parse_principal_type(value: PrincipalType | str) -> PrincipalType:
    try:
        return PrincipalType(str(getattr(value, "value", value)).upper())
    except ValueError as exc:
        raise InvalidEnumValueError("principal type", value, "principal_type") from exc


def _principal_label(principal_type: PrincipalType) -> str:
    return {
        PrincipalType.USER: "User",
        PrincipalType.GROUP: "Group",
        PrincipalType.DISTRIBUTION_LIST: "Distribution list",
    }[principal_type]


class PermissionService(BaseService[RCAccess]):
    """
    Access checks and access-row management.

    Contract:
        Check methods (``has_*``, ``is_owner``) never raise for unknown RCs;
        ``require_*`` methods return the ORM RC for kernel-internal callers
        and raise on failure.

    Guarantees:
        - Group memberships come from the injected ``DirectoryService``.
    """

    def __init__(self, session: Session, directory: DirectoryService | None = None):
        super().__init__(session)
        self.directory = directory or DirectoryService(session)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _load_rc(self, rc_id: UUID) -> ResponsibilityCentre:
        rc = self.session.get(ResponsibilityCentre, rc_id)
        if rc is None:
            raise ResponsibilityCentreNotFoundError(rc_id)
        return rc

    def principals_for(self, username: str) -> set[str]:
        """The username plus every group / distribution list it belongs to."""
        return {username} | self.directory.groups_for(username)

    def access_for(self, rc: ResponsibilityCentre, username: str) -> AccessLevel | None:
        """Effective access of ``username`` on an already-loaded RC."""
        if rc.is_demo:
            return AccessLevel.READ_ONLY
        if rc.owner_username == username:
            return AccessLevel.OWNER

        principals = self.principals_for(username)
        levels = [
            entry.level
            for entry in rc.access_entries
            if entry.principal_identifier in principals
            and (
                entry.principal_type != PrincipalType.USER.value
                or entry.principal_identifier == username
            )
        ]
        if not levels:
            return None
        return max(levels, key=lambda level: level.rank)

    def effective_access(self, rc_id: UUID, username: str) -> AccessLevel | None:
        rc = self.session.get(ResponsibilityCentre, rc_id)
        if rc is None:
            return None
        return self.access_for(rc, username)

    def has_access(self, rc_id: UUID, username: str) -> bool:
        return self.effective_access(rc_id, username) is not None

    def has_write_access(self, rc_id: UUID, username: str) -> bool:
        level = self.effective_access(rc_id, username)
        return level is not None and level.can_write

    can_edit_content = has_write_access

    def is_owner(self, rc_id: UUID, username: str) -> bool:
        return self.effective_access(rc_id, username) is AccessLevel.OWNER

    can_manage_rc = is_owner

    def _require(self, rc_id: UUID, username: str, required: str) -> ResponsibilityCentre:
        rc = self._load_rc(rc_id)
        level = self.access_for(rc, username)
        if required == "READ":
            allowed = level is not None
        elif required == "WRITE":
            allowed = level is not None and level.can_write
        else:
            allowed = level is AccessLevel.OWNER
        if not allowed:
            logger.warning(
                "access_denied",
                extra={
                    "rc_id": str(rc_id),
                    "username": username,
                    "required": required,
                    "actual": level.value if level else None,
                },
            )
            raise AccessDeniedError(rc_id, username, required, _DENIED_MESSAGES[required])
        return rc

    def require_read(self, rc_id: UUID, username: str) -> ResponsibilityCentre:
        return self._require(rc_id, username, "READ")

    def require_write(self, rc_id: UUID, username: str) -> ResponsibilityCentre:
        return self._require(rc_id, username, "WRITE")

    def require_owner(self, rc_id: UUID, username: str) -> ResponsibilityCentre:
        return self._require(rc_id, username, "OWNER")

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_permissions(self, rc_id: UUID, username: str) -> list[PermissionEntry]:
        """
        Access rows on the RC, preceded by a synthetic OWNER entry for the
        original owner when no explicit OWNER row exists for them.
        """
        rc = self.require_owner(rc_id, username)
        owner = rc.owner_username
        entries = sorted(rc.access_entries, key=lambda a: (a.granted_at, a.principal_identifier))
        result: list[PermissionEntry] = []
        has_owner_row = any(
            a.principal_type == PrincipalType.USER.value
            and a.principal_identifier == owner
            and a.access_level == AccessLevel.OWNER.value
            for a in entries
        )
        if not has_owner_row:
            result.append(
                PermissionEntry(
                    id=None,
                    rc_id=rc.id,
                    principal_identifier=owner,
                    principal_display_name=rc.owner.full_name or owner,
                    principal_type=PrincipalType.USER.value,
                    access_level=AccessLevel.OWNER.value,
                    granted_at=rc.created_at,
                    granted_by=None,
                    is_original_owner=True,
                )
            )
        result.extend(PermissionEntry.from_model(a, owner) for a in entries)
        return result

    def list_for_principal(self, rc_id: UUID, principal_identifier: str) -> list[PermissionEntry]:
        rc = self._load_rc(rc_id)
        return [
            PermissionEntry.from_model(a, rc.owner_username)
            for a in rc.access_entries
            if a.principal_identifier == principal_identifier
        ]

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------

    def _require_manageable(self, rc_id: UUID, actor: str) -> ResponsibilityCentre:
        rc = self._load_rc(rc_id)
        if rc.is_demo:
            raise DemoRCProtectedError()
        return self.require_owner(rc_id, actor)

    def _existing(
        self, rc: ResponsibilityCentre, identifier: str, principal_type: PrincipalType
    ) -> RCAccess | None:
        for entry in rc.access_entries:
            if (
                entry.principal_type == principal_type.value
                and entry.principal_identifier.lower() == identifier.lower()
            ):
                return entry
        return None

    @staticmethod
    def _duplicate(
        identifier: str, principal_type: PrincipalType, existing: RCAccess, requested: AccessLevel
    ) -> DuplicateNameError:
        label = _principal_label(principal_type)
        if existing.level is requested:
            message = f"{label} '{identifier}' already has {requested.value} access to this RC."
        else:
            message = (
                f"{label} '{identifier}' already has {existing.access_level} access to this RC. "
                "Use update to change the access level."
            )
        return DuplicateNameError("access", identifier, message)

    def grant_user_access(
        self,
        rc_id: UUID,
        principal_identifier: str,
        access_level: AccessLevel | str,
        actor: str,
    ) -> PermissionEntry:
        """
        Share the RC with a single user.

        Preconditions:
            - ``actor`` is an owner; the RC is not Demo.
        Raises:
            UserNotFoundError: not a local account nor a directory user.
            DuplicateNameError: the user already has a row on the RC.
            OriginalOwnerProtectedError: non-OWNER level for the creator.
        """
        level = parse_access_level(access_level)
        rc = self._require_manageable(rc_id, actor)
        if not principal_identifier or not principal_identifier.strip():
            raise ValidationError("Principal identifier is required", field="principal_identifier")

        local = self.session.execute(
            select(User).where(User.username == principal_identifier)
        ).scalar_one_or_none()
        if local is not None:
            identifier = local.username
            display_name = local.full_name or local.username
        else:
            match = self.directory.find_principal(principal_identifier, PrincipalType.USER)
            if match is None:
                raise UserNotFoundError(principal_identifier)
            identifier = match.identifier
            display_name = match.display_name

        existing = self._existing(rc, identifier, PrincipalType.USER)
        if existing is not None:
            raise self._duplicate(principal_identifier, PrincipalType.USER, existing, level)
        if identifier == rc.owner_username and level is not AccessLevel.OWNER:
            raise OriginalOwnerProtectedError(
                rc.id, "Cannot change access level for the original RC owner"
            )

        access = RCAccess(
            rc=rc,
            user_id=local.id if local is not None else None,
            principal_identifier=identifier,
            principal_display_name=display_name,
            principal_type=PrincipalType.USER.value,
            access_level=level.value,
            granted_at=utcnow(),
            granted_by=actor,
            created_by=actor,
        )
        self.session.add(access)
        self._flush(access)
        logger.info(
            "rc_access_granted",
            extra={
                "rc_id": str(rc.id),
                "principal": identifier,
                "principal_type": PrincipalType.USER.value,
                "access_level": level.value,
                "granted_by": actor,
            },
        )
        return PermissionEntry.from_model(access, rc.owner_username)

    def grant_group_access(
        self,
        rc_id: UUID,
        principal_identifier: str,
        principal_display_name: str | None,
        principal_type: PrincipalType | str,
        access_level: AccessLevel | str,
        actor: str,
    ) -> PermissionEntry:
        ptype = parse_principal_type(principal_type)
        if ptype is PrincipalType.USER:
            raise ValidationError("Use grant_user_access for USER principals", field="principal_type")
        level = parse_access_level(access_level)
        rc = self._require_manageable(rc_id, actor)
        if not principal_identifier or not principal_identifier.strip():
            raise ValidationError("Principal identifier is required", field="principal_identifier")

        existing = self._existing(rc, principal_identifier, ptype)
        if existing is not None:
            raise self._duplicate(principal_identifier, ptype, existing, level)

        match = self.directory.find_principal(principal_identifier, ptype)
        access = RCAccess(
            rc=rc,
            user_id=None,
            principal_identifier=match.identifier if match else principal_identifier,
            principal_display_name=principal_display_name
            or (match.display_name if match else principal_identifier),
            principal_type=ptype.value,
            access_level=level.value,
            granted_at=utcnow(),
            granted_by=actor,
            created_by=actor,
        )
        self.session.add(access)
        self._flush(access)
        logger.info(
            "rc_access_granted",
            extra={
                "rc_id": str(rc.id),
                "principal": access.principal_identifier,
                "principal_type": ptype.value,
                "access_level": level.value,
                "granted_by": actor,
            },
        )
        return PermissionEntry.from_model(access, rc.owner_username)

    # ------------------------------------------------------------------
    # Update / revoke
    # ------------------------------------------------------------------

    def _load_access(self, access_id: UUID) -> RCAccess:
        access = self.session.get(RCAccess, access_id)
        if access is None:
            raise NotFoundError("Access record", access_id)
        return access

    @staticmethod
    def _is_original_owner_row(access: RCAccess, rc: ResponsibilityCentre) -> bool:
        return (
            access.principal_type == PrincipalType.USER.value
            and access.principal_identifier == rc.owner_username
        )

    def effective_owner_count(self, rc: ResponsibilityCentre) -> int:
        owner_rows = [a for a in rc.access_entries if a.access_level == AccessLevel.OWNER.value]
        has_original = any(self._is_original_owner_row(a, rc) for a in owner_rows)
        return len(owner_rows) if has_original else len(owner_rows) + 1

    def _guard_owner_removal(
        self, access: RCAccess, rc: ResponsibilityCentre, actor: str, verb: str
    ) -> None:
        if self.effective_owner_count(rc) > 1:
            return
        is_self = (
            access.principal_type == PrincipalType.USER.value
            and access.principal_identifier == actor
        )
        if is_self:
            raise LastOwnerError(
                rc.id,
                f"Cannot {verb} your own owner permissions when you are the sole owner. "
                "Grant owner access to another user first.",
            )
        raise LastOwnerError(rc.id, "Cannot remove the last owner from an RC")

    def update_permission(
        self,
        access_id: UUID,
        access_level: AccessLevel | str,
        actor: str,
        expected_version: int | None = None,
    ) -> PermissionEntry:
        level = parse_access_level(access_level)
        access = self._load_access(access_id)
        rc = self._require_manageable(access.rc_id, actor)
        self._check_version(access, expected_version)

        if access.level is AccessLevel.OWNER and level is not AccessLevel.OWNER:
            self._guard_owner_removal(access, rc, actor, "demote")
        if self._is_original_owner_row(access, rc):
            raise OriginalOwnerProtectedError(
                rc.id, "Cannot change access level for the original RC owner"
            )

        previous = access.access_level
        access.access_level = level.value
        access.updated_by = actor
        self._flush(access)
        logger.info(
            "rc_access_updated",
            extra={
                "rc_id": str(rc.id),
                "access_id": str(access.id),
                "from_level": previous,
                "to_level": level.value,
            },
        )
        return PermissionEntry.from_model(access, rc.owner_username)

    def revoke_access(self, access_id: UUID, actor: str) -> None:
        access = self._load_access(access_id)
        rc = self._require_manageable(access.rc_id, actor)

        if self._is_original_owner_row(access, rc):
            raise OriginalOwnerProtectedError(
                rc.id, "Cannot revoke access for the original RC owner"
            )
        if access.level is AccessLevel.OWNER:
            self._guard_owner_removal(access, rc, actor, "remove")

        rc.access_entries.remove(access)
        self._flush()
        logger.info(
            "rc_access_revoked",
            extra={
                "rc_id": str(rc.id),
                "access_id": str(access_id),
                "principal": access.principal_identifier,
            },
        )

    # ------------------------------------------------------------------
    # Fiscal-year scope
    # ------------------------------------------------------------------

    def require_fiscal_year(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        username: str,
        required: str = "READ",
        allow_inactive: bool = False,
    ) -> FiscalYear:
        """
        Load a fiscal year through its RC and authorize the caller.

        Preconditions:
            - ``required`` is READ, WRITE or OWNER.
        Raises:
            FiscalYearNotFoundError: unknown FY or FY of another RC.
            AccessDeniedError: caller below ``required`` on the RC.
            FiscalYearInactiveError: mutation (WRITE / OWNER) on an inactive
                FY, unless ``allow_inactive``.
        """
        self._require(rc_id, username, required)
        fy = self.session.get(FiscalYear, fiscal_year_id)
        if fy is None or fy.rc_id != rc_id:
            raise FiscalYearNotFoundError(fiscal_year_id)
        if required != "READ" and not fy.active and not allow_inactive:
            logger.warning(
                "fiscal_year_inactive_rejected",
                extra={"fiscal_year_id": str(fiscal_year_id), "username": username},
            )
            raise FiscalYearInactiveError(fiscal_year_id)
        return fy
