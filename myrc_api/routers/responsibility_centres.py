"""Responsibility centres, RC permissions and the RC audit trail."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter

from myrc_api.dependencies import CurrentUser, Services, Trail
from myrc_api.schemas import (
    CloneRequest,
    GroupGrantRequest,
    PermissionUpdateRequest,
    RCCreateRequest,
    RCUpdateRequest,
    UserGrantRequest,
)

rc_router = APIRouter(prefix="/responsibility-centres", tags=["responsibility-centres"])
permissions_router = APIRouter(prefix="/rc-permissions", tags=["rc-permissions"])
audit_router = APIRouter(prefix="/responsibility-centres/{rc_id}/audit", tags=["audit"])

RC = "RESPONSIBILITY_CENTRE"
PERMISSION = "RC_PERMISSION"


# =============================================================================
# /responsibility-centres
# =============================================================================


@rc_router.get("")
def list_rcs(user: CurrentUser, services: Services):
    return services.rcs.list_for_user(user.username)


@rc_router.post("", status_code=201)
def create_rc(body: RCCreateRequest, user: CurrentUser, services: Services, trail: Trail):
    with trail.track("CREATE", RC, entity_name=body.name, parameters=body.model_dump()) as entry:
        rc = services.rcs.create(user.username, body.name, body.description)
        entry.succeeded(rc.id, rc.name)
    return rc


@rc_router.get("/{rc_id}")
def get_rc(rc_id: UUID, user: CurrentUser, services: Services):
    return services.rcs.get(rc_id, user.username)


@rc_router.put("/{rc_id}")
def update_rc(
    rc_id: UUID, body: RCUpdateRequest, user: CurrentUser, services: Services, trail: Trail
):
    params = body.model_dump(exclude_none=True)
    with trail.track("UPDATE", RC, entity_id=rc_id, rc_id=rc_id, parameters=params) as entry:
        rc = services.rcs.update(
            rc_id,
            user.username,
            expected_version=body.version,
            **body.model_dump(exclude={"version"}),
        )
        entry.succeeded(rc.id, rc.name)
    return rc


@rc_router.delete("/{rc_id}", status_code=204)
def delete_rc(rc_id: UUID, user: CurrentUser, services: Services, trail: Trail):
    with trail.track("DELETE", RC, entity_id=rc_id, rc_id=rc_id):
        services.rcs.delete(rc_id, user.username)


@rc_router.post("/{rc_id}/clone", status_code=201)
def clone_rc(rc_id: UUID, body: CloneRequest, user: CurrentUser, services: Services, trail: Trail):
    with trail.track(
        "CLONE", RC, entity_id=rc_id, rc_id=rc_id, parameters=body.model_dump()
    ) as entry:
        rc = services.cloning.clone_responsibility_centre(rc_id, user.username, body.new_name)
        entry.succeeded(rc.id, rc.name)
    return rc


@rc_router.get("/{rc_id}/access")
def my_access(rc_id: UUID, user: CurrentUser, services: Services):
    level = services.permissions.effective_access(rc_id, user.username)
    return {
        "rc_id": rc_id,
        "access_level": level.value if level is not None else None,
        "can_edit": services.permissions.has_write_access(rc_id, user.username),
        "is_owner": services.permissions.is_owner(rc_id, user.username),
    }


# =============================================================================
# /rc-permissions
# =============================================================================


@permissions_router.get("/rc/{rc_id}")
def list_permissions(rc_id: UUID, user: CurrentUser, services: Services):
    return services.permissions.list_permissions(rc_id, user.username)


@permissions_router.post("/rc/{rc_id}/user", status_code=201)
def grant_user(
    rc_id: UUID, body: UserGrantRequest, user: CurrentUser, services: Services, trail: Trail
):
    with trail.track(
        "GRANT",
        PERMISSION,
        entity_name=body.principal_identifier,
        rc_id=rc_id,
        parameters=body.model_dump(),
    ) as entry:
        grant = services.permissions.grant_user_access(
            rc_id, body.principal_identifier, body.access_level, user.username
        )
        entry.succeeded(grant.id, grant.principal_identifier)
    return grant


@permissions_router.post("/rc/{rc_id}/group", status_code=201)
def grant_group(
    rc_id: UUID, body: GroupGrantRequest, user: CurrentUser, services: Services, trail: Trail
):
    with trail.track(
        "GRANT",
        PERMISSION,
        entity_name=body.principal_identifier,
        rc_id=rc_id,
        parameters=body.model_dump(),
    ) as entry:
        grant = services.permissions.grant_group_access(
            rc_id,
            body.principal_identifier,
            body.principal_display_name,
            body.principal_type,
            body.access_level,
            user.username,
        )
        entry.succeeded(grant.id, grant.principal_identifier)
    return grant


@permissions_router.put("/{access_id}")
def update_permission(
    access_id: UUID,
    body: PermissionUpdateRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "UPDATE", PERMISSION, entity_id=access_id, parameters=body.model_dump()
    ) as entry:
        grant = services.permissions.update_permission(
            access_id, body.access_level, user.username, expected_version=body.version
        )
        entry.succeeded(grant.id, grant.principal_identifier)
    return grant


@permissions_router.delete("/{access_id}", status_code=204)
def revoke_permission(access_id: UUID, user: CurrentUser, services: Services, trail: Trail):
    with trail.track("REVOKE", PERMISSION, entity_id=access_id):
        services.permissions.revoke_access(access_id, user.username)


@permissions_router.get("/rc/{rc_id}/is-owner")
def is_owner(rc_id: UUID, user: CurrentUser, services: Services):
    return {"is_owner": services.permissions.is_owner(rc_id, user.username)}


@permissions_router.get("/rc/{rc_id}/can-edit")
def can_edit(rc_id: UUID, user: CurrentUser, services: Services):
    return {"can_edit": services.permissions.has_write_access(rc_id, user.username)}


# =============================================================================
# /responsibility-centres/{rc_id}/audit
# =============================================================================


@audit_router.get("")
def rc_audit(rc_id: UUID, user: CurrentUser, services: Services):
    return services.audit.list_for_rc(rc_id, user.username)


@audit_router.get("/fiscal-year/{fiscal_year_id}")
def fiscal_year_audit(rc_id: UUID, fiscal_year_id: UUID, user: CurrentUser, services: Services):
    return services.audit.list_for_fiscal_year(rc_id, fiscal_year_id, user.username)
