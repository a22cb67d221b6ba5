"""
Accounts, directory and reference-data routes.

``/auth`` is partly anonymous (login methods, registration, username
check); ``/users`` administration needs the ADMIN role except for the
caller's own profile, theme and password.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query

from myrc_api.dependencies import AdminUser, Config, CurrentUser, Services, Trail
from myrc_api.schemas import (
    PasswordChangeRequest,
    PasswordResetRequest,
    RegisterRequest,
    ThemeRequest,
    UserCreateRequest,
    UserUpdateRequest,
)
from myrc_kernel.domain.currency import default_currency, list_currencies
from myrc_kernel.logging_config import get_logger

logger = get_logger("api.accounts")

auth_router = APIRouter(prefix="/auth", tags=["auth"])
users_router = APIRouter(prefix="/users", tags=["users"])
directory_router = APIRouter(prefix="/directory", tags=["directory"])
currencies_router = APIRouter(prefix="/currencies", tags=["currencies"])


# =============================================================================
# /auth
# =============================================================================


@auth_router.get("/login-methods")
def login_methods(config: Config):
    methods = config.login_methods
    return {
        "app_account": {
            "enabled": methods.app_account_enabled,
            "allow_registration": methods.allow_registration,
        },
        "ldap": {"enabled": methods.ldap_enabled},
        "oauth2": {"enabled": methods.oauth2_enabled},
    }


@auth_router.post("/register", status_code=201)
def register(body: RegisterRequest, services: Services):
    user = services.users.register(body.username, body.password, body.email, body.full_name)
    logger.info("user_registered", extra={"username": user.username})
    return user


@auth_router.get("/check-username/{username}")
def check_username(username: str, services: Services):
    return {"username": username, "available": services.users.is_username_available(username)}


@auth_router.get("/me")
def auth_me(user: CurrentUser):
    return user


# =============================================================================
# /users -- own profile
# =============================================================================


@users_router.get("/me")
def get_me(user: CurrentUser):
    return user


@users_router.get("/me/theme")
def get_theme(user: CurrentUser, services: Services):
    return {"theme": services.users.get_theme(user.username)}


@users_router.put("/me/theme")
def update_theme(body: ThemeRequest, user: CurrentUser, services: Services):
    return {"theme": services.users.update_theme(user.username, body.theme)}


@users_router.put("/me/password", status_code=204)
def change_password(body: PasswordChangeRequest, user: CurrentUser, services: Services, trail: Trail):
    with trail.track("CHANGE_PASSWORD", "USER", entity_id=user.id, entity_name=user.username):
        services.users.change_password(user.id, body.current_password, body.new_password)


# =============================================================================
# /users -- administration
# =============================================================================


@users_router.get("")
def list_users(admin: AdminUser, services: Services, enabled_only: bool = False):
    if enabled_only:
        return services.users.list_enabled()
    return services.users.list_users()


@users_router.get("/stats")
def user_stats(admin: AdminUser, services: Services):
    return services.users.stats()


@users_router.get("/{user_id}")
def get_user(user_id: UUID, admin: AdminUser, services: Services):
    return services.users.get_user(user_id)


@users_router.post("", status_code=201)
def create_user(body: UserCreateRequest, admin: AdminUser, services: Services, trail: Trail):
    params = body.model_dump(mode="json", exclude={"password"})
    with trail.track("CREATE", "USER", entity_name=body.username, parameters=params) as entry:
        user = services.users.create_user(
            username=body.username,
            password=body.password,
            email=body.email,
            full_name=body.full_name,
            auth_provider=body.auth_provider,
            external_id=body.external_id,
            roles=set(body.roles) if body.roles else None,
            actor=admin.username,
        )
        entry.succeeded(user.id, user.username)
    return user


@users_router.put("/{user_id}")
def update_user(
    user_id: UUID, body: UserUpdateRequest, admin: AdminUser, services: Services, trail: Trail
):
    params = body.model_dump(mode="json", exclude_none=True)
    with trail.track("UPDATE", "USER", entity_id=user_id, parameters=params) as entry:
        user = services.users.update_user(
            user_id,
            full_name=body.full_name,
            email=body.email,
            enabled=body.enabled,
            account_locked=body.account_locked,
            email_verified=body.email_verified,
            roles=set(body.roles) if body.roles is not None else None,
            expected_version=body.version,
            actor=admin.username,
        )
        entry.succeeded(user.id, user.username)
    return user


@users_router.put("/{user_id}/password", status_code=204)
def reset_password(
    user_id: UUID, body: PasswordResetRequest, admin: AdminUser, services: Services, trail: Trail
):
    with trail.track("RESET_PASSWORD", "USER", entity_id=user_id):
        services.users.reset_password(user_id, body.new_password)


@users_router.post("/{user_id}/enable")
def enable_user(user_id: UUID, admin: AdminUser, services: Services, trail: Trail):
    with trail.track("ENABLE", "USER", entity_id=user_id):
        return services.users.enable(user_id)


@users_router.post("/{user_id}/disable")
def disable_user(user_id: UUID, admin: AdminUser, services: Services, trail: Trail):
    with trail.track("DISABLE", "USER", entity_id=user_id):
        return services.users.disable(user_id)


@users_router.post("/{user_id}/unlock")
def unlock_user(user_id: UUID, admin: AdminUser, services: Services, trail: Trail):
    with trail.track("UNLOCK", "USER", entity_id=user_id):
        return services.users.unlock(user_id)


@users_router.delete("/{user_id}", status_code=204)
def delete_user(user_id: UUID, admin: AdminUser, services: Services, trail: Trail):
    with trail.track("DELETE", "USER", entity_id=user_id):
        services.users.delete_user(user_id)


# =============================================================================
# /directory
# =============================================================================


@directory_router.get("/users")
def search_users(
    user: CurrentUser, services: Services, q: str = "", limit: int = Query(20, ge=1, le=100)
):
    return services.directory.search_users(q, limit)


@directory_router.get("/groups")
def search_groups(
    user: CurrentUser, services: Services, q: str = "", limit: int = Query(20, ge=1, le=100)
):
    return services.directory.search_groups(q, limit)


@directory_router.get("/distribution-lists")
def search_distribution_lists(
    user: CurrentUser, services: Services, q: str = "", limit: int = Query(20, ge=1, le=100)
):
    return services.directory.search_distribution_lists(q, limit)


# =============================================================================
# /currencies
# =============================================================================


@currencies_router.get("")
def currencies():
    return list_currencies()


@currencies_router.get("/default")
def currency_default():
    return default_currency()
