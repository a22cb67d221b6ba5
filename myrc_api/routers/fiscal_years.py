"""Fiscal years with their monies and categories, cloning and export / import."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body

from myrc_api.dependencies import CurrentUser, Services, Trail
from myrc_api.schemas import (
    CategoryCreateRequest,
    CategoryUpdateRequest,
    DisplaySettingsRequest,
    FiscalYearCloneRequest,
    FiscalYearCreateRequest,
    FiscalYearUpdateRequest,
    MoneyCreateRequest,
    MoneyUpdateRequest,
    ReorderRequest,
)

FY_PREFIX = "/responsibility-centres/{rc_id}/fiscal-years"

fiscal_year_router = APIRouter(prefix=FY_PREFIX, tags=["fiscal-years"])
money_router = APIRouter(prefix=FY_PREFIX + "/{fy_id}/monies", tags=["monies"])
category_router = APIRouter(prefix=FY_PREFIX + "/{fy_id}/categories", tags=["categories"])


# =============================================================================
# Fiscal years
# =============================================================================


@fiscal_year_router.get("")
def list_fiscal_years(rc_id: UUID, user: CurrentUser, services: Services):
    return services.fiscal_years.list_fiscal_years(rc_id, user.username)


@fiscal_year_router.post("", status_code=201)
def create_fiscal_year(
    rc_id: UUID, body: FiscalYearCreateRequest, user: CurrentUser, services: Services, trail: Trail
):
    with trail.track(
        "CREATE", "FISCAL_YEAR", entity_name=body.name, rc_id=rc_id, parameters=body.model_dump()
    ) as entry:
        fy = services.fiscal_years.create(rc_id, user.username, body.name, body.description)
        entry.succeeded(fy.id, fy.name)
    return fy


@fiscal_year_router.get("/{fy_id}")
def get_fiscal_year(rc_id: UUID, fy_id: UUID, user: CurrentUser, services: Services):
    return services.fiscal_years.get(rc_id, fy_id, user.username)


@fiscal_year_router.put("/{fy_id}")
def update_fiscal_year(
    rc_id: UUID,
    fy_id: UUID,
    body: FiscalYearUpdateRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "UPDATE",
        "FISCAL_YEAR",
        entity_id=fy_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(exclude_none=True),
    ) as entry:
        fy = services.fiscal_years.update(
            rc_id,
            fy_id,
            user.username,
            name=body.name,
            description=body.description,
            expected_version=body.version,
        )
        entry.succeeded(fy.id, fy.name)
    return fy


@fiscal_year_router.delete("/{fy_id}", status_code=204)
def delete_fiscal_year(rc_id: UUID, fy_id: UUID, user: CurrentUser, services: Services, trail: Trail):
    with trail.track("DELETE", "FISCAL_YEAR", entity_id=fy_id, rc_id=rc_id, fiscal_year_id=fy_id):
        services.fiscal_years.delete(rc_id, fy_id, user.username)


@fiscal_year_router.patch("/{fy_id}/display-settings")
def update_display_settings(
    rc_id: UUID,
    fy_id: UUID,
    body: DisplaySettingsRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    params = body.model_dump(exclude_none=True)
    with trail.track(
        "UPDATE_DISPLAY_SETTINGS",
        "FISCAL_YEAR",
        entity_id=fy_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=params,
    ):
        return services.fiscal_years.update_display_settings(
            rc_id, fy_id, user.username, **body.model_dump()
        )


@fiscal_year_router.patch("/{fy_id}/toggle-active")
def toggle_active(rc_id: UUID, fy_id: UUID, user: CurrentUser, services: Services, trail: Trail):
    with trail.track(
        "TOGGLE_ACTIVE", "FISCAL_YEAR", entity_id=fy_id, rc_id=rc_id, fiscal_year_id=fy_id
    ):
        return services.fiscal_years.toggle_active(rc_id, fy_id, user.username)


@fiscal_year_router.post("/{fy_id}/clone", status_code=201)
def clone_fiscal_year(
    rc_id: UUID,
    fy_id: UUID,
    body: FiscalYearCloneRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    target_rc_id = body.target_rc_id or rc_id
    with trail.track(
        "CLONE",
        "FISCAL_YEAR",
        entity_id=fy_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json"),
    ) as entry:
        fy = services.cloning.clone_fiscal_year_to_rc(
            rc_id, fy_id, target_rc_id, user.username, body.new_name
        )
        entry.succeeded(fy.id, fy.name)
    return fy


@fiscal_year_router.get("/{fy_id}/export")
def export_fiscal_year(rc_id: UUID, fy_id: UUID, user: CurrentUser, services: Services):
    return services.export_import.export(rc_id, fy_id, user.username)


@fiscal_year_router.post("/{fy_id}/import")
def import_fiscal_year(
    rc_id: UUID,
    fy_id: UUID,
    user: CurrentUser,
    services: Services,
    trail: Trail,
    document: dict[str, Any] = Body(...),
):
    with trail.track(
        "IMPORT",
        "FISCAL_YEAR",
        entity_id=fy_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=document.get("metadata"),
    ):
        return services.export_import.import_(rc_id, fy_id, user.username, document)


# =============================================================================
# Monies
# =============================================================================


@money_router.get("")
def list_monies(rc_id: UUID, fy_id: UUID, user: CurrentUser, services: Services):
    return services.monies.list_monies(rc_id, fy_id, user.username)


@money_router.post("", status_code=201)
def create_money(
    rc_id: UUID,
    fy_id: UUID,
    body: MoneyCreateRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "CREATE",
        "MONEY",
        entity_name=body.code,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(),
    ) as entry:
        money = services.monies.create(
            rc_id, fy_id, user.username, body.code, body.name, body.description
        )
        entry.succeeded(money.id, money.code)
    return money


@money_router.post("/reorder")
def reorder_monies(
    rc_id: UUID, fy_id: UUID, body: ReorderRequest, user: CurrentUser, services: Services, trail: Trail
):
    with trail.track(
        "REORDER", "MONEY", rc_id=rc_id, fiscal_year_id=fy_id, parameters=body.model_dump(mode="json")
    ):
        return services.monies.reorder(rc_id, fy_id, user.username, body.ids)


@money_router.get("/{money_id}")
def get_money(rc_id: UUID, fy_id: UUID, money_id: UUID, user: CurrentUser, services: Services):
    return services.monies.get(rc_id, fy_id, money_id, user.username)


@money_router.put("/{money_id}")
def update_money(
    rc_id: UUID,
    fy_id: UUID,
    money_id: UUID,
    body: MoneyUpdateRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "UPDATE",
        "MONEY",
        entity_id=money_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(exclude_none=True),
    ) as entry:
        money = services.monies.update(
            rc_id,
            fy_id,
            money_id,
            user.username,
            code=body.code,
            name=body.name,
            description=body.description,
            expected_version=body.version,
        )
        entry.succeeded(money.id, money.code)
    return money


@money_router.delete("/{money_id}", status_code=204)
def delete_money(
    rc_id: UUID, fy_id: UUID, money_id: UUID, user: CurrentUser, services: Services, trail: Trail
):
    with trail.track("DELETE", "MONEY", entity_id=money_id, rc_id=rc_id, fiscal_year_id=fy_id):
        services.monies.delete(rc_id, fy_id, money_id, user.username)


# =============================================================================
# Categories
# =============================================================================


@category_router.get("")
def list_categories(rc_id: UUID, fy_id: UUID, user: CurrentUser, services: Services):
    return services.categories.list_categories(rc_id, fy_id, user.username)


@category_router.post("", status_code=201)
def create_category(
    rc_id: UUID,
    fy_id: UUID,
    body: CategoryCreateRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "CREATE",
        "CATEGORY",
        entity_name=body.name,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(),
    ) as entry:
        category = services.categories.create(
            rc_id, fy_id, user.username, body.name, body.description, body.funding_type
        )
        entry.succeeded(category.id, category.name)
    return category


@category_router.post("/ensure-defaults")
def ensure_default_categories(
    rc_id: UUID, fy_id: UUID, user: CurrentUser, services: Services, trail: Trail
):
    with trail.track("ENSURE_DEFAULTS", "CATEGORY", rc_id=rc_id, fiscal_year_id=fy_id):
        return services.categories.ensure_defaults(rc_id, fy_id, user.username)


@category_router.post("/reorder")
def reorder_categories(
    rc_id: UUID, fy_id: UUID, body: ReorderRequest, user: CurrentUser, services: Services, trail: Trail
):
    with trail.track(
        "REORDER",
        "CATEGORY",
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json"),
    ):
        return services.categories.reorder(rc_id, fy_id, user.username, body.ids)


@category_router.get("/{category_id}")
def get_category(
    rc_id: UUID, fy_id: UUID, category_id: UUID, user: CurrentUser, services: Services
):
    return services.categories.get(rc_id, fy_id, category_id, user.username)


@category_router.put("/{category_id}")
def update_category(
    rc_id: UUID,
    fy_id: UUID,
    category_id: UUID,
    body: CategoryUpdateRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "UPDATE",
        "CATEGORY",
        entity_id=category_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(exclude_none=True),
    ) as entry:
        category = services.categories.update(
            rc_id,
            fy_id,
            category_id,
            user.username,
            name=body.name,
            description=body.description,
            funding_type=body.funding_type,
            expected_version=body.version,
        )
        entry.succeeded(category.id, category.name)
    return category


@category_router.delete("/{category_id}", status_code=204)
def delete_category(
    rc_id: UUID, fy_id: UUID, category_id: UUID, user: CurrentUser, services: Services, trail: Trail
):
    with trail.track(
        "DELETE", "CATEGORY", entity_id=category_id, rc_id=rc_id, fiscal_year_id=fy_id
    ):
        services.categories.delete(rc_id, fy_id, category_id, user.username)
