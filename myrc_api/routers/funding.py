"""Funding items of a fiscal year."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter

from myrc_api.dependencies import CurrentUser, Services, Trail
from myrc_api.schemas import FundingItemCreateRequest, FundingItemUpdateRequest, allocation_inputs

router = APIRouter(
    prefix="/responsibility-centres/{rc_id}/fiscal-years/{fy_id}/funding-items",
    tags=["funding"],
)

FUNDING_ITEM = "FUNDING_ITEM"


@router.get("")
def list_funding_items(
    rc_id: UUID, fy_id: UUID, user: CurrentUser, services: Services, category_id: UUID | None = None
):
    return services.funding.list_items(rc_id, fy_id, user.username, category_id)


@router.post("", status_code=201)
def create_funding_item(
    rc_id: UUID,
    fy_id: UUID,
    body: FundingItemCreateRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "CREATE",
        FUNDING_ITEM,
        entity_name=body.name,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json"),
    ) as entry:
        item = services.funding.create(
            rc_id,
            fy_id,
            user.username,
            name=body.name,
            description=body.description,
            source=body.source,
            comments=body.comments,
            currency=body.currency,
            exchange_rate=body.exchange_rate,
            category_id=body.category_id,
            allocations=allocation_inputs(body.money_allocations),
        )
        entry.succeeded(item.id, item.name)
    return item


@router.get("/{item_id}")
def get_funding_item(rc_id: UUID, fy_id: UUID, item_id: UUID, user: CurrentUser, services: Services):
    return services.funding.get(rc_id, fy_id, item_id, user.username)


@router.put("/{item_id}")
def update_funding_item(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    body: FundingItemUpdateRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "UPDATE",
        FUNDING_ITEM,
        entity_id=item_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json", exclude_none=True),
    ) as entry:
        item = services.funding.update(
            rc_id,
            fy_id,
            item_id,
            user.username,
            name=body.name,
            description=body.description,
            source=body.source,
            comments=body.comments,
            currency=body.currency,
            exchange_rate=body.exchange_rate,
            category_id=body.category_id,
            clear_category=body.clear_category,
            allocations=allocation_inputs(body.money_allocations),
            expected_version=body.version,
        )
        entry.succeeded(item.id, item.name)
    return item


@router.delete("/{item_id}", status_code=204)
def delete_funding_item(
    rc_id: UUID, fy_id: UUID, item_id: UUID, user: CurrentUser, services: Services, trail: Trail
):
    with trail.track("DELETE", FUNDING_ITEM, entity_id=item_id, rc_id=rc_id, fiscal_year_id=fy_id):
        services.funding.delete(rc_id, fy_id, item_id, user.username)
