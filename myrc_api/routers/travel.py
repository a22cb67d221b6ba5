"""Travel items and their travellers."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter

from myrc_api.dependencies import CurrentUser, Services, Trail
from myrc_api.schemas import (
    AllocationsRequest,
    StatusRequest,
    TravelItemRequest,
    TravellerRequest,
    allocation_inputs,
)

router = APIRouter(
    prefix="/responsibility-centres/{rc_id}/fiscal-years/{fy_id}/travel-items",
    tags=["travel"],
)

TRAVEL_ITEM = "TRAVEL_ITEM"
TRAVELLER = "TRAVEL_TRAVELLER"

_NESTED = {"version", "travellers", "money_allocations"}


@router.get("")
def list_travel_items(rc_id: UUID, fy_id: UUID, user: CurrentUser, services: Services):
    return services.travel.list_items(rc_id, fy_id, user.username)


@router.post("", status_code=201)
def create_travel_item(
    rc_id: UUID,
    fy_id: UUID,
    body: TravelItemRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    travellers = [t.to_input() for t in body.travellers or ()]
    with trail.track(
        "CREATE",
        TRAVEL_ITEM,
        entity_name=body.name,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json", exclude={"travellers"}),
    ) as entry:
        item = services.travel.create(
            rc_id,
            fy_id,
            user.username,
            travellers=travellers,
            allocations=allocation_inputs(body.money_allocations),
            **body.model_dump(exclude=_NESTED),
        )
        entry.succeeded(item.id, item.name)
    return item


@router.get("/{item_id}")
def get_travel_item(rc_id: UUID, fy_id: UUID, item_id: UUID, user: CurrentUser, services: Services):
    return services.travel.get(rc_id, fy_id, item_id, user.username)


@router.put("/{item_id}")
def update_travel_item(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    body: TravelItemRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "UPDATE",
        TRAVEL_ITEM,
        entity_id=item_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json", exclude_none=True, exclude={"travellers"}),
    ) as entry:
        item = services.travel.update(
            rc_id,
            fy_id,
            item_id,
            user.username,
            expected_version=body.version,
            **body.model_dump(exclude=_NESTED),
        )
        if body.money_allocations is not None:
            item = services.travel.update_allocations(
                rc_id, fy_id, item_id, user.username, allocation_inputs(body.money_allocations)
            )
        entry.succeeded(item.id, item.name)
    return item


@router.delete("/{item_id}", status_code=204)
def delete_travel_item(
    rc_id: UUID, fy_id: UUID, item_id: UUID, user: CurrentUser, services: Services, trail: Trail
):
    with trail.track("DELETE", TRAVEL_ITEM, entity_id=item_id, rc_id=rc_id, fiscal_year_id=fy_id):
        services.travel.delete(rc_id, fy_id, item_id, user.username)


@router.put("/{item_id}/status")
def update_travel_status(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    body: StatusRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "UPDATE_STATUS",
        TRAVEL_ITEM,
        entity_id=item_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(),
    ):
        return services.travel.update_status(rc_id, fy_id, item_id, user.username, body.status)


@router.get("/{item_id}/allocations")
def get_travel_allocations(
    rc_id: UUID, fy_id: UUID, item_id: UUID, user: CurrentUser, services: Services
):
    return services.travel.get_allocations(rc_id, fy_id, item_id, user.username)


@router.put("/{item_id}/allocations")
def update_travel_allocations(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    body: AllocationsRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "UPDATE_ALLOCATIONS",
        TRAVEL_ITEM,
        entity_id=item_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json"),
    ):
        return services.travel.update_allocations(
            rc_id, fy_id, item_id, user.username, allocation_inputs(body.money_allocations)
        )


# =============================================================================
# Travellers
# =============================================================================


@router.get("/{item_id}/travellers")
def list_travellers(rc_id: UUID, fy_id: UUID, item_id: UUID, user: CurrentUser, services: Services):
    return services.travel.list_travellers(rc_id, fy_id, item_id, user.username)


@router.post("/{item_id}/travellers", status_code=201)
def add_traveller(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    body: TravellerRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "CREATE",
        TRAVELLER,
        entity_name=body.name,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json"),
    ) as entry:
        traveller = services.travel.add_traveller(
            rc_id, fy_id, item_id, user.username, body.to_input()
        )
        entry.succeeded(traveller.id, traveller.name)
    return traveller


@router.put("/{item_id}/travellers/{traveller_id}")
def update_traveller(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    traveller_id: UUID,
    body: TravellerRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "UPDATE",
        TRAVELLER,
        entity_id=traveller_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json", exclude_none=True),
    ):
        return services.travel.update_traveller(
            rc_id, fy_id, item_id, traveller_id, user.username, body.to_input()
        )


@router.delete("/{item_id}/travellers/{traveller_id}", status_code=204)
def delete_traveller(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    traveller_id: UUID,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "DELETE", TRAVELLER, entity_id=traveller_id, rc_id=rc_id, fiscal_year_id=fy_id
    ):
        services.travel.delete_traveller(rc_id, fy_id, item_id, traveller_id, user.username)
