"""Training items and their participants."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter

from myrc_api.dependencies import CurrentUser, Services, Trail
from myrc_api.schemas import (
    AllocationsRequest,
    ParticipantRequest,
    StatusRequest,
    TrainingItemRequest,
    allocation_inputs,
)

router = APIRouter(
    prefix="/responsibility-centres/{rc_id}/fiscal-years/{fy_id}/training-items",
    tags=["training"],
)

TRAINING_ITEM = "TRAINING_ITEM"
PARTICIPANT = "TRAINING_PARTICIPANT"

_NESTED = {"version", "participants", "money_allocations"}


@router.get("")
def list_training_items(rc_id: UUID, fy_id: UUID, user: CurrentUser, services: Services):
    return services.training.list_items(rc_id, fy_id, user.username)


@router.post("", status_code=201)
def create_training_item(
    rc_id: UUID,
    fy_id: UUID,
    body: TrainingItemRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    participants = [p.to_input() for p in body.participants or ()]
    with trail.track(
        "CREATE",
        TRAINING_ITEM,
        entity_name=body.name,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json", exclude={"participants"}),
    ) as entry:
        item = services.training.create(
            rc_id,
            fy_id,
            user.username,
            participants=participants,
            allocations=allocation_inputs(body.money_allocations),
            **body.model_dump(exclude=_NESTED),
        )
        entry.succeeded(item.id, item.name)
    return item


@router.get("/{item_id}")
def get_training_item(rc_id: UUID, fy_id: UUID, item_id: UUID, user: CurrentUser, services: Services):
    return services.training.get(rc_id, fy_id, item_id, user.username)


@router.put("/{item_id}")
def update_training_item(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    body: TrainingItemRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    """Update the item fields; ``money_allocations`` when present replaces the O&M split."""
    with trail.track(
        "UPDATE",
        TRAINING_ITEM,
        entity_id=item_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json", exclude_none=True, exclude={"participants"}),
    ) as entry:
        item = services.training.update(
            rc_id,
            fy_id,
            item_id,
            user.username,
            expected_version=body.version,
            **body.model_dump(exclude=_NESTED),
        )
        if body.money_allocations is not None:
            item = services.training.update_allocations(
                rc_id, fy_id, item_id, user.username, allocation_inputs(body.money_allocations)
            )
        entry.succeeded(item.id, item.name)
    return item


@router.delete("/{item_id}", status_code=204)
def delete_training_item(
    rc_id: UUID, fy_id: UUID, item_id: UUID, user: CurrentUser, services: Services, trail: Trail
):
    with trail.track("DELETE", TRAINING_ITEM, entity_id=item_id, rc_id=rc_id, fiscal_year_id=fy_id):
        services.training.delete(rc_id, fy_id, item_id, user.username)


@router.put("/{item_id}/status")
def update_training_status(
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
        TRAINING_ITEM,
        entity_id=item_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(),
    ):
        return services.training.update_status(rc_id, fy_id, item_id, user.username, body.status)


@router.get("/{item_id}/allocations")
def get_training_allocations(
    rc_id: UUID, fy_id: UUID, item_id: UUID, user: CurrentUser, services: Services
):
    return services.training.get_allocations(rc_id, fy_id, item_id, user.username)


@router.put("/{item_id}/allocations")
def update_training_allocations(
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
        TRAINING_ITEM,
        entity_id=item_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json"),
    ):
        return services.training.update_allocations(
            rc_id, fy_id, item_id, user.username, allocation_inputs(body.money_allocations)
        )


# =============================================================================
# Participants
# =============================================================================


@router.get("/{item_id}/participants")
def list_participants(rc_id: UUID, fy_id: UUID, item_id: UUID, user: CurrentUser, services: Services):
    return services.training.list_participants(rc_id, fy_id, item_id, user.username)


@router.post("/{item_id}/participants", status_code=201)
def add_participant(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    body: ParticipantRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "CREATE",
        PARTICIPANT,
        entity_name=body.name,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json"),
    ) as entry:
        participant = services.training.add_participant(
            rc_id, fy_id, item_id, user.username, body.to_input()
        )
        entry.succeeded(participant.id, participant.name)
    return participant


@router.put("/{item_id}/participants/{participant_id}")
def update_participant(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    participant_id: UUID,
    body: ParticipantRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "UPDATE",
        PARTICIPANT,
        entity_id=participant_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json", exclude_none=True),
    ):
        return services.training.update_participant(
            rc_id, fy_id, item_id, participant_id, user.username, body.to_input()
        )


@router.delete("/{item_id}/participants/{participant_id}", status_code=204)
def delete_participant(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    participant_id: UUID,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "DELETE", PARTICIPANT, entity_id=participant_id, rc_id=rc_id, fiscal_year_id=fy_id
    ):
        services.training.delete_participant(rc_id, fy_id, item_id, participant_id, user.username)
