"""
Procurement items: quotes, quote files, tracking events, event files and the
spending link.

Item, quote and event deletes are soft; the rows stay for cloning history
but disappear from every listing.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, File, Form, UploadFile

from myrc_api.dependencies import CurrentUser, Services, Trail
from myrc_api.routers._files import file_response, read_upload
from myrc_api.schemas import (
    FileDescriptionRequest,
    ProcurementEventRequest,
    ProcurementItemCreateRequest,
    ProcurementItemUpdateRequest,
    QuoteCreateRequest,
    QuoteUpdateRequest,
    StatusRequest,
)

router = APIRouter(
    prefix="/responsibility-centres/{rc_id}/fiscal-years/{fy_id}/procurement-items",
    tags=["procurement"],
)

PROCUREMENT_ITEM = "PROCUREMENT_ITEM"
QUOTE = "PROCUREMENT_QUOTE"
QUOTE_FILE = "QUOTE_FILE"
EVENT = "PROCUREMENT_EVENT"
EVENT_FILE = "EVENT_FILE"


# =============================================================================
# Items
# =============================================================================


@router.get("")
def list_procurement_items(
    rc_id: UUID,
    fy_id: UUID,
    user: CurrentUser,
    services: Services,
    status: str | None = None,
    search: str | None = None,
):
    if search:
        return services.procurement.search(rc_id, fy_id, user.username, search)
    return services.procurement.list_items(rc_id, fy_id, user.username, status)


@router.post("", status_code=201)
def create_procurement_item(
    rc_id: UUID,
    fy_id: UUID,
    body: ProcurementItemCreateRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "CREATE",
        PROCUREMENT_ITEM,
        entity_name=body.name,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json"),
    ) as entry:
        item = services.procurement.create(rc_id, fy_id, user.username, **body.model_dump())
        entry.succeeded(item.id, item.name)
    return item


@router.get("/{item_id}")
def get_procurement_item(
    rc_id: UUID, fy_id: UUID, item_id: UUID, user: CurrentUser, services: Services
):
    return services.procurement.get(rc_id, fy_id, item_id, user.username)


@router.put("/{item_id}")
def update_procurement_item(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    body: ProcurementItemUpdateRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "UPDATE",
        PROCUREMENT_ITEM,
        entity_id=item_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json", exclude_none=True),
    ) as entry:
        item = services.procurement.update(
            rc_id,
            fy_id,
            item_id,
            user.username,
            expected_version=body.version,
            **body.model_dump(exclude={"version"}),
        )
        entry.succeeded(item.id, item.name)
    return item


@router.put("/{item_id}/status")
def update_procurement_status(
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
        PROCUREMENT_ITEM,
        entity_id=item_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(),
    ):
        return services.procurement.update_status(
            rc_id, fy_id, item_id, user.username, body.status
        )


@router.delete("/{item_id}", status_code=204)
def delete_procurement_item(
    rc_id: UUID, fy_id: UUID, item_id: UUID, user: CurrentUser, services: Services, trail: Trail
):
    with trail.track(
        "DELETE", PROCUREMENT_ITEM, entity_id=item_id, rc_id=rc_id, fiscal_year_id=fy_id
    ):
        services.procurement.delete(rc_id, fy_id, item_id, user.username)


@router.post("/{item_id}/toggle-spending-link")
def toggle_spending_link(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    user: CurrentUser,
    services: Services,
    trail: Trail,
    force: bool = False,
):
    with trail.track(
        "TOGGLE_SPENDING_LINK",
        PROCUREMENT_ITEM,
        entity_id=item_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters={"force": force},
    ):
        return services.procurement.toggle_spending_link(
            rc_id, fy_id, item_id, user.username, force
        )


# =============================================================================
# Quotes
# =============================================================================


@router.get("/{item_id}/quotes")
def list_quotes(rc_id: UUID, fy_id: UUID, item_id: UUID, user: CurrentUser, services: Services):
    return services.procurement.list_quotes(rc_id, fy_id, item_id, user.username)


@router.get("/{item_id}/quotes/{quote_id}")
def get_quote(
    rc_id: UUID, fy_id: UUID, item_id: UUID, quote_id: UUID, user: CurrentUser, services: Services
):
    return services.procurement.get_quote(rc_id, fy_id, item_id, quote_id, user.username)


@router.post("/{item_id}/quotes", status_code=201)
def create_quote(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    body: QuoteCreateRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "CREATE",
        QUOTE,
        entity_name=body.vendor_name,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json"),
    ) as entry:
        quote = services.procurement.create_quote(
            rc_id, fy_id, item_id, user.username, **body.model_dump()
        )
        entry.succeeded(quote.id, quote.vendor_name)
    return quote


@router.put("/{item_id}/quotes/{quote_id}")
def update_quote(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    quote_id: UUID,
    body: QuoteUpdateRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "UPDATE",
        QUOTE,
        entity_id=quote_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json", exclude_none=True),
    ):
        return services.procurement.update_quote(
            rc_id,
            fy_id,
            item_id,
            quote_id,
            user.username,
            expected_version=body.version,
            **body.model_dump(exclude={"version"}),
        )


@router.post("/{item_id}/quotes/{quote_id}/select")
def select_quote(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    quote_id: UUID,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track("SELECT", QUOTE, entity_id=quote_id, rc_id=rc_id, fiscal_year_id=fy_id):
        return services.procurement.select_quote(rc_id, fy_id, item_id, quote_id, user.username)


@router.delete("/{item_id}/quotes/{quote_id}", status_code=204)
def delete_quote(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    quote_id: UUID,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track("DELETE", QUOTE, entity_id=quote_id, rc_id=rc_id, fiscal_year_id=fy_id):
        services.procurement.delete_quote(rc_id, fy_id, item_id, quote_id, user.username)


# =============================================================================
# Quote files
# =============================================================================

QUOTE_FILES = "/{item_id}/quotes/{quote_id}/files"


@router.get(QUOTE_FILES)
def list_quote_files(
    rc_id: UUID, fy_id: UUID, item_id: UUID, quote_id: UUID, user: CurrentUser, services: Services
):
    return services.procurement.list_quote_files(rc_id, fy_id, item_id, quote_id, user.username)


@router.post(QUOTE_FILES, status_code=201)
def upload_quote_file(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    quote_id: UUID,
    user: CurrentUser,
    services: Services,
    trail: Trail,
    file: UploadFile = File(...),
    description: str | None = Form(None),
):
    with trail.track(
        "UPLOAD", QUOTE_FILE, entity_name=file.filename, rc_id=rc_id, fiscal_year_id=fy_id
    ) as entry:
        info = services.procurement.upload_quote_file(
            rc_id, fy_id, item_id, quote_id, user.username, read_upload(file, description)
        )
        entry.succeeded(info.id, info.file_name)
    return info


@router.get(QUOTE_FILES + "/{file_id}")
def get_quote_file(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    quote_id: UUID,
    file_id: UUID,
    user: CurrentUser,
    services: Services,
):
    return services.procurement.get_quote_file(
        rc_id, fy_id, item_id, quote_id, file_id, user.username
    )


@router.get(QUOTE_FILES + "/{file_id}/download")
def download_quote_file(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    quote_id: UUID,
    file_id: UUID,
    user: CurrentUser,
    services: Services,
):
    return file_response(
        services.procurement.download_quote_file(
            rc_id, fy_id, item_id, quote_id, file_id, user.username
        )
    )


@router.get(QUOTE_FILES + "/{file_id}/view")
def view_quote_file(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    quote_id: UUID,
    file_id: UUID,
    user: CurrentUser,
    services: Services,
):
    return file_response(
        services.procurement.download_quote_file(
            rc_id, fy_id, item_id, quote_id, file_id, user.username
        ),
        inline=True,
    )


@router.put(QUOTE_FILES + "/{file_id}")
def update_quote_file_description(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    quote_id: UUID,
    file_id: UUID,
    body: FileDescriptionRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track("UPDATE", QUOTE_FILE, entity_id=file_id, rc_id=rc_id, fiscal_year_id=fy_id):
        return services.procurement.update_quote_file_description(
            rc_id, fy_id, item_id, quote_id, file_id, user.username, body.description
        )


@router.put(QUOTE_FILES + "/{file_id}/content")
def replace_quote_file(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    quote_id: UUID,
    file_id: UUID,
    user: CurrentUser,
    services: Services,
    trail: Trail,
    file: UploadFile = File(...),
    description: str | None = Form(None),
):
    with trail.track("REPLACE", QUOTE_FILE, entity_id=file_id, rc_id=rc_id, fiscal_year_id=fy_id):
        return services.procurement.replace_quote_file(
            rc_id,
            fy_id,
            item_id,
            quote_id,
            file_id,
            user.username,
            read_upload(file, description),
        )


@router.delete(QUOTE_FILES + "/{file_id}", status_code=204)
def delete_quote_file(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    quote_id: UUID,
    file_id: UUID,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track("DELETE", QUOTE_FILE, entity_id=file_id, rc_id=rc_id, fiscal_year_id=fy_id):
        services.procurement.delete_quote_file(
            rc_id, fy_id, item_id, quote_id, file_id, user.username
        )


# =============================================================================
# Events
# =============================================================================


@router.get("/{item_id}/events")
def list_procurement_events(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    user: CurrentUser,
    services: Services,
    event_type: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
):
    events = services.procurement_events
    if event_type:
        return events.events_by_type(rc_id, fy_id, item_id, user.username, event_type)
    if start_date is not None or end_date is not None:
        return events.events_between(rc_id, fy_id, item_id, user.username, start_date, end_date)
    return events.list_events(rc_id, fy_id, item_id, user.username)


@router.get("/{item_id}/events/count")
def count_procurement_events(
    rc_id: UUID, fy_id: UUID, item_id: UUID, user: CurrentUser, services: Services
):
    return {"count": services.procurement_events.count_events(rc_id, fy_id, item_id, user.username)}


@router.get("/{item_id}/events/latest")
def latest_procurement_event(
    rc_id: UUID, fy_id: UUID, item_id: UUID, user: CurrentUser, services: Services
):
    return services.procurement_events.latest_event(rc_id, fy_id, item_id, user.username)


@router.get("/{item_id}/events/{event_id}")
def get_procurement_event(
    rc_id: UUID, fy_id: UUID, item_id: UUID, event_id: UUID, user: CurrentUser, services: Services
):
    return services.procurement_events.get_event(rc_id, fy_id, item_id, event_id, user.username)


@router.post("/{item_id}/events", status_code=201)
def create_procurement_event(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    body: ProcurementEventRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "CREATE", EVENT, rc_id=rc_id, fiscal_year_id=fy_id, parameters=body.model_dump(mode="json")
    ) as entry:
        event = services.procurement_events.create_event(
            rc_id, fy_id, item_id, user.username, **body.model_dump()
        )
        entry.succeeded(event.id, event.event_type.value)
    return event


@router.put("/{item_id}/events/{event_id}")
def update_procurement_event(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    event_id: UUID,
    body: ProcurementEventRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "UPDATE",
        EVENT,
        entity_id=event_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json", exclude_none=True),
    ):
        return services.procurement_events.update_event(
            rc_id, fy_id, item_id, event_id, user.username, **body.model_dump()
        )


@router.delete("/{item_id}/events/{event_id}", status_code=204)
def delete_procurement_event(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    event_id: UUID,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track("DELETE", EVENT, entity_id=event_id, rc_id=rc_id, fiscal_year_id=fy_id):
        services.procurement_events.delete_event(rc_id, fy_id, item_id, event_id, user.username)


# =============================================================================
# Event files
# =============================================================================

EVENT_FILES = "/{item_id}/events/{event_id}/files"


@router.get(EVENT_FILES)
def list_event_files(
    rc_id: UUID, fy_id: UUID, item_id: UUID, event_id: UUID, user: CurrentUser, services: Services
):
    return services.procurement_events.list_event_files(
        rc_id, fy_id, item_id, event_id, user.username
    )


@router.post(EVENT_FILES, status_code=201)
def upload_event_file(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    event_id: UUID,
    user: CurrentUser,
    services: Services,
    trail: Trail,
    file: UploadFile = File(...),
    description: str | None = Form(None),
):
    with trail.track(
        "UPLOAD", EVENT_FILE, entity_name=file.filename, rc_id=rc_id, fiscal_year_id=fy_id
    ) as entry:
        info = services.procurement_events.upload_event_file(
            rc_id, fy_id, item_id, event_id, user.username, read_upload(file, description)
        )
        entry.succeeded(info.id, info.file_name)
    return info


@router.get(EVENT_FILES + "/{file_id}")
def get_event_file(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    event_id: UUID,
    file_id: UUID,
    user: CurrentUser,
    services: Services,
):
    return services.procurement_events.get_event_file(
        rc_id, fy_id, item_id, event_id, file_id, user.username
    )


@router.get(EVENT_FILES + "/{file_id}/download")
def download_event_file(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    event_id: UUID,
    file_id: UUID,
    user: CurrentUser,
    services: Services,
):
    return file_response(
        services.procurement_events.download_event_file(
            rc_id, fy_id, item_id, event_id, file_id, user.username
        )
    )


@router.get(EVENT_FILES + "/{file_id}/view")
def view_event_file(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    event_id: UUID,
    file_id: UUID,
    user: CurrentUser,
    services: Services,
):
    return file_response(
        services.procurement_events.download_event_file(
            rc_id, fy_id, item_id, event_id, file_id, user.username
        ),
        inline=True,
    )


@router.put(EVENT_FILES + "/{file_id}")
def update_event_file_description(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    event_id: UUID,
    file_id: UUID,
    body: FileDescriptionRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track("UPDATE", EVENT_FILE, entity_id=file_id, rc_id=rc_id, fiscal_year_id=fy_id):
        return services.procurement_events.update_event_file_description(
            rc_id, fy_id, item_id, event_id, file_id, user.username, body.description
        )


@router.delete(EVENT_FILES + "/{file_id}", status_code=204)
def delete_event_file(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    event_id: UUID,
    file_id: UUID,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track("DELETE", EVENT_FILE, entity_id=file_id, rc_id=rc_id, fiscal_year_id=fy_id):
        services.procurement_events.delete_event_file(
            rc_id, fy_id, item_id, event_id, file_id, user.username
        )
