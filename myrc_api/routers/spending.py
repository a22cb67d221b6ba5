"""Spending items with their events, invoices and invoice files."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, File, Form, UploadFile

from myrc_api.dependencies import CurrentUser, Services, Trail
from myrc_api.routers._files import file_response, read_upload
from myrc_api.schemas import (
    AllocationsRequest,
    FileDescriptionRequest,
    InvoiceRequest,
    SpendingEventRequest,
    SpendingItemCreateRequest,
    SpendingItemUpdateRequest,
    StatusRequest,
    allocation_inputs,
)

router = APIRouter(
    prefix="/responsibility-centres/{rc_id}/fiscal-years/{fy_id}/spending-items",
    tags=["spending"],
)

SPENDING_ITEM = "SPENDING_ITEM"
SPENDING_EVENT = "SPENDING_EVENT"
INVOICE = "SPENDING_INVOICE"
INVOICE_FILE = "INVOICE_FILE"

_ITEM_FIELDS = {"money_allocations", "version"}


# =============================================================================
# Items
# =============================================================================


@router.get("")
def list_spending_items(
    rc_id: UUID, fy_id: UUID, user: CurrentUser, services: Services, category_id: UUID | None = None
):
    return services.spending.list_items(rc_id, fy_id, user.username, category_id)


@router.post("", status_code=201)
def create_spending_item(
    rc_id: UUID,
    fy_id: UUID,
    body: SpendingItemCreateRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "CREATE",
        SPENDING_ITEM,
        entity_name=body.name,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json"),
    ) as entry:
        item = services.spending.create(
            rc_id,
            fy_id,
            user.username,
            allocations=allocation_inputs(body.money_allocations),
            **body.model_dump(exclude=_ITEM_FIELDS),
        )
        entry.succeeded(item.id, item.name)
    return item


@router.get("/{item_id}")
def get_spending_item(rc_id: UUID, fy_id: UUID, item_id: UUID, user: CurrentUser, services: Services):
    return services.spending.get(rc_id, fy_id, item_id, user.username)


@router.put("/{item_id}")
def update_spending_item(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    body: SpendingItemUpdateRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "UPDATE",
        SPENDING_ITEM,
        entity_id=item_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json", exclude_none=True),
    ) as entry:
        item = services.spending.update(
            rc_id,
            fy_id,
            item_id,
            user.username,
            allocations=allocation_inputs(body.money_allocations),
            expected_version=body.version,
            **body.model_dump(exclude=_ITEM_FIELDS),
        )
        entry.succeeded(item.id, item.name)
    return item


@router.delete("/{item_id}", status_code=204)
def delete_spending_item(
    rc_id: UUID, fy_id: UUID, item_id: UUID, user: CurrentUser, services: Services, trail: Trail
):
    with trail.track("DELETE", SPENDING_ITEM, entity_id=item_id, rc_id=rc_id, fiscal_year_id=fy_id):
        services.spending.delete(rc_id, fy_id, item_id, user.username)


@router.put("/{item_id}/status")
def update_spending_status(
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
        SPENDING_ITEM,
        entity_id=item_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(),
    ):
        return services.spending.update_status(rc_id, fy_id, item_id, user.username, body.status)


@router.get("/{item_id}/allocations")
def get_spending_allocations(
    rc_id: UUID, fy_id: UUID, item_id: UUID, user: CurrentUser, services: Services
):
    return services.spending.get_allocations(rc_id, fy_id, item_id, user.username)


@router.put("/{item_id}/allocations")
def update_spending_allocations(
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
        SPENDING_ITEM,
        entity_id=item_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json"),
    ):
        return services.spending.update_allocations(
            rc_id, fy_id, item_id, user.username, allocation_inputs(body.money_allocations)
        )


# =============================================================================
# Events
# =============================================================================


@router.get("/{item_id}/events")
def list_spending_events(
    rc_id: UUID, fy_id: UUID, item_id: UUID, user: CurrentUser, services: Services
):
    return services.spending.list_events(rc_id, fy_id, item_id, user.username)


@router.get("/{item_id}/events/count")
def count_spending_events(
    rc_id: UUID, fy_id: UUID, item_id: UUID, user: CurrentUser, services: Services
):
    return {"count": services.spending.count_events(rc_id, fy_id, item_id, user.username)}


@router.get("/{item_id}/events/latest")
def latest_spending_event(
    rc_id: UUID, fy_id: UUID, item_id: UUID, user: CurrentUser, services: Services
):
    return services.spending.latest_event(rc_id, fy_id, item_id, user.username)


@router.get("/{item_id}/events/{event_id}")
def get_spending_event(
    rc_id: UUID, fy_id: UUID, item_id: UUID, event_id: UUID, user: CurrentUser, services: Services
):
    return services.spending.get_event(rc_id, fy_id, item_id, event_id, user.username)


@router.post("/{item_id}/events", status_code=201)
def create_spending_event(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    body: SpendingEventRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "CREATE",
        SPENDING_EVENT,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json"),
    ) as entry:
        event = services.spending.create_event(
            rc_id, fy_id, item_id, user.username, **body.model_dump()
        )
        entry.succeeded(event.id, event.event_type.value)
    return event


@router.put("/{item_id}/events/{event_id}")
def update_spending_event(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    event_id: UUID,
    body: SpendingEventRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "UPDATE",
        SPENDING_EVENT,
        entity_id=event_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json", exclude_none=True),
    ):
        return services.spending.update_event(
            rc_id, fy_id, item_id, event_id, user.username, **body.model_dump()
        )


@router.delete("/{item_id}/events/{event_id}", status_code=204)
def delete_spending_event(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    event_id: UUID,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "DELETE", SPENDING_EVENT, entity_id=event_id, rc_id=rc_id, fiscal_year_id=fy_id
    ):
        services.spending.delete_event(rc_id, fy_id, item_id, event_id, user.username)


# =============================================================================
# Invoices
# =============================================================================


@router.get("/{item_id}/invoices")
def list_invoices(rc_id: UUID, fy_id: UUID, item_id: UUID, user: CurrentUser, services: Services):
    return services.spending.list_invoices(rc_id, fy_id, item_id, user.username)


@router.get("/{item_id}/invoices/{invoice_id}")
def get_invoice(
    rc_id: UUID, fy_id: UUID, item_id: UUID, invoice_id: UUID, user: CurrentUser, services: Services
):
    return services.spending.get_invoice(rc_id, fy_id, item_id, invoice_id, user.username)


@router.post("/{item_id}/invoices", status_code=201)
def create_invoice(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    body: InvoiceRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "CREATE",
        INVOICE,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json", exclude={"version"}),
    ) as entry:
        invoice = services.spending.create_invoice(
            rc_id, fy_id, item_id, user.username, **body.model_dump(exclude={"version"})
        )
        entry.succeeded(invoice.id)
    return invoice


@router.put("/{item_id}/invoices/{invoice_id}")
def update_invoice(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    invoice_id: UUID,
    body: InvoiceRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "UPDATE",
        INVOICE,
        entity_id=invoice_id,
        rc_id=rc_id,
        fiscal_year_id=fy_id,
        parameters=body.model_dump(mode="json", exclude_none=True),
    ):
        return services.spending.update_invoice(
            rc_id,
            fy_id,
            item_id,
            invoice_id,
            user.username,
            expected_version=body.version,
            **body.model_dump(exclude={"version"}),
        )


@router.delete("/{item_id}/invoices/{invoice_id}", status_code=204)
def delete_invoice(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    invoice_id: UUID,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track("DELETE", INVOICE, entity_id=invoice_id, rc_id=rc_id, fiscal_year_id=fy_id):
        services.spending.delete_invoice(rc_id, fy_id, item_id, invoice_id, user.username)


# =============================================================================
# Invoice files
# =============================================================================

FILES = "/{item_id}/invoices/{invoice_id}/files"


@router.get(FILES)
def list_invoice_files(
    rc_id: UUID, fy_id: UUID, item_id: UUID, invoice_id: UUID, user: CurrentUser, services: Services
):
    return services.spending.list_invoice_files(rc_id, fy_id, item_id, invoice_id, user.username)


@router.post(FILES, status_code=201)
def upload_invoice_file(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    invoice_id: UUID,
    user: CurrentUser,
    services: Services,
    trail: Trail,
    file: UploadFile = File(...),
    description: str | None = Form(None),
):
    with trail.track(
        "UPLOAD", INVOICE_FILE, entity_name=file.filename, rc_id=rc_id, fiscal_year_id=fy_id
    ) as entry:
        info = services.spending.upload_invoice_file(
            rc_id, fy_id, item_id, invoice_id, user.username, read_upload(file, description)
        )
        entry.succeeded(info.id, info.file_name)
    return info


@router.get(FILES + "/{file_id}")
def get_invoice_file(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    invoice_id: UUID,
    file_id: UUID,
    user: CurrentUser,
    services: Services,
):
    return services.spending.get_invoice_file(
        rc_id, fy_id, item_id, invoice_id, file_id, user.username
    )


@router.get(FILES + "/{file_id}/download")
def download_invoice_file(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    invoice_id: UUID,
    file_id: UUID,
    user: CurrentUser,
    services: Services,
):
    content = services.spending.download_invoice_file(
        rc_id, fy_id, item_id, invoice_id, file_id, user.username
    )
    return file_response(content)


@router.get(FILES + "/{file_id}/view")
def view_invoice_file(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    invoice_id: UUID,
    file_id: UUID,
    user: CurrentUser,
    services: Services,
):
    content = services.spending.download_invoice_file(
        rc_id, fy_id, item_id, invoice_id, file_id, user.username
    )
    return file_response(content, inline=True)


@router.put(FILES + "/{file_id}")
def update_invoice_file_description(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    invoice_id: UUID,
    file_id: UUID,
    body: FileDescriptionRequest,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "UPDATE", INVOICE_FILE, entity_id=file_id, rc_id=rc_id, fiscal_year_id=fy_id
    ):
        return services.spending.update_invoice_file_description(
            rc_id, fy_id, item_id, invoice_id, file_id, user.username, body.description
        )


@router.put(FILES + "/{file_id}/content")
def replace_invoice_file(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    invoice_id: UUID,
    file_id: UUID,
    user: CurrentUser,
    services: Services,
    trail: Trail,
    file: UploadFile = File(...),
    description: str | None = Form(None),
):
    with trail.track(
        "REPLACE", INVOICE_FILE, entity_id=file_id, rc_id=rc_id, fiscal_year_id=fy_id
    ):
        return services.spending.replace_invoice_file(
            rc_id,
            fy_id,
            item_id,
            invoice_id,
            file_id,
            user.username,
            read_upload(file, description),
        )


@router.delete(FILES + "/{file_id}", status_code=204)
def delete_invoice_file(
    rc_id: UUID,
    fy_id: UUID,
    item_id: UUID,
    invoice_id: UUID,
    file_id: UUID,
    user: CurrentUser,
    services: Services,
    trail: Trail,
):
    with trail.track(
        "DELETE", INVOICE_FILE, entity_id=file_id, rc_id=rc_id, fiscal_year_id=fy_id
    ):
        services.spending.delete_invoice_file(
            rc_id, fy_id, item_id, invoice_id, file_id, user.username
        )
