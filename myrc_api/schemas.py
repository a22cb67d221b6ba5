"""
Request bodies for the myRC HTTP API.

Field names follow the service keyword arguments so routers can forward
``model_dump()`` output directly.  ``None`` on an update body means "leave
unchanged"; ``version`` is the client's copy of the row version for the
optimistic-lock check.  Responses are the frozen service DTOs, encoded by
FastAPI.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from myrc_modules._common import AllocationInput
from myrc_modules.training.models import ParticipantInput
from myrc_modules.travel.models import TravellerInput


class RequestModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Versioned(RequestModel):
    version: int | None = None


# =============================================================================
# Accounts
# =============================================================================


class RegisterRequest(RequestModel):
    username: str
    password: str
    email: str | None = None
    full_name: str | None = None


class UserCreateRequest(RequestModel):
    username: str
    password: str | None = None
    email: str | None = None
    full_name: str | None = None
    auth_provider: str = "LOCAL"
    external_id: str | None = None
    roles: list[str] | None = None


class UserUpdateRequest(Versioned):
    full_name: str | None = None
    email: str | None = None
    enabled: bool | None = None
    account_locked: bool | None = None
    email_verified: bool | None = None
    roles: list[str] | None = None


class PasswordChangeRequest(RequestModel):
    current_password: str
    new_password: str


class PasswordResetRequest(RequestModel):
    new_password: str


class ThemeRequest(RequestModel):
    theme: str


# =============================================================================
# Responsibility centres and permissions
# =============================================================================


class RCCreateRequest(RequestModel):
    name: str
    description: str | None = None


class RCUpdateRequest(Versioned):
    name: str | None = None
    description: str | None = None
    active: bool | None = None
    training_enabled: bool | None = None
    travel_enabled: bool | None = None
    training_include_in_summary: bool | None = None
    travel_include_in_summary: bool | None = None


class CloneRequest(RequestModel):
    new_name: str


class FiscalYearCloneRequest(CloneRequest):
    target_rc_id: UUID | None = None


class UserGrantRequest(RequestModel):
    principal_identifier: str
    access_level: str


class GroupGrantRequest(RequestModel):
    principal_identifier: str
    principal_display_name: str | None = None
    principal_type: str = "GROUP"
    access_level: str


class PermissionUpdateRequest(Versioned):
    access_level: str


# =============================================================================
# Fiscal years, monies, categories
# =============================================================================


class FiscalYearCreateRequest(RequestModel):
    name: str
    description: str | None = None


class FiscalYearUpdateRequest(Versioned):
    name: str | None = None
    description: str | None = None


class DisplaySettingsRequest(RequestModel):
    show_search_box: bool | None = None
    show_category_filter: bool | None = None
    group_by_category: bool | None = None
    on_target_min: int | None = None
    on_target_max: int | None = None


class MoneyCreateRequest(RequestModel):
    code: str
    name: str
    description: str | None = None


class MoneyUpdateRequest(Versioned):
    code: str | None = None
    name: str | None = None
    description: str | None = None


class CategoryCreateRequest(RequestModel):
    name: str
    description: str | None = None
    funding_type: str | None = None


class CategoryUpdateRequest(Versioned):
    name: str | None = None
    description: str | None = None
    funding_type: str | None = None


class ReorderRequest(RequestModel):
    ids: list[UUID] = Field(default_factory=list)


# =============================================================================
# Line items
# =============================================================================


class AllocationRow(RequestModel):
    money_id: UUID
    cap_amount: Decimal | None = None
    om_amount: Decimal | None = None


def allocation_inputs(rows: list[AllocationRow] | None) -> list[AllocationInput] | None:
    if rows is None:
        return None
    return [AllocationInput(r.money_id, r.cap_amount, r.om_amount) for r in rows]


class AllocationsRequest(RequestModel):
    money_allocations: list[AllocationRow] = Field(default_factory=list)


class StatusRequest(RequestModel):
    status: str


class FileDescriptionRequest(RequestModel):
    description: str | None = None


class FundingItemCreateRequest(RequestModel):
    name: str
    description: str | None = None
    source: str | None = None
    comments: str | None = None
    currency: str | None = None
    exchange_rate: Decimal | None = None
    category_id: UUID | None = None
    money_allocations: list[AllocationRow] | None = None


class FundingItemUpdateRequest(Versioned):
    name: str | None = None
    description: str | None = None
    source: str | None = None
    comments: str | None = None
    currency: str | None = None
    exchange_rate: Decimal | None = None
    category_id: UUID | None = None
    clear_category: bool = False
    money_allocations: list[AllocationRow] | None = None


class SpendingItemCreateRequest(RequestModel):
    name: str
    category_id: UUID | None = None
    description: str | None = None
    vendor: str | None = None
    reference_number: str | None = None
    amount: Decimal | None = None
    eco_amount: Decimal | None = None
    status: str | None = None
    currency: str | None = None
    exchange_rate: Decimal | None = None
    money_allocations: list[AllocationRow] | None = None


class SpendingItemUpdateRequest(Versioned):
    name: str | None = None
    category_id: UUID | None = None
    description: str | None = None
    vendor: str | None = None
    reference_number: str | None = None
    amount: Decimal | None = None
    eco_amount: Decimal | None = None
    status: str | None = None
    currency: str | None = None
    exchange_rate: Decimal | None = None
    money_allocations: list[AllocationRow] | None = None


class SpendingEventRequest(RequestModel):
    event_type: str | None = None
    event_date: date | None = None
    comment: str | None = None


class InvoiceRequest(Versioned):
    amount: Decimal | None = None
    currency: str | None = None
    exchange_rate: Decimal | None = None
    date_received: date | None = None
    date_processed: date | None = None
    comments: str | None = None


class ProcurementItemCreateRequest(RequestModel):
    name: str
    purchase_requisition: str | None = None
    purchase_order: str | None = None
    description: str | None = None
    vendor: str | None = None
    contract_number: str | None = None
    contract_start_date: date | None = None
    contract_end_date: date | None = None
    final_price: Decimal | None = None
    final_price_currency: str | None = None
    final_price_exchange_rate: Decimal | None = None
    quoted_price: Decimal | None = None
    quoted_price_currency: str | None = None
    quoted_price_exchange_rate: Decimal | None = None
    procurement_completed: bool = False
    procurement_completed_date: date | None = None
    tracking_status: str | None = None
    procurement_type: str | None = None
    category_id: UUID | None = None


class ProcurementItemUpdateRequest(Versioned):
    name: str | None = None
    purchase_requisition: str | None = None
    purchase_order: str | None = None
    description: str | None = None
    vendor: str | None = None
    contract_number: str | None = None
    contract_start_date: date | None = None
    contract_end_date: date | None = None
    final_price: Decimal | None = None
    final_price_currency: str | None = None
    final_price_exchange_rate: Decimal | None = None
    quoted_price: Decimal | None = None
    quoted_price_currency: str | None = None
    quoted_price_exchange_rate: Decimal | None = None
    procurement_completed: bool | None = None
    procurement_completed_date: date | None = None
    tracking_status: str | None = None
    procurement_type: str | None = None
    category_id: UUID | None = None
    clear_category: bool = False


class QuoteCreateRequest(RequestModel):
    vendor_name: str
    vendor_contact: str | None = None
    quote_reference: str | None = None
    amount: Decimal | None = None
    amount_cap: Decimal | None = None
    amount_om: Decimal | None = None
    currency: str | None = None
    exchange_rate: Decimal | None = None
    received_date: date | None = None
    expiry_date: date | None = None
    notes: str | None = None


class QuoteUpdateRequest(Versioned):
    vendor_name: str | None = None
    vendor_contact: str | None = None
    quote_reference: str | None = None
    amount: Decimal | None = None
    amount_cap: Decimal | None = None
    amount_om: Decimal | None = None
    currency: str | None = None
    exchange_rate: Decimal | None = None
    received_date: date | None = None
    expiry_date: date | None = None
    notes: str | None = None
    status: str | None = None


class ProcurementEventRequest(RequestModel):
    event_type: str | None = None
    event_date: date | None = None
    comment: str | None = None
    old_status: str | None = None
    new_status: str | None = None


# =============================================================================
# Training and travel
# =============================================================================


class CostFields(RequestModel):
    estimated_cost: Decimal | None = None
    estimated_currency: str | None = None
    estimated_exchange_rate: Decimal | None = None
    final_cost: Decimal | None = None
    final_currency: str | None = None
    final_exchange_rate: Decimal | None = None


class ParticipantRequest(CostFields):
    name: str | None = None
    eco: str | None = None
    status: str | None = None

    def to_input(self) -> ParticipantInput:
        return ParticipantInput(**self.model_dump())


class TravellerRequest(CostFields):
    name: str | None = None
    taac: str | None = None
    approval_status: str | None = None

    def to_input(self) -> TravellerInput:
        return TravellerInput(**self.model_dump())


class TrainingItemRequest(Versioned):
    name: str | None = None
    description: str | None = None
    provider: str | None = None
    status: str | None = None
    training_type: str | None = None
    format: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    location: str | None = None
    participants: list[ParticipantRequest] | None = None
    money_allocations: list[AllocationRow] | None = None


class TravelItemRequest(Versioned):
    name: str | None = None
    description: str | None = None
    emap: str | None = None
    destination: str | None = None
    purpose: str | None = None
    status: str | None = None
    travel_type: str | None = None
    departure_date: date | None = None
    return_date: date | None = None
    travellers: list[TravellerRequest] | None = None
    money_allocations: list[AllocationRow] | None = None
