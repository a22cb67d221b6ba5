"""
Travel Module Service (``myrc_modules.travel.service``).

Travel items of a fiscal year with their travellers and O&M allocations.
Same access rules and lifecycle as training.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Any
from uuid import UUID

from myrc_modules._common import AllocationInput, parse_enum, require_text
from myrc_modules._planned import PlannedItemService, PlanStatus, apply_costs
from myrc_modules.travel.models import (
    ApprovalStatus,
    TravelItem,
    TravellerInput,
    TravelTraveller,
    TravelType,
)
from myrc_modules.travel.orm import TravelAllocationModel, TravelItemModel, TravelTravellerModel


class TravelService(PlannedItemService):
    item_model = TravelItemModel
    allocation_model = TravelAllocationModel
    person_model = TravelTravellerModel
    people_attr = "travellers"
    item_fk = "travel_item_id"
    item_label = "travel item"
    person_label = "Traveller"
    logger_name = "modules.travel"

    def _person_values(self, person: TravelTravellerModel, request: TravellerInput, creating: bool) -> None:
        if creating:
            person.name = require_text(request.name, "Traveller name is required", "name")
        elif request.name is not None and request.name.strip():
            person.name = request.name.strip()
        if creating or request.taac is not None:
            person.taac = request.taac
        if creating or request.approval_status is not None:
            person.approval_status = parse_enum(
                ApprovalStatus,
                request.approval_status,
                "approval status",
                ApprovalStatus.PLANNED,
                "approval_status",
            ).value
        apply_costs(person, request, creating)

    @staticmethod
    def _values(creating: bool, **fields: Any) -> dict[str, Any]:
        values = {k: v for k, v in fields.items() if creating or v is not None}
        if creating or fields["status"] is not None:
            values["status"] = parse_enum(
                PlanStatus, fields["status"], "status", PlanStatus.PLANNED, "status"
            ).value
        if creating or fields["travel_type"] is not None:
            values["travel_type"] = parse_enum(
                TravelType, fields["travel_type"], "travel type", TravelType.DOMESTIC, "travel_type"
            ).value
        return values

    def create(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        username: str,
        *,
        name: str,
        description: str | None = None,
        emap: str | None = None,
        destination: str | None = None,
        purpose: str | None = None,
        status: PlanStatus | str | None = None,
        travel_type: TravelType | str | None = None,
        departure_date: date | None = None,
        return_date: date | None = None,
        travellers: Sequence[TravellerInput] | None = None,
        allocations: Sequence[AllocationInput] | None = None,
    ) -> TravelItem:
        values = self._values(
            True,
            description=description,
            emap=emap,
            destination=destination,
            purpose=purpose,
            status=status,
            travel_type=travel_type,
            departure_date=departure_date,
            return_date=return_date,
        )
        return self._create(rc_id, fiscal_year_id, username, name, values, travellers, allocations)

    def update(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        username: str,
        *,
        name: str | None = None,
        description: str | None = None,
        emap: str | None = None,
        destination: str | None = None,
        purpose: str | None = None,
        status: PlanStatus | str | None = None,
        travel_type: TravelType | str | None = None,
        departure_date: date | None = None,
        return_date: date | None = None,
        expected_version: int | None = None,
    ) -> TravelItem:
        values = self._values(
            False,
            description=description,
            emap=emap,
            destination=destination,
            purpose=purpose,
            status=status,
            travel_type=travel_type,
            departure_date=departure_date,
            return_date=return_date,
        )
        return self._update(rc_id, fiscal_year_id, item_id, username, name, values, expected_version)

    def list_travellers(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str
    ) -> list[TravelTraveller]:
        return self._list_people(rc_id, fiscal_year_id, item_id, username)

    def add_traveller(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str, traveller: TravellerInput
    ) -> TravelTraveller:
        return self._add_person(rc_id, fiscal_year_id, item_id, username, traveller)

    def update_traveller(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        traveller_id: UUID,
        username: str,
        traveller: TravellerInput,
    ) -> TravelTraveller:
        return self._update_person(rc_id, fiscal_year_id, item_id, traveller_id, username, traveller)

    def delete_traveller(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, traveller_id: UUID, username: str
    ) -> None:
        self._delete_person(rc_id, fiscal_year_id, item_id, traveller_id, username)
