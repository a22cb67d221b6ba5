"""
Training Module Service (``myrc_modules.training.service``).

Training items of a fiscal year with their participants and O&M
allocations.  Read access is required for reads, write access for
mutations; items are hard-deleted.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Any
from uuid import UUID

from myrc_modules._common import AllocationInput, parse_enum, require_text
from myrc_modules._planned import PlannedItemService, PlanStatus, apply_costs
from myrc_modules.training.models import (
    ParticipantInput,
    ParticipantStatus,
    TrainingFormat,
    TrainingItem,
    TrainingParticipant,
    TrainingType,
)
from myrc_modules.training.orm import (
    TrainingAllocationModel,
    TrainingItemModel,
    TrainingParticipantModel,
)


class TrainingService(PlannedItemService):
    item_model = TrainingItemModel
    allocation_model = TrainingAllocationModel
    person_model = TrainingParticipantModel
    people_attr = "participants"
    item_fk = "training_item_id"
    item_label = "training item"
    person_label = "Participant"
    logger_name = "modules.training"

    def _person_values(
        self, person: TrainingParticipantModel, request: ParticipantInput, creating: bool
    ) -> None:
        if creating:
            person.name = require_text(request.name, "Participant name is required", "name")
        elif request.name is not None and request.name.strip():
            person.name = request.name.strip()
        if creating or request.eco is not None:
            person.eco = request.eco
        if creating or request.status is not None:
            person.status = parse_enum(
                ParticipantStatus, request.status, "participant status", ParticipantStatus.PLANNED, "status"
            ).value
        apply_costs(person, request, creating)

    @staticmethod
    def _values(creating: bool, **fields: Any) -> dict[str, Any]:
        values = {k: v for k, v in fields.items() if creating or v is not None}
        if creating or fields["status"] is not None:
            values["status"] = parse_enum(
                PlanStatus, fields["status"], "status", PlanStatus.PLANNED, "status"
            ).value
        if creating or fields["training_type"] is not None:
            values["training_type"] = parse_enum(
                TrainingType, fields["training_type"], "training type", TrainingType.OTHER, "training_type"
            ).value
        if creating or fields["format"] is not None:
            values["format"] = parse_enum(
                TrainingFormat, fields["format"], "format", TrainingFormat.IN_PERSON, "format"
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
        provider: str | None = None,
        status: PlanStatus | str | None = None,
        training_type: TrainingType | str | None = None,
        format: TrainingFormat | str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        location: str | None = None,
        participants: Sequence[ParticipantInput] | None = None,
        allocations: Sequence[AllocationInput] | None = None,
    ) -> TrainingItem:
        values = self._values(
            True,
            description=description,
            provider=provider,
            status=status,
            training_type=training_type,
            format=format,
            start_date=start_date,
            end_date=end_date,
            location=location,
        )
        return self._create(rc_id, fiscal_year_id, username, name, values, participants, allocations)

    def update(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        username: str,
        *,
        name: str | None = None,
        description: str | None = None,
        provider: str | None = None,
        status: PlanStatus | str | None = None,
        training_type: TrainingType | str | None = None,
        format: TrainingFormat | str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        location: str | None = None,
        expected_version: int | None = None,
    ) -> TrainingItem:
        values = self._values(
            False,
            description=description,
            provider=provider,
            status=status,
            training_type=training_type,
            format=format,
            start_date=start_date,
            end_date=end_date,
            location=location,
        )
        return self._update(rc_id, fiscal_year_id, item_id, username, name, values, expected_version)

    def list_participants(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str
    ) -> list[TrainingParticipant]:
        return self._list_people(rc_id, fiscal_year_id, item_id, username)

    def add_participant(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, username: str, participant: ParticipantInput
    ) -> TrainingParticipant:
        return self._add_person(rc_id, fiscal_year_id, item_id, username, participant)

    def update_participant(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        item_id: UUID,
        participant_id: UUID,
        username: str,
        participant: ParticipantInput,
    ) -> TrainingParticipant:
        return self._update_person(rc_id, fiscal_year_id, item_id, participant_id, username, participant)

    def delete_participant(
        self, rc_id: UUID, fiscal_year_id: UUID, item_id: UUID, participant_id: UUID, username: str
    ) -> None:
        self._delete_person(rc_id, fiscal_year_id, item_id, participant_id, username)
