"""
Training Domain Models (``myrc_modules.training.models``).

Responsibility
--------------
Frozen value objects for training items (courses, conference
registrations) and their participants.

Architecture position
---------------------
**Modules layer** -- pure data definitions.  No I/O, no database.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from myrc_modules._common import MoneyAllocation
from myrc_modules._planned import CostInput, PlanStatus

TrainingStatus = PlanStatus


class TrainingType(Enum):
    COURSE_TRAINING = "COURSE_TRAINING"
    CONFERENCE_REGISTRATION = "CONFERENCE_REGISTRATION"
    OTHER = "OTHER"


class TrainingFormat(Enum):
    IN_PERSON = "IN_PERSON"
    ONLINE = "ONLINE"


class ParticipantStatus(Enum):
    PLANNED = "PLANNED"
    ECO_CREATED = "ECO_CREATED"
    REGISTERED = "REGISTERED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class ParticipantInput(CostInput):
    """Participant fields as submitted; None means "not supplied" on update."""

    name: str | None = None
    eco: str | None = None
    status: ParticipantStatus | str | None = None


@dataclass(frozen=True)
class TrainingParticipant:
    id: UUID
    training_item_id: UUID
    name: str
    eco: str | None
    status: ParticipantStatus
    estimated_cost: Decimal | None
    estimated_currency: str
    estimated_exchange_rate: Decimal | None
    estimated_cost_cad: Decimal | None
    final_cost: Decimal | None
    final_currency: str
    final_exchange_rate: Decimal | None
    final_cost_cad: Decimal | None
    version: int = 1


@dataclass(frozen=True)
class TrainingItem:
    id: UUID
    fiscal_year_id: UUID
    name: str
    description: str | None
    provider: str | None
    status: PlanStatus
    training_type: TrainingType
    format: TrainingFormat
    start_date: date | None
    end_date: date | None
    location: str | None
    participants: tuple[TrainingParticipant, ...]
    money_allocations: tuple[MoneyAllocation, ...]
    estimated_total_cad: Decimal
    final_total_cad: Decimal
    created_at: datetime | None
    updated_at: datetime | None
    version: int

    @property
    def total_om(self) -> Decimal:
        return sum((a.om_amount for a in self.money_allocations), Decimal("0"))
