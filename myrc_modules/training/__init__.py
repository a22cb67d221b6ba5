"""
Training Module (``myrc_modules.training``).

Training items with participants, estimated / final costs and O&M
allocations per money.
"""

from myrc_modules.training.models import (
    ParticipantInput,
    ParticipantStatus,
    TrainingFormat,
    TrainingItem,
    TrainingParticipant,
    TrainingStatus,
    TrainingType,
)
from myrc_modules.training.service import TrainingService

__all__ = [
    "ParticipantInput",
    "ParticipantStatus",
    "TrainingFormat",
    "TrainingItem",
    "TrainingParticipant",
    "TrainingService",
    "TrainingStatus",
    "TrainingType",
]
