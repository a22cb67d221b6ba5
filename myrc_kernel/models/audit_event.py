"""
Module: myrc_kernel.models.audit_event
Responsibility: ORM persistence for the request audit trail.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - An audit row is written (outcome PENDING) before the audited action
      runs, then marked SUCCESS or FAILURE.
    - rc_id / fiscal_year_id are plain columns, not foreign keys: audit rows
      outlive the entities they describe.
    - Cloned rows point at their source through cloned_from_audit_id.

Audit relevance:
    AuditEvent IS the audit trail for every mutating API request.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from myrc_kernel.db.base import Base, UUIDString, utcnow

PARAMETERS_MAX_LENGTH = 10000


class AuditOutcome(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


class AuditEvent(Base):
    """One audited request."""

    __tablename__ = "audit_events"

    __table_args__ = (
        Index("idx_audit_rc", "rc_id", "created_at"),
        Index("idx_audit_rc_fy", "rc_id", "fiscal_year_id"),
    )

    username: Mapped[str] = mapped_column(String(100), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    entity_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    rc_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    rc_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    fiscal_year_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    fiscal_year_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    parameters: Mapped[str | None] = mapped_column(Text, nullable=True)
    http_method: Mapped[str | None] = mapped_column(String(10), nullable=True)
    endpoint: Mapped[str | None] = mapped_column(String(500), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    outcome: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AuditOutcome.PENDING.value
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    cloned_from_audit_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    def __repr__(self) -> str:
        return f"<AuditEvent {self.action} {self.entity_type} [{self.outcome}]>"
