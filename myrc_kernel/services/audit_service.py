"""
AuditService -- the request audit trail.

Responsibility:
    Records an audit row before a mutating action runs, marks it SUCCESS or
    FAILURE afterwards, lists the trail of an RC or fiscal year for its
    owner, and copies trails onto cloned RCs and fiscal years.

Architecture position:
    Kernel > Services.  The API wraps every mutating route with
    ``record`` / ``mark_success`` / ``mark_failure``.

Invariants enforced:
    - Audit rows are written through their own session (``session_factory``)
      and committed immediately, so they survive a rollback of the audited
      request.  Without a factory they are flushed into the caller's session.
    - If the PENDING row cannot be written, the action must not run:
      ``record`` raises AuditRecordingError.
    - Serialized parameters are truncated to 10000 characters.

Audit relevance:
    This IS the audit trail.
"""

from __future__ import annotations

import json
from collections.abc import Generator, Mapping
from contextlib import contextmanager
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from myrc_kernel.domain.dtos import AuditEventView
from myrc_kernel.exceptions import AuditRecordingError
from myrc_kernel.logging_config import get_logger
from myrc_kernel.models.audit_event import PARAMETERS_MAX_LENGTH, AuditEvent, AuditOutcome
from myrc_kernel.models.fiscal_year import FiscalYear
from myrc_kernel.models.responsibility_centre import ResponsibilityCentre
from myrc_kernel.services.base import BaseService
from myrc_kernel.services.permission_service import PermissionService

logger = get_logger("services.audit")

TRUNCATION_MARKER = "...(truncated)"


def serialize_parameters(parameters: Mapping[str, Any] | str | None) -> str | None:
    """JSON-encode request parameters, truncated to the column limit."""
    if parameters is None:
        return None
    if isinstance(parameters, str):
        text = parameters
    else:
        if not parameters:
            return None
        text = json.dumps(parameters, default=str)
    if len(text) > PARAMETERS_MAX_LENGTH:
        text = text[:PARAMETERS_MAX_LENGTH] + TRUNCATION_MARKER
    return text


class AuditService(BaseService[AuditEvent]):
    """
    Audit trail writer and reader.

    Contract:
        ``record`` returns the id of a PENDING row; callers pass it back to
        ``mark_success`` or ``mark_failure``.  Listing requires RC ownership.
    """

    def __init__(
        self,
        session: Session,
        session_factory: sessionmaker[Session] | None = None,
        permissions: PermissionService | None = None,
    ):
        super().__init__(session)
        self.session_factory = session_factory
        self.permissions = permissions or PermissionService(session)

    @contextmanager
    def _writer(self) -> Generator[Session, None, None]:
        if self.session_factory is None:
            yield self.session
            self.session.flush()
            return
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record(
        self,
        username: str,
        action: str,
        entity_type: str,
        *,
        entity_id: object | None = None,
        entity_name: str | None = None,
        rc_id: UUID | None = None,
        fiscal_year_id: UUID | None = None,
        parameters: Mapping[str, Any] | str | None = None,
        http_method: str | None = None,
        endpoint: str | None = None,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> UUID:
        """
        Persist a PENDING audit row.

        RC and fiscal-year names are resolved from their ids when the rows
        exist.

        Raises:
            AuditRecordingError: the row could not be written.
        """
        rc_name = None
        fy_name = None
        if rc_id is not None:
            rc = self.session.get(ResponsibilityCentre, rc_id)
            rc_name = rc.name if rc is not None else None
        if fiscal_year_id is not None:
            fy = self.session.get(FiscalYear, fiscal_year_id)
            fy_name = fy.name if fy is not None else None

        event = AuditEvent(
            username=username,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            entity_name=entity_name,
            rc_id=rc_id,
            rc_name=rc_name,
            fiscal_year_id=fiscal_year_id,
            fiscal_year_name=fy_name,
            parameters=serialize_parameters(parameters),
            http_method=http_method,
            endpoint=endpoint,
            user_agent=user_agent,
            ip_address=ip_address,
            outcome=AuditOutcome.PENDING.value,
        )
        try:
            with self._writer() as writer:
                writer.add(event)
                writer.flush()
                event_id = event.id
        except SQLAlchemyError as exc:
            logger.error(
                "audit_record_failed",
                extra={"action": action, "entity_type": entity_type},
                exc_info=True,
            )
            raise AuditRecordingError(action, entity_type) from exc

        logger.debug(
            "audit_recorded",
            extra={"audit_id": str(event_id), "action": action, "entity_type": entity_type},
        )
        return event_id

    def mark_success(
        self,
        audit_id: UUID,
        entity_id: object | None = None,
        entity_name: str | None = None,
    ) -> None:
        with self._writer() as writer:
            event = writer.get(AuditEvent, audit_id)
            if event is None:
                return
            event.outcome = AuditOutcome.SUCCESS.value
            if entity_id is not None:
                event.entity_id = str(entity_id)
            if entity_name is not None:
                event.entity_name = entity_name
        logger.debug("audit_marked_success", extra={"audit_id": str(audit_id)})

    def mark_failure(self, audit_id: UUID, error_message: str | None) -> None:
        with self._writer() as writer:
            event = writer.get(AuditEvent, audit_id)
            if event is None:
                return
            event.outcome = AuditOutcome.FAILURE.value
            event.error_message = error_message
        logger.debug("audit_marked_failure", extra={"audit_id": str(audit_id)})

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def _events(
        self, rc_id: UUID, fiscal_year_id: UUID | None = None, rc_level_only: bool = False
    ) -> list[AuditEvent]:
        stmt = select(AuditEvent).where(AuditEvent.rc_id == rc_id)
        if fiscal_year_id is not None:
            stmt = stmt.where(AuditEvent.fiscal_year_id == fiscal_year_id)
        elif rc_level_only:
            stmt = stmt.where(AuditEvent.fiscal_year_id.is_(None))
        stmt = stmt.order_by(AuditEvent.created_at.desc())
        return list(self.session.execute(stmt).scalars())

    def list_for_rc(self, rc_id: UUID, username: str) -> list[AuditEventView]:
        self.permissions.require_owner(rc_id, username)
        return [AuditEventView.from_model(e) for e in self._events(rc_id)]

    def list_for_fiscal_year(
        self, rc_id: UUID, fiscal_year_id: UUID, username: str
    ) -> list[AuditEventView]:
        self.permissions.require_owner(rc_id, username)
        return [AuditEventView.from_model(e) for e in self._events(rc_id, fiscal_year_id)]

    # ------------------------------------------------------------------
    # Cloning
    # ------------------------------------------------------------------

    @staticmethod
    def _copy(
        source: AuditEvent,
        rc_id: UUID,
        rc_name: str,
        fiscal_year_id: UUID | None,
        fiscal_year_name: str | None,
    ) -> AuditEvent:
        return AuditEvent(
            username=source.username,
            action=source.action,
            entity_type=source.entity_type,
            entity_id=source.entity_id,
            entity_name=source.entity_name,
            rc_id=rc_id,
            rc_name=rc_name,
            fiscal_year_id=fiscal_year_id if fiscal_year_id is not None else source.fiscal_year_id,
            fiscal_year_name=(
                fiscal_year_name if fiscal_year_name is not None else source.fiscal_year_name
            ),
            parameters=source.parameters,
            http_method=source.http_method,
            endpoint=source.endpoint,
            user_agent=source.user_agent,
            ip_address=source.ip_address,
            outcome=source.outcome,
            error_message=source.error_message,
            cloned_from_audit_id=source.id,
            created_at=source.created_at,
        )

    def clone_for_rc(self, source_rc_id: UUID, target_rc_id: UUID, target_rc_name: str) -> int:
        """
        Copy the RC-level trail (rows without a fiscal year) onto another RC.

        Fiscal-year rows are copied by ``clone_for_fiscal_year`` as each
        fiscal year is cloned.  Returns the number of rows copied.
        """
        events = self._events(source_rc_id, rc_level_only=True)
        for source in events:
            self.session.add(self._copy(source, target_rc_id, target_rc_name, None, None))
        self._flush()
        logger.info(
            "audit_events_cloned",
            extra={
                "source_rc_id": str(source_rc_id),
                "target_rc_id": str(target_rc_id),
                "count": len(events),
            },
        )
        return len(events)

    def clone_for_fiscal_year(
        self,
        source_rc_id: UUID,
        source_fiscal_year_id: UUID,
        target_rc_id: UUID,
        target_rc_name: str,
        target_fiscal_year_id: UUID,
        target_fiscal_year_name: str,
    ) -> int:
        events = self._events(source_rc_id, source_fiscal_year_id)
        for source in events:
            self.session.add(
                self._copy(
                    source,
                    target_rc_id,
                    target_rc_name,
                    target_fiscal_year_id,
                    target_fiscal_year_name,
                )
            )
        self._flush()
        logger.info(
            "audit_events_cloned",
            extra={
                "source_fiscal_year_id": str(source_fiscal_year_id),
                "target_fiscal_year_id": str(target_fiscal_year_id),
                "count": len(events),
            },
        )
        return len(events)
