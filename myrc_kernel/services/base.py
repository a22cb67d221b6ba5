"""
BaseService -- abstract base for all myRC services.

Responsibility:
    Provides the common constructor and session-handling contract for every
    service in the kernel and module layers.  Services receive a SQLAlchemy
    ``Session`` and persist with ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Module services
    and the cross-module services layer extend it as well.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's transaction
      and never commit or roll back themselves.  The caller (the API request
      scope, ``session_scope()``, or a test) owns commit/rollback, so a deep
      clone or an import is atomic.
    - Optimistic locking: a client-supplied version that differs from the
      loaded row version, or a StaleDataError at flush, surfaces as
      OptimisticLockError.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from myrc_kernel.db.base import Base, TrackedBase
from myrc_kernel.exceptions import NotFoundError, OptimisticLockError

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
    """

    def __init__(self, session: Session):
        self.session = session

    def _flush(self, entity: TrackedBase | None = None) -> None:
        """Flush pending changes, translating stale-row errors."""
        try:
            self.session.flush()
        except StaleDataError as exc:
            entity_type = type(entity).__name__ if entity is not None else "entity"
            entity_id = getattr(entity, "id", None)
            raise OptimisticLockError(entity_type, entity_id) from exc

    @staticmethod
    def _check_version(entity: TrackedBase, expected_version: int | None) -> None:
        """Reject an update made against a stale copy of ``entity``."""
        if expected_version is not None and expected_version != entity.version:
            raise OptimisticLockError(type(entity).__name__, entity.id)

    def _get_or_raise(
        self,
        model: type[ModelType],
        entity_id: UUID,
        label: str,
    ) -> ModelType:
        entity = self.session.get(model, entity_id)
        if entity is None:
            raise NotFoundError(label, entity_id)
        return entity
