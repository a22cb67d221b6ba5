"""
Module: myrc_kernel.db.base
Responsibility: Declarative bases for every myRC table.  ``Base`` supplies the
    UUID primary key and the column type map; ``TrackedBase`` adds who/when
    columns and the optimistic-lock ``version``.
Architecture position: Kernel > DB.  Imported by every ORM module in the
    kernel and in ``myrc_modules``; imports nothing from myRC itself.

Column conventions:
    - ``UUID`` -> String(36), so PostgreSQL and SQLite store ids identically.
    - ``Decimal`` -> Numeric(38, 9) for amounts and exchange rates.
    - ``datetime`` -> timezone-aware DateTime; SQLite hands values back
      naive, which ``as_utc`` repairs before comparisons.

Optimistic locking:
    ``version`` is the mapper's ``version_id_col``: SQLAlchemy writes 1 on
    INSERT and qualifies each UPDATE with the loaded value before
    incrementing it.  A lost race surfaces as ``StaleDataError`` at flush,
    which ``BaseService`` turns into ``OptimisticLockError``.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column
from sqlalchemy.types import TypeDecorator

INITIAL_VERSION = 1

ACTOR_LENGTH = 100


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


class UUIDString(TypeDecorator):
    """A ``uuid.UUID`` persisted as its 36-character text form."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else PyUUID(value)


class Base(DeclarativeBase):
    """Every table has a random UUID ``id``."""

    type_annotation_map: ClassVar[dict] = {
        PyUUID: UUIDString(),
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Base for user-editable records: RCs, fiscal years, monies, categories
    and every module item.

    ``created_by`` / ``updated_by`` hold usernames; they stay NULL for rows
    seeded by the system (default money, default categories).
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )
    created_by: Mapped[str | None] = mapped_column(String(ACTOR_LENGTH))
    updated_by: Mapped[str | None] = mapped_column(String(ACTOR_LENGTH))
    version: Mapped[int] = mapped_column(nullable=False)

    @declared_attr.directive
    def __mapper_args__(cls) -> dict[str, Any]:
        return {"version_id_col": cls.__table__.c.version}


UUID = PyUUID
