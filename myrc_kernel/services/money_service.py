"""
MoneyService -- money types (funding envelopes) of a fiscal year.

Responsibility:
    Maintains the monies of a fiscal year: the protected default AB money,
    owner-managed additional monies, their display order, and the
    "in use" rule that blocks deleting a money that still carries amounts.

Architecture position:
    Kernel > Services.  Funding and spending allocations live in modules, so
    usage checks and zero-allocation back-fills go through the
    ``MoneyAllocationHook`` protocol; modules provide implementations and
    the outer layers inject them.

Invariants enforced:
    - Codes are upper-case and unique within the fiscal year.
    - Exactly one default money; its code never changes and it is never
      deleted.
    - A money with any non-zero CAP or OM allocation cannot be deleted.
    - A new money gets a zero allocation on every existing item.

Failure modes:
    - DefaultEntityProtectedError, MoneyInUseError, DuplicateNameError,
      ValidationError, NotFoundError.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from myrc_kernel.domain.dtos import MoneyView
from myrc_kernel.exceptions import (
    DefaultEntityProtectedError,
    DuplicateNameError,
    MoneyInUseError,
    NotFoundError,
    ValidationError,
)
from myrc_kernel.logging_config import get_logger
from myrc_kernel.models.fiscal_year import FiscalYear
from myrc_kernel.models.money import (
    DEFAULT_MONEY_CODE,
    DEFAULT_MONEY_DESCRIPTION,
    DEFAULT_MONEY_NAME,
    Money,
)
from myrc_kernel.services.base import BaseService
from myrc_kernel.services.permission_service import PermissionService

logger = get_logger("services.money")


class MoneyAllocationHook(Protocol):
    """Allocation store of a module that splits amounts across monies."""

    def money_in_use(self, money_id: UUID) -> bool:
        """True when any allocation on this money has a non-zero amount."""
        ...

    def money_added(self, fiscal_year_id: UUID, money_id: UUID) -> None:
        """Back-fill a zero allocation for the new money on every item."""
        ...


class MoneyService(BaseService[Money]):
    """
    Money management scoped to (rc, fiscal year).

    Contract:
        Reads require RC read access; create / update / delete / reorder
        require RC ownership (monies are configuration-level).
    """

    def __init__(
        self,
        session: Session,
        permissions: PermissionService | None = None,
        hooks: Sequence[MoneyAllocationHook] = (),
    ):
        super().__init__(session)
        self.permissions = permissions or PermissionService(session)
        self.hooks = tuple(hooks)

    def _in_use(self, money: Money) -> bool:
        return any(hook.money_in_use(money.id) for hook in self.hooks)

    def _view(self, money: Money) -> MoneyView:
        return MoneyView.from_model(money, can_delete=not money.is_default and not self._in_use(money))

    def _get_in_fy(self, fy: FiscalYear, money_id: UUID) -> Money:
        money = self.session.get(Money, money_id)
        if money is None or money.fiscal_year_id != fy.id:
            raise NotFoundError("Money", money_id, "Money not found")
        return money

    def _code_taken(self, fy: FiscalYear, code: str, exclude_id: UUID | None = None) -> bool:
        return any(m.code == code and m.id != exclude_id for m in fy.monies)

    # ------------------------------------------------------------------

    def list_monies(self, rc_id: UUID, fiscal_year_id: UUID, username: str) -> list[MoneyView]:
        fy = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username)
        return [self._view(m) for m in fy.monies]

    def get(self, rc_id: UUID, fiscal_year_id: UUID, money_id: UUID, username: str) -> MoneyView:
        fy = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username)
        return self._view(self._get_in_fy(fy, money_id))

    def create(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        username: str,
        code: str,
        name: str,
        description: str | None = None,
    ) -> MoneyView:
        fy = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username, "OWNER")
        if not code or not code.strip():
            raise ValidationError("Money code is required", field="code")
        if not name or not name.strip():
            raise ValidationError("Money name is required", field="name")
        code = code.strip().upper()
        if self._code_taken(fy, code):
            raise DuplicateNameError(
                "money", code, "A Money with this code already exists for this Fiscal Year"
            )

        next_order = (
            self.session.execute(
                select(func.max(Money.display_order)).where(Money.fiscal_year_id == fy.id)
            ).scalar()
            or 0
        ) + 1
        money = Money(
            code=code,
            name=name.strip(),
            description=description,
            is_default=False,
            display_order=next_order,
            active=True,
            created_by=username,
        )
        fy.monies.append(money)
        self._flush(money)
        for hook in self.hooks:
            hook.money_added(fy.id, money.id)
        self._flush()
        logger.info(
            "money_created",
            extra={"fiscal_year_id": str(fy.id), "money_code": code, "display_order": next_order},
        )
        return self._view(money)

    def update(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        money_id: UUID,
        username: str,
        *,
        code: str | None = None,
        name: str | None = None,
        description: str | None = None,
        expected_version: int | None = None,
    ) -> MoneyView:
        fy = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username, "OWNER")
        money = self._get_in_fy(fy, money_id)
        self._check_version(money, expected_version)

        if code is not None:
            code = code.strip().upper()
            if money.is_default and code != money.code:
                raise DefaultEntityProtectedError(
                    "money", "Cannot change the code of the default money (AB)"
                )
            if code != money.code and self._code_taken(fy, code, exclude_id=money.id):
                raise DuplicateNameError(
                    "money", code, "A Money with this code already exists for this Fiscal Year"
                )
            if not money.is_default:
                money.code = code
        if name is not None:
            money.name = name
        if description is not None:
            money.description = description
        money.updated_by = username

        self._flush(money)
        logger.info("money_updated", extra={"money_id": str(money.id), "money_code": money.code})
        return self._view(money)

    def delete(self, rc_id: UUID, fiscal_year_id: UUID, money_id: UUID, username: str) -> None:
        fy = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username, "OWNER")
        money = self._get_in_fy(fy, money_id)
        if money.is_default:
            raise DefaultEntityProtectedError("money", "Cannot delete the default money (AB)")
        if self._in_use(money):
            raise MoneyInUseError(money.code)

        # Zero allocations go with the money through ON DELETE CASCADE.
        fy.monies.remove(money)
        self._flush()
        logger.info("money_deleted", extra={"fiscal_year_id": str(fy.id), "money_code": money.code})

    def reorder(
        self, rc_id: UUID, fiscal_year_id: UUID, username: str, money_ids: Iterable[UUID]
    ) -> list[MoneyView]:
        fy = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username, "OWNER")
        by_id = {m.id: m for m in fy.monies}
        for index, money_id in enumerate(money_ids):
            money = by_id.get(money_id)
            if money is not None:
                money.display_order = index
        self._flush()
        logger.info("monies_reordered", extra={"fiscal_year_id": str(fy.id)})
        return [self._view(m) for m in sorted(fy.monies, key=lambda m: (m.display_order, m.code))]

    # ------------------------------------------------------------------

    def ensure_default_money(self, fy: FiscalYear, actor: str | None = None) -> Money:
        """
        Idempotently give ``fy`` its default AB money.

        Postconditions:
            - Exactly one money in ``fy`` has ``is_default``; an existing AB
              row is promoted rather than duplicated.
        """
        for money in fy.monies:
            if money.is_default:
                return money
        for money in fy.monies:
            if money.code == DEFAULT_MONEY_CODE:
                money.is_default = True
                self._flush(money)
                return money

        money = Money(
            code=DEFAULT_MONEY_CODE,
            name=DEFAULT_MONEY_NAME,
            description=DEFAULT_MONEY_DESCRIPTION,
            is_default=True,
            display_order=0,
            active=True,
            created_by=actor,
        )
        fy.monies.append(money)
        self._flush(money)
        logger.info("default_money_created", extra={"fiscal_year_id": str(fy.id)})
        return money
