"""
Service layer for fiscal-year categories.

Categories group funding, spending and procurement items.  Each fiscal year
is seeded with a fixed set of read-only default categories; users with write
access add, edit, reorder and remove their own.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from myrc_kernel.domain.dtos import CategoryView
from myrc_kernel.exceptions import (
    DefaultEntityProtectedError,
    DuplicateNameError,
    InvalidEnumValueError,
    NotFoundError,
    ValidationError,
)
from myrc_kernel.logging_config import get_logger
from myrc_kernel.models.category import Category, FundingType
from myrc_kernel.models.fiscal_year import FiscalYear
from myrc_kernel.services.base import BaseService
from myrc_kernel.services.permission_service import PermissionService

logger = get_logger("services.category")

# (name, description, funding type), in display order.
DEFAULT_CATEGORIES: tuple[tuple[str, str, FundingType], ...] = (
    ("Compute", "Computing infrastructure and services", FundingType.BOTH),
    ("GPUs", "Graphics Processing Units for AI/ML and rendering", FundingType.BOTH),
    ("Storage", "Data storage and backup services", FundingType.BOTH),
    ("Software Licenses", "Software licensing and subscriptions", FundingType.OM_ONLY),
    ("Small Procurement", "Miscellaneous small purchases and equipment", FundingType.OM_ONLY),
    ("Contractors", "External contractors and consulting services", FundingType.OM_ONLY),
)

DUPLICATE_CATEGORY_MESSAGE = "A category with this name already exists for this Fiscal Year"


def parse_funding_type(value: FundingType | str | None) -> FundingType:
    if value is None or (isinstance(value, str) and not value.strip()):
        return FundingType.BOTH
    try:
        return FundingType(str(getattr(value, "value", value)).upper())
    except ValueError as exc:
        raise InvalidEnumValueError("funding type", value, "funding_type") from exc


class CategoryService(BaseService[Category]):
    """
    Category management scoped to (rc, fiscal year).

    Contract:
        Reads need RC read access; every mutation needs write access.

    Guarantees:
        - Names are unique per fiscal year.
        - Default categories are never modified or deleted.
    """

    def __init__(self, session: Session, permissions: PermissionService | None = None):
        super().__init__(session)
        self.permissions = permissions or PermissionService(session)

    def _get_in_fy(self, fy: FiscalYear, category_id: UUID) -> Category:
        category = self.session.get(Category, category_id)
        if category is None or category.fiscal_year_id != fy.id:
            raise NotFoundError("Category", category_id, "Category not found")
        return category

    @staticmethod
    def _name_taken(fy: FiscalYear, name: str, exclude_id: UUID | None = None) -> bool:
        return any(c.name == name and c.id != exclude_id for c in fy.categories)

    def list_categories(self, rc_id: UUID, fiscal_year_id: UUID, username: str) -> list[CategoryView]:
        fy = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username)
        ordered = sorted(fy.categories, key=lambda c: (c.display_order, c.name))
        return [CategoryView.from_model(c) for c in ordered]

    def get(self, rc_id: UUID, fiscal_year_id: UUID, category_id: UUID, username: str) -> CategoryView:
        fy = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username)
        return CategoryView.from_model(self._get_in_fy(fy, category_id))

    def create(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        username: str,
        name: str,
        description: str | None = None,
        funding_type: FundingType | str | None = None,
    ) -> CategoryView:
        fy = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username, "WRITE")
        if not name or not name.strip():
            raise ValidationError("Category name is required", field="name")
        name = name.strip()
        if self._name_taken(fy, name):
            raise DuplicateNameError("category", name, DUPLICATE_CATEGORY_MESSAGE)
        ftype = parse_funding_type(funding_type)

        next_order = (
            self.session.execute(
                select(func.max(Category.display_order)).where(Category.fiscal_year_id == fy.id)
            ).scalar()
            or 0
        ) + 1
        category = Category(
            name=name,
            description=description,
            is_default=False,
            display_order=next_order,
            funding_type=ftype.value,
            active=True,
            created_by=username,
        )
        fy.categories.append(category)
        self._flush(category)
        logger.info(
            "category_created",
            extra={"fiscal_year_id": str(fy.id), "category_name": name, "funding_type": ftype.value},
        )
        return CategoryView.from_model(category)

    def update(
        self,
        rc_id: UUID,
        fiscal_year_id: UUID,
        category_id: UUID,
        username: str,
        *,
        name: str | None = None,
        description: str | None = None,
        funding_type: FundingType | str | None = None,
        expected_version: int | None = None,
    ) -> CategoryView:
        fy = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username, "WRITE")
        category = self._get_in_fy(fy, category_id)
        if category.is_default:
            raise DefaultEntityProtectedError(
                "category", "Cannot modify a default category. Default categories are read-only."
            )
        self._check_version(category, expected_version)

        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Category name is required", field="name")
            if name != category.name and self._name_taken(fy, name, exclude_id=category.id):
                raise DuplicateNameError("category", name, DUPLICATE_CATEGORY_MESSAGE)
            category.name = name
        if description is not None:
            category.description = description
        if funding_type is not None:
            category.funding_type = parse_funding_type(funding_type).value
        category.updated_by = username

        self._flush(category)
        logger.info("category_updated", extra={"category_id": str(category.id)})
        return CategoryView.from_model(category)

    def delete(self, rc_id: UUID, fiscal_year_id: UUID, category_id: UUID, username: str) -> None:
        fy = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username, "WRITE")
        category = self._get_in_fy(fy, category_id)
        if category.is_default:
            raise DefaultEntityProtectedError(
                "category", "Cannot delete a default category. Default categories are read-only."
            )
        fy.categories.remove(category)
        self._flush()
        logger.info("category_deleted", extra={"category_id": str(category_id)})

    def reorder(
        self, rc_id: UUID, fiscal_year_id: UUID, username: str, category_ids: Iterable[UUID]
    ) -> list[CategoryView]:
        fy = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username, "WRITE")
        by_id = {c.id: c for c in fy.categories}
        for index, category_id in enumerate(category_ids):
            category = by_id.get(category_id)
            if category is not None:
                category.display_order = index
        self._flush()
        ordered = sorted(fy.categories, key=lambda c: (c.display_order, c.name))
        return [CategoryView.from_model(c) for c in ordered]

    def ensure_defaults(self, rc_id: UUID, fiscal_year_id: UUID, username: str) -> list[CategoryView]:
        fy = self.permissions.require_fiscal_year(rc_id, fiscal_year_id, username, "WRITE")
        self.seed_defaults(fy, username)
        ordered = sorted(fy.categories, key=lambda c: (c.display_order, c.name))
        return [CategoryView.from_model(c) for c in ordered]

    def seed_defaults(self, fy: FiscalYear, actor: str | None = None) -> int:
        """Add any missing default category to ``fy``; returns how many were added."""
        existing = {c.name for c in fy.categories}
        added = 0
        for index, (name, description, ftype) in enumerate(DEFAULT_CATEGORIES):
            if name in existing:
                continue
            fy.categories.append(
                Category(
                    name=name,
                    description=description,
                    is_default=True,
                    display_order=index,
                    funding_type=ftype.value,
                    active=True,
                    created_by=actor,
                )
            )
            added += 1
        if added:
            self._flush()
            logger.info(
                "default_categories_created",
                extra={"fiscal_year_id": str(fy.id), "count": added},
            )
        return added
