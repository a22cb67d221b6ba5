"""
DTOs -- Immutable views of kernel entities.

Responsibility:
    Defines the frozen data structures that kernel services return to their
    callers (modules, services layer, API): users, directory entries,
    responsibility centres, access grants, fiscal years, monies, categories
    and audit events.

Architecture position:
    Kernel > Domain.  Free of database access.  ``from_model()`` class methods
    are boundary converters invoked from the service layer only.

Invariants enforced:
    - Services return DTOs, never ORM entities, so callers cannot mutate
      persistent state outside a service call.
    - Every DTO of a versioned entity carries ``version`` so clients can send
      it back for optimistic-lock checks.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from myrc_kernel.models import (
        AccessLevel,
        AuditEvent,
        Category,
        FiscalYear,
        Money,
        RCAccess,
        ResponsibilityCentre,
        User,
    )


@dataclass(frozen=True)
class UserInfo:
    """Public view of a user account (no credential material)."""

    id: UUID
    username: str
    email: str | None
    full_name: str | None
    auth_provider: str
    enabled: bool
    account_locked: bool
    email_verified: bool
    last_login_at: datetime | None
    theme: str
    roles: tuple[str, ...]
    version: int

    @classmethod
    def from_model(cls, user: User) -> UserInfo:
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            full_name=user.full_name,
            auth_provider=user.auth_provider,
            enabled=user.enabled,
            account_locked=user.account_locked,
            email_verified=user.email_verified,
            last_login_at=user.last_login_at,
            theme=user.theme,
            roles=tuple(sorted(user.role_set)),
            version=user.version,
        )


@dataclass(frozen=True)
class UserStats:
    total: int
    enabled: int
    locked: int
    by_provider: dict[str, int]


@dataclass(frozen=True)
class DirectoryEntry:
    """A principal found in the directory (user, group or distribution list)."""

    identifier: str
    display_name: str
    principal_type: str
    source: str
    email: str | None = None


@dataclass(frozen=True)
class ResponsibilityCentreView:
    """An RC as seen by a particular user."""

    id: UUID
    name: str
    description: str | None
    owner_username: str
    access_level: str
    is_owner: bool
    active: bool
    training_enabled: bool
    travel_enabled: bool
    training_include_in_summary: bool
    travel_include_in_summary: bool
    created_at: datetime
    updated_at: datetime
    version: int

    @classmethod
    def from_model(
        cls, rc: ResponsibilityCentre, access_level: AccessLevel, username: str
    ) -> ResponsibilityCentreView:
        return cls(
            id=rc.id,
            name=rc.name,
            description=rc.description,
            owner_username=rc.owner_username,
            access_level=access_level.value,
            is_owner=rc.owner_username == username and not rc.is_demo,
            active=rc.active,
            training_enabled=rc.training_enabled,
            travel_enabled=rc.travel_enabled,
            training_include_in_summary=rc.training_include_in_summary,
            travel_include_in_summary=rc.travel_include_in_summary,
            created_at=rc.created_at,
            updated_at=rc.updated_at,
            version=rc.version,
        )


@dataclass(frozen=True)
class PermissionEntry:
    """An access grant on an RC.  ``id`` is None for the synthetic owner entry."""

    id: UUID | None
    rc_id: UUID
    principal_identifier: str
    principal_display_name: str | None
    principal_type: str
    access_level: str
    granted_at: datetime | None
    granted_by: str | None
    is_original_owner: bool

    @classmethod
    def from_model(cls, access: RCAccess, original_owner: str) -> PermissionEntry:
        return cls(
            id=access.id,
            rc_id=access.rc_id,
            principal_identifier=access.principal_identifier,
            principal_display_name=access.principal_display_name,
            principal_type=access.principal_type,
            access_level=access.access_level,
            granted_at=access.granted_at,
            granted_by=access.granted_by,
            is_original_owner=(
                access.principal_type == "USER"
                and access.principal_identifier == original_owner
            ),
        )


@dataclass(frozen=True)
class FiscalYearView:
    id: UUID
    rc_id: UUID
    rc_name: str
    name: str
    description: str | None
    active: bool
    show_search_box: bool
    show_category_filter: bool
    group_by_category: bool
    on_target_min: int
    on_target_max: int
    created_at: datetime
    updated_at: datetime
    version: int

    @classmethod
    def from_model(cls, fy: FiscalYear) -> FiscalYearView:
        return cls(
            id=fy.id,
            rc_id=fy.rc_id,
            rc_name=fy.rc.name,
            name=fy.name,
            description=fy.description,
            active=fy.active,
            show_search_box=fy.show_search_box,
            show_category_filter=fy.show_category_filter,
            group_by_category=fy.group_by_category,
            on_target_min=fy.on_target_min,
            on_target_max=fy.on_target_max,
            created_at=fy.created_at,
            updated_at=fy.updated_at,
            version=fy.version,
        )


@dataclass(frozen=True)
class MoneyView:
    id: UUID
    fiscal_year_id: UUID
    code: str
    name: str
    description: str | None
    is_default: bool
    display_order: int
    active: bool
    can_delete: bool
    version: int

    @classmethod
    def from_model(cls, money: Money, can_delete: bool) -> MoneyView:
        return cls(
            id=money.id,
            fiscal_year_id=money.fiscal_year_id,
            code=money.code,
            name=money.name,
            description=money.description,
            is_default=money.is_default,
            display_order=money.display_order,
            active=money.active,
            can_delete=can_delete,
            version=money.version,
        )


@dataclass(frozen=True)
class CategoryView:
    id: UUID
    fiscal_year_id: UUID
    name: str
    description: str | None
    is_default: bool
    display_order: int
    funding_type: str
    translation_key: str | None
    active: bool
    version: int

    @classmethod
    def from_model(cls, category: Category) -> CategoryView:
        return cls(
            id=category.id,
            fiscal_year_id=category.fiscal_year_id,
            name=category.name,
            description=category.description,
            is_default=category.is_default,
            display_order=category.display_order,
            funding_type=category.funding_type,
            translation_key=category.translation_key,
            active=category.active,
            version=category.version,
        )


@dataclass(frozen=True)
class AuditEventView:
    id: UUID
    username: str
    action: str
    entity_type: str
    entity_id: str | None
    entity_name: str | None
    rc_id: UUID | None
    rc_name: str | None
    fiscal_year_id: UUID | None
    fiscal_year_name: str | None
    parameters: str | None
    http_method: str | None
    endpoint: str | None
    user_agent: str | None
    ip_address: str | None
    outcome: str
    error_message: str | None
    cloned_from_audit_id: UUID | None
    created_at: datetime

    @classmethod
    def from_model(cls, event: AuditEvent) -> AuditEventView:
        return cls(
            id=event.id,
            username=event.username,
            action=event.action,
            entity_type=event.entity_type,
            entity_id=event.entity_id,
            entity_name=event.entity_name,
            rc_id=event.rc_id,
            rc_name=event.rc_name,
            fiscal_year_id=event.fiscal_year_id,
            fiscal_year_name=event.fiscal_year_name,
            parameters=event.parameters,
            http_method=event.http_method,
            endpoint=event.endpoint,
            user_agent=event.user_agent,
            ip_address=event.ip_address,
            outcome=event.outcome,
            error_message=event.error_message,
            cloned_from_audit_id=event.cloned_from_audit_id,
            created_at=event.created_at,
        )
