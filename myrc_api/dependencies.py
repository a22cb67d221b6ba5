"""
myrc_api.dependencies -- Request-scoped FastAPI dependencies.

Responsibility:
    One database session per request (commit on success, rollback on any
    exception), HTTP Basic authentication against LOCAL accounts, a lazily
    built registry of services sharing that session, and the audit trail
    that wraps every mutating endpoint.

Architecture position:
    API -- outermost layer.  Wires ``myrc_config`` bridges into kernel,
    module and orchestration services.

Invariants enforced:
    - Services only flush; this module is the single place that commits.
    - Failed logins are committed before the 401 is raised so the lockout
      counter survives the request.
    - An audit row is written (in its own transaction) before the guarded
      action runs; success is marked only after the request commits.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable, Generator, Mapping
from contextlib import contextmanager
from functools import cached_property
from typing import Annotated, Any
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from myrc_config.bridges import (
    build_account_policy,
    build_attachment_policy,
    build_directory_service,
)
from myrc_config.schema import AppConfig
from myrc_kernel.domain.dtos import UserInfo
from myrc_kernel.exceptions import AccessError, AuthenticationError
from myrc_kernel.logging_config import LogContext, get_logger
from myrc_kernel.services.audit_service import AuditService
from myrc_kernel.services.category_service import CategoryService
from myrc_kernel.services.fiscal_year_service import FiscalYearService
from myrc_kernel.services.money_service import MoneyService
from myrc_kernel.services.permission_service import PermissionService
from myrc_kernel.services.responsibility_centre_service import ResponsibilityCentreService
from myrc_kernel.services.user_service import UserService
from myrc_modules.funding import FundingAllocationHook, FundingService
from myrc_modules.procurement import ProcurementEventService, ProcurementService
from myrc_modules.spending import SpendingAllocationHook, SpendingService
from myrc_modules.training import TrainingService
from myrc_modules.travel import TravelService
from myrc_services import CloningService, ExportImportService

logger = get_logger("api.dependencies")

_POST_COMMIT = "myrc_post_commit"
_ON_ROLLBACK = "myrc_on_rollback"

ADMIN_ROLE = "ADMIN"

_basic = HTTPBasic(auto_error=False)


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_session(request: Request) -> Generator[Session, None, None]:
    """
    Request transaction: commit on success, rollback on any exception.

    ``after_commit`` callbacks run once the commit succeeded; ``on_rollback``
    callbacks run with the exception when the route or the commit failed.
    """
    session = request.app.state.session_factory()
    try:
        yield session
        session.commit()
    except Exception as exc:
        session.rollback()
        session.info.pop(_POST_COMMIT, None)
        for callback in session.info.pop(_ON_ROLLBACK, []):
            callback(exc)
        raise
    else:
        session.info.pop(_ON_ROLLBACK, None)
        for callback in session.info.pop(_POST_COMMIT, []):
            callback()
    finally:
        session.close()


def after_commit(session: Session, callback: Callable[[], None]) -> None:
    """Run ``callback`` once the request transaction has committed."""
    session.info.setdefault(_POST_COMMIT, []).append(callback)


def on_rollback(session: Session, callback: Callable[[BaseException], None]) -> None:
    """Run ``callback`` if the request transaction is rolled back instead."""
    session.info.setdefault(_ON_ROLLBACK, []).append(callback)


class ServiceRegistry:
    """
    Services bound to one request session.

    Each service is built on first use; all share the same
    ``PermissionService`` so directory groups are resolved once.
    """

    def __init__(self, session: Session, config: AppConfig, session_factory=None):
        self.session = session
        self.config = config
        self.session_factory = session_factory

    @cached_property
    def attachments(self):
        return build_attachment_policy(self.config)

    @cached_property
    def directory(self):
        return build_directory_service(self.session, self.config)

    @cached_property
    def permissions(self) -> PermissionService:
        return PermissionService(self.session, directory=self.directory)

    @cached_property
    def users(self) -> UserService:
        return UserService(self.session, policy=build_account_policy(self.config))

    @cached_property
    def audit(self) -> AuditService:
        return AuditService(
            self.session, session_factory=self.session_factory, permissions=self.permissions
        )

    @cached_property
    def rcs(self) -> ResponsibilityCentreService:
        return ResponsibilityCentreService(self.session, self.permissions)

    @cached_property
    def monies(self) -> MoneyService:
        hooks = (FundingAllocationHook(self.session), SpendingAllocationHook(self.session))
        return MoneyService(self.session, self.permissions, hooks=hooks)

    @cached_property
    def categories(self) -> CategoryService:
        return CategoryService(self.session, self.permissions)

    @cached_property
    def fiscal_years(self) -> FiscalYearService:
        return FiscalYearService(
            self.session, self.permissions, monies=self.monies, categories=self.categories
        )

    @cached_property
    def funding(self) -> FundingService:
        return FundingService(self.session, self.permissions)

    @cached_property
    def spending(self) -> SpendingService:
        return SpendingService(self.session, self.permissions, self.attachments)

    @cached_property
    def procurement(self) -> ProcurementService:
        return ProcurementService(self.session, self.permissions, self.attachments)

    @cached_property
    def procurement_events(self) -> ProcurementEventService:
        return ProcurementEventService(self.session, self.permissions, self.attachments)

    @cached_property
    def training(self) -> TrainingService:
        return TrainingService(self.session, self.permissions)

    @cached_property
    def travel(self) -> TravelService:
        return TravelService(self.session, self.permissions)

    @cached_property
    def cloning(self) -> CloningService:
        return CloningService(self.session, self.permissions, self.audit)

    @cached_property
    def export_import(self) -> ExportImportService:
        return ExportImportService(self.session, self.permissions, self.attachments)


def get_services(
    request: Request,
    session: Session = Depends(get_session),
    config: AppConfig = Depends(get_config),
) -> ServiceRegistry:
    return ServiceRegistry(session, config, request.app.state.audit_session_factory)


def current_user(
    request: Request,
    credentials: HTTPBasicCredentials | None = Depends(_basic),
    services: ServiceRegistry = Depends(get_services),
) -> UserInfo:
    """Authenticated LOCAL account; binds ``username`` into the log context."""
    if credentials is None:
        raise AuthenticationError("Authentication required")
    user = services.users.authenticate(credentials.username, credentials.password)
    if user is None:
        services.session.commit()
        raise AuthenticationError()
    LogContext.set(username=user.username)
    return user


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


class AuditEntry:
    """Handle returned by ``AuditTrail.track``; carries the created entity."""

    def __init__(self, audit_id: UUID):
        self.audit_id = audit_id
        self.entity_id: object | None = None
        self.entity_name: str | None = None

    def succeeded(self, entity_id: object | None = None, entity_name: str | None = None) -> None:
        self.entity_id = entity_id
        self.entity_name = entity_name


class AuditTrail:
    """
    Audit recording around a mutating request.

    Usage:
        with trail.track("CREATE", "FUNDING_ITEM", rc_id=rc_id, parameters=body) as entry:
            item = services.funding.create(...)
            entry.succeeded(item.id, item.name)
    """

    def __init__(self, request: Request, services: ServiceRegistry, user: UserInfo):
        self.request = request
        self.services = services
        self.user = user

    @contextmanager
    def track(
        self,
        action: str,
        entity_type: str,
        *,
        entity_id: object | None = None,
        entity_name: str | None = None,
        rc_id: UUID | None = None,
        fiscal_year_id: UUID | None = None,
        parameters: Mapping[str, Any] | None = None,
    ) -> Generator[AuditEntry, None, None]:
        audit = self.services.audit
        client = self.request.client
        audit_id = audit.record(
            self.user.username,
            action,
            entity_type,
            entity_id=entity_id,
            entity_name=entity_name,
            rc_id=rc_id,
            fiscal_year_id=fiscal_year_id,
            parameters=parameters,
            http_method=self.request.method,
            endpoint=self.request.url.path,
            user_agent=self.request.headers.get("user-agent"),
            ip_address=client.host if client else None,
        )
        entry = AuditEntry(audit_id)
        try:
            yield entry
        except Exception as exc:
            self.services.session.rollback()
            audit.mark_failure(audit_id, str(exc))
            raise

        def _mark_success() -> None:
            try:
                audit.mark_success(audit_id, entry.entity_id, entry.entity_name)
            except SQLAlchemyError:
                logger.error(
                    "audit_mark_success_failed",
                    extra={"audit_id": str(audit_id), "action": action},
                    exc_info=True,
                )

        def _mark_failure(exc: BaseException) -> None:
            try:
                audit.mark_failure(audit_id, str(exc))
            except SQLAlchemyError:
                logger.error(
                    "audit_mark_failure_failed",
                    extra={"audit_id": str(audit_id), "action": action},
                    exc_info=True,
                )

        after_commit(self.services.session, _mark_success)
        on_rollback(self.services.session, _mark_failure)


def get_audit_trail(
    request: Request,
    services: ServiceRegistry = Depends(get_services),
    user: UserInfo = Depends(current_user),
) -> AuditTrail:
    return AuditTrail(request, services, user)


def new_request_id() -> str:
    return secrets.token_hex(8)


def require_admin(user: UserInfo = Depends(current_user)) -> UserInfo:
    if ADMIN_ROLE not in user.roles:
        raise AccessError("Administrator role required")
    return user


Services = Annotated[ServiceRegistry, Depends(get_services)]
CurrentUser = Annotated[UserInfo, Depends(current_user)]
AdminUser = Annotated[UserInfo, Depends(require_admin)]
Trail = Annotated[AuditTrail, Depends(get_audit_trail)]
Config = Annotated[AppConfig, Depends(get_config)]
