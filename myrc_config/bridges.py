"""
Config -> Kernel Bridges.

Functions that convert ``AppConfig`` sections into kernel inputs.  They
live here because the kernel must never import ``myrc_config``.

Usage:
    config = get_active_config()
    policy = build_account_policy(config)
    directory = build_directory_service(session, config)
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from myrc_config.schema import AppConfig
from myrc_kernel.models.responsibility_centre import PrincipalType
from myrc_kernel.services.directory_service import (
    DirectoryGroup,
    DirectoryService,
    DirectoryUser,
)
from myrc_kernel.services.user_service import AccountPolicy
from myrc_modules._attachments import AttachmentPolicy


def build_attachment_policy(config: AppConfig) -> AttachmentPolicy:
    return AttachmentPolicy(
        max_size_bytes=config.attachments.max_size_bytes,
        allowed_content_types=frozenset(config.attachments.allowed_content_types),
    )


def build_account_policy(config: AppConfig) -> AccountPolicy:
    return AccountPolicy(
        max_failed_attempts=config.security.max_failed_attempts,
        lockout_minutes=config.security.lockout_minutes,
        app_account_enabled=config.login_methods.app_account_enabled,
        allow_registration=config.login_methods.allow_registration,
    )


def build_directory_groups(config: AppConfig) -> tuple[DirectoryGroup, ...]:
    return tuple(
        DirectoryGroup(
            identifier=g.identifier,
            display_name=g.display_name,
            principal_type=PrincipalType(g.principal_type),
            members=frozenset(g.members),
            email=g.email,
        )
        for g in config.directory.groups
    )


def build_directory_users(config: AppConfig) -> tuple[DirectoryUser, ...]:
    return tuple(
        DirectoryUser(username=u.username, display_name=u.display_name, email=u.email)
        for u in config.directory.users
    )


def build_directory_service(session: Session, config: AppConfig) -> DirectoryService:
    return DirectoryService(
        session,
        groups=build_directory_groups(config),
        users=build_directory_users(config),
    )
