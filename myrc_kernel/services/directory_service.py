"""
Service layer for directory lookups.

Answers "who can an RC be shared with": local user accounts, directory users
that have no local account yet, groups and distribution lists.  The directory
content (everything except local accounts) is supplied by the caller, usually
built from configuration by ``myrc_config.bridges``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

from myrc_kernel.domain.dtos import DirectoryEntry
from myrc_kernel.logging_config import get_logger
from myrc_kernel.models.responsibility_centre import PrincipalType
from myrc_kernel.models.user import User
from myrc_kernel.services.base import BaseService

logger = get_logger("services.directory")

SOURCE_APP = "APP"
SOURCE_DIRECTORY = "DIRECTORY"
DEFAULT_SEARCH_LIMIT = 20


@dataclass(frozen=True)
class DirectoryGroup:
    """A group or distribution list and the usernames that belong to it."""

    identifier: str
    display_name: str
    principal_type: PrincipalType = PrincipalType.GROUP
    members: frozenset[str] = field(default_factory=frozenset)
    email: str | None = None

    def has_member(self, username: str) -> bool:
        lowered = username.lower()
        return any(m.lower() == lowered for m in self.members)


@dataclass(frozen=True)
class DirectoryUser:
    """A directory account that may not have logged in yet."""

    username: str
    display_name: str | None = None
    email: str | None = None


def _matches(query: str, *values: str | None) -> bool:
    if not query:
        return True
    return any(v is not None and query in v.lower() for v in values)


class DirectoryService(BaseService[User]):
    """
    Searches principals for RC sharing.

    Contract:
        Read-only.  Searches are case-insensitive substring matches on
        identifier, display name and email; an empty query lists everything
        up to ``limit``.  Results are sorted by identifier.

    Non-goals:
        - Does NOT talk to a live LDAP server.
    """

    def __init__(
        self,
        session: Session,
        groups: Iterable[DirectoryGroup] = (),
        users: Iterable[DirectoryUser] = (),
    ):
        super().__init__(session)
        self._groups = tuple(groups)
        self._users = tuple(users)

    def search_users(self, query: str | None, limit: int = DEFAULT_SEARCH_LIMIT) -> list[DirectoryEntry]:
        if query is None:
            return []
        needle = query.strip().lower()
        results: dict[str, DirectoryEntry] = {}

        for user in self.session.execute(select(User)).scalars():
            if _matches(needle, user.username, user.full_name, user.email):
                results[user.username.lower()] = DirectoryEntry(
                    identifier=user.username,
                    display_name=user.full_name or user.username,
                    principal_type=PrincipalType.USER.value,
                    source=SOURCE_APP,
                    email=user.email,
                )

        for entry in self._users:
            key = entry.username.lower()
            if key not in results and _matches(needle, entry.username, entry.display_name, entry.email):
                results[key] = DirectoryEntry(
                    identifier=entry.username,
                    display_name=entry.display_name or entry.username,
                    principal_type=PrincipalType.USER.value,
                    source=SOURCE_DIRECTORY,
                    email=entry.email,
                )

        return sorted(results.values(), key=lambda e: e.identifier)[:limit]

    def search_groups(self, query: str | None, limit: int = DEFAULT_SEARCH_LIMIT) -> list[DirectoryEntry]:
        return self._search_groups(query, PrincipalType.GROUP, limit)

    def search_distribution_lists(
        self, query: str | None, limit: int = DEFAULT_SEARCH_LIMIT
    ) -> list[DirectoryEntry]:
        return self._search_groups(query, PrincipalType.DISTRIBUTION_LIST, limit)

    def _search_groups(
        self, query: str | None, principal_type: PrincipalType, limit: int
    ) -> list[DirectoryEntry]:
        if query is None:
            return []
        needle = query.strip().lower()
        found = [
            self._group_entry(g)
            for g in self._groups
            if g.principal_type == principal_type
            and _matches(needle, g.identifier, g.display_name, g.email)
        ]
        return sorted(found, key=lambda e: e.identifier)[:limit]

    def groups_for(self, username: str) -> set[str]:
        """Identifiers of every group and distribution list containing ``username``."""
        return {g.identifier for g in self._groups if g.has_member(username)}

    def find_principal(
        self, identifier: str, principal_type: PrincipalType
    ) -> DirectoryEntry | None:
        """Exact, case-insensitive lookup returning the canonical entry."""
        lowered = identifier.strip().lower()
        if principal_type == PrincipalType.USER:
            for entry in self.search_users(identifier, limit=50):
                if entry.identifier.lower() == lowered:
                    return entry
            return None
        for group in self._groups:
            if group.principal_type == principal_type and group.identifier.lower() == lowered:
                return self._group_entry(group)
        logger.debug(
            "directory_principal_not_found",
            extra={"identifier": identifier, "principal_type": principal_type.value},
        )
        return None

    @staticmethod
    def _group_entry(group: DirectoryGroup) -> DirectoryEntry:
        return DirectoryEntry(
            identifier=group.identifier,
            display_name=group.display_name,
            principal_type=group.principal_type.value,
            source=SOURCE_DIRECTORY,
            email=group.email,
        )
