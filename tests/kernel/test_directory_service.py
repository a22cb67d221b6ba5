"""Tests for DirectoryService principal search."""

import pytest

from myrc_kernel.models.responsibility_centre import PrincipalType
from myrc_kernel.services.directory_service import (
    SOURCE_APP,
    SOURCE_DIRECTORY,
    DirectoryGroup,
    DirectoryService,
    DirectoryUser,
)


@pytest.fixture
def directory(session, owner, colleague):
    return DirectoryService(
        session,
        groups=[
            DirectoryGroup("hpc-admins", "HPC Admins", members=frozenset({"Alice"})),
            DirectoryGroup("research", "Research Staff", members=frozenset({"alice", "bob"})),
            DirectoryGroup(
                "all-staff",
                "All Staff",
                principal_type=PrincipalType.DISTRIBUTION_LIST,
                members=frozenset({"bob"}),
                email="all@example.com",
            ),
        ],
        users=[
            DirectoryUser("dana", "Dana Directory", "dana@example.com"),
            DirectoryUser("alice", "Shadowed Alice"),
        ],
    )


class TestSearchUsers:
    def test_none_query_returns_nothing(self, directory):
        assert directory.search_users(None) == []

    def test_empty_query_lists_everyone(self, directory):
        entries = directory.search_users("")
        assert [e.identifier for e in entries] == ["alice", "bob", "dana"]

    def test_local_accounts_win_over_directory(self, directory):
        alice = directory.search_users("alice")[0]
        assert alice.source == SOURCE_APP
        assert alice.display_name == "Alice"

    def test_directory_only_user(self, directory):
        entries = directory.search_users("DIRECTORY")
        assert [(e.identifier, e.source) for e in entries] == [("dana", SOURCE_DIRECTORY)]

    def test_limit(self, directory):
        assert len(directory.search_users("", limit=2)) == 2


class TestGroups:
    def test_search_groups_excludes_distribution_lists(self, directory):
        assert [e.identifier for e in directory.search_groups("")] == ["hpc-admins", "research"]

    def test_search_distribution_lists_by_email(self, directory):
        entries = directory.search_distribution_lists("all@")
        assert [e.principal_type for e in entries] == ["DISTRIBUTION_LIST"]

    def test_groups_for_is_case_insensitive(self, directory):
        assert directory.groups_for("alice") == {"hpc-admins", "research"}
        assert directory.groups_for("bob") == {"research", "all-staff"}

    def test_find_principal(self, directory):
        assert directory.find_principal("RESEARCH", PrincipalType.GROUP).identifier == "research"
        assert directory.find_principal("research", PrincipalType.DISTRIBUTION_LIST) is None
        assert directory.find_principal("dana", PrincipalType.USER).display_name == "Dana Directory"
