"""
Tests for PermissionService: effective access resolution, sharing with
users and groups, and the owner-protection rules.
"""

from uuid import uuid4

import pytest

from myrc_kernel.exceptions import (
    AccessDeniedError,
    DemoRCProtectedError,
    DuplicateNameError,
    FiscalYearInactiveError,
    FiscalYearNotFoundError,
    LastOwnerError,
    OriginalOwnerProtectedError,
    ResponsibilityCentreNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from myrc_kernel.models.responsibility_centre import AccessLevel, PrincipalType
from myrc_kernel.services.directory_service import DirectoryGroup, DirectoryService, DirectoryUser
from myrc_kernel.services.permission_service import PermissionService


@pytest.fixture
def directory(session):
    return DirectoryService(
        session,
        groups=[
            DirectoryGroup("research-team", "Research Team", members=frozenset({"bob", "carol"})),
            DirectoryGroup(
                "finance-dl",
                "Finance DL",
                principal_type=PrincipalType.DISTRIBUTION_LIST,
                members=frozenset({"carol"}),
            ),
        ],
        users=[DirectoryUser("dirk", "Dirk Directory", "dirk@example.com")],
    )


@pytest.fixture
def permissions(session, directory):
    return PermissionService(session, directory)


# =============================================================================
# Resolution
# =============================================================================


class TestEffectiveAccess:
    def test_creator_is_owner(self, permissions, rc):
        assert permissions.effective_access(rc.id, "alice") is AccessLevel.OWNER
        assert permissions.is_owner(rc.id, "alice")

    def test_stranger_has_no_access(self, permissions, rc, outsider):
        assert permissions.effective_access(rc.id, "carol") is None
        assert not permissions.has_access(rc.id, "carol")

    def test_unknown_rc_has_no_access(self, permissions):
        assert permissions.effective_access(uuid4(), "alice") is None

    def test_direct_user_grant(self, permissions, rc, colleague):
        permissions.grant_user_access(rc.id, "bob", "READ_ONLY", "alice")
        assert permissions.has_access(rc.id, "bob")
        assert not permissions.has_write_access(rc.id, "bob")

    def test_group_grant_reaches_members(self, permissions, rc, colleague):
        permissions.grant_group_access(rc.id, "research-team", None, "GROUP", "READ_WRITE", "alice")
        assert permissions.effective_access(rc.id, "bob") is AccessLevel.READ_WRITE
        assert permissions.has_write_access(rc.id, "bob")

    def test_best_level_wins(self, permissions, rc, colleague):
        permissions.grant_user_access(rc.id, "bob", "READ_ONLY", "alice")
        permissions.grant_group_access(rc.id, "research-team", None, "GROUP", "OWNER", "alice")
        assert permissions.effective_access(rc.id, "bob") is AccessLevel.OWNER

    def test_distribution_list_grant_reaches_only_members(self, permissions, rc, colleague):
        permissions.grant_group_access(
            rc.id, "finance-dl", None, PrincipalType.DISTRIBUTION_LIST, "READ_ONLY", "alice"
        )
        assert permissions.effective_access(rc.id, "bob") is None
        assert permissions.effective_access(rc.id, "carol") is AccessLevel.READ_ONLY

    def test_demo_rc_is_read_only_for_everyone(self, services, owner):
        demo = services.rcs.create("alice", "Demo")
        assert services.permissions.effective_access(demo.id, "alice") is AccessLevel.READ_ONLY
        assert services.permissions.effective_access(demo.id, "anyone") is AccessLevel.READ_ONLY


class TestRequire:
    def test_require_read_returns_rc(self, permissions, rc):
        assert permissions.require_read(rc.id, "alice").id == rc.id

    def test_require_unknown_rc(self, permissions):
        with pytest.raises(ResponsibilityCentreNotFoundError):
            permissions.require_read(uuid4(), "alice")

    def test_read_only_cannot_write(self, permissions, rc, colleague):
        permissions.grant_user_access(rc.id, "bob", "READ_ONLY", "alice")
        with pytest.raises(AccessDeniedError, match="write access"):
            permissions.require_write(rc.id, "bob")

    def test_read_write_cannot_manage(self, permissions, rc, colleague):
        permissions.grant_user_access(rc.id, "bob", "READ_WRITE", "alice")
        with pytest.raises(AccessDeniedError, match="Only owners"):
            permissions.require_owner(rc.id, "bob")

    def test_denial_is_logged(self, permissions, rc, captured_logs):
        with pytest.raises(AccessDeniedError):
            permissions.require_read(rc.id, "mallory")
        denied = [r for r in captured_logs() if r["message"] == "access_denied"]
        assert denied and denied[0]["username"] == "mallory"


# =============================================================================
# Grants
# =============================================================================


class TestGrantUserAccess:
    def test_grant_records_granter(self, permissions, rc, colleague):
        entry = permissions.grant_user_access(rc.id, "bob", "read_write", "alice")
        assert entry.access_level == "READ_WRITE"
        assert entry.granted_by == "alice"
        assert entry.principal_display_name == "Bob"
        assert not entry.is_original_owner

    def test_directory_user_without_local_account(self, permissions, rc):
        entry = permissions.grant_user_access(rc.id, "DIRK", "READ_ONLY", "alice")
        assert entry.principal_identifier == "dirk"
        assert entry.principal_display_name == "Dirk Directory"

    def test_unknown_user(self, permissions, rc):
        with pytest.raises(UserNotFoundError):
            permissions.grant_user_access(rc.id, "nobody", "READ_ONLY", "alice")

    def test_duplicate_grant(self, permissions, rc, colleague):
        permissions.grant_user_access(rc.id, "bob", "READ_ONLY", "alice")
        with pytest.raises(DuplicateNameError, match="Use update"):
            permissions.grant_user_access(rc.id, "bob", "OWNER", "alice")

    def test_non_owner_cannot_grant(self, permissions, rc, colleague, outsider):
        permissions.grant_user_access(rc.id, "bob", "READ_WRITE", "alice")
        with pytest.raises(AccessDeniedError):
            permissions.grant_user_access(rc.id, "carol", "READ_ONLY", "bob")

    def test_original_owner_cannot_be_downgraded(self, permissions, rc):
        with pytest.raises(OriginalOwnerProtectedError):
            permissions.grant_user_access(rc.id, "alice", "READ_ONLY", "alice")

    def test_demo_rc_permissions_frozen(self, services, owner, colleague):
        demo = services.rcs.create("alice", "Demo")
        with pytest.raises(DemoRCProtectedError):
            services.permissions.grant_user_access(demo.id, "bob", "READ_ONLY", "alice")


class TestGrantGroupAccess:
    def test_group_grant_uses_directory_display_name(self, permissions, rc):
        entry = permissions.grant_group_access(
            rc.id, "RESEARCH-TEAM", None, "GROUP", "READ_ONLY", "alice"
        )
        assert entry.principal_identifier == "research-team"
        assert entry.principal_display_name == "Research Team"
        assert entry.principal_type == "GROUP"

    def test_user_principal_type_rejected(self, permissions, rc):
        with pytest.raises(ValidationError):
            permissions.grant_group_access(rc.id, "bob", None, "USER", "READ_ONLY", "alice")

    def test_blank_identifier_rejected(self, permissions, rc):
        with pytest.raises(ValidationError):
            permissions.grant_group_access(rc.id, "  ", None, "GROUP", "READ_ONLY", "alice")


# =============================================================================
# Listing, update and revoke
# =============================================================================


class TestListPermissions:
    def test_synthetic_owner_entry_first(self, permissions, rc, colleague):
        permissions.grant_user_access(rc.id, "bob", "READ_ONLY", "alice")
        entries = permissions.list_permissions(rc.id, "alice")

        assert entries[0].id is None
        assert entries[0].principal_identifier == "alice"
        assert entries[0].is_original_owner
        assert [e.principal_identifier for e in entries[1:]] == ["bob"]

    def test_listing_requires_owner(self, permissions, rc, colleague):
        permissions.grant_user_access(rc.id, "bob", "READ_WRITE", "alice")
        with pytest.raises(AccessDeniedError):
            permissions.list_permissions(rc.id, "bob")


class TestUpdateAndRevoke:
    def test_update_level(self, permissions, rc, colleague):
        entry = permissions.grant_user_access(rc.id, "bob", "READ_ONLY", "alice")
        updated = permissions.update_permission(entry.id, "READ_WRITE", "alice")
        assert updated.access_level == "READ_WRITE"
        assert permissions.has_write_access(rc.id, "bob")

    def test_second_owner_can_be_demoted(self, permissions, rc, colleague):
        entry = permissions.grant_user_access(rc.id, "bob", "OWNER", "alice")
        assert permissions.effective_owner_count(permissions.require_read(rc.id, "alice")) == 2
        updated = permissions.update_permission(entry.id, "READ_ONLY", "alice")
        assert updated.access_level == "READ_ONLY"

    def test_explicit_owner_row_for_creator_is_protected(self, permissions, rc, colleague):
        entry = permissions.grant_user_access(rc.id, "alice", "OWNER", "alice")
        permissions.grant_user_access(rc.id, "bob", "OWNER", "alice")
        with pytest.raises(OriginalOwnerProtectedError):
            permissions.update_permission(entry.id, "READ_ONLY", "alice")
        with pytest.raises(OriginalOwnerProtectedError):
            permissions.revoke_access(entry.id, "alice")

    def test_sole_owner_cannot_demote_self(self, permissions, rc):
        entry = permissions.grant_user_access(rc.id, "alice", "OWNER", "alice")
        with pytest.raises(LastOwnerError, match="Cannot demote your own owner permissions"):
            permissions.update_permission(entry.id, "READ_ONLY", "alice")

    def test_revoke_removes_access(self, permissions, rc, colleague):
        entry = permissions.grant_user_access(rc.id, "bob", "READ_WRITE", "alice")
        permissions.revoke_access(entry.id, "alice")
        assert not permissions.has_access(rc.id, "bob")
        assert [e.principal_identifier for e in permissions.list_permissions(rc.id, "alice")] == [
            "alice"
        ]

    def test_revoke_other_owner(self, permissions, rc, colleague):
        entry = permissions.grant_user_access(rc.id, "bob", "OWNER", "alice")
        permissions.revoke_access(entry.id, "alice")
        assert not permissions.is_owner(rc.id, "bob")


# =============================================================================
# Fiscal-year scope
# =============================================================================


class TestRequireFiscalYear:
    def test_returns_fiscal_year(self, permissions, rc, fy):
        assert permissions.require_fiscal_year(rc.id, fy.id, "alice").id == fy.id

    def test_fiscal_year_of_other_rc(self, services, permissions, rc, fy):
        other = services.rcs.create("alice", "Other RC")
        with pytest.raises(FiscalYearNotFoundError):
            permissions.require_fiscal_year(other.id, fy.id, "alice")

    def test_inactive_blocks_writes_but_not_reads(self, services, permissions, rc, fy):
        services.fiscal_years.toggle_active(rc.id, fy.id, "alice")
        assert permissions.require_fiscal_year(rc.id, fy.id, "alice").id == fy.id
        with pytest.raises(FiscalYearInactiveError):
            permissions.require_fiscal_year(rc.id, fy.id, "alice", "WRITE")
        assert permissions.require_fiscal_year(
            rc.id, fy.id, "alice", "OWNER", allow_inactive=True
        ).id == fy.id
