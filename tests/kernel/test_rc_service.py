"""
Tests for ResponsibilityCentreService and FiscalYearService.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from myrc_kernel.exceptions import (
    AccessDeniedError,
    DuplicateNameError,
    FiscalYearInactiveError,
    FiscalYearNotFoundError,
    OptimisticLockError,
    ResponsibilityCentreNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from myrc_kernel.models.fiscal_year import ON_TARGET_LIMIT
from myrc_kernel.services.category_service import DEFAULT_CATEGORIES
from myrc_kernel.services.directory_service import DirectoryGroup, DirectoryService
from myrc_kernel.services.fiscal_year_service import clamp_on_target
from myrc_kernel.services.permission_service import PermissionService
from myrc_kernel.services.responsibility_centre_service import ResponsibilityCentreService


# =============================================================================
# Responsibility centres
# =============================================================================


class TestCreateRC:
    def test_creator_view(self, services, owner):
        view = services.rcs.create("alice", "  Research Computing  ", "Cluster")
        assert view.name == "Research Computing"
        assert view.owner_username == "alice"
        assert view.access_level == "OWNER"
        assert view.is_owner
        assert view.active
        assert view.training_enabled and view.travel_enabled
        assert not view.training_include_in_summary
        assert not view.travel_include_in_summary
        assert view.version == 1

    def test_blank_name(self, services, owner):
        with pytest.raises(ValidationError):
            services.rcs.create("alice", "   ")

    def test_unknown_user(self, services):
        with pytest.raises(UserNotFoundError):
            services.rcs.create("ghost", "Ghost RC")

    def test_names_are_globally_unique(self, services, rc, colleague):
        with pytest.raises(DuplicateNameError):
            services.rcs.create("bob", "Research Computing")

    def test_creation_is_logged(self, services, owner, captured_logs):
        services.rcs.create("alice", "Logged RC")
        created = [r for r in captured_logs() if r["message"] == "rc_created"]
        assert created[0]["rc_name"] == "Logged RC"
        assert created[0]["owner"] == "alice"


class TestListRCs:
    def test_owned_then_shared_then_demo(self, services, owner, colleague):
        services.rcs.create("bob", "Bob Own")
        shared = services.rcs.create("alice", "Alice Shared")
        services.rcs.create("alice", "Demo")
        services.permissions.grant_user_access(shared.id, "bob", "READ_WRITE", "alice")

        views = services.rcs.list_for_user("bob")
        assert [v.name for v in views] == ["Bob Own", "Alice Shared", "Demo"]
        assert [v.access_level for v in views] == ["OWNER", "READ_WRITE", "READ_ONLY"]

    def test_group_shares_are_listed(self, session, services, rc, colleague):
        directory = DirectoryService(
            session, groups=[DirectoryGroup("team", "Team", members=frozenset({"bob"}))]
        )
        permissions = PermissionService(session, directory)
        permissions.grant_group_access(rc.id, "team", None, "GROUP", "READ_ONLY", "alice")

        views = ResponsibilityCentreService(session, permissions).list_for_user("bob")
        assert [(v.name, v.access_level) for v in views] == [("Research Computing", "READ_ONLY")]

    def test_stranger_sees_nothing(self, services, rc, outsider):
        assert services.rcs.list_for_user("carol") == []

    def test_get_requires_access(self, services, rc, outsider):
        with pytest.raises(AccessDeniedError):
            services.rcs.get(rc.id, "carol")


class TestUpdateDeleteRC:
    def test_update_flags(self, services, rc):
        view = services.rcs.update(
            rc.id,
            "alice",
            description="New",
            training_enabled=False,
            travel_include_in_summary=True,
            expected_version=rc.version,
        )
        assert view.description == "New"
        assert not view.training_enabled
        assert view.travel_include_in_summary
        assert view.version == rc.version + 1

    def test_update_stale_version(self, services, rc):
        services.rcs.update(rc.id, "alice", description="First")
        with pytest.raises(OptimisticLockError):
            services.rcs.update(rc.id, "alice", description="Second", expected_version=rc.version)

    def test_rename_to_taken_name(self, services, rc):
        services.rcs.create("alice", "Other")
        with pytest.raises(DuplicateNameError):
            services.rcs.update(rc.id, "alice", name="Other")

    def test_update_requires_owner(self, services, rc, colleague):
        services.permissions.grant_user_access(rc.id, "bob", "READ_WRITE", "alice")
        with pytest.raises(AccessDeniedError):
            services.rcs.update(rc.id, "bob", description="nope")

    def test_delete_removes_fiscal_years(self, services, rc, fy):
        services.rcs.delete(rc.id, "alice")
        with pytest.raises(ResponsibilityCentreNotFoundError):
            services.rcs.get(rc.id, "alice")


# =============================================================================
# Fiscal years
# =============================================================================


class TestCreateFiscalYear:
    def test_seeds_default_money_and_categories(self, services, rc, fy):
        monies = services.monies.list_monies(rc.id, fy.id, "alice")
        assert [(m.code, m.is_default) for m in monies] == [("AB", True)]

        categories = services.categories.list_categories(rc.id, fy.id, "alice")
        assert [c.name for c in categories] == [name for name, _, _ in DEFAULT_CATEGORIES]
        assert all(c.is_default for c in categories)

    def test_defaults(self, fy):
        assert fy.active
        assert fy.rc_name == "Research Computing"
        assert (fy.on_target_min, fy.on_target_max) == (-2, 2)

    def test_duplicate_name_in_same_rc(self, services, rc, fy):
        with pytest.raises(DuplicateNameError):
            services.fiscal_years.create(rc.id, "alice", "FY 2025-2026")

    def test_same_name_in_other_rc(self, services, rc, fy):
        other = services.rcs.create("alice", "Other RC")
        view = services.fiscal_years.create(other.id, "alice", "FY 2025-2026")
        assert view.rc_id == other.id

    def test_read_only_cannot_create(self, services, rc, colleague):
        services.permissions.grant_user_access(rc.id, "bob", "READ_ONLY", "alice")
        with pytest.raises(AccessDeniedError):
            services.fiscal_years.create(rc.id, "bob", "FY 2026-2027")

    def test_read_write_can_create(self, services, rc, colleague):
        services.permissions.grant_user_access(rc.id, "bob", "READ_WRITE", "alice")
        view = services.fiscal_years.create(rc.id, "bob", "FY 2026-2027")
        assert [f.name for f in services.fiscal_years.list_fiscal_years(rc.id, "bob")] == [
            view.name
        ]


class TestUpdateFiscalYear:
    def test_rename(self, services, rc, fy):
        view = services.fiscal_years.update(rc.id, fy.id, "alice", name="FY 25/26")
        assert view.name == "FY 25/26"

    def test_delete(self, services, rc, fy):
        services.fiscal_years.delete(rc.id, fy.id, "alice")
        with pytest.raises(FiscalYearNotFoundError):
            services.fiscal_years.get(rc.id, fy.id, "alice")

    def test_inactive_fiscal_year_rejects_update(self, services, rc, fy):
        services.fiscal_years.toggle_active(rc.id, fy.id, "alice")
        with pytest.raises(FiscalYearInactiveError):
            services.fiscal_years.update(rc.id, fy.id, "alice", description="x")

    def test_toggle_active_round_trip(self, services, rc, fy):
        assert not services.fiscal_years.toggle_active(rc.id, fy.id, "alice").active
        assert services.fiscal_years.toggle_active(rc.id, fy.id, "alice").active


class TestDisplaySettings:
    def test_update_and_clamp(self, services, rc, fy):
        view = services.fiscal_years.update_display_settings(
            rc.id,
            fy.id,
            "alice",
            show_search_box=False,
            group_by_category=True,
            on_target_min=-250,
            on_target_max=15,
        )
        assert not view.show_search_box
        assert view.group_by_category
        assert (view.on_target_min, view.on_target_max) == (-100, 15)

    def test_min_above_max_rejected(self, services, rc, fy):
        with pytest.raises(ValidationError, match="minimum cannot be greater"):
            services.fiscal_years.update_display_settings(
                rc.id, fy.id, "alice", on_target_min=10, on_target_max=5
            )

    def test_requires_owner(self, services, rc, fy, colleague):
        services.permissions.grant_user_access(rc.id, "bob", "READ_WRITE", "alice")
        with pytest.raises(AccessDeniedError):
            services.fiscal_years.update_display_settings(rc.id, fy.id, "bob", show_search_box=False)


class TestClampOnTarget:
    @given(st.integers(min_value=-10_000, max_value=10_000))
    def test_result_within_limits(self, value):
        clamped = clamp_on_target(value)
        assert -ON_TARGET_LIMIT <= clamped <= ON_TARGET_LIMIT

    @given(st.integers(min_value=-ON_TARGET_LIMIT, max_value=ON_TARGET_LIMIT))
    def test_values_in_range_unchanged(self, value):
        assert clamp_on_target(value) == value
