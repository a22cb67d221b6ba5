"""
Tests for MoneyService and CategoryService: default entities, uniqueness,
ordering and the money-in-use guard.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from myrc_kernel.exceptions import (
    AccessDeniedError,
    DefaultEntityProtectedError,
    DuplicateNameError,
    InvalidEnumValueError,
    MoneyInUseError,
    NotFoundError,
    ValidationError,
)
from myrc_kernel.models.category import FundingType
from myrc_kernel.services.category_service import parse_funding_type
from myrc_modules._common import AllocationInput


@pytest.fixture
def oa_money(services, rc, fy):
    return services.monies.create(rc.id, fy.id, "alice", " oa ", "Operating Allotment")


# =============================================================================
# Monies
# =============================================================================


class TestCreateMoney:
    def test_code_uppercased_and_ordered_last(self, oa_money):
        assert oa_money.code == "OA"
        assert oa_money.name == "Operating Allotment"
        assert oa_money.display_order == 1
        assert not oa_money.is_default
        assert oa_money.can_delete

    def test_duplicate_code(self, services, rc, fy, oa_money):
        with pytest.raises(DuplicateNameError):
            services.monies.create(rc.id, fy.id, "alice", "OA", "Again")

    @pytest.mark.parametrize("code,name", [("", "Name"), ("XX", " ")])
    def test_required_fields(self, services, rc, fy, code, name):
        with pytest.raises(ValidationError):
            services.monies.create(rc.id, fy.id, "alice", code, name)

    def test_requires_owner(self, services, rc, fy, colleague):
        services.permissions.grant_user_access(rc.id, "bob", "READ_WRITE", "alice")
        with pytest.raises(AccessDeniedError):
            services.monies.create(rc.id, fy.id, "bob", "WCF", "Working Capital")

    def test_new_money_backfills_funding_allocations(self, services, rc, fy, default_money):
        item = services.funding.create(
            rc.id,
            fy.id,
            "alice",
            name="Base",
            allocations=[AllocationInput(default_money.id, cap_amount=Decimal("100"))],
        )
        money = services.monies.create(rc.id, fy.id, "alice", "OA", "Operating Allotment")

        refreshed = services.funding.get(rc.id, fy.id, item.id, "alice")
        codes = {a.money_code: (a.cap_amount, a.om_amount) for a in refreshed.money_allocations}
        assert codes["OA"] == (Decimal("0"), Decimal("0"))
        assert money.can_delete


class TestUpdateMoney:
    def test_rename_custom_money(self, services, rc, fy, oa_money):
        view = services.monies.update(rc.id, fy.id, oa_money.id, "alice", code="oa2", name="Renamed")
        assert (view.code, view.name) == ("OA2", "Renamed")

    def test_default_code_is_fixed(self, services, rc, fy, default_money):
        with pytest.raises(DefaultEntityProtectedError):
            services.monies.update(rc.id, fy.id, default_money.id, "alice", code="XB")

    def test_default_name_may_change(self, services, rc, fy, default_money):
        view = services.monies.update(rc.id, fy.id, default_money.id, "alice", name="Base Budget")
        assert (view.code, view.name) == ("AB", "Base Budget")


class TestDeleteMoney:
    def test_delete_unused(self, services, rc, fy, oa_money):
        services.monies.delete(rc.id, fy.id, oa_money.id, "alice")
        assert [m.code for m in services.monies.list_monies(rc.id, fy.id, "alice")] == ["AB"]

    def test_default_cannot_be_deleted(self, services, rc, fy, default_money):
        with pytest.raises(DefaultEntityProtectedError):
            services.monies.delete(rc.id, fy.id, default_money.id, "alice")

    def test_money_in_use(self, services, rc, fy, oa_money):
        services.funding.create(
            rc.id,
            fy.id,
            "alice",
            name="Uses OA",
            allocations=[AllocationInput(oa_money.id, om_amount=Decimal("5"))],
        )
        assert not services.monies.get(rc.id, fy.id, oa_money.id, "alice").can_delete
        with pytest.raises(MoneyInUseError) as exc_info:
            services.monies.delete(rc.id, fy.id, oa_money.id, "alice")
        assert exc_info.value.money_code == "OA"

    def test_unknown_money(self, services, rc, fy):
        with pytest.raises(NotFoundError):
            services.monies.delete(rc.id, fy.id, uuid4(), "alice")


class TestReorderMonies:
    def test_reorder(self, services, rc, fy, default_money, oa_money):
        views = services.monies.reorder(rc.id, fy.id, "alice", [oa_money.id, default_money.id])
        assert [(m.code, m.display_order) for m in views] == [("OA", 0), ("AB", 1)]


# =============================================================================
# Categories
# =============================================================================


class TestParseFundingType:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, FundingType.BOTH),
            ("", FundingType.BOTH),
            ("cap_only", FundingType.CAP_ONLY),
            ("OM_ONLY", FundingType.OM_ONLY),
            (FundingType.BOTH, FundingType.BOTH),
        ],
    )
    def test_parse(self, value, expected):
        assert parse_funding_type(value) is expected

    def test_unknown(self):
        with pytest.raises(InvalidEnumValueError, match="Invalid funding type"):
            parse_funding_type("SOMETIMES")


class TestCategories:
    def test_default_funding_types(self, services, rc, fy):
        types = {c.name: c.funding_type for c in services.categories.list_categories(rc.id, fy.id, "alice")}
        assert types["Compute"] == "BOTH"
        assert types["Contractors"] == "OM_ONLY"

    def test_create_custom(self, services, rc, fy):
        view = services.categories.create(rc.id, fy.id, "alice", "Networking", funding_type="cap_only")
        assert view.funding_type == "CAP_ONLY"
        assert not view.is_default
        assert view.display_order > 5

    def test_create_defaults_to_both(self, services, rc, fy):
        assert services.categories.create(rc.id, fy.id, "alice", "Misc").funding_type == "BOTH"

    def test_duplicate_name(self, services, rc, fy):
        with pytest.raises(DuplicateNameError):
            services.categories.create(rc.id, fy.id, "alice", "Compute")

    def test_read_write_may_create(self, services, rc, fy, colleague):
        services.permissions.grant_user_access(rc.id, "bob", "READ_WRITE", "alice")
        assert services.categories.create(rc.id, fy.id, "bob", "Bob's").name == "Bob's"

    def test_default_category_read_only(self, services, rc, fy, category):
        with pytest.raises(DefaultEntityProtectedError):
            services.categories.update(rc.id, fy.id, category.id, "alice", name="Compute 2")
        with pytest.raises(DefaultEntityProtectedError):
            services.categories.delete(rc.id, fy.id, category.id, "alice")

    def test_update_and_delete_custom(self, services, rc, fy):
        custom = services.categories.create(rc.id, fy.id, "alice", "Networking")
        updated = services.categories.update(
            rc.id, fy.id, custom.id, "alice", description="Switches", funding_type="OM_ONLY"
        )
        assert updated.description == "Switches"
        assert updated.funding_type == "OM_ONLY"

        services.categories.delete(rc.id, fy.id, custom.id, "alice")
        names = [c.name for c in services.categories.list_categories(rc.id, fy.id, "alice")]
        assert "Networking" not in names

    def test_ensure_defaults_is_idempotent(self, services, session, rc, fy):
        fy_model = services.fiscal_years.get_model(rc.id, fy.id, "alice")
        assert services.categories.seed_defaults(fy_model, "alice") == 0
        assert len(services.categories.ensure_defaults(rc.id, fy.id, "alice")) == 6

    def test_reorder(self, services, rc, fy):
        categories = services.categories.list_categories(rc.id, fy.id, "alice")
        reversed_ids = [c.id for c in reversed(categories)]
        views = services.categories.reorder(rc.id, fy.id, "alice", reversed_ids)
        assert [v.name for v in views][0] == "Contractors"
