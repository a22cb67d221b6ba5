"""Tests for TravelService: trips, travellers and approval-status totals."""

from datetime import date
from decimal import Decimal

import pytest

from myrc_kernel.exceptions import DuplicateNameError, InvalidEnumValueError, NotFoundError
from myrc_modules._common import AllocationInput
from myrc_modules._planned import PlanStatus
from myrc_modules.travel.models import ApprovalStatus, TravellerInput, TravelType


@pytest.fixture
def trip(services, rc, fy, default_money):
    return services.travel.create(
        rc.id,
        fy.id,
        "alice",
        name="SC25",
        destination="St. Louis",
        travel_type="north_america",
        departure_date=date(2025, 11, 15),
        return_date=date(2025, 11, 21),
        travellers=[
            TravellerInput(name="Bob", estimated_cost=Decimal("3000"), taac="T-1"),
            TravellerInput(
                name="Carol",
                estimated_cost=Decimal("2000"),
                estimated_currency="USD",
                estimated_exchange_rate=Decimal("1.4"),
            ),
        ],
        allocations=[AllocationInput(default_money.id, om_amount=Decimal("5800"))],
    )


class TestTravelItems:
    def test_create(self, trip):
        assert trip.travel_type is TravelType.NORTH_AMERICA
        assert trip.status is PlanStatus.PLANNED
        assert {t.approval_status for t in trip.travellers} == {ApprovalStatus.PLANNED}
        assert trip.estimated_total_cad == Decimal("5800.00")
        assert trip.total_om == Decimal("5800")

    def test_default_travel_type(self, services, rc, fy):
        item = services.travel.create(rc.id, fy.id, "alice", name="Site visit")
        assert item.travel_type is TravelType.DOMESTIC
        assert item.travellers == ()

    def test_invalid_travel_type(self, services, rc, fy):
        with pytest.raises(InvalidEnumValueError, match="Invalid travel type"):
            services.travel.create(rc.id, fy.id, "alice", name="Moon", travel_type="LUNAR")

    def test_rename_to_taken_name(self, services, rc, fy, trip):
        other = services.travel.create(rc.id, fy.id, "alice", name="ISC")
        with pytest.raises(DuplicateNameError):
            services.travel.update(rc.id, fy.id, other.id, "alice", name="SC25")

    def test_list_ordered_by_name(self, services, rc, fy, trip):
        services.travel.create(rc.id, fy.id, "alice", name="ISC")
        assert [i.name for i in services.travel.list_items(rc.id, fy.id, "alice")] == ["ISC", "SC25"]

    def test_delete_removes_travellers(self, services, rc, fy, trip):
        services.travel.delete(rc.id, fy.id, trip.id, "alice")
        with pytest.raises(NotFoundError, match="Travel item not found"):
            services.travel.list_travellers(rc.id, fy.id, trip.id, "alice")


class TestTravellers:
    def test_cancelled_traveller_excluded_from_totals(self, services, rc, fy, trip):
        bob = next(t for t in trip.travellers if t.name == "Bob")
        updated = services.travel.update_traveller(
            rc.id,
            fy.id,
            trip.id,
            bob.id,
            "alice",
            TravellerInput(approval_status="CANCELLED", final_cost=Decimal("100")),
        )
        assert updated.approval_status is ApprovalStatus.CANCELLED
        assert updated.taac == "T-1"

        item = services.travel.get(rc.id, fy.id, trip.id, "alice")
        assert item.estimated_total_cad == Decimal("2800.00")
        assert item.final_total_cad == Decimal("0.00")

    def test_final_costs_total(self, services, rc, fy, trip):
        services.travel.add_traveller(
            rc.id,
            fy.id,
            trip.id,
            "alice",
            TravellerInput(name="Dave", final_cost=Decimal("1234.56"), approval_status="taac_final_approved"),
        )
        item = services.travel.get(rc.id, fy.id, trip.id, "alice")
        assert item.final_total_cad == Decimal("1234.56")
        assert len(item.travellers) == 3
