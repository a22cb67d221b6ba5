"""
Tests for procurement: items, vendor quotes, the spending link toggle and
tracking events.
"""

from datetime import date
from decimal import Decimal

import pytest

from myrc_kernel.exceptions import (
    BusinessRuleError,
    DuplicateNameError,
    InvalidEnumValueError,
    NotFoundError,
    ValidationError,
)
from myrc_modules._attachments import Upload
from myrc_modules.procurement.models import (
    ProcurementEventType,
    ProcurementType,
    QuoteStatus,
    TrackingStatus,
)
from myrc_modules.procurement.service import MODIFIED_SPENDING_WARNING
from myrc_modules.spending.models import SpendingStatus

QUOTE_PDF = Upload("quote.pdf", "application/pdf", b"%PDF-1.4 quote")


@pytest.fixture
def item(services, rc, fy, category):
    return services.procurement.create(
        rc.id,
        fy.id,
        "alice",
        name="Storage array",
        purchase_requisition=" PR-100 ",
        vendor="Acme",
        final_price=Decimal("1000.00"),
        final_price_currency="USD",
        final_price_exchange_rate=Decimal("1.3655"),
        category_id=category.id,
    )


@pytest.fixture
def quote(services, rc, fy, item):
    return services.procurement.create_quote(
        rc.id,
        fy.id,
        item.id,
        "alice",
        vendor_name="Acme",
        amount=Decimal("1200"),
        amount_cap=Decimal("1000"),
        amount_om=Decimal("200"),
        currency="USD",
        exchange_rate=Decimal("1.5"),
    )


# =============================================================================
# Items
# =============================================================================


class TestProcurementItems:
    def test_create_defaults_and_cad(self, item):
        assert item.purchase_requisition == "PR-100"
        assert item.tracking_status is TrackingStatus.ON_TRACK
        assert item.procurement_type is ProcurementType.RC_INITIATED
        assert item.final_price_cad == Decimal("1365.50")
        assert item.quoted_price_cad is None
        assert item.quoted_price_currency == "CAD"
        assert item.linked_spending_item_id is None
        assert item.category_name == "Compute"

    def test_completed_defaults_date(self, services, rc, fy):
        created = services.procurement.create(
            rc.id, fy.id, "alice", name="Licences", procurement_completed=True
        )
        assert created.procurement_completed_date == date.today()

    def test_duplicate_pr(self, services, rc, fy, item):
        with pytest.raises(DuplicateNameError):
            services.procurement.create(
                rc.id, fy.id, "alice", name="Other", purchase_requisition="PR-100"
            )

    def test_pr_reusable_after_delete(self, services, rc, fy, item):
        services.procurement.delete(rc.id, fy.id, item.id, "alice")
        again = services.procurement.create(
            rc.id, fy.id, "alice", name="Replacement", purchase_requisition="PR-100"
        )
        assert again.purchase_requisition == "PR-100"

    def test_name_required(self, services, rc, fy):
        with pytest.raises(ValidationError):
            services.procurement.create(rc.id, fy.id, "alice", name="  ")

    def test_list_order_and_status_filter(self, services, rc, fy, item):
        services.procurement.create(
            rc.id,
            fy.id,
            "alice",
            name="Network switch",
            purchase_requisition="PR-050",
            tracking_status="at_risk",
        )
        listed = services.procurement.list_items(rc.id, fy.id, "alice")
        assert [i.purchase_requisition for i in listed] == ["PR-050", "PR-100"]

        at_risk = services.procurement.list_items(rc.id, fy.id, "alice", status="AT_RISK")
        assert [i.name for i in at_risk] == ["Network switch"]

    def test_search_is_case_insensitive(self, services, rc, fy, item):
        assert [i.id for i in services.procurement.search(rc.id, fy.id, "alice", "STORAGE")] == [
            item.id
        ]
        assert [i.id for i in services.procurement.search(rc.id, fy.id, "alice", "pr-1")] == [
            item.id
        ]
        assert services.procurement.search(rc.id, fy.id, "alice", "tape") == []

    def test_update_reprices_and_clears_category(self, services, rc, fy, item):
        updated = services.procurement.update(
            rc.id,
            fy.id,
            item.id,
            "alice",
            final_price_currency="CAD",
            quoted_price=Decimal("900"),
            clear_category=True,
            expected_version=item.version,
        )
        assert updated.final_price_currency == "CAD"
        assert updated.final_price_cad == Decimal("1000.00")
        assert updated.quoted_price_cad == Decimal("900.00")
        assert updated.category_id is None

    def test_update_status(self, services, rc, fy, item):
        updated = services.procurement.update_status(rc.id, fy.id, item.id, "alice", "completed")
        assert updated.tracking_status is TrackingStatus.COMPLETED
        with pytest.raises(InvalidEnumValueError):
            services.procurement.update_status(rc.id, fy.id, item.id, "alice", "LOST")

    def test_soft_delete(self, services, rc, fy, item, quote):
        services.procurement.delete(rc.id, fy.id, item.id, "alice")
        assert services.procurement.list_items(rc.id, fy.id, "alice") == []
        with pytest.raises(NotFoundError, match="Procurement item not found"):
            services.procurement.get(rc.id, fy.id, item.id, "alice")


# =============================================================================
# Quotes
# =============================================================================


class TestQuotes:
    def test_create_converts_amounts(self, quote):
        assert quote.status is QuoteStatus.PENDING
        assert not quote.selected
        assert quote.amount_cap_cad == Decimal("1500.00")
        assert quote.amount_om_cad == Decimal("300.00")

    def test_vendor_required(self, services, rc, fy, item):
        with pytest.raises(ValidationError, match="Vendor name is required"):
            services.procurement.create_quote(rc.id, fy.id, item.id, "alice", vendor_name="")

    def test_item_detail_includes_quotes(self, services, rc, fy, item, quote):
        detail = services.procurement.get(rc.id, fy.id, item.id, "alice")
        assert [q.id for q in detail.quotes] == [quote.id]

    def test_select_rejects_previous_choice(self, services, rc, fy, item, quote):
        other = services.procurement.create_quote(
            rc.id, fy.id, item.id, "alice", vendor_name="Globex", amount=Decimal("1100")
        )
        services.procurement.select_quote(rc.id, fy.id, item.id, quote.id, "alice")
        selected = services.procurement.select_quote(rc.id, fy.id, item.id, other.id, "alice")
        assert selected.selected and selected.status is QuoteStatus.SELECTED

        first = services.procurement.get_quote(rc.id, fy.id, item.id, quote.id, "alice")
        assert not first.selected
        assert first.status is QuoteStatus.REJECTED

    def test_update_quote_status(self, services, rc, fy, item, quote):
        updated = services.procurement.update_quote(
            rc.id, fy.id, item.id, quote.id, "alice", notes="Checked", status="under_review"
        )
        assert updated.status is QuoteStatus.UNDER_REVIEW
        assert updated.notes == "Checked"
        assert updated.amount_cap is None

    def test_delete_quote(self, services, rc, fy, item, quote):
        services.procurement.delete_quote(rc.id, fy.id, item.id, quote.id, "alice")
        assert services.procurement.list_quotes(rc.id, fy.id, item.id, "alice") == []
        with pytest.raises(NotFoundError, match="Quote not found"):
            services.procurement.get_quote(rc.id, fy.id, item.id, quote.id, "alice")

    def test_quote_files(self, services, rc, fy, item, quote):
        info = services.procurement.upload_quote_file(
            rc.id, fy.id, item.id, quote.id, "alice", QUOTE_PDF
        )
        content = services.procurement.download_quote_file(
            rc.id, fy.id, item.id, quote.id, info.id, "alice"
        )
        assert content.content == QUOTE_PDF.content

        described = services.procurement.update_quote_file_description(
            rc.id, fy.id, item.id, quote.id, info.id, "alice", "Signed copy"
        )
        assert described.description == "Signed copy"

        services.procurement.delete_quote_file(rc.id, fy.id, item.id, quote.id, info.id, "alice")
        assert services.procurement.list_quote_files(rc.id, fy.id, item.id, quote.id, "alice") == []


# =============================================================================
# Spending link
# =============================================================================


class TestSpendingLink:
    def test_link_creates_planning_spending_item(self, services, rc, fy, item):
        result = services.procurement.toggle_spending_link(rc.id, fy.id, item.id, "alice")
        assert result.linked and result.changed
        assert result.item.linked_spending_item_id == result.spending_item_id

        spending = services.spending.get(rc.id, fy.id, result.spending_item_id, "alice")
        assert spending.name == "Storage array"
        assert spending.status is SpendingStatus.PLANNING
        assert spending.currency == "USD"
        assert spending.amount == Decimal("1000.00")
        assert spending.linked_to_procurement

    def test_cancelled_item_cannot_link(self, services, rc, fy, item):
        services.procurement.update_status(rc.id, fy.id, item.id, "alice", "CANCELLED")
        with pytest.raises(BusinessRuleError, match="cancelled"):
            services.procurement.toggle_spending_link(rc.id, fy.id, item.id, "alice")

    def test_relink_builds_fresh_spending_item_from_current_price(self, services, rc, fy, item):
        linked = services.procurement.toggle_spending_link(rc.id, fy.id, item.id, "alice")
        unlinked = services.procurement.toggle_spending_link(rc.id, fy.id, item.id, "alice")
        assert not unlinked.linked
        assert unlinked.item.linked_spending_item_id is None
        assert services.spending.list_items(rc.id, fy.id, "alice") == []

        services.procurement.update(rc.id, fy.id, item.id, "alice", final_price=Decimal("2500.00"))
        relinked = services.procurement.toggle_spending_link(rc.id, fy.id, item.id, "alice")
        assert relinked.linked
        assert relinked.spending_item_id != linked.spending_item_id

        spending = services.spending.get(rc.id, fy.id, relinked.spending_item_id, "alice")
        assert spending.amount == Decimal("2500.00")
        assert spending.version == 1
        assert [s.id for s in services.spending.list_items(rc.id, fy.id, "alice")] == [spending.id]

        # A fresh row carries no edits, so unlinking needs no confirmation.
        again = services.procurement.toggle_spending_link(rc.id, fy.id, item.id, "alice")
        assert not again.linked
        assert again.warning is None

    def test_modified_spending_needs_force(self, services, rc, fy, item):
        linked = services.procurement.toggle_spending_link(rc.id, fy.id, item.id, "alice")
        services.spending.update(
            rc.id, fy.id, linked.spending_item_id, "alice", vendor="Changed vendor"
        )

        warned = services.procurement.toggle_spending_link(rc.id, fy.id, item.id, "alice")
        assert warned.linked
        assert warned.warning == MODIFIED_SPENDING_WARNING
        assert not warned.changed

        forced = services.procurement.toggle_spending_link(
            rc.id, fy.id, item.id, "alice", force=True
        )
        assert not forced.linked

    def test_delete_item_deactivates_linked_spending(self, services, rc, fy, item):
        services.procurement.toggle_spending_link(rc.id, fy.id, item.id, "alice")
        services.procurement.delete(rc.id, fy.id, item.id, "alice")
        assert services.spending.list_items(rc.id, fy.id, "alice") == []


# =============================================================================
# Events
# =============================================================================


class TestProcurementEvents:
    def test_status_event_moves_item(self, services, rc, fy, item):
        event = services.procurement_events.create_event(
            rc.id,
            fy.id,
            item.id,
            "alice",
            event_type="CONTRACT_AWARDED",
            new_status="completed",
        )
        assert event.old_status == "ON_TRACK"
        assert event.new_status == "COMPLETED"
        detail = services.procurement.get(rc.id, fy.id, item.id, "alice")
        assert detail.tracking_status is TrackingStatus.COMPLETED

    def test_free_text_status_leaves_item_alone(self, services, rc, fy, item):
        event = services.procurement_events.create_event(
            rc.id, fy.id, item.id, "alice", new_status="waiting on vendor"
        )
        assert event.event_type is ProcurementEventType.NOT_STARTED
        assert event.old_status is None
        detail = services.procurement.get(rc.id, fy.id, item.id, "alice")
        assert detail.tracking_status is TrackingStatus.ON_TRACK

    def test_listing_by_type_and_dates(self, services, rc, fy, item):
        events = services.procurement_events
        events.create_event(
            rc.id, fy.id, item.id, "alice", event_type="QUOTE", event_date=date(2025, 5, 1)
        )
        latest = events.create_event(
            rc.id, fy.id, item.id, "alice", event_type="PAUSED", event_date=date(2025, 6, 1)
        )

        assert [e.event_type for e in events.list_events(rc.id, fy.id, item.id, "alice")] == [
            ProcurementEventType.PAUSED,
            ProcurementEventType.QUOTE,
        ]
        assert events.latest_event(rc.id, fy.id, item.id, "alice").id == latest.id
        assert events.count_events(rc.id, fy.id, item.id, "alice") == 2
        assert len(events.events_by_type(rc.id, fy.id, item.id, "alice", "quote")) == 1

        in_may = events.events_between(
            rc.id, fy.id, item.id, "alice", date(2025, 5, 1), date(2025, 5, 31)
        )
        assert [e.event_type for e in in_may] == [ProcurementEventType.QUOTE]

    def test_events_between_validates_range(self, services, rc, fy, item):
        events = services.procurement_events
        with pytest.raises(ValidationError, match="required"):
            events.events_between(rc.id, fy.id, item.id, "alice", None, date(2025, 1, 1))
        with pytest.raises(ValidationError, match="before or equal"):
            events.events_between(
                rc.id, fy.id, item.id, "alice", date(2025, 2, 1), date(2025, 1, 1)
            )

    def test_update_and_delete_event(self, services, rc, fy, item):
        events = services.procurement_events
        event = events.create_event(rc.id, fy.id, item.id, "alice")
        updated = events.update_event(
            rc.id, fy.id, item.id, event.id, "alice", comment="Sent", new_status="AT_RISK"
        )
        assert updated.comment == "Sent"
        assert updated.old_status == "ON_TRACK"

        events.delete_event(rc.id, fy.id, item.id, event.id, "alice")
        with pytest.raises(NotFoundError, match="Event not found"):
            events.get_event(rc.id, fy.id, item.id, event.id, "alice")

    def test_event_files(self, services, rc, fy, item):
        events = services.procurement_events
        event = events.create_event(rc.id, fy.id, item.id, "alice", event_type="GOODS_RECEIVED")
        info = events.upload_event_file(
            rc.id, fy.id, item.id, event.id, "alice", Upload("packing.txt", "text/plain", b"3 boxes")
        )
        assert events.get_event_file(rc.id, fy.id, item.id, event.id, info.id, "alice").file_name == (
            "packing.txt"
        )
        assert events.download_event_file(
            rc.id, fy.id, item.id, event.id, info.id, "alice"
        ).content == b"3 boxes"

        events.delete_event_file(rc.id, fy.id, item.id, event.id, info.id, "alice")
        assert events.list_event_files(rc.id, fy.id, item.id, event.id, "alice") == []
