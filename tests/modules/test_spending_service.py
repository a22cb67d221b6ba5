"""
Tests for SpendingService: items, milestone events, invoices with CAD
conversion, and invoice file attachments.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from myrc_kernel.exceptions import (
    AttachmentError,
    BusinessRuleError,
    DuplicateNameError,
    InvalidEnumValueError,
    NotFoundError,
    OptimisticLockError,
    ValidationError,
)
from myrc_modules._attachments import Upload
from myrc_modules._common import AllocationInput
from myrc_modules.spending.models import SpendingEventType, SpendingStatus

PDF = Upload("invoice.pdf", "application/pdf", b"%PDF-1.4 test", "Original scan")


@pytest.fixture
def spending_item(services, rc, fy, default_money, category):
    return services.spending.create(
        rc.id,
        fy.id,
        "alice",
        name="GPU nodes",
        category_id=category.id,
        vendor="Acme",
        amount=Decimal("5000"),
        allocations=[AllocationInput(default_money.id, cap_amount=Decimal("5000"))],
    )


@pytest.fixture
def invoice(services, rc, fy, spending_item):
    return services.spending.create_invoice(
        rc.id,
        fy.id,
        spending_item.id,
        "alice",
        amount=Decimal("100.00"),
        currency="USD",
        exchange_rate=Decimal("1.3655"),
        date_received=date(2025, 5, 1),
    )


# =============================================================================
# Items
# =============================================================================


class TestSpendingItems:
    def test_create_defaults(self, spending_item):
        assert spending_item.status is SpendingStatus.PLANNING
        assert spending_item.currency == "CAD"
        assert spending_item.category_name == "Compute"
        assert spending_item.active
        assert not spending_item.linked_to_procurement
        assert spending_item.total_cap == Decimal("5000")

    def test_category_required(self, services, rc, fy, default_money):
        with pytest.raises(ValidationError, match="Category ID is required"):
            services.spending.create(
                rc.id,
                fy.id,
                "alice",
                name="No category",
                category_id=None,
                allocations=[AllocationInput(default_money.id, om_amount=Decimal("1"))],
            )

    def test_duplicate_name(self, services, rc, fy, default_money, category, spending_item):
        with pytest.raises(DuplicateNameError):
            services.spending.create(
                rc.id,
                fy.id,
                "alice",
                name="GPU nodes",
                category_id=category.id,
                allocations=[AllocationInput(default_money.id, om_amount=Decimal("1"))],
            )

    def test_invalid_status(self, services, rc, fy, default_money, category):
        with pytest.raises(InvalidEnumValueError):
            services.spending.create(
                rc.id,
                fy.id,
                "alice",
                name="Bad status",
                category_id=category.id,
                status="MAYBE",
                allocations=[AllocationInput(default_money.id, om_amount=Decimal("1"))],
            )

    def test_update_status(self, services, rc, fy, spending_item):
        updated = services.spending.update_status(rc.id, fy.id, spending_item.id, "alice", "committed")
        assert updated.status is SpendingStatus.COMMITTED

    def test_update_fields(self, services, rc, fy, spending_item):
        updated = services.spending.update(
            rc.id,
            fy.id,
            spending_item.id,
            "alice",
            vendor="Globex",
            eco_amount=Decimal("4800"),
            expected_version=spending_item.version,
        )
        assert updated.vendor == "Globex"
        assert updated.eco_amount == Decimal("4800")

    def test_stale_update(self, services, rc, fy, spending_item):
        services.spending.update(rc.id, fy.id, spending_item.id, "alice", vendor="Globex")
        with pytest.raises(OptimisticLockError):
            services.spending.update(
                rc.id, fy.id, spending_item.id, "alice", vendor="Initech", expected_version=1
            )

    def test_update_allocations_requires_positive(self, services, rc, fy, default_money, spending_item):
        with pytest.raises(ValidationError):
            services.spending.update_allocations(
                rc.id, fy.id, spending_item.id, "alice", [AllocationInput(default_money.id)]
            )
        updated = services.spending.update_allocations(
            rc.id,
            fy.id,
            spending_item.id,
            "alice",
            [AllocationInput(default_money.id, om_amount=Decimal("12.50"))],
        )
        assert updated.total_om == Decimal("12.50")
        allocations = services.spending.get_allocations(rc.id, fy.id, spending_item.id, "alice")
        assert [a.money_code for a in allocations] == ["AB"]

    def test_rate_only_update(self, services, rc, fy, default_money, category):
        item = services.spending.create(
            rc.id,
            fy.id,
            "alice",
            name="US licences",
            category_id=category.id,
            amount=Decimal("200"),
            currency="USD",
            exchange_rate=Decimal("1.30"),
            allocations=[AllocationInput(default_money.id, om_amount=Decimal("200"))],
        )
        updated = services.spending.update(
            rc.id, fy.id, item.id, "alice", exchange_rate=Decimal("1.40")
        )
        assert (updated.currency, updated.exchange_rate) == ("USD", Decimal("1.40"))

        moved = services.spending.update(rc.id, fy.id, item.id, "alice", currency="eur")
        assert (moved.currency, moved.exchange_rate) == ("EUR", Decimal("1.40"))

    def test_allocation_rule_sees_unsent_monies(
        self, services, rc, fy, default_money, spending_item
    ):
        other = services.monies.create(rc.id, fy.id, "alice", "OA", "Operating Allotment")
        services.spending.update_allocations(
            rc.id,
            fy.id,
            spending_item.id,
            "alice",
            [AllocationInput(other.id, cap_amount=Decimal("1"))],
        )

        updated = services.spending.update(
            rc.id, fy.id, spending_item.id, "alice", allocations=[AllocationInput(default_money.id)]
        )
        assert (updated.total_cap, updated.total_om) == (Decimal("1"), Decimal("0"))

        with pytest.raises(ValidationError):
            services.spending.update_allocations(
                rc.id, fy.id, spending_item.id, "alice", [AllocationInput(other.id)]
            )

    def test_delete(self, services, rc, fy, spending_item):
        services.spending.delete(rc.id, fy.id, spending_item.id, "alice")
        assert services.spending.list_items(rc.id, fy.id, "alice") == []


# =============================================================================
# Events
# =============================================================================


class TestSpendingEvents:
    def test_events_newest_first(self, services, rc, fy, spending_item):
        services.spending.create_event(
            rc.id, fy.id, spending_item.id, "alice", event_type="ECO_REQUESTED", event_date=date(2025, 4, 1)
        )
        latest = services.spending.create_event(
            rc.id,
            fy.id,
            spending_item.id,
            "alice",
            event_type=SpendingEventType.ECO_RECEIVED,
            event_date=date(2025, 4, 15),
            comment="Approved",
        )
        events = services.spending.list_events(rc.id, fy.id, spending_item.id, "alice")
        assert [e.event_type for e in events] == [
            SpendingEventType.ECO_RECEIVED,
            SpendingEventType.ECO_REQUESTED,
        ]
        assert services.spending.latest_event(rc.id, fy.id, spending_item.id, "alice").id == latest.id
        assert services.spending.count_events(rc.id, fy.id, spending_item.id, "alice") == 2

    def test_default_event_type_and_date(self, services, rc, fy, spending_item):
        event = services.spending.create_event(rc.id, fy.id, spending_item.id, "alice")
        assert event.event_type is SpendingEventType.PENDING
        assert event.event_date == date.today()

    def test_update_and_soft_delete(self, services, rc, fy, spending_item):
        event = services.spending.create_event(rc.id, fy.id, spending_item.id, "alice")
        updated = services.spending.update_event(
            rc.id, fy.id, spending_item.id, event.id, "alice", event_type="ON_HOLD", comment="Paused"
        )
        assert updated.event_type is SpendingEventType.ON_HOLD
        assert updated.comment == "Paused"

        services.spending.delete_event(rc.id, fy.id, spending_item.id, event.id, "alice")
        assert services.spending.count_events(rc.id, fy.id, spending_item.id, "alice") == 0
        with pytest.raises(NotFoundError):
            services.spending.get_event(rc.id, fy.id, spending_item.id, event.id, "alice")

    def test_latest_event_none(self, services, rc, fy, spending_item):
        assert services.spending.latest_event(rc.id, fy.id, spending_item.id, "alice") is None

    def test_procurement_linked_item_rejects_events(self, services, rc, fy):
        procurement = services.procurement.create(
            rc.id, fy.id, "alice", name="Storage array", purchase_requisition="PR-1"
        )
        link = services.procurement.toggle_spending_link(rc.id, fy.id, procurement.id, "alice")
        with pytest.raises(BusinessRuleError):
            services.spending.create_event(rc.id, fy.id, link.spending_item_id, "alice")


# =============================================================================
# Invoices and files
# =============================================================================


class TestInvoices:
    def test_amount_cad_computed(self, invoice):
        assert invoice.currency == "USD"
        assert invoice.amount_cad == Decimal("136.55")
        assert invoice.files == ()

    def test_amount_required(self, services, rc, fy, spending_item):
        with pytest.raises(ValidationError, match="amount is required"):
            services.spending.create_invoice(rc.id, fy.id, spending_item.id, "alice", amount=None)

    def test_update_recomputes_cad(self, services, rc, fy, spending_item, invoice):
        updated = services.spending.update_invoice(
            rc.id,
            fy.id,
            spending_item.id,
            invoice.id,
            "alice",
            amount=Decimal("200"),
            currency="CAD",
            expected_version=invoice.version,
        )
        assert updated.amount_cad == Decimal("200.00")
        assert updated.date_received is None

    def test_soft_delete(self, services, rc, fy, spending_item, invoice):
        services.spending.delete_invoice(rc.id, fy.id, spending_item.id, invoice.id, "alice")
        assert services.spending.list_invoices(rc.id, fy.id, spending_item.id, "alice") == []
        with pytest.raises(NotFoundError, match="Invoice not found"):
            services.spending.get_invoice(rc.id, fy.id, spending_item.id, invoice.id, "alice")


class TestInvoiceFiles:
    def test_upload_and_download(self, services, rc, fy, spending_item, invoice):
        info = services.spending.upload_invoice_file(
            rc.id, fy.id, spending_item.id, invoice.id, "alice", PDF
        )
        assert info.file_size == len(PDF.content)
        assert info.description == "Original scan"

        content = services.spending.download_invoice_file(
            rc.id, fy.id, spending_item.id, invoice.id, info.id, "alice"
        )
        assert content.content == PDF.content
        assert content.content_type == "application/pdf"

        listed = services.spending.get_invoice(rc.id, fy.id, spending_item.id, invoice.id, "alice")
        assert [f.id for f in listed.files] == [info.id]

    def test_replace_and_describe(self, services, rc, fy, spending_item, invoice):
        info = services.spending.upload_invoice_file(
            rc.id, fy.id, spending_item.id, invoice.id, "alice", PDF
        )
        replaced = services.spending.replace_invoice_file(
            rc.id,
            fy.id,
            spending_item.id,
            invoice.id,
            info.id,
            "alice",
            Upload("invoice-v2.csv", "text/csv", b"a,b\n1,2\n"),
        )
        assert replaced.id == info.id
        assert replaced.file_name == "invoice-v2.csv"
        assert replaced.description == "Original scan"

        described = services.spending.update_invoice_file_description(
            rc.id, fy.id, spending_item.id, invoice.id, info.id, "alice", "   "
        )
        assert described.description is None

    def test_rejected_upload(self, services, rc, fy, spending_item, invoice):
        with pytest.raises(AttachmentError, match="File type not allowed"):
            services.spending.upload_invoice_file(
                rc.id,
                fy.id,
                spending_item.id,
                invoice.id,
                "alice",
                Upload("run.exe", "application/x-msdownload", b"MZ"),
            )

    def test_delete_file(self, services, rc, fy, spending_item, invoice):
        info = services.spending.upload_invoice_file(
            rc.id, fy.id, spending_item.id, invoice.id, "alice", PDF
        )
        services.spending.delete_invoice_file(
            rc.id, fy.id, spending_item.id, invoice.id, info.id, "alice"
        )
        assert services.spending.list_invoice_files(
            rc.id, fy.id, spending_item.id, invoice.id, "alice"
        ) == []

    def test_unknown_file(self, services, rc, fy, spending_item, invoice):
        with pytest.raises(NotFoundError, match="File not found"):
            services.spending.get_invoice_file(
                rc.id, fy.id, spending_item.id, invoice.id, uuid4(), "alice"
            )
