"""
Tests for ExportImportService: the export document layout and importing
it into another fiscal year.
"""

import base64
import json
from datetime import date
from decimal import Decimal

import pytest

from myrc_kernel.exceptions import AccessDeniedError, ValidationError
from myrc_modules._attachments import Upload
from myrc_modules._common import AllocationInput
from myrc_modules.funding.models import FundingSource
from myrc_services.export_import import EXPORT_VERSION


@pytest.fixture
def exported(services, rc, fy, default_money, category):
    services.funding.create(
        rc.id,
        fy.id,
        "alice",
        name="Base",
        category_id=category.id,
        allocations=[AllocationInput(default_money.id, cap_amount=Decimal("500"))],
    )
    procurement = services.procurement.create(
        rc.id,
        fy.id,
        "alice",
        name="Tape library",
        purchase_requisition="PR-7",
        quoted_price=Decimal("100"),
        quoted_price_currency="EUR",
        quoted_price_exchange_rate=Decimal("1.5"),
    )
    quote = services.procurement.create_quote(
        rc.id, fy.id, procurement.id, "alice", vendor_name="Acme", amount_cap=Decimal("90")
    )
    services.procurement.upload_quote_file(
        rc.id,
        fy.id,
        procurement.id,
        quote.id,
        "alice",
        Upload("quote.pdf", "application/pdf", b"%PDF-quote", "signed"),
    )
    link = services.procurement.toggle_spending_link(rc.id, fy.id, procurement.id, "alice")
    services.spending.update(rc.id, fy.id, link.spending_item_id, "alice", category_id=category.id)

    invoiced = services.spending.create(
        rc.id,
        fy.id,
        "alice",
        name="Licences",
        category_id=category.id,
        allocations=[AllocationInput(default_money.id, om_amount=Decimal("40"))],
    )
    services.spending.create_invoice(
        rc.id,
        fy.id,
        invoiced.id,
        "alice",
        amount=Decimal("40"),
        date_received=date(2025, 6, 1),
    )
    return services.export_import.export(rc.id, fy.id, "alice")


@pytest.fixture
def target_fy(services, rc):
    return services.fiscal_years.create(rc.id, "alice", "FY 2026-2027")


class TestExport:
    def test_metadata(self, exported, rc, fy):
        metadata = exported["metadata"]
        assert metadata["export_version"] == EXPORT_VERSION
        assert metadata["rc_name"] == rc.name
        assert metadata["fiscal_year_name"] == fy.name
        assert metadata["exported_by"] == "alice"
        assert (
            metadata["funding_item_count"],
            metadata["spending_item_count"],
            metadata["procurement_item_count"],
        ) == (1, 2, 1)

    def test_document_is_json_serialisable(self, exported):
        assert json.loads(json.dumps(exported))["metadata"]["export_version"] == EXPORT_VERSION

    def test_items_carry_names_and_codes(self, exported):
        [funding] = exported["funding_items"]
        assert funding["category_name"] == "Compute"
        assert funding["money_allocations"][0]["money_code"] == "AB"
        assert Decimal(funding["money_allocations"][0]["cap_amount"]) == Decimal("500")

    def test_files_are_base64(self, exported):
        [procurement] = exported["procurement_items"]
        [quote_file] = procurement["quotes"][0]["files"]
        assert base64.b64decode(quote_file["base64_content"]) == b"%PDF-quote"
        assert quote_file["description"] == "signed"

    def test_spending_link_exported(self, exported):
        [procurement] = exported["procurement_items"]
        linked = next(s for s in exported["spending_items"] if s["name"] == "Tape library")
        assert linked["procurement_item_id"] == procurement["id"]

    def test_requires_read_access(self, services, rc, fy, outsider):
        with pytest.raises(AccessDeniedError):
            services.export_import.export(rc.id, fy.id, "carol")


class TestImport:
    def test_round_trip_into_new_fiscal_year(self, services, rc, exported, target_fy):
        result = services.export_import.import_(rc.id, target_fy.id, "alice", exported)
        assert result["funding_item_count"] == 1
        assert result["spending_item_count"] == 2
        assert result["procurement_item_count"] == 1
        assert result["spending_skipped_count"] == 0

        [procurement] = services.procurement.list_items(rc.id, target_fy.id, "alice")
        assert procurement.quoted_price_cad == Decimal("150.00")
        assert procurement.version == 1
        [quote] = services.procurement.list_quotes(rc.id, target_fy.id, procurement.id, "alice")
        [info] = services.procurement.list_quote_files(
            rc.id, target_fy.id, procurement.id, quote.id, "alice"
        )
        assert info.file_name == "quote.pdf"

        spending = {s.name: s for s in services.spending.list_items(rc.id, target_fy.id, "alice")}
        assert spending["Tape library"].procurement_item_id == procurement.id
        assert spending["Tape library"].category_name == "Compute"
        [invoice] = services.spending.list_invoices(
            rc.id, target_fy.id, spending["Licences"].id, "alice"
        )
        assert invoice.amount_cad == Decimal("40.00")

        [funding] = services.funding.list_items(rc.id, target_fy.id, "alice")
        target_money = services.monies.list_monies(rc.id, target_fy.id, "alice")[0]
        assert [a.money_id for a in funding.money_allocations] == [target_money.id]

    def test_duplicates_are_skipped(self, services, rc, fy, exported, captured_logs):
        result = services.export_import.import_(rc.id, fy.id, "alice", exported)
        assert result["funding_item_count"] == 0
        assert result["funding_skipped_count"] == 1
        assert result["procurement_skipped_count"] == 1
        assert any(r["message"] == "import_item_skipped" for r in captured_logs())

    def test_unknown_category_left_empty(self, services, rc, target_fy):
        document = {
            "metadata": {"export_version": "1.2.0"},
            "funding_items": [
                {
                    "name": "Grant",
                    "category_name": "Nope",
                    "currency": "CAD",
                    "money_allocations": [{"money_code": "AB", "cap_amount": "10"}],
                }
            ],
        }
        result = services.export_import.import_(rc.id, target_fy.id, "alice", document)
        assert result["funding_item_count"] == 1
        [funding] = services.funding.list_items(rc.id, target_fy.id, "alice")
        assert funding.category_id is None

    def test_bad_items_skipped_individually(self, services, rc, target_fy):
        document = {
            "metadata": {"export_version": EXPORT_VERSION},
            "procurement_items": [
                {"name": "", "purchase_requisition": "PR-1"},
                {"name": "Bad status", "tracking_status": "LOST"},
                {"name": "Good"},
            ],
        }
        result = services.export_import.import_(rc.id, target_fy.id, "alice", document)
        assert result["procurement_item_count"] == 1
        assert result["procurement_skipped_count"] == 2

    def test_failed_insert_skips_only_that_item(self, services, rc, target_fy):
        document = {
            "metadata": {"export_version": EXPORT_VERSION},
            "spending_items": [
                {"name": "Undated", "events": [{"event_type": "PENDING", "event_date": None}]},
                {
                    "name": "Dated",
                    "events": [{"event_type": "PENDING", "event_date": "2025-04-02"}],
                },
            ],
        }
        result = services.export_import.import_(rc.id, target_fy.id, "alice", document)
        assert (result["spending_item_count"], result["spending_skipped_count"]) == (1, 1)

        [item] = services.spending.list_items(rc.id, target_fy.id, "alice")
        assert item.name == "Dated"
        [event] = services.spending.list_events(rc.id, target_fy.id, item.id, "alice")
        assert event.event_date == date(2025, 4, 2)

    def test_funding_items_validated_like_created_ones(self, services, rc, target_fy):
        allocated = [{"money_code": "AB", "cap_amount": "10"}]
        document = {
            "metadata": {"export_version": EXPORT_VERSION},
            "funding_items": [
                {"name": "No rate", "currency": "USD", "money_allocations": allocated},
                {"name": "Nothing allocated", "money_allocations": [{"money_code": "AB"}]},
                {
                    "name": "Euro grant",
                    "source": None,
                    "currency": "EUR",
                    "exchange_rate": "1.5",
                    "money_allocations": allocated,
                },
            ],
        }
        result = services.export_import.import_(rc.id, target_fy.id, "alice", document)
        assert (result["funding_item_count"], result["funding_skipped_count"]) == (1, 2)

        [funding] = services.funding.list_items(rc.id, target_fy.id, "alice")
        assert funding.name == "Euro grant"
        assert (funding.currency, funding.exchange_rate) == ("EUR", Decimal("1.5"))
        assert funding.source is FundingSource.BUSINESS_PLAN

    @pytest.mark.parametrize(
        "document",
        [
            {},
            {"funding_items": []},
            {"metadata": {"export_version": "2.0.0"}},
        ],
    )
    def test_rejects_foreign_documents(self, services, rc, target_fy, document):
        with pytest.raises(ValidationError):
            services.export_import.import_(rc.id, target_fy.id, "alice", document)

    def test_requires_write_access(self, services, rc, target_fy, exported, colleague):
        services.permissions.grant_user_access(rc.id, "bob", "READ_ONLY", "alice")
        with pytest.raises(AccessDeniedError):
            services.export_import.import_(rc.id, target_fy.id, "bob", exported)
