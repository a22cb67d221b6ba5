"""
End-to-end HTTP flows: RC and fiscal-year setup, funding with optimistic
locking, the inactive fiscal-year write guard, invoice file uploads and
the audit trail written around mutations.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

import myrc_api.app as app_module
from tests.conftest import auth


@pytest.fixture
def rc_id(client):
    response = client.post(
        "/responsibility-centres",
        json={"name": "Research Computing", "description": "Cluster budget"},
        auth=auth(),
    )
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture
def fy_url(client, rc_id):
    response = client.post(
        f"/responsibility-centres/{rc_id}/fiscal-years", json={"name": "FY 2025-2026"}, auth=auth()
    )
    assert response.status_code == 201
    return f"/responsibility-centres/{rc_id}/fiscal-years/{response.json()['id']}"


@pytest.fixture
def money_id(client, fy_url):
    [money] = client.get(f"{fy_url}/monies", auth=auth()).json()
    return money["id"]


def funding_body(money_id, name="Base allocation", cap="1000.00"):
    return {
        "name": name,
        "source": "Business Plan",
        "money_allocations": [{"money_id": money_id, "cap_amount": cap, "om_amount": "0"}],
    }


class TestResponsibilityCentres:
    def test_create_and_list(self, client, rc_id):
        listed = client.get("/responsibility-centres", auth=auth()).json()
        assert [(r["name"], r["access_level"]) for r in listed] == [("Research Computing", "OWNER")]

    def test_duplicate_name(self, client, rc_id):
        response = client.post(
            "/responsibility-centres", json={"name": "Research Computing"}, auth=auth()
        )
        assert response.status_code == 409
        assert response.json()["error"] == "DUPLICATE_NAME"

    def test_outsider_denied(self, client, rc_id):
        response = client.get(f"/responsibility-centres/{rc_id}", auth=auth("carol"))
        assert response.status_code == 403
        assert response.json()["error"] == "ACCESS_DENIED"

    def test_grant_then_read(self, client, rc_id):
        response = client.post(
            f"/rc-permissions/rc/{rc_id}/user",
            json={"principal_identifier": "bob", "access_level": "READ_ONLY"},
            auth=auth(),
        )
        assert response.status_code == 201
        access = client.get(f"/responsibility-centres/{rc_id}/access", auth=auth("bob")).json()
        assert access["access_level"] == "READ_ONLY"
        assert access["can_edit"] is False

    def test_unknown_rc(self, client, api_users):
        response = client.get(
            "/responsibility-centres/00000000-0000-0000-0000-000000000000", auth=auth()
        )
        assert response.status_code == 404


class TestFiscalYearSetup:
    def test_defaults_seeded(self, client, fy_url):
        monies = client.get(f"{fy_url}/monies", auth=auth()).json()
        assert [(m["code"], m["is_default"]) for m in monies] == [("AB", True)]
        categories = client.get(f"{fy_url}/categories", auth=auth()).json()
        assert "Compute" in {c["name"] for c in categories}

    def test_cannot_delete_default_money(self, client, fy_url, money_id):
        response = client.delete(f"{fy_url}/monies/{money_id}", auth=auth())
        assert response.status_code == 400
        assert response.json()["error"] == "DEFAULT_ENTITY_PROTECTED"


class TestFunding:
    def test_create_update_and_stale_version(self, client, fy_url, money_id):
        created = client.post(f"{fy_url}/funding-items", json=funding_body(money_id), auth=auth())
        assert created.status_code == 201
        item = created.json()
        assert item["source"] == "BUSINESS_PLAN"
        assert item["version"] == 1

        url = f"{fy_url}/funding-items/{item['id']}"
        updated = client.put(url, json={"comments": "Confirmed", "version": 1}, auth=auth())
        assert updated.status_code == 200
        assert updated.json()["version"] == 2

        stale = client.put(url, json={"comments": "Late", "version": 1}, auth=auth())
        assert stale.status_code == 409
        assert stale.json()["error"] == "OPTIMISTIC_LOCK_CONFLICT"
        assert client.get(url, auth=auth()).json()["comments"] == "Confirmed"

    def test_body_validation(self, client, fy_url):
        response = client.post(f"{fy_url}/funding-items", json={"source": "x"}, auth=auth())
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"
        assert "name" in response.json()["message"]

    def test_business_validation(self, client, fy_url, money_id):
        response = client.post(
            f"{fy_url}/funding-items", json=funding_body(money_id, cap="0"), auth=auth()
        )
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_read_only_user_cannot_write(self, client, rc_id, fy_url, money_id):
        client.post(
            f"/rc-permissions/rc/{rc_id}/user",
            json={"principal_identifier": "bob", "access_level": "READ_ONLY"},
            auth=auth(),
        )
        assert client.get(f"{fy_url}/funding-items", auth=auth("bob")).status_code == 200
        response = client.post(
            f"{fy_url}/funding-items", json=funding_body(money_id), auth=auth("bob")
        )
        assert response.status_code == 403


class TestInactiveFiscalYearGuard:
    def test_writes_blocked_until_reactivated(self, client, fy_url, money_id):
        toggled = client.patch(f"{fy_url}/toggle-active", auth=auth())
        assert toggled.status_code == 200
        assert toggled.json()["active"] is False

        blocked = client.post(f"{fy_url}/funding-items", json=funding_body(money_id), auth=auth())
        assert blocked.status_code == 403
        assert blocked.json()["error"] == "FISCAL_YEAR_INACTIVE"
        assert client.get(f"{fy_url}/funding-items", auth=auth()).status_code == 200

        assert client.patch(f"{fy_url}/toggle-active", auth=auth()).json()["active"] is True
        created = client.post(f"{fy_url}/funding-items", json=funding_body(money_id), auth=auth())
        assert created.status_code == 201

    def test_unknown_fiscal_year_passes_to_route(self, client, rc_id, money_id):
        url = f"/responsibility-centres/{rc_id}/fiscal-years/00000000-0000-0000-0000-000000000000"
        response = client.post(f"{url}/funding-items", json=funding_body(money_id), auth=auth())
        assert response.status_code == 404

    def test_lookup_runs_off_the_event_loop(self, client, fy_url, money_id, monkeypatch):
        lookup = app_module.inactive_fiscal_year
        threads = []

        def _recording(*args):
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                threads.append("worker")
            else:
                threads.append("event-loop")
            return lookup(*args)

        monkeypatch.setattr(app_module, "inactive_fiscal_year", _recording)
        client.get(f"{fy_url}/funding-items", auth=auth())
        client.post(f"{fy_url}/funding-items", json=funding_body(money_id), auth=auth())
        assert threads == ["worker"]


class TestInvoiceFiles:
    @pytest.fixture
    def invoice_url(self, client, fy_url, money_id):
        categories = client.get(f"{fy_url}/categories", auth=auth()).json()
        item = client.post(
            f"{fy_url}/spending-items",
            json={
                "name": "GPU nodes",
                "category_id": categories[0]["id"],
                "money_allocations": [{"money_id": money_id, "cap_amount": "5000"}],
            },
            auth=auth(),
        ).json()
        invoice = client.post(
            f"{fy_url}/spending-items/{item['id']}/invoices",
            json={"amount": "100.00", "currency": "USD", "exchange_rate": "1.3655"},
            auth=auth(),
        )
        assert invoice.status_code == 201
        assert float(invoice.json()["amount_cad"]) == 136.55
        return f"{fy_url}/spending-items/{item['id']}/invoices/{invoice.json()['id']}"

    def test_upload_and_download(self, client, invoice_url):
        uploaded = client.post(
            f"{invoice_url}/files",
            files={"file": ("scan one.pdf", b"%PDF-1.4 body", "application/pdf")},
            data={"description": "Signed"},
            auth=auth(),
        )
        assert uploaded.status_code == 201
        info = uploaded.json()
        assert info["file_size"] == len(b"%PDF-1.4 body")
        assert "content" not in info

        download = client.get(f"{invoice_url}/files/{info['id']}/download", auth=auth())
        assert download.content == b"%PDF-1.4 body"
        assert download.headers["content-type"] == "application/pdf"
        assert "attachment" in download.headers["content-disposition"]
        assert "scan%20one.pdf" in download.headers["content-disposition"]

    def test_rejected_type(self, client, invoice_url):
        response = client.post(
            f"{invoice_url}/files",
            files={"file": ("run.exe", b"MZ", "application/x-msdownload")},
            auth=auth(),
        )
        assert response.status_code == 400
        assert response.json()["error"] == "ATTACHMENT_REJECTED"


class TestAuditTrail:
    def test_success_and_failure_recorded(self, client, rc_id, fy_url, money_id):
        client.post(f"{fy_url}/funding-items", json=funding_body(money_id), auth=auth())
        client.post(f"{fy_url}/funding-items", json=funding_body(money_id), auth=auth())

        events = client.get(f"/responsibility-centres/{rc_id}/audit", auth=auth()).json()
        funding = [e for e in events if e["entity_type"] == "FUNDING_ITEM"]
        assert sorted(e["outcome"] for e in funding) == ["FAILURE", "SUCCESS"]

        failed = next(e for e in funding if e["outcome"] == "FAILURE")
        assert failed["http_method"] == "POST"
        assert failed["error_message"]

        succeeded = next(e for e in funding if e["outcome"] == "SUCCESS")
        assert succeeded["entity_name"] == "Base allocation"
        assert succeeded["fiscal_year_name"] == "FY 2025-2026"

    def test_failed_commit_marks_audit_failed(self, client, engine, rc_id, fy_url, money_id):
        class _CommitFails(Session):
            def commit(self):
                raise OperationalError("COMMIT", {}, RuntimeError("disk I/O error"))

        app = client.app
        working = app.state.session_factory
        app.state.session_factory = sessionmaker(
            bind=engine, class_=_CommitFails, expire_on_commit=False
        )
        try:
            TestClient(app, raise_server_exceptions=False).post(
                f"{fy_url}/funding-items", json=funding_body(money_id), auth=auth()
            )
        finally:
            app.state.session_factory = working

        events = client.get(f"/responsibility-centres/{rc_id}/audit", auth=auth()).json()
        [funding] = [e for e in events if e["entity_type"] == "FUNDING_ITEM"]
        assert funding["outcome"] == "FAILURE"
        assert "disk I/O error" in funding["error_message"]
        assert client.get(f"{fy_url}/funding-items", auth=auth()).json() == []

    def test_audit_is_owner_only(self, client, rc_id):
        client.post(
            f"/rc-permissions/rc/{rc_id}/user",
            json={"principal_identifier": "bob", "access_level": "READ_WRITE"},
            auth=auth(),
        )
        response = client.get(f"/responsibility-centres/{rc_id}/audit", auth=auth("bob"))
        assert response.status_code == 403
