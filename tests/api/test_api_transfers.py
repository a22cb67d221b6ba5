"""
HTTP flows that move data between records: the procurement to spending
link, fiscal-year cloning and export / import.
"""

import pytest

from tests.conftest import auth


@pytest.fixture
def rc_id(client):
    return client.post(
        "/responsibility-centres", json={"name": "Research Computing"}, auth=auth()
    ).json()["id"]


@pytest.fixture
def fy_url(client, rc_id):
    fy = client.post(
        f"/responsibility-centres/{rc_id}/fiscal-years", json={"name": "FY 2025-2026"}, auth=auth()
    ).json()
    return f"/responsibility-centres/{rc_id}/fiscal-years/{fy['id']}"


@pytest.fixture
def procurement_id(client, fy_url):
    response = client.post(
        f"{fy_url}/procurement-items",
        json={
            "name": "Tape library",
            "purchase_requisition": "PR-7",
            "purchase_order": "PO-1",
            "final_price": "2000.00",
        },
        auth=auth(),
    )
    assert response.status_code == 201
    return response.json()["id"]


class TestSpendingLink:
    def test_link_then_unlink(self, client, fy_url, procurement_id):
        url = f"{fy_url}/procurement-items/{procurement_id}/toggle-spending-link"
        linked = client.post(url, auth=auth()).json()
        assert linked["linked"] is True
        assert linked["warning"] is None

        [spending] = client.get(f"{fy_url}/spending-items", auth=auth()).json()
        assert spending["id"] == linked["spending_item_id"]
        assert spending["reference_number"] == "PO-1"
        assert spending["status"] == "PLANNING"

        events_url = f"{fy_url}/spending-items/{spending['id']}/events"
        refused = client.post(events_url, json={"event_type": "PENDING"}, auth=auth())
        assert refused.status_code == 400

        unlinked = client.post(url, auth=auth()).json()
        assert unlinked["linked"] is False
        assert client.get(f"{fy_url}/spending-items", auth=auth()).json() == []

    def test_link_is_audited(self, client, rc_id, fy_url, procurement_id):
        client.post(
            f"{fy_url}/procurement-items/{procurement_id}/toggle-spending-link", auth=auth()
        )
        events = client.get(f"/responsibility-centres/{rc_id}/audit", auth=auth()).json()
        assert "TOGGLE_SPENDING_LINK" in {e["action"] for e in events}


class TestCloneFiscalYear:
    def test_clone_within_rc(self, client, rc_id, fy_url, procurement_id):
        response = client.post(f"{fy_url}/clone", json={"new_name": "FY 2026-2027"}, auth=auth())
        assert response.status_code == 201
        copy = response.json()
        assert copy["name"] == "FY 2026-2027"

        copy_url = f"/responsibility-centres/{rc_id}/fiscal-years/{copy['id']}"
        [item] = client.get(f"{copy_url}/procurement-items", auth=auth()).json()
        assert item["id"] != procurement_id
        assert item["purchase_requisition"] == "PR-7"

    def test_clone_into_other_rc(self, client, fy_url):
        other = client.post(
            "/responsibility-centres", json={"name": "Second RC"}, auth=auth()
        ).json()
        response = client.post(
            f"{fy_url}/clone",
            json={"new_name": "Imported", "target_rc_id": other["id"]},
            auth=auth(),
        )
        assert response.status_code == 201
        listed = client.get(
            f"/responsibility-centres/{other['id']}/fiscal-years", auth=auth()
        ).json()
        assert [y["name"] for y in listed] == ["Imported"]

    def test_duplicate_name(self, client, fy_url):
        response = client.post(f"{fy_url}/clone", json={"new_name": "FY 2025-2026"}, auth=auth())
        assert response.status_code == 409


class TestExportImport:
    def test_export_then_import(self, client, rc_id, fy_url, procurement_id):
        exported = client.get(f"{fy_url}/export", auth=auth())
        assert exported.status_code == 200
        document = exported.json()
        assert document["metadata"]["procurement_item_count"] == 1

        target = client.post(
            f"/responsibility-centres/{rc_id}/fiscal-years", json={"name": "Target"}, auth=auth()
        ).json()
        target_url = f"/responsibility-centres/{rc_id}/fiscal-years/{target['id']}"
        result = client.post(f"{target_url}/import", json=document, auth=auth())
        assert result.status_code == 200
        assert result.json()["procurement_item_count"] == 1

        [item] = client.get(f"{target_url}/procurement-items", auth=auth()).json()
        assert item["name"] == "Tape library"

    def test_import_rejects_foreign_document(self, client, fy_url):
        response = client.post(f"{fy_url}/import", json={"hello": "world"}, auth=auth())
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"
