from datetime import datetime, timedelta, timezone

import pytest

from vendorhub.src.db import ComplianceRecord
from vendorhub.src.enums import ComplianceStatus, VendorRole
from vendorhub.src.urls import URL_COMPLIANCE, URL_COMPLIANCE_EXPORT

from conftest import fetch, persist

COMPLIANCE = "/vendor" + URL_COMPLIANCE


def recordForm(**overrides):
    form = {
        "type": "license_renewal",
        "title": "Renew dispensing license",
        "description": "Annual renewal with the medicines authority",
        "due_date": "2030-01-31T00:00:00Z",
        "priority": "high",
        "responsible_person": "Grace Zulu",
    }
    form.update(overrides)
    return form


def record(business, record_id, due_date, **kwargs):
    kwargs.setdefault("status", ComplianceStatus.PENDING)
    return ComplianceRecord(
        record_id=record_id,
        business_id=business.id,
        type=kwargs.pop("type", "inspection"),
        title=kwargs.pop("title", f"Record {record_id}"),
        description="Scheduled check",
        due_date=due_date,
        priority=kwargs.pop("priority", "medium"),
        responsible_person="Grace Zulu",
        **kwargs,
    )


@pytest.fixture
def records(pharmacy_business):
    now = datetime.now(timezone.utc)
    return persist(
        record(pharmacy_business, "CR1", now - timedelta(days=3)),
        record(pharmacy_business, "CR2", now + timedelta(days=3), title="Fire inspection"),
        record(
            pharmacy_business,
            "CR3",
            now - timedelta(days=10),
            status=ComplianceStatus.COMPLETED,
            type="audit",
        ),
    )


def test_create_record(client, pharmacy_headers):
    response = client.post(
        COMPLIANCE,
        headers=pharmacy_headers,
        data=recordForm(documents=["license.pdf", "receipt.pdf"]),
    )
    assert response.status_code == 201, response.text
    data = response.json()["record"]
    assert data["record_id"].startswith("CR")
    assert len(data["record_id"]) == 14
    assert data["status"] == "pending"
    assert data["documents"] == ["license.pdf", "receipt.pdf"]
    assert data["completed_date"] is None


def test_past_due_records_are_reported_overdue(client, pharmacy_headers):
    response = client.post(
        COMPLIANCE, headers=pharmacy_headers, data=recordForm(due_date="2020-01-01T00:00:00Z")
    )
    assert response.json()["record"]["status"] == "overdue"
    [stored] = fetch(ComplianceRecord)
    assert stored.status == ComplianceStatus.PENDING


def test_bus_business_is_denied(client, bus_headers):
    response = client.post(COMPLIANCE, headers=bus_headers, data=recordForm())
    assert response.status_code == 403
    assert response.json()["error"] == "Access denied. Pharmacy staff only."


def test_cashier_is_denied(client, pharmacy_business, make_vendor, vendor_headers):
    headers = vendor_headers(make_vendor(pharmacy_business, VendorRole.CASHIER))
    assert client.get(COMPLIANCE, headers=headers).status_code == 403


def test_completion_stamps_date(client, pharmacy_headers, records):
    response = client.patch(
        COMPLIANCE, headers=pharmacy_headers, data={"record_id": "CR1", "status": "completed"}
    )
    assert response.status_code == 200
    data = response.json()["record"]
    assert data["status"] == "completed"
    assert data["completed_date"] is not None

    response = client.patch(
        COMPLIANCE, headers=pharmacy_headers, data={"record_id": "CR1", "status": "pending"}
    )
    data = response.json()["record"]
    assert data["completed_date"] is None
    assert data["status"] == "overdue"


def test_update_unknown_record(client, pharmacy_headers):
    response = client.patch(
        COMPLIANCE, headers=pharmacy_headers, data={"record_id": "CR0", "notes": "x"}
    )
    assert response.status_code == 404


def test_status_filters(client, pharmacy_headers, records):
    response = client.get(COMPLIANCE, headers=pharmacy_headers, params={"status": "overdue"})
    assert [r["record_id"] for r in response.json()["records"]] == ["CR1"]

    response = client.get(COMPLIANCE, headers=pharmacy_headers, params={"status": "pending"})
    assert [r["record_id"] for r in response.json()["records"]] == ["CR2"]

    response = client.get(COMPLIANCE, headers=pharmacy_headers, params={"type": "audit"})
    assert [r["record_id"] for r in response.json()["records"]] == ["CR3"]


def test_listing_order_and_search(client, pharmacy_headers, records):
    body = client.get(COMPLIANCE, headers=pharmacy_headers).json()
    assert [r["record_id"] for r in body["records"]] == ["CR3", "CR1", "CR2"]
    assert body["pagination"]["limit"] == 50

    response = client.get(COMPLIANCE, headers=pharmacy_headers, params={"search": "fire"})
    assert [r["record_id"] for r in response.json()["records"]] == ["CR2"]


def test_export(client, pharmacy_headers, records):
    response = client.get("/vendor" + URL_COMPLIANCE_EXPORT, headers=pharmacy_headers)
    assert response.status_code == 200
    lines = response.text.strip().split("\n")
    assert lines[0].startswith("Record ID,Type,Title")
    assert len(lines) == 4
    assert ",overdue," in lines[2]


def test_delete_record(client, pharmacy_headers, records):
    response = client.request(
        "DELETE", COMPLIANCE, headers=pharmacy_headers, data={"record_id": "CR2"}
    )
    assert response.status_code == 200
    assert {r.record_id for r in fetch(ComplianceRecord)} == {"CR1", "CR3"}
