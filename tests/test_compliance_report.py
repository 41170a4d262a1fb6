from datetime import datetime, timedelta, timezone

import pytest

from vendorhub.api.compliance_report import complianceRating
from vendorhub.src.db import ComplianceRecord
from vendorhub.src.enums import BusinessStatus, ComplianceStatus, ServiceType
from vendorhub.src.urls import URL_COMPLIANCE_REPORT, URL_COMPLIANCE_REPORT_EXPORT

from conftest import persist

REPORT = "/admin" + URL_COMPLIANCE_REPORT


def record(business, record_id, due_date, status=ComplianceStatus.PENDING, **kwargs):
    return ComplianceRecord(
        record_id=record_id,
        business_id=business.id,
        type=kwargs.pop("type", "inspection"),
        title=f"Record {record_id}",
        description="Scheduled check",
        due_date=due_date,
        status=status,
        priority="medium",
        responsible_person="Grace Zulu",
        **kwargs,
    )


@pytest.fixture
def pharmacies(pharmacy_business, make_business):
    now = datetime.now(timezone.utc)
    audited = datetime(2026, 3, 1, tzinfo=timezone.utc)
    nextDue = now + timedelta(days=3)
    persist(
        record(pharmacy_business, "CR1", now - timedelta(days=3)),
        record(pharmacy_business, "CR2", nextDue),
        record(pharmacy_business, "CR3", now + timedelta(days=9)),
        record(
            pharmacy_business,
            "CR4",
            now - timedelta(days=30),
            ComplianceStatus.COMPLETED,
            type="audit",
            completed_date=audited,
        ),
        record(pharmacy_business, "CR5", now, ComplianceStatus.CANCELLED),
    )
    make_business(ServiceType.PHARMACY, name="Zed Pharmacy", status=BusinessStatus.PENDING)
    make_business(ServiceType.BUS, name="Zed Buses")
    return audited, nextDue


def test_rating_thresholds():
    assert complianceRating(100) == "Excellent"
    assert complianceRating(85) == "Good"
    assert complianceRating(70) == "Fair"
    assert complianceRating(12) == "Poor"


def test_reports_and_metrics(client, admin_headers, pharmacies):
    audited, nextDue = pharmacies
    response = client.get(REPORT, headers=admin_headers)
    assert response.status_code == 200, response.text
    body = response.json()

    city, zed = body["reports"]
    assert city["business_name"] == "City Pharmacy"
    assert city["status"] == "approved"
    assert city["total_records"] == 5
    assert city["completed"] == 1
    assert city["score"] == 25
    assert city["rating"] == "Poor"
    assert city["violations"] == 1
    assert city["recommendations"] == 2
    assert datetime.fromisoformat(city["last_audit"]) == audited
    assert abs(datetime.fromisoformat(city["next_due"]) - nextDue) < timedelta(seconds=1)

    assert zed["status"] == "under_review"
    assert zed["score"] == 100
    assert zed["rating"] == "Excellent"
    assert zed["last_audit"] is None

    assert body["metrics"] == {
        "total": 2,
        "approved": 1,
        "under_review": 1,
        "rejected": 0,
        "average_score": 62.5,
        "violations": 1,
        "recommendations": 2,
    }


def test_status_filter_and_search(client, admin_headers, pharmacies):
    response = client.get(REPORT, headers=admin_headers, params={"status": "under_review"})
    assert [r["business_name"] for r in response.json()["reports"]] == ["Zed Pharmacy"]

    response = client.get(REPORT, headers=admin_headers, params={"search": "city"})
    assert [r["business_name"] for r in response.json()["reports"]] == ["City Pharmacy"]


def test_export(client, admin_headers, pharmacies):
    response = client.get("/admin" + URL_COMPLIANCE_REPORT_EXPORT, headers=admin_headers)
    assert response.status_code == 200
    lines = response.text.strip().split("\n")
    assert lines[0].startswith("Business ID,Business,Status,Score")
    assert len(lines) == 3


def test_requires_admin(client, pharmacy_headers):
    assert client.get(REPORT, headers=pharmacy_headers).status_code == 401
