from datetime import datetime, timedelta, timezone

import pytest

from vendorhub.src.db import Prescription, PrescriptionMedicine
from vendorhub.src.enums import PrescriptionStatus, ServiceType, VendorRole
from vendorhub.src.urls import (
    URL_PRESCRIPTION,
    URL_PRESCRIPTION_DISPENSE,
    URL_PRESCRIPTION_MEDICINE,
)

from conftest import fetch, persist

PRESCRIPTION = "/vendor" + URL_PRESCRIPTION
DISPENSE = "/vendor" + URL_PRESCRIPTION_DISPENSE
MEDICINE = "/vendor" + URL_PRESCRIPTION_MEDICINE


def prescriptionForm(**overrides):
    form = {
        "prescription_number": "RX-001",
        "patient_id": "PAT-1",
        "patient_name": "Ada Banda",
        "doctor_name": "Dr. Mwale",
        "prescribed_date": "2026-10-01T09:00:00Z",
        "expiry_date": "2099-10-01T09:00:00Z",
    }
    form.update(overrides)
    return form


def medicineForm(prescription_id, **overrides):
    form = {
        "prescription_id": prescription_id,
        "medicine_name": "Amoxicillin",
        "dosage": "500mg",
        "frequency": "3 times a day",
        "duration": "7 days",
        "quantity": 21,
    }
    form.update(overrides)
    return form


@pytest.fixture
def prescription(client, pharmacy_headers):
    response = client.post(PRESCRIPTION, headers=pharmacy_headers, data=prescriptionForm())
    assert response.status_code == 201, response.text
    return response.json()["prescription"]


def test_create_prescription(prescription):
    assert prescription["status"] == "pending"
    assert prescription["prescription_type"] == "physical"
    assert prescription["medicines"] == []
    assert prescription["dispensed_date"] is None


def test_duplicate_number(client, pharmacy_headers, prescription):
    response = client.post(PRESCRIPTION, headers=pharmacy_headers, data=prescriptionForm())
    assert response.status_code == 400
    assert response.json()["error"] == "The prescription_number already exists"


def test_same_number_in_another_pharmacy(
    client, prescription, make_business, make_vendor, vendor_headers
):
    other = make_vendor(make_business(ServiceType.PHARMACY), VendorRole.PHARMACIST)
    response = client.post(PRESCRIPTION, headers=vendor_headers(other), data=prescriptionForm())
    assert response.status_code == 201


def test_expiry_after_prescription(client, pharmacy_headers):
    response = client.post(
        PRESCRIPTION,
        headers=pharmacy_headers,
        data=prescriptionForm(expiry_date="2026-09-01T09:00:00Z"),
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid expiry_date is provided"


def test_medicines(client, pharmacy_headers, prescription):
    response = client.post(MEDICINE, headers=pharmacy_headers, data=medicineForm(prescription["id"]))
    assert response.status_code == 201
    client.post(
        MEDICINE,
        headers=pharmacy_headers,
        data=medicineForm(prescription["id"], medicine_name="Paracetamol", quantity=10),
    )
    response = client.get(PRESCRIPTION, headers=pharmacy_headers)
    [stored] = response.json()["prescriptions"]
    names = [m["medicine_name"] for m in stored["medicines"]]
    assert names == ["Amoxicillin", "Paracetamol"]

    response = client.request(
        "DELETE",
        MEDICINE,
        headers=pharmacy_headers,
        data={"prescription_id": prescription["id"], "id": stored["medicines"][0]["id"]},
    )
    assert response.status_code == 200
    assert [m["medicine_name"] for m in response.json()["prescription"]["medicines"]] == [
        "Paracetamol"
    ]
    assert len(fetch(PrescriptionMedicine)) == 1


def test_dispense(client, pharmacy_headers, prescription):
    client.post(MEDICINE, headers=pharmacy_headers, data=medicineForm(prescription["id"]))
    response = client.post(DISPENSE, headers=pharmacy_headers, data={"id": prescription["id"]})
    assert response.status_code == 200
    data = response.json()["prescription"]
    assert data["status"] == "dispensed"
    assert data["dispensed_date"] is not None

    # Dispensed prescriptions are final
    response = client.post(DISPENSE, headers=pharmacy_headers, data={"id": prescription["id"]})
    assert response.status_code == 400
    response = client.post(MEDICINE, headers=pharmacy_headers, data=medicineForm(prescription["id"]))
    assert response.status_code == 400
    response = client.patch(
        PRESCRIPTION,
        headers=pharmacy_headers,
        data={"id": prescription["id"], "status": "cancelled"},
    )
    assert response.status_code == 400


def test_expired_prescription_can_not_be_dispensed(client, pharmacy_headers, pharmacy_business):
    now = datetime.now(timezone.utc)
    stale = persist(
        Prescription(
            business_id=pharmacy_business.id,
            prescription_number="RX-OLD",
            patient_id="PAT-2",
            patient_name="Ben Phiri",
            doctor_name="Dr. Mwale",
            prescribed_date=now - timedelta(days=60),
            expiry_date=now - timedelta(days=30),
            status=PrescriptionStatus.PENDING,
        )
    )
    response = client.post(DISPENSE, headers=pharmacy_headers, data={"id": stale.id})
    assert response.status_code == 400
    assert response.json()["error"] == "The status cannot be set to the provided value"


def test_cancel(client, pharmacy_headers, prescription):
    response = client.patch(
        PRESCRIPTION,
        headers=pharmacy_headers,
        data={"id": prescription["id"], "status": "cancelled", "notes": "Patient left"},
    )
    assert response.status_code == 200
    data = response.json()["prescription"]
    assert data["status"] == "cancelled"
    assert data["notes"] == "Patient left"

    response = client.post(DISPENSE, headers=pharmacy_headers, data={"id": prescription["id"]})
    assert response.status_code == 400


def test_filters(client, pharmacy_headers, prescription):
    client.post(
        PRESCRIPTION,
        headers=pharmacy_headers,
        data=prescriptionForm(prescription_number="RX-002", patient_name="Cy Zulu"),
    )
    response = client.get(PRESCRIPTION, headers=pharmacy_headers, params={"search": "zulu"})
    assert [p["prescription_number"] for p in response.json()["prescriptions"]] == ["RX-002"]

    client.patch(
        PRESCRIPTION,
        headers=pharmacy_headers,
        data={"id": prescription["id"], "status": "cancelled"},
    )
    response = client.get(PRESCRIPTION, headers=pharmacy_headers, params={"status": "pending"})
    assert [p["prescription_number"] for p in response.json()["prescriptions"]] == ["RX-002"]


def test_delete(client, pharmacy_headers, prescription):
    client.post(MEDICINE, headers=pharmacy_headers, data=medicineForm(prescription["id"]))
    response = client.request(
        "DELETE", PRESCRIPTION, headers=pharmacy_headers, data={"id": prescription["id"]}
    )
    assert response.status_code == 200
    assert fetch(Prescription) == []
    assert fetch(PrescriptionMedicine) == []


def test_cashier_is_denied(client, pharmacy_business, make_vendor, vendor_headers):
    headers = vendor_headers(make_vendor(pharmacy_business, VendorRole.CASHIER))
    assert client.get(PRESCRIPTION, headers=headers).status_code == 403
