import pytest

from vendorhub.src.enums import VendorRole
from vendorhub.src.urls import URL_BUS_PAYMENT, URL_BUS_PAYMENT_EXPORT, URL_DISPATCH

PAYMENT = "/vendor" + URL_BUS_PAYMENT
DISPATCH = "/vendor" + URL_DISPATCH


def paymentForm(**overrides):
    form = {
        "customer_id": "CUST-1",
        "customer_name": "Ada Banda",
        "amount": 150,
        "payment_method": "mobile_money",
        "trip_id": "TRIP-1",
        "trip_name": "Morning run",
        "route_name": "Lusaka - Kabwe",
        "bus_id": 1,
        "bus_name": "Express 1",
        "departure_date": "2026-10-20T08:00:00Z",
    }
    form.update(overrides)
    return form


@pytest.fixture
def payments(client, bus_headers):
    client.post(PAYMENT, headers=bus_headers, data=paymentForm())
    client.post(
        PAYMENT,
        headers=bus_headers,
        data=paymentForm(customer_name="Ben Phiri", amount=80, payment_method="card"),
    )
    client.post(
        PAYMENT,
        headers=bus_headers,
        data=paymentForm(customer_name="Cy Mwale", amount=60, status="failed"),
    )
    client.post(
        DISPATCH,
        headers=bus_headers,
        data={
            "trip_id": "TRIP-2",
            "trip_name": "Parcel run",
            "route_name": "Lusaka - Kabwe",
            "bus_id": 1,
            "bus_name": "Express 1",
            "departure_date": "2026-10-20T10:00:00Z",
            "billed_price": 40,
        },
    )


def test_create_payment(client, bus_headers):
    response = client.post(
        PAYMENT,
        headers=bus_headers,
        data=paymentForm(customer_email="ada@example.com", source="ticket"),
    )
    assert response.status_code == 201
    payment = response.json()["payment"]
    assert payment["payment_id"].startswith("PAY-")
    assert payment["status"] == "completed"
    assert payment["source"] == "ticket"
    assert payment["customer_email"] == "ada@example.com"


def test_dispatch_source_is_rejected(client, bus_headers):
    response = client.post(PAYMENT, headers=bus_headers, data=paymentForm(source="dispatch"))
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid source is provided"


def test_non_positive_amount_is_rejected(client, bus_headers):
    response = client.post(PAYMENT, headers=bus_headers, data=paymentForm(amount=0))
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid value for amount"


def test_drivers_can_not_see_payments(client, bus_business, make_vendor, vendor_headers):
    headers = vendor_headers(make_vendor(bus_business, VendorRole.DRIVER))
    assert client.get(PAYMENT, headers=headers).status_code == 403


def test_unified_rows_and_stats(client, bus_headers, payments):
    response = client.get(PAYMENT, headers=bus_headers)
    assert response.status_code == 200
    body = response.json()
    sources = sorted(row["source"] for row in body["payments"])
    assert sources == ["booking", "booking", "booking", "dispatch"]

    dispatchRow = next(r for r in body["payments"] if r["source"] == "dispatch")
    assert dispatchRow["status"] == "pending"
    assert dispatchRow["payment_method"] == "cash"
    assert dispatchRow["amount"] == 40

    assert body["stats"] == {
        "total_revenue": 230,
        "total_payments": 4,
        "completed": 2,
        "pending": 1,
        "failed": 1,
    }
    assert body["pagination"]["total"] == 4


def test_filters(client, bus_headers, payments):
    response = client.get(PAYMENT, headers=bus_headers, params={"payment_method": "card"})
    assert [r["customer_name"] for r in response.json()["payments"]] == ["Ben Phiri"]

    response = client.get(PAYMENT, headers=bus_headers, params={"status": "failed"})
    assert [r["customer_name"] for r in response.json()["payments"]] == ["Cy Mwale"]

    response = client.get(PAYMENT, headers=bus_headers, params={"search": "parcel"})
    assert [r["source"] for r in response.json()["payments"]] == ["dispatch"]


def test_stats_cover_every_page(client, bus_headers, payments):
    response = client.get(PAYMENT, headers=bus_headers, params={"limit": 1})
    body = response.json()
    assert len(body["payments"]) == 1
    assert body["stats"]["total_payments"] == 4
    assert body["pagination"]["pages"] == 4


def test_export(client, bus_headers, payments):
    response = client.get("/vendor" + URL_BUS_PAYMENT_EXPORT, headers=bus_headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    lines = response.text.strip().split("\n")
    assert lines[0].startswith("Payment ID,Source,Customer")
    assert len(lines) == 5
