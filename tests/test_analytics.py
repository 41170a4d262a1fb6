from datetime import date, datetime, timezone

import pytest

from vendorhub.api.analytics import QueryParams, analyticsWindow
from vendorhub.src.db import BusPayment, Dispatch
from vendorhub.src.enums import DispatchStatus, PaymentStatus, VendorRole
from vendorhub.src.exceptions import InvalidValue
from vendorhub.src.urls import URL_BUS_ANALYTICS

from conftest import persist

ANALYTICS = "/vendor" + URL_BUS_ANALYTICS


def at(day: int, hour: int = 12) -> datetime:
    return datetime(2026, 1, day, hour, tzinfo=timezone.utc)


def payment(business, day, amount, **kwargs):
    kwargs.setdefault("route_name", "Lusaka - Kabwe")
    kwargs.setdefault("bus_name", "Express 1")
    return BusPayment(
        payment_id=f"PAY-{day}-{amount}-{kwargs.get('source', 'booking')}",
        business_id=business.id,
        customer_id="CUST-1",
        customer_name="Ada Banda",
        amount=amount,
        payment_method=kwargs.pop("payment_method", "mobile_money"),
        trip_id="TRIP-1",
        trip_name="Morning run",
        departure_date=at(day),
        created_on=at(day),
        **kwargs,
    )


def dispatch(business, day, price, status):
    return Dispatch(
        dispatch_id=f"DISP-{day}-{price}",
        business_id=business.id,
        trip_id="TRIP-2",
        trip_name="Parcel run",
        route_name="Lusaka - Ndola",
        bus_name="Express 2",
        departure_date=at(day),
        billed_price=price,
        status=status,
        total_passengers=4,
        created_on=at(day),
    )


@pytest.fixture
def records(bus_business):
    persist(
        payment(bus_business, 10, 100),
        payment(bus_business, 10, 50, source="ticket", payment_method="cash"),
        payment(bus_business, 11, 70, status=PaymentStatus.FAILED),
        dispatch(bus_business, 11, 40, DispatchStatus.ARRIVED),
        dispatch(bus_business, 11, 30, DispatchStatus.CANCELLED),
        # Previous window
        payment(bus_business, 8, 95),
    )


def test_window_from_period():
    qParam = QueryParams(start_date=None, end_date=None, period=7)
    start, end = analyticsWindow(qParam, today=date(2026, 1, 10))
    assert start == at(4, 0)
    assert end == at(11, 0)


def test_window_rejects_reversed_dates():
    qParam = QueryParams(start_date=date(2026, 1, 10), end_date=date(2026, 1, 9), period=30)
    with pytest.raises(InvalidValue):
        analyticsWindow(qParam)


def test_reversed_dates_are_bad_requests(client, bus_headers):
    response = client.get(
        ANALYTICS,
        headers=bus_headers,
        params={"start_date": "2026-01-10", "end_date": "2026-01-09"},
    )
    assert response.status_code == 400


def test_summary(client, bus_headers, records):
    response = client.get(
        ANALYTICS,
        headers=bus_headers,
        params={"start_date": "2026-01-10", "end_date": "2026-01-11"},
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["period"]["days"] == 2
    assert body["summary"] == {
        "total_revenue": 190,
        "booking_revenue": 100,
        "ticket_revenue": 50,
        "dispatch_revenue": 40,
        "total_passengers": 11,
        "total_bookings": 2,
        "total_tickets": 1,
        "total_dispatches": 2,
        "arrived_dispatches": 1,
        "cancelled_dispatches": 1,
    }
    assert body["revenue_trend"] == [
        {"date": "2026-01-10", "revenue": 150},
        {"date": "2026-01-11", "revenue": 40},
    ]
    assert body["payment_methods"]["cash"] == 90
    assert body["payment_methods"]["mobile_money"] == 100
    assert body["payment_methods"]["card"] == 0


def test_top_routes_and_buses(client, bus_headers, records):
    response = client.get(
        ANALYTICS,
        headers=bus_headers,
        params={"start_date": "2026-01-10", "end_date": "2026-01-11"},
    )
    body = response.json()
    assert [r["name"] for r in body["top_routes"]] == ["Lusaka - Kabwe", "Lusaka - Ndola"]
    assert body["top_routes"][0] == {
        "name": "Lusaka - Kabwe",
        "trips": 0,
        "passengers": 3,
        "revenue": 150,
    }
    assert body["top_buses"][1] == {
        "name": "Express 2",
        "trips": 2,
        "passengers": 8,
        "revenue": 40,
    }
    assert sum(r["passengers"] for r in body["top_routes"]) == body["summary"]["total_passengers"]


def test_growth(client, bus_headers, records):
    response = client.get(
        ANALYTICS,
        headers=bus_headers,
        params={"start_date": "2026-01-10", "end_date": "2026-01-11"},
    )
    growth = response.json()["growth"]
    assert growth["previous_revenue"] == 95
    assert growth["previous_passengers"] == 1
    assert growth["revenue"] == 100.0
    assert growth["passengers"] == 1000.0


def test_growth_without_history(client, bus_headers, records):
    response = client.get(
        ANALYTICS,
        headers=bus_headers,
        params={"start_date": "2026-01-11", "end_date": "2026-01-11"},
    )
    growth = response.json()["growth"]
    assert growth["previous_revenue"] == 150
    assert response.json()["summary"]["total_revenue"] == 40


def test_analytics_are_for_managers(client, bus_business, make_vendor, vendor_headers):
    headers = vendor_headers(make_vendor(bus_business, VendorRole.TICKET_SELLER))
    assert client.get(ANALYTICS, headers=headers).status_code == 403


def test_growth_counts_dispatch_passengers(client, bus_headers, bus_business):
    persist(
        dispatch(bus_business, 8, 40, DispatchStatus.ARRIVED),
        payment(bus_business, 10, 100),
    )
    response = client.get(
        ANALYTICS,
        headers=bus_headers,
        params={"start_date": "2026-01-10", "end_date": "2026-01-11"},
    )
    growth = response.json()["growth"]
    assert growth["previous_passengers"] == 4
    assert growth["passengers"] == -75.0
