from datetime import datetime, timedelta, timezone

from vendorhub.src.db import Subscription
from vendorhub.src.enums import (
    BillingCycle,
    ServiceType,
    SubscriptionPaymentStatus,
    SubscriptionStatus,
    VendorRole,
)
from vendorhub.src.urls import URL_BUS, URL_ROUTE, URL_ROUTE_FARE

from conftest import persist

BUS = "/vendor" + URL_BUS
ROUTE = "/vendor" + URL_ROUTE
FARE = "/vendor" + URL_ROUTE_FARE


def busForm(**overrides):
    form = {"name": "Express 1", "number_plate": "BAZ 1234", "seats": 60, "bus_type": "Coach"}
    form.update(overrides)
    return form


def createRoute(client, headers, stops=("Lusaka", "Chibombo", "Kabwe")):
    response = client.post(
        ROUTE, headers=headers, data={"name": "Lusaka - Kabwe", "stops": list(stops)}
    )
    assert response.status_code == 201, response.text
    return response.json()["route"]


def test_bus_crud(client, bus_headers):
    response = client.post(BUS, headers=bus_headers, data=busForm(has_ac=True))
    assert response.status_code == 201
    bus = response.json()["bus"]
    assert bus["has_ac"] is True
    assert bus["status"] == "active"

    response = client.patch(BUS, headers=bus_headers, data={"id": bus["id"], "seats": 45})
    assert response.json()["bus"]["seats"] == 45

    response = client.get(BUS, headers=bus_headers, params={"seats_le": 50})
    assert [b["id"] for b in response.json()["buses"]] == [bus["id"]]
    response = client.get(BUS, headers=bus_headers, params={"seats_ge": 50})
    assert response.json()["buses"] == []

    response = client.request("DELETE", BUS, headers=bus_headers, data={"id": bus["id"]})
    assert response.status_code == 200
    assert client.get(BUS, headers=bus_headers).json()["pagination"]["total"] == 0


def test_duplicate_number_plate(client, bus_headers):
    client.post(BUS, headers=bus_headers, data=busForm())
    response = client.post(BUS, headers=bus_headers, data=busForm(name="Express 2"))
    assert response.status_code == 400
    assert response.json()["error"] == "The number_plate already exists"


def test_fleet_is_readable_by_drivers(client, bus_business, make_vendor, vendor_headers):
    headers = vendor_headers(make_vendor(bus_business, VendorRole.DRIVER))
    assert client.get(BUS, headers=headers).status_code == 200
    assert client.post(BUS, headers=headers, data=busForm()).status_code == 403


def test_plan_limits_the_fleet(client, bus_headers, bus_business, make_plan):
    plan = make_plan(ServiceType.BUS, max_users=1)
    now = datetime.now(timezone.utc)
    persist(
        Subscription(
            subscription_id="SUB-1",
            business_id=bus_business.id,
            plan_id=plan.id,
            service_type=ServiceType.BUS,
            status=SubscriptionStatus.ACTIVE,
            billing_cycle=BillingCycle.MONTHLY,
            payment_status=SubscriptionPaymentStatus.PAID,
            start_date=now,
            end_date=now + timedelta(days=30),
        )
    )
    assert client.post(BUS, headers=bus_headers, data=busForm()).status_code == 201
    response = client.post(BUS, headers=bus_headers, data=busForm(number_plate="BAZ 2"))
    assert response.status_code == 403
    assert response.json()["error"] == "Maximum limit for buses is exceeded"


def test_route_stops(client, bus_headers):
    route = createRoute(client, bus_headers)
    assert [s["stop_name"] for s in route["stops"]] == ["Lusaka", "Chibombo", "Kabwe"]
    assert [s["order"] for s in route["stops"]] == [0, 1, 2]

    response = client.post(
        ROUTE, headers=bus_headers, data={"name": "Short", "stops": ["Lusaka"]}
    )
    assert response.status_code == 400


def test_route_update_keeps_stop_ids(client, bus_headers):
    route = createRoute(client, bus_headers)
    lusaka = route["stops"][0]["stop_id"]

    response = client.patch(
        ROUTE,
        headers=bus_headers,
        data={"id": route["id"], "name": "Lusaka - Kapiri", "stops": ["Lusaka", "Kapiri"]},
    )
    assert response.status_code == 200
    updated = response.json()["route"]
    assert updated["name"] == "Lusaka - Kapiri"
    assert updated["stops"][0]["stop_id"] == lusaka


def test_fare_segments(client, bus_headers):
    route = createRoute(client, bus_headers)
    form = {"route_id": route["id"], "from_stop": "Lusaka", "to_stop": "Kabwe", "amount": 120}
    assert client.post(FARE, headers=bus_headers, data=form).status_code == 201

    form["amount"] = 130
    response = client.post(FARE, headers=bus_headers, data=form)
    segments = response.json()["route"]["fare_segments"]
    assert len(segments) == 1
    assert segments[0]["amount"] == 130

    form["to_stop"] = "Ndola"
    assert client.post(FARE, headers=bus_headers, data=form).status_code == 400
    form["to_stop"] = "Lusaka"
    assert client.post(FARE, headers=bus_headers, data=form).status_code == 400

    response = client.request(
        "DELETE",
        FARE,
        headers=bus_headers,
        data={"route_id": route["id"], "segment_id": segments[0]["segment_id"]},
    )
    assert response.json()["route"]["fare_segments"] == []

    response = client.request(
        "DELETE",
        FARE,
        headers=bus_headers,
        data={"route_id": route["id"], "segment_id": segments[0]["segment_id"]},
    )
    assert response.status_code == 404


def test_removed_stop_drops_its_fares(client, bus_headers):
    route = createRoute(client, bus_headers)
    client.post(
        FARE,
        headers=bus_headers,
        data={"route_id": route["id"], "from_stop": "Chibombo", "to_stop": "Kabwe", "amount": 40},
    )
    response = client.patch(
        ROUTE,
        headers=bus_headers,
        data={"id": route["id"], "name": route["name"], "stops": ["Lusaka", "Kabwe"]},
    )
    assert response.json()["route"]["fare_segments"] == []
