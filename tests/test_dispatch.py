import pytest

from vendorhub.src.db import Bus, Dispatch
from vendorhub.src.enums import VendorRole
from vendorhub.src.urls import URL_DISPATCH, URL_DISPATCH_EXPORT, URL_DISPATCH_PASSENGER

from conftest import fetch, persist

DISPATCH = "/vendor" + URL_DISPATCH
PASSENGER = "/vendor" + URL_DISPATCH_PASSENGER


def dispatchForm(**overrides):
    form = {
        "trip_id": "TRIP-1",
        "trip_name": "Morning run",
        "route_name": "Lusaka - Kabwe",
        "bus_id": 1,
        "bus_name": "Express 1",
        "departure_date": "2026-10-20T08:00:00Z",
        "billed_price": 150,
    }
    form.update(overrides)
    return form


@pytest.fixture
def dispatch(client, bus_headers):
    response = client.post(DISPATCH, headers=bus_headers, data=dispatchForm())
    assert response.status_code == 201, response.text
    return response.json()["dispatch"]


def test_create_dispatch(client, bus_headers, bus_business, bus_manager):
    bus = persist(
        Bus(
            business_id=bus_business.id,
            name="Express 1",
            number_plate="BAZ 1234",
            seats=60,
            bus_type="Coach",
        )
    )
    response = client.post(
        DISPATCH, headers=bus_headers, data=dispatchForm(bus_id=bus.id)
    )
    assert response.status_code == 201
    dispatch = response.json()["dispatch"]
    assert dispatch["dispatch_id"].startswith("DISP-")
    assert dispatch["status"] == "scheduled"
    assert dispatch["bus_number"] == "BAZ 1234"
    assert dispatch["dispatched_by"] == bus_manager.id
    assert dispatch["total_passengers"] == 0
    assert dispatch["passengers"] == []


def test_create_dispatch_missing_fields(client, bus_headers):
    form = dispatchForm()
    del form["trip_id"], form["bus_name"]
    response = client.post(DISPATCH, headers=bus_headers, data=form)
    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "Missing required fields: trip_id, bus_name",
    }


def test_create_dispatch_invalid_status(client, bus_headers):
    response = client.post(DISPATCH, headers=bus_headers, data=dispatchForm(status="flying"))
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid value for status"


def test_driver_can_not_create_dispatch(client, bus_business, make_vendor, vendor_headers):
    driver = make_vendor(bus_business, VendorRole.DRIVER)
    response = client.post(DISPATCH, headers=vendor_headers(driver), data=dispatchForm())
    assert response.status_code == 403


def test_unknown_driver_is_rejected(client, bus_headers):
    response = client.post(DISPATCH, headers=bus_headers, data=dispatchForm(driver_id=999))
    assert response.status_code == 404


def test_status_transitions(client, bus_headers, dispatch):
    dispatchID = dispatch["dispatch_id"]

    response = client.patch(
        DISPATCH, headers=bus_headers, data={"dispatch_id": dispatchID, "status": "arrived"}
    )
    assert response.status_code == 400

    for status in ("boarding", "departed", "in_transit", "arrived"):
        response = client.patch(
            DISPATCH, headers=bus_headers, data={"dispatch_id": dispatchID, "status": status}
        )
        assert response.status_code == 200, response.text
    body = response.json()["dispatch"]
    assert body["status"] == "arrived"
    assert body["actual_departure"] is not None
    assert body["actual_arrival"] is not None

    response = client.patch(
        DISPATCH, headers=bus_headers, data={"dispatch_id": dispatchID, "status": "cancelled"}
    )
    assert response.status_code == 400


def test_same_status_update_keeps_details(client, bus_headers, dispatch):
    response = client.patch(
        DISPATCH,
        headers=bus_headers,
        data={"dispatch_id": dispatch["dispatch_id"], "status": "scheduled", "notes": "Full"},
    )
    assert response.status_code == 200
    assert response.json()["dispatch"]["notes"] == "Full"
    assert response.json()["dispatch"]["status"] == "scheduled"


def test_unknown_dispatch(client, bus_headers):
    response = client.patch(
        DISPATCH, headers=bus_headers, data={"dispatch_id": "DISP-0", "status": "boarding"}
    )
    assert response.status_code == 404


def test_passenger_counters(client, bus_headers, dispatch):
    dispatchID = dispatch["dispatch_id"]
    for name in ("Ada", "Ben", "Cy"):
        response = client.post(
            PASSENGER, headers=bus_headers, data={"dispatch_id": dispatchID, "name": name}
        )
        assert response.status_code == 201
    passengers = response.json()["dispatch"]["passengers"]
    assert response.json()["dispatch"]["total_passengers"] == 3

    response = client.patch(
        PASSENGER,
        headers=bus_headers,
        data={
            "dispatch_id": dispatchID,
            "passenger_id": passengers[0]["id"],
            "status": "onboard",
        },
    )
    body = response.json()["dispatch"]
    assert body["onboard_passengers"] == 1
    assert body["total_passengers"] == 3

    response = client.request(
        "DELETE",
        PASSENGER,
        headers=bus_headers,
        data={"dispatch_id": dispatchID, "passenger_id": passengers[0]["id"]},
    )
    body = response.json()["dispatch"]
    assert body["total_passengers"] == 2
    assert body["onboard_passengers"] == 0


def test_no_passengers_on_cancelled_dispatch(client, bus_headers, dispatch):
    dispatchID = dispatch["dispatch_id"]
    client.patch(
        DISPATCH, headers=bus_headers, data={"dispatch_id": dispatchID, "status": "cancelled"}
    )
    response = client.post(
        PASSENGER, headers=bus_headers, data={"dispatch_id": dispatchID, "name": "Late"}
    )
    assert response.status_code == 400


def test_pagination(client, bus_headers):
    for index in range(7):
        client.post(DISPATCH, headers=bus_headers, data=dispatchForm(trip_id=f"T{index}"))

    response = client.get(DISPATCH, headers=bus_headers, params={"limit": 3, "page": 3})
    body = response.json()
    assert len(body["dispatches"]) == 1
    assert body["pagination"] == {
        "page": 3,
        "limit": 3,
        "total": 7,
        "pages": 3,
        "has_next": False,
        "has_prev": True,
    }


def test_filters(client, bus_headers):
    client.post(DISPATCH, headers=bus_headers, data=dispatchForm(trip_name="Night owl"))
    client.post(
        DISPATCH,
        headers=bus_headers,
        data=dispatchForm(departure_date="2026-10-22T08:00:00Z"),
    )

    response = client.get(DISPATCH, headers=bus_headers, params={"search": "owl"})
    assert [d["trip_name"] for d in response.json()["dispatches"]] == ["Night owl"]

    response = client.get(DISPATCH, headers=bus_headers, params={"date": "2026-10-22"})
    assert response.json()["pagination"]["total"] == 1


def test_dispatches_are_scoped_to_business(
    client, bus_headers, dispatch, make_business, make_vendor, vendor_headers
):
    other = make_vendor(make_business())
    response = client.get(DISPATCH, headers=vendor_headers(other))
    assert response.json()["dispatches"] == []


def test_export(client, bus_headers):
    client.post(DISPATCH, headers=bus_headers, data=dispatchForm(notes='Says "hi", twice'))
    client.post(DISPATCH, headers=bus_headers, data=dispatchForm())

    response = client.get("/vendor" + URL_DISPATCH_EXPORT, headers=bus_headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]
    lines = response.text.strip().split("\n")
    assert len(lines) == 3
    assert lines[0].startswith("Dispatch ID,Trip,Route")
    assert '"Says ""hi"", twice"' in response.text


def test_delete_dispatch(client, bus_headers, dispatch):
    client.post(
        PASSENGER,
        headers=bus_headers,
        data={"dispatch_id": dispatch["dispatch_id"], "name": "Ada"},
    )
    response = client.request(
        "DELETE", DISPATCH, headers=bus_headers, data={"dispatch_id": dispatch["dispatch_id"]}
    )
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert fetch(Dispatch) == []
