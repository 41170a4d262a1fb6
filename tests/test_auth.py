from vendorhub.src.enums import AccountStatus, ServiceType, VendorRole
from vendorhub.src.urls import (
    URL_ADMIN_TOKEN,
    URL_DISPATCH,
    URL_SUBSCRIPTION_PLAN,
    URL_VENDOR_TOKEN,
)

from conftest import PASSWORD


def test_vendor_login_returns_role_and_service_type(client, bus_business, bus_manager):
    response = client.post(
        "/vendor" + URL_VENDOR_TOKEN,
        data={
            "business_id": bus_business.id,
            "username": "manager",
            "password": PASSWORD,
        },
    )
    assert response.status_code == 201
    body = response.json()
    assert body["role"] == VendorRole.MANAGER
    assert body["service_type"] == ServiceType.BUS
    assert len(body["access_token"]) == 64

    headers = {"Authorization": f"Bearer {body['access_token']}"}
    assert client.get("/vendor" + URL_DISPATCH, headers=headers).status_code == 200


def test_vendor_login_with_wrong_password(client, bus_business, bus_manager):
    response = client.post(
        "/vendor" + URL_VENDOR_TOKEN,
        data={"business_id": bus_business.id, "username": "manager", "password": "nope"},
    )
    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Invalid username or password"}


def test_inactive_vendor_can_not_login(client, bus_business, make_vendor):
    make_vendor(bus_business, username="sleeper", status=AccountStatus.SUSPENDED)
    response = client.post(
        "/vendor" + URL_VENDOR_TOKEN,
        data={"business_id": bus_business.id, "username": "sleeper", "password": PASSWORD},
    )
    assert response.status_code == 403


def test_admin_login(client, admin):
    response = client.post(
        "/admin" + URL_ADMIN_TOKEN, data={"username": "admin", "password": PASSWORD}
    )
    assert response.status_code == 201
    assert response.json()["role"] == "super_admin"


def test_missing_token_is_unauthorized(client):
    response = client.get("/vendor" + URL_DISPATCH)
    assert response.status_code == 401
    assert response.json()["success"] is False


def test_expired_token_is_unauthorized(client, bus_manager, vendor_headers):
    headers = vendor_headers(bus_manager, expired=True)
    assert client.get("/vendor" + URL_DISPATCH, headers=headers).status_code == 401


def test_other_vertical_is_denied(client, pharmacy_headers):
    response = client.get("/vendor" + URL_DISPATCH, headers=pharmacy_headers)
    assert response.status_code == 403
    assert response.json()["error"] == "Access denied. Bus staff only."


def test_vendor_token_is_not_an_admin_token(client, bus_headers):
    response = client.get("/admin/settings", headers=bus_headers)
    assert response.status_code == 401


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "OK"


def test_api_documents(client):
    for prefix in ("", "/admin", "/vendor", "/public"):
        response = client.get(prefix + "/openapi.json")
        assert response.status_code == 200, prefix

    paths = client.get("/admin/openapi.json").json()["paths"]
    examples = paths[URL_SUBSCRIPTION_PLAN]["delete"]["responses"]["400"]["content"][
        "application/json"
    ]["examples"]
    assert examples["ForeignKeyViolation"]["value"] == {
        "success": False,
        "error": "The value is referenced by another resource",
    }
