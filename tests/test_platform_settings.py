from vendorhub.src.constants import MASKED_VALUE
from vendorhub.src.db import PlatformSetting
from vendorhub.src.urls import URL_PLATFORM_SETTINGS

from conftest import fetch

SETTINGS = "/admin" + URL_PLATFORM_SETTINGS


def test_defaults(client, admin_headers):
    response = client.get(SETTINGS, headers=admin_headers)
    assert response.status_code == 200
    settings = response.json()["settings"]
    assert set(settings) == {
        "general",
        "security",
        "email",
        "payment",
        "notifications",
        "maintenance",
    }
    assert settings["security"]["session_timeout"] == 30
    assert settings["maintenance"]["maintenance_mode"] is False


def test_update_merges_keys(client, admin, admin_headers):
    body = {"general": {"site_name": "Hub"}, "security": {"session_timeout": 60}}
    response = client.put(SETTINGS, headers=admin_headers, json=body)
    assert response.status_code == 200, response.text
    settings = response.json()["settings"]
    assert settings["general"]["site_name"] == "Hub"
    assert settings["general"]["currency"] == "ZMW"
    assert settings["security"]["session_timeout"] == 60

    [row] = fetch(PlatformSetting, section="general")
    assert row.value == {"site_name": "Hub"}
    assert row.updated_by == admin.id


def test_secrets_are_masked(client, admin_headers):
    body = {"email": {"smtp_password": "s3cret", "smtp_user": "mailer"}}
    settings = client.put(SETTINGS, headers=admin_headers, json=body).json()["settings"]
    assert settings["email"]["smtp_password"] == MASKED_VALUE
    assert settings["email"]["smtp_user"] == "mailer"

    # The masked form sent back keeps the stored secret
    body = {"email": {"smtp_password": MASKED_VALUE, "from_name": "Hub"}}
    client.put(SETTINGS, headers=admin_headers, json=body)
    [row] = fetch(PlatformSetting, section="email")
    assert row.value["smtp_password"] == "s3cret"
    assert row.value["from_name"] == "Hub"


def test_unknown_key_is_rejected(client, admin_headers):
    body = {"general": {"site_name": "Hub"}, "security": {"root_password": "x"}}
    response = client.put(SETTINGS, headers=admin_headers, json=body)
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid security.root_password is provided"
    assert fetch(PlatformSetting) == []


def test_value_type_is_checked(client, admin_headers):
    body = {"maintenance": {"maintenance_mode": "yes"}}
    response = client.put(SETTINGS, headers=admin_headers, json=body)
    assert response.status_code == 400

    body = {"security": {"session_timeout": True}}
    assert client.put(SETTINGS, headers=admin_headers, json=body).status_code == 400


def test_requires_admin_token(client, bus_headers):
    assert client.get(SETTINGS).status_code == 401
    assert client.put(SETTINGS, headers=bus_headers, json={}).status_code == 401
