from vendorhub.src.constants import DEFAULT_BUS_SETTINGS
from vendorhub.src.enums import VendorRole
from vendorhub.src.urls import URL_BUS_SETTINGS

SETTINGS = "/vendor" + URL_BUS_SETTINGS

PROFILE = {
    "company_name": "Lusaka Express",
    "phone": "+260971234567",
    "email": "info@lusaka-express.com",
}


def test_defaults_before_first_save(client, bus_headers):
    response = client.get(SETTINGS, headers=bus_headers)
    assert response.status_code == 200
    settings = response.json()["settings"]
    assert settings["currency"] == "ZMW"
    assert settings["operating_hours"] == DEFAULT_BUS_SETTINGS["operating_hours"]
    assert settings["updated_on"] is None


def test_partial_documents_are_merged(client, bus_headers):
    body = {
        **PROFILE,
        "operating_hours": {"start": "05:30", "end": "21:00"},
        "features": {"mobile_app": True},
        "branding": {"primary_color": "#000000"},
    }
    response = client.put(SETTINGS, headers=bus_headers, json=body)
    assert response.status_code == 200, response.text
    settings = response.json()["settings"]
    assert settings["company_name"] == "Lusaka Express"
    assert settings["operating_hours"] == {"start": "05:30", "end": "21:00"}
    assert settings["features"]["mobile_app"] is True
    assert settings["features"]["online_booking"] is True
    assert settings["branding"]["primary_color"] == "#000000"
    assert settings["branding"]["secondary_color"] == "#1E40AF"
    assert settings["timezone"] == "Africa/Lusaka"

    body = {**PROFILE, "city": "Lusaka", "features": {"loyalty_program": True}}
    settings = client.put(SETTINGS, headers=bus_headers, json=body).json()["settings"]
    assert settings["city"] == "Lusaka"
    assert settings["features"]["mobile_app"] is True
    assert settings["features"]["loyalty_program"] is True
    assert settings["operating_hours"]["start"] == "05:30"

    settings = client.get(SETTINGS, headers=bus_headers).json()["settings"]
    assert settings["city"] == "Lusaka"
    assert settings["updated_on"] is not None


def test_required_profile_fields(client, bus_headers):
    response = client.put(SETTINGS, headers=bus_headers, json={"company_name": "X"})
    assert response.status_code == 400
    assert response.json()["error"] == "Missing required fields: phone, email"


def test_invalid_documents(client, bus_headers):
    body = {**PROFILE, "branding": {"primary_color": "blue"}}
    response = client.put(SETTINGS, headers=bus_headers, json=body)
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid value for branding.primary_color"

    body = {**PROFILE, "operating_hours": {"start": "25:00", "end": "21:00"}}
    assert client.put(SETTINGS, headers=bus_headers, json=body).status_code == 400

    body = {**PROFILE, "email": "not-an-email"}
    assert client.put(SETTINGS, headers=bus_headers, json=body).status_code == 400


def test_settings_are_for_managers(client, bus_business, make_vendor, vendor_headers):
    headers = vendor_headers(make_vendor(bus_business, VendorRole.CONDUCTOR))
    assert client.get(SETTINGS, headers=headers).status_code == 403
