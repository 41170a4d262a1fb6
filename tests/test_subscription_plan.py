from datetime import datetime, timedelta, timezone

from vendorhub.src import argon2
from vendorhub.src.db import Admin, AdminToken, Subscription, SubscriptionPlan
from vendorhub.src.enums import AccountStatus, AdminRole, BillingCycle, ServiceType
from vendorhub.src.urls import URL_SUBSCRIPTION_PLAN

from conftest import PASSWORD, bearer, fetch, persist

ADMIN_PLAN = "/admin" + URL_SUBSCRIPTION_PLAN
VENDOR_PLAN = "/vendor" + URL_SUBSCRIPTION_PLAN
PUBLIC_PLAN = "/public" + URL_SUBSCRIPTION_PLAN


def test_create_plan(client, admin_headers):
    response = client.post(
        ADMIN_PLAN,
        headers=admin_headers,
        data={
            "name": "Bus Premium",
            "vendor_type": "bus",
            "price": 499.99,
            "plan_type": "premium",
            "features": ["Unlimited routes", "Analytics"],
            "max_users": 25,
            "is_popular": True,
        },
    )
    assert response.status_code == 201, response.text
    plan = response.json()["plan"]
    assert plan["price"] == 499.99
    assert plan["features"] == ["Unlimited routes", "Analytics"]
    assert plan["billing_cycle"] == "monthly"
    assert plan["currency"] == "ZMW"


def test_negative_price_is_rejected(client, admin_headers):
    response = client.post(
        ADMIN_PLAN, headers=admin_headers, data={"name": "X", "vendor_type": "bus", "price": -1}
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid value for price"


def test_catalogue(client, make_plan):
    make_plan(ServiceType.BUS, name="Bus Pro", sort_order=2)
    make_plan(ServiceType.BUS, name="Bus Basic", sort_order=1)
    make_plan(ServiceType.BUS, name="Bus Legacy", is_active=False)
    make_plan(ServiceType.HOTEL, name="Hotel Basic")

    response = client.get(PUBLIC_PLAN, params={"vendor_type": "bus"})
    assert [p["name"] for p in response.json()["plans"]] == ["Bus Basic", "Bus Pro"]

    response = client.get(PUBLIC_PLAN)
    assert len(response.json()["plans"]) == 3


def test_vendor_sees_own_vertical(client, pharmacy_headers, make_plan):
    make_plan(ServiceType.BUS)
    make_plan(ServiceType.PHARMACY, name="Pharmacy Basic")
    response = client.get(VENDOR_PLAN, headers=pharmacy_headers)
    assert [p["name"] for p in response.json()["plans"]] == ["Pharmacy Basic"]


def test_admin_listing_includes_inactive(client, admin_headers, make_plan):
    make_plan(ServiceType.BUS, is_active=False)
    make_plan(ServiceType.HOTEL)
    body = client.get(ADMIN_PLAN, headers=admin_headers).json()
    assert body["pagination"]["total"] == 2

    body = client.get(ADMIN_PLAN, headers=admin_headers, params={"is_active": False}).json()
    assert [p["vendor_type"] for p in body["plans"]] == ["bus"]


def test_update_plan(client, admin_headers, make_plan):
    plan = make_plan(ServiceType.BUS)
    response = client.patch(
        ADMIN_PLAN, headers=admin_headers, data={"id": plan.id, "price": 9, "is_active": False}
    )
    assert response.status_code == 200
    assert response.json()["plan"]["price"] == 9
    assert response.json()["plan"]["is_active"] is False

    response = client.patch(ADMIN_PLAN, headers=admin_headers, data={"id": 999, "price": 9})
    assert response.status_code == 404


def test_delete_plan(client, admin_headers, make_plan):
    plan = make_plan(ServiceType.BUS)
    response = client.request("DELETE", ADMIN_PLAN, headers=admin_headers, data={"id": plan.id})
    assert response.status_code == 200
    assert fetch(SubscriptionPlan) == []


def test_subscribed_plan_can_not_be_deleted(client, admin_headers, make_plan, bus_business):
    plan = make_plan(ServiceType.BUS)
    now = datetime.now(timezone.utc)
    persist(
        Subscription(
            subscription_id="SUB-1",
            business_id=bus_business.id,
            plan_id=plan.id,
            service_type=ServiceType.BUS,
            billing_cycle=BillingCycle.MONTHLY,
            start_date=now,
            end_date=now + timedelta(days=30),
        )
    )
    response = client.request("DELETE", ADMIN_PLAN, headers=admin_headers, data={"id": plan.id})
    assert response.status_code == 400
    assert response.json()["error"] == "The plan is referenced by subscriptions"
    assert len(fetch(SubscriptionPlan)) == 1


def test_plan_management_needs_an_active_admin(client):
    suspended = persist(
        Admin(
            username="ghost",
            password=argon2.makePassword(PASSWORD),
            full_name="Suspended admin",
            role=AdminRole.ADMIN,
            status=AccountStatus.SUSPENDED,
        )
    )
    token = persist(
        AdminToken(
            admin_id=suspended.id,
            expires_in=3600,
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )
    )
    response = client.get(ADMIN_PLAN, headers=bearer(token))
    assert response.status_code == 403
