"""Shared pytest fixtures: an in-memory database, the API client and accounts."""

import os

os.environ["OPENOBSERVE_ENABLED"] = "false"
os.environ["LIPILA_MOCK_MODE"] = "false"

from contextlib import contextmanager
from itertools import count
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from vendorhub.main import app
from vendorhub.src import argon2, redis
from vendorhub.src.db import (
    Admin,
    AdminToken,
    Business,
    ORMbase,
    SubscriptionPlan,
    Vendor,
    VendorToken,
    sessionMaker,
)
from vendorhub.src.enums import AdminRole, PlanType, ServiceType, VendorRole

testEngine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
PASSWORD = "password"
sequence = count(1)


def persist(*objects):
    """Store objects in their own transaction and return them detached."""
    session = sessionMaker()
    try:
        session.add_all(objects)
        session.commit()
        for obj in objects:
            session.refresh(obj)
    finally:
        session.close()
    return objects[0] if len(objects) == 1 else objects


def fetch(model, **filters):
    session = sessionMaker()
    try:
        return session.query(model).filter_by(**filters).all()
    finally:
        session.close()


def bearer(token) -> dict:
    return {"Authorization": f"Bearer {token.access_token}"}


@pytest.fixture(autouse=True)
def database():
    sessionMaker.configure(bind=testEngine)
    ORMbase.metadata.create_all(testEngine)
    yield
    ORMbase.metadata.drop_all(testEngine)


@pytest.fixture(autouse=True)
def no_redis(monkeypatch):
    """Replaces the redis mutex, returning the locks requested as `(table, pk, timeOut)`."""
    locks = []

    @contextmanager
    def mutex(tableName, pk=None, timeOut=None):
        locks.append((tableName, pk, timeOut))
        yield None

    monkeypatch.setattr(redis, "mutex", mutex)
    return locks


@pytest.fixture
def client():
    with TestClient(app) as client:
        yield client


@pytest.fixture
def make_business():
    def make(service_type=ServiceType.BUS, name=None, **kwargs):
        name = name or f"{service_type.value} business {next(sequence)}"
        return persist(Business(name=name, service_type=service_type, **kwargs))

    return make


@pytest.fixture
def make_vendor():
    def make(business, role=VendorRole.MANAGER, username=None, **kwargs):
        return persist(
            Vendor(
                business_id=business.id,
                username=username or f"{role.value}{next(sequence)}",
                password=argon2.makePassword(PASSWORD),
                full_name=f"Test {role.value}",
                role=role,
                **kwargs,
            )
        )

    return make


@pytest.fixture
def vendor_headers():
    def make(vendor, expired=False):
        offset = timedelta(hours=-1 if expired else 1)
        token = persist(
            VendorToken(
                business_id=vendor.business_id,
                vendor_id=vendor.id,
                expires_in=3600,
                expires_at=datetime.now(timezone.utc) + offset,
            )
        )
        return bearer(token)

    return make


@pytest.fixture
def admin():
    return persist(
        Admin(
            username="admin",
            password=argon2.makePassword(PASSWORD),
            full_name="Platform admin",
            role=AdminRole.SUPER_ADMIN,
        )
    )


@pytest.fixture
def admin_headers(admin):
    token = persist(
        AdminToken(
            admin_id=admin.id,
            expires_in=3600,
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )
    )
    return bearer(token)


@pytest.fixture
def bus_business(make_business):
    return make_business(ServiceType.BUS, name="Lusaka Express")


@pytest.fixture
def bus_manager(bus_business, make_vendor):
    return make_vendor(bus_business, VendorRole.MANAGER, username="manager")


@pytest.fixture
def bus_headers(bus_manager, vendor_headers):
    return vendor_headers(bus_manager)


@pytest.fixture
def pharmacy_business(make_business):
    return make_business(ServiceType.PHARMACY, name="City Pharmacy")


@pytest.fixture
def pharmacy_headers(pharmacy_business, make_vendor, vendor_headers):
    pharmacist = make_vendor(pharmacy_business, VendorRole.PHARMACIST, username="chemist")
    return vendor_headers(pharmacist)


@pytest.fixture
def make_plan():
    def make(vendor_type=ServiceType.BUS, price=5, **kwargs):
        kwargs.setdefault("name", f"{vendor_type.value.title()} plan")
        kwargs.setdefault("plan_type", PlanType.BASIC)
        return persist(SubscriptionPlan(vendor_type=vendor_type, price=price, **kwargs))

    return make
