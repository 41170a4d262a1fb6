import time
from datetime import datetime, timedelta, timezone

import pytest

from vendorhub.src import cleaner, reconciler
from vendorhub.src.db import (
    BillingRecord,
    ComplianceRecord,
    Subscription,
    VendorToken,
    sessionMaker,
)
from vendorhub.src.enums import (
    BillingCycle,
    BillingStatus,
    ComplianceStatus,
    ServiceType,
    SubscriptionStatus,
)
from vendorhub.src.poller import PollResult, PollState

from conftest import fetch, persist


@pytest.fixture
def session():
    session = sessionMaker()
    yield session
    session.close()


def subscription(business, plan, subscriptionID, status, endDate, **kwargs):
    return Subscription(
        subscription_id=subscriptionID,
        business_id=business.id,
        plan_id=plan.id,
        service_type=ServiceType.BUS,
        status=status,
        billing_cycle=BillingCycle.MONTHLY,
        start_date=endDate - timedelta(days=30),
        end_date=endDate,
        **kwargs,
    )


def test_remove_expired_tokens(session, bus_manager):
    now = datetime.now(timezone.utc)
    for offset in (-2, -1, 1):
        persist(
            VendorToken(
                business_id=bus_manager.business_id,
                vendor_id=bus_manager.id,
                expires_in=3600,
                expires_at=now + timedelta(hours=offset),
            )
        )
    assert cleaner.removeExpiredTokens(session, VendorToken) == 2
    assert len(fetch(VendorToken)) == 1


def test_expire_subscriptions(session, bus_business, make_plan):
    plan = make_plan(ServiceType.BUS)
    now = datetime.now(timezone.utc)
    persist(
        subscription(bus_business, plan, "SUB-1", SubscriptionStatus.ACTIVE, now - timedelta(days=1)),
        subscription(bus_business, plan, "SUB-2", SubscriptionStatus.ACTIVE, now + timedelta(days=1)),
        subscription(bus_business, plan, "SUB-3", SubscriptionStatus.PENDING, now - timedelta(days=1)),
    )
    assert cleaner.expireSubscriptions(session) == 1
    statuses = {s.subscription_id: s.status for s in fetch(Subscription)}
    assert statuses == {"SUB-1": "expired", "SUB-2": "active", "SUB-3": "pending"}


def test_mark_overdue_compliance(session, pharmacy_business):
    now = datetime.now(timezone.utc)

    def record(recordID, dueDate, status=ComplianceStatus.PENDING):
        return ComplianceRecord(
            record_id=recordID,
            business_id=pharmacy_business.id,
            type="inspection",
            title="Inspection",
            description="Fire safety",
            due_date=dueDate,
            status=status,
            responsible_person="Grace Zulu",
        )

    persist(
        record("CR1", now - timedelta(days=1)),
        record("CR2", now + timedelta(days=1)),
        record("CR3", now - timedelta(days=1), ComplianceStatus.COMPLETED),
    )
    assert cleaner.markOverdueCompliance(session) == 1
    [overdue] = fetch(ComplianceRecord, status=ComplianceStatus.OVERDUE)
    assert overdue.record_id == "CR1"


def test_reconcile_settles_pending_subscriptions(
    session, bus_business, make_plan, monkeypatch
):
    plan = make_plan(ServiceType.BUS)
    later = datetime.now(timezone.utc) + timedelta(days=30)
    pending = persist(
        subscription(bus_business, plan, "SUB-1", SubscriptionStatus.PENDING, later, transaction_id="T1"),
        subscription(bus_business, plan, "SUB-2", SubscriptionStatus.PENDING, later, transaction_id="T2"),
        subscription(bus_business, plan, "SUB-3", SubscriptionStatus.PENDING, later, transaction_id="T3"),
    )
    persist(
        BillingRecord(
            invoice_number="INV-1",
            business_id=bus_business.id,
            subscription_id=pending[0].id,
            amount=5,
            status=BillingStatus.PENDING,
            billing_date=later,
            due_date=later,
            transaction_id="T1",
        )
    )
    outcomes = {
        "T1": (PollState.SUCCESS, "Successful"),
        "T2": (PollState.FAILED, "Failed"),
        "T3": (PollState.TIMEOUT, "Pending"),
    }

    def pollTransaction(transactionId):
        state, status = outcomes[transactionId]
        return PollResult(
            transaction_id=transactionId, state=state, attempts=1, gateway_status=status
        )

    monkeypatch.setattr(reconciler, "pollTransaction", pollTransaction)
    reconciler.reconcile(session)

    statuses = {s.subscription_id: (s.status, s.payment_status) for s in fetch(Subscription)}
    assert statuses == {
        "SUB-1": ("active", "paid"),
        "SUB-2": ("inactive", "failed"),
        "SUB-3": ("pending", "pending"),
    }
    [invoice] = fetch(BillingRecord)
    assert invoice.status == "paid"
    assert invoice.payment_date is not None


def test_reconcile_picks_active_subscriptions_with_pending_invoices(
    session, bus_business, make_plan
):
    plan = make_plan(ServiceType.BUS)
    later = datetime.now(timezone.utc) + timedelta(days=30)
    granted, settled = persist(
        subscription(bus_business, plan, "SUB-1", SubscriptionStatus.ACTIVE, later, transaction_id="T1"),
        subscription(bus_business, plan, "SUB-2", SubscriptionStatus.ACTIVE, later, transaction_id="T2"),
    )
    for sub, status in ((granted, BillingStatus.PENDING), (settled, BillingStatus.PAID)):
        persist(
            BillingRecord(
                invoice_number=f"INV-{sub.id}",
                business_id=bus_business.id,
                subscription_id=sub.id,
                amount=5,
                status=status,
                billing_date=later,
                due_date=later,
                transaction_id=sub.transaction_id,
            )
        )
    picked = reconciler.pendingSubscriptions(session)
    assert [s.subscription_id for s in picked] == ["SUB-1"]


class FakeLock:
    def __init__(self):
        self.renewals = 0

    def reacquire(self):
        self.renewals += 1


def test_reconcile_renews_its_lock(session, bus_business, make_plan, monkeypatch):
    plan = make_plan(ServiceType.BUS)
    later = datetime.now(timezone.utc) + timedelta(days=30)
    persist(
        subscription(bus_business, plan, "SUB-1", SubscriptionStatus.PENDING, later, transaction_id="T1")
    )

    def pollTransaction(transactionId):
        time.sleep(0.2)
        return PollResult(
            transaction_id=transactionId,
            state=PollState.SUCCESS,
            attempts=1,
            gateway_status="Successful",
        )

    monkeypatch.setattr(reconciler, "pollTransaction", pollTransaction)
    monkeypatch.setattr(reconciler, "RECONCILER_LOCK_REFRESH", 0.02)
    lock = FakeLock()
    reconciler.reconcile(session, lock)

    assert lock.renewals >= 2
    [sub] = fetch(Subscription)
    assert sub.status == "active"
