"""
Subscription plan limits and resource usage of a business.
"""

from datetime import datetime, timezone
from typing import Dict, Optional
from sqlalchemy.orm.session import Session

from vendorhub.src.db import (
    Bus,
    BusPayment,
    Dispatch,
    DispatchPassenger,
    Route,
    Subscription,
    SubscriptionPlan,
    Vendor,
)
from vendorhub.src.enums import BusStaffRole, SubscriptionStatus

RESOURCES = ("routes", "buses", "bookings", "passengers", "dispatches", "staff")


def planLimits(plan: SubscriptionPlan) -> Dict[str, int]:
    """
    Translate the generic plan columns into per resource limits.
    """
    return {
        "routes": plan.max_loans,
        "buses": plan.max_users,
        "bookings": plan.max_storage * 100,
        "passengers": plan.max_storage * 1000,
        "dispatches": plan.max_storage * 50,
        "staff": plan.max_staff_accounts,
    }


def count(session: Session, business_id: int, resource: str) -> int:
    if resource == "routes":
        return session.query(Route).filter(Route.business_id == business_id).count()
    if resource == "buses":
        return session.query(Bus).filter(Bus.business_id == business_id).count()
    if resource == "bookings":
        return (
            session.query(BusPayment)
            .filter(BusPayment.business_id == business_id)
            .count()
        )
    if resource == "passengers":
        return (
            session.query(DispatchPassenger)
            .join(Dispatch, Dispatch.id == DispatchPassenger.dispatch_id)
            .filter(Dispatch.business_id == business_id)
            .count()
        )
    if resource == "dispatches":
        return (
            session.query(Dispatch).filter(Dispatch.business_id == business_id).count()
        )
    if resource == "staff":
        return (
            session.query(Vendor)
            .filter(Vendor.business_id == business_id)
            .filter(Vendor.role.in_([r.value for r in BusStaffRole]))
            .count()
        )
    raise ValueError(f"Unknown resource {resource}")


def counts(session: Session, business_id: int) -> Dict[str, int]:
    return {resource: count(session, business_id, resource) for resource in RESOURCES}


def activeLimits(session: Session, business_id: int) -> Optional[Dict[str, int]]:
    """Limits of the active, unexpired subscription of a business, if any."""
    now = datetime.now(timezone.utc)
    plan = (
        session.query(SubscriptionPlan)
        .join(Subscription, Subscription.plan_id == SubscriptionPlan.id)
        .filter(Subscription.business_id == business_id)
        .filter(Subscription.status == SubscriptionStatus.ACTIVE)
        .filter(Subscription.end_date > now)
        .order_by(Subscription.id.desc())
        .first()
    )
    if plan is None:
        return None
    return planLimits(plan)
