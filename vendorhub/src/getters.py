from fastapi import Request
from sqlalchemy.orm.session import Session

from vendorhub.src import schemas
from vendorhub.src.db import (
    Admin,
    AdminToken,
    Business,
    Subscription,
    SubscriptionPlan,
    Vendor,
    VendorToken,
)
from vendorhub.src.enums import SubscriptionStatus


def requestInfo(request: Request) -> schemas.RequestInfo:
    """
    Extract metadata about the incoming request.

    Returns:
        schemas.RequestInfo: HTTP method, URL path and the app ID stored in
        the state of the (sub)application serving the request.
    """
    return schemas.RequestInfo(
        method=request.method,
        path=request.url.path,
        app_id=request.scope["app"].state.id,
    )


def admin(token: AdminToken, session: Session) -> Admin | None:
    """Fetch the admin account owning a token."""
    return session.query(Admin).filter(Admin.id == token.admin_id).first()


def vendor(token: VendorToken, session: Session) -> Vendor | None:
    """Fetch the vendor account owning a token."""
    return (
        session.query(Vendor)
        .filter(Vendor.id == token.vendor_id)
        .filter(Vendor.business_id == token.business_id)
        .first()
    )


def business(token: VendorToken, session: Session) -> Business | None:
    """Fetch the business a vendor token belongs to."""
    return session.query(Business).filter(Business.id == token.business_id).first()


def currentSubscription(business_id: int, session: Session) -> Subscription | None:
    """
    The subscription a business is currently on: the newest one which is
    either active or waiting for its payment.
    """
    return (
        session.query(Subscription)
        .filter(Subscription.business_id == business_id)
        .filter(
            Subscription.status.in_(
                [SubscriptionStatus.ACTIVE, SubscriptionStatus.PENDING]
            )
        )
        .order_by(Subscription.id.desc())
        .first()
    )


def plan(subscription: Subscription, session: Session) -> SubscriptionPlan | None:
    return (
        session.query(SubscriptionPlan)
        .filter(SubscriptionPlan.id == subscription.plan_id)
        .first()
    )
