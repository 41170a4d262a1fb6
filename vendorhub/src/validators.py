"""
Validation and permission checks for VendorHub API.

This module centralizes guard logic such as:
- Token validation
- Service type and role checks
- State transition enforcement
- Subscription plan usage limits

All functions raise appropriate exceptions from `vendorhub.src.exceptions`
when validation fails, ensuring consistent error handling.
"""

from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Tuple
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy import Column
from sqlalchemy.orm.session import Session

from vendorhub.src.db import Admin, AdminToken, Business, Vendor, VendorToken
from vendorhub.src import exceptions, usage
from vendorhub.src.enums import AccountStatus, ServiceType
from vendorhub.src.functions import isValidTransition


# ---------------------------------------------------------------------------
# Token validation
# ---------------------------------------------------------------------------
def _validate_token(
    model_cls, bearer: Optional[HTTPAuthorizationCredentials], session: Session
):
    """
    Generic token validator for any token model.

    Args:
        model_cls: The SQLAlchemy model class (e.g., AdminToken).
        bearer (HTTPAuthorizationCredentials | None): The parsed
            `Authorization` header, None when it is absent.
        session (Session): Active SQLAlchemy session for DB lookup.

    Returns:
        model_cls: The valid token object from the database.

    Raises:
        exceptions.InvalidToken: If the header is missing, the token is not
        found or has expired.
    """
    if bearer is None or not bearer.credentials:
        raise exceptions.InvalidToken()

    current_time = datetime.now(timezone.utc)
    token = (
        session.query(model_cls)
        .filter(
            model_cls.access_token == bearer.credentials,
            model_cls.expires_at > current_time,
        )
        .first()
    )

    if token is None:
        raise exceptions.InvalidToken()

    return token


def adminToken(bearer, session: Session) -> AdminToken:
    """Validate an admin access token."""
    return _validate_token(AdminToken, bearer, session)


def vendorToken(bearer, session: Session) -> VendorToken:
    """Validate a vendor access token."""
    return _validate_token(VendorToken, bearer, session)


# ---------------------------------------------------------------------------
# Access checks
# ---------------------------------------------------------------------------
def activeAccount(account: Admin | Vendor | None) -> bool:
    """
    Validate that an account still exists and is active.

    Raises:
        exceptions.InvalidToken: If the account was deleted.
        exceptions.InactiveAccount: If the account is not active.
    """
    if account is None:
        raise exceptions.InvalidToken()
    if account.status != AccountStatus.ACTIVE:
        raise exceptions.InactiveAccount()
    return True


def serviceType(business: Business | None, expected: ServiceType) -> bool:
    """
    Validate that the caller's business operates the expected vertical.

    Raises:
        exceptions.ServiceAccessDenied: `Access denied. Bus staff only.` and
        alike when the business runs another vertical.
    """
    if business is None or business.service_type != expected:
        raise exceptions.ServiceAccessDenied(expected.value)
    return True


def role(account: Admin | Vendor | None, allowed: Iterable[Any]) -> bool:
    """
    Validate that an account holds one of the allowed roles.

    Raises:
        exceptions.NoPermission: If the role is not in `allowed`.
    """
    if account is not None and account.role in list(allowed):
        return True
    raise exceptions.NoPermission()


def vendorAccess(
    bearer,
    session: Session,
    expected: ServiceType,
    allowed: Optional[Iterable[Any]] = None,
) -> Tuple[VendorToken, Vendor, Business]:
    """
    Authenticate a vendor request end to end.

    Validates the token, the account status, the vertical of the business
    and, when `allowed` is given, the role of the account, in that order.

    Returns:
        Tuple[VendorToken, Vendor, Business]: The caller's token, account
        and business.
    """
    token = vendorToken(bearer, session)
    vendor = session.query(Vendor).filter(Vendor.id == token.vendor_id).first()
    activeAccount(vendor)
    business = session.query(Business).filter(Business.id == token.business_id).first()
    serviceType(business, expected)
    if allowed is not None:
        role(vendor, allowed)
    return token, vendor, business


# ---------------------------------------------------------------------------
# Other validations
# ---------------------------------------------------------------------------
def stateTransition(
    transitions: dict[Any, list[Any]], old_state: Any, new_state: Any, state: Column
) -> bool:
    """
    Validate whether a state transition is allowed.

    Args:
        transitions (dict[Any, list[Any]]): Mapping of valid transitions.
        old_state (Any): Current state value.
        new_state (Any): Desired new state value.
        state (Column): SQLAlchemy column representing the state
            (used to format error messages).

    Raises:
        exceptions.InvalidStateTransition: If the transition is not permitted.
    """
    if not isValidTransition(transitions, old_state, new_state):
        raise exceptions.InvalidStateTransition(state)
    return True


def usageLimit(session: Session, business_id: int, resource: str) -> bool:
    """
    Validate that one more `resource` fits into the plan of the business.

    Businesses without an active subscription are not limited here; access
    to paid features is decided by the subscription status endpoints.

    Raises:
        exceptions.ExceededMaxLimit: If the plan limit is already reached.
    """
    limits = usage.activeLimits(session, business_id)
    # Negative limits are unlimited
    if limits is None or limits.get(resource, -1) < 0:
        return True
    if usage.count(session, business_id, resource) >= limits[resource]:
        raise exceptions.ExceededMaxLimit(resource)
    return True
