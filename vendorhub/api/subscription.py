"""
Subscription life cycle of the caller's business.

A business is on at most one current subscription, the newest one which is
active or waiting for its payment. Upgrades charge the plan price through
the Lipila gateway while holding the subscription mutex of the business. The
mutex outlives the slowest gateway call, so two upgrades of the same business
never charge twice. Handlers calling the gateway are plain functions and run
in the thread pool.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, EmailStr, Field

from vendorhub.api.bearer import bearer_vendor
from vendorhub.api.subscription_plan import PlanSchema
from vendorhub.src.constants import SUBSCRIPTION_HISTORY_SIZE, SUBSCRIPTION_LOCK_TIMEOUT
from vendorhub.src.db import BillingRecord, Subscription, SubscriptionPlan, sessionMaker
from vendorhub.src import billing, exceptions, getters, lipila, redis, schemas, usage
from vendorhub.src import validators
from vendorhub.src.enums import (
    BillingCycle,
    BillingStatus,
    GatewayPaymentType,
    GatewayStatus,
    ServiceType,
    SubscriptionPaymentMethod,
    SubscriptionPaymentStatus,
    SubscriptionStatus,
    VendorRole,
)
from vendorhub.src.loggers import logEvent
from vendorhub.src.functions import (
    enumStr,
    generateID,
    makeExceptionResponses,
    paginate,
    toUTC,
)
from vendorhub.src.urls import (
    URL_SUBSCRIPTION,
    URL_SUBSCRIPTION_BILLING,
    URL_SUBSCRIPTION_CANCEL,
    URL_SUBSCRIPTION_PAYMENT_STATUS,
    URL_SUBSCRIPTION_STATUS,
    URL_SUBSCRIPTION_UPGRADE,
)

route_vendor = APIRouter()
logger = logging.getLogger("uvicorn.error")

SUBSCRIPTION_MANAGERS = [VendorRole.MANAGER, VendorRole.ADMIN]

# Collection statuses after which the plan is granted right away
ACCEPTED_COLLECTION = (GatewayStatus.SUCCESSFUL, GatewayStatus.PENDING)


## Output Schema
class SubscriptionSchema(BaseModel):
    id: int
    subscription_id: str
    business_id: int
    plan_id: int
    service_type: ServiceType
    status: SubscriptionStatus
    billing_cycle: BillingCycle
    start_date: datetime
    end_date: datetime
    next_billing_date: Optional[datetime]
    auto_renew: bool
    amount: float
    currency: str
    payment_method: Optional[str]
    payment_status: SubscriptionPaymentStatus
    transaction_id: Optional[str]
    external_id: Optional[str]
    updated_on: Optional[datetime]
    created_on: datetime


class InvoiceSchema(BaseModel):
    id: int
    invoice_number: str
    business_id: int
    subscription_id: int
    amount: float
    currency: str
    status: BillingStatus
    billing_date: datetime
    due_date: datetime
    payment_date: Optional[datetime]
    payment_method: Optional[str]
    transaction_id: Optional[str]
    external_id: Optional[str]
    created_on: datetime


class UsageSchema(BaseModel):
    used: int
    limit: Optional[int]


class OverviewResponse(BaseModel):
    success: bool = True
    subscription: Optional[SubscriptionSchema]
    plan: Optional[PlanSchema]
    history: List[SubscriptionSchema]
    usage: Dict[str, UsageSchema]


class StatusResponse(BaseModel):
    success: bool = True
    has_active_subscription: bool
    subscription: Optional[SubscriptionSchema]
    days_remaining: int


class SubscriptionResponse(BaseModel):
    success: bool = True
    subscription: SubscriptionSchema


class UpgradeResponse(SubscriptionResponse):
    invoice: InvoiceSchema
    transaction_id: str
    gateway_status: Optional[str]
    redirect_url: Optional[str]


class PaymentStatusResponse(SubscriptionResponse):
    transaction_id: str
    gateway_status: Optional[str]


class BillingListResponse(BaseModel):
    success: bool = True
    invoices: List[InvoiceSchema]
    pagination: schemas.Pagination


## Input Forms
class CreateForm(BaseModel):
    plan_id: int = Field(Form())
    billing_cycle: BillingCycle = Field(Form(description=enumStr(BillingCycle)))
    payment_method: SubscriptionPaymentMethod = Field(
        Form(description=enumStr(SubscriptionPaymentMethod))
    )
    auto_renew: bool = Field(Form(default=True))


class UpgradeForm(BaseModel):
    plan_id: int = Field(Form())
    payment_type: GatewayPaymentType = Field(
        Form(description=enumStr(GatewayPaymentType))
    )
    phone_number: str = Field(Form(min_length=9, max_length=32))
    billing_cycle: BillingCycle | None = Field(
        Form(description=enumStr(BillingCycle), default=None)
    )
    full_name: str | None = Field(Form(max_length=128, default=None))
    email: EmailStr | None = Field(Form(default=None))


## Query Parameters
class PaymentStatusParams(BaseModel):
    transaction_id: str | None = Field(Query(default=None))


class BillingParams(BaseModel):
    status: BillingStatus | None = Field(
        Query(default=None, description=enumStr(BillingStatus))
    )
    # Pagination
    page: int = Field(Query(default=1, ge=1))
    limit: int = Field(Query(default=10, gt=0, le=100))


## Function
def vendorAccess(bearer, session: Session, allowed=None):
    """Authenticate a vendor of any vertical."""
    token = validators.vendorToken(bearer, session)
    vendor = getters.vendor(token, session)
    validators.activeAccount(vendor)
    if allowed is not None:
        validators.role(vendor, allowed)
    return token, vendor, getters.business(token, session)


def subscribablePlan(session: Session, plan_id: int, serviceType: str):
    """An active plan sold to the given vertical."""
    plan = (
        session.query(SubscriptionPlan)
        .filter(SubscriptionPlan.id == plan_id)
        .filter(SubscriptionPlan.vendor_type == serviceType)
        .filter(SubscriptionPlan.is_active.is_(True))
        .first()
    )
    if plan is None:
        raise exceptions.UnknownValue(SubscriptionPlan.id)
    return plan


def usageReport(session: Session, business_id: int, plan) -> Dict[str, dict]:
    used = usage.counts(session, business_id)
    limits = usage.planLimits(plan) if plan is not None else {}
    return {
        resource: {"used": count, "limit": limits.get(resource)}
        for resource, count in used.items()
    }


def daysRemaining(subscription: Optional[Subscription], now: datetime) -> int:
    if subscription is None:
        return 0
    remaining = toUTC(subscription.end_date) - now
    return max(remaining.days, 0)


def isActive(subscription: Optional[Subscription], now: datetime) -> bool:
    return (
        subscription is not None
        and subscription.status == SubscriptionStatus.ACTIVE
        and toUTC(subscription.end_date) > now
    )


def chargePlan(plan: SubscriptionPlan, fParam: UpgradeForm, externalId: str) -> dict:
    """
    Start the gateway collection of one plan period.

    Raises:
        exceptions.PaymentInitiationFailed: When the gateway answers without
        a transaction ID.
    """
    response = lipila.lipilaClient.collect(
        fParam.payment_type,
        float(plan.price),
        fParam.phone_number,
        externalId,
        narration=f"{plan.name} subscription - {externalId}",
        fullName=fParam.full_name,
        email=fParam.email,
    )
    if not response.get("transactionId"):
        logger.error("Lipila collection %s returned no transaction ID", externalId)
        raise exceptions.PaymentInitiationFailed()
    return response


def applyUpgrade(
    session: Session,
    business,
    plan: SubscriptionPlan,
    fParam: UpgradeForm,
    response: dict,
    externalId: str,
):
    """
    Move the current subscription of the business onto `plan`, or open a new
    one, and record the invoice of the charge.
    """
    gateway = billing.gatewayStatus(response.get("status"))
    if gateway in ACCEPTED_COLLECTION:
        subscriptionStatus = SubscriptionStatus.ACTIVE
        paymentStatus = SubscriptionPaymentStatus.PAID
    else:
        subscriptionStatus = SubscriptionStatus.PENDING
        paymentStatus = SubscriptionPaymentStatus.PENDING
    billingCycle = fParam.billing_cycle or BillingCycle(plan.billing_cycle)
    paymentMethod = SubscriptionPaymentMethod(fParam.payment_type.value)

    subscription = getters.currentSubscription(business.id, session)
    if subscription is None:
        subscription = billing.newSubscription(
            business.id, plan, billingCycle, paymentMethod
        )
        session.add(subscription)
    else:
        subscription.plan_id = plan.id
        subscription.service_type = plan.vendor_type
        subscription.billing_cycle = billingCycle
        subscription.amount = plan.price
        subscription.currency = plan.currency
        subscription.payment_method = paymentMethod
        billing.startPeriod(subscription)
    subscription.status = subscriptionStatus
    subscription.payment_status = paymentStatus
    subscription.transaction_id = response["transactionId"]
    subscription.external_id = response.get("externalId") or externalId
    session.flush()

    invoice = billing.newInvoice(subscription)
    billing.settleInvoice(invoice, gateway or GatewayStatus.PENDING)
    session.add(invoice)
    return subscription, invoice


def cancelPendingCharge(session: Session, subscription: Subscription) -> None:
    """
    Stop the gateway transaction of a subscription whose invoice is still
    waiting for payment, and mark that invoice cancelled.

    The invoice is left pending when the gateway refuses or can not be reached.
    """
    if not subscription.transaction_id:
        return
    invoices = (
        session.query(BillingRecord)
        .filter(BillingRecord.subscription_id == subscription.id)
        .filter(BillingRecord.transaction_id == subscription.transaction_id)
        .filter(BillingRecord.status == BillingStatus.PENDING)
        .all()
    )
    if not invoices:
        return
    try:
        lipila.lipilaClient.cancel(subscription.transaction_id)
    except exceptions.PaymentGatewayError as e:
        logger.warning(
            "Transaction %s not cancelled: %s", subscription.transaction_id, e.detail
        )
        return
    for invoice in invoices:
        billing.settleInvoice(invoice, GatewayStatus.CANCELLED)


## API endpoints [Vendor]
@route_vendor.get(
    URL_SUBSCRIPTION,
    tags=["Subscription"],
    response_model=OverviewResponse,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Current subscription of the caller's business with its plan, the
    subscription history and the usage of every limited resource.
    """,
)
async def fetch_subscription(bearer=Depends(bearer_vendor)):
    try:
        session = sessionMaker()
        _, _, business = vendorAccess(bearer, session)

        subscription = getters.currentSubscription(business.id, session)
        plan = getters.plan(subscription, session) if subscription else None
        history = (
            session.query(Subscription)
            .filter(Subscription.business_id == business.id)
            .order_by(Subscription.id.desc())
            .limit(SUBSCRIPTION_HISTORY_SIZE)
            .all()
        )
        return {
            "success": True,
            "subscription": jsonable_encoder(subscription),
            "plan": jsonable_encoder(plan),
            "history": jsonable_encoder(history),
            "usage": usageReport(session, business.id, plan),
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.get(
    URL_SUBSCRIPTION_STATUS,
    tags=["Subscription"],
    response_model=StatusResponse,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Whether the caller's business holds an active, unexpired subscription.
    """,
)
async def fetch_subscription_status(bearer=Depends(bearer_vendor)):
    try:
        session = sessionMaker()
        _, _, business = vendorAccess(bearer, session)

        now = datetime.now(timezone.utc)
        subscription = getters.currentSubscription(business.id, session)
        return {
            "success": True,
            "has_active_subscription": isActive(subscription, now),
            "subscription": jsonable_encoder(subscription),
            "days_remaining": daysRemaining(subscription, now),
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.post(
    URL_SUBSCRIPTION,
    tags=["Subscription"],
    response_model=SubscriptionResponse,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.NoPermission,
            exceptions.UnknownValue,
        ]
    ),
    description="""
    Opens a pending subscription on a plan of the caller's vertical, together
    with its first pending invoice.

    - The plan must be active.
    - The subscription is activated once its payment is confirmed.
    """,
)
async def create_subscription(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, _, business = vendorAccess(bearer, session, SUBSCRIPTION_MANAGERS)
        plan = subscribablePlan(session, fParam.plan_id, business.service_type)

        subscription = billing.newSubscription(
            business.id,
            plan,
            fParam.billing_cycle,
            fParam.payment_method,
            auto_renew=fParam.auto_renew,
        )
        session.add(subscription)
        session.flush()
        session.add(billing.newInvoice(subscription))
        session.commit()
        session.refresh(subscription)

        data = jsonable_encoder(subscription)
        logEvent(token, request_info, data)
        return {"success": True, "subscription": data}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.post(
    URL_SUBSCRIPTION_UPGRADE,
    tags=["Subscription"],
    response_model=UpgradeResponse,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.NoPermission,
            exceptions.UnknownValue,
            exceptions.InvalidValue,
            exceptions.LockAcquireTimeout,
            exceptions.PaymentInitiationFailed,
            exceptions.PaymentGatewayError,
        ]
    ),
    description="""
    Charges a plan through the payment gateway and moves the business onto it.

    - The current subscription is updated in place, otherwise a new one is opened.
    - A collection reported as `Successful` or `Pending` activates the plan
      right away; any other status leaves it pending.
    - Card payments return the `redirect_url` the customer completes the payment on.
    - Only one upgrade per business runs at a time.
    """,
)
def upgrade_subscription(
    fParam: UpgradeForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, _, business = vendorAccess(bearer, session, SUBSCRIPTION_MANAGERS)
        plan = subscribablePlan(session, fParam.plan_id, business.service_type)

        with redis.mutex(
            Subscription.__tablename__, business.id, SUBSCRIPTION_LOCK_TIMEOUT
        ):
            externalId = generateID("SUB")
            response = chargePlan(plan, fParam, externalId)
            subscription, invoice = applyUpgrade(
                session, business, plan, fParam, response, externalId
            )
            session.commit()
            session.refresh(subscription)
            session.refresh(invoice)

        data = jsonable_encoder(subscription)
        logEvent(token, request_info, data)
        return {
            "success": True,
            "subscription": data,
            "invoice": jsonable_encoder(invoice),
            "transaction_id": response["transactionId"],
            "gateway_status": response.get("status"),
            "redirect_url": response.get("redirectUrl"),
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.get(
    URL_SUBSCRIPTION_PAYMENT_STATUS,
    tags=["Subscription"],
    response_model=PaymentStatusResponse,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.MissingParameter,
            exceptions.InvalidIdentifier,
        ]
    ),
    description="""
    Polls the gateway for the payment of a subscription and applies the result.

    - `Successful` activates the subscription, `Failed` and `Cancelled` make it inactive.
    - When the gateway can not be reached the stored state is returned unchanged.
    """,
)
def fetch_payment_status(
    qParam: PaymentStatusParams = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, _, business = vendorAccess(bearer, session)
        if not qParam.transaction_id:
            raise exceptions.MissingParameter("transaction_id")

        subscription = (
            session.query(Subscription)
            .filter(Subscription.business_id == business.id)
            .filter(Subscription.transaction_id == qParam.transaction_id)
            .order_by(Subscription.id.desc())
            .first()
        )
        if subscription is None:
            raise exceptions.InvalidIdentifier()

        gateway = None
        try:
            result = lipila.lipilaClient.checkStatus(qParam.transaction_id)
            gateway = billing.gatewayStatus(result.get("status"))
        except exceptions.PaymentGatewayError as e:
            logger.warning(
                "Status of transaction %s unavailable: %s", qParam.transaction_id, e.detail
            )
        if gateway is not None:
            billing.settleSubscription(session, subscription, gateway)
            session.commit()
            session.refresh(subscription)
            logEvent(token, request_info, jsonable_encoder(subscription))

        return {
            "success": True,
            "subscription": jsonable_encoder(subscription),
            "transaction_id": qParam.transaction_id,
            "gateway_status": gateway.value if gateway else None,
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.patch(
    URL_SUBSCRIPTION_CANCEL,
    tags=["Subscription"],
    response_model=SubscriptionResponse,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.NoPermission,
            exceptions.InvalidIdentifier,
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Cancels the current subscription of the caller's business and stops its renewal.

    - A payment still pending at the gateway is cancelled there and its invoice
      is marked cancelled.
    """,
)
def cancel_subscription(
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, _, business = vendorAccess(bearer, session, SUBSCRIPTION_MANAGERS)

        subscription = getters.currentSubscription(business.id, session)
        if subscription is None:
            raise exceptions.InvalidIdentifier()
        with redis.mutex(
            Subscription.__tablename__, business.id, SUBSCRIPTION_LOCK_TIMEOUT
        ):
            cancelPendingCharge(session, subscription)
            subscription.status = SubscriptionStatus.CANCELLED
            subscription.auto_renew = False
            session.commit()
        session.refresh(subscription)

        data = jsonable_encoder(subscription)
        logEvent(token, request_info, data)
        return {"success": True, "subscription": data}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.get(
    URL_SUBSCRIPTION_BILLING,
    tags=["Subscription"],
    response_model=BillingListResponse,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Invoices of the caller's business, newest first.
    """,
)
async def fetch_invoices(qParam: BillingParams = Depends(), bearer=Depends(bearer_vendor)):
    try:
        session = sessionMaker()
        _, _, business = vendorAccess(bearer, session)

        query = session.query(BillingRecord).filter(
            BillingRecord.business_id == business.id
        )
        if qParam.status is not None:
            query = query.filter(BillingRecord.status == qParam.status)
        query = query.order_by(BillingRecord.billing_date.desc(), BillingRecord.id.desc())
        invoices, pagination = paginate(query, qParam.page, qParam.limit)
        return {
            "success": True,
            "invoices": jsonable_encoder(invoices),
            "pagination": pagination,
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
