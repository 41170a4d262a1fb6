"""
Subscription and invoice state changes driven by the payment gateway.

Shared by the subscription endpoints, the gateway webhook and the
reconciler so that a gateway status always has the same effect regardless
of how it was received.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from sqlalchemy.orm.session import Session

from vendorhub.src.db import BillingRecord, Subscription, SubscriptionPlan
from vendorhub.src.enums import (
    BillingCycle,
    BillingStatus,
    GatewayStatus,
    SubscriptionPaymentStatus,
    SubscriptionStatus,
)
from vendorhub.src.functions import billingPeriodEnd, generateID

INVOICE_DUE_DAYS = 7

# Gateway status -> (subscription status, payment status)
SUBSCRIPTION_SETTLEMENT = {
    GatewayStatus.SUCCESSFUL: (
        SubscriptionStatus.ACTIVE,
        SubscriptionPaymentStatus.PAID,
    ),
    GatewayStatus.FAILED: (
        SubscriptionStatus.INACTIVE,
        SubscriptionPaymentStatus.FAILED,
    ),
    GatewayStatus.CANCELLED: (
        SubscriptionStatus.INACTIVE,
        SubscriptionPaymentStatus.FAILED,
    ),
    GatewayStatus.PENDING: (
        SubscriptionStatus.PENDING,
        SubscriptionPaymentStatus.PENDING,
    ),
}

# Gateway status -> billing record status
INVOICE_SETTLEMENT = {
    GatewayStatus.SUCCESSFUL: BillingStatus.PAID,
    GatewayStatus.FAILED: BillingStatus.FAILED,
    GatewayStatus.CANCELLED: BillingStatus.CANCELLED,
    GatewayStatus.PENDING: BillingStatus.PENDING,
}


def gatewayStatus(value: Optional[str]) -> Optional[GatewayStatus]:
    """Parse a gateway status string, None when it is not a known status."""
    try:
        return GatewayStatus(value)
    except ValueError:
        return None


def startPeriod(subscription: Subscription, now: Optional[datetime] = None) -> None:
    """Restart the billing period of a subscription at `now`."""
    now = now or datetime.now(timezone.utc)
    subscription.start_date = now
    subscription.end_date = billingPeriodEnd(now, BillingCycle(subscription.billing_cycle))
    subscription.next_billing_date = subscription.end_date


def newSubscription(
    business_id: int,
    plan: SubscriptionPlan,
    billingCycle: BillingCycle,
    paymentMethod: str,
    **kwargs,
) -> Subscription:
    subscription = Subscription(
        subscription_id=generateID("SUB"),
        business_id=business_id,
        plan_id=plan.id,
        service_type=plan.vendor_type,
        billing_cycle=billingCycle,
        amount=plan.price,
        currency=plan.currency,
        payment_method=paymentMethod,
        **kwargs,
    )
    startPeriod(subscription)
    return subscription


def newInvoice(subscription: Subscription, **kwargs) -> BillingRecord:
    now = datetime.now(timezone.utc)
    return BillingRecord(
        invoice_number=generateID("INV"),
        business_id=subscription.business_id,
        subscription_id=subscription.id,
        amount=subscription.amount,
        currency=subscription.currency,
        billing_date=now,
        due_date=now + timedelta(days=INVOICE_DUE_DAYS),
        payment_method=subscription.payment_method,
        transaction_id=subscription.transaction_id,
        external_id=subscription.external_id,
        **kwargs,
    )


def settleSubscription(
    session: Session, subscription: Subscription, status: GatewayStatus
) -> Subscription:
    """
    Apply a gateway status polled for the transaction of a subscription.

    `Successful` activates the subscription as paid, `Failed` and
    `Cancelled` make it inactive with a failed payment and `Pending` keeps
    it pending. Invoices carrying the same transaction follow.
    """
    subscription.status, subscription.payment_status = SUBSCRIPTION_SETTLEMENT[status]
    invoices = (
        session.query(BillingRecord)
        .filter(BillingRecord.subscription_id == subscription.id)
        .filter(BillingRecord.transaction_id == subscription.transaction_id)
        .all()
    )
    for invoice in invoices:
        settleInvoice(invoice, status)
    return subscription


def settleInvoice(
    invoice: BillingRecord, status: GatewayStatus, paidAt: Optional[datetime] = None
) -> BillingRecord:
    invoice.status = INVOICE_SETTLEMENT[status]
    if status == GatewayStatus.SUCCESSFUL and invoice.payment_date is None:
        invoice.payment_date = paidAt or datetime.now(timezone.utc)
    return invoice


def applyWebhook(
    session: Session, invoice: BillingRecord, status: GatewayStatus
) -> Optional[Subscription]:
    """
    Apply a gateway callback to an invoice and its subscription.

    A successful payment activates the subscription as paid. A failed or
    cancelled payment moves an active subscription back to pending.
    """
    settleInvoice(invoice, status)
    subscription = (
        session.query(Subscription)
        .filter(Subscription.id == invoice.subscription_id)
        .first()
    )
    if subscription is None:
        return None
    if status == GatewayStatus.SUCCESSFUL:
        subscription.status = SubscriptionStatus.ACTIVE
        subscription.payment_status = SubscriptionPaymentStatus.PAID
    elif status in (GatewayStatus.FAILED, GatewayStatus.CANCELLED):
        subscription.payment_status = SubscriptionPaymentStatus.FAILED
        if subscription.status == SubscriptionStatus.ACTIVE:
            subscription.status = SubscriptionStatus.PENDING
    return subscription
