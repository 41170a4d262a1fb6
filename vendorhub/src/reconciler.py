import time, logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import List, Optional
from redis.lock import Lock
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from vendorhub.src.constants import (
    RECONCILER_INTERVAL,
    RECONCILER_LOCK_REFRESH,
    RECONCILER_MAX_WORKERS,
)
from vendorhub.src.db import BillingRecord, sessionMaker, Subscription
from vendorhub.src.enums import BillingStatus, GatewayStatus, SubscriptionStatus
from vendorhub.src.poller import PaymentPoller, PollResult, PollState
from vendorhub.src.redis import acquireLock, releaseLock
from vendorhub.src import billing, lipila

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("Reconciler")


def pendingSubscriptions(session: Session) -> List[Subscription]:
    """
    Subscriptions with an unsettled payment: pending ones, and active ones
    granted on a `Pending` collection whose invoice is still pending.
    """
    pendingInvoice = (
        session.query(BillingRecord.id)
        .filter(BillingRecord.subscription_id == Subscription.id)
        .filter(BillingRecord.transaction_id == Subscription.transaction_id)
        .filter(BillingRecord.status == BillingStatus.PENDING)
        .exists()
    )
    return (
        session.query(Subscription)
        .filter(Subscription.transaction_id.isnot(None))
        .filter(
            or_(
                Subscription.status == SubscriptionStatus.PENDING,
                and_(Subscription.status == SubscriptionStatus.ACTIVE, pendingInvoice),
            )
        )
        .order_by(Subscription.id)
        .all()
    )


def pollTransaction(transactionId: str) -> PollResult:
    poller = PaymentPoller(lipila.lipilaClient.checkStatus)
    return poller.run(transactionId)


def settle(session: Session, subscription: Subscription, result: PollResult):
    if result.state not in (PollState.SUCCESS, PollState.FAILED):
        logger.info(
            f"Subscription {subscription.subscription_id} still {result.state.value}"
        )
        return
    billing.settleSubscription(
        session, subscription, GatewayStatus(result.gateway_status)
    )
    logger.info(
        f"Subscription {subscription.subscription_id} settled as {subscription.status}"
    )


def reconcile(session: Session, lock: Optional[Lock] = None):
    """
    Poll the transactions of all unsettled subscriptions and settle them.

    `lock`, held by the calling thread, is renewed every
    `RECONCILER_LOCK_REFRESH` seconds while polls are in flight.
    """
    subscriptions = pendingSubscriptions(session)
    if not subscriptions:
        return
    with ThreadPoolExecutor(max_workers=RECONCILER_MAX_WORKERS) as executor:
        futures = [
            executor.submit(pollTransaction, s.transaction_id) for s in subscriptions
        ]
        running = set(futures)
        while running:
            _, running = wait(running, timeout=RECONCILER_LOCK_REFRESH)
            if lock is not None:
                lock.reacquire()
        for subscription, future in zip(subscriptions, futures):
            settle(session, subscription, future.result())
    session.commit()


def runReconciler(session: Session):
    while True:
        lock = None
        try:
            lock = acquireLock(Subscription.__tablename__)
            reconcile(session, lock)
        except Exception as e:
            session.rollback()
            logger.exception("Reconciler loop failed")
        finally:
            releaseLock(lock)
            time.sleep(RECONCILER_INTERVAL)


def main():
    try:
        with sessionMaker() as session:
            runReconciler(session)
    except Exception as e:
        logger.exception("reconciler.py failed")


if __name__ == "__main__":
    main()
