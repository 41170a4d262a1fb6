import datetime, logging
from vendorhub.src.db import (
    sessionMaker,
    AdminToken,
    VendorToken,
    Subscription,
    ComplianceRecord,
)
from vendorhub.src.enums import ComplianceStatus, SubscriptionStatus
from sqlalchemy.orm import Session
from sqlalchemy import delete, update

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("Cleaner")


def removeExpiredTokens(session: Session, tokenTable) -> int:
    currentTime = datetime.datetime.now(datetime.timezone.utc)
    result = session.execute(
        delete(tokenTable)
        .where(tokenTable.expires_at < currentTime)
        .execution_options(synchronize_session=False)
    )
    session.commit()
    deletedCount = result.rowcount
    logger.info(f"Removed {deletedCount} tokens from {tokenTable.__tablename__} table")
    return deletedCount


def expireSubscriptions(session: Session) -> int:
    currentTime = datetime.datetime.now(datetime.timezone.utc)
    result = session.execute(
        update(Subscription)
        .where(Subscription.status == SubscriptionStatus.ACTIVE)
        .where(Subscription.end_date < currentTime)
        .values(status=SubscriptionStatus.EXPIRED)
        .execution_options(synchronize_session=False)
    )
    session.commit()
    logger.info(f"Expired {result.rowcount} subscriptions")
    return result.rowcount


def markOverdueCompliance(session: Session) -> int:
    currentTime = datetime.datetime.now(datetime.timezone.utc)
    result = session.execute(
        update(ComplianceRecord)
        .where(ComplianceRecord.status == ComplianceStatus.PENDING)
        .where(ComplianceRecord.due_date < currentTime)
        .values(status=ComplianceStatus.OVERDUE)
        .execution_options(synchronize_session=False)
    )
    session.commit()
    logger.info(f"Marked {result.rowcount} compliance records as overdue")
    return result.rowcount


def main():
    try:
        with sessionMaker() as session:
            removeExpiredTokens(session, AdminToken)
            removeExpiredTokens(session, VendorToken)
            expireSubscriptions(session)
            markOverdueCompliance(session)
    except Exception as e:
        logger.exception("cleaner.py failed")


if __name__ == "__main__":
    main()
