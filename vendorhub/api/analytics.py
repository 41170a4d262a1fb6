"""
Revenue and traffic analytics of a bus business.

Revenue counts completed booking and ticket payments plus the billed price
of arrived dispatches. Dispatch fees are collected in cash.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, List, Optional, Tuple
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm.session import Session
from pydantic import BaseModel, Field

from vendorhub.api.bearer import bearer_vendor
from vendorhub.src.constants import DEFAULT_ANALYTICS_PERIOD, TOP_ANALYTICS_ENTRIES
from vendorhub.src.db import BusPayment, Dispatch, sessionMaker
from vendorhub.src import exceptions, validators
from vendorhub.src.enums import (
    DispatchStatus,
    PaymentMethod,
    PaymentSource,
    PaymentStatus,
    ServiceType,
    VendorRole,
)
from vendorhub.src.functions import makeExceptionResponses, percentChange, toUTC
from vendorhub.src.urls import URL_BUS_ANALYTICS

route_vendor = APIRouter()

ANALYTICS_VIEWERS = [VendorRole.MANAGER, VendorRole.ADMIN]


## Output Schema
class SummarySchema(BaseModel):
    total_revenue: float
    booking_revenue: float
    ticket_revenue: float
    dispatch_revenue: float
    total_passengers: int
    total_bookings: int
    total_tickets: int
    total_dispatches: int
    arrived_dispatches: int
    cancelled_dispatches: int


class TopEntrySchema(BaseModel):
    name: str
    trips: int
    passengers: int
    revenue: float


class TrendPointSchema(BaseModel):
    date: date
    revenue: float


class GrowthSchema(BaseModel):
    revenue: float
    passengers: float
    previous_revenue: float
    previous_passengers: int


class PeriodSchema(BaseModel):
    start_date: datetime
    end_date: datetime
    days: int


class AnalyticsResponse(BaseModel):
    success: bool = True
    period: PeriodSchema
    summary: SummarySchema
    top_routes: List[TopEntrySchema]
    top_buses: List[TopEntrySchema]
    revenue_trend: List[TrendPointSchema]
    payment_methods: Dict[str, float]
    growth: GrowthSchema


## Query Parameters
class QueryParams(BaseModel):
    start_date: Optional[date] = Field(Query(default=None))
    end_date: Optional[date] = Field(Query(default=None, description="Inclusive"))
    period: int = Field(
        Query(
            default=DEFAULT_ANALYTICS_PERIOD,
            gt=0,
            le=366,
            description="Days up to today, used when no dates are given",
        )
    )


## Function
def analyticsWindow(
    qParam: QueryParams, today: Optional[date] = None
) -> Tuple[datetime, datetime]:
    """
    Resolve the query into a half-open `[start, end)` UTC window.

    Explicit dates win over `period`; a missing bound is derived from the
    other one and `period`.
    """
    today = today or datetime.now(timezone.utc).date()
    endDay = qParam.end_date or today
    startDay = qParam.start_date or endDay - timedelta(days=qParam.period - 1)
    if qParam.start_date is not None and qParam.end_date is None:
        endDay = max(today, startDay)
    if startDay > endDay:
        raise exceptions.InvalidValue("start_date")
    start = datetime.combine(startDay, time.min, tzinfo=timezone.utc)
    end = datetime.combine(endDay + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return start, end


def fetchRecords(session: Session, business_id: int, start: datetime, end: datetime):
    payments = (
        session.query(BusPayment)
        .filter(BusPayment.business_id == business_id)
        .filter(BusPayment.created_on >= start)
        .filter(BusPayment.created_on < end)
        .all()
    )
    dispatches = (
        session.query(Dispatch)
        .filter(Dispatch.business_id == business_id)
        .filter(Dispatch.created_on >= start)
        .filter(Dispatch.created_on < end)
        .all()
    )
    return payments, dispatches


def paymentRevenue(payment: BusPayment) -> float:
    if payment.status == PaymentStatus.COMPLETED:
        return float(payment.amount)
    return 0.0


def dispatchRevenue(dispatch: Dispatch) -> float:
    if dispatch.status == DispatchStatus.ARRIVED:
        return float(dispatch.billed_price or 0)
    return 0.0


def totalRevenue(payments: List[BusPayment], dispatches: List[Dispatch]) -> float:
    return sum(map(paymentRevenue, payments)) + sum(map(dispatchRevenue, dispatches))


def passengerCount(payments: List[BusPayment], dispatches: List[Dispatch]) -> int:
    """Booked and ticketed riders plus the passengers carried by dispatches."""
    return len(payments) + sum(d.total_passengers or 0 for d in dispatches)


def summarize(payments: List[BusPayment], dispatches: List[Dispatch]) -> dict:
    bookings = [p for p in payments if p.source == PaymentSource.BOOKING]
    tickets = [p for p in payments if p.source == PaymentSource.TICKET]
    statuses = [d.status for d in dispatches]
    bookingRevenue = sum(map(paymentRevenue, bookings))
    ticketRevenue = sum(map(paymentRevenue, tickets))
    fees = sum(map(dispatchRevenue, dispatches))
    return {
        "total_revenue": round(bookingRevenue + ticketRevenue + fees, 2),
        "booking_revenue": round(bookingRevenue, 2),
        "ticket_revenue": round(ticketRevenue, 2),
        "dispatch_revenue": round(fees, 2),
        "total_passengers": passengerCount(payments, dispatches),
        "total_bookings": len(bookings),
        "total_tickets": len(tickets),
        "total_dispatches": len(dispatches),
        "arrived_dispatches": statuses.count(DispatchStatus.ARRIVED),
        "cancelled_dispatches": statuses.count(DispatchStatus.CANCELLED),
    }


def topEntries(
    payments: List[BusPayment], dispatches: List[Dispatch], attribute: str
) -> List[dict]:
    """
    Rank routes (`route_name`) or buses (`bus_name`) by revenue.
    """
    stats = {}

    def entry(name):
        if name not in stats:
            stats[name] = {"name": name, "trips": 0, "passengers": 0, "revenue": 0.0}
        return stats[name]

    for payment in payments:
        item = entry(getattr(payment, attribute))
        item["passengers"] += 1
        item["revenue"] += paymentRevenue(payment)
    for dispatch in dispatches:
        item = entry(getattr(dispatch, attribute))
        item["trips"] += 1
        item["passengers"] += dispatch.total_passengers or 0
        item["revenue"] += dispatchRevenue(dispatch)

    ranked = sorted(stats.values(), key=lambda item: (-item["revenue"], item["name"]))
    for item in ranked:
        item["revenue"] = round(item["revenue"], 2)
    return ranked[:TOP_ANALYTICS_ENTRIES]


def revenueTrend(
    payments: List[BusPayment],
    dispatches: List[Dispatch],
    start: datetime,
    end: datetime,
) -> List[dict]:
    """Daily revenue, one point per day of the window including empty days."""
    daily = {}
    day = start.date()
    while day < end.date():
        daily[day] = 0.0
        day += timedelta(days=1)

    records = [(p.created_on, paymentRevenue(p)) for p in payments]
    records += [(d.created_on, dispatchRevenue(d)) for d in dispatches]
    for createdOn, revenue in records:
        key = toUTC(createdOn).date()
        if key in daily:
            daily[key] += revenue
    return [{"date": key, "revenue": round(value, 2)} for key, value in daily.items()]


def paymentMethods(payments: List[BusPayment], dispatches: List[Dispatch]) -> dict:
    breakdown = {method.value: 0.0 for method in PaymentMethod}
    for payment in payments:
        method = PaymentMethod(payment.payment_method).value
        breakdown[method] += paymentRevenue(payment)
    breakdown[PaymentMethod.CASH.value] += sum(map(dispatchRevenue, dispatches))
    return {method: round(value, 2) for method, value in breakdown.items()}


def buildAnalytics(session: Session, business_id: int, start: datetime, end: datetime):
    payments, dispatches = fetchRecords(session, business_id, start, end)
    # Previous window of the same length, right before the current one
    previousPayments, previousDispatches = fetchRecords(
        session, business_id, start - (end - start), start
    )

    summary = summarize(payments, dispatches)
    previousRevenue = round(totalRevenue(previousPayments, previousDispatches), 2)
    previousPassengers = passengerCount(previousPayments, previousDispatches)
    return {
        "success": True,
        "period": {
            "start_date": start,
            "end_date": end,
            "days": (end - start).days,
        },
        "summary": summary,
        "top_routes": topEntries(payments, dispatches, "route_name"),
        "top_buses": topEntries(payments, dispatches, "bus_name"),
        "revenue_trend": revenueTrend(payments, dispatches, start, end),
        "payment_methods": paymentMethods(payments, dispatches),
        "growth": {
            "revenue": percentChange(summary["total_revenue"], previousRevenue),
            "passengers": percentChange(summary["total_passengers"], previousPassengers),
            "previous_revenue": previousRevenue,
            "previous_passengers": previousPassengers,
        },
    }


## API endpoints [Vendor]
@route_vendor.get(
    URL_BUS_ANALYTICS,
    tags=["Analytics"],
    response_model=AnalyticsResponse,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
            exceptions.InvalidValue,
        ]
    ),
    description="""
    Revenue and traffic analytics of the caller's business.

    - The window is `start_date`..`end_date` (inclusive days) or the last `period` days.
    - Top routes and buses are ranked by revenue.
    - Growth compares with the previous window of equal length, in percent.
    """,
)
async def fetch_analytics(qParam: QueryParams = Depends(), bearer=Depends(bearer_vendor)):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.BUS, ANALYTICS_VIEWERS
        )

        start, end = analyticsWindow(qParam)
        return buildAnalytics(session, business.id, start, end)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
