from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status, Form
from sqlalchemy import or_
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, EmailStr, Field

from vendorhub.api.bearer import bearer_vendor
from vendorhub.src.db import BusPayment, Dispatch, sessionMaker
from vendorhub.src import exceptions, validators, getters, schemas
from vendorhub.src.enums import (
    DispatchStatus,
    PaymentMethod,
    PaymentSource,
    PaymentStatus,
    ServiceType,
    VendorRole,
)
from vendorhub.src.loggers import logEvent
from vendorhub.src.functions import (
    csvResponse,
    enumStr,
    generateID,
    makeExceptionResponses,
    paginateList,
    toCSV,
    toUTC,
)
from vendorhub.src.urls import URL_BUS_PAYMENT, URL_BUS_PAYMENT_EXPORT

route_vendor = APIRouter()

PAYMENT_HANDLERS = [
    VendorRole.MANAGER,
    VendorRole.ADMIN,
    VendorRole.TICKET_SELLER,
    VendorRole.CONDUCTOR,
]

EXPORT_HEADERS = [
    "Payment ID",
    "Source",
    "Customer",
    "Email",
    "Phone",
    "Amount",
    "Method",
    "Status",
    "Trip",
    "Route",
    "Bus",
    "Departure Date",
    "Transaction ID",
    "Created On",
]


## Output Schema
class PaymentRowSchema(BaseModel):
    payment_id: str
    source: PaymentSource
    customer_id: Optional[str]
    customer_name: str
    customer_email: Optional[str]
    customer_phone: Optional[str]
    amount: float
    payment_method: PaymentMethod
    status: PaymentStatus
    trip_id: str
    trip_name: str
    route_name: str
    bus_id: Optional[int]
    bus_name: str
    departure_date: datetime
    transaction_id: Optional[str]
    created_on: datetime


class PaymentStats(BaseModel):
    total_revenue: float
    total_payments: int
    completed: int
    pending: int
    failed: int


class PaymentListResponse(BaseModel):
    success: bool = True
    payments: List[PaymentRowSchema]
    stats: PaymentStats
    pagination: schemas.Pagination


class PaymentResponse(BaseModel):
    success: bool = True
    payment: PaymentRowSchema


## Input Forms
class CreateForm(BaseModel):
    customer_id: str = Field(Form(min_length=1, max_length=48))
    customer_name: str = Field(Form(min_length=1, max_length=128))
    amount: float = Field(Form(gt=0))
    payment_method: PaymentMethod = Field(Form(description=enumStr(PaymentMethod)))
    trip_id: str = Field(Form(min_length=1, max_length=48))
    trip_name: str = Field(Form(min_length=1, max_length=128))
    route_name: str = Field(Form(min_length=1, max_length=128))
    bus_id: int = Field(Form())
    bus_name: str = Field(Form(min_length=1, max_length=64))
    departure_date: datetime = Field(Form())
    customer_email: EmailStr | None = Field(Form(max_length=256, default=None))
    customer_phone: str | None = Field(Form(max_length=32, default=None))
    status: PaymentStatus = Field(
        Form(description=enumStr(PaymentStatus), default=PaymentStatus.COMPLETED)
    )
    source: PaymentSource = Field(
        Form(description="booking or ticket", default=PaymentSource.BOOKING)
    )
    transaction_id: str | None = Field(Form(max_length=64, default=None))


## Query Parameters
class QueryParams(BaseModel):
    status: PaymentStatus | None = Field(
        Query(default=None, description=enumStr(PaymentStatus))
    )
    payment_method: PaymentMethod | None = Field(
        Query(default=None, description=enumStr(PaymentMethod))
    )
    start_date: Optional[date] = Field(Query(default=None))
    end_date: Optional[date] = Field(Query(default=None, description="Inclusive"))
    search: str | None = Field(
        Query(default=None, description="Matches customer, IDs, trip and route names")
    )
    # Pagination
    page: int = Field(Query(default=1, ge=1))
    limit: int = Field(Query(default=10, gt=0, le=100))


## Function
def dayBounds(qParam: QueryParams):
    start = end = None
    if qParam.start_date is not None:
        start = datetime.combine(qParam.start_date, time.min, tzinfo=timezone.utc)
    if qParam.end_date is not None:
        end = datetime.combine(qParam.end_date, time.min, tzinfo=timezone.utc)
        end += timedelta(days=1)
    return start, end


def dispatchPaymentStatus(dispatch: Dispatch) -> PaymentStatus:
    if dispatch.status == DispatchStatus.ARRIVED:
        return PaymentStatus.COMPLETED
    return PaymentStatus.PENDING


def paymentRow(payment: BusPayment) -> dict:
    return {
        "payment_id": payment.payment_id,
        "source": payment.source,
        "customer_id": payment.customer_id,
        "customer_name": payment.customer_name,
        "customer_email": payment.customer_email,
        "customer_phone": payment.customer_phone,
        "amount": float(payment.amount),
        "payment_method": payment.payment_method,
        "status": payment.status,
        "trip_id": payment.trip_id,
        "trip_name": payment.trip_name,
        "route_name": payment.route_name,
        "bus_id": payment.bus_id,
        "bus_name": payment.bus_name,
        "departure_date": toUTC(payment.departure_date),
        "transaction_id": payment.transaction_id,
        "created_on": toUTC(payment.created_on),
    }


def dispatchRow(dispatch: Dispatch) -> dict:
    return {
        "payment_id": dispatch.dispatch_id,
        "source": PaymentSource.DISPATCH,
        "customer_id": None,
        "customer_name": dispatch.dispatched_by_name or dispatch.trip_name,
        "customer_email": None,
        "customer_phone": dispatch.receiver_contact,
        "amount": float(dispatch.billed_price or 0),
        "payment_method": PaymentMethod.CASH,
        "status": dispatchPaymentStatus(dispatch),
        "trip_id": dispatch.trip_id,
        "trip_name": dispatch.trip_name,
        "route_name": dispatch.route_name,
        "bus_id": dispatch.bus_id,
        "bus_name": dispatch.bus_name,
        "departure_date": toUTC(dispatch.departure_date),
        "transaction_id": None,
        "created_on": toUTC(dispatch.created_on),
    }


def bookingPayments(session: Session, business_id: int, qParam: QueryParams):
    query = session.query(BusPayment).filter(BusPayment.business_id == business_id)

    start, end = dayBounds(qParam)
    if start is not None:
        query = query.filter(BusPayment.created_on >= start)
    if end is not None:
        query = query.filter(BusPayment.created_on < end)
    if qParam.status is not None:
        query = query.filter(BusPayment.status == qParam.status)
    if qParam.payment_method is not None:
        query = query.filter(BusPayment.payment_method == qParam.payment_method)
    if qParam.search is not None:
        pattern = f"%{qParam.search}%"
        query = query.filter(
            or_(
                BusPayment.payment_id.ilike(pattern),
                BusPayment.customer_name.ilike(pattern),
                BusPayment.customer_email.ilike(pattern),
                BusPayment.customer_phone.ilike(pattern),
                BusPayment.trip_name.ilike(pattern),
                BusPayment.route_name.ilike(pattern),
            )
        )
    return [paymentRow(payment) for payment in query.all()]


def dispatchPayments(session: Session, business_id: int, qParam: QueryParams):
    # Dispatch fees are collected in cash and never fail
    if qParam.payment_method not in (None, PaymentMethod.CASH):
        return []
    if qParam.status not in (None, PaymentStatus.COMPLETED, PaymentStatus.PENDING):
        return []

    query = session.query(Dispatch).filter(Dispatch.business_id == business_id)
    start, end = dayBounds(qParam)
    if start is not None:
        query = query.filter(Dispatch.created_on >= start)
    if end is not None:
        query = query.filter(Dispatch.created_on < end)
    if qParam.status == PaymentStatus.COMPLETED:
        query = query.filter(Dispatch.status == DispatchStatus.ARRIVED)
    elif qParam.status == PaymentStatus.PENDING:
        query = query.filter(Dispatch.status != DispatchStatus.ARRIVED)
    if qParam.search is not None:
        pattern = f"%{qParam.search}%"
        query = query.filter(
            or_(
                Dispatch.dispatch_id.ilike(pattern),
                Dispatch.trip_name.ilike(pattern),
                Dispatch.route_name.ilike(pattern),
            )
        )
    return [dispatchRow(dispatch) for dispatch in query.all()]


def unifiedPayments(session: Session, business_id: int, qParam: QueryParams):
    """All payment rows of a business, newest first."""
    rows = bookingPayments(session, business_id, qParam)
    rows += dispatchPayments(session, business_id, qParam)
    rows.sort(key=lambda row: (row["created_on"], row["payment_id"]), reverse=True)
    return rows


def paymentStats(rows: List[dict]) -> dict:
    statuses = [row["status"] for row in rows]
    revenue = sum(row["amount"] for row in rows if row["status"] == PaymentStatus.COMPLETED)
    return {
        "total_revenue": round(revenue, 2),
        "total_payments": len(rows),
        "completed": statuses.count(PaymentStatus.COMPLETED),
        "pending": statuses.count(PaymentStatus.PENDING),
        "failed": statuses.count(PaymentStatus.FAILED),
    }


## API endpoints [Vendor]
@route_vendor.post(
    URL_BUS_PAYMENT,
    tags=["Payment"],
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
            exceptions.MissingParameter,
            exceptions.InvalidValue,
            exceptions.ExceededMaxLimit,
        ]
    ),
    description="""
    Records a customer payment for a booking or a ticket.

    - Dispatch fees are derived from the dispatches and can not be recorded here.
    - The number of bookings is limited by the active subscription plan.
    - Logs the payment creation event.
    """,
)
async def create_payment(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.BUS, PAYMENT_HANDLERS
        )
        if fParam.source == PaymentSource.DISPATCH:
            raise exceptions.InvalidValue(BusPayment.source)
        validators.usageLimit(session, business.id, "bookings")

        payment = BusPayment(
            payment_id=generateID("PAY"),
            business_id=business.id,
            customer_id=fParam.customer_id,
            customer_name=fParam.customer_name,
            customer_email=fParam.customer_email,
            customer_phone=fParam.customer_phone,
            amount=fParam.amount,
            payment_method=fParam.payment_method,
            status=fParam.status,
            source=fParam.source,
            trip_id=fParam.trip_id,
            trip_name=fParam.trip_name,
            route_name=fParam.route_name,
            bus_id=fParam.bus_id,
            bus_name=fParam.bus_name,
            departure_date=fParam.departure_date,
            transaction_id=fParam.transaction_id,
        )
        session.add(payment)
        session.commit()
        session.refresh(payment)

        paymentData = jsonable_encoder(paymentRow(payment))
        logEvent(token, request_info, paymentData)
        return {"success": True, "payment": paymentData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.get(
    URL_BUS_PAYMENT,
    tags=["Payment"],
    response_model=PaymentListResponse,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
        ]
    ),
    description="""
    Lists the payments of the caller's business.

    - Booking and ticket payments are merged with the dispatch fees.
    - Dispatch fees are cash payments, completed once the dispatch arrived.
    - Filter by status, payment method, creation day range and search text.
    - `stats` summarises the whole filtered set, not only the current page.
    """,
)
async def fetch_payments(qParam: QueryParams = Depends(), bearer=Depends(bearer_vendor)):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.BUS, PAYMENT_HANDLERS
        )

        rows = unifiedPayments(session, business.id, qParam)
        payments, pagination = paginateList(rows, qParam.page, qParam.limit)
        return {
            "success": True,
            "payments": jsonable_encoder(payments),
            "stats": paymentStats(rows),
            "pagination": pagination,
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.get(
    URL_BUS_PAYMENT_EXPORT,
    tags=["Payment"],
    response_class=Response,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
        ]
    ),
    description="""
    Exports the filtered payments as a CSV file, ignoring pagination.
    """,
)
async def export_payments(qParam: QueryParams = Depends(), bearer=Depends(bearer_vendor)):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.BUS, PAYMENT_HANDLERS
        )

        rows = unifiedPayments(session, business.id, qParam)
        content = toCSV(
            EXPORT_HEADERS,
            (
                [
                    row["payment_id"],
                    row["source"],
                    row["customer_name"],
                    row["customer_email"],
                    row["customer_phone"],
                    row["amount"],
                    row["payment_method"],
                    row["status"],
                    row["trip_name"],
                    row["route_name"],
                    row["bus_name"],
                    row["departure_date"],
                    row["transaction_id"],
                    row["created_on"],
                ]
                for row in rows
            ),
        )
        filename = f"payments-{datetime.now(timezone.utc):%Y-%m-%d}.csv"
        return csvResponse(content, filename)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
