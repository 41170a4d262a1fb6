from datetime import date as Date, datetime, time, timedelta, timezone
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status, Form
from sqlalchemy import or_
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict, Field

from vendorhub.api.bearer import bearer_vendor
from vendorhub.src.constants import REGEX_CLOCK_TIME
from vendorhub.src.db import Bus, Dispatch, DispatchPassenger, Vendor, sessionMaker
from vendorhub.src import exceptions, validators, getters, schemas
from vendorhub.src.enums import (
    DispatchStatus,
    MaintenanceStatus,
    OrderIn,
    PassengerStatus,
    ServiceType,
    VendorRole,
)
from vendorhub.src.loggers import logEvent
from vendorhub.src.functions import (
    csvResponse,
    enumStr,
    generateID,
    makeExceptionResponses,
    paginate,
    toCSV,
    updateIfChanged,
)
from vendorhub.src.urls import URL_DISPATCH, URL_DISPATCH_EXPORT, URL_DISPATCH_PASSENGER

route_vendor = APIRouter()

DISPATCH_MANAGERS = [VendorRole.MANAGER, VendorRole.ADMIN, VendorRole.DISPATCHER]
PASSENGER_HANDLERS = DISPATCH_MANAGERS + [
    VendorRole.CONDUCTOR,
    VendorRole.TICKET_SELLER,
]

# Allowed status changes of a dispatch
STATUS_TRANSITIONS = {
    DispatchStatus.SCHEDULED: [
        DispatchStatus.BOARDING,
        DispatchStatus.DELAYED,
        DispatchStatus.CANCELLED,
    ],
    DispatchStatus.BOARDING: [
        DispatchStatus.DEPARTED,
        DispatchStatus.DELAYED,
        DispatchStatus.CANCELLED,
    ],
    DispatchStatus.DEPARTED: [
        DispatchStatus.IN_TRANSIT,
        DispatchStatus.ARRIVED,
        DispatchStatus.DELAYED,
    ],
    DispatchStatus.IN_TRANSIT: [DispatchStatus.ARRIVED, DispatchStatus.DELAYED],
    DispatchStatus.DELAYED: [
        DispatchStatus.BOARDING,
        DispatchStatus.DEPARTED,
        DispatchStatus.IN_TRANSIT,
        DispatchStatus.ARRIVED,
        DispatchStatus.CANCELLED,
    ],
    DispatchStatus.ARRIVED: [],
    DispatchStatus.CANCELLED: [],
}

EXPORT_HEADERS = [
    "Dispatch ID",
    "Trip",
    "Route",
    "Bus",
    "Bus Number",
    "Driver",
    "Conductor",
    "Departure Date",
    "Departure Time",
    "Status",
    "Passengers",
    "Onboard",
    "Completed",
    "No Show",
    "Billed Price",
    "Notes",
]


## Output Schema
class PassengerSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    phone_number: Optional[str]
    seat_number: Optional[str]
    booking_reference: Optional[str]
    status: PassengerStatus
    created_on: datetime


class DispatchSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    dispatch_id: str
    business_id: int
    trip_id: str
    trip_name: str
    route_name: str
    bus_id: Optional[int]
    bus_name: str
    bus_number: Optional[str]
    driver_id: Optional[int]
    driver_name: Optional[str]
    conductor_id: Optional[int]
    conductor_name: Optional[str]
    departure_date: datetime
    departure_time: Optional[str]
    actual_departure: Optional[datetime]
    actual_arrival: Optional[datetime]
    status: DispatchStatus
    dispatch_stop: Optional[str]
    receiver_contact: Optional[str]
    parcel_description: Optional[str]
    parcel_value: Optional[float]
    billed_price: float
    maintenance_status: MaintenanceStatus
    total_passengers: int
    onboard_passengers: int
    completed_passengers: int
    no_show_passengers: int
    notes: Optional[str]
    dispatched_by: Optional[int]
    dispatched_by_name: Optional[str]
    passengers: List[PassengerSchema]
    updated_on: Optional[datetime]
    created_on: datetime


class DispatchResponse(BaseModel):
    success: bool = True
    dispatch: DispatchSchema


class DispatchListResponse(BaseModel):
    success: bool = True
    dispatches: List[DispatchSchema]
    pagination: schemas.Pagination


## Input Forms
class CreateForm(BaseModel):
    trip_id: str = Field(Form(min_length=1, max_length=48))
    trip_name: str = Field(Form(min_length=1, max_length=128))
    route_name: str = Field(Form(min_length=1, max_length=128))
    bus_id: int = Field(Form())
    bus_name: str = Field(Form(min_length=1, max_length=64))
    departure_date: datetime = Field(Form())
    bus_number: str | None = Field(Form(max_length=64, default=None))
    departure_time: str | None = Field(
        Form(pattern=REGEX_CLOCK_TIME, default=None, description="HH:MM")
    )
    driver_id: int | None = Field(Form(default=None))
    driver_name: str | None = Field(Form(max_length=64, default=None))
    conductor_id: int | None = Field(Form(default=None))
    conductor_name: str | None = Field(Form(max_length=64, default=None))
    status: DispatchStatus = Field(
        Form(description=enumStr(DispatchStatus), default=DispatchStatus.SCHEDULED)
    )
    dispatch_stop: str | None = Field(Form(max_length=128, default=None))
    receiver_contact: str | None = Field(Form(max_length=64, default=None))
    parcel_description: str | None = Field(Form(max_length=1024, default=None))
    parcel_value: float | None = Field(Form(ge=0, default=None))
    billed_price: float = Field(Form(ge=0, default=0))
    maintenance_status: MaintenanceStatus = Field(
        Form(description=enumStr(MaintenanceStatus), default=MaintenanceStatus.GOOD)
    )
    notes: str | None = Field(Form(max_length=2048, default=None))


class UpdateForm(BaseModel):
    dispatch_id: str = Field(Form(max_length=48))
    status: DispatchStatus = Field(Form(description=enumStr(DispatchStatus)))
    departure_time: str | None = Field(
        Form(pattern=REGEX_CLOCK_TIME, default=None, description="HH:MM")
    )
    dispatch_stop: str | None = Field(Form(max_length=128, default=None))
    receiver_contact: str | None = Field(Form(max_length=64, default=None))
    parcel_description: str | None = Field(Form(max_length=1024, default=None))
    parcel_value: float | None = Field(Form(ge=0, default=None))
    billed_price: float | None = Field(Form(ge=0, default=None))
    maintenance_status: MaintenanceStatus | None = Field(
        Form(description=enumStr(MaintenanceStatus), default=None)
    )
    notes: str | None = Field(Form(max_length=2048, default=None))


class DeleteForm(BaseModel):
    dispatch_id: str = Field(Form(max_length=48))


class CreatePassengerForm(BaseModel):
    dispatch_id: str = Field(Form(max_length=48))
    name: str = Field(Form(min_length=1, max_length=64))
    phone_number: str | None = Field(Form(max_length=32, default=None))
    seat_number: str | None = Field(Form(max_length=8, default=None))
    booking_reference: str | None = Field(Form(max_length=48, default=None))
    status: PassengerStatus = Field(
        Form(description=enumStr(PassengerStatus), default=PassengerStatus.CONFIRMED)
    )


class UpdatePassengerForm(BaseModel):
    dispatch_id: str = Field(Form(max_length=48))
    passenger_id: int = Field(Form())
    status: PassengerStatus = Field(Form(description=enumStr(PassengerStatus)))


class DeletePassengerForm(BaseModel):
    dispatch_id: str = Field(Form(max_length=48))
    passenger_id: int = Field(Form())


## Query Parameters
class OrderBy(IntEnum):
    id = 1
    departure_date = 2
    created_on = 3


class QueryParams(BaseModel):
    status: DispatchStatus | None = Field(
        Query(default=None, description=enumStr(DispatchStatus))
    )
    bus_id: int | None = Field(Query(default=None))
    date: Optional[Date] = Field(Query(default=None, description="Departure day"))
    search: str | None = Field(
        Query(default=None, description="Matches IDs, trip, route, bus and crew names")
    )
    # Ordering
    order_by: OrderBy = Field(
        Query(default=OrderBy.departure_date, description=enumStr(OrderBy))
    )
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    page: int = Field(Query(default=1, ge=1))
    limit: int = Field(Query(default=10, gt=0, le=100))


## Function
def filterDispatch(session: Session, business_id: int, qParam: QueryParams):
    query = session.query(Dispatch).filter(Dispatch.business_id == business_id)

    # Filters
    if qParam.status is not None:
        query = query.filter(Dispatch.status == qParam.status)
    if qParam.bus_id is not None:
        query = query.filter(Dispatch.bus_id == qParam.bus_id)
    if qParam.date is not None:
        dayStart = datetime.combine(qParam.date, time.min, tzinfo=timezone.utc)
        query = query.filter(Dispatch.departure_date >= dayStart)
        query = query.filter(Dispatch.departure_date < dayStart + timedelta(days=1))
    if qParam.search is not None:
        pattern = f"%{qParam.search}%"
        query = query.filter(
            or_(
                Dispatch.dispatch_id.ilike(pattern),
                Dispatch.trip_name.ilike(pattern),
                Dispatch.route_name.ilike(pattern),
                Dispatch.bus_name.ilike(pattern),
                Dispatch.bus_number.ilike(pattern),
                Dispatch.driver_name.ilike(pattern),
                Dispatch.conductor_name.ilike(pattern),
            )
        )

    # Ordering
    orderingAttribute = getattr(Dispatch, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc(), Dispatch.id.asc())
    else:
        query = query.order_by(orderingAttribute.desc(), Dispatch.id.desc())
    return query


def searchDispatch(session: Session, business_id: int, qParam: QueryParams):
    return paginate(filterDispatch(session, business_id, qParam), qParam.page, qParam.limit)


def getDispatch(session: Session, business_id: int, dispatch_id: str) -> Dispatch:
    dispatch = (
        session.query(Dispatch)
        .filter(Dispatch.business_id == business_id)
        .filter(Dispatch.dispatch_id == dispatch_id)
        .first()
    )
    if dispatch is None:
        raise exceptions.InvalidIdentifier()
    return dispatch


def crewMember(session: Session, business_id: int, vendor_id: int, column) -> Vendor:
    member = (
        session.query(Vendor)
        .filter(Vendor.business_id == business_id)
        .filter(Vendor.id == vendor_id)
        .first()
    )
    if member is None:
        raise exceptions.UnknownValue(column)
    return member


def syncPassengerCounts(dispatch: Dispatch) -> None:
    """Recompute the passenger counters from the passenger list."""
    statuses = [p.status for p in dispatch.passengers]
    dispatch.total_passengers = len(statuses)
    dispatch.onboard_passengers = statuses.count(PassengerStatus.ONBOARD)
    dispatch.completed_passengers = statuses.count(PassengerStatus.COMPLETED)
    dispatch.no_show_passengers = statuses.count(PassengerStatus.NO_SHOW)


def updateDispatch(dispatch: Dispatch, fParam: UpdateForm) -> None:
    updateIfChanged(
        dispatch,
        fParam,
        [
            Dispatch.departure_time.key,
            Dispatch.dispatch_stop.key,
            Dispatch.receiver_contact.key,
            Dispatch.parcel_description.key,
            Dispatch.parcel_value.key,
            Dispatch.billed_price.key,
            Dispatch.maintenance_status.key,
            Dispatch.notes.key,
        ],
    )
    currentStatus = DispatchStatus(dispatch.status)
    if fParam.status == currentStatus:
        return
    validators.stateTransition(
        STATUS_TRANSITIONS, currentStatus, fParam.status, Dispatch.status
    )
    dispatch.status = fParam.status
    now = datetime.now(timezone.utc)
    if fParam.status == DispatchStatus.DEPARTED and dispatch.actual_departure is None:
        dispatch.actual_departure = now
    if fParam.status == DispatchStatus.ARRIVED:
        dispatch.actual_arrival = now


def dispatchRow(dispatch: Dispatch) -> list:
    return [
        dispatch.dispatch_id,
        dispatch.trip_name,
        dispatch.route_name,
        dispatch.bus_name,
        dispatch.bus_number,
        dispatch.driver_name,
        dispatch.conductor_name,
        dispatch.departure_date.date(),
        dispatch.departure_time,
        dispatch.status,
        dispatch.total_passengers,
        dispatch.onboard_passengers,
        dispatch.completed_passengers,
        dispatch.no_show_passengers,
        dispatch.billed_price,
        dispatch.notes,
    ]


## API endpoints [Vendor]
@route_vendor.post(
    URL_DISPATCH,
    tags=["Dispatch"],
    response_model=DispatchResponse,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
            exceptions.MissingParameter,
            exceptions.UnknownValue,
            exceptions.ExceededMaxLimit,
        ]
    ),
    description="""
    Creates a dispatch (one departure of a bus on a trip, optionally carrying a parcel).

    - Required: trip_id, trip_name, route_name, bus_id, bus_name, departure_date.
    - When bus_number is omitted it is taken from the number plate of the fleet bus,
      falling back to bus_name when the bus is not part of the fleet.
    - Driver and conductor must be accounts of the business; their names default to the account names.
    - The number of dispatches is limited by the active subscription plan.
    - Only managers, admins and dispatchers of bus businesses can create dispatches.
    """,
)
async def create_dispatch(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.BUS, DISPATCH_MANAGERS
        )
        validators.usageLimit(session, business.id, "dispatches")

        busNumber = fParam.bus_number
        if busNumber is None:
            bus = (
                session.query(Bus)
                .filter(Bus.business_id == business.id)
                .filter(Bus.id == fParam.bus_id)
                .first()
            )
            busNumber = bus.number_plate if bus is not None else fParam.bus_name

        driverName, conductorName = fParam.driver_name, fParam.conductor_name
        if fParam.driver_id is not None:
            driver = crewMember(session, business.id, fParam.driver_id, Dispatch.driver_id)
            driverName = driverName or driver.full_name
        if fParam.conductor_id is not None:
            conductor = crewMember(
                session, business.id, fParam.conductor_id, Dispatch.conductor_id
            )
            conductorName = conductorName or conductor.full_name

        dispatch = Dispatch(
            dispatch_id=generateID("DISP"),
            business_id=business.id,
            trip_id=fParam.trip_id,
            trip_name=fParam.trip_name,
            route_name=fParam.route_name,
            bus_id=fParam.bus_id,
            bus_name=fParam.bus_name,
            bus_number=busNumber,
            driver_id=fParam.driver_id,
            driver_name=driverName,
            conductor_id=fParam.conductor_id,
            conductor_name=conductorName,
            departure_date=fParam.departure_date,
            departure_time=fParam.departure_time,
            status=fParam.status,
            dispatch_stop=fParam.dispatch_stop,
            receiver_contact=fParam.receiver_contact,
            parcel_description=fParam.parcel_description,
            parcel_value=fParam.parcel_value,
            billed_price=fParam.billed_price,
            maintenance_status=fParam.maintenance_status,
            notes=fParam.notes,
            dispatched_by=vendor.id,
            dispatched_by_name=vendor.full_name or vendor.username,
            passengers=[],
        )
        session.add(dispatch)
        session.commit()
        session.refresh(dispatch)

        dispatchData = jsonable_encoder(dispatch)
        logEvent(token, request_info, dispatchData)
        return {"success": True, "dispatch": dispatchData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.patch(
    URL_DISPATCH,
    tags=["Dispatch"],
    response_model=DispatchResponse,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
            exceptions.InvalidIdentifier,
            exceptions.InvalidStateTransition,
        ]
    ),
    description="""
    Updates the status and the details of a dispatch.

    - dispatch_id and status are required; other fields are updated when provided.
    - Status changes follow scheduled → boarding → departed → in_transit → arrived,
      with delayed reachable from any running state and cancelled before departure.
      Arrived and cancelled dispatches are final.
    - Reaching `departed` records actual_departure, reaching `arrived` records actual_arrival.
    """,
)
async def update_dispatch(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.BUS, DISPATCH_MANAGERS
        )

        dispatch = getDispatch(session, business.id, fParam.dispatch_id)
        updateDispatch(dispatch, fParam)
        haveUpdates = session.is_modified(dispatch)
        if haveUpdates:
            session.commit()
            session.refresh(dispatch)

        dispatchData = jsonable_encoder(dispatch)
        if haveUpdates:
            logEvent(token, request_info, dispatchData)
        return {"success": True, "dispatch": dispatchData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.delete(
    URL_DISPATCH,
    tags=["Dispatch"],
    response_model=schemas.SuccessResponse,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
            exceptions.InvalidIdentifier,
        ]
    ),
    description="""
    Deletes a dispatch together with its passenger list.
    """,
)
async def delete_dispatch(
    fParam: DeleteForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.BUS, DISPATCH_MANAGERS
        )

        dispatch = getDispatch(session, business.id, fParam.dispatch_id)
        dispatchData = jsonable_encoder(dispatch)
        session.delete(dispatch)
        session.commit()
        logEvent(token, request_info, dispatchData)
        return {"success": True, "message": "Dispatch deleted"}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.get(
    URL_DISPATCH,
    tags=["Dispatch"],
    response_model=DispatchListResponse,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.ServiceAccessDenied]
    ),
    description="""
    Lists the dispatches of the caller's bus company.

    - Filter by `status`, `bus_id` and departure `date` (YYYY-MM-DD).
    - `search` matches the dispatch ID, trip, route, bus and crew names.
    - Paginate with `page` and `limit` (default 10); `pages` is ceil(total / limit).
    """,
)
async def fetch_dispatch(qParam: QueryParams = Depends(), bearer=Depends(bearer_vendor)):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.BUS
        )

        dispatches, pagination = searchDispatch(session, business.id, qParam)
        return {
            "success": True,
            "dispatches": jsonable_encoder(dispatches),
            "pagination": pagination,
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.get(
    URL_DISPATCH_EXPORT,
    tags=["Dispatch"],
    response_class=Response,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.ServiceAccessDenied]
    ),
    description="""
    Exports the dispatches matching the filters of the list endpoint as CSV.

    - One header line followed by one line per dispatch; pagination is ignored.
    """,
)
async def export_dispatch(qParam: QueryParams = Depends(), bearer=Depends(bearer_vendor)):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.BUS
        )

        dispatches = filterDispatch(session, business.id, qParam).all()
        content = toCSV(EXPORT_HEADERS, [dispatchRow(d) for d in dispatches])
        filename = f"dispatches-{datetime.now(timezone.utc):%Y-%m-%d}.csv"
        return csvResponse(content, filename)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.post(
    URL_DISPATCH_PASSENGER,
    tags=["Dispatch"],
    response_model=DispatchResponse,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
            exceptions.InvalidIdentifier,
            exceptions.InactiveResource,
        ]
    ),
    description="""
    Adds a passenger to a dispatch and re-syncs the passenger counters.

    - Passengers can not be added to arrived or cancelled dispatches.
    """,
)
async def create_passenger(
    fParam: CreatePassengerForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.BUS, PASSENGER_HANDLERS
        )

        dispatch = getDispatch(session, business.id, fParam.dispatch_id)
        if dispatch.status in (DispatchStatus.ARRIVED, DispatchStatus.CANCELLED):
            raise exceptions.InactiveResource(Dispatch)

        passenger = DispatchPassenger(
            name=fParam.name,
            phone_number=fParam.phone_number,
            seat_number=fParam.seat_number,
            booking_reference=fParam.booking_reference,
            status=fParam.status,
        )
        dispatch.passengers.append(passenger)
        syncPassengerCounts(dispatch)
        session.commit()
        session.refresh(dispatch)
        session.refresh(passenger)

        dispatchData = jsonable_encoder(dispatch)
        logEvent(token, request_info, jsonable_encoder(passenger))
        return {"success": True, "dispatch": dispatchData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.patch(
    URL_DISPATCH_PASSENGER,
    tags=["Dispatch"],
    response_model=DispatchResponse,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
            exceptions.InvalidIdentifier,
        ]
    ),
    description="""
    Updates the status of a passenger (confirmed, onboard, completed or no_show)
    and re-syncs the passenger counters of the dispatch.
    """,
)
async def update_passenger(
    fParam: UpdatePassengerForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.BUS, PASSENGER_HANDLERS
        )

        dispatch = getDispatch(session, business.id, fParam.dispatch_id)
        passenger = next(
            (p for p in dispatch.passengers if p.id == fParam.passenger_id), None
        )
        if passenger is None:
            raise exceptions.InvalidIdentifier()

        passenger.status = fParam.status
        syncPassengerCounts(dispatch)
        session.commit()
        session.refresh(dispatch)

        dispatchData = jsonable_encoder(dispatch)
        logEvent(token, request_info, jsonable_encoder(passenger))
        return {"success": True, "dispatch": dispatchData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.delete(
    URL_DISPATCH_PASSENGER,
    tags=["Dispatch"],
    response_model=DispatchResponse,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
            exceptions.InvalidIdentifier,
        ]
    ),
    description="""
    Removes a passenger from a dispatch and re-syncs the passenger counters.
    """,
)
async def delete_passenger(
    fParam: DeletePassengerForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.BUS, PASSENGER_HANDLERS
        )

        dispatch = getDispatch(session, business.id, fParam.dispatch_id)
        passenger = next(
            (p for p in dispatch.passengers if p.id == fParam.passenger_id), None
        )
        if passenger is None:
            raise exceptions.InvalidIdentifier()

        passengerData = jsonable_encoder(passenger)
        dispatch.passengers.remove(passenger)
        syncPassengerCounts(dispatch)
        session.commit()
        session.refresh(dispatch)

        dispatchData = jsonable_encoder(dispatch)
        logEvent(token, request_info, passengerData)
        return {"success": True, "dispatch": dispatchData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
