from datetime import datetime
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from sqlalchemy import or_
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from vendorhub.api.bearer import bearer_vendor
from vendorhub.src.constants import REGEX_NUMBER_PLATE
from vendorhub.src.db import Bus, sessionMaker
from vendorhub.src import exceptions, validators, getters, schemas
from vendorhub.src.enums import BusStatus, OrderIn, ServiceType, VendorRole
from vendorhub.src.loggers import logEvent
from vendorhub.src.functions import (
    enumStr,
    makeExceptionResponses,
    paginate,
    updateIfChanged,
)
from vendorhub.src.urls import URL_BUS

route_vendor = APIRouter()

FLEET_MANAGERS = [VendorRole.MANAGER, VendorRole.ADMIN, VendorRole.DISPATCHER]


## Output Schema
class BusSchema(BaseModel):
    id: int
    business_id: int
    name: str
    number_plate: str
    seats: int
    bus_type: str
    has_ac: bool
    image: Optional[str]
    status: BusStatus
    updated_on: Optional[datetime]
    created_on: datetime


class BusResponse(BaseModel):
    success: bool = True
    bus: BusSchema


class BusListResponse(BaseModel):
    success: bool = True
    buses: List[BusSchema]
    pagination: schemas.Pagination


## Input Forms
class CreateForm(BaseModel):
    name: str = Field(Form(min_length=1, max_length=32))
    number_plate: str = Field(
        Form(pattern=REGEX_NUMBER_PLATE, max_length=16, description="Upper case")
    )
    seats: int = Field(Form(ge=1, le=120))
    bus_type: str = Field(Form(min_length=1, max_length=32))
    has_ac: bool = Field(Form(default=False))
    image: str | None = Field(Form(max_length=2048, default=None))
    status: BusStatus = Field(
        Form(description=enumStr(BusStatus), default=BusStatus.ACTIVE)
    )


class UpdateForm(BaseModel):
    id: int = Field(Form())
    name: str | None = Field(Form(min_length=1, max_length=32, default=None))
    number_plate: str | None = Field(
        Form(pattern=REGEX_NUMBER_PLATE, max_length=16, default=None)
    )
    seats: int | None = Field(Form(ge=1, le=120, default=None))
    bus_type: str | None = Field(Form(min_length=1, max_length=32, default=None))
    has_ac: bool | None = Field(Form(default=None))
    image: str | None = Field(Form(max_length=2048, default=None))
    status: BusStatus | None = Field(Form(description=enumStr(BusStatus), default=None))


class DeleteForm(BaseModel):
    id: int = Field(Form())


## Query Parameters
class OrderBy(IntEnum):
    id = 1
    name = 2
    seats = 3
    created_on = 4


class QueryParams(BaseModel):
    search: str | None = Field(
        Query(default=None, description="Matches name and number plate")
    )
    status: BusStatus | None = Field(
        Query(default=None, description=enumStr(BusStatus))
    )
    bus_type: str | None = Field(Query(default=None))
    has_ac: bool | None = Field(Query(default=None))
    seats_ge: int | None = Field(Query(default=None))
    seats_le: int | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(Query(default=OrderBy.id, description=enumStr(OrderBy)))
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    page: int = Field(Query(default=1, ge=1))
    limit: int = Field(Query(default=20, gt=0, le=100))


## Function
def checkNumberPlate(
    session: Session, business_id: int, number_plate: str, exclude_id: int = None
):
    query = (
        session.query(Bus)
        .filter(Bus.business_id == business_id)
        .filter(Bus.number_plate == number_plate)
    )
    if exclude_id is not None:
        query = query.filter(Bus.id != exclude_id)
    if query.first() is not None:
        raise exceptions.DuplicateValue(Bus.number_plate)


def getBus(session: Session, business_id: int, bus_id: int) -> Bus:
    bus = (
        session.query(Bus)
        .filter(Bus.business_id == business_id)
        .filter(Bus.id == bus_id)
        .first()
    )
    if bus is None:
        raise exceptions.InvalidIdentifier()
    return bus


def updateBus(bus: Bus, fParam: UpdateForm):
    updateIfChanged(
        bus,
        fParam,
        [
            Bus.name.key,
            Bus.number_plate.key,
            Bus.seats.key,
            Bus.bus_type.key,
            Bus.has_ac.key,
            Bus.image.key,
            Bus.status.key,
        ],
    )


def searchBus(session: Session, business_id: int, qParam: QueryParams):
    query = session.query(Bus).filter(Bus.business_id == business_id)

    # Filters
    if qParam.search is not None:
        pattern = f"%{qParam.search}%"
        query = query.filter(
            or_(Bus.name.ilike(pattern), Bus.number_plate.ilike(pattern))
        )
    if qParam.status is not None:
        query = query.filter(Bus.status == qParam.status)
    if qParam.bus_type is not None:
        query = query.filter(Bus.bus_type == qParam.bus_type)
    if qParam.has_ac is not None:
        query = query.filter(Bus.has_ac == qParam.has_ac)
    # seats based
    if qParam.seats_ge is not None:
        query = query.filter(Bus.seats >= qParam.seats_ge)
    if qParam.seats_le is not None:
        query = query.filter(Bus.seats <= qParam.seats_le)

    # Ordering
    orderingAttribute = getattr(Bus, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc(), Bus.id.asc())
    else:
        query = query.order_by(orderingAttribute.desc(), Bus.id.desc())

    return paginate(query, qParam.page, qParam.limit)


## API endpoints [Vendor]
@route_vendor.post(
    URL_BUS,
    tags=["Fleet"],
    response_model=BusResponse,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
            exceptions.DuplicateValue,
            exceptions.ExceededMaxLimit,
        ]
    ),
    description="""
    Adds a bus to the fleet of the caller's business.

    - Number plates are unique within a business.
    - The number of buses is limited by the active subscription plan.
    - Logs the bus creation event.
    """,
)
async def create_bus(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.BUS, FLEET_MANAGERS
        )
        validators.usageLimit(session, business.id, "buses")
        checkNumberPlate(session, business.id, fParam.number_plate)

        bus = Bus(
            business_id=business.id,
            name=fParam.name,
            number_plate=fParam.number_plate,
            seats=fParam.seats,
            bus_type=fParam.bus_type,
            has_ac=fParam.has_ac,
            image=fParam.image,
            status=fParam.status,
        )
        session.add(bus)
        session.commit()
        session.refresh(bus)

        busData = jsonable_encoder(bus)
        logEvent(token, request_info, busData)
        return {"success": True, "bus": busData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.patch(
    URL_BUS,
    tags=["Fleet"],
    response_model=BusResponse,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
            exceptions.InvalidIdentifier,
            exceptions.DuplicateValue,
        ]
    ),
    description="""
    Updates a bus of the caller's business.

    - Only the provided fields are updated.
    - Changes are saved only if the bus data has been modified.
    """,
)
async def update_bus(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.BUS, FLEET_MANAGERS
        )

        bus = getBus(session, business.id, fParam.id)
        if fParam.number_plate is not None and fParam.number_plate != bus.number_plate:
            checkNumberPlate(session, business.id, fParam.number_plate, bus.id)

        updateBus(bus, fParam)
        haveUpdates = session.is_modified(bus)
        if haveUpdates:
            session.commit()
            session.refresh(bus)

        busData = jsonable_encoder(bus)
        if haveUpdates:
            logEvent(token, request_info, busData)
        return {"success": True, "bus": busData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.delete(
    URL_BUS,
    tags=["Fleet"],
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
    Removes a bus from the fleet.

    - Dispatches and payments keep their copy of the bus name and number.
    """,
)
async def delete_bus(
    fParam: DeleteForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.BUS, FLEET_MANAGERS
        )

        bus = getBus(session, business.id, fParam.id)
        busData = jsonable_encoder(bus)
        session.delete(bus)
        session.commit()
        logEvent(token, request_info, busData)
        return {"success": True, "message": "Bus deleted"}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.get(
    URL_BUS,
    tags=["Fleet"],
    response_model=BusListResponse,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.ServiceAccessDenied]
    ),
    description="""
    Lists the buses of the caller's business.

    - Search by name or number plate, filter by status, type, AC and seats.
    - Paginate with `page` and `limit`.
    """,
)
async def fetch_buses(qParam: QueryParams = Depends(), bearer=Depends(bearer_vendor)):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.BUS
        )

        buses, pagination = searchBus(session, business.id, qParam)
        return {
            "success": True,
            "buses": jsonable_encoder(buses),
            "pagination": pagination,
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
