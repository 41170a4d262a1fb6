from datetime import datetime
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from vendorhub.api.bearer import bearer_vendor
from vendorhub.src.db import Route, sessionMaker
from vendorhub.src import exceptions, validators, getters, schemas
from vendorhub.src.enums import OrderIn, RouteStatus, ServiceType, VendorRole
from vendorhub.src.loggers import logEvent
from vendorhub.src.functions import (
    enumStr,
    generateID,
    makeExceptionResponses,
    paginate,
    updateIfChanged,
)
from vendorhub.src.urls import URL_ROUTE, URL_ROUTE_FARE

route_vendor = APIRouter()

ROUTE_MANAGERS = [VendorRole.MANAGER, VendorRole.ADMIN, VendorRole.DISPATCHER]


## Output Schema
class StopSchema(BaseModel):
    stop_id: str
    stop_name: str
    order: int


class FareSegmentSchema(BaseModel):
    segment_id: str
    from_stop: str
    to_stop: str
    amount: float


class RouteSchema(BaseModel):
    id: int
    business_id: int
    name: str
    stops: List[StopSchema]
    fare_segments: List[FareSegmentSchema]
    total_distance: Optional[float]
    is_bidirectional: bool
    status: RouteStatus
    updated_on: Optional[datetime]
    created_on: datetime


class RouteResponse(BaseModel):
    success: bool = True
    route: RouteSchema


class RouteListResponse(BaseModel):
    success: bool = True
    routes: List[RouteSchema]
    pagination: schemas.Pagination


## Input Forms
class CreateForm(BaseModel):
    name: str = Field(Form(min_length=1, max_length=64))
    stops: List[str] = Field(
        Form(min_length=2, description="Stop names in travel order, at least two")
    )
    total_distance: float | None = Field(Form(ge=0, default=None, description="In km"))
    is_bidirectional: bool = Field(Form(default=True))
    status: RouteStatus = Field(
        Form(description=enumStr(RouteStatus), default=RouteStatus.ACTIVE)
    )


class UpdateForm(BaseModel):
    id: int = Field(Form())
    name: str = Field(Form(min_length=1, max_length=64))
    stops: List[str] = Field(
        Form(min_length=2, description="Stop names in travel order, at least two")
    )
    total_distance: float | None = Field(Form(ge=0, default=None, description="In km"))
    is_bidirectional: bool | None = Field(Form(default=None))
    status: RouteStatus | None = Field(
        Form(description=enumStr(RouteStatus), default=None)
    )


class DeleteForm(BaseModel):
    id: int = Field(Form())


class CreateFareForm(BaseModel):
    route_id: int = Field(Form())
    from_stop: str = Field(Form(min_length=1, max_length=64))
    to_stop: str = Field(Form(min_length=1, max_length=64))
    amount: float = Field(Form(gt=0))


class DeleteFareForm(BaseModel):
    route_id: int = Field(Form())
    segment_id: str = Field(Form(max_length=48))


## Query Parameters
class OrderBy(IntEnum):
    id = 1
    name = 2
    created_on = 3


class QueryParams(BaseModel):
    search: str | None = Field(Query(default=None, description="Matches route name"))
    status: RouteStatus | None = Field(
        Query(default=None, description=enumStr(RouteStatus))
    )
    # Ordering
    order_by: OrderBy = Field(Query(default=OrderBy.id, description=enumStr(OrderBy)))
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    page: int = Field(Query(default=1, ge=1))
    limit: int = Field(Query(default=20, gt=0, le=100))


## Function
def makeStops(names: List[str], previous: List[dict] = None) -> List[dict]:
    """
    Build the ordered stop documents of a route.

    Stops that keep their name across an update keep their `stop_id`.
    """
    knownIDs = {stop["stop_name"]: stop["stop_id"] for stop in previous or []}
    stops = []
    for order, name in enumerate(names):
        name = name.strip()
        if not name:
            raise exceptions.InvalidValue("stops")
        stops.append(
            {
                "stop_id": knownIDs.get(name) or generateID("STOP"),
                "stop_name": name,
                "order": order,
            }
        )
    return stops


def getRoute(session: Session, business_id: int, route_id: int) -> Route:
    route = (
        session.query(Route)
        .filter(Route.business_id == business_id)
        .filter(Route.id == route_id)
        .first()
    )
    if route is None:
        raise exceptions.InvalidIdentifier()
    return route


def updateRoute(route: Route, fParam: UpdateForm):
    updateIfChanged(
        route,
        fParam,
        [
            Route.name.key,
            Route.total_distance.key,
            Route.is_bidirectional.key,
            Route.status.key,
        ],
    )
    stops = makeStops(fParam.stops, route.stops)
    if stops != route.stops:
        route.stops = stops
        # Segments between removed stops no longer apply
        names = {stop["stop_name"] for stop in stops}
        route.fare_segments = [
            segment
            for segment in route.fare_segments
            if segment["from_stop"] in names and segment["to_stop"] in names
        ]


def searchRoute(session: Session, business_id: int, qParam: QueryParams):
    query = session.query(Route).filter(Route.business_id == business_id)

    # Filters
    if qParam.search is not None:
        query = query.filter(Route.name.ilike(f"%{qParam.search}%"))
    if qParam.status is not None:
        query = query.filter(Route.status == qParam.status)

    # Ordering
    orderingAttribute = getattr(Route, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc(), Route.id.asc())
    else:
        query = query.order_by(orderingAttribute.desc(), Route.id.desc())

    return paginate(query, qParam.page, qParam.limit)


## API endpoints [Vendor]
@route_vendor.post(
    URL_ROUTE,
    tags=["Route"],
    response_model=RouteResponse,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
            exceptions.InvalidValue,
            exceptions.ExceededMaxLimit,
        ]
    ),
    description="""
    Creates a route for the caller's business.

    - A route has at least two stops, stored in the given order.
    - The number of routes is limited by the active subscription plan.
    - Logs the route creation event.
    """,
)
async def create_route(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.BUS, ROUTE_MANAGERS
        )
        validators.usageLimit(session, business.id, "routes")

        route = Route(
            business_id=business.id,
            name=fParam.name,
            stops=makeStops(fParam.stops),
            fare_segments=[],
            total_distance=fParam.total_distance,
            is_bidirectional=fParam.is_bidirectional,
            status=fParam.status,
        )
        session.add(route)
        session.commit()
        session.refresh(route)

        routeData = jsonable_encoder(route)
        logEvent(token, request_info, routeData)
        return {"success": True, "route": routeData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.patch(
    URL_ROUTE,
    tags=["Route"],
    response_model=RouteResponse,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
            exceptions.InvalidIdentifier,
            exceptions.InvalidValue,
        ]
    ),
    description="""
    Updates a route of the caller's business.

    - The route name and the complete list of stops (at least two) are required.
    - Fare segments referring to removed stops are dropped.
    """,
)
async def update_route(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.BUS, ROUTE_MANAGERS
        )

        route = getRoute(session, business.id, fParam.id)
        updateRoute(route, fParam)
        haveUpdates = session.is_modified(route)
        if haveUpdates:
            session.commit()
            session.refresh(route)

        routeData = jsonable_encoder(route)
        if haveUpdates:
            logEvent(token, request_info, routeData)
        return {"success": True, "route": routeData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.delete(
    URL_ROUTE,
    tags=["Route"],
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
    Deletes a route of the caller's business.
    """,
)
async def delete_route(
    fParam: DeleteForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.BUS, ROUTE_MANAGERS
        )

        route = getRoute(session, business.id, fParam.id)
        routeData = jsonable_encoder(route)
        session.delete(route)
        session.commit()
        logEvent(token, request_info, routeData)
        return {"success": True, "message": "Route deleted successfully"}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.get(
    URL_ROUTE,
    tags=["Route"],
    response_model=RouteListResponse,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.ServiceAccessDenied]
    ),
    description="""
    Lists the routes of the caller's business, with their stops and fare segments.
    """,
)
async def fetch_routes(qParam: QueryParams = Depends(), bearer=Depends(bearer_vendor)):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.BUS
        )

        routes, pagination = searchRoute(session, business.id, qParam)
        return {
            "success": True,
            "routes": jsonable_encoder(routes),
            "pagination": pagination,
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.post(
    URL_ROUTE_FARE,
    tags=["Route"],
    response_model=RouteResponse,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
            exceptions.InvalidIdentifier,
            exceptions.InvalidValue,
        ]
    ),
    description="""
    Adds a fare segment between two different stops of a route.

    - Adding a segment for an existing stop pair replaces its amount.
    """,
)
async def create_fare_segment(
    fParam: CreateFareForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.BUS, ROUTE_MANAGERS
        )

        route = getRoute(session, business.id, fParam.route_id)
        names = [stop["stop_name"] for stop in route.stops]
        if fParam.from_stop not in names:
            raise exceptions.InvalidValue("from_stop")
        if fParam.to_stop not in names or fParam.to_stop == fParam.from_stop:
            raise exceptions.InvalidValue("to_stop")

        segments = [
            segment
            for segment in route.fare_segments
            if (segment["from_stop"], segment["to_stop"])
            != (fParam.from_stop, fParam.to_stop)
        ]
        segment = {
            "segment_id": generateID("FARE"),
            "from_stop": fParam.from_stop,
            "to_stop": fParam.to_stop,
            "amount": fParam.amount,
        }
        route.fare_segments = segments + [segment]
        session.commit()
        session.refresh(route)

        routeData = jsonable_encoder(route)
        logEvent(token, request_info, segment)
        return {"success": True, "route": routeData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.delete(
    URL_ROUTE_FARE,
    tags=["Route"],
    response_model=RouteResponse,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
            exceptions.InvalidIdentifier,
        ]
    ),
    description="""
    Removes a fare segment from a route.
    """,
)
async def delete_fare_segment(
    fParam: DeleteFareForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.BUS, ROUTE_MANAGERS
        )

        route = getRoute(session, business.id, fParam.route_id)
        segments = [
            segment
            for segment in route.fare_segments
            if segment["segment_id"] != fParam.segment_id
        ]
        if len(segments) == len(route.fare_segments):
            raise exceptions.InvalidIdentifier()

        route.fare_segments = segments
        session.commit()
        session.refresh(route)

        routeData = jsonable_encoder(route)
        logEvent(token, request_info, {"route_id": route.id, **fParam.model_dump()})
        return {"success": True, "route": routeData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
