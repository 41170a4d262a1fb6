from datetime import datetime
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field, EmailStr
from pydantic_extra_types.phone_numbers import PhoneNumber

from vendorhub.api.bearer import bearer_admin, bearer_vendor
from vendorhub.src.constants import REGEX_PASSWORD, REGEX_USERNAME
from vendorhub.src.db import Business, Vendor, VendorToken, sessionMaker
from vendorhub.src import argon2, exceptions, validators, getters, schemas
from vendorhub.src.enums import BusinessStatus, OrderIn, ServiceType, VendorRole
from vendorhub.src.loggers import logEvent
from vendorhub.src.functions import (
    enumStr,
    makeExceptionResponses,
    paginate,
    updateIfChanged,
)
from vendorhub.src.urls import URL_BUSINESS, URL_BUSINESS_MANAGER

route_admin = APIRouter()
route_vendor = APIRouter()


## Output Schema
class BusinessSchema(BaseModel):
    id: int
    name: str
    service_type: ServiceType
    status: BusinessStatus
    contact_person: Optional[str]
    phone_number: Optional[str]
    email_id: Optional[str]
    address: Optional[str]
    updated_on: Optional[datetime]
    created_on: datetime


class BusinessResponse(BaseModel):
    success: bool = True
    business: BusinessSchema


class BusinessListResponse(BaseModel):
    success: bool = True
    businesses: List[BusinessSchema]
    pagination: schemas.Pagination


class ManagerSchema(BaseModel):
    id: int
    business_id: int
    username: str
    full_name: Optional[str]
    role: str
    status: str
    created_on: datetime


class ManagerResponse(BaseModel):
    success: bool = True
    manager: ManagerSchema


## Input Forms
class CreateForm(BaseModel):
    name: str = Field(Form(min_length=1, max_length=64))
    service_type: ServiceType = Field(Form(description=enumStr(ServiceType)))
    status: BusinessStatus = Field(
        Form(description=enumStr(BusinessStatus), default=BusinessStatus.ACTIVE)
    )
    contact_person: str | None = Field(Form(max_length=64, default=None))
    phone_number: PhoneNumber | None = Field(
        Form(max_length=32, default=None, description="Phone number in RFC3966 format")
    )
    email_id: EmailStr | None = Field(
        Form(max_length=256, default=None, description="Email in RFC 5322 format")
    )
    address: str | None = Field(Form(max_length=512, default=None))


class UpdateForm(BaseModel):
    id: int = Field(Form())
    name: str | None = Field(Form(min_length=1, max_length=64, default=None))
    status: BusinessStatus | None = Field(
        Form(description=enumStr(BusinessStatus), default=None)
    )
    contact_person: str | None = Field(Form(max_length=64, default=None))
    phone_number: PhoneNumber | None = Field(
        Form(max_length=32, default=None, description="Phone number in RFC3966 format")
    )
    email_id: EmailStr | None = Field(
        Form(max_length=256, default=None, description="Email in RFC 5322 format")
    )
    address: str | None = Field(Form(max_length=512, default=None))


class CreateManagerForm(BaseModel):
    business_id: int = Field(Form())
    username: str = Field(Form(pattern=REGEX_USERNAME, min_length=4, max_length=32))
    password: str = Field(Form(pattern=REGEX_PASSWORD, min_length=8, max_length=32))
    full_name: str | None = Field(Form(max_length=64, default=None))
    phone_number: PhoneNumber | None = Field(
        Form(max_length=32, default=None, description="Phone number in RFC3966 format")
    )
    email_id: EmailStr | None = Field(
        Form(max_length=256, default=None, description="Email in RFC 5322 format")
    )


## Query Parameters
class OrderBy(IntEnum):
    id = 1
    name = 2
    updated_on = 3
    created_on = 4


class QueryParams(BaseModel):
    search: str | None = Field(Query(default=None))
    service_type: ServiceType | None = Field(
        Query(default=None, description=enumStr(ServiceType))
    )
    status: BusinessStatus | None = Field(
        Query(default=None, description=enumStr(BusinessStatus))
    )
    # Ordering
    order_by: OrderBy = Field(Query(default=OrderBy.id, description=enumStr(OrderBy)))
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    page: int = Field(Query(default=1, ge=1))
    limit: int = Field(Query(default=20, gt=0, le=100))


## Function
def updateBusiness(session: Session, business: Business, fParam: UpdateForm):
    updateIfChanged(
        business,
        fParam,
        [
            Business.name.key,
            Business.contact_person.key,
            Business.phone_number.key,
            Business.email_id.key,
            Business.address.key,
        ],
    )
    if fParam.status is not None and business.status != fParam.status:
        if fParam.status == BusinessStatus.SUSPENDED:
            session.query(VendorToken).filter(
                VendorToken.business_id == business.id
            ).delete()
        business.status = fParam.status


def searchBusiness(session: Session, qParam: QueryParams):
    query = session.query(Business)

    # Filters
    if qParam.search is not None:
        query = query.filter(Business.name.ilike(f"%{qParam.search}%"))
    if qParam.service_type is not None:
        query = query.filter(Business.service_type == qParam.service_type)
    if qParam.status is not None:
        query = query.filter(Business.status == qParam.status)

    # Ordering
    orderingAttribute = getattr(Business, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    return paginate(query, qParam.page, qParam.limit)


## API endpoints [Admin]
@route_admin.post(
    URL_BUSINESS,
    tags=["Business"],
    response_model=BusinessResponse,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.DuplicateValue]
    ),
    description="""
    Onboards a new business (tenant) of one of the verticals: bus, hotel, pharmacy or store.

    - Business names are unique.
    - The service type decides which vendor endpoints the accounts of the business can use.
    - Logs the business creation event.
    """,
)
async def create_business(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_admin),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.adminToken(bearer, session)
        validators.activeAccount(getters.admin(token, session))

        duplicate = session.query(Business).filter(Business.name == fParam.name).first()
        if duplicate is not None:
            raise exceptions.DuplicateValue(Business.name)

        business = Business(
            name=fParam.name,
            service_type=fParam.service_type,
            status=fParam.status,
            contact_person=fParam.contact_person,
            phone_number=fParam.phone_number,
            email_id=fParam.email_id,
            address=fParam.address,
        )
        session.add(business)
        session.commit()
        session.refresh(business)

        businessData = jsonable_encoder(business)
        logEvent(token, request_info, businessData)
        return {"success": True, "business": businessData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.patch(
    URL_BUSINESS,
    tags=["Business"],
    response_model=BusinessResponse,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.InvalidIdentifier]
    ),
    description="""
    Updates an existing business.

    - Only the provided fields are updated.
    - If the status is set to SUSPENDED, all tokens of the business accounts are revoked.
    """,
)
async def update_business(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_admin),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.adminToken(bearer, session)
        validators.activeAccount(getters.admin(token, session))

        business = session.query(Business).filter(Business.id == fParam.id).first()
        if business is None:
            raise exceptions.InvalidIdentifier()

        updateBusiness(session, business, fParam)
        haveUpdates = session.is_modified(business)
        if haveUpdates:
            session.commit()
            session.refresh(business)

        businessData = jsonable_encoder(business)
        if haveUpdates:
            logEvent(token, request_info, businessData)
        return {"success": True, "business": businessData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.get(
    URL_BUSINESS,
    tags=["Business"],
    response_model=BusinessListResponse,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Lists the businesses of the platform.

    - Filter by name (`search`), service type and status.
    - Paginate with `page` and `limit`.
    """,
)
async def fetch_business(qParam: QueryParams = Depends(), bearer=Depends(bearer_admin)):
    try:
        session = sessionMaker()
        token = validators.adminToken(bearer, session)
        validators.activeAccount(getters.admin(token, session))

        businesses, pagination = searchBusiness(session, qParam)
        return {
            "success": True,
            "businesses": jsonable_encoder(businesses),
            "pagination": pagination,
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.post(
    URL_BUSINESS_MANAGER,
    tags=["Business"],
    response_model=ManagerResponse,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.InvalidIdentifier,
            exceptions.DuplicateValue,
        ]
    ),
    description="""
    Creates a manager account for a business.

    - The manager can then log in to the vendor app and create the staff accounts.
    - Usernames are unique within a business.
    - The password is hashed using Argon2 before storing.
    """,
)
async def create_manager(
    fParam: CreateManagerForm = Depends(),
    bearer=Depends(bearer_admin),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.adminToken(bearer, session)
        validators.activeAccount(getters.admin(token, session))

        business = (
            session.query(Business).filter(Business.id == fParam.business_id).first()
        )
        if business is None:
            raise exceptions.InvalidIdentifier()
        duplicate = (
            session.query(Vendor)
            .filter(Vendor.business_id == business.id)
            .filter(Vendor.username == fParam.username)
            .first()
        )
        if duplicate is not None:
            raise exceptions.DuplicateValue(Vendor.username)

        manager = Vendor(
            business_id=business.id,
            username=fParam.username,
            password=argon2.makePassword(fParam.password),
            full_name=fParam.full_name,
            role=VendorRole.MANAGER,
            phone_number=fParam.phone_number,
            email_id=fParam.email_id,
        )
        session.add(manager)
        session.commit()
        session.refresh(manager)

        managerData = jsonable_encoder(manager, exclude={"password"})
        logEvent(token, request_info, managerData)
        return {"success": True, "manager": managerData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


## API endpoints [Vendor]
@route_vendor.get(
    URL_BUSINESS,
    tags=["Business"],
    response_model=BusinessResponse,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fetches the business of the caller.
    """,
)
async def fetch_business(bearer=Depends(bearer_vendor)):
    try:
        session = sessionMaker()
        token = validators.vendorToken(bearer, session)
        validators.activeAccount(getters.vendor(token, session))

        business = getters.business(token, session)
        if business is None:
            raise exceptions.InvalidToken()
        return {"success": True, "business": jsonable_encoder(business)}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
