from datetime import datetime
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from sqlalchemy import or_
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field, EmailStr
from pydantic_extra_types.phone_numbers import PhoneNumber

from vendorhub.api.bearer import bearer_vendor
from vendorhub.src.constants import REGEX_PASSWORD, REGEX_USERNAME
from vendorhub.src.db import Vendor, VendorToken, sessionMaker
from vendorhub.src import argon2, exceptions, validators, getters, schemas
from vendorhub.src.enums import (
    AccountStatus,
    BusStaffRole,
    OrderIn,
    ServiceType,
    VendorRole,
)
from vendorhub.src.loggers import logEvent
from vendorhub.src.functions import (
    enumStr,
    makeExceptionResponses,
    paginate,
    updateIfChanged,
)
from vendorhub.src.urls import URL_BUS_STAFF

route_vendor = APIRouter()

STAFF_MANAGERS = [VendorRole.MANAGER, VendorRole.ADMIN]


## Output Schema
class StaffSchema(BaseModel):
    id: int
    business_id: int
    username: str
    full_name: Optional[str]
    role: BusStaffRole
    status: AccountStatus
    phone_number: Optional[str]
    email_id: Optional[str]
    employee_id: Optional[str]
    license_number: Optional[str]
    hire_date: Optional[datetime]
    updated_on: Optional[datetime]
    created_on: datetime


class StaffResponse(BaseModel):
    success: bool = True
    staff: StaffSchema


class StaffListResponse(BaseModel):
    success: bool = True
    staff: List[StaffSchema]
    pagination: schemas.Pagination


## Input Forms
class CreateForm(BaseModel):
    username: str = Field(Form(pattern=REGEX_USERNAME, min_length=4, max_length=32))
    password: str = Field(Form(pattern=REGEX_PASSWORD, min_length=8, max_length=32))
    full_name: str = Field(Form(min_length=1, max_length=64))
    role: BusStaffRole = Field(Form(description=enumStr(BusStaffRole)))
    status: AccountStatus = Field(
        Form(description=enumStr(AccountStatus), default=AccountStatus.ACTIVE)
    )
    phone_number: PhoneNumber | None = Field(
        Form(max_length=32, default=None, description="Phone number in RFC3966 format")
    )
    email_id: EmailStr | None = Field(
        Form(max_length=256, default=None, description="Email in RFC 5322 format")
    )
    employee_id: str | None = Field(Form(max_length=32, default=None))
    license_number: str | None = Field(Form(max_length=32, default=None))
    hire_date: datetime | None = Field(Form(default=None))


class UpdateForm(BaseModel):
    id: int = Field(Form())
    password: str | None = Field(
        Form(pattern=REGEX_PASSWORD, min_length=8, max_length=32, default=None)
    )
    full_name: str | None = Field(Form(min_length=1, max_length=64, default=None))
    role: BusStaffRole | None = Field(
        Form(description=enumStr(BusStaffRole), default=None)
    )
    status: AccountStatus | None = Field(
        Form(description=enumStr(AccountStatus), default=None)
    )
    phone_number: PhoneNumber | None = Field(
        Form(max_length=32, default=None, description="Phone number in RFC3966 format")
    )
    email_id: EmailStr | None = Field(
        Form(max_length=256, default=None, description="Email in RFC 5322 format")
    )
    employee_id: str | None = Field(Form(max_length=32, default=None))
    license_number: str | None = Field(Form(max_length=32, default=None))
    hire_date: datetime | None = Field(Form(default=None))


class DeleteForm(BaseModel):
    id: int = Field(Form())


## Query Parameters
class OrderBy(IntEnum):
    id = 1
    full_name = 2
    created_on = 3


class QueryParams(BaseModel):
    search: str | None = Field(
        Query(default=None, description="Matches name, username, phone or email")
    )
    role: BusStaffRole | None = Field(
        Query(default=None, description=enumStr(BusStaffRole))
    )
    status: AccountStatus | None = Field(
        Query(default=None, description=enumStr(AccountStatus))
    )
    # Ordering
    order_by: OrderBy = Field(
        Query(default=OrderBy.created_on, description=enumStr(OrderBy))
    )
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    page: int = Field(Query(default=1, ge=1))
    limit: int = Field(Query(default=50, gt=0, le=100))


## Function
def staffQuery(session: Session, business_id: int):
    return (
        session.query(Vendor)
        .filter(Vendor.business_id == business_id)
        .filter(Vendor.role.in_([r.value for r in BusStaffRole]))
    )


def updateStaff(session: Session, staff: Vendor, fParam: UpdateForm):
    updateIfChanged(
        staff,
        fParam,
        [
            Vendor.full_name.key,
            Vendor.role.key,
            Vendor.phone_number.key,
            Vendor.email_id.key,
            Vendor.employee_id.key,
            Vendor.license_number.key,
            Vendor.hire_date.key,
        ],
    )
    if fParam.password is not None:
        staff.password = argon2.makePassword(fParam.password)
    if fParam.status is not None and staff.status != fParam.status:
        if fParam.status != AccountStatus.ACTIVE:
            session.query(VendorToken).filter(
                VendorToken.vendor_id == staff.id
            ).delete()
        staff.status = fParam.status


def searchStaff(session: Session, business_id: int, qParam: QueryParams):
    query = staffQuery(session, business_id)

    # Filters
    if qParam.search is not None:
        pattern = f"%{qParam.search}%"
        query = query.filter(
            or_(
                Vendor.full_name.ilike(pattern),
                Vendor.username.ilike(pattern),
                Vendor.phone_number.ilike(pattern),
                Vendor.email_id.ilike(pattern),
            )
        )
    if qParam.role is not None:
        query = query.filter(Vendor.role == qParam.role)
    if qParam.status is not None:
        query = query.filter(Vendor.status == qParam.status)

    # Ordering
    orderingAttribute = getattr(Vendor, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    return paginate(query, qParam.page, qParam.limit)


## API endpoints [Vendor]
@route_vendor.post(
    URL_BUS_STAFF,
    tags=["Bus Staff"],
    response_model=StaffResponse,
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
    Adds a staff member (driver, conductor, ticket seller, dispatcher, maintenance or admin) to a bus company.

    - Only managers and admins of bus businesses can create staff.
    - Usernames are unique within the business.
    - The number of staff accounts is limited by the active subscription plan.
    - The password is hashed using Argon2 before storing.
    """,
)
async def create_staff(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.vendorToken(bearer, session)
        vendor = getters.vendor(token, session)
        validators.activeAccount(vendor)
        business = getters.business(token, session)
        validators.serviceType(business, ServiceType.BUS)
        validators.role(vendor, STAFF_MANAGERS)

        duplicate = (
            session.query(Vendor)
            .filter(Vendor.business_id == business.id)
            .filter(Vendor.username == fParam.username)
            .first()
        )
        if duplicate is not None:
            raise exceptions.DuplicateValue(Vendor.username)
        validators.usageLimit(session, business.id, "staff")

        staff = Vendor(
            business_id=business.id,
            username=fParam.username,
            password=argon2.makePassword(fParam.password),
            full_name=fParam.full_name,
            role=fParam.role,
            status=fParam.status,
            phone_number=fParam.phone_number,
            email_id=fParam.email_id,
            employee_id=fParam.employee_id,
            license_number=fParam.license_number,
            hire_date=fParam.hire_date,
        )
        session.add(staff)
        session.commit()
        session.refresh(staff)

        staffData = jsonable_encoder(staff, exclude={"password"})
        logEvent(token, request_info, staffData)
        return {"success": True, "staff": staffData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.patch(
    URL_BUS_STAFF,
    tags=["Bus Staff"],
    response_model=StaffResponse,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
            exceptions.InvalidIdentifier,
        ]
    ),
    description="""
    Updates a staff member of the caller's bus company.

    - Only the provided fields are updated.
    - Deactivating or suspending an account revokes all of its tokens.
    """,
)
async def update_staff(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.vendorToken(bearer, session)
        vendor = getters.vendor(token, session)
        validators.activeAccount(vendor)
        business = getters.business(token, session)
        validators.serviceType(business, ServiceType.BUS)
        validators.role(vendor, STAFF_MANAGERS)

        staff = staffQuery(session, business.id).filter(Vendor.id == fParam.id).first()
        if staff is None:
            raise exceptions.InvalidIdentifier()

        updateStaff(session, staff, fParam)
        haveUpdates = session.is_modified(staff)
        if haveUpdates:
            session.commit()
            session.refresh(staff)

        staffData = jsonable_encoder(staff, exclude={"password"})
        if haveUpdates:
            logEvent(token, request_info, staffData)
        return {"success": True, "staff": staffData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.delete(
    URL_BUS_STAFF,
    tags=["Bus Staff"],
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
    Removes a staff member of the caller's bus company.

    - An account can not delete itself.
    """,
)
async def delete_staff(
    fParam: DeleteForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.vendorToken(bearer, session)
        vendor = getters.vendor(token, session)
        validators.activeAccount(vendor)
        business = getters.business(token, session)
        validators.serviceType(business, ServiceType.BUS)
        validators.role(vendor, STAFF_MANAGERS)

        staff = staffQuery(session, business.id).filter(Vendor.id == fParam.id).first()
        if staff is None:
            raise exceptions.InvalidIdentifier()
        if staff.id == vendor.id:
            raise exceptions.NoPermission()

        session.delete(staff)
        session.commit()
        logEvent(token, request_info, jsonable_encoder(staff, exclude={"password"}))
        return {"success": True, "message": "Staff member deleted"}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.get(
    URL_BUS_STAFF,
    tags=["Bus Staff"],
    response_model=StaffListResponse,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
        ]
    ),
    description="""
    Lists the staff of the caller's bus company.

    - `search` matches name, username, phone number and email.
    - Filter by `role` and `status`.
    - Paginate with `page` and `limit` (default 50).
    """,
)
async def fetch_staff(qParam: QueryParams = Depends(), bearer=Depends(bearer_vendor)):
    try:
        session = sessionMaker()
        token = validators.vendorToken(bearer, session)
        vendor = getters.vendor(token, session)
        validators.activeAccount(vendor)
        business = getters.business(token, session)
        validators.serviceType(business, ServiceType.BUS)
        validators.role(vendor, STAFF_MANAGERS)

        staff, pagination = searchStaff(session, business.id, qParam)
        return {
            "success": True,
            "staff": jsonable_encoder(staff, exclude={"password"}),
            "pagination": pagination,
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
