from datetime import datetime, timedelta, timezone
from enum import IntEnum
from secrets import token_hex
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from vendorhub.api.bearer import bearer_vendor
from vendorhub.src.constants import MAX_VENDOR_TOKENS, MAX_TOKEN_VALIDITY
from vendorhub.src.db import Business, Vendor, VendorToken, sessionMaker
from vendorhub.src import argon2, exceptions, validators, getters, schemas
from vendorhub.src.enums import (
    AccountStatus,
    BusinessStatus,
    OrderIn,
    PlatformType,
    VendorRole,
)
from vendorhub.src.loggers import logEvent
from vendorhub.src.functions import enumStr, makeExceptionResponses, paginate
from vendorhub.src.urls import URL_VENDOR_TOKEN

route_vendor = APIRouter()


## Output Schema
class MaskedVendorTokenSchema(BaseModel):
    id: int
    vendor_id: int
    business_id: int
    expires_in: int
    expires_at: datetime
    platform_type: int
    client_details: Optional[str]
    created_on: datetime
    updated_on: Optional[datetime]


class VendorTokenSchema(MaskedVendorTokenSchema):
    success: bool = True
    access_token: str
    token_type: Optional[str] = "bearer"
    role: str
    service_type: str


class VendorTokenListResponse(BaseModel):
    success: bool = True
    tokens: List[MaskedVendorTokenSchema]
    pagination: schemas.Pagination


## Input Forms
class CreateForm(BaseModel):
    business_id: int = Field(Form())
    username: str = Field(Form(max_length=32))
    password: str = Field(Form(max_length=32))
    platform_type: PlatformType = Field(
        Form(description=enumStr(PlatformType), default=PlatformType.OTHER)
    )
    client_details: str | None = Field(Form(max_length=1024, default=None))


class DeleteForm(BaseModel):
    id: int | None = Field(Form(default=None))


## Query Parameters
class OrderBy(IntEnum):
    id = 1
    updated_on = 2
    created_on = 3


class QueryParams(BaseModel):
    vendor_id: int | None = Field(Query(default=None))
    platform_type: PlatformType | None = Field(
        Query(default=None, description=enumStr(PlatformType))
    )
    # Ordering
    order_by: OrderBy = Field(Query(default=OrderBy.id, description=enumStr(OrderBy)))
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    page: int = Field(Query(default=1, ge=1))
    limit: int = Field(Query(default=20, gt=0, le=100))


## Function
def searchVendorToken(session: Session, business_id: int, qParam: QueryParams):
    query = session.query(VendorToken).filter(VendorToken.business_id == business_id)

    # Filters
    if qParam.vendor_id is not None:
        query = query.filter(VendorToken.vendor_id == qParam.vendor_id)
    if qParam.platform_type is not None:
        query = query.filter(VendorToken.platform_type == qParam.platform_type)

    # Ordering
    orderingAttribute = getattr(VendorToken, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    return paginate(query, qParam.page, qParam.limit)


def tokenData(token: VendorToken, vendor: Vendor, business: Business) -> dict:
    data = jsonable_encoder(token)
    data["role"] = vendor.role
    data["service_type"] = business.service_type
    return data


## API endpoints [Vendor]
@route_vendor.post(
    URL_VENDOR_TOKEN,
    tags=["Token"],
    response_model=VendorTokenSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [exceptions.InactiveAccount, exceptions.InvalidCredentials]
    ),
    description="""
    Issues a new access token for a vendor account after validating credentials.

    - Authenticates with business_id, username and password submitted as form data.
    - Both the account and its business must be active.
    - Limits active tokens using MAX_VENDOR_TOKENS (oldest token is rotated out).
    - Sets expiration with expires_in=MAX_TOKEN_VALIDITY (in seconds).
    - The response carries the role of the account and the service type of its business.
    - Logs the authentication event for audit tracking.
    """,
)
async def create_token(
    fParam: CreateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        vendor = (
            session.query(Vendor)
            .filter(Vendor.username == fParam.username)
            .filter(Vendor.business_id == fParam.business_id)
            .first()
        )
        if vendor is None:
            raise exceptions.InvalidCredentials()
        if not argon2.checkPassword(fParam.password, vendor.password):
            raise exceptions.InvalidCredentials()
        if vendor.status != AccountStatus.ACTIVE:
            raise exceptions.InactiveAccount()
        business = (
            session.query(Business).filter(Business.id == vendor.business_id).first()
        )
        if business is None or business.status != BusinessStatus.ACTIVE:
            raise exceptions.InactiveAccount()
        argon2.refreshPassword(vendor, fParam.password)

        # Remove excess tokens from DB
        tokens = (
            session.query(VendorToken)
            .filter(VendorToken.vendor_id == vendor.id)
            .order_by(VendorToken.created_on.desc(), VendorToken.id.desc())
            .all()
        )
        for oldToken in tokens[MAX_VENDOR_TOKENS - 1 :]:
            session.delete(oldToken)
        session.flush()

        # Create a new token
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=MAX_TOKEN_VALIDITY)
        token = VendorToken(
            business_id=vendor.business_id,
            vendor_id=vendor.id,
            expires_in=MAX_TOKEN_VALIDITY,
            expires_at=expires_at,
            platform_type=fParam.platform_type,
            client_details=fParam.client_details,
        )
        session.add(token)
        session.commit()
        session.refresh(token)

        data = tokenData(token, vendor, business)
        logEvent(token, request_info, jsonable_encoder(token, exclude={"access_token"}))
        return data
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.patch(
    URL_VENDOR_TOKEN,
    tags=["Token"],
    response_model=VendorTokenSchema,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Refreshes the vendor access token used in the request.

    - Restarts the validity window: `expires_at` becomes now + MAX_TOKEN_VALIDITY.
    - Rotates the `access_token` value (invalidates the old token immediately).
    - Logs the refresh event for auditability.
    """,
)
async def refresh_token(
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.vendorToken(bearer, session)
        vendor = getters.vendor(token, session)
        validators.activeAccount(vendor)
        business = getters.business(token, session)

        token.expires_in = MAX_TOKEN_VALIDITY
        token.expires_at = datetime.now(timezone.utc) + timedelta(
            seconds=MAX_TOKEN_VALIDITY
        )
        token.access_token = token_hex(32)
        session.commit()
        session.refresh(token)

        data = tokenData(token, vendor, business)
        logEvent(token, request_info, jsonable_encoder(token, exclude={"access_token"}))
        return data
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.delete(
    URL_VENDOR_TOKEN,
    tags=["Token"],
    response_model=schemas.SuccessResponse,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.NoPermission]
    ),
    description="""
    Revokes an access token of a vendor account (logout).

    - Without an ID the token used in the request is deleted (self-revocation).
    - With an ID the caller must own the token or be a manager of the business.
    - Tokens of other businesses are never visible; unknown IDs are ignored.
    - Logs the token revocation event for audit tracking.
    """,
)
async def delete_token(
    fParam: DeleteForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.vendorToken(bearer, session)
        vendor = getters.vendor(token, session)

        if fParam.id is None:
            tokenToDelete = token
        else:
            tokenToDelete = (
                session.query(VendorToken)
                .filter(VendorToken.id == fParam.id)
                .filter(VendorToken.business_id == token.business_id)
                .first()
            )
            if tokenToDelete is None:
                return {"success": True, "message": "Token revoked"}
            isSelfDelete = token.vendor_id == tokenToDelete.vendor_id
            isManager = vendor is not None and vendor.role == VendorRole.MANAGER
            if not isSelfDelete and not isManager:
                raise exceptions.NoPermission()

        session.delete(tokenToDelete)
        session.commit()
        logEvent(
            token,
            request_info,
            jsonable_encoder(tokenToDelete, exclude={"access_token"}),
        )
        return {"success": True, "message": "Token revoked"}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.get(
    URL_VENDOR_TOKEN,
    tags=["Token"],
    response_model=VendorTokenListResponse,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fetches the tokens of the caller's business.

    - Accounts other than the manager only see their own tokens.
    - Supports pagination with `page` and `limit`, sorting with `order_by` and `order_in`.
    """,
)
async def fetch_tokens(qParam: QueryParams = Depends(), bearer=Depends(bearer_vendor)):
    try:
        session = sessionMaker()
        token = validators.vendorToken(bearer, session)
        vendor = getters.vendor(token, session)
        validators.activeAccount(vendor)

        if vendor.role != VendorRole.MANAGER:
            qParam.vendor_id = vendor.id
        tokens, pagination = searchVendorToken(session, token.business_id, qParam)
        return {
            "success": True,
            "tokens": jsonable_encoder(tokens, exclude={"access_token"}),
            "pagination": pagination,
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
