from datetime import datetime, timedelta, timezone
from secrets import token_hex
from typing import Optional
from fastapi import APIRouter, Depends, status, Form
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from vendorhub.api.bearer import bearer_admin
from vendorhub.src.constants import MAX_ADMIN_TOKENS, MAX_TOKEN_VALIDITY
from vendorhub.src.db import Admin, AdminToken, sessionMaker
from vendorhub.src import argon2, exceptions, validators, getters, schemas
from vendorhub.src.enums import AccountStatus, PlatformType
from vendorhub.src.loggers import logEvent
from vendorhub.src.functions import enumStr, makeExceptionResponses
from vendorhub.src.urls import URL_ADMIN_TOKEN

route_admin = APIRouter()


## Output Schema
class AdminTokenSchema(BaseModel):
    success: bool = True
    id: int
    admin_id: int
    access_token: str
    token_type: Optional[str] = "bearer"
    expires_in: int
    expires_at: datetime
    platform_type: int
    client_details: Optional[str]
    role: str
    created_on: datetime
    updated_on: Optional[datetime]


## Input Forms
class CreateForm(BaseModel):
    username: str = Field(Form(max_length=32))
    password: str = Field(Form(max_length=32))
    platform_type: PlatformType = Field(
        Form(description=enumStr(PlatformType), default=PlatformType.OTHER)
    )
    client_details: str | None = Field(Form(max_length=1024, default=None))


## API endpoints [Admin]
@route_admin.post(
    URL_ADMIN_TOKEN,
    tags=["Token"],
    response_model=AdminTokenSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [exceptions.InactiveAccount, exceptions.InvalidCredentials]
    ),
    description="""
    Issues a new access token for a platform admin after validating credentials.

    - Only active admins can log in.
    - Limits active tokens using MAX_ADMIN_TOKENS (oldest token is rotated out).
    - Sets expiration with expires_in=MAX_TOKEN_VALIDITY (in seconds).
    - Logs the authentication event for audit tracking.
    """,
)
async def create_token(
    fParam: CreateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        admin = session.query(Admin).filter(Admin.username == fParam.username).first()
        if admin is None:
            raise exceptions.InvalidCredentials()
        if not argon2.checkPassword(fParam.password, admin.password):
            raise exceptions.InvalidCredentials()
        if admin.status != AccountStatus.ACTIVE:
            raise exceptions.InactiveAccount()
        argon2.refreshPassword(admin, fParam.password)

        # Remove excess tokens from DB
        tokens = (
            session.query(AdminToken)
            .filter(AdminToken.admin_id == admin.id)
            .order_by(AdminToken.created_on.desc(), AdminToken.id.desc())
            .all()
        )
        for oldToken in tokens[MAX_ADMIN_TOKENS - 1 :]:
            session.delete(oldToken)
        session.flush()

        expires_at = datetime.now(timezone.utc) + timedelta(seconds=MAX_TOKEN_VALIDITY)
        token = AdminToken(
            admin_id=admin.id,
            expires_in=MAX_TOKEN_VALIDITY,
            expires_at=expires_at,
            platform_type=fParam.platform_type,
            client_details=fParam.client_details,
        )
        session.add(token)
        session.commit()
        session.refresh(token)

        data = jsonable_encoder(token)
        data["role"] = admin.role
        logEvent(token, request_info, jsonable_encoder(token, exclude={"access_token"}))
        return data
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.patch(
    URL_ADMIN_TOKEN,
    tags=["Token"],
    response_model=AdminTokenSchema,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Refreshes the admin access token used in the request.

    - Restarts the validity window and rotates the `access_token` value.
    - Logs the refresh event for auditability.
    """,
)
async def refresh_token(
    bearer=Depends(bearer_admin),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.adminToken(bearer, session)
        admin = getters.admin(token, session)
        validators.activeAccount(admin)

        token.expires_in = MAX_TOKEN_VALIDITY
        token.expires_at = datetime.now(timezone.utc) + timedelta(
            seconds=MAX_TOKEN_VALIDITY
        )
        token.access_token = token_hex(32)
        session.commit()
        session.refresh(token)

        data = jsonable_encoder(token)
        data["role"] = admin.role
        logEvent(token, request_info, jsonable_encoder(token, exclude={"access_token"}))
        return data
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.delete(
    URL_ADMIN_TOKEN,
    tags=["Token"],
    response_model=schemas.SuccessResponse,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Revokes the admin access token used in the request (logout).
    """,
)
async def delete_token(
    bearer=Depends(bearer_admin),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.adminToken(bearer, session)

        session.delete(token)
        session.commit()
        logEvent(token, request_info, jsonable_encoder(token, exclude={"access_token"}))
        return {"success": True, "message": "Token revoked"}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
