from copy import deepcopy
from datetime import datetime
from typing import Dict, Optional
from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, EmailStr, Field

from vendorhub.api.bearer import bearer_vendor
from vendorhub.src.constants import (
    DEFAULT_BUS_SETTINGS,
    REGEX_CLOCK_TIME,
    REGEX_HEX_COLOR,
)
from vendorhub.src.db import BusSettings, sessionMaker
from vendorhub.src import exceptions, validators, getters
from vendorhub.src.enums import ServiceType, VendorRole
from vendorhub.src.loggers import logEvent
from vendorhub.src.functions import makeExceptionResponses
from vendorhub.src.urls import URL_BUS_SETTINGS

route_vendor = APIRouter()

SETTINGS_MANAGERS = [VendorRole.MANAGER, VendorRole.ADMIN]
DOCUMENT_FIELDS = ("operating_hours", "features", "policies", "branding")


## Output Schema
class OperatingHours(BaseModel):
    start: str = Field(pattern=REGEX_CLOCK_TIME)
    end: str = Field(pattern=REGEX_CLOCK_TIME)


class Branding(BaseModel):
    primary_color: Optional[str] = Field(default=None, pattern=REGEX_HEX_COLOR)
    secondary_color: Optional[str] = Field(default=None, pattern=REGEX_HEX_COLOR)
    logo: Optional[str] = Field(default=None, max_length=2048)
    company_image: Optional[str] = Field(default=None, max_length=2048)


class SettingsSchema(BaseModel):
    company_name: str
    description: Optional[str]
    address: Optional[str]
    city: Optional[str]
    country: Optional[str]
    phone: str
    email: str
    website: Optional[str]
    currency: str
    timezone: str
    operating_hours: Dict[str, str]
    features: Dict[str, bool]
    policies: Dict[str, str]
    branding: Dict[str, str]
    updated_on: Optional[datetime] = None


class SettingsResponse(BaseModel):
    success: bool = True
    settings: SettingsSchema


## Input Body
class SettingsBody(BaseModel):
    company_name: str = Field(min_length=1, max_length=128)
    phone: str = Field(min_length=1, max_length=32)
    email: EmailStr = Field(max_length=256)
    description: Optional[str] = Field(default=None, max_length=2048)
    address: Optional[str] = Field(default=None, max_length=512)
    city: Optional[str] = Field(default=None, max_length=64)
    country: Optional[str] = Field(default=None, max_length=64)
    website: Optional[str] = Field(default=None, max_length=256)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=8)
    timezone: Optional[str] = Field(default=None, max_length=64)
    operating_hours: Optional[OperatingHours] = None
    features: Optional[Dict[str, bool]] = None
    policies: Optional[Dict[str, str]] = None
    branding: Optional[Branding] = None


## Function
def settingsDocument(settings: BusSettings | None) -> dict:
    """
    The settings of a business laid over the defaults.

    Nested documents are merged key by key so that new default keys show up
    for businesses which saved their settings earlier.
    """
    document = deepcopy(DEFAULT_BUS_SETTINGS)
    if settings is None:
        return document
    for key in document:
        value = getattr(settings, key)
        if key in DOCUMENT_FIELDS:
            document[key].update(value or {})
        elif value is not None:
            document[key] = value
    document["updated_on"] = settings.updated_on or settings.created_on
    return document


def applySettings(settings: BusSettings, body: SettingsBody) -> None:
    current = settingsDocument(settings)
    values = body.model_dump(exclude_none=True)
    for key, value in values.items():
        if key in DOCUMENT_FIELDS:
            merged = dict(current[key])
            merged.update({k: v for k, v in value.items() if v is not None})
            value = merged
        setattr(settings, key, value)
    # Columns the caller never sent keep their default value
    for key in ("currency", "timezone", *DOCUMENT_FIELDS):
        if getattr(settings, key) is None:
            setattr(settings, key, current[key])


def getSettings(session: Session, business_id: int) -> BusSettings | None:
    return (
        session.query(BusSettings).filter(BusSettings.business_id == business_id).first()
    )


## API endpoints [Vendor]
@route_vendor.get(
    URL_BUS_SETTINGS,
    tags=["Settings"],
    response_model=SettingsResponse,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
        ]
    ),
    description="""
    Fetches the company profile and preferences of the caller's business.

    - The default settings are returned when nothing was saved yet.
    """,
)
async def fetch_settings(bearer=Depends(bearer_vendor)):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.BUS, SETTINGS_MANAGERS
        )

        settings = getSettings(session, business.id)
        return {"success": True, "settings": jsonable_encoder(settingsDocument(settings))}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.put(
    URL_BUS_SETTINGS,
    tags=["Settings"],
    response_model=SettingsResponse,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
            exceptions.MissingParameter,
        ]
    ),
    description="""
    Saves the company profile and preferences of the caller's business (JSON body).

    - `company_name`, `phone` and `email` are required.
    - Nested documents (operating hours, features, policies, branding) are merged
      into the saved ones, so partial documents are accepted.
    """,
)
async def update_settings(
    body: SettingsBody = Body(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.BUS, SETTINGS_MANAGERS
        )

        settings = getSettings(session, business.id)
        if settings is None:
            settings = BusSettings(business_id=business.id)
            session.add(settings)
        applySettings(settings, body)
        session.commit()
        session.refresh(settings)

        settingsData = jsonable_encoder(settingsDocument(settings))
        logEvent(token, request_info, settingsData)
        return {"success": True, "settings": settingsData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
