from copy import deepcopy
from typing import Any, Dict, Optional
from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm.session import Session
from pydantic import BaseModel

from vendorhub.api.bearer import bearer_admin
from vendorhub.src.constants import (
    DEFAULT_PLATFORM_SETTINGS,
    MASKED_VALUE,
    SECRET_SETTING_KEYS,
)
from vendorhub.src.db import PlatformSetting, sessionMaker
from vendorhub.src import exceptions, validators, getters
from vendorhub.src.enums import AdminRole, SettingSection
from vendorhub.src.loggers import logEvent
from vendorhub.src.functions import makeExceptionResponses
from vendorhub.src.urls import URL_PLATFORM_SETTINGS

route_admin = APIRouter()

SETTINGS_ADMINS = [AdminRole.ADMIN, AdminRole.SUPER_ADMIN]


## Output Schema
class PlatformSettingsResponse(BaseModel):
    success: bool = True
    settings: Dict[SettingSection, Dict[str, Any]]


## Input Body
class PlatformSettingsBody(BaseModel):
    general: Optional[Dict[str, Any]] = None
    security: Optional[Dict[str, Any]] = None
    email: Optional[Dict[str, Any]] = None
    payment: Optional[Dict[str, Any]] = None
    notifications: Optional[Dict[str, Any]] = None
    maintenance: Optional[Dict[str, Any]] = None


## Function
def loadSettings(session: Session) -> Dict[str, dict]:
    """The stored sections laid over the defaults."""
    settings = deepcopy(DEFAULT_PLATFORM_SETTINGS)
    for row in session.query(PlatformSetting).all():
        if row.section in settings:
            settings[row.section].update(row.value or {})
    return settings


def maskSecrets(settings: Dict[str, dict]) -> Dict[str, dict]:
    masked = deepcopy(settings)
    for values in masked.values():
        for key in SECRET_SETTING_KEYS:
            if values.get(key):
                values[key] = MASKED_VALUE
    return masked


def checkValue(section: str, key: str, value: Any) -> None:
    if key not in DEFAULT_PLATFORM_SETTINGS[section]:
        raise exceptions.InvalidValue(f"{section}.{key}")
    default = DEFAULT_PLATFORM_SETTINGS[section][key]
    if isinstance(default, bool):
        valid = isinstance(value, bool)
    elif isinstance(default, int):
        valid = isinstance(value, int) and not isinstance(value, bool)
    else:
        valid = isinstance(value, type(default))
    if not valid:
        raise exceptions.InvalidValue(f"{section}.{key}")


def saveSection(
    session: Session, section: str, values: Dict[str, Any], admin_id: int
) -> Dict[str, Any]:
    """
    Merge the given keys into a stored section and return the changed keys.

    Secret keys sent back in their masked form keep the stored value.
    """
    for key, value in values.items():
        checkValue(section, key, value)
    changes = {
        key: value
        for key, value in values.items()
        if not (key in SECRET_SETTING_KEYS and value == MASKED_VALUE)
    }
    if not changes:
        return changes

    row = (
        session.query(PlatformSetting)
        .filter(PlatformSetting.section == section)
        .first()
    )
    if row is None:
        row = PlatformSetting(section=section, value={})
        session.add(row)
    row.value = {**(row.value or {}), **changes}
    row.updated_by = admin_id
    return changes


## API endpoints [Admin]
@route_admin.get(
    URL_PLATFORM_SETTINGS,
    tags=["Platform Settings"],
    response_model=PlatformSettingsResponse,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.NoPermission]
    ),
    description="""
    Fetches the platform wide settings, grouped by section.

    - Sections never saved are returned with their default values.
    - Secrets such as the SMTP password are masked.
    """,
)
async def fetch_platform_settings(bearer=Depends(bearer_admin)):
    try:
        session = sessionMaker()
        token = validators.adminToken(bearer, session)
        admin = getters.admin(token, session)
        validators.activeAccount(admin)
        validators.role(admin, SETTINGS_ADMINS)

        return {"success": True, "settings": maskSecrets(loadSettings(session))}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.put(
    URL_PLATFORM_SETTINGS,
    tags=["Platform Settings"],
    response_model=PlatformSettingsResponse,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.NoPermission, exceptions.InvalidValue]
    ),
    description="""
    Updates the platform wide settings (JSON body).

    - Only the sections and keys present in the body are updated.
    - Unknown keys and values of the wrong type are rejected.
    - Masked secrets sent back unchanged keep the stored value.
    """,
)
async def update_platform_settings(
    body: PlatformSettingsBody = Body(),
    bearer=Depends(bearer_admin),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.adminToken(bearer, session)
        admin = getters.admin(token, session)
        validators.activeAccount(admin)
        validators.role(admin, SETTINGS_ADMINS)

        changes = {}
        for section, values in body.model_dump(exclude_none=True).items():
            sectionChanges = saveSection(session, section, values, admin.id)
            if sectionChanges:
                changes[section] = sectionChanges
        if changes:
            session.commit()
            logEvent(token, request_info, {"sections": maskSecrets(changes)})

        return {"success": True, "settings": maskSecrets(loadSettings(session))}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
