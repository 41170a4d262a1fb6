from datetime import datetime, timezone
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status, Form
from sqlalchemy import and_, or_
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from vendorhub.api.bearer import bearer_vendor
from vendorhub.src.db import ComplianceRecord, sessionMaker
from vendorhub.src import exceptions, validators, getters, schemas
from vendorhub.src.enums import (
    CompliancePriority,
    ComplianceStatus,
    ComplianceType,
    ServiceType,
    VendorRole,
)
from vendorhub.src.loggers import logEvent
from vendorhub.src.functions import (
    csvResponse,
    enumStr,
    generateRecordID,
    makeExceptionResponses,
    paginate,
    toCSV,
    toUTC,
    updateIfChanged,
)
from vendorhub.src.urls import URL_COMPLIANCE, URL_COMPLIANCE_EXPORT

route_vendor = APIRouter()

COMPLIANCE_STAFF = [
    VendorRole.PHARMACIST,
    VendorRole.TECHNICIAN,
    VendorRole.MANAGER,
    VendorRole.ADMIN,
]

EXPORT_HEADERS = [
    "Record ID",
    "Type",
    "Title",
    "Description",
    "Due Date",
    "Completed Date",
    "Status",
    "Priority",
    "Assigned To",
    "Responsible Person",
    "Notes",
]


## Output Schema
class ComplianceSchema(BaseModel):
    id: int
    record_id: str
    business_id: int
    type: ComplianceType
    title: str
    description: str
    due_date: datetime
    completed_date: Optional[datetime]
    status: ComplianceStatus
    priority: CompliancePriority
    assigned_to: Optional[str]
    responsible_person: str
    documents: List[str]
    notes: Optional[str]
    updated_on: Optional[datetime]
    created_on: datetime


class ComplianceResponse(BaseModel):
    success: bool = True
    record: ComplianceSchema


class ComplianceListResponse(BaseModel):
    success: bool = True
    records: List[ComplianceSchema]
    pagination: schemas.Pagination


## Input Forms
class CreateForm(BaseModel):
    type: ComplianceType = Field(Form(description=enumStr(ComplianceType)))
    title: str = Field(Form(min_length=1, max_length=256))
    description: str = Field(Form(min_length=1, max_length=4096))
    due_date: datetime = Field(Form())
    priority: CompliancePriority = Field(
        Form(description=enumStr(CompliancePriority))
    )
    responsible_person: str = Field(Form(min_length=1, max_length=128))
    assigned_to: str | None = Field(Form(max_length=128, default=None))
    documents: List[str] | None = Field(Form(default=None))
    notes: str | None = Field(Form(max_length=4096, default=None))


class UpdateForm(BaseModel):
    record_id: str = Field(Form(max_length=16))
    type: ComplianceType | None = Field(
        Form(description=enumStr(ComplianceType), default=None)
    )
    title: str | None = Field(Form(min_length=1, max_length=256, default=None))
    description: str | None = Field(Form(min_length=1, max_length=4096, default=None))
    due_date: datetime | None = Field(Form(default=None))
    status: ComplianceStatus | None = Field(
        Form(description=enumStr(ComplianceStatus), default=None)
    )
    priority: CompliancePriority | None = Field(
        Form(description=enumStr(CompliancePriority), default=None)
    )
    responsible_person: str | None = Field(
        Form(min_length=1, max_length=128, default=None)
    )
    assigned_to: str | None = Field(Form(max_length=128, default=None))
    documents: List[str] | None = Field(Form(default=None))
    notes: str | None = Field(Form(max_length=4096, default=None))


class DeleteForm(BaseModel):
    record_id: str = Field(Form(max_length=16))


## Query Parameters
class QueryParams(BaseModel):
    search: str | None = Field(
        Query(default=None, description="Matches ID, title, description and people")
    )
    status: ComplianceStatus | None = Field(
        Query(default=None, description=enumStr(ComplianceStatus))
    )
    type: ComplianceType | None = Field(
        Query(default=None, description=enumStr(ComplianceType))
    )
    priority: CompliancePriority | None = Field(
        Query(default=None, description=enumStr(CompliancePriority))
    )
    # Pagination
    page: int = Field(Query(default=1, ge=1))
    limit: int = Field(Query(default=50, gt=0, le=100))


## Function
def reportedStatus(record: ComplianceRecord, now: datetime) -> ComplianceStatus:
    """Pending records past their due date are reported as overdue."""
    status = ComplianceStatus(record.status)
    if status == ComplianceStatus.PENDING and toUTC(record.due_date) < now:
        return ComplianceStatus.OVERDUE
    return status


def recordData(record: ComplianceRecord, now: datetime) -> dict:
    data = jsonable_encoder(record)
    data["status"] = reportedStatus(record, now).value
    return data


def filterCompliance(
    session: Session, business_id: int, qParam: QueryParams, now: datetime
):
    query = session.query(ComplianceRecord).filter(
        ComplianceRecord.business_id == business_id
    )

    # Filters
    if qParam.status == ComplianceStatus.OVERDUE:
        query = query.filter(
            or_(
                ComplianceRecord.status == ComplianceStatus.OVERDUE,
                and_(
                    ComplianceRecord.status == ComplianceStatus.PENDING,
                    ComplianceRecord.due_date < now,
                ),
            )
        )
    elif qParam.status == ComplianceStatus.PENDING:
        query = query.filter(ComplianceRecord.status == ComplianceStatus.PENDING)
        query = query.filter(ComplianceRecord.due_date >= now)
    elif qParam.status is not None:
        query = query.filter(ComplianceRecord.status == qParam.status)
    if qParam.type is not None:
        query = query.filter(ComplianceRecord.type == qParam.type)
    if qParam.priority is not None:
        query = query.filter(ComplianceRecord.priority == qParam.priority)
    if qParam.search is not None:
        pattern = f"%{qParam.search}%"
        query = query.filter(
            or_(
                ComplianceRecord.record_id.ilike(pattern),
                ComplianceRecord.title.ilike(pattern),
                ComplianceRecord.description.ilike(pattern),
                ComplianceRecord.responsible_person.ilike(pattern),
                ComplianceRecord.assigned_to.ilike(pattern),
            )
        )

    # Ordering
    return query.order_by(ComplianceRecord.due_date.asc(), ComplianceRecord.id.asc())


def getRecord(session: Session, business_id: int, record_id: str) -> ComplianceRecord:
    record = (
        session.query(ComplianceRecord)
        .filter(ComplianceRecord.business_id == business_id)
        .filter(ComplianceRecord.record_id == record_id)
        .first()
    )
    if record is None:
        raise exceptions.InvalidIdentifier()
    return record


def updateRecord(record: ComplianceRecord, fParam: UpdateForm, now: datetime):
    updateIfChanged(
        record,
        fParam,
        [
            ComplianceRecord.type.key,
            ComplianceRecord.title.key,
            ComplianceRecord.description.key,
            ComplianceRecord.due_date.key,
            ComplianceRecord.priority.key,
            ComplianceRecord.responsible_person.key,
            ComplianceRecord.assigned_to.key,
            ComplianceRecord.documents.key,
            ComplianceRecord.notes.key,
        ],
    )
    if fParam.status is None or record.status == fParam.status:
        return
    record.status = fParam.status
    if fParam.status == ComplianceStatus.COMPLETED:
        record.completed_date = now
    else:
        record.completed_date = None


def exportRow(record: ComplianceRecord, now: datetime) -> list:
    return [
        record.record_id,
        record.type,
        record.title,
        record.description,
        toUTC(record.due_date),
        toUTC(record.completed_date),
        reportedStatus(record, now),
        record.priority,
        record.assigned_to,
        record.responsible_person,
        record.notes,
    ]


## API endpoints [Vendor]
@route_vendor.post(
    URL_COMPLIANCE,
    tags=["Compliance"],
    response_model=ComplianceResponse,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
            exceptions.MissingParameter,
        ]
    ),
    description="""
    Creates a compliance record for the caller's pharmacy.

    - The record ID is generated as `CR` + date + timestamp digits.
    - New records start in pending status.
    """,
)
async def create_record(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.PHARMACY, COMPLIANCE_STAFF
        )

        now = datetime.now(timezone.utc)
        record = ComplianceRecord(
            record_id=generateRecordID(now),
            business_id=business.id,
            type=fParam.type,
            title=fParam.title,
            description=fParam.description,
            due_date=fParam.due_date,
            status=ComplianceStatus.PENDING,
            priority=fParam.priority,
            responsible_person=fParam.responsible_person,
            assigned_to=fParam.assigned_to,
            documents=fParam.documents or [],
            notes=fParam.notes,
        )
        session.add(record)
        session.commit()
        session.refresh(record)

        data = recordData(record, now)
        logEvent(token, request_info, data)
        return {"success": True, "record": data}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.patch(
    URL_COMPLIANCE,
    tags=["Compliance"],
    response_model=ComplianceResponse,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
            exceptions.InvalidIdentifier,
        ]
    ),
    description="""
    Updates a compliance record; only the provided fields change.

    - Completing a record stamps `completed_date`, reopening it clears the stamp.
    """,
)
async def update_record(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.PHARMACY, COMPLIANCE_STAFF
        )

        now = datetime.now(timezone.utc)
        record = getRecord(session, business.id, fParam.record_id)
        updateRecord(record, fParam, now)
        haveUpdates = session.is_modified(record)
        if haveUpdates:
            session.commit()
            session.refresh(record)

        data = recordData(record, now)
        if haveUpdates:
            logEvent(token, request_info, data)
        return {"success": True, "record": data}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.delete(
    URL_COMPLIANCE,
    tags=["Compliance"],
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
    Deletes a compliance record.
    """,
)
async def delete_record(
    fParam: DeleteForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.PHARMACY, COMPLIANCE_STAFF
        )

        record = getRecord(session, business.id, fParam.record_id)
        data = jsonable_encoder(record)
        session.delete(record)
        session.commit()
        logEvent(token, request_info, data)
        return {"success": True, "message": "Compliance record deleted"}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.get(
    URL_COMPLIANCE,
    tags=["Compliance"],
    response_model=ComplianceListResponse,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
        ]
    ),
    description="""
    Lists the compliance records of the caller's pharmacy, earliest due date first.

    - Pending records past their due date are reported, and filtered, as overdue.
    - Search, filter by status, type and priority, paginate with `page` and `limit`.
    """,
)
async def fetch_records(qParam: QueryParams = Depends(), bearer=Depends(bearer_vendor)):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.PHARMACY, COMPLIANCE_STAFF
        )

        now = datetime.now(timezone.utc)
        query = filterCompliance(session, business.id, qParam, now)
        records, pagination = paginate(query, qParam.page, qParam.limit)
        return {
            "success": True,
            "records": [recordData(record, now) for record in records],
            "pagination": pagination,
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.get(
    URL_COMPLIANCE_EXPORT,
    tags=["Compliance"],
    response_class=Response,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
        ]
    ),
    description="""
    Exports the filtered compliance records as a CSV file, ignoring pagination.
    """,
)
async def export_records(qParam: QueryParams = Depends(), bearer=Depends(bearer_vendor)):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.PHARMACY, COMPLIANCE_STAFF
        )

        now = datetime.now(timezone.utc)
        records = filterCompliance(session, business.id, qParam, now).all()
        content = toCSV(EXPORT_HEADERS, (exportRow(record, now) for record in records))
        return csvResponse(content, f"compliance-{now:%Y-%m-%d}.csv")
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
