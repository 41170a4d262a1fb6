from datetime import datetime, timezone
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from sqlalchemy import or_
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from vendorhub.api.bearer import bearer_vendor
from vendorhub.src.db import Prescription, PrescriptionMedicine, sessionMaker
from vendorhub.src import exceptions, validators, getters, schemas
from vendorhub.src.enums import (
    OrderIn,
    PrescriptionStatus,
    PrescriptionType,
    ServiceType,
    VendorRole,
)
from vendorhub.src.loggers import logEvent
from vendorhub.src.functions import (
    enumStr,
    makeExceptionResponses,
    paginate,
    toUTC,
    updateIfChanged,
)
from vendorhub.src.urls import (
    URL_PRESCRIPTION,
    URL_PRESCRIPTION_DISPENSE,
    URL_PRESCRIPTION_MEDICINE,
)

route_vendor = APIRouter()

PRESCRIPTION_STAFF = [VendorRole.MANAGER, VendorRole.PHARMACIST]

# Dispensing is done through its own endpoint
STATUS_TRANSITIONS = {
    PrescriptionStatus.PENDING: [
        PrescriptionStatus.CANCELLED,
        PrescriptionStatus.EXPIRED,
    ],
    PrescriptionStatus.DISPENSED: [],
    PrescriptionStatus.CANCELLED: [],
    PrescriptionStatus.EXPIRED: [],
}


## Output Schema
class MedicineSchema(BaseModel):
    id: int
    medicine_id: Optional[str]
    medicine_name: str
    dosage: str
    frequency: str
    duration: str
    quantity: int
    instructions: Optional[str]


class PrescriptionSchema(BaseModel):
    id: int
    business_id: int
    prescription_number: str
    patient_id: str
    patient_name: str
    doctor_name: str
    doctor_license: Optional[str]
    diagnosis: Optional[str]
    notes: Optional[str]
    prescribed_date: datetime
    expiry_date: datetime
    dispensed_date: Optional[datetime]
    status: PrescriptionStatus
    prescription_type: PrescriptionType
    total_amount: float
    medicines: List[MedicineSchema]
    updated_on: Optional[datetime]
    created_on: datetime


class PrescriptionResponse(BaseModel):
    success: bool = True
    prescription: PrescriptionSchema


class PrescriptionListResponse(BaseModel):
    success: bool = True
    prescriptions: List[PrescriptionSchema]
    pagination: schemas.Pagination


## Input Forms
class CreateForm(BaseModel):
    prescription_number: str = Field(Form(min_length=1, max_length=48))
    patient_id: str = Field(Form(min_length=1, max_length=48))
    patient_name: str = Field(Form(min_length=1, max_length=128))
    doctor_name: str = Field(Form(min_length=1, max_length=128))
    prescribed_date: datetime = Field(Form())
    expiry_date: datetime = Field(Form())
    doctor_license: str | None = Field(Form(max_length=48, default=None))
    diagnosis: str | None = Field(Form(max_length=2048, default=None))
    notes: str | None = Field(Form(max_length=2048, default=None))
    prescription_type: PrescriptionType = Field(
        Form(description=enumStr(PrescriptionType), default=PrescriptionType.PHYSICAL)
    )
    total_amount: float = Field(Form(ge=0, default=0))


class UpdateForm(BaseModel):
    id: int = Field(Form())
    prescription_number: str | None = Field(
        Form(min_length=1, max_length=48, default=None)
    )
    patient_id: str | None = Field(Form(min_length=1, max_length=48, default=None))
    patient_name: str | None = Field(Form(min_length=1, max_length=128, default=None))
    doctor_name: str | None = Field(Form(min_length=1, max_length=128, default=None))
    doctor_license: str | None = Field(Form(max_length=48, default=None))
    diagnosis: str | None = Field(Form(max_length=2048, default=None))
    notes: str | None = Field(Form(max_length=2048, default=None))
    prescribed_date: datetime | None = Field(Form(default=None))
    expiry_date: datetime | None = Field(Form(default=None))
    prescription_type: PrescriptionType | None = Field(
        Form(description=enumStr(PrescriptionType), default=None)
    )
    total_amount: float | None = Field(Form(ge=0, default=None))
    status: PrescriptionStatus | None = Field(
        Form(description="cancelled or expired", default=None)
    )


class DeleteForm(BaseModel):
    id: int = Field(Form())


class DispenseForm(BaseModel):
    id: int = Field(Form())


class CreateMedicineForm(BaseModel):
    prescription_id: int = Field(Form())
    medicine_name: str = Field(Form(min_length=1, max_length=128))
    dosage: str = Field(Form(min_length=1, max_length=64))
    frequency: str = Field(Form(min_length=1, max_length=64))
    duration: str = Field(Form(min_length=1, max_length=64))
    quantity: int = Field(Form(ge=1))
    medicine_id: str | None = Field(Form(max_length=48, default=None))
    instructions: str | None = Field(Form(max_length=1024, default=None))


class DeleteMedicineForm(BaseModel):
    prescription_id: int = Field(Form())
    id: int = Field(Form(description="ID of the medicine line"))


## Query Parameters
class OrderBy(IntEnum):
    id = 1
    prescribed_date = 2
    expiry_date = 3
    created_on = 4


class QueryParams(BaseModel):
    search: str | None = Field(
        Query(default=None, description="Matches number, patient and doctor")
    )
    status: PrescriptionStatus | None = Field(
        Query(default=None, description=enumStr(PrescriptionStatus))
    )
    prescription_type: PrescriptionType | None = Field(
        Query(default=None, description=enumStr(PrescriptionType))
    )
    # Ordering
    order_by: OrderBy = Field(
        Query(default=OrderBy.created_on, description=enumStr(OrderBy))
    )
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    page: int = Field(Query(default=1, ge=1))
    limit: int = Field(Query(default=10, gt=0, le=100))


## Function
def checkNumber(
    session: Session, business_id: int, number: str, exclude_id: int = None
):
    query = (
        session.query(Prescription)
        .filter(Prescription.business_id == business_id)
        .filter(Prescription.prescription_number == number)
    )
    if exclude_id is not None:
        query = query.filter(Prescription.id != exclude_id)
    if query.first() is not None:
        raise exceptions.DuplicateValue(Prescription.prescription_number)


def checkDates(prescribed: datetime, expiry: datetime):
    if toUTC(expiry) <= toUTC(prescribed):
        raise exceptions.InvalidValue(Prescription.expiry_date)


def getPrescription(session: Session, business_id: int, id: int) -> Prescription:
    prescription = (
        session.query(Prescription)
        .filter(Prescription.business_id == business_id)
        .filter(Prescription.id == id)
        .first()
    )
    if prescription is None:
        raise exceptions.InvalidIdentifier()
    return prescription


def updatePrescription(prescription: Prescription, fParam: UpdateForm):
    updateIfChanged(
        prescription,
        fParam,
        [
            Prescription.prescription_number.key,
            Prescription.patient_id.key,
            Prescription.patient_name.key,
            Prescription.doctor_name.key,
            Prescription.doctor_license.key,
            Prescription.diagnosis.key,
            Prescription.notes.key,
            Prescription.prescribed_date.key,
            Prescription.expiry_date.key,
            Prescription.prescription_type.key,
            Prescription.total_amount.key,
        ],
    )
    checkDates(prescription.prescribed_date, prescription.expiry_date)
    if fParam.status is not None and prescription.status != fParam.status:
        validators.stateTransition(
            STATUS_TRANSITIONS,
            PrescriptionStatus(prescription.status),
            fParam.status,
            Prescription.status,
        )
        prescription.status = fParam.status


def checkDispensable(prescription: Prescription, now: datetime):
    """
    Raises:
        exceptions.InvalidStateTransition: If the prescription was already
        dispensed, was cancelled or has expired.
    """
    if prescription.status != PrescriptionStatus.PENDING:
        raise exceptions.InvalidStateTransition(Prescription.status)
    if toUTC(prescription.expiry_date) < now:
        raise exceptions.InvalidStateTransition(Prescription.status)


def searchPrescription(session: Session, business_id: int, qParam: QueryParams):
    query = session.query(Prescription).filter(Prescription.business_id == business_id)

    # Filters
    if qParam.status is not None:
        query = query.filter(Prescription.status == qParam.status)
    if qParam.prescription_type is not None:
        query = query.filter(Prescription.prescription_type == qParam.prescription_type)
    if qParam.search is not None:
        pattern = f"%{qParam.search}%"
        query = query.filter(
            or_(
                Prescription.prescription_number.ilike(pattern),
                Prescription.patient_id.ilike(pattern),
                Prescription.patient_name.ilike(pattern),
                Prescription.doctor_name.ilike(pattern),
            )
        )

    # Ordering
    orderingAttribute = getattr(Prescription, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc(), Prescription.id.asc())
    else:
        query = query.order_by(orderingAttribute.desc(), Prescription.id.desc())

    return paginate(query, qParam.page, qParam.limit)


## API endpoints [Vendor]
@route_vendor.post(
    URL_PRESCRIPTION,
    tags=["Prescription"],
    response_model=PrescriptionResponse,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
            exceptions.DuplicateValue,
            exceptions.InvalidValue,
        ]
    ),
    description="""
    Registers a prescription at the caller's pharmacy.

    - Prescription numbers are unique within a pharmacy.
    - The expiry date must be after the prescribed date.
    - Medicines are added through the medicine endpoint.
    """,
)
async def create_prescription(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.PHARMACY, PRESCRIPTION_STAFF
        )
        checkNumber(session, business.id, fParam.prescription_number)
        checkDates(fParam.prescribed_date, fParam.expiry_date)

        prescription = Prescription(
            business_id=business.id,
            prescription_number=fParam.prescription_number,
            patient_id=fParam.patient_id,
            patient_name=fParam.patient_name,
            doctor_name=fParam.doctor_name,
            doctor_license=fParam.doctor_license,
            diagnosis=fParam.diagnosis,
            notes=fParam.notes,
            prescribed_date=fParam.prescribed_date,
            expiry_date=fParam.expiry_date,
            prescription_type=fParam.prescription_type,
            total_amount=fParam.total_amount,
            status=PrescriptionStatus.PENDING,
            medicines=[],
        )
        session.add(prescription)
        session.commit()
        session.refresh(prescription)

        prescriptionData = jsonable_encoder(prescription)
        logEvent(token, request_info, prescriptionData)
        return {"success": True, "prescription": prescriptionData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.patch(
    URL_PRESCRIPTION,
    tags=["Prescription"],
    response_model=PrescriptionResponse,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
            exceptions.InvalidIdentifier,
            exceptions.DuplicateValue,
            exceptions.InvalidStateTransition,
        ]
    ),
    description="""
    Updates a prescription; only the provided fields change.

    - A pending prescription can be cancelled or marked expired.
    - Use the dispense endpoint to dispense it.
    """,
)
async def update_prescription(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.PHARMACY, PRESCRIPTION_STAFF
        )

        prescription = getPrescription(session, business.id, fParam.id)
        if (
            fParam.prescription_number is not None
            and fParam.prescription_number != prescription.prescription_number
        ):
            checkNumber(
                session, business.id, fParam.prescription_number, prescription.id
            )

        updatePrescription(prescription, fParam)
        haveUpdates = session.is_modified(prescription)
        if haveUpdates:
            session.commit()
            session.refresh(prescription)

        prescriptionData = jsonable_encoder(prescription)
        if haveUpdates:
            logEvent(token, request_info, prescriptionData)
        return {"success": True, "prescription": prescriptionData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.delete(
    URL_PRESCRIPTION,
    tags=["Prescription"],
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
    Deletes a prescription together with its medicines.
    """,
)
async def delete_prescription(
    fParam: DeleteForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.PHARMACY, PRESCRIPTION_STAFF
        )

        prescription = getPrescription(session, business.id, fParam.id)
        prescriptionData = jsonable_encoder(prescription)
        session.delete(prescription)
        session.commit()
        logEvent(token, request_info, prescriptionData)
        return {"success": True, "message": "Prescription deleted"}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.get(
    URL_PRESCRIPTION,
    tags=["Prescription"],
    response_model=PrescriptionListResponse,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.ServiceAccessDenied,
            exceptions.NoPermission,
        ]
    ),
    description="""
    Lists the prescriptions of the caller's pharmacy with their medicines.

    - Search by number, patient or doctor; filter by status and type.
    - Paginate with `page` and `limit`.
    """,
)
async def fetch_prescriptions(
    qParam: QueryParams = Depends(), bearer=Depends(bearer_vendor)
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.PHARMACY, PRESCRIPTION_STAFF
        )

        prescriptions, pagination = searchPrescription(session, business.id, qParam)
        return {
            "success": True,
            "prescriptions": jsonable_encoder(prescriptions),
            "pagination": pagination,
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.post(
    URL_PRESCRIPTION_DISPENSE,
    tags=["Prescription"],
    response_model=PrescriptionResponse,
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
    Dispenses a pending prescription and stamps `dispensed_date`.

    - Prescriptions already dispensed, cancelled, expired or past their expiry
      date can not be dispensed.
    """,
)
async def dispense_prescription(
    fParam: DispenseForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.PHARMACY, PRESCRIPTION_STAFF
        )

        now = datetime.now(timezone.utc)
        prescription = getPrescription(session, business.id, fParam.id)
        checkDispensable(prescription, now)

        prescription.status = PrescriptionStatus.DISPENSED
        prescription.dispensed_date = now
        session.commit()
        session.refresh(prescription)

        prescriptionData = jsonable_encoder(prescription)
        logEvent(token, request_info, prescriptionData)
        return {"success": True, "prescription": prescriptionData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.post(
    URL_PRESCRIPTION_MEDICINE,
    tags=["Prescription"],
    response_model=PrescriptionResponse,
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
    Adds a medicine line to a pending prescription.
    """,
)
async def create_medicine(
    fParam: CreateMedicineForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.PHARMACY, PRESCRIPTION_STAFF
        )

        prescription = getPrescription(session, business.id, fParam.prescription_id)
        if prescription.status != PrescriptionStatus.PENDING:
            raise exceptions.InactiveResource(Prescription)

        medicine = PrescriptionMedicine(
            medicine_id=fParam.medicine_id,
            medicine_name=fParam.medicine_name,
            dosage=fParam.dosage,
            frequency=fParam.frequency,
            duration=fParam.duration,
            quantity=fParam.quantity,
            instructions=fParam.instructions,
        )
        prescription.medicines.append(medicine)
        session.commit()
        session.refresh(prescription)

        prescriptionData = jsonable_encoder(prescription)
        logEvent(token, request_info, jsonable_encoder(medicine))
        return {"success": True, "prescription": prescriptionData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.delete(
    URL_PRESCRIPTION_MEDICINE,
    tags=["Prescription"],
    response_model=PrescriptionResponse,
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
    Removes a medicine line from a pending prescription.
    """,
)
async def delete_medicine(
    fParam: DeleteMedicineForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token, vendor, business = validators.vendorAccess(
            bearer, session, ServiceType.PHARMACY, PRESCRIPTION_STAFF
        )

        prescription = getPrescription(session, business.id, fParam.prescription_id)
        if prescription.status != PrescriptionStatus.PENDING:
            raise exceptions.InactiveResource(Prescription)
        medicine = next((m for m in prescription.medicines if m.id == fParam.id), None)
        if medicine is None:
            raise exceptions.InvalidIdentifier()

        medicineData = jsonable_encoder(medicine)
        prescription.medicines.remove(medicine)
        session.commit()
        session.refresh(prescription)

        prescriptionData = jsonable_encoder(prescription)
        logEvent(token, request_info, medicineData)
        return {"success": True, "prescription": prescriptionData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
