from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from vendorhub.api.bearer import bearer_admin, bearer_vendor
from vendorhub.src.db import Subscription, SubscriptionPlan, sessionMaker
from vendorhub.src import exceptions, validators, getters, schemas
from vendorhub.src.enums import AdminRole, BillingCycle, PlanType, ServiceType
from vendorhub.src.loggers import logEvent
from vendorhub.src.functions import (
    enumStr,
    makeExceptionResponses,
    paginate,
    updateIfChanged,
)
from vendorhub.src.urls import URL_SUBSCRIPTION_PLAN

route_admin = APIRouter()
route_vendor = APIRouter()
route_public = APIRouter()

PLAN_ADMINS = [AdminRole.ADMIN, AdminRole.SUPER_ADMIN]


## Output Schema
class PlanSchema(BaseModel):
    id: int
    name: str
    description: Optional[str]
    vendor_type: ServiceType
    plan_type: PlanType
    price: float
    currency: str
    billing_cycle: BillingCycle
    features: List[str]
    max_users: int
    max_loans: int
    max_storage: int
    max_staff_accounts: int
    is_active: bool
    is_popular: bool
    sort_order: int
    updated_on: Optional[datetime]
    created_on: datetime


class PlanResponse(BaseModel):
    success: bool = True
    plan: PlanSchema


class PlanCatalogueResponse(BaseModel):
    success: bool = True
    plans: List[PlanSchema]


class PlanListResponse(PlanCatalogueResponse):
    pagination: schemas.Pagination


## Input Forms
class CreateForm(BaseModel):
    name: str = Field(Form(min_length=1, max_length=64))
    vendor_type: ServiceType = Field(Form(description=enumStr(ServiceType)))
    price: float = Field(Form(ge=0))
    description: str | None = Field(Form(max_length=2048, default=None))
    plan_type: PlanType = Field(
        Form(description=enumStr(PlanType), default=PlanType.BASIC)
    )
    currency: str = Field(Form(min_length=3, max_length=8, default="ZMW"))
    billing_cycle: BillingCycle = Field(
        Form(description=enumStr(BillingCycle), default=BillingCycle.MONTHLY)
    )
    features: List[str] | None = Field(Form(default=None))
    max_users: int = Field(Form(ge=0, default=0))
    max_loans: int = Field(Form(ge=0, default=0))
    max_storage: int = Field(Form(ge=0, default=0))
    max_staff_accounts: int = Field(Form(ge=0, default=0))
    is_active: bool = Field(Form(default=True))
    is_popular: bool = Field(Form(default=False))
    sort_order: int = Field(Form(default=0))


class UpdateForm(BaseModel):
    id: int = Field(Form())
    name: str | None = Field(Form(min_length=1, max_length=64, default=None))
    description: str | None = Field(Form(max_length=2048, default=None))
    plan_type: PlanType | None = Field(
        Form(description=enumStr(PlanType), default=None)
    )
    price: float | None = Field(Form(ge=0, default=None))
    currency: str | None = Field(Form(min_length=3, max_length=8, default=None))
    billing_cycle: BillingCycle | None = Field(
        Form(description=enumStr(BillingCycle), default=None)
    )
    features: List[str] | None = Field(Form(default=None))
    max_users: int | None = Field(Form(ge=0, default=None))
    max_loans: int | None = Field(Form(ge=0, default=None))
    max_storage: int | None = Field(Form(ge=0, default=None))
    max_staff_accounts: int | None = Field(Form(ge=0, default=None))
    is_active: bool | None = Field(Form(default=None))
    is_popular: bool | None = Field(Form(default=None))
    sort_order: int | None = Field(Form(default=None))


class DeleteForm(BaseModel):
    id: int = Field(Form())


## Query Parameters
class CatalogueParams(BaseModel):
    vendor_type: ServiceType | None = Field(
        Query(default=None, description=enumStr(ServiceType))
    )


class QueryParams(CatalogueParams):
    is_active: bool | None = Field(Query(default=None))
    # Pagination
    page: int = Field(Query(default=1, ge=1))
    limit: int = Field(Query(default=20, gt=0, le=100))


## Function
def catalogue(session: Session, vendor_type: ServiceType | None):
    """Active plans in catalogue order."""
    query = session.query(SubscriptionPlan).filter(SubscriptionPlan.is_active.is_(True))
    if vendor_type is not None:
        query = query.filter(SubscriptionPlan.vendor_type == vendor_type)
    return query.order_by(
        SubscriptionPlan.sort_order.asc(), SubscriptionPlan.id.asc()
    ).all()


def updatePlan(plan: SubscriptionPlan, fParam: UpdateForm):
    updateIfChanged(
        plan,
        fParam,
        [
            SubscriptionPlan.name.key,
            SubscriptionPlan.description.key,
            SubscriptionPlan.plan_type.key,
            SubscriptionPlan.price.key,
            SubscriptionPlan.currency.key,
            SubscriptionPlan.billing_cycle.key,
            SubscriptionPlan.features.key,
            SubscriptionPlan.max_users.key,
            SubscriptionPlan.max_loans.key,
            SubscriptionPlan.max_storage.key,
            SubscriptionPlan.max_staff_accounts.key,
            SubscriptionPlan.is_active.key,
            SubscriptionPlan.is_popular.key,
            SubscriptionPlan.sort_order.key,
        ],
    )


def planAdmin(bearer, session: Session):
    token = validators.adminToken(bearer, session)
    admin = getters.admin(token, session)
    validators.activeAccount(admin)
    validators.role(admin, PLAN_ADMINS)
    return token


def getPlan(session: Session, plan_id: int) -> SubscriptionPlan:
    plan = session.query(SubscriptionPlan).filter(SubscriptionPlan.id == plan_id).first()
    if plan is None:
        raise exceptions.InvalidIdentifier()
    return plan


## API endpoints [Public]
@route_public.get(
    URL_SUBSCRIPTION_PLAN,
    tags=["Subscription Plan"],
    response_model=PlanCatalogueResponse,
    description="""
    The plan catalogue: active plans, optionally of one vertical, in display order.
    """,
)
async def fetch_catalogue(qParam: CatalogueParams = Depends()):
    try:
        session = sessionMaker()
        plans = catalogue(session, qParam.vendor_type)
        return {"success": True, "plans": jsonable_encoder(plans)}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


## API endpoints [Vendor]
@route_vendor.get(
    URL_SUBSCRIPTION_PLAN,
    tags=["Subscription Plan"],
    response_model=PlanCatalogueResponse,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Active plans of the caller's vertical, in display order.
    """,
)
async def fetch_plans(bearer=Depends(bearer_vendor)):
    try:
        session = sessionMaker()
        token = validators.vendorToken(bearer, session)
        validators.activeAccount(getters.vendor(token, session))
        business = getters.business(token, session)

        plans = catalogue(session, ServiceType(business.service_type))
        return {"success": True, "plans": jsonable_encoder(plans)}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


## API endpoints [Admin]
@route_admin.post(
    URL_SUBSCRIPTION_PLAN,
    tags=["Subscription Plan"],
    response_model=PlanResponse,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.NoPermission]
    ),
    description="""
    Creates a subscription plan for one vertical.
    """,
)
async def create_plan(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_admin),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = planAdmin(bearer, session)

        plan = SubscriptionPlan(
            name=fParam.name,
            description=fParam.description,
            vendor_type=fParam.vendor_type,
            plan_type=fParam.plan_type,
            price=fParam.price,
            currency=fParam.currency,
            billing_cycle=fParam.billing_cycle,
            features=fParam.features or [],
            max_users=fParam.max_users,
            max_loans=fParam.max_loans,
            max_storage=fParam.max_storage,
            max_staff_accounts=fParam.max_staff_accounts,
            is_active=fParam.is_active,
            is_popular=fParam.is_popular,
            sort_order=fParam.sort_order,
        )
        session.add(plan)
        session.commit()
        session.refresh(plan)

        planData = jsonable_encoder(plan)
        logEvent(token, request_info, planData)
        return {"success": True, "plan": planData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.patch(
    URL_SUBSCRIPTION_PLAN,
    tags=["Subscription Plan"],
    response_model=PlanResponse,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.NoPermission, exceptions.InvalidIdentifier]
    ),
    description="""
    Updates a subscription plan. Running subscriptions keep the price they were
    charged with.
    """,
)
async def update_plan(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_admin),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = planAdmin(bearer, session)

        plan = getPlan(session, fParam.id)
        updatePlan(plan, fParam)
        haveUpdates = session.is_modified(plan)
        if haveUpdates:
            session.commit()
            session.refresh(plan)

        planData = jsonable_encoder(plan)
        if haveUpdates:
            logEvent(token, request_info, planData)
        return {"success": True, "plan": planData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.delete(
    URL_SUBSCRIPTION_PLAN,
    tags=["Subscription Plan"],
    response_model=schemas.SuccessResponse,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.NoPermission,
            exceptions.InvalidIdentifier,
            exceptions.ForeignKeyViolation,
        ]
    ),
    description="""
    Deletes a subscription plan.

    - Plans that were ever subscribed to can not be deleted; deactivate them instead.
    """,
)
async def delete_plan(
    fParam: DeleteForm = Depends(),
    bearer=Depends(bearer_admin),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = planAdmin(bearer, session)

        plan = getPlan(session, fParam.id)
        inUse = (
            session.query(Subscription.id)
            .filter(Subscription.plan_id == plan.id)
            .first()
        )
        if inUse is not None:
            raise exceptions.ForeignKeyViolation(
                "The plan is referenced by subscriptions"
            )

        planData = jsonable_encoder(plan)
        session.delete(plan)
        session.commit()
        logEvent(token, request_info, planData)
        return {"success": True, "message": "Subscription plan deleted"}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.get(
    URL_SUBSCRIPTION_PLAN,
    tags=["Subscription Plan"],
    response_model=PlanListResponse,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.NoPermission]
    ),
    description="""
    Lists every subscription plan, including the inactive ones.
    """,
)
async def fetch_all_plans(qParam: QueryParams = Depends(), bearer=Depends(bearer_admin)):
    try:
        session = sessionMaker()
        planAdmin(bearer, session)

        query = session.query(SubscriptionPlan)
        if qParam.vendor_type is not None:
            query = query.filter(SubscriptionPlan.vendor_type == qParam.vendor_type)
        if qParam.is_active is not None:
            query = query.filter(SubscriptionPlan.is_active == qParam.is_active)
        query = query.order_by(
            SubscriptionPlan.vendor_type.asc(),
            SubscriptionPlan.sort_order.asc(),
            SubscriptionPlan.id.asc(),
        )
        plans, pagination = paginate(query, qParam.page, qParam.limit)
        return {
            "success": True,
            "plans": jsonable_encoder(plans),
            "pagination": pagination,
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
