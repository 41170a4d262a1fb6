"""
Platform wide compliance overview of the pharmacies, for the admin app.

Reports are derived from the compliance records of each pharmacy, nothing
is stored:

- The review status follows the business status: active businesses are
  approved, pending ones under review and suspended ones rejected.
- The score is the share of completed records among the non cancelled ones,
  100 for a pharmacy without records.
- Violations are overdue records, recommendations the open (pending) ones.
"""

from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm.session import Session
from pydantic import BaseModel, Field

from vendorhub.api.bearer import bearer_admin
from vendorhub.src.constants import COMPLIANCE_RATINGS, COMPLIANCE_REVIEW_PERIOD
from vendorhub.src.db import Business, ComplianceRecord, sessionMaker
from vendorhub.src import exceptions, validators, getters, schemas
from vendorhub.src.enums import (
    BusinessStatus,
    ComplianceReportStatus,
    ComplianceStatus,
    ComplianceType,
    ServiceType,
)
from vendorhub.src.functions import (
    csvResponse,
    enumStr,
    makeExceptionResponses,
    paginateList,
    toCSV,
    toUTC,
)
from vendorhub.src.urls import URL_COMPLIANCE_REPORT, URL_COMPLIANCE_REPORT_EXPORT

route_admin = APIRouter()

REVIEW_STATUS = {
    BusinessStatus.ACTIVE: ComplianceReportStatus.APPROVED,
    BusinessStatus.PENDING: ComplianceReportStatus.UNDER_REVIEW,
    BusinessStatus.SUSPENDED: ComplianceReportStatus.REJECTED,
}

AUDIT_TYPES = (ComplianceType.AUDIT, ComplianceType.INSPECTION)

EXPORT_HEADERS = [
    "Business ID",
    "Business",
    "Status",
    "Score",
    "Rating",
    "Total Records",
    "Completed",
    "Violations",
    "Recommendations",
    "Last Audit",
    "Next Due",
]


## Output Schema
class ReportSchema(BaseModel):
    business_id: int
    business_name: str
    status: ComplianceReportStatus
    score: int
    rating: str
    total_records: int
    completed: int
    violations: int
    recommendations: int
    last_audit: Optional[datetime]
    next_due: datetime


class MetricsSchema(BaseModel):
    total: int
    approved: int
    under_review: int
    rejected: int
    average_score: float
    violations: int
    recommendations: int


class ReportListResponse(BaseModel):
    success: bool = True
    reports: List[ReportSchema]
    metrics: MetricsSchema
    pagination: schemas.Pagination


## Query Parameters
class QueryParams(BaseModel):
    search: str | None = Field(Query(default=None, description="Business name"))
    status: ComplianceReportStatus | None = Field(
        Query(default=None, description=enumStr(ComplianceReportStatus))
    )
    # Pagination
    page: int = Field(Query(default=1, ge=1))
    limit: int = Field(Query(default=20, gt=0, le=100))


## Function
def complianceRating(score: int) -> str:
    for threshold, rating in COMPLIANCE_RATINGS:
        if score >= threshold:
            return rating
    return COMPLIANCE_RATINGS[-1][1]


def businessReport(
    business: Business, records: List[ComplianceRecord], now: datetime
) -> dict:
    statuses = defaultdict(int)
    pendingDues = []
    audits = []
    for record in records:
        status = ComplianceStatus(record.status)
        dueDate = toUTC(record.due_date)
        if status == ComplianceStatus.PENDING and dueDate < now:
            status = ComplianceStatus.OVERDUE
        statuses[status] += 1
        if status == ComplianceStatus.PENDING:
            pendingDues.append(dueDate)
        if status == ComplianceStatus.COMPLETED and record.type in AUDIT_TYPES:
            audits.append(toUTC(record.completed_date or record.updated_on))

    considered = len(records) - statuses[ComplianceStatus.CANCELLED]
    if considered > 0:
        score = round(statuses[ComplianceStatus.COMPLETED] * 100 / considered)
    else:
        score = 100

    if pendingDues:
        nextDue = min(pendingDues)
    else:
        nextDue = toUTC(business.created_on) + timedelta(days=COMPLIANCE_REVIEW_PERIOD)

    return {
        "business_id": business.id,
        "business_name": business.name,
        "status": REVIEW_STATUS.get(
            BusinessStatus(business.status), ComplianceReportStatus.UNDER_REVIEW
        ),
        "score": score,
        "rating": complianceRating(score),
        "total_records": len(records),
        "completed": statuses[ComplianceStatus.COMPLETED],
        "violations": statuses[ComplianceStatus.OVERDUE],
        "recommendations": statuses[ComplianceStatus.PENDING],
        "last_audit": max((a for a in audits if a is not None), default=None),
        "next_due": nextDue,
    }


def complianceReports(session: Session, qParam: QueryParams, now: datetime):
    query = session.query(Business).filter(
        Business.service_type == ServiceType.PHARMACY
    )
    if qParam.search is not None:
        query = query.filter(Business.name.ilike(f"%{qParam.search}%"))
    businesses = query.order_by(Business.name.asc(), Business.id.asc()).all()

    records = defaultdict(list)
    if businesses:
        rows = (
            session.query(ComplianceRecord)
            .filter(ComplianceRecord.business_id.in_([b.id for b in businesses]))
            .all()
        )
        for record in rows:
            records[record.business_id].append(record)

    reports = [businessReport(b, records[b.id], now) for b in businesses]
    if qParam.status is not None:
        reports = [r for r in reports if r["status"] == qParam.status]
    return reports


def reportMetrics(reports: List[dict]) -> dict:
    statuses = [report["status"] for report in reports]
    scores = [report["score"] for report in reports]
    return {
        "total": len(reports),
        "approved": statuses.count(ComplianceReportStatus.APPROVED),
        "under_review": statuses.count(ComplianceReportStatus.UNDER_REVIEW),
        "rejected": statuses.count(ComplianceReportStatus.REJECTED),
        "average_score": round(sum(scores) / len(scores), 1) if scores else 0.0,
        "violations": sum(report["violations"] for report in reports),
        "recommendations": sum(report["recommendations"] for report in reports),
    }


def adminAccess(bearer, session: Session):
    token = validators.adminToken(bearer, session)
    validators.activeAccount(getters.admin(token, session))
    return token


## API endpoints [Admin]
@route_admin.get(
    URL_COMPLIANCE_REPORT,
    tags=["Compliance Report"],
    response_model=ReportListResponse,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Compliance report of every pharmacy on the platform, with platform wide metrics.

    - Search by business name and filter by review status.
    - The metrics cover every matching pharmacy, not only the current page.
    """,
)
async def fetch_reports(qParam: QueryParams = Depends(), bearer=Depends(bearer_admin)):
    try:
        session = sessionMaker()
        adminAccess(bearer, session)

        reports = complianceReports(session, qParam, datetime.now(timezone.utc))
        page, pagination = paginateList(reports, qParam.page, qParam.limit)
        return {
            "success": True,
            "reports": page,
            "metrics": reportMetrics(reports),
            "pagination": pagination,
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.get(
    URL_COMPLIANCE_REPORT_EXPORT,
    tags=["Compliance Report"],
    response_class=Response,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Exports the compliance report of the matching pharmacies as a CSV file.
    """,
)
async def export_reports(qParam: QueryParams = Depends(), bearer=Depends(bearer_admin)):
    try:
        session = sessionMaker()
        adminAccess(bearer, session)

        now = datetime.now(timezone.utc)
        reports = complianceReports(session, qParam, now)
        content = toCSV(
            EXPORT_HEADERS,
            (
                [
                    r["business_id"],
                    r["business_name"],
                    r["status"],
                    r["score"],
                    r["rating"],
                    r["total_records"],
                    r["completed"],
                    r["violations"],
                    r["recommendations"],
                    r["last_audit"],
                    r["next_due"],
                ]
                for r in reports
            ),
        )
        return csvResponse(content, f"compliance-report-{now:%Y-%m-%d}.csv")
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
