import csv, random, string
from datetime import date, datetime, timezone
from io import StringIO
from math import ceil
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Type
from dateutil.relativedelta import relativedelta
from fastapi.responses import Response
from sqlalchemy.orm import Query

from vendorhub.src import schemas
from vendorhub.src.enums import BillingCycle
from vendorhub.src.exceptions import APIException


def fuseExceptionResponses(exceptions: List[APIException]) -> Dict[int, dict]:
    """
    Generate OpenAPI response documentation by fusing multiple APIException instances.

    Args:
        exceptions (List[APIException]): List of instantiated exceptions.

    Returns:
        Dict[int, dict]: A dictionary of OpenAPI response specs grouped by status code.
    """
    responses = {}

    for exception in exceptions:
        status_code = exception.status_code
        example_key = type(exception).__name__
        example_value = {
            "summary": str(exception.headers),
            "value": {"success": False, "error": exception.detail},
        }

        if status_code not in responses:
            responses[status_code] = {
                "model": schemas.ErrorResponse,
                "content": {
                    "application/json": {"examples": {example_key: example_value}}
                },
            }
        else:
            responses[status_code]["content"]["application/json"]["examples"][
                example_key
            ] = example_value

    return responses


def makeExceptionResponses(exceptions: List[Type[APIException]]) -> Dict[int, dict]:
    """Instantiate the given exception classes and fuse them for OpenAPI."""
    return fuseExceptionResponses([exception() for exception in exceptions])


def enumStr(enumClass) -> str:
    """
    Convert an Enum class into a comma-separated string of its members.

    Each enum member is formatted as "<NAME>: <VALUE>".

    Example:
        >>> enumStr(BillingCycle)
        'MONTHLY: monthly, QUARTERLY: quarterly, YEARLY: yearly'
    """
    return ", ".join(f"{x.name}: {x.value}" for x in enumClass)


def isValidTransition(
    transitions: dict[Any, list[Any]], old_state: Any, new_state: Any
) -> bool:
    """
    Check if a state transition is valid.

    Args:
        transitions (dict[Any, list[Any]]): Mapping of valid transitions.
            Example:
                {
                    "scheduled": ["boarding"],
                    "boarding": ["departed"],
                }
        old_state (Any): Current state value.
        new_state (Any): Desired new state value.

    Returns:
        bool: True if transition is valid, False otherwise.

    Notes:
        - If `old_state` is not in the transitions mapping, this will return False.
        - Setting a state to its current value is not a transition and is rejected
          unless the mapping lists it explicitly.
    """
    if not transitions:
        return False
    if old_state not in transitions:
        return False
    return new_state in transitions[old_state]


def updateIfChanged(targetObj, sourceObj, fields: List[str]) -> None:
    """
    Update attributes on a target object from a source object
    only if the values differ and the new value is not None.

    Designed for use with SQLAlchemy models, where `fields` are typically
    provided as `Model.field.key`.

    Example:
        >>> updateIfChanged(
        ...     bus,
        ...     fParam,
        ...     [
        ...         Bus.name.key,
        ...         Bus.seats.key,
        ...         Bus.status.key,
        ...     ],
        ... )
        # bus will be updated where values differ; unchanged fields are skipped silently
    """
    for field in fields:
        new_value = getattr(sourceObj, field, None)
        if new_value is not None:
            old_value = getattr(targetObj, field)
            if old_value != new_value:
                setattr(targetObj, field, new_value)


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------
def pageCount(total: int, limit: int) -> int:
    """Number of pages needed to show `total` items, `limit` per page."""
    if limit <= 0:
        return 0
    return ceil(total / limit)


def paginate(query: Query, page: int, limit: int) -> Tuple[List[Any], dict]:
    """
    Slice an ordered SQLAlchemy query into one page.

    Args:
        query (Query): The filtered and ordered query.
        page (int): 1-based page number.
        limit (int): Page size.

    Returns:
        Tuple[List[Any], dict]: The rows of the page and the pagination
        block `{page, limit, total, pages, has_next, has_prev}`.
    """
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return rows, paginationInfo(total, page, limit)


def paginateList(items: Sequence[Any], page: int, limit: int) -> Tuple[List[Any], dict]:
    """Same as `paginate()` for rows that are already in memory."""
    start = (page - 1) * limit
    return list(items[start : start + limit]), paginationInfo(len(items), page, limit)


def paginationInfo(total: int, page: int, limit: int) -> dict:
    pages = pageCount(total, limit)
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": pages,
        "has_next": page < pages,
        "has_prev": page > 1,
    }


# ---------------------------------------------------------------------------
# CSV export
# ---------------------------------------------------------------------------
def toCSV(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    """
    Render rows as CSV text: one header line followed by one line per row.

    Values containing commas, quotes or line breaks are quoted, and embedded
    quotes are doubled. `None` is written as an empty field, dates and
    datetimes in ISO 8601.

    Example:
        >>> toCSV(["name", "note"], [["Bus A", 'says "hi", twice']])
        'name,note\\nBus A,"says ""hi"", twice"\\n'
    """
    buffer = StringIO()
    writer = csv.writer(buffer, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(headers)
    for row in rows:
        writer.writerow([csvValue(value) for value in row])
    return buffer.getvalue()


def csvValue(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if hasattr(value, "value"):
        return value.value
    return value


def csvResponse(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------------------------------------------------------
# Identifiers & dates
# ---------------------------------------------------------------------------
def randomCode(length: int = 6) -> str:
    return "".join(random.choices(string.ascii_uppercase + string.digits, k=length))


def generateID(prefix: str) -> str:
    """
    Generate a human readable public identifier such as `DISP-1718000000000-X1Y2Z3`.
    """
    timestamp = int(datetime.now(timezone.utc).timestamp() * 1000)
    return f"{prefix}-{timestamp}-{randomCode()}"


def generateRecordID(now: Optional[datetime] = None) -> str:
    """
    Compliance record identifier: `CR` + yymmdd + the last 6 digits of the
    epoch timestamp in milliseconds.
    """
    now = now or datetime.now(timezone.utc)
    timestamp = str(int(now.timestamp() * 1000))
    return f"CR{now:%y%m%d}{timestamp[-6:]}"


def toUTC(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def billingPeriodEnd(start: datetime, cycle: BillingCycle) -> datetime:
    """
    End of a billing period starting at `start`.

    Monthly adds one calendar month, quarterly three months and yearly one
    year. Month ends are clamped (Jan 31 + 1 month = Feb 28/29).
    """
    if cycle == BillingCycle.QUARTERLY:
        return start + relativedelta(months=3)
    if cycle == BillingCycle.YEARLY:
        return start + relativedelta(years=1)
    return start + relativedelta(months=1)


def percentChange(current: float, previous: float) -> float:
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 2)
