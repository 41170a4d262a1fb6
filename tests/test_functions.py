from datetime import date, datetime, timedelta, timezone

import pytest

from vendorhub.src.enums import BillingCycle, DispatchStatus
from vendorhub.src.exceptions import validationMessage
from vendorhub.src.functions import (
    billingPeriodEnd,
    enumStr,
    generateID,
    generateRecordID,
    isValidTransition,
    paginateList,
    paginationInfo,
    percentChange,
    toCSV,
    toUTC,
)


def test_csv_quoting():
    text = toCSV(
        ["name", "note", "when", "status"],
        [
            ["Bus A", 'says "hi", twice', date(2026, 1, 5), DispatchStatus.SCHEDULED],
            ["Bus B", None, None, "active"],
        ],
    )
    assert text.splitlines() == [
        "name,note,when,status",
        'Bus A,"says ""hi"", twice",2026-01-05,scheduled',
        "Bus B,,,active",
    ]


def test_pagination_info():
    assert paginationInfo(45, 2, 20) == {
        "page": 2,
        "limit": 20,
        "total": 45,
        "pages": 3,
        "has_next": True,
        "has_prev": True,
    }
    info = paginationInfo(0, 1, 20)
    assert info["pages"] == 0
    assert info["has_next"] is False
    assert info["has_prev"] is False


def test_paginate_list():
    rows, info = paginateList(list(range(7)), 3, 3)
    assert rows == [6]
    assert info["total"] == 7
    assert info["has_next"] is False


@pytest.mark.parametrize(
    "start, cycle, end",
    [
        (datetime(2026, 1, 31), BillingCycle.MONTHLY, datetime(2026, 2, 28)),
        (datetime(2028, 1, 31), BillingCycle.MONTHLY, datetime(2028, 2, 29)),
        (datetime(2026, 11, 30), BillingCycle.QUARTERLY, datetime(2027, 2, 28)),
        (datetime(2028, 2, 29), BillingCycle.YEARLY, datetime(2029, 2, 28)),
    ],
)
def test_billing_period_end(start, cycle, end):
    assert billingPeriodEnd(start, cycle) == end


def test_percent_change():
    assert percentChange(150, 100) == 50.0
    assert percentChange(50, 150) == -66.67
    assert percentChange(10, 0) == 100.0
    assert percentChange(0, 0) == 0.0


def test_record_id():
    now = datetime(2026, 1, 5, 12, tzinfo=timezone.utc)
    assert generateRecordID(now) == "CR260105400000"
    assert len(generateRecordID()) == 14


def test_public_id():
    prefix, timestamp, code = generateID("DISP").split("-")
    assert prefix == "DISP"
    assert timestamp.isdigit()
    assert len(code) == 6


def test_to_utc():
    assert toUTC(None) is None
    assert toUTC(datetime(2026, 1, 5, 8)).tzinfo == timezone.utc
    lusaka = timezone(timedelta(hours=2))
    assert toUTC(datetime(2026, 1, 5, 8, tzinfo=lusaka)) == datetime(
        2026, 1, 5, 6, tzinfo=timezone.utc
    )


def test_transitions():
    transitions = {"scheduled": ["boarding", "cancelled"], "boarding": ["departed"]}
    assert isValidTransition(transitions, "scheduled", "boarding")
    assert not isValidTransition(transitions, "boarding", "scheduled")
    assert not isValidTransition(transitions, "departed", "arrived")
    assert not isValidTransition({}, "scheduled", "boarding")


def test_enum_str():
    assert enumStr(BillingCycle) == "MONTHLY: monthly, QUARTERLY: quarterly, YEARLY: yearly"


def test_validation_message():
    missing = [
        {"type": "missing", "loc": ("body", "phone")},
        {"type": "missing", "loc": ("body", "email")},
        {"type": "string_pattern_mismatch", "loc": ("body", "name")},
    ]
    assert validationMessage(missing) == "Missing required fields: phone, email"

    invalid = [
        {"type": "string_pattern_mismatch", "loc": ("body", "branding", "primary_color")},
        {"type": "greater_than", "loc": ("query", "limit")},
        {"type": "greater_than", "loc": ("query", "limit")},
    ]
    assert validationMessage(invalid) == "Invalid value for branding.primary_color, limit"
