from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from fatigue_engine.models import ActivityEvent, ActivityKind, DayGrid, DayRecord, GeoPoint

PERTH = ZoneInfo("Australia/Perth")
WEEK_START = date(2025, 6, 1)  # a Sunday


@pytest.fixture
def perth():
    return PERTH


@pytest.fixture
def week_start():
    return WEEK_START


@pytest.fixture
def slots():
    """slots((start, end), ...) -> 48 bools, True in each half-open slot range."""
    def make(*ranges):
        out = [False] * 48
        for start, end in ranges:
            for s in range(start, end):
                out[s] = True
        return tuple(out)
    return make


@pytest.fixture
def grid_day(slots):
    def make(work=(), breaks=(), non_work=()):
        return DayRecord(grid=DayGrid(slots(*work), slots(*breaks), slots(*non_work)))
    return make


@pytest.fixture
def event():
    """event(day, "08:00", "work", lat=None, lng=None, accuracy=None) in Perth time."""
    def make(day, hhmm, kind, lat=None, lng=None, accuracy=None):
        hour, minute = map(int, hhmm.split(":"))
        ts = datetime(day.year, day.month, day.day, hour, minute, tzinfo=PERTH)
        location = GeoPoint(lat, lng, accuracy) if lat is not None else None
        return ActivityEvent(ts, ActivityKind(kind), location)
    return make


@pytest.fixture
def empty_week():
    return tuple(DayRecord() for _ in range(7))
