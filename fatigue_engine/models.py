# fatigue_engine/models.py
"""
Value types passed into and out of the compliance engine.

Everything here is immutable. Parsers (`from_dict`, `parse_request`) are
tolerant: malformed fields are coerced or dropped, never raised, so a bad
record only disables the rules that depend on the missing data.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, tzinfo
from enum import Enum
from typing import Any, Optional, Tuple

from fatigue_engine.config import get_timezone
from fatigue_engine.rules.fatigue_rules import SLOT, SLOTS_PER_DAY, slot_floor

logger = logging.getLogger(__name__)


class ActivityKind(str, Enum):
    WORK = "work"
    BREAK = "break"
    STOP = "stop"

    @classmethod
    def parse(cls, value: Any) -> "ActivityKind":
        # "rest", "end" and anything unknown terminate the current activity
        text = str(value or "").strip().lower()
        if text == "work":
            return cls.WORK
        if text == "break":
            return cls.BREAK
        return cls.STOP


class DriverType(str, Enum):
    SOLO = "solo"
    TWO_UP = "two_up"

    @classmethod
    def parse(cls, value: Any) -> "DriverType":
        text = str(value or "").strip().lower().replace("-", "_")
        return cls.TWO_UP if text in ("two_up", "twoup") else cls.SOLO


class Severity(str, Enum):
    VIOLATION = "violation"
    WARNING = "warning"


class RuleIcon(str, Enum):
    COFFEE = "Coffee"
    ALERT = "AlertTriangle"
    MOON = "Moon"
    CLOCK = "Clock"
    TRENDING_UP = "TrendingUp"
    MAP_PIN = "MapPin"


# -------------------------------
# Coercion helpers
# -------------------------------
def iso_to_dt(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def to_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return None if result != result else result  # NaN


def localize(ts: datetime, tz: Optional[tzinfo]) -> datetime:
    """Naive timestamps are local wall-clock time; aware ones are converted."""
    if tz is None:
        return ts
    if ts.tzinfo is None:
        return ts.replace(tzinfo=tz)
    return ts.astimezone(tz)


def local_midnight(day: date, tz: Optional[tzinfo]) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def _slots(values: Any) -> Tuple[bool, ...]:
    if not isinstance(values, (list, tuple)):
        values = ()
    padded = [bool(v) for v in values[:SLOTS_PER_DAY]]
    padded.extend([False] * (SLOTS_PER_DAY - len(padded)))
    return tuple(padded)


EMPTY_SLOTS = (False,) * SLOTS_PER_DAY


# -------------------------------
# Events and grids
# -------------------------------
@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float
    accuracy_m: Optional[float] = None

    def is_accurate(self, max_accuracy_m: float) -> bool:
        return self.accuracy_m is not None and self.accuracy_m <= max_accuracy_m


@dataclass(frozen=True)
class ActivityEvent:
    time: datetime
    kind: ActivityKind
    location: Optional[GeoPoint] = None

    @classmethod
    def from_dict(cls, raw: Any, tz: Optional[tzinfo] = None) -> Optional["ActivityEvent"]:
        if not isinstance(raw, dict):
            return None
        ts = iso_to_dt(raw.get("time"))
        if ts is None:
            logger.debug("Dropping event with unreadable time: %r", raw.get("time"))
            return None
        lat, lng = to_float(raw.get("lat")), to_float(raw.get("lng"))
        location = None
        if lat is not None and lng is not None:
            location = GeoPoint(lat, lng, to_float(raw.get("accuracy")))
        return cls(time=localize(ts, tz), kind=ActivityKind.parse(raw.get("type")), location=location)


@dataclass(frozen=True)
class DayGrid:
    """
    48 half-hour slots for one calendar day.
    At most one of work / breaks / non_work is set per slot; legacy grids
    that set more than one are normalised with priority work > break > non_work.
    """
    work: Tuple[bool, ...] = EMPTY_SLOTS
    breaks: Tuple[bool, ...] = EMPTY_SLOTS
    non_work: Tuple[bool, ...] = EMPTY_SLOTS

    def __post_init__(self):
        work = _slots(self.work)
        breaks = tuple(b and not w for b, w in zip(_slots(self.breaks), work))
        non_work = tuple(n and not (w or b) for n, w, b in zip(_slots(self.non_work), work, breaks))
        object.__setattr__(self, "work", work)
        object.__setattr__(self, "breaks", breaks)
        object.__setattr__(self, "non_work", non_work)

    @classmethod
    def empty(cls) -> "DayGrid":
        return cls()

    @classmethod
    def from_dict(cls, raw: Any) -> "DayGrid":
        raw = raw if isinstance(raw, dict) else {}
        return cls(
            work=_slots(raw.get("work_time")),
            breaks=_slots(raw.get("breaks")),
            non_work=_slots(raw.get("non_work")),
        )

    @property
    def has_any(self) -> bool:
        return any(self.work) or any(self.breaks) or any(self.non_work)

    def series(self, name: str) -> Tuple[bool, ...]:
        return getattr(self, name)


@dataclass(frozen=True)
class DayRecord:
    grid: DayGrid = field(default_factory=DayGrid)
    events: Tuple[ActivityEvent, ...] = ()
    start_odometer_km: Optional[float] = None
    end_odometer_km: Optional[float] = None
    date: Optional[date] = None
    assume_idle_from: Optional[datetime] = None

    @property
    def has_events(self) -> bool:
        return len(self.events) > 0

    @property
    def has_work(self) -> bool:
        """Work in the grid, or any logged work event."""
        return any(self.grid.work) or any(e.kind is ActivityKind.WORK for e in self.events)

    @classmethod
    def from_dict(cls, raw: Any, default_date: Optional[date] = None,
                  tz: Optional[tzinfo] = None) -> "DayRecord":
        raw = raw if isinstance(raw, dict) else {}
        tz = tz or get_timezone()
        raw_events = raw.get("events") if isinstance(raw.get("events"), list) else []
        events = [e for e in (ActivityEvent.from_dict(r, tz) for r in raw_events) if e is not None]
        idle = iso_to_dt(raw.get("assume_idle_from"))
        return cls(
            grid=DayGrid.from_dict(raw),
            events=tuple(sorted(events, key=lambda e: e.time)),
            start_odometer_km=to_float(raw.get("start_kms")),
            end_odometer_km=to_float(raw.get("end_kms")),
            date=to_date(raw.get("date")) or default_date,
            assume_idle_from=localize(idle, tz) if idle is not None else None,
        )


# -------------------------------
# Options and results
# -------------------------------
@dataclass(frozen=True)
class AsOf:
    """Position of "now" inside the current week: day index 0..6 and slots elapsed 0..48."""
    day_index: int
    slot: int


@dataclass(frozen=True)
class ComplianceOptions:
    driver_type: DriverType = DriverType.SOLO
    previous_week_days: Tuple[DayRecord, ...] = ()
    declared_last_24h_break: Optional[date] = None
    week_start_date: Optional[date] = None
    previous_week_start_date: Optional[date] = None
    current_day_index: Optional[int] = None
    slots_elapsed_today: Optional[int] = None
    now: Optional[datetime] = None
    tz: Optional[tzinfo] = None

    def timezone(self) -> tzinfo:
        return self.tz or get_timezone()

    def resolved_now(self, week_start: Optional[date] = None) -> Optional[datetime]:
        """
        The single as-of timestamp. An explicit `now` wins; otherwise it is
        rebuilt from current_day_index + slots_elapsed_today when the week
        start is known. None means "no clock": every day counts as past.
        """
        tz = self.timezone()
        if self.now is not None:
            return localize(self.now, tz)
        week_start = week_start or self.week_start_date
        position = self._supplied_position()
        if week_start is None or position is None:
            return None
        day = week_start + timedelta(days=position.day_index)
        return local_midnight(day, tz) + position.slot * SLOT

    def as_of(self, week_start: Optional[date] = None) -> Optional[AsOf]:
        week_start = week_start or self.week_start_date
        if self.now is not None and week_start is not None:
            now = localize(self.now, self.timezone())
            index = (now.date() - week_start).days
            if not 0 <= index < 7:
                return None
            slot = slot_floor(now - local_midnight(now.date(), self.timezone()))
            return AsOf(index, max(0, min(SLOTS_PER_DAY, slot)))
        return self._supplied_position()

    def _supplied_position(self) -> Optional[AsOf]:
        if self.current_day_index is None or self.slots_elapsed_today is None:
            return None
        if not 0 <= self.current_day_index < 7:
            return None
        return AsOf(self.current_day_index, max(0, min(SLOTS_PER_DAY, self.slots_elapsed_today)))


@dataclass(frozen=True)
class Finding:
    severity: Severity
    rule_icon: RuleIcon
    period_label: str
    message: str

    @property
    def is_violation(self) -> bool:
        return self.severity is Severity.VIOLATION

    def to_dict(self) -> dict:
        return {
            "severity": self.severity.value,
            "ruleIcon": self.rule_icon.value,
            "periodLabel": self.period_label,
            "message": self.message,
        }


def violation(icon: RuleIcon, label: str, message: str) -> Finding:
    return Finding(Severity.VIOLATION, icon, label, message)


def warning(icon: RuleIcon, label: str, message: str) -> Finding:
    return Finding(Severity.WARNING, icon, label, message)


# -------------------------------
# Request parsing (wire shape -> engine types)
# -------------------------------
def _int_or_none(value: Any) -> Optional[int]:
    number = to_float(value)
    return int(number) if number is not None and math.isfinite(number) else None


def parse_days(raw_days: Any, week_start: Optional[date] = None,
               tz: Optional[tzinfo] = None) -> Tuple[DayRecord, ...]:
    if not isinstance(raw_days, list):
        return ()
    return tuple(
        DayRecord.from_dict(raw, week_start + timedelta(days=i) if week_start else None, tz)
        for i, raw in enumerate(raw_days)
    )


def parse_request(payload: dict, now: Optional[datetime] = None,
                  tz: Optional[tzinfo] = None) -> Tuple[Tuple[DayRecord, ...], ComplianceOptions]:
    """
    Parse the compliance-check body (days, driverType, prevWeekDays,
    last24hBreak, weekStarting, prevWeekStarting, currentDayIndex,
    slotOffsetWithinToday).

    When weekStarting, currentDayIndex and slotOffsetWithinToday are all
    present they define the as-of time and `now` is ignored, so the caller's
    clock and its reported position can never disagree.
    """
    tz = tz or get_timezone()
    week_start = to_date(payload.get("weekStarting"))
    prev_week_start = to_date(payload.get("prevWeekStarting"))
    if week_start is not None and prev_week_start is None:
        prev_week_start = week_start - timedelta(days=7)

    day_index = _int_or_none(payload.get("currentDayIndex"))
    slot = _int_or_none(payload.get("slotOffsetWithinToday"))
    if week_start is not None and day_index is not None and slot is not None:
        now = None

    prev_days = payload.get("prevWeekDays")
    options = ComplianceOptions(
        driver_type=DriverType.parse(payload.get("driverType")),
        previous_week_days=parse_days(prev_days, prev_week_start, tz) if isinstance(prev_days, list) else (),
        declared_last_24h_break=to_date(payload.get("last24hBreak")),
        week_start_date=week_start,
        previous_week_start_date=prev_week_start,
        current_day_index=day_index,
        slots_elapsed_today=slot,
        now=now,
        tz=tz,
    )
    return parse_days(payload.get("days"), week_start, tz), options
