# fatigue_engine/timeline/weeks.py
"""
Week boundaries (Sunday-based) and day labels for findings.
"""

from datetime import date, timedelta
from typing import Optional

DAY_LABELS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def week_start_for(day: date) -> date:
    """Sunday on or before `day`."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def previous_week_start(week_start: date) -> date:
    return week_start - timedelta(days=7)


def sheet_day_date(week_start: date, day_index: int) -> date:
    return week_start + timedelta(days=day_index)


def day_label(extended_index: int, prev_count: int = 0) -> str:
    """
    Label for a day in the extended window (trailing previous-week days
    followed by the current week): "prev+N" for previous-week days,
    "Sun".."Sat" for the current week.
    """
    current = extended_index - prev_count
    if current < 0:
        return f"prev+{extended_index + 1}"
    if current < len(DAY_LABELS):
        return DAY_LABELS[current]
    return f"D{extended_index + 1}"


def extended_day_dates(current_dates, previous_dates, prev_count: int) -> list:
    """Dates for the extended window; unknown dates stay None."""
    tail = list(previous_dates)[-prev_count:] if prev_count else []
    return tail + list(current_dates)


def dates_for_week(records, week_start: Optional[date]) -> list:
    """Each record's own date, else week_start + index, else None."""
    return [
        r.date if r.date is not None else (sheet_day_date(week_start, i) if week_start else None)
        for i, r in enumerate(records)
    ]
