# fatigue_engine/timeline/rollover.py
"""
Week-level derivation: rollover of unterminated activity across midnight,
choice of derived vs legacy grid per day, and the declared 24h break rule.
"""

import logging
from dataclasses import replace
from datetime import date, datetime, tzinfo
from typing import List, Optional, Sequence, Tuple

from fatigue_engine.config import get_timezone
from fatigue_engine.models import EMPTY_SLOTS, DayGrid, DayRecord, local_midnight, localize
from fatigue_engine.rules.fatigue_rules import slot_ceil
from fatigue_engine.timeline.deriver import derive_day_grid, evaluable_slots
from fatigue_engine.timeline.state_machine import carried_kind

logger = logging.getLogger(__name__)


def carry_over_for(previous: Optional[DayRecord], current: DayRecord, day: date,
                   now: Optional[datetime], tz: tzinfo):
    """
    (kind, end_slot) carried into `day` from the previous day, or (None, 0).

    Carry-over applies only when the previous day ended with work or break
    (no stop) and either `day` is today or `day` has events of its own.
    Past days with no events never receive carry-over.
    """
    kind = carried_kind(previous.events) if previous is not None else None
    if kind is None:
        return None, 0
    is_today = now is not None and day == localize(now, tz).date()
    if not (is_today or current.has_events):
        return None, 0
    max_slot = evaluable_slots(day, now, tz)
    if not current.has_events:
        return kind, max_slot
    first = localize(min(e.time for e in current.events), tz)
    return kind, min(max_slot, max(0, slot_ceil(first - local_midnight(day, tz))))


def derive_week_with_rollover(
    days: Sequence[DayRecord],
    dates: Sequence[Optional[date]],
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
    carry_in: Optional[DayRecord] = None,
) -> List[Optional[DayGrid]]:
    """
    Derived grid for each day; None where the day's date is unknown.
    `carry_in` is the last day of the previous sheet, if any.
    """
    tz = tz or get_timezone()
    grids = []
    for i, (record, day) in enumerate(zip(days, dates)):
        if day is None:
            grids.append(None)
            continue
        previous = days[i - 1] if i > 0 else carry_in
        kind, end_slot = carry_over_for(previous, record, day, now, tz)
        grids.append(derive_day_grid(
            record.events, day, now,
            carry_over=kind,
            carry_over_end_slot=end_slot,
            assume_idle_from=record.assume_idle_from,
            tz=tz,
        ))
    return grids


def apply_declared_break_rule(days: Sequence[DayRecord], dates: Sequence[Optional[date]],
                              declared: Optional[date]) -> Tuple[DayRecord, ...]:
    """
    No non-work is credited on days before the declared last 24h break
    unless work is recorded on that day.
    """
    if declared is None:
        return tuple(days)
    out = []
    for record, day in zip(days, dates):
        if day is not None and day < declared and not any(record.grid.work):
            record = replace(record, grid=replace(record.grid, non_work=EMPTY_SLOTS))
        out.append(record)
    return tuple(out)


def resolve_week(
    days: Sequence[DayRecord],
    dates: Sequence[Optional[date]],
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
    carry_in: Optional[DayRecord] = None,
    declared: Optional[date] = None,
) -> Tuple[DayRecord, ...]:
    """
    One grid per day, never merged: a day takes its derived grid when it has
    events, or when its week is event-based and the day's legacy grid is
    empty. Otherwise the legacy grid stands as supplied.
    """
    event_based = any(d.has_events for d in days)
    derived = derive_week_with_rollover(days, dates, now, tz, carry_in) if event_based else [None] * len(days)
    resolved = []
    for record, grid, day in zip(days, derived, dates):
        use_derived = grid is not None and (record.has_events or not record.grid.has_any)
        if use_derived:
            record = replace(record, grid=grid, date=day)
        elif record.date is None and day is not None:
            record = replace(record, date=day)
        resolved.append(record)
    logger.debug("Resolved %d days (%d derived from events)",
                 len(resolved), sum(1 for g, d in zip(derived, days) if g is not None and d.has_events))
    return apply_declared_break_rule(resolved, dates, declared)
