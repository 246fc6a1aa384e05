# fatigue_engine/timeline/deriver.py
"""
Derive a day's 48-slot grid from its events (00:00-24:00 local).

Rules:
- Work and break come from logged segments; every other evaluable slot
  (before the first event, after a stop, no data) is non-work.
- Nothing is recorded ahead of "now": future days are all-false and today
  is evaluated only up to now.
- With an assume-idle cutoff (today only), work/break stop at the cutoff
  and the time from the cutoff to now is non-work.
- A completed break shorter than 10 minutes counts as work.
- A non-work gap of 30 minutes or less next to work is break, not rest.
"""

from datetime import date, datetime, timedelta, tzinfo
from typing import Optional, Sequence

from fatigue_engine.config import get_timezone
from fatigue_engine.models import ActivityEvent, ActivityKind, DayGrid, local_midnight, localize
from fatigue_engine.rules.fatigue_rules import (
    FATIGUE_CONFIG, SLOTS_PER_DAY, slot_ceil, slot_floor,
)
from fatigue_engine.slots import true_runs
from fatigue_engine.timeline.state_machine import ActivityState, activity_intervals


def evaluable_slots(day: date, now: Optional[datetime], tz: tzinfo) -> int:
    """
    Slots of `day` that may carry data: 0 for a future day, up to now
    for today, 48 for a past day (or when there is no clock).
    """
    if now is None:
        return SLOTS_PER_DAY
    now = localize(now, tz)
    if day > now.date():
        return 0
    if day < now.date():
        return SLOTS_PER_DAY
    return min(SLOTS_PER_DAY, slot_ceil(now - local_midnight(day, tz)))


def reclassify_short_gaps(grid: DayGrid, max_slot: int = SLOTS_PER_DAY) -> DayGrid:
    """Non-work runs of <= 30 min touching work on either side become break."""
    max_gap = slot_ceil(timedelta(minutes=FATIGUE_CONFIG["max_gap_as_break_minutes"]))
    breaks = list(grid.breaks)
    non_work = list(grid.non_work)
    for start, end in true_runs(grid.non_work, max_slot):
        work_before = start > 0 and grid.work[start - 1]
        work_after = end < max_slot and grid.work[end]
        if end - start <= max_gap and (work_before or work_after):
            for k in range(start, end):
                breaks[k] = True
                non_work[k] = False
    return DayGrid(grid.work, tuple(breaks), tuple(non_work))


def derive_day_grid(
    events: Optional[Sequence[ActivityEvent]],
    day: date,
    now: Optional[datetime] = None,
    carry_over: Optional[ActivityKind] = None,
    carry_over_end_slot: int = 0,
    assume_idle_from: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> DayGrid:
    tz = tz or get_timezone()
    now = localize(now, tz) if now is not None else None
    if now is not None and day > now.date():
        return DayGrid.empty()

    max_slot = evaluable_slots(day, now, tz)
    day_start = local_midnight(day, tz)
    day_end = day_start + timedelta(days=1)
    is_today = now is not None and day == now.date()
    effective_end = min(day_end, now) if is_today else day_end

    # --- Work/break cap for "assume idle" (today only) ---
    cap = None
    if is_today and assume_idle_from is not None:
        cap = min(now, localize(assume_idle_from, tz))
    work_break_max = max_slot
    if cap is not None:
        work_break_max = min(max_slot, max(0, slot_ceil(cap - day_start)))

    work = [False] * SLOTS_PER_DAY
    breaks = [False] * SLOTS_PER_DAY

    # --- Carry-over from the previous day ---
    if carry_over in (ActivityKind.WORK, ActivityKind.BREAK) and carry_over_end_slot > 0:
        target = work if carry_over is ActivityKind.WORK else breaks
        for s in range(min(carry_over_end_slot, work_break_max)):
            target[s] = True

    # --- Rasterise state intervals ---
    ordered = sorted(
        (ActivityEvent(localize(e.time, tz), e.kind, e.location) for e in (events or ())),
        key=lambda e: e.time,
    )
    horizon = now if is_today else day_end
    min_break = FATIGUE_CONFIG["min_break_block_minutes"]
    for interval in activity_intervals(ordered, horizon):
        start = max(interval.start, day_start)
        end = min(interval.end, cap if cap is not None else effective_end)
        if end <= start:
            continue
        minutes = int((end - start).total_seconds() // 60)
        short_break = (interval.state is ActivityState.ON_BREAK
                       and interval.completed and minutes < min_break)
        target = work if interval.state is ActivityState.WORKING or short_break else breaks
        for s in range(max(0, slot_floor(start - day_start)), min(work_break_max, slot_ceil(end - day_start))):
            target[s] = True

    non_work = [s < max_slot and not work[s] and not breaks[s] for s in range(SLOTS_PER_DAY)]
    return reclassify_short_gaps(DayGrid(tuple(work), tuple(breaks), tuple(non_work)), max_slot)
