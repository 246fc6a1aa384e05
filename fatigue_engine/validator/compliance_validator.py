# fatigue_engine/validator/compliance_validator.py
"""
WA OSH Reg 3.132 compliance checks for one driver's week.

evaluate(days, options) -> list of findings (empty list = compliant).
Pure: no clock, no I/O. Every check runs independently and appends to the
same list; missing data disables only the check that needs it.
"""

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from functools import reduce
from typing import List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from fatigue_engine.models import (
    ActivityKind, AsOf, ComplianceOptions, DayRecord, DriverType, Finding,
    RuleIcon, localize, violation, warning,
)
from fatigue_engine.rules.fatigue_rules import (
    FATIGUE_CONFIG, SLOTS_PER_DAY, format_hours, hours_to_slots,
)
from fatigue_engine.slots import (
    count_blocks_at_least, flat_slots, get_hours, longest_block_hours, rolling_counts,
)
from fatigue_engine.timeline.rollover import resolve_week
from fatigue_engine.timeline.rolling import events_in_time_order, insufficient_non_work_message
from fatigue_engine.timeline.weeks import (
    dates_for_week, day_label, extended_day_dates, previous_week_start,
)
from fatigue_engine.validator.geo import haversine_km, path_length_km
from fatigue_engine.validator.segments import Segment, segments_24h, segments_48h

logger = logging.getLogger(__name__)

C = FATIGUE_CONFIG


@dataclass(frozen=True)
class EvaluationContext:
    """Resolved inputs shared by all checks."""
    week: Tuple[DayRecord, ...]
    previous_week: Tuple[DayRecord, ...]
    extended: Tuple[DayRecord, ...]  # trailing previous-week days + current week
    extended_dates: Tuple[Optional[date], ...]
    prev_count: int
    options: ComplianceOptions
    as_of: Optional[AsOf]
    now: Optional[datetime] = None

    @property
    def declared_break(self) -> Optional[date]:
        return self.options.declared_last_24h_break

    @property
    def grids(self):
        return [d.grid for d in self.extended]

    def label(self, extended_index: int) -> str:
        return day_label(extended_index, self.prev_count)

    def is_declared_break_day(self, extended_index: int) -> bool:
        return (self.declared_break is not None
                and self.extended_dates[extended_index] == self.declared_break)

    def is_in_progress(self, extended_index: int) -> bool:
        return (self.as_of is not None
                and extended_index - self.prev_count == self.as_of.day_index
                and self.as_of.slot < SLOTS_PER_DAY)

    def position(self, week_offset: int) -> Optional[Tuple[int, int]]:
        """As-of (day, slot) in a day list whose current week starts at `week_offset`."""
        if self.as_of is None:
            return None
        return week_offset + self.as_of.day_index, self.as_of.slot


def _as_record(day, tz) -> DayRecord:
    """Wire dicts are parsed; every event time ends up in local time."""
    if not isinstance(day, DayRecord):
        return DayRecord.from_dict(day, tz=tz)
    if not day.events:
        return day
    return replace(day, events=tuple(replace(e, time=localize(e.time, tz)) for e in day.events))


def build_context(days: Sequence, options: Optional[ComplianceOptions] = None) -> EvaluationContext:
    options = options or ComplianceOptions()
    tz = options.timezone()
    week = tuple(_as_record(d, tz) for d in (days or ()))
    previous = tuple(_as_record(d, tz) for d in (options.previous_week_days or ()))

    week_start = options.week_start_date or (week[0].date if week else None)
    prev_start = options.previous_week_start_date or (
        previous_week_start(week_start) if week_start else None)
    week_dates = dates_for_week(week, week_start)
    prev_dates = dates_for_week(previous, prev_start)
    now = options.resolved_now(week_start)

    previous = resolve_week(previous, prev_dates, now, tz)
    week = resolve_week(week, week_dates, now, tz,
                        carry_in=previous[-1] if previous else None,
                        declared=options.declared_last_24h_break)

    # Last days of the previous sheet join the window so rolling rules can see across it
    prev_count = min(C["previous_days_in_window"], len(previous))
    tail = len(previous) - prev_count
    return EvaluationContext(
        week=week,
        previous_week=previous,
        extended=previous[tail:] + week,
        extended_dates=tuple(extended_day_dates(week_dates, prev_dates, prev_count)),
        prev_count=prev_count,
        options=options,
        as_of=options.as_of(week_start),
        now=now,
    )


def _recorded_hours(day: DayRecord) -> float:
    return get_hours(day.grid.work) + get_hours(day.grid.breaks) + get_hours(day.grid.non_work)


# -------------------------------
# Break from driving
# -------------------------------
class _BreakTally(NamedTuple):
    work_minutes: int = 0
    pending_breaks: Tuple[int, ...] = ()
    findings: Tuple[Finding, ...] = ()


def _valid_break(segments: Sequence[int]) -> bool:
    """>= 20 min in total with at least one 10 min block."""
    return (sum(segments) >= C["min_break_total_minutes"]
            and any(m >= C["min_break_block_minutes"] for m in segments))


def _break_step(label: str):
    def step(tally: _BreakTally, pair) -> _BreakTally:
        ev, nxt = pair
        minutes = int((nxt.time - ev.time).total_seconds() // 60)
        work, pending, found = tally
        if ev.kind is ActivityKind.BREAK:
            return _BreakTally(work, pending + (minutes,), found)
        if ev.kind is not ActivityKind.WORK:
            return _BreakTally(0, (), found)
        if pending:
            if _valid_break(pending):
                work = 0
            else:
                found += (violation(RuleIcon.COFFEE, label, "20 min break for 5h work not met"),)
            pending = ()
        work += minutes
        if work > C["max_work_minutes_before_break"]:
            found += (violation(RuleIcon.ALERT, label, "More than 5h work without valid break"),)
            work = 0
        return _BreakTally(work, pending, found)
    return step


def check_break_from_driving(ctx: EvaluationContext) -> List[Finding]:
    """
    Granular (2+ events): walk event pairs tracking work since the last
    valid break. The last event of the day is still open and not judged.
    Grid only: warn when >= 5h work with no break recorded at all.
    """
    findings = []
    for idx, day in enumerate(ctx.week):
        if _recorded_hours(day) == 0:
            continue
        label = day_label(idx)
        if len(day.events) > 1:
            events = sorted(day.events, key=lambda e: e.time)
            tally = reduce(_break_step(label), zip(events, events[1:]), _BreakTally())
            findings.extend(tally.findings)
        elif (get_hours(day.grid.work) >= C["max_work_minutes_before_break"] / 60
              and get_hours(day.grid.breaks) == 0):
            findings.append(warning(RuleIcon.COFFEE, label,
                                    "20 min break for ea 5 hours work time - 10 min minimum x 2"))
    return findings


# -------------------------------
# Solo rules
# -------------------------------
def check_daily_non_work(ctx: EvaluationContext) -> List[Finding]:
    """A day with >= 12h recorded needs a continuous 7h non-work block."""
    findings = []
    min_block = C["min_continuous_non_work_hours"]
    for idx in range(ctx.prev_count, len(ctx.extended)):
        day = ctx.extended[idx]
        # also excludes days before the declared break with no work
        if not day.has_work or ctx.is_declared_break_day(idx):
            continue
        if _recorded_hours(day) < C["min_recorded_hours_for_daily_check"]:
            continue
        longest = longest_block_hours(day.grid.non_work)
        if longest >= min_block:
            continue
        if longest == 0 and ctx.is_in_progress(idx):
            continue
        findings.append(violation(RuleIcon.MOON, ctx.label(idx), "Need ≥7 continuous hrs non-work"))
    return findings


class _ElapsedRun(NamedTuple):
    active: int = 0   # work/break slots since the last 7h rest
    rest: int = 0     # current non-work run
    breach: Optional[int] = None


def _segment_slots(ctx: EvaluationContext, segment: Segment):
    """(extended_index, slot_state) for every slot of the segment."""
    for idx in segment:
        day = ctx.extended[idx]
        if not day.has_work:
            state = "no_work_day"
            yield from ((idx, state) for _ in range(SLOTS_PER_DAY))
            continue
        grid = day.grid
        for s in range(SLOTS_PER_DAY):
            if grid.non_work[s]:
                yield idx, "non_work"
            elif grid.work[s] or grid.breaks[s]:
                yield idx, "active"
            else:
                yield idx, "unrecorded"


def _elapsed_step(ctx: EvaluationContext):
    limit = hours_to_slots(C["max_hours_between_rests"])
    rest_slots = hours_to_slots(C["min_continuous_non_work_hours"])

    def step(acc: _ElapsedRun, item) -> _ElapsedRun:
        if acc.breach is not None:
            return acc
        idx, state = item
        if state == "no_work_day":
            return _ElapsedRun()
        if state == "non_work":
            rest = acc.rest + 1
            return _ElapsedRun(0 if rest >= rest_slots else acc.active, rest)
        if state == "unrecorded":
            return _ElapsedRun(acc.active, 0)
        active = acc.active + 1
        if active <= limit:
            return _ElapsedRun(active, 0)
        if ctx.is_declared_break_day(idx):
            return _ElapsedRun(0, 0)
        return _ElapsedRun(active, 0, breach=idx)
    return step


def check_17h_rule(ctx: EvaluationContext, segments: Sequence[Segment]) -> List[Finding]:
    """At most 17h of work/break between 7h non-work rests; one finding per segment."""
    findings = []
    for segment in segments:
        run = reduce(_elapsed_step(ctx), _segment_slots(ctx, segment), _ElapsedRun())
        if run.breach is not None:
            findings.append(violation(RuleIcon.CLOCK, ctx.label(run.breach),
                                      "More than 17h between 7-hr rest breaks"))
    return findings


def check_72h_rule(ctx: EvaluationContext, segments: Sequence[Segment]) -> List[Finding]:
    """
    Rolling 72h: >= 27h non-work and >= 3 blocks of >= 7h non-work.
    Only the window ending now is checked, and only when the segment
    holding now (24h non-work resets the rule) already spans 72h.
    """
    if ctx.as_of is None:
        return []
    now_day = ctx.prev_count + ctx.as_of.day_index
    segment = next((seg for seg in segments if now_day in seg), None)
    if segment is None:
        return []
    window = hours_to_slots(C["rolling_72h_hours"])
    now_slot = now_day * SLOTS_PER_DAY + ctx.as_of.slot
    if now_slot - segment[0] * SLOTS_PER_DAY < window:
        return []

    grids = ctx.grids
    span = slice(now_slot - window, now_slot)
    non_work = flat_slots(grids, "non_work")[span]
    active = [w or b for w, b in zip(flat_slots(grids, "work")[span], flat_slots(grids, "breaks")[span])]
    if not any(active):
        return []

    label = ctx.label(now_day)
    suffix = " - 72h window ending now"
    total = get_hours(non_work)
    if total < C["min_non_work_hours_72h"]:
        return [warning(RuleIcon.TRENDING_UP, label,
                        "Need ≥27 hrs non-work in any rolling 72hr period "
                        f"(24h non-work resets this rule; this window: {format_hours(total)}h){suffix}")]
    blocks = count_blocks_at_least(non_work, C["min_continuous_non_work_hours"])
    if blocks < C["min_7h_blocks_72h"]:
        return [warning(RuleIcon.MOON, label,
                        "Need ≥3 blocks of ≥7 continuous hrs non-work in any rolling 72hrs "
                        f"(24h non-work resets; found: {blocks}){suffix}")]
    return []


def check_solo_rules(ctx: EvaluationContext) -> List[Finding]:
    if not any(d.has_work for d in ctx.extended):
        return []
    segments = segments_24h(ctx.grids, ctx.extended_dates, ctx.declared_break,
                            ctx.position(ctx.prev_count))
    return (check_daily_non_work(ctx)
            + check_17h_rule(ctx, segments)
            + check_72h_rule(ctx, segments))


# -------------------------------
# Two-up rules
# -------------------------------
def check_two_up_rules(ctx: EvaluationContext) -> List[Finding]:
    findings = []
    grids = ctx.grids
    non_work = np.asarray(flat_slots(grids, "non_work"), dtype=bool)
    active = np.asarray(flat_slots(grids, "work"), dtype=bool) | np.asarray(flat_slots(grids, "breaks"), dtype=bool)

    def slot_label(slot):
        return ctx.label(slot // SLOTS_PER_DAY)

    # --- rolling 24h: >= 16h recorded needs >= 7h non-work ---
    w24 = hours_to_slots(24)
    recorded = rolling_counts(active, w24)
    rest = rolling_counts(non_work, w24)
    bad = np.flatnonzero((recorded >= hours_to_slots(C["min_recorded_hours_24h"]))
                         & (rest < hours_to_slots(C["min_non_work_hours_24h"])))
    if bad.size:
        findings.append(violation(RuleIcon.MOON, slot_label(int(bad[0]) + w24 - 1),
                                  "Need ≥7 hrs non-work in any rolling 24 hrs (Two-Up rule)"))

    # --- rolling 48h: at least one 7h non-work block ---
    w48 = hours_to_slots(48)
    has_data = rolling_counts(active, w48)
    for start in np.flatnonzero(has_data > 0):
        start = int(start)
        window = non_work[start:start + w48]
        if count_blocks_at_least(window, C["min_continuous_non_work_hours"]) < C["min_7h_blocks_48h"]:
            findings.append(warning(RuleIcon.MOON, slot_label(start + w48 - 1),
                                    "Need ≥1 block of ≥7 continuous hrs non-work in any rolling 48 hrs (Two-Up rule)"))
            break

    # --- current week: 48h non-work including 24h continuous ---
    current = grids[ctx.prev_count:]
    total = sum(get_hours(g.non_work) for g in current)
    longest = longest_block_hours(flat_slots(current, "non_work"))
    if 0 < total < C["min_weekly_non_work_hours"]:
        findings.append(warning(RuleIcon.TRENDING_UP, "7-day",
                                f"Need ≥48 hrs non-work in 7 days (current: {format_hours(total)}h) - Two-Up rule"))
    if total >= C["min_weekly_non_work_hours"] and longest < C["min_weekly_continuous_non_work_hours"]:
        findings.append(warning(RuleIcon.MOON, "7-day",
                                f"48hrs non-work must include ≥24 continuous hrs (longest: {format_hours(longest)}h) - Two-Up rule"))
    return findings


# -------------------------------
# 14-day work cap
# -------------------------------
def check_14_day_cap(ctx: EvaluationContext) -> List[Finding]:
    """
    168h work in 14 days, reset by >= 48h continuous no-work. Without a
    previous sheet only this week is visible, so warn from 84h.
    """
    findings = []
    if ctx.previous_week:
        all_days = ctx.previous_week + ctx.week
        now = ctx.position(len(ctx.previous_week))
        for segment in segments_48h([d.grid for d in all_days], now):
            work = sum(get_hours(all_days[i].grid.work) for i in segment)
            if work > C["max_work_hours_14d"]:
                findings.append(violation(RuleIcon.TRENDING_UP, "14-day", "14-day work exceeds 168h"))
            elif work > C["warn_work_hours_14d"]:
                findings.append(warning(
                    RuleIcon.TRENDING_UP, "14-day",
                    f"{format_hours(work)}h work in this period - approaching 168h limit "
                    "(14-day rule resets after ≥48h continuous non-work)"))
        return findings

    work = sum(get_hours(d.grid.work) for d in ctx.week)
    if work > C["max_work_hours_14d"]:
        findings.append(violation(RuleIcon.TRENDING_UP, "14-day", "14-day work exceeds 168h"))
    elif work > C["warn_work_hours_single_week"]:
        findings.append(warning(RuleIcon.TRENDING_UP, "14-day",
                                f"{format_hours(work)}h this week - no previous sheet found to check full 14-day total"))
    return findings


# -------------------------------
# GPS / odometer plausibility (evidence quality, not regulatory)
# -------------------------------
def _moving_break_findings(ctx: EvaluationContext) -> List[Finding]:
    findings = []
    timeline = events_in_time_order(ctx.week)
    i = 0
    while i < len(timeline):
        if timeline[i].kind is not ActivityKind.BREAK:
            i += 1
            continue
        j = i
        while j < len(timeline) and timeline[j].kind is ActivityKind.BREAK:
            j += 1
        if j < len(timeline) and timeline[j].kind is ActivityKind.WORK:
            start, resume = timeline[i], timeline[j]
            minutes = (resume.time - start.time).total_seconds() / 60
            a, b = start.event.location, resume.event.location
            accurate = (a is not None and b is not None
                        and a.is_accurate(C["gps_max_accuracy_m"]) and b.is_accurate(C["gps_max_accuracy_m"]))
            if minutes >= C["gps_moving_break_min_minutes"] and accurate:
                km = haversine_km(a, b)
                if km > C["gps_moving_break_km"]:
                    findings.append(warning(
                        RuleIcon.MAP_PIN, day_label(start.day_index),
                        f"Break at {start.time:%H:%M} may have been taken in a moving vehicle "
                        f"({km:.1f} km between break start and resumed work)"))
        i = j
    return findings


def _odometer_findings(ctx: EvaluationContext) -> List[Finding]:
    findings = []
    for idx, day in enumerate(ctx.week):
        if day.start_odometer_km is None or day.end_odometer_km is None:
            continue
        points = [e.location for e in sorted(day.events, key=lambda e: e.time) if e.location is not None]
        odometer = day.end_odometer_km - day.start_odometer_km
        if len(points) < 2 or odometer <= 0:
            continue
        gps = path_length_km(points)
        ratio = gps / odometer
        if not C["odometer_ratio_min"] <= ratio <= C["odometer_ratio_max"]:
            findings.append(warning(RuleIcon.MAP_PIN, day_label(idx),
                                    f"GPS distance ({gps:.0f} km) does not match odometer ({odometer:g} km)"))
    return findings


def _coverage_findings(ctx: EvaluationContext) -> List[Finding]:
    events = [e for d in ctx.week for e in d.events]
    located = sum(1 for e in events if e.location is not None)
    if events and (len(events) - located) * 2 > len(events):
        return [warning(RuleIcon.MAP_PIN, "7-day",
                        f"Only {located} of {len(events)} events have GPS location - evidence coverage is low")]
    return []


def check_gps_plausibility(ctx: EvaluationContext) -> List[Finding]:
    return _moving_break_findings(ctx) + _odometer_findings(ctx) + _coverage_findings(ctx)


# -------------------------------
# Entry points
# -------------------------------
def evaluate(days: Sequence, options: Optional[ComplianceOptions] = None) -> List[Finding]:
    """
    Run all compliance checks for the week (and optional previous week).
    Returns violations and warnings; an empty list means compliant.
    """
    ctx = build_context(days, options)
    findings = check_break_from_driving(ctx)
    if ctx.options.driver_type is DriverType.TWO_UP:
        findings += check_two_up_rules(ctx)
    else:
        findings += check_solo_rules(ctx)
    findings += check_14_day_cap(ctx)
    findings += check_gps_plausibility(ctx)
    logger.debug("Evaluated %d days (+%d previous): %d findings",
                 len(ctx.week), len(ctx.previous_week), len(findings))
    return findings


# Messages that matter when the driver is about to start work
WORK_RELEVANT_PATTERNS = (
    "non-work", "7 continuous", "7h ", "17h", "72", "48 hrs", "48hrs", "168", "14-day", "rest",
)


def prospective_work_warnings(days: Sequence, options: Optional[ComplianceOptions] = None) -> List[str]:
    """
    Evaluate as if 30 more minutes of work were logged at "now" on the
    current day; return the work-relevant messages only. A last stop less
    than 7h ago leads the list.
    """
    ctx = build_context(days, options)
    if ctx.as_of is None or ctx.as_of.day_index >= len(ctx.week):
        return []
    slot = max(0, min(SLOTS_PER_DAY - 1, ctx.as_of.slot))
    target = ctx.week[ctx.as_of.day_index]
    work = list(target.grid.work)
    work[slot] = True

    # Grids are already resolved; drop events so they are taken as given
    week = tuple(
        replace(d, events=(), grid=replace(d.grid, work=tuple(work)) if i == ctx.as_of.day_index else d.grid)
        for i, d in enumerate(ctx.week)
    )
    previous = tuple(replace(d, events=()) for d in ctx.previous_week)
    findings = evaluate(week, replace(ctx.options, previous_week_days=previous))
    messages = [f.message for f in findings if any(p in f.message for p in WORK_RELEVANT_PATTERNS)]

    since_stop = None
    if ctx.now is not None:
        since_stop = insufficient_non_work_message(events_in_time_order(ctx.previous_week + ctx.week), ctx.now)
    return ([since_stop] if since_stop else []) + messages
