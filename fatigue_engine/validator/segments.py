# fatigue_engine/validator/segments.py
"""
Split a run of days into segments separated by a continuous no-work reset.

"No work" is simply work_time == False: recorded non-work, break and no
entry all count the same, and the run may span the day boundary.
24h resets govern the 17h / daily / 72h rules; 48h resets govern the
14-day work cap.

With an as-of position (day index, slots elapsed) only the slots up to
now can rest: the run into the as-of day stops at now, and boundaries
after it never cut.
"""

import logging
from datetime import date
from typing import Callable, List, Optional, Sequence, Tuple

from fatigue_engine.models import DayGrid
from fatigue_engine.rules.fatigue_rules import FATIGUE_CONFIG, hours_to_slots
from fatigue_engine.slots import leading_false, trailing_false

logger = logging.getLogger(__name__)

Segment = Tuple[int, ...]
Position = Tuple[int, int]  # (day index, slots elapsed that day)


def no_work_across_boundary(day_a: DayGrid, day_b: DayGrid, elapsed_b: Optional[int] = None) -> int:
    """Continuous no-work slots at the end of day_a plus the start of day_b (up to elapsed_b)."""
    lead = leading_false(day_b.work)
    if elapsed_b is not None:
        lead = min(lead, max(0, elapsed_b))
    return trailing_false(day_a.work) + lead


def split_by_reset(grids: Sequence[DayGrid], reset_slots: int,
                   forced_cut: Optional[Callable[[int], bool]] = None,
                   now: Optional[Position] = None) -> List[Segment]:
    """
    Segments of day indices covering all of `grids`, cut at every boundary
    (i, i+1) whose no-work run reaches `reset_slots`, or where
    `forced_cut(i)` is true.
    """
    def rests(i: int) -> bool:
        if now is None:
            return no_work_across_boundary(grids[i], grids[i + 1]) >= reset_slots
        day, elapsed = now
        if i + 1 > day:
            return False
        return no_work_across_boundary(grids[i], grids[i + 1],
                                       elapsed if i + 1 == day else None) >= reset_slots

    cuts = [
        i + 1 for i in range(len(grids) - 1)
        if rests(i) or (forced_cut is not None and forced_cut(i))
    ]
    bounds = [0] + cuts + [len(grids)]
    segments = [tuple(range(a, b)) for a, b in zip(bounds, bounds[1:]) if b > a]
    logger.debug("Split %d days at %s into %d segments", len(grids), cuts, len(segments))
    return segments


def segments_24h(grids: Sequence[DayGrid], dates: Sequence[Optional[date]] = (),
                 declared_break: Optional[date] = None, now: Optional[Position] = None) -> List[Segment]:
    """24h reset; a boundary touching the declared break date also resets."""
    dates = list(dates) + [None] * (len(grids) - len(dates))

    def touches_declared(i: int) -> bool:
        return declared_break is not None and declared_break in (dates[i], dates[i + 1])

    return split_by_reset(grids, hours_to_slots(FATIGUE_CONFIG["reset_hours_24h"]), touches_declared, now)


def segments_48h(grids: Sequence[DayGrid], now: Optional[Position] = None) -> List[Segment]:
    return split_by_reset(grids, hours_to_slots(FATIGUE_CONFIG["reset_hours_48h"]), now=now)
