# fatigue_engine/slots.py
"""
Slot arithmetic shared by the deriver and the rule checks.
A slot series is any sequence of booleans, one per half hour.
"""

from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np

from fatigue_engine.rules.fatigue_rules import SLOTS_PER_DAY, hours_to_slots, slots_to_hours


def true_runs(slots: Sequence[bool], limit: Optional[int] = None) -> Iterator[Tuple[int, int]]:
    """(start, end) of every maximal run of True in slots[:limit]; end is exclusive."""
    limit = len(slots) if limit is None else min(limit, len(slots))
    s = 0
    while s < limit:
        if not slots[s]:
            s += 1
            continue
        end = s
        while end < limit and slots[end]:
            end += 1
        yield s, end
        s = end


def get_hours(slots: Optional[Sequence[bool]]) -> float:
    return slots_to_hours(sum(1 for v in (() if slots is None else slots) if v))


def longest_block_hours(slots: Optional[Sequence[bool]]) -> float:
    return slots_to_hours(max((end - start for start, end in true_runs(() if slots is None else slots)), default=0))


def count_blocks_at_least(slots: Optional[Sequence[bool]], min_hours: float) -> int:
    min_slots = hours_to_slots(min_hours)
    return sum(1 for start, end in true_runs(() if slots is None else slots) if end - start >= min_slots)


def leading_false(slots: Sequence[bool]) -> int:
    for i, v in enumerate(slots):
        if v:
            return i
    return len(slots)


def trailing_false(slots: Sequence[bool]) -> int:
    return leading_false(slots[::-1])


def flat_slots(grids, name: str) -> List[bool]:
    """Concatenate one series ("work", "breaks", "non_work") across day grids."""
    out = []
    for grid in grids:
        out.extend(grid.series(name)[:SLOTS_PER_DAY])
    return out


def rolling_counts(slots: Sequence[bool], window: int) -> np.ndarray:
    """Number of True slots in every window of `window` consecutive slots."""
    arr = np.asarray(slots, dtype=np.int64)
    if window <= 0 or len(arr) < window:
        return np.zeros(0, dtype=np.int64)
    csum = np.concatenate(([0], np.cumsum(arr)))
    return csum[window:] - csum[:-window]
