from datetime import timedelta

import numpy as np

from fatigue_engine.models import DayGrid
from fatigue_engine.slots import (
    count_blocks_at_least, flat_slots, get_hours, leading_false, longest_block_hours,
    rolling_counts, trailing_false,
)
from fatigue_engine.validator.segments import (
    no_work_across_boundary, segments_24h, segments_48h, split_by_reset,
)


class TestSlotHelpers:
    def test_hours_and_blocks(self, slots):
        s = slots((0, 14), (20, 22), (30, 44))
        assert get_hours(s) == 15
        assert longest_block_hours(s) == 7
        assert count_blocks_at_least(s, 7) == 2
        assert get_hours(None) == 0

    def test_leading_and_trailing_false(self, slots):
        s = slots((10, 40))
        assert leading_false(s) == 10
        assert trailing_false(s) == 8
        assert leading_false(slots()) == 48

    def test_rolling_counts(self):
        counts = rolling_counts([1, 1, 0, 1, 0], 2)
        assert list(counts) == [2, 1, 1, 1]
        assert rolling_counts([1, 0], 3).size == 0

    def test_blocks_accept_numpy_arrays(self):
        arr = np.array([True] * 14 + [False] * 2)
        assert count_blocks_at_least(arr, 7) == 1

    def test_flat_slots_concatenates_days(self, slots):
        grids = [DayGrid(work=slots((47, 48))), DayGrid(work=slots((0, 1)))]
        flat = flat_slots(grids, "work")
        assert len(flat) == 96
        assert flat[47] and flat[48]


class TestSegments:
    def test_single_day_is_its_own_segment(self, slots):
        assert segments_24h([DayGrid(work=slots((0, 10)))]) == [(0,)]

    def test_empty_input(self):
        assert split_by_reset([], 48) == []

    def test_boundary_run_spans_midnight(self, slots):
        a = DayGrid(work=slots((0, 24)))
        b = DayGrid(work=slots((24, 48)))
        assert no_work_across_boundary(a, b) == 48
        assert segments_24h([a, b]) == [(0,), (1,)]
        assert segments_48h([a, b]) == [(0, 1)]

    def test_no_cut_below_threshold(self, slots):
        days = [DayGrid(work=slots((8, 40))) for _ in range(3)]
        assert segments_24h(days) == [(0, 1, 2)]

    def test_48h_reset_counts_run_across_one_boundary(self, slots):
        work = DayGrid(work=slots((0, 48)))
        days = [work, DayGrid(), DayGrid(), work]
        assert segments_48h(days) == [(0, 1), (2, 3)]

    def test_declared_break_date_forces_cut(self, slots, week_start):
        days = [DayGrid(work=slots((8, 40))) for _ in range(3)]
        dates = [week_start + timedelta(days=i) for i in range(3)]
        assert segments_24h(days, dates, declared_break=dates[1]) == [(0,), (1,), (2,)]
        assert segments_24h(days, dates, declared_break=None) == [(0, 1, 2)]

    def test_segments_cover_all_days(self, slots):
        days = [DayGrid(work=slots((0, 10))), DayGrid(), DayGrid(work=slots((40, 48))), DayGrid()]
        segments = segments_24h(days)
        assert [i for seg in segments for i in seg] == [0, 1, 2, 3]

    def test_slots_after_now_are_not_rest(self, slots):
        worked = DayGrid(work=slots((0, 44)))
        days = [worked, worked, DayGrid(), DayGrid()]
        assert segments_24h(days) == [(0, 1), (2,), (3,)]
        # 2.5h of rest so far; nothing after now has happened yet
        assert segments_24h(days, now=(2, 1)) == [(0, 1, 2, 3)]
        assert no_work_across_boundary(worked, DayGrid(), elapsed_b=1) == 5

    def test_rest_up_to_now_still_resets(self, slots):
        worked = DayGrid(work=slots((0, 24)))
        days = [worked, DayGrid(), DayGrid()]
        assert segments_24h(days, now=(1, 30)) == [(0,), (1, 2)]
        assert segments_48h(days, now=(1, 30)) == [(0, 1, 2)]
