from datetime import date, datetime

from fatigue_engine.models import ActivityKind, DayGrid
from fatigue_engine.timeline.deriver import derive_day_grid, evaluable_slots, reclassify_short_gaps
from fatigue_engine.timeline.state_machine import ActivityState, activity_intervals, carried_kind

DAY = date(2025, 6, 2)


class TestEvaluableSlots:
    def test_no_clock_means_whole_day(self, perth):
        assert evaluable_slots(DAY, None, perth) == 48

    def test_future_past_and_today(self, perth):
        now = datetime(2025, 6, 2, 10, 15, tzinfo=perth)
        assert evaluable_slots(date(2025, 6, 3), now, perth) == 0
        assert evaluable_slots(date(2025, 6, 1), now, perth) == 48
        assert evaluable_slots(DAY, now, perth) == 21


class TestStateMachine:
    def test_stop_closes_state_and_marks_nothing(self, event, perth):
        events = [event(DAY, "08:00", "work"), event(DAY, "10:00", "stop")]
        intervals = activity_intervals(events, datetime(2025, 6, 3, tzinfo=perth))
        assert len(intervals) == 1
        assert intervals[0].state is ActivityState.WORKING
        assert intervals[0].minutes == 120
        assert intervals[0].completed

    def test_carried_kind(self, event):
        assert carried_kind([event(DAY, "20:00", "work")]).value == "work"
        assert carried_kind([event(DAY, "20:00", "break")]).value == "break"
        assert carried_kind([event(DAY, "20:00", "work"), event(DAY, "21:00", "stop")]) is None
        assert carried_kind([]) is None


class TestDeriveDayGrid:
    def test_work_then_stop(self, event, perth):
        events = [event(DAY, "08:00", "work"), event(DAY, "12:00", "stop")]
        grid = derive_day_grid(events, DAY, tz=perth)
        assert all(grid.work[16:24])
        assert not any(grid.work[:16]) and not any(grid.work[24:])
        assert all(grid.non_work[:16]) and all(grid.non_work[24:])

    def test_future_day_is_all_false(self, event, perth):
        now = datetime(2025, 6, 1, 12, 0, tzinfo=perth)
        grid = derive_day_grid([event(DAY, "08:00", "work")], DAY, now=now, tz=perth)
        assert grid == DayGrid.empty()

    def test_today_stops_at_now(self, event, perth):
        now = datetime(2025, 6, 2, 10, 15, tzinfo=perth)
        grid = derive_day_grid([event(DAY, "08:00", "work")], DAY, now=now, tz=perth)
        assert all(grid.work[16:21])
        assert not any(grid.work[21:])
        assert not any(grid.non_work[21:])
        assert not any(grid.breaks[21:])

    def test_short_completed_break_counts_as_work(self, event, perth):
        events = [
            event(DAY, "08:00", "work"),
            event(DAY, "10:00", "break"),
            event(DAY, "10:05", "work"),
            event(DAY, "12:00", "stop"),
        ]
        grid = derive_day_grid(events, DAY, tz=perth)
        assert grid.work[20]
        assert not any(grid.breaks)

    def test_assume_idle_cutoff_today(self, event, perth):
        now = datetime(2025, 6, 2, 14, 0, tzinfo=perth)
        idle = datetime(2025, 6, 2, 12, 0, tzinfo=perth)
        grid = derive_day_grid([event(DAY, "08:00", "work")], DAY, now=now, assume_idle_from=idle, tz=perth)
        assert all(grid.work[16:24])
        assert not any(grid.work[24:])
        assert all(grid.non_work[24:28])
        assert not any(grid.non_work[28:])

    def test_carry_over_prefills_until_end_slot(self, event, perth):
        events = [event(DAY, "08:00", "break"), event(DAY, "08:30", "stop")]
        grid = derive_day_grid(events, DAY, carry_over=ActivityKind.WORK,
                               carry_over_end_slot=16, tz=perth)
        assert all(grid.work[:16])
        assert grid.breaks[16]
        assert all(grid.non_work[17:])

    def test_no_events_past_day_is_all_non_work(self, perth):
        grid = derive_day_grid([], DAY, tz=perth)
        assert all(grid.non_work)
        assert not any(grid.work) and not any(grid.breaks)

    def test_does_not_mutate_input_events(self, event, perth):
        events = [event(DAY, "12:00", "stop"), event(DAY, "08:00", "work")]
        before = list(events)
        derive_day_grid(events, DAY, tz=perth)
        assert events == before


class TestShortGaps:
    def test_gap_between_work_becomes_break(self, event, perth):
        events = [
            event(DAY, "08:00", "work"),
            event(DAY, "10:00", "stop"),
            event(DAY, "10:30", "work"),
            event(DAY, "12:00", "stop"),
        ]
        grid = derive_day_grid(events, DAY, tz=perth)
        assert grid.breaks[20]
        assert not grid.non_work[20]
        # long runs stay non-work
        assert grid.non_work[15]
        assert grid.non_work[24]

    def test_reclassify_only_runs_touching_work(self, slots):
        grid = DayGrid(work=slots((10, 12)), non_work=slots((12, 13), (30, 31)))
        out = reclassify_short_gaps(grid)
        assert out.breaks[12] and not out.non_work[12]
        assert out.non_work[30] and not out.breaks[30]
