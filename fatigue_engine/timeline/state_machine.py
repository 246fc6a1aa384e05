# fatigue_engine/timeline/state_machine.py
"""
Activity state machine over a day's sparse event list.

States are Idle / Working / OnBreak; every event is a transition and the
state it enters persists until the next event (or the horizon for the last
one). The output is a list of intervals, independent of the half-hour grid;
rasterisation happens in timeline.deriver.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional, Sequence

from fatigue_engine.models import ActivityEvent, ActivityKind


class ActivityState(Enum):
    IDLE = "idle"
    WORKING = "working"
    ON_BREAK = "on_break"


TRANSITIONS = {
    ActivityKind.WORK: ActivityState.WORKING,
    ActivityKind.BREAK: ActivityState.ON_BREAK,
    ActivityKind.STOP: ActivityState.IDLE,
}


def transition(kind: ActivityKind) -> ActivityState:
    return TRANSITIONS[kind]


@dataclass(frozen=True)
class StateInterval:
    state: ActivityState
    start: datetime
    end: datetime
    completed: bool  # closed by a following event rather than the horizon

    @property
    def minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


def activity_intervals(events: Sequence[ActivityEvent], horizon: datetime) -> List[StateInterval]:
    """Intervals for every non-idle state entered by `events`."""
    intervals = []
    for i, ev in enumerate(events):
        state = transition(ev.kind)
        if state is ActivityState.IDLE:
            continue
        nxt = events[i + 1] if i + 1 < len(events) else None
        end = nxt.time if nxt is not None else horizon
        intervals.append(StateInterval(state, ev.time, end, completed=nxt is not None))
    return intervals


def final_state(events: Sequence[ActivityEvent]) -> ActivityState:
    """State the day ends in; Idle when there are no events."""
    return transition(events[-1].kind) if events else ActivityState.IDLE


def carried_kind(events: Sequence[ActivityEvent]) -> Optional[ActivityKind]:
    """Kind that continues past the day boundary, if the day ended mid-activity."""
    state = final_state(events)
    if state is ActivityState.WORKING:
        return ActivityKind.WORK
    if state is ActivityState.ON_BREAK:
        return ActivityKind.BREAK
    return None
