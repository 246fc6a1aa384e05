# fatigue_engine/timeline/rolling.py
"""
Rolling time model: all events of a sheet as one continuous timeline.
Days only say where an event came from; the helpers here use time only.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from fatigue_engine.models import ActivityEvent, ActivityKind, DayRecord
from fatigue_engine.rules.fatigue_rules import FATIGUE_CONFIG


@dataclass(frozen=True)
class RollingEvent:
    event: ActivityEvent
    day_index: int

    @property
    def time(self) -> datetime:
        return self.event.time

    @property
    def kind(self) -> ActivityKind:
        return self.event.kind


def events_in_time_order(days: Sequence[DayRecord]) -> List[RollingEvent]:
    tagged = [RollingEvent(ev, i) for i, day in enumerate(days) for ev in day.events]
    return sorted(tagged, key=lambda r: r.time)


def non_work_hours_since_last_stop(events: Sequence[RollingEvent], as_of: datetime) -> Optional[float]:
    """Hours from the last stop at or before `as_of`; None if there was never a stop."""
    stops = [r.time for r in events if r.kind is ActivityKind.STOP and r.time <= as_of]
    if not stops:
        return None
    return (as_of - max(stops)).total_seconds() / 3600


def insufficient_non_work_message(events: Sequence[RollingEvent], as_of: datetime,
                                  min_hours: float = FATIGUE_CONFIG["min_continuous_non_work_hours"]
                                  ) -> Optional[str]:
    hours = non_work_hours_since_last_stop(events, as_of)
    if hours is None or hours >= min_hours:
        return None
    return (f"Less than {min_hours:g} hours non-work time since last shift. "
            "Starting work may not meet non-work time requirements.")
