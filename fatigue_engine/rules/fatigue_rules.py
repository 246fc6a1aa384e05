# fatigue_engine/rules/fatigue_rules.py
"""
WA OSH Reg 3.132 fatigue management: work, break and non-work requirements
for commercial vehicle drivers (solo and two-up).
This module encodes the numeric values used by the compliance checks.
"""

import math
from datetime import timedelta

FATIGUE_CONFIG = {
    # Grid resolution
    "slot_minutes": 30,
    "slots_per_day": 48,

    # Break from driving
    "max_work_minutes_before_break": 5 * 60,   # 5 hours
    "min_break_total_minutes": 20,             # 20 min per 5h work
    "min_break_block_minutes": 10,             # at least one 10 min block
    "max_gap_as_break_minutes": 30,            # gaps between work this short are break, not rest

    # Solo: daily non-work
    "min_recorded_hours_for_daily_check": 12,
    "min_continuous_non_work_hours": 7,

    # Solo: 17h between 7h rests
    "max_hours_between_rests": 17,

    # Solo: rolling 72h
    "rolling_72h_hours": 72,
    "min_non_work_hours_72h": 27,
    "min_7h_blocks_72h": 3,

    # Two-up
    "min_recorded_hours_24h": 16,
    "min_non_work_hours_24h": 7,
    "min_7h_blocks_48h": 1,
    "min_weekly_non_work_hours": 48,
    "min_weekly_continuous_non_work_hours": 24,

    # 14-day work cap
    "max_work_hours_14d": 168,
    "warn_work_hours_14d": 140,
    "warn_work_hours_single_week": 84,   # half of 168 when the previous sheet is missing

    # Reset periods (continuous no-work)
    "reset_hours_24h": 24,
    "reset_hours_48h": 48,

    # Extended window: trailing previous-week days joined to the current week
    "previous_days_in_window": 3,

    # GPS / odometer plausibility (not regulatory)
    "gps_max_accuracy_m": 500,
    "gps_moving_break_min_minutes": 20,
    "gps_moving_break_km": 5.0,
    "odometer_ratio_min": 0.3,
    "odometer_ratio_max": 3.33,
}

SLOT = timedelta(minutes=FATIGUE_CONFIG["slot_minutes"])
SLOTS_PER_DAY = FATIGUE_CONFIG["slots_per_day"]


def hours_to_slots(hours: float) -> int:
    return int(hours * 60 // FATIGUE_CONFIG["slot_minutes"])


def slots_to_hours(slots: int) -> float:
    return slots * FATIGUE_CONFIG["slot_minutes"] / 60


def slot_floor(delta: timedelta) -> int:
    """Slot containing the instant `delta` after midnight."""
    return math.floor(delta / SLOT)


def slot_ceil(delta: timedelta) -> int:
    """First slot boundary at or after `delta` after midnight."""
    return math.ceil(delta / SLOT)


def format_hours(hours: float) -> str:
    """91.0 -> '91', 91.5 -> '91.5'"""
    return f"{hours:g}"
