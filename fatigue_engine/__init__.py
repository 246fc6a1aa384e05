"""
Fatigue-compliance engine for WA commercial vehicle drivers (OSH Reg 3.132).
"""

from fatigue_engine.models import (
    ActivityEvent, ActivityKind, ComplianceOptions, DayGrid, DayRecord, DriverType,
    Finding, GeoPoint, RuleIcon, Severity, parse_request,
)
from fatigue_engine.validator.compliance_validator import evaluate, prospective_work_warnings

__all__ = [
    "ActivityEvent", "ActivityKind", "ComplianceOptions", "DayGrid", "DayRecord",
    "DriverType", "Finding", "GeoPoint", "RuleIcon", "Severity",
    "evaluate", "parse_request", "prospective_work_warnings",
]
