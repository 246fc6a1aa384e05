# fatigue_engine/api/schemas.py
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class CompliancePayload(BaseModel):
    """
    Body of /compliance/check and /compliance/prospective.
    Day objects are left loose; the engine parser coerces their fields.
    """
    days: List[Dict[str, Any]]
    driverType: Optional[str] = "solo"
    prevWeekDays: Optional[List[Dict[str, Any]]] = None
    last24hBreak: Optional[str] = None
    weekStarting: Optional[str] = None
    prevWeekStarting: Optional[str] = None
    currentDayIndex: Optional[int] = None
    slotOffsetWithinToday: Optional[int] = None


class FindingOut(BaseModel):
    severity: str  # "violation" | "warning"
    ruleIcon: str
    periodLabel: str
    message: str


class CheckResponse(BaseModel):
    results: List[FindingOut]


class ProspectiveResponse(BaseModel):
    warnings: List[str]
