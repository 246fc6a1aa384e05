# fatigue_engine/config.py
"""
Runtime settings read from the environment (.env supported).
"""

import os
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from dotenv import load_dotenv

load_dotenv()

TIMEZONE_NAME = os.getenv("FATIGUE_TIMEZONE", "Australia/Perth")
CORS_ORIGINS = [o.strip() for o in os.getenv("FATIGUE_CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("FATIGUE_LOG_LEVEL", "INFO").upper()
OUT_DIR = os.getenv("FATIGUE_OUT_DIR", "out")
DATA_DIR = os.getenv("FATIGUE_DATA_DIR", "data")


def get_timezone(name: Optional[str] = None) -> ZoneInfo:
    """
    Local timezone used for midnight boundaries.
    Raises ValueError for an unknown zone name.
    """
    name = name or TIMEZONE_NAME
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError:
        raise ValueError(f"Unknown timezone in FATIGUE_TIMEZONE: {name!r}")
