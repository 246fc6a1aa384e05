"""
Agent Orchestrator for fatigue oversight
Uses:
 - SheetValidatorAgent (compliance checks for one stored sheet)
 - OversightAgent (pairs each sheet with the driver's previous week, runs all sheets)
Writes a per-sheet summary CSV plus a JSON dump with every finding.
"""

import os, json
from datetime import datetime, timedelta

import pandas as pd

from fatigue_engine import config
from fatigue_engine.models import (
    ComplianceOptions, DriverType, localize, parse_days, to_date,
)
from fatigue_engine.validator.compliance_validator import evaluate

SHEET_COLUMNS = ["id", "driver_name", "driver_type", "week_starting", "last_24h_break", "days"]


def load_sheets(sheets) -> pd.DataFrame:
    """Sheets from a JSON file path (list of sheet objects) or a DataFrame."""
    if isinstance(sheets, pd.DataFrame):
        df = sheets.copy()
    else:
        if not os.path.exists(sheets):
            raise FileNotFoundError(f"❌ Sheets file not found: {sheets}")
        with open(sheets) as f:
            raw = json.load(f)
        if not isinstance(raw, list):
            raise ValueError("❌ Sheets JSON must be a list of sheet objects")
        df = pd.DataFrame(raw)
    for col in SHEET_COLUMNS:
        if col not in df.columns:
            df[col] = None
    return df


class SheetValidatorAgent:
    def __init__(self, tz=None):
        self.tz = tz or config.get_timezone()

    def run(self, sheet: dict, previous: dict = None, now: datetime = None) -> dict:
        week_start = to_date(sheet.get("week_starting"))
        prev_start = week_start - timedelta(days=7) if week_start else None
        days = parse_days(sheet.get("days"), week_start, self.tz)
        prev_days = parse_days(previous.get("days"), prev_start, self.tz) if previous else ()

        # Only a sheet whose week holds "now" has an in-progress day
        in_week = (now is not None and week_start is not None
                   and 0 <= (localize(now, self.tz).date() - week_start).days < 7)
        options = ComplianceOptions(
            driver_type=DriverType.parse(sheet.get("driver_type")),
            previous_week_days=prev_days,
            declared_last_24h_break=to_date(sheet.get("last_24h_break")),
            week_start_date=week_start,
            previous_week_start_date=prev_start,
            now=now if in_week else None,
            tz=self.tz,
        )
        findings = evaluate(days, options)
        events = [e for d in days for e in d.events]
        return {
            "sheet_id": sheet.get("id"),
            "driver_name": sheet.get("driver_name"),
            "week_starting": week_start.isoformat() if week_start else None,
            "results": [f.to_dict() for f in findings],
            "events_with_location": sum(1 for e in events if e.location is not None),
            "total_events": len(events),
            "violations": sum(1 for f in findings if f.is_violation),
            "warnings": sum(1 for f in findings if not f.is_violation),
        }


class OversightAgent:
    def __init__(self, tz=None):
        self.validator = SheetValidatorAgent(tz)

    def run(self, sheets, now: datetime = None) -> list:
        df = load_sheets(sheets)
        if df.empty:
            return []
        now = now or datetime.now(self.validator.tz)
        df["_week"] = df["week_starting"].map(to_date)
        df = df.sort_values(["driver_name", "_week"], na_position="last")

        records = df.to_dict("records")
        by_week = {(r["driver_name"], r["_week"]): r for r in records if r["_week"] is not None}
        report = []
        for sheet in records:
            previous = None
            if sheet["_week"] is not None:
                previous = by_week.get((sheet["driver_name"], sheet["_week"] - timedelta(days=7)))
            report.append(self.validator.run(sheet, previous, now))
        return report


class Orchestrator:
    def __init__(self, tz=None):
        self.oversight = OversightAgent(tz)

    def run_pipeline(self, sheets_json, out_path: str, now: datetime = None):
        source = "(dataframe)" if isinstance(sheets_json, pd.DataFrame) else str(sheets_json)
        print(f"🚀 Running fatigue checks over {source}...")
        report = self.oversight.run(sheets_json, now)

        if not report:
            print("❌ No sheets found. Nothing to report.")
            return {"status": "empty", "sheets": [], "meta": {"sheets_json": source, "out_path": out_path}}

        out_dir = os.path.dirname(out_path)
        if out_dir:
            os.makedirs(out_dir, exist_ok=True)
        summary = pd.DataFrame([{k: v for k, v in row.items() if k != "results"} for row in report])
        summary.to_csv(out_path, index=False)

        json_path = os.path.splitext(out_path)[0] + ".json"
        with open(json_path, "w") as f:
            json.dump(report, f, default=str, indent=2)
        print(f"✅ Wrote {out_path} and {json_path}")

        return {
            "status": "ok",
            "sheets": report,
            "meta": {
                "sheets_json": source,
                "out_path": out_path,
                "json_path": json_path,
                "violations": int(summary["violations"].sum()),
                "warnings": int(summary["warnings"].sum()),
            },
        }


if __name__ == "__main__":
    orch = Orchestrator()
    try:
        result = orch.run_pipeline(
            sheets_json=os.path.join(config.DATA_DIR, "sample_sheets.json"),
            out_path=os.path.join(config.OUT_DIR, "oversight_report.csv"),
        )
    except (FileNotFoundError, ValueError) as e:
        print(e)
        raise SystemExit(1)
    print("Sheets checked:", len(result["sheets"]))
    if result["status"] == "ok":
        print(f"⚠️ {result['meta']['violations']} violations, {result['meta']['warnings']} warnings")
