import json

import pytest
from fastapi.testclient import TestClient

from fatigue_engine.api.main import app


@pytest.fixture
def client():
    return TestClient(app)


def empty_days():
    return [{"work_time": [False] * 48, "breaks": [False] * 48, "non_work": [False] * 48} for _ in range(7)]


class TestComplianceCheck:
    def test_empty_week(self, client):
        res = client.post("/compliance/check", json={"days": empty_days(), "driverType": "solo"})
        assert res.status_code == 200
        assert res.json() == {"results": []}

    def test_finding_shape(self, client):
        days = empty_days()
        days[1]["work_time"] = [True] * 10 + [False] * 38
        res = client.post("/compliance/check", json={"days": days, "weekStarting": "2025-06-01"})
        assert res.status_code == 200
        results = res.json()["results"]
        assert results == [{
            "severity": "warning",
            "ruleIcon": "Coffee",
            "periodLabel": "Mon",
            "message": "20 min break for ea 5 hours work time - 10 min minimum x 2",
        }]

    def test_two_up_24h_violation(self, client):
        days = empty_days()
        days[0]["work_time"] = [True] * 32 + [False] * 16
        days[0]["non_work"] = [False] * 32 + [True] * 10 + [False] * 6
        res = client.post("/compliance/check", json={"days": days, "driverType": "two_up"})
        violations = [r for r in res.json()["results"] if r["severity"] == "violation"]
        assert len(violations) == 1
        assert "24 hrs" in violations[0]["message"]

    def test_days_must_be_an_array(self, client):
        res = client.post("/compliance/check", json={"days": "monday"})
        assert res.status_code == 400
        assert "error" in res.json()

    def test_missing_days(self, client):
        res = client.post("/compliance/check", json={})
        assert res.status_code == 400


class TestProspective:
    def test_without_position(self, client):
        res = client.post("/compliance/prospective", json={"days": empty_days()})
        assert res.status_code == 200
        assert res.json() == {"warnings": []}

    def test_17h_warning(self, client):
        days = empty_days()
        days[0]["work_time"] = [False] * 14 + [True] * 34
        res = client.post("/compliance/prospective", json={
            "days": days, "weekStarting": "2025-06-01", "currentDayIndex": 1, "slotOffsetWithinToday": 0,
        })
        assert "More than 17h between 7-hr rest breaks" in res.json()["warnings"]


class TestOversightUpload:
    def test_upload_sheets(self, client, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        sheets = [{
            "id": "s1",
            "driver_name": "Alex",
            "driver_type": "solo",
            "week_starting": "2025-06-01",
            "days": [{"work_time": [True] * 26}] * 7,
        }]
        files = {"sheets_json": ("sheets.json", json.dumps(sheets), "application/json")}
        res = client.post("/oversight", files=files)
        assert res.status_code == 200
        body = res.json()
        assert body["status"] == "ok"
        assert body["sheets"][0]["sheet_id"] == "s1"
        assert (tmp_path / "out" / "oversight_report.csv").exists()

    def test_bad_upload(self, client, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        files = {"sheets_json": ("sheets.json", json.dumps({"not": "a list"}), "application/json")}
        res = client.post("/oversight", files=files)
        assert res.status_code == 400
        assert "error" in res.json()
