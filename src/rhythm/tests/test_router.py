"""Tests for the HTTP surface (health + rhythm endpoints)."""

from __future__ import annotations

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from src.main import create_app


def regular_records(through: date = date(2024, 3, 10)) -> list[dict]:
    """Storage-shaped daily records for three 28-day cycles from 2024-01-01."""
    records = []
    start = date(2024, 1, 1)
    day = start
    while day <= through:
        flow = 6 if (day - start).days % 28 < 4 else 0
        records.append({"dateISO": day.isoformat(), "values": {"flow": flow}})
        day += timedelta(days=1)
    return records


@pytest.fixture
def client() -> TestClient:
    return TestClient(create_app())


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["engine_config"] == "1.0"


class TestRhythmEndpoints:
    def test_snapshot(self, client: TestClient) -> None:
        resp = client.post(
            "/api/v1/rhythm/snapshot",
            json={"entries": regular_records(), "today": "2024-03-10"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["cycle_starts"] == ["2024-01-01", "2024-01-29", "2024-02-26"]
        assert body["cycle_stats"]["avg_length"] == 28
        assert body["cycle_stats"]["predicted_next_start"] == "2024-03-25"
        assert body["phase"]["phase"] == "expressive"
        assert body["phase"]["soft_label"] == "Expressive Phase"
        assert body["phase"]["confidence"] == "Established"
        assert body["trends"]["tier"] == "mature"

    def test_malformed_entries_are_skipped(self, client: TestClient) -> None:
        records = regular_records()
        records.append({"dateISO": "not-a-date", "values": {"flow": 9}})
        records.append({"values": "garbage"})
        resp = client.post("/api/v1/rhythm/cycle-stats", json={"entries": records})
        assert resp.status_code == 200
        assert resp.json()["avg_length"] == 28

    def test_malformed_envelope_rejected(self, client: TestClient) -> None:
        resp = client.post("/api/v1/rhythm/snapshot", json={"entries": "nope"})
        assert resp.status_code == 422

    def test_phase_with_tracking_off(self, client: TestClient) -> None:
        resp = client.post(
            "/api/v1/rhythm/phase",
            json={
                "entries": regular_records(),
                "settings": {"cycleTrackingMode": "no-cycle"},
                "today": "2024-03-10",
            },
        )
        assert resp.status_code == 200
        assert resp.json()["strategy"] != "boundary"

    def test_fertile_window(self, client: TestClient) -> None:
        resp = client.post(
            "/api/v1/rhythm/fertile-window",
            json={"entries": regular_records(), "settings": {"fertilityMode": True}},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["source"] == "predicted"
        assert "2024-01-15" in body["ovulation_dates"]
        assert "2024-01-01" not in body["days"]

    def test_trends(self, client: TestClient) -> None:
        records = [
            {"dateISO": f"2024-03-{d:02d}", "values": {"sleep": 4 if d <= 7 else 7}}
            for d in range(1, 15)
        ]
        resp = client.post(
            "/api/v1/rhythm/trends",
            json={"entries": records, "settings": {"enabledModules": ["sleep"]}},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["date"] == "2024-03-14"
        assert body["how_lines"] == ["Sleep has been much higher"]

    def test_cycle_start_override(self, client: TestClient) -> None:
        records = [
            {"dateISO": "2024-03-01", "values": {"flow": 0}, "cycleStartOverride": True},
            {"dateISO": "2024-03-02", "values": {"flow": 2}},
        ]
        resp = client.post(
            "/api/v1/rhythm/overrides/cycle-start",
            json={"entries": records, "date": "2024-03-02"},
        )
        assert resp.status_code == 200
        body = resp.json()
        by_day = {e["dateISO"]: e for e in body["entries"]}
        assert "cycleStartOverride" not in by_day["2024-03-01"]
        assert by_day["2024-03-02"]["cycleStartOverride"] is True
        assert body["cycle_starts"] == ["2024-03-02"]

    def test_override_requires_date(self, client: TestClient) -> None:
        resp = client.post("/api/v1/rhythm/overrides/cycle-start", json={"entries": []})
        assert resp.status_code == 422

    def test_oversized_value_is_treated_as_absent(self, client: TestClient) -> None:
        records = [{"dateISO": "2024-03-01", "values": {"flow": 10**400, "sleep": 10**400}}]
        resp = client.post("/api/v1/rhythm/snapshot", json={"entries": records})
        assert resp.status_code == 200
        body = resp.json()
        assert body["cycle_starts"] == []
        assert body["trends"]["means_7d"]["mood"] is None

    def test_malformed_ovulation_date_is_skipped(self, client: TestClient) -> None:
        resp = client.post(
            "/api/v1/rhythm/fertile-window",
            json={
                "entries": regular_records(),
                "settings": {
                    "fertilityMode": True,
                    "ovulationOverrideISOs": ["2024-02-20", "not-a-date", 42],
                },
            },
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["source"] == "manual"
        assert body["ovulation_dates"] == ["2024-02-20"]

    def test_trends_respect_insights_cutoff(self, client: TestClient) -> None:
        records = [
            {"dateISO": f"2024-03-{d:02d}", "values": {"sleep": 4 if d <= 7 else 7}}
            for d in range(1, 15)
        ]
        resp = client.post(
            "/api/v1/rhythm/trends",
            json={
                "entries": records,
                "settings": {"enabledModules": ["sleep"], "insightsFromISO": "2024-03-08"},
            },
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["means_14d"]["sleep"] == 7.0
        assert body["how_lines"] == ["Things have felt fairly steady recently."]

    def test_compare_windows(self, client: TestClient) -> None:
        records = [
            {"dateISO": f"2024-03-{d:02d}", "values": {"sleep": 4 if d < 10 else 7}}
            for d in range(5, 13)
        ]
        resp = client.post(
            "/api/v1/rhythm/compare",
            json={"entries": records, "startDateISO": "2024-03-10", "metrics": ["sleep"]},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["before_start"] == "2024-03-07"
        assert body["during_end"] == "2024-03-12"
        assert body["metrics"][0]["delta"] == 3.0
        assert body["enough_data"] is True

    def test_compare_without_metrics_is_rejected(self, client: TestClient) -> None:
        resp = client.post(
            "/api/v1/rhythm/compare",
            json={"entries": [], "startDateISO": "2024-03-10", "metrics": []},
        )
        assert resp.status_code == 400
        assert resp.json() == {"detail": "No metrics to compare"}
