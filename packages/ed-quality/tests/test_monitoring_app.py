from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from fastapi.testclient import TestClient

from ed_quality.core.models import Facility, TimestampField
from ed_quality.jobs.quality_run import run_quality_reports
from ed_quality.monitoring.app import create_monitoring_app
from ed_quality.monitoring.state import quality_metrics
from ed_quality.sources.base import RecordSource


class StubSource(RecordSource):
    async def fetch_visits(self, start, end):
        return []

    async def fetch_by_month(self, field: TimestampField, month: int, year: int):
        return []

    async def fetch_facilities(self):
        return [Facility("F1", "Bespin")]


def test_metrics_endpoint_exposes_report_metrics() -> None:
    quality_metrics.stage_durations.clear()

    asyncio.run(
        run_quality_reports(
            StubSource(),
            start=datetime(2017, 5, 1, tzinfo=timezone.utc),
            end=datetime(2017, 5, 2, tzinfo=timezone.utc),
            year=2017,
            month=5,
        )
    )
    client = TestClient(create_monitoring_app())
    response = client.get("/metrics")
    body = response.text

    assert response.status_code == 200
    assert "quality_stage_duration_ms" in body
    assert "quality_report_run_total" in body
    assert 'kind="silent_facility"' in body


def test_probe_endpoints_report_status() -> None:
    client = TestClient(create_monitoring_app())

    assert client.get("/healthz").json() == {"status": "ok"}
    assert client.get("/readyz").json() == {"status": "ready"}
