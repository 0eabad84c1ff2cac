from __future__ import annotations

from datetime import datetime, timedelta
import os

from devkit.config import load_settings
from devkit.db import AsyncDatabaseManager
from devkit.timezone import now_in_zone, previous_month, reporting_zone

from ed_quality.jobs.writer import CsvReportWriter
from ed_quality.orchestration.airflow_adapter import AIRFLOW_AVAILABLE, create_quality_report_dag
from ed_quality.sources.postgres import PostgresRecordSource

_settings = load_settings("ed-quality")
_zone = reporting_zone(_settings.REPORT_TIMEZONE)


def _source() -> PostgresRecordSource:
    if not _settings.DATABASE_URL:
        raise RuntimeError("missing required environment variable: DATABASE_URL")
    return PostgresRecordSource(
        database=AsyncDatabaseManager(_settings.DATABASE_URL, time_zone=str(_zone)),
        visits_table=os.getenv("QUALITY_VISITS_TABLE", "ed_visits"),
        facilities_table=os.getenv("QUALITY_FACILITIES_TABLE", "facilities"),
        zone=_zone,
    )


def _window() -> tuple[datetime, datetime]:
    end = now_in_zone(_zone)
    return end - timedelta(days=int(os.getenv("QUALITY_LAG_WINDOW_DAYS", "7"))), end


def _period() -> tuple[int, int]:
    # The current month is still filling in; the last complete one is reported.
    return previous_month(now_in_zone(_zone))


if AIRFLOW_AVAILABLE:
    dag = create_quality_report_dag(
        dag_id="ed_quality_daily_report",
        source_factory=_source,
        window_factory=_window,
        period_factory=_period,
        writer_factory=lambda: CsvReportWriter(os.getenv("QUALITY_OUTPUT_DIR", "runtime/quality")),
        zone=_zone,
    )
else:
    dag = None
