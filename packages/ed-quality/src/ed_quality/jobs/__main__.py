from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
import logging
import os
from zoneinfo import ZoneInfo

from devkit.config import load_settings
from devkit.db import AsyncDatabaseManager
from devkit.observability import configure_logging, configure_otel
from devkit.timezone import now_in_zone, previous_month, reporting_zone, to_zone

from ed_quality.core.gaps import ReportingGapDetector
from ed_quality.jobs.quality_run import run_quality_reports
from ed_quality.jobs.writer import CsvReportWriter
from ed_quality.monitoring.state import quality_metrics
from ed_quality.sources.base import RecordSource
from ed_quality.sources.http import HttpRecordSource
from ed_quality.sources.postgres import PostgresRecordSource

SERVICE_NAME = "ed-quality"
logger = logging.getLogger(__name__)


def _required_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"missing required environment variable: {name}")
    return value


def _parse_positive_int(name: str, default: str) -> int:
    value = int(os.getenv(name, default))
    if value <= 0:
        raise RuntimeError(f"{name} must be > 0")
    return value


def _parse_non_negative_float(name: str, default: str) -> float:
    value = float(os.getenv(name, default))
    if value < 0:
        raise RuntimeError(f"{name} must be >= 0")
    return value


def _parse_datetime(name: str, zone: ZoneInfo) -> datetime | None:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return to_zone(datetime.fromisoformat(raw), zone)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an ISO-8601 timestamp") from exc


def _build_source(backend: str, database_url: str | None, zone: ZoneInfo) -> RecordSource:
    if backend == "postgres":
        if not database_url:
            raise RuntimeError("missing required environment variable: DATABASE_URL")
        return PostgresRecordSource(
            database=AsyncDatabaseManager(database_url, time_zone=str(zone)),
            visits_table=os.getenv("QUALITY_VISITS_TABLE", "ed_visits"),
            facilities_table=os.getenv("QUALITY_FACILITIES_TABLE", "facilities"),
            schema=os.getenv("QUALITY_DB_SCHEMA") or None,
            zone=zone,
        )
    if backend == "http":
        return HttpRecordSource(
            base_url=_required_env("QUALITY_SOURCE_BASE_URL"),
            table=os.getenv("QUALITY_VISITS_TABLE") or None,
            connect_timeout_seconds=_parse_non_negative_float("QUALITY_HTTP_CONNECT_TIMEOUT_SECONDS", "2.0"),
            read_timeout_seconds=_parse_non_negative_float("QUALITY_HTTP_READ_TIMEOUT_SECONDS", "30.0"),
            max_retries=_parse_positive_int("QUALITY_SOURCE_MAX_RETRIES", "3"),
            retry_base_delay_seconds=_parse_non_negative_float("QUALITY_SOURCE_RETRY_BASE_DELAY_SECONDS", "0.5"),
            metrics=quality_metrics,
        )
    raise RuntimeError(f"unsupported QUALITY_SOURCE_BACKEND '{backend}', supported: http, postgres")


def _lag_window(zone: ZoneInfo) -> tuple[datetime, datetime]:
    end = _parse_datetime("QUALITY_LAG_END", zone) or now_in_zone(zone)
    start = _parse_datetime("QUALITY_LAG_START", zone)
    if start is None:
        start = end - timedelta(days=_parse_positive_int("QUALITY_LAG_WINDOW_DAYS", "7"))
    if end < start:
        raise RuntimeError("QUALITY_LAG_END must be >= QUALITY_LAG_START")
    return start, end


def _count_period(zone: ZoneInfo) -> tuple[int, int]:
    # The current month is still filling in; default to the last complete one.
    default_year, default_month = previous_month(now_in_zone(zone))
    year = _parse_positive_int("QUALITY_COUNT_YEAR", str(default_year))
    month = _parse_positive_int("QUALITY_COUNT_MONTH", str(default_month))
    if month > 12:
        raise RuntimeError("QUALITY_COUNT_MONTH must be between 1 and 12")
    return year, month


def main() -> None:
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))
    configure_otel(SERVICE_NAME)
    settings = load_settings(SERVICE_NAME)
    zone = reporting_zone(settings.REPORT_TIMEZONE)
    backend = os.getenv("QUALITY_SOURCE_BACKEND", "postgres").lower()

    source = _build_source(backend, settings.DATABASE_URL, zone)
    start, end = _lag_window(zone)
    year, month = _count_period(zone)
    detector = ReportingGapDetector(
        max_mean_lag_hours=_parse_non_negative_float("QUALITY_MAX_MEAN_LAG_HOURS", "24.0"),
        catch_up_ratio=float(os.getenv("QUALITY_CATCH_UP_RATIO", "2.0")),
    )
    writer = CsvReportWriter(output_dir=os.getenv("QUALITY_OUTPUT_DIR", "runtime/quality"))

    report = asyncio.run(
        run_quality_reports(
            source,
            start=start,
            end=end,
            year=year,
            month=month,
            zone=zone,
            detector=detector,
            as_of=now_in_zone(zone).date(),
        )
    )
    paths = writer.write(report)
    logger.info(
        "quality_reports_written",
        extra={"component": "ed_quality", "files": ",".join(str(path) for path in paths), "findings": len(report.findings)},
    )


if __name__ == "__main__":
    main()
