from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from ed_quality.jobs.quality_run import QualityReport, run_quality_reports
from ed_quality.jobs.writer import CsvReportWriter
from ed_quality.sources.base import RecordSource

try:
    from airflow import DAG
    from airflow.operators.python import PythonOperator

    AIRFLOW_AVAILABLE = True
except ImportError:
    AIRFLOW_AVAILABLE = False
    DAG = Any  # type: ignore[misc,assignment]
    PythonOperator = Any  # type: ignore[misc,assignment]


def build_quality_report_callable(
    source_factory: Callable[[], RecordSource],
    window_factory: Callable[[], tuple[datetime, datetime]],
    period_factory: Callable[[], tuple[int, int]],
    writer_factory: Callable[[], CsvReportWriter] | None = None,
    zone: ZoneInfo | None = None,
) -> Callable[[], QualityReport]:
    def _run() -> QualityReport:
        start, end = window_factory()
        year, month = period_factory()
        report = asyncio.run(
            run_quality_reports(source_factory(), start=start, end=end, year=year, month=month, zone=zone)
        )
        if writer_factory:
            writer_factory().write(report)
        return report

    return _run


def create_quality_report_dag(
    dag_id: str,
    source_factory: Callable[[], RecordSource],
    window_factory: Callable[[], tuple[datetime, datetime]],
    period_factory: Callable[[], tuple[int, int]],
    writer_factory: Callable[[], CsvReportWriter] | None = None,
    zone: ZoneInfo | None = None,
    schedule: str = "@daily",
    start_date: datetime | None = None,
) -> Any:
    if not AIRFLOW_AVAILABLE:
        raise RuntimeError("apache-airflow is not installed")

    dag = DAG(
        dag_id=dag_id,
        schedule=schedule,
        start_date=start_date or datetime(2026, 1, 1),
        catchup=False,
        tags=["ed-quality", "data-quality"],
    )
    PythonOperator(
        task_id="quality_report",
        python_callable=build_quality_report_callable(
            source_factory, window_factory, period_factory, writer_factory, zone=zone
        ),
        dag=dag,
    )
    return dag
