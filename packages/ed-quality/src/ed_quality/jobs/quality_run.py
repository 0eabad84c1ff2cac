from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime
from zoneinfo import ZoneInfo

from ed_quality.core.counts import RecordCountPipeline
from ed_quality.core.directory import FacilityDirectory
from ed_quality.core.gaps import QualityFinding, ReportingGapDetector
from ed_quality.core.lag import ArrivalLagPipeline
from ed_quality.core.metrics import InMemoryQualityMetricsCollector
from ed_quality.core.models import CountMatrix, LagSummary
from ed_quality.core.pipeline import run_concurrently
from ed_quality.monitoring.state import quality_metrics
from ed_quality.sources.base import RecordSource


@dataclass(frozen=True)
class QualityReport:
    start: datetime
    end: datetime
    year: int
    month: int
    lag_report: list[LagSummary]
    count_matrix: CountMatrix
    findings: list[QualityFinding]


async def run_quality_reports(
    source: RecordSource,
    *,
    start: datetime,
    end: datetime,
    year: int,
    month: int,
    zone: ZoneInfo | None = None,
    detector: ReportingGapDetector | None = None,
    as_of: date | None = None,
    metrics: InMemoryQualityMetricsCollector | None = quality_metrics,
) -> QualityReport:
    directory = FacilityDirectory(source)
    lag_pipeline = ArrivalLagPipeline(source, directory=directory, zone=zone, metrics=metrics)
    count_pipeline = RecordCountPipeline(source, directory=directory, zone=zone, metrics=metrics)
    lag_report, count_matrix = await run_concurrently(
        lag_pipeline.compute_lag(start, end),
        count_pipeline.compute_counts(month, year),
    )
    findings = (detector or ReportingGapDetector()).detect(lag_report, count_matrix, as_of=as_of)
    if metrics:
        for kind, count in sorted(Counter(item.kind for item in findings).items()):
            metrics.add_findings(kind, count)
    return QualityReport(
        start=start,
        end=end,
        year=year,
        month=month,
        lag_report=lag_report,
        count_matrix=count_matrix,
        findings=findings,
    )
