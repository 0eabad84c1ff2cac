from __future__ import annotations

from dataclasses import dataclass
from collections import defaultdict


@dataclass(frozen=True)
class StageDuration:
    stage: str
    duration_ms: float


class InMemoryQualityMetricsCollector:
    def __init__(self) -> None:
        self.stage_durations: list[StageDuration] = []
        self.source_error_count = 0
        self.report_run_total: dict[tuple[str, str], int] = defaultdict(int)
        self.records_fetched_total: dict[tuple[str, str], int] = defaultdict(int)
        self.facilities_reported: dict[str, int] = {}
        self.findings_total: dict[str, int] = defaultdict(int)
        self.report_duration_seconds: dict[str, float] = {}
        self.source_http_errors_total: dict[tuple[str, str], int] = defaultdict(int)

    def observe_stage_duration(self, stage: str, duration_ms: float) -> None:
        self.stage_durations.append(StageDuration(stage=stage, duration_ms=duration_ms))

    def increment_source_error(self) -> None:
        self.source_error_count += 1

    def increment_run(self, report: str, status: str) -> None:
        self.report_run_total[(report, status)] += 1

    def add_fetched_records(self, report: str, record_pass: str, count: int) -> None:
        if count <= 0:
            return
        self.records_fetched_total[(report, record_pass)] += count

    def set_facilities_reported(self, report: str, count: int) -> None:
        self.facilities_reported[report] = count

    def add_findings(self, kind: str, count: int = 1) -> None:
        if count <= 0:
            return
        self.findings_total[kind] += count

    def observe_report_duration(self, report: str, duration_seconds: float) -> None:
        self.report_duration_seconds[report] = duration_seconds

    def increment_source_http_error(self, code: int | str, source: str = "unknown") -> None:
        self.source_http_errors_total[(source, str(code))] += 1
