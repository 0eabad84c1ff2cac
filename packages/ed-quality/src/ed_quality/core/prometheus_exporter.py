from __future__ import annotations

from prometheus_client import CollectorRegistry, Gauge, generate_latest

from ed_quality.core.metrics import InMemoryQualityMetricsCollector


class QualityPrometheusExporter:
    def __init__(self) -> None:
        self._registry = CollectorRegistry()
        self._stage_duration = Gauge(
            "quality_stage_duration_ms",
            "Latest duration of each report stage in milliseconds",
            labelnames=("stage",),
            registry=self._registry,
        )
        self._source_errors = Gauge(
            "quality_source_errors_total",
            "Record source errors, retries included",
            registry=self._registry,
        )
        self._report_run_total = Gauge(
            "quality_report_run_total",
            "Report runs grouped by report and status",
            labelnames=("report", "status"),
            registry=self._registry,
        )
        self._records_fetched_total = Gauge(
            "quality_records_fetched_total",
            "Fetched source records grouped by report and pass",
            labelnames=("report", "record_pass"),
            registry=self._registry,
        )
        self._facilities_reported = Gauge(
            "quality_facilities_reported",
            "Facilities present in the latest report",
            labelnames=("report",),
            registry=self._registry,
        )
        self._findings_total = Gauge(
            "quality_findings_total",
            "Data-quality findings grouped by kind",
            labelnames=("kind",),
            registry=self._registry,
        )
        self._report_duration_seconds = Gauge(
            "quality_report_duration_seconds",
            "Latest report run duration",
            labelnames=("report",),
            registry=self._registry,
        )
        self._source_http_errors_total = Gauge(
            "quality_source_http_errors_total",
            "Record source HTTP errors grouped by source and code",
            labelnames=("source", "code"),
            registry=self._registry,
        )

    def render(self, metrics: InMemoryQualityMetricsCollector) -> str:
        latest_by_stage: dict[str, float] = {}
        for item in metrics.stage_durations:
            latest_by_stage[item.stage] = item.duration_ms
        for stage, duration in latest_by_stage.items():
            self._stage_duration.labels(stage=stage).set(duration)
        self._source_errors.set(metrics.source_error_count)
        for (report, status), count in metrics.report_run_total.items():
            self._report_run_total.labels(report=report, status=status).set(count)
        for (report, record_pass), count in metrics.records_fetched_total.items():
            self._records_fetched_total.labels(report=report, record_pass=record_pass).set(count)
        for report, count in metrics.facilities_reported.items():
            self._facilities_reported.labels(report=report).set(count)
        for kind, count in metrics.findings_total.items():
            self._findings_total.labels(kind=kind).set(count)
        for report, duration in metrics.report_duration_seconds.items():
            self._report_duration_seconds.labels(report=report).set(duration)
        for (source, code), count in metrics.source_http_errors_total.items():
            self._source_http_errors_total.labels(source=source, code=code).set(count)
        return generate_latest(self._registry).decode("utf-8")
