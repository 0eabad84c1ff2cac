from ed_quality.core.metrics import InMemoryQualityMetricsCollector
from ed_quality.core.prometheus_exporter import QualityPrometheusExporter


def test_collector_ignores_non_positive_counts() -> None:
    metrics = InMemoryQualityMetricsCollector()
    metrics.add_fetched_records("lag", "visits", 0)
    metrics.add_findings("catch_up", 0)

    assert dict(metrics.records_fetched_total) == {}
    assert dict(metrics.findings_total) == {}


def test_quality_prometheus_exporter_renders_metrics() -> None:
    metrics = InMemoryQualityMetricsCollector()
    metrics.observe_stage_duration("lag.fetch", 12.5)
    metrics.observe_stage_duration("counts.assemble", 4.1)
    metrics.increment_source_error()
    metrics.increment_run("lag", "success")
    metrics.add_fetched_records("counts", "arrival_time", 8)
    metrics.set_facilities_reported("lag", 3)
    metrics.add_findings("silent_facility", 2)
    metrics.observe_report_duration("counts", 1.5)
    metrics.increment_source_http_error(code=503, source="http")

    output = QualityPrometheusExporter().render(metrics)

    assert "quality_stage_duration_ms" in output
    assert 'stage="lag.fetch"' in output
    assert "quality_source_errors_total" in output
    assert 'quality_report_run_total{report="lag",status="success"} 1.0' in output
    assert 'record_pass="arrival_time"' in output
    assert "quality_facilities_reported" in output
    assert 'quality_findings_total{kind="silent_facility"} 2.0' in output
    assert "quality_report_duration_seconds" in output
    assert 'code="503"' in output
