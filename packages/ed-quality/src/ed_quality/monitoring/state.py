from __future__ import annotations

from ed_quality.core.metrics import InMemoryQualityMetricsCollector
from ed_quality.core.prometheus_exporter import QualityPrometheusExporter

quality_metrics = InMemoryQualityMetricsCollector()
quality_exporter = QualityPrometheusExporter()
