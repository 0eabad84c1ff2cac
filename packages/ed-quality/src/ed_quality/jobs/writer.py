from __future__ import annotations

import csv
import io
import json
from pathlib import Path

from ed_quality.core.models import CountMatrix, LagSummary
from ed_quality.jobs.quality_run import QualityReport

LAG_COLUMNS = ("facility_id", "facility_name", "mean_lag_hours")


def render_lag_csv(rows: list[LagSummary]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(LAG_COLUMNS)
    for row in rows:
        lag = "" if row.mean_lag_hours is None else f"{row.mean_lag_hours:.2f}"
        writer.writerow((row.facility_id, row.facility_name, lag))
    return buffer.getvalue()


def render_count_csv(matrix: CountMatrix) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(matrix.columns)
    for day, *counts in matrix.rows:
        writer.writerow((day.isoformat(), *counts))
    return buffer.getvalue()


def render_findings_jsonl(report: QualityReport) -> str:
    lines = [json.dumps(item.as_row(), ensure_ascii=True, sort_keys=True) for item in report.findings]
    return "\n".join(lines) + ("\n" if lines else "")


class CsvReportWriter:
    def __init__(self, output_dir: str) -> None:
        self._dir = Path(output_dir)

    def write(self, report: QualityReport) -> list[Path]:
        # Rendering happens before any file is touched so a failure leaves no partial report.
        outputs = {
            "lag_report.csv": render_lag_csv(report.lag_report),
            f"record_counts_{report.year:04d}_{report.month:02d}.csv": render_count_csv(report.count_matrix),
            "findings.jsonl": render_findings_jsonl(report),
        }
        self._dir.mkdir(parents=True, exist_ok=True)
        staged = [(self._dir / f".{name}.tmp", self._dir / name) for name in outputs]
        try:
            # Every file is staged before the first rename so a failed write replaces nothing.
            for (staging, _), body in zip(staged, outputs.values()):
                staging.write_text(body, encoding="utf-8")
            for staging, target in staged:
                staging.replace(target)
        finally:
            for staging, _ in staged:
                staging.unlink(missing_ok=True)
        return [target for _, target in staged]
