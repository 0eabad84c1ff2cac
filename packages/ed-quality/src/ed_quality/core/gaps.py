from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from ed_quality.core.models import CountMatrix, LagSummary, arrival_column, visit_column

SILENT_FACILITY = "silent_facility"
ARRIVAL_DROP = "arrival_drop"
REPORTING_GAP = "reporting_gap"
CATCH_UP = "catch_up"
EXCESSIVE_LAG = "excessive_lag"
CLOCK_SKEW = "clock_skew"


@dataclass(frozen=True)
class QualityFinding:
    kind: str
    facility_name: str
    day: date | None
    detail: str

    def as_row(self) -> dict[str, str | None]:
        return {
            "kind": self.kind,
            "facility_name": self.facility_name,
            "day": self.day.isoformat() if self.day else None,
            "detail": self.detail,
        }


class ReportingGapDetector:
    """Flag reporting problems with plain threshold comparisons over finished reports."""

    def __init__(self, max_mean_lag_hours: float = 24.0, catch_up_ratio: float = 2.0) -> None:
        if max_mean_lag_hours < 0:
            raise ValueError("max_mean_lag_hours must be >= 0")
        if catch_up_ratio <= 1:
            raise ValueError("catch_up_ratio must be > 1")
        self._max_mean_lag_hours = max_mean_lag_hours
        self._catch_up_ratio = catch_up_ratio

    def detect(
        self,
        lag_report: list[LagSummary],
        matrix: CountMatrix,
        known_names: list[str] | None = None,
        as_of: date | None = None,
    ) -> list[QualityFinding]:
        """Days after ``as_of`` have not happened yet and are not judged."""
        findings = [*self._lag_findings(lag_report), *self._count_findings(matrix, as_of)]
        names = known_names if known_names is not None else [row.facility_name for row in lag_report]
        findings.extend(self._silent_facilities(names, matrix))
        return sorted(findings, key=lambda item: (item.facility_name, item.day or date.min, item.kind))

    def _lag_findings(self, lag_report: list[LagSummary]) -> list[QualityFinding]:
        findings: list[QualityFinding] = []
        for row in lag_report:
            if row.mean_lag_hours is None:
                continue
            if row.mean_lag_hours > self._max_mean_lag_hours:
                findings.append(
                    QualityFinding(
                        kind=EXCESSIVE_LAG,
                        facility_name=row.facility_name,
                        day=None,
                        detail=f"mean lag {row.mean_lag_hours}h exceeds {self._max_mean_lag_hours}h",
                    )
                )
            elif row.mean_lag_hours < 0:
                findings.append(
                    QualityFinding(
                        kind=CLOCK_SKEW,
                        facility_name=row.facility_name,
                        day=None,
                        detail=f"mean lag {row.mean_lag_hours}h is negative",
                    )
                )
        return findings

    def _count_findings(self, matrix: CountMatrix, as_of: date | None) -> list[QualityFinding]:
        findings: list[QualityFinding] = []
        for name in matrix.facilities:
            visits = matrix.column(visit_column(name))
            arrivals = matrix.column(arrival_column(name))
            for day, visit_count, arrival_count in zip(matrix.days, visits, arrivals):
                if as_of is not None and day > as_of:
                    break
                kind = self._day_kind(visit_count, arrival_count)
                if kind is None:
                    continue
                findings.append(
                    QualityFinding(
                        kind=kind,
                        facility_name=name,
                        day=day,
                        detail=f"visits={visit_count} arrivals={arrival_count}",
                    )
                )
        return findings

    def _day_kind(self, visit_count: int, arrival_count: int) -> str | None:
        if visit_count == 0 and arrival_count == 0:
            return REPORTING_GAP
        if visit_count > 0 and arrival_count == 0:
            return ARRIVAL_DROP
        if arrival_count > self._catch_up_ratio * max(visit_count, 1):
            return CATCH_UP
        return None

    def _silent_facilities(self, names: list[str], matrix: CountMatrix) -> list[QualityFinding]:
        reporting = set(matrix.facilities)
        return [
            QualityFinding(
                kind=SILENT_FACILITY,
                facility_name=name,
                day=None,
                detail=f"no visits or arrivals in {matrix.year:04d}-{matrix.month:02d}",
            )
            for name in sorted(set(names))
            if name not in reporting
        ]
