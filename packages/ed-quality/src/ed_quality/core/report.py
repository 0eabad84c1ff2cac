from __future__ import annotations

from collections.abc import Mapping
from datetime import date

from devkit.timezone import days_in_month

from ed_quality.core.directory import resolve_names
from ed_quality.core.models import DATE_COLUMN, CountMatrix, LagSummary, arrival_column, visit_column

DayCounts = Mapping[date, Mapping[str, int]]


def _densify(counts: DayCounts, days: list[date], facilities: list[str], column_for) -> dict[date, dict[str, int]]:
    dense: dict[date, dict[str, int]] = {}
    for day in days:
        by_facility = counts.get(day, {})
        dense[day] = {column_for(name): int(by_facility.get(name, 0)) for name in facilities}
    return dense


def _facilities_in(counts: DayCounts) -> set[str]:
    return {name for by_facility in counts.values() for name in by_facility}


class ReportAssembler:
    """Join, fill and sort pipeline output into presentation-ready tables."""

    def assemble_lag_report(
        self,
        mean_lags: Mapping[str, float | None],
        known_facilities: Mapping[str, str],
    ) -> list[LagSummary]:
        names = dict(known_facilities)
        # Facilities seen in the data but missing from the directory keep a row.
        unresolved = [facility_id for facility_id in mean_lags if facility_id not in names]
        if unresolved:
            names.update(resolve_names(names, unresolved))
        rows = [
            LagSummary(
                facility_id=facility_id,
                facility_name=name,
                mean_lag_hours=mean_lags.get(facility_id),
            )
            for facility_id, name in names.items()
        ]
        return sorted(rows, key=lambda row: (row.facility_name, row.facility_id))

    def assemble_count_matrix(
        self,
        year: int,
        month: int,
        visit_counts: DayCounts,
        arrival_counts: DayCounts,
    ) -> CountMatrix:
        days = days_in_month(year, month)
        facilities = sorted(_facilities_in(visit_counts) | _facilities_in(arrival_counts))
        visits = _densify(visit_counts, days, facilities, visit_column)
        arrivals = _densify(arrival_counts, days, facilities, arrival_column)

        merged: dict[date, dict[str, int]] = {}
        for day in sorted(set(visits) | set(arrivals)):
            row = dict(visits.get(day, {}))
            row.update(arrivals.get(day, {}))
            merged[day] = row

        value_columns = sorted({column for row in merged.values() for column in row})
        rows = tuple(
            (day, *(merged[day].get(column, 0) for column in value_columns))
            for day in sorted(merged)
        )
        return CountMatrix(
            year=year,
            month=month,
            columns=(DATE_COLUMN, *value_columns),
            rows=rows,
        )
