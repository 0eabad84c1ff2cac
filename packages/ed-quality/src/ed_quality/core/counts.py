from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import replace
from datetime import date
from zoneinfo import ZoneInfo

from devkit.timezone import floor_to_day, reporting_zone, to_zone

from ed_quality.core.directory import FacilityDirectory
from ed_quality.core.exceptions import SourceDataError, ValidationError
from ed_quality.core.metrics import InMemoryQualityMetricsCollector
from ed_quality.core.models import CountMatrix, TimestampField, TimestampRecord
from ed_quality.core.pipeline import StagedPipeline, run_concurrently
from ed_quality.core.report import ReportAssembler
from ed_quality.sources.base import RecordSource

DayBucket = tuple[date, str]


def localize(records: Iterable[TimestampRecord], zone: ZoneInfo) -> list[TimestampRecord]:
    return [replace(record, timestamp=to_zone(record.timestamp, zone)) for record in records]


def distinct_visits(records: Sequence[TimestampRecord]) -> list[TimestampRecord]:
    """Collapse retransmitted visits: one row per ``(facility_id, visit_id)``, earliest timestamp wins."""
    kept: dict[tuple[str, str], tuple[int, TimestampRecord]] = {}
    anonymous: list[tuple[int, TimestampRecord]] = []
    for index, record in enumerate(records):
        if record.visit_id is None:
            anonymous.append((index, record))
            continue
        key = (record.facility_id, record.visit_id)
        current = kept.get(key)
        if current is None or record.timestamp < current[1].timestamp:
            kept[key] = (index, record)
    ordered = sorted([*kept.values(), *anonymous], key=lambda item: item[0])
    return [record for _, record in ordered]


def bucket_by_day(
    records: Iterable[TimestampRecord],
    zone: ZoneInfo,
    year: int,
    month: int,
) -> list[DayBucket]:
    buckets: list[DayBucket] = []
    for record in records:
        day = floor_to_day(record.timestamp, zone)
        if (day.year, day.month) != (year, month):
            raise SourceDataError(
                f"record for facility {record.facility_id} on {day.isoformat()} "
                f"is outside {year:04d}-{month:02d}"
            )
        buckets.append((day, record.facility_id))
    return buckets


def pivot_counts(buckets: Iterable[DayBucket], names: Mapping[str, str]) -> dict[date, dict[str, int]]:
    """Sparse ``day -> facility name -> count``; absent pairs are filled by the assembler."""
    counts = Counter((day, names[facility_id]) for day, facility_id in buckets)
    pivot: dict[date, dict[str, int]] = {}
    for (day, name), count in sorted(counts.items()):
        pivot.setdefault(day, {})[name] = count
    return pivot


class RecordCountPipeline(StagedPipeline):
    report_name = "counts"

    def __init__(
        self,
        source: RecordSource,
        directory: FacilityDirectory | None = None,
        assembler: ReportAssembler | None = None,
        zone: ZoneInfo | None = None,
        metrics: InMemoryQualityMetricsCollector | None = None,
    ) -> None:
        super().__init__(metrics=metrics)
        self._source = source
        self._directory = directory or FacilityDirectory(source)
        self._assembler = assembler or ReportAssembler()
        self._zone = zone or reporting_zone()

    async def compute_counts(self, month: int, year: int) -> CountMatrix:
        if not 1 <= month <= 12:
            raise ValidationError(f"month must be between 1 and 12, got {month}")
        if year < 1:
            raise ValidationError(f"year must be positive, got {year}")

        async def _body() -> CountMatrix:
            visit_rows, arrival_rows = await self._time_async(
                "fetch",
                lambda: run_concurrently(
                    self._source.fetch_by_month(TimestampField.VISIT_TIME, month, year),
                    self._source.fetch_by_month(TimestampField.ARRIVAL_TIME, month, year),
                ),
            )
            self._count_fetched(TimestampField.VISIT_TIME.value, len(visit_rows))
            self._count_fetched(TimestampField.ARRIVAL_TIME.value, len(arrival_rows))

            visit_buckets, arrival_buckets = self._time_sync(
                "bucket",
                lambda: (
                    bucket_by_day(distinct_visits(localize(visit_rows, self._zone)), self._zone, year, month),
                    bucket_by_day(arrival_rows, self._zone, year, month),
                ),
            )
            facility_ids = {facility_id for _, facility_id in (*visit_buckets, *arrival_buckets)}
            names = await self._time_async("directory", lambda: self._directory.resolve(facility_ids))
            matrix = self._time_sync(
                "assemble",
                lambda: self._assembler.assemble_count_matrix(
                    year,
                    month,
                    pivot_counts(visit_buckets, names),
                    pivot_counts(arrival_buckets, names),
                ),
            )
            if self._metrics:
                self._metrics.set_facilities_reported(self.report_name, len(matrix.facilities))
            return matrix

        return await self._run(_body, year=year, month=month)
