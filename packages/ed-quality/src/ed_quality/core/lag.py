from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import datetime
from zoneinfo import ZoneInfo

from devkit.timezone import reporting_zone, to_zone

from ed_quality.core.directory import FacilityDirectory
from ed_quality.core.exceptions import SourceDataError, ValidationError
from ed_quality.core.metrics import InMemoryQualityMetricsCollector
from ed_quality.core.models import LagSummary, VisitRecord
from ed_quality.core.pipeline import StagedPipeline
from ed_quality.core.report import ReportAssembler
from ed_quality.sources.base import RecordSource

SECONDS_PER_HOUR = 3600.0


def check_window(records: Iterable[VisitRecord], start: datetime, end: datetime) -> None:
    for record in records:
        if not (start <= record.visit_time <= end):
            raise SourceDataError(
                f"visit {record.facility_id}/{record.visit_id} at {record.visit_time.isoformat()} "
                f"is outside [{start.isoformat()}, {end.isoformat()}]"
            )


def earliest_arrivals(records: Sequence[VisitRecord]) -> list[VisitRecord]:
    """Keep one record per ``(facility_id, visit_id)``: the one that arrived first.

    Ties on the arrival timestamp go to the record fetched first. A visit
    without any arrival keeps its first record, whose lag is ``None``.
    """
    groups: dict[tuple[str, str], list[tuple[int, VisitRecord]]] = defaultdict(list)
    for index, record in enumerate(records):
        groups[(record.facility_id, record.visit_id)].append((index, record))

    selected: list[VisitRecord] = []
    for key in sorted(groups):
        candidates = groups[key]
        arrived = [(record.arrival_time, index, record) for index, record in candidates if record.arrival_time is not None]
        if arrived:
            selected.append(min(arrived, key=lambda item: (item[0], item[1]))[2])
        else:
            selected.append(candidates[0][1])
    return selected


def lag_hours(record: VisitRecord) -> float | None:
    if record.arrival_time is None:
        return None
    return (record.arrival_time - record.visit_time).total_seconds() / SECONDS_PER_HOUR


def mean_lag_by_facility(visits: Iterable[VisitRecord], digits: int = 2) -> dict[str, float | None]:
    lags: dict[str, list[float]] = defaultdict(list)
    facility_ids: set[str] = set()
    for visit in visits:
        facility_ids.add(visit.facility_id)
        lag = lag_hours(visit)
        if lag is not None:
            lags[visit.facility_id].append(lag)

    means: dict[str, float | None] = {}
    for facility_id in sorted(facility_ids):
        values = lags.get(facility_id)
        means[facility_id] = round(sum(values) / len(values), digits) if values else None
    return means


class ArrivalLagPipeline(StagedPipeline):
    report_name = "lag"

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

    async def compute_lag(self, start: datetime, end: datetime) -> list[LagSummary]:
        start = to_zone(start, self._zone)
        end = to_zone(end, self._zone)
        if end < start:
            raise ValidationError("end must be greater than or equal to start")

        async def _body() -> list[LagSummary]:
            raw = await self._time_async("fetch", lambda: self._source.fetch_visits(start, end))
            self._count_fetched("visits", len(raw))
            records = [self._localize(record) for record in raw]
            check_window(records, start, end)
            visits = self._time_sync("deduplicate", lambda: earliest_arrivals(records))
            means = self._time_sync("aggregate", lambda: mean_lag_by_facility(visits))
            known = await self._time_async("directory", self._directory.load)
            report = self._time_sync("assemble", lambda: self._assembler.assemble_lag_report(means, known))
            if self._metrics:
                self._metrics.set_facilities_reported(self.report_name, len(report))
            return report

        return await self._run(_body, start=start.isoformat(), end=end.isoformat())

    def _localize(self, record: VisitRecord) -> VisitRecord:
        arrival = to_zone(record.arrival_time, self._zone) if record.arrival_time is not None else None
        return VisitRecord(
            facility_id=record.facility_id,
            visit_id=record.visit_id,
            visit_time=to_zone(record.visit_time, self._zone),
            arrival_time=arrival,
        )
