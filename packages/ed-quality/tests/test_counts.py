from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from ed_quality.core.counts import RecordCountPipeline, bucket_by_day, distinct_visits, pivot_counts
from ed_quality.core.exceptions import SourceDataError, SourceFetchError, ValidationError
from ed_quality.core.metrics import InMemoryQualityMetricsCollector
from ed_quality.core.models import Facility, TimestampField, TimestampRecord
from ed_quality.sources.base import RecordSource

UTC = ZoneInfo("UTC")


class StubSource(RecordSource):
    def __init__(
        self,
        visits: list[TimestampRecord],
        arrivals: list[TimestampRecord],
        facilities: list[Facility],
    ) -> None:
        self._rows = {TimestampField.VISIT_TIME: visits, TimestampField.ARRIVAL_TIME: arrivals}
        self._facilities = facilities
        self.facility_calls = 0

    async def fetch_visits(self, start, end):
        return []

    async def fetch_by_month(self, field: TimestampField, month: int, year: int):
        return list(self._rows[field])

    async def fetch_facilities(self):
        self.facility_calls += 1
        return list(self._facilities)


class SlowVisitSource(StubSource):
    async def fetch_by_month(self, field: TimestampField, month: int, year: int):
        if field is TimestampField.VISIT_TIME:
            await asyncio.sleep(0.01)
        return await super().fetch_by_month(field, month, year)


class FailingArrivalSource(StubSource):
    async def fetch_by_month(self, field: TimestampField, month: int, year: int):
        if field is TimestampField.ARRIVAL_TIME:
            raise SourceFetchError("arrival query failed")
        return await super().fetch_by_month(field, month, year)


class HangingVisitSource(FailingArrivalSource):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.visit_pass_cancelled = False

    async def fetch_by_month(self, field: TimestampField, month: int, year: int):
        if field is TimestampField.VISIT_TIME:
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                self.visit_pass_cancelled = True
                raise
        return await super().fetch_by_month(field, month, year)


def _row(facility_id: str, timestamp: datetime, visit_id: str | None = None) -> TimestampRecord:
    return TimestampRecord(facility_id=facility_id, timestamp=timestamp, visit_id=visit_id)


FACILITIES = [Facility("F1", "Bespin"), Facility("F2", "Tatooine"), Facility("F3", "Hoth")]


def test_bucket_by_day_uses_calendar_day_in_zone() -> None:
    records = [_row("F1", datetime(2017, 5, 2, 3, 0, tzinfo=timezone.utc))]

    assert bucket_by_day(records, UTC, 2017, 5) == [(date(2017, 5, 2), "F1")]
    assert bucket_by_day(records, ZoneInfo("America/New_York"), 2017, 5) == [(date(2017, 5, 1), "F1")]


def test_bucket_by_day_rejects_records_outside_month() -> None:
    with pytest.raises(SourceDataError):
        bucket_by_day([_row("F1", datetime(2017, 6, 1, 0, 0))], UTC, 2017, 5)


def test_distinct_visits_counts_retransmissions_once() -> None:
    records = [
        _row("F1", datetime(2017, 5, 1, 8, 0), visit_id="v1"),
        _row("F1", datetime(2017, 5, 1, 8, 0), visit_id="v1"),
        _row("F2", datetime(2017, 5, 1, 8, 0), visit_id="v1"),
        _row("F1", datetime(2017, 5, 1, 9, 0)),
    ]

    assert len(distinct_visits(records)) == 3


def test_pivot_counts_groups_by_facility_name_and_day() -> None:
    buckets = [(date(2017, 5, 1), "F1"), (date(2017, 5, 1), "F1"), (date(2017, 5, 2), "F2")]

    pivot = pivot_counts(buckets, {"F1": "Bespin", "F2": "Tatooine"})

    assert pivot == {date(2017, 5, 1): {"Bespin": 2}, date(2017, 5, 2): {"Tatooine": 1}}


@pytest.mark.asyncio
async def test_compute_counts_buckets_visit_and_arrival_days_separately() -> None:
    source = StubSource(
        visits=[_row("F1", datetime(2017, 5, 1, 23, 50), visit_id="v1")],
        arrivals=[_row("F1", datetime(2017, 5, 2, 0, 10), visit_id="v1")],
        facilities=FACILITIES,
    )

    matrix = await RecordCountPipeline(source).compute_counts(5, 2017)

    assert matrix.columns == ("date", "Bespin (A)", "Bespin (V)")
    assert matrix.cell(date(2017, 5, 1), "Bespin (V)") == 1
    assert matrix.cell(date(2017, 5, 1), "Bespin (A)") == 0
    assert matrix.cell(date(2017, 5, 2), "Bespin (V)") == 0
    assert matrix.cell(date(2017, 5, 2), "Bespin (A)") == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("year", "month", "expected_days"),
    [(2017, 2, 28), (2016, 2, 29), (2017, 4, 30), (2017, 5, 31)],
)
async def test_compute_counts_has_one_row_per_calendar_day(year: int, month: int, expected_days: int) -> None:
    source = StubSource(
        visits=[_row("F1", datetime(year, month, 15, 12, 0))],
        arrivals=[],
        facilities=FACILITIES,
    )

    matrix = await RecordCountPipeline(source).compute_counts(month, year)

    assert len(matrix.rows) == expected_days
    assert matrix.days[0] == date(year, month, 1)
    assert matrix.days[-1] == date(year, month, expected_days)


@pytest.mark.asyncio
async def test_compute_counts_zero_fills_every_cell() -> None:
    source = StubSource(
        visits=[_row("F1", datetime(2017, 5, 3, 8, 0)), _row("F1", datetime(2017, 5, 3, 9, 0))],
        arrivals=[_row("F2", datetime(2017, 5, 20, 8, 0))],
        facilities=FACILITIES,
    )

    matrix = await RecordCountPipeline(source).compute_counts(5, 2017)

    assert matrix.columns == ("date", "Bespin (A)", "Bespin (V)", "Tatooine (A)", "Tatooine (V)")
    for row in matrix.rows:
        assert all(isinstance(cell, int) and cell >= 0 for cell in row[1:])
    assert sum(matrix.column("Bespin (V)")) == 2
    assert sum(matrix.column("Tatooine (A)")) == 1
    assert sum(matrix.column("Tatooine (V)")) == 0


@pytest.mark.asyncio
async def test_compute_counts_omits_silent_facilities() -> None:
    source = StubSource(
        visits=[_row("F1", datetime(2017, 5, 3, 8, 0))],
        arrivals=[_row("F1", datetime(2017, 5, 3, 9, 0))],
        facilities=FACILITIES,
    )

    matrix = await RecordCountPipeline(source).compute_counts(5, 2017)

    assert matrix.facilities == ["Bespin"]
    assert not any(column.startswith("Tatooine") for column in matrix.columns)


@pytest.mark.asyncio
async def test_compute_counts_uses_raw_id_for_unknown_facility() -> None:
    source = StubSource(
        visits=[_row("F9", datetime(2017, 5, 3, 8, 0))],
        arrivals=[],
        facilities=FACILITIES,
    )

    matrix = await RecordCountPipeline(source).compute_counts(5, 2017)

    assert matrix.columns == ("date", "F9 (A)", "F9 (V)")


@pytest.mark.asyncio
async def test_compute_counts_result_does_not_depend_on_fetch_completion_order() -> None:
    visits = [_row("F1", datetime(2017, 5, 3, 8, 0)), _row("F2", datetime(2017, 5, 4, 8, 0))]
    arrivals = [_row("F1", datetime(2017, 5, 3, 9, 0))]

    fast = await RecordCountPipeline(StubSource(visits, arrivals, FACILITIES)).compute_counts(5, 2017)
    slow = await RecordCountPipeline(SlowVisitSource(visits, arrivals, FACILITIES)).compute_counts(5, 2017)

    assert fast == slow


@pytest.mark.asyncio
async def test_compute_counts_fails_whole_run_when_one_pass_fails() -> None:
    metrics = InMemoryQualityMetricsCollector()
    source = FailingArrivalSource([_row("F1", datetime(2017, 5, 3, 8, 0))], [], FACILITIES)

    with pytest.raises(SourceFetchError):
        await RecordCountPipeline(source, metrics=metrics).compute_counts(5, 2017)
    assert metrics.report_run_total[("counts", "failed")] == 1
    assert source.facility_calls == 0


@pytest.mark.asyncio
async def test_compute_counts_cancels_other_pass_when_one_fails() -> None:
    source = HangingVisitSource([], [], FACILITIES)

    with pytest.raises(SourceFetchError):
        await asyncio.wait_for(RecordCountPipeline(source).compute_counts(5, 2017), timeout=1.0)
    assert source.visit_pass_cancelled is True


@pytest.mark.asyncio
async def test_compute_counts_rejects_invalid_month() -> None:
    with pytest.raises(ValidationError):
        await RecordCountPipeline(StubSource([], [], FACILITIES)).compute_counts(13, 2017)


@pytest.mark.asyncio
async def test_compute_counts_with_no_records_has_only_date_column() -> None:
    matrix = await RecordCountPipeline(StubSource([], [], FACILITIES)).compute_counts(4, 2017)

    assert matrix.columns == ("date",)
    assert len(matrix.rows) == 30
