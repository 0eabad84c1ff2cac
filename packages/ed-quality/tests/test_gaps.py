from __future__ import annotations

from datetime import date

import pytest

from ed_quality.core.gaps import (
    ARRIVAL_DROP,
    CATCH_UP,
    CLOCK_SKEW,
    EXCESSIVE_LAG,
    REPORTING_GAP,
    SILENT_FACILITY,
    ReportingGapDetector,
)
from ed_quality.core.models import LagSummary
from ed_quality.core.report import ReportAssembler


def _matrix(visits: dict, arrivals: dict):
    return ReportAssembler().assemble_count_matrix(2017, 2, visits, arrivals)


def _steady(name: str, per_day: int = 5) -> dict:
    return {date(2017, 2, day): {name: per_day} for day in range(1, 29)}


def test_detector_flags_silent_directory_facility() -> None:
    lag_report = [LagSummary("F1", "Bespin", 1.0), LagSummary("F2", "Tatooine", None)]
    matrix = _matrix(_steady("Bespin"), _steady("Bespin"))

    findings = ReportingGapDetector().detect(lag_report, matrix)

    assert [(item.kind, item.facility_name) for item in findings] == [(SILENT_FACILITY, "Tatooine")]


def test_detector_flags_arrival_drop_and_catch_up() -> None:
    visits = _steady("Bespin")
    arrivals = _steady("Bespin")
    arrivals[date(2017, 2, 10)] = {}
    arrivals[date(2017, 2, 11)] = {"Bespin": 11}

    findings = ReportingGapDetector(catch_up_ratio=2.0).detect([LagSummary("F1", "Bespin", 1.0)], _matrix(visits, arrivals))

    assert [(item.kind, item.day) for item in findings] == [
        (ARRIVAL_DROP, date(2017, 2, 10)),
        (CATCH_UP, date(2017, 2, 11)),
    ]


def test_detector_flags_days_without_any_records() -> None:
    visits = _steady("Bespin")
    arrivals = _steady("Bespin")
    del visits[date(2017, 2, 5)]
    del arrivals[date(2017, 2, 5)]

    findings = ReportingGapDetector().detect([LagSummary("F1", "Bespin", 1.0)], _matrix(visits, arrivals))

    assert [(item.kind, item.day) for item in findings] == [(REPORTING_GAP, date(2017, 2, 5))]
    assert findings[0].as_row()["day"] == "2017-02-05"


def test_detector_ignores_days_after_as_of() -> None:
    reported = {date(2026, 10, day): {"Bespin": 5} for day in range(1, 11)}
    matrix = ReportAssembler().assemble_count_matrix(2026, 10, reported, reported)
    lag_report = [LagSummary("F1", "Bespin", 1.0)]

    unbounded = ReportingGapDetector().detect(lag_report, matrix)
    bounded = ReportingGapDetector().detect(lag_report, matrix, as_of=date(2026, 10, 10))

    assert [item.day.day for item in unbounded if item.kind == REPORTING_GAP] == list(range(11, 32))
    assert bounded == []


def test_detector_flags_lag_outliers() -> None:
    lag_report = [LagSummary("F1", "Bespin", 30.5), LagSummary("F2", "Tatooine", -0.25)]
    both = {day: {"Bespin": 5, "Tatooine": 5} for day in _steady("Bespin")}
    full = _matrix(both, both)

    findings = ReportingGapDetector(max_mean_lag_hours=24.0).detect(lag_report, full)

    assert [(item.kind, item.facility_name) for item in findings] == [
        (EXCESSIVE_LAG, "Bespin"),
        (CLOCK_SKEW, "Tatooine"),
    ]


def test_detector_validates_thresholds() -> None:
    with pytest.raises(ValueError):
        ReportingGapDetector(max_mean_lag_hours=-1)
    with pytest.raises(ValueError):
        ReportingGapDetector(catch_up_ratio=1.0)
