from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

DATE_COLUMN = "date"
VISIT_SUFFIX = "(V)"
ARRIVAL_SUFFIX = "(A)"


class TimestampField(str, Enum):
    VISIT_TIME = "visit_time"
    ARRIVAL_TIME = "arrival_time"


@dataclass(frozen=True)
class Facility:
    facility_id: str
    facility_name: str


@dataclass(frozen=True)
class VisitRecord:
    facility_id: str
    visit_id: str
    visit_time: datetime
    arrival_time: datetime | None = None


@dataclass(frozen=True)
class TimestampRecord:
    facility_id: str
    timestamp: datetime
    visit_id: str | None = None


@dataclass(frozen=True)
class LagSummary:
    facility_id: str
    facility_name: str
    mean_lag_hours: float | None

    def as_row(self) -> dict[str, Any]:
        return {
            "facility_id": self.facility_id,
            "facility_name": self.facility_name,
            "mean_lag_hours": self.mean_lag_hours,
        }


def visit_column(facility_name: str) -> str:
    return f"{facility_name} {VISIT_SUFFIX}"


def arrival_column(facility_name: str) -> str:
    return f"{facility_name} {ARRIVAL_SUFFIX}"


@dataclass(frozen=True)
class CountMatrix:
    """Dense day-by-facility table; ``rows[i][0]`` is the day, the rest follow ``columns[1:]``."""

    year: int
    month: int
    columns: tuple[str, ...]
    rows: tuple[tuple[Any, ...], ...] = field(default_factory=tuple)

    @property
    def days(self) -> list[date]:
        return [row[0] for row in self.rows]

    @property
    def facilities(self) -> list[str]:
        names = set()
        for column in self.columns[1:]:
            names.add(column.rsplit(" ", 1)[0])
        return sorted(names)

    def _index(self, name: str) -> int:
        try:
            return self.columns.index(name)
        except ValueError as exc:
            raise KeyError(name) from exc

    def column(self, name: str) -> list[Any]:
        index = self._index(name)
        return [row[index] for row in self.rows]

    def cell(self, day: date, column: str) -> int:
        index = self._index(column)
        for row in self.rows:
            if row[0] == day:
                return row[index]
        raise KeyError(day)

    def as_records(self) -> list[dict[str, Any]]:
        records = []
        for row in self.rows:
            record = dict(zip(self.columns, row))
            record[DATE_COLUMN] = row[0].isoformat()
            records.append(record)
        return records
