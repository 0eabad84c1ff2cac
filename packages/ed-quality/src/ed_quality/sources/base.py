from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from ed_quality.core.models import Facility, TimestampField, TimestampRecord, VisitRecord


class RecordSource(ABC):
    """Queryable store of visit/arrival records and the facility registry.

    Every fetch is a single call returning a complete, finite result set or
    raising :class:`~ed_quality.core.exceptions.SourceFetchError`.
    """

    source_name: str = "unknown"

    @abstractmethod
    async def fetch_visits(self, start: datetime, end: datetime) -> list[VisitRecord]:
        raise NotImplementedError

    @abstractmethod
    async def fetch_by_month(self, field: TimestampField, month: int, year: int) -> list[TimestampRecord]:
        raise NotImplementedError

    @abstractmethod
    async def fetch_facilities(self) -> list[Facility]:
        raise NotImplementedError
