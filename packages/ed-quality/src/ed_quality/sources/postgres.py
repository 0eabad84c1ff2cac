from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from devkit.db import AsyncDatabaseManager
from devkit.timezone import month_bounds, reporting_zone
from sqlalchemy import column, select, table
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from ed_quality.core.exceptions import SourceFetchError
from ed_quality.core.models import Facility, TimestampField, TimestampRecord, VisitRecord
from ed_quality.sources.base import RecordSource
from ed_quality.sources.normalize import facility_from_row, timestamp_record_from_row, visit_from_row

logger = logging.getLogger(__name__)


class PostgresRecordSource(RecordSource):
    """Read visit messages and the facility registry from two tables.

    The visits table holds one row per arrival message
    (``facility_id, visit_id, visit_time, arrival_time``); the facilities
    table holds ``facility_id, facility_name``.
    """

    source_name = "postgres"

    def __init__(
        self,
        database: AsyncDatabaseManager,
        visits_table: str = "ed_visits",
        facilities_table: str = "facilities",
        schema: str | None = None,
        zone: ZoneInfo | None = None,
    ) -> None:
        self._database = database
        self._visits = table(
            visits_table,
            column("facility_id"),
            column("visit_id"),
            column("visit_time"),
            column("arrival_time"),
            schema=schema,
        )
        self._facilities = table(
            facilities_table,
            column("facility_id"),
            column("facility_name"),
            schema=schema,
        )
        self._zone = zone or reporting_zone()

    def visits_query(self, start: datetime, end: datetime) -> Select:
        c = self._visits.c
        return (
            select(c.facility_id, c.visit_id, c.visit_time, c.arrival_time)
            .where(c.visit_time >= start, c.visit_time <= end)
            .order_by(c.facility_id, c.visit_id, c.arrival_time)
        )

    def month_query(self, field: TimestampField, month: int, year: int) -> Select:
        c = self._visits.c
        start, end = month_bounds(year, month, self._zone)
        if field is TimestampField.VISIT_TIME:
            # One row per visit; retransmissions share the visit columns.
            return (
                select(c.facility_id, c.visit_id, c.visit_time.label("event_time"))
                .distinct()
                .where(c.visit_time >= start, c.visit_time < end)
                .order_by(c.facility_id, c.visit_id, c.visit_time)
            )
        return (
            select(c.facility_id, c.visit_id, c.arrival_time.label("event_time"))
            .where(c.arrival_time >= start, c.arrival_time < end)
            .order_by(c.facility_id, c.arrival_time, c.visit_id)
        )

    def facilities_query(self) -> Select:
        c = self._facilities.c
        return select(c.facility_id, c.facility_name).order_by(c.facility_id)

    async def fetch_visits(self, start: datetime, end: datetime) -> list[VisitRecord]:
        rows = await self._fetch_rows(self.visits_query(start, end), label="visits")
        return [visit_from_row(row) for row in rows]

    async def fetch_by_month(self, field: TimestampField, month: int, year: int) -> list[TimestampRecord]:
        rows = await self._fetch_rows(self.month_query(field, month, year), label=field.value)
        return [timestamp_record_from_row(row, field) for row in rows]

    async def fetch_facilities(self) -> list[Facility]:
        rows = await self._fetch_rows(self.facilities_query(), label="facilities")
        return [facility_from_row(row) for row in rows]

    async def _fetch_rows(self, statement: Select, label: str) -> list[dict[str, Any]]:
        async def _query(session: AsyncSession) -> list[dict[str, Any]]:
            result = await session.execute(statement)
            return [dict(row) for row in result.mappings().all()]

        try:
            rows = await self._database.run_with_session(_query)
        except SQLAlchemyError as exc:
            raise SourceFetchError(f"postgres fetch failed: {label}") from exc
        logger.info("source_fetch_completed", extra={"source": self.source_name, "query": label, "row_count": len(rows)})
        return rows
