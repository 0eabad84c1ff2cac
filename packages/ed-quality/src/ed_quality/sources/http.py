from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
import logging
from typing import Any

import httpx

from ed_quality.core.exceptions import SourceDataError, SourceFetchError, SourceTemporaryError
from ed_quality.core.metrics import InMemoryQualityMetricsCollector
from ed_quality.core.models import Facility, TimestampField, TimestampRecord, VisitRecord
from ed_quality.core.retry import with_exponential_backoff
from ed_quality.sources.base import RecordSource
from ed_quality.sources.normalize import facility_from_row, timestamp_record_from_row, visit_from_row

logger = logging.getLogger(__name__)


class HttpRecordSource(RecordSource):
    """Record source backed by a JSON API answering ``{"data": [...]}``."""

    source_name = "http"

    def __init__(
        self,
        base_url: str,
        visits_path: str = "/visits",
        records_path: str = "/records",
        facilities_path: str = "/facilities",
        table: str | None = None,
        connect_timeout_seconds: float = 2.0,
        read_timeout_seconds: float = 30.0,
        max_retries: int = 3,
        retry_base_delay_seconds: float = 0.5,
        metrics: InMemoryQualityMetricsCollector | None = None,
        client_factory: Callable[[], httpx.AsyncClient] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._visits_path = visits_path
        self._records_path = records_path
        self._facilities_path = facilities_path
        self._table = table
        self._timeout = httpx.Timeout(
            connect=connect_timeout_seconds,
            read=read_timeout_seconds,
            write=read_timeout_seconds,
            pool=connect_timeout_seconds,
        )
        self._max_retries = max_retries
        self._retry_base_delay_seconds = retry_base_delay_seconds
        self._metrics = metrics
        self._client_factory = client_factory

    async def fetch_visits(self, start: datetime, end: datetime) -> list[VisitRecord]:
        items = await self._get(self._visits_path, {"start": start.isoformat(), "end": end.isoformat()})
        return [visit_from_row(item) for item in items]

    async def fetch_by_month(self, field: TimestampField, month: int, year: int) -> list[TimestampRecord]:
        items = await self._get(self._records_path, {"field": field.value, "month": month, "year": year})
        return [timestamp_record_from_row(item, field) for item in items]

    async def fetch_facilities(self) -> list[Facility]:
        items = await self._get(self._facilities_path, {})
        return [facility_from_row(item) for item in items]

    async def _get(self, path: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        if self._table:
            params = {**params, "table": self._table}
        factory = self._client_factory or (lambda: httpx.AsyncClient(timeout=self._timeout))
        async with factory() as client:
            items = await with_exponential_backoff(
                lambda: self._request_once(client, path, params),
                retries=self._max_retries,
                base_delay_seconds=self._retry_base_delay_seconds,
                should_retry=lambda exc: isinstance(exc, SourceTemporaryError),
                on_retry=self._on_retry,
            )
        logger.info("source_fetch_completed", extra={"source": self.source_name, "query": path, "row_count": len(items)})
        return items

    async def _request_once(self, client: httpx.AsyncClient, path: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        try:
            response = await client.get(f"{self._base_url}{path}", params=params)
        except httpx.TimeoutException as exc:
            raise SourceTemporaryError(f"source timeout: path={path}") from exc
        except httpx.HTTPError as exc:
            raise SourceFetchError(f"source request error: path={path}") from exc

        if response.status_code == 429 or response.status_code >= 500:
            self._record_http_error(response.status_code)
            raise SourceTemporaryError(f"source temporary error: status={response.status_code}, path={path}")
        if response.status_code >= 400:
            self._record_http_error(response.status_code)
            raise SourceFetchError(f"source request rejected: status={response.status_code}, path={path}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise SourceDataError(f"source payload is not json: path={path}") from exc
        if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
            raise SourceDataError(f"source payload missing list field 'data': path={path}")
        items = payload["data"]
        if not all(isinstance(item, dict) for item in items):
            raise SourceDataError(f"source payload data item is not an object: path={path}")
        return items

    def _record_http_error(self, code: int | str) -> None:
        if self._metrics:
            self._metrics.increment_source_http_error(code=code, source=self.source_name)

    def _on_retry(self, _: int, __: float) -> None:
        if not self._metrics:
            return
        self._metrics.increment_source_error()
        self._metrics.increment_source_http_error(code="retry", source=self.source_name)
