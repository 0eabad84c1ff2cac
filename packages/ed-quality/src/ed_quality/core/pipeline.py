from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Any, Awaitable, Callable, TypeVar

from ed_quality.core.exceptions import PipelineError
from ed_quality.core.metrics import InMemoryQualityMetricsCollector

R = TypeVar("R")
logger = logging.getLogger(__name__)


async def run_concurrently(*operations: Awaitable[Any]) -> list[Any]:
    """Await ``operations`` together; the first failure cancels the rest before it propagates."""
    tasks = [asyncio.ensure_future(operation) for operation in operations]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class StagedPipeline:
    """Shared run bookkeeping: per-stage timings, run status and duration metrics."""

    report_name = "unknown"

    def __init__(self, metrics: InMemoryQualityMetricsCollector | None = None) -> None:
        self._metrics = metrics

    async def _run(self, body: Callable[[], Awaitable[R]], **context: object) -> R:
        logger.info(f"{self.report_name}_run_started", extra={"component": "ed_quality", **context})
        started = perf_counter()
        try:
            result = await body()
        except PipelineError as exc:
            self._finish("failed", started)
            logger.error(
                f"{self.report_name}_run_failed",
                extra={"component": "ed_quality", "error": str(exc), **context},
            )
            raise
        self._finish("success", started)
        logger.info(f"{self.report_name}_run_completed", extra={"component": "ed_quality", **context})
        return result

    def _finish(self, status: str, started: float) -> None:
        if not self._metrics:
            return
        self._metrics.increment_run(self.report_name, status)
        self._metrics.observe_report_duration(self.report_name, perf_counter() - started)

    async def _time_async(self, stage: str, action: Callable[[], Awaitable[R]]) -> R:
        started = perf_counter()
        result = await action()
        self._observe(stage, (perf_counter() - started) * 1000.0)
        return result

    def _time_sync(self, stage: str, action: Callable[[], R]) -> R:
        started = perf_counter()
        result = action()
        self._observe(stage, (perf_counter() - started) * 1000.0)
        return result

    def _observe(self, stage: str, duration_ms: float) -> None:
        if self._metrics:
            self._metrics.observe_stage_duration(f"{self.report_name}.{stage}", duration_ms)

    def _count_fetched(self, record_pass: str, count: int) -> None:
        if self._metrics:
            self._metrics.add_fetched_records(self.report_name, record_pass, count)
