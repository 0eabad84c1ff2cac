import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from ed_quality.core.exceptions import SourceFetchError

T = TypeVar("T")
logger = logging.getLogger(__name__)


async def with_exponential_backoff(
    operation: Callable[[], Awaitable[T]],
    retries: int = 3,
    base_delay_seconds: float = 0.1,
    on_retry: Callable[[int, float], None] | None = None,
    should_retry: Callable[[Exception], bool] | None = None,
) -> T:
    """Run ``operation`` until it succeeds; every final failure surfaces as ``SourceFetchError``."""
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as exc:
            failure = exc
        attempt += 1
        if (should_retry and not should_retry(failure)) or attempt >= retries:
            if isinstance(failure, SourceFetchError):
                raise failure
            raise SourceFetchError(str(failure)) from failure
        delay = base_delay_seconds * (2 ** (attempt - 1))
        logger.warning(
            "source_fetch_retry",
            extra={"component": "record_source", "attempt": attempt, "delay_seconds": delay},
        )
        if on_retry:
            on_retry(attempt, delay)
        await asyncio.sleep(delay)
