"""Common runtime devkit for report infrastructure concerns."""

from devkit.config import ServiceSettings, load_settings
from devkit.db import (
    AsyncDatabaseManager,
    create_async_engine,
    create_session_factory,
    is_transient_db_error,
    normalize_postgres_dsn,
)
from devkit.observability import configure_logging, configure_otel, configure_probe_access_log_filter
from devkit.timezone import (
    DEFAULT_REPORTING_TIMEZONE,
    days_in_month,
    floor_to_day,
    month_bounds,
    now_in_zone,
    previous_month,
    reporting_zone,
    to_zone,
)

__all__ = [
    "AsyncDatabaseManager",
    "DEFAULT_REPORTING_TIMEZONE",
    "ServiceSettings",
    "configure_logging",
    "configure_otel",
    "configure_probe_access_log_filter",
    "create_async_engine",
    "create_session_factory",
    "days_in_month",
    "floor_to_day",
    "is_transient_db_error",
    "load_settings",
    "month_bounds",
    "normalize_postgres_dsn",
    "now_in_zone",
    "previous_month",
    "reporting_zone",
    "to_zone",
]
