from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

from devkit.timezone import DEFAULT_REPORTING_TIMEZONE, reporting_zone


class ServiceSettings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore")

    SERVICE_NAME: str = "service"
    DATABASE_URL: str | None = None
    REPORT_TIMEZONE: str = DEFAULT_REPORTING_TIMEZONE


def load_settings(service_name: str) -> ServiceSettings:
    settings = ServiceSettings(SERVICE_NAME=service_name)
    # Fail at startup rather than at the first day-flooring call.
    reporting_zone(settings.REPORT_TIMEZONE)
    return settings
