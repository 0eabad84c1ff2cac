from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from ed_quality.core.exceptions import SourceDataError
from ed_quality.core.models import Facility, TimestampField, TimestampRecord, VisitRecord

FACILITY_ID_KEYS = ("facility_id", "C_Biosense_Facility_ID", "facility")
FACILITY_NAME_KEYS = ("facility_name", "Facility_Name", "name")
VISIT_ID_KEYS = ("visit_id", "C_BioSense_ID", "visit")
VISIT_TIME_KEYS = ("visit_time", "C_Visit_Date_Time", "visit_date_time")
ARRIVAL_TIME_KEYS = ("arrival_time", "Arrived_Date_Time", "arrived_date_time")
TIMESTAMP_KEYS = ("timestamp", "event_time")

_FIELD_KEYS = {
    TimestampField.VISIT_TIME: VISIT_TIME_KEYS,
    TimestampField.ARRIVAL_TIME: ARRIVAL_TIME_KEYS,
}


def _pick(item: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in item and item[key] is not None:
            return item[key]
    return None


def _required_token(item: Mapping[str, Any], keys: tuple[str, ...], label: str) -> str:
    value = _pick(item, *keys)
    token = "" if value is None else str(value).strip()
    if not token:
        raise SourceDataError(f"source row missing {label}: {dict(item)!r}")
    return token


def parse_timestamp(value: Any, label: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise SourceDataError(f"unparseable {label}: {value!r}") from exc
    raise SourceDataError(f"missing or invalid {label}: {value!r}")


def visit_from_row(row: Mapping[str, Any]) -> VisitRecord:
    arrival = _pick(row, *ARRIVAL_TIME_KEYS)
    return VisitRecord(
        facility_id=_required_token(row, FACILITY_ID_KEYS, "facility_id"),
        visit_id=_required_token(row, VISIT_ID_KEYS, "visit_id"),
        visit_time=parse_timestamp(_pick(row, *VISIT_TIME_KEYS), "visit_time"),
        arrival_time=parse_timestamp(arrival, "arrival_time") if arrival is not None else None,
    )


def timestamp_record_from_row(row: Mapping[str, Any], field: TimestampField) -> TimestampRecord:
    visit_id = _pick(row, *VISIT_ID_KEYS)
    return TimestampRecord(
        facility_id=_required_token(row, FACILITY_ID_KEYS, "facility_id"),
        timestamp=parse_timestamp(_pick(row, *TIMESTAMP_KEYS, *_FIELD_KEYS[field]), field.value),
        visit_id=str(visit_id).strip() if visit_id is not None else None,
    )


def facility_from_row(row: Mapping[str, Any]) -> Facility:
    facility_id = _required_token(row, FACILITY_ID_KEYS, "facility_id")
    name = _pick(row, *FACILITY_NAME_KEYS)
    return Facility(
        facility_id=facility_id,
        # Blank registry names keep the row visible under its id.
        facility_name=str(name).strip() if name is not None and str(name).strip() else facility_id,
    )
