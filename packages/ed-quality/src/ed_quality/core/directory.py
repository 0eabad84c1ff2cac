from __future__ import annotations

from collections.abc import Iterable
import logging

from ed_quality.core.exceptions import SourceDataError
from ed_quality.core.models import Facility
from ed_quality.sources.base import RecordSource

logger = logging.getLogger(__name__)


def build_name_index(facilities: Iterable[Facility]) -> dict[str, str]:
    names: dict[str, str] = {}
    for facility in facilities:
        existing = names.get(facility.facility_id)
        if existing is not None and existing != facility.facility_name:
            raise SourceDataError(
                f"conflicting directory entries for facility {facility.facility_id!r}: "
                f"{existing!r} vs {facility.facility_name!r}"
            )
        names[facility.facility_id] = facility.facility_name
    return {facility_id: names[facility_id] for facility_id in sorted(names)}


def resolve_names(known: dict[str, str], facility_ids: Iterable[str]) -> dict[str, str]:
    """Map every id to its display name; unknown ids fall back to the raw id."""
    resolved: dict[str, str] = {}
    gaps: list[str] = []
    for facility_id in sorted(set(facility_ids)):
        name = known.get(facility_id)
        if name is None:
            gaps.append(facility_id)
            name = facility_id
        resolved[facility_id] = name
    if gaps:
        logger.warning(
            "facility_lookup_gap",
            extra={"component": "facility_directory", "unresolved_ids": ",".join(gaps)},
        )
    return resolved


class FacilityDirectory:
    def __init__(self, source: RecordSource) -> None:
        self._source = source

    async def load(self) -> dict[str, str]:
        facilities = await self._source.fetch_facilities()
        return build_name_index(facilities)

    async def resolve(self, facility_ids: Iterable[str] | None = None) -> dict[str, str]:
        known = await self.load()
        if facility_ids is None:
            return known
        return resolve_names(known, facility_ids)
