"""Record source adapters."""

from ed_quality.sources.base import RecordSource
from ed_quality.sources.http import HttpRecordSource
from ed_quality.sources.postgres import PostgresRecordSource

__all__ = [
    "HttpRecordSource",
    "PostgresRecordSource",
    "RecordSource",
]
