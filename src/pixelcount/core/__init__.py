"""
Core analytics module.

Contains beacon classification, the record writer, interval resolution,
time series materialization and the client for querying analytics data.
"""

from .client import AnalyticsEngineClient, AnalyticsQueryError
from .collect import MissingSiteIdError, classify
from .intervals import (
    DateTimeRange,
    Granularity,
    InvalidIntervalError,
    get_interval_type,
    interval_to_sql,
    resolve_interval,
)
from .models import (
    BeaconRequest,
    Bucket,
    BucketRow,
    ClassifiedEvent,
    CountsResult,
    EarliestEvents,
    SearchFilters,
    StoredRecord,
)
from .schema import COLUMN_MAPPINGS, UnknownColumnError
from .series import correct_bounces, materialize_buckets
from .writer import EventWriter

__all__ = [
    "BeaconRequest", "ClassifiedEvent", "StoredRecord",
    "Bucket", "BucketRow", "CountsResult", "EarliestEvents", "SearchFilters",
    "DateTimeRange", "Granularity",
    "classify", "MissingSiteIdError", "EventWriter",
    "resolve_interval", "interval_to_sql", "get_interval_type", "InvalidIntervalError",
    "materialize_buckets", "correct_bounces",
    "COLUMN_MAPPINGS", "UnknownColumnError",
    "AnalyticsEngineClient", "AnalyticsQueryError",
]
