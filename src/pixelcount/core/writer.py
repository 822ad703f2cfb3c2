"""
Event writer.

Maps a classified event onto the fixed Analytics Engine record layout
(see `schema.BLOB_FIELDS` / `schema.DOUBLE_FIELDS`) and appends it to the
dataset. Writing is fire-and-forget: no retries, no queueing.
"""
import logging
from collections.abc import Mapping
from typing import Any, Protocol

from .models import ClassifiedEvent, StoredRecord
from .schema import BLOB_FIELDS, DOUBLE_FIELDS, MAX_INDEX_BYTES

logger = logging.getLogger(__name__)


class DataPointSink(Protocol):
    """Anything exposing the Analytics Engine append primitive."""

    def write_data_point(self, data_point: dict[str, Any]) -> None: ...


def _truncate_bytes(value: str, limit: int) -> str:
    encoded = value.encode("utf-8")
    if len(encoded) <= limit:
        return value
    return encoded[:limit].decode("utf-8", errors="ignore")


def to_stored_record(
    event: ClassifiedEvent,
    extra: Mapping[str, str] | None = None,
) -> StoredRecord:
    """Lay out an event as index + positional blobs + positional doubles.

    `extra` carries edge-network fields (e.g. country) and overrides the
    values taken from the beacon.
    """
    request = event.request
    values = {
        "host": request.host,
        "user_agent": request.user_agent,
        "path": request.path,
        "country": request.country,
        "referrer": request.referrer,
        "browser_name": event.user_agent.browser,
        "device_model": event.user_agent.device_model,
        "site_id": request.site_id,
        "browser_version": event.user_agent.browser_version,
        "device_type": event.user_agent.device_type,
        "utm_source": request.utm_source,
        "utm_medium": request.utm_medium,
        "utm_campaign": request.utm_campaign,
        "utm_term": request.utm_term,
        "utm_content": request.utm_content,
        "new_visitor": event.new_visitor,
        "new_session": event.new_session,
        "bounce": event.bounce,
    }
    for key, value in (extra or {}).items():
        if key in values and isinstance(value, str):
            values[key] = value

    return StoredRecord(
        indexes=[_truncate_bytes(request.site_id, MAX_INDEX_BYTES)],
        blobs=[values[name] or "" for name in BLOB_FIELDS],
        doubles=[values[name] or 0 for name in DOUBLE_FIELDS],
    )


class EventWriter:
    """Writes classified events to an Analytics Engine dataset."""

    def __init__(self, dataset: DataPointSink | None = None):
        self.dataset = dataset

    def write(
        self,
        event: ClassifiedEvent,
        extra: Mapping[str, str] | None = None,
    ) -> StoredRecord:
        """Append one event. Without a dataset this logs and returns."""
        record = to_stored_record(event, extra)
        data_point = record.model_dump()

        if self.dataset is None:
            logger.warning("Can't save datapoint: Analytics unavailable")
            logger.debug(f"Dropped datapoint: {data_point}")
            return record

        self.dataset.write_data_point(data_point)
        return record
