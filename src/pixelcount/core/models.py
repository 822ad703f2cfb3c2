"""
Pydantic models for beacon requests, stored records and query results.
"""
from collections.abc import Mapping
from datetime import datetime
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from ..user_agent import UserAgentInfo
from ..utm import utm_from_beacon
from .intervals import format_date_string

# =============================================================================
# Collection
# =============================================================================

class BeaconRequest(BaseModel):
    """Incoming pageview beacon (GET /collect query parameters).

    Field aliases are the short wire names the tracker sends.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    site_id: str = Field("", alias="sid")
    host: str = Field("", alias="h")
    path: str = Field("", alias="p")
    referrer: str = Field("", alias="r")

    # Explicit hit type, kept raw: malformed values degrade, never reject
    visit: str | None = Field(None, alias="v")
    bounce: str | None = Field(None, alias="b")

    # UTM
    utm_source: str | None = Field(None, alias="us")
    utm_medium: str | None = Field(None, alias="um")
    utm_campaign: str | None = Field(None, alias="uc")
    utm_term: str | None = Field(None, alias="ut")
    utm_content: str | None = Field(None, alias="uco")

    # Supplied by the request headers / edge network, not by the tracker
    user_agent: str = ""
    country: str = ""

    @classmethod
    def from_query(
        cls,
        params: Mapping[str, str],
        user_agent: str | None = None,
        country: str | None = None,
    ) -> "BeaconRequest":
        """Build from raw query parameters, cleaning UTM values."""
        utm = utm_from_beacon(params)
        return cls(
            site_id=params.get("sid") or "",
            host=params.get("h") or "",
            path=params.get("p") or "",
            referrer=params.get("r") or "",
            visit=params.get("v"),
            bounce=params.get("b"),
            utm_source=utm.source,
            utm_medium=utm.medium,
            utm_campaign=utm.campaign,
            utm_term=utm.term,
            utm_content=utm.content,
            user_agent=user_agent or "",
            country=country or "",
        )

    @property
    def has_hit_type(self) -> bool:
        """True when the tracker sent both explicit hit-type fields."""
        return self.visit is not None and self.bounce is not None


class ClassifiedEvent(BaseModel):
    """Visit/visitor/bounce signals derived from one beacon."""
    model_config = ConfigDict(frozen=True)

    request: BeaconRequest
    user_agent: UserAgentInfo
    new_visitor: int  # 0 or 1
    new_session: int = 0  # dead column, kept for layout compatibility
    bounce: int  # -1, 0 or 1


class StoredRecord(BaseModel):
    """An Analytics Engine data point: one index, positional blobs and doubles."""
    indexes: list[str]
    blobs: list[str]
    doubles: list[float]


# =============================================================================
# Querying
# =============================================================================

class SearchFilters(BaseModel):
    """Equality filters applied to dashboard queries.

    Multiple filters are AND'd together.
    """
    path: str | None = None
    referrer: str | None = None
    device_model: str | None = None
    device_type: str | None = None
    country: str | None = None
    browser_name: str | None = None
    browser_version: str | None = None
    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None
    utm_term: str | None = None
    utm_content: str | None = None

    def is_empty(self) -> bool:
        """Check if all filters are None."""
        return all(
            getattr(self, field) is None
            for field in self.__class__.model_fields.keys()
        )

    def active_filters(self) -> dict[str, str]:
        """Return dict of active (non-None) filters."""
        return {
            k: v for k, v in self.model_dump().items()
            if v is not None
        }


class CountsResult(BaseModel):
    """Aggregate counts for a site over an interval."""
    views: int = 0
    visitors: int = 0
    bounces: int = 0


class BucketRow(NamedTuple):
    """One sparse (bucket, isVisitor, isBounce, count) row from the store."""
    bucket: datetime
    is_visitor: int
    is_bounce: int
    count: int


class Bucket(BaseModel):
    """A single point in a materialized time series."""
    timestamp: datetime
    views: int = 0
    visitors: int = 0
    bounces: int = 0

    @property
    def label(self) -> str:
        """UTC 'YYYY-MM-DD HH:MM:SS' key for this bucket."""
        return format_date_string(self.timestamp)


class EarliestEvents(BaseModel):
    """Earliest recorded event and earliest recorded bounce for a site."""
    earliest_event: datetime | None = None
    earliest_bounce: datetime | None = None

    def has_sufficient_bounce_data(self, start: datetime) -> bool:
        """Whether bounce data covers a query period starting at `start`.

        Bounce tracking was introduced after launch, so older datasets have
        events with no bounce values. The bounce rate is only meaningful if
        the first event already recorded bounces, or bounce recording began
        before the queried period.
        """
        if self.earliest_event is None or self.earliest_bounce is None:
            return False
        return (
            self.earliest_event == self.earliest_bounce
            or self.earliest_bounce < start
        )
