"""
HTTP client for querying the Cloudflare Analytics Engine SQL API.

NOTE: The queries below are unparameterized SQL strings sent over HTTP.
Analytics Engine has no bind-parameter support, and its SQL API only
accepts SELECT statements, so values are interpolated directly. All of
that interpolation lives in this module.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from ..config import API_URL_TEMPLATE, AnalyticsConfig, resolve_timezone, timezone_name
from .intervals import (
    Granularity,
    align_to_granularity,
    format_date_string,
    interval_to_sql,
)
from .models import Bucket, BucketRow, CountsResult, EarliestEvents, SearchFilters
from .schema import column
from .series import correct_bounces, materialize_buckets

logger = logging.getLogger(__name__)

NONE_LABEL = "(none)"


class AnalyticsQueryError(Exception):
    """Raised when the analytics store rejects or fails a query."""
    pass


def _int(value: Any) -> int:
    """Counts come back as numbers or numeric strings (UInt64 is quoted)."""
    if value is None or value == "":
        return 0
    return int(float(value))


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _label(value: Any) -> str:
    return NONE_LABEL if value in (None, "") else str(value)


class AnalyticsEngineClient:
    """Client for querying analytics data from Analytics Engine."""

    def __init__(
        self,
        cf_account_id: str,
        cf_api_token: str,
        dataset: str = "metricsDataset",
        source: str = "Cloudflare-Workers",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.account_id = cf_account_id
        self.api_token = cf_api_token
        self.dataset = dataset
        self.timeout = timeout
        self.transport = transport
        self.base_url = API_URL_TEMPLATE.format(account_id=cf_account_id)
        self.default_headers = {
            "Content-Type": "application/json;charset=UTF-8",
            "X-Source": source,
            "Authorization": f"Bearer {cf_api_token}",
        }

    @classmethod
    def from_config(cls, config: AnalyticsConfig, **kwargs) -> "AnalyticsEngineClient":
        return cls(
            cf_account_id=config.cf_account_id,
            cf_api_token=config.cf_api_token,
            dataset=config.dataset,
            source=config.source_header_value,
            timeout=config.query_timeout_seconds,
            **kwargs,
        )

    async def query(self, sql: str) -> httpx.Response:
        """POST raw query text to the SQL endpoint."""
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            return await client.post(
                self.base_url,
                content=sql,
                headers=self.default_headers,
            )

    async def _query(self, sql: str) -> list[dict]:
        """Execute a query and return the `data` rows of the response envelope."""
        try:
            response = await self.query(sql)
        except httpx.HTTPError as exc:
            raise AnalyticsQueryError(f"Analytics Engine request failed: {exc}") from exc

        if response.is_error:
            logger.error(
                f"Analytics Engine query failed ({response.status_code}): {response.text[:200]}"
            )
            raise AnalyticsQueryError(
                f"Analytics Engine query failed: {response.status_code} {response.reason_phrase}"
            )

        try:
            rows = response.json().get("data")
        except ValueError as exc:
            raise AnalyticsQueryError("Analytics Engine returned invalid JSON") from exc

        if not isinstance(rows, list):
            raise AnalyticsQueryError("Analytics Engine response has no data list")
        return rows

    # =========================================================================
    # QUERY FRAGMENTS
    # =========================================================================

    def _build_filter_sql(self, filters: Optional[SearchFilters]) -> str:
        """Build `AND column = 'value'` clauses from filters."""
        if filters is None or filters.is_empty():
            return ""

        return "".join(
            f" AND {column(name)} = '{value}'"
            for name, value in filters.active_filters().items()
        )

    def _build_where_sql(
        self,
        site_id: str,
        interval: str,
        tz: Optional[str] = None,
        filters: Optional[SearchFilters] = None,
    ) -> str:
        start_sql, end_sql = interval_to_sql(interval, timezone_name(tz))
        return (
            f"timestamp >= {start_sql} AND timestamp < {end_sql}"
            f" AND {column('site_id')} = '{site_id}'"
            f"{self._build_filter_sql(filters)}"
        )

    # =========================================================================
    # COUNTS
    # =========================================================================

    async def get_counts(
        self,
        site_id: str,
        interval: str,
        tz: Optional[str] = None,
        filters: Optional[SearchFilters] = None,
    ) -> CountsResult:
        """Get views, visitors and (net) bounces for a site."""
        where = self._build_where_sql(site_id, interval, tz, filters)
        rows = await self._query(
            f"""
            SELECT SUM(_sample_interval) as count,
                {column('new_visitor')} as isVisitor,
                {column('bounce')} as isBounce
            FROM {self.dataset}
            WHERE {where}
            GROUP BY isVisitor, isBounce
            ORDER BY isVisitor, isBounce ASC
            """
        )

        # Any (isVisitor, isBounce) group may be missing, so make no
        # assumption about how many rows come back.
        counts = CountsResult()
        for row in rows:
            count = _int(row.get("count"))
            counts.views += count
            if _int(row.get("isVisitor")) == 1:
                counts.visitors += count
            counts.bounces += count * _int(row.get("isBounce"))
        return counts

    async def get_visitor_count_by_column(
        self,
        site_id: str,
        column_name: str,
        interval: str,
        tz: Optional[str] = None,
        filters: Optional[SearchFilters] = None,
        page: int = 1,
        limit: int = 10,
    ) -> list[tuple[str, int]]:
        """Get (label, visitors) pairs for a column, most visitors first."""
        _column = column(column_name)
        where = self._build_where_sql(site_id, interval, tz, filters)
        rows = await self._query(
            f"""
            SELECT {_column}, SUM(_sample_interval) as count
            FROM {self.dataset}
            WHERE {where} AND {column('new_visitor')} = 1
            GROUP BY {_column}
            ORDER BY count DESC
            LIMIT {limit * page}
            """
        )
        return [
            (_label(row.get(_column)), _int(row.get("count")))
            for row in rows[(page - 1) * limit:]
        ]

    async def get_all_counts_by_column(
        self,
        site_id: str,
        column_name: str,
        interval: str,
        tz: Optional[str] = None,
        filters: Optional[SearchFilters] = None,
        page: int = 1,
        limit: int = 10,
    ) -> list[tuple[str, int, int]]:
        """Get (label, visitors, views) triples for a column, most views first.

        The top labels are selected by views first, then visitor and view
        counts are fetched for just those labels.
        """
        _column = column(column_name)
        where = self._build_where_sql(site_id, interval, tz, filters)
        top = await self._query(
            f"""
            SELECT {_column}, SUM(_sample_interval) as count
            FROM {self.dataset}
            WHERE {where}
            GROUP BY {_column}
            ORDER BY count DESC
            LIMIT {limit * page}
            """
        )
        labels = [row.get(_column) or "" for row in top[(page - 1) * limit:]]
        if not labels:
            return []

        in_list = ", ".join(f"'{label}'" for label in labels)
        rows = await self._query(
            f"""
            SELECT {_column},
                {column('new_visitor')} as isVisitor,
                SUM(_sample_interval) as count
            FROM {self.dataset}
            WHERE {where} AND {_column} IN ({in_list})
            GROUP BY {_column}, isVisitor
            """
        )

        counts = {label: [0, 0] for label in labels}
        for row in rows:
            entry = counts.setdefault(row.get(_column) or "", [0, 0])
            count = _int(row.get("count"))
            if _int(row.get("isVisitor")) == 1:
                entry[0] += count
            entry[1] += count

        return [(_label(label), visitors, views) for label, (visitors, views) in counts.items()]

    async def get_sites_ordered_by_hits(
        self,
        interval: str,
        tz: Optional[str] = None,
        limit: int = 10,
    ) -> list[tuple[str, int]]:
        """Get (site_id, hits) pairs across all sites, busiest first."""
        start_sql, end_sql = interval_to_sql(interval, timezone_name(tz))
        rows = await self._query(
            f"""
            SELECT SUM(_sample_interval) as count,
                {column('site_id')} as siteId
            FROM {self.dataset}
            WHERE timestamp >= {start_sql} AND timestamp < {end_sql}
            GROUP BY siteId
            ORDER BY count DESC
            LIMIT {limit}
            """
        )
        return [(row.get("siteId", ""), _int(row.get("count"))) for row in rows]

    async def get_earliest_events(self, site_id: str) -> EarliestEvents:
        """Get the earliest event and the earliest recorded bounce for a site."""
        rows = await self._query(
            f"""
            SELECT MIN(timestamp) as earliestEvent,
                {column('bounce')} != 0 as isBounce
            FROM {self.dataset}
            WHERE {column('site_id')} = '{site_id}'
            GROUP BY isBounce
            """
        )

        earliest = EarliestEvents()
        for row in rows:
            timestamp = _parse_timestamp(row.get("earliestEvent"))
            if timestamp is None:
                continue
            if earliest.earliest_event is None or timestamp < earliest.earliest_event:
                earliest.earliest_event = timestamp
            if _int(row.get("isBounce")) == 1 and (
                earliest.earliest_bounce is None or timestamp < earliest.earliest_bounce
            ):
                earliest.earliest_bounce = timestamp
        return earliest

    # =========================================================================
    # TIME SERIES
    # =========================================================================

    async def get_views_grouped_by_interval(
        self,
        site_id: str,
        granularity: Granularity,
        start: datetime,
        end: datetime,
        tz: Optional[str] = None,
        filters: Optional[SearchFilters] = None,
    ) -> list[Bucket]:
        """Get a complete, bounce-corrected series of buckets over [start, end).

        Bucket boundaries are local to `tz` (00:00 in America/New_York is the
        start of an NYC day) but reported as UTC.
        """
        tz_name = timezone_name(tz)
        zone = resolve_timezone(tz_name)
        granularity = Granularity(granularity)
        start = align_to_granularity(start, granularity, zone)

        rows = await self._query(
            f"""
            SELECT SUM(_sample_interval) as count,
                {column('new_visitor')} as isVisitor,
                {column('bounce')} as isBounce,
                toStartOfInterval(timestamp, INTERVAL '1' {granularity.value}, '{tz_name}') as _bucket,
                toDateTime(_bucket, 'Etc/UTC') as bucket
            FROM {self.dataset}
            WHERE timestamp >= toDateTime('{format_date_string(start)}')
                AND timestamp < toDateTime('{format_date_string(end)}')
                AND {column('site_id')} = '{site_id}'{self._build_filter_sql(filters)}
            GROUP BY _bucket, isVisitor, isBounce
            ORDER BY _bucket ASC
            """
        )

        bucket_rows = [
            BucketRow(
                bucket=_parse_timestamp(row["bucket"]),
                is_visitor=_int(row.get("isVisitor")),
                is_bounce=_int(row.get("isBounce")),
                count=_int(row.get("count")),
            )
            for row in rows
            if row.get("bucket")
        ]
        buckets = materialize_buckets(bucket_rows, start, end, granularity, zone)
        return correct_bounces(buckets)
