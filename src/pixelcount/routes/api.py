"""
JSON query API.

Thin HTTP layer over AnalyticsEngineClient used by dashboards: site list,
headline stats, time series and per-column breakdowns.
"""
import asyncio
import logging
import math

from fastapi import APIRouter, Depends, HTTPException, Query

from ..core.client import AnalyticsEngineClient, AnalyticsQueryError
from ..core.intervals import (
    InvalidIntervalError,
    get_interval_type,
    resolve_interval,
    validate_interval,
)
from ..core.models import SearchFilters
from ..core.schema import COLUMN_MAPPINGS, DOUBLE_FIELDS

logger = logging.getLogger(__name__)

# Breakdowns that only count visitors rather than (visitors, views)
VISITOR_ONLY_COLUMNS = {"country"}

BREAKDOWN_COLUMNS = [
    name for name in COLUMN_MAPPINGS
    if name not in DOUBLE_FIELDS and name not in ("site_id", "user_agent", "host")
]


def _check_interval(interval: str) -> str:
    try:
        return validate_interval(interval)
    except InvalidIntervalError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from None


def _get_filters(
    path: str | None = Query(None),
    referrer: str | None = Query(None),
    device_model: str | None = Query(None),
    device_type: str | None = Query(None),
    country: str | None = Query(None),
    browser_name: str | None = Query(None),
    browser_version: str | None = Query(None),
    utm_source: str | None = Query(None),
    utm_medium: str | None = Query(None),
    utm_campaign: str | None = Query(None),
    utm_term: str | None = Query(None),
    utm_content: str | None = Query(None),
) -> SearchFilters:
    """Build SearchFilters from query parameters."""
    return SearchFilters(
        path=path,
        referrer=referrer,
        device_model=device_model,
        device_type=device_type,
        country=country,
        browser_name=browser_name,
        browser_version=browser_version,
        utm_source=utm_source,
        utm_medium=utm_medium,
        utm_campaign=utm_campaign,
        utm_term=utm_term,
        utm_content=utm_content,
    )


async def _parallel_queries(**queries) -> dict:
    """Execute multiple async queries in parallel with error handling.

    Returns:
        Dict with same keys, values are either results or None on failure.
        Failed queries are logged but don't fail the entire request.
    """
    names = list(queries.keys())
    coros = list(queries.values())

    results = await asyncio.gather(*coros, return_exceptions=True)

    output = {}
    for name, result in zip(names, results):
        if isinstance(result, Exception):
            logger.error(f"Query '{name}' failed: {result}")
            output[name] = None
        else:
            output[name] = result

    return output


def _bad_gateway(exc: Exception) -> HTTPException:
    return HTTPException(status_code=502, detail=f"Analytics query failed: {exc}")


def create_api_router(client: AnalyticsEngineClient) -> APIRouter:
    """Create the JSON query router.

    Args:
        client: Analytics Engine client used for every query
    """
    router = APIRouter(tags=["query"])

    @router.get("/sites")
    async def sites(
        interval: str = Query("7d"),
        timezone: str = Query("UTC"),
        limit: int = Query(10, ge=1, le=100),
    ):
        _check_interval(interval)
        try:
            rows = await client.get_sites_ordered_by_hits(interval, timezone, limit)
        except AnalyticsQueryError as exc:
            raise _bad_gateway(exc) from exc
        return {"sites": [[site_id, hits] for site_id, hits in rows]}

    @router.get("/stats")
    async def stats(
        site: str = Query(...),
        interval: str = Query("7d"),
        timezone: str = Query("UTC"),
        filters: SearchFilters = Depends(_get_filters),
    ):
        _check_interval(interval)
        results = await _parallel_queries(
            counts=client.get_counts(site, interval, timezone, filters),
            earliest=client.get_earliest_events(site),
        )
        counts = results["counts"]
        if counts is None:
            raise HTTPException(status_code=502, detail="Analytics query failed")

        # Bounce rate is only shown when bounce data covers the whole period
        earliest = results["earliest"]
        start = resolve_interval(interval, timezone).start
        has_sufficient_bounce_data = bool(
            earliest and earliest.has_sufficient_bounce_data(start)
        )

        return {
            "views": counts.views,
            "visitors": counts.visitors,
            "bounce_rate": counts.bounces / counts.visitors if counts.visitors > 0 else None,
            "has_sufficient_bounce_data": has_sufficient_bounce_data,
        }

    @router.get("/timeseries")
    async def timeseries(
        site: str = Query(...),
        interval: str = Query("7d"),
        timezone: str = Query("UTC"),
        filters: SearchFilters = Depends(_get_filters),
    ):
        _check_interval(interval)
        granularity = get_interval_type(interval)
        date_range = resolve_interval(interval, timezone)

        try:
            buckets = await client.get_views_grouped_by_interval(
                site, granularity, date_range.start, date_range.end, timezone, filters
            )
        except AnalyticsQueryError as exc:
            raise _bad_gateway(exc) from exc

        return {
            "interval_type": granularity.value,
            "chart_data": [
                {
                    "date": bucket.label,
                    "views": bucket.views,
                    "visitors": bucket.visitors,
                    "bounce_rate": math.floor(
                        (bucket.bounces / bucket.visitors if bucket.visitors > 0 else 0) * 100
                    ),
                }
                for bucket in buckets
            ],
        }

    @router.get("/breakdown/{column}")
    async def breakdown(
        column: str,
        site: str = Query(...),
        interval: str = Query("7d"),
        timezone: str = Query("UTC"),
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
        filters: SearchFilters = Depends(_get_filters),
    ):
        if column not in BREAKDOWN_COLUMNS:
            raise HTTPException(status_code=404, detail=f"Unknown column: {column}")
        _check_interval(interval)

        try:
            if column in VISITOR_ONLY_COLUMNS:
                rows = await client.get_visitor_count_by_column(
                    site, column, interval, timezone, filters, page=page, limit=limit
                )
            else:
                rows = await client.get_all_counts_by_column(
                    site, column, interval, timezone, filters, page=page, limit=limit
                )
        except AnalyticsQueryError as exc:
            raise _bad_gateway(exc) from exc

        return {"counts_by_property": [list(row) for row in rows], "page": page}

    return router
