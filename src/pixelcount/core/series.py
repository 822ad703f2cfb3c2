"""
Time series materialization and bounce correction.

The store only returns buckets that have data. `materialize_buckets` lays
those sparse rows over a complete calendar of hour/day buckets, and
`correct_bounces` repairs the negative bucket totals produced by the
differential bounce encoding (a +1 in one bucket, its -1 in the next).
"""
import logging
from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime, tzinfo

from .intervals import Granularity, format_date_string, iter_boundaries
from .models import Bucket, BucketRow

logger = logging.getLogger(__name__)


def materialize_buckets(
    rows: Iterable[BucketRow],
    start: datetime,
    end: datetime,
    granularity: Granularity,
    tz: tzinfo,
) -> list[Bucket]:
    """Zero-fill sparse rows into one bucket per boundary in [start, end).

    Views count every row, visitors only rows flagged as new visitors, and
    bounces add each row's count signed by its stored bounce value.
    """
    by_key: dict[str, list[BucketRow]] = defaultdict(list)
    for row in rows:
        by_key[format_date_string(row.bucket)].append(row)

    buckets = []
    for boundary in iter_boundaries(start, end, granularity, tz):
        bucket = Bucket(timestamp=boundary)
        for row in by_key.pop(format_date_string(boundary), []):
            bucket.views += row.count
            if row.is_visitor == 1:
                bucket.visitors += row.count
            if row.is_bounce:
                bucket.bounces += row.count * row.is_bounce
        buckets.append(bucket)

    if by_key:
        logger.debug(f"Dropped rows outside the requested range: {sorted(by_key)}")

    return buckets


def correct_bounces(buckets: list[Bucket]) -> list[Bucket]:
    """Move negative bounce totals back into the preceding bucket.

    Single forward pass with a one-step look-back: a retraction is assumed
    to land at most one bucket after the bounce it cancels. The total
    bounce count across the series is unchanged.
    """
    corrected = [bucket.model_copy() for bucket in buckets]
    for i in range(1, len(corrected)):
        if corrected[i].bounces < 0:
            corrected[i - 1].bounces += corrected[i].bounces
            corrected[i].bounces = 0
    return corrected
