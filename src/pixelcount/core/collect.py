"""
Beacon classification.

Each pageview beacon is turned into new-visitor / bounce signals without
cookies or server-side session state. Two protocols are supported:

Explicit hit type (preferred)
    Newer trackers send `v` (new visit, "0"/"1") and `b` (bounce delta,
    "-1"/"0"/"1"). They are used as-is, with malformed bounce values
    falling back to "a new visit is a bounce".

Cache-header counter (legacy fallback)
    The client's own HTTP cache acts as a per-day visit counter. The
    response carries `Last-Modified = local midnight + N seconds`; the
    browser echoes it back as `If-Modified-Since` on its next beacon for
    the same page, and we increment it by one second:

        N = 1  first hit today     -> bounce  1 (provisional)
        N = 2  second hit today    -> bounce -1 (retracts the first)
        N > 2  any later hit       -> bounce  0

    A validator from a previous day (or none at all) means a new visitor.
"""
import base64
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from email.utils import format_datetime, parsedate_to_datetime

from ..user_agent import parse_user_agent
from .intervals import as_utc, start_of_day
from .models import BeaconRequest, ClassifiedEvent

logger = logging.getLogger(__name__)

# 1x1 transparent GIF
PIXEL_GIF = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7")

# Validators this close to the datetime range limits cannot be shifted
# into a local zone or incremented, so they are treated as absent
_EARLIEST_VALIDATOR = datetime.min.replace(tzinfo=timezone.utc) + timedelta(days=2)
_LATEST_VALIDATOR = datetime.max.replace(tzinfo=timezone.utc) - timedelta(days=2)

PIXEL_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Content-Type": "image/gif",
    "Expires": "Mon, 01 Jan 1990 00:00:00 GMT",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Tk": "N",  # not tracking
}


class MissingSiteIdError(ValueError):
    """Raised when a beacon has no site identifier."""
    pass


@dataclass(frozen=True)
class CacheHeaderResult:
    """Outcome of the cache-header counter for one beacon."""
    new_visitor: bool
    bounce: int
    next_last_modified: datetime


def parse_http_date(value: str | None) -> datetime | None:
    """Parse an HTTP-date header into an aware UTC datetime, or None if invalid."""
    if not value:
        return None
    try:
        parsed = as_utc(parsedate_to_datetime(value))
    except (TypeError, ValueError, IndexError, OverflowError):
        logger.debug(f"Ignoring malformed If-Modified-Since: {value!r}")
        return None
    if not _EARLIEST_VALIDATOR <= parsed <= _LATEST_VALIDATOR:
        logger.debug(f"Ignoring out-of-range If-Modified-Since: {value!r}")
        return None
    return parsed


def format_http_date(instant: datetime) -> str:
    return format_datetime(instant.astimezone(timezone.utc), usegmt=True)


def _bounce_from_visits(visits: int) -> int:
    if visits == 0:
        return 1
    if visits == 1:
        return -1
    return 0


def handle_cache_headers(
    if_modified_since: str | None,
    now: datetime | None = None,
    tz: tzinfo = timezone.utc,
) -> CacheHeaderResult:
    """Run the cache-header visit counter.

    Args:
        if_modified_since: Raw If-Modified-Since header, if any
        now: Current instant (defaults to the wall clock)
        tz: Zone whose calendar day the counter resets on

    Returns:
        CacheHeaderResult with the signals and the next Last-Modified value
    """
    now = as_utc(now)
    midnight = start_of_day(now, tz)
    previous = parse_http_date(if_modified_since)

    # a validator from before today restarts the counter at midnight
    next_last_modified = previous if previous and previous >= midnight else midnight
    next_last_modified += timedelta(seconds=1)

    # minus one: this is the value we are about to hand out
    visits = int((next_last_modified - midnight).total_seconds()) - 1

    new_visitor = (
        previous is None
        or previous.astimezone(tz).date() != now.astimezone(tz).date()
    )
    bounce = 1 if new_visitor else _bounce_from_visits(visits)

    return CacheHeaderResult(
        new_visitor=new_visitor,
        bounce=bounce,
        next_last_modified=next_last_modified,
    )


def explicit_hit_type(visit: str | None, bounce: str | None) -> tuple[bool, int]:
    """Read the explicit `v`/`b` hit-type fields.

    Bounce values outside {-1, 0, 1} (or non-numeric) default to 1 for a
    new visit and 0 otherwise.
    """
    new_visit = visit == "1"
    try:
        bounce_value = int(bounce)
    except (TypeError, ValueError):
        bounce_value = None

    if bounce_value not in (-1, 0, 1):
        bounce_value = 1 if new_visit else 0

    return new_visit, bounce_value


def response_headers(last_modified: datetime | None = None) -> dict[str, str]:
    headers = dict(PIXEL_HEADERS)
    if last_modified is not None:
        headers["Last-Modified"] = format_http_date(last_modified)
    return headers


def classify(
    request: BeaconRequest,
    if_modified_since: str | None = None,
    now: datetime | None = None,
    tz: tzinfo = timezone.utc,
) -> tuple[ClassifiedEvent, dict[str, str]]:
    """Classify a beacon into visitor/bounce signals.

    Returns:
        (event, response_headers). `Last-Modified` is only set on the
        cache-header path.

    Raises:
        MissingSiteIdError: If the beacon has no site id
    """
    if not request.site_id:
        raise MissingSiteIdError("Missing siteId")

    last_modified = None
    if request.has_hit_type:
        new_visitor, bounce = explicit_hit_type(request.visit, request.bounce)
    else:
        result = handle_cache_headers(if_modified_since, now=now, tz=tz)
        new_visitor, bounce = result.new_visitor, result.bounce
        last_modified = result.next_last_modified

    event = ClassifiedEvent(
        request=request,
        user_agent=parse_user_agent(request.user_agent),
        new_visitor=1 if new_visitor else 0,
        new_session=0,
        bounce=bounce,
    )
    return event, response_headers(last_modified)
