"""
Configuration for pixelcount.
"""
import logging
import os
from dataclasses import dataclass
from datetime import timezone as dt_timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

API_URL_TEMPLATE = "https://api.cloudflare.com/client/v4/accounts/{account_id}/analytics_engine/sql"


def resolve_timezone(name: str | None) -> tzinfo:
    """Resolve an IANA zone name, falling back to UTC if absent or invalid."""
    if not name:
        return dt_timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        logger.warning(f"Unknown timezone {name!r}, falling back to UTC")
        return dt_timezone.utc


def timezone_name(name: str | None) -> str:
    """Return `name` if it is a valid IANA zone, else "UTC".

    Zone names are embedded in query text, so only validated names
    are ever passed through.
    """
    tz = resolve_timezone(name)
    return name if isinstance(tz, ZoneInfo) else "UTC"


@dataclass
class AnalyticsConfig:
    """Configuration for a single pixelcount deployment."""

    # Query credentials (the beacon side works without them)
    cf_account_id: str = ""
    cf_api_token: str = ""

    # Analytics Engine dataset (table) name
    dataset: str = "metricsDataset"

    # Local day used by the cache-header visit counter
    timezone: str = "UTC"

    # Edge network header carrying the visitor country
    country_header: str = "CF-IPCountry"

    # Sent as X-Source on every query
    source_header_value: str = "Cloudflare-Workers"

    query_timeout_seconds: float = 30.0

    def __post_init__(self):
        if not (self.cf_account_id and self.cf_api_token):
            logger.warning(
                "No Cloudflare account id / API token configured: "
                "queries against the analytics store will fail"
            )
        self.timezone = timezone_name(self.timezone)

    @property
    def api_url(self) -> str:
        return API_URL_TEMPLATE.format(account_id=self.cf_account_id)

    @property
    def tzinfo(self) -> tzinfo:
        return resolve_timezone(self.timezone)

    @classmethod
    def from_env(cls, environ=None) -> "AnalyticsConfig":
        """Build a config from CF_ACCOUNT_ID / CF_BEARER_TOKEN and friends."""
        env = os.environ if environ is None else environ
        return cls(
            cf_account_id=env.get("CF_ACCOUNT_ID", ""),
            cf_api_token=env.get("CF_BEARER_TOKEN", ""),
            dataset=env.get("PIXELCOUNT_DATASET", "metricsDataset"),
            timezone=env.get("PIXELCOUNT_TIMEZONE", "UTC"),
        )
