"""
UTM parameter extraction for campaign attribution.

The tracker reads utm_* values from the landing page URL and forwards them
on the beacon under short names:

- us:  utm_source   (e.g. "google", "newsletter")
- um:  utm_medium   (e.g. "cpc", "email")
- uc:  utm_campaign (e.g. "spring_sale")
- ut:  utm_term     (paid search keywords)
- uco: utm_content  (differentiates similar links)

Privacy Note:
UTM parameters are intentionally added by marketers and do not reveal
personal information. They're safe to store for analytics.
"""

from collections.abc import Mapping
from dataclasses import dataclass

# Maximum length for UTM parameter values (security/sanity limit)
MAX_UTM_LENGTH = 200

BEACON_UTM_PARAMS = {
    "source": "us",
    "medium": "um",
    "campaign": "uc",
    "term": "ut",
    "content": "uco",
}


@dataclass(frozen=True)
class UTMParams:
    """
    UTM parameters carried by a beacon.

    All fields are optional - a beacon may have some, all, or none.
    """
    source: str | None = None
    medium: str | None = None
    campaign: str | None = None
    term: str | None = None
    content: str | None = None


def _clean_param(value: str | None) -> str | None:
    """
    Clean and validate a UTM parameter value.

    - Strip whitespace
    - Truncate to max length
    - Return None for empty strings
    """
    if not value:
        return None

    cleaned = value.strip()

    if len(cleaned) > MAX_UTM_LENGTH:
        cleaned = cleaned[:MAX_UTM_LENGTH]

    return cleaned if cleaned else None


def utm_from_beacon(params: Mapping[str, str]) -> UTMParams:
    """
    Extract UTM parameters from beacon query parameters.

    Examples:
        >>> utm_from_beacon({"us": "google", "um": "cpc"})
        UTMParams(source='google', medium='cpc', campaign=None, term=None, content=None)
    """
    return UTMParams(**{
        field: _clean_param(params.get(short_name))
        for field, short_name in BEACON_UTM_PARAMS.items()
    })
