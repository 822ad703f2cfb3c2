"""
Physical layout of a stored data point.

Analytics Engine rows are positional: one index, up to 20 string blobs
and up to 20 float doubles. The order below is a deployed contract.
New fields are only ever appended; reordering misaligns historical rows.
"""
from types import MappingProxyType

MAX_BLOBS = 20
MAX_DOUBLES = 20
MAX_INDEX_BYTES = 96

BLOB_FIELDS = (
    "host",             # blob1
    "user_agent",       # blob2
    "path",             # blob3
    "country",          # blob4
    "referrer",         # blob5
    "browser_name",     # blob6
    "device_model",     # blob7
    "site_id",          # blob8
    "browser_version",  # blob9
    "device_type",      # blob10
    "utm_source",       # blob11
    "utm_medium",       # blob12
    "utm_campaign",     # blob13
    "utm_term",         # blob14
    "utm_content",      # blob15
)

DOUBLE_FIELDS = (
    "new_visitor",  # double1: first hit from this visitor today
    "new_session",  # double2: dead column, always 0
    "bounce",       # double3: -1, 0 or 1
)

if len(BLOB_FIELDS) > MAX_BLOBS or len(DOUBLE_FIELDS) > MAX_DOUBLES:
    raise RuntimeError(
        f"Record layout exceeds store limits: {len(BLOB_FIELDS)} blobs, "
        f"{len(DOUBLE_FIELDS)} doubles (max {MAX_BLOBS}/{MAX_DOUBLES})"
    )


class UnknownColumnError(KeyError):
    """Raised when a logical column name has no physical mapping."""
    pass


COLUMN_MAPPINGS = MappingProxyType({
    **{name: f"blob{i}" for i, name in enumerate(BLOB_FIELDS, start=1)},
    **{name: f"double{i}" for i, name in enumerate(DOUBLE_FIELDS, start=1)},
})


def column(name: str) -> str:
    """Map a logical field name to its physical column (e.g. country -> blob4)."""
    try:
        return COLUMN_MAPPINGS[name]
    except KeyError:
        raise UnknownColumnError(name) from None
