"""
HTTP routes: the beacon endpoint and the JSON query API.
"""

from .api import create_api_router
from .collect import create_collect_router

__all__ = ["create_api_router", "create_collect_router"]
