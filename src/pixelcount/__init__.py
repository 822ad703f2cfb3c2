"""
Cookieless, self-hosted web analytics on Cloudflare Analytics Engine.

Usage:
    from fastapi import FastAPI
    from pixelcount import setup_analytics

    analytics = setup_analytics(
        cf_account_id="your-account-id",
        cf_api_token="your-api-token",
        dataset=my_dataset,  # exposes write_data_point(dict)
    )

    app = FastAPI()
    app.include_router(analytics.collect_router)
    app.include_router(analytics.api_router, prefix="/api")
"""

from .config import AnalyticsConfig
from .core.client import AnalyticsEngineClient
from .core.writer import DataPointSink, EventWriter
from .routes import create_api_router, create_collect_router

__version__ = "0.1.0"
__all__ = ["setup_analytics", "Analytics", "AnalyticsConfig", "AnalyticsEngineClient", "EventWriter"]


class Analytics:
    """Main analytics interface: config, query client, writer and routers."""

    def __init__(self, config: AnalyticsConfig, dataset: DataPointSink | None = None):
        self.config = config
        self.client = AnalyticsEngineClient.from_config(config)
        self.writer = EventWriter(dataset)
        self.collect_router = create_collect_router(config, self.writer)
        self.api_router = create_api_router(self.client)


def setup_analytics(
    cf_account_id: str = "",
    cf_api_token: str = "",
    dataset: DataPointSink | None = None,
    timezone: str = "UTC",
    dataset_name: str = "metricsDataset",
    config: AnalyticsConfig | None = None,
) -> Analytics:
    """
    Set up analytics.

    Args:
        cf_account_id: Cloudflare account ID
        cf_api_token: Cloudflare API token with Analytics Engine read access
        dataset: Write handle for beacons; without one, beacons are logged
                 and dropped
        timezone: Zone whose midnight resets the cache-header visit counter
        dataset_name: Analytics Engine dataset queried by the client
        config: Full configuration, overriding the individual arguments

    Returns:
        Analytics instance with collect_router and api_router
    """
    if config is None:
        config = AnalyticsConfig(
            cf_account_id=cf_account_id,
            cf_api_token=cf_api_token,
            dataset=dataset_name,
            timezone=timezone,
        )
    return Analytics(config, dataset=dataset)
