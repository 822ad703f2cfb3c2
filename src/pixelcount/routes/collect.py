"""
Beacon collection route.

GET /collect?sid=...&h=...&p=...&r=...[&v=..&b=..][&us=..&um=..&uc=..&ut=..&uco=..]
always answers with a 1x1 GIF unless the site id is missing.
"""
import logging

from fastapi import APIRouter, Request, Response

from ..config import AnalyticsConfig
from ..core.collect import PIXEL_GIF, MissingSiteIdError, classify
from ..core.models import BeaconRequest
from ..core.writer import EventWriter

logger = logging.getLogger(__name__)


def create_collect_router(config: AnalyticsConfig, writer: EventWriter) -> APIRouter:
    """Create the beacon router.

    Args:
        config: Analytics configuration (day boundary zone, country header)
        writer: Event writer the classified beacons are appended through
    """
    router = APIRouter(tags=["collect"])

    @router.get("/collect")
    def collect(request: Request) -> Response:
        beacon = BeaconRequest.from_query(
            request.query_params,
            user_agent=request.headers.get("user-agent"),
        )

        try:
            event, headers = classify(
                beacon,
                request.headers.get("if-modified-since"),
                tz=config.tzinfo,
            )
        except MissingSiteIdError:
            return Response("Missing siteId", status_code=400)

        # location comes from the edge network, never from the tracker
        extra = {}
        country = request.headers.get(config.country_header)
        if country:
            extra["country"] = country

        # a failed write must never cost the client its pixel
        try:
            writer.write(event, extra)
        except Exception:
            logger.exception(f"Failed to write datapoint for site {beacon.site_id}")

        return Response(content=PIXEL_GIF, headers=headers)

    return router
