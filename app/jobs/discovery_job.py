"""
Scheduled discovery run.

Runs one discovery for DISCOVERY_CITY / DISCOVERY_INTERESTS outside the web
process (cron, container job) and waits for the background continuation to
finish before exiting, so every deferred site is persisted.
"""

from app.config import settings
from app.db.pool import db_pool
from app.features.event_discovery.dependencies import get_orchestrator, shutdown_orchestrator
from app.features.event_discovery.domain.models import DiscoveryRequest
from app.infrastructure.observability.logging import get_logger, setup_logging
from app.services.redis_client import fast_redis

logger = get_logger(__name__)


def build_job_request() -> DiscoveryRequest:
    return DiscoveryRequest(
        city=settings.DISCOVERY_CITY,
        interests=tuple(settings.DISCOVERY_INTERESTS),
        timeout_ms=settings.REQUEST_TIMEOUT_MS_BOUNDS[1],
    )


async def run_discovery_job() -> dict:
    """
    Run a single discovery and return a summary.

    Returns:
        dict: {"city", "events", "sites", "failed_sites"}
    """
    setup_logging(log_level=settings.LOG_LEVEL)
    await db_pool.initialize()
    if fast_redis.enabled:
        await fast_redis.initialize()

    request = build_job_request()
    try:
        orchestrator = get_orchestrator()
        result = await orchestrator.discover(request)
        await orchestrator.wait_for_background()

        summary = {
            "city": request.city,
            "events": len(result.events),
            "sites": len(result.scraping_status),
            "failed_sites": sum(1 for s in result.scraping_status if s.status == "failed"),
        }
        logger.info("Discovery job completed", **summary)
        return summary
    finally:
        await shutdown_orchestrator()
        await fast_redis.close()
        await db_pool.close()
