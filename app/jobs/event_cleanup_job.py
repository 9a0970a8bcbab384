"""
Event Cleanup Job - retention enforcement for the event store.

Deletes stored events whose date is more than EVENT_RETENTION_DAYS in the
past. Safe to run repeatedly; a second run on the same day deletes nothing.

Usage:
    python -m app.jobs.worker event_cleanup
"""

from datetime import date, datetime, timedelta

from app.config import settings
from app.db.helpers import DatabaseError
from app.db.pool import db_pool
from app.features.event_discovery.repository.event_repository import EventRepository
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class EventCleanupJob:
    """Deletes past events from the store."""

    def __init__(self, repository=EventRepository, today=date.today):
        self.repository = repository
        self._today = today
        self.is_running = False

    def cutoff(self) -> date:
        return self._today() - timedelta(days=settings.EVENT_RETENTION_DAYS)

    async def run_cleanup(self) -> dict:
        """
        Run one cleanup pass.

        Returns:
            dict: {"success": bool, "deleted_events": int, "cutoff": str, "errors": list}
        """
        if self.is_running:
            logger.warning("Cleanup job already running, skipping")
            return {"success": False, "error": "Already running"}

        self.is_running = True
        start_time = datetime.utcnow()
        cutoff = self.cutoff()
        result = {"success": True, "deleted_events": 0, "cutoff": cutoff.isoformat(), "errors": []}

        logger.info("Starting event cleanup job", cutoff=cutoff.isoformat())
        try:
            result["deleted_events"] = await self.repository.delete_before(cutoff)
        except DatabaseError as e:
            error_msg = f"Failed to delete past events: {e}"
            logger.error(error_msg)
            result["success"] = False
            result["errors"].append(error_msg)
        finally:
            self.is_running = False

        duration = (datetime.utcnow() - start_time).total_seconds()
        logger.info("Event cleanup job completed", duration_seconds=duration, result=result)
        return result


event_cleanup_job = EventCleanupJob()


async def run_event_cleanup() -> dict:
    """Worker entrypoint: open the pool, run one pass, close the pool."""
    await db_pool.initialize()
    try:
        return await event_cleanup_job.run_cleanup()
    finally:
        await db_pool.close()
