"""
Persistence gateway for discovered events.

Idempotency comes from the unique index on events.canonical_key: inserts use
ON CONFLICT DO NOTHING, so concurrent runs and the background continuation
may write the same event without coordination.
"""

from datetime import date

from app.db.helpers import execute_many, execute_query, fetch_all
from app.features.event_discovery.domain.models import EventSource, ExtractedEvent
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

INSERT_EVENT_SQL = """
    INSERT INTO events (
        canonical_key, title, description, date, time, location,
        event_link, image_url, interests, vibes, source
    )
    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
    ON CONFLICT (canonical_key) DO NOTHING
"""


def _row_to_event(row: dict) -> ExtractedEvent:
    event_date = row["date"]
    return ExtractedEvent(
        title=row["title"],
        description=row.get("description") or "",
        date=event_date.isoformat() if isinstance(event_date, date) else str(event_date),
        time=row.get("time") or "",
        location=row.get("location") or "",
        event_link=row["event_link"],
        image_url=row.get("image_url"),
        interests=row.get("interests") or [],
        vibes=row.get("vibes") or [],
        source=EventSource(row.get("source") or EventSource.STRUCTURED.value),
    )


class EventRepository:
    @classmethod
    async def upsert(cls, events: list[ExtractedEvent]) -> int:
        """Insert events not yet stored. Returns the number of new rows."""
        params = []
        seen = set()
        for event in events:
            key = event.canonical_key
            if key in seen:
                continue
            seen.add(key)
            params.append(
                (
                    key,
                    event.title,
                    event.description,
                    date.fromisoformat(event.date[:10]),
                    event.time,
                    event.location,
                    event.event_link,
                    event.image_url,
                    list(event.interests),
                    list(event.vibes),
                    event.source.value,
                )
            )

        inserted = await execute_many(INSERT_EVENT_SQL, params)
        logger.info("Events persisted", submitted=len(params), inserted=inserted)
        return inserted

    @classmethod
    async def list_events(cls, limit: int = 200, include_past: bool = False) -> list[ExtractedEvent]:
        query = """
            SELECT title, description, date, time, location, event_link,
                   image_url, interests, vibes, source
            FROM events
            WHERE (%s OR date >= CURRENT_DATE)
            ORDER BY date ASC, title ASC
            LIMIT %s
        """
        rows = await fetch_all(query, (include_past, limit))
        return [_row_to_event(row) for row in rows]

    @classmethod
    async def clear(cls) -> int:
        deleted = await execute_query("DELETE FROM events")
        logger.warning("Event store cleared", deleted=deleted)
        return deleted

    @classmethod
    async def delete_before(cls, cutoff: date) -> int:
        return await execute_query("DELETE FROM events WHERE date < %s", (cutoff,))
