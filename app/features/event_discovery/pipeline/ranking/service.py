"""
Final consolidation of a run's events.

Large batches, explicit skip requests and nearly exhausted budgets take the
fast path (dedupe, sort by date, cap). Otherwise one completion call curates
the list; its answer is mapped back onto the extracted events so links and
images are never invented by the model.
"""

import asyncio
import json
from datetime import date
from typing import Any

from app.config import settings
from app.features.event_discovery.completion.gateway import CompletionGateway
from app.features.event_discovery.domain.deadline import Deadline
from app.features.event_discovery.domain.errors import DiscoveryError
from app.features.event_discovery.domain.models import (
    DiscoveryRequest,
    ExtractedEvent,
    canonical_key,
)
from app.features.event_discovery.domain.taxonomy import ALL_INTERESTS, ALL_VIBES, filter_taxonomy
from app.features.event_discovery.pipeline.validation.filters import drop_sensitive, filter_events
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

RANKING_SYSTEM_PROMPT = f"""You are an expert event curator. Return only valid JSON.
Re-check every event: drop anything that is not a specific real-world event, drop
duplicates, and correct the categories using this closed list only:
{", ".join(ALL_INTERESTS)}.
Allowed vibes: {", ".join(ALL_VIBES)}.

Classification rules:
- restaurant, dining, food -> Food Festivals, Restaurant Week or Cooking Classes
- concert or music performance -> Live Music or a genre
- dance show, choreography -> Theater & Dance
- yoga -> Yoga; comedy, stand-up -> Comedy Shows; film, screening -> Film & Cinema
- gallery, exhibition, paintings -> Visual Arts
Do not tag venues as Visual Arts just because they are located at an arts center.

Order the events by relevance to the user's interests and vibes, then by how soon
they happen. Respond with {{"events": [{{"id": <number>, "interests": [...], "vibes": [...]}}]}}
using the ids given in the input."""


def dedupe(events: list[ExtractedEvent]) -> list[ExtractedEvent]:
    seen: set[str] = set()
    unique = []
    for event in events:
        key = event.canonical_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(event)
    return unique


def sort_by_date(events: list[ExtractedEvent]) -> list[ExtractedEvent]:
    return sorted(events, key=lambda e: (e.date, e.title.casefold()))


class EventRanker:
    def __init__(self, gateway: CompletionGateway, today=date.today):
        self.gateway = gateway
        self._today = today

    def build_payload(self, events: list[ExtractedEvent], request: DiscoveryRequest) -> dict[str, Any]:
        listing = [
            {
                "id": index,
                "title": event.title,
                "description": event.description[:200],
                "date": event.date,
                "time": event.time,
                "location": event.location,
                "interests": event.interests,
            }
            for index, event in enumerate(events)
        ]
        user_content = (
            f"City: {request.city}\n"
            f"Today: {self._today().isoformat()}\n"
            f"User interests: {', '.join(request.interests)}\n"
            f"User vibes: {', '.join(request.vibes) or 'any'}\n\n"
            f"Events:\n{json.dumps(listing, ensure_ascii=False)}"
        )
        return {
            "model": settings.OPENAI_MODEL,
            "temperature": settings.RANKING_TEMPERATURE,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": RANKING_SYSTEM_PROMPT},
                {"role": "user", "content": user_content},
            ],
        }

    def _call_budget(self, deadline: Deadline) -> float:
        remaining = deadline.remaining()
        budget = max(settings.RANKING_MIN_BUDGET_SECONDS, min(settings.RANKING_BUDGET_SECONDS, remaining - 2))
        return min(budget, remaining)

    def map_response(
        self, response: dict[str, Any], events: list[ExtractedEvent]
    ) -> list[ExtractedEvent]:
        """Ranked events in model order; ids are resolved against the input list."""
        by_key = {event.canonical_key: event for event in events}
        ranked: list[ExtractedEvent] = []
        used: set[str] = set()

        for item in response.get("events") or []:
            if not isinstance(item, dict):
                continue
            original = None
            index = item.get("id")
            if isinstance(index, int) and 0 <= index < len(events):
                original = events[index]
            elif item.get("title") and item.get("date"):
                original = by_key.get(
                    canonical_key(item.get("title"), item.get("date"), item.get("location"))
                )
            if original is None or original.canonical_key in used:
                continue
            used.add(original.canonical_key)

            interests = filter_taxonomy(item.get("interests"))
            vibes = [v for v in item.get("vibes") or [] if v in ALL_VIBES]
            original.interests = interests or original.interests
            original.vibes = vibes or original.vibes
            ranked.append(original)

        return ranked

    async def consolidate(
        self, events: list[ExtractedEvent], request: DiscoveryRequest, deadline: Deadline
    ) -> list[ExtractedEvent]:
        """Filtered, deduplicated and ordered events, capped at MAX_RESULTS. Never raises."""
        candidates = dedupe(filter_events(events, request.city, today=self._today()))
        if not candidates:
            return []

        fast_reason = None
        if len(candidates) >= settings.RANKING_SKIP_THRESHOLD:
            fast_reason = "threshold"
        elif request.skip_ranking:
            fast_reason = "requested"
        elif deadline.remaining() < settings.RANKING_MIN_REMAINING_SECONDS:
            fast_reason = "budget"

        ranked: list[ExtractedEvent] = []
        if fast_reason is None:
            try:
                response = await asyncio.wait_for(
                    self.gateway.invoke(
                        self.build_payload(candidates, request),
                        cache_ttl=settings.COMPLETION_CACHE_TTL_SECONDS,
                        allow_fast_fail=True,
                    ),
                    timeout=self._call_budget(deadline),
                )
                ranked = self.map_response(response, candidates)
                if not ranked:
                    fast_reason = "empty_ranking"
            except TimeoutError:
                fast_reason = "ranking_timeout"
            except DiscoveryError as e:
                logger.warning("Ranking call failed", error=str(e), error_type=type(e).__name__)
                fast_reason = "ranking_failed"

        if fast_reason is not None:
            ranked = sort_by_date(candidates)

        result = drop_sensitive(ranked, settings.SENSITIVE_CATEGORIES, list(request.interests))
        result = result[: settings.MAX_RESULTS]
        logger.info(
            "Consolidation complete",
            input_events=len(events),
            output_events=len(result),
            fast_path=fast_reason,
        )
        return result
