"""
Candidate page validation and classification through the completion API.

A single batched call decides, per page, whether it describes a real event
and returns event records classified into the closed taxonomy. When the call
is unavailable the raw fallback (if enabled) keeps the run useful.
"""

import asyncio
from datetime import date
from typing import Any

from app.config import settings
from app.features.event_discovery.completion.gateway import CompletionGateway
from app.features.event_discovery.domain.deadline import Deadline
from app.features.event_discovery.domain.errors import DiscoveryError
from app.features.event_discovery.domain.models import (
    TIME_SENTINEL,
    CandidatePage,
    DiscoveryRequest,
    EventSource,
    ExtractedEvent,
)
from app.features.event_discovery.domain.taxonomy import (
    ALL_INTERESTS,
    ALL_VIBES,
    classify_interests,
    filter_taxonomy,
)
from app.features.event_discovery.pipeline.validation.filters import filter_events, guess_date
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

VALIDATION_TOOL_NAME = "report_page_validations"

VALIDATION_TOOL = {
    "type": "function",
    "function": {
        "name": VALIDATION_TOOL_NAME,
        "description": "Report, for every candidate page, whether it describes real events.",
        "parameters": {
            "type": "object",
            "properties": {
                "validations": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "url": {"type": "string"},
                            "isEvent": {"type": "boolean"},
                            "events": {
                                "type": "array",
                                "items": {
                                    "type": "object",
                                    "properties": {
                                        "title": {"type": "string"},
                                        "description": {"type": "string"},
                                        "date": {
                                            "type": "string",
                                            "description": "YYYY-MM-DD",
                                        },
                                        "time": {"type": "string"},
                                        "location": {"type": "string"},
                                        "event_link": {"type": "string"},
                                        "categories": {
                                            "type": "array",
                                            "items": {"type": "string", "enum": ALL_INTERESTS},
                                        },
                                        "vibes": {
                                            "type": "array",
                                            "items": {"type": "string", "enum": ALL_VIBES},
                                        },
                                    },
                                    "required": ["title", "date", "location", "categories"],
                                },
                            },
                        },
                        "required": ["url", "isEvent", "events"],
                    },
                }
            },
            "required": ["validations"],
        },
    },
}

VALIDATION_SYSTEM_PROMPT = """You verify scraped web pages for a local events app.
For each page decide whether it describes one or more specific real-world events
(a concrete title, a calendar date, a place). Listing indexes, login pages, venue
home pages, articles and ads are NOT events.

Classification rules:
- dance, choreography, ballet -> Theater & Dance
- yoga -> Yoga; meditation -> Meditation
- comedy, stand-up -> Comedy Shows
- film, movie, screening -> Film & Cinema
- concert, band, DJ -> Live Music, a music genre, or Concerts & Festivals
- gallery, exhibition, painting -> Visual Arts

Only report events located in the target city or online. Dates must be YYYY-MM-DD.
If the time is unknown use "See website". Use the page URL as event_link when the
page has no better link."""


def _page_block(index: int, page: CandidatePage) -> str:
    lines = [f"[{index}] URL: {page.url}", f"Title: {page.title}"]
    if page.description:
        lines.append(f"Description: {page.description}")
    if page.date_hint:
        lines.append(f"Date hint: {page.date_hint}")
    return "\n".join(lines)


class EventValidator:
    def __init__(self, gateway: CompletionGateway, today=date.today):
        self.gateway = gateway
        self._today = today

    def build_payload(self, pages: list[CandidatePage], request: DiscoveryRequest) -> dict[str, Any]:
        user_content = (
            f"Target city: {request.city}\n"
            f"Today: {self._today().isoformat()}\n"
            f"User interests: {', '.join(request.interests)}\n\n"
            + "\n\n".join(_page_block(i, page) for i, page in enumerate(pages, start=1))
        )
        return {
            "model": settings.OPENAI_MODEL,
            "temperature": settings.VALIDATION_TEMPERATURE,
            "messages": [
                {"role": "system", "content": VALIDATION_SYSTEM_PROMPT},
                {"role": "user", "content": user_content},
            ],
            "tools": [VALIDATION_TOOL],
            "tool_choice": {"type": "function", "function": {"name": VALIDATION_TOOL_NAME}},
        }

    async def validate(
        self,
        pages: list[CandidatePage],
        request: DiscoveryRequest,
        deadline: Deadline | None = None,
    ) -> list[ExtractedEvent]:
        """
        Validated, classified and filtered events for up to one batch of pages.

        The completion call is bounded by the deadline's remaining budget; a
        timeout or API failure falls back to the raw path when enabled.
        """
        batch = pages[: settings.MAX_VALIDATION_BATCH]
        if not batch:
            return []
        if deadline is not None and deadline.expired:
            logger.info("Validation skipped, run budget spent", pages=len(batch))
            return self._fallback(batch, request)

        call = self.gateway.invoke(
            self.build_payload(batch, request),
            cache_ttl=settings.COMPLETION_CACHE_TTL_SECONDS,
            allow_fast_fail=True,
        )
        try:
            if deadline is None:
                response = await call
            else:
                response = await asyncio.wait_for(call, timeout=deadline.remaining())
        except TimeoutError:
            logger.warning("Validation call out of budget", pages=len(batch))
            return self._fallback(batch, request)
        except DiscoveryError as e:
            logger.warning(
                "Validation call failed",
                error=str(e),
                error_type=type(e).__name__,
                raw_fallback=settings.RAW_FALLBACK_ENABLED,
            )
            return self._fallback(batch, request)

        events = self.parse_response(response, batch, request)
        accepted = filter_events(events, request.city, today=self._today())
        logger.info(
            "Validation complete",
            pages=len(batch),
            proposed=len(events),
            accepted=len(accepted),
        )
        return accepted

    def _fallback(self, pages: list[CandidatePage], request: DiscoveryRequest) -> list[ExtractedEvent]:
        if settings.RAW_FALLBACK_ENABLED:
            return self.raw_fallback(pages, request)
        return []

    def parse_response(
        self, response: dict[str, Any], pages: list[CandidatePage], request: DiscoveryRequest
    ) -> list[ExtractedEvent]:
        by_url = {page.url: page for page in pages}
        events: list[ExtractedEvent] = []

        for validation in response.get("validations") or []:
            if not isinstance(validation, dict) or not validation.get("isEvent"):
                continue
            page_url = str(validation.get("url") or "")
            page = by_url.get(page_url)

            for raw in validation.get("events") or []:
                if not isinstance(raw, dict):
                    continue
                title = str(raw.get("title") or "").strip()
                fallback = [page.interest] if page and page.interest else []
                interests = filter_taxonomy(raw.get("categories")) or classify_interests(
                    f"{title} {raw.get('description') or ''}", fallback=fallback
                )
                events.append(
                    ExtractedEvent(
                        title=title,
                        description=str(raw.get("description") or "").strip(),
                        date=str(raw.get("date") or "").strip()[:10],
                        time=str(raw.get("time") or "").strip() or TIME_SENTINEL,
                        location=str(raw.get("location") or "").strip(),
                        event_link=str(raw.get("event_link") or page_url).strip(),
                        interests=interests,
                        vibes=[v for v in raw.get("vibes") or [] if v in ALL_VIBES],
                        source=EventSource.VALIDATED,
                    )
                )
        return events

    def raw_fallback(
        self, pages: list[CandidatePage], request: DiscoveryRequest
    ) -> list[ExtractedEvent]:
        """
        Low-confidence events built straight from candidate pages.

        Pages without a recoverable date are dropped rather than stored with
        an empty date.
        """
        today = self._today()
        events = []
        for page in pages:
            event_date = page.date_hint or guess_date(f"{page.title} {page.description}", today)
            if not event_date:
                continue
            events.append(
                ExtractedEvent(
                    title=page.title,
                    description=page.description,
                    date=event_date,
                    time=TIME_SENTINEL,
                    location=request.city,
                    event_link=page.url,
                    interests=classify_interests(
                        f"{page.title} {page.description}",
                        fallback=[page.interest] if page.interest else [],
                    ),
                    source=EventSource.RAW_FALLBACK,
                )
            )

        accepted = filter_events(events, request.city, today=today)
        logger.info("Raw fallback used", pages=len(pages), accepted=len(accepted))
        return accepted
