"""
Website suggestions: well-known event listing sites for a city, proposed by
the completion API and cached in Postgres for several days.
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from app.config import settings
from app.db.helpers import DatabaseError
from app.features.event_discovery.completion.gateway import CompletionGateway
from app.features.event_discovery.domain.errors import DiscoveryError
from app.features.event_discovery.domain.locations import canonicalize_city
from app.features.event_discovery.domain.models import WebsiteCandidate
from app.features.event_discovery.repository.suggestion_repository import SuggestionRepository
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

SUGGESTION_SYSTEM_PROMPT = """You recommend websites that publish event listings for a city.
Return ONLY a JSON object: {"websites": [{"url": "...", "name": "...", "interest": "..."}]}
- Prefer pages that list many upcoming events (venue calendars, city guides, ticketing listings).
- Every url must be an absolute https URL pointing to the listing page itself.
- "interest" must be one of the interests given by the user.
- Do not include meetup.com or social media.
- Return at most 10 websites."""


def city_key(city: str) -> str:
    return canonicalize_city(city).casefold()


def _parse_websites(raw: Any, interests: list[str]) -> list[WebsiteCandidate]:
    if not isinstance(raw, list):
        return []
    default_interest = interests[0] if interests else ""
    allowed = {i.casefold(): i for i in interests}
    sites = []
    seen = set()
    for item in raw:
        if not isinstance(item, dict):
            continue
        url = str(item.get("url") or "").strip()
        if not url.startswith("http") or url in seen:
            continue
        seen.add(url)
        interest = allowed.get(str(item.get("interest") or "").casefold(), default_interest)
        label = str(item.get("name") or url)[:50]
        sites.append(WebsiteCandidate(url=url, source_label=label, interest=interest))
    return sites


class WebsiteSuggestionService:
    def __init__(
        self,
        gateway: CompletionGateway,
        repository: SuggestionRepository,
        now: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        self.gateway = gateway
        self.repository = repository
        self._now = now

    def _is_fresh(self, updated_at: datetime | None) -> bool:
        if updated_at is None:
            return False
        return self._now() - updated_at < timedelta(days=settings.SITE_SUGGESTION_TTL_DAYS)

    def _payload(self, city: str, interests: list[str]) -> dict[str, Any]:
        return {
            "model": settings.OPENAI_MODEL,
            "temperature": settings.SUGGESTION_TEMPERATURE,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": SUGGESTION_SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": f"City: {city}\nInterests: {', '.join(interests)}",
                },
            ],
        }

    async def suggest(self, city: str, interests: list[str]) -> list[WebsiteCandidate]:
        """Cached suggestions for the city, or a fresh completion on a miss. Never raises."""
        key = city_key(city)

        try:
            cached = await self.repository.get(key)
        except DatabaseError as e:
            logger.warning("Suggestion cache read failed", city=key, error=str(e))
            cached = None

        if cached and self._is_fresh(cached.get("updated_at")):
            sites = _parse_websites(cached.get("websites"), interests)
            logger.info("Website suggestions served from cache", city=key, sites=len(sites))
            return sites

        try:
            response = await self.gateway.invoke(
                self._payload(canonicalize_city(city), interests),
                cache_ttl=settings.COMPLETION_CACHE_TTL_SECONDS,
                allow_fast_fail=True,
            )
        except DiscoveryError as e:
            logger.warning("Website suggestion call failed", city=key, error=str(e))
            return []

        raw = response.get("websites")
        sites = _parse_websites(raw, interests)
        if sites:
            try:
                await self.repository.upsert(
                    key,
                    interests,
                    [{"url": s.url, "name": s.source_label, "interest": s.interest} for s in sites],
                )
            except DatabaseError as e:
                logger.warning("Suggestion cache write failed", city=key, error=str(e))

        logger.info("Website suggestions fetched", city=key, sites=len(sites))
        return sites
