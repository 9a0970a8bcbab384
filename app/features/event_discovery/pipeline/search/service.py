"""
Web search client (Brave Search API).

Turns the rotated interests for a city into a deduplicated list of
candidate websites. Individual query failures are logged and skipped.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import date
from urllib.parse import urlparse

import httpx

from app.config import settings
from app.features.event_discovery.domain.deadline import Deadline
from app.features.event_discovery.domain.errors import (
    ConfigurationMissing,
    DiscoveryError,
    FetchFailed,
    FetchTimeout,
)
from app.features.event_discovery.domain.models import WebsiteCandidate
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

MAX_RETRIES = 2
BACKOFF_FACTOR = 1.0
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}

QUERY_TEMPLATES = [
    "{interest} events {city} {month_day}",
    "{interest} {city} this week",
    "upcoming {interest} {city} calendar",
    "{city} {interest} schedule {weekday}",
]

EXCLUDED_DOMAINS = ("meetup.com",)


def build_queries(interest: str, city: str, today: date, count: int = 2) -> list[str]:
    """Templated queries for one interest, e.g. "Yoga events San Francisco Oct 18"."""
    values = {
        "interest": interest,
        "city": city,
        "month_day": f"{today:%b} {today.day}",
        "weekday": f"{today:%A}",
    }
    return [template.format(**values) for template in QUERY_TEMPLATES[:count]]


def is_excluded(url: str) -> bool:
    host = (urlparse(url).hostname or "").lower()
    return any(host == domain or host.endswith("." + domain) for domain in EXCLUDED_DOMAINS)


class BraveSearchClient:
    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        today: Callable[[], date] = date.today,
    ):
        self._http = http_client
        self._api_key = api_key
        self._sleep = sleep
        self._today = today

    @property
    def api_key(self) -> str:
        key = self._api_key or settings.BRAVE_API_KEY
        if not key:
            raise ConfigurationMissing(["BRAVE_API_KEY"])
        return key

    async def _request_with_retry(self, params: dict, timeout: float) -> httpx.Response:
        headers = {"Accept": "application/json", "X-Subscription-Token": self.api_key}
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                response = await self._http.get(
                    settings.BRAVE_SEARCH_URL,
                    params=params,
                    headers=headers,
                    timeout=timeout,
                )
            except httpx.TimeoutException as e:
                raise FetchTimeout(f"Search timed out: {e}") from e
            except httpx.RequestError as e:
                raise FetchFailed(f"Search request failed: {e}") from e

            if response.status_code in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                backoff = BACKOFF_FACTOR * (2 ** (attempt - 1))
                logger.debug(
                    "Search API retrying request",
                    attempt=attempt,
                    status_code=response.status_code,
                    backoff_seconds=backoff,
                )
                await self._sleep(backoff)
                continue
            return response
        raise FetchFailed("Search retry loop exhausted")

    async def search(self, query: str, count: int, timeout: float | None = None) -> list[dict]:
        """Run one web search and return the raw result entries (url, title)."""
        if timeout is None:
            timeout = settings.SEARCH_TIMEOUT_SECONDS
        response = await self._request_with_retry({"q": query, "count": count}, timeout)
        if response.status_code != 200:
            raise FetchFailed(
                f"Search returned HTTP {response.status_code}", status_code=response.status_code
            )
        data = response.json()
        return (data.get("web") or {}).get("results") or []

    async def find_candidate_sites(
        self,
        interests: list[str],
        city: str,
        results_per_query: int = 8,
        interests_limit: int = 3,
        deadline: Deadline | None = None,
    ) -> list[WebsiteCandidate]:
        """
        Search the first interests_limit interests (already rotation-ordered)
        and return candidate websites deduplicated by URL.

        With a deadline, no query is started once it has expired and each
        query's timeout is capped by the remaining budget.

        Raises:
            ConfigurationMissing: no search API key configured
        """
        # Fail before any network traffic when the key is absent
        _ = self.api_key

        seen: set[str] = set()
        candidates: list[WebsiteCandidate] = []
        queries = [
            (interest, query)
            for interest in interests[:interests_limit]
            for query in build_queries(interest, city, self._today(), settings.QUERIES_PER_INTEREST)
        ]

        for issued, (interest, query) in enumerate(queries):
            if issued:
                delay = settings.SEARCH_DELAY_SECONDS
                await self._sleep(deadline.cap(delay) if deadline else delay)

            timeout = deadline.cap(settings.SEARCH_TIMEOUT_SECONDS) if deadline else None
            if timeout is not None and timeout <= 0:
                logger.info("Search stopped, run budget spent", city=city, skipped=len(queries) - issued)
                break

            try:
                results = await self.search(query, results_per_query, timeout=timeout)
            except DiscoveryError as e:
                logger.warning("Search query failed", query=query, error=str(e))
                continue

            for result in results:
                url = (result.get("url") or "").strip()
                if not url.startswith("http") or url in seen or is_excluded(url):
                    continue
                seen.add(url)
                title = (result.get("title") or url).strip()
                candidates.append(WebsiteCandidate(url=url, source_label=title[:50], interest=interest))

        logger.info(
            "Search complete",
            city=city,
            interests=interests[:interests_limit],
            sites=len(candidates),
        )
        return candidates
