"""
Discovery orchestrator.

Runs one discovery end to end within the caller's time budget:

    cache -> rotate interests -> search (+ cached suggestions)
          -> listings -> visited filter -> pages -> validation
          -> early persist -> ranking -> persist -> cache

The priority batch of sites is processed synchronously; the remaining sites
are handed to a detached background task that persists its results without
blocking the caller and without touching the result cache.
"""

import asyncio
import time
from collections.abc import Callable

from app.config import settings
from app.db.helpers import DatabaseError
from app.features.event_discovery.domain.deadline import Deadline
from app.features.event_discovery.domain.errors import ConfigurationMissing, DiscoveryError
from app.features.event_discovery.domain.locations import canonicalize_city
from app.features.event_discovery.domain.models import (
    DiscoveryRequest,
    DiscoveryResult,
    DiscoveryStep,
    ExtractedEvent,
    ScrapingStatus,
    WebsiteCandidate,
)
from app.features.event_discovery.pipeline.links.service import LinkExtractor
from app.features.event_discovery.pipeline.pages.service import PageExtractor
from app.features.event_discovery.pipeline.ranking.service import EventRanker
from app.features.event_discovery.pipeline.search.service import BraveSearchClient
from app.features.event_discovery.pipeline.search.suggestions import WebsiteSuggestionService
from app.features.event_discovery.pipeline.validation.filters import filter_events
from app.features.event_discovery.pipeline.validation.service import EventValidator
from app.features.event_discovery.repository.event_repository import EventRepository
from app.features.event_discovery.repository.rotation_repository import RotationRepository
from app.features.event_discovery.services.progress import ProgressTracker
from app.features.event_discovery.services.result_cache import DiscoveryResultCache
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


def rotate(items: list[str], offset: int) -> list[str]:
    if not items:
        return items
    k = offset % len(items)
    return items[k:] + items[:k]


def interest_signature(interests: list[str]) -> str:
    return ",".join(sorted({i.strip().casefold() for i in interests}))


class DiscoveryOrchestrator:
    def __init__(
        self,
        *,
        search: BraveSearchClient,
        suggestions: WebsiteSuggestionService | None,
        link_extractor: LinkExtractor,
        page_extractor: PageExtractor,
        validator: EventValidator,
        ranker: EventRanker,
        result_cache: DiscoveryResultCache,
        progress: ProgressTracker,
        event_repository=EventRepository,
        rotation_repository=RotationRepository,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.search = search
        self.suggestions = suggestions
        self.link_extractor = link_extractor
        self.page_extractor = page_extractor
        self.validator = validator
        self.ranker = ranker
        self.result_cache = result_cache
        self.progress = progress
        self.events = event_repository
        self.rotation = rotation_repository
        self._clock = clock
        self._background: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def discover(self, request: DiscoveryRequest) -> DiscoveryResult:
        """
        Run a discovery and return the priority batch's events.

        Raises:
            ConfigurationMissing: API credentials are not configured
        """
        missing = settings.missing_credentials()
        if missing:
            logger.error("Discovery refused, configuration missing", missing=missing)
            raise ConfigurationMissing(missing)

        cached = await self.result_cache.get(request.cache_key)
        if cached is not None:
            logger.info("Discovery served from cache", city=request.city, events=len(cached.events))
            return DiscoveryResult(
                events=list(cached.events),
                scraping_status=list(cached.scraping_status),
                from_cache=True,
            )

        started = self._clock()
        deadline = Deadline(request.timeout_ms / 1000, clock=self._clock)
        self.progress.start()
        self.page_extractor.ledger.purge_expired()
        logger.info(
            "Discovery started",
            city=request.city,
            interests=list(request.interests),
            timeout_ms=request.timeout_ms,
        )

        interests = list(request.interests) or list(settings.DEFAULT_INTERESTS)
        rotated = await self._rotate_interests(request.city, interests, request.interests_limit)

        self.progress.advance(DiscoveryStep.SEARCH)
        sites = await self._candidate_sites(request, rotated, deadline)
        self.progress.set_count("brave_sites", len(sites))

        priority = sites[: request.sites_limit]
        remaining = sites[request.sites_limit :]
        self.progress.set_sites(priority)

        events, statuses = await self._run_batch(request, priority, deadline, track=True)
        result = DiscoveryResult(events=events, scraping_status=statuses)

        await self.result_cache.set(request.cache_key, result)
        self.progress.advance(DiscoveryStep.DONE)

        if remaining:
            self._spawn_background(request, remaining)

        logger.info(
            "Discovery complete",
            city=request.city,
            events=len(events),
            sites=len(priority),
            deferred_sites=len(remaining),
            elapsed_ms=round((self._clock() - started) * 1000),
        )
        return result

    async def list_events(self, limit: int = 200, include_past: bool = False) -> list[ExtractedEvent]:
        return await self.events.list_events(limit=limit, include_past=include_past)

    async def clear_events(self) -> int:
        """Administrative reset: stored events, cached results and the visited-URL ledger."""
        deleted = await self.events.clear()
        await self.result_cache.clear()
        self.page_extractor.ledger.clear()
        return deleted

    async def wait_for_background(self) -> None:
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def aclose(self) -> None:
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        self._background.clear()

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _rotate_interests(self, city: str, interests: list[str], step: int) -> list[str]:
        """Rotate by the persisted offset and advance it for the next run."""
        city_key = canonicalize_city(city).casefold()
        signature = interest_signature(interests)
        try:
            offset = await self.rotation.get_offset(city_key, signature)
        except DatabaseError as e:
            logger.warning("Rotation offset unavailable", city=city_key, error=str(e))
            return interests

        rotated = rotate(interests, offset)
        try:
            await self.rotation.set_offset(city_key, signature, (offset + step) % len(interests))
        except DatabaseError as e:
            logger.warning("Rotation offset not saved", city=city_key, error=str(e))
        return rotated

    async def _candidate_sites(
        self, request: DiscoveryRequest, interests: list[str], deadline: Deadline
    ) -> list[WebsiteCandidate]:
        """Search results first, then cached suggestions, deduplicated by URL."""

        async def no_suggestions() -> list[WebsiteCandidate]:
            return []

        suggestion_call = (
            asyncio.wait_for(
                self.suggestions.suggest(request.city, interests[: request.interests_limit]),
                timeout=deadline.remaining(),
            )
            if self.suggestions is not None and settings.SITE_SUGGESTIONS_ENABLED
            else no_suggestions()
        )
        search_result, suggested = await asyncio.gather(
            self.search.find_candidate_sites(
                interests,
                request.city,
                results_per_query=request.results_per_query,
                interests_limit=request.interests_limit,
                deadline=deadline,
            ),
            suggestion_call,
            return_exceptions=True,
        )

        if isinstance(search_result, ConfigurationMissing):
            raise search_result
        if isinstance(search_result, BaseException):
            logger.warning("Search stage failed", error=str(search_result))
            search_result = []
        if isinstance(suggested, BaseException):
            logger.warning("Suggestion stage failed", error=str(suggested) or type(suggested).__name__)
            suggested = []

        seen: set[str] = set()
        merged = []
        for site in [*search_result, *suggested]:
            if site.url in seen:
                continue
            seen.add(site.url)
            merged.append(site)
        return merged

    async def _collect_links(
        self,
        sites: list[WebsiteCandidate],
        deadline: Deadline,
        track: bool,
    ) -> tuple[list[tuple[str, str]], list[ScrapingStatus]]:
        semaphore = asyncio.Semaphore(settings.PAGE_FETCH_CONCURRENCY)

        async def fetch(site: WebsiteCandidate) -> tuple[list[str], ScrapingStatus | None]:
            async with semaphore:
                budget = deadline.cap(settings.LISTING_FETCH_TIMEOUT_SECONDS)
                if budget <= 0:
                    return [], None
                try:
                    links = await asyncio.wait_for(
                        self.link_extractor.extract_event_links(site.url), timeout=budget
                    )
                    status = "success"
                except (DiscoveryError, TimeoutError) as e:
                    logger.info("Listing fetch failed", url=site.url, error=str(e) or "timeout")
                    links, status = [], "failed"

                if track:
                    self.progress.mark_site(site.url, status)
                return links, ScrapingStatus(
                    url=site.url, source=site.source_label, interest=site.interest, status=status
                )

        results = await asyncio.gather(*(fetch(site) for site in sites))

        seen: set[str] = set()
        links: list[tuple[str, str]] = []
        statuses: list[ScrapingStatus] = []
        for site, (site_links, status) in zip(sites, results, strict=True):
            if status is not None:
                statuses.append(status)
            for link in site_links:
                if link not in seen:
                    seen.add(link)
                    links.append((link, site.interest))
        return links, statuses

    async def _persist(self, events: list[ExtractedEvent], stage: str) -> int:
        if not events:
            return 0
        try:
            return await self.events.upsert(events)
        except DatabaseError as e:
            logger.error("Persisting events failed", stage=stage, events=len(events), error=str(e))
            return 0

    async def _run_batch(
        self,
        request: DiscoveryRequest,
        sites: list[WebsiteCandidate],
        deadline: Deadline,
        track: bool,
    ) -> tuple[list[ExtractedEvent], list[ScrapingStatus]]:
        """Listings through persistence for one batch of sites."""
        if track:
            self.progress.advance(DiscoveryStep.LISTINGS)
        links, statuses = await self._collect_links(sites, deadline, track)

        ledger = self.page_extractor.ledger
        fresh = [(url, interest) for url, interest in links if not ledger.should_skip(url)]
        fresh = fresh[: request.limit]
        if track:
            self.progress.set_count("event_links", len(links))
            self.progress.advance(DiscoveryStep.EVENTS)

        page_batch = await self.page_extractor.extract_many(fresh, request.city, deadline)
        if track:
            self.progress.set_count("candidate_pages", len(page_batch.candidates))

        structured = page_batch.events
        default_vibes = [request.vibes[0]] if request.vibes else []
        for event in structured:
            if not event.vibes:
                event.vibes = list(default_vibes)

        early = filter_events(structured, request.city)[: settings.EARLY_PERSIST_COUNT]
        await self._persist(early, stage="early")

        validated = await self.validator.validate(page_batch.candidates, request, deadline)
        for event in validated:
            if not event.vibes:
                event.vibes = list(default_vibes)

        final = await self.ranker.consolidate(structured + validated, request, deadline)
        if track:
            self.progress.set_count("extracted_events", len(final))

        await self._persist(final, stage="final")
        return final, statuses

    # ------------------------------------------------------------------
    # Background continuation
    # ------------------------------------------------------------------

    def _spawn_background(self, request: DiscoveryRequest, sites: list[WebsiteCandidate]) -> None:
        task = asyncio.create_task(self._continue_in_background(request, sites))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        logger.info("Background continuation scheduled", city=request.city, sites=len(sites))

    async def _continue_in_background(
        self, request: DiscoveryRequest, sites: list[WebsiteCandidate]
    ) -> None:
        deadline = Deadline(settings.BACKGROUND_BUDGET_SECONDS, clock=self._clock)
        self.progress.background = True
        persisted = 0
        try:
            for start in range(0, len(sites), request.sites_limit):
                if deadline.expired:
                    logger.info("Background continuation out of budget", city=request.city)
                    break
                chunk = sites[start : start + request.sites_limit]
                events, _ = await self._run_batch(request, chunk, deadline, track=False)
                persisted += len(events)
            logger.info("Background continuation finished", city=request.city, events=persisted)
        except asyncio.CancelledError:
            logger.info("Background continuation cancelled", city=request.city)
            raise
        except Exception:
            # Detached task: nothing awaits it, so the failure is only logged
            logger.exception("Background continuation failed", city=request.city)
        finally:
            self.progress.background = bool(self._background - {asyncio.current_task()})
