"""
Process-wide wiring of the discovery components.

The rate gate, caches, ledger and progress record are shared by every run in
the process, so the orchestrator is built once and reused.
"""

import httpx

from app.config import settings
from app.features.event_discovery.completion.gateway import CompletionGateway
from app.features.event_discovery.completion.openai_transport import OpenAICompletionTransport
from app.features.event_discovery.completion.rate_gate import RateGate
from app.features.event_discovery.completion.response_cache import TTLCache
from app.features.event_discovery.pipeline.http import create_http_client
from app.features.event_discovery.pipeline.links.service import LinkExtractor
from app.features.event_discovery.pipeline.pages.ledger import VisitedUrlLedger
from app.features.event_discovery.pipeline.pages.service import PageExtractor
from app.features.event_discovery.pipeline.ranking.service import EventRanker
from app.features.event_discovery.pipeline.search.service import BraveSearchClient
from app.features.event_discovery.pipeline.search.suggestions import WebsiteSuggestionService
from app.features.event_discovery.pipeline.validation.service import EventValidator
from app.features.event_discovery.repository.suggestion_repository import SuggestionRepository
from app.features.event_discovery.services.orchestrator import DiscoveryOrchestrator
from app.features.event_discovery.services.progress import ProgressTracker
from app.features.event_discovery.services.result_cache import DiscoveryResultCache
from app.services.redis_client import fast_redis

_orchestrator: DiscoveryOrchestrator | None = None
_http_client: httpx.AsyncClient | None = None
_transport: OpenAICompletionTransport | None = None


def build_orchestrator(http_client: httpx.AsyncClient) -> DiscoveryOrchestrator:
    global _transport

    _transport = OpenAICompletionTransport()
    gateway = CompletionGateway(
        transport=_transport,
        rate_gate=RateGate(
            min_interval_seconds=settings.OPENAI_MIN_INTERVAL_MS / 1000,
            cooldown_seconds=settings.OPENAI_COOLDOWN_SECONDS,
        ),
        cache=TTLCache(settings.COMPLETION_CACHE_TTL_SECONDS),
        max_retries=settings.OPENAI_MAX_RETRIES,
        backoff_base_seconds=settings.OPENAI_BACKOFF_BASE_SECONDS,
        backoff_cap_seconds=settings.OPENAI_BACKOFF_CAP_SECONDS,
    )
    ledger = VisitedUrlLedger(settings.VISITED_URL_RETENTION_HOURS * 3600)

    return DiscoveryOrchestrator(
        search=BraveSearchClient(http_client),
        suggestions=WebsiteSuggestionService(gateway, SuggestionRepository),
        link_extractor=LinkExtractor(http_client),
        page_extractor=PageExtractor(http_client, ledger),
        validator=EventValidator(gateway),
        ranker=EventRanker(gateway),
        result_cache=DiscoveryResultCache(
            TTLCache(settings.DISCOVERY_CACHE_TTL_SECONDS),
            redis=fast_redis if fast_redis.enabled else None,
        ),
        progress=ProgressTracker(),
    )


def get_orchestrator() -> DiscoveryOrchestrator:
    """FastAPI dependency returning the shared orchestrator."""
    global _orchestrator, _http_client
    if _orchestrator is None:
        _http_client = create_http_client()
        _orchestrator = build_orchestrator(_http_client)
    return _orchestrator


async def shutdown_orchestrator() -> None:
    """Cancel background work and release outbound clients."""
    global _orchestrator, _http_client, _transport
    if _orchestrator is not None:
        await _orchestrator.aclose()
        _orchestrator = None
    if _transport is not None:
        await _transport.aclose()
        _transport = None
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None
