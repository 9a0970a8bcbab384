"""Fakes and HTML builders shared by the unit, integration and e2e tests."""

import asyncio
import json
import time
from datetime import UTC, date, datetime, timedelta
from types import SimpleNamespace

import httpx

from app.features.event_discovery.completion.gateway import CompletionGateway
from app.features.event_discovery.completion.rate_gate import RateGate
from app.features.event_discovery.completion.response_cache import TTLCache
from app.features.event_discovery.domain.models import ExtractedEvent, WebsiteCandidate
from app.features.event_discovery.pipeline.links.service import LinkExtractor
from app.features.event_discovery.pipeline.pages.ledger import VisitedUrlLedger
from app.features.event_discovery.pipeline.pages.service import PageExtractor
from app.features.event_discovery.pipeline.ranking.service import EventRanker
from app.features.event_discovery.pipeline.validation.service import EventValidator
from app.features.event_discovery.services.orchestrator import DiscoveryOrchestrator
from app.features.event_discovery.services.progress import ProgressTracker
from app.features.event_discovery.services.result_cache import DiscoveryResultCache


class FakeRedis:
    def __init__(self):
        self.store: dict[str, str] = {}
        self.enabled = True

    async def set_with_ttl(self, key: str, value: str, ttl_s: int | None = None) -> bool:
        self.store[key] = value
        return True

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def delete(self, key: str) -> bool:
        return self.store.pop(key, None) is not None

    async def delete_prefix(self, prefix: str) -> int:
        keys = [key for key in self.store if key.startswith(prefix)]
        for key in keys:
            del self.store[key]
        return len(keys)

    async def ping(self) -> bool:
        return True


class FakeClock:
    """Monotonic clock that only moves when told to (or when slept on)."""

    def __init__(self, start: float = 1_000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class MonotonicClock:
    """Real clock with the FakeClock interface, for tests bounded by wall time."""

    def __call__(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class FakeEventRepository:
    """In-memory event store keyed by canonical key, same contract as EventRepository."""

    def __init__(self):
        self.rows: dict[str, ExtractedEvent] = {}
        self.upsert_calls: list[int] = []

    async def upsert(self, events: list[ExtractedEvent]) -> int:
        inserted = 0
        for event in events:
            if event.canonical_key not in self.rows:
                self.rows[event.canonical_key] = event
                inserted += 1
        self.upsert_calls.append(len(events))
        return inserted

    async def list_events(self, limit: int = 200, include_past: bool = False) -> list[ExtractedEvent]:
        today = date.today().isoformat()
        events = [e for e in self.rows.values() if include_past or e.date >= today]
        return sorted(events, key=lambda e: (e.date, e.title))[:limit]

    async def clear(self) -> int:
        deleted = len(self.rows)
        self.rows.clear()
        return deleted

    async def delete_before(self, cutoff: date) -> int:
        old = [key for key, e in self.rows.items() if e.date < cutoff.isoformat()]
        for key in old:
            del self.rows[key]
        return len(old)


class FakeRotationRepository:
    def __init__(self):
        self.offsets: dict[tuple[str, str], int] = {}

    async def get_offset(self, city_key: str, signature: str) -> int:
        return self.offsets.get((city_key, signature), 0)

    async def set_offset(self, city_key: str, signature: str, offset: int) -> None:
        self.offsets[(city_key, signature)] = offset


class FakeSuggestionRepository:
    def __init__(self):
        self.rows: dict[str, dict] = {}

    async def get(self, city_key: str) -> dict | None:
        return self.rows.get(city_key)

    async def upsert(self, city_key: str, interests: list[str], websites: list[dict]) -> None:
        self.rows[city_key] = {
            "city": city_key,
            "interests": interests,
            "websites": websites,
            "updated_at": datetime.now(UTC),
        }


class FakeTransport:
    """
    Completion transport with scripted answers.

    Each entry of `script` is returned (dict) or raised (exception) in order;
    once exhausted, `responder(payload)` answers.
    """

    def __init__(self, script=None, responder=None):
        self.script = list(script or [])
        self.responder = responder or default_completion
        self.calls: list[dict] = []

    async def complete(self, payload: dict) -> dict:
        self.calls.append(payload)
        await asyncio.sleep(0)
        if self.script:
            item = self.script.pop(0)
            if isinstance(item, BaseException):
                raise item
            return item
        return self.responder(payload)


def default_completion(payload: dict) -> dict:
    """Validation reports nothing; ranking returns no order (fast-path fallback)."""
    if "tools" in payload:
        return {"validations": []}
    return {"events": []}


class FakeSearch:
    def __init__(self, sites: list[WebsiteCandidate]):
        self.sites = sites
        self.calls: list[dict] = []

    async def find_candidate_sites(self, interests, city, results_per_query=8, interests_limit=3, deadline=None):
        self.calls.append({"interests": list(interests), "city": city, "deadline": deadline})
        return list(self.sites)


def tomorrow() -> str:
    return (date.today() + timedelta(days=1)).isoformat()


def days_ahead(days: int) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


def make_event(title="Sunset Jazz Night", event_date=None, location="The Chapel, San Francisco", **kwargs):
    return ExtractedEvent(
        title=title,
        description=kwargs.pop("description", ""),
        date=event_date or tomorrow(),
        time=kwargs.pop("time", "7:00 PM"),
        location=location,
        event_link=kwargs.pop("event_link", "https://www.thechapelsf.com/events/sunset-jazz"),
        **kwargs,
    )


def listing_html(links: list[str]) -> str:
    anchors = "\n".join(f'<a href="{link}">{link}</a>' for link in links)
    return f"""<html><head><title>Upcoming events</title></head>
<body><nav><a href="/login">Log in</a><a href="https://www.instagram.com/venue">IG</a></nav>
{anchors}
</body></html>"""


def event_page_html(
    name: str,
    start: str,
    venue: str = "Dolores Park",
    locality: str = "San Francisco",
    description: str = "",
) -> str:
    data = {
        "@context": "https://schema.org",
        "@type": "Event",
        "name": name,
        "startDate": start,
        "description": description,
        "location": {
            "@type": "Place",
            "name": venue,
            "address": {"@type": "PostalAddress", "addressLocality": locality},
        },
    }
    return f"""<html><head><title>{name}</title>
<script type="application/ld+json">{json.dumps(data)}</script></head>
<body><h1>{name}</h1></body></html>"""


def plain_page_html(title: str, description: str = "", time_attr: str | None = None) -> str:
    time_tag = f'<time datetime="{time_attr}">{time_attr}</time>' if time_attr else ""
    return f"""<html><head><title>{title}</title>
<meta name="description" content="{description}"></head>
<body><h1>{title}</h1>{time_tag}</body></html>"""


class PageServer:
    """httpx.MockTransport handler serving canned HTML by URL."""

    def __init__(self, pages: dict[str, str], on_fetch=None):
        self.pages = pages
        self.on_fetch = on_fetch
        self.requests: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if self.on_fetch:
            self.on_fetch(url)
        html = self.pages.get(url)
        if html is None:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, text=html, headers={"Content-Type": "text/html"})


def build_harness(pages, sites, transport=None, clock=None, server=None):
    """
    An orchestrator over canned pages, a canned search and a scripted
    completion transport, with every collaborator exposed for assertions.
    """
    clock = clock or FakeClock()
    server = server or PageServer(pages)
    http = httpx.AsyncClient(transport=httpx.MockTransport(server))
    transport = transport or FakeTransport()

    gateway = CompletionGateway(
        transport=transport,
        rate_gate=RateGate(0, 300, clock=clock, sleep=clock.sleep),
        cache=TTLCache(600, clock=clock),
        sleep=clock.sleep,
    )
    ledger = VisitedUrlLedger(24 * 3600, clock=clock)
    search = FakeSearch(sites)
    events = FakeEventRepository()
    rotation = FakeRotationRepository()

    orchestrator = DiscoveryOrchestrator(
        search=search,
        suggestions=None,
        link_extractor=LinkExtractor(http),
        page_extractor=PageExtractor(http, ledger),
        validator=EventValidator(gateway),
        ranker=EventRanker(gateway),
        result_cache=DiscoveryResultCache(TTLCache(600, clock=clock)),
        progress=ProgressTracker(),
        event_repository=events,
        rotation_repository=rotation,
        clock=clock,
    )
    return SimpleNamespace(
        orchestrator=orchestrator,
        http=http,
        clock=clock,
        server=server,
        transport=transport,
        gateway=gateway,
        ledger=ledger,
        search=search,
        events=events,
        rotation=rotation,
    )
