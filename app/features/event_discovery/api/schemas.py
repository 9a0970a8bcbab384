"""
Event discovery API request/response models.

Numeric request limits are clamped server-side rather than rejected, so old
clients sending out-of-range values still get a run.
"""

from pydantic import BaseModel, ConfigDict, Field

from app.config import settings
from app.features.event_discovery.domain.models import DiscoveryRequest


def clamp(value: int | None, bounds: tuple[int, int], default: int) -> int:
    low, high = bounds
    if value is None:
        value = default
    return max(low, min(high, int(value)))


def _ordered_unique(values: list[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    result = []
    for value in values:
        cleaned = value.strip()
        if cleaned and cleaned.casefold() not in seen:
            seen.add(cleaned.casefold())
            result.append(cleaned)
    return tuple(result)


class DiscoverEventsRequest(BaseModel):
    """Request body of POST /discover-events."""

    model_config = ConfigDict(populate_by_name=True)

    city: str = Field(..., min_length=1, max_length=100, description="Target city")
    interests: list[str] = Field(default_factory=list, description="Ordered interests")
    vibes: list[str] = Field(default_factory=list, description="Preferred vibes")
    limit: int | None = Field(default=None, description="Max event pages to fetch")
    sites_limit: int | None = Field(default=None, alias="sitesLimit")
    results_per_query: int | None = Field(default=None, alias="resultsPerQuery")
    interests_limit: int | None = Field(default=None, alias="interestsLimit")
    skip_ranking: bool = Field(default=False, alias="skipRanking")
    timeout_ms: int | None = Field(default=None, alias="timeoutMs")

    def to_domain(self) -> DiscoveryRequest:
        return DiscoveryRequest(
            city=self.city.strip(),
            interests=_ordered_unique(self.interests),
            vibes=_ordered_unique(self.vibes),
            limit=clamp(self.limit, settings.REQUEST_LIMIT_BOUNDS, 20),
            sites_limit=clamp(self.sites_limit, settings.REQUEST_SITES_LIMIT_BOUNDS, 12),
            results_per_query=clamp(
                self.results_per_query, settings.REQUEST_RESULTS_PER_QUERY_BOUNDS, 8
            ),
            interests_limit=clamp(self.interests_limit, settings.REQUEST_INTERESTS_LIMIT_BOUNDS, 3),
            skip_ranking=self.skip_ranking,
            timeout_ms=clamp(self.timeout_ms, settings.REQUEST_TIMEOUT_MS_BOUNDS, 60_000),
        )


class EventOut(BaseModel):
    title: str
    description: str
    date: str
    time: str
    location: str
    event_link: str
    image_url: str | None = None
    interests: list[str] = Field(default_factory=list)
    vibes: list[str] = Field(default_factory=list)
    source: str


class ScrapingStatusOut(BaseModel):
    url: str
    source: str
    interest: str
    status: str


class DiscoverEventsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    events: list[EventOut]
    scraping_status: list[ScrapingStatusOut] = Field(alias="scrapingStatus")


class ProgressCounts(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    brave_sites: int = Field(alias="braveSites")
    event_links: int = Field(alias="eventLinks")
    candidate_pages: int = Field(alias="candidatePages")
    extracted_events: int = Field(alias="extractedEvents")


class ProgressResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    step: str
    sites: list[dict[str, str]]
    counts: ProgressCounts
    background: bool = False
    updated_at: str | None = Field(default=None, alias="updatedAt")


class EventListResponse(BaseModel):
    events: list[EventOut]
    count: int


class ClearEventsResponse(BaseModel):
    deleted: int
