"""
Domain models for the event discovery feature.

Lightweight dataclasses shared by the pipeline stages, repositories and the
API layer. Per-run entities (candidates, pages) are discarded when a run
finishes; only ExtractedEvent rows outlive it.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

TIME_SENTINEL = "See website"

_WHITESPACE_RE = re.compile(r"\s+")


class EventSource(str, Enum):
    """How an event record was obtained."""

    STRUCTURED = "structured"
    VALIDATED = "validated"
    RAW_FALLBACK = "raw_fallback"


class DiscoveryStep(str, Enum):
    IDLE = "idle"
    START = "start"
    SEARCH = "search"
    LISTINGS = "listings"
    EVENTS = "events"
    DONE = "done"


STEP_ORDER = list(DiscoveryStep)


def _normalize_key_part(value: str | None) -> str:
    text = _WHITESPACE_RE.sub(" ", (value or "").strip()).casefold()
    return text.replace("\\", "\\\\").replace("|", "\\|")


def canonical_key(title: str | None, date: str | None, location: str | None) -> str:
    """
    Case-normalized identity of an event: title, calendar date and location.

    Whitespace is collapsed, the date is truncated to YYYY-MM-DD and the
    separator is escaped inside fields so distinct triples never collide.
    """
    return "|".join(
        [
            _normalize_key_part(title),
            _normalize_key_part((date or "")[:10]),
            _normalize_key_part(location),
        ]
    )


@dataclass(slots=True, frozen=True)
class DiscoveryRequest:
    """Immutable input of a single discovery run (already clamped)."""

    city: str
    interests: tuple[str, ...]
    vibes: tuple[str, ...] = ()
    limit: int = 20
    sites_limit: int = 12
    results_per_query: int = 8
    interests_limit: int = 3
    skip_ranking: bool = False
    timeout_ms: int = 60_000

    @property
    def cache_key(self) -> str:
        interests = ",".join(sorted(i.casefold() for i in self.interests))
        vibes = ",".join(sorted(v.casefold() for v in self.vibes))
        return f"{self.city.strip().casefold()}|{interests}|{vibes}"


@dataclass(slots=True)
class WebsiteCandidate:
    """A site worth scraping, from web search or cached suggestions."""

    url: str
    source_label: str
    interest: str


@dataclass(slots=True)
class CandidatePage:
    """A fetched page with no structured data that may describe an event."""

    url: str
    title: str
    description: str = ""
    date_hint: str | None = None
    interest: str | None = None


@dataclass(slots=True)
class ExtractedEvent:
    title: str
    description: str
    date: str  # YYYY-MM-DD
    time: str
    location: str
    event_link: str
    image_url: str | None = None
    interests: list[str] = field(default_factory=list)
    vibes: list[str] = field(default_factory=list)
    source: EventSource = EventSource.STRUCTURED

    @property
    def canonical_key(self) -> str:
        return canonical_key(self.title, self.date, self.location)

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "date": self.date,
            "time": self.time,
            "location": self.location,
            "event_link": self.event_link,
            "image_url": self.image_url,
            "interests": list(self.interests),
            "vibes": list(self.vibes),
            "source": self.source.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExtractedEvent":
        return cls(
            title=data["title"],
            description=data.get("description") or "",
            date=str(data["date"])[:10],
            time=data.get("time") or TIME_SENTINEL,
            location=data.get("location") or "",
            event_link=data["event_link"],
            image_url=data.get("image_url"),
            interests=list(data.get("interests") or []),
            vibes=list(data.get("vibes") or []),
            source=EventSource(data.get("source") or EventSource.STRUCTURED.value),
        )


@dataclass(slots=True)
class ScrapingStatus:
    url: str
    source: str
    interest: str
    status: str  # "success" | "failed"

    def to_dict(self) -> dict[str, str]:
        return {
            "url": self.url,
            "source": self.source,
            "interest": self.interest,
            "status": self.status,
        }


@dataclass(slots=True)
class VisitedUrlRecord:
    url: str
    visited_at: float
    found_events: bool


@dataclass(slots=True)
class DiscoveryResult:
    events: list[ExtractedEvent]
    scraping_status: list[ScrapingStatus]
    from_cache: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "events": [e.to_dict() for e in self.events],
            "scrapingStatus": [s.to_dict() for s in self.scraping_status],
        }
