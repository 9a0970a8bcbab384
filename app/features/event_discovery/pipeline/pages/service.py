"""
Event page extraction.

Pages carrying schema.org Event JSON-LD yield structured events directly.
Pages without it become CandidatePage records for the validator, provided
they have a usable title.
"""

import asyncio
import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from html import unescape
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from app.config import settings
from app.features.event_discovery.domain.deadline import Deadline
from app.features.event_discovery.domain.errors import DiscoveryError
from app.features.event_discovery.domain.models import (
    TIME_SENTINEL,
    CandidatePage,
    EventSource,
    ExtractedEvent,
)
from app.features.event_discovery.domain.taxonomy import classify_interests
from app.features.event_discovery.pipeline.http import fetch_html
from app.features.event_discovery.pipeline.pages.ledger import VisitedUrlLedger
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

MAX_DESCRIPTION_LENGTH = 500
URL_DATE_RE = re.compile(r"(20\d{2})[/-](\d{1,2})[/-](\d{1,2})")


@dataclass(slots=True)
class PageExtraction:
    events: list[ExtractedEvent] = field(default_factory=list)
    candidate: CandidatePage | None = None


@dataclass(slots=True)
class PageBatch:
    events: list[ExtractedEvent] = field(default_factory=list)
    candidates: list[CandidatePage] = field(default_factory=list)
    attempted: int = 0
    failed: int = 0


def clean_text(value) -> str:
    """Decode entities, drop markup and collapse whitespace."""
    if not value:
        return ""
    text = unescape(str(value))
    if "<" in text:
        text = BeautifulSoup(text, "html.parser").get_text(" ")
    return re.sub(r"\s+", " ", text).strip()


def parse_datetime(value) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return date_parser.parse(value)
    except (ValueError, OverflowError):
        return None


_TIME_PART_RE = re.compile(r"\d:\d|T\d|\d\s*[ap]\.?m\b", re.IGNORECASE)


def format_time(value: str, parsed: datetime) -> str:
    """12-hour clock time, or the sentinel when the source has no time part."""
    if not _TIME_PART_RE.search(value):
        return TIME_SENTINEL
    return parsed.strftime("%I:%M %p").lstrip("0")


def jsonld_items(soup: BeautifulSoup) -> list[dict]:
    """Every JSON-LD object on the page, with @graph containers flattened."""
    items: list[dict] = []
    for script in soup.select('script[type="application/ld+json"]'):
        try:
            data = json.loads(script.string or script.get_text() or "")
        except (json.JSONDecodeError, TypeError):
            continue

        entries = data if isinstance(data, list) else [data]
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            graph = entry.get("@graph")
            if isinstance(graph, list):
                items.extend(item for item in graph if isinstance(item, dict))
            else:
                items.append(entry)
    return items


def is_event_item(item: dict) -> bool:
    types = item.get("@type")
    if isinstance(types, str):
        types = [types]
    if not isinstance(types, list):
        return False
    return any(isinstance(t, str) and t.endswith("Event") for t in types)


def _location_text(location, city: str) -> str:
    if isinstance(location, list):
        location = location[0] if location else None
    if isinstance(location, str):
        return clean_text(location) or city
    if not isinstance(location, dict):
        return city

    if location.get("@type") == "VirtualLocation":
        return "Online"

    name = clean_text(location.get("name"))
    address = location.get("address")
    locality = ""
    if isinstance(address, dict):
        locality = clean_text(address.get("addressLocality"))
    elif isinstance(address, str):
        locality = clean_text(address)

    if name and locality:
        return name if locality.casefold() in name.casefold() else f"{name}, {locality}"
    if locality:
        return locality
    if name:
        return f"{name}, {city}"
    return city


def _image_url(image, base_url: str) -> str | None:
    if isinstance(image, list):
        image = image[0] if image else None
    if isinstance(image, dict):
        image = image.get("url")
    if isinstance(image, str) and image.strip():
        return urljoin(base_url, image.strip())
    return None


def event_from_jsonld(
    item: dict, page_url: str, city: str, fallback_interest: str | None
) -> ExtractedEvent | None:
    """Convert one schema.org Event object; None when title or start date is unusable."""
    title = clean_text(item.get("name"))
    start = item.get("startDate")
    parsed = parse_datetime(start)
    if not title or parsed is None:
        return None

    description = clean_text(item.get("description"))[:MAX_DESCRIPTION_LENGTH]
    link = item.get("url")
    event_link = urljoin(page_url, link.strip()) if isinstance(link, str) and link.strip() else page_url

    return ExtractedEvent(
        title=title,
        description=description,
        date=parsed.date().isoformat(),
        time=format_time(start, parsed),
        location=_location_text(item.get("location"), city),
        event_link=event_link,
        image_url=_image_url(item.get("image"), page_url),
        interests=classify_interests(
            f"{title} {description}", fallback=[fallback_interest] if fallback_interest else []
        ),
        source=EventSource.STRUCTURED,
    )


def _date_hint(soup: BeautifulSoup, url: str) -> str | None:
    time_tag = soup.find("time", attrs={"datetime": True})
    if time_tag:
        parsed = parse_datetime(time_tag["datetime"])
        if parsed:
            return parsed.date().isoformat()

    meta = soup.find("meta", attrs={"property": "event:start_time"})
    if meta and meta.get("content"):
        parsed = parse_datetime(meta["content"])
        if parsed:
            return parsed.date().isoformat()

    match = URL_DATE_RE.search(url)
    if match:
        year, month, day = (int(part) for part in match.groups())
        try:
            return datetime(year, month, day).date().isoformat()
        except ValueError:
            return None
    return None


def candidate_from_html(soup: BeautifulSoup, url: str, interest: str | None) -> CandidatePage | None:
    title_tag = soup.find("h1") or soup.select_one('[class*="title"]') or soup.find("title")
    title = clean_text(title_tag.get_text(" ")) if title_tag else ""
    if len(title) <= 3:
        return None

    description = ""
    meta = soup.find("meta", attrs={"name": "description"}) or soup.find(
        "meta", attrs={"property": "og:description"}
    )
    if meta and meta.get("content"):
        description = clean_text(meta["content"])
    else:
        block = soup.select_one('[class*="description"]')
        if block:
            description = clean_text(block.get_text(" "))
    description = description[:300]

    return CandidatePage(
        url=url,
        title=title,
        description=description,
        date_hint=_date_hint(soup, url),
        interest=interest,
    )


def extract_from_html(html: str, url: str, city: str, interest: str | None) -> PageExtraction:
    soup = BeautifulSoup(html, "html.parser")

    events = []
    for item in jsonld_items(soup):
        if not is_event_item(item):
            continue
        event = event_from_jsonld(item, url, city, interest)
        if event:
            events.append(event)

    if events:
        return PageExtraction(events=events)
    return PageExtraction(candidate=candidate_from_html(soup, url, interest))


class PageExtractor:
    def __init__(self, http_client: httpx.AsyncClient, ledger: VisitedUrlLedger):
        self._http = http_client
        self.ledger = ledger

    async def extract(
        self, url: str, city: str, interest: str | None = None, timeout: float | None = None
    ) -> PageExtraction:
        """
        Fetch one page and extract events or a candidate.

        Raises:
            FetchTimeout, FetchFailed: the page could not be fetched
        """
        html = await fetch_html(self._http, url, timeout or settings.PAGE_FETCH_TIMEOUT_SECONDS)
        return extract_from_html(html, url, city, interest)

    async def extract_many(
        self, links: list[tuple[str, str]], city: str, deadline: Deadline
    ) -> PageBatch:
        """
        Extract (url, interest) pairs with a bounded worker pool.

        Links not started before the deadline are skipped. Every attempted URL
        is recorded in the ledger whether or not it produced events.
        """
        semaphore = asyncio.Semaphore(settings.PAGE_FETCH_CONCURRENCY)
        batch = PageBatch()

        async def worker(url: str, interest: str) -> None:
            async with semaphore:
                timeout = deadline.cap(settings.PAGE_FETCH_TIMEOUT_SECONDS)
                if timeout <= 0:
                    return
                batch.attempted += 1
                try:
                    result = await self.extract(url, city, interest, timeout=timeout)
                except DiscoveryError as e:
                    batch.failed += 1
                    self.ledger.record(url, found_events=False)
                    logger.debug("Page fetch failed", url=url, error=str(e))
                    return

                self.ledger.record(url, found_events=bool(result.events))
                batch.events.extend(result.events)
                if result.candidate:
                    batch.candidates.append(result.candidate)

        await asyncio.gather(*(worker(url, interest) for url, interest in links))

        logger.info(
            "Pages extracted",
            attempted=batch.attempted,
            failed=batch.failed,
            structured_events=len(batch.events),
            candidates=len(batch.candidates),
        )
        return batch
