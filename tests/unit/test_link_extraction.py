"""
Tests for listing-page link extraction.
"""

import httpx
import pytest

from app.features.event_discovery.domain.errors import FetchFailed
from app.features.event_discovery.pipeline.links.service import (
    LinkExtractor,
    has_event_signal,
    is_candidate_link,
    parse_event_links,
)

BASE = "https://www.thechapelsf.com/calendar"

LISTING = """
<html><body>
  <a href="/about-us">About</a>
  <a href="/events/sunset-jazz-night">Sunset Jazz Night</a>
  <a href="/events/sunset-jazz-night#tickets">Tickets</a>
  <a href="https://thechapelsf.com/2026/10/31/halloween-ball">Halloween</a>
  <a href="/login">Log in</a>
  <a href="/search?q=jazz">Search</a>
  <a href="/flyers/poster.pdf">Poster</a>
  <a href="https://www.facebook.com/thechapelsf">Facebook</a>
  <a href="https://tickets.other.com/e/123456">Elsewhere</a>
  <a href="mailto:info@thechapelsf.com">Mail</a>
  <a href="#top">Top</a>
  <a href="/calendar">Calendar</a>
  <a href="/">Home</a>
</body></html>
"""


def test_parse_event_links_filters_and_ranks():
    links = parse_event_links(LISTING, BASE, limit=10)

    assert links == [
        "https://www.thechapelsf.com/events/sunset-jazz-night",
        "https://thechapelsf.com/2026/10/31/halloween-ball",
        "https://www.thechapelsf.com/about-us",
    ]


def test_parse_event_links_respects_limit():
    assert len(parse_event_links(LISTING, BASE, limit=1)) == 1


def test_is_candidate_link():
    assert is_candidate_link("https://venue.org/shows/abc", "venue.org")
    assert not is_candidate_link("https://venue.org/", "venue.org")
    assert not is_candidate_link("https://venue.org/cart", "venue.org")
    assert not is_candidate_link("https://other.org/shows/abc", "venue.org")
    assert not is_candidate_link("ftp://venue.org/shows/abc", "venue.org")


def test_has_event_signal():
    assert has_event_signal("https://venue.org/events/jazz")
    assert has_event_signal("https://venue.org/2026-10-31/party")
    assert not has_event_signal("https://venue.org/about")


@pytest.mark.asyncio
async def test_extractor_fetches_listing():
    def handler(request):
        return httpx.Response(200, text=LISTING)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        links = await LinkExtractor(client).extract_event_links(BASE)

    assert links[0] == "https://www.thechapelsf.com/events/sunset-jazz-night"


@pytest.mark.asyncio
async def test_extractor_raises_on_http_error():
    def handler(request):
        return httpx.Response(503, text="down")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(FetchFailed) as exc_info:
            await LinkExtractor(client).extract_event_links(BASE)

    assert exc_info.value.status_code == 503
