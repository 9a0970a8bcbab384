"""
Tests for the discovery orchestrator's stages and background continuation.
"""

from unittest.mock import AsyncMock

import pytest

from app.config import settings
from app.db.helpers import DatabaseError
from app.features.event_discovery.domain.errors import ConfigurationMissing
from app.features.event_discovery.domain.models import DiscoveryRequest, WebsiteCandidate
from app.features.event_discovery.services.orchestrator import interest_signature, rotate
from tests.helpers import days_ahead, event_page_html, listing_html

JAZZ_SITE = "https://sfjazz.org/calendar"
DANCE_SITE = "https://odcdance.org/events"


def two_site_pages():
    return {
        JAZZ_SITE: listing_html(["/events/late-night-jazz"]),
        "https://sfjazz.org/events/late-night-jazz": event_page_html(
            "Late Night Jazz Jam", f"{days_ahead(2)}T22:00:00", venue="SFJAZZ Center"
        ),
        DANCE_SITE: listing_html(["/events/fall-showcase"]),
        "https://odcdance.org/events/fall-showcase": event_page_html(
            "ODC Fall Dance Showcase", f"{days_ahead(3)}T19:30:00", venue="ODC Theater"
        ),
    }


def two_sites():
    return [
        WebsiteCandidate(url=JAZZ_SITE, source_label="SFJAZZ", interest="Jazz"),
        WebsiteCandidate(url=DANCE_SITE, source_label="ODC", interest="Theater & Dance"),
    ]


def test_rotate():
    assert rotate(["a", "b", "c"], 1) == ["b", "c", "a"]
    assert rotate(["a", "b", "c"], 4) == ["b", "c", "a"]
    assert rotate([], 3) == []


def test_interest_signature_ignores_order_and_case():
    assert interest_signature(["Jazz", "yoga"]) == interest_signature(["Yoga", "jazz"])


@pytest.mark.asyncio
async def test_missing_credentials_refuses_run(make_harness, monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
    monkeypatch.setattr(settings, "BRAVE_API_KEY", "brave-test")
    harness = make_harness({}, [])

    with pytest.raises(ConfigurationMissing) as exc_info:
        await harness.orchestrator.discover(DiscoveryRequest(city="San Francisco", interests=("Jazz",)))

    assert exc_info.value.missing == ["OPENAI_API_KEY"]
    assert harness.search.calls == []


@pytest.mark.asyncio
async def test_rotation_advances_between_runs(make_harness):
    harness = make_harness({}, [])
    orchestrator = harness.orchestrator
    interests = ["Jazz", "Yoga", "Comedy Shows"]

    first = await orchestrator._rotate_interests("SF", interests, 1)
    second = await orchestrator._rotate_interests("San Francisco", interests, 1)

    assert first == ["Jazz", "Yoga", "Comedy Shows"]
    assert second == ["Yoga", "Comedy Shows", "Jazz"]


@pytest.mark.asyncio
async def test_rotation_tolerates_database_errors(make_harness):
    harness = make_harness({}, [])
    harness.orchestrator.rotation = AsyncMock()
    harness.orchestrator.rotation.get_offset.side_effect = DatabaseError("down")

    assert await harness.orchestrator._rotate_interests("SF", ["Jazz", "Yoga"], 1) == ["Jazz", "Yoga"]


@pytest.mark.asyncio
async def test_default_interests_when_none_given(make_harness, api_keys):
    harness = make_harness({}, [])

    await harness.orchestrator.discover(DiscoveryRequest(city="San Francisco", interests=()))

    assert sorted(harness.search.calls[0]["interests"]) == sorted(settings.DEFAULT_INTERESTS)


@pytest.mark.asyncio
async def test_failed_listing_is_reported_not_raised(make_harness, api_keys):
    sites = [WebsiteCandidate(url="https://down.example.net/events", source_label="Down", interest="Jazz")]
    harness = make_harness({}, sites)

    result = await harness.orchestrator.discover(DiscoveryRequest(city="San Francisco", interests=("Jazz",)))

    assert result.events == []
    assert [s.status for s in result.scraping_status] == ["failed"]
    assert harness.orchestrator.progress.snapshot()["sites"][0]["status"] == "failed"


@pytest.mark.asyncio
async def test_progress_reaches_done_with_counts(make_harness, api_keys):
    harness = make_harness(two_site_pages(), two_sites())

    await harness.orchestrator.discover(
        DiscoveryRequest(city="San Francisco", interests=("Jazz", "Theater & Dance"))
    )

    snapshot = harness.orchestrator.progress.snapshot()
    assert snapshot["step"] == "done"
    assert snapshot["counts"]["braveSites"] == 2
    assert snapshot["counts"]["eventLinks"] == 2
    assert snapshot["counts"]["extractedEvents"] == 2


@pytest.mark.asyncio
async def test_visited_pages_are_not_refetched(make_harness, api_keys):
    harness = make_harness(two_site_pages(), two_sites())
    orchestrator = harness.orchestrator

    await orchestrator.discover(DiscoveryRequest(city="San Francisco", interests=("Jazz",)))
    await orchestrator.result_cache.clear()
    second = await orchestrator.discover(DiscoveryRequest(city="San Francisco", interests=("Jazz",)))

    event_page_fetches = [
        u for u in harness.server.requests if u.endswith(("late-night-jazz", "fall-showcase"))
    ]
    assert len(event_page_fetches) == 2
    assert second.events == []


@pytest.mark.asyncio
async def test_remaining_sites_continue_in_background(make_harness, api_keys):
    harness = make_harness(two_site_pages(), two_sites())
    orchestrator = harness.orchestrator
    request = DiscoveryRequest(city="San Francisco", interests=("Jazz",), sites_limit=1)

    result = await orchestrator.discover(request)
    await orchestrator.wait_for_background()

    assert [e.title for e in result.events] == ["Late Night Jazz Jam"]
    assert {e.title for e in harness.events.rows.values()} == {
        "Late Night Jazz Jam",
        "ODC Fall Dance Showcase",
    }
    cached = await orchestrator.result_cache.get(request.cache_key)
    assert [e.title for e in cached.events] == ["Late Night Jazz Jam"]
    assert orchestrator.progress.background is False


@pytest.mark.asyncio
async def test_persistence_failure_does_not_fail_run(make_harness, api_keys):
    harness = make_harness(two_site_pages(), two_sites())
    harness.orchestrator.events = AsyncMock()
    harness.orchestrator.events.upsert.side_effect = DatabaseError("down")

    result = await harness.orchestrator.discover(DiscoveryRequest(city="San Francisco", interests=("Jazz",)))

    assert len(result.events) == 2


@pytest.mark.asyncio
async def test_clear_events_resets_store_cache_and_ledger(make_harness, api_keys):
    harness = make_harness(two_site_pages(), two_sites())
    orchestrator = harness.orchestrator
    request = DiscoveryRequest(city="San Francisco", interests=("Jazz",))
    await orchestrator.discover(request)

    deleted = await orchestrator.clear_events()

    assert deleted == 2
    assert await orchestrator.result_cache.get(request.cache_key) is None
    assert len(harness.ledger) == 0
