"""
Tests for consolidation: fast path, completion ranking and the sensitive filter.
"""

from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.config import settings
from app.features.event_discovery.domain.deadline import Deadline
from app.features.event_discovery.domain.errors import ServerError
from app.features.event_discovery.domain.models import DiscoveryRequest
from app.features.event_discovery.pipeline.ranking.service import EventRanker, dedupe
from tests.helpers import FakeClock, make_event

TODAY = date(2026, 10, 18)


def make_ranker(response=None, error=None):
    gateway = MagicMock()
    gateway.invoke = AsyncMock(return_value=response, side_effect=error)
    return EventRanker(gateway, today=lambda: TODAY), gateway


def events():
    return [
        make_event(title="Late Jazz", event_date="2026-10-25", interests=["Jazz"]),
        make_event(title="Early Jazz", event_date="2026-10-19", interests=["Jazz"]),
        make_event(title="early jazz", event_date="2026-10-19", interests=["Jazz"]),
        make_event(title="Stand-up Showcase", event_date="2026-10-20", interests=["Comedy Shows"]),
    ]


def make_request(**kwargs):
    return DiscoveryRequest(city="San Francisco", interests=("Jazz",), **kwargs)


def test_dedupe_by_canonical_key():
    assert [e.title for e in dedupe(events())] == ["Late Jazz", "Early Jazz", "Stand-up Showcase"]


@pytest.mark.asyncio
async def test_skip_ranking_sorts_by_date_without_call():
    ranker, gateway = make_ranker()

    result = await ranker.consolidate(events(), make_request(skip_ranking=True), Deadline(60, clock=FakeClock()))

    assert [e.title for e in result] == ["Early Jazz", "Late Jazz"]
    gateway.invoke.assert_not_awaited()


@pytest.mark.asyncio
async def test_large_batches_take_fast_path(monkeypatch):
    monkeypatch.setattr(settings, "RANKING_SKIP_THRESHOLD", 2)
    ranker, gateway = make_ranker()

    await ranker.consolidate(events(), make_request(), Deadline(60, clock=FakeClock()))

    gateway.invoke.assert_not_awaited()


@pytest.mark.asyncio
async def test_low_budget_takes_fast_path():
    ranker, gateway = make_ranker()

    await ranker.consolidate(events(), make_request(), Deadline(3, clock=FakeClock()))

    gateway.invoke.assert_not_awaited()


@pytest.mark.asyncio
async def test_ranking_order_and_categories_applied():
    response = {
        "events": [
            {"id": 0, "interests": ["Jazz", "Live Music"], "vibes": ["Late Night"]},
            {"id": 1, "interests": [], "vibes": []},
            {"id": 1},
            {"id": 99},
        ]
    }
    ranker, gateway = make_ranker(response=response)

    result = await ranker.consolidate(events(), make_request(), Deadline(60, clock=FakeClock()))

    assert [e.title for e in result] == ["Late Jazz", "Early Jazz"]
    assert result[0].interests == ["Jazz", "Live Music"]
    assert result[0].vibes == ["Late Night"]
    assert result[1].interests == ["Jazz"]
    gateway.invoke.assert_awaited_once()


@pytest.mark.asyncio
async def test_ranking_failure_falls_back_to_date_order():
    ranker, _ = make_ranker(error=ServerError("502"))

    result = await ranker.consolidate(events(), make_request(), Deadline(60, clock=FakeClock()))

    assert [e.title for e in result] == ["Early Jazz", "Late Jazz"]


@pytest.mark.asyncio
async def test_sensitive_events_kept_when_requested():
    ranker, _ = make_ranker()
    req = DiscoveryRequest(city="San Francisco", interests=("Comedy Shows",), skip_ranking=True)

    result = await ranker.consolidate(events(), req, Deadline(60, clock=FakeClock()))

    assert "Stand-up Showcase" in [e.title for e in result]


@pytest.mark.asyncio
async def test_results_are_capped(monkeypatch):
    monkeypatch.setattr(settings, "MAX_RESULTS", 1)
    ranker, _ = make_ranker()

    result = await ranker.consolidate(events(), make_request(skip_ranking=True), Deadline(60, clock=FakeClock()))

    assert len(result) == 1


@pytest.mark.asyncio
async def test_nothing_valid_returns_empty():
    ranker, gateway = make_ranker()

    result = await ranker.consolidate(
        [make_event(event_date="2020-01-01")], make_request(), Deadline(60, clock=FakeClock())
    )

    assert result == []
    gateway.invoke.assert_not_awaited()
