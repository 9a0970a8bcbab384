"""
Integration tests for the event discovery HTTP surface.

The orchestrator dependency is overridden so no network or database is touched.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from app.db.helpers import DatabaseError
from app.features.event_discovery.dependencies import get_orchestrator
from app.features.event_discovery.domain.errors import ConfigurationMissing
from app.features.event_discovery.domain.models import (
    DiscoveryResult,
    DiscoveryStep,
    ScrapingStatus,
)
from app.features.event_discovery.services.progress import ProgressTracker
from app.main import app
from tests.helpers import make_event


@pytest.fixture
def orchestrator():
    fake = MagicMock()
    fake.progress = ProgressTracker()
    fake.discover = AsyncMock(
        return_value=DiscoveryResult(
            events=[make_event(interests=["Jazz"])],
            scraping_status=[
                ScrapingStatus(
                    url="https://www.thechapelsf.com/calendar",
                    source="The Chapel",
                    interest="Jazz",
                    status="success",
                )
            ],
        )
    )
    fake.list_events = AsyncMock(return_value=[make_event()])
    fake.clear_events = AsyncMock(return_value=4)

    app.dependency_overrides[get_orchestrator] = lambda: fake
    yield fake
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)


def test_discover_events_returns_events_and_status(client, orchestrator):
    response = client.post("/discover-events", json={"city": "San Francisco", "interests": ["Jazz"]})

    assert response.status_code == 200
    data = response.json()
    assert data["events"][0]["title"] == "Sunset Jazz Night"
    assert data["events"][0]["interests"] == ["Jazz"]
    assert data["scrapingStatus"][0]["status"] == "success"


def test_discover_events_clamps_request(client, orchestrator):
    client.post(
        "/discover-events",
        json={"city": "SF", "interests": ["Jazz"], "limit": 9999, "timeoutMs": 5},
    )

    request = orchestrator.discover.await_args.args[0]
    assert request.limit == 100
    assert request.timeout_ms == 15_000


def test_discover_events_requires_city(client, orchestrator):
    response = client.post("/discover-events", json={"interests": ["Jazz"]})

    assert response.status_code == 422
    orchestrator.discover.assert_not_awaited()


def test_missing_configuration_is_503(client, orchestrator):
    orchestrator.discover.side_effect = ConfigurationMissing(["OPENAI_API_KEY", "BRAVE_API_KEY"])

    response = client.post("/discover-events", json={"city": "San Francisco"})

    assert response.status_code == 503
    assert response.json()["detail"] == {
        "error": "configuration_missing",
        "missing": ["OPENAI_API_KEY", "BRAVE_API_KEY"],
    }


def test_progress_shape(client, orchestrator):
    orchestrator.progress.start()
    orchestrator.progress.advance(DiscoveryStep.LISTINGS)
    orchestrator.progress.set_count("event_links", 12)

    response = client.get("/discover-events/progress")

    assert response.status_code == 200
    data = response.json()
    assert data["step"] == "listings"
    assert data["counts"] == {
        "braveSites": 0,
        "eventLinks": 12,
        "candidatePages": 0,
        "extractedEvents": 0,
    }
    assert data["background"] is False
    assert data["updatedAt"] is not None


def test_list_events(client, orchestrator):
    response = client.get("/events", params={"limit": 10, "include_past": "true"})

    assert response.status_code == 200
    assert response.json()["count"] == 1
    assert orchestrator.list_events.await_args.kwargs == {"limit": 10, "include_past": True}


def test_list_events_store_unavailable(client, orchestrator):
    orchestrator.list_events.side_effect = DatabaseError("pool closed")

    response = client.get("/events")

    assert response.status_code == 503


def test_clear_events(client, orchestrator):
    response = client.delete("/events")

    assert response.status_code == 200
    assert response.json() == {"deleted": 4}
