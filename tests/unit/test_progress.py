"""
Tests for the progress record.
"""

import pytest

from app.features.event_discovery.domain.models import DiscoveryStep, WebsiteCandidate
from app.features.event_discovery.services.progress import ProgressTracker


def test_initial_snapshot():
    snapshot = ProgressTracker().snapshot()

    assert snapshot["step"] == "idle"
    assert snapshot["counts"] == {
        "braveSites": 0,
        "eventLinks": 0,
        "candidatePages": 0,
        "extractedEvents": 0,
    }
    assert snapshot["updatedAt"] is None


def test_steps_never_move_backwards():
    progress = ProgressTracker()
    progress.start()
    progress.advance(DiscoveryStep.LISTINGS)
    progress.advance(DiscoveryStep.SEARCH)

    assert progress.snapshot()["step"] == "listings"


def test_start_resets_run_state():
    progress = ProgressTracker()
    progress.start()
    progress.set_count("event_links", 7)
    progress.advance(DiscoveryStep.DONE)

    progress.start()

    snapshot = progress.snapshot()
    assert snapshot["step"] == "start"
    assert snapshot["counts"]["eventLinks"] == 0


def test_site_statuses():
    progress = ProgressTracker()
    progress.set_sites(
        [
            WebsiteCandidate(url="https://sfjazz.org/calendar", source_label="SFJAZZ", interest="Jazz"),
            WebsiteCandidate(url="https://odcdance.org/events", source_label="ODC", interest="Theater & Dance"),
        ]
    )
    progress.mark_site("https://sfjazz.org/calendar", "success")

    sites = progress.snapshot()["sites"]
    assert [s["status"] for s in sites] == ["success", "pending"]
    assert sites[0]["source"] == "SFJAZZ"


def test_unknown_counter_is_rejected():
    with pytest.raises(KeyError):
        ProgressTracker().set_count("bogus", 1)
