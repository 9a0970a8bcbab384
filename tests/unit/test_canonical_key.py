"""
Tests for event identity and domain model serialization.
"""

from app.features.event_discovery.domain.models import (
    TIME_SENTINEL,
    DiscoveryRequest,
    EventSource,
    ExtractedEvent,
    canonical_key,
)
from tests.helpers import make_event


def test_key_ignores_case_and_whitespace():
    a = canonical_key("Sunset  Jazz Night", "2026-10-19", "The Chapel, San Francisco")
    b = canonical_key(" sunset jazz night ", "2026-10-19", "THE CHAPEL, SAN FRANCISCO")
    assert a == b


def test_key_truncates_date_to_calendar_day():
    assert canonical_key("Gig", "2026-10-19T20:00:00-07:00", "SF") == canonical_key(
        "Gig", "2026-10-19", "SF"
    )


def test_key_changes_when_any_field_changes():
    base = canonical_key("Gig", "2026-10-19", "SF")
    assert canonical_key("Gig 2", "2026-10-19", "SF") != base
    assert canonical_key("Gig", "2026-10-20", "SF") != base
    assert canonical_key("Gig", "2026-10-19", "Oakland") != base


def test_separator_inside_fields_does_not_collide():
    assert canonical_key("a|b", "2026-10-19", "c") != canonical_key("a", "b|2026-10-19", "c")


def test_event_property_matches_function():
    event = make_event()
    assert event.canonical_key == canonical_key(event.title, event.date, event.location)


def test_event_dict_round_trip_keeps_source():
    event = make_event(source=EventSource.RAW_FALLBACK, interests=["Jazz"])
    restored = ExtractedEvent.from_dict(event.to_dict())

    assert restored == event
    assert event.to_dict()["source"] == "raw_fallback"


def test_from_dict_defaults_missing_time():
    data = make_event().to_dict()
    data["time"] = None

    assert ExtractedEvent.from_dict(data).time == TIME_SENTINEL


def test_request_cache_key_is_order_and_case_insensitive():
    a = DiscoveryRequest(city="San Francisco", interests=("Yoga", "Jazz"), vibes=("Chill",))
    b = DiscoveryRequest(city="san francisco ", interests=("jazz", "yoga"), vibes=("chill",))
    assert a.cache_key == b.cache_key
