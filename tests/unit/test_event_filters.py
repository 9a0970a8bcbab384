"""
Tests for the acceptance rules every returned event passes.
"""

from datetime import date

import pytest

from app.features.event_discovery.pipeline.validation.filters import (
    drop_sensitive,
    filter_events,
    guess_date,
    is_boilerplate_title,
    is_valid_link,
    rejection_reason,
)
from tests.helpers import make_event

TODAY = date(2026, 10, 18)


def test_valid_event_passes():
    assert rejection_reason(make_event(event_date="2026-10-19"), "San Francisco", TODAY) is None


@pytest.mark.parametrize(
    "overrides,reason",
    [
        ({"title": "Sign in to view events"}, "title"),
        ({"title": "View all"}, "title"),
        ({"title": "Gig"}, "title"),
        ({"title": "x" * 121}, "title"),
        ({"event_date": "Oct 19"}, "date"),
        ({"event_date": "2026-02-30"}, "date"),
        ({"event_date": "2026-10-17"}, "past"),
        ({"event_link": "https://example.com/event"}, "link"),
        ({"event_link": "/events/1"}, "link"),
        ({"location": "Brooklyn Steel, New York"}, "location"),
    ],
)
def test_rejection_reasons(overrides, reason):
    event = make_event(**{"event_date": "2026-10-19", **overrides})
    assert rejection_reason(event, "San Francisco", TODAY) == reason


def test_today_is_not_past():
    assert rejection_reason(make_event(event_date="2026-10-18"), "San Francisco", TODAY) is None


def test_filter_events_keeps_order():
    events = [
        make_event(title="Late Show", event_date="2026-10-20"),
        make_event(title="Privacy Policy", event_date="2026-10-20"),
        make_event(title="Early Show", event_date="2026-10-19"),
    ]
    assert [e.title for e in filter_events(events, "San Francisco", TODAY)] == ["Late Show", "Early Show"]


def test_boilerplate_titles():
    assert is_boilerplate_title("Upcoming Events")
    assert is_boilerplate_title("Subscribe to our newsletter")
    assert not is_boilerplate_title("Cookie Decorating Workshop")


def test_placeholder_links():
    assert not is_valid_link("https://placeholder.org/event")
    assert not is_valid_link(None)
    assert is_valid_link("https://sfjazz.org/events/1")


def test_sensitive_category_dropped_unless_requested():
    comedy = make_event(title="Stand-up Saturdays", interests=["Nightlife"])
    jazz = make_event(title="Late Night Jazz", interests=["Jazz"])

    assert drop_sensitive([comedy, jazz], ["Comedy Shows"], ["Jazz"]) == [jazz]
    assert drop_sensitive([comedy, jazz], ["Comedy Shows"], ["Comedy Shows"]) == [comedy, jazz]


@pytest.mark.parametrize("requested", ["comedy shows", "COMEDY SHOWS", "Comedy", "stand-up"])
def test_sensitive_opt_in_ignores_spelling(requested):
    comedy = make_event(title="Stand-up Saturdays", interests=["Comedy Shows"])

    assert drop_sensitive([comedy], ["Comedy Shows"], [requested]) == [comedy]


def test_sensitive_opt_in_needs_a_matching_interest():
    comedy = make_event(title="Improv Night", interests=["Comedy Shows"])

    assert drop_sensitive([comedy], ["Comedy Shows"], ["Jazz", "wine tasting"]) == []


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Harvest fair on 2026-11-02 at the park", "2026-11-02"),
        ("Join us Nov 2nd for the fair", "2026-11-02"),
        ("Back on January 5, 2027", "2027-01-05"),
        ("Returns Jan 5", "2027-01-05"),
        ("No date here", None),
    ],
)
def test_guess_date(text, expected):
    assert guess_date(text, TODAY) == expected
