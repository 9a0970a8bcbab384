"""
Acceptance rules applied to every event before it can be returned or stored.

The same rules run after validation, on the raw fallback path and on both
ranking paths.
"""

import re
from datetime import date, datetime

from dateutil import parser as date_parser

from app.features.event_discovery.domain.locations import location_matches_city
from app.features.event_discovery.domain.models import ExtractedEvent
from app.features.event_discovery.domain.taxonomy import classify_interests, normalize_interest
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

MAX_TITLE_LENGTH = 120
MIN_TITLE_LENGTH = 4

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
ISO_DATE_IN_TEXT_RE = re.compile(r"\b(20\d{2})-(\d{2})-(\d{2})\b")
MONTH_DATE_RE = re.compile(
    r"\b(jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?\s+"
    r"(\d{1,2})(?:st|nd|rd|th)?(?:,?\s+(20\d{2}))?\b",
    re.IGNORECASE,
)

BOILERPLATE_TITLE_RE = re.compile(
    r"\b("
    r"sign in|sign up|log ?in|log out|register now|create an account|"
    r"browse all|view all|see all|all events|upcoming events|events calendar|"
    r"privacy policy|terms of|cookie policy|cookie settings|subscribe|newsletter|"
    r"page not found|404|access denied|just a moment"
    r")\b",
    re.IGNORECASE,
)


def is_valid_date(value: str | None) -> bool:
    if not value or not ISO_DATE_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def is_valid_link(link: str | None) -> bool:
    if not link or not link.startswith("http") or len(link) <= 10:
        return False
    lowered = link.lower()
    return "example.com" not in lowered and "placeholder" not in lowered


def is_boilerplate_title(title: str | None) -> bool:
    if not title:
        return True
    stripped = title.strip()
    if len(stripped) < MIN_TITLE_LENGTH or len(stripped) > MAX_TITLE_LENGTH:
        return True
    return bool(BOILERPLATE_TITLE_RE.search(stripped))


def rejection_reason(event: ExtractedEvent, city: str, today: date) -> str | None:
    if is_boilerplate_title(event.title):
        return "title"
    if not is_valid_date(event.date):
        return "date"
    if date.fromisoformat(event.date) < today:
        return "past"
    if not is_valid_link(event.event_link):
        return "link"
    if not location_matches_city(event.location, city):
        return "location"
    return None


def filter_events(
    events: list[ExtractedEvent], city: str, today: date | None = None
) -> list[ExtractedEvent]:
    today = today or date.today()
    accepted = []
    rejected: dict[str, int] = {}
    for event in events:
        reason = rejection_reason(event, city, today)
        if reason:
            rejected[reason] = rejected.get(reason, 0) + 1
            continue
        accepted.append(event)

    if rejected:
        logger.debug("Events rejected by filters", city=city, rejected=rejected)
    return accepted


def requested_categories(requested: list[str]) -> set[str]:
    """Caller interests as case-folded taxonomy names ("comedy" -> "comedy shows")."""
    categories: set[str] = set()
    for name in requested:
        normalized = normalize_interest(name)
        if normalized:
            categories.add(normalized.casefold())
        else:
            categories.update(c.casefold() for c in classify_interests(name or ""))
    return categories


def is_sensitive(event: ExtractedEvent, sensitive: list[str], requested: list[str]) -> bool:
    """Sensitive unless the category was requested by the caller."""
    wanted = requested_categories(requested)
    blocked = {s.casefold() for s in sensitive if s.casefold() not in wanted}
    if not blocked:
        return False
    categories = {c.casefold() for c in [*event.interests, *classify_interests(event.title)]}
    return bool(categories & blocked)


def drop_sensitive(
    events: list[ExtractedEvent], sensitive: list[str], requested: list[str]
) -> list[ExtractedEvent]:
    return [e for e in events if not is_sensitive(e, sensitive, requested)]


def guess_date(text: str, today: date) -> str | None:
    """Best-effort calendar date from free text, or None."""
    if not text:
        return None

    iso = ISO_DATE_IN_TEXT_RE.search(text)
    if iso:
        candidate = iso.group(0)
        return candidate if is_valid_date(candidate) else None

    match = MONTH_DATE_RE.search(text)
    if not match:
        return None
    try:
        parsed = date_parser.parse(match.group(0), default=datetime(today.year, 1, 1)).date()
    except (ValueError, OverflowError):
        return None

    if match.group(3) is None and parsed < today:
        try:
            parsed = parsed.replace(year=parsed.year + 1)
        except ValueError:
            return None
    return parsed.isoformat()
