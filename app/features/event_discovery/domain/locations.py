"""City canonicalization and the location acceptance rule for extracted events."""

import re

CITY_ALIASES: dict[str, str] = {
    "sf": "San Francisco",
    "s.f.": "San Francisco",
    "san fran": "San Francisco",
    "san francisco": "San Francisco",
    "oakland": "Oakland",
    "berkeley": "Berkeley",
    "san jose": "San Jose",
    "palo alto": "Palo Alto",
    "mountain view": "Mountain View",
    "nyc": "New York",
    "new york city": "New York",
    "manhattan": "New York",
    "la": "Los Angeles",
    "l.a.": "Los Angeles",
    "online": "Online",
}

# Full names only: short aliases like "la" collide with venue names
MAJOR_CITIES: frozenset[str] = frozenset(
    {canon for canon in CITY_ALIASES.values() if canon != "Online"}
    | {
        "Los Angeles",
        "Chicago",
        "Houston",
        "Phoenix",
        "Philadelphia",
        "San Antonio",
        "San Diego",
        "Dallas",
        "Austin",
        "Seattle",
        "Denver",
        "Boston",
        "Portland",
        "Las Vegas",
        "Atlanta",
        "Miami",
        "Nashville",
        "Detroit",
        "Sacramento",
        "Minneapolis",
        "New Orleans",
        "Baltimore",
    }
)

_ONLINE_RE = re.compile(r"\b(online|virtual|livestream|zoom)\b", re.IGNORECASE)

# "San Jose Ave" names a street, not the city
_STREET_SUFFIX = r"(?!\s+(?:ave|avenue|st|street|blvd|boulevard|rd|road|way|dr|drive)\b)"


def canonicalize_city(name: str) -> str:
    cleaned = (name or "").strip()
    return CITY_ALIASES.get(cleaned.casefold(), cleaned)


def is_online(location: str) -> bool:
    return bool(_ONLINE_RE.search(location or ""))


def _mentions(text: str, city: str) -> bool:
    pattern = rf"(?<!\w){re.escape(city.casefold())}(?!\w){_STREET_SUFFIX}"
    return re.search(pattern, text) is not None


def location_matches_city(location: str, city: str) -> bool:
    """
    True when the location names the target city (or one of its aliases) and
    no other major city, or when the event is online.
    """
    if not location:
        return False
    if is_online(location):
        return True

    target = canonicalize_city(city)
    lowered = location.casefold()
    names = {target.casefold()} | {alias for alias, canon in CITY_ALIASES.items() if canon == target}
    if not any(_mentions(lowered, name) for name in names):
        return False

    others = (c for c in MAJOR_CITIES if c.casefold() != target.casefold())
    return not any(_mentions(lowered, other) for other in others)
