"""
Closed interest taxonomy and the deterministic keyword classifier.

Extracted events may only carry interests listed here. The keyword table is
used wherever no language model is involved (structured JSON-LD events and
the raw fallback path).
"""

import re

INTEREST_CATEGORIES: dict[str, list[str]] = {
    "Arts & Culture": [
        "Visual Arts",
        "Theater & Dance",
        "Film & Cinema",
        "Photography",
        "Literature",
        "Crafts & DIY",
    ],
    "Music": [
        "Live Music",
        "Concerts & Festivals",
        "Rock",
        "Jazz",
        "Classical",
        "Electronic",
        "Hip-Hop",
        "Indie",
    ],
    "Food & Drink": [
        "Food Festivals",
        "Wine Tasting",
        "Beer Tasting",
        "Cocktails",
        "Cooking Classes",
        "Restaurant Week",
    ],
    "Active & Outdoors": [
        "Hiking",
        "Sports",
        "Fitness Classes",
        "Cycling",
        "Water Sports",
        "Adventure",
    ],
    "Wellness & Mindfulness": [
        "Meditation",
        "Yoga",
        "Sound Baths",
        "Wellness Workshops",
        "Breathwork",
    ],
    "Social & Community": [
        "Networking",
        "Meetups",
        "Street Fairs",
        "Volunteering",
        "Cultural Celebrations",
    ],
    "Learning & Growth": [
        "Workshops",
        "Lectures",
        "Panel Discussions",
        "Tech Events",
    ],
    "Nightlife & Entertainment": [
        "Comedy Shows",
        "Clubs & Dancing",
        "Bars & Lounges",
        "Karaoke",
    ],
    "Family & Kids": [
        "Family Events",
        "Kids Activities",
        "Educational Programs",
    ],
    "Special Interests": [
        "Gaming & Esports",
        "Anime & Comics",
        "Cars & Motorcycles",
        "Fashion & Beauty",
        "Pets & Animals",
        "Sustainability",
    ],
}

VIBE_CATEGORIES: dict[str, list[str]] = {
    "Energy Level": ["High-Energy", "Chill", "Intimate"],
    "Social Style": [
        "Solo-Friendly",
        "Great for Dates",
        "Friend Hangout",
        "Networking",
        "Family-Oriented",
        "Meet New People",
    ],
    "Setting": ["Indoor", "Outdoor", "Waterfront", "Rooftop", "Historic Venue", "Unconventional"],
    "Time Preferences": ["Morning Person", "Brunch Vibes", "Afternoon", "Evening", "Late Night"],
    "Cost": ["Free Events", "Budget-Friendly", "Worth the Splurge", "Donation-Based"],
    "Accessibility": ["Wheelchair Accessible", "All Ages", "21+", "Pet-Friendly"],
}

ALL_INTERESTS: list[str] = [item for items in INTEREST_CATEGORIES.values() for item in items]
ALL_VIBES: list[str] = [item for items in VIBE_CATEGORIES.values() for item in items]

_INTEREST_LOOKUP = {name.casefold(): name for name in ALL_INTERESTS}

# Order matters: the first matches win when an event hits several rules.
KEYWORD_RULES: list[tuple[re.Pattern, list[str]]] = [
    (re.compile(r"\b(dance|dancing|choreograph\w*|ballet|theat(?:er|re)|musical|opera)\b"), ["Theater & Dance"]),
    (re.compile(r"\b(yoga|vinyasa|hatha)\b"), ["Yoga"]),
    (re.compile(r"\b(meditat\w*|mindfulness)\b"), ["Meditation"]),
    (re.compile(r"\bsound ?baths?\b"), ["Sound Baths"]),
    (re.compile(r"\bbreathwork\b"), ["Breathwork"]),
    (re.compile(r"\b(comedy|comedian|stand[- ]?up|improv)\b"), ["Comedy Shows"]),
    (re.compile(r"\b(film|films|movie|movies|screening|cinema)\b"), ["Film & Cinema"]),
    (re.compile(r"\bjazz\b"), ["Jazz"]),
    (re.compile(r"\b(symphony|orchestra|chamber music|classical)\b"), ["Classical"]),
    (re.compile(r"\b(techno|house music|edm|electronic)\b"), ["Electronic"]),
    (re.compile(r"\b(hip[- ]?hop|rap)\b"), ["Hip-Hop"]),
    (re.compile(r"\bindie\b"), ["Indie"]),
    (re.compile(r"\b(rock|punk|metal)\b"), ["Rock"]),
    (re.compile(r"\bfestival\b.*\b(music|concert)\b|\b(music|concert)\b.*\bfestival\b"), ["Concerts & Festivals"]),
    (re.compile(r"\b(concert|band|dj|live music|gig|tour)\b"), ["Live Music"]),
    (re.compile(r"\b(gallery|exhibition|exhibit|painting|sculpture|museum|art show)\b"), ["Visual Arts"]),
    (re.compile(r"\bphotograph\w*\b"), ["Photography"]),
    (re.compile(r"\b(book|author|poetry|reading|literary)\b"), ["Literature"]),
    (re.compile(r"\b(craft|crafts|diy|maker|pottery|ceramics|knitting)\b"), ["Crafts & DIY"]),
    (re.compile(r"\bwine\b"), ["Wine Tasting"]),
    (re.compile(r"\b(beer|brewery|brew)\b"), ["Beer Tasting"]),
    (re.compile(r"\b(cocktail|cocktails|mixology)\b"), ["Cocktails"]),
    (re.compile(r"\bcooking class\w*\b"), ["Cooking Classes"]),
    (re.compile(r"\brestaurant week\b"), ["Restaurant Week"]),
    (re.compile(r"\b(food|tasting|farmers market|street food)\b"), ["Food Festivals"]),
    (re.compile(r"\b(hike|hiking|trail)\b"), ["Hiking"]),
    (re.compile(r"\b(bike|cycling|bicycle)\b"), ["Cycling"]),
    (re.compile(r"\b(run|5k|10k|marathon|bootcamp|fitness|workout|pilates)\b"), ["Fitness Classes"]),
    (re.compile(r"\b(game|match|soccer|basketball|baseball|football|hockey)\b"), ["Sports"]),
    (re.compile(r"\b(kayak|surf|sailing|paddle|swim)\w*\b"), ["Water Sports"]),
    (re.compile(r"\b(networking|mixer)\b"), ["Networking"]),
    (re.compile(r"\b(meetup|meet-up)\b"), ["Meetups"]),
    (re.compile(r"\b(street fair|block party)\b"), ["Street Fairs"]),
    (re.compile(r"\bvolunteer\w*\b"), ["Volunteering"]),
    (re.compile(r"\b(lunar new year|diwali|pride|heritage|cultural)\b"), ["Cultural Celebrations"]),
    (re.compile(r"\bworkshop\b"), ["Workshops"]),
    (re.compile(r"\b(lecture|talk|speaker)\b"), ["Lectures"]),
    (re.compile(r"\bpanel\b"), ["Panel Discussions"]),
    (re.compile(r"\b(tech|startup|hackathon|ai|developer)\b"), ["Tech Events"]),
    (re.compile(r"\b(club night|nightclub|dance party)\b"), ["Clubs & Dancing"]),
    (re.compile(r"\bkaraoke\b"), ["Karaoke"]),
    (re.compile(r"\b(family|families)\b"), ["Family Events"]),
    (re.compile(r"\b(kids|children|storytime)\b"), ["Kids Activities"]),
    (re.compile(r"\b(esports|gaming|video game|board game)\w*\b"), ["Gaming & Esports"]),
    (re.compile(r"\b(anime|comic|comics|manga|cosplay)\b"), ["Anime & Comics"]),
    (re.compile(r"\b(car show|motorcycle|auto show)\b"), ["Cars & Motorcycles"]),
    (re.compile(r"\b(fashion|beauty|runway)\b"), ["Fashion & Beauty"]),
    (re.compile(r"\b(pet|pets|dog|dogs|cat|adoption)\b"), ["Pets & Animals"]),
    (re.compile(r"\b(sustainab\w*|climate|zero waste|recycling)\b"), ["Sustainability"]),
]


def normalize_interest(name: str | None) -> str | None:
    """Map a free-form interest name onto the taxonomy spelling, or None."""
    if not name:
        return None
    return _INTEREST_LOOKUP.get(name.strip().casefold())


def classify_interests(text: str, fallback: list[str] | None = None, max_interests: int = 3) -> list[str]:
    """
    Classify free text into taxonomy interests using the keyword table.

    Returns the fallback interests (filtered to the taxonomy) when nothing
    matches. The result is deterministic for a given input.
    """
    lowered = (text or "").casefold()
    matched: list[str] = []
    for pattern, interests in KEYWORD_RULES:
        if pattern.search(lowered):
            for interest in interests:
                if interest not in matched:
                    matched.append(interest)
        if len(matched) >= max_interests:
            break

    if matched:
        return matched[:max_interests]

    fallback_interests = []
    for name in fallback or []:
        normalized = normalize_interest(name)
        if normalized and normalized not in fallback_interests:
            fallback_interests.append(normalized)
    return fallback_interests


def filter_taxonomy(interests: list[str] | None) -> list[str]:
    """Keep only taxonomy interests, in order, without duplicates."""
    result = []
    for name in interests or []:
        normalized = normalize_interest(name)
        if normalized and normalized not in result:
            result.append(normalized)
    return result
