"""
Listing-page link extraction.

Filtering is deliberately loose: anything same-origin that is not obviously
navigation, auth, social or a static asset is kept. Links that look like
individual event pages are ordered first so the capped page budget goes to
them.
"""

import re
from urllib.parse import urldefrag, urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from app.config import settings
from app.features.event_discovery.pipeline.http import fetch_html
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

DENYLIST_PATH_FRAGMENTS = (
    "/search",
    "/category",
    "/categories",
    "/tag/",
    "/tags/",
    "/login",
    "/log-in",
    "/signin",
    "/sign-in",
    "/signup",
    "/sign-up",
    "/register",
    "/account",
    "/cart",
    "/checkout",
    "/privacy",
    "/terms",
    "/contact",
    "/help",
    "/faq",
    "/careers",
    "/wp-admin",
    "/wp-login",
    "/feed",
)

SOCIAL_DOMAINS = (
    "facebook.com",
    "instagram.com",
    "twitter.com",
    "x.com",
    "tiktok.com",
    "youtube.com",
    "linkedin.com",
    "pinterest.com",
)

STATIC_EXTENSIONS = (
    ".jpg",
    ".jpeg",
    ".png",
    ".gif",
    ".svg",
    ".webp",
    ".ico",
    ".pdf",
    ".css",
    ".js",
    ".xml",
    ".zip",
    ".mp3",
    ".mp4",
    ".ics",
)

SKIPPED_SCHEMES = ("mailto:", "tel:", "javascript:", "sms:", "data:")

EVENT_SIGNAL_RE = re.compile(
    r"(/20\d{2}[/-]\d{1,2}|/\d{5,}|/(events?|shows?|concerts?|festivals?|e)/[^/]+)",
    re.IGNORECASE,
)


def _bare_host(url: str) -> str:
    host = (urlparse(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def _is_social(host: str) -> bool:
    return any(host == domain or host.endswith("." + domain) for domain in SOCIAL_DOMAINS)


def is_candidate_link(url: str, origin_host: str) -> bool:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        return False

    host = _bare_host(url)
    if host != origin_host or _is_social(host):
        return False

    path = parsed.path.lower()
    if path in ("", "/"):
        return False
    if path.endswith(STATIC_EXTENSIONS):
        return False
    return not any(fragment in path for fragment in DENYLIST_PATH_FRAGMENTS)


def has_event_signal(url: str) -> bool:
    return bool(EVENT_SIGNAL_RE.search(urlparse(url).path))


def parse_event_links(html: str, base_url: str, limit: int) -> list[str]:
    """Resolve, filter and rank the anchors of a listing page."""
    soup = BeautifulSoup(html, "html.parser")
    origin_host = _bare_host(base_url)
    page_url = urldefrag(base_url)[0].rstrip("/")

    seen: set[str] = set()
    strong: list[str] = []
    weak: list[str] = []

    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href.startswith("#") or href.lower().startswith(SKIPPED_SCHEMES):
            continue

        url = urldefrag(urljoin(base_url, href))[0]
        if url in seen or url.rstrip("/") == page_url:
            continue
        seen.add(url)

        if not is_candidate_link(url, origin_host):
            continue
        (strong if has_event_signal(url) else weak).append(url)

    return (strong + weak)[:limit]


class LinkExtractor:
    def __init__(self, http_client: httpx.AsyncClient):
        self._http = http_client

    async def extract_event_links(self, url: str, limit: int | None = None) -> list[str]:
        """
        Fetch a listing page and return likely event links.

        Raises:
            FetchTimeout, FetchFailed: the listing page could not be fetched
        """
        html = await fetch_html(self._http, url, settings.LISTING_FETCH_TIMEOUT_SECONDS)
        links = parse_event_links(html, url, limit or settings.MAX_EVENT_LINKS)
        logger.debug("Listing links extracted", url=url, links=len(links))
        return links
