"""Shared HTML fetching for listing and event pages."""

import httpx

from app.features.event_discovery.domain.errors import FetchFailed, FetchTimeout

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


def create_http_client() -> httpx.AsyncClient:
    """One pooled client per process; per-request timeouts are passed at call sites."""
    limits = httpx.Limits(max_keepalive_connections=20, max_connections=50)
    return httpx.AsyncClient(
        headers=DEFAULT_HEADERS,
        follow_redirects=True,
        limits=limits,
        timeout=httpx.Timeout(15.0),
    )


async def fetch_html(client: httpx.AsyncClient, url: str, timeout: float) -> str:
    """
    GET a page and return its text.

    Raises:
        FetchTimeout: the request exceeded timeout
        FetchFailed: connection error or non-2xx status
    """
    try:
        response = await client.get(url, timeout=timeout)
    except httpx.TimeoutException as e:
        raise FetchTimeout(f"Timed out fetching {url}") from e
    except httpx.RequestError as e:
        raise FetchFailed(f"Request failed for {url}: {e}") from e

    if not response.is_success:
        raise FetchFailed(f"HTTP {response.status_code} for {url}", status_code=response.status_code)

    return response.text
