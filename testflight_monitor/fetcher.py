from __future__ import annotations

import httpx

from testflight_monitor.config import DEFAULT_USER_AGENT
from testflight_monitor.errors import FetchError

DEFAULT_TIMEOUT_SECONDS = 10.0


def browser_headers(user_agent: str = DEFAULT_USER_AGENT) -> dict[str, str]:
    return {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml",
        "Accept-Language": "en-US,en;q=0.9",
    }


async def fetch_page(
    client: httpx.AsyncClient,
    url: str,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    user_agent: str = DEFAULT_USER_AGENT,
) -> str:
    """GET ``url`` and return the response body, raising FetchError on any failure."""
    try:
        resp = await client.get(
            url,
            headers=browser_headers(user_agent),
            follow_redirects=True,
            timeout=timeout,
        )
    except httpx.TimeoutException as e:
        raise FetchError(f"timed out after {timeout:g}s fetching {url}: {type(e).__name__}") from e
    except httpx.RequestError as e:
        raise FetchError(f"http_error fetching {url}: {type(e).__name__}: {e}") from e
    except httpx.InvalidURL as e:
        raise FetchError(f"invalid URL {url!r}: {e}") from e

    if not 200 <= resp.status_code < 300:
        raise FetchError(f"unexpected status {resp.status_code} fetching {url}")
    return resp.text or ""
