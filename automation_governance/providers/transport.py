"""HTTP transport for reaching provider APIs.

All outbound provider calls go through `fetch_provider_api`. Every request
carries an ngrok bypass header so tunnelled instances return JSON instead of
an HTML interstitial. Authentication and retries are not handled here.
"""

import logging
import os

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


def _timeout() -> float:
    """Request timeout from PROVIDER_HTTP_TIMEOUT, falling back to the default."""
    try:
        return float(os.getenv("PROVIDER_HTTP_TIMEOUT", DEFAULT_TIMEOUT_SECONDS))
    except ValueError:
        return DEFAULT_TIMEOUT_SECONDS


def common_headers() -> dict[str, str]:
    """Headers included in every request to a provider."""
    return {
        "ngrok-skip-browser-warning": "true",
        "Accept": "application/json",
    }


def normalize_base_url(raw: str) -> str:
    """Trim whitespace and trailing slashes from a base URL."""
    return raw.strip().rstrip("/")


async def fetch_provider_api(base_url: str, api_path: str, path: str) -> httpx.Response:
    """GET `{base_url}{api_path}{path}` and return the raw response.

    Raises:
        httpx.HTTPError: On transport failures (DNS, refused, timeout, ...).
            Non-2xx responses are returned, not raised.
    """
    url = f"{normalize_base_url(base_url)}{api_path}{path}"
    logger.debug(f"Fetching provider API {url}")

    async with httpx.AsyncClient(timeout=_timeout()) as client:
        return await client.get(url, headers=common_headers())
