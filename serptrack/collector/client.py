"""
Serper Search Client

Async HTTP client for the Serper Google search API:
- Connection pooling via a shared httpx.AsyncClient
- API key passed per request so the rotation service can swap keys
- Provider errors raised with status, headers and body for quota parsing
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from serptrack.errors import SearchProviderError
from serptrack.utils.config import get_settings

logger = logging.getLogger(__name__)


DEFAULT_TITLE = "(No title)"


@dataclass
class SearchResultItem:
    """One organic result as returned by the provider."""
    title: str
    link: str
    snippet: str = ""


@dataclass
class SearchResponse:
    """Parsed provider response plus the raw metadata quota parsing needs."""
    results: List[SearchResultItem]
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    status_code: int = 200


def parse_organic_results(body: Any) -> List[SearchResultItem]:
    """
    Extract organic results from a Serper response body.

    Handles a missing or malformed `organic` list; items without a link
    (or redirect_link) are dropped.
    """
    if not isinstance(body, dict):
        return []

    organic = body.get("organic")
    if not organic or not isinstance(organic, list):
        return []

    items = []
    for item in organic:
        if not isinstance(item, dict):
            continue
        link = item.get("link") or item.get("redirect_link") or ""
        if not link:
            continue
        items.append(SearchResultItem(
            title=item.get("title") or DEFAULT_TITLE,
            link=link,
            snippet=item.get("snippet") or "",
        ))
    return items


def _error_message(response: httpx.Response, body: Any) -> str:
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"Search request failed: {response.status_code}"


class SerperClient:
    """
    Async client for the Serper search API.

    Usage:
        async with SerperClient() as client:
            response = await client.search("tokopedia", api_key="...", country="id")
            for item in response.results:
                print(item.link)
    """

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_connections: int = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Serper client.

        Args:
            url: Search endpoint (defaults to SERPER_URL)
            timeout: Request timeout in seconds (defaults to SERPER_TIMEOUT)
            max_connections: Maximum concurrent connections
            transport: Custom httpx transport (tests pass httpx.MockTransport)
        """
        settings = get_settings()
        self.url = url or settings.SERPER_URL
        self.timeout = timeout if timeout is not None else settings.SERPER_TIMEOUT

        self._client = httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max(max_connections // 2, 1),
            ),
            timeout=httpx.Timeout(self.timeout),
            transport=transport,
        )

        self._closed = False

    async def search(
        self,
        query: str,
        api_key: str,
        country: str = "id",
        language: str = "id",
        device: str = "desktop",
        num: int = 10,
    ) -> SearchResponse:
        """
        Run one search request.

        Args:
            query: Search query
            api_key: Provider API key for this attempt
            country: Two-letter country code (gl)
            language: Language code (hl)
            device: "desktop" or "mobile"
            num: Number of results requested

        Returns:
            SearchResponse with organic results, headers and raw body

        Raises:
            SearchProviderError: Non-2xx response, timeout or transport error
        """
        if self._closed:
            raise SearchProviderError("Client is closed")

        payload = {
            "q": query,
            "gl": country,
            "hl": language,
            "num": num,
            "device": device,
        }
        logger.debug(f"POST {self.url} q={query!r} gl={country} hl={language} device={device}")

        try:
            response = await self._client.post(
                self.url,
                json=payload,
                headers={"X-API-KEY": api_key},
            )
        except httpx.TimeoutException as e:
            raise SearchProviderError(f"Request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise SearchProviderError(f"HTTP error: {e}") from e

        headers = dict(response.headers)
        try:
            body = response.json() if response.content else None
        except ValueError:
            body = response.text

        if not response.is_success:
            raise SearchProviderError(
                _error_message(response, body),
                status_code=response.status_code,
                headers=headers,
                body=body,
            )

        return SearchResponse(
            results=parse_organic_results(body),
            headers=headers,
            body=body,
            status_code=response.status_code,
        )

    async def close(self):
        """Close the HTTP client."""
        if not self._closed:
            await self._client.aclose()
            self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
