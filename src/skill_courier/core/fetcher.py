"""HTTP GET with redirect following, bounded waits and JSON decoding."""

import json
import logging
from typing import Any
from urllib.parse import urlparse

import httpx

from skill_courier.errors import InvalidJson, NetworkError

logger = logging.getLogger("skill-courier.fetcher")


class ContentFetcher:
    """Stateless wrapper over httpx used by every remote component.

    Args:
        timeout: Ceiling for one request, in seconds.
        max_redirects: Redirect hops followed before giving up.
        user_agent: Sent with every request.
        token: Optional GitHub token, only sent to api.github.com.
        transport: Optional httpx transport (tests pass httpx.MockTransport).
    """

    def __init__(
        self,
        timeout: float = 120.0,
        max_redirects: int = 5,
        user_agent: str = "skill-courier",
        token: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.user_agent = user_agent
        self._token = token
        self._transport = transport

    @classmethod
    def from_settings(cls, settings) -> "ContentFetcher":
        return cls(
            timeout=settings.http_timeout,
            max_redirects=settings.max_redirects,
            user_agent=settings.user_agent,
            token=settings.github_token,
        )

    def _headers(self, url: str, extra: dict[str, str] | None) -> dict[str, str]:
        headers = {"User-Agent": self.user_agent}
        if urlparse(url).hostname == "api.github.com":
            headers["Accept"] = "application/vnd.github.v3+json"
            if self._token:
                headers["Authorization"] = f"Bearer {self._token}"
        if extra:
            headers.update(extra)
        return headers

    async def get_bytes(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> bytes:
        """GET a URL and return the body, raising NetworkError on any failure."""
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                max_redirects=self.max_redirects,
                transport=self._transport,
            ) as client:
                response = await client.get(url, params=params, headers=self._headers(url, headers))
        except httpx.TimeoutException as e:
            raise NetworkError(f"Timed out after {self.timeout:.0f}s fetching {url}") from e
        except httpx.TooManyRedirects as e:
            raise NetworkError(f"Too many redirects fetching {url}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Request to {url} failed: {e}") from e

        if response.status_code >= 400:
            raise NetworkError(f"HTTP {response.status_code} fetching {url}")

        logger.debug("GET %s -> %d (%d bytes)", url, response.status_code, len(response.content))
        return response.content

    async def get_text(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> str:
        body = await self.get_bytes(url, params=params, headers=headers)
        return body.decode("utf-8", errors="replace")

    async def get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        body = await self.get_bytes(url, params=params, headers=headers)
        try:
            return json.loads(body)
        except ValueError as e:
            raise InvalidJson(f"Invalid JSON response from {url}") from e
