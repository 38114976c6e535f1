"""Authority URL discovery.

Resolves well-known service keys (such as the identity provider
authority) through a discovery web service::

    GET {url}/GetUrl/?url=<search_key>[&region=<region>]

    {"result": {"url": "https://ims.example.com"}}

Resolved URLs are cached per (search key, region) for the lifetime of
the client.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging

from typing import TYPE_CHECKING, Any

import httpx

from .exceptions import DiscoveryError


if TYPE_CHECKING:
    from .config import DiscoverySettings


logger = logging.getLogger("oidc_session.discovery")


class UrlDiscoveryClient:
    """Client for the URL discovery web service.

    Parameters
    ----------
    url : str
        Base URL of the discovery web service.
    region : str
        Default region sent with every request (empty for none).
    timeout : float
        Timeout in seconds for a single request.
    """

    def __init__(self, url: str, region: str = "", timeout: float = 10.0) -> None:
        """Initialize the discovery client."""
        self.url = url.rstrip("/")
        self.region = region
        self.timeout = timeout
        self._cache: dict[tuple[str, str], str] = {}
        self._http_client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: DiscoverySettings) -> UrlDiscoveryClient:
        """Create a client from ``DiscoverySettings``."""
        return cls(url=settings.url, region=settings.region, timeout=settings.timeout_seconds)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def close(self) -> None:
        """Close the shared HTTP client."""
        if self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()
            self._http_client = None

    def clear_cache(self) -> None:
        """Forget every resolved URL."""
        self._cache.clear()

    async def discover_url(self, search_key: str, region: str | None = None) -> str:
        """Resolve ``search_key`` to a URL.

        Parameters
        ----------
        search_key : str
            The well-known key to look up (e.g. ``IMSOpenID``).
        region : str, optional
            Overrides the client's default region.

        Returns
        -------
        str
            The resolved URL.

        Raises
        ------
        DiscoveryError
            If no service URL is configured, the request fails, or the
            response carries no URL.
        """
        region = self.region if region is None else region
        cache_key = (search_key, region)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        if not self.url:
            msg = "Discovery service URL is not configured"
            raise DiscoveryError(msg, search_key=search_key)

        params: dict[str, str] = {"url": search_key}
        if region:
            params["region"] = region

        try:
            client = await self._get_client()
            resp = await client.get(
                f"{self.url}/GetUrl/",
                params=params,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPStatusError as exc:
            msg = f"Discovery request failed: {exc.response.status_code}"
            raise DiscoveryError(msg, search_key=search_key) from exc
        except httpx.HTTPError as exc:
            msg = f"Discovery request failed: {exc}"
            raise DiscoveryError(msg, search_key=search_key) from exc
        except ValueError as exc:
            msg = "Discovery response is not valid JSON"
            raise DiscoveryError(msg, search_key=search_key) from exc

        resolved = _extract_url(body)
        if not resolved:
            msg = "Discovery response did not contain a URL"
            raise DiscoveryError(msg, search_key=search_key)

        self._cache[cache_key] = resolved
        logger.debug("Discovered %s -> %s", search_key, resolved)
        return resolved


def _extract_url(body: Any) -> str:
    """Pull ``result.url`` out of a discovery response body."""
    if not isinstance(body, dict):
        return ""
    result = body.get("result")
    if not isinstance(result, dict):
        return ""
    url = result.get("url")
    return url if isinstance(url, str) else ""
