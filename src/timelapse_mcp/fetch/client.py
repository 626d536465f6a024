"""Async HTTP retrieval of the watched image."""

from __future__ import annotations

import logging
from typing import Iterable
from urllib.parse import urlsplit

import httpx

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

SUPPORTED_SCHEMES = frozenset({"http", "https"})


class FetchError(RuntimeError):
    """Raised when the image cannot be retrieved."""


class ImageFetcher:
    """Fetch the current bytes behind a URL, bypassing every cache on the way."""

    def __init__(
        self,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    async def fetch(self, url: str) -> bytes:
        scheme = urlsplit(url).scheme.lower()
        if scheme not in SUPPORTED_SCHEMES:
            raise FetchError(f"Unsupported URL scheme {scheme or '(none)'!r} for {url}")

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self._timeout,
                follow_redirects=True,
            ) as client:
                response = await client.get(url, headers=NO_CACHE_HEADERS)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise FetchError(
                f"{url} answered with HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"Request to {url} failed: {exc}") from exc

        logger.debug(
            "Fetched image",
            extra={"url": url, "status": response.status_code, "bytes": len(response.content)},
        )
        return response.content


class FakeFetcher(ImageFetcher):
    """Test double that serves scripted payloads in order."""

    def __init__(self, payloads: Iterable[bytes | Exception] | None = None) -> None:  # type: ignore[override]
        self._payloads = list(payloads or [])
        self._requests: list[str] = []

    def queue(self, *payloads: bytes | Exception) -> None:
        self._payloads.extend(payloads)

    async def fetch(self, url: str) -> bytes:  # type: ignore[override]
        self._requests.append(url)
        if not self._payloads:
            raise FetchError(f"No scripted payload left for {url}")
        payload = self._payloads.pop(0)
        if isinstance(payload, Exception):
            raise payload
        return payload

    @property
    def requests(self) -> list[str]:
        return self._requests
