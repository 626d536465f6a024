"""Image retrieval for Timelapse MCP."""

from .client import NO_CACHE_HEADERS, SUPPORTED_SCHEMES, FakeFetcher, FetchError, ImageFetcher

__all__ = [
    "FakeFetcher",
    "FetchError",
    "ImageFetcher",
    "NO_CACHE_HEADERS",
    "SUPPORTED_SCHEMES",
]
