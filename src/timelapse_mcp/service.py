"""Capture pipeline: fetch, deduplicate, persist, regenerate."""

from __future__ import annotations

import asyncio
import logging
import math
import mimetypes
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable
from urllib.parse import urlsplit

from .assembly import AnimationAssembler
from .config import TimelapseSettings
from .duplicates import identical
from .fetch import SUPPORTED_SCHEMES, ImageFetcher
from .sessions import SessionRecord, SessionRegistry, SessionStart
from .storage import DirectorySummary, FrameStore, StorageError, frame_timestamp, next_frame_name

logger = logging.getLogger(__name__)

MIN_DELAY_MS = 10


class RequestValidationError(ValueError):
    """Raised when a caller supplies missing or malformed input."""


@dataclass(slots=True)
class CaptureResult:
    session_id: str
    frame_count: int
    latest_frame: str | None
    duplicate: bool
    artifact: Path | None


@dataclass(slots=True)
class SessionInfo:
    session_id: str
    url: str
    directory_key: str
    frame_count: int
    latest_frame: str | None


@dataclass(slots=True)
class RegenerateResult:
    session_id: str
    artifact: Path | None
    delay_ms: int
    frame_count: int


def delay_for_speed(base_delay_ms: int, speed: float | None = None) -> int:
    """Per-frame delay for a playback speed multiplier, rounded half up.

    ``speed`` of None means normal speed. GIF timing has 10 ms resolution, so
    the result never drops below that.
    """

    if speed is None:
        speed = 1
    if not math.isfinite(speed) or speed <= 0:
        raise RequestValidationError(f"Speed must be a positive number, got {speed!r}")
    return max(MIN_DELAY_MS, math.floor(base_delay_ms / speed + 0.5))


def validate_url(url: str | None) -> str:
    if url is None or not url.strip():
        raise RequestValidationError("URL is required")
    url = url.strip()
    parts = urlsplit(url)
    if parts.scheme.lower() not in SUPPORTED_SCHEMES or not parts.netloc:
        raise RequestValidationError(f"URL must be an absolute http(s) URL, got {url!r}")
    return url


def _epoch_ms() -> int:
    return time.time_ns() // 1_000_000


class CaptureService:
    """Ties the frame store, fetcher, session registry and assembler together."""

    def __init__(
        self,
        *,
        store: FrameStore,
        registry: SessionRegistry,
        fetcher: ImageFetcher,
        assembler: AnimationAssembler,
        base_delay_ms: int = 500,
        clock_ms: Callable[[], int] | None = None,
    ) -> None:
        self._store = store
        self._registry = registry
        self._fetcher = fetcher
        self._assembler = assembler
        self._base_delay_ms = base_delay_ms
        self._clock_ms = clock_ms or _epoch_ms

    @classmethod
    def from_settings(
        cls,
        settings: TimelapseSettings,
        *,
        fetcher: ImageFetcher | None = None,
    ) -> "CaptureService":
        store = FrameStore(settings.captures_root)
        return cls(
            store=store,
            registry=SessionRegistry(store),
            fetcher=fetcher or ImageFetcher(timeout=settings.fetch_timeout),
            assembler=AnimationAssembler(
                quality=settings.gif_quality,
                background=settings.background_rgb,
            ),
            base_delay_ms=settings.base_delay_ms,
        )

    @property
    def store(self) -> FrameStore:
        return self._store

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def base_delay_ms(self) -> int:
        return self._base_delay_ms

    def start_session(self, url: str | None) -> SessionStart:
        return self._registry.start(validate_url(url))

    async def capture(self, session_id: str) -> CaptureResult:
        """Fetch the URL once and store the image if it changed since the last frame."""

        record = self._registry.get(session_id)
        async with record.lock:
            data = await self._fetcher.fetch(record.url)

            previous: bytes | None = None
            if record.latest_frame is not None:
                previous = await asyncio.to_thread(
                    self._store.read_frame, record.directory, record.latest_frame
                )

            if identical(previous, data):
                logger.debug(
                    "Discarded duplicate capture",
                    extra={"session_id": session_id, "latest_frame": record.latest_frame},
                )
                return CaptureResult(
                    session_id=session_id,
                    frame_count=record.capture_count,
                    latest_frame=record.latest_frame,
                    duplicate=True,
                    artifact=None,
                )

            frame_name = next_frame_name(record.capture_count, self._next_timestamp(record))
            await asyncio.to_thread(self._store.write_frame, record.directory, frame_name, data)
            self._registry.record_capture(session_id, frame_name)

            logger.info(
                "Captured frame",
                extra={
                    "session_id": session_id,
                    "frame": frame_name,
                    "frame_count": record.capture_count,
                    "bytes": len(data),
                },
            )

            artifact = await asyncio.to_thread(
                self._assembler.assemble,
                record.directory,
                list(record.frames),
                self._base_delay_ms,
            )

        return CaptureResult(
            session_id=session_id,
            frame_count=record.capture_count,
            latest_frame=record.latest_frame,
            duplicate=False,
            artifact=artifact,
        )

    def describe(self, session_id: str) -> SessionInfo:
        record = self._registry.get(session_id)
        return SessionInfo(
            session_id=session_id,
            url=record.url,
            directory_key=record.directory_key,
            frame_count=len(record.frames),
            latest_frame=record.latest_frame,
        )

    async def regenerate(self, session_id: str, speed: float | None = None) -> RegenerateResult:
        """Rebuild the artifact without capturing, at ``speed`` times the base rate."""

        record = self._registry.get(session_id)
        delay_ms = delay_for_speed(self._base_delay_ms, speed)
        async with record.lock:
            artifact = await asyncio.to_thread(
                self._assembler.assemble,
                record.directory,
                list(record.frames),
                delay_ms,
            )
        return RegenerateResult(
            session_id=session_id,
            artifact=artifact,
            delay_ms=delay_ms,
            frame_count=len(record.frames),
        )

    def open_capture(self, directory_key: str, name: str) -> tuple[bytes, str]:
        """Return the bytes and mime type of a stored frame or artifact."""

        path = self._store.resolve_file(directory_key, name)
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise StorageError(f"Cannot read {directory_key}/{name}: {exc}") from exc
        mime_type, _ = mimetypes.guess_type(path.name)
        return data, mime_type or "application/octet-stream"

    def list_captures(self) -> list[DirectorySummary]:
        return self._store.list_directories()

    def _next_timestamp(self, record: SessionRecord) -> int:
        now = self._clock_ms()
        last = frame_timestamp(record.latest_frame) if record.latest_frame else None
        if last is not None and now <= last:
            return last + 1
        return now


__all__ = [
    "CaptureResult",
    "CaptureService",
    "RegenerateResult",
    "RequestValidationError",
    "SessionInfo",
    "delay_for_speed",
    "validate_url",
]
