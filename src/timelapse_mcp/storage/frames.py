"""Filesystem persistence for captured frames."""

from __future__ import annotations

import hashlib
import logging
import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from .models import DirectoryMetadata, DirectorySummary, FrameListing

logger = logging.getLogger(__name__)

METADATA_FILENAME = "metadata.json"
ARTIFACT_FILENAME = "timelapse.gif"

FRAME_PATTERN = re.compile(r"^image_(?P<index>\d+)_(?P<timestamp>\d+)\.png$")

_SCHEME_PREFIX = re.compile(r"^https?://")
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9]")
_PREFIX_LIMIT = 30
_FINGERPRINT_LENGTH = 8


class StorageError(RuntimeError):
    """Raised when capture state cannot be read from or written to disk."""


def directory_for(url: str) -> str:
    """Map a URL to its directory key: ``<sanitized prefix>_<md5 fingerprint>``."""

    fingerprint = hashlib.md5(url.encode("utf-8")).hexdigest()[:_FINGERPRINT_LENGTH]
    sanitized = _UNSAFE_CHARS.sub("_", _SCHEME_PREFIX.sub("", url))[:_PREFIX_LIMIT]
    return f"{sanitized}_{fingerprint}"


def next_frame_name(sequence_index: int, timestamp_ms: int) -> str:
    return f"image_{sequence_index:05d}_{timestamp_ms}.png"


def frame_timestamp(name: str) -> int | None:
    """Return the capture timestamp embedded in a frame name, if it is one."""

    match = FRAME_PATTERN.match(name)
    if match is None:
        return None
    return int(match.group("timestamp"))


def _frame_sort_key(match: re.Match[str]) -> tuple[int, int, str]:
    return int(match.group("timestamp")), int(match.group("index")), match.string


class FrameStore:
    """Manage per-URL capture directories beneath a common root."""

    def __init__(
        self,
        root: Path,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._root = Path(root)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, url: str) -> Path:
        return self._root / directory_for(url)

    def ensure(self, path: Path) -> Path:
        """Create ``path`` (and parents) if it does not exist yet."""

        try:
            Path(path).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create capture directory {path}: {exc}") from exc
        return Path(path)

    def load_existing(self, path: Path) -> FrameListing:
        """List recognised frame files in capture order.

        Ordering follows the embedded timestamp rather than the filename, since
        sequence indexes restart whenever a different session writes to the
        same directory.
        """

        try:
            entries = os.listdir(path)
        except OSError:
            return FrameListing()

        matches = [match for match in map(FRAME_PATTERN.match, entries) if match is not None]
        matches.sort(key=_frame_sort_key)
        return FrameListing(names=[match.string for match in matches])

    def read_metadata(self, path: Path) -> DirectoryMetadata | None:
        metadata_path = Path(path) / METADATA_FILENAME
        try:
            raw = metadata_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Cannot read {metadata_path}: {exc}") from exc

        try:
            return DirectoryMetadata.model_validate_json(raw)
        except ValidationError as exc:
            raise StorageError(f"Malformed metadata in {metadata_path}: {exc}") from exc

    def write_metadata_once(self, path: Path, url: str) -> DirectoryMetadata | None:
        """Write ``metadata.json`` unless one already exists; return what is on disk.

        An existing file is never touched. If its content cannot be parsed the
        directory is still usable, so None is returned instead of failing.
        """

        metadata_path = Path(path) / METADATA_FILENAME
        metadata = DirectoryMetadata(url=url, created_at=self._clock())
        document = metadata.model_dump_json(by_alias=True, indent=2)

        tmp_name: str | None = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=path, prefix=".metadata-", suffix=".part", delete=False
            ) as handle:
                tmp_name = handle.name
                handle.write(document)
                handle.flush()
                os.fsync(handle.fileno())
            # link() publishes the complete file and fails if one is already there.
            os.link(tmp_name, metadata_path)
        except FileExistsError:
            return self._existing_metadata(path)
        except OSError as exc:
            raise StorageError(f"Cannot write {metadata_path}: {exc}") from exc
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)

        logger.info("Initialized capture directory", extra={"path": str(path), "url": url})
        return metadata

    def _existing_metadata(self, path: Path) -> DirectoryMetadata | None:
        try:
            return self.read_metadata(path)
        except StorageError as exc:
            logger.warning(
                "Ignoring unreadable directory metadata",
                extra={"path": str(path), "error": str(exc)},
            )
            return None

    def write_frame(self, path: Path, name: str, data: bytes) -> Path:
        """Persist a frame atomically; an existing frame is never replaced."""

        if not FRAME_PATTERN.match(name):
            raise StorageError(f"Refusing to write unrecognised frame name {name!r}")

        target = Path(path) / name
        if target.exists():
            raise StorageError(f"Frame {target} already exists")

        tmp_name: str | None = None
        try:
            with tempfile.NamedTemporaryFile(
                dir=path, prefix=".frame-", suffix=".part", delete=False
            ) as handle:
                tmp_name = handle.name
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, target)
        except OSError as exc:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise StorageError(f"Cannot write frame {target}: {exc}") from exc

        return target

    def read_frame(self, path: Path, name: str) -> bytes:
        frame_path = Path(path) / name
        try:
            return frame_path.read_bytes()
        except OSError as exc:
            raise StorageError(f"Cannot read frame {frame_path}: {exc}") from exc

    def resolve_file(self, directory_key: str, name: str) -> Path:
        """Resolve a frame, the artifact or the metadata file for display."""

        if not directory_key or directory_key in {".", ".."} or "/" in directory_key or "\\" in directory_key:
            raise StorageError(f"Invalid capture directory {directory_key!r}")
        if not (FRAME_PATTERN.match(name) or name in {ARTIFACT_FILENAME, METADATA_FILENAME}):
            raise StorageError(f"Unknown capture file {name!r}")

        candidate = self._root / directory_key / name
        if not candidate.is_file():
            raise StorageError(f"Capture file {directory_key}/{name} does not exist")
        return candidate

    def list_directories(self) -> list[DirectorySummary]:
        """Summarise every capture directory under the root, sorted by key."""

        if not self._root.is_dir():
            return []

        summaries: list[DirectorySummary] = []
        for entry in sorted(self._root.iterdir()):
            if not entry.is_dir():
                continue
            try:
                metadata = self.read_metadata(entry)
            except StorageError as exc:
                logger.warning("Skipping unreadable metadata", extra={"path": str(entry), "error": str(exc)})
                metadata = None
            listing = self.load_existing(entry)
            summaries.append(
                DirectorySummary(
                    key=entry.name,
                    path=str(entry),
                    url=metadata.url if metadata else None,
                    created_at=metadata.created_at if metadata else None,
                    frame_count=listing.count,
                    latest_frame=listing.names[-1] if listing.names else None,
                    has_artifact=(entry / ARTIFACT_FILENAME).is_file(),
                )
            )

        return summaries


__all__ = [
    "ARTIFACT_FILENAME",
    "FRAME_PATTERN",
    "METADATA_FILENAME",
    "FrameStore",
    "StorageError",
    "directory_for",
    "frame_timestamp",
    "next_frame_name",
]
