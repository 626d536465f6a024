"""Process-lifetime registry of capture sessions."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from typing import Callable

from ..storage import FrameStore, directory_for
from .models import SessionRecord, SessionStart

logger = logging.getLogger(__name__)


class SessionNotFoundError(KeyError):
    """Raised when a session identifier is unknown to the registry."""

    def __str__(self) -> str:
        return f"Session '{self.args[0]}' not found"


class SessionRegistry:
    """Map opaque session identifiers to their in-memory capture state.

    Sessions are never persisted. All durable state lives in the frame store,
    so a restarted process resumes by starting a new session for the same URL.
    Several sessions may point at one directory; each keeps its own view of
    the frame sequence from the moment it was started.
    """

    def __init__(
        self,
        store: FrameStore,
        *,
        id_factory: Callable[[], str] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._id_factory = id_factory or (lambda: secrets.token_hex(16))
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._sessions: dict[str, SessionRecord] = {}

    def start(self, url: str) -> SessionStart:
        directory = self._store.path_for(url)
        self._store.ensure(directory)
        self._store.write_metadata_once(directory, url)
        listing = self._store.load_existing(directory)

        session_id = self._id_factory()
        while session_id in self._sessions:
            session_id = self._id_factory()

        record = SessionRecord(
            session_id=session_id,
            url=url,
            directory_key=directory_for(url),
            directory=directory,
            created_at=self._clock(),
            resumed=listing.count > 0,
            frames=list(listing.names),
            capture_count=listing.count,
        )
        self._sessions[session_id] = record

        logger.info(
            "Started capture session",
            extra={
                "session_id": session_id,
                "url": url,
                "directory": record.directory_key,
                "resumed": record.resumed,
                "existing_frames": listing.count,
            },
        )
        return SessionStart(
            session_id=session_id,
            directory_key=record.directory_key,
            resumed=record.resumed,
            existing_frame_count=listing.count,
        )

    def get(self, session_id: str) -> SessionRecord:
        try:
            return self._sessions[session_id]
        except KeyError as exc:
            raise SessionNotFoundError(session_id) from exc

    def record_capture(self, session_id: str, frame_name: str) -> SessionRecord:
        """Append a freshly written frame; only call after a successful write."""

        record = self.get(session_id)
        record.frames.append(frame_name)
        record.capture_count += 1
        return record

    def sessions(self) -> list[SessionRecord]:
        return list(self._sessions.values())

    def __len__(self) -> int:
        return len(self._sessions)


__all__ = ["SessionNotFoundError", "SessionRegistry"]
