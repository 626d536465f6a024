"""In-memory session records."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path


@dataclass(slots=True)
class SessionRecord:
    session_id: str
    url: str
    directory_key: str
    directory: Path
    created_at: datetime
    resumed: bool
    frames: list[str] = field(default_factory=list)
    capture_count: int = 0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def latest_frame(self) -> str | None:
        return self.frames[-1] if self.frames else None


@dataclass(slots=True)
class SessionStart:
    session_id: str
    directory_key: str
    resumed: bool
    existing_frame_count: int


__all__ = ["SessionRecord", "SessionStart"]
