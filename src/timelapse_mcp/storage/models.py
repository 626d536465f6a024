"""Data models for on-disk capture state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class DirectoryMetadata(BaseModel):
    """Contents of ``metadata.json``, written once per capture directory."""

    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(..., description="URL the directory was created for.")
    created_at: datetime = Field(
        ...,
        alias="createdAt",
        description="UTC timestamp of the first session started for this directory.",
    )


@dataclass(slots=True)
class FrameListing:
    names: list[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.names)


@dataclass(slots=True)
class DirectorySummary:
    key: str
    path: str
    url: str | None
    created_at: datetime | None
    frame_count: int
    latest_frame: str | None
    has_artifact: bool


__all__ = ["DirectoryMetadata", "DirectorySummary", "FrameListing"]
