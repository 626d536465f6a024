"""Storage abstractions for Timelapse MCP."""

from .frames import (
    ARTIFACT_FILENAME,
    METADATA_FILENAME,
    FrameStore,
    StorageError,
    directory_for,
    frame_timestamp,
    next_frame_name,
)
from .models import DirectoryMetadata, DirectorySummary, FrameListing

__all__ = [
    "ARTIFACT_FILENAME",
    "METADATA_FILENAME",
    "DirectoryMetadata",
    "DirectorySummary",
    "FrameListing",
    "FrameStore",
    "StorageError",
    "directory_for",
    "frame_timestamp",
    "next_frame_name",
]
