from __future__ import annotations

from datetime import datetime
from itertools import count
from pathlib import Path

import pytest

from timelapse_mcp.sessions import SessionNotFoundError, SessionRegistry
from timelapse_mcp.storage import FrameStore, directory_for, next_frame_name

URL = "https://example.com/cam.png"


def _registry(root: Path) -> SessionRegistry:
    ids = count(1)
    return SessionRegistry(
        FrameStore(root),
        id_factory=lambda: f"session-{next(ids)}",
        clock=lambda: datetime.fromisoformat("2025-01-01T00:00:00+00:00"),
    )


def test_start_fresh_session(tmp_path: Path) -> None:
    registry = _registry(tmp_path)

    started = registry.start(URL)

    assert started.session_id == "session-1"
    assert started.resumed is False
    assert started.existing_frame_count == 0
    assert started.directory_key == directory_for(URL)
    assert (tmp_path / directory_for(URL) / "metadata.json").is_file()

    record = registry.get(started.session_id)
    assert record.url == URL
    assert record.frames == []
    assert record.capture_count == 0


def test_start_resumes_frames_on_disk(tmp_path: Path) -> None:
    store = FrameStore(tmp_path)
    directory = store.ensure(store.path_for(URL))
    store.write_frame(directory, next_frame_name(0, 100), b"a")
    store.write_frame(directory, next_frame_name(1, 200), b"b")

    registry = _registry(tmp_path)
    started = registry.start(URL)

    assert started.resumed is True
    assert started.existing_frame_count == 2
    record = registry.get(started.session_id)
    assert record.frames == ["image_00000_100.png", "image_00001_200.png"]
    assert record.capture_count == len(record.frames)


def test_two_sessions_for_same_url_are_independent(tmp_path: Path) -> None:
    registry = _registry(tmp_path)

    first = registry.start(URL)
    second = registry.start(URL)
    registry.record_capture(first.session_id, "image_00000_1.png")

    assert first.session_id != second.session_id
    assert first.directory_key == second.directory_key
    assert registry.get(first.session_id).capture_count == 1
    assert registry.get(second.session_id).capture_count == 0
    assert len(registry) == 2


def test_generated_ids_are_not_reused(tmp_path: Path) -> None:
    ids = iter(["dup", "dup", "fresh"])
    registry = SessionRegistry(FrameStore(tmp_path), id_factory=lambda: next(ids))

    assert registry.start(URL).session_id == "dup"
    assert registry.start(URL).session_id == "fresh"


def test_default_ids_are_opaque_hex(tmp_path: Path) -> None:
    registry = SessionRegistry(FrameStore(tmp_path))

    session_id = registry.start(URL).session_id

    assert len(session_id) == 32
    int(session_id, 16)


def test_record_capture_keeps_count_in_step(tmp_path: Path) -> None:
    registry = _registry(tmp_path)
    session_id = registry.start(URL).session_id

    registry.record_capture(session_id, "image_00000_1.png")
    record = registry.record_capture(session_id, "image_00001_2.png")

    assert record.capture_count == 2 == len(record.frames)
    assert record.latest_frame == "image_00001_2.png"


def test_unknown_session_raises(tmp_path: Path) -> None:
    registry = _registry(tmp_path)

    with pytest.raises(SessionNotFoundError, match="missing"):
        registry.get("missing")
    with pytest.raises(SessionNotFoundError):
        registry.record_capture("missing", "image_00000_1.png")


def test_start_resumes_over_empty_metadata_file(tmp_path: Path) -> None:
    store = FrameStore(tmp_path)
    directory = store.ensure(store.path_for(URL))
    (directory / "metadata.json").write_text("", encoding="utf-8")
    store.write_frame(directory, next_frame_name(0, 100), b"a")

    started = _registry(tmp_path).start(URL)

    assert started.resumed is True
    assert started.existing_frame_count == 1
    assert (directory / "metadata.json").read_text(encoding="utf-8") == ""
