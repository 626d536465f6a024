from __future__ import annotations

import importlib.util
import json
from pathlib import Path

import pytest
from PIL import Image

from timelapse_mcp.storage import FrameStore, directory_for, next_frame_name

URL = "https://example.com/cam.png"


def _load_diag():
    module_path = Path(__file__).resolve().parents[1] / "scripts" / "timelapse_diag.py"
    spec = importlib.util.spec_from_file_location("timelapse_diag_test_module", module_path)
    assert spec and spec.loader
    diag = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(diag)
    return diag


@pytest.fixture
def captures(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, png) -> Path:
    root = tmp_path / "captures"
    monkeypatch.setenv("TIMELAPSE_CAPTURES_ROOT", str(root))
    store = FrameStore(root)
    directory = store.ensure(store.path_for(URL))
    store.write_metadata_once(directory, URL)
    for index, color in enumerate([(255, 0, 0), (255, 0, 0), (0, 0, 255)]):
        store.write_frame(directory, next_frame_name(index, 100 + index), png(color))
    return root


def test_dirs_lists_capture_directories(captures: Path, capsys) -> None:
    diag = _load_diag()

    diag.main(["dirs", "--json"])

    payload = json.loads(capsys.readouterr().out)
    assert payload[0]["directory"] == directory_for(URL)
    assert payload[0]["url"] == URL
    assert payload[0]["frame_count"] == 3
    assert payload[0]["has_artifact"] is False


def test_frames_prints_capture_order(captures: Path, capsys) -> None:
    diag = _load_diag()

    diag.main(["frames", directory_for(URL)])

    assert capsys.readouterr().out.split() == [
        "image_00000_100.png",
        "image_00001_101.png",
        "image_00002_102.png",
    ]


def test_assemble_builds_gif_at_requested_speed(captures: Path, capsys) -> None:
    diag = _load_diag()

    diag.main(["assemble", directory_for(URL), "--speed", "2"])

    payload = json.loads(capsys.readouterr().out)
    assert payload["delay_ms"] == 250
    assert payload["frames"] == 3
    with Image.open(payload["artifact"]) as gif:
        assert gif.n_frames == 2


def test_assemble_unknown_directory_exits(captures: Path, capsys) -> None:
    diag = _load_diag()

    with pytest.raises(SystemExit) as excinfo:
        diag.main(["assemble", "missing_00000000"])

    assert excinfo.value.code == 1
    assert "not found" in capsys.readouterr().out


def test_assemble_rejects_bad_speed(captures: Path, capsys) -> None:
    diag = _load_diag()

    with pytest.raises(SystemExit) as excinfo:
        diag.main(["assemble", directory_for(URL), "--speed", "0"])

    assert excinfo.value.code == 2
