"""Timelapse MCP diagnostics CLI."""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from timelapse_mcp.assembly import AnimationAssembler, RenderError
from timelapse_mcp.config import TimelapseSettings
from timelapse_mcp.service import RequestValidationError, delay_for_speed
from timelapse_mcp.storage import FrameStore


def load_store(settings: TimelapseSettings) -> FrameStore:
    return FrameStore(settings.captures_root.expanduser())


def resolve_directory(store: FrameStore, key: str) -> Path:
    directory = store.root / key
    if not directory.is_dir():
        print(f"Capture directory not found: {directory}")
        raise SystemExit(1)
    return directory


def cmd_dirs(args: argparse.Namespace) -> None:
    settings = TimelapseSettings()
    store = load_store(settings)
    summaries = store.list_directories()
    if args.json:
        payload = [
            {
                "directory": summary.key,
                "url": summary.url,
                "created_at": summary.created_at.isoformat() if summary.created_at else None,
                "frame_count": summary.frame_count,
                "latest_frame": summary.latest_frame,
                "has_artifact": summary.has_artifact,
            }
            for summary in summaries
        ]
        print(json.dumps(payload, indent=2))
    else:
        for summary in summaries:
            gif = "gif" if summary.has_artifact else "no gif"
            print(f"{summary.key} [{summary.frame_count} frames, {gif}] -> {summary.url}")


def cmd_frames(args: argparse.Namespace) -> None:
    settings = TimelapseSettings()
    store = load_store(settings)
    directory = resolve_directory(store, args.directory)
    for name in store.load_existing(directory).names:
        print(name)


def cmd_assemble(args: argparse.Namespace) -> None:
    settings = TimelapseSettings()
    store = load_store(settings)
    directory = resolve_directory(store, args.directory)
    try:
        delay_ms = delay_for_speed(settings.base_delay_ms, args.speed)
    except RequestValidationError as exc:
        print(str(exc))
        raise SystemExit(2)

    assembler = AnimationAssembler(
        quality=settings.gif_quality,
        background=settings.background_rgb,
    )
    frames = store.load_existing(directory).names
    try:
        artifact = assembler.assemble(directory, frames, delay_ms)
    except RenderError as exc:
        print(f"Assembly failed: {exc}")
        raise SystemExit(1)

    print(
        json.dumps(
            {
                "directory": args.directory,
                "frames": len(frames),
                "delay_ms": delay_ms,
                "artifact": str(artifact) if artifact else None,
            },
            indent=2,
        )
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Timelapse MCP diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_dirs = sub.add_parser("dirs", help="List capture directories")
    p_dirs.add_argument("--json", action="store_true", help="Output JSON")
    p_dirs.set_defaults(func=cmd_dirs)

    p_frames = sub.add_parser("frames", help="List frames of a capture directory in capture order")
    p_frames.add_argument("directory")
    p_frames.set_defaults(func=cmd_frames)

    p_assemble = sub.add_parser("assemble", help="Regenerate the GIF of a capture directory")
    p_assemble.add_argument("directory")
    p_assemble.add_argument(
        "--speed",
        type=float,
        default=None,
        help="Playback speed multiplier relative to the base frame delay",
    )
    p_assemble.set_defaults(func=cmd_assemble)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
