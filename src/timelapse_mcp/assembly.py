"""Animated GIF assembly from stored frames."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Sequence

from PIL import Image, ImageOps

from .duplicates import identical
from .storage import ARTIFACT_FILENAME

logger = logging.getLogger(__name__)

DEFAULT_QUALITY = 10
LOOP_FOREVER = 0


class RenderError(RuntimeError):
    """Raised when frames cannot be decoded or the animation cannot be encoded."""


class AnimationAssembler:
    """Rebuild the looping GIF for a capture directory from scratch.

    The first frame fixes the canvas size. Every frame is fitted inside that
    canvas without distortion, centred over an opaque background, and a frame
    whose pixels match the previously accepted one is dropped.

    ``quality`` mirrors the 1-20 scale of classic GIF encoders where lower is
    better: values up to 10 quantize with median cut, higher values trade
    colour fidelity for speed with the fast octree quantizer.
    """

    def __init__(
        self,
        *,
        quality: int = DEFAULT_QUALITY,
        background: tuple[int, int, int] = (0, 0, 0),
        artifact_name: str = ARTIFACT_FILENAME,
    ) -> None:
        if not 1 <= quality <= 20:
            raise ValueError("quality must be between 1 and 20")
        self._quality = quality
        self._background = tuple(background)
        self._artifact_name = artifact_name

    @property
    def artifact_name(self) -> str:
        return self._artifact_name

    @property
    def quality(self) -> int:
        return self._quality

    def assemble(self, directory: Path, frame_names: Sequence[str], delay_ms: int) -> Path | None:
        """Write the artifact for ``frame_names`` and return its path.

        Returns None without touching the disk when there are no frames.
        """

        if not frame_names:
            logger.debug("No frames to assemble", extra={"directory": str(directory)})
            return None

        directory = Path(directory)
        canvas_size = self._canvas_size(directory / frame_names[0])

        accepted: list[Image.Image] = []
        previous: bytes | None = None
        for name in frame_names:
            frame = self._normalize(directory / name, canvas_size)
            pixels = frame.tobytes()
            if identical(previous, pixels):
                continue
            accepted.append(self._quantize(frame))
            previous = pixels

        target = directory / self._artifact_name
        self._encode(accepted, target, delay_ms)

        logger.info(
            "Assembled animation",
            extra={
                "artifact": str(target),
                "frames_in": len(frame_names),
                "frames_out": len(accepted),
                "delay_ms": delay_ms,
            },
        )
        return target

    def _canvas_size(self, path: Path) -> tuple[int, int]:
        try:
            with Image.open(path) as image:
                return image.size
        except (OSError, Image.DecompressionBombError) as exc:
            raise RenderError(f"Cannot read dimensions of {path.name}: {exc}") from exc

    def _normalize(self, path: Path, canvas_size: tuple[int, int]) -> Image.Image:
        try:
            with Image.open(path) as source:
                rgba = source.convert("RGBA")
        except (OSError, Image.DecompressionBombError) as exc:
            raise RenderError(f"Cannot decode frame {path.name}: {exc}") from exc

        if rgba.size != canvas_size:
            rgba = ImageOps.contain(rgba, canvas_size, method=Image.Resampling.LANCZOS)

        canvas = Image.new("RGBA", canvas_size, (*self._background, 255))
        offset = (
            (canvas_size[0] - rgba.width) // 2,
            (canvas_size[1] - rgba.height) // 2,
        )
        canvas.alpha_composite(rgba, dest=offset)
        return canvas.convert("RGB")

    def _quantize(self, frame: Image.Image) -> Image.Image:
        method = (
            Image.Quantize.MEDIANCUT if self._quality <= 10 else Image.Quantize.FASTOCTREE
        )
        try:
            return frame.quantize(colors=256, method=method, dither=Image.Dither.FLOYDSTEINBERG)
        except (OSError, ValueError) as exc:
            raise RenderError(f"Cannot quantize frame: {exc}") from exc

    def _encode(self, frames: list[Image.Image], target: Path, delay_ms: int) -> None:
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=target.parent, prefix=".timelapse-", suffix=".gif.part"
            )
        except OSError as exc:
            raise RenderError(f"Cannot create temporary artifact in {target.parent}: {exc}") from exc
        os.close(fd)
        try:
            first, rest = frames[0], frames[1:]
            first.save(
                tmp_name,
                format="GIF",
                save_all=True,
                append_images=rest,
                duration=int(delay_ms),
                loop=LOOP_FOREVER,
                disposal=1,
            )
            os.replace(tmp_name, target)
        except (OSError, ValueError) as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise RenderError(f"Cannot encode animation {target}: {exc}") from exc


__all__ = ["AnimationAssembler", "RenderError"]
