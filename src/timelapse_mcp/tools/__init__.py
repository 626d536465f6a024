"""Tool registration for Timelapse MCP."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any

from fastmcp import Context, FastMCP
from fastmcp.exceptions import ResourceError, ToolError

from ..assembly import RenderError
from ..config import TimelapseSettings
from ..fetch import FetchError
from ..service import CaptureService, RequestValidationError
from ..sessions import SessionNotFoundError
from ..storage import StorageError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ToolHandles:
    start_session: Any
    capture_frame: Any
    session_info: Any
    generate_gif: Any
    list_captures: Any
    get_capture: Any
    capture_file: Any
    service: CaptureService


def register_tools(
    server: FastMCP,
    *,
    service: CaptureService,
    settings: TimelapseSettings,
) -> ToolHandles:
    """Register Timelapse MCP's tools and the capture file resource on the server."""

    def _start_session(url: str, context: Context | None = None) -> dict[str, Any]:
        """Start (or resume) capturing the image behind a URL."""

        try:
            started = service.start_session(url)
        except RequestValidationError as exc:
            raise ToolError(str(exc)) from exc
        except StorageError as exc:
            _emit_log(context, "error", "Failed to start session", extra={"url": url, "error": str(exc)})
            raise ToolError(f"Failed to start session: {exc}") from exc

        _emit_log(
            context,
            "info",
            "Session started",
            extra={
                "session_id": started.session_id,
                "directory": started.directory_key,
                "existing_frames": started.existing_frame_count,
            },
        )
        return {
            "session_id": started.session_id,
            "directory": started.directory_key,
            "existing_frames": started.existing_frame_count,
            "continuing": started.resumed,
        }

    async def _capture_frame(session_id: str, context: Context | None = None) -> dict[str, Any]:
        """Fetch the session URL once, store the image if it changed, and refresh the GIF."""

        try:
            result = await service.capture(session_id)
        except SessionNotFoundError as exc:
            raise ToolError(str(exc)) from exc
        except (FetchError, StorageError, RenderError) as exc:
            _emit_log(
                context,
                "error",
                "Capture failed",
                extra={"session_id": session_id, "error": str(exc)},
            )
            raise ToolError(f"Failed to capture image: {exc}") from exc

        _emit_log(
            context,
            "debug",
            "Capture finished",
            extra={"session_id": session_id, "duplicate": result.duplicate},
        )
        return {
            "success": True,
            "frame_count": result.frame_count,
            "latest_frame": result.latest_frame,
            "duplicate": result.duplicate,
            "artifact": str(result.artifact) if result.artifact else None,
        }

    def _session_info(session_id: str, context: Context | None = None) -> dict[str, Any]:
        """Report the URL, frame count and most recent frame of a session."""

        try:
            info = service.describe(session_id)
        except SessionNotFoundError as exc:
            raise ToolError(str(exc)) from exc
        return {
            "session_id": info.session_id,
            "url": info.url,
            "directory": info.directory_key,
            "frame_count": info.frame_count,
            "latest_frame": info.latest_frame,
        }

    async def _generate_gif(
        session_id: str,
        speed: float | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Rebuild the session GIF; speed 2 plays twice as fast as the base delay."""

        try:
            result = await service.regenerate(session_id, speed)
        except SessionNotFoundError as exc:
            raise ToolError(str(exc)) from exc
        except RequestValidationError as exc:
            raise ToolError(str(exc)) from exc
        except (StorageError, RenderError) as exc:
            _emit_log(
                context,
                "error",
                "GIF generation failed",
                extra={"session_id": session_id, "error": str(exc)},
            )
            raise ToolError(f"Failed to generate GIF: {exc}") from exc

        return {
            "success": True,
            "artifact": str(result.artifact) if result.artifact else None,
            "delay_ms": result.delay_ms,
            "frame_count": result.frame_count,
        }

    def _list_captures(context: Context | None = None) -> list[dict[str, Any]]:
        """List capture directories on disk with their source URL and frame count."""

        summaries = service.list_captures()
        _emit_log(context, "debug", "Listing capture directories", extra={"count": len(summaries)})
        return [
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

    def _get_capture(directory: str, name: str, context: Context | None = None) -> dict[str, Any]:
        """Return a stored frame or the GIF of a capture directory, base64 encoded."""

        try:
            data, mime_type = service.open_capture(directory, name)
        except StorageError as exc:
            raise ToolError(str(exc)) from exc
        return {
            "directory": directory,
            "name": name,
            "mime_type": mime_type,
            "size": len(data),
            "data_base64": base64.b64encode(data).decode("ascii"),
        }

    def _capture_file(directory: str, name: str) -> bytes:
        """Raw bytes of a stored frame or GIF."""

        try:
            data, _ = service.open_capture(directory, name)
        except StorageError as exc:
            raise ResourceError(str(exc)) from exc
        return data

    tool_start = server.tool(
        name="start_session",
        description=(
            "Start capturing an image URL. Frames already captured for the same URL are "
            "resumed. Returns a session id for capture_frame and generate_gif."
        ),
    )(_start_session)

    tool_capture = server.tool(
        name="capture_frame",
        description=(
            "Fetch the session's image once. Unchanged images are reported as duplicates and "
            "not stored; new images are saved and the GIF is regenerated."
        ),
    )(_capture_frame)

    tool_info = server.tool(
        name="session_info",
        description="Show the URL, frame count and latest frame of a capture session.",
    )(_session_info)

    tool_generate = server.tool(
        name="generate_gif",
        description=(
            f"Regenerate the session GIF. speed multiplies playback rate relative to the "
            f"{settings.base_delay_ms} ms base frame delay."
        ),
    )(_generate_gif)

    tool_list = server.tool(
        name="list_captures",
        description="List capture directories with their URL, frame count and GIF availability.",
    )(_list_captures)

    tool_get = server.tool(
        name="get_capture",
        description="Fetch a stored frame or timelapse.gif from a capture directory as base64.",
    )(_get_capture)

    resource_file = server.resource(
        "resource://timelapse/captures/{directory}/{name}",
        name="capture_file",
        description="Stored frame or GIF of a capture directory.",
    )(_capture_file)

    return ToolHandles(
        start_session=tool_start,
        capture_frame=tool_capture,
        session_info=tool_info,
        generate_gif=tool_generate,
        list_captures=tool_list,
        get_capture=tool_get,
        capture_file=resource_file,
        service=service,
    )


def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Best-effort logging that prefers the MCP context logger when available."""

    payload = extra or {}

    if context is not None:
        ctx_logger = getattr(context, "logger", None)
        if ctx_logger is not None:
            log_method = getattr(ctx_logger, level, None)
            if callable(log_method):
                log_method(message, extra=payload)
                return

    fallback = getattr(logger, level, logger.info)
    fallback(message, extra=payload)


__all__ = ["register_tools", "ToolHandles"]
