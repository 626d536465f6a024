"""FastMCP server bootstrap for Timelapse MCP."""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from fastmcp import Context, FastMCP

from . import __version__
from .config import TimelapseSettings, get_settings
from .fetch import ImageFetcher
from .service import CaptureService
from .storage import StorageError
from .tools import register_tools


def configure_logging(level: str) -> None:
    """Configure root logging for the Timelapse server."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def create_server(
    settings: Optional[TimelapseSettings] = None,
    fetcher: ImageFetcher | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server with the capture service behind it."""

    settings = settings or get_settings()
    service = CaptureService.from_settings(settings, fetcher=fetcher)

    storage_metadata = {
        "available": False,
        "captures_root": str(settings.captures_root),
        "error": None,
    }
    try:
        service.store.ensure(settings.captures_root)
        storage_metadata["available"] = True
    except StorageError as exc:
        storage_metadata["error"] = str(exc)
        logging.getLogger(__name__).warning(
            "Captures root unavailable",
            extra={"captures_root": str(settings.captures_root), "error": str(exc)},
        )

    server = FastMCP(
        name="Timelapse MCP",
        version=__version__,
        instructions=(
            "Timelapse watches an image URL and builds an animated GIF of every distinct "
            "frame it sees. Call start_session with the URL, then capture_frame periodically; "
            "generate_gif replays the capture at a different speed."
        ),
    )

    handles = register_tools(server, service=service, settings=settings)

    @server.resource(
        "resource://timelapse/status",
        name="timelapse_status",
        title="Timelapse MCP Status",
        description="Provides the current runtime status for the Timelapse MCP server.",
        mime_type="application/json",
        tags={"status", "health"},
    )
    def status_resource(context: Context) -> str:
        """Return a JSON string summarizing basic runtime state."""

        sessions = [
            {
                "session_id": record.session_id,
                "url": record.url,
                "directory": record.directory_key,
                "frame_count": record.capture_count,
                "resumed": record.resumed,
                "started_at": record.created_at.isoformat(),
            }
            for record in service.registry.sessions()
        ]

        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_version": __version__,
            "log_level": settings.log_level,
            "storage": storage_metadata,
            "animation": {
                "base_delay_ms": settings.base_delay_ms,
                "quality": settings.gif_quality,
                "background": settings.background,
            },
            "fetch": {"timeout": settings.fetch_timeout},
            "sessions": {
                "count": len(sessions),
                "recent": sessions[-5:],
            },
            "request_id": getattr(context, "request_id", None),
        }
        return json.dumps(payload)

    setattr(server, "capture_service", service)
    setattr(server, "storage_metadata", storage_metadata)
    setattr(server, "tool_handles", handles)
    setattr(server, "status_resource", status_resource)
    return server


def main() -> None:
    """Entry point for running the Timelapse MCP server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    server = create_server(settings)
    logging.getLogger(__name__).info(
        "Launching Timelapse MCP server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "captures_root": str(settings.captures_root),
            "storage_available": getattr(server, "storage_metadata", {}).get("available"),
        },
    )
    server.run()


if __name__ == "__main__":
    main()
