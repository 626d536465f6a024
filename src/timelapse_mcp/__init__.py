"""Timelapse MCP: capture a changing image URL into an animated GIF."""

__version__ = "0.1.0"

__all__ = ["__version__"]
