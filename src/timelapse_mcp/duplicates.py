"""Byte-level duplicate detection for frames."""

from __future__ import annotations


def identical(first: bytes | None, second: bytes | None) -> bool:
    """Return True when both buffers hold exactly the same bytes.

    This is not a perceptual comparison: two encodings of the same picture
    are different frames.
    """

    if first is None or second is None:
        return False
    return first == second


__all__ = ["identical"]
