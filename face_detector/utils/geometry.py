"""Geometry and bounding box utilities."""

from typing import Optional, Tuple

from ..core.entities import Region


def clip_region(region: Region, frame_width: int, frame_height: int) -> Optional[Region]:
    """Clip a region to the frame. Returns None if nothing is left."""
    x1 = min(max(region.x, 0), frame_width)
    y1 = min(max(region.y, 0), frame_height)
    x2 = min(region.right, frame_width)
    y2 = min(region.bottom, frame_height)
    if x2 <= x1 or y2 <= y1:
        return None
    return Region(x1, y1, x2 - x1, y2 - y1)


def frame_size(frame) -> Tuple[int, int]:
    """(width, height) of a numpy image."""
    height, width = frame.shape[:2]
    return width, height


def circle_radius(region: Region, scale: float = 0.25) -> int:
    """Radius of the circle drawn around a secondary detection."""
    return int(round((region.width + region.height) * scale))


def ellipse_axes(region: Region) -> Tuple[int, int]:
    return (int(region.width // 2), int(region.height // 2))


