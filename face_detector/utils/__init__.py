"""Utility functions package."""

from .geometry import clip_region, frame_size, circle_radius, ellipse_axes

__all__ = ["clip_region", "frame_size", "circle_radius", "ellipse_axes"]
