"""Annotation service: draws detection overlays onto frames."""
from __future__ import annotations
from typing import Dict, Iterable, Sequence, Tuple, Union
import cv2
import numpy as np
from ..core.entities import DetectionMode, DetectionResult, Region, RegionStyle
from ..utils.geometry import circle_radius, clip_region, ellipse_axes, frame_size

# BGR
RED = (0, 0, 255)
MAGENTA = (255, 0, 255)
BLUE = (255, 0, 0)

DEFAULT_COLORS: Dict[RegionStyle, Tuple[int, int, int]] = {
    RegionStyle.RECTANGLE: RED,
    RegionStyle.ELLIPSE: MAGENTA,
    RegionStyle.CIRCLE: BLUE,
}


class AnnotationService:
    """Draws regions in place and builds the count summary.

    Drawing never raises for out-of-frame regions: they are clipped, or
    skipped when nothing of them is inside the frame.
    """

    def __init__(self,
                 summary_noun: str = "faces",
                 colors: Dict[RegionStyle, Tuple[int, int, int]] = None,
                 thickness: int = 1,
                 secondary_thickness: int = 4):
        self.summary_noun = summary_noun
        self.colors = {**DEFAULT_COLORS, **(colors or {})}
        self.thickness = thickness
        self.secondary_thickness = secondary_thickness

    def draw_region(self, frame: np.ndarray, region: Region, style: RegionStyle) -> bool:
        """Draw one region onto frame. Returns False if it was entirely off-frame.

        Shapes are built from the full region; OpenCV drops the pixels that
        fall outside the frame.
        """
        width, height = frame_size(frame)
        if clip_region(region, width, height) is None:
            return False

        color = self.colors[style]
        center = (int(region.center[0]), int(region.center[1]))
        if style is RegionStyle.RECTANGLE:
            cv2.rectangle(frame, (int(region.x), int(region.y)),
                          (int(region.right) - 1, int(region.bottom) - 1), color, self.thickness)
        elif style is RegionStyle.ELLIPSE:
            cv2.ellipse(frame, center, ellipse_axes(region), 0, 0, 360,
                        color, self.secondary_thickness)
        else:
            cv2.circle(frame, center, circle_radius(region), color,
                       self.secondary_thickness)
        return True

    @staticmethod
    def translate(child: Region, parent: Region) -> Region:
        """Move a region found inside parent's sub-frame into frame coordinates."""
        return Region(parent.x + child.x, parent.y + child.y, child.width, child.height)

    def summarize(self, detections: Union[DetectionResult, Sequence[Region]]) -> str:
        count = detections.count if isinstance(detections, DetectionResult) else len(detections)
        return f"{count} {self.summary_noun} detected"

    def annotate(self, frame: np.ndarray, result: DetectionResult,
                 mode: DetectionMode = DetectionMode.SINGLE) -> str:
        """Draw every region of result onto frame and return the summary."""
        primary_style = RegionStyle.RECTANGLE if mode is DetectionMode.SINGLE else RegionStyle.ELLIPSE
        self._draw_all(frame, result.regions, primary_style)
        self._draw_all(frame, result.child_regions(), RegionStyle.CIRCLE)
        return self.summarize(result)

    def _draw_all(self, frame: np.ndarray, regions: Iterable[Region], style: RegionStyle) -> None:
        for region in regions:
            self.draw_region(frame, region, style)
