"""Domain entities (data-only structures) used across services."""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple


class PipelineState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    CANCEL_REQUESTED = "cancel_requested"
    STOPPED = "stopped"
    FAULTED = "faulted"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.STOPPED, PipelineState.FAULTED)


class DetectionMode(Enum):
    """How detections are searched for and drawn."""
    SINGLE = "single"  # one cascade, rectangles
    NESTED = "nested"  # face cascade + eye cascade inside each face


class RegionStyle(Enum):
    RECTANGLE = "rectangle"
    ELLIPSE = "ellipse"
    CIRCLE = "circle"


@dataclass(frozen=True, slots=True)
class Region:
    """Axis-aligned rectangle in a frame's pixel coordinates."""
    x: int
    y: int
    width: int
    height: int

    def __post_init__(self):
        if self.x < 0 or self.y < 0:
            raise ValueError(f"Region origin must be non-negative, got ({self.x}, {self.y})")
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Region size must be positive, got {self.width}x{self.height}")

    @classmethod
    def from_xywh(cls, values: Sequence[Any]) -> "Region":
        """Build a region from an (x, y, w, h) row, e.g. from detectMultiScale."""
        x, y, w, h = (int(v) for v in values)
        return cls(x, y, w, h)

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def center(self) -> Tuple[int, int]:
        return (self.x + self.width // 2, self.y + self.height // 2)


@dataclass(frozen=True, slots=True)
class DetectionParameters:
    """detectMultiScale tuning knobs."""
    scale_factor: float = 1.1
    min_neighbors: int = 5
    min_size: Tuple[int, int] = (30, 30)

    def __post_init__(self):
        if self.scale_factor <= 1.0:
            raise ValueError("scale_factor must be greater than 1.0")
        if self.min_neighbors < 0:
            raise ValueError("min_neighbors must be non-negative")
        if len(self.min_size) != 2 or min(self.min_size) <= 0:
            raise ValueError("min_size must be a pair of positive integers")


@dataclass(slots=True)
class DetectionResult:
    regions: Tuple[Region, ...]
    model_name: str
    # parent index -> secondary regions already in frame coordinates
    children: Dict[int, Tuple[Region, ...]] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.regions)

    def child_regions(self) -> Tuple[Region, ...]:
        return tuple(r for idx in sorted(self.children) for r in self.children[idx])


@dataclass(slots=True)
class FrameUpdate:
    """Annotated frame handed from the producer to the presentation side."""
    frame: Any  # numpy ndarray (BGR)
    summary: str
    sequence: int
    result: Optional[DetectionResult] = None
    latency_ms: int = 0
