"""Core domain entities and constants."""

from .entities import (
    DetectionMode, DetectionParameters, DetectionResult, FrameUpdate,
    PipelineState, Region, RegionStyle
)
from .exceptions import (
    ApplicationError, CameraUnavailableError, CaptureError, ConfigError,
    DetectionError, ModelLoadError, PipelineError, UnavailableError
)

__all__ = [
    "DetectionMode", "DetectionParameters", "DetectionResult", "FrameUpdate",
    "PipelineState", "Region", "RegionStyle",
    "ApplicationError", "CameraUnavailableError", "CaptureError", "ConfigError",
    "DetectionError", "ModelLoadError", "PipelineError", "UnavailableError"
]
