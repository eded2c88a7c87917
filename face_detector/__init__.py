"""
Live face detection: camera capture, cascade detection, annotated display.
"""

__version__ = "1.0.0"

from .config.settings import Config, load_config, save_config
from .core.entities import DetectionMode, DetectionResult, FrameUpdate, PipelineState, Region

__all__ = [
    "Config", "load_config", "save_config",
    "DetectionMode", "DetectionResult", "FrameUpdate", "PipelineState", "Region"
]
