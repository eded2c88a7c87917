"""Services package for the capture/detection pipeline."""

from .webcam_service import WebcamService
from .annotation_service import AnnotationService
from .frame_sink import FrameSink, QueueFrameSink, CallbackFrameSink
from .detection_service import DetectionService, PipelineHooks

__all__ = [
    "WebcamService", "AnnotationService",
    "FrameSink", "QueueFrameSink", "CallbackFrameSink",
    "DetectionService", "PipelineHooks"
]
