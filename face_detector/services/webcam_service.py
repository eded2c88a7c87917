"""Webcam service for camera capture."""

import cv2
import threading
import logging
from typing import Optional, List, Dict, Any, Tuple
import numpy as np

from ..core.exceptions import CameraUnavailableError, CaptureError

logger = logging.getLogger(__name__)

ANY_CAMERA = -1


class WebcamService:
    """Owns a cv2.VideoCapture handle and hands out frames one at a time."""

    def __init__(self,
                 camera_index: int = 0,
                 width: int = 0,
                 height: int = 0,
                 fps: int = 0,
                 max_consecutive_failures: int = 10,
                 backend: int = cv2.CAP_ANY):
        """Initialize webcam service.

        Args:
            camera_index: Camera device index, or -1 for any available device
            width: Requested frame width (0 keeps the driver default)
            height: Requested frame height (0 keeps the driver default)
            fps: Requested frames per second (0 keeps the driver default)
            max_consecutive_failures: Failed reads in a row before the device
                is treated as lost
            backend: OpenCV capture API preference
        """
        self.camera_index = camera_index
        self.width = width
        self.height = height
        self.target_fps = fps
        self.max_consecutive_failures = max(1, max_consecutive_failures)
        self.backend = backend

        self._capture: Optional[cv2.VideoCapture] = None
        self._lock = threading.Lock()
        self._consecutive_failures = 0
        self._frames_captured = 0

    @classmethod
    def from_config(cls, config) -> "WebcamService":
        return cls(
            camera_index=config.camera_index,
            width=config.camera_width,
            height=config.camera_height,
            fps=config.camera_fps,
            max_consecutive_failures=config.max_consecutive_failures,
        )

    def __enter__(self) -> "WebcamService":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def frames_captured(self) -> int:
        return self._frames_captured

    def open(self, device_index: Optional[int] = None) -> bool:
        """Acquire the camera.

        Args:
            device_index: Overrides the configured index; -1 means any device

        Returns:
            True once the device is open

        Raises:
            CameraUnavailableError: If no device responds
        """
        index = self.camera_index if device_index is None else device_index
        backend = self.backend
        if index == ANY_CAMERA:
            index, backend = 0, cv2.CAP_ANY

        with self._lock:
            if self._capture is not None:
                logger.warning("Camera already open")
                return True

            logger.info(f"Opening camera {index}")
            try:
                capture = cv2.VideoCapture(index, backend)
            except Exception as e:
                raise CameraUnavailableError(f"Error opening camera {index}: {e}") from e

            if not capture.isOpened():
                capture.release()
                raise CameraUnavailableError(f"Failed to open camera {index}")

            if self.width:
                capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
            if self.height:
                capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
            if self.target_fps:
                capture.set(cv2.CAP_PROP_FPS, self.target_fps)

            self._capture = capture
            self.camera_index = index
            self._consecutive_failures = 0

        width, height = self.get_resolution()
        logger.info(f"Camera opened: {width}x{height} (index {index})")
        return True

    def is_opened(self) -> bool:
        with self._lock:
            return self._capture is not None and self._capture.isOpened()

    def next_frame(self) -> np.ndarray:
        """Block until the next frame arrives.

        Returns:
            A freshly allocated BGR frame

        Raises:
            CaptureError: terminal=True when the device is gone or keeps
                failing, terminal=False for a single dropped frame
        """
        with self._lock:
            if self._capture is None or not self._capture.isOpened():
                raise CaptureError("Camera is not open", terminal=True)

            try:
                ret, frame = self._capture.read()
            except Exception as e:
                raise CaptureError(f"Camera read failed: {e}", terminal=True) from e

            if ret and frame is not None and frame.size > 0:
                self._consecutive_failures = 0
                self._frames_captured += 1
                return frame

            self._consecutive_failures += 1
            failures = self._consecutive_failures
            device_lost = not self._capture.isOpened()

        if device_lost:
            raise CaptureError("Camera disconnected", terminal=True)
        if failures >= self.max_consecutive_failures:
            raise CaptureError(
                f"No frame from camera after {failures} consecutive attempts", terminal=True
            )
        raise CaptureError(f"Dropped frame ({failures} in a row)", terminal=False)

    def get_resolution(self) -> Tuple[int, int]:
        """Get current camera resolution as (width, height)."""
        with self._lock:
            if self._capture is not None and self._capture.isOpened():
                width = int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH))
                height = int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
                return (width, height)
        return (0, 0)

    def close(self) -> None:
        """Release the camera. Safe to call repeatedly or before open()."""
        with self._lock:
            capture, self._capture = self._capture, None
        if capture is not None:
            capture.release()
            logger.info(f"Camera {self.camera_index} released")

    @staticmethod
    def list_available_cameras(max_cameras: int = 10) -> List[Dict[str, Any]]:
        """Probe device indices and report the ones that open.

        Returns:
            List of dictionaries: {'index': int, 'width': int, 'height': int}
        """
        cameras = []

        for i in range(max_cameras):
            cap = None
            try:
                cap = cv2.VideoCapture(i)
                if cap.isOpened():
                    cameras.append({
                        'index': i,
                        'width': int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
                        'height': int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
                    })
            except cv2.error as e:
                logger.debug(f"Failed to check camera {i}: {e}")
            finally:
                if cap is not None:
                    cap.release()

        return cameras
