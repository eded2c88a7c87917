"""Pytest configuration and shared fixtures for the face detector.

Provides synthetic frames, scripted stand-ins for the camera and the
cascade backend, and recording sinks so the pipeline can be driven without
hardware.
"""
import os
import sys
import threading
import tempfile
import logging
from pathlib import Path
from typing import List, Optional

import pytest
import numpy as np
import cv2

# Add the project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from face_detector.backends.base_backend import BaseBackend
from face_detector.config.settings import Config
from face_detector.core.entities import FrameUpdate, Region
from face_detector.core.exceptions import CameraUnavailableError, CaptureError
from face_detector.services.frame_sink import CallbackFrameSink


# Configure logging for tests
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)
logging.getLogger('PIL').setLevel(logging.WARNING)


class FakeCapture:
    """Scripted camera. Each script item is a frame or an exception to raise."""

    def __init__(self, script=None, fail_open: bool = False, default_frame=None):
        self.script = list(script or [])
        self.fail_open = fail_open
        self.default_frame = default_frame
        self.open_calls = 0
        self.close_calls = 0
        self.reads = 0
        self._opened = False

    def open(self, device_index=None):
        self.open_calls += 1
        if self.fail_open:
            raise CameraUnavailableError("Failed to open camera 0")
        self._opened = True
        return True

    def is_opened(self):
        return self._opened

    def next_frame(self):
        self.reads += 1
        if self.script:
            item = self.script.pop(0)
        elif self.default_frame is not None:
            item = self.default_frame.copy()
        else:
            raise CaptureError("Script exhausted", terminal=True)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self):
        self.close_calls += 1
        self._opened = False


class FakeDetector(BaseBackend):
    """Backend returning fixed regions, optionally keyed by search region."""

    def __init__(self, regions=None, by_parent=None, model_name="fake.xml", gate=None):
        super().__init__({})
        self.regions = list(regions or [])
        self.by_parent = dict(by_parent or {})
        self.model_name = model_name
        self.gate = gate
        self.calls: List[Optional[Region]] = []
        self.unload_calls = 0
        self.is_loaded = True

    def load_model(self, model_path_or_name):
        self.is_loaded = True
        return True

    def predict(self, image, search_region=None):
        self.calls.append(search_region)
        if self.gate is not None:
            self.gate()
        if search_region is not None:
            return list(self.by_parent.get(search_region, []))
        return list(self.regions)

    def get_model_info(self):
        return {'backend': 'fake'}

    def unload_model(self):
        self.unload_calls += 1
        super().unload_model()


class RecordingSink(CallbackFrameSink):
    """Keeps every delivered update and signals each arrival."""

    def __init__(self):
        self.updates: List[FrameUpdate] = []
        self.arrived = threading.Event()
        super().__init__(self._record)

    def _record(self, update):
        self.updates.append(update)
        self.arrived.set()

    def wait_for(self, count: int, timeout: float = 5.0) -> bool:
        deadline = threading.Event()
        timer = threading.Timer(timeout, deadline.set)
        timer.start()
        try:
            while len(self.updates) < count and not deadline.is_set():
                self.arrived.wait(0.01)
                self.arrived.clear()
            return len(self.updates) >= count
        finally:
            timer.cancel()


@pytest.fixture
def temp_dir():
    """Provide a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config():
    """Default configuration object."""
    return Config()


@pytest.fixture
def blank_frame():
    """A black 640x480 BGR frame."""
    return np.zeros((480, 640, 3), dtype=np.uint8)


@pytest.fixture
def sample_image():
    """Provide a small patterned image for testing."""
    image = np.zeros((100, 100, 3), dtype=np.uint8)
    image[10:40, 10:40] = [255, 0, 0]  # BGR format
    cv2.circle(image, (50, 50), 15, (0, 255, 0), -1)
    image[60:90, 60:90] = [0, 0, 255]
    return image


@pytest.fixture
def fake_capture(blank_frame):
    """Camera that returns blank frames forever."""
    return FakeCapture(default_frame=blank_frame)


@pytest.fixture
def recording_sink():
    return RecordingSink()


@pytest.fixture
def face_cascade_path():
    """Path of OpenCV's bundled frontal face cascade."""
    path = os.path.join(cv2.data.haarcascades, "haarcascade_frontalface_default.xml")
    if not os.path.isfile(path):
        pytest.skip("OpenCV bundled cascades not available")
    return path


# Test markers and utilities
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "webcam: mark test as requiring webcam access")


def pytest_collection_modifyitems(config, items):
    """Add markers based on location and skip hardware tests by default."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

        if item.get_closest_marker("webcam") and not os.getenv("RUN_WEBCAM_TESTS"):
            item.add_marker(pytest.mark.skip(reason="Webcam tests disabled"))
