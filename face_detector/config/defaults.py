"""Default configuration values."""

from typing import Any, Dict

DEFAULT_CONFIG: Dict[str, Any] = {
    # Camera
    "camera_index": 0,  # -1 = any available device
    "camera_width": 0,  # 0 = leave the driver default
    "camera_height": 0,
    "camera_fps": 0,
    "max_consecutive_failures": 10,

    # Cascade models
    "models_dir": "data/models",
    "face_model": "haarcascade_frontalface_default.xml",
    "eye_model": "haarcascade_eye.xml",
    "detection_mode": "single",  # single | nested

    # detectMultiScale parameters
    "face_scale_factor": 1.1,
    "face_min_neighbors": 5,
    "face_min_size": 30,
    "eye_scale_factor": 1.1,
    "eye_min_neighbors": 5,
    "eye_min_size": 10,

    # Pipeline
    "frame_interval_ms": 100,
    "sink_queue_size": 0,  # 0 = unbounded
    "shutdown_timeout": 5.0,

    # Presentation
    "window_title": "Face Detector",
    "summary_noun": "faces",
    "display_poll_ms": 15,

    # Debug and Logging Settings
    "debug": False,
    "log_level": "INFO",
    "log_dir": "logs",
    "enable_file_logging": False,
    "structured_logging": False,
}
