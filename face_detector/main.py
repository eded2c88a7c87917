"""Main entry point for the face detector."""

import argparse
import logging
import sys
from typing import List, Optional

from .config.settings import Config, load_config
from .core.entities import PipelineState
from .core.exceptions import ConfigError, ModelLoadError
from .core.logging_config import configure_logging
from .services.detection_service import DetectionService
from .services.frame_sink import QueueFrameSink
from .services.webcam_service import WebcamService

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="face-detector",
        description="Detect faces in a live camera stream and show the annotated video."
    )
    parser.add_argument("--config", default="config.json", help="JSON or YAML config file")
    parser.add_argument("--env-file", default=None, help=".env file with FACE_DETECTOR_* overrides")
    parser.add_argument("--camera", type=int, help="Camera index, -1 for any available device")
    parser.add_argument("--mode", choices=["single", "nested"], help="Faces only, or faces and eyes")
    parser.add_argument("--face-model", help="Face cascade file")
    parser.add_argument("--eye-model", help="Eye cascade file (nested mode)")
    parser.add_argument("--models-dir", help="Directory searched for cascade files")
    parser.add_argument("--interval-ms", type=int, help="Pause between pipeline cycles")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--headless", action="store_true", help="Log counts instead of opening a window")
    parser.add_argument("--max-frames", type=int, help="Stop after this many frames (headless only)")
    parser.add_argument("--list-cameras", action="store_true", help="List camera indices that open and exit")
    return parser


def apply_cli_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Copy explicitly given CLI values onto the config."""
    overrides = {
        "camera_index": args.camera,
        "detection_mode": args.mode,
        "face_model": args.face_model,
        "eye_model": args.eye_model,
        "models_dir": args.models_dir,
        "frame_interval_ms": args.interval_ms,
        "log_level": args.log_level,
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(config, key, value)
    config.validate()
    return config


def _create_viewer(config: Config, args: argparse.Namespace,
                   sink: QueueFrameSink, pipeline: DetectionService):
    if args.headless:
        from .ui.headless import HeadlessViewer
        return HeadlessViewer(sink, pipeline, max_frames=args.max_frames)

    import tkinter as tk
    from .ui.tk_viewer import TkViewer
    return TkViewer(tk.Tk(), sink, pipeline,
                    title=config.window_title,
                    poll_ms=config.display_poll_ms,
                    shutdown_timeout=config.shutdown_timeout)


def main(argv: Optional[List[str]] = None) -> int:
    """Application entry point. Returns the process exit code."""
    args = build_arg_parser().parse_args(argv)

    try:
        config = apply_cli_overrides(load_config(args.config, args.env_file), args)
    except ConfigError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    configure_logging(
        log_level=config.log_level,
        log_dir=config.log_dir,
        enable_file_logging=config.enable_file_logging,
        structured_logging=config.structured_logging,
    )

    if args.list_cameras:
        cameras = WebcamService.list_available_cameras()
        if not cameras:
            logger.warning("No cameras found")
        for camera in cameras:
            logger.info(f"Camera {camera['index']}: {camera['width']}x{camera['height']}")
        return 0

    sink = QueueFrameSink(maxsize=config.sink_queue_size)
    try:
        pipeline = DetectionService.from_config(config, sink)
    except ModelLoadError as e:
        logger.error(f"Cannot load detection model: {e}")
        return 1

    viewer = _create_viewer(config, args, sink, pipeline)

    if not pipeline.start():
        pipeline.stop()
        root = getattr(viewer, "root", None)
        if root is not None:
            root.destroy()
        return 1

    try:
        viewer.run()
    finally:
        sink.close()
        pipeline.stop(wait=True, timeout=config.shutdown_timeout)

    stats = pipeline.get_stats()
    logger.info(
        f"Processed {stats['frames_processed']} frames, "
        f"{stats['transient_failures']} transient capture failures"
    )
    return 1 if pipeline.state is PipelineState.FAULTED else 0


if __name__ == "__main__":
    sys.exit(main())
