"""Capture -> detect -> annotate -> deliver pipeline service.

The loop runs on its own producer thread. Cancellation is cooperative: the
flag is looked at once, at the top of each cycle, so a cycle that has
already begun always finishes (and its frame is delivered) before the
pipeline stops. Camera and model handles belong to the service from
``start()`` until the pipeline reaches STOPPED or FAULTED, and are released
exactly once on the way there.
"""
from __future__ import annotations

import itertools
import logging
import threading
import time
from contextlib import ExitStack
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..backends.base_backend import BaseBackend
from ..backends.cascade_backend import CascadeBackend
from ..core.entities import DetectionMode, DetectionResult, FrameUpdate, PipelineState
from ..core.exceptions import CameraUnavailableError, CaptureError, DetectionError, PipelineError
from ..core.logging_config import CorrelationContext
from ..core.performance import PerformanceMonitor, PerformanceTimer, memory_usage_mb
from .annotation_service import AnnotationService
from .frame_sink import FrameSink
from .webcam_service import WebcamService

logger = logging.getLogger(__name__)

_run_ids = itertools.count(1)


@dataclass
class PipelineHooks:
    """Host callbacks. All are optional; exceptions they raise are logged."""
    on_ready: Optional[Callable[[], None]] = None
    on_unavailable: Optional[Callable[[Exception], None]] = None
    on_fault: Optional[Callable[[Exception], None]] = None
    on_shutdown: Optional[Callable[[PipelineState], None]] = None


class DetectionService:
    """High-level detection pipeline orchestration service."""

    def __init__(self,
                 capture: WebcamService,
                 detector: BaseBackend,
                 sink: FrameSink,
                 annotator: Optional[AnnotationService] = None,
                 secondary_detector: Optional[BaseBackend] = None,
                 mode: DetectionMode = DetectionMode.SINGLE,
                 frame_interval: float = 0.1,
                 hooks: Optional[PipelineHooks] = None,
                 monitor: Optional[PerformanceMonitor] = None):
        if mode is DetectionMode.NESTED and secondary_detector is None:
            raise PipelineError("Nested mode needs a secondary detector")

        self.capture = capture
        self.detector = detector
        self.secondary_detector = secondary_detector
        self.sink = sink
        self.annotator = annotator or AnnotationService()
        self.mode = mode
        self.frame_interval = max(0.0, frame_interval)
        self.hooks = hooks or PipelineHooks()
        self.monitor = monitor or PerformanceMonitor()

        self._state = PipelineState.IDLE
        self._state_lock = threading.RLock()
        self._cancel = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._released = False
        self._last_error: Optional[Exception] = None

        self._sequence = 0
        self._frames_processed = 0
        self._transient_failures = 0
        self._transient_streak = 0
        self._dropped_frames = 0
        self._last_latency_ms = 0
        self._started_at: Optional[float] = None

    @classmethod
    def from_config(cls, config, sink: FrameSink,
                    hooks: Optional[PipelineHooks] = None) -> "DetectionService":
        """Build the full pipeline from a Config.

        Raises:
            ModelLoadError: If a cascade cannot be loaded
        """
        mode = config.mode
        detector = CascadeBackend(config.face_model, config.face_parameters(),
                                  models_dir=config.models_dir)
        secondary = None
        if mode is DetectionMode.NESTED:
            try:
                secondary = CascadeBackend(config.eye_model, config.eye_parameters(),
                                           models_dir=config.models_dir)
            except Exception:
                detector.unload_model()
                raise

        return cls(
            capture=WebcamService.from_config(config),
            detector=detector,
            sink=sink,
            annotator=AnnotationService(summary_noun=config.summary_noun),
            secondary_detector=secondary,
            mode=mode,
            frame_interval=config.frame_interval,
            hooks=hooks,
        )

    @property
    def state(self) -> PipelineState:
        with self._state_lock:
            return self._state

    @property
    def last_error(self) -> Optional[Exception]:
        return self._last_error

    def is_running(self) -> bool:
        return self.state in (PipelineState.RUNNING, PipelineState.CANCEL_REQUESTED)

    def start(self) -> bool:
        """Open the camera and start the producer thread.

        Returns:
            False when the camera is unavailable (state stays IDLE) or the
            pipeline is not IDLE
        """
        with self._state_lock:
            if self._state is not PipelineState.IDLE:
                logger.warning(f"Cannot start pipeline in state {self._state.value}")
                return False

            try:
                self.capture.open()
            except CameraUnavailableError as e:
                self._last_error = e
                logger.error(f"Camera unavailable, pipeline not started: {e}")
                unavailable = e
            else:
                unavailable = None
                self._state = PipelineState.RUNNING
                self._cancel.clear()
                self._started_at = time.time()

        if unavailable is not None:
            self._notify("on_unavailable", unavailable)
            return False

        # on_ready happens before the first cycle can run
        self._notify("on_ready")
        with self._state_lock:
            self._thread = threading.Thread(
                target=self._run, name="DetectionPipeline", daemon=True
            )
            self._thread.start()
        logger.info(f"Pipeline started in {self.mode.value} mode")
        return True

    def stop(self, wait: bool = True, timeout: Optional[float] = None) -> bool:
        """Request cancellation. Safe to call any number of times.

        Args:
            wait: Block until the in-flight cycle finishes and resources are released
            timeout: Upper bound on the wait, in seconds

        Returns:
            True if the pipeline has reached a terminal state
        """
        release_now = False
        with self._state_lock:
            if self._state is PipelineState.IDLE:
                self._state = PipelineState.STOPPED
                release_now = True
            elif self._state is PipelineState.RUNNING:
                logger.info("Pipeline cancellation requested")
                self._state = PipelineState.CANCEL_REQUESTED
                self._cancel.set()
            thread = self._thread

        if release_now:
            self._release_resources()
            self._notify("on_shutdown", PipelineState.STOPPED)
            return True

        if wait and thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        return self.state.is_terminal

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the producer thread to exit."""
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        return self.state.is_terminal

    def _run(self) -> None:
        """Producer thread body."""
        fault: Optional[Exception] = None
        with CorrelationContext(f"pipeline-{next(_run_ids)}"):
            try:
                while not self._cancel.is_set():
                    try:
                        self.run_cycle()
                    except CaptureError as e:
                        fault = e
                        logger.error(f"Camera lost, pipeline faulted: {e}")
                        break
                    except Exception:
                        self._dropped_frames += 1
                        logger.exception("Pipeline cycle failed, skipping frame")

                    self._cancel.wait(self.frame_interval)
            finally:
                self._finish(fault)

    def run_cycle(self) -> Optional[FrameUpdate]:
        """Run one capture -> detect -> annotate -> deliver cycle.

        Returns:
            The delivered update, or None if the cycle was skipped

        Raises:
            CaptureError: Only for terminal capture failures
            PipelineError: If the pipeline is not running
        """
        if not self.is_running():
            raise PipelineError(f"Pipeline is not running (state {self.state.value})")

        start_time = time.perf_counter()
        try:
            with PerformanceTimer("capture", self.monitor):
                frame = self.capture.next_frame()
        except CaptureError as e:
            if e.terminal:
                raise
            self._transient_failures += 1
            self._transient_streak += 1
            if self._transient_streak == 1:
                logger.warning(f"Capture failed, retrying: {e}")
            else:
                logger.debug(f"Capture failed, retrying: {e}")
            return None
        self._transient_streak = 0

        try:
            with PerformanceTimer("detect", self.monitor):
                result = self._detect(frame)
        except DetectionError as e:
            self._dropped_frames += 1
            logger.warning(f"Detection failed, skipping frame: {e}")
            return None

        with PerformanceTimer("annotate", self.monitor):
            summary = self.annotator.annotate(frame, result, self.mode)

        self._sequence += 1
        self._last_latency_ms = int((time.perf_counter() - start_time) * 1000)
        update = FrameUpdate(
            frame=frame,
            summary=summary,
            sequence=self._sequence,
            result=result,
            latency_ms=self._last_latency_ms,
        )
        if self.sink.deliver(update):
            self._frames_processed += 1
        return update

    def _detect(self, frame) -> DetectionResult:
        faces = self.detector.predict(frame)
        children = {}
        if self.mode is DetectionMode.NESTED:
            for idx, face in enumerate(faces):
                eyes = self.secondary_detector.predict(frame, search_region=face)
                if eyes:
                    children[idx] = tuple(self.annotator.translate(eye, face) for eye in eyes)
        return DetectionResult(tuple(faces), self.detector.model_name, children)

    def _finish(self, fault: Optional[Exception]) -> None:
        self._release_resources()
        final_state = PipelineState.FAULTED if fault is not None else PipelineState.STOPPED
        with self._state_lock:
            self._state = final_state
            if fault is not None:
                self._last_error = fault

        logger.info(f"Pipeline {final_state.value} after {self._frames_processed} frames")
        if fault is not None:
            self._notify("on_fault", fault)
        self._notify("on_shutdown", final_state)

    def _release_resources(self) -> None:
        """Close the camera and unload every model, once."""
        with self._state_lock:
            if self._released:
                return
            self._released = True

        try:
            with ExitStack() as stack:
                for backend in self._detectors():
                    stack.callback(backend.unload_model)
                stack.callback(self.capture.close)
        except Exception:
            logger.exception("Failed to release pipeline resources")
            return
        logger.debug("Pipeline resources released")

    def _detectors(self) -> List[BaseBackend]:
        return [d for d in (self.detector, self.secondary_detector) if d is not None]

    def _notify(self, hook_name: str, *args: Any) -> None:
        hook = getattr(self.hooks, hook_name)
        if hook is None:
            return
        try:
            hook(*args)
        except Exception:
            logger.exception(f"Pipeline hook {hook_name} failed")

    def get_stats(self) -> Dict[str, Any]:
        """Get pipeline statistics."""
        elapsed = time.time() - self._started_at if self._started_at else 0.0
        return {
            'state': self.state.value,
            'mode': self.mode.value,
            'frames_processed': self._frames_processed,
            'transient_failures': self._transient_failures,
            'dropped_frames': self._dropped_frames,
            'last_latency_ms': self._last_latency_ms,
            'average_fps': self._frames_processed / elapsed if elapsed > 0 else 0.0,
            'stages': {op: self.monitor.get_operation_stats(op) for op in self.monitor.operations()},
            'models': [d.get_model_info() for d in self._detectors()],
            'memory_mb': memory_usage_mb(),
        }
