"""Log-only presenter for machines without a display."""
import logging
from typing import Optional

from ..services.detection_service import DetectionService
from ..services.frame_sink import QueueFrameSink

logger = logging.getLogger(__name__)


class HeadlessViewer:
    """Drains the sink on the calling thread and logs summary changes."""

    def __init__(self,
                 sink: QueueFrameSink,
                 pipeline: DetectionService,
                 poll_timeout: float = 0.5,
                 max_frames: Optional[int] = None):
        self.sink = sink
        self.pipeline = pipeline
        self.poll_timeout = poll_timeout
        self.max_frames = max_frames
        self.frames_shown = 0
        self.last_summary: Optional[str] = None

    def run(self) -> None:
        """Return when the pipeline ends, max_frames is reached or on Ctrl+C."""
        try:
            while not self._done():
                update = self.sink.get(timeout=self.poll_timeout)
                if update is None:
                    continue
                self.frames_shown += 1
                if update.summary != self.last_summary:
                    logger.info(update.summary)
                    self.last_summary = update.summary
        except KeyboardInterrupt:
            logger.info("Interrupted")

    def _done(self) -> bool:
        if self.max_frames is not None and self.frames_shown >= self.max_frames:
            return True
        return self.pipeline.state.is_terminal
