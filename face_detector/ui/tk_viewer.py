"""Tk window that shows the annotated stream and the live count."""
import logging
import tkinter as tk
from typing import Optional

import cv2
from PIL import Image, ImageTk

from ..core.entities import FrameUpdate, PipelineState
from ..services.detection_service import DetectionService
from ..services.frame_sink import QueueFrameSink

logger = logging.getLogger(__name__)


class TkViewer:
    """Presentation context for the pipeline.

    Everything here runs on the Tk main thread. Frames arrive through the
    QueueFrameSink and are picked up by an ``after`` poll, one per tick, so
    they are shown in capture order and no widget is touched from the
    producer thread.
    """

    def __init__(self,
                 root: tk.Tk,
                 sink: QueueFrameSink,
                 pipeline: DetectionService,
                 title: str = "Face Detector",
                 poll_ms: int = 15,
                 shutdown_timeout: Optional[float] = 5.0):
        self.root = root
        self.sink = sink
        self.pipeline = pipeline
        self.poll_ms = max(1, poll_ms)
        self.shutdown_timeout = shutdown_timeout
        self._photo: Optional[ImageTk.PhotoImage] = None
        self._after_id = None
        self._fault_reported = False

        self.root.title(title)
        self.image_label = tk.Label(self.root)
        self.image_label.pack(fill=tk.BOTH, expand=True)
        self.info_label = tk.Label(self.root, text="Starting camera...", anchor=tk.W)
        self.info_label.pack(fill=tk.X)

        self.root.protocol("WM_DELETE_WINDOW", self.close)

    def run(self) -> None:
        self._schedule()
        self.root.mainloop()

    def _schedule(self) -> None:
        self._after_id = self.root.after(self.poll_ms, self._poll)

    def _poll(self) -> None:
        update = self.sink.get()
        if update is not None:
            self._render(update)

        if self.pipeline.state is PipelineState.FAULTED and not self._fault_reported:
            self._fault_reported = True
            self.info_label.configure(text=f"Camera error: {self.pipeline.last_error}")

        self._schedule()

    def _render(self, update: FrameUpdate) -> None:
        rgb = cv2.cvtColor(update.frame, cv2.COLOR_BGR2RGB)
        self._photo = ImageTk.PhotoImage(Image.fromarray(rgb))
        self.image_label.configure(image=self._photo)
        self.info_label.configure(text=update.summary)

    def close(self) -> None:
        """Window closed: stop the pipeline, wait for its cycle, then tear down."""
        if self._after_id is not None:
            self.root.after_cancel(self._after_id)
            self._after_id = None
        self.sink.close()
        if not self.pipeline.stop(wait=True, timeout=self.shutdown_timeout):
            logger.warning("Pipeline did not stop within the shutdown timeout")
        self.root.destroy()
