"""Hand-off of annotated frames from the producer thread to the presentation side."""
from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, List, Optional, Protocol

from ..core.entities import FrameUpdate

logger = logging.getLogger(__name__)


class FrameSink(Protocol):
    """Anything that accepts finished frames from the pipeline thread."""

    def deliver(self, update: FrameUpdate) -> bool:
        """Accept an update. Must be safe to call from a non-UI thread."""
        ...


class QueueFrameSink:
    """FIFO hand-off. The producer puts, the presentation context drains.

    With maxsize > 0 a full queue blocks the producer instead of dropping
    frames. The wait happens in short slices so close() always unblocks it.
    """

    def __init__(self, maxsize: int = 0, put_slice: float = 0.05):
        self._queue: "queue.Queue[FrameUpdate]" = queue.Queue(maxsize=maxsize)
        self._closed = threading.Event()
        self._put_slice = put_slice
        self._delivered = 0

    @property
    def delivered(self) -> int:
        return self._delivered

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def deliver(self, update: FrameUpdate) -> bool:
        """Queue an update. Returns False if the sink was closed first."""
        while not self._closed.is_set():
            try:
                self._queue.put(update, timeout=self._put_slice)
                self._delivered += 1
                return True
            except queue.Full:
                continue
        logger.debug(f"Sink closed, frame {update.sequence} not delivered")
        return False

    def get(self, timeout: Optional[float] = None) -> Optional[FrameUpdate]:
        """Next update in capture order, or None when nothing arrives in time."""
        try:
            if timeout is None:
                return self._queue.get_nowait()
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[FrameUpdate]:
        """All updates currently queued, oldest first."""
        updates = []
        while True:
            try:
                updates.append(self._queue.get_nowait())
            except queue.Empty:
                return updates

    def close(self) -> None:
        self._closed.set()


class CallbackFrameSink:
    """Forwards each update to a callable.

    The callable runs on the producer thread, so it must do its own
    marshaling (e.g. ``root.after``) if it touches UI state.
    """

    def __init__(self, callback: Callable[[FrameUpdate], None]):
        self._callback = callback

    def deliver(self, update: FrameUpdate) -> bool:
        self._callback(update)
        return True
