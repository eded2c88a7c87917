"""Stage timing and process metrics for the detection pipeline."""

import time
import threading
from collections import defaultdict, deque
from typing import Deque, Dict

import psutil


class PerformanceMonitor:
    """Keeps a bounded history of operation durations (seconds)."""

    def __init__(self, history_size: int = 500):
        self._history_size = history_size
        self._operation_times: Dict[str, Deque[float]] = defaultdict(
            lambda: deque(maxlen=self._history_size)
        )
        self._lock = threading.Lock()

    def record_operation_time(self, operation: str, duration: float) -> None:
        with self._lock:
            self._operation_times[operation].append(duration)

    def get_operation_stats(self, operation: str) -> Dict[str, float]:
        """Get statistics for specific operation."""
        with self._lock:
            durations = list(self._operation_times.get(operation, ()))
        if not durations:
            return {}

        return {
            'count': len(durations),
            'min': min(durations),
            'max': max(durations),
            'avg': sum(durations) / len(durations),
            'total': sum(durations)
        }

    def operations(self):
        with self._lock:
            return sorted(self._operation_times)

    def reset(self) -> None:
        with self._lock:
            self._operation_times.clear()


class PerformanceTimer:
    """Context manager for timing operations."""

    def __init__(self, operation_name: str, monitor: PerformanceMonitor):
        self.operation_name = operation_name
        self.monitor = monitor
        self.start_time = None
        self.end_time = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.end_time = time.perf_counter()
        self.monitor.record_operation_time(self.operation_name, self.duration)

    @property
    def duration(self) -> float:
        """Get operation duration in seconds."""
        if self.end_time is None or self.start_time is None:
            return 0.0
        return self.end_time - self.start_time


def memory_usage_mb() -> float:
    """Resident set size of this process in MB."""
    return psutil.Process().memory_info().rss / 1024 / 1024
