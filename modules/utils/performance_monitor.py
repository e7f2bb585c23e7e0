"""
Per-run stage timing for the analysis pipeline.
Tracks seek / detection / aggregation latency and timed-out steps.
"""

import time
import threading
import logging
from collections import defaultdict
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class PerformanceMonitor:
    """Collects stage latencies for one analysis run."""

    STAGES = ("seek", "detection", "aggregation")

    def __init__(self):
        self._lock = threading.Lock()
        self._stage_times = defaultdict(list)
        for name in self.STAGES:
            self._stage_times[name] = []
        self._frame_count = 0
        self._dropped_frames = 0
        self._start_time = time.perf_counter()

    @contextmanager
    def measure(self, stage_name: str):
        """Context manager to measure a pipeline stage's duration."""
        start = time.perf_counter()
        yield
        elapsed_ms = (time.perf_counter() - start) * 1000
        with self._lock:
            self._stage_times[stage_name].append(elapsed_ms)

    def tick(self):
        """Call once per processed frame."""
        with self._lock:
            self._frame_count += 1

    def record_drop(self):
        """Record a step that timed out."""
        with self._lock:
            self._dropped_frames += 1

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def dropped_frames(self) -> int:
        return self._dropped_frames

    def get_report(self) -> dict:
        elapsed = time.perf_counter() - self._start_time
        with self._lock:
            latencies = {
                name: round(sum(t) / len(t), 2) if t else 0.0
                for name, t in self._stage_times.items()
            }
            return {
                "frames": self._frame_count,
                "timed_out_steps": self._dropped_frames,
                "elapsed_seconds": round(elapsed, 2),
                "latencies_ms": latencies,
            }

    def print_report(self):
        """Log the run's timing summary at DEBUG."""
        report = self.get_report()
        logger.debug("Frames: %d (timed out steps: %d) in %.2fs",
                     report["frames"], report["timed_out_steps"], report["elapsed_seconds"])
        for stage, latency in report["latencies_ms"].items():
            logger.debug("  %-12s %8.2f ms avg", stage, latency)
