import asyncio
import logging
import threading
from typing import Any, Dict, Optional

logger = logging.getLogger("tcup.stats")


class StatsAggregator:
    """Throughput counters since the last flush.

    record() and flush() share one lock, so an increment can never land
    between flush reading the counters and zeroing them.
    """

    def __init__(self, track_latency: bool = True):
        self.track_latency = track_latency
        self.lock = threading.Lock()
        self.requests_received = 0
        self.bytes_received = 0
        self.total_request_time_ms = 0.0

    def record(self, bytes_forwarded: int, elapsed_ms: float = 0.0):
        """Count one successfully forwarded request"""
        with self.lock:
            self.requests_received += 1
            self.bytes_received += bytes_forwarded
            if self.track_latency:
                self.total_request_time_ms += elapsed_ms

    def snapshot(self) -> Dict[str, Any]:
        """Consistent copy of the counters without resetting them"""
        with self.lock:
            return self._snapshot_locked()

    def _snapshot_locked(self) -> Dict[str, Any]:
        snap = {
            "requests_received": self.requests_received,
            "bytes_received": self.bytes_received,
        }
        if self.track_latency:
            snap["total_request_time_ms"] = self.total_request_time_ms
            snap["avg_request_ms"] = (
                self.total_request_time_ms / self.requests_received
                if self.requests_received else 0.0
            )
        return snap

    def flush(self) -> Optional[Dict[str, Any]]:
        """Log the counters accumulated since the previous flush and reset them.

        Returns the flushed values, or None when no request was recorded (in
        which case nothing is logged).
        """
        with self.lock:
            snap = self._snapshot_locked()
            self.requests_received = 0
            self.bytes_received = 0
            self.total_request_time_ms = 0.0

        if snap["requests_received"] == 0:
            return None

        if self.track_latency:
            logger.info("%d requests, %d bytes received (avg. %.3fms)",
                        snap["requests_received"], snap["bytes_received"], snap["avg_request_ms"],
                        extra={"component": "stats", **snap})
        else:
            logger.info("Received %d bytes, %d requests",
                        snap["bytes_received"], snap["requests_received"],
                        extra={"component": "stats", **snap})
        return snap


async def stats_ticker(stats: StatsAggregator, interval: float):
    """Flush stats every `interval` seconds until cancelled"""
    while True:
        await asyncio.sleep(interval)
        stats.flush()
