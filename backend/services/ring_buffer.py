"""
MetricsRingBuffer Class - Bounded in-memory request history

Keeps the most recent N request samples in insertion order. Oldest samples
are evicted first once the ceiling is reached.
"""

import threading
from collections import deque
from datetime import datetime
from typing import Deque, List

import structlog

from models.data_models import RequestSample

logger = structlog.get_logger(__name__)

DEFAULT_CAPACITY = 10_000


class MetricsRingBuffer:
    """
    Thread-safe FIFO store of request samples.
    Responsibilities:
    - Append samples without blocking the request path
    - Evict oldest samples past the ceiling
    - Hand out point-in-time copies for aggregation
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._samples: Deque[RequestSample] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._recorded = 0
        logger.info("metrics_buffer_initialized", capacity=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def total_recorded(self) -> int:
        """Samples accepted since creation, including evicted ones"""
        return self._recorded

    def record(self, sample: RequestSample) -> None:
        """
        Append a sample. Never raises: telemetry loss must not reach the
        request whose telemetry is being captured.
        """
        try:
            with self._lock:
                # deque(maxlen) drops from the left on overflow
                self._samples.append(sample)
                self._recorded += 1
        except Exception as exc:  # pragma: no cover
            logger.warning(
                "metrics_record_failed",
                error_type=type(exc).__name__,
                error_message=str(exc),
            )

    def snapshot(self, since: datetime) -> List[RequestSample]:
        """Samples with timestamp >= since, in insertion order"""
        with self._lock:
            retained = list(self._samples)
        return [s for s in retained if s.timestamp >= since]

    def all(self) -> List[RequestSample]:
        with self._lock:
            return list(self._samples)

    def size(self) -> int:
        with self._lock:
            return len(self._samples)

    def clear(self) -> None:
        with self._lock:
            self._samples.clear()
        logger.info("metrics_buffer_cleared")
