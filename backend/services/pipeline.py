"""
ObservabilityPipeline Class - Wires the telemetry components together

One instance is created per process and shared by the request middleware
(writers) and the dashboard endpoints (readers).
"""

from datetime import datetime
from typing import Iterable, List, Optional

import structlog

from models.data_models import (
    AlertRecord,
    AuditEvent,
    HealthStatus,
    HourlyBucket,
    RequestSample,
    SystemMetrics,
    UserActivity,
)
from models.errors import IngestionFailure
from services.aggregator import Aggregator
from services.alerts import AlertEvaluator
from services.audit_trail import AuditTrail
from services.ring_buffer import DEFAULT_CAPACITY, MetricsRingBuffer
from services.storage import AuditStore
from services.user_activity import DEFAULT_SCAN_LIMIT, UserActivityDeriver

logger = structlog.get_logger(__name__)


class ObservabilityPipeline:
    """
    Facade over the ring buffer, audit store and the derived views.
    Responsibilities:
    - Accept request samples and audit events
    - Serve rolling, hourly, alert and user-activity views
    - Report health
    """

    def __init__(
        self,
        buffer: MetricsRingBuffer,
        store: AuditStore,
        excluded_endpoints: Optional[Iterable[str]] = None,
        scan_limit: int = DEFAULT_SCAN_LIMIT,
    ):
        self.buffer = buffer
        self.store = store
        self.trail = AuditTrail(store)
        self.aggregator = Aggregator(buffer, excluded_endpoints)
        self.alerts = AlertEvaluator()
        self.activity = UserActivityDeriver(store, scan_limit)

    @classmethod
    def create(
        cls,
        audit_log_file: str,
        max_samples: int = DEFAULT_CAPACITY,
        excluded_endpoints: Optional[Iterable[str]] = None,
        scan_limit: int = DEFAULT_SCAN_LIMIT,
    ) -> "ObservabilityPipeline":
        return cls(
            MetricsRingBuffer(max_samples),
            AuditStore(audit_log_file),
            excluded_endpoints=excluded_endpoints,
            scan_limit=scan_limit,
        )

    # Writers

    def record(self, sample: RequestSample) -> None:
        self.buffer.record(sample)

    def append(self, event: AuditEvent) -> Optional[AuditEvent]:
        """Synchronous durable append; failures are logged, not raised"""
        try:
            return self.store.append(event)
        except IngestionFailure as exc:
            logger.error(
                "audit_append_failed",
                event_type=event.event_type_value,
                error_message=str(exc),
            )
            return None

    # Readers

    def compute_system_metrics(self, now: datetime) -> SystemMetrics:
        return self.aggregator.compute_system_metrics(now)

    def compute_hourly_metrics(self, now: datetime) -> List[HourlyBucket]:
        return self.aggregator.compute_hourly_metrics(now)

    def evaluate_alerts(self, metrics: SystemMetrics, now: datetime) -> List[AlertRecord]:
        return self.alerts.evaluate(metrics, now)

    def compute_user_activity(self, now: datetime) -> UserActivity:
        return self.activity.compute_user_activity(now)

    def health(self) -> HealthStatus:
        exists, path, size_bytes = self.store.stat()
        status = "ok"
        total_events = 0
        if exists:
            try:
                total_events = sum(1 for _ in self.store.read_lines())
            except OSError as exc:
                logger.warning("audit_log_unreadable", path=path, error_message=str(exc))
                status = "degraded"

        return HealthStatus(
            status=status,
            audit_log_exists=exists,
            path=path,
            size_bytes=size_bytes,
            total_events=total_events,
            buffered_samples=self.buffer.size(),
            sample_capacity=self.buffer.capacity,
        )

    def close(self) -> None:
        self.trail.shutdown(wait=True)
