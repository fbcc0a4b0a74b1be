"""
Aggregator Class - Computes metrics and statistics

This module aggregates buffered request samples into the rolling 24h snapshot
and the 7-day hourly series shown on the admin dashboard.
"""

from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set

from models.data_models import (
    EndpointCount,
    ErrorCount,
    HourlyBucket,
    RequestSample,
    SystemMetrics,
)
from services.ring_buffer import MetricsRingBuffer
from utils.helpers import floor_to_hour, round2

ROLLING_WINDOW = timedelta(hours=24)
RATE_WINDOW = timedelta(hours=1)
HOURLY_WINDOW = timedelta(days=7)
HOURS_IN_WINDOW = 7 * 24
TOP_ENDPOINT_LIMIT = 10

# Dashboard polling would otherwise dominate its own top-endpoint list
DEFAULT_EXCLUDED_ENDPOINTS = frozenset(
    {
        "GET /api/admin/metrics",
        "GET /api/admin/metrics/detailed",
    }
)


class Aggregator:
    """
    Aggregates buffered request samples into metrics and statistics.
    Responsibilities:
    - Filter samples by trailing time window
    - Compute the rolling system snapshot
    - Compute per-endpoint and per-status breakdowns
    - Bucket traffic by hour
    """

    def __init__(
        self,
        buffer: MetricsRingBuffer,
        excluded_endpoints: Optional[Iterable[str]] = None,
    ):
        self.buffer = buffer
        self.excluded_endpoints = frozenset(
            DEFAULT_EXCLUDED_ENDPOINTS if excluded_endpoints is None else excluded_endpoints
        )

    def compute_system_metrics(self, now: datetime) -> SystemMetrics:
        """Compute the rolling 24h snapshot anchored at ``now``"""
        samples = self.buffer.snapshot(now - ROLLING_WINDOW)
        if not samples:
            return SystemMetrics()

        total = len(samples)
        failed = sum(1 for s in samples if s.is_error)
        successful = total - failed

        avg_latency = sum(s.latency_ms for s in samples) / total
        error_rate = failed / total * 100.0

        # Rate uses the narrower trailing hour
        rate_start = now - RATE_WINDOW
        last_hour = sum(1 for s in samples if s.timestamp >= rate_start)
        requests_per_minute = last_hour / 60

        unique_users = len({s.user_id for s in samples if s.user_id})

        return SystemMetrics(
            total_requests=total,
            successful_requests=successful,
            failed_requests=failed,
            average_response_time=round2(avg_latency),
            error_rate=round2(error_rate),
            requests_per_minute=round2(requests_per_minute),
            unique_users=unique_users,
            top_endpoints=self.compute_top_endpoints(samples),
            error_breakdown=self.compute_error_breakdown(samples),
        )

    def compute_top_endpoints(
        self, samples: List[RequestSample], limit: int = TOP_ENDPOINT_LIMIT
    ) -> List[EndpointCount]:
        """Request count per "METHOD /route", busiest first"""
        counts: Dict[str, int] = {}
        for s in samples:
            key = s.endpoint
            counts[key] = counts.get(key, 0) + 1

        ranked = sorted(
            (
                EndpointCount(path=path, count=count)
                for path, count in counts.items()
                if path not in self.excluded_endpoints
            ),
            key=lambda x: x.count,
            reverse=True,
        )
        return ranked[:limit]

    @staticmethod
    def compute_error_breakdown(samples: List[RequestSample]) -> List[ErrorCount]:
        """Count per failing status code, most frequent first"""
        counts: Dict[int, int] = {}
        for s in samples:
            if s.is_error:
                counts[s.status_code] = counts.get(s.status_code, 0) + 1

        breakdown = [ErrorCount(status_code=code, count=n) for code, n in counts.items()]
        breakdown.sort(key=lambda x: x.count, reverse=True)
        return breakdown

    def compute_hourly_metrics(self, now: datetime) -> List[HourlyBucket]:
        """
        Partition the trailing 7 days into 168 hourly buckets.
        Every hour is present, ascending; hours without traffic stay zeroed.
        Samples falling outside the generated hours are dropped.
        """
        current_hour = floor_to_hour(now)
        buckets: Dict[datetime, HourlyBucket] = {}
        for i in range(HOURS_IN_WINDOW - 1, -1, -1):
            hour = current_hour - timedelta(hours=i)
            buckets[hour] = HourlyBucket(hour_start=hour)

        users_by_hour: Dict[datetime, Set[str]] = {}
        for s in self.buffer.snapshot(now - HOURLY_WINDOW):
            hour = floor_to_hour(s.timestamp)
            bucket = buckets.get(hour)
            if bucket is None:
                continue

            bucket.request_count += 1
            if s.is_error:
                bucket.error_count += 1
            n = bucket.request_count
            bucket.avg_latency_ms = (bucket.avg_latency_ms * (n - 1) + s.latency_ms) / n

            if s.user_id:
                users_by_hour.setdefault(hour, set()).add(s.user_id)

        for hour, bucket in buckets.items():
            bucket.unique_user_count = len(users_by_hour.get(hour, ()))
            bucket.avg_latency_ms = round2(bucket.avg_latency_ms)

        return list(buckets.values())
