"""
AlertEvaluator Class - Threshold alerts over the rolling snapshot

Alerts are recomputed on every call and never persisted.
"""

from datetime import datetime
from typing import List

from models.data_models import AlertRecord, SystemMetrics

ERROR_RATE_CRITICAL = 5.0
ERROR_RATE_ELEVATED = 2.0
SLOW_RESPONSE_MS = 2000.0
LOW_ACTIVITY_RPM = 1.0
HIGH_LOAD_RPM = 100.0


class AlertEvaluator:
    """
    Applies static threshold rules to a SystemMetrics snapshot.
    Each rule is independent; several alerts may fire together.
    """

    def evaluate(self, metrics: SystemMetrics, now: datetime) -> List[AlertRecord]:
        stamp = int(now.timestamp() * 1000)
        alerts: List[AlertRecord] = []

        def emit(rule: str, severity: str, message: str) -> None:
            alerts.append(
                AlertRecord(
                    id=f"alert_{rule}_{stamp}",
                    severity=severity,
                    message=message,
                    timestamp=now,
                )
            )

        if metrics.error_rate > ERROR_RATE_CRITICAL:
            emit("error_rate", "error", f"High error rate detected: {metrics.error_rate}%")
        elif metrics.error_rate > ERROR_RATE_ELEVATED:
            emit("error_rate", "warning", f"Elevated error rate: {metrics.error_rate}%")

        if metrics.average_response_time > SLOW_RESPONSE_MS:
            emit(
                "response_time",
                "warning",
                f"High average response time: {metrics.average_response_time}ms",
            )

        if metrics.requests_per_minute < LOW_ACTIVITY_RPM:
            emit("low_activity", "info", "Low system activity detected")

        if metrics.requests_per_minute > HIGH_LOAD_RPM:
            emit(
                "high_load",
                "warning",
                f"High system load: {metrics.requests_per_minute} requests/minute",
            )

        return alerts
