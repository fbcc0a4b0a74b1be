"""
Data Models (DTOs - Data Transfer Objects)

This module contains the dataclass definitions shared by the telemetry
pipeline: request samples, audit events and the derived dashboard views.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class AuditEventType(str, Enum):
    """Closed set of audit event kinds written by domain services"""

    # Authentication
    USER_LOGIN_SUCCESS = "USER_LOGIN_SUCCESS"
    USER_LOGIN_FAILED = "USER_LOGIN_FAILED"
    USER_LOGOUT = "USER_LOGOUT"
    USER_REGISTER = "USER_REGISTER"
    USER_VERIFY_EMAIL = "USER_VERIFY_EMAIL"
    USER_RESET_PASSWORD = "USER_RESET_PASSWORD"
    USER_CHANGE_PASSWORD = "USER_CHANGE_PASSWORD"

    # Security
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    ACCOUNT_UNLOCKED = "ACCOUNT_UNLOCKED"
    SUSPICIOUS_ACTIVITY = "SUSPICIOUS_ACTIVITY"
    BRUTE_FORCE_ATTEMPT = "BRUTE_FORCE_ATTEMPT"

    # Data access
    DATA_ACCESS = "DATA_ACCESS"
    DATA_DOWNLOAD = "DATA_DOWNLOAD"
    DATA_EXPORT = "DATA_EXPORT"

    # Administration
    USER_ROLE_CHANGED = "USER_ROLE_CHANGED"
    USER_STATUS_CHANGED = "USER_STATUS_CHANGED"
    USER_DELETED = "USER_DELETED"

    # Sessions
    SESSION_CREATED = "SESSION_CREATED"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    SESSION_REVOKED = "SESSION_REVOKED"

    # Backups
    BACKUP_CREATED = "BACKUP_CREATED"
    BACKUP_RESTORED = "BACKUP_RESTORED"


class AuditStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    WARNING = "WARNING"


@dataclass(frozen=True)
class RequestSample:
    """One completed HTTP request, keyed by route template (not raw URL)"""
    timestamp: datetime
    method: str
    path: str
    status_code: int
    latency_ms: int
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None
    user_id: Optional[str] = None
    user_email: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.status_code >= 400

    @property
    def endpoint(self) -> str:
        return f"{self.method} {self.path}"


@dataclass
class AuditEvent:
    """
    A single audit trail entry.

    ``event_type`` and ``status`` are normally enum members; entries read back
    from disk with a value this build does not know keep the raw string.
    """
    event_type: Any
    status: Any
    timestamp: Optional[datetime] = None
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    session_id: Optional[str] = None
    resource: Optional[str] = None
    action: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def event_type_value(self) -> str:
        if isinstance(self.event_type, AuditEventType):
            return self.event_type.value
        return str(self.event_type)

    @property
    def status_value(self) -> str:
        if isinstance(self.status, AuditStatus):
            return self.status.value
        return str(self.status)


@dataclass
class EndpointCount:
    path: str
    count: int


@dataclass
class ErrorCount:
    status_code: int
    count: int


@dataclass
class SystemMetrics:
    """Rolling 24h snapshot of request telemetry"""
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    average_response_time: float = 0.0
    error_rate: float = 0.0
    requests_per_minute: float = 0.0
    unique_users: int = 0
    top_endpoints: List[EndpointCount] = field(default_factory=list)
    error_breakdown: List[ErrorCount] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class HourlyBucket:
    """Per-hour request statistics"""
    hour_start: datetime
    request_count: int = 0
    error_count: int = 0
    avg_latency_ms: float = 0.0
    unique_user_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hour": self.hour_start.isoformat(),
            "requests": self.request_count,
            "errors": self.error_count,
            "avg_response_time": self.avg_latency_ms,
            "unique_users": self.unique_user_count,
        }


@dataclass
class AlertRecord:
    id: str
    severity: str  # error | warning | info
    message: str
    timestamp: datetime
    resolved: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.severity,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "resolved": self.resolved,
        }


@dataclass
class DailyUserCount:
    date: str  # YYYY-MM-DD
    count: int


@dataclass
class UserActivity:
    """Login-derived user statistics"""
    active_users: int = 0
    new_users_today: int = 0
    user_growth: List[DailyUserCount] = field(default_factory=list)


@dataclass
class HealthStatus:
    """Health check response"""
    status: str
    audit_log_exists: bool
    path: str
    size_bytes: int
    total_events: int
    buffered_samples: int
    sample_capacity: int
