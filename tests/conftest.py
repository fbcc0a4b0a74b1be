"""Shared pytest fixtures for the monitoring backend."""

from datetime import datetime, timedelta, timezone

import pytest

from models.data_models import RequestSample
from services.pipeline import ObservabilityPipeline
from services.ring_buffer import MetricsRingBuffer
from services.storage import AuditStore

NOW = datetime(2026, 3, 14, 15, 30, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock for audit timestamps."""

    def __init__(self, start: datetime = NOW):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


def make_sample(
    at: datetime,
    status_code: int = 200,
    latency_ms: int = 100,
    method: str = "GET",
    path: str = "/api/users",
    user_id=None,
) -> RequestSample:
    return RequestSample(
        timestamp=at,
        method=method,
        path=path,
        status_code=status_code,
        latency_ms=latency_ms,
        user_id=user_id,
    )


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def sample_factory():
    return make_sample


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def buffer() -> MetricsRingBuffer:
    return MetricsRingBuffer(capacity=10_000)


@pytest.fixture
def audit_path(tmp_path) -> str:
    return str(tmp_path / "logs" / "audit.jsonl")


@pytest.fixture
def store(audit_path, clock) -> AuditStore:
    return AuditStore(audit_path, clock=clock)


@pytest.fixture
def pipeline(buffer, store):
    p = ObservabilityPipeline(buffer, store)
    yield p
    p.close()
