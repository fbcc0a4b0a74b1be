from __future__ import annotations

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple

import structlog
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import Settings, get_settings
from logging_config import configure_logging
from models.data_models import AuditEvent, AuditEventType, RequestSample
from models.errors import QueryFailure
from services.parser import AuditRecordParser
from services.pipeline import ObservabilityPipeline
from services.storage import AuditStore
from utils.helpers import client_ip, safe_str

logger = structlog.get_logger(__name__)

UserCountSource = Callable[[], int]


def _no_user_count() -> int:
    return 0


# ──────────────────────────────────────────────────────────────────────────────
# Request telemetry helpers
# ──────────────────────────────────────────────────────────────────────────────


def route_template(request: Request) -> str:
    """Matched route path (e.g. /users/{user_id}), raw path when unmatched."""
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path or request.url.path


def request_user(request: Request) -> Tuple[Optional[str], Optional[str]]:
    """(user_id, user_email) set on request.state.user by the auth layer, if any."""
    user = getattr(request.state, "user", None)
    if user is None:
        return None, None
    if isinstance(user, dict):
        return safe_str(user.get("id") or user.get("uuid")), safe_str(user.get("email"))
    return (
        safe_str(getattr(user, "id", None) or getattr(user, "uuid", None)),
        safe_str(getattr(user, "email", None)),
    )


def build_sample(request: Request, status_code: int, started: float) -> RequestSample:
    user_id, user_email = request_user(request)
    remote = request.client.host if request.client else None
    return RequestSample(
        timestamp=datetime.now(timezone.utc),
        method=request.method,
        path=route_template(request),
        status_code=status_code,
        latency_ms=max(0, int((time.perf_counter() - started) * 1000)),
        client_ip=client_ip(request.headers, remote),
        user_agent=request.headers.get("user-agent"),
        user_id=user_id,
        user_email=user_email,
    )


def audit_event_to_dict(event: AuditEvent) -> Dict[str, Any]:
    return AuditRecordParser.to_dict(event)


# ──────────────────────────────────────────────────────────────────────────────
# App
# ──────────────────────────────────────────────────────────────────────────────


def create_app(
    settings: Optional[Settings] = None,
    pipeline: Optional[ObservabilityPipeline] = None,
    user_count_source: UserCountSource = _no_user_count,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(use_json=settings.log_json, level=settings.log_level)

    if pipeline is None:
        pipeline = ObservabilityPipeline.create(
            settings.audit_log_file,
            max_samples=settings.max_samples,
            excluded_endpoints=settings.excluded_endpoints,
            scan_limit=settings.user_activity_scan_limit,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("monitoring_started", audit_log_file=pipeline.store.file_path)
        yield
        pipeline.close()
        logger.info("monitoring_stopped")

    app = FastAPI(title="Monitoring (Request Telemetry → Dashboard APIs)", lifespan=lifespan)
    app.state.pipeline = pipeline
    app.state.user_count_source = user_count_source

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    prefix = settings.api_prefix

    # ──────────────────────────────────────────────────────────────────────────
    # Request capture
    # ──────────────────────────────────────────────────────────────────────────

    @app.middleware("http")
    async def capture_request_metrics(request: Request, call_next):
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            try:
                pipeline.record(build_sample(request, status_code, started))
            except Exception as exc:
                logger.warning(
                    "metrics_capture_failed",
                    path=request.url.path,
                    error_type=type(exc).__name__,
                    error_message=str(exc),
                )

    @app.exception_handler(QueryFailure)
    async def query_failure_handler(request: Request, exc: QueryFailure) -> JSONResponse:
        logger.error("audit_query_failed", path=request.url.path, error_message=str(exc))
        return JSONResponse(status_code=503, content={"detail": "Audit log unavailable"})

    # ──────────────────────────────────────────────────────────────────────────
    # Health
    # ──────────────────────────────────────────────────────────────────────────

    @app.get(f"{prefix}/health")
    def health() -> Dict[str, Any]:
        h = pipeline.health()
        return {
            "status": h.status,
            "audit_log": {
                "exists": h.audit_log_exists,
                "path": h.path,
                "size_bytes": h.size_bytes,
                "total_events": h.total_events,
            },
            "metrics_buffer": {
                "size": h.buffered_samples,
                "capacity": h.sample_capacity,
            },
        }

    # ──────────────────────────────────────────────────────────────────────────
    # Dashboard metrics
    # ──────────────────────────────────────────────────────────────────────────

    @app.get(f"{prefix}/admin/metrics")
    def metrics() -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        system = pipeline.compute_system_metrics(now)
        hourly = pipeline.compute_hourly_metrics(now)
        alerts = pipeline.evaluate_alerts(system, now)
        activity = pipeline.compute_user_activity(now)

        try:
            total_users = int(app.state.user_count_source())
        except Exception as exc:
            logger.warning("user_count_unavailable", error_message=str(exc))
            total_users = 0

        logger.info(
            "system_metrics_retrieved",
            total_requests=system.total_requests,
            error_rate=system.error_rate,
            active_users=activity.active_users,
        )
        return {
            "overview": {
                "total_users": total_users,
                "active_users": activity.active_users,
                "new_users_today": activity.new_users_today,
                "total_requests": system.total_requests,
                "error_rate": system.error_rate,
            },
            "charts": {
                "user_growth": [{"date": d.date, "count": d.count} for d in activity.user_growth],
                "request_volume": [
                    {"hour": b.hour_start.isoformat(), "count": b.request_count} for b in hourly
                ],
            },
            "alerts": [a.to_dict() for a in alerts],
        }

    @app.get(f"{prefix}/admin/metrics/detailed")
    def detailed_metrics() -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        system = pipeline.compute_system_metrics(now)
        return {
            "system": system.to_dict(),
            "hourly": [b.to_dict() for b in pipeline.compute_hourly_metrics(now)],
            "alerts": [a.to_dict() for a in pipeline.evaluate_alerts(system, now)],
            "timestamp": now.isoformat(),
        }

    # ──────────────────────────────────────────────────────────────────────────
    # Audit logs
    # ──────────────────────────────────────────────────────────────────────────

    @app.get(f"{prefix}/admin/audit-logs")
    def audit_logs(
        page: int = Query(1, ge=1),
        limit: int = Query(50, ge=1, le=500),
    ) -> Dict[str, Any]:
        events, total = pipeline.store.page(page, limit)
        return {
            "logs": [audit_event_to_dict(e) for e in events],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": AuditStore.total_pages(total, limit),
            },
        }

    @app.get(f"{prefix}/admin/audit-logs/users/{{user_id}}")
    def audit_logs_for_user(
        user_id: str,
        limit: int = Query(100, ge=1, le=1000),
    ) -> Dict[str, Any]:
        events = pipeline.store.query_by_user(user_id, limit)
        return {"logs": [audit_event_to_dict(e) for e in events]}

    @app.get(f"{prefix}/admin/audit-logs/types/{{event_type}}")
    def audit_logs_by_type(
        event_type: str,
        limit: int = Query(100, ge=1, le=1000),
    ) -> Dict[str, Any]:
        try:
            wanted = AuditEventType(event_type.upper())
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown event type: {event_type}")
        events = pipeline.store.query_by_type(wanted, limit)
        return {"logs": [audit_event_to_dict(e) for e in events]}

    return app


# Serve with: uvicorn main:create_app --factory
