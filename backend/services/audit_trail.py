"""
AuditTrail Class - Fire-and-forget audit logging for domain services

Domain code (login, admin actions, backups, ...) calls the typed helpers
here; events are handed to a background writer so request handlers never
wait on disk.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, Optional

import structlog

from models.data_models import AuditEvent, AuditEventType, AuditStatus
from services.storage import AuditStore
from utils.helpers import format_ts, utc_now

logger = structlog.get_logger(__name__)


class AuditTrail:
    """
    Background writer in front of an AuditStore.

    A single worker thread performs the durable appends in submission order.
    Write failures are logged and never propagate to the submitter.
    """

    def __init__(self, store: AuditStore, executor: Optional[ThreadPoolExecutor] = None):
        self.store = store
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="audit-writer"
        )

    def submit(self, event: AuditEvent) -> Optional[Future]:
        """Queue ``event`` for appending; returns the write's future"""
        try:
            future = self._executor.submit(self.store.append, event)
        except RuntimeError as exc:
            # executor already shut down
            logger.warning(
                "audit_submit_rejected",
                event_type=event.event_type_value,
                error_message=str(exc),
            )
            return None
        future.add_done_callback(self._log_failure)
        return future

    def shutdown(self, wait: bool = True) -> None:
        """Drain pending writes and stop the worker"""
        self._executor.shutdown(wait=wait)

    @staticmethod
    def _log_failure(future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error(
                "audit_append_failed",
                error_type=type(exc).__name__,
                error_message=str(exc),
            )

    def _log(
        self,
        event_type: AuditEventType,
        status: AuditStatus,
        details: Dict[str, Any],
        **fields: Any,
    ) -> Optional[Future]:
        details = dict(details)
        details.setdefault("timestamp", format_ts(utc_now()))
        return self.submit(AuditEvent(event_type=event_type, status=status, details=details, **fields))

    # Authentication

    def log_login_success(
        self,
        user_id: str,
        user_email: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> Optional[Future]:
        return self._log(
            AuditEventType.USER_LOGIN_SUCCESS,
            AuditStatus.SUCCESS,
            {"login_method": "password"},
            user_id=user_id,
            user_email=user_email,
            ip_address=ip_address,
            user_agent=user_agent,
            session_id=session_id,
        )

    def log_login_failed(
        self,
        email: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Optional[Future]:
        return self._log(
            AuditEventType.USER_LOGIN_FAILED,
            AuditStatus.FAILED,
            {"reason": reason or "Invalid credentials"},
            user_email=email,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    def log_logout(
        self, user_id: str, user_email: str, session_id: Optional[str] = None
    ) -> Optional[Future]:
        return self._log(
            AuditEventType.USER_LOGOUT,
            AuditStatus.SUCCESS,
            {"logout_method": "user_initiated"},
            user_id=user_id,
            user_email=user_email,
            session_id=session_id,
        )

    def log_registration(
        self, user_id: str, user_email: str, ip_address: Optional[str] = None
    ) -> Optional[Future]:
        return self._log(
            AuditEventType.USER_REGISTER,
            AuditStatus.SUCCESS,
            {"registration_method": "standard"},
            user_id=user_id,
            user_email=user_email,
            ip_address=ip_address,
        )

    def log_email_verification(
        self,
        user_id: str,
        user_email: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[Future]:
        return self._log(
            AuditEventType.USER_VERIFY_EMAIL,
            AuditStatus.SUCCESS,
            {"verification_method": "email_link"},
            user_id=user_id,
            user_email=user_email,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    def log_password_reset(
        self,
        user_id: str,
        user_email: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[Future]:
        return self._log(
            AuditEventType.USER_RESET_PASSWORD,
            AuditStatus.SUCCESS,
            {"reset_method": "email_token"},
            user_id=user_id,
            user_email=user_email,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    def log_password_change(
        self,
        user_id: str,
        user_email: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[Future]:
        return self._log(
            AuditEventType.USER_CHANGE_PASSWORD,
            AuditStatus.SUCCESS,
            {"change_method": "user_initiated"},
            user_id=user_id,
            user_email=user_email,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    def log_profile_update(
        self,
        user_id: str,
        user_email: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[Future]:
        # no dedicated profile event type; recorded as a status change
        return self._log(
            AuditEventType.USER_STATUS_CHANGED,
            AuditStatus.SUCCESS,
            {"update_method": "user_initiated"},
            user_id=user_id,
            user_email=user_email,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    def log_failed_login_attempt(
        self,
        email: str,
        ip_address: str,
        reason: str,
        user_agent: Optional[str] = None,
    ) -> Optional[Future]:
        """Failed login with an explicit reason (locked account, unverified email)"""
        return self.log_login_failed(email, ip_address, user_agent, reason)

    # Security

    def log_suspicious_activity(
        self,
        user_id: Optional[str],
        user_email: Optional[str],
        activity: str,
        ip_address: Optional[str] = None,
    ) -> Optional[Future]:
        return self._log(
            AuditEventType.SUSPICIOUS_ACTIVITY,
            AuditStatus.WARNING,
            {"activity": activity},
            user_id=user_id,
            user_email=user_email,
            ip_address=ip_address,
        )

    def log_brute_force_attempt(
        self, email: str, ip_address: str, attempt_count: int
    ) -> Optional[Future]:
        return self._log(
            AuditEventType.BRUTE_FORCE_ATTEMPT,
            AuditStatus.WARNING,
            {"attempt_count": attempt_count},
            user_email=email,
            ip_address=ip_address,
        )

    # Data access

    def log_data_access(
        self,
        user_id: str,
        user_email: str,
        resource: str,
        action: str,
        ip_address: Optional[str] = None,
    ) -> Optional[Future]:
        return self._log(
            AuditEventType.DATA_ACCESS,
            AuditStatus.SUCCESS,
            {},
            user_id=user_id,
            user_email=user_email,
            resource=resource,
            action=action,
            ip_address=ip_address,
        )

    def log_data_export(
        self,
        user_id: str,
        user_email: str,
        resource: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[Future]:
        return self._log(
            AuditEventType.DATA_EXPORT,
            AuditStatus.SUCCESS,
            {"resource": resource},
            user_id=user_id,
            user_email=user_email,
            resource=resource,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    # Administration

    def log_admin_action(
        self,
        admin_id: str,
        admin_email: str,
        action: str,
        target_user_id: Optional[str] = None,
        target_user_email: Optional[str] = None,
        event_type: AuditEventType = AuditEventType.USER_ROLE_CHANGED,
    ) -> Optional[Future]:
        return self._log(
            event_type,
            AuditStatus.SUCCESS,
            {
                "action": action,
                "target_user_id": target_user_id,
                "target_user_email": target_user_email,
            },
            user_id=admin_id,
            user_email=admin_email,
            action=action,
        )

    def log_user_deletion(
        self,
        user_id: str,
        user_email: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[Future]:
        return self._log(
            AuditEventType.USER_DELETED,
            AuditStatus.SUCCESS,
            {"deletion_method": "admin_action"},
            user_id=user_id,
            user_email=user_email,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    # Sessions

    def log_session_created(
        self, user_id: str, user_email: str, session_id: str, ip_address: Optional[str] = None
    ) -> Optional[Future]:
        return self._log(
            AuditEventType.SESSION_CREATED,
            AuditStatus.SUCCESS,
            {},
            user_id=user_id,
            user_email=user_email,
            session_id=session_id,
            ip_address=ip_address,
        )

    def log_session_revoked(
        self, user_id: str, user_email: str, session_id: str, reason: Optional[str] = None
    ) -> Optional[Future]:
        return self._log(
            AuditEventType.SESSION_REVOKED,
            AuditStatus.SUCCESS,
            {"reason": reason or "user_initiated"},
            user_id=user_id,
            user_email=user_email,
            session_id=session_id,
        )

    # Backups

    def log_backup_created(
        self,
        user_id: str,
        user_email: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[Future]:
        return self._log(
            AuditEventType.BACKUP_CREATED,
            AuditStatus.SUCCESS,
            details or {},
            user_id=user_id,
            user_email=user_email,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    def log_backup_restored(
        self,
        user_id: str,
        user_email: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[Future]:
        return self._log(
            AuditEventType.BACKUP_RESTORED,
            AuditStatus.SUCCESS,
            details or {},
            user_id=user_id,
            user_email=user_email,
            ip_address=ip_address,
            user_agent=user_agent,
        )
