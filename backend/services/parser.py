"""
AuditRecordParser Class - Handles audit log line encoding and decoding

This module turns audit log lines into AuditEvent objects and back.
"""

import json
from typing import Any, Dict, Optional

from models.data_models import AuditEvent, AuditEventType, AuditStatus
from utils.helpers import format_ts, get_nested, parse_ts, safe_str


class AuditRecordParser:
    """
    Encodes and decodes one audit event per line.
    Responsibilities:
    - Parse JSON lines
    - Normalize entries written by older or newer builds
    - Serialize events as self-contained JSON lines
    """

    @staticmethod
    def parse_json(line: str) -> Optional[Dict[str, Any]]:
        """Parse JSON line, return None if invalid"""
        try:
            obj = json.loads(line)
        except ValueError:
            return None
        return obj if isinstance(obj, dict) else None

    @staticmethod
    def normalize(raw: Dict[str, Any]) -> Optional[AuditEvent]:
        """
        Normalize raw dict into an AuditEvent.
        Entries without a timestamp or event type are rejected; unknown
        event types and statuses are kept as plain strings.
        """
        ts = parse_ts(raw.get("timestamp") or raw.get("time"))
        if ts is None:
            return None

        type_raw = raw.get("event_type") or raw.get("type")
        if not type_raw:
            return None
        try:
            event_type: Any = AuditEventType(str(type_raw))
        except ValueError:
            event_type = str(type_raw)

        status_raw = str(raw.get("status") or AuditStatus.SUCCESS.value).upper()
        try:
            status: Any = AuditStatus(status_raw)
        except ValueError:
            status = status_raw

        details = raw.get("details")

        return AuditEvent(
            event_type=event_type,
            status=status,
            timestamp=ts,
            user_id=safe_str(raw.get("user_id") or get_nested(raw, ("user", "id"))),
            user_email=safe_str(raw.get("user_email") or get_nested(raw, ("user", "email"))),
            ip_address=safe_str(raw.get("ip_address")),
            user_agent=safe_str(raw.get("user_agent")),
            session_id=safe_str(raw.get("session_id")),
            resource=safe_str(raw.get("resource")),
            action=safe_str(raw.get("action")),
            details=details if isinstance(details, dict) else {},
        )

    @staticmethod
    def to_dict(event: AuditEvent) -> Dict[str, Any]:
        return {
            "timestamp": format_ts(event.timestamp) if event.timestamp else None,
            "event_type": event.event_type_value,
            "status": event.status_value,
            "user_id": event.user_id,
            "user_email": event.user_email,
            "ip_address": event.ip_address,
            "user_agent": event.user_agent,
            "session_id": event.session_id,
            "resource": event.resource,
            "action": event.action,
            "details": event.details,
        }

    @classmethod
    def serialize(cls, event: AuditEvent) -> str:
        """Single JSON line, newline-terminated"""
        return json.dumps(cls.to_dict(event), ensure_ascii=False, default=str) + "\n"
