"""
AuditStore Class - Handles audit log file I/O

This module manages the append-only audit log: durable writes, and
newest-first retrieval with optional user/type filters.
"""

import dataclasses
import math
import os
import threading
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple, Union

import structlog

from models.data_models import AuditEvent, AuditEventType
from models.errors import IngestionFailure, QueryFailure
from services.parser import AuditRecordParser
from utils.helpers import utc_now

logger = structlog.get_logger(__name__)

DEFAULT_QUERY_LIMIT = 100
DEFAULT_QUERY_ALL_LIMIT = 1000


class AuditStore:
    """
    Manages the JSONL audit log.
    Responsibilities:
    - Stamp and durably append events (one line each, fsynced)
    - Read entries back sorted newest first
    - Provide file statistics
    """

    def __init__(
        self,
        file_path: str,
        parser: Optional[AuditRecordParser] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.file_path = file_path
        self.parser = parser or AuditRecordParser()
        self._clock = clock
        self._lock = threading.Lock()

    def append(self, event: AuditEvent) -> AuditEvent:
        """
        Stamp ``event`` with the current time and write it.
        Returns the stamped copy once the line is on disk.
        """
        stamped = dataclasses.replace(event, timestamp=self._clock())
        data = self.parser.serialize(stamped).encode("utf-8")

        try:
            with self._lock:
                self._ensure_parent_dir()
                with open(self.file_path, "a+b") as f:
                    # start on a fresh line if a previous write was torn
                    if f.seek(0, os.SEEK_END) > 0:
                        f.seek(-1, os.SEEK_END)
                        if f.read(1) != b"\n":
                            data = b"\n" + data
                    f.write(data)
                    f.flush()
                    os.fsync(f.fileno())
        except OSError as exc:
            raise IngestionFailure(f"could not append audit event: {exc}") from exc

        logger.info(
            "audit_event",
            event_type=stamped.event_type_value,
            user=stamped.user_email or "anonymous",
            status=stamped.status_value,
        )
        return stamped

    def query_all(self, limit: int = DEFAULT_QUERY_ALL_LIMIT) -> List[AuditEvent]:
        return self._query(limit)

    def query_by_user(self, user_id: str, limit: int = DEFAULT_QUERY_LIMIT) -> List[AuditEvent]:
        return self._query(limit, lambda e: e.user_id == user_id)

    def query_by_type(
        self,
        event_type: Union[AuditEventType, str],
        limit: int = DEFAULT_QUERY_LIMIT,
    ) -> List[AuditEvent]:
        wanted = event_type.value if isinstance(event_type, AuditEventType) else str(event_type)
        return self._query(limit, lambda e: e.event_type_value == wanted)

    def page(self, page: int = 1, limit: int = 50) -> Tuple[List[AuditEvent], int]:
        """One page of the newest-first log plus the total entry count"""
        events = self._sorted_events()
        skip = (max(page, 1) - 1) * limit
        return events[skip:skip + limit], len(events)

    def count(self) -> int:
        return len(self._load())

    def read_lines(self) -> Iterable[str]:
        """
        Iterator over raw lines in the audit log.
        Lines that are not valid UTF-8 (e.g. a torn final write) are skipped.
        """
        try:
            with open(self.file_path, "rb") as f:
                for lineno, raw in enumerate(f, start=1):
                    try:
                        line = raw.decode("utf-8").strip()
                    except UnicodeDecodeError:
                        logger.warning("audit_log_line_undecodable", path=self.file_path, line=lineno)
                        continue
                    if line:
                        yield line
        except FileNotFoundError:
            return

    def stat(self) -> Tuple[bool, str, int]:
        """(exists, absolute path, size in bytes)"""
        exists = os.path.exists(self.file_path)
        size_bytes = os.path.getsize(self.file_path) if exists else 0
        return exists, os.path.abspath(self.file_path), size_bytes

    @staticmethod
    def total_pages(total: int, limit: int) -> int:
        return math.ceil(total / limit) if limit else 0

    def _query(
        self,
        limit: int,
        predicate: Optional[Callable[[AuditEvent], bool]] = None,
    ) -> List[AuditEvent]:
        events = self._sorted_events()
        if predicate is not None:
            events = [e for e in events if predicate(e)]
        return events[:max(limit, 0)]

    def _sorted_events(self) -> List[AuditEvent]:
        indexed = self._load()
        # Newest first; equal timestamps keep later appends first
        indexed.sort(key=lambda pair: (pair[1].timestamp, pair[0]), reverse=True)
        return [event for _, event in indexed]

    def _load(self) -> List[Tuple[int, AuditEvent]]:
        """Parse the whole log; lines that do not parse are skipped"""
        events: List[Tuple[int, AuditEvent]] = []
        skipped = 0
        try:
            with self._lock:
                for seq, line in enumerate(self.read_lines()):
                    raw = self.parser.parse_json(line)
                    event = self.parser.normalize(raw) if raw else None
                    if event is None:
                        skipped += 1
                        continue
                    events.append((seq, event))
        except OSError as exc:
            logger.error(
                "audit_log_unreadable",
                path=self.file_path,
                error_type=type(exc).__name__,
                error_message=str(exc),
            )
            raise QueryFailure(f"could not read audit log: {exc}") from exc

        if skipped:
            logger.warning("audit_log_lines_skipped", path=self.file_path, skipped=skipped)
        return events

    def _ensure_parent_dir(self) -> None:
        """Create parent directories if needed"""
        os.makedirs(os.path.dirname(os.path.abspath(self.file_path)), exist_ok=True)
