"""
UserActivityDeriver Class - Login-based user statistics

Active users and the 7-day growth curve are rebuilt from audit log entries
only; request samples are never consulted.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Set

import structlog

from models.data_models import AuditEvent, AuditEventType, DailyUserCount, UserActivity
from services.storage import AuditStore
from utils.helpers import floor_to_day

logger = structlog.get_logger(__name__)

ACTIVE_WINDOW = timedelta(hours=24)
GROWTH_DAYS = 7
DEFAULT_SCAN_LIMIT = 10_000


class UserActivityDeriver:
    """Derives active users and daily login counts from the audit trail"""

    def __init__(self, store: AuditStore, scan_limit: int = DEFAULT_SCAN_LIMIT):
        self.store = store
        self.scan_limit = scan_limit

    def compute_user_activity(self, now: datetime) -> UserActivity:
        """Never raises; an unreadable audit log yields zero counts"""
        try:
            logins = self.store.query_by_type(AuditEventType.USER_LOGIN_SUCCESS, self.scan_limit)
            registrations = self.store.query_by_type(AuditEventType.USER_REGISTER, self.scan_limit)
        except Exception as exc:
            logger.error(
                "user_activity_unavailable",
                error_type=type(exc).__name__,
                error_message=str(exc),
            )
            return self.empty(now)

        since = now - ACTIVE_WINDOW
        active_users = len({e.user_id for e in logins if e.user_id and e.timestamp >= since})

        today = floor_to_day(now)
        new_users_today = len(
            {e.user_id for e in registrations if e.user_id and today <= e.timestamp <= now}
        )

        return UserActivity(
            active_users=active_users,
            new_users_today=new_users_today,
            user_growth=self._daily_logins(logins, now),
        )

    @staticmethod
    def _daily_logins(logins: List[AuditEvent], now: datetime) -> List[DailyUserCount]:
        """Distinct logged-in users per UTC calendar day, oldest day first"""
        users_by_day: Dict[datetime, Set[str]] = {}
        for e in logins:
            if e.user_id:
                users_by_day.setdefault(floor_to_day(e.timestamp), set()).add(e.user_id)

        today = floor_to_day(now)
        growth: List[DailyUserCount] = []
        for i in range(GROWTH_DAYS - 1, -1, -1):
            day = today - timedelta(days=i)
            growth.append(
                DailyUserCount(date=day.date().isoformat(), count=len(users_by_day.get(day, ())))
            )
        return growth

    @staticmethod
    def empty(now: datetime) -> UserActivity:
        today = floor_to_day(now)
        return UserActivity(
            user_growth=[
                DailyUserCount(date=(today - timedelta(days=i)).date().isoformat(), count=0)
                for i in range(GROWTH_DAYS - 1, -1, -1)
            ]
        )
