import logging
from datetime import date
from typing import Callable, Optional
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from sqlchat.core.config import settings
from sqlchat.core.database import get_app_db
from sqlchat.core.models import DemoQueryUsage, utcnow

logger = logging.getLogger(__name__)


class UsageGovernor:
    """
    Daily query quota for users on the shared demo tier.
    One DemoQueryUsage row per (user, day), created lazily.
    """
    def __init__(self, app_db=None, daily_limit: Optional[int] = None, today: Callable[[], date] = date.today):
        self._app_db = app_db
        self.daily_limit = settings.DAILY_QUERY_LIMIT if daily_limit is None else daily_limit
        self._today = today

    @property
    def app_db(self):
        return self._app_db or get_app_db()

    def current_count(self, user_id: int) -> int:
        with self.app_db.get_session() as session:
            usage = session.exec(
                select(DemoQueryUsage)
                .where(DemoQueryUsage.user_id == user_id)
                .where(DemoQueryUsage.usage_date == self._today())
            ).first()
            return usage.query_count if usage else 0

    def has_exceeded_limit(self, user_id: int) -> bool:
        return self.current_count(user_id) >= self.daily_limit

    def remaining_queries(self, user_id: int) -> int:
        return max(0, self.daily_limit - self.current_count(user_id))

    def increment(self, user_id: int) -> int:
        """
        Create today's row if missing, then bump it with a single
        `query_count = query_count + 1` statement so overlapping requests
        never lose an update.
        """
        today = self._today()
        with self.app_db.get_session() as session:
            exists = session.exec(
                select(DemoQueryUsage.id)
                .where(DemoQueryUsage.user_id == user_id)
                .where(DemoQueryUsage.usage_date == today)
            ).first()
            if exists is None:
                session.add(DemoQueryUsage(user_id=user_id, usage_date=today, query_count=0))
                try:
                    session.commit()
                except IntegrityError:
                    # another request created the row first
                    session.rollback()

            session.connection().execute(
                update(DemoQueryUsage)
                .where(DemoQueryUsage.user_id == user_id)
                .where(DemoQueryUsage.usage_date == today)
                .values(query_count=DemoQueryUsage.query_count + 1, updated_at=utcnow())
            )
            session.commit()

        count = self.current_count(user_id)
        logger.info("Demo usage for user %s: %d/%d", user_id, count, self.daily_limit)
        return count
