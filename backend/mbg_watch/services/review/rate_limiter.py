"""
MBG Watch - Submission Rate Limiter

Counts a reporter's recent submissions straight from the reports table, so
the limit holds across worker processes and restarts.

The check locks the reporter's user row (SELECT ... FOR UPDATE) before
counting, so on PostgreSQL two concurrent submissions from one reporter are
counted one after the other and the lock is held until the submission
commits. SQLite has no row locks; there the limit is best-effort and two
submissions racing inside the same instant may both pass.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...errors import RateLimitError
from ...models.db_models import ReportDB, UserDB
from ..credibility import thresholds as t

logger = logging.getLogger(__name__)


class SubmissionRateLimiter:
    def __init__(
        self,
        db: Session,
        limit: int = t.SUBMISSION_RATE_LIMIT,
        window_minutes: int = t.SUBMISSION_RATE_WINDOW_MINUTES,
    ):
        self.db = db
        self.limit = limit
        self.window = timedelta(minutes=window_minutes)

    def lock_reporter(self, reporter_id: str) -> None:
        """Serialize submissions per reporter until the caller's transaction ends."""
        self.db.query(UserDB.id).filter(UserDB.id == reporter_id).with_for_update().first()

    def recent_count(self, reporter_id: str, now: datetime) -> int:
        return self.db.query(func.count(ReportDB.id)).filter(
            ReportDB.reporter_id == reporter_id,
            ReportDB.submitted_at > now - self.window,
        ).scalar() or 0

    def check(self, reporter_id: Optional[str], now: datetime) -> None:
        """Raise RateLimitError if another submission would exceed the limit."""
        if reporter_id is None:
            return
        self.lock_reporter(reporter_id)
        count = self.recent_count(reporter_id, now)
        if count >= self.limit:
            logger.warning(
                f"Rate limit hit for reporter {reporter_id}: {count} submissions in {self.window}"
            )
            raise RateLimitError(
                f"At most {self.limit} reports per {int(self.window.total_seconds() // 60)} minutes"
            )
