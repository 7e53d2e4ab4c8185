"""
MBG Watch - Reporter Profiles

Verdict counters per reporter. Counters are changed only with SQL-side
increments so concurrent verdicts for the same reporter never lose an update.
"""
import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ...models.db_models import ReporterProfileDB, ReportStatus, utcnow
from ...models.scoring import ReporterHistory

logger = logging.getLogger(__name__)

# Terminal status -> counter it increments
VERDICT_COUNTERS = {
    ReportStatus.RESOLVED: "verified_count",
    ReportStatus.INVALID: "rejected_count",
}


class ReporterProfileService:
    def __init__(self, db: Session):
        self.db = db

    def get_or_create(self, reporter_id: str) -> ReporterProfileDB:
        profile = self.db.query(ReporterProfileDB).filter(
            ReporterProfileDB.reporter_id == reporter_id
        ).first()
        if profile is None:
            profile = ReporterProfileDB(
                reporter_id=reporter_id,
                report_count=0,
                verified_count=0,
                rejected_count=0,
            )
            self.db.add(profile)
            self.db.flush()
        return profile

    def snapshot(self, reporter_id: Optional[str]) -> ReporterHistory:
        """Current counters as an immutable history value (zeros when unknown)."""
        if reporter_id is None:
            return ReporterHistory()
        # populate_existing: counters may have moved under SQL-side increments
        profile = self.db.query(ReporterProfileDB).populate_existing().filter(
            ReporterProfileDB.reporter_id == reporter_id
        ).first()
        if profile is None:
            return ReporterHistory()
        return ReporterHistory(
            report_count=profile.report_count,
            verified_count=profile.verified_count,
            rejected_count=profile.rejected_count,
        )

    def increment(self, reporter_id: str, counter: str) -> None:
        """Atomically add one to a counter column."""
        self.get_or_create(reporter_id)
        column = getattr(ReporterProfileDB, counter)
        self.db.execute(
            update(ReporterProfileDB)
            .where(ReporterProfileDB.reporter_id == reporter_id)
            .values({column: column + 1, ReporterProfileDB.updated_at: utcnow()})
            .execution_options(synchronize_session=False)
        )
        logger.debug(f"Reporter {reporter_id}: {counter} += 1")

    def record_submission(self, reporter_id: str) -> None:
        self.increment(reporter_id, "report_count")

    def record_verdict(self, reporter_id: Optional[str], status: ReportStatus) -> None:
        """Count a terminal verdict against the reporter, if the status is one."""
        counter = VERDICT_COUNTERS.get(status)
        if counter is None or reporter_id is None:
            return
        self.increment(reporter_id, counter)
        logger.info(f"Reporter {reporter_id}: {counter} incremented ({status.value})")
