"""
MBG Watch - Scoring Configuration

Persisted credibility cut points. Seeded from the constants module the first
time the database is initialized; the stored copy is what scoring uses.
"""
import logging

from sqlalchemy.orm import Session

from ...models.db_models import ScoringConfigDB
from ...models.scoring import CredibilityThresholds
from ..credibility import thresholds as t

logger = logging.getLogger(__name__)

THRESHOLDS_KEY = "credibility_thresholds"


class ScoringConfigService:
    def __init__(self, db: Session):
        self.db = db

    def ensure_defaults(self) -> None:
        """Insert default thresholds if none are stored. Caller commits."""
        if self.db.get(ScoringConfigDB, THRESHOLDS_KEY) is None:
            self.db.add(ScoringConfigDB(
                key=THRESHOLDS_KEY,
                value={"high_min": t.HIGH_MIN_SCORE, "medium_min": t.MEDIUM_MIN_SCORE},
            ))
            self.db.flush()
            logger.info("Seeded default credibility thresholds")

    def get_thresholds(self) -> CredibilityThresholds:
        row = self.db.get(ScoringConfigDB, THRESHOLDS_KEY)
        if row is None:
            return CredibilityThresholds(high_min=t.HIGH_MIN_SCORE, medium_min=t.MEDIUM_MIN_SCORE)
        return CredibilityThresholds(
            high_min=int(row.value["high_min"]),
            medium_min=int(row.value["medium_min"]),
        )
