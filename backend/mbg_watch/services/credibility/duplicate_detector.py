"""
MBG Watch - Duplicate / Corroboration Detector

Looks for earlier reports about the same incident: same category, same
city (and district when both reports name one), incident dates within
DUPLICATE_DATE_WINDOW_DAYS of each other.

Candidates are split by who filed them:

- Same reporter, near-identical narrative -> potential duplicate. Flagged for
  human review, never counted as corroboration or location history. The
  duplicate itself earns no corroboration from other reporters either.
- Different reporter, similar narrative -> corroboration. Counted once per
  distinct reporter.
- Different reporter, unrelated narrative -> location history only.

The store search runs under a timeout. When the store is slow or down the
detector returns a degraded result instead of raising, so scoring can finish
with a provisional similarity factor.
"""
from __future__ import annotations
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ...models.db_models import ReportCategory, ReportDB, ReportStatus
from ...models.scoring import ReportSnapshot
from . import thresholds as t
from .similarity import narrative_similarity

logger = logging.getLogger(__name__)

# Shared worker pool for bounded store searches
_search_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="dup-search")


@dataclass
class DetectorConfig:
    """Thresholds for candidate search and narrative matching.

    Similarity thresholds are values of ``narrative_similarity`` in [0, 1].
    """

    # Days either side of the incident date that still count as the same event
    date_window_days: int = t.DUPLICATE_DATE_WINDOW_DAYS

    # Same reporter at or above this -> potential duplicate
    duplicate_similarity: float = t.DUPLICATE_NARRATIVE_SIMILARITY

    # Different reporter at or above this -> corroboration
    corroboration_similarity: float = t.CORROBORATION_NARRATIVE_SIMILARITY

    candidate_limit: int = t.DUPLICATE_CANDIDATE_LIMIT
    timeout_seconds: float = t.DUPLICATE_SEARCH_TIMEOUT_SECONDS


DEFAULT_CONFIG = DetectorConfig()


class CandidateStoreUnavailable(Exception):
    """The report store could not answer a candidate search."""


@dataclass(frozen=True)
class CandidateQuery:
    category: ReportCategory
    city_id: str
    incident_from: datetime
    incident_to: datetime
    exclude_id: Optional[str] = None
    limit: int = t.DUPLICATE_CANDIDATE_LIMIT


@dataclass(frozen=True)
class CandidateReport:
    id: str
    reporter_id: Optional[str]
    description: str
    city_id: str
    district_id: Optional[str]
    status: ReportStatus
    incident_date: datetime
    submitted_at: datetime


@dataclass
class DetectionResult:
    corroborating_ids: List[str] = field(default_factory=list)
    corroborator_count: int = 0
    duplicate_of_id: Optional[str] = None
    location_has_history: bool = False
    degraded: bool = False
    degraded_reason: Optional[str] = None

    @classmethod
    def unavailable(cls, reason: str) -> "DetectionResult":
        return cls(degraded=True, degraded_reason=reason)


class SqlCandidateStore:
    """
    Candidate search backed by the reports table.

    Opens its own session per search so the query can run on a worker thread
    without touching the caller's session.
    """

    def __init__(self, session_factory: Callable):
        self.session_factory = session_factory

    def find_candidates(self, query: CandidateQuery) -> List[CandidateReport]:
        session = self.session_factory()
        try:
            q = session.query(ReportDB).filter(
                ReportDB.category == query.category,
                ReportDB.city_id == query.city_id,
                ReportDB.incident_date >= query.incident_from,
                ReportDB.incident_date <= query.incident_to,
            )
            if query.exclude_id:
                q = q.filter(ReportDB.id != query.exclude_id)
            rows = q.order_by(ReportDB.submitted_at.asc(), ReportDB.id.asc()).limit(query.limit).all()
            return [
                CandidateReport(
                    id=row.id,
                    reporter_id=row.reporter_id,
                    description=row.description,
                    city_id=row.city_id,
                    district_id=row.district_id,
                    status=row.status,
                    incident_date=row.incident_date,
                    submitted_at=row.submitted_at,
                )
                for row in rows
            ]
        except SQLAlchemyError as e:
            raise CandidateStoreUnavailable(str(e)) from e
        finally:
            session.close()


class DuplicateDetector:
    """Finds duplicates and corroborating reports for a snapshot."""

    def __init__(self, store, config: Optional[DetectorConfig] = None):
        self.store = store
        self.config = config or DEFAULT_CONFIG

    def build_query(self, snapshot: ReportSnapshot) -> CandidateQuery:
        window = timedelta(days=self.config.date_window_days)
        return CandidateQuery(
            category=snapshot.category,
            city_id=snapshot.city_id,
            incident_from=snapshot.incident_date - window,
            incident_to=snapshot.incident_date + window,
            exclude_id=snapshot.report_id,
            limit=self.config.candidate_limit,
        )

    def search(self, query: CandidateQuery) -> List[CandidateReport]:
        """Run the store search on the worker pool, bounded by the timeout."""
        timeout = self.config.timeout_seconds
        future = _search_pool.submit(self.store.find_candidates, query)
        try:
            return future.result(timeout=timeout)
        except FutureTimeout:
            future.cancel()
            raise CandidateStoreUnavailable(
                f"candidate search exceeded {timeout}s"
            )

    def detect(self, snapshot: ReportSnapshot) -> DetectionResult:
        try:
            candidates = self.search(self.build_query(snapshot))
        except CandidateStoreUnavailable as e:
            logger.warning(f"Similarity detection degraded: {e}")
            return DetectionResult.unavailable(str(e))

        return self.classify(snapshot, candidates)

    def classify(self, snapshot: ReportSnapshot, candidates: List[CandidateReport]) -> DetectionResult:
        result = DetectionResult()
        corroborators: Dict[str, str] = {}
        window = timedelta(days=self.config.date_window_days)

        for candidate in candidates:
            if candidate.id == snapshot.report_id:
                continue
            if candidate.status == ReportStatus.INVALID:
                continue
            if candidate.city_id != snapshot.city_id:
                continue
            if abs(candidate.incident_date - snapshot.incident_date) > window:
                continue
            if snapshot.district_id and candidate.district_id and candidate.district_id != snapshot.district_id:
                continue

            similarity = narrative_similarity(snapshot.description, candidate.description)

            same_reporter = (
                snapshot.reporter_id is not None
                and candidate.reporter_id == snapshot.reporter_id
            )
            if same_reporter:
                if (
                    similarity >= self.config.duplicate_similarity
                    and result.duplicate_of_id is None
                    and self._is_earlier(candidate, snapshot)
                ):
                    result.duplicate_of_id = candidate.id
                continue

            result.location_has_history = True
            if similarity >= self.config.corroboration_similarity:
                key = candidate.reporter_id or f"report:{candidate.id}"
                corroborators.setdefault(key, candidate.id)

        # A duplicate adds nothing of its own; it keeps location history only
        if result.duplicate_of_id is not None:
            return result

        result.corroborating_ids = sorted(corroborators.values())
        result.corroborator_count = len(corroborators)
        return result

    @staticmethod
    def _is_earlier(candidate: CandidateReport, snapshot: ReportSnapshot) -> bool:
        if candidate.submitted_at != snapshot.submitted_at:
            return candidate.submitted_at < snapshot.submitted_at
        if snapshot.report_id is None:
            return True
        return candidate.id < snapshot.report_id
