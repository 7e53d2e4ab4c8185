"""
Review Service

Main orchestration service for the verification engine.
Coordinates submission validation, credibility scoring, the verification
state machine and reporter profiles.

AUTHORITY MODEL:
- REPORTER: submit, attach_evidence (own reports only), list_mine
- ADMIN: query, get_scoring, get_history, update_status, bulk_update_status,
  rescore, get_thresholds, dashboard_stats
- SYSTEM: needs_evidence -> analyzing after evidence is resubmitted

Every operation receives the caller as an explicit Actor. Side effects are
confined to submit, update_status, bulk_update_status, attach_evidence and
rescore; everything else is a read.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Union
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ...errors import (
    AppError, AuthenticationError, AuthorizationError, ConflictError,
    NotFoundError, ValidationError,
)
from ...models.db_models import (
    CredibilityLevel, ReportCategory, ReportDB, ReporterRelation, ReportFileDB,
    ReportStatus, ReportStatusHistoryDB, utcnow,
)
from ...models.scoring import Actor, EvidenceFile, ReportSnapshot, ScoringResult
from ..credibility import thresholds as t
from ..credibility.duplicate_detector import DuplicateDetector, SqlCandidateStore
from ..credibility.scorer import CredibilityScorer
from .config_service import ScoringConfigService
from .locations import LocationDirectory
from .rate_limiter import SubmissionRateLimiter
from .reporter_profiles import ReporterProfileService
from .serializers import (
    FACTOR_META, apply_scores, paginate, serialize_history_entry,
    serialize_report, serialize_scoring,
)
from .state_machine import TERMINAL_STATUSES, ReportStateMachine, replay_status

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


# =============================================================================
# INPUTS
# =============================================================================

@dataclass
class EvidenceUpload:
    """Metadata of a file already placed in storage."""
    reference: str
    file_name: str
    content_type: str
    size_bytes: int


@dataclass
class ReportDraft:
    category: str
    title: str
    description: str
    location: str
    province_id: str
    city_id: str
    incident_date: datetime
    relation: str
    district_id: Optional[str] = None
    relation_detail: Optional[str] = None
    is_anonymous: bool = False
    files: List[EvidenceUpload] = field(default_factory=list)


@dataclass
class ReportFilters:
    category: Optional[str] = None
    status: Optional[str] = None
    credibility_level: Optional[str] = None
    province_id: Optional[str] = None
    city_id: Optional[str] = None
    district_id: Optional[str] = None
    start_date: Optional[Union[date, datetime]] = None
    end_date: Optional[Union[date, datetime]] = None  # a bare date covers the whole day
    search: Optional[str] = None


# =============================================================================
# HELPERS
# =============================================================================

def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def as_naive_datetime(value: Union[date, datetime]) -> datetime:
    if isinstance(value, datetime):
        return to_naive_utc(value)
    return datetime.combine(value, time.min)


def is_date_only(value: Union[date, datetime]) -> bool:
    """A date, or a naive datetime at midnight as a date-only query string parses."""
    if not isinstance(value, datetime):
        return True
    return value.tzinfo is None and value.time() == time.min


def parse_enum(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"Invalid {field_name} '{value}' (expected one of: {allowed})", field=field_name)


def new_public_id() -> str:
    return f"MBG-{uuid4().hex[:10].upper()}"


# =============================================================================
# REVIEW SERVICE
# =============================================================================

class ReviewService:
    """
    Service-facing API of the verification engine.

    Orchestrates:
    - Submission validation and rate limiting
    - Credibility scoring (including duplicate/corroboration detection)
    - Status transitions and the audit trail
    - Evidence resubmission and re-scoring
    """

    def __init__(self, db_session: Session, detector: Optional[DuplicateDetector] = None, clock=None):
        self.db = db_session
        self.clock = clock or utcnow
        self.state_machine = ReportStateMachine(db_session)
        self.profiles = ReporterProfileService(db_session)
        self.locations = LocationDirectory(db_session)
        self.rate_limiter = SubmissionRateLimiter(db_session)
        self.config = ScoringConfigService(db_session)
        if detector is None:
            detector = DuplicateDetector(SqlCandidateStore(sessionmaker(bind=db_session.get_bind())))
        self.scorer = CredibilityScorer(detector, thresholds=self.config.get_thresholds())

    # =========================================================================
    # ACCESS
    # =========================================================================

    @staticmethod
    def _require_user(actor: Optional[Actor]) -> Actor:
        if actor is None or not actor.is_authenticated:
            raise AuthenticationError()
        return actor

    def _require_admin(self, actor: Optional[Actor]) -> Actor:
        actor = self._require_user(actor)
        if not actor.is_admin:
            raise AuthorizationError("Administrator access required")
        return actor

    def _get_report(self, report_id: str) -> ReportDB:
        report = self.db.get(ReportDB, report_id)
        if report is None:
            raise NotFoundError("Report")
        return report

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    # =========================================================================
    # SCORING
    # =========================================================================

    def _snapshot(self, report: ReportDB) -> ReportSnapshot:
        """Scoring input for a stored report (its location was verified at submit)."""
        return ReportSnapshot(
            category=report.category,
            relation=report.relation,
            description=report.description,
            incident_date=report.incident_date,
            submitted_at=report.submitted_at,
            province_id=report.province_id,
            city_id=report.city_id,
            district_id=report.district_id,
            relation_detail=report.relation_detail,
            location_verified=True,
            files=tuple(
                EvidenceFile(f.reference, f.content_type, f.size_bytes, f.file_name)
                for f in report.files
            ),
            reporter_id=report.reporter_id,
            reporter_history=self.profiles.snapshot(report.reporter_id),
            report_id=report.id,
        )

    def _score_report(self, report: ReportDB) -> ScoringResult:
        result = self.scorer.score(self._snapshot(report))
        apply_scores(report, result)
        report.scored_at = self.clock()
        return result

    def _propagate_corroboration(self, report_ids: Sequence[str]) -> None:
        """
        Re-score earlier reports the new one corroborates, each in its own
        transaction. A failure here never undoes the submission.
        """
        for report_id in report_ids:
            report = self.db.get(ReportDB, report_id)
            if report is None or report.status in TERMINAL_STATUSES:
                continue
            try:
                before = report.score_similarity
                self._score_report(report)
                self.db.commit()
                logger.info(
                    f"Re-scored corroborated report {report_id}: similarity {before} -> {report.score_similarity}"
                )
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.warning(f"Could not re-score corroborated report {report_id}: {e}")

    # =========================================================================
    # SUBMISSION
    # =========================================================================

    def _validate_draft(self, draft: ReportDraft, now: datetime) -> Dict[str, Any]:
        category = parse_enum(ReportCategory, draft.category, "category")
        relation = parse_enum(ReporterRelation, draft.relation, "relation")

        title = (draft.title or "").strip()
        if not title:
            raise ValidationError("Title is required", field="title")
        if len(title) > t.TITLE_MAX_LENGTH:
            raise ValidationError(f"Title must be at most {t.TITLE_MAX_LENGTH} characters", field="title")

        description = (draft.description or "").strip()
        if len(description) < t.NARRATIVE_MIN_LENGTH:
            raise ValidationError(
                f"Description must be at least {t.NARRATIVE_MIN_LENGTH} characters",
                field="description",
            )

        location = (draft.location or "").strip()
        if not location:
            raise ValidationError("Specific location is required", field="location")

        if draft.incident_date is None:
            raise ValidationError("Incident date is required", field="incidentDate")
        incident_date = to_naive_utc(draft.incident_date)
        if incident_date > now:
            raise ValidationError("Incident date cannot be in the future", field="incidentDate")

        resolved = self.locations.resolve(draft.province_id, draft.city_id, draft.district_id)

        for upload in draft.files:
            if upload.size_bytes < 0:
                raise ValidationError("File size cannot be negative", field="files")

        return {
            "category": category,
            "relation": relation,
            "title": title,
            "description": description,
            "location": location,
            "incident_date": incident_date,
            "resolved": resolved,
        }

    def submit(self, draft: ReportDraft, actor: Actor) -> Dict[str, Any]:
        """
        Validate, score and persist a new report in status pending.

        Raises AuthenticationError, RateLimitError or ValidationError (with
        the offending field). Nothing is written unless every check passes.
        """
        actor = self._require_user(actor)
        now = self.clock()
        # The rate check holds a per-reporter lock until this transaction ends
        try:
            self.rate_limiter.check(actor.user_id, now)

            fields = self._validate_draft(draft, now)
            resolved = fields["resolved"]

            snapshot = ReportSnapshot(
                category=fields["category"],
                relation=fields["relation"],
                description=fields["description"],
                incident_date=fields["incident_date"],
                submitted_at=now,
                province_id=resolved.province_id,
                city_id=resolved.city_id,
                district_id=resolved.district_id,
                relation_detail=draft.relation_detail,
                location_verified=True,
                files=tuple(
                    EvidenceFile(u.reference, u.content_type, u.size_bytes, u.file_name)
                    for u in draft.files
                ),
                reporter_id=actor.user_id,
                reporter_history=self.profiles.snapshot(actor.user_id),
            )
            result = self.scorer.score(snapshot)

            report = ReportDB(
                id=str(uuid4()),
                public_id=new_public_id(),
                reporter_id=actor.user_id,
                category=fields["category"],
                title=fields["title"],
                description=fields["description"],
                location=fields["location"],
                province_id=resolved.province_id,
                city_id=resolved.city_id,
                district_id=resolved.district_id,
                incident_date=fields["incident_date"],
                submitted_at=now,
                relation=fields["relation"],
                relation_detail=draft.relation_detail,
                is_anonymous=draft.is_anonymous,
                status=ReportStatus.PENDING,
                version=1,
                scored_at=now,
            )
            apply_scores(report, result)
            for upload in draft.files:
                report.files.append(ReportFileDB(
                    id=str(uuid4()),
                    reference=upload.reference,
                    file_name=upload.file_name,
                    content_type=upload.content_type,
                    size_bytes=upload.size_bytes,
                ))
        except (AppError, SQLAlchemyError):
            self.db.rollback()
            raise

        try:
            self.db.add(report)
            self.db.flush()
            self.profiles.record_submission(actor.user_id)
            self.state_machine.record_submission(report)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(
            f"Report {report.id} submitted: total={report.total_score} "
            f"level={report.credibility_level.value}"
            f"{' provisional' if report.score_provisional else ''}"
        )

        self._propagate_corroboration(result.corroborating_ids)

        data = serialize_report(report)
        data["scoring"] = serialize_scoring(report)
        return data

    # =========================================================================
    # EVIDENCE RESUBMISSION
    # =========================================================================

    def attach_evidence(self, report_id: str, uploads: List[EvidenceUpload], actor: Actor) -> Dict[str, Any]:
        """
        Add evidence to one's own report and re-score it.

        A report waiting in needs_evidence moves back to analyzing (SYSTEM
        actor) in the same transaction.
        """
        actor = self._require_user(actor)
        report = self._get_report(report_id)
        if report.reporter_id != actor.user_id:
            raise AuthorizationError("Only the reporter can add evidence to this report")
        if report.status in TERMINAL_STATUSES:
            raise ConflictError("Report is closed", current_status=report.status.value)
        if not uploads:
            raise ValidationError("At least one file is required", field="files")
        if any(u.size_bytes < 0 for u in uploads):
            raise ValidationError("File size cannot be negative", field="files")

        status_changed = False
        try:
            for upload in uploads:
                report.files.append(ReportFileDB(
                    id=str(uuid4()),
                    reference=upload.reference,
                    file_name=upload.file_name,
                    content_type=upload.content_type,
                    size_bytes=upload.size_bytes,
                ))
            self._score_report(report)

            if report.status == ReportStatus.NEEDS_EVIDENCE:
                self.state_machine.system_transition(
                    report, ReportStatus.ANALYZING, trigger="evidence_resubmitted",
                )
                status_changed = True
            self.db.commit()
        except (AppError, SQLAlchemyError):
            self.db.rollback()
            raise

        logger.info(
            f"Evidence added to report {report_id}: {len(uploads)} file(s), "
            f"total={report.total_score}{', back to analyzing' if status_changed else ''}"
        )
        data = serialize_report(report)
        data["scoring"] = serialize_scoring(report)
        data["statusChanged"] = status_changed
        return data

    # =========================================================================
    # STATUS TRANSITIONS
    # =========================================================================

    def update_status(
        self,
        report_id: str,
        target: str,
        notes: Optional[str],
        actor: Actor,
    ) -> Dict[str, Any]:
        """Single transition. Returns the new history entry."""
        self._require_admin(actor)
        to_status = parse_enum(ReportStatus, target, "status")
        report = self._get_report(report_id)

        try:
            entry = self.state_machine.transition(report, to_status, actor, notes=notes)
            self.db.commit()
        except (AppError, SQLAlchemyError):
            self.db.rollback()
            raise
        return serialize_history_entry(entry)

    def bulk_update_status(
        self,
        report_ids: List[str],
        target: str,
        notes: Optional[str],
        actor: Actor,
    ) -> Dict[str, Any]:
        """
        Apply one transition to many reports independently.

        Each ID commits or fails on its own; the summary lists a per-ID outcome.
        """
        self._require_admin(actor)
        to_status = parse_enum(ReportStatus, target, "status")
        if not report_ids:
            raise ValidationError("At least one report ID is required", field="reportIds")

        results = []
        for report_id in dict.fromkeys(report_ids):
            try:
                report = self._get_report(report_id)
                self.state_machine.transition(report, to_status, actor, notes=notes, trigger="admin_bulk_review")
                self.db.commit()
                results.append({"id": report_id, "success": True})
            except AppError as e:
                self.db.rollback()
                outcome = {"id": report_id, "success": False, "error": e.message, "code": e.code}
                if isinstance(e, ConflictError) and e.current_status is not None:
                    outcome["currentStatus"] = e.current_status
                results.append(outcome)
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Bulk status update failed for report {report_id}: {e}")
                results.append({"id": report_id, "success": False, "error": "Internal error", "code": "INTERNAL_ERROR"})

        updated = sum(1 for r in results if r["success"])
        logger.info(
            f"Bulk status -> {to_status.value}: {updated} updated, {len(results) - updated} failed"
        )
        return {"updated": updated, "failed": len(results) - updated, "results": results}

    def get_history(self, report_id: str, actor: Actor) -> Dict[str, Any]:
        self._require_admin(actor)
        report = self._get_report(report_id)
        entries = self.db.query(ReportStatusHistoryDB).filter(
            ReportStatusHistoryDB.report_id == report_id
        ).order_by(ReportStatusHistoryDB.sequence.asc()).all()
        replayed = replay_status(entries)
        return {
            "reportId": report.id,
            "currentStatus": report.status.value,
            "replayedStatus": replayed.value if replayed else None,
            "entries": [serialize_history_entry(e) for e in entries],
        }

    # =========================================================================
    # SCORING (ADMIN)
    # =========================================================================

    def get_scoring(self, report_id: str, actor: Actor) -> Dict[str, Any]:
        self._require_admin(actor)
        return serialize_scoring(self._get_report(report_id))

    def rescore(self, report_id: str, actor: Actor) -> Dict[str, Any]:
        """Recompute every factor from a fresh snapshot."""
        self._require_admin(actor)
        report = self._get_report(report_id)
        try:
            self._score_report(report)
            self.db.commit()
        except (AppError, SQLAlchemyError):
            self.db.rollback()
            raise
        logger.info(f"Report {report_id} re-scored by {actor.user_id}: total={report.total_score}")
        return serialize_scoring(report)

    def get_thresholds(self, actor: Actor) -> Dict[str, Any]:
        self._require_admin(actor)
        thresholds = self.config.get_thresholds()
        return {
            "levels": thresholds.to_dict(),
            "factors": {name: {"max": m, "label": label} for name, (m, label) in FACTOR_META.items()},
            "maxScore": sum(m for m, _ in FACTOR_META.values()),
        }

    # =========================================================================
    # QUERIES
    # =========================================================================

    @staticmethod
    def _check_page(page: int, limit: int) -> None:
        if page < 1:
            raise ValidationError("Page must be at least 1", field="page")
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"Limit must be between 1 and {MAX_PAGE_SIZE}", field="limit")

    def query(self, filters: ReportFilters, page: int, limit: int, actor: Actor) -> Dict[str, Any]:
        """Filtered, paginated report list for administrators (newest first)."""
        self._require_admin(actor)
        self._check_page(page, limit)

        q = self.db.query(ReportDB)
        if filters.category:
            q = q.filter(ReportDB.category == parse_enum(ReportCategory, filters.category, "category"))
        if filters.status:
            q = q.filter(ReportDB.status == parse_enum(ReportStatus, filters.status, "status"))
        if filters.credibility_level:
            q = q.filter(ReportDB.credibility_level == parse_enum(
                CredibilityLevel, filters.credibility_level, "credibilityLevel"
            ))
        if filters.province_id:
            q = q.filter(ReportDB.province_id == filters.province_id)
        if filters.city_id:
            q = q.filter(ReportDB.city_id == filters.city_id)
        if filters.district_id:
            q = q.filter(ReportDB.district_id == filters.district_id)
        if filters.start_date:
            q = q.filter(ReportDB.incident_date >= as_naive_datetime(filters.start_date))
        if filters.end_date:
            end = as_naive_datetime(filters.end_date)
            if is_date_only(filters.end_date):
                q = q.filter(ReportDB.incident_date < end + timedelta(days=1))
            else:
                q = q.filter(ReportDB.incident_date <= end)
        if filters.search:
            q = q.filter(ReportDB.title.ilike(f"%{filters.search}%"))

        total = q.count()
        rows = q.order_by(ReportDB.submitted_at.desc(), ReportDB.id.asc()).offset((page - 1) * limit).limit(limit).all()
        return paginate([serialize_report(r) for r in rows], page, limit, total)

    def list_mine(self, actor: Actor, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        actor = self._require_user(actor)
        self._check_page(page, limit)
        q = self.db.query(ReportDB).filter(ReportDB.reporter_id == actor.user_id)
        total = q.count()
        rows = q.order_by(ReportDB.submitted_at.desc(), ReportDB.id.asc()).offset((page - 1) * limit).limit(limit).all()
        return paginate([serialize_report(r, include_reporter=False) for r in rows], page, limit, total)

    def dashboard_stats(self, actor: Actor) -> Dict[str, Any]:
        self._require_admin(actor)

        def counts(column, enum_cls) -> Dict[str, int]:
            found = dict(self.db.query(column, func.count(ReportDB.id)).group_by(column).all())
            return {m.value: int(found.get(m, 0)) for m in enum_cls}

        by_status = counts(ReportDB.status, ReportStatus)
        return {
            "total": sum(by_status.values()),
            "pending": by_status[ReportStatus.PENDING.value],
            "uniqueCities": self.db.query(func.count(func.distinct(ReportDB.city_id))).scalar() or 0,
            "byStatus": by_status,
            "byCategory": counts(ReportDB.category, ReportCategory),
            "byCredibility": counts(ReportDB.credibility_level, CredibilityLevel),
        }
