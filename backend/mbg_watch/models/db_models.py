"""
MBG Watch - SQLAlchemy ORM Models
PostgreSQL database models for persistent storage
"""
from datetime import datetime, timezone
from enum import Enum
from sqlalchemy import (
    Column, String, Integer, DateTime, Text, JSON, ForeignKey, Boolean,
    Enum as SQLEnum, Index,
)
from sqlalchemy.orm import relationship
from ..database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _enum_column(enum_cls, name: str) -> SQLEnum:
    """Persist enum values (the wire strings) rather than member names."""
    return SQLEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
    )


# =============================================================================
# ENUMS
# =============================================================================

class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"


class ReportCategory(str, Enum):
    """The six report categories offered on the submission form."""
    POISONING = "poisoning"
    KITCHEN = "kitchen"
    QUALITY = "quality"
    POLICY = "policy"
    IMPLEMENTATION = "implementation"
    SOCIAL = "social"


class ReportStatus(str, Enum):
    """States in the verification workflow."""
    PENDING = "pending"
    ANALYZING = "analyzing"
    NEEDS_EVIDENCE = "needs_evidence"
    INVALID = "invalid"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


class CredibilityLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ReporterRelation(str, Enum):
    """Declared relation of the reporter to the meal program."""
    PARENT = "parent"
    TEACHER = "teacher"
    PRINCIPAL = "principal"
    SUPPLIER = "supplier"
    STUDENT = "student"
    COMMUNITY = "community"
    OTHER = "other"


class ActorType(str, Enum):
    """Who drove a status transition."""
    ADMIN = "ADMIN"
    REPORTER = "REPORTER"
    SYSTEM = "SYSTEM"


# =============================================================================
# IDENTITY
# =============================================================================

class UserDB(Base):
    """Account used by both reporters and administrators."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)  # UUID
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.USER.value)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    reports = relationship("ReportDB", back_populates="reporter", foreign_keys="ReportDB.reporter_id")
    profile = relationship("ReporterProfileDB", back_populates="reporter", uselist=False)


class ReporterProfileDB(Base):
    """
    Aggregate verdict counts for a reporter.

    Read-only input to the reporter-history factor. Counters are only ever
    changed with SQL-side increments (see ReporterProfileService).
    """
    __tablename__ = "reporter_profiles"

    reporter_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    report_count = Column(Integer, nullable=False, default=0)
    verified_count = Column(Integer, nullable=False, default=0)  # reached resolved
    rejected_count = Column(Integer, nullable=False, default=0)  # reached invalid
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    reporter = relationship("UserDB", back_populates="profile")


# =============================================================================
# LOCATION REFERENCE
# =============================================================================

class ProvinceDB(Base):
    __tablename__ = "provinces"

    id = Column(String(2), primary_key=True)
    name = Column(String(100), nullable=False)

    cities = relationship("CityDB", back_populates="province")


class CityDB(Base):
    __tablename__ = "cities"

    id = Column(String(5), primary_key=True)
    province_id = Column(String(2), ForeignKey("provinces.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)

    province = relationship("ProvinceDB", back_populates="cities")
    districts = relationship("DistrictDB", back_populates="city")


class DistrictDB(Base):
    __tablename__ = "districts"

    id = Column(String(8), primary_key=True)
    city_id = Column(String(5), ForeignKey("cities.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)

    city = relationship("CityDB", back_populates="districts")


# =============================================================================
# REPORTS
# =============================================================================

class ReportDB(Base):
    """
    A submitted case.

    Status only changes through ReportStateMachine; scores only change
    through the credibility scorer. total_score always equals the sum of the
    six score_* columns.
    """
    __tablename__ = "reports"

    id = Column(String(36), primary_key=True)  # UUID
    public_id = Column(String(20), unique=True, nullable=False, index=True)
    reporter_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    category = Column(_enum_column(ReportCategory, "report_category"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)

    # Location hierarchy plus free-text specific location (school, kitchen...)
    location = Column(String(255), nullable=False)
    province_id = Column(String(2), ForeignKey("provinces.id"), nullable=False)
    city_id = Column(String(5), ForeignKey("cities.id"), nullable=False)
    district_id = Column(String(8), ForeignKey("districts.id"), nullable=True)

    incident_date = Column(DateTime, nullable=False)
    submitted_at = Column(DateTime, nullable=False, default=utcnow)

    relation = Column(_enum_column(ReporterRelation, "reporter_relation"), nullable=False)
    relation_detail = Column(String(255), nullable=True)
    is_anonymous = Column(Boolean, nullable=False, default=False)

    # Workflow
    status = Column(_enum_column(ReportStatus, "report_status"), nullable=False, default=ReportStatus.PENDING)
    version = Column(Integer, nullable=False, default=1)
    admin_notes = Column(Text, nullable=True)
    verified_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    verified_at = Column(DateTime, nullable=True)

    # Scoring
    score_relation = Column(Integer, nullable=False, default=0)
    score_location_time = Column(Integer, nullable=False, default=0)
    score_evidence = Column(Integer, nullable=False, default=0)
    score_narrative = Column(Integer, nullable=False, default=0)
    score_reporter_history = Column(Integer, nullable=False, default=0)
    score_similarity = Column(Integer, nullable=False, default=0)
    total_score = Column(Integer, nullable=False, default=0)
    credibility_level = Column(_enum_column(CredibilityLevel, "credibility_level"), nullable=False, default=CredibilityLevel.LOW)
    score_provisional = Column(Boolean, nullable=False, default=False)
    scoring_notes = Column(JSON, nullable=True)  # degradation record, corroborator ids
    scored_at = Column(DateTime, nullable=True)

    # Duplicate flag for human review (same reporter, near-identical narrative)
    is_potential_duplicate = Column(Boolean, nullable=False, default=False)
    duplicate_of_id = Column(String(36), ForeignKey("reports.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    reporter = relationship("UserDB", back_populates="reports", foreign_keys=[reporter_id])
    files = relationship("ReportFileDB", back_populates="report", cascade="all, delete-orphan")
    status_history = relationship(
        "ReportStatusHistoryDB",
        back_populates="report",
        order_by="ReportStatusHistoryDB.sequence",
    )

    __table_args__ = (
        Index("reports_match_idx", "category", "city_id", "incident_date"),
        Index("reports_status_idx", "status"),
        Index("reports_reporter_submitted_idx", "reporter_id", "submitted_at"),
    )


class ReportFileDB(Base):
    """Evidence file metadata. File bytes live with the storage collaborator."""
    __tablename__ = "report_files"

    id = Column(String(36), primary_key=True)  # UUID
    report_id = Column(String(36), ForeignKey("reports.id", ondelete="CASCADE"), nullable=False, index=True)
    reference = Column(String(500), nullable=False)  # stable storage reference
    file_name = Column(String(255), nullable=False)
    content_type = Column(String(100), nullable=False)
    size_bytes = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)

    report = relationship("ReportDB", back_populates="files")


class ReportStatusHistoryDB(Base):
    """
    Immutable log of status transitions.
    Append-only - replaying every entry in sequence order yields the
    report's current status.
    """
    __tablename__ = "report_status_history"

    id = Column(String(36), primary_key=True)  # UUID
    report_id = Column(String(36), ForeignKey("reports.id", ondelete="RESTRICT"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)  # 1-based position in the trail

    from_status = Column(_enum_column(ReportStatus, "report_status"), nullable=True)  # NULL for initial entry
    to_status = Column(_enum_column(ReportStatus, "report_status"), nullable=False)
    notes = Column(Text, nullable=True)

    actor = Column(_enum_column(ActorType, "actor_type"), nullable=False)
    changed_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    trigger = Column(String(100), nullable=False)

    # Timestamps (immutable)
    created_at = Column(DateTime, default=utcnow)

    report = relationship("ReportDB", back_populates="status_history")

    __table_args__ = (
        Index("report_history_sequence_idx", "report_id", "sequence", unique=True),
    )


# =============================================================================
# CONFIGURATION
# =============================================================================

class ScoringConfigDB(Base):
    """Persisted scoring configuration (credibility cut points)."""
    __tablename__ = "scoring_config"

    key = Column(String(100), primary_key=True)
    value = Column(JSON, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
