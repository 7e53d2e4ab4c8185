"""
MBG Watch - Scoring Pipeline Models

Immutable value objects passed between the scoring stages:

    ReportSnapshot -> factor evaluators -> FactorScore[] -> Aggregator -> ScoringResult

Evaluators read only from a ReportSnapshot, never from ORM rows or the wall
clock, so re-scoring the same snapshot always yields the same scores.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from .db_models import CredibilityLevel, ReportCategory, ReporterRelation, UserRole


# =============================================================================
# INPUT SNAPSHOT
# =============================================================================

@dataclass(frozen=True)
class EvidenceFile:
    """Metadata of one uploaded evidence file (bytes are never read)."""
    reference: str
    content_type: str
    size_bytes: int
    file_name: str = ""

    @property
    def kind(self) -> str:
        major = (self.content_type or "").split("/", 1)[0].lower()
        if major in ("image", "video", "audio"):
            return major
        if self.content_type in DOCUMENT_CONTENT_TYPES or major == "text":
            return "document"
        return "other"

    @property
    def usable(self) -> bool:
        return self.size_bytes > 0


DOCUMENT_CONTENT_TYPES = frozenset({
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
})


@dataclass(frozen=True)
class ReporterHistory:
    """Snapshot of a ReporterProfile at scoring time."""
    report_count: int = 0
    verified_count: int = 0
    rejected_count: int = 0

    @property
    def decided_count(self) -> int:
        return self.verified_count + self.rejected_count


@dataclass(frozen=True)
class ReportSnapshot:
    """Everything the six evaluators may look at."""
    category: ReportCategory
    relation: ReporterRelation
    description: str
    incident_date: datetime
    submitted_at: datetime
    province_id: str
    city_id: str
    district_id: Optional[str] = None
    relation_detail: Optional[str] = None
    location_verified: bool = True  # hierarchy resolved by the location directory
    files: Tuple[EvidenceFile, ...] = ()
    reporter_id: Optional[str] = None
    reporter_history: ReporterHistory = field(default_factory=ReporterHistory)
    report_id: Optional[str] = None  # None while the report is still a draft


# =============================================================================
# SCORING OUTPUT
# =============================================================================

@dataclass(frozen=True)
class FactorScore:
    """One named factor value with its fixed maximum."""
    name: str
    value: int
    max: int
    label: str = ""


@dataclass(frozen=True)
class CredibilityThresholds:
    """Inclusive lower bounds for the high and medium credibility levels."""
    high_min: int
    medium_min: int

    def classify(self, total: int) -> CredibilityLevel:
        if total >= self.high_min:
            return CredibilityLevel.HIGH
        if total >= self.medium_min:
            return CredibilityLevel.MEDIUM
        return CredibilityLevel.LOW

    def to_dict(self) -> Dict[str, object]:
        return {
            "high": {"min": self.high_min},
            "medium": {"min": self.medium_min, "max": self.high_min - 1},
            "low": {"max": self.medium_min - 1},
        }


@dataclass
class ScoringResult:
    """Aggregated factor scores plus detector side-outputs."""
    factors: List[FactorScore]
    total_score: int
    credibility_level: CredibilityLevel
    provisional: bool = False
    degraded_reason: Optional[str] = None
    duplicate_of_id: Optional[str] = None
    corroborating_ids: List[str] = field(default_factory=list)

    def factor(self, name: str) -> FactorScore:
        for item in self.factors:
            if item.name == name:
                return item
        raise KeyError(name)


# =============================================================================
# REQUEST CONTEXT
# =============================================================================

@dataclass(frozen=True)
class Actor:
    """Caller identity passed explicitly into every review operation."""
    user_id: Optional[str]
    role: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None
