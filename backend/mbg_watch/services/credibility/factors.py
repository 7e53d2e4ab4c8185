"""
MBG Watch - Factor Evaluators

Six independent scoring signals for a submitted report. Each rule is a pure
function of a ReportSnapshot returning an integer in [0, max]; the
FactorEvaluator wrappers attach the factor name, maximum and display label.

Deterministic by construction: no rule reads the wall clock. "Now" is
always the snapshot's own submitted_at.
"""
from __future__ import annotations
import math
import re
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Tuple

from dateutil import parser as date_parser

from ...models.db_models import ReportCategory, ReporterRelation
from ...models.scoring import FactorScore, ReportSnapshot
from . import thresholds as t


# =============================================================================
# RELATION
# =============================================================================

# Categories each first-hand role can plausibly witness directly
RELATION_VANTAGE: Dict[ReporterRelation, Tuple[ReportCategory, ...]] = {
    ReporterRelation.STUDENT: (
        ReportCategory.POISONING, ReportCategory.QUALITY,
        ReportCategory.IMPLEMENTATION, ReportCategory.SOCIAL,
    ),
    ReporterRelation.PARENT: (
        ReportCategory.POISONING, ReportCategory.QUALITY,
        ReportCategory.IMPLEMENTATION, ReportCategory.SOCIAL,
    ),
    ReporterRelation.TEACHER: (
        ReportCategory.POISONING, ReportCategory.QUALITY,
        ReportCategory.IMPLEMENTATION, ReportCategory.SOCIAL, ReportCategory.POLICY,
    ),
    ReporterRelation.PRINCIPAL: tuple(ReportCategory),
    ReporterRelation.SUPPLIER: (
        ReportCategory.KITCHEN, ReportCategory.QUALITY, ReportCategory.POISONING,
        ReportCategory.IMPLEMENTATION, ReportCategory.POLICY,
    ),
}


def score_relation(snapshot: ReportSnapshot) -> int:
    """
    Reward relations that grant first-hand access to the claimed incident.

    first-hand role covering the category > first-hand role off category
    = community > other with detail > other without detail.
    """
    relation = snapshot.relation

    if relation.value in t.FIRST_HAND_RELATIONS:
        if snapshot.category in RELATION_VANTAGE.get(relation, ()):
            return t.MAX_RELATION
        return t.OFF_CATEGORY_FIRST_HAND_SCORE

    if relation == ReporterRelation.COMMUNITY:
        return t.COMMUNITY_RELATION_SCORE

    if relation == ReporterRelation.OTHER and (snapshot.relation_detail or "").strip():
        return t.OTHER_WITH_DETAIL_SCORE

    return 0


# =============================================================================
# LOCATION / TIME
# =============================================================================

# Daily program windows in local hours: (start, end, crosses_midnight)
PROGRAM_WINDOWS: Dict[str, Tuple[int, int, bool]] = {
    "prepare": (20, 3, True),
    "cooking": (23, 8, True),
    "packing": (3, 10, False),
    "delivery": (6, 9, False),
    "consumption": (7, 12, False),
    "container_pickup": (12, 13, False),
    "washing": (12, 20, False),
}

# Windows each relation can witness, most direct first
RELATION_WINDOWS: Dict[ReporterRelation, Tuple[str, ...]] = {
    ReporterRelation.SUPPLIER: ("prepare", "cooking", "packing", "delivery"),
    ReporterRelation.STUDENT: ("consumption", "delivery"),
    ReporterRelation.PARENT: ("delivery", "consumption", "container_pickup"),
    ReporterRelation.TEACHER: ("delivery", "consumption", "container_pickup"),
    ReporterRelation.PRINCIPAL: ("delivery", "consumption", "container_pickup"),
    ReporterRelation.COMMUNITY: ("delivery", "consumption", "container_pickup", "washing"),
    ReporterRelation.OTHER: tuple(PROGRAM_WINDOWS),
}


def _in_window(hour: int, window: Tuple[int, int, bool]) -> bool:
    start, end, crosses_midnight = window
    if crosses_midnight:
        return hour >= start or hour < end
    return start <= hour < end


def window_relevance(hour: int, relation: ReporterRelation) -> float:
    """
    How well a local hour matches the windows a relation can witness.

    1.0 for the relation's primary window, 0.7 for a secondary one, 0.3 when
    the hour is inside some program window the relation does not witness,
    0.0 outside every program window.
    """
    relevant = RELATION_WINDOWS.get(relation, ())
    best = 0.0
    for position, name in enumerate(relevant):
        if _in_window(hour, PROGRAM_WINDOWS[name]):
            best = max(best, 1.0 if position == 0 else 0.7)

    if best == 0.0 and any(_in_window(hour, w) for w in PROGRAM_WINDOWS.values()):
        best = 0.3
    return best


def _local(dt: datetime) -> datetime:
    return dt + timedelta(hours=t.PROGRAM_UTC_OFFSET_HOURS)


def score_location_time(snapshot: ReportSnapshot) -> int:
    """
    Reward a specific, consistent location and a plausible incident time.

    Location: full hierarchy earns more than province+city; a hierarchy the
    location directory could not verify earns nothing. Time: future or
    implausibly old incidents score 0; stale ones keep only the location
    part; otherwise the local hour is matched against program windows.
    """
    age = snapshot.submitted_at - snapshot.incident_date
    if age < timedelta(0) or age > timedelta(days=t.INCIDENT_MAX_AGE_DAYS):
        return 0

    points = 0.0
    if snapshot.location_verified and snapshot.province_id and snapshot.city_id:
        points += t.LOCATION_FULL_POINTS if snapshot.district_id else t.LOCATION_CITY_POINTS

    if age > timedelta(days=t.INCIDENT_STALE_AGE_DAYS):
        return min(1, math.ceil(points))

    local = _local(snapshot.incident_date)
    # Program runs Monday-Saturday
    if local.weekday() == 6:
        return min(1, math.ceil(points))

    relevance = window_relevance(local.hour, snapshot.relation)
    if relevance > 0:
        points += t.TIME_WINDOW_POINTS * relevance
    elif 6 <= local.hour <= 14:
        points += t.TIME_GENERAL_HOURS_POINTS

    return min(t.MAX_LOCATION_TIME, math.ceil(points))


# =============================================================================
# EVIDENCE
# =============================================================================

def score_evidence(snapshot: ReportSnapshot) -> int:
    """
    Reward number and diversity of evidence files.

    Zero usable files caps the factor at NO_EVIDENCE_CEILING no matter how
    detailed the narrative is.
    """
    usable = [f for f in snapshot.files if f.usable]
    detailed = len(snapshot.description.strip()) >= t.DETAILED_NARRATIVE_LENGTH

    if not usable:
        return min(t.NO_EVIDENCE_CEILING, 1 if detailed else 0)

    kinds = {f.kind for f in usable}
    complete = len(usable) >= t.EVIDENCE_COMPLETE_COUNT and len(kinds) >= t.EVIDENCE_COMPLETE_KINDS

    score = 1
    if len(usable) >= 2 or detailed:
        score += 1
    if complete or (len(usable) >= 2 and detailed):
        score += 1
    return min(t.MAX_EVIDENCE, score)


# =============================================================================
# NARRATIVE
# =============================================================================

FACTUAL_PATTERNS = [
    re.compile(r"\d{1,2}[:.\-/]\d{1,2}"),  # time or date
    re.compile(r"\b(tanggal|hari|jam|pukul|pagi|siang|date|morning|noon|o'clock)\b"),
    re.compile(r"\b(nama|lokasi|tempat|sekolah|kelas|dapur|school|class|kitchen|canteen)\b"),
    re.compile(r"\b(siswa|murid|anak|guru|kepala|student|pupil|child|children|teacher|principal)\b"),
    re.compile(r"\b(makanan|menu|nasi|lauk|sayur|susu|food|meal|rice|milk|vegetable)\b"),
]

OPINION_PATTERNS = [
    re.compile(r"\b(sangat buruk|parah sekali|tidak becus|terrible|disgusting|useless)\b"),
    re.compile(r"\b(korupsi|curiga|mencurigakan|corrupt|corruption|suspicious)\b"),
    re.compile(r"\b(pasti|yakin|jelas sekali|definitely|obviously)\b"),
    re.compile(r"!!!|\?\?\?"),
]

DATE_MENTION_PATTERN = re.compile(
    r"\b(\d{4}-\d{1,2}-\d{1,2}|\d{1,2}[/\-]\d{1,2}[/\-]\d{4})\b"
)


def mentioned_dates(text: str) -> List[datetime]:
    """Explicit calendar dates written in a narrative (day-first)."""
    found = []
    for token in DATE_MENTION_PATTERN.findall(text):
        try:
            found.append(date_parser.parse(token, dayfirst=not token[:4].isdigit()))
        except (ValueError, OverflowError):
            continue
    return found


def has_date_contradiction(snapshot: ReportSnapshot) -> bool:
    """
    True when the narrative names explicit dates and none of them is within
    a day of the declared incident date.
    """
    dates = mentioned_dates(snapshot.description)
    if not dates:
        return False
    incident_day = _local(snapshot.incident_date).date()
    return all(abs((d.date() - incident_day).days) > 1 for d in dates)


def score_narrative(snapshot: ReportSnapshot) -> int:
    """
    Reward specific, factual narratives; penalize opinion and contradictions.
    """
    text = snapshot.description.lower()
    factual = sum(1 for p in FACTUAL_PATTERNS if p.search(text))
    penalty = sum(1 for p in OPINION_PATTERNS if p.search(text))
    contradiction = has_date_contradiction(snapshot)

    if factual >= 3 and penalty == 0:
        score = 3
    elif factual >= 2 and penalty <= 1:
        score = 2
    elif factual >= 1:
        score = 1
    else:
        score = 0

    if len(snapshot.description.strip()) < t.NARRATIVE_SCORING_MIN_LENGTH:
        score = min(score, t.NARRATIVE_SHORT_CAP)
    if contradiction:
        score = min(score, 1)
    return min(t.MAX_NARRATIVE, score)


# =============================================================================
# REPORTER HISTORY
# =============================================================================

def score_reporter_history(snapshot: ReportSnapshot) -> int:
    """
    Reward a good verified:rejected record. Reporters with no decided
    reports get the neutral value rather than a penalty.
    """
    history = snapshot.reporter_history
    decided = history.decided_count
    if decided == 0:
        return t.REPORTER_HISTORY_NEUTRAL

    ratio = history.verified_count / decided
    if ratio >= t.REPORTER_TRUSTED_RATIO and decided >= t.REPORTER_TRUSTED_MIN_DECIDED:
        return 3
    if ratio >= t.REPORTER_FAIR_RATIO:
        return 2
    if decided <= 2:
        return 1
    return 0


# =============================================================================
# SIMILARITY
# =============================================================================

def score_similarity(
    corroborator_count: int,
    location_has_history: bool,
    degraded: bool = False,
) -> int:
    """
    Corroboration from independent reporters, with diminishing returns.

    n corroborators score 1 + ceil(log2(n + 1)), capped at the maximum, so
    one corroborator gives 2 and flooding cannot push past 3.
    """
    if degraded:
        return t.SIMILARITY_DEGRADED_SCORE
    if corroborator_count > 0:
        return min(t.MAX_SIMILARITY, 1 + math.ceil(math.log2(corroborator_count + 1)))
    if location_has_history:
        return t.LOCATION_HISTORY_SCORE
    return 0


# =============================================================================
# EVALUATORS
# =============================================================================

class FactorEvaluator:
    """Binds a scoring rule to its factor name, maximum and label."""

    def __init__(self, name: str, max_score: int, label: str, rule: Callable[[ReportSnapshot], int]):
        self.name = name
        self.max_score = max_score
        self.label = label
        self._rule = rule

    def evaluate(self, snapshot: ReportSnapshot) -> FactorScore:
        return FactorScore(
            name=self.name,
            value=self._rule(snapshot),
            max=self.max_score,
            label=self.label,
        )


class SimilarityEvaluator(FactorEvaluator):
    """
    Delegates to the duplicate/corroboration detector.

    Exposes detect() separately so the scorer can keep the detection result
    (duplicate link, degradation) alongside the factor score.
    """

    def __init__(self, detector):
        super().__init__("similarity", t.MAX_SIMILARITY, "Report similarity", self._score)
        self.detector = detector

    def detect(self, snapshot: ReportSnapshot):
        return self.detector.detect(snapshot)

    def from_detection(self, detection) -> FactorScore:
        return FactorScore(
            name=self.name,
            value=score_similarity(
                detection.corroborator_count,
                detection.location_has_history,
                detection.degraded,
            ),
            max=self.max_score,
            label=self.label,
        )

    def _score(self, snapshot: ReportSnapshot) -> int:
        return self.from_detection(self.detect(snapshot)).value


def default_evaluators() -> List[FactorEvaluator]:
    """The five in-memory evaluators, in breakdown order."""
    return [
        FactorEvaluator("relation", t.MAX_RELATION, "Reporter relation", score_relation),
        FactorEvaluator("locationTime", t.MAX_LOCATION_TIME, "Location & time", score_location_time),
        FactorEvaluator("evidence", t.MAX_EVIDENCE, "Evidence", score_evidence),
        FactorEvaluator("narrative", t.MAX_NARRATIVE, "Narrative", score_narrative),
        FactorEvaluator("reporterHistory", t.MAX_REPORTER_HISTORY, "Reporter history", score_reporter_history),
    ]


FACTOR_NAMES = ("relation", "locationTime", "evidence", "narrative", "reporterHistory", "similarity")
