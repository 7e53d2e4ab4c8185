"""
MBG Watch - Credibility Scoring

Six-factor credibility model:

    relation + locationTime + evidence + narrative + reporterHistory + similarity
        -> total (0-18) -> high / medium / low
"""
from .aggregator import DEFAULT_THRESHOLDS, CredibilityAggregator, aggregate
from .duplicate_detector import (
    CandidateQuery, CandidateReport, CandidateStoreUnavailable,
    DetectionResult, DetectorConfig, DuplicateDetector, SqlCandidateStore,
)
from .factors import (
    FACTOR_NAMES, FactorEvaluator, SimilarityEvaluator, default_evaluators,
    score_evidence, score_location_time, score_narrative, score_relation,
    score_reporter_history, score_similarity,
)
from .scorer import CredibilityScorer
from .similarity import narrative_similarity

__all__ = [
    "DEFAULT_THRESHOLDS", "CredibilityAggregator", "aggregate",
    "CandidateQuery", "CandidateReport", "CandidateStoreUnavailable",
    "DetectionResult", "DetectorConfig", "DuplicateDetector", "SqlCandidateStore",
    "FACTOR_NAMES", "FactorEvaluator", "SimilarityEvaluator", "default_evaluators",
    "score_evidence", "score_location_time", "score_narrative", "score_relation",
    "score_reporter_history", "score_similarity",
    "CredibilityScorer", "narrative_similarity",
]
