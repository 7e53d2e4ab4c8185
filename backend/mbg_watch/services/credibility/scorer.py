"""
MBG Watch - Credibility Scorer

Runs the six factor evaluators over a ReportSnapshot and aggregates them.
The five in-memory factors never fail; the similarity factor may degrade
when the report store is unavailable, in which case the result is marked
provisional and carries the reason.
"""
import logging
from typing import List, Optional

from ...models.scoring import CredibilityThresholds, FactorScore, ReportSnapshot, ScoringResult
from .aggregator import DEFAULT_THRESHOLDS, CredibilityAggregator
from .duplicate_detector import DetectionResult, DuplicateDetector
from .factors import FactorEvaluator, SimilarityEvaluator, default_evaluators

logger = logging.getLogger(__name__)


class CredibilityScorer:
    def __init__(
        self,
        detector: DuplicateDetector,
        thresholds: CredibilityThresholds = DEFAULT_THRESHOLDS,
        evaluators: Optional[List[FactorEvaluator]] = None,
    ):
        self.evaluators = evaluators if evaluators is not None else default_evaluators()
        self.similarity = SimilarityEvaluator(detector)
        self.aggregator = CredibilityAggregator(thresholds)

    def score(self, snapshot: ReportSnapshot) -> ScoringResult:
        """Score a snapshot, including a fresh duplicate/corroboration search."""
        detection = self.similarity.detect(snapshot)
        return self.combine(snapshot, detection)

    def combine(self, snapshot: ReportSnapshot, detection: DetectionResult) -> ScoringResult:
        """Score a snapshot against an already computed detection result."""
        factors: List[FactorScore] = [e.evaluate(snapshot) for e in self.evaluators]
        factors.append(self.similarity.from_detection(detection))

        total, level = self.aggregator.aggregate(factors)

        result = ScoringResult(
            factors=factors,
            total_score=total,
            credibility_level=level,
            provisional=detection.degraded,
            degraded_reason=detection.degraded_reason,
            duplicate_of_id=detection.duplicate_of_id,
            corroborating_ids=list(detection.corroborating_ids),
        )
        logger.debug(
            f"Scored report {snapshot.report_id or '<draft>'}: "
            f"{total} ({level.value}){' provisional' if result.provisional else ''}"
        )
        return result
