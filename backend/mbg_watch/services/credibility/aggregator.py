"""
MBG Watch - Credibility Aggregator

Sums factor scores and maps the total onto a credibility level. Pure: the
same factor list and thresholds always give the same answer.
"""
from typing import List, Tuple

from ...errors import ScoreRangeError
from ...models.db_models import CredibilityLevel
from ...models.scoring import CredibilityThresholds, FactorScore
from . import thresholds as t

DEFAULT_THRESHOLDS = CredibilityThresholds(
    high_min=t.HIGH_MIN_SCORE,
    medium_min=t.MEDIUM_MIN_SCORE,
)


def aggregate(
    factors: List[FactorScore],
    thresholds: CredibilityThresholds = DEFAULT_THRESHOLDS,
) -> Tuple[int, CredibilityLevel]:
    """
    Total of all factor values and the level it falls in.

    Raises ScoreRangeError if any factor is outside [0, max]; an out-of-range
    factor is a defect in its evaluator and must not be silently clamped.
    """
    total = 0
    for factor in factors:
        if factor.value < 0 or factor.value > factor.max:
            raise ScoreRangeError(factor.name, factor.value, factor.max)
        total += factor.value
    return total, thresholds.classify(total)


class CredibilityAggregator:
    def __init__(self, thresholds: CredibilityThresholds = DEFAULT_THRESHOLDS):
        self.thresholds = thresholds

    def aggregate(self, factors: List[FactorScore]) -> Tuple[int, CredibilityLevel]:
        return aggregate(factors, self.thresholds)
