"""
Score Normalization Module
==========================
Brings judge-model scores onto the canonical 0-10 scale.

The judge sometimes answers on 0-100 or 0-1 scales. The scale is inferred
from the largest score present:
- max > 10        -> factor 0.1 (0-100 scale)
- 0 < max <= 1.2  -> factor 10  (fractional scale)
- otherwise       -> factor 1   (already 0-10)

Only the typed score fields are touched: every sub-metric score, the four
category scores and the overall score. Eye-contact percentage is normalized
separately onto 0-100.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from ..models import SpeechAnalysis, CATEGORY_WEIGHTS

logger = logging.getLogger(__name__)


# =============================================================================
# NUMERIC HELPERS
# =============================================================================

def round_half_up(value: float, places: int = 1) -> float:
    """Round with halves away from zero (0.25 -> 0.3), unlike round()."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round1(value: float) -> float:
    return round_half_up(value, 1)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def average(values: Iterable[Optional[float]]) -> float:
    """Mean of the present values; 0.0 when none are present."""
    present = [v for v in values if v is not None]
    if not present:
        return 0.0
    return sum(present) / len(present)


def detect_scale_factor(max_score: float) -> float:
    if max_score > 10:
        return 0.1
    if 0 < max_score <= 1.2:
        return 10.0
    return 1.0


# =============================================================================
# NORMALIZER
# =============================================================================

@dataclass
class ScaleReport:
    """What the normalizer inferred for one analysis."""
    max_score: float
    factor: float
    collected: int

    @property
    def rescaled(self) -> bool:
        return self.factor != 1.0


def apply_category_weights(analysis: SpeechAnalysis) -> None:
    """
    Overwrite category weights with the fixed rubric weights, recompute each
    weighted contribution and set the overall score to their sum.

    Weighted contributions keep two decimals so that, e.g., 8.2 x 0.4 stays 3.28.
    """
    total = 0.0
    for category, category_score in analysis.category_scores.items():
        score = category_score.score or 0.0
        category_score.weight = CATEGORY_WEIGHTS[category]
        category_score.weighted = round_half_up(score * category_score.weight, 2)
        total += category_score.weighted
    analysis.overall_score = clamp(round1(total), 0.0, 10.0)


class ScoreNormalizer:
    """
    Rescales every score field of a typed analysis in place.

    Usage:
        report = ScoreNormalizer().normalize(analysis)
        if report.rescaled:
            ...
    """

    def _collect(self, analysis: SpeechAnalysis):
        for _, metric in analysis.iter_sub_metrics():
            if metric.score is not None:
                yield metric.score
        for _, category_score in analysis.category_scores.items():
            if category_score.score is not None:
                yield category_score.score
        if analysis.overall_score is not None:
            yield analysis.overall_score

    def normalize(self, analysis: SpeechAnalysis) -> ScaleReport:
        collected = list(self._collect(analysis))
        max_score = max(collected) if collected else 10.0
        factor = detect_scale_factor(max_score)

        def norm(value: Optional[float]) -> float:
            return clamp(round1((value or 0.0) * factor), 0.0, 10.0)

        for _, metric in analysis.iter_sub_metrics():
            metric.score = norm(metric.score)
        for _, category_score in analysis.category_scores.items():
            category_score.score = norm(category_score.score)
        analysis.overall_score = norm(analysis.overall_score)

        eye_contact = analysis.body_language_analysis.eye_contact
        if eye_contact.percentage is not None:
            pct = eye_contact.percentage * 100 if eye_contact.percentage <= 1.2 else eye_contact.percentage
            eye_contact.percentage = clamp(int(round_half_up(pct, 0)), 0, 100)

        apply_category_weights(analysis)

        report = ScaleReport(max_score=max_score, factor=factor, collected=len(collected))
        if report.rescaled:
            logger.info(
                f"Rescaled judge scores by {factor}",
                extra={'max_score': max_score, 'scale_factor': factor}
            )
        return report
