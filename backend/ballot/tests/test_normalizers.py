"""
Score Normalization Tests
=========================
Verifies scale detection, rounding and category weighting.
"""

import os
import sys

# Add parent to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from ballot.models import Category, SpeechAnalysis, SubMetricId
from ballot.scoring import (
    ScoreNormalizer,
    apply_category_weights,
    average,
    clamp,
    detect_scale_factor,
    round1,
    round_half_up,
)


def create_test_analysis(score: float, eye_contact_percentage=None) -> SpeechAnalysis:
    """Every sub-metric, category and the overall set to one score."""
    analysis = SpeechAnalysis()
    for _, metric in analysis.iter_sub_metrics():
        metric.score = score
    for _, category_score in analysis.category_scores.items():
        category_score.score = score
    analysis.overall_score = score
    analysis.body_language_analysis.eye_contact.percentage = eye_contact_percentage
    return analysis


# =============================================================================
# NUMERIC HELPERS
# =============================================================================

def test_round_half_up():
    """Halves round away from zero, unlike banker's rounding."""
    assert round_half_up(0.25) == 0.3
    assert round_half_up(2.675, 2) == 2.68
    assert round1(7.45) == 7.5
    assert round1(8.2 * 0.4) == 3.3
    assert round_half_up(8.2 * 0.4, 2) == 3.28

    print("[PASS] Round half up test passed")


def test_clamp_and_average():
    assert clamp(11.2, 0.0, 10.0) == 10.0
    assert clamp(-1, 0.0, 10.0) == 0.0
    assert average([8.0, None, 6.0]) == 7.0
    assert average([None, None]) == 0.0

    print("[PASS] Clamp and average test passed")


def test_detect_scale_factor():
    """0-100 scores shrink, fractional scores grow, 0-10 scores stay."""
    assert detect_scale_factor(85) == 0.1
    assert detect_scale_factor(0.85) == 10.0
    assert detect_scale_factor(8.5) == 1.0
    assert detect_scale_factor(10) == 1.0
    assert detect_scale_factor(1.2) == 10.0
    assert detect_scale_factor(0) == 1.0

    print("[PASS] Scale detection test passed")


# =============================================================================
# NORMALIZER
# =============================================================================

def test_normalize_hundred_scale():
    analysis = create_test_analysis(85)
    report = ScoreNormalizer().normalize(analysis)

    assert report.factor == 0.1
    assert report.rescaled
    assert analysis.sub_metric(SubMetricId.PACING).score == 8.5
    assert analysis.category_scores.get(Category.CONTENT).score == 8.5
    assert analysis.overall_score == 8.5

    print("[PASS] 0-100 normalization test passed")


def test_normalize_fractional_scale():
    analysis = create_test_analysis(0.85, eye_contact_percentage=0.62)
    ScoreNormalizer().normalize(analysis)

    assert analysis.sub_metric(SubMetricId.GESTURES).score == 8.5
    assert analysis.overall_score == 8.5
    assert analysis.eye_contact_percentage == 62

    print("[PASS] Fractional normalization test passed")


def test_normalize_ten_scale_is_stable():
    analysis = create_test_analysis(8.5, eye_contact_percentage=71)
    report = ScoreNormalizer().normalize(analysis)

    assert report.factor == 1.0
    assert not report.rescaled
    assert analysis.sub_metric(SubMetricId.VOCABULARY).score == 8.5
    assert analysis.eye_contact_percentage == 71

    print("[PASS] 0-10 normalization test passed")


def test_missing_scores_become_zero():
    """Missing scores are normalized to 0.0 rather than left empty."""
    analysis = create_test_analysis(8.0)
    analysis.sub_metric(SubMetricId.POSTURE).score = None
    ScoreNormalizer().normalize(analysis)

    assert analysis.sub_metric(SubMetricId.POSTURE).score == 0.0

    print("[PASS] Missing score test passed")


def test_category_weights():
    """Weights are fixed; weighted values keep two decimals; overall is their sum."""
    analysis = SpeechAnalysis()
    analysis.category_scores.get(Category.CONTENT).score = 8.2
    analysis.category_scores.get(Category.DELIVERY).score = 7.0
    analysis.category_scores.get(Category.LANGUAGE).score = 6.0
    analysis.category_scores.get(Category.BODY_LANGUAGE).score = 5.0
    analysis.category_scores.get(Category.CONTENT).weight = 0.9

    apply_category_weights(analysis)

    content = analysis.category_scores.get(Category.CONTENT)
    assert content.weight == 0.4
    assert content.weighted == 3.28
    assert analysis.category_scores.get(Category.DELIVERY).weighted == 2.1
    assert analysis.category_scores.get(Category.LANGUAGE).weighted == 0.9
    assert analysis.category_scores.get(Category.BODY_LANGUAGE).weighted == 0.75
    # 3.28 + 2.1 + 0.9 + 0.75 = 7.03
    assert analysis.overall_score == 7.0

    print("[PASS] Category weights test passed")


def test_weighted_sum_invariant():
    """Overall always equals the rounded sum of weighted contributions after weighting."""
    for score in (0.0, 3.3, 6.7, 8.2, 10.0):
        analysis = create_test_analysis(score)
        ScoreNormalizer().normalize(analysis)
        total = sum(c.weighted for _, c in analysis.category_scores.items())
        assert analysis.overall_score == round1(total)

    print("[PASS] Weighted sum invariant test passed")


def run_all_tests():
    """Run all normalization tests."""
    print("\n" + "="*60)
    print("SCORE NORMALIZATION TESTS")
    print("="*60 + "\n")

    test_round_half_up()
    test_clamp_and_average()
    test_detect_scale_factor()
    test_normalize_hundred_scale()
    test_normalize_fractional_scale()
    test_normalize_ten_scale_is_stable()
    test_missing_scores_become_zero()
    test_category_weights()
    test_weighted_sum_invariant()

    print("\n" + "="*60)
    print("ALL SCORE NORMALIZATION TESTS PASSED")
    print("="*60 + "\n")


if __name__ == "__main__":
    run_all_tests()
