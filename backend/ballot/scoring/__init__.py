"""
Scoring Module
==============
Server-side corrections applied to judge output.

This module provides:
- Scale normalization and category weighting
- Rubric enforcement (length penalties, caps, readiness, measured stats)
- Priority-improvement selection
- The insufficient-speech fallback analysis

Usage:
    from ballot.scoring import ScoreNormalizer, RubricEnforcer, PrioritySelector

    ScoreNormalizer().normalize(analysis)
    RubricEnforcer().enforce(analysis, RubricContext(transcript, duration))
"""

from .normalizers import (
    ScoreNormalizer,
    ScaleReport,
    apply_category_weights,
    detect_scale_factor,
    round_half_up,
    round1,
    clamp,
    average,
)
from .rubric import (
    RubricEnforcer,
    RubricContext,
    EnforcementReport,
    MeasuredStats,
    LengthPenalty,
    apply_measured_stats,
    compute_performance_tier,
    length_penalty_for,
    recompute_category_scores,
)
from .priorities import (
    PrioritySelector,
    PriorityContext,
    ImprovementTemplate,
    Topic,
    IMPROVEMENT_TEMPLATES,
    HIGH_ROI_TEMPLATES,
    infer_topic,
    infer_topics,
    length_item,
)
from .fallback import build_insufficient_speech_analysis

__all__ = [
    # Normalization
    'ScoreNormalizer',
    'ScaleReport',
    'apply_category_weights',
    'detect_scale_factor',
    'round_half_up',
    'round1',
    'clamp',
    'average',

    # Rubric
    'RubricEnforcer',
    'RubricContext',
    'EnforcementReport',
    'MeasuredStats',
    'LengthPenalty',
    'apply_measured_stats',
    'compute_performance_tier',
    'length_penalty_for',
    'recompute_category_scores',

    # Priorities
    'PrioritySelector',
    'PriorityContext',
    'ImprovementTemplate',
    'Topic',
    'IMPROVEMENT_TEMPLATES',
    'HIGH_ROI_TEMPLATES',
    'infer_topic',
    'infer_topics',
    'length_item',

    # Fallback
    'build_insufficient_speech_analysis',
]
