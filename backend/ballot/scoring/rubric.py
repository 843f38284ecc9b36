"""
Rubric Enforcement Module
=========================
Deterministic server-side corrections applied after normalization.

Steps run in a fixed order, each reading what the previous one wrote:
1. Category scores recomputed from their declared sub-metrics
2. Length penalty (overall deduction, or a Time Management deduction when overtime)
3. Classification cap (judge claim arbitrated by the duration-aware detector)
4. Heuristic cap from the pre-judge classifier, applied as a final min()
5. Tournament readiness gate and performance tier
6. Measured statistics overwrite the model's self-reported ones

Running the enforcer again on its own output changes nothing.

Usage:
    enforcer = RubricEnforcer()
    report = enforcer.enforce(analysis, RubricContext(transcript, duration, heuristic))
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from ..config import get_config, RubricConfig
from ..classification import detect_speech_classification, resolve_classification
from ..features import filler_stats, format_duration, word_count, words_per_minute
from ..logging_config import log_scoring_decision
from ..models import (
    Category,
    Classification,
    HeuristicClassification,
    PerformanceTier,
    SpeechAnalysis,
    SpeechStats,
    SubMetricId,
    CATEGORY_SCORED_SUB_METRICS,
    CATEGORY_SUB_METRICS,
    SEVERE_CLASSIFICATIONS,
)
from .normalizers import apply_category_weights, average, clamp, round1

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

SEVERE_SUB_METRIC_CAP = 3.0
SEVERE_OVERALL_CAP = 2.5
MOSTLY_OFF_TOPIC_CONTENT_CAP = 5.0
MOSTLY_OFF_TOPIC_OVERALL_CAP = 6.0
NO_CAP = 10.0

# Share of the overall score carried by Content; a raw content penalty of
# N points moves the overall by N * CONTENT_WEIGHT.
CONTENT_WEIGHT = 0.4

INSUFFICIENT_LENGTH_NOTE = "⚠️ INSUFFICIENT LENGTH (<3:00): Content score penalty applied."
BELOW_OPTIMAL_NOTE = "Below optimal range (3:00–3:59): Content score penalty applied."
EXCEEDS_LIMIT_NOTE = "⚠️ EXCEEDS LIMIT (>7:00): Time Management penalty applied."


# =============================================================================
# MEASURED STATISTICS
# =============================================================================

@dataclass
class MeasuredStats:
    """Speech statistics computed from the transcript and the real duration."""
    duration_seconds: float
    word_count: int
    filler_total: int
    filler_breakdown: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_transcript(cls, transcript: str, duration_seconds: float) -> "MeasuredStats":
        total, breakdown = filler_stats(transcript)
        return cls(
            duration_seconds=duration_seconds if duration_seconds and duration_seconds > 0 else 0.0,
            word_count=word_count(transcript),
            filler_total=total,
            filler_breakdown=breakdown,
        )

    @property
    def wpm(self) -> int:
        return words_per_minute(self.word_count, self.duration_seconds)

    @property
    def filler_per_minute(self) -> float:
        return round1(self.filler_total / max(self.duration_seconds, 1) * 60)

    def to_speech_stats(self) -> SpeechStats:
        return SpeechStats(
            duration=format_duration(self.duration_seconds),
            word_count=self.word_count,
            wpm=self.wpm,
            filler_word_count=self.filler_total,
            filler_word_rate=self.filler_per_minute,
        )


def apply_measured_stats(analysis: SpeechAnalysis, stats: MeasuredStats) -> None:
    """Overwrite model-reported statistics with measured ones."""
    analysis.speech_stats = stats.to_speech_stats()
    analysis.delivery_analysis.pacing.wpm = stats.wpm
    fillers = analysis.delivery_analysis.filler_words
    fillers.total = stats.filler_total
    fillers.per_minute = stats.filler_per_minute
    fillers.breakdown = dict(stats.filler_breakdown)


# =============================================================================
# PURE RUBRIC FUNCTIONS
# =============================================================================

def compute_performance_tier(overall_score: float) -> PerformanceTier:
    if overall_score >= 9.0:
        return PerformanceTier.FINALS
    if overall_score >= 8.0:
        return PerformanceTier.BREAKING
    if overall_score >= 7.7:
        return PerformanceTier.COMPETITIVE
    return PerformanceTier.DEVELOPING


def recompute_category_scores(analysis: SpeechAnalysis) -> None:
    """Set each category to the average of its scored sub-metrics, then reweight."""
    for category, metric_ids in CATEGORY_SCORED_SUB_METRICS.items():
        scores = [analysis.sub_metric(metric_id).score for metric_id in metric_ids]
        analysis.category_scores.get(category).score = clamp(round1(average(scores)), 0.0, 10.0)
    apply_category_weights(analysis)


@dataclass
class LengthPenalty:
    """Length rule that fired for a duration."""
    overall_deduction: float = 0.0
    time_management_penalty: float = 0.0
    note: str = ""


def length_penalty_for(duration_seconds: float, config: Optional[RubricConfig] = None) -> Optional[LengthPenalty]:
    """Length rule for a measured duration, or None (unknown duration or optimal range)."""
    config = config or get_config().rubric
    if not duration_seconds or duration_seconds <= 0:
        return None
    if duration_seconds < config.insufficient_length_seconds:
        return LengthPenalty(
            overall_deduction=round1(config.insufficient_length_penalty * CONTENT_WEIGHT),
            note=INSUFFICIENT_LENGTH_NOTE,
        )
    if duration_seconds < config.optimal_min_seconds:
        return LengthPenalty(
            overall_deduction=round1(config.below_optimal_penalty * CONTENT_WEIGHT),
            note=BELOW_OPTIMAL_NOTE,
        )
    if duration_seconds > config.max_length_seconds:
        return LengthPenalty(
            time_management_penalty=config.overtime_penalty,
            note=EXCEEDS_LIMIT_NOTE,
        )
    return None


# =============================================================================
# ENFORCER
# =============================================================================

@dataclass
class RubricContext:
    """Inputs the enforcer needs besides the analysis itself."""
    transcript: str
    duration_seconds: float
    heuristic: Optional[HeuristicClassification] = None
    request_id: Optional[str] = None


@dataclass
class EnforcementReport:
    """Summary of what one enforcement run decided."""
    classification: Classification
    server_classification: Classification
    length_deduction: float
    overall_before: float
    overall_after: float
    caps_applied: bool
    tournament_ready: bool

    def to_dict(self) -> Dict:
        return {
            'classification': self.classification.value,
            'server_classification': self.server_classification.value,
            'length_deduction': self.length_deduction,
            'overall_before': self.overall_before,
            'overall_after': self.overall_after,
            'caps_applied': self.caps_applied,
            'tournament_ready': self.tournament_ready,
        }


class RubricEnforcer:
    """
    Applies the rubric's hard rules to a normalized analysis in place.
    """

    def __init__(self, config: Optional[RubricConfig] = None):
        self.config = config or get_config().rubric

    # -------------------------------------------------------------------------
    # Individual steps
    # -------------------------------------------------------------------------

    def apply_length_penalty(self, analysis: SpeechAnalysis, duration_seconds: float) -> float:
        """
        Apply the length rule and return the overall deduction it implies.

        The overtime deduction to Time Management is applied once; the note
        appended to its feedback marks it as done.
        """
        penalty = length_penalty_for(duration_seconds, self.config)
        if penalty is None:
            return 0.0

        time_management = analysis.content_analysis.time_management
        already_applied = penalty.note in (time_management.feedback or "")

        if penalty.time_management_penalty and not already_applied:
            time_management.score = clamp(
                round1((time_management.score or 0.0) - penalty.time_management_penalty), 0.0, 10.0
            )

        if not already_applied:
            time_management.feedback = f"{time_management.feedback or ''}\n\n{penalty.note}".strip()

        return penalty.overall_deduction

    def _set_overall(self, analysis: SpeechAnalysis, deduction: float) -> None:
        recompute_category_scores(analysis)
        if deduction:
            analysis.overall_score = clamp(round1(analysis.overall_score - deduction), 0.0, 10.0)

    def _cap_sub_metrics(self, analysis: SpeechAnalysis, metric_ids, cap: float) -> None:
        for metric_id in metric_ids:
            metric = analysis.sub_metric(metric_id)
            if metric.score is not None and metric.score > cap:
                metric.score = cap

    def apply_classification_cap(
        self,
        analysis: SpeechAnalysis,
        context: RubricContext,
        deduction: float
    ) -> Classification:
        """Resolve the final classification and enforce its caps."""
        server = detect_speech_classification(
            context.transcript, context.duration_seconds, word_count(context.transcript)
        )
        classification = resolve_classification(analysis.classification, server)
        analysis.classification = classification

        if classification in SEVERE_CLASSIFICATIONS:
            metric_ids = [m for m in SubMetricId]
            sub_cap, overall_cap = SEVERE_SUB_METRIC_CAP, SEVERE_OVERALL_CAP
        elif classification is Classification.MOSTLY_OFF_TOPIC:
            metric_ids = CATEGORY_SUB_METRICS[Category.CONTENT]
            sub_cap, overall_cap = MOSTLY_OFF_TOPIC_CONTENT_CAP, MOSTLY_OFF_TOPIC_OVERALL_CAP
        else:
            return classification

        self._cap_sub_metrics(analysis, metric_ids, sub_cap)
        self._set_overall(analysis, deduction)
        analysis.overall_score = min(analysis.overall_score, overall_cap)
        # Every capped value now sits at or below its ceiling
        analysis.caps_applied = True

        log_scoring_decision(
            "classification_cap",
            {
                'classification': classification.value,
                'server_classification': server.value,
                'overall_cap': overall_cap,
                'overall': analysis.overall_score,
            },
            request_id=context.request_id,
        )
        return classification

    def apply_heuristic_cap(self, analysis: SpeechAnalysis, heuristic: Optional[HeuristicClassification]) -> None:
        if heuristic is None or heuristic.max_overall_score >= NO_CAP:
            return
        if analysis.overall_score >= heuristic.max_overall_score:
            analysis.overall_score = heuristic.max_overall_score
            analysis.caps_applied = True

    def apply_readiness(self, analysis: SpeechAnalysis, stats: MeasuredStats) -> None:
        config = self.config
        overall = analysis.overall_score or 0.0
        min_category = min((c.score or 0.0) for _, c in analysis.category_scores.items())
        duration_ok = config.optimal_min_seconds <= stats.duration_seconds <= config.max_length_seconds
        fillers_ok = stats.filler_per_minute < config.ready_max_filler_per_minute
        eye_contact = analysis.eye_contact_percentage
        eye_ok = eye_contact is None or eye_contact > config.ready_min_eye_contact

        analysis.tournament_ready = bool(
            overall >= config.ready_min_overall
            and min_category >= config.ready_min_category
            and duration_ok
            and fillers_ok
            and eye_ok
        )
        analysis.performance_tier = compute_performance_tier(overall)

    # -------------------------------------------------------------------------
    # Full pass
    # -------------------------------------------------------------------------

    def enforce(self, analysis: SpeechAnalysis, context: RubricContext) -> EnforcementReport:
        """
        Run every enforcement step in order.

        Args:
            analysis: Normalized analysis (modified in place)
            context: Transcript, measured duration and heuristic outcome

        Returns:
            EnforcementReport describing the decisions taken
        """
        stats = MeasuredStats.from_transcript(context.transcript, context.duration_seconds)
        overall_before = analysis.overall_score or 0.0
        # The judge's own capsApplied claim is not trusted
        analysis.caps_applied = False

        recompute_category_scores(analysis)

        deduction = self.apply_length_penalty(analysis, stats.duration_seconds)
        self._set_overall(analysis, deduction)
        if deduction:
            log_scoring_decision(
                "length_penalty",
                {'duration_seconds': stats.duration_seconds, 'overall_deduction': deduction},
                request_id=context.request_id,
            )

        classification = self.apply_classification_cap(analysis, context, deduction)
        self.apply_heuristic_cap(analysis, context.heuristic)
        self.apply_readiness(analysis, stats)
        apply_measured_stats(analysis, stats)

        report = EnforcementReport(
            classification=classification,
            server_classification=detect_speech_classification(
                context.transcript, stats.duration_seconds, stats.word_count
            ),
            length_deduction=deduction,
            overall_before=overall_before,
            overall_after=analysis.overall_score,
            caps_applied=analysis.caps_applied,
            tournament_ready=analysis.tournament_ready,
        )
        log_scoring_decision("rubric_enforced", report.to_dict(), request_id=context.request_id)
        return report
