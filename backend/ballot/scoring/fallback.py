"""
Schema-complete analysis returned when there is no usable speech to judge.
"""

from ..features import format_duration
from ..models import (
    Classification,
    NextSessionFocus,
    PerformanceTier,
    PriorityImprovement,
    SpeechAnalysis,
    SpeechStats,
    StructureAnalysis,
    SubMetricId,
    TimeRangeAssessment,
)
from .normalizers import apply_category_weights

FALLBACK_SCORE = 1.0
# Zero fillers is the best possible filler outcome.
FALLBACK_FILLER_SCORE = 10.0

NO_SPEECH_ASSESSMENT = "No usable speech detected."


def insufficient_speech_feedback(reason: str) -> str:
    return (
        f"**Score Justification:** ⚠️ INSUFFICIENT SPEECH DATA: {reason}\n\n"
        "**Evidence from Speech:**\n"
        "- Transcript is empty or too short to evaluate.\n\n"
        "**What This Means:** We cannot fairly score competitive impromptu categories without "
        "audible speech and a usable transcript.\n\n"
        "**How to Improve:**\n"
        "1. Re-record ensuring microphone permissions are enabled and audio is captured clearly.\n"
        "2. Speak continuously for competitive length (4–6 minutes optimal) instead of extended silence.\n"
        "3. Test a 10-second recording and confirm playback has clear audio before starting a full round."
    )


def build_insufficient_speech_analysis(duration_seconds: float, reason: str) -> SpeechAnalysis:
    """
    Build the guarded analysis used when no transcript or audio can be scored.

    Every sub-metric is 1.0 except filler words (10.0); categories are 1.0 and
    the overall score is their weighted sum (1.0).

    Args:
        duration_seconds: Measured recording length (0 when unknown)
        reason: Why the speech could not be judged

    Returns:
        SpeechAnalysis classified too_short with caps applied
    """
    analysis = SpeechAnalysis(
        classification=Classification.TOO_SHORT,
        caps_applied=True,
        performance_tier=PerformanceTier.DEVELOPING,
        tournament_ready=False,
    )

    feedback = insufficient_speech_feedback(reason)
    for metric_id, metric in analysis.iter_sub_metrics():
        metric.score = FALLBACK_FILLER_SCORE if metric_id is SubMetricId.FILLER_WORDS else FALLBACK_SCORE
        metric.feedback = feedback
    analysis.body_language_analysis.eye_contact.percentage = 0

    for _, category_score in analysis.category_scores.items():
        category_score.score = FALLBACK_SCORE
    apply_category_weights(analysis)

    analysis.speech_stats = SpeechStats(duration=format_duration(duration_seconds))
    analysis.structure_analysis = StructureAnalysis(
        introduction=TimeRangeAssessment(time_range="N/A", assessment=NO_SPEECH_ASSESSMENT),
        body_points=[],
        conclusion=TimeRangeAssessment(time_range="N/A", assessment=NO_SPEECH_ASSESSMENT),
    )
    analysis.priority_improvements = [
        PriorityImprovement(
            priority=1,
            issue="No usable speech detected",
            action="Verify microphone + speak continuously",
            impact="Required for any meaningful judging.",
        ),
        PriorityImprovement(
            priority=2,
            issue="Audio capture reliability",
            action="Test a 10-second recording before full round",
            impact="Prevents wasted long recordings.",
        ),
        PriorityImprovement(
            priority=3,
            issue="Competitive length",
            action="Target 4–6 minutes of continuous speaking",
            impact="Needed for NSDA-standard development.",
            metric="length",
        ),
    ]
    analysis.strengths = []
    analysis.practice_drill = (
        "Record 20 seconds, replay to confirm audio, then re-record the full round with continuous speech."
    )
    analysis.next_session_focus = NextSessionFocus(
        primary="Capture clean audio + continuous speech",
        metric="≥ 400 words and non-empty transcript",
    )
    return analysis
