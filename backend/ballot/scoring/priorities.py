"""
Priority Selection Module
=========================
Chooses the three ranked improvements shown to the speaker.

This module provides:
- One improvement template per sub-metric, tagged with a Topic
- Suppression predicates per Topic, evaluated against measured statistics
- PrioritySelector: forced length item, model items, lowest-score templates,
  high-ROI padding, practice drill targeting the biggest gap

Text is only inspected once, when an untagged model item is ingested and its
topic is inferred. From then on every decision reads the Topic.

Usage:
    selector = PrioritySelector()
    selector.select(analysis, PriorityContext.from_analysis(analysis, duration_seconds))
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from ..config import get_config, RubricConfig
from ..features import format_duration
from ..models import PriorityImprovement, SpeechAnalysis, SubMetricId
from .normalizers import round1

logger = logging.getLogger(__name__)


# =============================================================================
# TOPICS AND SUPPRESSION
# =============================================================================

class Topic(str, Enum):
    """What an improvement item is about, for suppression purposes."""
    FILLER = "filler"
    EYE_CONTACT = "eye_contact"
    PACING = "pacing"
    LENGTH = "length"
    GENERAL = "general"


LENGTH_TAG = "length"

_TOPIC_BY_METRIC = {
    SubMetricId.FILLER_WORDS: Topic.FILLER,
    SubMetricId.EYE_CONTACT: Topic.EYE_CONTACT,
    SubMetricId.PACING: Topic.PACING,
}

_TOPIC_KEYWORDS = [
    (Topic.FILLER, re.compile(
        r'\b(filler|fillers|um|uh|like|you know|basically|actually|literally)\b', re.IGNORECASE)),
    (Topic.EYE_CONTACT, re.compile(
        r'\b(eye contact|look(ing)? up|gaze|staring at notes|audience contact)\b', re.IGNORECASE)),
    (Topic.PACING, re.compile(
        r'\b(pace|pacing|too fast|too slow|speed|wpm|words per minute)\b', re.IGNORECASE)),
    (Topic.LENGTH, re.compile(
        r'\b(length|too short|insufficient length|time limit|time management|(under|below|short of) (three|3) minutes)\b', re.IGNORECASE)),
]


@dataclass
class PriorityContext:
    """Measured statistics the suppression predicates are evaluated against."""
    duration_seconds: float = 0.0
    wpm: int = 0
    filler_total: int = 0
    filler_per_minute: float = 0.0
    eye_contact_percentage: Optional[float] = None
    optimal_min_seconds: float = 240

    @property
    def is_too_short(self) -> bool:
        return 0 < self.duration_seconds < self.optimal_min_seconds

    @classmethod
    def from_analysis(
        cls,
        analysis: SpeechAnalysis,
        duration_seconds: float,
        config: Optional[RubricConfig] = None
    ) -> "PriorityContext":
        """Build the context from an enforced analysis (measured stats already applied)."""
        config = config or get_config().rubric
        fillers = analysis.delivery_analysis.filler_words
        return cls(
            duration_seconds=duration_seconds or 0.0,
            wpm=analysis.delivery_analysis.pacing.wpm or 0,
            filler_total=fillers.total or 0,
            filler_per_minute=fillers.per_minute or 0.0,
            eye_contact_percentage=analysis.eye_contact_percentage,
            optimal_min_seconds=config.optimal_min_seconds,
        )


def suppression_rules(config: RubricConfig) -> Dict[Topic, Callable[[PriorityContext], bool]]:
    """Per-topic predicates; True means items of that topic are dropped."""
    return {
        Topic.FILLER: lambda ctx: ctx.filler_total == 0 or ctx.filler_per_minute < config.filler_rate_floor,
        Topic.EYE_CONTACT: lambda ctx: (
            ctx.eye_contact_percentage is not None
            and ctx.eye_contact_percentage >= config.eye_contact_ceiling
        ),
        Topic.PACING: lambda ctx: config.pacing_min_wpm <= ctx.wpm <= config.pacing_max_wpm,
        # Too short: the forced length item already covers it. Otherwise length is adequate.
        Topic.LENGTH: lambda ctx: True,
        Topic.GENERAL: lambda ctx: False,
    }


def infer_topics(item: PriorityImprovement) -> List[Topic]:
    """
    Topics of a model-provided item.

    A known metric tag gives exactly one topic. Untagged text gets every
    topic whose keywords it mentions, in table order, or GENERAL when none do.
    """
    if item.metric:
        if item.metric == LENGTH_TAG:
            return [Topic.LENGTH]
        try:
            return [_TOPIC_BY_METRIC.get(SubMetricId(item.metric), Topic.GENERAL)]
        except ValueError:
            logger.debug(f"Unknown priority metric tag: {item.metric}")
    text = f"{item.issue} {item.action} {item.impact}"
    topics = [topic for topic, pattern in _TOPIC_KEYWORDS if pattern.search(text)]
    return topics or [Topic.GENERAL]


def infer_topic(item: PriorityImprovement) -> Topic:
    """Primary topic of a model-provided item."""
    return infer_topics(item)[0]


# =============================================================================
# TEMPLATES
# =============================================================================

@dataclass(frozen=True)
class ImprovementTemplate:
    """A fixed improvement recommendation tagged with what it is about."""
    issue: str
    action: str
    impact: str
    topic: Topic = Topic.GENERAL
    metric: Optional[str] = None

    def to_item(self, priority: int = 0) -> PriorityImprovement:
        return PriorityImprovement(
            priority=priority,
            issue=self.issue,
            action=self.action,
            impact=self.impact,
            metric=self.metric,
        )


def _template(metric_id: SubMetricId, issue: str, action: str, impact: str) -> ImprovementTemplate:
    return ImprovementTemplate(
        issue=issue,
        action=action,
        impact=impact,
        topic=_TOPIC_BY_METRIC.get(metric_id, Topic.GENERAL),
        metric=metric_id.value,
    )


IMPROVEMENT_TEMPLATES: Dict[SubMetricId, ImprovementTemplate] = {
    SubMetricId(t.metric): t for t in [
        _template(
            SubMetricId.ARGUMENT_STRUCTURE,
            "Weak argument structure (roadmap + signposting)",
            "Use a 10-second roadmap in the intro (\"I'll prove this in 3 ways...\") and label each body "
            "point with explicit transitions.",
            "Improves judge flow immediately and makes your reasoning feel intentional and tournament-ready.",
        ),
        _template(
            SubMetricId.DEPTH_OF_ANALYSIS,
            "Surface-level analysis (needs warrants)",
            "For each claim, add 2 \"because\" warrants and one counter-consideration "
            "(\"Some might say..., but...\").",
            "Raises sophistication from local-level assertions to quarters+ analytical depth.",
        ),
        _template(
            SubMetricId.EXAMPLES_EVIDENCE,
            "Examples are not specific enough",
            "Add 1 concrete example per point (name/place/event) and explain explicitly how it proves "
            "the claim in one sentence.",
            "Boosts credibility and makes arguments harder to dismiss on ballots.",
        ),
        _template(
            SubMetricId.TOPIC_ADHERENCE,
            "Thesis drift / weak quote linkage",
            "End each body point with a 1-sentence link-back: \"This proves the quote because...\".",
            "Prevents tangents and keeps the judge convinced you answered the prompt.",
        ),
        _template(
            SubMetricId.TIME_MANAGEMENT,
            "Time allocation is unbalanced",
            "Target: intro 0:20-0:30, each body point ~1:15-1:45, conclusion 0:20-0:30. Practice with a "
            "timer and planned transitions.",
            "Stops rushing and allows full development of your best arguments.",
        ),
        _template(
            SubMetricId.VOCAL_VARIETY,
            "Vocal variety is too flat (energy + emphasis)",
            "Mark 3 emphasis words per point and deliberately vary volume/pitch on them; add 1 purposeful "
            "pause before each transition.",
            "Improves engagement and makes key lines land like \"finals\" speakers.",
        ),
        _template(
            SubMetricId.PACING,
            "Pacing is outside competitive comfort",
            "Aim for 140-160 WPM with 1-2s pauses at transitions and after thesis; rehearse transitions slowly.",
            "Increases clarity and perceived confidence under judge flow.",
        ),
        _template(
            SubMetricId.ARTICULATION,
            "Articulation clarity is inconsistent",
            "Do 60 seconds of \"over-enunciate\" drills daily; slow down on dense lines and hit word endings.",
            "Prevents lost arguments due to comprehension issues.",
        ),
        _template(
            SubMetricId.FILLER_WORDS,
            "Filler words disrupt authority",
            "Replace fillers with silent 1-second pauses; practice \"pause instead of um\" during "
            "transitions and after breaths.",
            "Makes you sound controlled and credible to tournament judges.",
        ),
        _template(
            SubMetricId.VOCABULARY,
            "Vocabulary lacks precision/variety",
            "During prep, write 5 synonyms for your thesis keyword and use 1 higher-register term per point.",
            "Elevates tone and reduces repetitive, casual phrasing.",
        ),
        _template(
            SubMetricId.RHETORICAL_DEVICES,
            "Rhetorical techniques are underused",
            "Add 1 device per speech: rule of three, contrast, metaphor, or rhetorical question. Script "
            "the line during prep.",
            "Improves memorability and persuasion beyond pure explanation.",
        ),
        _template(
            SubMetricId.EMOTIONAL_APPEAL,
            "Emotional appeal is under-developed",
            "Add one vivid human-stakes sentence per point (who is affected, what changes, why it matters).",
            "Increases persuasion and audience connection in ballot decisions.",
        ),
        _template(
            SubMetricId.LOGICAL_APPEAL,
            "Logical chain is not explicit enough",
            "Use signpost logic words (\"because,\" \"therefore,\" \"as a result\") and restate the warrant "
            "after each example.",
            "Makes your reasoning judge-proof and harder to poke holes in.",
        ),
        _template(
            SubMetricId.EYE_CONTACT,
            "Eye contact is below competitive standard",
            "Memorize thesis + closing line and use keyword-only notes; enforce a 5-second max look-down rule.",
            "Improves authority and judge connection in key ballot moments.",
        ),
        _template(
            SubMetricId.GESTURES,
            "Gestures are distracting or too limited",
            "Keep hands above waist and use purposeful gestures only on key claims; eliminate repetitive "
            "fidgeting.",
            "Improves presence and makes delivery feel intentional.",
        ),
        _template(
            SubMetricId.POSTURE,
            "Posture/stance reduces confidence",
            "Adopt a grounded stance (feet shoulder-width) and practice delivering transitions without swaying.",
            "Increases perceived confidence and steadiness under pressure.",
        ),
        _template(
            SubMetricId.STAGE_PRESENCE,
            "Stage presence lacks authority",
            "Increase energy on thesis/closer; pair strong eye contact with a deliberate pause before key lines.",
            "Moves you from \"good\" to \"tournament-ready\" presence.",
        ),
    ]
}

# Refinements used to pad the list; never suppressed.
HIGH_ROI_TEMPLATES: List[ImprovementTemplate] = [
    ImprovementTemplate(
        issue="Sharper signposting between points",
        action="Add explicit transitions: \"First... Second... Finally...\" and a 1-sentence roadmap in the intro.",
        impact="Improves judge flow and clarity immediately with minimal effort.",
    ),
    ImprovementTemplate(
        issue="Stronger conclusion (thesis return + closer)",
        action="Use a 20-30s conclusion formula: recap points, restate thesis, then 1 memorable final line.",
        impact="Turns \"good content\" into a persuasive finish that sticks on ballots.",
    ),
    ImprovementTemplate(
        issue="Cleaner pacing at transitions",
        action="Insert a 1-2s pause before each new point; script transition sentences during prep.",
        impact="Reduces rushed sections and increases comprehension and confidence.",
    ),
    ImprovementTemplate(
        issue="More specific examples",
        action="Add 1 concrete example per point (name/place/event) + 1 sentence explaining why it proves the claim.",
        impact="Boosts credibility and depth without adding much time.",
    ),
]


def length_item(duration_seconds: float, insufficient_seconds: float = 180) -> PriorityImprovement:
    """The forced priority-1 item for speeches under the optimal range."""
    label = format_duration(duration_seconds) if duration_seconds > 0 else "unknown"
    if duration_seconds < insufficient_seconds:
        action = (
            f"Re-record to ≥3:00 (optimal 4:00–6:00). Your speech length ({label}) is too short "
            f"to demonstrate competitive depth."
        )
    else:
        action = (
            f"Extend to 4:00–6:00 and allocate time across 2–3 body points (intro ~0:20–0:30, "
            f"conclusion ~0:20–0:30). Current length: {label}."
        )
    return PriorityImprovement(
        priority=1,
        issue="Insufficient competitive length",
        action=action,
        impact="Enables depth, multiple developed points, and judgeable structure under NSDA expectations.",
        metric=LENGTH_TAG,
    )


def _format_score(value: float) -> str:
    return f"{value:g}"


# =============================================================================
# SELECTOR
# =============================================================================

class PrioritySelector:
    """
    Replaces the analysis' priority list with at most three ranked items.
    """

    def __init__(self, config: Optional[RubricConfig] = None):
        self.config = config or get_config().rubric
        self.rules = suppression_rules(self.config)

    def is_suppressed(self, topic: Topic, context: PriorityContext) -> bool:
        return self.rules[topic](context)

    def is_suppressed_item(self, item: PriorityImprovement, context: PriorityContext) -> bool:
        """A model item is dropped when any topic it touches is suppressed."""
        return any(self.is_suppressed(topic, context) for topic in infer_topics(item))

    def ranked_gaps(self, analysis: SpeechAnalysis) -> List:
        """(metric id, score) pairs sorted ascending; missing scores count as 10."""
        scores = []
        for metric_id, metric in analysis.iter_sub_metrics():
            scores.append((metric_id, metric.score if metric.score is not None else 10.0))
        return sorted(scores, key=lambda pair: pair[1])

    def _update_drill(self, analysis: SpeechAnalysis, gaps: List) -> None:
        if not gaps:
            return
        metric_id, score = gaps[0]
        if score >= self.config.drill_score_threshold:
            return
        template = IMPROVEMENT_TEMPLATES[metric_id]
        name = metric_id.metric_name
        analysis.practice_drill = (
            f"Targeting your biggest gap ({name} - Score: {_format_score(score)}): {template.action}"
        )
        analysis.next_session_focus.primary = f"Improve {name}"
        analysis.next_session_focus.metric = f"Score > {_format_score(round1(score + 1))}"

    def select(self, analysis: SpeechAnalysis, context: PriorityContext) -> List[PriorityImprovement]:
        """
        Rebuild analysis.priority_improvements in place.

        Returns:
            The new list, renumbered 1..n
        """
        limit = self.config.max_priorities
        items: List[PriorityImprovement] = []

        def has_issue(issue: str) -> bool:
            return any(existing.issue.lower() == issue.lower() for existing in items)

        if context.is_too_short:
            items.append(length_item(context.duration_seconds, self.config.insufficient_length_seconds))

        dropped = 0
        for item in analysis.priority_improvements:
            if len(items) >= limit:
                break
            if not item.is_complete:
                dropped += 1
                continue
            if self.is_suppressed_item(item, context) or has_issue(item.issue):
                dropped += 1
                continue
            items.append(PriorityImprovement(
                issue=item.issue.strip(),
                action=item.action.strip(),
                impact=item.impact.strip(),
                metric=item.metric,
            ))

        gaps = self.ranked_gaps(analysis)
        self._update_drill(analysis, gaps)

        for metric_id, _ in gaps:
            if len(items) >= limit:
                break
            template = IMPROVEMENT_TEMPLATES[metric_id]
            if self.is_suppressed(template.topic, context) or has_issue(template.issue):
                continue
            items.append(template.to_item())

        for template in HIGH_ROI_TEMPLATES:
            if len(items) >= limit:
                break
            if not has_issue(template.issue):
                items.append(template.to_item())

        for index, item in enumerate(items[:limit], start=1):
            item.priority = index
        analysis.priority_improvements = items[:limit]

        if dropped:
            logger.debug(f"Dropped {dropped} model-provided priority items")
        return analysis.priority_improvements
