"""
Priority Selection Tests
========================
Verifies the forced length item, topic suppression, gap templates,
padding and drill targeting.
"""

import os
import sys

# Add parent to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from ballot.config import RubricConfig
from ballot.models import PriorityImprovement, SpeechAnalysis, SubMetricId
from ballot.scoring import (
    HIGH_ROI_TEMPLATES,
    IMPROVEMENT_TEMPLATES,
    PriorityContext,
    PrioritySelector,
    Topic,
    infer_topic,
    infer_topics,
    length_item,
)


# =============================================================================
# MOCK DATA
# =============================================================================

def create_test_analysis(score: float = 8.0, overrides=None) -> SpeechAnalysis:
    analysis = SpeechAnalysis()
    for metric_id, metric in analysis.iter_sub_metrics():
        metric.score = (overrides or {}).get(metric_id, score)
    return analysis


def create_test_context(**kwargs) -> PriorityContext:
    """An optimal-length speech with nothing worth suppressing."""
    values = {
        'duration_seconds': 300,
        'wpm': 100,
        'filler_total': 30,
        'filler_per_minute': 6.0,
        'eye_contact_percentage': 40,
    }
    values.update(kwargs)
    return PriorityContext(**values)


def create_selector(**config_kwargs) -> PrioritySelector:
    return PrioritySelector(RubricConfig(**config_kwargs))


def issues(items):
    return [item.issue for item in items]


# =============================================================================
# TOPIC INFERENCE
# =============================================================================

def test_infer_topic_from_tag():
    """A metric tag decides the topic without reading the text."""
    tagged = PriorityImprovement(issue="Eye contact", action="a", impact="b", metric="delivery.fillerWords")
    assert infer_topic(tagged) is Topic.FILLER

    length = PriorityImprovement(issue="x", action="y", impact="z", metric="length")
    assert infer_topic(length) is Topic.LENGTH

    general = PriorityImprovement(issue="x", action="y", impact="z", metric="language.vocabulary")
    assert infer_topic(general) is Topic.GENERAL

    print("[PASS] Tagged topic test passed")


def test_infer_topic_from_text():
    """Untagged items fall back to a keyword lookup."""
    def item(issue):
        return PriorityImprovement(issue=issue, action="Practice daily", impact="Better ballots")

    assert infer_topic(item("Too many um and uh sounds")) is Topic.FILLER
    assert infer_topic(item("Improve eye contact with judges")) is Topic.EYE_CONTACT
    assert infer_topic(item("Pacing is rushed")) is Topic.PACING
    assert infer_topic(item("Speech is too short")) is Topic.LENGTH
    assert infer_topic(item("Stronger thesis statement")) is Topic.GENERAL

    print("[PASS] Text topic test passed")


def test_infer_topics_lists_every_match():
    """Untagged text touching several topics reports all of them."""
    mixed = PriorityImprovement(
        issue="Pacing drifts and um sounds creep in",
        action="Slow down and pause",
        impact="Clearer delivery",
    )
    assert infer_topics(mixed) == [Topic.FILLER, Topic.PACING]
    assert infer_topic(mixed) is Topic.FILLER

    rate = PriorityImprovement(issue="Aim for 150 words per minute", action="Use a metronome", impact="Control")
    assert infer_topics(rate) == [Topic.PACING]

    tagged = PriorityImprovement(issue="Pacing and um", action="a", impact="b", metric="bodyLanguage.eyeContact")
    assert infer_topics(tagged) == [Topic.EYE_CONTACT]

    print("[PASS] Multiple topic inference test passed")


def test_templates_cover_every_metric():
    assert set(IMPROVEMENT_TEMPLATES) == set(SubMetricId)
    assert IMPROVEMENT_TEMPLATES[SubMetricId.FILLER_WORDS].topic is Topic.FILLER
    assert IMPROVEMENT_TEMPLATES[SubMetricId.EYE_CONTACT].topic is Topic.EYE_CONTACT
    assert IMPROVEMENT_TEMPLATES[SubMetricId.PACING].topic is Topic.PACING
    assert IMPROVEMENT_TEMPLATES[SubMetricId.VOCABULARY].topic is Topic.GENERAL

    print("[PASS] Template coverage test passed")


def test_length_item():
    critical = length_item(150)
    assert critical.priority == 1
    assert critical.metric == "length"
    assert "Re-record" in critical.action
    assert "2:30" in critical.action

    below_optimal = length_item(200)
    assert below_optimal.action.startswith("Extend")
    assert "3:20" in below_optimal.action

    print("[PASS] Length item test passed")


# =============================================================================
# SELECTOR
# =============================================================================

def test_at_most_three_items():
    """Never more than three items, numbered 1..n."""
    analysis = create_test_analysis(5.0)
    analysis.priority_improvements = [
        PriorityImprovement(issue=f"Issue {i}", action="Do it", impact="Better") for i in range(5)
    ]

    items = create_selector().select(analysis, create_test_context())

    assert len(items) == min(3, 5)
    assert [item.priority for item in items] == [1, 2, 3]
    assert analysis.priority_improvements is items

    print("[PASS] Item limit test passed")


def test_too_short_forces_length_first():
    analysis = create_test_analysis(8.0)
    analysis.priority_improvements = [
        PriorityImprovement(issue="Speech is too short", action="Talk longer", impact="More depth"),
        PriorityImprovement(issue="Weak thesis", action="State it early", impact="Clarity"),
    ]

    items = create_selector().select(analysis, create_test_context(duration_seconds=150))

    assert items[0].issue == "Insufficient competitive length"
    assert items[0].priority == 1
    # The model's own length item is a duplicate topic and is dropped
    assert "Speech is too short" not in issues(items)
    assert items[1].issue == "Weak thesis"
    assert len(items) == 3

    print("[PASS] Forced length item test passed")


def test_no_filler_item_when_rate_is_low():
    """Below three fillers per minute neither model nor template filler items survive."""
    analysis = create_test_analysis(8.0, overrides={SubMetricId.FILLER_WORDS: 2.0})
    analysis.priority_improvements = [
        PriorityImprovement(issue="Cut the um and uh", action="Pause instead", impact="Authority"),
        PriorityImprovement(issue="Fillers", action="Pause", impact="Authority", metric="delivery.fillerWords"),
    ]

    items = create_selector().select(analysis, create_test_context(filler_total=4, filler_per_minute=1.0))

    filler_issue = IMPROVEMENT_TEMPLATES[SubMetricId.FILLER_WORDS].issue
    assert filler_issue not in issues(items)
    assert "Cut the um and uh" not in issues(items)
    assert "Fillers" not in issues(items)
    assert len(items) == 3

    print("[PASS] Filler suppression test passed")


def test_filler_item_kept_when_rate_is_high():
    analysis = create_test_analysis(8.0, overrides={SubMetricId.FILLER_WORDS: 2.0})
    items = create_selector().select(analysis, create_test_context(filler_total=40, filler_per_minute=8.0))

    assert items[0].issue == IMPROVEMENT_TEMPLATES[SubMetricId.FILLER_WORDS].issue
    assert items[0].metric == SubMetricId.FILLER_WORDS.value

    print("[PASS] Filler kept test passed")


def test_eye_contact_and_pacing_suppression():
    analysis = create_test_analysis(8.0, overrides={
        SubMetricId.EYE_CONTACT: 3.0,
        SubMetricId.PACING: 4.0,
        SubMetricId.VOCABULARY: 6.0,
    })
    items = create_selector().select(
        analysis, create_test_context(eye_contact_percentage=80, wpm=150)
    )

    assert IMPROVEMENT_TEMPLATES[SubMetricId.EYE_CONTACT].issue not in issues(items)
    assert IMPROVEMENT_TEMPLATES[SubMetricId.PACING].issue not in issues(items)
    assert items[0].issue == IMPROVEMENT_TEMPLATES[SubMetricId.VOCABULARY].issue

    print("[PASS] Eye contact and pacing suppression test passed")


def test_mixed_topic_item_dropped_when_any_topic_suppressed():
    """An item about fillers and pacing is dropped once pacing is already fine."""
    def create_items():
        return [
            PriorityImprovement(
                issue="Pacing drifts and um sounds creep in",
                action="Slow down and pause",
                impact="Clearer delivery",
            ),
            PriorityImprovement(issue="Weak thesis", action="State it early", impact="Clarity"),
        ]

    analysis = create_test_analysis(8.0)
    analysis.priority_improvements = create_items()
    items = create_selector().select(analysis, create_test_context(wpm=150, filler_per_minute=6.0))

    assert "Pacing drifts and um sounds creep in" not in issues(items)
    assert items[0].issue == "Weak thesis"

    analysis = create_test_analysis(8.0)
    analysis.priority_improvements = create_items()
    items = create_selector().select(analysis, create_test_context(wpm=100, filler_per_minute=6.0))

    assert items[0].issue == "Pacing drifts and um sounds creep in"

    print("[PASS] Mixed topic suppression test passed")


def test_gap_templates_lowest_first():
    analysis = create_test_analysis(8.0, overrides={
        SubMetricId.POSTURE: 5.0,
        SubMetricId.VOCABULARY: 4.0,
        SubMetricId.ARTICULATION: 6.0,
    })
    items = create_selector().select(analysis, create_test_context())

    assert issues(items) == [
        IMPROVEMENT_TEMPLATES[SubMetricId.VOCABULARY].issue,
        IMPROVEMENT_TEMPLATES[SubMetricId.POSTURE].issue,
        IMPROVEMENT_TEMPLATES[SubMetricId.ARTICULATION].issue,
    ]

    print("[PASS] Gap ordering test passed")


def test_incomplete_and_duplicate_model_items_dropped():
    analysis = create_test_analysis(8.0)
    analysis.priority_improvements = [
        PriorityImprovement(issue="Weak thesis", action="", impact="Clarity"),
        PriorityImprovement(issue="Stronger closer", action="Recap", impact="Memorable"),
        PriorityImprovement(issue="stronger closer", action="Recap again", impact="Memorable"),
    ]
    items = create_selector().select(analysis, create_test_context())

    assert issues(items).count("Stronger closer") == 1
    assert "Weak thesis" not in issues(items)
    assert "stronger closer" not in issues(items)

    print("[PASS] Model item filtering test passed")


def test_high_roi_padding():
    """With room to spare the list is padded with refinement items."""
    analysis = create_test_analysis(8.0)
    context = create_test_context(filler_total=0, eye_contact_percentage=90, wpm=150)
    items = create_selector(max_priorities=20).select(analysis, context)

    # 17 templates minus the three suppressed topics, then all four pads
    assert len(items) == 18
    assert issues(items)[-4:] == [t.issue for t in HIGH_ROI_TEMPLATES]
    assert [item.priority for item in items] == list(range(1, 19))

    print("[PASS] High ROI padding test passed")


def test_drill_targets_biggest_gap():
    analysis = create_test_analysis(8.0, overrides={SubMetricId.GESTURES: 4.5})
    create_selector().select(analysis, create_test_context())

    template = IMPROVEMENT_TEMPLATES[SubMetricId.GESTURES]
    assert analysis.practice_drill == (
        f"Targeting your biggest gap (gestures - Score: 4.5): {template.action}"
    )
    assert analysis.next_session_focus.primary == "Improve gestures"
    assert analysis.next_session_focus.metric == "Score > 5.5"

    print("[PASS] Drill targeting test passed")


def test_drill_left_alone_when_strong():
    analysis = create_test_analysis(8.0)
    analysis.practice_drill = "Model drill"
    create_selector().select(analysis, create_test_context())

    assert analysis.practice_drill == "Model drill"

    print("[PASS] Strong speech drill test passed")


def test_context_from_analysis():
    analysis = create_test_analysis(8.0)
    analysis.delivery_analysis.pacing.wpm = 152
    analysis.delivery_analysis.filler_words.total = 6
    analysis.delivery_analysis.filler_words.per_minute = 1.2
    analysis.body_language_analysis.eye_contact.percentage = 64

    context = PriorityContext.from_analysis(analysis, 200, RubricConfig())

    assert context.wpm == 152
    assert context.filler_total == 6
    assert context.eye_contact_percentage == 64
    assert context.is_too_short
    assert not PriorityContext(duration_seconds=0).is_too_short

    print("[PASS] Context from analysis test passed")


def run_all_tests():
    """Run all priority selection tests."""
    print("\n" + "="*60)
    print("PRIORITY SELECTION TESTS")
    print("="*60 + "\n")

    test_infer_topic_from_tag()
    test_infer_topic_from_text()
    test_infer_topics_lists_every_match()
    test_templates_cover_every_metric()
    test_length_item()
    test_at_most_three_items()
    test_too_short_forces_length_first()
    test_no_filler_item_when_rate_is_low()
    test_filler_item_kept_when_rate_is_high()
    test_eye_contact_and_pacing_suppression()
    test_mixed_topic_item_dropped_when_any_topic_suppressed()
    test_gap_templates_lowest_first()
    test_incomplete_and_duplicate_model_items_dropped()
    test_high_roi_padding()
    test_drill_targets_biggest_gap()
    test_drill_left_alone_when_strong()
    test_context_from_analysis()

    print("\n" + "="*60)
    print("ALL PRIORITY SELECTION TESTS PASSED")
    print("="*60 + "\n")


if __name__ == "__main__":
    run_all_tests()
