"""
Classification Tests
====================
Verifies the pre-judge heuristics and the duration-aware detector.
"""

import os
import sys

# Add parent to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from ballot.classification import (
    classify_transcript,
    detect_speech_classification,
    resolve_classification,
)
from ballot.models import Classification

THEME = "Courage in leadership"
QUOTE = "Fortune favors the bold"


def create_test_transcript(words: int, extra: str = "") -> str:
    """Distinct, vowel-bearing tokens that pass every coherence heuristic."""
    body = " ".join(f"point{i}" for i in range(words))
    return f"{body} {extra}".strip()


# =============================================================================
# HEURISTIC CLASSIFIER
# =============================================================================

def test_too_few_words():
    """Under 25 words skips the judge with a 2.5 cap."""
    result = classify_transcript(create_test_transcript(24))

    assert result.classification is Classification.TOO_SHORT
    assert result.skip_llm is True
    assert result.max_overall_score == 2.5
    assert "24 words" in result.reason

    print("[PASS] Too few words test passed")


def test_short_recording():
    """A known duration under a minute is too short even with enough words."""
    result = classify_transcript(create_test_transcript(30), duration_seconds=45)

    assert result.classification is Classification.TOO_SHORT
    assert result.skip_llm is True
    assert result.max_overall_score == 2.5
    assert "45s" in result.reason

    # Unknown duration does not trigger the rule
    unknown = classify_transcript(create_test_transcript(30), duration_seconds=0)
    assert unknown.classification is Classification.NORMAL

    print("[PASS] Short recording test passed")


def test_low_diversity_is_nonsense():
    result = classify_transcript("blah " * 60)

    assert result.classification is Classification.NONSENSE
    assert result.skip_llm is True
    assert "lexical diversity" in result.reason

    print("[PASS] Low diversity test passed")


def test_repeated_phrases_are_nonsense():
    """A looped ten-word sentence is diverse enough but repeats every n-gram."""
    sentence = "courage means acting when every voice around you says wait"
    transcript = " ".join([sentence] * 6)
    assert len(transcript.split()) == 60

    result = classify_transcript(transcript)

    assert result.classification is Classification.NONSENSE
    assert result.skip_llm is True
    assert result.max_overall_score == 2.5
    assert "n-gram repetition" in result.reason

    print("[PASS] Repeated phrases test passed")


def test_non_words_are_nonsense():
    """Keyboard-mash tokens push the non-word ratio over 20%."""
    mash = " ".join(["xkcdq"] * 10)
    result = classify_transcript(create_test_transcript(30, mash))

    assert result.classification is Classification.NONSENSE
    assert "non-word" in result.reason

    print("[PASS] Non-word test passed")


def test_off_topic():
    """No overlap with five topic keywords is off topic."""
    result = classify_transcript(create_test_transcript(80), THEME, QUOTE)

    assert result.classification is Classification.OFF_TOPIC
    assert result.skip_llm is True
    assert result.max_overall_score == 2.5

    print("[PASS] Off-topic test passed")


def test_mostly_off_topic():
    """Partial overlap lets the judge run but caps the overall at 6.0."""
    result = classify_transcript(create_test_transcript(80, "bolder fortunes"), THEME, QUOTE)

    assert result.classification is Classification.MOSTLY_OFF_TOPIC
    assert result.skip_llm is False
    assert result.max_overall_score == 6.0

    print("[PASS] Mostly off-topic test passed")


def test_topic_rules_need_keywords():
    """Fewer than three topic keywords disables the topic rules."""
    result = classify_transcript(create_test_transcript(80), theme="Courage")

    assert result.classification is Classification.NORMAL
    assert result.max_overall_score == 10.0

    print("[PASS] Topic keyword minimum test passed")


def test_low_word_count_cap():
    result = classify_transcript(create_test_transcript(60))

    assert result.classification is Classification.NORMAL
    assert result.skip_llm is False
    assert result.max_overall_score == 3.0

    print("[PASS] Low word count cap test passed")


def test_normal_transcript():
    result = classify_transcript(create_test_transcript(200), duration_seconds=300)

    assert result.classification is Classification.NORMAL
    assert result.skip_llm is False
    assert result.max_overall_score == 10.0

    print("[PASS] Normal transcript test passed")


# =============================================================================
# DETECTOR
# =============================================================================

def test_detector_length_rules():
    transcript = create_test_transcript(150)

    assert detect_speech_classification(transcript, 300, 150) is Classification.NORMAL
    assert detect_speech_classification(transcript, 45, 150) is Classification.TOO_SHORT
    assert detect_speech_classification(transcript, 300, 80) is Classification.TOO_SHORT
    # Unknown duration is not short
    assert detect_speech_classification(transcript, 0, 150) is Classification.NORMAL

    print("[PASS] Detector length test passed")


def test_detector_nonsense():
    transcript = "blah " * 150
    assert detect_speech_classification(transcript, 300, 150) is Classification.NONSENSE

    print("[PASS] Detector nonsense test passed")


def test_resolve_classification():
    """Server too_short/nonsense win; otherwise the model's valid claim stands."""
    assert resolve_classification(Classification.NORMAL, Classification.TOO_SHORT) is Classification.TOO_SHORT
    assert resolve_classification(Classification.NORMAL, Classification.NONSENSE) is Classification.NONSENSE
    assert resolve_classification(Classification.OFF_TOPIC, Classification.NORMAL) is Classification.OFF_TOPIC
    assert resolve_classification(None, Classification.NORMAL) is Classification.NORMAL

    print("[PASS] Resolve classification test passed")


def run_all_tests():
    """Run all classification tests."""
    print("\n" + "="*60)
    print("CLASSIFICATION TESTS")
    print("="*60 + "\n")

    test_too_few_words()
    test_short_recording()
    test_low_diversity_is_nonsense()
    test_repeated_phrases_are_nonsense()
    test_non_words_are_nonsense()
    test_off_topic()
    test_mostly_off_topic()
    test_topic_rules_need_keywords()
    test_low_word_count_cap()
    test_normal_transcript()
    test_detector_length_rules()
    test_detector_nonsense()
    test_resolve_classification()

    print("\n" + "="*60)
    print("ALL CLASSIFICATION TESTS PASSED")
    print("="*60 + "\n")


if __name__ == "__main__":
    run_all_tests()
