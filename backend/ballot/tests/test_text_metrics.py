"""
Text Metrics Tests
==================
Verifies transcript statistics and the integrity tracker.
"""

import os
import sys

# Add parent to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from ballot.features import (
    word_count,
    filler_stats,
    lexical_diversity,
    ngram_repetition,
    non_word_ratio,
    extract_keywords,
    keyword_overlap,
    format_duration,
    words_per_minute,
    content_hash,
    TranscriptIntegrityTracker,
)


def create_test_transcript(words: int = 60) -> str:
    """Distinct tokens so no repetition heuristics fire."""
    return " ".join(f"point{i}" for i in range(words))


# =============================================================================
# BASIC STATISTICS
# =============================================================================

def test_word_count():
    assert word_count("") == 0
    assert word_count(None) == 0
    assert word_count("  one   two\nthree ") == 3

    print("[PASS] Word count test passed")


def test_filler_stats():
    """Multi-word fillers match as phrases; zero-hit fillers are omitted."""
    total, breakdown = filler_stats("Um, so I think, like, you know, it is kind of um important")

    assert breakdown["um"] == 2
    assert breakdown["you know"] == 1
    assert breakdown["kind of"] == 1
    assert "basically" not in breakdown
    assert total == sum(breakdown.values())

    assert filler_stats("") == (0, {})

    print("[PASS] Filler stats test passed")


def test_filler_whole_words_only():
    """Fillers inside longer words are not counted."""
    total, breakdown = filler_stats("Summary: the likeness is uncanny")
    assert total == 0
    assert breakdown == {}

    print("[PASS] Filler whole-word test passed")


def test_lexical_diversity():
    assert lexical_diversity("") == 0.0
    assert lexical_diversity("a b c d") == 1.0
    assert lexical_diversity("same same same same") == 0.25

    print("[PASS] Lexical diversity test passed")


def test_ngram_repetition():
    """A looped phrase scores high; distinct tokens score zero."""
    assert ngram_repetition(create_test_transcript(40)) == 0.0
    assert ngram_repetition("one two three " * 10) > 0.3
    assert ngram_repetition("") == 0.0

    print("[PASS] N-gram repetition test passed")


def test_non_word_ratio():
    assert non_word_ratio("hello world") == 0.0
    assert non_word_ratio("xkcdq hello aaaa world") == 0.5

    print("[PASS] Non-word ratio test passed")


def test_keywords_and_overlap():
    """Stop words and short words are dropped; partial matches score half."""
    keywords = extract_keywords("The courage of leaders, and the courage to act!")
    assert keywords == ["courage", "leaders", "act"]

    assert keyword_overlap(["courage", "leadership"], []) == 1.0
    # "courage": exact + contained = 1.5; "leader": contained in "leadership" = 0.5
    assert keyword_overlap(["courage", "leadership"], ["courage", "leader"]) == 1.0
    assert keyword_overlap(["pizza"], ["courage", "leader"]) == 0.0

    print("[PASS] Keyword overlap test passed")


# =============================================================================
# DURATION HELPERS
# =============================================================================

def test_format_duration():
    assert format_duration(0) == "0:00"
    assert format_duration(45) == "0:45"
    assert format_duration(312.4) == "5:12"
    assert format_duration(None) == "0:00"

    print("[PASS] Format duration test passed")


def test_words_per_minute():
    assert words_per_minute(300, 120) == 150
    # Unknown duration is treated as one second
    assert words_per_minute(10, 0) == 600

    print("[PASS] Words per minute test passed")


# =============================================================================
# INTEGRITY TRACKER
# =============================================================================

def test_integrity_metadata():
    """Hash, counts and plausibility flags for a normal transcript."""
    tracker = TranscriptIntegrityTracker()
    transcript = create_test_transcript(60)

    integrity = tracker.compute(transcript)
    assert integrity.word_count == 60
    assert integrity.char_length == len(transcript)
    assert integrity.sha256 == content_hash(transcript)
    assert not integrity.is_suspicious
    assert integrity.suspicious_reason is None

    print("[PASS] Integrity metadata test passed")


def test_integrity_repeat_detection():
    """The third sighting of the same transcript is suspicious."""
    tracker = TranscriptIntegrityTracker(repeat_threshold=3)
    transcript = create_test_transcript(60)

    assert not tracker.compute(transcript).is_suspicious
    assert not tracker.compute(transcript).is_suspicious
    third = tracker.compute(transcript)
    assert third.is_suspicious
    assert "repeated 3 times" in third.suspicious_reason
    assert tracker.seen_count(third.sha256) == 3

    print("[PASS] Integrity repeat test passed")


def test_integrity_low_counts():
    """Short but non-empty transcripts are flagged; empty ones are not."""
    tracker = TranscriptIntegrityTracker()

    short = tracker.compute("just a few words here")
    assert short.is_suspicious
    assert "Word count suspiciously low (5)" in short.suspicious_reason
    assert "Character count suspiciously low" in short.suspicious_reason

    empty = tracker.compute("   ")
    assert empty.word_count == 0
    assert not empty.is_suspicious

    print("[PASS] Integrity low-count test passed")


def test_tracker_is_bounded():
    """The oldest hash is evicted once the store is full."""
    tracker = TranscriptIntegrityTracker(max_entries=2)
    first = content_hash("first")

    tracker.record(first)
    tracker.record(content_hash("second"))
    tracker.record(content_hash("third"))

    assert len(tracker) == 2
    assert tracker.seen_count(first) == 0

    tracker.clear()
    assert len(tracker) == 0

    print("[PASS] Bounded tracker test passed")


def test_trackers_are_independent():
    """Injected trackers do not share state."""
    a = TranscriptIntegrityTracker()
    b = TranscriptIntegrityTracker()
    sha = content_hash("shared transcript")

    a.record(sha)
    assert a.seen_count(sha) == 1
    assert b.seen_count(sha) == 0

    print("[PASS] Independent trackers test passed")


def run_all_tests():
    """Run all text metric tests."""
    print("\n" + "="*60)
    print("TEXT METRICS TESTS")
    print("="*60 + "\n")

    test_word_count()
    test_filler_stats()
    test_filler_whole_words_only()
    test_lexical_diversity()
    test_ngram_repetition()
    test_non_word_ratio()
    test_keywords_and_overlap()
    test_format_duration()
    test_words_per_minute()
    test_integrity_metadata()
    test_integrity_repeat_detection()
    test_integrity_low_counts()
    test_tracker_is_bounded()
    test_trackers_are_independent()

    print("\n" + "="*60)
    print("ALL TEXT METRICS TESTS PASSED")
    print("="*60 + "\n")


if __name__ == "__main__":
    run_all_tests()
