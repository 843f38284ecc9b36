"""
Heuristic Transcript Classifier
===============================
Labels a transcript before any judge call is made.

Rules run in a fixed order and the first match wins:
1. Under 25 words                     -> too_short, skip judge, cap 2.5
1b. Known duration under 60 seconds   -> too_short, skip judge, cap 2.5
2. Lexical diversity < 15% (>50 words) -> nonsense, skip judge, cap 2.5
3. N-gram repetition > 30% (>50 words) -> nonsense, skip judge, cap 2.5
4. Non-word ratio > 20% (>30 words)    -> nonsense, skip judge, cap 2.5
5. Topic overlap < 10%                 -> off_topic, skip judge, cap 2.5
6. Topic overlap < 25%                 -> mostly_off_topic, judge runs, cap 6.0
7. Under 75 words                      -> normal, judge runs, cap 3.0
8. Otherwise                           -> normal, no cap

Topic rules need at least 3 topic keywords and more than 50 transcript tokens.
"""

import logging
from typing import Optional

from ..models import Classification, HeuristicClassification
from ..features import (
    tokenize,
    word_count,
    lexical_diversity,
    ngram_repetition,
    non_word_ratio,
    extract_keywords,
    keyword_overlap,
)

logger = logging.getLogger(__name__)


# =============================================================================
# THRESHOLDS
# =============================================================================

MIN_WORDS = 25
MIN_DURATION_SECONDS = 60
LOW_WORD_COUNT = 75

MIN_LEXICAL_DIVERSITY = 0.15
MAX_REPETITION_RATIO = 0.30
MAX_NON_WORD_RATIO = 0.20
STATISTICS_MIN_TOKENS = 50
NON_WORD_MIN_TOKENS = 30

OFF_TOPIC_OVERLAP = 0.10
MOSTLY_OFF_TOPIC_OVERLAP = 0.25
MIN_TOPIC_KEYWORDS = 3

SEVERE_CAP = 2.5
MOSTLY_OFF_TOPIC_CAP = 6.0
LOW_WORD_COUNT_CAP = 3.0
NO_CAP = 10.0


def _skip(classification: Classification, reason: str) -> HeuristicClassification:
    return HeuristicClassification(
        classification=classification,
        skip_llm=True,
        max_overall_score=SEVERE_CAP,
        reason=reason,
    )


def classify_transcript(
    transcript: str,
    theme: str = "",
    quote: str = "",
    duration_seconds: Optional[float] = None
) -> HeuristicClassification:
    """
    Classify a transcript with deterministic text heuristics.

    Args:
        transcript: Final transcript text
        theme: Round theme
        quote: Prompt quote the speaker was given
        duration_seconds: Measured recording length, when known

    Returns:
        HeuristicClassification with the label, skip flag, cap and a reason
    """
    words = word_count(transcript)

    if words < MIN_WORDS:
        return _skip(
            Classification.TOO_SHORT,
            f"Transcript too short: {words} words (minimum {MIN_WORDS} required)",
        )

    if duration_seconds and 0 < duration_seconds < MIN_DURATION_SECONDS:
        return _skip(
            Classification.TOO_SHORT,
            f"Recording too short: {duration_seconds:.0f}s (minimum {MIN_DURATION_SECONDS}s required)",
        )

    tokens = tokenize(transcript)

    diversity = lexical_diversity(transcript)
    if diversity < MIN_LEXICAL_DIVERSITY and len(tokens) > STATISTICS_MIN_TOKENS:
        return _skip(
            Classification.NONSENSE,
            f"Very low lexical diversity ({diversity * 100:.1f}% unique words)",
        )

    repetition = ngram_repetition(transcript)
    if repetition > MAX_REPETITION_RATIO and len(tokens) > STATISTICS_MIN_TOKENS:
        return _skip(
            Classification.NONSENSE,
            f"High n-gram repetition detected ({repetition * 100:.1f}% repeated patterns)",
        )

    non_words = non_word_ratio(transcript)
    if non_words > MAX_NON_WORD_RATIO and len(tokens) > NON_WORD_MIN_TOKENS:
        return _skip(
            Classification.NONSENSE,
            f"High non-word ratio ({non_words * 100:.1f}% non-words)",
        )

    topic_keywords = list(dict.fromkeys(extract_keywords(theme) + extract_keywords(quote)))
    overlap = keyword_overlap(extract_keywords(transcript), topic_keywords)
    topic_checked = len(topic_keywords) >= MIN_TOPIC_KEYWORDS and len(tokens) > STATISTICS_MIN_TOKENS

    if topic_checked and overlap < OFF_TOPIC_OVERLAP:
        return _skip(
            Classification.OFF_TOPIC,
            f"Extremely low topic relevance ({overlap * 100:.1f}% keyword overlap)",
        )

    if topic_checked and overlap < MOSTLY_OFF_TOPIC_OVERLAP:
        return HeuristicClassification(
            classification=Classification.MOSTLY_OFF_TOPIC,
            skip_llm=False,
            max_overall_score=MOSTLY_OFF_TOPIC_CAP,
            reason=f"Low topic relevance ({overlap * 100:.1f}% keyword overlap)",
        )

    if words < LOW_WORD_COUNT:
        return HeuristicClassification(
            classification=Classification.NORMAL,
            skip_llm=False,
            max_overall_score=LOW_WORD_COUNT_CAP,
            reason=f"Low word count ({words} words) - score capped",
        )

    return HeuristicClassification(
        classification=Classification.NORMAL,
        skip_llm=False,
        max_overall_score=NO_CAP,
        reason="Transcript passes heuristic checks",
    )
