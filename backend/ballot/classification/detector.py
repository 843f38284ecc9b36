"""
Duration-aware speech classifier used to arbitrate the judge's self-report.
"""

import re
from collections import Counter
from typing import Optional

from ..models import Classification
from ..features import tokenize

MIN_DURATION_SECONDS = 60
MIN_WORDS = 100
MIN_TOKENS = 50

MIN_UNIQUE_RATIO = 0.20
MAX_OVER_REPEATED_RATIO = 0.30
OVER_REPEATED_COUNT = 5
MAX_TRIPLE_REPEATS = 2

_CONNECTIVES = re.compile(
    r'\b(because|therefore|however|although|furthermore|consequently|moreover|'
    r'thus|hence|since|as a result|in conclusion|first|second|third|finally)\b',
    re.IGNORECASE,
)
_TRIPLE_REPEAT = re.compile(r'(\b\w+\b)\s+\1\s+\1', re.IGNORECASE)


def detect_speech_classification(transcript: str, duration_seconds: float, word_count: int) -> Classification:
    """
    Coarse classification from length and coherence signals.

    Only ever returns too_short, nonsense or normal; topic relevance is
    left to the heuristic classifier and the judge. An unknown duration
    (zero) does not count as short.
    """
    if 0 < duration_seconds < MIN_DURATION_SECONDS or word_count < MIN_WORDS:
        return Classification.TOO_SHORT

    tokens = tokenize(transcript)
    if len(tokens) < MIN_TOKENS:
        return Classification.TOO_SHORT

    counts = Counter(tokens)
    unique_ratio = len(counts) / len(tokens)
    has_connectives = bool(_CONNECTIVES.search(transcript))
    excessive_repetition = len(_TRIPLE_REPEAT.findall(transcript)) > MAX_TRIPLE_REPEATS
    over_repeated_ratio = sum(1 for c in counts.values() if c > OVER_REPEATED_COUNT) / len(counts)

    if unique_ratio < MIN_UNIQUE_RATIO and len(tokens) > MIN_WORDS:
        return Classification.NONSENSE
    if excessive_repetition and not has_connectives:
        return Classification.NONSENSE
    if over_repeated_ratio > MAX_OVER_REPEATED_RATIO and not has_connectives:
        return Classification.NONSENSE

    return Classification.NORMAL


def resolve_classification(
    model_claim: Optional[Classification],
    server_classification: Classification
) -> Classification:
    """
    Combine the judge's self-reported class with the server detector.

    Server too_short/nonsense always win. Otherwise a valid model claim is
    used, falling back to the server result.
    """
    if server_classification in (Classification.TOO_SHORT, Classification.NONSENSE):
        return server_classification
    if model_claim is not None:
        return model_claim
    return server_classification
