"""
Text Metrics Module
===================
Pure string statistics over a speech transcript.

Metrics computed:
- Word counts (whitespace tokens)
- Filler-expression totals and per-expression breakdown
- Lexical diversity and n-gram repetition
- Topic keywords after stop-word removal
- Integrity metadata (sha256 plus a repeat counter)

Everything here is deterministic except TranscriptIntegrityTracker, which
owns the process-lifetime hash-frequency store.
"""

import re
import hashlib
import logging
import threading
from collections import Counter, OrderedDict
from typing import Optional, List, Dict, Tuple

from ..models import TranscriptIntegrity
from ..config import get_config

logger = logging.getLogger(__name__)


# =============================================================================
# LEXICONS
# =============================================================================

# Filler expressions; multi-word entries only match as contiguous phrases
FILLER_WORDS: Tuple[str, ...] = (
    'um', 'uh', 'like', 'you know', 'so', 'basically',
    'actually', 'literally', 'kind of', 'sort of',
)

_FILLER_PATTERNS = {
    filler: re.compile(r'\b' + r'\s+'.join(re.escape(w) for w in filler.split()) + r'\b')
    for filler in FILLER_WORDS
}

STOP_WORDS = frozenset({
    'the', 'a', 'an', 'is', 'are', 'was', 'were', 'be', 'been', 'being',
    'have', 'has', 'had', 'do', 'does', 'did', 'will', 'would', 'could',
    'should', 'may', 'might', 'must', 'shall', 'can', 'need', 'dare',
    'to', 'of', 'in', 'for', 'on', 'with', 'at', 'by', 'from', 'as',
    'into', 'through', 'during', 'before', 'after', 'above', 'below',
    'between', 'under', 'again', 'further', 'then', 'once', 'here',
    'there', 'when', 'where', 'why', 'how', 'all', 'each', 'few', 'more',
    'most', 'other', 'some', 'such', 'no', 'nor', 'not', 'only', 'own',
    'same', 'so', 'than', 'too', 'very', 'just', 'and', 'but', 'if', 'or',
    'because', 'until', 'while', 'although', 'however', 'this', 'that',
    'these', 'those', 'i', 'me', 'my', 'myself', 'we', 'our', 'ours',
    'ourselves', 'you', 'your', 'yours', 'yourself', 'yourselves', 'he',
    'him', 'his', 'himself', 'she', 'her', 'hers', 'herself', 'it', 'its',
    'itself', 'they', 'them', 'their', 'theirs', 'themselves', 'what',
    'which', 'who', 'whom', 'whose', 'about', 'said', 'says',
})

# 5+ letters with no vowel, or one character repeated 4+ times
_NON_WORD = re.compile(r'^[^aeiou]{5,}$|^(.)\1{3,}$')
_PUNCTUATION = re.compile(r'[^\w\s]')


# =============================================================================
# BASIC STATISTICS
# =============================================================================

def tokenize(text: str) -> List[str]:
    """Lowercased whitespace tokens."""
    return (text or "").lower().split()


def word_count(text: str) -> int:
    """Number of non-empty whitespace-separated tokens."""
    return len((text or "").split())


def filler_stats(text: str) -> Tuple[int, Dict[str, int]]:
    """
    Count filler expressions case-insensitively.

    Returns:
        (total, breakdown) where breakdown omits expressions with zero hits
    """
    lowered = (text or "").lower()
    breakdown = {}
    for filler, pattern in _FILLER_PATTERNS.items():
        count = len(pattern.findall(lowered))
        if count:
            breakdown[filler] = count
    return sum(breakdown.values()), breakdown


def lexical_diversity(text: str) -> float:
    """Unique tokens divided by total tokens (0.0 for empty text)."""
    tokens = tokenize(text)
    if not tokens:
        return 0.0
    return len(set(tokens)) / len(tokens)


def ngram_repetition(text: str) -> float:
    """
    Share of repeated n-gram patterns.

    (bigrams seen 3+ times + 2 * trigrams seen 3+ times) divided by the
    number of distinct bigrams and trigrams.
    """
    tokens = tokenize(text)
    bigrams = Counter(zip(tokens, tokens[1:]))
    trigrams = Counter(zip(tokens, tokens[1:], tokens[2:]))

    distinct = len(bigrams) + len(trigrams)
    if distinct == 0:
        return 0.0

    repeated_bigrams = sum(1 for c in bigrams.values() if c >= 3)
    repeated_trigrams = sum(1 for c in trigrams.values() if c >= 3)
    return (repeated_bigrams + 2 * repeated_trigrams) / distinct


def is_non_word(token: str) -> bool:
    return bool(_NON_WORD.match(token)) or len(token) > 20


def non_word_ratio(text: str) -> float:
    tokens = tokenize(text)
    if not tokens:
        return 0.0
    return sum(1 for t in tokens if is_non_word(t)) / len(tokens)


def extract_keywords(text: str) -> List[str]:
    """Distinct lowercased tokens longer than two characters that are not stop words."""
    cleaned = _PUNCTUATION.sub(' ', (text or "").lower())
    return list(dict.fromkeys(w for w in cleaned.split() if len(w) > 2 and w not in STOP_WORDS))


def keyword_overlap(transcript_keywords: List[str], topic_keywords: List[str]) -> float:
    """
    Weighted overlap of topic keywords found in the transcript.

    Each topic keyword earns 1.0 for an exact match plus 0.5 when any
    transcript keyword contains it or is contained by it. The sum is divided
    by the number of topic keywords; no topic keywords means full overlap.
    """
    if not topic_keywords:
        return 1.0

    transcript_set = set(transcript_keywords)
    overlap = 0.0
    for keyword in topic_keywords:
        if keyword in transcript_set:
            overlap += 1.0
        if any(keyword in word or word in keyword for word in transcript_keywords):
            overlap += 0.5
    return overlap / len(topic_keywords)


# =============================================================================
# DURATION AND RATE HELPERS
# =============================================================================

def format_duration(seconds: float) -> str:
    """Format seconds as m:ss (rounded to the nearest second)."""
    total = max(0, int(round(seconds or 0)))
    return f"{total // 60}:{total % 60:02d}"


def words_per_minute(words: int, duration_seconds: float) -> int:
    return int(round(words / max(duration_seconds or 0, 1) * 60))


def content_hash(text: str) -> str:
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


# =============================================================================
# INTEGRITY TRACKING
# =============================================================================

class TranscriptIntegrityTracker:
    """
    Computes integrity metadata and remembers how often each transcript
    hash has been seen.

    The frequency store is a bounded LRU held in memory by the owning
    service. It is a soft anti-reuse signal: it resets on restart and an
    evicted hash simply starts counting again.
    """

    def __init__(
        self,
        repeat_threshold: Optional[int] = None,
        max_entries: Optional[int] = None,
        min_plausible_words: Optional[int] = None,
        min_plausible_chars: Optional[int] = None
    ):
        config = get_config().integrity
        self.repeat_threshold = repeat_threshold or config.repeat_threshold
        self.max_entries = max_entries or config.max_tracked_hashes
        self.min_plausible_words = min_plausible_words or config.min_plausible_words
        self.min_plausible_chars = min_plausible_chars or config.min_plausible_chars

        self._counts: "OrderedDict[str, int]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._counts)

    def seen_count(self, sha256: str) -> int:
        with self._lock:
            return self._counts.get(sha256, 0)

    def record(self, sha256: str) -> int:
        """Increment and return the count for a hash."""
        with self._lock:
            count = self._counts.pop(sha256, 0) + 1
            self._counts[sha256] = count
            while len(self._counts) > self.max_entries:
                self._counts.popitem(last=False)
            return count

    def clear(self) -> None:
        with self._lock:
            self._counts.clear()

    def compute(self, transcript: str) -> TranscriptIntegrity:
        """Compute integrity metadata for a transcript and record its hash."""
        text = (transcript or "").strip()
        words = word_count(text)
        chars = len(text)
        sha = content_hash(text)
        count = self.record(sha)

        reasons = []
        if count >= self.repeat_threshold:
            reasons.append(f"Transcript hash repeated {count} times across sessions")
        if 0 < words < self.min_plausible_words:
            reasons.append(f"Word count suspiciously low ({words})")
        if 0 < chars < self.min_plausible_chars:
            reasons.append(f"Character count suspiciously low ({chars})")

        if reasons:
            logger.warning(
                "Suspicious transcript",
                extra={'sha256_prefix': sha[:16], 'reason': "; ".join(reasons)}
            )

        return TranscriptIntegrity(
            word_count=words,
            char_length=chars,
            sha256=sha,
            is_suspicious=bool(reasons),
            suspicious_reason="; ".join(reasons) if reasons else None,
        )
