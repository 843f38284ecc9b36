"""
Feature Extraction Package
==========================
Transcript statistics used by the classifiers and the rubric enforcer.

Usage:
    from ballot.features import word_count, filler_stats, TranscriptIntegrityTracker
"""

from .text_metrics import (
    FILLER_WORDS,
    STOP_WORDS,
    tokenize,
    word_count,
    filler_stats,
    lexical_diversity,
    ngram_repetition,
    is_non_word,
    non_word_ratio,
    extract_keywords,
    keyword_overlap,
    format_duration,
    words_per_minute,
    content_hash,
    TranscriptIntegrityTracker,
)

__all__ = [
    'FILLER_WORDS',
    'STOP_WORDS',
    'tokenize',
    'word_count',
    'filler_stats',
    'lexical_diversity',
    'ngram_repetition',
    'is_non_word',
    'non_word_ratio',
    'extract_keywords',
    'keyword_overlap',
    'format_duration',
    'words_per_minute',
    'content_hash',
    'TranscriptIntegrityTracker',
]
