"""
Classification Package
======================
Deterministic transcript classifiers.

Usage:
    from ballot.classification import classify_transcript, detect_speech_classification
"""

from .heuristic import classify_transcript
from .detector import detect_speech_classification, resolve_classification

__all__ = [
    'classify_transcript',
    'detect_speech_classification',
    'resolve_classification',
]
