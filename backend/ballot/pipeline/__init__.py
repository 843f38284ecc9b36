"""
Pipeline Package
================
Stage-based analysis of one recorded speech.

This package provides:
- Individual stages (media, transcription, integrity, heuristics, judge, scoring)
- A composed pipeline that runs them in sequence and always returns a response
- Per-stage timing and logging

Usage:
    from ballot.pipeline import SpeechJudgePipeline

    pipeline = SpeechJudgePipeline()
    response = pipeline.run(request)
"""

from .context import AnalysisContext, StageResult
from .base import PipelineStage, ConditionalStage
from .pipeline import SpeechJudgePipeline

__all__ = [
    'AnalysisContext',
    'StageResult',
    'PipelineStage',
    'ConditionalStage',
    'SpeechJudgePipeline',
]
