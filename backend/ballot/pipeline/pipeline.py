"""
Speech Judge Pipeline Module
============================
Main pipeline class that composes and runs all analysis stages.

Usage:
    from ballot.pipeline import SpeechJudgePipeline
    from ballot.models import AnalysisRequest

    pipeline = SpeechJudgePipeline()
    response = pipeline.run(AnalysisRequest(video_path, theme, quote))

    # Score a transcript that is already available
    response = pipeline.analyze_transcript(transcript, theme, quote, duration_seconds=300)
"""

import logging
import time
from typing import List, Optional

from .base import PipelineStage
from .context import AnalysisContext
from .stages import (
    MediaProbeStage,
    AudioExtractionStage,
    TranscriptionStage,
    IntegrityStage,
    HeuristicPrecheckStage,
    JudgeStage,
    NormalizationStage,
    RubricEnforcementStage,
    PrioritySelectionStage,
)
from ..config import AppConfig, get_config
from ..features import TranscriptIntegrityTracker
from ..logging_config import get_pipeline_logger
from ..models import AnalysisRequest, AnalysisResponse
from ..services.gateway import GeminiGateway
from ..services.json_recovery import JsonRecovery
from ..services.transcription_service import TranscriptionService

logger = logging.getLogger(__name__)


class SpeechJudgePipeline:
    """
    Judges recorded speeches end to end.

    One instance is meant to live for the whole process: it owns the
    gateway and the transcript integrity tracker, whose hash counts span
    requests. Both can be injected.
    """

    def __init__(
        self,
        gateway=None,
        integrity_tracker: Optional[TranscriptIntegrityTracker] = None,
        config: Optional[AppConfig] = None
    ):
        self.config = config or get_config()
        self.gateway = gateway or GeminiGateway()
        self.integrity_tracker = integrity_tracker or TranscriptIntegrityTracker()
        recovery = JsonRecovery(self.gateway)

        self.media_stages: List[PipelineStage] = [
            MediaProbeStage(),
            AudioExtractionStage(),
            TranscriptionStage(TranscriptionService(self.gateway, recovery)),
        ]
        self.scoring_stages: List[PipelineStage] = [
            IntegrityStage(self.integrity_tracker),
            HeuristicPrecheckStage(),
            JudgeStage(self.gateway, recovery),
            NormalizationStage(),
            RubricEnforcementStage(),
            PrioritySelectionStage(),
        ]

    @property
    def stages(self) -> List[PipelineStage]:
        return self.media_stages + self.scoring_stages

    @property
    def stage_names(self) -> List[str]:
        return [stage.name for stage in self.stages]

    def _run_stages(self, context: AnalysisContext, stages: List[PipelineStage]) -> AnalysisResponse:
        log = get_pipeline_logger(context.request_id)
        log.info(f"Starting analysis for {context.request.video_filename}")
        start_time = time.time()

        for stage in stages:
            stage.run(context)
            if context.is_finished:
                log.info(f"Analysis settled at stage: {stage.name}")
                break

        response = context.finalize()
        log.info(
            f"Analysis completed in {time.time() - start_time:.2f}s "
            f"(success={response.success})"
        )
        return response

    def run(self, request: AnalysisRequest) -> AnalysisResponse:
        """
        Analyze one recorded speech.

        Args:
            request: Recording path, theme, quote and optional duration hint

        Returns:
            AnalysisResponse; never raises for model, media or parse failures
        """
        context = AnalysisContext(request=request, config=self.config)
        return self._run_stages(context, self.stages)

    def analyze_transcript(
        self,
        transcript: str,
        theme: str = "",
        quote: str = "",
        duration_seconds: float = 0.0,
        video_path: str = ""
    ) -> AnalysisResponse:
        """
        Score an existing transcript without touching media.

        The judge sees the transcript only (no audio or video part).
        """
        request = AnalysisRequest(
            video_path=video_path,
            theme=theme,
            quote=quote,
            duration_seconds_hint=duration_seconds,
        )
        context = AnalysisContext(request=request, config=self.config)
        context.duration_seconds = duration_seconds or 0.0
        context.transcript = (transcript or "").strip()
        context.video_usable = False
        return self._run_stages(context, self.scoring_stages)
