"""
Pipeline Context Module
=======================
Defines the shared context that flows through all analysis stages.

The AnalysisContext holds:
- The request (recording path, theme, quote, duration hint)
- Media decisions (measured duration, analysis copy, audio-only fallback)
- Transcript, integrity metadata and heuristic classification
- The typed analysis as it is normalized and enforced
- The final AnalysisResponse, set early by any stage that short-circuits
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ..config import AppConfig, get_config
from ..models import (
    AnalysisRequest,
    AnalysisResponse,
    ErrorDetails,
    ErrorType,
    HeuristicClassification,
    ParseMetrics,
    SpeechAnalysis,
    TranscriptIntegrity,
    generate_request_id,
)

logger = logging.getLogger(__name__)


@dataclass
class StageResult:
    """Result of a single stage execution."""
    stage_name: str
    success: bool
    duration_seconds: float
    error_message: Optional[str] = None
    output_summary: Optional[str] = None


@dataclass
class AnalysisContext:
    """
    Shared state for one analysis request.

    Each stage reads what it needs and writes its outputs. A stage that
    settles the outcome early stores it in ``response``; the pipeline stops
    running stages once a response is present.
    """

    request: AnalysisRequest
    config: AppConfig = field(default_factory=get_config)

    # Media
    duration_seconds: float = 0.0
    analysis_video_path: Optional[str] = None
    video_usable: bool = True
    audio_path: Optional[str] = None
    video_included: bool = False
    analysis_warning: Optional[str] = None

    # Transcript
    transcript: str = ""
    transcript_integrity: Optional[TranscriptIntegrity] = None
    heuristic: Optional[HeuristicClassification] = None

    # Judge output
    raw_analysis: Optional[dict] = None
    analysis: Optional[SpeechAnalysis] = None
    parse_metrics: Optional[ParseMetrics] = None

    # Outcome and tracking
    response: Optional[AnalysisResponse] = None
    request_id: str = ""
    stage_results: List[StageResult] = field(default_factory=list)
    started_at: Optional[str] = None
    completed_at: Optional[str] = None

    def __post_init__(self):
        self.started_at = datetime.now().isoformat()
        if not self.request_id:
            self.request_id = generate_request_id(self.request.video_filename)
        if self.analysis_video_path is None:
            self.analysis_video_path = self.request.video_path

    @property
    def best_duration_seconds(self) -> float:
        """Measured duration, else the client hint, else 0 (unknown)."""
        if self.duration_seconds and self.duration_seconds > 0:
            return self.duration_seconds
        hint = self.request.duration_seconds_hint
        return hint if hint and hint > 0 else 0.0

    @property
    def is_finished(self) -> bool:
        return self.response is not None

    @property
    def total_duration_seconds(self) -> float:
        return sum(r.duration_seconds for r in self.stage_results)

    @property
    def failed_stages(self) -> List[str]:
        return [r.stage_name for r in self.stage_results if not r.success]

    def record_stage(
        self,
        stage_name: str,
        success: bool,
        duration: float,
        error: Optional[str] = None,
        summary: Optional[str] = None
    ) -> None:
        """Record the result of a stage execution."""
        self.stage_results.append(StageResult(
            stage_name=stage_name,
            success=success,
            duration_seconds=duration,
            error_message=error,
            output_summary=summary
        ))

        if success:
            logger.info(f"Stage '{stage_name}' completed in {duration:.2f}s: {summary or 'OK'}")
        else:
            logger.error(f"Stage '{stage_name}' failed after {duration:.2f}s: {error}")

    # -------------------------------------------------------------------------
    # Outcomes
    # -------------------------------------------------------------------------

    def succeed(self, analysis: SpeechAnalysis) -> AnalysisResponse:
        """Finish with a scored (or guarded) analysis."""
        self.response = AnalysisResponse(
            success=True,
            transcript=self.transcript,
            analysis=analysis,
            transcript_integrity=self.transcript_integrity,
            parse_metrics=self.parse_metrics,
            analysis_warning=self.analysis_warning,
        )
        return self.response

    def fail(
        self,
        error_type: ErrorType,
        message: str,
        raw_model_output: Optional[str] = None
    ) -> AnalysisResponse:
        """Finish with a typed failure. Default scores are never substituted."""
        self.response = AnalysisResponse(
            success=False,
            transcript=self.transcript,
            error=message,
            error_details=ErrorDetails(type=error_type, message=message, raw_model_output=raw_model_output),
            transcript_integrity=self.transcript_integrity,
            parse_metrics=self.parse_metrics,
            analysis_warning=self.analysis_warning,
        )
        return self.response

    def finalize(self) -> AnalysisResponse:
        """Return the response, succeeding with the current analysis if none was set."""
        self.completed_at = datetime.now().isoformat()
        if self.response is None:
            if self.analysis is None:
                return self.fail(ErrorType.MODEL_ERROR, "Analysis failed: no analysis was produced.")
            self.succeed(self.analysis)
        return self.response
