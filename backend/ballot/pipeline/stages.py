"""
Pipeline Stages Module
======================
Implements the individual stages of one speech analysis.

Stages:
1. MediaProbeStage - Measure duration and pick the analysis copy of the recording
2. AudioExtractionStage - Check for an audio stream and extract PCM16 WAV
3. TranscriptionStage - Transcribe the WAV with model fallback
4. IntegrityStage - Hash and sanity-check the transcript
5. HeuristicPrecheckStage - Classify the transcript; skip the judge when hopeless
6. JudgeStage - Call the judge model and recover its JSON
7. NormalizationStage - Rescale scores onto 0-10 and reweight categories
8. RubricEnforcementStage - Length penalties, caps, readiness, measured stats
9. PrioritySelectionStage - Rank the three improvement items

Stages 1-5 need real media and a transcriber; stages 4-9 also run on a
supplied transcript (see SpeechJudgePipeline.analyze_transcript).
"""

import os
import logging
from typing import Optional

from .base import PipelineStage, ConditionalStage
from .context import AnalysisContext
from ..classification import classify_transcript
from ..features import TranscriptIntegrityTracker
from ..logging_config import log_pipeline_decision
from ..models import ErrorType, SpeechAnalysis
from ..scoring import (
    MeasuredStats,
    PriorityContext,
    PrioritySelector,
    RubricContext,
    RubricEnforcer,
    ScoreNormalizer,
    apply_measured_stats,
    build_insufficient_speech_analysis,
)
from ..services.gateway import MediaPart, Sampling
from ..services.json_recovery import JsonRecovery
from ..services.prompts import ANALYSIS_REPAIR_SCHEMA, JUDGE_SYSTEM_INSTRUCTION, build_judge_prompt
from ..services.transcription_service import TranscriptionService
from ..utils.media_utils import (
    MediaError,
    compress_video,
    extract_audio_wav,
    file_size_mb,
    get_duration_seconds,
    has_audio_stream,
    mime_type_for,
)

logger = logging.getLogger(__name__)

NO_AUDIO_REASON = (
    "No audio stream detected in recording (microphone permissions or browser recording settings)."
)
MISSING_FILE_REASON = "Recording file not found."
COMPRESSION_FALLBACK_WARNING = "Video compression failed; using original video. Analysis may be less detailed."
AUDIO_ONLY_WARNING = (
    "Video compression failed and original too large. Using audio-only analysis; "
    "body language scores are estimates."
)
PARSE_FAILURE_MESSAGE = "Analysis failed: Model returned invalid JSON that could not be parsed or repaired."
MISSING_API_KEY_MESSAGE = "GEMINI_API_KEY not found in environment variables."


def finish_with_fallback(context: AnalysisContext, reason: str) -> None:
    """Settle the request with the insufficient-speech analysis."""
    log_pipeline_decision("insufficient_speech", {'reason': reason}, request_id=context.request_id)
    context.succeed(build_insufficient_speech_analysis(context.best_duration_seconds, reason))


def require_configured_gateway(context: AnalysisContext, gateway) -> bool:
    """Fail the request with a model error when no API key is configured."""
    if getattr(gateway, 'configured', True):
        return True
    context.fail(ErrorType.MODEL_ERROR, MISSING_API_KEY_MESSAGE)
    return False


# =============================================================================
# STAGE 1: MEDIA PROBE
# =============================================================================

class MediaProbeStage(PipelineStage):
    """
    Measure the recording and choose what the judge will see.

    Reads:
        - context.request
    Writes:
        - context.duration_seconds
        - context.analysis_video_path, context.video_usable
        - context.analysis_warning
    """

    @property
    def name(self) -> str:
        return "media_probe"

    @property
    def description(self) -> str:
        return "Measure duration and prepare a compressed analysis copy of large recordings"

    @property
    def error_type(self) -> ErrorType:
        return ErrorType.TRANSCRIPTION_ERROR

    def _probe_duration(self, context: AnalysisContext) -> float:
        video_path = context.request.video_path
        duration = get_duration_seconds(video_path)
        if duration:
            return duration

        logger.warning(f"Could not determine duration for {context.request.video_filename}. Trying a compressed copy...")
        try:
            duration = get_duration_seconds(compress_video(video_path))
        except MediaError as e:
            logger.warning(f"Compressed copy failed: {str(e)}")
            duration = None
        if duration:
            return duration

        hint = context.request.duration_seconds_hint
        if hint and hint > 0:
            logger.warning(f"Using client-reported duration hint of {hint}s")
            return float(hint)

        logger.warning("Proceeding with unknown duration. Stats will be approximate.")
        return 0.0

    def _choose_analysis_copy(self, context: AnalysisContext) -> None:
        media = context.config.media
        video_path = context.request.video_path
        size_mb = file_size_mb(video_path)
        if size_mb <= media.compress_above_mb:
            return

        logger.info(f"Large recording ({size_mb:.2f}MB). Creating compressed analysis copy...")
        try:
            context.analysis_video_path = compress_video(video_path)
            return
        except MediaError as e:
            logger.error(f"Video compression failed: {str(e)}")

        context.analysis_video_path = video_path
        if size_mb <= media.max_uncompressed_mb:
            context.analysis_warning = COMPRESSION_FALLBACK_WARNING
        else:
            context.video_usable = False
            context.analysis_warning = AUDIO_ONLY_WARNING
        log_pipeline_decision(
            "compression_fallback",
            {'size_mb': round(size_mb, 2), 'video_usable': context.video_usable},
            request_id=context.request_id,
        )

    def _execute(self, context: AnalysisContext) -> None:
        if not os.path.exists(context.request.video_path):
            finish_with_fallback(context, MISSING_FILE_REASON)
            return

        context.duration_seconds = self._probe_duration(context)
        self._choose_analysis_copy(context)

    def _get_output_summary(self, context: AnalysisContext) -> str:
        if context.is_finished:
            return "recording missing"
        return f"duration={context.duration_seconds:.1f}s, video_usable={context.video_usable}"


# =============================================================================
# STAGE 2: AUDIO EXTRACTION
# =============================================================================

class AudioExtractionStage(PipelineStage):
    """
    Verify the recording has audio and extract a WAV for transcription.

    Reads:
        - context.analysis_video_path
    Writes:
        - context.audio_path
    """

    @property
    def name(self) -> str:
        return "audio_extraction"

    @property
    def description(self) -> str:
        return "Check for an audio stream and extract 16 kHz mono WAV"

    @property
    def error_type(self) -> ErrorType:
        return ErrorType.TRANSCRIPTION_ERROR

    def _execute(self, context: AnalysisContext) -> None:
        try:
            has_audio = has_audio_stream(context.analysis_video_path)
        except MediaError as e:
            logger.warning(f"Could not inspect streams ({str(e)}). Attempting extraction anyway.")
            has_audio = True

        if not has_audio:
            finish_with_fallback(context, NO_AUDIO_REASON)
            return

        context.audio_path = extract_audio_wav(context.analysis_video_path)

    def _get_output_summary(self, context: AnalysisContext) -> str:
        return "no audio stream" if context.is_finished else os.path.basename(context.audio_path or "")


# =============================================================================
# STAGE 3: TRANSCRIPTION
# =============================================================================

class TranscriptionStage(PipelineStage):
    """
    Transcribe the extracted audio.

    Reads:
        - context.audio_path
    Writes:
        - context.transcript
    """

    def __init__(self, service: TranscriptionService):
        self.service = service

    @property
    def name(self) -> str:
        return "transcription"

    @property
    def description(self) -> str:
        return "Transcribe audio with model fallback and chunked retry"

    @property
    def error_type(self) -> ErrorType:
        return ErrorType.TRANSCRIPTION_ERROR

    def _error_message(self, error: Exception) -> str:
        return f"Transcription failed: {str(error)}"

    def _execute(self, context: AnalysisContext) -> None:
        if not require_configured_gateway(context, self.service.gateway):
            return
        result = self.service.transcribe(context.audio_path)
        context.transcript = result.transcript.strip()

    def _get_output_summary(self, context: AnalysisContext) -> str:
        return f"{len(context.transcript.split())} words"


# =============================================================================
# STAGE 4: TRANSCRIPT INTEGRITY
# =============================================================================

class IntegrityStage(PipelineStage):
    """
    Compute integrity metadata for the final transcript.

    Writes:
        - context.transcript_integrity
    """

    def __init__(self, tracker: TranscriptIntegrityTracker):
        self.tracker = tracker

    @property
    def name(self) -> str:
        return "transcript_integrity"

    @property
    def description(self) -> str:
        return "Hash the transcript and flag implausible or reused transcripts"

    def _execute(self, context: AnalysisContext) -> None:
        context.transcript_integrity = self.tracker.compute(context.transcript)

    def _get_output_summary(self, context: AnalysisContext) -> str:
        integrity = context.transcript_integrity
        return f"words={integrity.word_count}, suspicious={integrity.is_suspicious}"


# =============================================================================
# STAGE 5: HEURISTIC PRE-CHECK
# =============================================================================

class HeuristicPrecheckStage(PipelineStage):
    """
    Classify the transcript before any judge call.

    A skip verdict settles the request with the guarded analysis,
    relabeled with the heuristic classification and capped.

    Writes:
        - context.heuristic
    """

    @property
    def name(self) -> str:
        return "heuristic_precheck"

    @property
    def description(self) -> str:
        return "Deterministic transcript classification before the judge call"

    def _execute(self, context: AnalysisContext) -> None:
        request = context.request
        heuristic = classify_transcript(
            context.transcript,
            request.theme,
            request.quote,
            duration_seconds=context.best_duration_seconds,
        )
        context.heuristic = heuristic

        if not heuristic.skip_llm:
            return

        log_pipeline_decision(
            "heuristic_skip",
            {'classification': heuristic.classification.value, 'reason': heuristic.reason},
            request_id=context.request_id,
        )
        duration = context.best_duration_seconds
        analysis = build_insufficient_speech_analysis(duration, heuristic.reason)
        analysis.classification = heuristic.classification
        analysis.caps_applied = True
        analysis.overall_score = min(analysis.overall_score, heuristic.max_overall_score)
        apply_measured_stats(analysis, MeasuredStats.from_transcript(context.transcript, duration))
        context.succeed(analysis)

    def _get_output_summary(self, context: AnalysisContext) -> str:
        heuristic = context.heuristic
        return f"{heuristic.classification.value} (skip={heuristic.skip_llm}, cap={heuristic.max_overall_score})"


# =============================================================================
# STAGE 6: JUDGE
# =============================================================================

class JudgeStage(PipelineStage):
    """
    Run the judge model and turn its JSON into a typed analysis.

    Parse failures and missing sections finish the request with a typed
    failure; default scores are never substituted.

    Writes:
        - context.video_included
        - context.raw_analysis, context.analysis
        - context.parse_metrics
    """

    def __init__(self, gateway, recovery: Optional[JsonRecovery] = None):
        self.gateway = gateway
        self.recovery = recovery or JsonRecovery(gateway)

    @property
    def name(self) -> str:
        return "judge"

    @property
    def description(self) -> str:
        return "Score the speech with the judge model and recover its JSON"

    def _include_video(self, context: AnalysisContext) -> bool:
        media = context.config.media
        duration = context.duration_seconds
        include = (
            media.include_video
            and context.video_usable
            and context.analysis_video_path is not None
            and 0 < duration <= media.max_video_seconds
        )
        if not include:
            reason = (
                "audio-only fallback" if not context.video_usable
                else "video disabled" if not media.include_video
                else f"duration>{media.max_video_seconds:g}s or unknown"
            )
            log_pipeline_decision("video_omitted", {'reason': reason}, request_id=context.request_id)
        return bool(include)

    def _media(self, context: AnalysisContext):
        if context.video_included:
            path = context.analysis_video_path
            return [MediaPart.from_file(path, mime_type=mime_type_for(path))]
        if context.audio_path and os.path.exists(context.audio_path):
            return [MediaPart.from_file(context.audio_path, mime_type='audio/wav')]
        return []

    def _sampling(self, context: AnalysisContext) -> Sampling:
        gemini = context.config.gemini
        return Sampling(
            temperature=gemini.temperature,
            top_p=gemini.top_p,
            presence_penalty=gemini.presence_penalty,
            frequency_penalty=gemini.frequency_penalty,
            max_output_tokens=gemini.max_output_tokens,
        )

    def _execute(self, context: AnalysisContext) -> None:
        if not require_configured_gateway(context, self.gateway):
            return
        context.video_included = self._include_video(context)
        prompt = build_judge_prompt(
            context.request.theme,
            context.request.quote,
            context.transcript,
            context.duration_seconds,
            context.video_included,
        )

        raw = self.gateway.generate(
            prompt,
            sampling=self._sampling(context),
            timeout_seconds=context.config.gemini.timeout_seconds,
            system_instruction=JUDGE_SYSTEM_INSTRUCTION,
            media=self._media(context),
        )

        recovered = self.recovery.recover(
            raw, schema=ANALYSIS_REPAIR_SCHEMA, call_name="judge", request_id=context.request_id
        )
        context.parse_metrics = recovered.to_parse_metrics()
        if not recovered.ok:
            context.fail(ErrorType.PARSE_FAILURE, PARSE_FAILURE_MESSAGE, raw_model_output=recovered.raw_output)
            return

        missing = SpeechAnalysis.missing_sections(recovered.value)
        if missing:
            context.fail(
                ErrorType.SCHEMA_VALIDATION,
                f"Analysis failed: Model response is missing required sections: {', '.join(missing)}",
                raw_model_output=raw,
            )
            return

        context.raw_analysis = recovered.value
        context.analysis = SpeechAnalysis.from_dict(recovered.value)

    def _get_output_summary(self, context: AnalysisContext) -> str:
        if context.analysis is None:
            return "no analysis"
        return f"raw overall={context.analysis.overall_score}, video={context.video_included}"


# =============================================================================
# STAGES 7-9: SCORING
# =============================================================================

class NormalizationStage(ConditionalStage):
    """Rescale judge scores onto 0-10 and reweight categories."""

    def __init__(self, normalizer: Optional[ScoreNormalizer] = None):
        self.normalizer = normalizer or ScoreNormalizer()

    @property
    def name(self) -> str:
        return "normalization"

    @property
    def description(self) -> str:
        return "Detect the judge's score scale and normalize onto 0-10"

    def should_run(self, context: AnalysisContext) -> bool:
        return context.analysis is not None

    def _execute(self, context: AnalysisContext) -> None:
        self.normalizer.normalize(context.analysis)


class RubricEnforcementStage(ConditionalStage):
    """Apply the rubric's hard rules and measured statistics."""

    def __init__(self, enforcer: Optional[RubricEnforcer] = None):
        self.enforcer = enforcer

    @property
    def name(self) -> str:
        return "rubric_enforcement"

    @property
    def description(self) -> str:
        return "Length penalties, classification and heuristic caps, readiness gate"

    def should_run(self, context: AnalysisContext) -> bool:
        return context.analysis is not None

    def _execute(self, context: AnalysisContext) -> None:
        enforcer = self.enforcer or RubricEnforcer(context.config.rubric)
        enforcer.enforce(
            context.analysis,
            RubricContext(
                transcript=context.transcript,
                duration_seconds=context.best_duration_seconds,
                heuristic=context.heuristic,
                request_id=context.request_id,
            ),
        )

    def _get_output_summary(self, context: AnalysisContext) -> str:
        analysis = context.analysis
        return f"overall={analysis.overall_score}, tier={analysis.performance_tier.value}"


class PrioritySelectionStage(ConditionalStage):
    """Rank the improvement items and target the practice drill."""

    def __init__(self, selector: Optional[PrioritySelector] = None):
        self.selector = selector

    @property
    def name(self) -> str:
        return "priority_selection"

    @property
    def description(self) -> str:
        return "Select three ranked improvements from model items, gaps and padding"

    def should_run(self, context: AnalysisContext) -> bool:
        return context.analysis is not None

    def _execute(self, context: AnalysisContext) -> None:
        selector = self.selector or PrioritySelector(context.config.rubric)
        selector.select(
            context.analysis,
            PriorityContext.from_analysis(
                context.analysis, context.best_duration_seconds, context.config.rubric
            ),
        )

    def _get_output_summary(self, context: AnalysisContext) -> str:
        return f"{len(context.analysis.priority_improvements)} priorities"
