"""
Transcription Service Module
============================
Speech-to-text through the Gemini gateway.

This service handles:
- Ordered model fallback (primary, fallback, judge model), first non-empty wins
- JSON recovery of the {"transcript": ...} envelope
- Chunked re-transcription when a single pass looks truncated

Chunks are transcribed sequentially and joined in order.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from ..config import get_config
from ..features import word_count
from ..logging_config import transcript_preview
from ..models import ParseMetrics
from ..utils.media_utils import (
    MediaError,
    estimate_wav_duration_seconds,
    get_audio_duration_seconds,
    split_audio,
)
from .gateway import GatewayError, MediaPart, Sampling
from .json_recovery import JsonRecovery
from .prompts import TRANSCRIPTION_PROMPT, TRANSCRIPT_REPAIR_SCHEMA

logger = logging.getLogger(__name__)


@dataclass
class TranscriptionResult:
    """Final transcript plus how it was obtained."""
    transcript: str = ""
    model_used: Optional[str] = None
    chunked: bool = False
    audio_duration_seconds: float = 0.0
    parse_metrics: List[ParseMetrics] = field(default_factory=list)

    @property
    def word_count(self) -> int:
        return word_count(self.transcript)


class TranscriptionService:
    """
    Transcribes extracted WAV audio.

    Model failures are logged and the next candidate is tried; a recording
    nobody could transcribe yields an empty transcript rather than an error.
    """

    def __init__(self, gateway, recovery: Optional[JsonRecovery] = None):
        config = get_config()
        self.gateway = gateway
        self.recovery = recovery or JsonRecovery(gateway)
        self.config = config.transcription
        self.judge_model = config.gemini.model_name
        self.timeout = config.gemini.timeout_seconds

    def model_candidates(self) -> List[str]:
        """Primary, fallback and judge model, deduplicated in order."""
        candidates = [self.config.model_name, self.config.fallback_model_name, self.judge_model]
        seen = []
        for name in candidates:
            name = (name or "").strip()
            if name and name not in seen:
                seen.append(name)
        return seen

    def _sampling(self) -> Sampling:
        return Sampling(
            temperature=self.config.temperature,
            top_p=self.config.top_p,
            max_output_tokens=self.config.max_output_tokens,
        )

    def _transcribe_with_model(self, audio: MediaPart, model_name: str, result: TranscriptionResult) -> str:
        raw = self.gateway.generate(
            TRANSCRIPTION_PROMPT,
            sampling=self._sampling(),
            timeout_seconds=self.timeout,
            model_name=model_name,
            media=[audio],
        )
        recovered = self.recovery.recover(
            raw, schema=TRANSCRIPT_REPAIR_SCHEMA, call_name="transcribe", model_name=model_name
        )
        result.parse_metrics.append(recovered.to_parse_metrics())
        if not recovered.ok:
            return ""
        text = recovered.value.get('transcript')
        return text.strip() if isinstance(text, str) else ""

    def _transcribe_with_fallback(self, audio_path: str, result: TranscriptionResult) -> str:
        audio = MediaPart.from_file(audio_path, mime_type='audio/wav')
        for model_name in self.model_candidates():
            try:
                text = self._transcribe_with_model(audio, model_name, result)
            except GatewayError as e:
                logger.warning(f"Transcription attempt failed for model={model_name} ({str(e)})")
                continue
            if text:
                result.model_used = model_name
                return text
        return ""

    def _transcribe_chunks(self, audio_path: str, result: TranscriptionResult) -> str:
        parts = []
        for chunk_path in split_audio(audio_path, self.config.chunk_seconds):
            text = self._transcribe_with_fallback(chunk_path, result)
            if text:
                parts.append(text)
        return " ".join(" ".join(parts).split())

    def transcribe(self, audio_path: str) -> TranscriptionResult:
        """
        Transcribe a WAV file.

        Args:
            audio_path: PCM16 mono WAV extracted from the recording

        Returns:
            TranscriptionResult (transcript may be empty)
        """
        result = TranscriptionResult()
        result.transcript = self._transcribe_with_fallback(audio_path, result)
        words = result.word_count

        duration = get_audio_duration_seconds(audio_path) or 0.0
        if duration <= 0 and os.path.exists(audio_path):
            duration = estimate_wav_duration_seconds(os.path.getsize(audio_path))
        result.audio_duration_seconds = duration

        logger.info(
            f"Transcript words (single-pass): {words}",
            extra={'model': result.model_used, 'preview': transcript_preview(result.transcript)}
        )

        if words < self.config.truncated_word_threshold and duration >= self.config.truncated_min_audio_seconds:
            logger.warning(
                f"Transcript seems truncated ({words} words, audio={duration:.1f}s); retrying in chunks"
            )
            try:
                combined = self._transcribe_chunks(audio_path, result)
            except MediaError as e:
                logger.warning(f"Chunked transcription failed ({str(e)}). Keeping single-pass transcript.")
            else:
                combined_words = word_count(combined)
                logger.info(f"Transcript words (chunked): {combined_words}")
                if combined_words > words:
                    result.transcript = combined
                    result.chunked = True

        return result
