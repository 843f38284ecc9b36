"""
Judge Service Configuration
===========================
Centralized configuration for the Ballot speech-judging service.

This module provides:
- One dataclass per concern (paths, models, rubric thresholds, media)
- Environment variable overrides (prefixed and shortcut names)
- JSON save/load for reproducible judging sessions
- Preset configurations for development and production

Usage:
    from ballot.config import get_config
    config = get_config()

    judge_model = config.gemini.model_name
    chunk_seconds = config.transcription.chunk_seconds

Rubric constants (category weights, sub-metric layout) are fixed and live in
ballot.models.schemas; this module only carries operational thresholds.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import os
import json
import logging

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION DATACLASSES
# =============================================================================

@dataclass
class PathConfig:
    """Upload, scratch and log directories."""

    # Base directory (defaults to package directory)
    base_dir: Path = field(default_factory=lambda: Path(__file__).parent)

    upload_dir: str = "uploads"
    temp_dir: str = "temp"
    logs_dir: str = "logs"

    @property
    def uploads(self) -> Path:
        return self.base_dir / self.upload_dir

    @property
    def temp(self) -> Path:
        return self.base_dir / self.temp_dir

    @property
    def audio(self) -> Path:
        return self.temp / "audio"

    @property
    def chunks(self) -> Path:
        return self.temp / "audio-chunks"

    @property
    def transcoded(self) -> Path:
        return self.temp / "transcoded"

    @property
    def logs(self) -> Path:
        return self.base_dir / self.logs_dir

    def ensure_directories(self) -> None:
        """Make sure uploads, scratch audio and logs directories exist."""
        for dir_path in [self.uploads, self.audio, self.chunks,
                         self.transcoded, self.logs]:
            dir_path.mkdir(parents=True, exist_ok=True)


def _default_api_key() -> Optional[str]:
    return os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")


@dataclass
class GeminiConfig:
    """
    Configuration for the Gemini judge model.

    Judge sampling is warm enough to vary feedback phrasing between ballots
    while staying inside the strict JSON schema. The repair pass always runs
    at temperature 0 regardless of these settings.
    """

    model_name: str = "gemini-2.0-flash"
    api_key: Optional[str] = field(default_factory=_default_api_key)

    # Judge sampling
    temperature: float = 0.55
    top_p: float = 0.92
    presence_penalty: float = 0.35
    frequency_penalty: float = 0.2
    max_output_tokens: int = 7000

    # Request timeouts
    timeout_seconds: int = 240
    repair_timeout_seconds: int = 90


@dataclass
class TranscriptionConfig:
    """
    Configuration for the transcription pass.

    Candidate models are tried in order (primary, fallback, judge model),
    stopping at the first non-empty transcript.
    """

    model_name: Optional[str] = None
    fallback_model_name: Optional[str] = None

    temperature: float = 0.0
    top_p: float = 1.0
    max_output_tokens: int = 4000

    # Chunked re-transcription when a single pass looks truncated
    chunk_seconds: int = 30
    min_chunk_seconds: int = 5
    truncated_word_threshold: int = 25
    truncated_min_audio_seconds: float = 20.0

    # WAV extraction format (PCM16 mono)
    sample_rate: int = 16000


@dataclass
class IntegrityConfig:
    """
    Configuration for transcript integrity tracking.

    The hash-frequency store is an in-memory soft signal; it is reset on
    restart and bounded to max_tracked_hashes entries.
    """

    repeat_threshold: int = 3
    max_tracked_hashes: int = 10000
    min_plausible_words: int = 25
    min_plausible_chars: int = 50


@dataclass
class RubricConfig:
    """Thresholds used by the rubric enforcer and priority selector."""

    # Length windows (seconds)
    insufficient_length_seconds: float = 180.0
    optimal_min_seconds: float = 240.0
    max_length_seconds: float = 420.0

    # Length penalties (raw content points / time-management points)
    insufficient_length_penalty: float = 2.0
    below_optimal_penalty: float = 1.0
    overtime_penalty: float = 0.5

    # Tournament readiness gate
    ready_min_overall: float = 7.5
    ready_min_category: float = 7.0
    ready_max_filler_per_minute: float = 8.0
    ready_min_eye_contact: float = 50.0

    # Priority selection
    max_priorities: int = 3
    drill_score_threshold: float = 7.0
    filler_rate_floor: float = 3.0
    eye_contact_ceiling: float = 75.0
    pacing_min_wpm: int = 130
    pacing_max_wpm: int = 170


@dataclass
class MediaConfig:
    """Configuration for recording intake and the video payload policy."""

    allowed_extensions: set = field(default_factory=lambda: {
        'mp4', 'webm', 'mov', 'mkv', 'avi'
    })
    max_file_size_bytes: int = 500 * 1024 * 1024

    # Video payload policy
    include_video: bool = True
    max_video_seconds: float = 180.0
    compress_above_mb: float = 12.0
    max_uncompressed_mb: float = 20.0

    # Compressed analysis copy
    video_codec: str = "libx264"
    audio_codec: str = "aac"
    encoding_preset: str = "veryfast"
    target_height: int = 360
    target_fps: int = 12
    crf: int = 32
    audio_bitrate: str = "32k"


@dataclass
class FlaskConfig:
    """HTTP server settings."""

    host: str = "0.0.0.0"
    port: int = 5000
    debug: bool = True

    secret_key: str = field(default_factory=lambda: os.getenv("FLASK_SECRET_KEY", "dev-secret-key"))

    cors_origins: list = field(default_factory=lambda: ["*"])


@dataclass
class LoggingConfig:
    """Configuration for structured judging logs."""

    session_name: str = "default"
    log_level: str = "INFO"
    log_to_file: bool = True

    log_scores: bool = True
    log_decisions: bool = True
    log_parse_metrics: bool = True

    # Characters of transcript allowed into log records
    transcript_preview_chars: int = 100


@dataclass
class AppConfig:
    """
    All configuration sections for one judge process.
    """

    paths: PathConfig = field(default_factory=PathConfig)
    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    transcription: TranscriptionConfig = field(default_factory=TranscriptionConfig)
    integrity: IntegrityConfig = field(default_factory=IntegrityConfig)
    rubric: RubricConfig = field(default_factory=RubricConfig)
    media: MediaConfig = field(default_factory=MediaConfig)
    flask: FlaskConfig = field(default_factory=FlaskConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self):
        self.paths.ensure_directories()

    def to_dict(self, include_secrets: bool = False) -> dict:
        """Serializable view of every section."""
        def convert(obj):
            if hasattr(obj, '__dataclass_fields__'):
                return {k: convert(v) for k, v in obj.__dict__.items()}
            elif isinstance(obj, Path):
                return str(obj)
            elif isinstance(obj, set):
                return sorted(obj)
            return obj

        data = convert(self)
        if not include_secrets:
            data['gemini']['api_key'] = None
            data['flask'].pop('secret_key', None)
        return data

    def save(self, filepath: str) -> None:
        """Save configuration to JSON file (secrets are never written)."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Configuration saved to {filepath}")

    @classmethod
    def from_dict(cls, data: dict) -> "AppConfig":
        """Rebuild a configuration saved with to_dict()."""
        paths_data = dict(data.get('paths', {}))
        if isinstance(paths_data.get('base_dir'), str):
            paths_data['base_dir'] = Path(paths_data['base_dir'])

        media_data = dict(data.get('media', {}))
        if isinstance(media_data.get('allowed_extensions'), list):
            media_data['allowed_extensions'] = set(media_data['allowed_extensions'])

        gemini_data = dict(data.get('gemini', {}))
        if gemini_data.get('api_key') is None:
            gemini_data.pop('api_key', None)

        return cls(
            paths=PathConfig(**paths_data),
            gemini=GeminiConfig(**gemini_data),
            transcription=TranscriptionConfig(**data.get('transcription', {})),
            integrity=IntegrityConfig(**data.get('integrity', {})),
            rubric=RubricConfig(**data.get('rubric', {})),
            media=MediaConfig(**media_data),
            flask=FlaskConfig(**data.get('flask', {})),
            logging=LoggingConfig(**data.get('logging', {})),
        )

    @classmethod
    def load(cls, filepath: str) -> "AppConfig":
        """Read a configuration written by save()."""
        with open(filepath, 'r') as f:
            data = json.load(f)
        logger.info(f"Configuration loaded from {filepath}")
        return cls.from_dict(data)


# =============================================================================
# GLOBAL CONFIGURATION SINGLETON
# =============================================================================

_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Return the process-wide configuration.

    Creates a default configuration on first access.
    """
    global _config
    if _config is None:
        _config = AppConfig()
        logger.info("Initialized default application configuration")
    return _config


def set_config(config: AppConfig) -> None:
    """Set the global application configuration."""
    global _config
    _config = config
    logger.info(f"Set global configuration (session: {config.logging.session_name})")


def reset_config() -> None:
    """Reset the global configuration (forces reload on next get_config)."""
    global _config
    _config = None
    logger.info("Reset global configuration")


# =============================================================================
# ENVIRONMENT VARIABLE OVERRIDES
# =============================================================================

ENV_PREFIX = "BALLOT_"

# Deployment-friendly names mapped onto (section, attribute)
SHORTCUT_ENV_VARS = {
    "GEMINI_MODEL": ("gemini", "model_name"),
    "JUDGE_TEMPERATURE": ("gemini", "temperature"),
    "JUDGE_TOP_P": ("gemini", "top_p"),
    "JUDGE_PRESENCE_PENALTY": ("gemini", "presence_penalty"),
    "JUDGE_FREQUENCY_PENALTY": ("gemini", "frequency_penalty"),
    "TRANSCRIBE_MODEL": ("transcription", "model_name"),
    "TRANSCRIBE_MODEL_FALLBACK": ("transcription", "fallback_model_name"),
    "TRANSCRIBE_CHUNK_SECONDS": ("transcription", "chunk_seconds"),
    "TRANSCRIBE_TEMPERATURE": ("transcription", "temperature"),
    "TRANSCRIBE_TOP_P": ("transcription", "top_p"),
    "MAX_VIDEO_SECONDS_FOR_ANALYSIS": ("media", "max_video_seconds"),
    "INCLUDE_VIDEO_IN_ANALYSIS": ("media", "include_video"),
    "PORT": ("flask", "port"),
}

_SECTIONS = ('gemini', 'transcription', 'integrity', 'rubric',
             'media', 'flask', 'logging')


def _coerce(current_value, raw: str):
    """Convert a raw environment string to the type of the current value."""
    if isinstance(current_value, bool):
        return raw.strip().lower() in ('true', '1', 'yes')
    if isinstance(current_value, int):
        return int(raw)
    if isinstance(current_value, float):
        return float(raw)
    return raw


def _apply_override(config: AppConfig, section: str, attr: str, env_key: str, raw: str) -> None:
    section_config = getattr(config, section, None)
    if section_config is None or not hasattr(section_config, attr):
        return

    current_value = getattr(section_config, attr)
    try:
        typed_value = _coerce(current_value, raw)
    except (ValueError, TypeError) as e:
        logger.warning(f"Failed to apply environment override {env_key}: {e}")
        return

    setattr(section_config, attr, typed_value)
    shown = "***" if "key" in attr else typed_value
    logger.info(f"Environment override: {section}.{attr} = {shown}")


def apply_environment_overrides(config: AppConfig) -> AppConfig:
    """
    Override configuration values from the environment.

    Prefixed variables follow the pattern BALLOT_{SECTION}_{KEY}:
        BALLOT_GEMINI_MODEL_NAME=gemini-1.5-pro
        BALLOT_RUBRIC_MAX_PRIORITIES=3
        BALLOT_LOGGING_LOG_LEVEL=DEBUG

    Shortcut names from SHORTCUT_ENV_VARS are applied first, e.g.
        JUDGE_TEMPERATURE=0.4
        INCLUDE_VIDEO_IN_ANALYSIS=false

    Empty values are ignored.
    """
    for env_key, (section, attr) in SHORTCUT_ENV_VARS.items():
        raw = os.getenv(env_key)
        if raw is None or raw == "":
            continue
        _apply_override(config, section, attr, env_key, raw)

    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX) or value == "":
            continue

        remainder = key[len(ENV_PREFIX):].lower()
        section = next((s for s in _SECTIONS if remainder.startswith(s + "_")), None)
        if section is None:
            continue

        attr = remainder[len(section) + 1:]
        _apply_override(config, section, attr, key, value)

    return config


# =============================================================================
# PRESET CONFIGURATIONS
# =============================================================================

def get_development_config() -> AppConfig:
    """Get configuration optimized for local development."""
    config = AppConfig()
    config.flask.debug = True
    config.logging.log_level = "DEBUG"
    config.logging.session_name = "development"
    return config


def get_production_config() -> AppConfig:
    """Production preset: no debug, info-level logs."""
    config = AppConfig()
    config.flask.debug = False
    config.logging.log_level = "INFO"
    config.logging.session_name = "production"
    config.media.encoding_preset = "fast"
    return config
