"""
Judging Log System
==================
Structured logging for score-integrity observability.

This module provides:
- Structured JSON-lines logging for machine-parseable audit trails
- Human-readable console output with key=value context
- Dedicated loggers for pipeline stages, scoring decisions and parse metrics
- Helpers that keep raw transcripts out of log records

Usage:
    from ballot.logging_config import get_ballot_logger, log_scoring_decision

    logger = get_ballot_logger("scores")
    logger.info("Normalized scores", extra={"scale_factor": 0.1})

    log_scoring_decision("classification_cap", {"before": 7.9, "after": 2.5})
    log_parse_metrics("judge", parse_fail_count=1, repair_used=True)
"""

import sys
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any, Union

from .config import get_config


# Attributes every LogRecord carries; anything else came in through extra={}
_RESERVED_ATTRS = frozenset((
    'name', 'msg', 'args', 'created', 'filename', 'funcName', 'levelname',
    'levelno', 'lineno', 'module', 'msecs', 'pathname', 'process',
    'processName', 'relativeCreated', 'stack_info', 'exc_info', 'exc_text',
    'thread', 'threadName', 'taskName', 'message', 'context',
))


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS}


# =============================================================================
# CUSTOM FORMATTERS
# =============================================================================

class StructuredFormatter(logging.Formatter):
    """
    One JSON object per line for judging logs.

    One object per line:
    {
        "timestamp": "2025-03-02T10:30:00.123456",
        "level": "INFO",
        "logger": "ballot.scores",
        "message": "Decision: classification_cap",
        "decision_type": "classification_cap",
        ...
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if getattr(record, 'context', None):
            log_data['context'] = record.context

        for key, value in _extra_fields(record).items():
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = str(value)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


class ConsoleFormatter(logging.Formatter):
    """
    Colored single-line output for development consoles.

    Format: [LEVEL] logger: message (key=value, ...)
    """

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname
        if self.use_colors and level in self.COLORS:
            level = f"{self.COLORS[level]}{level}{self.RESET}"

        msg = f"[{level}] {record.name}: {record.getMessage()}"

        extras = []
        for key, value in _extra_fields(record).items():
            if isinstance(value, (str, int, float, bool)):
                extras.append(f"{key}={value}")
            elif isinstance(value, dict) and len(value) < 3:
                extras.append(f"{key}={value}")

        if extras:
            msg += f" ({', '.join(extras)})"

        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)

        return msg


# =============================================================================
# LOGGER FACTORY
# =============================================================================

_loggers: Dict[str, logging.Logger] = {}


def _level() -> int:
    return getattr(logging, get_config().logging.log_level.upper(), logging.INFO)


def get_ballot_logger(
    name: str,
    log_to_file: Optional[bool] = None,
    session_name: Optional[str] = None
) -> logging.Logger:
    """
    Get or create a logger under the ``ballot.`` namespace.

    Args:
        name: Logger name (e.g. "pipeline", "scores", "routes.analysis")
        log_to_file: Write JSON lines under logs/<name>/; defaults to config
        session_name: Log file prefix; defaults to config.logging.session_name

    Returns:
        Configured logger instance (cached per name)
    """
    full_name = f"ballot.{name}"
    if full_name in _loggers:
        return _loggers[full_name]

    config = get_config()
    logger = logging.getLogger(full_name)
    logger.setLevel(_level())
    logger.propagate = False

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(ConsoleFormatter())
    logger.addHandler(console_handler)

    if log_to_file is None:
        log_to_file = config.logging.log_to_file

    if log_to_file:
        log_file = get_session_log_path(session_name or config.logging.session_name, name)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setFormatter(StructuredFormatter())
        logger.addHandler(file_handler)

    _loggers[full_name] = logger
    return logger


def get_pipeline_logger(request_id: Optional[str] = None) -> Union[logging.Logger, logging.LoggerAdapter]:
    """Get a logger for pipeline execution, optionally bound to a request id."""
    logger = get_ballot_logger("pipeline")
    if request_id:
        return logging.LoggerAdapter(logger, {'request_id': request_id})
    return logger


def get_score_logger() -> logging.Logger:
    """Get a logger for score normalization and enforcement."""
    return get_ballot_logger("scores")


def get_decision_logger() -> logging.Logger:
    """Get a logger for pipeline branch decisions (skip, fallback, cap)."""
    return get_ballot_logger("decisions")


def get_parse_logger() -> logging.Logger:
    """Get a logger for JSON recovery outcomes."""
    return get_ballot_logger("parse")


# =============================================================================
# CONVENIENCE LOGGING FUNCTIONS
# =============================================================================

def transcript_preview(transcript: str, limit: Optional[int] = None) -> str:
    """Return a short single-line preview of a transcript for log records."""
    limit = limit if limit is not None else get_config().logging.transcript_preview_chars
    flat = " ".join((transcript or "").split())
    return flat if len(flat) <= limit else flat[:limit] + "..."


def log_scoring_decision(
    step: str,
    details: Dict[str, Any],
    request_id: Optional[str] = None,
    logger: Optional[logging.Logger] = None
) -> None:
    """
    Log a deterministic score adjustment (normalization, cap, penalty).

    Args:
        step: Enforcement step name (e.g. "length_penalty")
        details: Values before/after and the reason
        request_id: Analysis request id
        logger: Optional logger override
    """
    if not get_config().logging.log_scores:
        return

    log = logger or get_score_logger()
    extra = {'step': step, 'details': details}
    if request_id:
        extra['request_id'] = request_id
    log.info(f"Score adjustment: {step}", extra=extra)


def log_pipeline_decision(
    decision_type: str,
    details: Dict[str, Any],
    request_id: Optional[str] = None,
    logger: Optional[logging.Logger] = None
) -> None:
    """
    Record a routing decision (skip, fallback, compression, completion).

    Args:
        decision_type: e.g. "heuristic_skip", "insufficient_speech", "video_omitted"
        details: Decision details
        request_id: Analysis request id
        logger: Optional logger override
    """
    if not get_config().logging.log_decisions:
        return

    log = logger or get_decision_logger()
    extra = {'decision_type': decision_type, 'details': details}
    if request_id:
        extra['request_id'] = request_id
    log.info(f"Decision: {decision_type}", extra=extra)


def log_parse_metrics(
    call_name: str,
    parse_fail_count: int,
    repair_used: bool,
    raw_length: int = 0,
    request_id: Optional[str] = None,
    logger: Optional[logging.Logger] = None
) -> None:
    """Log the outcome of a JSON recovery attempt (never the raw text itself)."""
    if not get_config().logging.log_parse_metrics:
        return

    log = logger or get_parse_logger()
    level = logging.WARNING if parse_fail_count else logging.INFO
    extra = {
        'call_name': call_name,
        'parse_fail_count': parse_fail_count,
        'repair_used': repair_used,
        'raw_length': raw_length,
    }
    if request_id:
        extra['request_id'] = request_id
    log.log(level, f"Parse metrics for {call_name}", extra=extra)


def log_stage_start(
    stage_name: str,
    request_id: str,
    input_summary: Dict[str, Any] = None,
    logger: Optional[logging.Logger] = None
) -> None:
    """Record that a stage began."""
    log = logger or get_pipeline_logger()
    log.info(
        f"Starting stage: {stage_name}",
        extra={
            'stage_name': stage_name,
            'request_id': request_id,
            'event': 'stage_start',
            'input_summary': input_summary or {}
        }
    )


def log_stage_complete(
    stage_name: str,
    request_id: str,
    duration_seconds: float,
    output_summary: Optional[str] = None,
    logger: Optional[logging.Logger] = None
) -> None:
    """Record a finished stage and its timing."""
    log = logger or get_pipeline_logger()
    log.info(
        f"Completed stage: {stage_name} ({duration_seconds:.2f}s)",
        extra={
            'stage_name': stage_name,
            'request_id': request_id,
            'event': 'stage_complete',
            'duration_seconds': duration_seconds,
            'output_summary': output_summary or "completed"
        }
    )


def log_stage_error(
    stage_name: str,
    request_id: str,
    error: str,
    duration_seconds: float,
    logger: Optional[logging.Logger] = None
) -> None:
    """Record a stage failure with its error text."""
    log = logger or get_pipeline_logger()
    log.error(
        f"Stage failed: {stage_name}",
        extra={
            'stage_name': stage_name,
            'request_id': request_id,
            'event': 'stage_error',
            'error': error,
            'duration_seconds': duration_seconds
        }
    )


# =============================================================================
# LOG FILE UTILITIES
# =============================================================================

def get_session_log_path(session_name: str, log_type: str = "pipeline") -> Path:
    """Get the JSONL log file path for a session and log type."""
    log_dir = get_config().paths.logs / log_type
    timestamp = datetime.now().strftime("%Y%m%d")
    return log_dir / f"{session_name}_{timestamp}.jsonl"


def read_log_file(log_path: Union[str, Path]) -> list:
    """
    Read a JSONL log file and return the parsed entries.

    Lines that are not valid JSON are skipped.
    """
    entries = []
    with open(log_path, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError:
                continue
    return entries


def get_logs_for_request(request_id: str, log_type: str = "scores") -> list:
    """Collect every entry of one log type that belongs to a request."""
    log_dir = get_config().paths.logs / log_type
    entries = []
    for log_file in sorted(log_dir.glob("*.jsonl")):
        entries.extend(e for e in read_log_file(log_file) if e.get('request_id') == request_id)
    return entries
