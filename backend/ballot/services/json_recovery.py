"""
JSON Recovery Module
====================
Turns raw model text into a JSON object, or an explicit failure.

Recovery steps:
1. Strip code fences and slice from the first '{' to the last '}'
2. Parse; on failure escape raw newlines/tabs inside string literals and retry
3. If a repair schema was given, ask the model once to fix formatting only
4. Otherwise return a failed result carrying the raw text

Failures are returned, never raised, so callers have to handle the
no-default-score case explicitly.

Usage:
    recovery = JsonRecovery(gateway)
    result = recovery.recover(raw_text, schema=ANALYSIS_REPAIR_SCHEMA, call_name="judge")
    if not result.ok:
        ...  # surface result.raw_output, never invent scores
"""

import re
import json
import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any

from ..config import get_config
from ..logging_config import log_parse_metrics
from ..models import ParseMetrics
from .gateway import GatewayError, Sampling

logger = logging.getLogger(__name__)


REPAIR_SYSTEM_INSTRUCTION = (
    "You are a JSON repair utility. Fix formatting ONLY. "
    "Do not change meanings, scores, quotes, or time ranges. "
    "Output MUST be a single valid JSON object and nothing else."
)

_LEADING_FENCE = re.compile(r'^```(?:json)?', re.IGNORECASE)
_TRAILING_FENCE = re.compile(r'```$')


# =============================================================================
# PURE PARSING HELPERS
# =============================================================================

def extract_json_object(text: str) -> str:
    """Strip code fences and prose around the outermost object."""
    stripped = _TRAILING_FENCE.sub('', _LEADING_FENCE.sub('', text.strip())).strip()
    first = stripped.find('{')
    last = stripped.rfind('}')
    if first >= 0 and last > first:
        return stripped[first:last + 1]
    return stripped


def escape_control_chars_in_strings(text: str) -> str:
    """Escape raw newlines and tabs found inside string literals; drop raw CRs."""
    out = []
    in_string = False
    escaped = False

    for ch in text:
        if not in_string:
            if ch == '"':
                in_string = True
            out.append(ch)
            continue

        if escaped:
            out.append(ch)
            escaped = False
        elif ch == '\\':
            out.append(ch)
            escaped = True
        elif ch == '"':
            out.append(ch)
            in_string = False
        elif ch == '\n':
            out.append('\\n')
        elif ch == '\t':
            out.append('\\t')
        elif ch != '\r':
            out.append(ch)

    return ''.join(out)


def try_parse_object(text: str) -> Optional[Dict[str, Any]]:
    """Parse text as a JSON object, with the control-character repair as a second try."""
    candidate = extract_json_object(text or "")
    for attempt in (candidate, escape_control_chars_in_strings(candidate)):
        try:
            value = json.loads(attempt)
        except ValueError:
            continue
        if isinstance(value, dict):
            return value
    return None


# =============================================================================
# RESULT TYPE
# =============================================================================

@dataclass
class JsonRecoveryResult:
    """
    Outcome of recovering one model response.

    parse_fail_count is 0 when the first parse worked, 1 when it failed
    (and no repair, or a successful repair, followed) and 2 when the repair
    pass failed as well. raw_output is kept whenever the first parse failed.
    """
    value: Optional[Dict[str, Any]]
    parse_fail_count: int = 0
    repair_used: bool = False
    raw_output: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.value is not None

    def to_parse_metrics(self) -> ParseMetrics:
        return ParseMetrics(
            parse_fail_count=self.parse_fail_count,
            repair_used=self.repair_used,
            raw_output=self.raw_output,
        )


# =============================================================================
# RECOVERY PROTOCOL
# =============================================================================

class JsonRecovery:
    """Runs the parse / repair protocol against a gateway."""

    def __init__(self, gateway):
        config = get_config().gemini
        self.gateway = gateway
        self.repair_timeout = config.repair_timeout_seconds
        self.max_output_tokens = config.max_output_tokens

    def recover(
        self,
        raw: str,
        schema: Optional[str] = None,
        call_name: str = "judge",
        model_name: Optional[str] = None,
        request_id: Optional[str] = None
    ) -> JsonRecoveryResult:
        """
        Recover a JSON object from raw model text.

        Args:
            raw: Raw response text
            schema: Target shape for the one-shot repair call (no repair if None)
            call_name: Label for parse-metric logs
            model_name: Model used for the repair call (defaults to the judge model)
            request_id: Analysis request id

        Returns:
            JsonRecoveryResult; check ``ok`` before using ``value``
        """
        raw = (raw or "").strip()
        value = try_parse_object(raw)
        if value is not None:
            log_parse_metrics(call_name, 0, False, len(raw), request_id=request_id)
            return JsonRecoveryResult(value=value)

        result = JsonRecoveryResult(value=None, parse_fail_count=1, raw_output=raw)
        logger.warning(f"JSON parse failed (attempt 1). Raw output length: {len(raw)}")

        if schema:
            result.repair_used = True
            result.value = self._repair(raw, schema, model_name)
            if result.value is None:
                result.parse_fail_count = 2
                logger.warning("JSON repair failed")
            else:
                logger.info("JSON repair successful")

        log_parse_metrics(
            call_name, result.parse_fail_count, result.repair_used, len(raw), request_id=request_id
        )
        return result

    def _repair(self, raw: str, schema: str, model_name: Optional[str]) -> Optional[Dict[str, Any]]:
        prompt = (
            f"Target JSON shape (keys must match; no extra keys):\n{schema}\n\n"
            f"Invalid model output to repair:\n{raw}"
        )
        try:
            repaired = self.gateway.generate(
                prompt,
                sampling=Sampling(temperature=0.0, top_p=1.0, max_output_tokens=self.max_output_tokens),
                timeout_seconds=self.repair_timeout,
                model_name=model_name,
                system_instruction=REPAIR_SYSTEM_INSTRUCTION,
            )
        except GatewayError as e:
            logger.warning(f"JSON repair error: {str(e)}")
            return None
        return try_parse_object(repaired)
