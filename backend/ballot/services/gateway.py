"""
Gemini Gateway Module
=====================
Thin adapter between the judging pipeline and Google Gemini.

This service handles:
- Building GenerativeModel instances per call (model, system instruction, sampling)
- Attaching inline audio/video payloads
- Per-call timeouts, surfaced as GatewayTimeoutError
- Converting provider failures into GatewayError

It returns raw response text only; JSON extraction and repair live in
json_recovery.
"""

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Dict, Any

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from dotenv import load_dotenv

from ..config import get_config

# Load environment variables (for API key fallback)
load_dotenv()

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """The model call failed or returned no usable text."""


class GatewayTimeoutError(GatewayError):
    """The model call exceeded its timeout."""


@dataclass
class Sampling:
    """Generation settings for one call. None values are left to the provider."""
    temperature: float = 0.0
    top_p: Optional[float] = None
    presence_penalty: Optional[float] = None
    frequency_penalty: Optional[float] = None
    max_output_tokens: Optional[int] = None

    def to_generation_config(self) -> Dict[str, Any]:
        config = {
            'temperature': self.temperature,
            'top_p': self.top_p,
            'presence_penalty': self.presence_penalty,
            'frequency_penalty': self.frequency_penalty,
            'max_output_tokens': self.max_output_tokens,
            'response_mime_type': 'application/json',
        }
        return {k: v for k, v in config.items() if v is not None}


@dataclass
class MediaPart:
    """Inline media attached to a prompt."""
    mime_type: str
    data: bytes

    @classmethod
    def from_file(cls, path: str, mime_type: Optional[str] = None) -> "MediaPart":
        path = Path(path)
        if mime_type is None:
            mime_type = mimetypes.guess_type(path.name)[0] or 'application/octet-stream'
        return cls(mime_type=mime_type, data=path.read_bytes())

    def to_part(self) -> Dict[str, Any]:
        return {'mime_type': self.mime_type, 'data': self.data}


class GeminiGateway:
    """
    Sends prompts to Gemini and returns raw text.

    One gateway is shared by the whole service; it holds no per-request state.
    """

    def __init__(self, api_key: Optional[str] = None, default_model: Optional[str] = None):
        config = get_config().gemini
        api_key = api_key or config.api_key

        if api_key:
            genai.configure(api_key=api_key)
        else:
            logger.warning("No Gemini API key found in configuration")

        self.configured = bool(api_key)
        self.default_model = default_model or config.model_name

        logger.info(f"Initialized GeminiGateway with model: {self.default_model}")

    def generate(
        self,
        prompt: str,
        sampling: Sampling,
        timeout_seconds: float,
        model_name: Optional[str] = None,
        system_instruction: Optional[str] = None,
        media: Optional[List[MediaPart]] = None
    ) -> str:
        """
        Run one generation call.

        Args:
            prompt: User prompt text
            sampling: Generation settings
            timeout_seconds: Request timeout
            model_name: Model override (defaults to the judge model)
            system_instruction: Optional system instruction
            media: Inline audio/video parts appended after the prompt

        Returns:
            Stripped response text

        Raises:
            GatewayTimeoutError: If the call timed out
            GatewayError: On any other provider failure or an empty response
        """
        name = model_name or self.default_model
        model = genai.GenerativeModel(
            name,
            system_instruction=system_instruction,
            generation_config=sampling.to_generation_config(),
        )

        contents = [prompt] + [part.to_part() for part in (media or [])]

        try:
            response = model.generate_content(
                contents,
                request_options={'timeout': timeout_seconds},
            )
        except google_exceptions.DeadlineExceeded as e:
            logger.warning(f"Gemini call timed out after {timeout_seconds}s", extra={'model': name})
            raise GatewayTimeoutError(f"Model call timed out after {timeout_seconds}s") from e
        except google_exceptions.GoogleAPICallError as e:
            logger.error(f"Gemini API call failed: {str(e)}", extra={'model': name})
            raise GatewayError(f"Model call failed: {str(e)}") from e
        except Exception as e:
            # Retry exhaustion, transport and SDK errors
            logger.error(f"Gemini call raised {type(e).__name__}: {str(e)}", extra={'model': name})
            raise GatewayError(f"Model call failed: {str(e)}") from e

        try:
            text = response.text
        except ValueError as e:
            # Raised when the candidate was blocked or has no text parts
            raise GatewayError(f"Model returned no text: {str(e)}") from e

        text = (text or "").strip()
        if not text:
            raise GatewayError("Empty response from model.")
        return text
