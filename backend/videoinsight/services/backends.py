"""
Inference Backend Helpers
=========================
Shared plumbing for the collaborator services:
- Backend selection ("openai" or "gemini")
- Client construction with the per-request credential (Gemini calls are
  serialized because the SDK holds a single process-wide key)
- Parsing of JSON model responses, including ones wrapped in markdown fences
- Lookup of response keys against an ordered alias list
"""

import json
import logging
import threading
from typing import Any, Dict, Optional, Sequence

from ..config import AppConfig
from ..exceptions import UnsupportedBackendError

logger = logging.getLogger(__name__)

SUPPORTED_BACKENDS = ["openai", "gemini"]


def resolve_backend(config: AppConfig, backend: Optional[str] = None) -> str:
    """Return the backend to use, validating it against SUPPORTED_BACKENDS."""
    resolved = (backend or config.inference.backend or "").lower()
    if resolved not in SUPPORTED_BACKENDS:
        raise UnsupportedBackendError(resolved, SUPPORTED_BACKENDS)
    return resolved


def create_openai_client(api_key: str):
    """Create an OpenAI client bound to one request's credential."""
    from openai import OpenAI

    return OpenAI(api_key=api_key)


# google-generativeai keeps one API key per process (genai.configure)
_gemini_lock = threading.Lock()


class GeminiModel:
    """
    Gemini model bound to one request's credential.

    configure() and the call run under a module lock, so concurrent requests
    holding different keys never see each other's credential. Gemini calls
    are serialized across the process as a result.
    """

    def __init__(self, api_key: str, model_name: str, generation_config: Dict[str, Any]):
        self.api_key = api_key
        self.model_name = model_name
        self.generation_config = generation_config

    def generate_content(self, contents, **kwargs):
        import google.generativeai as genai

        with _gemini_lock:
            genai.configure(api_key=self.api_key)
            model = genai.GenerativeModel(self.model_name, generation_config=self.generation_config)
            return model.generate_content(contents, **kwargs)


def create_gemini_model(api_key: str, config: AppConfig, temperature: float) -> GeminiModel:
    """Create a Gemini model configured for JSON output."""
    return GeminiModel(
        api_key,
        config.gemini.model_name,
        {
            'temperature': temperature,
            'max_output_tokens': config.gemini.max_output_tokens,
            'response_mime_type': 'application/json',
        },
    )


def parse_json_response(text: Optional[str]) -> Any:
    """
    Parse a JSON model response.

    Markdown code fences (```json ... ```) are stripped first.

    Raises:
        ValueError: If the response is empty or not valid JSON
    """
    if not text:
        raise ValueError("Empty response from model")

    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.replace('```json', '').replace('```', '').strip()

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.error(f"Error parsing model response: {cleaned[:200]}")
        raise ValueError(f"Invalid JSON from model: {str(e)}") from e


def first_present(data: Dict[str, Any], aliases: Sequence[str], default: Any = None) -> Any:
    """
    Return the value of the first alias present in data.

    Aliases are checked in the given order, so earlier spellings win when a
    response carries several.
    """
    if not isinstance(data, dict):
        return default
    for key in aliases:
        if key in data and data[key] is not None:
            return data[key]
    return default
