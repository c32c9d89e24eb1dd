"""
Vision Service Module
=====================
Detects objects, people and environments in a single extracted frame.

detect() never raises: any client, network or parsing error degrades to an
empty detection list for that frame.
"""

import logging
from pathlib import Path
from typing import Any, List, Optional

from ..config import AppConfig, get_config
from ..logging_config import log_collaborator_fallback
from ..models import FrameDetection
from ..utils.video_utils import image_to_base64
from .backends import (
    create_gemini_model,
    create_openai_client,
    first_present,
    parse_json_response,
    resolve_backend,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an AI vision analyst analyzing videos from content creators. "
    "Analyze frames from creator videos to detect objects, people, and environments. "
    "Return detailed, structured information about visible content. "
    "Always respond with valid JSON only."
)

DETECTION_PROMPT = """You are analyzing a video frame from a content creator.

Detect all visible objects, people, and environments in this image.

Return a JSON object with a single key "objects" containing an array of detected items.
Each object must have:
- name: label of object/entity (e.g., "laptop", "person", "desk")
- confidence: confidence score from 0 to 1 (as a decimal number)
- context: short description of location or appearance in the frame (e.g., "on desk in background", "creator in center frame")

Do not speculate beyond visible content. Use concise labels and descriptive context.
Return ONLY the JSON object, no additional text."""

OBJECT_KEYS = ("objects", "detections")


class VisionService:
    """Per-frame object detection through a vision-capable LLM."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        config: Optional[AppConfig] = None,
        backend: Optional[str] = None,
    ):
        self.config = config or get_config()
        self.backend = resolve_backend(self.config, backend)
        self.api_key = api_key
        self._client = None
        self._model = None

    @property
    def client(self):
        if self._client is None:
            self._client = create_openai_client(self.api_key)
        return self._client

    @property
    def model(self):
        if self._model is None:
            self._model = create_gemini_model(
                self.api_key, self.config, self.config.gemini.analysis_temperature
            )
        return self._model

    def detect(self, frame_path: str) -> List[FrameDetection]:
        """
        Detect objects in one frame.

        Returns:
            Detections in the order the model listed them, or [] on any error
        """
        try:
            if self.backend == "openai":
                payload = self._detect_openai(frame_path)
            else:
                payload = self._detect_gemini(frame_path)
            return self.parse_detections(payload)
        except Exception as e:
            log_collaborator_fallback("vision", f"{frame_path}: {e}", "no detections")
            return []

    def _detect_openai(self, frame_path: str) -> Any:
        base64_image = image_to_base64(frame_path)
        openai_config = self.config.openai

        response = self.client.chat.completions.create(
            model=openai_config.vision_model,
            messages=[
                {'role': 'system', 'content': SYSTEM_PROMPT},
                {
                    'role': 'user',
                    'content': [
                        {'type': 'text', 'text': DETECTION_PROMPT},
                        {
                            'type': 'image_url',
                            'image_url': {
                                'url': f"data:image/jpeg;base64,{base64_image}",
                                'detail': openai_config.vision_detail
                            }
                        }
                    ]
                }
            ],
            response_format={'type': 'json_object'},
            max_tokens=openai_config.vision_max_tokens,
            temperature=openai_config.analysis_temperature
        )
        return parse_json_response(response.choices[0].message.content)

    def _detect_gemini(self, frame_path: str) -> Any:
        image_part = {'mime_type': 'image/jpeg', 'data': Path(frame_path).read_bytes()}
        response = self.model.generate_content([SYSTEM_PROMPT, DETECTION_PROMPT, image_part])
        return parse_json_response(response.text)

    @staticmethod
    def parse_detections(payload: Any) -> List[FrameDetection]:
        """
        Convert a parsed model response into FrameDetection values.

        Accepts {"objects": [...]} or a bare list. Items without a name are
        dropped; confidence is clamped to [0, 1].
        """
        items = payload if isinstance(payload, list) else first_present(payload, OBJECT_KEYS, [])
        if not isinstance(items, list):
            return []

        detections = []
        for item in items:
            if not isinstance(item, dict):
                continue
            name = str(item.get('name') or item.get('label') or '').strip()
            if not name:
                continue
            try:
                confidence = float(item.get('confidence', 0.0))
            except (TypeError, ValueError):
                confidence = 0.0
            detections.append(FrameDetection(
                name=name,
                confidence=min(max(confidence, 0.0), 1.0),
                context=str(item.get('context') or ''),
            ))
        return detections
