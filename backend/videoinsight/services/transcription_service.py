"""
Transcription Service Module
============================
Turns the extracted audio track into a segment-level transcript.

Backends:
- openai: hosted Whisper (verbose_json with segment timestamps)
- gemini: local faster-whisper model, since Gemini has no transcription
  endpoint that returns segment timing

Errors propagate; the orchestrator turns them into a StageExecutionError.
"""

import logging
from typing import Any, List, Optional

from ..config import AppConfig, get_config
from ..models import Transcription, TranscriptSegment
from .backends import create_openai_client, resolve_backend

logger = logging.getLogger(__name__)


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from either an SDK object or a plain dict."""
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


class TranscriptionService:
    """
    Service for transcribing audio into text segments.

    The Whisper model of the local backend is loaded lazily on first use.
    """

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
        self._whisper_model = None

    @property
    def client(self):
        """Lazy initialization of the OpenAI client."""
        if self._client is None:
            self._client = create_openai_client(self.api_key)
        return self._client

    @property
    def whisper_model(self):
        """Lazy initialization of the local Whisper model."""
        if self._whisper_model is None:
            from faster_whisper import WhisperModel

            whisper_config = self.config.whisper
            self._whisper_model = WhisperModel(
                whisper_config.model_size,
                device=whisper_config.device,
                compute_type=whisper_config.compute_type if whisper_config.compute_type != "auto" else "default"
            )
            logger.info(f"Loaded local Whisper model: {whisper_config.model_size}")
        return self._whisper_model

    def transcribe(self, audio_path: str) -> Transcription:
        """
        Transcribe an audio file.

        Args:
            audio_path: Path to a mono PCM WAV file

        Returns:
            Transcription with full text, language (defaults to "en") and segments
        """
        logger.info(f"Starting transcription ({self.backend}) for: {audio_path}")

        if self.backend == "openai":
            transcription = self._transcribe_openai(audio_path)
        else:
            transcription = self._transcribe_local(audio_path)

        logger.info(
            f"Transcription complete: {len(transcription.segments)} segments, "
            f"language: {transcription.language}"
        )
        return transcription

    def _transcribe_openai(self, audio_path: str) -> Transcription:
        with open(audio_path, 'rb') as audio_file:
            response = self.client.audio.transcriptions.create(
                file=audio_file,
                model=self.config.openai.transcription_model,
                response_format='verbose_json',
                timestamp_granularities=['segment'],
                temperature=0.0
            )

        segments = self._convert_segments(_field(response, 'segments') or [])
        return Transcription(
            full_text=_field(response, 'text', '') or '',
            language=_field(response, 'language') or 'en',
            segments=segments,
        )

    def _transcribe_local(self, audio_path: str) -> Transcription:
        whisper_config = self.config.whisper
        raw_segments, info = self.whisper_model.transcribe(
            audio_path,
            language=whisper_config.language,
            vad_filter=whisper_config.vad_filter,
        )
        raw_segments = list(raw_segments)

        segments = [
            TranscriptSegment(id=i, start=float(s.start), end=float(s.end), text=s.text.strip())
            for i, s in enumerate(raw_segments)
        ]
        return Transcription(
            full_text=" ".join(s.text for s in segments),
            language=getattr(info, 'language', None) or 'en',
            segments=segments,
        )

    @staticmethod
    def _convert_segments(raw_segments: List[Any]) -> List[TranscriptSegment]:
        segments = []
        for i, raw in enumerate(raw_segments):
            seg_id = _field(raw, 'id')
            segments.append(TranscriptSegment(
                id=int(seg_id) if seg_id is not None else i,
                start=float(_field(raw, 'start', 0.0)),
                end=float(_field(raw, 'end', 0.0)),
                text=str(_field(raw, 'text', '')),
            ))
        return segments
