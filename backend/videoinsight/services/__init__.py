"""
Collaborator Services Package
=============================
Adapters for the external inference services used by the pipeline.

Usage:
    from videoinsight.services import build_collaborators

    collaborators = build_collaborators(api_key, config)
    transcription = collaborators.transcriber.transcribe(audio_path)
"""

from dataclasses import dataclass
from typing import Optional

from ..config import AppConfig, get_config
from ..utils.video_utils import MediaProcessor
from .transcription_service import TranscriptionService
from .vision_service import VisionService
from .sentiment_service import SentimentService
from .qa_service import QAService


@dataclass
class Collaborators:
    """The set of external collaborators one pipeline run talks to."""
    media: MediaProcessor
    transcriber: TranscriptionService
    vision: VisionService
    sentiment: SentimentService
    qa: QAService


def build_collaborators(
    credential: str,
    config: Optional[AppConfig] = None,
    backend: Optional[str] = None,
) -> Collaborators:
    """
    Build collaborators bound to one request's credential.

    Clients are created lazily, so construction never touches the network.
    """
    config = config or get_config()
    return Collaborators(
        media=MediaProcessor(config.media),
        transcriber=TranscriptionService(credential, config, backend),
        vision=VisionService(credential, config, backend),
        sentiment=SentimentService(credential, config, backend),
        qa=QAService(credential, config, backend),
    )


__all__ = [
    'Collaborators',
    'build_collaborators',
    'TranscriptionService',
    'VisionService',
    'SentimentService',
    'QAService',
]
