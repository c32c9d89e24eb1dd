"""
Exception Hierarchy
===================
Errors raised by the analysis pipeline and its collaborator adapters.

Only InputValidationError and StageExecutionError ever reach a caller.
Per-frame detection failures, missing segment sentiment and QA generation
failures are absorbed where they happen and never show up here.
"""

from typing import List, Optional


class VideoInsightError(Exception):
    """Base exception for all pipeline errors."""

    pass


class InputValidationError(VideoInsightError):
    """Raised when a processing request is rejected before any stage runs."""

    def __init__(self, message: str, field_name: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field_name = field_name


class StageExecutionError(VideoInsightError):
    """Raised when a collaborator call fails and aborts the pipeline."""

    def __init__(self, stage: str, message: str):
        super().__init__(message)
        self.stage = stage
        self.message = message

    def __str__(self) -> str:
        return self.message


class CollaboratorError(VideoInsightError):
    """Base exception for failures inside an external collaborator adapter."""

    pass


class MediaDecodeError(CollaboratorError):
    """Raised when ffmpeg/moviepy cannot decode the uploaded media."""

    pass


class UnsupportedBackendError(CollaboratorError):
    """Raised when an unknown inference backend is configured."""

    def __init__(self, backend: str, supported: List[str]):
        super().__init__(
            f"Backend '{backend}' is not supported. Supported backends: {', '.join(supported)}"
        )
        self.backend = backend
        self.supported = supported
