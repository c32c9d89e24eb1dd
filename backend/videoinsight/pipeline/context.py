"""
Pipeline Context Module
=======================
Defines the request and the shared context that flows through all stages.

The PipelineContext holds:
- The processing request and its session id
- Intermediate results (duration, audio, frames, transcript, detections)
- The result under construction
- Execution metadata (state transitions, stage timing)

One context belongs to exactly one request and is never shared between
threads, so it needs no locking. Progress leaves the context only through
emit(), which forwards to the injected SessionRegistry.
"""

import logging
import os
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..config import AppConfig, get_config
from ..logging_config import log_progress_event
from ..models import (
    AnalysisResult,
    DetectedObjectSummary,
    EnrichedSegment,
    PipelineState,
    ProgressEvent,
    QAPair,
    ResultMetadata,
    SegmentSentiment,
    SentimentResult,
    Transcript,
    Transcription,
    generate_session_id,
    utc_timestamp,
)
from .progress import SessionRegistry

logger = logging.getLogger(__name__)


@dataclass
class AnalysisRequest:
    """
    One processing request.

    Attributes:
        video_path: Path of the uploaded file (deleted when processing ends)
        original_filename: Display name reported as metadata.videoFile
        mime_type: Declared MIME type of the upload
        size_bytes: Upload size; read from disk when None
        credential: API key, or a demo sentinel
        session_id: Caller-supplied session id; generated when empty
        demo: Explicit demo flag
    """
    video_path: Optional[str]
    original_filename: str = ""
    mime_type: Optional[str] = None
    size_bytes: Optional[int] = None
    credential: Optional[str] = None
    session_id: Optional[str] = None
    demo: bool = False

    @property
    def display_name(self) -> str:
        if self.original_filename:
            return self.original_filename
        return os.path.basename(self.video_path) if self.video_path else ""


@dataclass
class StageResult:
    """Result of a single pipeline stage execution."""
    stage_name: str
    success: bool
    duration_seconds: float
    error_message: Optional[str] = None
    output_summary: Optional[str] = None


@dataclass
class PipelineContext:
    """
    Shared context that flows through all pipeline stages.

    Each stage reads what it needs and writes its outputs.
    """

    # Input parameters
    request: AnalysisRequest
    config: AppConfig = field(default_factory=get_config)
    registry: Optional[SessionRegistry] = None
    collaborators: Optional[object] = None
    session_id: str = ""

    # Per-request working directory (audio + frames)
    work_dir: Optional[Path] = None

    # Intermediate results
    video_duration: Optional[float] = None
    audio_path: Optional[str] = None
    frame_paths: List[str] = field(default_factory=list)
    transcription: Optional[Transcription] = None
    segment_sentiments: List[SegmentSentiment] = field(default_factory=list)
    enriched_segments: List[EnrichedSegment] = field(default_factory=list)
    sampling_stride: int = 1
    objects_detected: List[DetectedObjectSummary] = field(default_factory=list)
    sentiment: Optional[SentimentResult] = None
    qa_pairs: List[QAPair] = field(default_factory=list)

    # Final output
    analysis_result: Optional[AnalysisResult] = None

    # Execution tracking
    state: PipelineState = PipelineState.VALIDATING
    transitions: List[PipelineState] = field(default_factory=list)
    stage_results: List[StageResult] = field(default_factory=list)
    events: List[ProgressEvent] = field(default_factory=list)
    started_at: float = field(default_factory=time.time)

    def __post_init__(self):
        if not self.session_id:
            self.session_id = self.request.session_id or generate_session_id()
        if not self.transitions:
            self.transitions.append(self.state)

    # -------------------------------------------------------------------------
    # State and progress
    # -------------------------------------------------------------------------

    def transition(self, state: PipelineState) -> None:
        """Move to a new state and record it."""
        if self.state.is_terminal and state != self.state:
            raise RuntimeError(f"Cannot leave terminal state {self.state.value} for {state.value}")
        logger.debug(f"[{self.session_id}] {self.state.value} -> {state.value}")
        self.state = state
        self.transitions.append(state)

    def emit(self, step: int, message: str, progress: float) -> ProgressEvent:
        """Record a progress event and push it to the session channel, if any."""
        event = ProgressEvent(step=step, message=message, progress=progress)
        self.events.append(event)
        delivered = False
        if self.registry is not None:
            delivered = self.registry.push(self.session_id, event)
        log_progress_event(self.session_id, step, progress, message, delivered)
        return event

    def record_stage(
        self,
        stage_name: str,
        success: bool,
        duration: float,
        error: Optional[str] = None,
        summary: Optional[str] = None
    ) -> None:
        """Record the result of a stage execution."""
        self.stage_results.append(StageResult(
            stage_name=stage_name,
            success=success,
            duration_seconds=duration,
            error_message=error,
            output_summary=summary
        ))

    @property
    def successful_stages(self) -> List[str]:
        return [r.stage_name for r in self.stage_results if r.success]

    @property
    def failed_stages(self) -> List[str]:
        return [r.stage_name for r in self.stage_results if not r.success]

    # -------------------------------------------------------------------------
    # Working directory
    # -------------------------------------------------------------------------

    def create_work_dir(self) -> Path:
        """Create the per-request temp directory under the configured tmp root."""
        tmp_root = self.config.paths.tmp
        tmp_root.mkdir(parents=True, exist_ok=True)
        self.work_dir = Path(tempfile.mkdtemp(prefix=f"{self.session_id}_", dir=str(tmp_root)))
        return self.work_dir

    @property
    def audio_output_path(self) -> Path:
        return self.work_dir / "audio.wav"

    @property
    def frames_dir(self) -> Path:
        return self.work_dir / "frames"

    # -------------------------------------------------------------------------
    # Result assembly
    # -------------------------------------------------------------------------

    @property
    def elapsed_seconds(self) -> float:
        return time.time() - self.started_at

    @property
    def processing_time(self) -> str:
        return f"{self.elapsed_seconds:.2f}s"

    def finalize(self) -> AnalysisResult:
        """
        Assemble the AnalysisResult from the stage outputs.

        Raises:
            ValueError: If a required stage output is missing
        """
        if self.video_duration is None:
            raise ValueError("Cannot finalize: video duration is missing")
        if self.transcription is None:
            raise ValueError("Cannot finalize: transcription is missing")
        if self.sentiment is None:
            raise ValueError("Cannot finalize: sentiment is missing")

        self.analysis_result = AnalysisResult(
            session_id=self.session_id,
            metadata=ResultMetadata(
                video_file=self.request.display_name,
                video_duration=self.video_duration,
                processed_at=utc_timestamp(),
                processing_time=self.processing_time,
            ),
            transcript=Transcript(
                full_text=self.transcription.full_text,
                language=self.transcription.language,
                segments=self.enriched_segments,
            ),
            sentiment=self.sentiment,
            objects_detected=self.objects_detected,
            qa_pairs=self.qa_pairs,
        )
        return self.analysis_result
