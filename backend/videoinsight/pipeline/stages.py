"""
Pipeline Stages Module
======================
Implements the individual stages of the analysis pipeline.

Stages (step, start %, end %):
1. ProbeStage              (0,  5, 10) - Read video duration
2. AudioExtractionStage    (1, 15, 20) - Extract mono PCM audio
3. FrameExtractionStage    (2, 25, 30) - Extract frames at a fixed rate
4. TranscriptionStage      (3, 35, 40) - Transcribe the audio
5. SegmentSentimentStage   (3, 42, 45) - Per-segment sentiment + enrichment
6. ObjectDetectionStage    (4, 50, 65) - Sampled detection + aggregation
7. OverallSentimentStage   (5, 75, 85) - Overall mood of the transcript
8. QAGenerationStage       (6, 90, 95) - Question/answer pairs
"""

import logging
from typing import List

from .aggregation import ObjectAggregator, select_sampling_stride
from .base import PipelineStage
from .context import PipelineContext
from .enrichment import enrich_segments
from ..logging_config import log_pipeline_decision
from ..models import PipelineState

logger = logging.getLogger(__name__)


# =============================================================================
# STAGE 1: PROBE
# =============================================================================

class ProbeStage(PipelineStage):
    """
    Read the duration of the uploaded video.

    Reads:
        - context.request.video_path

    Writes:
        - context.video_duration
    """

    step = 0
    start_progress = 5
    end_progress = 10

    @property
    def name(self) -> str:
        return "probe"

    @property
    def description(self) -> str:
        return "Read video duration"

    @property
    def state(self) -> PipelineState:
        return PipelineState.PROBING

    def start_message(self, context: PipelineContext) -> str:
        return f"Processing video: {context.request.display_name}"

    def completion_message(self, context: PipelineContext) -> str:
        return f"Video duration: {context.video_duration:.2f} seconds"

    def _execute(self, context: PipelineContext) -> None:
        context.video_duration = float(
            context.collaborators.media.probe_duration(context.request.video_path)
        )

    def _get_output_summary(self, context: PipelineContext) -> str:
        return f"{context.video_duration:.2f}s"


# =============================================================================
# STAGE 2: AUDIO EXTRACTION
# =============================================================================

class AudioExtractionStage(PipelineStage):
    """
    Extract the audio track into the working directory.

    Writes:
        - context.audio_path
    """

    step = 1
    start_progress = 15
    end_progress = 20

    @property
    def name(self) -> str:
        return "audio_extraction"

    @property
    def description(self) -> str:
        return "Extracting audio from video"

    @property
    def state(self) -> PipelineState:
        return PipelineState.AUDIO_EXTRACTION

    def completion_message(self, context: PipelineContext) -> str:
        return "Audio extraction completed"

    def _execute(self, context: PipelineContext) -> None:
        context.audio_path = str(context.collaborators.media.extract_audio(
            context.request.video_path, str(context.audio_output_path)
        ))


# =============================================================================
# STAGE 3: FRAME EXTRACTION
# =============================================================================

class FrameExtractionStage(PipelineStage):
    """
    Extract frames at config.media.frames_per_second.

    Writes:
        - context.frame_paths (ordinal order)
    """

    step = 2
    start_progress = 25
    end_progress = 30

    @property
    def name(self) -> str:
        return "frame_extraction"

    @property
    def description(self) -> str:
        return "Extracting frames from video"

    @property
    def state(self) -> PipelineState:
        return PipelineState.FRAME_EXTRACTION

    def completion_message(self, context: PipelineContext) -> str:
        return f"Extracted {len(context.frame_paths)} frames"

    def _execute(self, context: PipelineContext) -> None:
        frame_paths = context.collaborators.media.extract_frames(
            context.request.video_path,
            str(context.frames_dir),
            context.config.media.frames_per_second,
        )
        context.frame_paths = [str(p) for p in frame_paths]

    def _get_output_summary(self, context: PipelineContext) -> str:
        return f"{len(context.frame_paths)} frames"


# =============================================================================
# STAGE 4: TRANSCRIPTION
# =============================================================================

class TranscriptionStage(PipelineStage):
    """
    Transcribe the extracted audio.

    Reads:
        - context.audio_path

    Writes:
        - context.transcription
    """

    step = 3
    start_progress = 35
    end_progress = 40

    @property
    def name(self) -> str:
        return "transcription"

    @property
    def description(self) -> str:
        return "Transcribing audio"

    @property
    def state(self) -> PipelineState:
        return PipelineState.TRANSCRIPTION

    def completion_message(self, context: PipelineContext) -> str:
        return f"Transcription complete ({len(context.transcription.full_text)} characters)"

    def _execute(self, context: PipelineContext) -> None:
        context.transcription = context.collaborators.transcriber.transcribe(context.audio_path)

    def _get_output_summary(self, context: PipelineContext) -> str:
        t = context.transcription
        return f"{len(t.segments)} segments, {len(t.full_text)} chars, language {t.language}"


# =============================================================================
# STAGE 5: SEGMENT SENTIMENT
# =============================================================================

class SegmentSentimentStage(PipelineStage):
    """
    Analyze per-segment sentiment and build the enriched segments.

    Reads:
        - context.transcription.segments

    Writes:
        - context.segment_sentiments
        - context.enriched_segments
    """

    step = 3
    start_progress = 42
    end_progress = 45

    @property
    def name(self) -> str:
        return "segment_sentiment"

    @property
    def description(self) -> str:
        return "Analyzing sentiment for each segment"

    @property
    def state(self) -> PipelineState:
        return PipelineState.SEGMENT_SENTIMENT

    def completion_message(self, context: PipelineContext) -> str:
        return "Segment sentiment analysis complete"

    def _execute(self, context: PipelineContext) -> None:
        segments = context.transcription.segments
        context.segment_sentiments = list(
            context.collaborators.sentiment.batch_segments(segments) or []
        )
        context.enriched_segments = enrich_segments(segments, context.segment_sentiments)

    def _get_output_summary(self, context: PipelineContext) -> str:
        return (
            f"{len(context.segment_sentiments)} sentiment records for "
            f"{len(context.enriched_segments)} segments"
        )


# =============================================================================
# STAGE 6: OBJECT DETECTION
# =============================================================================

class ObjectDetectionStage(PipelineStage):
    """
    Run sampled detection over the frames and aggregate per object.

    Per-frame failures are absorbed by the aggregator and never fail this
    stage.

    Reads:
        - context.frame_paths

    Writes:
        - context.sampling_stride
        - context.objects_detected
    """

    step = 4
    start_progress = 50
    end_progress = 65

    @property
    def name(self) -> str:
        return "object_detection"

    @property
    def description(self) -> str:
        return "Detecting objects"

    @property
    def state(self) -> PipelineState:
        return PipelineState.OBJECT_DETECTION

    def _prepare(self, context: PipelineContext) -> None:
        context.sampling_stride = select_sampling_stride(
            len(context.frame_paths), context.config.detection
        )
        log_pipeline_decision(
            "sampling_stride",
            {
                'frame_count': len(context.frame_paths),
                'stride': context.sampling_stride,
                'threshold': context.config.detection.full_sampling_max_frames,
            },
            session_id=context.session_id,
        )

    def _frames_to_process(self, context: PipelineContext) -> int:
        stride = context.sampling_stride
        return (len(context.frame_paths) + stride - 1) // stride

    def start_message(self, context: PipelineContext) -> str:
        return f"Detecting objects in {self._frames_to_process(context)} frames..."

    def completion_message(self, context: PipelineContext) -> str:
        return f"Found {len(context.objects_detected)} unique objects"

    def _execute(self, context: PipelineContext) -> None:
        aggregator = ObjectAggregator(
            context.collaborators.vision.detect,
            max_workers=context.config.detection.max_workers,
        )
        context.objects_detected = aggregator.aggregate(
            context.frame_paths,
            context.sampling_stride,
            context.config.media.frames_per_second,
        )

    def _get_output_summary(self, context: PipelineContext) -> str:
        return f"{len(context.objects_detected)} objects from {self._frames_to_process(context)} frames"


# =============================================================================
# STAGE 7: OVERALL SENTIMENT
# =============================================================================

class OverallSentimentStage(PipelineStage):
    """
    Summarize the overall sentiment of the transcript.

    Writes:
        - context.sentiment
    """

    step = 5
    start_progress = 75
    end_progress = 85

    @property
    def name(self) -> str:
        return "overall_sentiment"

    @property
    def description(self) -> str:
        return "Analyzing overall sentiment and mood"

    @property
    def state(self) -> PipelineState:
        return PipelineState.OVERALL_SENTIMENT

    def completion_message(self, context: PipelineContext) -> str:
        return f"Sentiment: {context.sentiment.overall_sentiment}"

    def _execute(self, context: PipelineContext) -> None:
        context.sentiment = context.collaborators.sentiment.summarize(
            context.transcription.full_text
        )

    def _get_output_summary(self, context: PipelineContext) -> str:
        return context.sentiment.overall_sentiment


# =============================================================================
# STAGE 8: QA GENERATION
# =============================================================================

class QAGenerationStage(PipelineStage):
    """
    Generate question/answer pairs grounded in the enriched segments.

    Writes:
        - context.qa_pairs
    """

    step = 6
    start_progress = 90
    end_progress = 95

    @property
    def name(self) -> str:
        return "qa_generation"

    @property
    def description(self) -> str:
        return "Generating question-answer pairs"

    @property
    def state(self) -> PipelineState:
        return PipelineState.QA_GENERATION

    def completion_message(self, context: PipelineContext) -> str:
        return f"Generated {len(context.qa_pairs)} QA pairs"

    def _execute(self, context: PipelineContext) -> None:
        context.qa_pairs = list(context.collaborators.qa.generate_qa(
            context.transcription.full_text,
            context.config.qa.num_pairs,
            context.enriched_segments,
        ) or [])

    def _get_output_summary(self, context: PipelineContext) -> str:
        return f"{len(context.qa_pairs)} pairs"


# =============================================================================
# STAGE REGISTRY
# =============================================================================

ALL_STAGES = [
    ProbeStage,
    AudioExtractionStage,
    FrameExtractionStage,
    TranscriptionStage,
    SegmentSentimentStage,
    ObjectDetectionStage,
    OverallSentimentStage,
    QAGenerationStage,
]


def default_stages() -> List[PipelineStage]:
    """Fresh instances of every stage, in execution order."""
    return [stage_class() for stage_class in ALL_STAGES]


def get_stage_by_name(name: str) -> PipelineStage:
    """Get a stage instance by its name."""
    for stage_class in ALL_STAGES:
        stage = stage_class()
        if stage.name == name:
            return stage
    raise ValueError(f"Unknown stage: {name}")
