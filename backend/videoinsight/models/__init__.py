"""
Data Models Package
===================
Exports all data model classes for the analysis pipeline.

Usage:
    from videoinsight.models import TranscriptSegment, EnrichedSegment, AnalysisResult
    from videoinsight.models import DetectedObjectSummary, QAPair, ProgressEvent
"""

from .schemas import (
    # Enums
    Sentiment,
    PipelineState,

    # Base
    BaseModel,

    # Transcript
    TranscriptSegment,
    EnrichedSegment,
    Transcription,
    Transcript,

    # Sentiment
    SegmentSentiment,
    SentimentResult,

    # Object detection
    FrameDetection,
    DetectedObjectFrame,
    DetectedObjectSummary,

    # Question / answer
    QASnippet,
    QAPair,

    # Progress
    ProgressEvent,
    CONNECTED_MESSAGE,

    # Pipeline outputs
    ResultMetadata,
    AnalysisResult,

    # Constants and utilities
    DEFAULT_SPEAKER,
    UNKNOWN_MOOD,
    normalize_sentiment,
    normalize_keywords,
    generate_session_id,
    utc_timestamp,
)

__all__ = [
    'Sentiment',
    'PipelineState',
    'BaseModel',
    'TranscriptSegment',
    'EnrichedSegment',
    'Transcription',
    'Transcript',
    'SegmentSentiment',
    'SentimentResult',
    'FrameDetection',
    'DetectedObjectFrame',
    'DetectedObjectSummary',
    'QASnippet',
    'QAPair',
    'ProgressEvent',
    'CONNECTED_MESSAGE',
    'ResultMetadata',
    'AnalysisResult',
    'DEFAULT_SPEAKER',
    'UNKNOWN_MOOD',
    'normalize_sentiment',
    'normalize_keywords',
    'generate_session_id',
    'utc_timestamp',
]
