"""
Data Models and Schemas Module
==============================
Defines structured data representations for every pipeline stage.

This module provides:
- Type-safe dataclasses for all data entities
- Serialization/deserialization methods producing the response schema
- Small normalization helpers shared by the collaborator adapters

The serialized field names are the wire contract of POST /api/process, so a
few models override to_dict() to emit camelCase keys (metadata,
relevantSnippets, sessionId).

Usage:
    from videoinsight.models import TranscriptSegment, EnrichedSegment, AnalysisResult
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, List, Dict, Any
from enum import Enum
import json
import time
import uuid


# =============================================================================
# ENUMS
# =============================================================================

class Sentiment(str, Enum):
    """Sentiment labels accepted from the sentiment collaborator."""
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class PipelineState(str, Enum):
    """States of the stage orchestrator, in execution order."""
    VALIDATING = "validating"
    DEMO = "demo"
    PROBING = "probing"
    AUDIO_EXTRACTION = "audio_extraction"
    FRAME_EXTRACTION = "frame_extraction"
    TRANSCRIPTION = "transcription"
    SEGMENT_SENTIMENT = "segment_sentiment"
    OBJECT_DETECTION = "object_detection"
    OVERALL_SENTIMENT = "overall_sentiment"
    QA_GENERATION = "qa_generation"
    ASSEMBLING = "assembling"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.COMPLETED, PipelineState.FAILED)


DEFAULT_SPEAKER = "creator"
UNKNOWN_MOOD = "unknown"


# =============================================================================
# BASE CLASSES
# =============================================================================

@dataclass
class BaseModel:
    """Base class for all data models with common serialization methods."""

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary, handling nested objects."""
        def convert(obj):
            if isinstance(obj, BaseModel):
                return obj.to_dict()
            elif isinstance(obj, Enum):
                return obj.value
            elif isinstance(obj, datetime):
                return obj.isoformat()
            elif isinstance(obj, Path):
                return str(obj)
            elif isinstance(obj, (list, tuple)):
                return [convert(item) for item in obj]
            elif isinstance(obj, dict):
                return {k: convert(v) for k, v in obj.items()}
            return obj

        return {k: convert(getattr(self, k)) for k in self.__dataclass_fields__}

    def to_json(self, indent: int = 2) -> str:
        """Convert model to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BaseModel":
        """Create model from dictionary. Override in subclasses for nested objects."""
        return cls(**data)

    @classmethod
    def from_json(cls, json_str: str) -> "BaseModel":
        """Create model from JSON string."""
        return cls.from_dict(json.loads(json_str))


# =============================================================================
# TRANSCRIPT
# =============================================================================

@dataclass
class TranscriptSegment(BaseModel):
    """
    A raw transcript segment as returned by the transcription service.

    Never mutated after transcription; enrichment builds new EnrichedSegment
    values instead.
    """
    id: int
    start: float
    end: float
    text: str

    @property
    def duration_seconds(self) -> float:
        return self.end - self.start

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranscriptSegment":
        return cls(
            id=int(data['id']),
            start=float(data['start']),
            end=float(data['end']),
            text=str(data.get('text', '')),
        )


@dataclass
class EnrichedSegment(BaseModel):
    """
    A transcript segment augmented with speaker and per-segment sentiment.

    Attributes:
        id: Same id as the raw segment it was built from
        start: Start time in seconds
        end: End time in seconds
        text: Segment text
        speaker: Speaker label (always DEFAULT_SPEAKER today)
        sentiment: One of positive/neutral/negative
        mood_keywords: Ordered descriptive words for this segment
    """
    id: int
    start: float
    end: float
    text: str
    speaker: str = DEFAULT_SPEAKER
    sentiment: str = Sentiment.NEUTRAL.value
    mood_keywords: List[str] = field(default_factory=lambda: [UNKNOWN_MOOD])

    @classmethod
    def from_segment(
        cls,
        segment: TranscriptSegment,
        sentiment: str,
        mood_keywords: List[str],
        speaker: str = DEFAULT_SPEAKER,
    ) -> "EnrichedSegment":
        return cls(
            id=segment.id,
            start=segment.start,
            end=segment.end,
            text=segment.text,
            speaker=speaker,
            sentiment=sentiment,
            mood_keywords=list(mood_keywords),
        )


@dataclass
class Transcription(BaseModel):
    """Transcription collaborator output: full text, language and raw segments."""
    full_text: str
    language: str = "en"
    segments: List[TranscriptSegment] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transcription":
        return cls(
            full_text=data.get('full_text', ''),
            language=data.get('language') or 'en',
            segments=[TranscriptSegment.from_dict(s) for s in data.get('segments', [])],
        )


@dataclass
class Transcript(BaseModel):
    """The transcript section of an AnalysisResult."""
    full_text: str
    language: str
    segments: List[EnrichedSegment] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transcript":
        return cls(
            full_text=data['full_text'],
            language=data['language'],
            segments=[EnrichedSegment(**s) for s in data.get('segments', [])],
        )


# =============================================================================
# SENTIMENT
# =============================================================================

def normalize_sentiment(value: Any) -> str:
    """Map a collaborator sentiment label onto the three accepted values."""
    if isinstance(value, str):
        label = value.strip().lower()
        if label in (s.value for s in Sentiment):
            return label
    return Sentiment.NEUTRAL.value


def normalize_keywords(value: Any) -> List[str]:
    """Coerce a mood keyword field into an ordered list of strings."""
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return [UNKNOWN_MOOD]
    keywords = [str(k).strip() for k in value if str(k).strip()]
    return keywords or [UNKNOWN_MOOD]


@dataclass
class SegmentSentiment(BaseModel):
    """One record of the batch segment-sentiment response."""
    segment_id: int
    sentiment: str = Sentiment.NEUTRAL.value
    mood_keywords: List[str] = field(default_factory=lambda: [UNKNOWN_MOOD])

    @classmethod
    def neutral(cls, segment_id: int) -> "SegmentSentiment":
        return cls(segment_id=segment_id)


@dataclass
class SentimentResult(BaseModel):
    """Overall sentiment and mood of the full transcript."""
    overall_sentiment: str
    mood_keywords: List[str]
    confidence: float
    short_summary: str

    @classmethod
    def fallback(cls, reason: str) -> "SentimentResult":
        return cls(
            overall_sentiment=Sentiment.NEUTRAL.value,
            mood_keywords=[UNKNOWN_MOOD],
            confidence=0,
            short_summary=f"Error analyzing sentiment: {reason}",
        )


# =============================================================================
# OBJECT DETECTION
# =============================================================================

@dataclass
class FrameDetection(BaseModel):
    """A single detection returned by the vision collaborator for one frame."""
    name: str
    confidence: float
    context: str = ""


@dataclass
class DetectedObjectFrame(BaseModel):
    """
    One appearance of an object.

    frame_id is the 1-based ordinal in the full (unsampled) frame sequence.
    """
    frame_id: int
    timestamp: float
    confidence: float
    context: str = ""


@dataclass
class DetectedObjectSummary(BaseModel):
    """
    Aggregated statistics for one case-normalized object name.

    Attributes:
        name: Lower-cased object name
        appearance_percentage: Share of all extracted frames, 1 decimal
        avg_confidence: Mean confidence over appearances, 2 decimals
        frames: Appearances in ascending frame_id order
    """
    name: str
    appearance_percentage: float
    avg_confidence: float
    frames: List[DetectedObjectFrame] = field(default_factory=list)

    @property
    def first_frame_id(self) -> int:
        return self.frames[0].frame_id if self.frames else 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DetectedObjectSummary":
        return cls(
            name=data['name'],
            appearance_percentage=data['appearance_percentage'],
            avg_confidence=data['avg_confidence'],
            frames=[DetectedObjectFrame(**f) for f in data.get('frames', [])],
        )


# =============================================================================
# QUESTION / ANSWER
# =============================================================================

@dataclass
class QASnippet(BaseModel):
    """A transcript excerpt supporting an answer."""
    segment_id: int
    text: str


@dataclass
class QAPair(BaseModel):
    """A generated question with its answer and supporting snippets."""
    question: str
    answer: str
    relevant_snippets: List[QASnippet] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'question': self.question,
            'answer': self.answer,
            'relevantSnippets': [s.to_dict() for s in self.relevant_snippets],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QAPair":
        return cls(
            question=data['question'],
            answer=data['answer'],
            relevant_snippets=[QASnippet(**s) for s in data.get('relevantSnippets', [])],
        )

    @classmethod
    def fallback(cls, reason: str) -> "QAPair":
        return cls(
            question="Error generating questions",
            answer=f"Unable to generate QA pairs: {reason}",
            relevant_snippets=[QASnippet(segment_id=0, text="")],
        )


# =============================================================================
# PROGRESS
# =============================================================================

@dataclass
class ProgressEvent(BaseModel):
    """A discrete progress notification for one session."""
    step: int
    message: str
    progress: float

    def to_message(self) -> Dict[str, Any]:
        """Wire form delivered over the progress stream."""
        return {
            'type': 'progress',
            'step': self.step,
            'message': self.message,
            'progress': self.progress,
        }


CONNECTED_MESSAGE = {'type': 'connected'}


# =============================================================================
# PIPELINE OUTPUT
# =============================================================================

@dataclass
class ResultMetadata(BaseModel):
    """
    Request-level metadata of an AnalysisResult.

    demo_mode and note are only serialized when set.
    """
    video_file: str
    video_duration: float
    processed_at: str
    processing_time: str
    demo_mode: Optional[bool] = None
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'videoFile': self.video_file,
            'videoDuration': self.video_duration,
            'processedAt': self.processed_at,
            'processingTime': self.processing_time,
        }
        if self.demo_mode is not None:
            data['demoMode'] = self.demo_mode
        if self.note is not None:
            data['note'] = self.note
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResultMetadata":
        return cls(
            video_file=data['videoFile'],
            video_duration=data['videoDuration'],
            processed_at=data['processedAt'],
            processing_time=data['processingTime'],
            demo_mode=data.get('demoMode'),
            note=data.get('note'),
        )


@dataclass
class AnalysisResult(BaseModel):
    """
    Complete output of one processing request.

    Built once by the orchestrator (or the demo engine), returned to the
    caller and not retained afterwards.
    """
    session_id: str
    metadata: ResultMetadata
    transcript: Transcript
    sentiment: SentimentResult
    objects_detected: List[DetectedObjectSummary] = field(default_factory=list)
    qa_pairs: List[QAPair] = field(default_factory=list)

    @property
    def is_demo(self) -> bool:
        return bool(self.metadata.demo_mode)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sessionId': self.session_id,
            'metadata': self.metadata.to_dict(),
            'transcript': self.transcript.to_dict(),
            'sentiment': self.sentiment.to_dict(),
            'objects_detected': [o.to_dict() for o in self.objects_detected],
            'qa_pairs': [q.to_dict() for q in self.qa_pairs],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisResult":
        return cls(
            session_id=data.get('sessionId', ''),
            metadata=ResultMetadata.from_dict(data['metadata']),
            transcript=Transcript.from_dict(data['transcript']),
            sentiment=SentimentResult(**data['sentiment']),
            objects_detected=[DetectedObjectSummary.from_dict(o) for o in data.get('objects_detected', [])],
            qa_pairs=[QAPair.from_dict(q) for q in data.get('qa_pairs', [])],
        )

    def save(self, filepath: str) -> None:
        """Save result to JSON file."""
        with open(filepath, 'w', encoding='utf-8') as f:
            f.write(self.to_json())


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def generate_session_id() -> str:
    """Generate a session identifier: session_<epoch ms>_<9 random chars>."""
    return f"session_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')
