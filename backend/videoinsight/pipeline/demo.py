"""
Demo Engine Module
==================
Produces a canned, schema-identical AnalysisResult without contacting any
collaborator, plus the synthetic progress schedule the orchestrator plays
back before returning it.

generate() is pure: the same display name (and processed_at) always yields
the same result.
"""

from typing import List, Optional

from ..models import (
    AnalysisResult,
    DetectedObjectFrame,
    DetectedObjectSummary,
    EnrichedSegment,
    ProgressEvent,
    QAPair,
    QASnippet,
    ResultMetadata,
    SentimentResult,
    Transcript,
)

DEMO_NOTE = "This is simulated data - no API calls were made"
DEMO_PROCESSED_AT = "2024-01-01T00:00:00.000Z"
DEMO_DURATION_SECONDS = 30
DEMO_PROCESSING_TIME = "2.5s"

# (step, message, percentage) played back with a delay between events
DEMO_PROGRESS_SCHEDULE = [
    (0, "Demo mode: Analyzing video...", 5),
    (1, "Demo mode: Simulating audio extraction...", 20),
    (2, "Demo mode: Simulating frame extraction...", 40),
    (3, "Demo mode: Simulating transcription...", 60),
    (4, "Demo mode: Simulating object detection...", 80),
    (5, "Demo mode: Simulating sentiment analysis...", 90),
    (6, "Demo mode: Simulating QA generation...", 95),
]

DEMO_COMPLETE_EVENT = (6, "Demo processing complete! 🎉", 100)

DEMO_TRANSCRIPT = (
    "Welcome to this demonstration video. In this video, we'll be exploring various "
    "concepts and discussing important topics. The content covers educational material "
    "presented in a clear and engaging manner. Throughout this presentation, you'll notice "
    "various visual elements and spoken explanations that work together to convey the "
    "message effectively. This is a sample transcript that demonstrates what a real "
    "transcription would look like."
)


def demo_progress_events() -> List[ProgressEvent]:
    """The synthetic schedule as ProgressEvent values, completion excluded."""
    return [ProgressEvent(step=s, message=m, progress=p) for s, m, p in DEMO_PROGRESS_SCHEDULE]


def _segments() -> List[EnrichedSegment]:
    return [
        EnrichedSegment(
            id=0, start=0.0, end=5.2,
            text="Welcome to this demonstration video. In this video, we'll be exploring "
                 "various concepts and discussing important topics.",
            sentiment="positive", mood_keywords=["welcoming", "engaging"],
        ),
        EnrichedSegment(
            id=1, start=5.2, end=10.4,
            text="The content covers educational material presented in a clear and engaging manner.",
            sentiment="positive", mood_keywords=["educational", "clear"],
        ),
        EnrichedSegment(
            id=2, start=10.4, end=17.8,
            text="Throughout this presentation, you'll notice various visual elements and spoken "
                 "explanations that work together to convey the message effectively.",
            sentiment="neutral", mood_keywords=["informative", "descriptive"],
        ),
        EnrichedSegment(
            id=3, start=17.8, end=22.5,
            text="This is a sample transcript that demonstrates what a real transcription would look like.",
            sentiment="neutral", mood_keywords=["demonstrative", "explanatory"],
        ),
    ]


def _objects() -> List[DetectedObjectSummary]:
    # Ordered by appearance_percentage, like real aggregation output
    return [
        DetectedObjectSummary(
            name="person", appearance_percentage=100.0, avg_confidence=0.97,
            frames=[
                DetectedObjectFrame(1, 0.0, 0.98, "creator in center frame speaking to camera"),
                DetectedObjectFrame(5, 4.0, 0.97, "creator gesturing while explaining"),
                DetectedObjectFrame(10, 9.0, 0.96, "creator sitting at desk"),
            ],
        ),
        DetectedObjectSummary(
            name="desk", appearance_percentage=66.7, avg_confidence=0.91,
            frames=[
                DetectedObjectFrame(1, 0.0, 0.92, "wooden desk in foreground"),
                DetectedObjectFrame(5, 4.0, 0.90, "desk surface visible"),
            ],
        ),
        DetectedObjectSummary(
            name="laptop", appearance_percentage=53.3, avg_confidence=0.94,
            frames=[
                DetectedObjectFrame(1, 0.0, 0.95, "on desk in front of creator"),
                DetectedObjectFrame(5, 4.0, 0.93, "visible on desk"),
                DetectedObjectFrame(10, 9.0, 0.94, "open laptop on desk"),
            ],
        ),
        DetectedObjectSummary(
            name="coffee cup", appearance_percentage=20.0, avg_confidence=0.86,
            frames=[
                DetectedObjectFrame(10, 9.0, 0.86, "next to laptop on desk"),
            ],
        ),
    ]


def _qa_pairs() -> List[QAPair]:
    return [
        QAPair(
            question="What is the main topic of the video?",
            answer="The video explores various educational concepts and discusses important "
                   "topics in a clear and engaging manner.",
            relevant_snippets=[
                QASnippet(0, "In this video, we'll be exploring various concepts and discussing important topics."),
                QASnippet(1, "The content covers educational material presented in a clear and engaging manner."),
            ],
        ),
        QAPair(
            question="How is the content presented?",
            answer="The content is presented through visual elements and spoken explanations "
                   "that work together effectively.",
            relevant_snippets=[
                QASnippet(2, "you'll notice various visual elements and spoken explanations that "
                             "work together to convey the message effectively."),
            ],
        ),
        QAPair(
            question="What is the purpose of this video?",
            answer="The purpose is to demonstrate what a real video analysis would produce, "
                   "showing how educational content can be effectively conveyed.",
            relevant_snippets=[
                QASnippet(0, "In this video, we'll be exploring various concepts and discussing important topics."),
                QASnippet(3, "This is a sample transcript that demonstrates what a real transcription would look like."),
            ],
        ),
    ]


class DemoEngine:
    """Generates the zero-cost demo result."""

    def generate(
        self,
        display_name: str,
        processed_at: Optional[str] = None,
        session_id: str = "",
    ) -> AnalysisResult:
        """
        Build the canned result for one upload.

        Args:
            display_name: Original filename reported as metadata.videoFile
            processed_at: Timestamp to report; defaults to DEMO_PROCESSED_AT
            session_id: Session id to stamp on the result

        Returns:
            AnalysisResult with metadata.demoMode set
        """
        return AnalysisResult(
            session_id=session_id,
            metadata=ResultMetadata(
                video_file=display_name,
                video_duration=DEMO_DURATION_SECONDS,
                processed_at=processed_at or DEMO_PROCESSED_AT,
                processing_time=DEMO_PROCESSING_TIME,
                demo_mode=True,
                note=DEMO_NOTE,
            ),
            transcript=Transcript(full_text=DEMO_TRANSCRIPT, language="en", segments=_segments()),
            sentiment=SentimentResult(
                overall_sentiment="positive",
                mood_keywords=["educational", "engaging", "informative"],
                confidence=0.88,
                short_summary="The creator speaks in an educational and engaging tone, presenting "
                              "information clearly with a positive and welcoming attitude.",
            ),
            objects_detected=_objects(),
            qa_pairs=_qa_pairs(),
        )
