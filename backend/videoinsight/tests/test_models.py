"""
Data Models Tests
=================
Verifies serialization of the response schema and the model helpers.
"""

import json
import os
import re
import sys
import tempfile

# Add parent to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from videoinsight.models import (
    AnalysisResult,
    DetectedObjectFrame,
    DetectedObjectSummary,
    EnrichedSegment,
    PipelineState,
    ProgressEvent,
    QAPair,
    QASnippet,
    ResultMetadata,
    SegmentSentiment,
    SentimentResult,
    Transcript,
    Transcription,
    TranscriptSegment,
    generate_session_id,
    normalize_keywords,
    normalize_sentiment,
    utc_timestamp,
)


# =============================================================================
# MOCK DATA
# =============================================================================

def create_sample_result(demo_mode=None):
    return AnalysisResult(
        session_id="session_1_abc",
        metadata=ResultMetadata(
            video_file="clip.mp4",
            video_duration=12.5,
            processed_at="2024-05-01T10:00:00.000Z",
            processing_time="3.21s",
            demo_mode=demo_mode,
        ),
        transcript=Transcript(
            full_text="Hello there. Bye now.",
            language="en",
            segments=[
                EnrichedSegment(id=0, start=0.0, end=2.0, text="Hello there.",
                                sentiment="positive", mood_keywords=["friendly"]),
                EnrichedSegment(id=1, start=2.0, end=4.0, text="Bye now."),
            ],
        ),
        sentiment=SentimentResult(
            overall_sentiment="positive",
            mood_keywords=["friendly"],
            confidence=0.8,
            short_summary="Warm greeting.",
        ),
        objects_detected=[
            DetectedObjectSummary(
                name="mug", appearance_percentage=50.0, avg_confidence=0.9,
                frames=[DetectedObjectFrame(frame_id=1, timestamp=0.0, confidence=0.9, context="on desk")],
            )
        ],
        qa_pairs=[
            QAPair(question="Who speaks?", answer="The creator.",
                   relevant_snippets=[QASnippet(segment_id=0, text="Hello there.")])
        ],
    )


# =============================================================================
# TESTS
# =============================================================================

def test_result_schema_keys():
    """Test that the result serializes with the exact top-level field set."""
    data = create_sample_result().to_dict()

    assert list(data.keys()) == [
        'sessionId', 'metadata', 'transcript', 'sentiment', 'objects_detected', 'qa_pairs'
    ]
    assert set(data['metadata'].keys()) == {'videoFile', 'videoDuration', 'processedAt', 'processingTime'}
    assert set(data['transcript'].keys()) == {'full_text', 'language', 'segments'}
    assert set(data['transcript']['segments'][0].keys()) == {
        'id', 'start', 'end', 'text', 'speaker', 'sentiment', 'mood_keywords'
    }
    assert set(data['objects_detected'][0].keys()) == {
        'name', 'appearance_percentage', 'avg_confidence', 'frames'
    }
    assert set(data['qa_pairs'][0].keys()) == {'question', 'answer', 'relevantSnippets'}
    assert data['qa_pairs'][0]['relevantSnippets'] == [{'segment_id': 0, 'text': 'Hello there.'}]

    print("[PASS] Result schema keys test passed")


def test_demo_metadata_fields_only_when_set():
    """Test that demoMode and note are emitted only for demo results."""
    live = create_sample_result().to_dict()['metadata']
    assert 'demoMode' not in live
    assert 'note' not in live

    demo = create_sample_result(demo_mode=True).to_dict()['metadata']
    assert demo['demoMode'] is True

    print("[PASS] Demo metadata fields test passed")


def test_enriched_segment_defaults():
    """Test the default speaker, sentiment and mood of an enriched segment."""
    segment = EnrichedSegment(id=3, start=1.0, end=2.0, text="x")

    assert segment.speaker == "creator"
    assert segment.sentiment == "neutral"
    assert segment.mood_keywords == ["unknown"]

    print("[PASS] Enriched segment defaults test passed")


def test_enriched_segment_from_segment_copies_keywords():
    """Test that from_segment builds a new value with its own keyword list."""
    raw = TranscriptSegment(id=0, start=0.0, end=1.5, text="Hi")
    keywords = ["calm"]
    enriched = EnrichedSegment.from_segment(raw, "positive", keywords)

    keywords.append("mutated")
    assert enriched.mood_keywords == ["calm"]
    assert (enriched.id, enriched.start, enriched.end, enriched.text) == (0, 0.0, 1.5, "Hi")

    print("[PASS] from_segment test passed")


def test_result_round_trip_via_file():
    """Test saving a result and loading it back."""
    result = create_sample_result(demo_mode=True)

    with tempfile.NamedTemporaryFile(mode='w', suffix='.json', delete=False) as f:
        temp_path = f.name

    try:
        result.save(temp_path)
        with open(temp_path, 'r', encoding='utf-8') as f:
            loaded = AnalysisResult.from_dict(json.load(f))

        assert loaded.session_id == result.session_id
        assert loaded.is_demo
        assert loaded.transcript.segments[1].mood_keywords == ["unknown"]
        assert loaded.objects_detected[0].frames[0].context == "on desk"
        assert loaded.qa_pairs[0].relevant_snippets[0].segment_id == 0
        print("[PASS] Result file round trip test passed")
    finally:
        os.unlink(temp_path)


def test_transcription_defaults_language():
    """Test that a missing language falls back to English."""
    transcription = Transcription.from_dict({
        'full_text': 'Hi',
        'language': None,
        'segments': [{'id': 0, 'start': 0, 'end': 1, 'text': 'Hi'}],
    })

    assert transcription.language == "en"
    assert isinstance(transcription.segments[0], TranscriptSegment)
    assert transcription.segments[0].duration_seconds == 1.0

    print("[PASS] Transcription language default test passed")


def test_normalize_sentiment():
    """Test sentiment label normalization."""
    assert normalize_sentiment("Positive ") == "positive"
    assert normalize_sentiment("NEGATIVE") == "negative"
    assert normalize_sentiment("ecstatic") == "neutral"
    assert normalize_sentiment(None) == "neutral"

    print("[PASS] normalize_sentiment test passed")


def test_normalize_keywords():
    """Test mood keyword normalization."""
    assert normalize_keywords(["happy", " calm "]) == ["happy", "calm"]
    assert normalize_keywords("happy") == ["happy"]
    assert normalize_keywords([]) == ["unknown"]
    assert normalize_keywords(None) == ["unknown"]

    print("[PASS] normalize_keywords test passed")


def test_fallback_records():
    """Test the documented fallback values."""
    sentiment = SentimentResult.fallback("boom")
    assert sentiment.overall_sentiment == "neutral"
    assert sentiment.mood_keywords == ["unknown"]
    assert sentiment.confidence == 0
    assert sentiment.short_summary == "Error analyzing sentiment: boom"

    qa = QAPair.fallback("boom").to_dict()
    assert qa['question'] == "Error generating questions"
    assert qa['answer'] == "Unable to generate QA pairs: boom"
    assert qa['relevantSnippets'] == [{'segment_id': 0, 'text': ''}]

    neutral = SegmentSentiment.neutral(4)
    assert (neutral.segment_id, neutral.sentiment, neutral.mood_keywords) == (4, "neutral", ["unknown"])

    print("[PASS] Fallback records test passed")


def test_progress_event_message():
    """Test the wire form of a progress event."""
    event = ProgressEvent(step=2, message="Extracted 4 frames", progress=30)

    assert event.to_message() == {
        'type': 'progress', 'step': 2, 'message': 'Extracted 4 frames', 'progress': 30
    }

    print("[PASS] Progress event message test passed")


def test_pipeline_state_terminal():
    """Test terminal state detection."""
    assert PipelineState.COMPLETED.is_terminal
    assert PipelineState.FAILED.is_terminal
    assert not PipelineState.OBJECT_DETECTION.is_terminal

    print("[PASS] Pipeline state test passed")


def test_generate_session_id_format():
    """Test the session id format."""
    session_id = generate_session_id()

    assert re.fullmatch(r"session_\d{13,}_[0-9a-f]{9}", session_id)
    assert generate_session_id() != session_id

    print("[PASS] Session id format test passed")


def test_utc_timestamp_format():
    """Test ISO-8601 UTC timestamps."""
    timestamp = utc_timestamp()

    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", timestamp)

    print("[PASS] UTC timestamp test passed")


def run_all_tests():
    """Run all model tests."""
    print("\n" + "="*60)
    print("DATA MODEL TESTS")
    print("="*60 + "\n")

    test_result_schema_keys()
    test_demo_metadata_fields_only_when_set()
    test_enriched_segment_defaults()
    test_enriched_segment_from_segment_copies_keywords()
    test_result_round_trip_via_file()
    test_transcription_defaults_language()
    test_normalize_sentiment()
    test_normalize_keywords()
    test_fallback_records()
    test_progress_event_message()
    test_pipeline_state_terminal()
    test_generate_session_id_format()
    test_utc_timestamp_format()

    print("\n" + "="*60)
    print("ALL DATA MODEL TESTS PASSED")
    print("="*60 + "\n")


if __name__ == "__main__":
    run_all_tests()
