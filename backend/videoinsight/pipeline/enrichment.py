"""
Segment Enrichment Module
=========================
Merges batch segment-sentiment records and the speaker label into raw
transcript segments.
"""

import logging
from typing import Dict, Iterable, List

from ..models import (
    DEFAULT_SPEAKER,
    UNKNOWN_MOOD,
    EnrichedSegment,
    SegmentSentiment,
    Sentiment,
    TranscriptSegment,
)

logger = logging.getLogger(__name__)


def enrich_segments(
    raw_segments: Iterable[TranscriptSegment],
    segment_sentiments: Iterable[SegmentSentiment],
    speaker: str = DEFAULT_SPEAKER,
) -> List[EnrichedSegment]:
    """
    Build one EnrichedSegment per raw segment, in input order.

    Sentiment records are matched by segment_id; when several records share
    an id the first one wins. Segments without a record get a neutral
    sentiment and ["unknown"] mood keywords. Raw segments are not modified.

    Args:
        raw_segments: Segments from the transcription collaborator
        segment_sentiments: Records from the batch sentiment collaborator
        speaker: Speaker label attached to every segment

    Returns:
        Enriched segments, same count and order as raw_segments
    """
    by_id: Dict[int, SegmentSentiment] = {}
    for record in segment_sentiments:
        by_id.setdefault(record.segment_id, record)

    enriched = []
    missing = 0
    for segment in raw_segments:
        record = by_id.get(segment.id)
        if record is None:
            missing += 1
            sentiment, mood_keywords = Sentiment.NEUTRAL.value, [UNKNOWN_MOOD]
        else:
            sentiment, mood_keywords = record.sentiment, record.mood_keywords

        enriched.append(EnrichedSegment.from_segment(
            segment,
            sentiment=sentiment,
            mood_keywords=mood_keywords,
            speaker=speaker,
        ))

    if missing:
        logger.warning(f"{missing} segment(s) had no sentiment record, defaulted to neutral")

    return enriched
