"""
Sentiment Service Module
========================
Text sentiment and mood analysis over the transcript.

This service handles:
- Overall sentiment/mood summary of the full transcript
- Batch sentiment for individual transcript segments

Both calls fall back to neutral defaults instead of raising when the model
call or its response fails.
"""

import logging
from typing import Any, Dict, List, Optional

from ..config import AppConfig, get_config
from ..logging_config import log_collaborator_fallback
from ..models import (
    SegmentSentiment,
    SentimentResult,
    TranscriptSegment,
    normalize_keywords,
    normalize_sentiment,
)
from .backends import (
    create_gemini_model,
    create_openai_client,
    first_present,
    parse_json_response,
    resolve_backend,
)

logger = logging.getLogger(__name__)

SUMMARY_SYSTEM_PROMPT = (
    "You are a video sentiment analyst specializing in creator content. "
    "Analyze emotional tone and mood from video transcripts. "
    "Always respond with valid JSON only."
)

SEGMENT_SYSTEM_PROMPT = (
    "You are a sentiment analyst for creator video content. "
    "Analyze emotional tone of individual transcript segments. "
    "Always respond with valid JSON only."
)

SEGMENT_KEYS = ("segments", "segment_sentiments", "results")


class SentimentService:
    """Service for overall and per-segment sentiment analysis."""

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
        self._model = None

    @property
    def client(self):
        if self._client is None:
            self._client = create_openai_client(self.api_key)
        return self._client

    @property
    def model(self):
        if self._model is None:
            self._model = create_gemini_model(
                self.api_key, self.config, self.config.gemini.analysis_temperature
            )
        return self._model

    # -------------------------------------------------------------------------
    # Prompts
    # -------------------------------------------------------------------------

    @staticmethod
    def _build_summary_prompt(full_text: str) -> str:
        return f"""You are analyzing a video transcript from a content creator.

Analyze the overall sentiment and mood of this transcript.

Return a JSON object with these exact keys:
- overall_sentiment: "positive", "neutral", or "negative"
- mood_keywords: array of 1-3 descriptive words (e.g., ["cheerful", "friendly", "excited"])
- confidence: confidence score from 0 to 1 (as a decimal number)
- short_summary: 1-2 sentence description of emotional tone

Focus only on the transcript content. Do not assume external context.

Transcript:
{full_text}

Return ONLY the JSON object, no additional text."""

    @staticmethod
    def _build_segments_prompt(segments: List[TranscriptSegment]) -> str:
        segments_list = "\n".join(f'[{seg.id}] "{seg.text}"' for seg in segments)
        return f"""You are analyzing individual segments from a creator video transcript.

For each segment below, determine:
- sentiment: "positive", "neutral", or "negative"
- mood_keywords: 1-2 descriptive words for this specific segment

Return a JSON object with a single key "segments" containing an array.
Each array item should have: segment_id, sentiment, mood_keywords

Segments:
{segments_list}

Return ONLY the JSON object, no additional text."""

    def _complete(self, system_prompt: str, prompt: str) -> Any:
        """Send one JSON-mode completion and return the parsed payload."""
        if self.backend == "openai":
            response = self.client.chat.completions.create(
                model=self.config.openai.chat_model,
                messages=[
                    {'role': 'system', 'content': system_prompt},
                    {'role': 'user', 'content': prompt}
                ],
                response_format={'type': 'json_object'},
                temperature=self.config.openai.analysis_temperature
            )
            return parse_json_response(response.choices[0].message.content)

        response = self.model.generate_content(f"{system_prompt}\n\n{prompt}")
        return parse_json_response(response.text)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def summarize(self, full_text: str) -> SentimentResult:
        """
        Analyze the overall sentiment and mood of a transcript.

        Returns:
            SentimentResult; a neutral fallback record if analysis fails
        """
        logger.info("Starting overall sentiment analysis")
        try:
            data = self._complete(SUMMARY_SYSTEM_PROMPT, self._build_summary_prompt(full_text))
            result = self._parse_summary(data)
        except Exception as e:
            log_collaborator_fallback("sentiment", e, "neutral summary")
            return SentimentResult.fallback(str(e))

        logger.info(f"Overall sentiment analysis completed: {result.overall_sentiment}")
        return result

    def batch_segments(self, segments: List[TranscriptSegment]) -> List[SegmentSentiment]:
        """
        Analyze sentiment for each transcript segment in one request.

        Returns:
            One record per segment the model answered for; on failure a
            neutral record for every segment
        """
        if not segments:
            return []

        logger.info(f"Analyzing sentiment for {len(segments)} segments")
        try:
            data = self._complete(SEGMENT_SYSTEM_PROMPT, self._build_segments_prompt(segments))
            records = self._parse_segments(data)
        except Exception as e:
            log_collaborator_fallback("segment_sentiment", e, "neutral records")
            return [SegmentSentiment.neutral(seg.id) for seg in segments]

        logger.info(f"Segment sentiment analysis completed for {len(records)} segments")
        return records

    # -------------------------------------------------------------------------
    # Response parsing
    # -------------------------------------------------------------------------

    @staticmethod
    def _parse_summary(data: Dict[str, Any]) -> SentimentResult:
        if not isinstance(data, dict):
            raise ValueError("Sentiment response is not a JSON object")

        try:
            confidence = float(data.get('confidence', 0.0))
        except (TypeError, ValueError):
            confidence = 0.0

        return SentimentResult(
            overall_sentiment=normalize_sentiment(data.get('overall_sentiment')),
            mood_keywords=normalize_keywords(data.get('mood_keywords')),
            confidence=min(max(confidence, 0.0), 1.0),
            short_summary=str(data.get('short_summary') or ''),
        )

    @staticmethod
    def _parse_segments(data: Any) -> List[SegmentSentiment]:
        items = data if isinstance(data, list) else first_present(data, SEGMENT_KEYS, [])
        if not isinstance(items, list):
            raise ValueError("Segment sentiment response has no segment list")

        records = []
        for item in items:
            if not isinstance(item, dict) or item.get('segment_id') is None:
                continue
            try:
                segment_id = int(item['segment_id'])
            except (TypeError, ValueError):
                logger.warning(f"Skipping segment sentiment with bad id: {item.get('segment_id')!r}")
                continue
            records.append(SegmentSentiment(
                segment_id=segment_id,
                sentiment=normalize_sentiment(item.get('sentiment')),
                mood_keywords=normalize_keywords(item.get('mood_keywords')),
            ))
        return records
