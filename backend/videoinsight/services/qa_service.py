"""
QA Service Module
=================
Generates fan-facing question/answer pairs from a transcript.

Responses are parsed against explicit, ordered alias lists rather than
probing arbitrary properties:

    QA_PAIR_KEYS  = ("qa_pairs", "qaPairs", "pairs")
    SNIPPET_KEYS  = ("relevantSnippets", "relevant_snippets", "snippets")

Any failure yields a single fallback pair with an empty snippet.
"""

import logging
from typing import Any, List, Optional, Sequence

from ..config import AppConfig, get_config
from ..logging_config import log_collaborator_fallback
from ..models import EnrichedSegment, QAPair, QASnippet
from .backends import (
    create_gemini_model,
    create_openai_client,
    first_present,
    parse_json_response,
    resolve_backend,
)

logger = logging.getLogger(__name__)

QA_PAIR_KEYS = ("qa_pairs", "qaPairs", "pairs")
SNIPPET_KEYS = ("relevantSnippets", "relevant_snippets", "snippets")
SEGMENT_ID_KEYS = ("segment_id", "segmentId")

SYSTEM_PROMPT = (
    "You are an AI that creates interactive fan engagement content from creator videos. "
    "Generate questions and answers that fans would want to ask about the video content. "
    "Always respond with valid JSON only."
)


class QAService:
    """Service for generating question/answer pairs with supporting snippets."""

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
                self.api_key, self.config, self.config.gemini.qa_temperature
            )
        return self._model

    def _build_prompt(
        self,
        full_text: str,
        desired_count: int,
        segments: Optional[Sequence[EnrichedSegment]] = None
    ) -> str:
        segment_reference = ""
        if segments:
            segment_reference = "\n\nTranscript Segments:\n" + "\n".join(
                f"[{seg.id}] {seg.text}" for seg in segments
            )

        return f"""You are creating interactive Q&A content for fans of a content creator.

Based on the video transcript below, generate {desired_count} factual, relevant Q&A pairs that:
- Are answerable directly from the transcript
- Focus on key actions, tips, insights, or topics the creator discusses
- Avoid duplicates or trivial questions
- Help fans engage with and understand the content better

Each QA pair should include:
- question: A clear, specific question fans might ask
- answer: A concise but complete answer based on the transcript
- relevantSnippets: An array of 1-3 most relevant snippets from the transcript that support the answer
  Each snippet should have:
  - segment_id: The segment ID number (if segments provided, otherwise 0)
  - text: The exact text from the transcript (1-2 sentences)

Return a JSON object with a single key "qa_pairs" containing an array of objects with keys: question, answer, relevantSnippets

Transcript:
{full_text}
{segment_reference}

Return ONLY the JSON object, no additional text."""

    def generate_qa(
        self,
        full_text: str,
        desired_count: Optional[int] = None,
        segments: Optional[Sequence[EnrichedSegment]] = None
    ) -> List[QAPair]:
        """
        Generate question/answer pairs from a transcript.

        Args:
            full_text: Full transcript text
            desired_count: Number of pairs to request (defaults to config.qa.num_pairs)
            segments: Optional segments so snippets can reference segment ids

        Returns:
            Parsed QA pairs, or a single fallback pair on failure
        """
        count = desired_count or self.config.qa.num_pairs
        logger.info(f"Generating {count} question-answer pairs")

        prompt = self._build_prompt(full_text, count, segments)
        try:
            if self.backend == "openai":
                response = self.client.chat.completions.create(
                    model=self.config.openai.chat_model,
                    messages=[
                        {'role': 'system', 'content': SYSTEM_PROMPT},
                        {'role': 'user', 'content': prompt}
                    ],
                    response_format={'type': 'json_object'},
                    temperature=self.config.openai.qa_temperature,
                    max_tokens=self.config.openai.qa_max_tokens
                )
                data = parse_json_response(response.choices[0].message.content)
            else:
                response = self.model.generate_content(f"{SYSTEM_PROMPT}\n\n{prompt}")
                data = parse_json_response(response.text)

            qa_pairs = self.parse_qa_pairs(data)
        except Exception as e:
            log_collaborator_fallback("qa", e, "fallback pair")
            return [QAPair.fallback(str(e))]

        logger.info(f"Generated {len(qa_pairs)} QA pairs")
        return qa_pairs

    @staticmethod
    def parse_qa_pairs(data: Any) -> List[QAPair]:
        """
        Parse a QA response against the documented alias lists.

        A bare JSON array is accepted as the pair list. Items missing a
        question or answer are skipped.
        """
        items = data if isinstance(data, list) else first_present(data, QA_PAIR_KEYS, [])
        if not isinstance(items, list):
            raise ValueError("QA response has no pair list")

        pairs = []
        for item in items:
            if not isinstance(item, dict):
                continue
            question = item.get('question')
            answer = item.get('answer')
            if not question or not answer:
                logger.warning(f"Skipping incomplete QA pair: {item}")
                continue

            snippets = []
            for raw in first_present(item, SNIPPET_KEYS, []) or []:
                if not isinstance(raw, dict):
                    continue
                segment_id = first_present(raw, SEGMENT_ID_KEYS, 0)
                try:
                    segment_id = int(segment_id)
                except (TypeError, ValueError):
                    segment_id = 0
                snippets.append(QASnippet(segment_id=segment_id, text=str(raw.get('text') or '')))

            pairs.append(QAPair(question=str(question), answer=str(answer), relevant_snippets=snippets))
        return pairs
