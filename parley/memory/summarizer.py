"""
Email Summarizer

Summarization oracle: condenses an ordered batch of messages into a short
summary plus key points. The assembler wraps the result into an
EmailSummary with participants, message ids and creation time.
"""

import logging
from abc import ABC, abstractmethod
from typing import List

from ..common.errors import SummarizationError
from ..common.llm_client import LLMClient
from ..common.llm_utils import parse_llm_json
from ..common.schemas import Email, SummaryResult
from ..common.schemas.templates import render_email_batch

logger = logging.getLogger("parley.memory.summarizer")


SUMMARY_PROMPT = """Summarize the following email thread concisely. Extract:
1. A brief summary (2-3 sentences)
2. Key points as bullet points (3-7 points)

Focus on decisions made, commitments, questions asked, and important information shared.

{emails}

Return ONLY a JSON object with this structure:
{{
  "summary": "Brief 2-3 sentence summary",
  "key_points": ["Point 1", "Point 2"]
}}"""


class SummarizationOracle(ABC):
    """Anything that can summarize an ordered batch of messages"""

    @abstractmethod
    async def summarize(self, messages: List[Email], thread_id: str) -> SummaryResult:
        """
        Summarize a batch of messages.

        Raises:
            SummarizationError: if no usable summary could be produced
        """


class EmailSummarizer(SummarizationOracle):
    """LLM-backed summarization oracle"""

    def __init__(self, llm_client: LLMClient, max_tokens: int = 1024, timeout: float = 30.0):
        self._llm = llm_client
        self._max_tokens = max_tokens
        self._timeout = timeout

    @property
    def is_available(self) -> bool:
        return self._llm is not None and self._llm.is_available

    async def summarize(self, messages: List[Email], thread_id: str) -> SummaryResult:
        if not messages:
            raise SummarizationError("Cannot summarize empty email list")
        if not self.is_available:
            raise SummarizationError("Summarization oracle is not available")

        prompt = SUMMARY_PROMPT.format(emails=render_email_batch(messages))

        try:
            raw = self._llm.generate(prompt, max_tokens=self._max_tokens, timeout=self._timeout)
        except Exception as e:
            logger.warning("Summarization failed for thread %s: %s", thread_id, e)
            raise SummarizationError(f"Summarization failed: {e}") from e

        data = parse_llm_json(raw)
        summary = str(data.get("summary", "")).strip()
        if not summary:
            logger.warning("Unparseable summary for thread %s", thread_id)
            raise SummarizationError("Summarization oracle returned no summary")

        key_points = data.get("key_points") or []
        if not isinstance(key_points, list):
            key_points = [key_points]

        return SummaryResult(
            summary=summary,
            key_points=[str(point).strip() for point in key_points if str(point).strip()],
        )
