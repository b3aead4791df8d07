"""
Hybrid Context Assembler

Builds the conversational context handed to the oracle:
- the most recent messages verbatim
- older messages as batch summaries, cached per thread
- relevant speech acts and knowledge, already filtered by the caller

Partition rule: for L sorted messages and window W < L, the recent window
is exactly the last W messages and the summaries cover exactly the first
L-W message ids, each in one summary.

Trimming to the token budget only ever drops summaries, oldest first.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..common.errors import SummarizationError
from ..common.schemas import (
    Email,
    EmailAddress,
    EmailSummary,
    KnowledgeEntry,
    MemoryContext,
    SpeechAct,
    SpeechActType,
)
from ..common.schemas.templates import render_memory_context
from .summarizer import SummarizationOracle

logger = logging.getLogger("parley.memory.assembler")

# Relevance weights
BASE_SCORE = 1.0
SPEECH_ACT_BONUS = 2.0
COMMITMENT_BONUS = 3.0
DECISION_BONUS = 3.0
KEYWORD_BONUS = 1.5

CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class AssemblerConfig:
    """Per-instance settings. Immutable once the assembler is built."""
    recent_window_size: int = 10
    summary_batch_size: int = 5
    max_tokens: int = 46000
    skill_keywords: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.recent_window_size < 0:
            raise ValueError("recent_window_size must be >= 0")
        if self.summary_batch_size < 1:
            raise ValueError("summary_batch_size must be >= 1")
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be >= 1")


@dataclass
class RankedMessage:
    """A message with its relevance score and why it scored that way"""
    email: Email
    relevance_score: float
    reason: str


def _tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def _batches(messages: Sequence[Email], size: int) -> List[List[Email]]:
    return [list(messages[i:i + size]) for i in range(0, len(messages), size)]


def _union_participants(messages: Iterable[Email]) -> List[EmailAddress]:
    seen: Dict[str, EmailAddress] = {}
    for email in messages:
        for address in email.participants():
            seen.setdefault(address.email, address)
    return list(seen.values())


class HybridContextAssembler:
    """
    Assembles verbatim-recent plus summarized-older context.

    Owns the per-thread summary cache. One instance per process/session;
    the cache assumes no concurrent writer for the same thread id.
    """

    def __init__(
        self,
        summarizer: SummarizationOracle,
        config: Optional[AssemblerConfig] = None
    ):
        """
        Initialize assembler.

        Args:
            summarizer: Summarization oracle, awaited once per batch
            config: Window, batch size, token budget and keywords
        """
        self._summarizer = summarizer
        self._config = config or AssemblerConfig()
        self._cache: Dict[str, List[EmailSummary]] = {}

    @property
    def config(self) -> AssemblerConfig:
        return self._config

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------

    def split_messages(self, messages: Iterable[Email]) -> Tuple[List[Email], List[Email]]:
        """
        Sort by timestamp (stable) and split into (older, recent).

        ``older`` is empty when the list fits in the window.
        """
        ordered = sorted(messages, key=lambda email: email.timestamp)
        split_at = max(len(ordered) - self._config.recent_window_size, 0)
        return ordered[:split_at], ordered[split_at:]

    async def build_context(
        self,
        messages: Iterable[Email],
        thread_id: str,
        relevant_speech_acts: Iterable[SpeechAct] = (),
        relevant_knowledge: Iterable[KnowledgeEntry] = ()
    ) -> MemoryContext:
        """
        Build a hybrid context for one thread.

        Args:
            messages: Thread messages already filtered for the audience
            thread_id: Summary cache key
            relevant_speech_acts: Speech acts already filtered for the audience
            relevant_knowledge: Knowledge already filtered for the audience

        Returns:
            MemoryContext with recent messages and summaries of older ones

        Raises:
            SummarizationError: if the oracle fails on any batch
        """
        older, recent = self.split_messages(messages)

        summaries: List[EmailSummary] = []
        if older:
            cached = self._cache.get(thread_id)
            if cached and self._summaries_match(cached, older):
                logger.debug("Reusing %d cached summaries for thread %s", len(cached), thread_id)
                summaries = list(cached)
            else:
                summaries = await self._generate_summaries(older, thread_id)

        return MemoryContext(
            recent_messages=recent,
            summaries=summaries,
            relevant_speech_acts=list(relevant_speech_acts),
            relevant_knowledge=list(relevant_knowledge),
        )

    async def _generate_summaries(self, older: List[Email], thread_id: str) -> List[EmailSummary]:
        """
        Summarize ``older`` batch by batch, sequentially.

        The cache entry for the thread is replaced after every completed
        batch, so an abandoned or failed run keeps the batches that finished.
        A partial entry never covers the full older span and is regenerated
        on the next call.
        """
        batches = _batches(older, self._config.summary_batch_size)
        logger.info(
            "Summarizing %d older messages in %d batch(es) for thread %s",
            len(older), len(batches), thread_id,
        )

        summaries: List[EmailSummary] = []
        for batch in batches:
            try:
                result = await self._summarizer.summarize(batch, thread_id)
            except SummarizationError:
                raise
            except Exception as e:
                raise SummarizationError(f"Summarization failed for thread {thread_id}: {e}") from e

            summaries.append(EmailSummary(
                thread_id=thread_id,
                summary=result.summary,
                key_points=list(result.key_points),
                participants=_union_participants(batch),
                message_ids=[email.message_id for email in batch],
            ))
            self._cache[thread_id] = list(summaries)

        return summaries

    @staticmethod
    def _summaries_match(summaries: List[EmailSummary], messages: List[Email]) -> bool:
        """Cached ids must equal the older ids; extra ids could overlap the recent window"""
        covered = {msg_id for summary in summaries for msg_id in summary.message_ids}
        return covered == {email.message_id for email in messages}

    # ------------------------------------------------------------------
    # Relevance ranking
    # ------------------------------------------------------------------

    def rank_messages(
        self,
        messages: Iterable[Email],
        speech_acts: Iterable[SpeechAct]
    ) -> List[RankedMessage]:
        """
        Rank messages by how much detail they deserve to keep.

        Score: 1.0 base, +2.0 per co-located speech act, +3.0 if any is a
        commitment, +3.0 if any is a decision, +1.5 per configured keyword
        found in subject or body (case-insensitive). Highest first; equal
        scores keep input order.
        """
        acts_by_message: Dict[str, List[SpeechAct]] = {}
        for act in speech_acts:
            acts_by_message.setdefault(act.source_message_id, []).append(act)

        keywords = [kw.lower() for kw in self._config.skill_keywords if kw]

        ranked = []
        for email in messages:
            score = BASE_SCORE
            reasons = []

            acts = acts_by_message.get(email.message_id, [])
            if acts:
                score += len(acts) * SPEECH_ACT_BONUS
                reasons.append(f"Contains {len(acts)} speech act(s)")
                if any(a.type == SpeechActType.COMMITMENT for a in acts):
                    score += COMMITMENT_BONUS
                    reasons.append("Contains commitment")
                if any(a.type == SpeechActType.DECISION for a in acts):
                    score += DECISION_BONUS
                    reasons.append("Contains decision")

            if keywords:
                subject = email.subject.lower()
                body = email.body.lower()
                matching = [kw for kw in keywords if kw in subject or kw in body]
                if matching:
                    score += len(matching) * KEYWORD_BONUS
                    reasons.append(f"Matches skill keywords: {', '.join(matching)}")

            ranked.append(RankedMessage(
                email=email,
                relevance_score=score,
                reason="; ".join(reasons) or "Base relevance",
            ))

        ranked.sort(key=lambda r: r.relevance_score, reverse=True)
        return ranked

    # ------------------------------------------------------------------
    # Token budget
    # ------------------------------------------------------------------

    def estimate_tokens(self, context: MemoryContext) -> int:
        """Approximate tokens as ceil(chars / 4) per text field"""
        tokens = 0
        for email in context.recent_messages:
            tokens += _tokens(email.body + email.subject)
        for summary in context.summaries:
            tokens += _tokens(summary.summary)
            tokens += sum(_tokens(point) for point in summary.key_points)
        for act in context.relevant_speech_acts:
            tokens += _tokens(act.content)
        return tokens

    def trim_context(self, context: MemoryContext) -> MemoryContext:
        """
        Fit ``context`` into the token budget.

        Drops summaries oldest first, one at a time. Recent messages, speech
        acts and knowledge are never removed, so the result can still be
        over budget once no summaries remain.
        """
        if self.estimate_tokens(context) <= self._config.max_tokens:
            return context

        summaries = list(context.summaries)
        trimmed = context
        while summaries:
            summaries.pop(0)
            trimmed = context.model_copy(update={"summaries": list(summaries)})
            if self.estimate_tokens(trimmed) <= self._config.max_tokens:
                break

        dropped = len(context.summaries) - len(trimmed.summaries)
        if dropped:
            logger.info("Trimmed %d summary(ies) to fit %d tokens", dropped, self._config.max_tokens)
        if self.estimate_tokens(trimmed) > self._config.max_tokens:
            logger.warning("Context still exceeds token budget after trimming all summaries")
        return trimmed

    # ------------------------------------------------------------------
    # Rendering & cache
    # ------------------------------------------------------------------

    def format_context(self, context: MemoryContext) -> str:
        return render_memory_context(context)

    def cached_summaries(self, thread_id: str) -> List[EmailSummary]:
        return list(self._cache.get(thread_id, []))

    def clear_cache(self, thread_id: Optional[str] = None) -> None:
        """Drop cached summaries for one thread, or for all threads"""
        if thread_id is not None:
            self._cache.pop(thread_id, None)
        else:
            self._cache.clear()
