"""
Assistant Session

Owns the long-lived state objects of one assistant process: the speech act
repository, the participant access tracker and the context assembler.
Everything is injected; there are no module-level singletons.

Pipeline when the assistant needs to respond:
1. Filter thread messages, speech acts and knowledge for the audience
2. Build the hybrid context from what survived
3. Fall back to verbatim-only context if summarization fails
4. Trim to the token budget and render the prompt text
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from .common.config import ParleyConfig
from .common.errors import SummarizationError
from .common.llm_client import LLMClient
from .common.schemas import (
    AccessCheckResult,
    Email,
    EmailAddress,
    KnowledgeEntry,
    MemoryContext,
    SpeechAct,
)
from .memory import EmailSummarizer, HybridContextAssembler
from .privacy import ParticipantAccessTracker
from .privacy.tracker import Participant, participant_address
from .speech_acts import SpeechActDetector, SpeechActQuery, SpeechActRepository

logger = logging.getLogger("parley.session")


@dataclass
class PreparedContext:
    """Context ready for the oracle, plus what was left out and why"""
    context: MemoryContext
    prompt_text: str
    withheld_message_ids: List[str] = field(default_factory=list)
    degraded: bool = False  # True when summarization failed and older history was dropped


class AssistantSession:
    """
    One assistant identity's working state.

    Not safe for concurrent writers: tracker sets and the summary cache
    assume a single owner per thread id and participant address.
    """

    def __init__(
        self,
        assembler: HybridContextAssembler,
        tracker: Optional[ParticipantAccessTracker] = None,
        repository: Optional[SpeechActRepository] = None,
        detector: Optional[SpeechActDetector] = None,
        min_speech_act_confidence: float = 0.0,
        assistant_email: str = "",
    ):
        self.assembler = assembler
        self.tracker = tracker or ParticipantAccessTracker()
        self.repository = repository or SpeechActRepository()
        self.detector = detector
        self._min_confidence = min_speech_act_confidence
        self._assistant_email = assistant_email

    @classmethod
    def from_config(cls, config: ParleyConfig) -> "AssistantSession":
        """Wire a session with LLM-backed oracles from ``config``"""
        llm = LLMClient.from_config(config.llm)
        assembler = HybridContextAssembler(
            summarizer=EmailSummarizer(
                llm, max_tokens=config.llm.max_tokens, timeout=config.llm.timeout,
            ),
            config=config.memory.to_assembler_config(),
        )
        logger.info(
            "Session ready (provider: %s, llm available: %s)",
            config.llm.provider, llm.is_available,
        )
        return cls(
            assembler=assembler,
            detector=SpeechActDetector(
                llm, max_tokens=config.llm.max_tokens, timeout=config.llm.timeout,
            ),
            min_speech_act_confidence=config.privacy.min_speech_act_confidence,
            assistant_email=config.assistant_email,
        )

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest(self, email: Email, speech_acts: Iterable[SpeechAct] = ()) -> None:
        """Record exposure to ``email`` and store/track its speech acts"""
        self.tracker.track_email(email)
        acts = list(speech_acts)
        self.repository.add_many(acts)
        self.tracker.track_speech_acts(acts)

    async def classify_and_ingest(self, email: Email) -> List[SpeechAct]:
        """Classify ``email`` with the detector, then ingest it with its acts"""
        acts = await self.detector.detect(email) if self.detector else []
        self.ingest(email, acts)
        logger.info("Ingested %s with %d speech act(s)", email.message_id, len(acts))
        return acts

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    def _human_audience(self, audience: Sequence[Participant]) -> List[Participant]:
        """Drop the assistant's own address; it is on every message it handles"""
        if not self._assistant_email:
            return list(audience)
        return [p for p in audience if participant_address(p) != self._assistant_email]

    def check_sharing(
        self,
        source_message_ids: Sequence[str],
        audience: Sequence[Participant]
    ) -> AccessCheckResult:
        return self.tracker.check_access(source_message_ids, self._human_audience(audience))

    async def prepare_context(
        self,
        thread_id: str,
        messages: Sequence[Email],
        audience: Sequence[Participant],
        knowledge: Iterable[KnowledgeEntry] = (),
        speech_acts: Optional[Iterable[SpeechAct]] = None,
    ) -> PreparedContext:
        """
        Build an audience-safe, token-bounded context for one thread.

        Args:
            thread_id: Thread being answered
            messages: All known messages of the thread
            audience: Everyone who will see the response (the assistant's
                own address is ignored)
            knowledge: Candidate knowledge entries
            speech_acts: Candidate speech acts (default: the thread's acts
                from the repository)

        Returns:
            PreparedContext
        """
        audience = self._human_audience(audience)
        visible = self.tracker.filter_emails(messages, audience)
        visible_ids = {email.message_id for email in visible}
        withheld = [email.message_id for email in messages if email.message_id not in visible_ids]
        if withheld:
            logger.info(
                "Withholding %d message(s) from thread %s for this audience",
                len(withheld), thread_id,
            )

        if speech_acts is None:
            speech_acts = self.repository.query(SpeechActQuery(
                thread_id=thread_id,
                min_confidence=self._min_confidence or None,
            ))
        acts = self.tracker.filter_speech_acts(speech_acts, audience)
        entries = self.tracker.filter_knowledge_entries(knowledge, audience)

        degraded = False
        try:
            context = await self.assembler.build_context(visible, thread_id, acts, entries)
        except SummarizationError as e:
            logger.warning("Summarization failed for thread %s, using recent messages only: %s", thread_id, e)
            _, recent = self.assembler.split_messages(visible)
            context = MemoryContext(
                recent_messages=recent,
                summaries=[],
                relevant_speech_acts=acts,
                relevant_knowledge=entries,
            )
            degraded = True

        context = self.assembler.trim_context(context)
        return PreparedContext(
            context=context,
            prompt_text=self.assembler.format_context(context),
            withheld_message_ids=withheld,
            degraded=degraded,
        )

    def participants(self) -> List[EmailAddress]:
        return self.tracker.get_all_participants()
