"""
Speech Act Detector

Wraps the classification oracle: asks the LLM for the speech acts in one
email and turns its reply into SpeechAct records ready for the repository.

A failed classification is logged and yields no acts. Callers get less
context, never no response.
"""

import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional

from ..common.llm_client import LLMClient
from ..common.llm_utils import parse_llm_json_list
from ..common.schemas import Email, EmailAddress, SpeechAct, SpeechActType

logger = logging.getLogger("parley.speech_acts.detector")


DETECTION_PROMPT = """You are an expert at analyzing email communication and identifying speech acts.

A speech act is a specific communicative action performed through language:
- REQUEST: Asking someone to do something ("Can you send me the report?")
- QUESTION: Seeking information ("What is the deadline?")
- COMMITMENT: Promising to do something ("I will finish this by Friday")
- DECISION: Stating a decision that has been made ("We've decided to use React")
- STATEMENT: Declaring facts or information ("The meeting is at 2pm")
- GREETING: Social opening ("Hi team")
- ACKNOWLEDGMENT: Confirming receipt or understanding ("Got it, thanks")
- SUGGESTION: Proposing an idea ("How about we use approach X?")
- OBJECTION: Expressing disagreement or concern ("I'm worried about the timeline")
- AGREEMENT: Expressing agreement ("That sounds good to me")

Analyze the following email and extract ALL speech acts.

Email from: {sender}
To: {to}
Subject: {subject}
Body:
{body}

For each speech act, provide:
1. type: One of the types listed above (in UPPERCASE)
2. content: The specific text or paraphrased content of the speech act
3. confidence: A number between 0 and 1
4. metadata: Any additional context (optional object)

Respond with a JSON array of speech acts only."""


def _format_address(address: EmailAddress) -> str:
    return f"{address.name} <{address.email}>" if address.name else address.email


def map_speech_act_type(label: Any) -> SpeechActType:
    """Map an oracle label to the closed vocabulary; unknown labels become STATEMENT"""
    try:
        return SpeechActType(str(label).strip().lower())
    except ValueError:
        return SpeechActType.STATEMENT


def _clamp_confidence(value: Any) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.5
    return max(0.0, min(1.0, confidence))


class SpeechActDetector:
    """
    Classifies an email into speech acts using an LLM.

    The oracle returns ``{type, content, confidence, metadata?}`` tuples; the
    detector adds id, actor, participants, source message and thread.
    """

    def __init__(
        self,
        llm_client: LLMClient,
        max_tokens: int = 1024,
        temperature: float = 0.3,
        timeout: float = 30.0,
    ):
        """
        Initialize detector.

        Args:
            llm_client: Client used as the classification oracle
            max_tokens: Response token limit per email
            temperature: Sampling temperature (low for consistent labels)
            timeout: Per-request timeout in seconds
        """
        self._llm = llm_client
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._timeout = timeout

    @property
    def is_available(self) -> bool:
        return self._llm is not None and self._llm.is_available

    def build_prompt(self, email: Email) -> str:
        return DETECTION_PROMPT.format(
            sender=_format_address(email.sender),
            to=", ".join(_format_address(a) for a in email.to),
            subject=email.subject,
            body=email.body,
        )

    async def detect(self, email: Email) -> List[SpeechAct]:
        """
        Detect all speech acts in an email.

        Args:
            email: Message to classify

        Returns:
            Speech acts (empty if the oracle is unavailable or fails)
        """
        if not self.is_available:
            logger.info("Classification oracle unavailable, skipping %s", email.message_id)
            return []

        try:
            raw = self._llm.generate(
                self.build_prompt(email),
                max_tokens=self._max_tokens,
                temperature=self._temperature,
                timeout=self._timeout,
            )
        except Exception as e:
            logger.warning("Speech act detection failed for %s: %s", email.message_id, e)
            return []

        detected = parse_llm_json_list(raw)
        if not detected:
            logger.warning("No speech acts parsed for %s", email.message_id)
        return self.build_speech_acts(email, detected)

    async def detect_many(self, emails: Iterable[Email]) -> List[SpeechAct]:
        """Detect speech acts for each email in turn"""
        acts: List[SpeechAct] = []
        for email in emails:
            acts.extend(await self.detect(email))
        return acts

    def build_speech_acts(self, email: Email, detected: List[Any]) -> List[SpeechAct]:
        """Wrap raw oracle tuples into SpeechAct records for ``email``"""
        participants = email.participants()
        acts = []
        for item in detected:
            if not isinstance(item, dict) or not str(item.get("content", "")).strip():
                continue
            metadata: Optional[Dict[str, Any]] = item.get("metadata")
            acts.append(SpeechAct(
                id=str(uuid.uuid4()),
                type=map_speech_act_type(item.get("type", "")),
                content=str(item["content"]).strip(),
                actor=email.sender,
                participants=participants,
                confidence=_clamp_confidence(item.get("confidence", 0.5)),
                source_message_id=email.message_id,
                thread_id=email.thread_id,
                timestamp=email.timestamp,
                metadata=metadata if isinstance(metadata, dict) else {},
            ))
        return acts
