"""
Parley Record Schemas

Core principle: a participant may only see context built from items they
were already a legitimate recipient of. Every record that can end up in an
oracle prompt carries the addresses allowed to see it.
"""

from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from enum import Enum


# ============================================================================
# Enums
# ============================================================================

class SpeechActType(str, Enum):
    """Closed vocabulary of communicative acts"""
    REQUEST = "request"
    QUESTION = "question"
    COMMITMENT = "commitment"
    DECISION = "decision"
    STATEMENT = "statement"
    GREETING = "greeting"
    ACKNOWLEDGMENT = "acknowledgment"
    SUGGESTION = "suggestion"
    OBJECTION = "objection"
    AGREEMENT = "agreement"


class KnowledgeCategory(str, Enum):
    """Stored knowledge categories"""
    DECISION = "decision"
    COMMITMENT = "commitment"
    PROJECT_INFO = "project_info"
    PERSON = "person"
    PREFERENCE = "preference"
    OTHER = "other"


# ============================================================================
# Timestamps
# ============================================================================

def ensure_utc(value: datetime) -> datetime:
    """Naive timestamps are taken to be UTC so every stored timestamp compares"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ============================================================================
# Email
# ============================================================================

class EmailAddress(BaseModel):
    """A mailbox. Identity is the exact ``email`` string."""
    model_config = ConfigDict(frozen=True)

    email: str
    name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.email


class Email(BaseModel):
    """A single message in a thread"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    message_id: str
    thread_id: str
    sender: EmailAddress = Field(..., alias="from")
    to: List[EmailAddress] = Field(default_factory=list)
    cc: List[EmailAddress] = Field(default_factory=list)
    subject: str = ""
    body: str = ""
    timestamp: datetime
    in_reply_to: Optional[str] = None
    references: List[str] = Field(default_factory=list)

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def participants(self) -> List[EmailAddress]:
        """Sender, then recipients, deduplicated by address (first wins)"""
        seen = set()
        result = []
        for address in [self.sender, *self.to, *self.cc]:
            if address.email not in seen:
                seen.add(address.email)
                result.append(address)
        return result


class EmailThread(BaseModel):
    """Messages sharing a thread id, oldest first"""
    thread_id: str
    subject: str
    messages: List[Email]
    participants: List[EmailAddress]


# ============================================================================
# Speech acts
# ============================================================================

class SpeechAct(BaseModel):
    """
    A classified communicative unit extracted from one message.

    Immutable once created. ``participants`` lists who may see it.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    type: SpeechActType
    content: str
    actor: EmailAddress
    participants: List[EmailAddress] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    source_message_id: str
    thread_id: str
    timestamp: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def is_visible_to(self, address: str) -> bool:
        return any(p.email == address for p in self.participants)


# ============================================================================
# Knowledge
# ============================================================================

class KnowledgeEntry(BaseModel):
    """Knowledge synthesized from one or more source messages"""
    id: str
    category: KnowledgeCategory = Field(default=KnowledgeCategory.OTHER)
    title: str
    content: str
    source_message_ids: List[str] = Field(default_factory=list)
    participants: List[EmailAddress] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    tags: List[str] = Field(default_factory=list)

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timestamps(cls, value: datetime) -> datetime:
        return ensure_utc(value)


# ============================================================================
# Privacy
# ============================================================================

class ParticipantContext:
    """
    What one address has legitimately been exposed to.

    Both id sets are append-only: there is no way to revoke an id once
    granted, and the public views are frozensets.
    """

    def __init__(self, participant: EmailAddress, first_seen: datetime):
        self.participant = participant
        self.first_seen = ensure_utc(first_seen)
        self._messages: set = set()
        self._speech_acts: set = set()

    @property
    def accessible_messages(self) -> FrozenSet[str]:
        return frozenset(self._messages)

    @property
    def accessible_speech_acts(self) -> FrozenSet[str]:
        return frozenset(self._speech_acts)

    def can_see_message(self, message_id: str) -> bool:
        return message_id in self._messages

    def can_see_speech_act(self, speech_act_id: str) -> bool:
        return speech_act_id in self._speech_acts

    def grant_message(self, message_id: str) -> bool:
        """Record exposure to a message. Returns True if it was new."""
        if message_id in self._messages:
            return False
        self._messages.add(message_id)
        return True

    def grant_speech_act(self, speech_act_id: str) -> bool:
        """Record exposure to a speech act. Returns True if it was new."""
        if speech_act_id in self._speech_acts:
            return False
        self._speech_acts.add(speech_act_id)
        return True

    def observe(self, timestamp: datetime) -> None:
        """Lower first_seen if ``timestamp`` is earlier"""
        timestamp = ensure_utc(timestamp)
        if timestamp < self.first_seen:
            self.first_seen = timestamp

    def to_dict(self) -> Dict[str, Any]:
        return {
            "participant": self.participant.model_dump(mode="json"),
            "accessible_messages": sorted(self._messages),
            "accessible_speech_acts": sorted(self._speech_acts),
            "first_seen": self.first_seen.isoformat(),
        }

    def __repr__(self) -> str:
        return (
            f"ParticipantContext({self.participant.email!r}, "
            f"messages={len(self._messages)}, speech_acts={len(self._speech_acts)})"
        )


class AccessCheckResult(BaseModel):
    """Why a piece of information may or may not be shared with an audience"""
    allowed: bool
    reason: Optional[str] = None
    restricted_participants: List[EmailAddress] = Field(default_factory=list)


# ============================================================================
# Memory
# ============================================================================

class SummaryResult(BaseModel):
    """Raw summarization oracle output"""
    summary: str
    key_points: List[str] = Field(default_factory=list)


class EmailSummary(BaseModel):
    """A summary of one contiguous batch of older messages"""
    thread_id: str
    summary: str
    key_points: List[str] = Field(default_factory=list)
    participants: List[EmailAddress] = Field(default_factory=list)
    message_ids: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class MemoryContext(BaseModel):
    """Assembled context for one oracle request. Never persisted."""
    recent_messages: List[Email] = Field(default_factory=list)
    summaries: List[EmailSummary] = Field(default_factory=list)
    relevant_speech_acts: List[SpeechAct] = Field(default_factory=list)
    relevant_knowledge: List[KnowledgeEntry] = Field(default_factory=list)
