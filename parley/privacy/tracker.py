"""
Participant Access Tracker

Records, per address, which messages and speech acts that address has
legitimately been exposed to, and answers information-barrier questions:
an item may be shared with a group only if every member can already see it.

Access sets are append-only. Unknown addresses have no access.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from ..common.schemas import (
    AccessCheckResult,
    Email,
    EmailAddress,
    KnowledgeEntry,
    ParticipantContext,
    SpeechAct,
)

logger = logging.getLogger("parley.privacy.tracker")

Participant = Union[str, EmailAddress]


def participant_address(participant: Participant) -> str:
    """The bare address string of a participant"""
    return participant.email if isinstance(participant, EmailAddress) else participant


def _as_email_address(participant: Participant) -> EmailAddress:
    if isinstance(participant, EmailAddress):
        return participant
    return EmailAddress(email=participant)


class ParticipantAccessTracker:
    """
    Per-address exposure ledger.

    A context is created the first time an address appears on an email.
    Speech acts only extend existing contexts: an address must have received
    a message before it can accumulate speech-act access.
    """

    def __init__(self):
        self._contexts: Dict[str, ParticipantContext] = {}

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    def track_email(self, email: Email) -> None:
        """Grant every address on from/to/cc access to this message"""
        for participant in email.participants():
            context = self._contexts.get(participant.email)
            if context is None:
                context = ParticipantContext(participant, first_seen=email.timestamp)
                self._contexts[participant.email] = context
                logger.debug("Tracking new participant %s", participant.email)
            context.grant_message(email.message_id)
            context.observe(email.timestamp)

    def track_emails(self, emails: Iterable[Email]) -> None:
        for email in emails:
            self.track_email(email)

    def track_speech_act(self, act: SpeechAct) -> None:
        """Grant already-tracked participants of ``act`` access to it"""
        for participant in act.participants:
            context = self._contexts.get(participant.email)
            if context is not None:
                context.grant_speech_act(act.id)

    def track_speech_acts(self, acts: Iterable[SpeechAct]) -> None:
        for act in acts:
            self.track_speech_act(act)

    # ------------------------------------------------------------------
    # Access checks
    # ------------------------------------------------------------------

    def has_access_to_message(self, participant: Participant, message_id: str) -> bool:
        context = self._contexts.get(participant_address(participant))
        return context.can_see_message(message_id) if context else False

    def has_access_to_speech_act(self, participant: Participant, speech_act_id: str) -> bool:
        context = self._contexts.get(participant_address(participant))
        return context.can_see_speech_act(speech_act_id) if context else False

    def all_have_access_to_message(
        self,
        participants: Iterable[Participant],
        message_id: str
    ) -> bool:
        return all(self.has_access_to_message(p, message_id) for p in participants)

    def all_have_access_to_speech_act(
        self,
        participants: Iterable[Participant],
        speech_act_id: str
    ) -> bool:
        return all(self.has_access_to_speech_act(p, speech_act_id) for p in participants)

    def _has_access_to_any(self, participant: Participant, message_ids: Sequence[str]) -> bool:
        return any(self.has_access_to_message(participant, msg_id) for msg_id in message_ids)

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------

    def filter_emails(
        self,
        emails: Iterable[Email],
        participants: Sequence[Participant]
    ) -> List[Email]:
        """Keep emails every current participant has seen"""
        return [e for e in emails if self.all_have_access_to_message(participants, e.message_id)]

    def filter_speech_acts(
        self,
        acts: Iterable[SpeechAct],
        participants: Sequence[Participant]
    ) -> List[SpeechAct]:
        """Keep speech acts every current participant has seen"""
        return [a for a in acts if self.all_have_access_to_speech_act(participants, a.id)]

    def filter_knowledge_entries(
        self,
        entries: Iterable[KnowledgeEntry],
        participants: Sequence[Participant]
    ) -> List[KnowledgeEntry]:
        """
        Keep entries every current participant can trace to a source.

        Knowledge may be synthesized from several messages, so each
        participant needs access to at least one source message, not all.
        """
        return [
            entry for entry in entries
            if all(self._has_access_to_any(p, entry.source_message_ids) for p in participants)
        ]

    def check_access(
        self,
        source_message_ids: Sequence[str],
        participants: Sequence[Participant]
    ) -> AccessCheckResult:
        """
        Check whether information from ``source_message_ids`` can be shared.

        Args:
            source_message_ids: Messages the information was derived from
            participants: Current audience

        Returns:
            AccessCheckResult; when denied, names the participants who have
            seen none of the source messages, in audience order
        """
        restricted = [
            _as_email_address(p) for p in participants
            if not self._has_access_to_any(p, source_message_ids)
        ]

        if restricted:
            names = ", ".join(p.display_name for p in restricted)
            logger.info("Access denied for %d participant(s)", len(restricted))
            return AccessCheckResult(
                allowed=False,
                reason=f"Cannot share this information due to the presence of: {names}",
                restricted_participants=restricted,
            )

        return AccessCheckResult(allowed=True)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def get_participant_context(self, participant: Participant) -> Optional[ParticipantContext]:
        return self._contexts.get(participant_address(participant))

    def get_all_participants(self) -> List[EmailAddress]:
        return [context.participant for context in self._contexts.values()]

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """JSON-compatible view of every participant context, keyed by address"""
        return {address: context.to_dict() for address, context in self._contexts.items()}

    def clear(self) -> None:
        self._contexts.clear()
