"""
Speech Act Repository

In-process indexed store of classified speech acts.

Lookups never raise: a missing id returns None and a query that matches
nothing returns an empty list. Acts are immutable, so "update" means
replacing the act stored under the same id.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union

from ..common.schemas import EmailAddress, SpeechAct, SpeechActType, ensure_utc

logger = logging.getLogger("parley.speech_acts.store")


@dataclass
class SpeechActQuery:
    """Query clauses. Unset clauses match everything; set clauses AND together."""
    type: Optional[SpeechActType] = None
    thread_id: Optional[str] = None
    participant_email: Optional[str] = None
    after: Optional[datetime] = None   # inclusive
    before: Optional[datetime] = None  # inclusive
    min_confidence: Optional[float] = None  # inclusive

    def __post_init__(self):
        if self.after is not None:
            self.after = ensure_utc(self.after)
        if self.before is not None:
            self.before = ensure_utc(self.before)

    def matches(self, act: SpeechAct) -> bool:
        if self.type is not None and act.type != self.type:
            return False
        if self.thread_id is not None and act.thread_id != self.thread_id:
            return False
        if self.participant_email is not None and not act.is_visible_to(self.participant_email):
            return False
        if self.after is not None and act.timestamp < self.after:
            return False
        if self.before is not None and act.timestamp > self.before:
            return False
        if self.min_confidence is not None and act.confidence < self.min_confidence:
            return False
        return True


def _newest_first(acts: Iterable[SpeechAct]) -> List[SpeechAct]:
    return sorted(acts, key=lambda act: act.timestamp, reverse=True)


class SpeechActRepository:
    """
    Indexed store of speech acts keyed by id.

    Visibility here is act-local: ``get_visible_to`` looks only at each act's
    own participants. Session-scoped access control is the job of
    ParticipantAccessTracker.
    """

    def __init__(self):
        self._acts: Dict[str, SpeechAct] = {}

    def add(self, act: SpeechAct) -> None:
        """Insert or replace the act stored under ``act.id``"""
        self._acts[act.id] = act

    def add_many(self, acts: Iterable[SpeechAct]) -> None:
        for act in acts:
            self.add(act)

    def get(self, act_id: str) -> Optional[SpeechAct]:
        return self._acts.get(act_id)

    def query(self, query: Optional[SpeechActQuery] = None) -> List[SpeechAct]:
        """
        Find acts matching every set clause of ``query``.

        Args:
            query: Query clauses (default: match all)

        Returns:
            Matching acts sorted newest first
        """
        query = query or SpeechActQuery()
        return _newest_first(act for act in self._acts.values() if query.matches(act))

    def get_all(self) -> List[SpeechAct]:
        return _newest_first(self._acts.values())

    def get_by_type(self, act_type: SpeechActType) -> List[SpeechAct]:
        return self.query(SpeechActQuery(type=act_type))

    def get_by_thread(self, thread_id: str) -> List[SpeechAct]:
        return self.query(SpeechActQuery(thread_id=thread_id))

    def get_visible_to(self, participant: Union[str, EmailAddress]) -> List[SpeechAct]:
        """Acts whose participant list contains the address, newest first"""
        address = participant.email if isinstance(participant, EmailAddress) else participant
        return _newest_first(act for act in self._acts.values() if act.is_visible_to(address))

    def clear(self) -> None:
        self._acts.clear()

    def count(self) -> int:
        return len(self._acts)

    def __len__(self) -> int:
        return len(self._acts)

    def __contains__(self, act_id: str) -> bool:
        return act_id in self._acts

    def to_records(self) -> List[Dict[str, Any]]:
        """JSON-compatible dump, newest first"""
        return [act.model_dump(mode="json") for act in self.get_all()]

    def load_records(self, records: Iterable[Dict[str, Any]]) -> int:
        """
        Replace the store contents with previously dumped records.

        Returns:
            Number of acts loaded
        """
        acts = [SpeechAct.model_validate(record) for record in records]
        self.clear()
        self.add_many(acts)
        logger.info("Loaded %d speech acts", len(acts))
        return len(acts)
