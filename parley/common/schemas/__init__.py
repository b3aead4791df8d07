"""
Parley Record Schemas

Emails, speech acts, knowledge, participant access and assembled context.
"""

from .records import (
    SpeechActType,
    KnowledgeCategory,
    EmailAddress,
    Email,
    EmailThread,
    SpeechAct,
    KnowledgeEntry,
    ParticipantContext,
    AccessCheckResult,
    SummaryResult,
    EmailSummary,
    MemoryContext,
    ensure_utc,
)
from .templates import render_memory_context, render_email_batch

__all__ = [
    "SpeechActType",
    "KnowledgeCategory",
    "EmailAddress",
    "Email",
    "EmailThread",
    "SpeechAct",
    "KnowledgeEntry",
    "ParticipantContext",
    "AccessCheckResult",
    "SummaryResult",
    "EmailSummary",
    "MemoryContext",
    "ensure_utc",
    "render_memory_context",
    "render_email_batch",
]
