"""
Context Text Templates

Renders a MemoryContext to the plain-text block handed to the oracle.
Rendering is deterministic: the same context always yields the same text.
"""

from typing import List, TYPE_CHECKING

if TYPE_CHECKING:
    from .records import EmailSummary, Email, SpeechAct, KnowledgeEntry, MemoryContext


SUMMARIES_HEADER = "=== EARLIER CONVERSATION SUMMARY ==="
RECENT_HEADER = "=== RECENT MESSAGES ==="
SPEECH_ACTS_HEADER = "=== DETECTED SPEECH ACTS ==="
KNOWLEDGE_HEADER = "=== STORED KNOWLEDGE ==="
MESSAGE_SEPARATOR = "---"


def _format_summaries(summaries: "List[EmailSummary]") -> List[str]:
    """Oldest to newest, heading + prose + bulleted key points"""
    lines = [SUMMARIES_HEADER, ""]
    for i, summary in enumerate(summaries, 1):
        lines.append(f"Summary {i}:")
        lines.append(summary.summary)
        lines.append("")
        lines.append("Key Points:")
        for point in summary.key_points:
            lines.append(f"  - {point}")
        lines.append("")
    return lines


def _format_messages(messages: "List[Email]") -> List[str]:
    lines = [RECENT_HEADER, ""]
    for i, email in enumerate(messages, 1):
        lines.append(f"Message {i} ({email.timestamp.isoformat()}):")
        lines.append(f"From: {email.sender.display_name}")
        lines.append(f"To: {', '.join(a.display_name for a in email.to)}")
        if email.cc:
            lines.append(f"Cc: {', '.join(a.display_name for a in email.cc)}")
        lines.append(f"Subject: {email.subject}")
        lines.append("")
        lines.append(email.body)
        lines.append(MESSAGE_SEPARATOR)
        lines.append("")
    return lines


def _format_speech_acts(acts: "List[SpeechAct]") -> List[str]:
    lines = [SPEECH_ACTS_HEADER, ""]
    for act in acts:
        lines.append(f"[{act.type.value.upper()}] {act.actor.display_name}: {act.content}")
    lines.append("")
    return lines


def _format_knowledge(entries: "List[KnowledgeEntry]") -> List[str]:
    lines = [KNOWLEDGE_HEADER, ""]
    for entry in entries:
        lines.append(f"[{entry.category.value}] {entry.title}")
        lines.append(entry.content)
        lines.append("")
    return lines


def render_memory_context(context: "MemoryContext") -> str:
    """
    Render a MemoryContext for prompt construction.

    Sections, each omitted when empty:
    1. Summaries of older messages
    2. Recent messages in full
    3. Speech acts, one line each: [TYPE] actor: content
    4. Stored knowledge
    """
    lines: List[str] = []

    if context.summaries:
        lines.extend(_format_summaries(context.summaries))
    if context.recent_messages:
        lines.extend(_format_messages(context.recent_messages))
    if context.relevant_speech_acts:
        lines.extend(_format_speech_acts(context.relevant_speech_acts))
    if context.relevant_knowledge:
        lines.extend(_format_knowledge(context.relevant_knowledge))

    return "\n".join(lines).strip()


def render_email_batch(messages: "List[Email]") -> str:
    """Render a batch of emails for the summarization prompt"""
    blocks = []
    for i, email in enumerate(messages, 1):
        blocks.append(
            f"EMAIL {i} ({email.timestamp.isoformat()})\n"
            f"From: {email.sender.display_name}\n"
            f"To: {', '.join(a.display_name for a in email.to)}\n"
            f"Subject: {email.subject}\n"
            f"\n"
            f"{email.body}\n"
            f"{MESSAGE_SEPARATOR}"
        )
    return "\n\n".join(blocks)
