"""
Parley

Privacy-scoped context assembly for a shared email assistant.

Philosophy:
- Once you were a legitimate recipient of an item, you stay one for that item
- Information is shared with a group only if every member already saw it
- Recent history is kept verbatim, older history is summarized
- Trimming only ever sacrifices summarized history

Usage:
    from parley.common import load_config, LLMClient
    from parley.common.schemas import Email, SpeechAct, MemoryContext
    from parley.speech_acts import SpeechActRepository, SpeechActDetector
    from parley.privacy import ParticipantAccessTracker
    from parley.memory import HybridContextAssembler, EmailSummarizer
    from parley.session import AssistantSession
"""

__version__ = "0.1.0"
