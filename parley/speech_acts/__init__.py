"""
Speech Acts

Classified communicative units (requests, commitments, decisions, ...)
extracted from messages by the classification oracle.

Key Components:
- SpeechActRepository: In-process indexed store with multi-attribute queries
- SpeechActDetector: Classification oracle wrapper
"""

from .store import SpeechActRepository, SpeechActQuery
from .detector import SpeechActDetector, map_speech_act_type

__all__ = [
    "SpeechActRepository",
    "SpeechActQuery",
    "SpeechActDetector",
    "map_speech_act_type",
]
