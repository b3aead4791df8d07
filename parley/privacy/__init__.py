"""
Privacy

Information-barrier enforcement: tracks which participants legitimately saw
which messages and speech acts, and filters context for an audience.
"""

from .tracker import ParticipantAccessTracker

__all__ = [
    "ParticipantAccessTracker",
]
