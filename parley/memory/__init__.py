"""
Memory

Hybrid conversational memory: recent messages verbatim, older messages as
cached batch summaries, trimmed to a token budget.
"""

from .summarizer import SummarizationOracle, EmailSummarizer
from .assembler import HybridContextAssembler, AssemblerConfig, RankedMessage

__all__ = [
    "SummarizationOracle",
    "EmailSummarizer",
    "HybridContextAssembler",
    "AssemblerConfig",
    "RankedMessage",
]
