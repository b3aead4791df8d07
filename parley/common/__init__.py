"""
Parley Common Module

Shared infrastructure: configuration, LLM transport, schemas and errors.
"""

from .config import ParleyConfig, load_config
from .errors import ParleyError, SummarizationError, EmailLoadError
from .llm_client import LLMClient
from .llm_utils import parse_llm_json, parse_llm_json_list

__all__ = [
    "ParleyConfig",
    "load_config",
    "ParleyError",
    "SummarizationError",
    "EmailLoadError",
    "LLMClient",
    "parse_llm_json",
    "parse_llm_json_list",
]
