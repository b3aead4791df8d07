"""Shared utilities for parsing LLM responses."""

from __future__ import annotations

import json
from typing import Any, List


def _strip_code_fences(raw: str) -> str:
    text = raw.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = [l for l in lines if not l.strip().startswith("```")]
        text = "\n".join(lines)
    return text


def _extract_between(raw: str, opener: str, closer: str) -> Any:
    start = raw.find(opener)
    end = raw.rfind(closer) + 1
    if start >= 0 and end > start:
        try:
            return json.loads(raw[start:end])
        except json.JSONDecodeError:
            pass
    return None


def parse_llm_json(raw: str) -> dict:
    """Parse a JSON object from an LLM response, handling code fences and preamble text.

    Tries in order:
    1. Strip markdown code fences, then json.loads
    2. Extract substring between first '{' and last '}', then json.loads
    3. Return empty dict
    """
    if not raw:
        return {}

    try:
        data = json.loads(_strip_code_fences(raw))
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    data = _extract_between(raw, "{", "}")
    return data if isinstance(data, dict) else {}


def parse_llm_json_list(raw: str) -> List[Any]:
    """Parse a JSON array from an LLM response.

    Same fallbacks as parse_llm_json, bracketed by '[' and ']'. A bare object
    wrapping the list under a single key (e.g. {"speech_acts": [...]}) is
    unwrapped. Returns an empty list when nothing parses.
    """
    if not raw:
        return []

    try:
        data = json.loads(_strip_code_fences(raw))
    except json.JSONDecodeError:
        data = _extract_between(raw, "[", "]")
        if data is None:
            data = _extract_between(raw, "{", "}")

    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        lists = [v for v in data.values() if isinstance(v, list)]
        if len(lists) == 1:
            return lists[0]
    return []
