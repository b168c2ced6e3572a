"""Shared utilities for parsing LLM responses."""

from __future__ import annotations

import json
from typing import Any, List


def _strip_code_fences(text: str) -> str:
    if text.startswith("```"):
        lines = [l for l in text.split("\n") if not l.strip().startswith("```")]
        return "\n".join(lines)
    return text


def parse_llm_json(raw: str) -> dict:
    """Parse a JSON object from an LLM response.

    Tries in order:
    1. Strip markdown code fences, then json.loads
    2. Extract substring between first '{' and last '}', then json.loads
    3. Return empty dict

    Anything that is not a JSON object (a bare list, a number) counts as a
    parse failure.
    """
    if not raw:
        return {}

    text = _strip_code_fences(raw.strip())

    try:
        data = json.loads(text)
        return data if isinstance(data, dict) else {}
    except json.JSONDecodeError:
        pass

    start = text.find("{")
    end = text.rfind("}") + 1
    if start >= 0 and end > start:
        try:
            data = json.loads(text[start:end])
            return data if isinstance(data, dict) else {}
        except json.JSONDecodeError:
            pass

    return {}


def string_list(value: Any) -> List[str]:
    """Coerce a JSON value into a list of non-empty stripped strings."""
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if isinstance(v, (str, int, float)) and str(v).strip()]
