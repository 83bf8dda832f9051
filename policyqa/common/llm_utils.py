"""Shared utilities for parsing LLM responses."""

from __future__ import annotations

import json
from typing import List, Optional


def _strip_code_fences(raw: str) -> str:
    text = raw.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = [l for l in lines if not l.strip().startswith("```")]
        text = "\n".join(lines)
    return text


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

    start = raw.find("{")
    end = raw.rfind("}") + 1
    if start >= 0 and end > start:
        try:
            data = json.loads(raw[start:end])
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            pass

    return {}


def parse_llm_list(raw: str, key: str = "queries") -> Optional[List[str]]:
    """Parse a list of strings from an LLM response.

    Accepts a bare JSON array, a fenced array, an object holding the list
    under ``key``, or an array embedded in prose. Non-string items are
    dropped. Returns None when no list can be recovered, so callers can
    tell "model returned an empty list" apart from "unparseable".
    """
    if not raw or not raw.strip():
        return None

    candidates = [_strip_code_fences(raw)]
    start = raw.find("[")
    end = raw.rfind("]") + 1
    if start >= 0 and end > start:
        candidates.append(raw[start:end])

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            data = data.get(key)
        if isinstance(data, list):
            return [item for item in data if isinstance(item, str)]

    obj = parse_llm_json(raw)
    if isinstance(obj.get(key), list):
        return [item for item in obj[key] if isinstance(item, str)]

    return None
