"""
Tolerant JSON helpers for small-model output.

Local models routinely wrap JSON in code fences, add prose around it, or
emit near-JSON (bare keys, single-quoted strings, trailing commas). These
pure functions locate the payload and repair the common defects before
strict parsing.
"""

from __future__ import annotations

import json
import re
from typing import Any

_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
_BARE_KEY = re.compile(r"([{,]\s*)([A-Za-z0-9_]+)\s*:")
# Only single-quoted tokens in key/value position; apostrophes inside words stay
_SINGLE_QUOTED = re.compile(r"(?<=[\[{:,])(\s*)'([^']*)'")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


def _double_quote(match: re.Match[str]) -> str:
    value = match.group(2).replace("\\", "\\\\").replace('"', '\\"')
    return f'{match.group(1)}"{value}"'


def _strip_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA.sub(r"\1", text)


def _quote_bare_keys(text: str) -> str:
    return _BARE_KEY.sub(r'\1"\2":', text)


def _double_quote_strings(text: str) -> str:
    return _SINGLE_QUOTED.sub(_double_quote, text)


# Least invasive first; each step applies on top of the previous ones
_REPAIRS = (_strip_trailing_commas, _quote_bare_keys, _double_quote_strings)


def normalize_quasi_json(text: str) -> str:
    """
    Rewrite near-JSON into strict JSON.

    Strips trailing commas before a closing bracket or brace, quotes bare
    object keys and converts single-quoted strings to double-quoted ones.
    """
    for repair in _REPAIRS:
        text = repair(text)
    return text


def loads_lenient(text: str) -> Any:
    """
    Parse strictly, then retry after each repair step in turn.

    Raises:
        json.JSONDecodeError: No repaired form parses
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        error = e

    for repair in _REPAIRS:
        text = repair(text)
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            error = e
    raise error


def extract_json_array(text: str) -> str | None:
    """Return the outermost ``[...]`` span, preferring a fenced block."""
    fence = _FENCE.search(text)
    if fence and "[" in fence.group(1):
        text = fence.group(1)

    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def parse_json_array(text: str) -> list[Any]:
    """Best-effort list parse of a model reply; [] when nothing usable is found."""
    candidate = extract_json_array(text)
    if candidate is None:
        return []
    try:
        data = loads_lenient(candidate)
    except json.JSONDecodeError:
        return []
    return data if isinstance(data, list) else []
