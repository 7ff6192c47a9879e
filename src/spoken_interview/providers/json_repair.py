"""Best-effort JSON extraction from LLM output.

Models wrap JSON in prose, code fences, trailing commas or Python literals.
These helpers pull out the first JSON object/array and repair the common
mistakes before parsing.
"""

from __future__ import annotations

import ast
import json
import re
from typing import Any

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```$")
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_BARE_KEY = re.compile(r"([\{,]\s*)([A-Za-z_][A-Za-z0-9_\-]*)(\s*:)")


def find_json_span(text: str) -> str | None:
    """Return the first balanced {...} or [...] block in text, if any."""
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        return None
    start = min(starts)
    opener = text[start]
    closer = "}" if opener == "{" else "]"

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    # Unterminated; let the repair pass try the tail.
    return text[start:]


def repair_json_text(raw: str) -> str:
    """Fix fences, curly quotes, trailing commas, Python literals and bare keys."""
    if not raw:
        return ""

    fixed = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", raw.strip()))
    fixed = (
        fixed.replace("“", '"')
        .replace("”", '"')
        .replace("‘", "'")
        .replace("’", "'")
    )
    fixed = _TRAILING_COMMA.sub(r"\1", fixed)
    fixed = re.sub(r"\bNone\b", "null", fixed)
    fixed = re.sub(r"\bTrue\b", "true", fixed)
    fixed = re.sub(r"\bFalse\b", "false", fixed)
    fixed = _BARE_KEY.sub(r'\1"\2"\3', fixed)

    # Single-quoted dicts with no double quotes at all.
    if "'" in fixed and '"' not in fixed:
        fixed = fixed.replace("'", '"')
    return fixed


def _to_json_types(obj: Any) -> Any:
    if obj is ...:
        return None
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, dict):
        return {str(k): _to_json_types(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [_to_json_types(v) for v in obj]
    return str(obj)


def parse_json_loose(text: str) -> dict[str, Any] | list[Any] | None:
    """
    Parse the first JSON value embedded in model output.

    Args:
        text: Raw model output.

    Returns:
        Parsed dict or list, or None when nothing parseable was found.
    """
    if not text or not text.strip():
        return None

    stripped = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text.strip()))
    candidate = find_json_span(stripped) or stripped

    for attempt in (candidate, repair_json_text(candidate)):
        try:
            parsed = json.loads(attempt)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, (dict, list)):
            return parsed

    try:
        obj = ast.literal_eval(candidate.strip())
    except (ValueError, SyntaxError, TypeError, MemoryError, RecursionError):
        return None
    if not isinstance(obj, (dict, list, tuple, set)):
        return None
    return _to_json_types(obj)
