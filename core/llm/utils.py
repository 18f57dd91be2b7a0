# core/llm/utils.py
from __future__ import annotations

import json
import math
from typing import Any

__all__ = [
    "clamp",
    "coerce_number",
    "coerce_str",
    "truncate",
    "find_balanced",
    "extract_json_object",
]

# ---------------------------------------------------------------------
# Small, pure helpers (no heavy deps)
# ---------------------------------------------------------------------


def clamp(x: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return hi if x > hi else lo if x < lo else x


def coerce_number(value: Any) -> float:
    """
    Best-effort numeric coercion for untrusted model output.
    Missing, boolean, NaN and non-numeric values collapse to 0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, int | float):
        n = float(value)
    elif isinstance(value, str):
        try:
            n = float(value.strip())
        except ValueError:
            return 0.0
    else:
        return 0.0
    return 0.0 if math.isnan(n) else n


def coerce_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    try:
        return str(value)
    except Exception:
        return repr(value)


def truncate(text: str, max_chars: int) -> str:
    """Hard cut at max_chars; no ellipsis, so the result never exceeds the limit."""
    return (text or "")[: max(0, max_chars)]


# ---------------- JSON helpers (robust against noise/fences) -----------------


def find_balanced(text: str, open_ch: str = "{", close_ch: str = "}") -> str | None:
    """
    Return the first balanced open_ch...close_ch span, honouring string literals
    and escapes so braces inside quoted text do not count.
    """
    depth, in_str, esc = 0, False, False
    start = text.find(open_ch)
    if start < 0:
        return None
    for i in range(start, len(text)):
        c = text[i]
        if in_str:
            if esc:
                esc = False
            elif c == "\\":
                esc = True
            elif c == '"':
                in_str = False
            continue
        if c == '"':
            in_str = True
        elif c == open_ch:
            depth += 1
        elif c == close_ch:
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


def extract_json_object(text: str) -> dict[str, Any] | None:
    """
    Two-stage parse: locate the first balanced {...} block, then decode it.
    Returns None when there is no block or it is not a JSON object.
    """
    if not text:
        return None
    block = find_balanced(text)
    if block is None:
        return None
    try:
        data = json.loads(block)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None
