# systems/khulark/core/decision.py
"""
Decision normalization and the feed cooldown policy.

Every decision, whichever side of the wire produced it, passes through
normalize_decision() before it can touch the stats.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from core.llm.utils import clamp, coerce_number, coerce_str, truncate
from systems.khulark.core.models import Decision

HUNGER_BOUND = 30.0
AFFECTION_BOUND = 20.0
SANITY_BOUND = 20.0
SPEECH_MAX_CHARS = 100
ALERT_TEXT_MAX_CHARS = 80

MIN_COOLDOWN_MS = 1_000
MAX_COOLDOWN_MS = 10_000
COOLDOWN_FULL_SCALE = 30.0

PET_AFFECTION = 10.0
PET_COOLDOWN_MS = 15_000


def normalize_decision(raw: Mapping[str, Any] | None) -> Decision:
    """
    Coerce untrusted decision JSON into a bounded Decision.
    Missing or non-numeric deltas become 0; text is defaulted to "" and cut to length.
    """
    raw = raw or {}
    return Decision(
        hunger=clamp(coerce_number(raw.get("hunger")), -HUNGER_BOUND, HUNGER_BOUND),
        affection=clamp(coerce_number(raw.get("affection")), -AFFECTION_BOUND, AFFECTION_BOUND),
        sanity=clamp(coerce_number(raw.get("sanity")), -SANITY_BOUND, SANITY_BOUND),
        speech=truncate(coerce_str(raw.get("speech")), SPEECH_MAX_CHARS),
        alert_text=truncate(coerce_str(raw.get("alertText")), ALERT_TEXT_MAX_CHARS),
    )


def server_fallback_decision() -> Decision:
    """Served with HTTP 200 whenever a remote model call or its parse fails."""
    return normalize_decision(
        {
            "hunger": 0,
            "affection": -5,
            "sanity": -10,
            "speech": "I... I don't feel right. Something went wrong with that.",
            "alertText": "The khulark shudders, clearly unsettled by what just happened.",
        },
    )


def client_fallback_decision() -> Decision:
    """Returned by the arbiter when the feed endpoint itself is unreachable or malformed."""
    return normalize_decision(
        {
            "hunger": 0,
            "affection": -5,
            "sanity": -10,
            "speech": "Something feels wrong. I don't like this at all...",
            "alertText": "The khulark recoils from the strange offering.",
        },
    )


def compute_cooldown_ms(decision: Decision) -> int:
    """
    1s for negligible reactions, scaling linearly to 10s once the summed
    delta reaches 30 in either direction.
    """
    magnitude = abs(decision.total_delta)
    t = clamp(magnitude / COOLDOWN_FULL_SCALE, 0.0, 1.0)
    return int(round(MIN_COOLDOWN_MS + (MAX_COOLDOWN_MS - MIN_COOLDOWN_MS) * t))


def remaining_wait_seconds(remaining_ms: float) -> int:
    return max(1, math.ceil(remaining_ms / 1000))
