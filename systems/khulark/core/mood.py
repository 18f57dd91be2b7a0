# systems/khulark/core/mood.py
"""
Pure mapping from stats to presentation categories. Nothing here feeds back
into the stats themselves.
"""

from __future__ import annotations

from typing import Literal

from systems.khulark.core.models import BodyState, Decision, MoodCategory

ReactionCue = Literal["feed", "eating", "reaction"]

# Lower bound of each band, highest first; a value on a boundary belongs to the band it starts.
_BODY_BANDS: tuple[tuple[float, BodyState], ...] = (
    (90.0, BodyState.superfull),
    (60.0, BodyState.fed),
    (40.0, BodyState.normal),
    (20.0, BodyState.hungry),
)

_MOOD_BANDS: tuple[tuple[float, MoodCategory], ...] = (
    (70.0, MoodCategory.content),
    (40.0, MoodCategory.neutral),
    (20.0, MoodCategory.distressed),
)

_BACKGROUND_COLORS: dict[BodyState, str] = {
    BodyState.superfull: "#FDF3ED",
    BodyState.fed: "#F8F1E9",
    BodyState.normal: "#F4ECDC",
    BodyState.hungry: "#F6EFE8",
    BodyState.starving: "#F8F0EA",
}
DEFAULT_BACKGROUND_COLOR = "#F4ECDC"

_SPRITE_KEYS: dict[BodyState, str] = {
    BodyState.superfull: "khulark-superfull",
    BodyState.fed: "khulark-fed",
    BodyState.normal: "khulark-base",
    BodyState.hungry: "khulark-hungry",
    BodyState.starving: "khulark-starving",
}
DEFAULT_SPRITE_KEY = "khulark-base"


def body_state(hunger: float) -> BodyState:
    for floor, state in _BODY_BANDS:
        if hunger >= floor:
            return state
    return BodyState.starving


def mood_category(hunger: float, affection: float, sanity: float) -> MoodCategory:
    avg = (hunger + affection + sanity) / 3
    for floor, mood in _MOOD_BANDS:
        if avg >= floor:
            return mood
    return MoodCategory.critical


def needs_attention(mood: MoodCategory) -> bool:
    """Warning trigger for the idle loop."""
    return mood in (MoodCategory.distressed, MoodCategory.critical)


def _as_body_state(state: BodyState | str) -> BodyState | None:
    try:
        return BodyState(state)
    except ValueError:
        return None


def background_color(state: BodyState | str) -> str:
    bs = _as_body_state(state)
    return _BACKGROUND_COLORS.get(bs, DEFAULT_BACKGROUND_COLOR) if bs else DEFAULT_BACKGROUND_COLOR


def sprite_key(state: BodyState | str) -> str:
    bs = _as_body_state(state)
    return _SPRITE_KEYS.get(bs, DEFAULT_SPRITE_KEY) if bs else DEFAULT_SPRITE_KEY


def reaction_cue(decision: Decision) -> ReactionCue:
    total = decision.total_delta
    if total > 15:
        return "feed"
    if total > 0:
        return "eating"
    return "reaction"
