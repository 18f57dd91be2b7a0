# systems/khulark/core/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

StatName = Literal["hunger", "affection", "sanity"]
CooldownAction = Literal["feed", "pet"]
STAT_NAMES: tuple[StatName, ...] = ("hunger", "affection", "sanity")

STAT_MIN = 0.0
STAT_MAX = 100.0

SAVE_VERSION = 1

DEFAULT_HUNGER = 100.0
DEFAULT_AFFECTION = 50.0
DEFAULT_SANITY = 60.0


# --------- Core enums ----------
class BodyState(str, Enum):
    starving = "starving"
    hungry = "hungry"
    normal = "normal"
    fed = "fed"
    superfull = "superfull"


class MoodCategory(str, Enum):
    content = "content"
    neutral = "neutral"
    distressed = "distressed"
    critical = "critical"


class FeedStage(str, Enum):
    """Per-request progress of the feed-photo pipeline."""

    received = "received"
    detecting = "detecting"
    detected = "detected"
    deciding = "deciding"
    decided = "decided"
    responded = "responded"
    failed = "failed"
    fallback_responded = "fallback_responded"


# --------- Wire models ----------
class Decision(BaseModel):
    """
    The arbitration result for one feeding event: three signed deltas plus
    first-person speech and a third-person narration line.
    Always constructed through normalize_decision(), never straight from model output.
    """

    hunger: float = Field(0.0, ge=-30, le=30)
    affection: float = Field(0.0, ge=-20, le=20)
    sanity: float = Field(0.0, ge=-20, le=20)
    speech: str = Field("", max_length=100)
    alert_text: str = Field("", alias="alertText", max_length=80)

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def total_delta(self) -> float:
        return self.hunger + self.affection + self.sanity

    def deltas(self) -> dict[str, float]:
        return {"hunger": self.hunger, "affection": self.affection, "sanity": self.sanity}

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class BoundingBox(BaseModel):
    xmin: float = 0.0
    ymin: float = 0.0
    xmax: float = 0.0
    ymax: float = 0.0


class Detection(BaseModel):
    label: str
    score: float
    box: BoundingBox = Field(default_factory=BoundingBox)

    model_config = ConfigDict(extra="ignore")


# --------- Persisted state ----------
class KhularkState(BaseModel):
    hunger: float = DEFAULT_HUNGER
    affection: float = DEFAULT_AFFECTION
    sanity: float = DEFAULT_SANITY
    last_seen_at: int = Field(0, alias="lastSeenAt")
    body_state: BodyState = Field(BodyState.normal, alias="bodyState")

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    @field_validator("hunger", "affection", "sanity")
    @classmethod
    def _clamp_stat(cls, v: float) -> float:
        return max(STAT_MIN, min(STAT_MAX, v))


class PlayerSettings(BaseModel):
    sound_enabled: bool = Field(True, alias="soundEnabled")

    model_config = ConfigDict(populate_by_name=True)


class PlayerCooldowns(BaseModel):
    """Epoch-ms instants before which the action is rejected; 0 means available."""

    next_feed_at: int = Field(0, alias="nextFeedAt")
    next_pet_at: int = Field(0, alias="nextPetAt")

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)


class PlayerState(BaseModel):
    # Reserved for a future inventory; always persisted as a list.
    food_inventory: list[Any] = Field(default_factory=list, alias="foodInventory")
    settings: PlayerSettings = Field(default_factory=PlayerSettings)
    cooldowns: PlayerCooldowns = Field(default_factory=PlayerCooldowns)

    model_config = ConfigDict(populate_by_name=True)


class SaveDocument(BaseModel):
    version: int = SAVE_VERSION
    khulark: KhularkState = Field(default_factory=KhularkState)
    player: PlayerState = Field(default_factory=PlayerState)

    @classmethod
    def fresh(cls, now: int) -> SaveDocument:
        return cls(khulark=KhularkState(last_seen_at=now))

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


# --------- Outcomes handed to the presentation layer ----------
@dataclass(frozen=True)
class StatChange:
    stat: StatName
    old_value: float
    new_value: float

    @property
    def delta(self) -> float:
        return self.new_value - self.old_value


@dataclass(frozen=True)
class TooSoon:
    """A rejected action; not an error. remaining_seconds is ceil-rounded, at least 1."""

    remaining_seconds: int
    message: str = "Too soon! Wait a bit..."


@dataclass
class FeedResult:
    decision: Decision
    used_fallback: bool
    cooldown_ms: int
    changes: list[StatChange] = field(default_factory=list)

    @property
    def applied(self) -> bool:
        return not self.used_fallback


@dataclass
class PetResult:
    change: StatChange | None
    cooldown_ms: int
