# systems/khulark/core/feed_service.py

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from pydantic import ValidationError

from core.config import KhularkSettings, settings as default_settings
from core.llm.utils import extract_json_object
from systems.khulark.core.decision import normalize_decision, server_fallback_decision
from systems.khulark.core.models import Decision, Detection, FeedStage
from systems.khulark.core.prompts import build_messages

logger = logging.getLogger(__name__)


class DetectionError(ValueError):
    """The detector returned something that is not a list of detections."""


class DecisionParseError(ValueError):
    """The language model's output held no usable JSON object."""


class ModelRunner(Protocol):
    async def run(self, model: str, payload: Any) -> Any: ...
    async def run_binary(self, model: str, image: bytes) -> Any: ...


@dataclass
class FeedOutcome:
    decision: Decision
    stage: FeedStage
    labels: list[str] = field(default_factory=list)
    used_fallback: bool = False
    error: str | None = None


# ---------------------------------------------------------------------
# Pure steps
# ---------------------------------------------------------------------


def parse_detections(raw: Any) -> list[Detection]:
    """Ordered detections from the model host; malformed entries are skipped, a non-list is an error."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise DetectionError(f"Expected a list of detections, got {type(raw).__name__}.")
    out: list[Detection] = []
    for item in raw:
        try:
            out.append(Detection.model_validate(item))
        except ValidationError:
            logger.debug("[FeedPhoto] Skipping malformed detection: %r", item)
    return out


def filter_labels(detections: Sequence[Detection], threshold: float = 0.5) -> list[str]:
    return [d.label for d in detections if d.score > threshold]


def interpret_model_output(raw: Any) -> Decision:
    """
    Accepts the unwrapped LLM result. The decision may arrive as a nested object
    ({"response": {...}}) or as text containing one JSON object.
    Either way it goes through normalize_decision().
    """
    inner = raw.get("response", raw) if isinstance(raw, dict) else raw

    if isinstance(inner, dict) and "hunger" in inner:
        return normalize_decision(inner)

    text = inner if isinstance(inner, str) else json.dumps(inner)
    obj = extract_json_object(text)
    if obj is None:
        raise DecisionParseError("No valid JSON object in language model response.")
    return normalize_decision(obj)


# ---------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------


class FeedPhotoService:
    """
    received -> detecting -> detected -> deciding -> decided -> responded,
    with any remote failure collapsing to the fixed fallback decision.
    """

    def __init__(self, runner: ModelRunner, cfg: KhularkSettings | None = None):
        self._runner = runner
        self._cfg = cfg or default_settings

    async def detect(self, image: bytes) -> list[str]:
        raw = await self._runner.run_binary(self._cfg.detection_model, image)
        detections = parse_detections(raw)
        labels = filter_labels(detections, self._cfg.detection_threshold)
        logger.info(
            "[FeedPhoto] Detected %d objects, %d above %.2f: %s",
            len(detections),
            len(labels),
            self._cfg.detection_threshold,
            labels,
        )
        return labels

    async def decide(self, labels: Sequence[str]) -> Decision:
        raw = await self._runner.run(self._cfg.language_model, {"messages": build_messages(labels)})
        return interpret_model_output(raw)

    async def run(self, image: bytes) -> FeedOutcome:
        stage = FeedStage.received
        labels: list[str] = []
        logger.info("[FeedPhoto] %s | bytes=%d", stage.value, len(image))
        try:
            stage = FeedStage.detecting
            labels = await self.detect(image)
            stage = FeedStage.detected

            stage = FeedStage.deciding
            decision = await self.decide(labels)
            stage = FeedStage.decided
            logger.info("[FeedPhoto] %s | %s", stage.value, decision.to_payload())
        except Exception as e:
            logger.exception(
                "[FeedPhoto] %s during %s; serving fallback.", FeedStage.failed.value, stage.value
            )
            return FeedOutcome(
                decision=server_fallback_decision(),
                stage=FeedStage.fallback_responded,
                labels=labels,
                used_fallback=True,
                error=f"{type(e).__name__}: {e}",
            )

        return FeedOutcome(decision=decision, stage=FeedStage.responded, labels=labels)
