# systems/khulark/core/session.py

from __future__ import annotations

import logging
from typing import Any

from core.utils.events import EventBus, event_bus
from core.utils.time import Clock, now_ms
from systems.khulark.core import mood
from systems.khulark.core.arbiter import FeedingArbiter
from systems.khulark.core.decision import PET_AFFECTION, PET_COOLDOWN_MS, remaining_wait_seconds
from systems.khulark.core.models import BodyState, FeedResult, PetResult, TooSoon
from systems.khulark.core.stat_store import StatStore

logger = logging.getLogger(__name__)

TOPIC_STATS_CHANGED = "khulark.stats_changed"
TOPIC_BODY_STATE_CHANGED = "khulark.body_state_changed"
TOPIC_DECISION = "khulark.decision"


class KhularkSession:
    """
    The single active game session. Renderers read snapshot() and subscribe
    to the bus; the caller decides when tick() runs.
    """

    def __init__(
        self,
        store: StatStore,
        arbiter: FeedingArbiter,
        *,
        bus: EventBus | None = None,
        clock: Clock = now_ms,
    ):
        self.store = store
        self.arbiter = arbiter
        self.bus = bus or event_bus
        self._clock = clock

    async def start(self) -> dict[str, Any]:
        await self.store.load()
        await self._refresh_body_state(force=True)
        snap = self.snapshot()
        await self.bus.publish(TOPIC_STATS_CHANGED, snap)
        return snap

    def snapshot(self) -> dict[str, Any]:
        stats = self.store.get_stats()
        category = mood.mood_category(stats["hunger"], stats["affection"], stats["sanity"])
        body = self.store.get_body_state()
        return {
            **stats,
            "bodyState": body.value,
            "mood": category.value,
            "needsAttention": mood.needs_attention(category),
            "backgroundColor": mood.background_color(body),
            "spriteKey": mood.sprite_key(body),
        }

    async def tick(self, now: int | None = None) -> dict[str, Any]:
        """Apply decay for the time since the last persist, then persist."""
        now = self._clock() if now is None else now
        elapsed = now - self.store.khulark.last_seen_at
        if elapsed > 0:
            self.store.apply_decay(elapsed)
            await self.store.save(now)
            await self._refresh_body_state(now=now)
            await self.bus.publish(TOPIC_STATS_CHANGED, self.snapshot())
        return self.snapshot()

    async def feed_photo(self, image: bytes, now: int | None = None) -> FeedResult | TooSoon:
        now = self._clock() if now is None else now
        await self.tick(now)
        result = await self.arbiter.feed(image, now)
        if isinstance(result, TooSoon):
            return result

        await self.bus.publish(
            TOPIC_DECISION,
            {
                **result.decision.to_payload(),
                "usedFallback": result.used_fallback,
                "cooldownMs": result.cooldown_ms,
                "cue": mood.reaction_cue(result.decision),
            },
        )
        if result.changes:
            await self._refresh_body_state(now=now)
            await self.bus.publish(TOPIC_STATS_CHANGED, self.snapshot())
        return result

    async def pet(self, now: int | None = None) -> PetResult | TooSoon:
        now = self._clock() if now is None else now
        remaining = self.store.cooldown_until("pet") - now
        if remaining > 0:
            return TooSoon(
                remaining_seconds=remaining_wait_seconds(remaining),
                message="Give them space...",
            )

        await self.tick(now)
        change = await self.store.modify_stat("affection", PET_AFFECTION, now)
        await self.store.set_cooldown_until("pet", now + PET_COOLDOWN_MS, now)
        await self.bus.publish(TOPIC_STATS_CHANGED, self.snapshot())
        return PetResult(change=change, cooldown_ms=PET_COOLDOWN_MS)

    async def reset(self) -> dict[str, Any]:
        await self.store.reset()
        await self._refresh_body_state(force=True)
        snap = self.snapshot()
        await self.bus.publish(TOPIC_STATS_CHANGED, snap)
        return snap

    async def _refresh_body_state(self, force: bool = False, now: int | None = None) -> BodyState:
        current = self.store.get_body_state()
        derived = mood.body_state(self.store.khulark.hunger)
        if force or derived != current:
            await self.store.set_body_state(derived, now)
            if derived != current:
                logger.info("[Session] Body state %s -> %s", current.value, derived.value)
                await self.bus.publish(
                    TOPIC_BODY_STATE_CHANGED,
                    {"from": current.value, "to": derived.value},
                )
        return derived
