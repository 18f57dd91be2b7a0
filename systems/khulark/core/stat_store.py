# systems/khulark/core/stat_store.py

from __future__ import annotations

import json
import logging

from core.utils.time import Clock, ms_to_hours, now_ms
from systems.khulark.core.models import (
    SAVE_VERSION,
    STAT_NAMES,
    BodyState,
    CooldownAction,
    KhularkState,
    SaveDocument,
    StatChange,
)
from systems.khulark.core.storage import AbstractStateStorage, StateStorageError

logger = logging.getLogger(__name__)

# Points lost per real-time hour.
DECAY_PER_HOUR: dict[str, float] = {
    "hunger": 10.0,
    "affection": 5.0,
    "sanity": 3.0,
}


def decay_stats(stats: dict[str, float], elapsed_ms: float) -> dict[str, float]:
    """
    Linear decay: V = max(0, V0 - rate * hours). Never raises a stat and is a
    no-op for elapsed <= 0 (clock skew, same-instant reloads).
    """
    if elapsed_ms <= 0:
        return dict(stats)
    hours = ms_to_hours(elapsed_ms)
    return {
        name: max(0.0, value - DECAY_PER_HOUR.get(name, 0.0) * hours)
        for name, value in stats.items()
    }


class StatStore:
    """
    Owns the persisted creature + player state.

    The in-memory document is authoritative for the session; storage is a
    write-behind copy. Reads never touch storage after load().
    """

    def __init__(self, storage: AbstractStateStorage, *, clock: Clock = now_ms):
        self._storage = storage
        self._clock = clock
        self._doc: SaveDocument | None = None

    @property
    def state(self) -> SaveDocument:
        if self._doc is None:
            raise RuntimeError("StatStore used before load().")
        return self._doc

    @property
    def khulark(self) -> KhularkState:
        return self.state.khulark

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def load(self) -> dict[str, float]:
        doc = await self._read_existing()
        now = self._clock()
        if doc is None:
            self._doc = SaveDocument.fresh(now)
        else:
            self._doc = doc
            elapsed = now - doc.khulark.last_seen_at
            self.apply_decay(elapsed)
            logger.info(
                "[StatStore] Loaded save | away=%.2fh | hunger=%.1f affection=%.1f sanity=%.1f",
                ms_to_hours(max(0, elapsed)),
                self.khulark.hunger,
                self.khulark.affection,
                self.khulark.sanity,
            )
            self.khulark.last_seen_at = now
        await self.save()
        return self.get_stats()

    async def _read_existing(self) -> SaveDocument | None:
        try:
            raw = await self._storage.read()
            if not raw:
                return None
            data = json.loads(raw)
            if not isinstance(data, dict) or data.get("version") != SAVE_VERSION:
                logger.warning("[StatStore] Save version mismatch, using defaults.")
                return None
            return SaveDocument.model_validate(data)
        except (StateStorageError, ValueError) as e:
            logger.error("[StatStore] Error loading game state, using defaults: %r", e)
            return None

    async def save(self, now: int | None = None) -> None:
        """
        Persist, stamping lastSeenAt with `now` (the store clock when omitted).
        Failures are logged; memory stays authoritative.
        """
        doc = self.state
        doc.khulark.last_seen_at = self._clock() if now is None else now
        try:
            await self._storage.write(doc.to_json())
        except StateStorageError:
            logger.error("[StatStore] Error saving game state.", exc_info=True)

    async def reset(self) -> dict[str, float]:
        self._doc = SaveDocument.fresh(self._clock())
        await self.save()
        logger.info("[StatStore] State reset to defaults.")
        return self.get_stats()

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    def apply_decay(self, elapsed_ms: float) -> None:
        k = self.khulark
        decayed = decay_stats(self.get_stats(), elapsed_ms)
        for name, value in decayed.items():
            setattr(k, name, value)

    async def modify_stat(self, name: str, amount: float, now: int | None = None) -> StatChange | None:
        """Add a signed amount, clamp to [0, 100], persist. Unknown names are a no-op (None)."""
        if name not in STAT_NAMES:
            logger.warning("[StatStore] Ignoring unknown stat %r.", name)
            return None
        k = self.khulark
        old_value = getattr(k, name)
        setattr(k, name, old_value + amount)
        change = StatChange(stat=name, old_value=old_value, new_value=getattr(k, name))  # type: ignore[arg-type]
        await self.save(now)
        return change

    async def set_body_state(self, state: BodyState, now: int | None = None) -> None:
        self.khulark.body_state = state
        await self.save(now)

    def get_body_state(self) -> BodyState:
        return self.khulark.body_state

    def get_stats(self) -> dict[str, float]:
        k = self.khulark
        return {"hunger": k.hunger, "affection": k.affection, "sanity": k.sanity}

    # ------------------------------------------------------------------
    # Player settings
    # ------------------------------------------------------------------
    def sound_enabled(self) -> bool:
        return self.state.player.settings.sound_enabled

    async def set_sound_enabled(self, enabled: bool) -> None:
        self.state.player.settings.sound_enabled = enabled
        await self.save()

    # ------------------------------------------------------------------
    # Action cooldowns (persisted so they survive a restart)
    # ------------------------------------------------------------------
    def cooldown_until(self, action: CooldownAction) -> int:
        return getattr(self.state.player.cooldowns, f"next_{action}_at")

    async def set_cooldown_until(self, action: CooldownAction, until: int, now: int | None = None) -> None:
        setattr(self.state.player.cooldowns, f"next_{action}_at", int(until))
        await self.save(now)

    async def close(self) -> None:
        await self._storage.close()
