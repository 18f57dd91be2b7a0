# systems/khulark/core/arbiter.py

from __future__ import annotations

import logging

import httpx

from core.config import KhularkSettings, settings as default_settings
from core.utils.net_api import get_http_client
from core.utils.time import Clock, now_ms
from systems.khulark.core.decision import (
    client_fallback_decision,
    compute_cooldown_ms,
    normalize_decision,
    remaining_wait_seconds,
)
from systems.khulark.core.models import Decision, FeedResult, StatChange, TooSoon
from systems.khulark.core.stat_store import StatStore

logger = logging.getLogger(__name__)


class FeedingArbiter:
    """
    Client side of the feed loop: uploads the photo, validates the verdict,
    applies it to the StatStore and owns the feed cooldown.
    Feeding never raises to the caller; the worst case is the fallback reaction.
    """

    def __init__(
        self,
        store: StatStore,
        *,
        feed_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        clock: Clock = now_ms,
        cfg: KhularkSettings | None = None,
    ):
        cfg = cfg or default_settings
        self._store = store
        self._feed_url = feed_url or cfg.feed_url
        self._http_client = http_client
        self._clock = clock

    @property
    def next_feed_at(self) -> int:
        return self._store.cooldown_until("feed")

    # ------------------------------------------------------------------
    # Cooldown
    # ------------------------------------------------------------------
    def check_cooldown(self, now: int | None = None) -> TooSoon | None:
        now = self._clock() if now is None else now
        remaining = self.next_feed_at - now
        if remaining > 0:
            return TooSoon(remaining_seconds=remaining_wait_seconds(remaining))
        return None

    # ------------------------------------------------------------------
    # Wire
    # ------------------------------------------------------------------
    async def _request_decision(self, image: bytes) -> Decision:
        client = self._http_client or await get_http_client()
        resp = await client.post(
            self._feed_url,
            files={"image": ("photo.jpg", image, "image/jpeg")},
        )
        resp.raise_for_status()
        payload = resp.json()
        if not isinstance(payload, dict):
            raise ValueError(f"Expected a JSON object, got {type(payload).__name__}.")
        return normalize_decision(payload)

    async def _submit(self, image: bytes) -> tuple[Decision, bool]:
        try:
            return await self._request_decision(image), False
        except (httpx.HTTPError, ValueError) as e:
            logger.error("[Arbiter] Error uploading photo, using fallback: %r", e)
            return client_fallback_decision(), True

    async def submit_photo(self, image: bytes) -> Decision:
        decision, _ = await self._submit(image)
        return decision

    # ------------------------------------------------------------------
    # Feed
    # ------------------------------------------------------------------
    async def apply_decision(self, decision: Decision, now: int | None = None) -> list[StatChange]:
        changes: list[StatChange] = []
        for stat, delta in decision.deltas().items():
            if not delta:
                continue
            change = await self._store.modify_stat(stat, delta, now)
            if change is not None:
                changes.append(change)
        return changes

    async def feed(self, image: bytes, now: int | None = None) -> FeedResult | TooSoon:
        too_soon = self.check_cooldown(now)
        if too_soon is not None:
            logger.info("[Arbiter] Feed rejected; %ds remaining.", too_soon.remaining_seconds)
            return too_soon

        decision, used_fallback = await self._submit(image)
        # The fallback is shown to the player but never touches the stats.
        changes = [] if used_fallback else await self.apply_decision(decision, now)

        cooldown_ms = compute_cooldown_ms(decision)
        started = self._clock() if now is None else now
        await self._store.set_cooldown_until("feed", started + cooldown_ms, now)
        logger.info(
            "[Arbiter] Fed | fallback=%s | deltas=%s | cooldown=%dms",
            used_fallback,
            decision.deltas(),
            cooldown_ms,
        )
        return FeedResult(
            decision=decision,
            used_fallback=used_fallback,
            cooldown_ms=cooldown_ms,
            changes=changes,
        )
