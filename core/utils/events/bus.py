# core/utils/events/bus.py

from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

log = logging.getLogger(__name__)
Callback = Callable[[Any], Any]


class EventBus:
    """
    In-process, async-friendly pub/sub bus.
    The game core publishes state-change and decision events here; renderers
    subscribe without the core holding any reference to them.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Callback]] = defaultdict(list)

    async def publish(self, topic: str, payload: dict[str, Any] | None = None) -> None:
        if not topic:
            log.warning("[EventBus] Attempted to publish event with no topic.")
            return

        data = payload or {}
        for cb in list(self._subscribers.get(topic, [])):
            try:
                res = cb(data)
                if inspect.iscoroutine(res):
                    await res
            except Exception as e:
                log.error(f"[EventBus] Subscriber error on '{topic}': {e!r}")

    def subscribe(self, topic: str, cb: Callback) -> Callable[[], None]:
        self._subscribers[topic].append(cb)

        def _unsub():
            self.unsubscribe(topic, cb)

        return _unsub

    def unsubscribe(self, topic: str, cb: Callback) -> None:
        try:
            self._subscribers[topic].remove(cb)
        except (ValueError, KeyError):
            pass

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, []))


event_bus = EventBus()
