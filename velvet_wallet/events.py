"""In-process channel delivering full-collection snapshots to subscribers.

Remote mirrors publish the complete current value of a topic (never a
delta). Subscribers decide whether the snapshot differs from what they
already hold.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


def transactions_topic(year: int, month: int) -> str:
    return f"months/{year}/{month:02d}/transactions"


def plans_topic(year: int, month: int) -> str:
    return f"months/{year}/{month:02d}/plans"


class SnapshotChannel:
    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Handler]] = {}
        self._latest: Dict[str, Any] = {}

    def subscribe(self, topic: str, handler: Handler, *, replay: bool = False) -> Callable[[], None]:
        """Register ``handler`` for ``topic`` and return an unsubscribe callable.

        With ``replay`` the most recent snapshot, if any, is delivered at once.
        """
        self._subscribers.setdefault(topic, []).append(handler)
        if replay and topic in self._latest:
            handler(self._latest[topic])

        def _unsubscribe() -> None:
            handlers = self._subscribers.get(topic, [])
            if handler in handlers:
                handlers.remove(handler)

        return _unsubscribe

    def publish(self, topic: str, value: Any) -> int:
        """Deliver ``value`` to every subscriber of ``topic``; return the count."""
        self._latest[topic] = value
        handlers = list(self._subscribers.get(topic, []))
        for handler in handlers:
            handler(value)
        logger.debug("Published snapshot on %s to %d subscriber(s)", topic, len(handlers))
        return len(handlers)
