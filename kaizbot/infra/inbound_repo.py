# kaizbot/infra/inbound_repo.py
from __future__ import annotations

from collections import OrderedDict

from kaizbot.infra.logging_config import get_logger

logger = get_logger(__name__)


class InMemoryInboundEventRepository:
    """
    Remembers recently processed event ids for at-most-once processing.

    Bounded: once ``max_size`` ids are held, the oldest is forgotten.
    The platform redelivers only within a short window, so a bounded
    memory is enough.
    """

    def __init__(self, max_size: int = 10000):
        self._seen: OrderedDict[str, None] = OrderedDict()
        self._max_size = max_size

    async def seen_or_mark(self, event_id: str) -> bool:
        """
        Check if the event was already seen, or mark it as seen.

        Returns:
            True => already seen (idempotency hit)
            False => first time, marked as seen
        """
        if event_id in self._seen:
            self._seen.move_to_end(event_id)
            return True

        self._seen[event_id] = None
        if len(self._seen) > self._max_size:
            self._seen.popitem(last=False)
        return False

    def __len__(self) -> int:
        return len(self._seen)
