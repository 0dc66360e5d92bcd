"""In-memory TTL cache for marketplace source results."""

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from skill_courier.models import MarketplaceArtifact

logger = logging.getLogger("skill-courier.cache")


@dataclass(frozen=True)
class CacheEntry:
    artifacts: tuple[MarketplaceArtifact, ...]
    fetched_at: float


class SourceCache:
    """One entry per source id.

    Entries are immutable and replaced whole, so readers never see a
    half-updated list.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._entries: dict[str, CacheEntry] = {}
        self._clock = clock

    def get(self, source_id: str, ttl: float) -> list[MarketplaceArtifact] | None:
        """Return cached artifacts if the entry exists and is younger than ttl.

        Returns None on miss (expired or not found).
        """
        entry = self._entries.get(source_id)
        if entry is None:
            return None
        if self._clock() - entry.fetched_at >= ttl:
            logger.debug("Cache expired: %s", source_id)
            return None
        logger.debug("Cache hit: %s", source_id)
        return list(entry.artifacts)

    def set(self, source_id: str, artifacts: Iterable[MarketplaceArtifact]) -> None:
        self._entries[source_id] = CacheEntry(tuple(artifacts), self._clock())
        logger.debug("Cache set: %s", source_id)

    def clear(self, source_id: str | None = None) -> int:
        """Drop one entry, or all of them. Returns count removed."""
        if source_id is not None:
            return 1 if self._entries.pop(source_id, None) is not None else 0
        removed = len(self._entries)
        self._entries.clear()
        return removed

    def stats(self) -> dict:
        now = self._clock()
        return {
            "entries": len(self._entries),
            "sources": {
                sid: {"artifacts": len(e.artifacts), "age_seconds": round(now - e.fetched_at, 1)}
                for sid, e in self._entries.items()
            },
        }
