"""
Durable TTL cache for sentence classifications.

Maps a sentence fingerprint to {"data": <result payload>, "timestamp": <ms>}
inside the key-value store. Expiry is lazy: an entry older than the TTL is
removed when a lookup observes it, there is no background sweep.

Key: CacheStore.lookup()/store() are coroutines so the dispatcher treats
storage as a suspension point, but each call finishes its reads and writes
before it returns control.
"""

from __future__ import annotations

import sqlite3
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from highlightq.classification.models import SentimentResult
from highlightq.observability.logging import get_logger
from highlightq.observability.telemetry import counter, log_event
from highlightq.storage.kv import KeyValueStore

logger = get_logger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CacheEntry:
    """Cached result with the epoch-ms timestamp it was stored at."""

    result: SentimentResult
    stored_at: int

    def is_expired(self, now: int, ttl_ms: int) -> bool:
        return now - self.stored_at > ttl_ms

    def to_storage(self) -> dict[str, Any]:
        return {"data": self.result.to_payload(), "timestamp": self.stored_at}

    @classmethod
    def from_storage(cls, raw: Any) -> CacheEntry | None:
        if not isinstance(raw, dict) or not isinstance(raw.get("timestamp"), (int, float)):
            return None
        try:
            result = SentimentResult.from_payload(raw.get("data"))
        except ValueError:
            return None
        return cls(result=result, stored_at=int(raw["timestamp"]))


class CacheStore:
    """Fingerprint -> CacheEntry map with lazy TTL eviction."""

    def __init__(
        self,
        store: KeyValueStore,
        name: str = "sentiment",
        clock: Callable[[], int] = now_ms,
    ):
        self.name = name
        self._store = store
        self._clock = clock

    async def lookup(self, fingerprints: Iterable[str], ttl_ms: int) -> dict[str, SentimentResult]:
        """
        Return the unexpired results among `fingerprints`.

        Side Effects:
            - Removes expired or unreadable entries from the store
            - Increments cache.{name}.hit / .miss / .expired counters
        """
        wanted = list(dict.fromkeys(fingerprints))
        if not wanted:
            return {}

        try:
            raw_entries = self._store.get_many(wanted)
        except (sqlite3.Error, OSError, ValueError) as exc:
            logger.error("Cache %s read failed, treating as miss: %s", self.name, exc)
            counter(f"cache.{self.name}.read_error")
            return {}
        now = self._clock()
        hits: dict[str, SentimentResult] = {}
        stale: list[str] = []

        for key in wanted:
            raw = raw_entries.get(key)
            if raw is None:
                counter(f"cache.{self.name}.miss")
                continue
            entry = CacheEntry.from_storage(raw)
            if entry is None or entry.is_expired(now, ttl_ms):
                stale.append(key)
                counter(f"cache.{self.name}.expired")
                continue
            counter(f"cache.{self.name}.hit")
            hits[key] = entry.result

        if stale:
            try:
                self._store.remove_many(stale)
            except (sqlite3.Error, OSError) as exc:
                logger.warning("Cache %s purge failed: %s", self.name, exc)
            log_event("cache.expired", cache=self.name, count=len(stale))
        return hits

    async def store(self, results: Mapping[str, SentimentResult]) -> int:
        """
        Persist successful results stamped with the current time.

        Error results are skipped so a transient provider failure never
        poisons later lookups of the same sentence.

        Returns:
            Number of entries written
        """
        now = self._clock()
        items = {
            key: CacheEntry(result=result, stored_at=now).to_storage()
            for key, result in results.items()
            if not result.error
        }
        if not items:
            return 0
        try:
            self._store.set_many(items)
        except (sqlite3.Error, OSError, ValueError) as exc:
            logger.error("Cache %s write failed: %s", self.name, exc)
            counter(f"cache.{self.name}.write_error")
            return 0
        counter(f"cache.{self.name}.write", len(items))
        return len(items)

    async def invalidate(self, fingerprints: Iterable[str]) -> None:
        doomed = list(fingerprints)
        self._store.remove_many(doomed)
        counter(f"cache.{self.name}.invalidate", len(doomed))
