"""In-process tiered memory store with per-entry expiry timers."""

import copy
import json
from collections.abc import Mapping
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any

from luna.core.clock import Clock, SystemClock, TimerHandle
from luna.core.logging import get_logger
from luna.memory.base import (
    DEFAULT_LIMITS,
    DEFAULT_MAX_AGES,
    MemoryContext,
    MemoryEntry,
    QueryContext,
    Tier,
)
from luna.memory.scoring import score

logger = get_logger("memory.store")


class TieredMemoryStore:
    """Key to entry maps, one per tier, each with a fixed max age.

    Every public operation swallows internal errors and returns a safe
    default so memory bookkeeping never interrupts a chat reply.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        max_ages: Mapping[Tier, timedelta] | None = None,
        limits: Mapping[Tier, int] | None = None,
    ):
        self._clock = clock or SystemClock()
        self._max_ages = dict(DEFAULT_MAX_AGES)
        if max_ages:
            self._max_ages.update(max_ages)
        self._limits = dict(DEFAULT_LIMITS)
        if limits:
            self._limits.update(limits)
        self._tiers: dict[Tier, dict[str, MemoryEntry]] = {tier: {} for tier in Tier}
        self._timers: dict[tuple[Tier, str], TimerHandle] = {}

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def max_ages(self) -> dict[Tier, timedelta]:
        return dict(self._max_ages)

    def max_age(self, tier: Tier) -> timedelta:
        return self._max_ages[tier]

    def limit(self, tier: Tier) -> int:
        return self._limits[tier]

    # Write

    def add(
        self,
        tier: Tier | str | None,
        key: str,
        value: Any,
        context: MemoryContext | Mapping[str, Any] | None = None,
    ) -> bool:
        """Store an entry, replacing any entry under the same key in that tier."""
        try:
            resolved = Tier.parse(tier)
            if resolved is None:
                logger.warning(f"Unknown memory tier {tier!r}, queueing as unscoped")
                resolved = Tier.UNSCOPED

            if not isinstance(key, str) or not key:
                raise ValueError("memory key must be a non-empty string")

            # Values must survive archival, reject what JSON cannot carry
            json.dumps(value)

            now = self._clock.now()
            if context is None:
                context = MemoryContext()
            elif not isinstance(context, MemoryContext):
                context = MemoryContext.from_dict(context)
            if context.timestamp is None:
                context = replace(context, timestamp=now)

            entry = MemoryEntry(
                key=key,
                value=value,
                context=context,
                tier=resolved,
                inserted_at=now,
            )
            self._insert(entry, self._max_ages[resolved])
            logger.debug(f"Stored memory [{resolved.value}] {key}")
            return True
        except Exception as e:
            logger.warning(f"Failed to add memory {key!r}: {e}")
            return False

    def _insert(self, entry: MemoryEntry, expires_in: timedelta) -> None:
        slot = (entry.tier, entry.key)
        self._cancel_timer(slot)
        tier_entries = self._tiers[entry.tier]
        if entry.key not in tier_entries:
            self._evict_overflow(entry.tier, self._limits[entry.tier] - 1)
        tier_entries[entry.key] = entry
        self._timers[slot] = self._clock.call_later(
            expires_in, lambda: self._expire(entry)
        )

    def _evict_overflow(self, tier: Tier, capacity: int) -> None:
        """Drop the oldest entries of a tier until at most capacity remain."""
        tier_entries = self._tiers[tier]
        while tier_entries and len(tier_entries) > max(capacity, 0):
            oldest = min(tier_entries.values(), key=lambda e: e.inserted_at)
            del tier_entries[oldest.key]
            self._cancel_timer((tier, oldest.key))
            logger.debug(f"Evicted oldest memory [{tier.value}] {oldest.key}: tier full")

    def _expire(self, entry: MemoryEntry) -> None:
        """Timer callback; only removes the exact entry it was armed for."""
        slot = (entry.tier, entry.key)
        if self._tiers[entry.tier].get(entry.key) is entry:
            del self._tiers[entry.tier][entry.key]
            self._timers.pop(slot, None)
            logger.debug(f"Expired memory [{entry.tier.value}] {entry.key}")

    def _cancel_timer(self, slot: tuple[Tier, str]) -> None:
        handle = self._timers.pop(slot, None)
        if handle is not None:
            handle.cancel()

    def delete(self, tier: Tier | str, key: str) -> bool:
        """Remove an entry and its pending expiry."""
        try:
            resolved = Tier.parse(tier)
            if resolved is None or key not in self._tiers[resolved]:
                return False
            del self._tiers[resolved][key]
            self._cancel_timer((resolved, key))
            return True
        except Exception as e:
            logger.warning(f"Failed to delete memory {key!r}: {e}")
            return False

    def move(self, key: str, source: Tier, destination: Tier) -> bool:
        """Atomically move an entry between tiers under the same key.

        The entry keeps its insertion time, so it expires once its age passes
        the destination tier's max age.
        """
        try:
            entry = self._tiers[source].get(key)
            if entry is None or self._is_expired(entry):
                return False
            if source == destination:
                return True

            now = self._clock.now()
            remaining = self._max_ages[destination] - entry.age(now)
            if remaining < timedelta(0):
                logger.debug(f"Not moving {key}: already past {destination.value} max age")
                return False

            del self._tiers[source][key]
            self._cancel_timer((source, key))
            self._insert(replace(entry, tier=destination, relevance_score=None), remaining)
            logger.debug(f"Moved memory {key}: {source.value} -> {destination.value}")
            return True
        except Exception as e:
            logger.warning(f"Failed to move memory {key!r}: {e}")
            return False

    # Read

    def get(self, tier: Tier | str, key: str) -> MemoryEntry | None:
        """Fetch a live entry, None if missing or past its max age."""
        try:
            resolved = Tier.parse(tier)
            if resolved is None:
                return None
            entry = self._tiers[resolved].get(key)
            if entry is None or self._is_expired(entry):
                return None
            return entry
        except Exception as e:
            logger.warning(f"Failed to get memory {key!r}: {e}")
            return None

    def entries(self, tier: Tier | str) -> list[MemoryEntry]:
        """Live entries of one tier, oldest first. Unknown tiers are empty."""
        resolved = Tier.parse(tier)
        if resolved is None:
            return []
        live = [e for e in self._tiers[resolved].values() if not self._is_expired(e)]
        return sorted(live, key=lambda e: e.inserted_at)

    def get_relevant_memories(
        self,
        query: QueryContext | Mapping[str, Any],
        limit: int | None = None,
    ) -> list[MemoryEntry]:
        """Live entries across all tiers, best match first.

        Ties go to the more recently inserted entry. A key present in more
        than one tier is reported once, with its best score. Returned entries
        are copies carrying relevance_score.
        """
        try:
            if not isinstance(query, QueryContext):
                query = QueryContext.from_dict(query)

            now = self._clock.now()
            scored: list[MemoryEntry] = []
            for tier_entries in self._tiers.values():
                for entry in tier_entries.values():
                    if self._is_expired(entry, now):
                        continue
                    relevance = score(entry, query, now, self._max_ages)
                    scored.append(replace(entry, relevance_score=relevance))

            scored.sort(key=lambda e: (e.relevance_score, e.inserted_at), reverse=True)

            results: list[MemoryEntry] = []
            seen: set[str] = set()
            for entry in scored:
                if entry.key in seen:
                    continue
                seen.add(entry.key)
                # Callers get their own copy of the value
                results.append(replace(entry, value=copy.deepcopy(entry.value)))
                if limit is not None and len(results) >= limit:
                    break

            logger.debug(f"Relevance query returned {len(results)} memories")
            return results
        except Exception as e:
            logger.warning(f"Relevance query failed: {e}")
            return []

    def _is_expired(self, entry: MemoryEntry, now: datetime | None = None) -> bool:
        now = now or self._clock.now()
        return entry.age(now) > self._max_ages[entry.tier]

    # Maintenance

    def cleanup(self) -> int:
        """Purge every entry older than its tier's max age. Returns count."""
        removed = 0
        try:
            now = self._clock.now()
            for tier, tier_entries in self._tiers.items():
                expired = [k for k, e in tier_entries.items() if self._is_expired(e, now)]
                for key in expired:
                    del tier_entries[key]
                    self._cancel_timer((tier, key))
                removed += len(expired)
            if removed:
                logger.info(f"Cleanup removed {removed} expired memories")
        except Exception as e:
            logger.error(f"Memory cleanup failed: {e}")
        return removed

    def count(self, tier: Tier | str | None = None) -> int:
        """Stored entries (live or not yet purged). Unknown tiers count 0."""
        if tier is not None:
            resolved = Tier.parse(tier)
            return len(self._tiers[resolved]) if resolved is not None else 0
        return sum(len(t) for t in self._tiers.values())

    def get_stats(self) -> dict[str, Any]:
        return {
            "tiers": {tier.value: len(entries) for tier, entries in self._tiers.items()},
            "total": self.count(),
            "pending_timers": len(self._timers),
            "limits": {tier.value: limit for tier, limit in self._limits.items()},
            "max_age_seconds": {
                tier.value: age.total_seconds() for tier, age in self._max_ages.items()
            },
        }
