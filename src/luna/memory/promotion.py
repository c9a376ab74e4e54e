"""Importance-based promotion of queued memories to longer-lived tiers.

Candidates are UNSCOPED (queued) and SHORT entries. Importance is a weighted
sum of three signals, each in [0, 1]:

- relationship: familiarity/rapport with the memory's user
- markers: explicit "remember"/"important" style phrases in the content
- interaction: weight of the memory's context type

importance > 0.7 moves the entry to LONG, > 0.4 to MEDIUM; anything lower
stays queued until the next cycle or until it expires.
"""

import random
import re
from dataclasses import dataclass

from luna.core.logging import get_logger
from luna.memory.base import ContextType, MemoryEntry, Tier
from luna.memory.relationships import RelationshipSource
from luna.memory.store import TieredMemoryStore

logger = get_logger("memory.promotion")

CANDIDATE_TIERS = (Tier.UNSCOPED, Tier.SHORT)

IMPORTANCE_MARKERS = re.compile(
    r"\b(remember|important|don'?t forget|never forget|note that|keep in mind)\b",
    re.IGNORECASE,
)

INTERACTION_WEIGHTS: dict[ContextType, float] = {
    ContextType.USER_INTERACTION: 1.0,
    ContextType.STREAM: 0.8,
    ContextType.CHAT: 0.6,
    ContextType.GENERAL: 0.4,
    ContextType.AUTONOMOUS: 0.3,
    ContextType.EMOTE: 0.2,
}


@dataclass(frozen=True)
class PromotionWeights:
    relationship: float = 0.4
    markers: float = 0.35
    interaction: float = 0.25
    long_threshold: float = 0.7
    medium_threshold: float = 0.4


@dataclass
class PromotionResult:
    examined: int = 0
    to_long: int = 0
    to_medium: int = 0

    @property
    def promoted(self) -> int:
        return self.to_long + self.to_medium


class _NoRelationships:
    def score(self, user: str | None) -> float:
        return 0.0


class PromotionScheduler:
    """Moves important queued memories to MEDIUM or LONG."""

    def __init__(
        self,
        store: TieredMemoryStore,
        relationships: RelationshipSource | None = None,
        weights: PromotionWeights | None = None,
        probability: float = 0.1,
        rng: random.Random | None = None,
    ):
        self._store = store
        self._relationships = relationships if relationships is not None else _NoRelationships()
        self._weights = weights or PromotionWeights()
        self._probability = probability
        self._rng = rng or random.Random()
        self.cycles = 0

    def importance(self, entry: MemoryEntry) -> float:
        """Weighted importance in [0, 1]."""
        w = self._weights
        relationship = min(1.0, max(0.0, self._relationships.score(entry.context.user)))
        markers = 1.0 if IMPORTANCE_MARKERS.search(entry.text) else 0.0
        interaction = INTERACTION_WEIGHTS.get(entry.context.type, 0.0)
        total = (
            w.relationship * relationship
            + w.markers * markers
            + w.interaction * interaction
        )
        return min(1.0, max(0.0, total))

    def target_tier(self, importance: float) -> Tier | None:
        if importance > self._weights.long_threshold:
            return Tier.LONG
        if importance > self._weights.medium_threshold:
            return Tier.MEDIUM
        return None

    def run_cycle(self) -> PromotionResult:
        """Evaluate every candidate once. Never raises."""
        result = PromotionResult()
        self.cycles += 1
        for source in CANDIDATE_TIERS:
            for entry in self._store.entries(source):
                result.examined += 1
                try:
                    destination = self.target_tier(self.importance(entry))
                    if destination is None:
                        continue
                    if self._store.move(entry.key, source, destination):
                        if destination == Tier.LONG:
                            result.to_long += 1
                        else:
                            result.to_medium += 1
                except Exception as e:
                    logger.warning(f"Promotion of {entry.key} failed: {e}")

        if result.promoted:
            logger.info(
                f"Promotion cycle: {result.to_long} to long, "
                f"{result.to_medium} to medium of {result.examined}"
            )
        return result

    def maybe_run(self) -> PromotionResult | None:
        """Run a cycle with the configured probability."""
        if self._rng.random() < self._probability:
            return self.run_cycle()
        return None
