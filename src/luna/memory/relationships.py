"""Per-user relationship tracking (familiarity and rapport)."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from luna.core.clock import Clock, SystemClock
from luna.core.logging import get_logger

logger = get_logger("memory.relationships")

FAMILIARITY_STEP = 0.1
RAPPORT_STEP = 0.05


class RelationshipSource(Protocol):
    """Read-only relationship score lookup, in [0, 1]."""

    def score(self, user: str | None) -> float: ...


@dataclass
class Relationship:
    familiarity: float = 0.0
    rapport: float = 0.0
    interactions: int = 0
    last_interaction: datetime | None = None

    @property
    def score(self) -> float:
        return (self.familiarity + self.rapport) / 2

    def to_dict(self) -> dict[str, Any]:
        return {
            "familiarity": self.familiarity,
            "rapport": self.rapport,
            "interactions": self.interactions,
            "last_interaction": (
                self.last_interaction.isoformat() if self.last_interaction else None
            ),
        }


class RelationshipTracker:
    """Grows familiarity and rapport with every interaction, capped at 1."""

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or SystemClock()
        self._relationships: dict[str, Relationship] = {}

    def get(self, user: str) -> Relationship:
        """Current relationship, a blank one for strangers."""
        return self._relationships.get(user) or Relationship()

    def record_interaction(self, user: str) -> Relationship:
        relationship = self._relationships.setdefault(user, Relationship())
        relationship.familiarity = min(1.0, relationship.familiarity + FAMILIARITY_STEP)
        relationship.rapport = min(1.0, relationship.rapport + RAPPORT_STEP)
        relationship.interactions += 1
        relationship.last_interaction = self._clock.now()
        logger.debug(
            f"Relationship {user}: familiarity={relationship.familiarity:.2f} "
            f"rapport={relationship.rapport:.2f}"
        )
        return relationship

    def set(self, user: str, familiarity: float, rapport: float) -> None:
        """Seed a relationship, e.g. from a persisted profile."""
        self._relationships[user] = Relationship(
            familiarity=min(1.0, max(0.0, familiarity)),
            rapport=min(1.0, max(0.0, rapport)),
        )

    def score(self, user: str | None) -> float:
        if not user:
            return 0.0
        return self.get(user).score

    def __len__(self) -> int:
        return len(self._relationships)
