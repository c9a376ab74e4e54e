"""
Memory data model: tiers, context tags and stored entries.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any


class Tier(Enum):
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"
    UNSCOPED = "unscoped"  # queued, not yet classified

    @classmethod
    def parse(cls, value: "Tier | str | None") -> "Tier | None":
        """Resolve a tier from an enum, value or name. None if unknown."""
        if isinstance(value, Tier):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower().removesuffix("_term")
            for tier in cls:
                if tier.value == normalized:
                    return tier
        return None


DEFAULT_MAX_AGES: dict[Tier, timedelta] = {
    Tier.SHORT: timedelta(minutes=5),
    Tier.MEDIUM: timedelta(minutes=30),
    Tier.LONG: timedelta(hours=2),
    Tier.UNSCOPED: timedelta(minutes=5),
}

DEFAULT_LIMITS: dict[Tier, int] = {
    Tier.SHORT: 100,
    Tier.MEDIUM: 500,
    Tier.LONG: 1000,
    Tier.UNSCOPED: 100,
}


class ContextType(Enum):
    CHAT = "chat"
    STREAM = "stream"
    EMOTE = "emote"
    USER_INTERACTION = "user_interaction"
    AUTONOMOUS = "autonomous"
    GENERAL = "general"


def _optional_str(data: Mapping[str, Any], field_name: str) -> str | None:
    value = data.get(field_name)
    if value is None or isinstance(value, str):
        return value
    raise ValueError(f"context.{field_name} must be a string, got {type(value).__name__}")


def _parse_type(value: Any) -> ContextType:
    if isinstance(value, ContextType):
        return value
    if isinstance(value, str):
        try:
            return ContextType(value.lower())
        except ValueError:
            pass
    raise ValueError(f"Unknown context type: {value!r}")


@dataclass(frozen=True)
class MemoryContext:
    """Why a memory exists: what kind of event, where, who, what was said."""

    type: ContextType = ContextType.GENERAL
    channel: str | None = None
    user: str | None = None
    content: str | None = None
    timestamp: datetime | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MemoryContext":
        """Validate a loosely typed context mapping.

        Raises:
            ValueError: unknown type or wrongly typed fields
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"context must be a mapping, got {type(data).__name__}")

        timestamp = data.get("timestamp")
        if timestamp is not None and not isinstance(timestamp, datetime):
            raise ValueError("context.timestamp must be a datetime")

        return cls(
            type=_parse_type(data.get("type", ContextType.GENERAL)),
            channel=_optional_str(data, "channel"),
            user=_optional_str(data, "user"),
            content=_optional_str(data, "content"),
            timestamp=timestamp,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "channel": self.channel,
            "user": self.user,
            "content": self.content,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass(frozen=True)
class QueryContext:
    """What a response is about. Every field is optional."""

    type: ContextType | None = None
    channel: str | None = None
    user: str | None = None
    content: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "QueryContext":
        if not isinstance(data, Mapping):
            raise ValueError(f"query must be a mapping, got {type(data).__name__}")
        raw_type = data.get("type")
        return cls(
            type=_parse_type(raw_type) if raw_type is not None else None,
            channel=_optional_str(data, "channel"),
            user=_optional_str(data, "user"),
            content=_optional_str(data, "content"),
        )


@dataclass
class MemoryEntry:
    """Single memory record.

    relevance_score is only set on copies returned by a relevance query.
    """

    key: str
    value: Any
    context: MemoryContext
    tier: Tier
    inserted_at: datetime
    relevance_score: float | None = None

    def age(self, now: datetime) -> timedelta:
        return now - self.inserted_at

    @property
    def text(self) -> str:
        """Text used for keyword matching."""
        if self.context.content:
            return self.context.content
        if isinstance(self.value, str):
            return self.value
        return ""
