"""Context assembly for the response generator.

The assembler only reads the engine; handing the snapshot to a responder is
the caller's job. Everything in a snapshot is frozen, down to nested memory
values, so a responder cannot write back into the store.
"""

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

from luna.core.logging import get_logger
from luna.core.typing import ChannelSignals
from luna.memory.base import ContextType, MemoryContext, MemoryEntry, QueryContext, Tier
from luna.memory.promotion import PromotionScheduler
from luna.memory.store import TieredMemoryStore
from luna.memory.threads import ThreadManager

logger = get_logger("memory.context")

DEFAULT_WINDOW = 15
DEFAULT_TOP_K = 5

_EMPTY: Mapping[str, Any] = MappingProxyType({})


def freeze(value: Any) -> Any:
    """Read-only deep view: mappings become proxies, lists become tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    return value


def thaw(value: Any) -> Any:
    """Plain dicts and lists back from a frozen view."""
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [thaw(v) for v in value]
    return value


@dataclass(frozen=True)
class RecalledMemory:
    """A scored memory as the responder sees it."""

    key: str
    tier: Tier
    value: Any
    context: MemoryContext
    inserted_at: datetime
    relevance_score: float

    @classmethod
    def from_entry(cls, entry: MemoryEntry) -> "RecalledMemory":
        return cls(
            key=entry.key,
            tier=entry.tier,
            value=freeze(entry.value),
            context=entry.context,
            inserted_at=entry.inserted_at,
            relevance_score=entry.relevance_score or 0.0,
        )

    @property
    def text(self) -> str:
        if self.context.content:
            return self.context.content
        if isinstance(self.value, str):
            return self.value
        return json.dumps(thaw(self.value), default=str)


@dataclass(frozen=True)
class ContextSnapshot:
    """Everything the responder gets to see, frozen at build time."""

    channel: str
    participant: str
    query: str
    built_at: datetime
    thread_id: str | None = None
    messages: tuple[Mapping[str, Any], ...] = ()
    memories: tuple[RecalledMemory, ...] = ()
    signals: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)

    @property
    def mood(self) -> str:
        return str(self.signals.get("mood", "neutral"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel": self.channel,
            "participant": self.participant,
            "query": self.query,
            "built_at": self.built_at.isoformat(),
            "thread_id": self.thread_id,
            "messages": [thaw(m) for m in self.messages],
            "memories": [
                {
                    "key": m.key,
                    "tier": m.tier.value,
                    "value": thaw(m.value),
                    "context": m.context.to_dict(),
                    "score": m.relevance_score,
                }
                for m in self.memories
            ],
            "signals": thaw(self.signals),
        }


class ContextAssembler:
    """Merges thread history, relevant memories and channel signals."""

    def __init__(
        self,
        store: TieredMemoryStore,
        threads: ThreadManager,
        promoter: PromotionScheduler | None = None,
        window: int = DEFAULT_WINDOW,
        top_k: int = DEFAULT_TOP_K,
    ):
        self._store = store
        self._threads = threads
        self._promoter = promoter
        self._window = window
        self._top_k = top_k

    def build(
        self,
        channel: str,
        participant: str,
        query_content: str,
        channel_signals: ChannelSignals | None = None,
        query_type: ContextType = ContextType.CHAT,
    ) -> ContextSnapshot:
        """Assemble a snapshot. Degrades to an empty snapshot on failure."""
        now = self._store.clock.now()
        signals = freeze(channel_signals or {})

        try:
            if self._promoter is not None:
                self._promoter.maybe_run()

            thread = self._threads.get_or_create(channel, participant)
            messages = tuple(freeze(m) for m in thread.recent(self._window))

            query = QueryContext(
                type=query_type,
                channel=channel,
                user=participant,
                content=query_content,
            )
            memories = tuple(
                RecalledMemory.from_entry(e)
                for e in self._store.get_relevant_memories(query, limit=self._top_k)
            )

            logger.debug(
                f"Built context for {channel}/{participant}: "
                f"{len(messages)} messages, {len(memories)} memories"
            )
            return ContextSnapshot(
                channel=channel,
                participant=participant,
                query=query_content,
                built_at=now,
                thread_id=thread.id,
                messages=messages,
                memories=memories,
                signals=signals,
            )
        except Exception as e:
            logger.error(f"Error building context for {channel}/{participant}: {e}")
            return ContextSnapshot(
                channel=channel,
                participant=participant,
                query=query_content,
                built_at=now,
                signals=signals,
            )
