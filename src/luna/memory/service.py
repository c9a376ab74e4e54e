"""Memory service: the engine as seen by the response generator.

Wires store, threads, promotion and context assembly around one clock and
exposes the operations the chat handler calls.
"""

from datetime import timedelta
from typing import Any
from uuid import uuid4

from luna.core.clock import Clock, SystemClock
from luna.core.config import Settings
from luna.core.logging import get_logger
from luna.core.orchestrator import Orchestrator, TaskPriority
from luna.core.typing import ChannelSignals
from luna.memory.archive import SQLiteThreadArchive
from luna.memory.base import ContextType, MemoryContext, MemoryEntry, QueryContext, Tier
from luna.memory.context import ContextAssembler, ContextSnapshot
from luna.memory.promotion import PromotionScheduler, PromotionWeights
from luna.memory.relationships import RelationshipTracker
from luna.memory.store import TieredMemoryStore
from luna.memory.threads import ConversationThread, EvictedThread, ThreadManager

logger = get_logger("memory.service")


class MemoryService:
    """Owns one instance of every engine component."""

    def __init__(
        self,
        settings: Settings | None = None,
        clock: Clock | None = None,
        archive: SQLiteThreadArchive | None = None,
        orchestrator: Orchestrator | None = None,
        promoter: PromotionScheduler | None = None,
    ):
        settings = settings or Settings(_env_file=None)
        self.settings = settings
        self.clock = clock or SystemClock()

        max_ages = {Tier(name): age for name, age in settings.tier_max_ages().items()}
        limits = {Tier(name): limit for name, limit in settings.tier_limits().items()}
        self.store = TieredMemoryStore(clock=self.clock, max_ages=max_ages, limits=limits)
        self.threads = ThreadManager(
            store=self.store,
            clock=self.clock,
            idle_timeout=settings.thread_idle_timeout,
            max_messages=settings.thread_history_limit,
        )
        self.relationships = RelationshipTracker(clock=self.clock)
        self.promoter = promoter or PromotionScheduler(
            self.store,
            relationships=self.relationships,
            weights=PromotionWeights(
                relationship=settings.relationship_weight,
                markers=settings.marker_weight,
                interaction=settings.interaction_weight,
                long_threshold=settings.promotion_long_threshold,
                medium_threshold=settings.promotion_medium_threshold,
            ),
            probability=settings.promotion_probability,
        )
        self.assembler = ContextAssembler(
            self.store,
            self.threads,
            promoter=self.promoter,
            window=settings.context_window_size,
            top_k=settings.top_memories,
        )
        self.archive = archive
        self.orchestrator = orchestrator

    # Exposed engine operations

    def add_memory(
        self,
        tier: Tier | str,
        key: str,
        value: Any,
        context: MemoryContext | dict[str, Any] | None = None,
    ) -> bool:
        return self.store.add(tier, key, value, context)

    def get_relevant_memories(self, query: QueryContext | dict[str, Any]) -> list[MemoryEntry]:
        return self.store.get_relevant_memories(query)

    def get_or_create_thread(self, channel: str, participant: str) -> ConversationThread:
        return self.threads.get_or_create(channel, participant)

    def update_thread_context(
        self,
        thread: ConversationThread | None,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.threads.update(thread, message, metadata)

    def build(
        self,
        channel: str,
        participant: str,
        query_content: str,
        channel_signals: ChannelSignals | None = None,
    ) -> ContextSnapshot:
        return self.assembler.build(channel, participant, query_content, channel_signals)

    def cleanup(self) -> int:
        return self.store.cleanup()

    # Chat event helpers

    def record_message(
        self,
        channel: str,
        participant: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> ConversationThread:
        """Inbound chat message: append to the thread and queue a memory."""
        metadata = metadata or {}
        thread = self.threads.get_or_create(channel, participant)
        self.threads.update(thread, content, {"type": "message", "role": "user", **metadata})
        self.store.add(
            Tier.UNSCOPED,
            f"msg:{channel}:{participant}:{uuid4().hex[:12]}",
            {"message": content},
            MemoryContext(
                type=ContextType.CHAT,
                channel=channel,
                user=participant,
                content=content,
            ),
        )
        return thread

    def remember_exchange(
        self,
        channel: str,
        participant: str,
        message: str,
        response: str,
    ) -> bool:
        """Store a message/response pair and strengthen the relationship."""
        thread = self.threads.get_or_create(channel, participant)
        self.threads.update(thread, response, {"type": "response", "role": "assistant"})
        self.relationships.record_interaction(participant)
        return self.store.add(
            Tier.UNSCOPED,
            f"exchange:{channel}:{participant}:{uuid4().hex[:12]}",
            {"message": message, "response": response},
            MemoryContext(
                type=ContextType.USER_INTERACTION,
                channel=channel,
                user=participant,
                content=message,
            ),
        )

    # Maintenance

    async def sweep_threads(self) -> list[EvictedThread]:
        """Evict idle threads and persist them to the archive if one is set."""
        evicted = self.threads.sweep()
        if self.archive is not None:
            for record in evicted:
                if not await self.archive.append(record.thread):
                    logger.warning(f"Thread {record.thread.id} not persisted")
        return evicted

    async def run_maintenance(self) -> dict[str, int]:
        """One full pass: expire, sweep, promote."""
        expired = self.cleanup()
        evicted = await self.sweep_threads()
        promotion = self.promoter.run_cycle()
        return {
            "expired": expired,
            "evicted_threads": len(evicted),
            "promoted": promotion.promoted,
        }

    async def start(self) -> None:
        """Register periodic maintenance and start the orchestrator."""
        if self.archive is not None:
            await self.archive.connect()

        if self.orchestrator is None:
            self.orchestrator = Orchestrator(clock=self.clock)

        s = self.settings
        self.orchestrator.schedule_task(
            "memory_cleanup",
            "Expired memory cleanup",
            self.cleanup,
            interval=timedelta(seconds=s.cleanup_interval_seconds),
            priority=TaskPriority.HIGH,
        )
        self.orchestrator.schedule_task(
            "thread_sweep",
            "Idle thread sweep",
            self.sweep_threads,
            interval=timedelta(seconds=s.sweep_interval_seconds),
        )
        self.orchestrator.schedule_task(
            "promotion",
            "Memory promotion",
            self.promoter.run_cycle,
            interval=timedelta(seconds=s.promotion_interval_seconds),
            priority=TaskPriority.LOW,
        )
        await self.orchestrator.start()

    async def stop(self) -> None:
        if self.orchestrator is not None:
            await self.orchestrator.stop()
        if self.archive is not None:
            await self.archive.close()

    def get_stats(self) -> dict[str, Any]:
        return {
            "memory": self.store.get_stats(),
            "threads": len(self.threads),
            "relationships": len(self.relationships),
            "promotion_cycles": self.promoter.cycles,
        }
