"""Per (channel, participant) conversation threads with idle eviction."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any
from uuid import uuid4

from luna.core.clock import Clock, SystemClock
from luna.core.logging import get_logger
from luna.core.typing import ThreadMessage
from luna.memory.base import ContextType, MemoryContext, Tier
from luna.memory.store import TieredMemoryStore

logger = get_logger("memory.threads")

MAX_THREAD_MESSAGES = 25
THREAD_IDLE_TIMEOUT = timedelta(minutes=5)


@dataclass
class ConversationThread:
    """Bounded message history between the bot and one participant."""

    id: str
    channel: str
    participant: str
    created_at: datetime
    last_activity: datetime
    messages: list[ThreadMessage] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str]:
        return (self.channel, self.participant)

    def recent(self, limit: int) -> list[ThreadMessage]:
        if limit <= 0:
            return []
        return self.messages[-limit:]


@dataclass
class EvictedThread:
    """A thread removed by sweep(), with the outcome of its archival."""

    thread: ConversationThread
    archived: bool
    archive_key: str | None = None


def archive_key(channel: str, participant: str) -> str:
    return f"thread:{channel}:{participant}"


class ThreadManager:
    """Owns the active threads. One instance per process (or per test)."""

    def __init__(
        self,
        store: TieredMemoryStore | None = None,
        clock: Clock | None = None,
        idle_timeout: timedelta = THREAD_IDLE_TIMEOUT,
        max_messages: int = MAX_THREAD_MESSAGES,
    ):
        self._store = store
        self._clock = clock or (store.clock if store is not None else SystemClock())
        self._idle_timeout = idle_timeout
        self._max_messages = max_messages
        self._threads: dict[tuple[str, str], ConversationThread] = {}

    @property
    def idle_timeout(self) -> timedelta:
        return self._idle_timeout

    def get(self, channel: str, participant: str) -> ConversationThread | None:
        return self._threads.get((channel, participant))

    def get_or_create(self, channel: str, participant: str) -> ConversationThread:
        """Return the thread for this pair, creating it; marks activity."""
        now = self._clock.now()
        key = (channel, participant)
        thread = self._threads.get(key)
        if thread is None:
            thread = ConversationThread(
                id=str(uuid4()),
                channel=channel,
                participant=participant,
                created_at=now,
                last_activity=now,
                metadata={"message_count": 0},
            )
            self._threads[key] = thread
            logger.debug(f"Created conversation thread for {channel}/{participant}")

        thread.last_activity = now
        return thread

    def update(
        self,
        thread: ConversationThread | None,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Append a message and keep only the most recent ones."""
        if thread is None:
            logger.error("Invalid thread provided to update")
            return

        try:
            metadata = metadata or {}
            now = self._clock.now()
            thread.messages.append({"content": message, "timestamp": now, **metadata})
            if len(thread.messages) > self._max_messages:
                del thread.messages[: len(thread.messages) - self._max_messages]

            thread.last_activity = now
            thread.metadata["message_count"] = len(thread.messages)
            thread.metadata["last_message_type"] = metadata.get("type", "unknown")
        except Exception as e:
            logger.warning(f"Failed to update thread {thread.id}: {e}")

    def sweep(self) -> list[EvictedThread]:
        """Evict threads idle longer than the timeout.

        Each evicted thread's messages are archived into the MEDIUM tier first;
        a failed archive never keeps the thread alive.
        """
        now = self._clock.now()
        evicted: list[EvictedThread] = []

        for key, thread in list(self._threads.items()):
            if now - thread.last_activity <= self._idle_timeout:
                continue

            record = EvictedThread(thread=thread, archived=False)
            try:
                record.archive_key, record.archived = self._archive(thread)
            except Exception as e:
                logger.warning(f"Failed to archive thread {thread.id}: {e}")

            del self._threads[key]
            evicted.append(record)
            logger.debug(f"Cleaned up inactive thread: {thread.channel}/{thread.participant}")

        if evicted:
            logger.info(f"Thread sweep evicted {len(evicted)} idle threads")
        return evicted

    def _archive(self, thread: ConversationThread) -> tuple[str | None, bool]:
        if self._store is None or not thread.messages:
            return None, False

        key = archive_key(thread.channel, thread.participant)
        value = {
            "thread_id": thread.id,
            "started_at": thread.created_at.isoformat(),
            "last_activity": thread.last_activity.isoformat(),
            "messages": [_serializable(m) for m in thread.messages],
        }
        context = MemoryContext(
            type=ContextType.CHAT,
            channel=thread.channel,
            user=thread.participant,
            content=" ".join(str(m.get("content", "")) for m in thread.messages),
        )
        return key, self._store.add(Tier.MEDIUM, key, value, context)

    def __len__(self) -> int:
        return len(self._threads)

    def __iter__(self):
        return iter(list(self._threads.values()))


def _serializable(message: ThreadMessage) -> ThreadMessage:
    return {
        k: v.isoformat() if isinstance(v, datetime) else v
        for k, v in message.items()
    }
