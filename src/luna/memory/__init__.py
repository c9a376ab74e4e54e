"""
Memory module - tiered conversational memory.

Layers:
- store: SHORT / MEDIUM / LONG tiers plus an UNSCOPED queue, each with a max age
- scoring: relevance of a memory to the current conversation
- threads: per (channel, participant) history with idle eviction
- promotion: importance-based moves to longer-lived tiers
- context: immutable snapshots for the response generator

Storage: in-process, optional SQLite archive for evicted threads
"""

from luna.memory.base import ContextType, MemoryContext, MemoryEntry, QueryContext, Tier
from luna.memory.context import ContextAssembler, ContextSnapshot, RecalledMemory
from luna.memory.promotion import PromotionScheduler
from luna.memory.service import MemoryService
from luna.memory.store import TieredMemoryStore
from luna.memory.threads import ConversationThread, ThreadManager

__all__ = [
    "ContextAssembler",
    "ContextSnapshot",
    "ContextType",
    "ConversationThread",
    "MemoryContext",
    "MemoryEntry",
    "MemoryService",
    "PromotionScheduler",
    "QueryContext",
    "RecalledMemory",
    "ThreadManager",
    "Tier",
    "TieredMemoryStore",
]
