"""
Luna - chat bot conversational memory engine.

Package structure:
- core: Config, clock, background orchestration, logging
- memory: Tiered memory store, relevance scoring, threads, context assembly
- llm: Response generation from assembled context snapshots
"""

__version__ = "0.1.0"
