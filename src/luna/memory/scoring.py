"""Relevance scoring between stored memories and a query context.

Pure functions: the caller supplies "now" so scores are reproducible.
"""

import re
from datetime import datetime, timedelta

from luna.memory.base import DEFAULT_MAX_AGES, MemoryEntry, QueryContext, Tier

TYPE_MATCH_BONUS = 0.5
CHANNEL_MATCH_BONUS = 0.3
USER_MATCH_BONUS = 0.4
KEYWORD_OVERLAP_BONUS = 0.1
MIN_KEYWORD_LENGTH = 4

STOP_WORDS = frozenset({
    "the", "be", "to", "of", "and", "a", "in", "that", "have", "i", "it",
    "for", "not", "on", "with", "he", "as", "you", "do", "at", "this", "but",
    "his", "by", "from", "they", "we", "say", "her", "she", "or", "an", "will",
    "my", "one", "all", "would", "there", "their", "what", "so", "up", "out",
    "if", "about", "who", "get", "which", "go", "me", "when", "make", "can",
    "like", "just", "know", "take", "into", "your", "some", "could", "them",
    "than", "then", "look", "only", "come", "over", "also", "back", "well",
    "been", "were", "does", "did", "here", "very", "much", "really",
})

_SPLIT_RE = re.compile(r"\W+")


def extract_keywords(text: str | None) -> set[str]:
    """Lowercased words longer than three characters, minus stop words."""
    if not text:
        return set()
    return {
        word for word in _SPLIT_RE.split(text.lower())
        if len(word) >= MIN_KEYWORD_LENGTH and word not in STOP_WORDS
    }


def recency(age: timedelta, max_age: timedelta) -> float:
    """Linear decay from 1 (fresh) to 0 (at max age)."""
    if max_age <= timedelta(0):
        return 0.0
    return max(0.0, 1.0 - age / max_age)


def score(
    entry: MemoryEntry,
    query: QueryContext,
    now: datetime,
    max_ages: dict[Tier, timedelta] | None = None,
) -> float:
    """Score how well an entry matches a query, clipped to [0, 1]."""
    ages = max_ages or DEFAULT_MAX_AGES
    total = recency(entry.age(now), ages[entry.tier])

    context = entry.context
    if query.type is not None and context.type == query.type:
        total += TYPE_MATCH_BONUS
    if query.channel is not None and context.channel == query.channel:
        total += CHANNEL_MATCH_BONUS
    if query.user is not None and context.user == query.user:
        total += USER_MATCH_BONUS

    overlap = extract_keywords(entry.text) & extract_keywords(query.content)
    total += KEYWORD_OVERLAP_BONUS * len(overlap)

    return min(1.0, max(0.0, total))
