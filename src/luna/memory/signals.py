"""Channel signals: mood, activity and topics of recent chat.

Computed outside the memory engine and passed through the context snapshot
untouched. Messages are mappings with at least ``message`` (text) and
optionally ``username`` and ``timestamp`` (datetime).
"""

import re
from collections import Counter
from collections.abc import Mapping, Sequence
from datetime import datetime, timedelta
from typing import Any

from luna.core.typing import JSONDict

MOOD_INDICATORS: dict[str, tuple[str, ...]] = {
    "hype": ("pogchamp", "hypers", "pagman", "poggies", "lets go", "poggers"),
    "funny": ("kekw", "lulw", "omegalul", "lol", "lmao"),
    "sad": ("sadge", "pepehands", "widepeeposad", "d:", "feelsbadman"),
    "angry": ("madge", "babyrage", "weirdchamp", "wtf", "trash"),
    "chill": ("noted", "chatting", "feelsokayman", "pausechamp"),
}

_MOOD_PATTERNS = {
    mood: [re.compile(rf"(?:^|\s){re.escape(word)}(?:\s|$)") for word in words]
    for mood, words in MOOD_INDICATORS.items()
}

ACTIVITY_WINDOW = timedelta(minutes=5)
TOPIC_STOP_WORDS = frozenset({"that", "have", "with", "this", "from", "what", "just"})


def _text(message: Mapping[str, Any]) -> str:
    return str(message.get("message") or message.get("content") or "")


def analyze_mood(messages: Sequence[Mapping[str, Any]]) -> str:
    """Dominant mood by count of messages carrying its indicators."""
    counts: Counter[str] = Counter()
    for message in messages:
        text = _text(message).lower()
        for mood, patterns in _MOOD_PATTERNS.items():
            if any(p.search(text) for p in patterns):
                counts[mood] += 1

    if not counts:
        return "neutral"
    return counts.most_common(1)[0][0]


def measure_activity(
    messages: Sequence[Mapping[str, Any]],
    now: datetime,
    window: timedelta = ACTIVITY_WINDOW,
) -> int:
    """Messages sent within the window."""
    return sum(
        1 for m in messages
        if isinstance(m.get("timestamp"), datetime) and now - m["timestamp"] < window
    )


def message_frequency(messages: Sequence[Mapping[str, Any]]) -> float:
    """Messages per minute between the first and last message."""
    if len(messages) < 2:
        return 0.0
    first, last = messages[0].get("timestamp"), messages[-1].get("timestamp")
    if not isinstance(first, datetime) or not isinstance(last, datetime):
        return 0.0
    minutes = (last - first).total_seconds() / 60
    if minutes <= 0:
        return 0.0
    return len(messages) / minutes


def extract_topics(messages: Sequence[Mapping[str, Any]], limit: int = 5) -> list[str]:
    """Most frequent words longer than three characters."""
    words = Counter(
        word
        for m in messages
        for word in _text(m).lower().split()
        if len(word) > 3 and word not in TOPIC_STOP_WORDS
    )
    return [word for word, _ in words.most_common(limit)]


def active_users(messages: Sequence[Mapping[str, Any]]) -> list[str]:
    seen: dict[str, None] = {}
    for m in messages:
        name = m.get("username")
        if name:
            seen.setdefault(str(name), None)
    return list(seen)


def compute_channel_signals(
    channel: str,
    messages: Sequence[Mapping[str, Any]],
    now: datetime,
) -> JSONDict:
    """Signals for a channel from its recent messages."""
    return {
        "channel": channel,
        "mood": analyze_mood(messages),
        "activity": measure_activity(messages, now),
        "message_frequency": message_frequency(messages),
        "topics": extract_topics(messages),
        "active_users": active_users(messages),
    }
