"""Tests for relevance scoring."""

from datetime import datetime, timedelta

import pytest

from luna.memory.base import ContextType, MemoryContext, MemoryEntry, QueryContext, Tier
from luna.memory.scoring import extract_keywords, recency, score

NOW = datetime(2024, 1, 1, 12, 0, 0)


def _entry(
    tier=Tier.SHORT,
    age=timedelta(0),
    type=ContextType.CHAT,
    channel="x",
    user="bob",
    content="hype moment",
    value="hi",
):
    return MemoryEntry(
        key="k",
        value=value,
        context=MemoryContext(type=type, channel=channel, user=user, content=content),
        tier=tier,
        inserted_at=NOW - age,
    )


def test_extract_keywords():
    """Lowercased, split on non-word characters, short and stop words dropped."""
    assert extract_keywords("The HYPE moment, with that Pog!") == {"hype", "moment"}
    assert extract_keywords("") == set()
    assert extract_keywords(None) == set()


def test_full_match_scores_high():
    """Type, channel, user and one keyword on a fresh entry."""
    query = QueryContext(type=ContextType.CHAT, channel="x", user="bob", content="hype")
    assert score(_entry(age=timedelta(seconds=1)), query, NOW) > 0.9


def test_score_is_clipped_to_one():
    query = QueryContext(
        type=ContextType.CHAT, channel="x", user="bob", content="hype moment"
    )
    assert score(_entry(), query, NOW) == 1.0


def test_recency_decays_linearly():
    """Without other matches the score is the recency term alone."""
    entry = _entry(age=timedelta(minutes=2, seconds=30), type=ContextType.EMOTE)
    assert score(entry, QueryContext(), NOW) == pytest.approx(0.5)

    assert recency(timedelta(0), timedelta(minutes=5)) == 1.0
    assert recency(timedelta(minutes=10), timedelta(minutes=5)) == 0.0


def test_recency_uses_entry_tier():
    """The same age decays slower in a longer tier."""
    age = timedelta(minutes=4)
    short = score(_entry(tier=Tier.SHORT, age=age), QueryContext(), NOW)
    long = score(_entry(tier=Tier.LONG, age=age), QueryContext(), NOW)
    assert long > short


@pytest.mark.parametrize(
    "query,expected",
    [
        (QueryContext(type=ContextType.CHAT), 0.5),
        (QueryContext(channel="x"), 0.3),
        (QueryContext(user="bob"), 0.4),
        (QueryContext(channel="x", user="bob"), 0.7),
    ],
)
def test_context_bonuses(query, expected):
    """Each matching field adds its bonus (entry at max age: no recency)."""
    entry = _entry(age=timedelta(minutes=5), content=None, value=None)
    assert score(entry, query, NOW) == pytest.approx(expected)


def test_missing_fields_do_not_match():
    """None on both sides is not a match."""
    entry = _entry(age=timedelta(minutes=5), channel=None, user=None, content=None)
    assert score(entry, QueryContext(), NOW) == 0.0


def test_keyword_overlap_counts_shared_words():
    entry = _entry(
        age=timedelta(minutes=5),
        type=ContextType.EMOTE,
        content="python async python patterns",
    )
    query = QueryContext(content="Python patterns and async stuff")
    # python, async, patterns
    assert score(entry, query, NOW) == pytest.approx(0.3)


def test_value_text_used_without_content():
    entry = _entry(
        age=timedelta(minutes=5), type=ContextType.EMOTE, content=None, value="speedrun"
    )
    assert score(entry, QueryContext(content="speedrun"), NOW) == pytest.approx(0.1)


def test_score_is_deterministic():
    query = QueryContext(type=ContextType.CHAT, content="moment")
    entry = _entry(age=timedelta(seconds=42))
    assert score(entry, query, NOW) == score(entry, query, NOW)


def test_score_always_in_unit_interval():
    words = " ".join(f"keyword{i}" for i in range(30))
    for tier in Tier:
        for age in (timedelta(0), timedelta(minutes=3), timedelta(hours=5)):
            for content in (None, "", words):
                entry = _entry(tier=tier, age=age, content=content)
                for query in (
                    QueryContext(),
                    QueryContext(type=ContextType.CHAT, channel="x", user="bob", content=words),
                    QueryContext(type=ContextType.STREAM, channel="y", content="nothing"),
                ):
                    assert 0.0 <= score(entry, query, NOW) <= 1.0
