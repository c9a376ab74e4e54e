"""Tests for importance-based promotion."""

import random
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from luna.core.clock import ManualClock
from luna.memory.base import Tier
from luna.memory.promotion import PromotionScheduler, PromotionWeights
from luna.memory.relationships import RelationshipTracker
from luna.memory.store import TieredMemoryStore


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def store(clock):
    return TieredMemoryStore(clock=clock)


@pytest.fixture
def relationships(clock):
    return RelationshipTracker(clock=clock)


@pytest.fixture
def promoter(store, relationships):
    return PromotionScheduler(store, relationships=relationships)


def _context(user="bob", type="chat", content="just chatting"):
    return {"type": type, "channel": "x", "user": user, "content": content}


def test_familiar_user_with_marker_goes_long(store, relationships, promoter):
    """0.4 relationship + 0.35 marker + 0.15 chat = 0.9."""
    relationships.set("bob", familiarity=1.0, rapport=1.0)
    store.add(Tier.UNSCOPED, "m", "v", _context(content="remember my cat is called Pixel"))

    assert promoter.importance(store.get(Tier.UNSCOPED, "m")) == pytest.approx(0.9)

    result = promoter.run_cycle()

    assert result.to_long == 1
    assert store.get(Tier.UNSCOPED, "m") is None
    assert store.get(Tier.LONG, "m") is not None


def test_stranger_interaction_with_marker_goes_medium(store, promoter):
    """0.35 marker + 0.25 interaction = 0.6."""
    store.add(
        Tier.UNSCOPED,
        "m",
        "v",
        _context(user="stranger", type="user_interaction", content="this is important"),
    )

    result = promoter.run_cycle()

    assert result.to_medium == 1
    assert store.get(Tier.MEDIUM, "m") is not None
    assert store.count(Tier.UNSCOPED) == 0


def test_plain_chat_stays_queued(store, promoter):
    store.add(Tier.UNSCOPED, "m", "v", _context(user="stranger"))

    entry = store.get(Tier.UNSCOPED, "m")
    assert promoter.importance(entry) == pytest.approx(0.15)

    result = promoter.run_cycle()

    assert result.examined == 1
    assert result.promoted == 0
    assert store.get(Tier.UNSCOPED, "m") is not None


def test_short_tier_entries_are_candidates(store, relationships, promoter):
    relationships.set("bob", 1.0, 1.0)
    store.add(Tier.SHORT, "s", "v", _context(content="never forget this"))

    assert promoter.run_cycle().to_long == 1
    assert store.get(Tier.SHORT, "s") is None
    assert store.get(Tier.LONG, "s") is not None


def test_medium_entries_are_not_reexamined(store, relationships, promoter):
    relationships.set("bob", 1.0, 1.0)
    store.add(Tier.MEDIUM, "m", "v", _context(content="remember this"))

    assert promoter.run_cycle().examined == 0
    assert store.get(Tier.MEDIUM, "m") is not None


def test_promoted_entry_outlives_short_age(store, relationships, promoter, clock):
    """Promotion cancels the queued expiry."""
    relationships.set("bob", 1.0, 1.0)
    store.add(Tier.UNSCOPED, "m", "v", _context(content="remember this"))
    promoter.run_cycle()

    clock.advance(timedelta(seconds=301))

    assert store.get(Tier.LONG, "m") is not None


def test_thresholds_are_strict(promoter):
    assert promoter.target_tier(0.71) == Tier.LONG
    assert promoter.target_tier(0.7) == Tier.MEDIUM
    assert promoter.target_tier(0.41) == Tier.MEDIUM
    assert promoter.target_tier(0.4) is None


def test_custom_weights(store):
    weights = PromotionWeights(relationship=0.0, markers=0.0, interaction=1.0)
    promoter = PromotionScheduler(store, weights=weights)
    store.add(Tier.UNSCOPED, "m", "v", _context(type="stream"))

    assert promoter.importance(store.get(Tier.UNSCOPED, "m")) == pytest.approx(0.8)
    assert promoter.run_cycle().to_long == 1


def test_without_relationships_source(store):
    promoter = PromotionScheduler(store)
    store.add(Tier.UNSCOPED, "m", "v", _context(content="remember"))
    # 0.35 + 0.15
    assert promoter.importance(store.get(Tier.UNSCOPED, "m")) == pytest.approx(0.5)


def test_failed_move_is_logged_not_raised(store, relationships):
    relationships.set("bob", 1.0, 1.0)
    store.add(Tier.UNSCOPED, "m", "v", _context(content="remember"))
    store.move = MagicMock(side_effect=RuntimeError("boom"))
    promoter = PromotionScheduler(store, relationships=relationships)

    result = promoter.run_cycle()

    assert result.examined == 1
    assert result.promoted == 0


def test_maybe_run_respects_probability(store):
    never = PromotionScheduler(store, probability=0.0, rng=random.Random(1))
    always = PromotionScheduler(store, probability=1.0, rng=random.Random(1))

    assert never.maybe_run() is None
    assert never.cycles == 0

    assert always.maybe_run() is not None
    assert always.cycles == 1


def test_tracker_empty_at_construction_is_consulted(store, clock):
    """Relationships recorded after the scheduler is built still count."""
    tracker = RelationshipTracker(clock=clock)
    promoter = PromotionScheduler(store, relationships=tracker)
    assert len(tracker) == 0

    tracker.set("bob", 1.0, 1.0)
    store.add(Tier.UNSCOPED, "m", "v", _context(content="remember this"))

    assert promoter.importance(store.get(Tier.UNSCOPED, "m")) == pytest.approx(0.9)
    assert promoter.run_cycle().to_long == 1
