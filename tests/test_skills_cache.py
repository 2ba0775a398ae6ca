"""Tests for finassist.skills.cache."""

from __future__ import annotations

import pytest

from conftest import make_response

from finassist.assistant.schema import ChatContext
from finassist.skills.cache import (
    ExecutionCache,
    context_fingerprint,
    make_cache_key,
    normalise_question,
)


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------

class TestCacheKey:
    def test_normalise_question(self):
        assert normalise_question("  What IS\ta   HYSA? ") == "what is a hysa?"

    def test_equivalent_questions_share_key(self):
        ctx = ChatContext()
        assert make_cache_key("What is a HYSA?", ctx) == make_cache_key("what is a  hysa?", ctx)

    def test_different_users_differ(self):
        a = ChatContext(user_profile={"user_id": "a"})
        b = ChatContext(user_profile={"user_id": "b"})
        assert make_cache_key("q", a) != make_cache_key("q", b)

    def test_balance_change_differs(self):
        a = ChatContext(accounts=[{"balance": 1000.0}])
        b = ChatContext(accounts=[{"balance": 2500.0}])
        assert make_cache_key("q", a) != make_cache_key("q", b)

    def test_float_noise_does_not_split_keys(self):
        a = ChatContext(accounts=[{"balance": 1000.001}])
        b = ChatContext(accounts=[{"balance": 1000.002}])
        assert make_cache_key("q", a) == make_cache_key("q", b)

    def test_session_actions_order_insensitive(self):
        a = ChatContext(session_actions=("X", "Y"))
        b = ChatContext(session_actions=("Y", "X"))
        assert make_cache_key("q", a) == make_cache_key("q", b)

    def test_consent_changes_key(self):
        a = ChatContext()
        b = ChatContext(session_actions=("FETCH_HYSA_PICKS",))
        assert make_cache_key("best hysa", a) != make_cache_key("best hysa", b)

    def test_fingerprint_fields(self):
        ctx = ChatContext(
            user_profile={"user_id": 42},
            budgets=[{"spent": 120.4}, {"spent": "n/a"}],
            goals=[{"current_amount": 50}, {"current": 25}],
            currency="EUR",
        )
        fp = context_fingerprint(ctx)
        assert fp["user_id"] == "42"
        assert fp["budgets"] == 2
        assert fp["budget_spent"] == 120
        assert fp["goal_saved"] == 75
        assert fp["currency"] == "EUR"


# ---------------------------------------------------------------------------
# ExecutionCache
# ---------------------------------------------------------------------------

class TestExecutionCache:
    def test_set_and_get(self, clock):
        cache = ExecutionCache(max_size=10, default_ttl_ms=1000, clock=clock)
        response = make_response()
        cache.set("k", response, skill_id="HYSA", usefulness=4)

        entry = cache.get("k")
        assert entry.response is response
        assert entry.skill_id == "HYSA"
        assert entry.usefulness == 4

    def test_miss(self, clock):
        assert ExecutionCache(clock=clock).get("missing") is None

    def test_expiry_evicts(self, clock):
        cache = ExecutionCache(max_size=10, default_ttl_ms=1000, clock=clock)
        cache.set("k", make_response())

        clock.advance(0.999)
        assert cache.get("k") is not None
        clock.advance(0.002)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_per_entry_ttl(self, clock):
        cache = ExecutionCache(max_size=10, default_ttl_ms=1000, clock=clock)
        cache.set("long", make_response(), ttl_ms=10_000)
        clock.advance(5)
        assert cache.get("long") is not None

    def test_oldest_evicted_at_capacity(self, clock):
        cache = ExecutionCache(max_size=2, default_ttl_ms=60_000, clock=clock)
        cache.set("a", make_response())
        cache.set("b", make_response())
        cache.set("c", make_response())

        assert len(cache) == 2
        assert cache.get("a") is None
        assert cache.get("b") is not None
        assert cache.get("c") is not None

    def test_overwrite_does_not_evict(self, clock):
        cache = ExecutionCache(max_size=2, default_ttl_ms=60_000, clock=clock)
        cache.set("a", make_response())
        cache.set("b", make_response())
        cache.set("a", make_response("replacement answer text"))

        assert len(cache) == 2
        assert cache.get("a").response.message == "replacement answer text"

    def test_clear_for_skill(self, clock):
        cache = ExecutionCache(clock=clock)
        cache.set("a", make_response(), skill_id="HYSA")
        cache.set("b", make_response(), skill_id="CD")
        cache.set("c", make_response(), skill_id="HYSA")

        assert cache.clear_for_skill("HYSA") == 2
        assert cache.stats()["keys"] == ["b"]

    def test_delete_and_clear(self, clock):
        cache = ExecutionCache(clock=clock)
        cache.set("a", make_response())
        assert cache.delete("a") is True
        assert cache.delete("a") is False
        cache.set("b", make_response())
        cache.clear()
        assert len(cache) == 0

    def test_stats(self, clock):
        cache = ExecutionCache(max_size=5, clock=clock)
        cache.set("a", make_response())
        assert cache.stats() == {"size": 1, "max_size": 5, "keys": ["a"]}

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            ExecutionCache(max_size=0)
