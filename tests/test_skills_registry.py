"""Tests for finassist.skills.registry."""

from __future__ import annotations

import logging

import pytest

from conftest import make_skill

from finassist.skills import (
    SkillDefinitionError,
    SkillDependency,
    SkillNotFoundError,
    SkillRegistry,
    SlotSpec,
    SlotType,
    get_registry,
    reset_registry,
)


@pytest.fixture
def registry() -> SkillRegistry:
    return SkillRegistry()


@pytest.fixture
def clean_registry():
    """Ensure clean global registry state for each test."""
    reset_registry()
    yield
    reset_registry()


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

class TestRegister:
    def test_register_and_lookup(self, registry):
        skill = make_skill("HYSA", priority=10)
        assert registry.register(skill) is True
        assert registry.get_by_id("HYSA") is skill
        assert "HYSA" in registry
        assert len(registry) == 1

    def test_duplicate_keeps_existing(self, registry, caplog):
        first = make_skill("HYSA", priority=10)
        registry.register(first)

        with caplog.at_level(logging.WARNING):
            assert registry.register(make_skill("HYSA", priority=1)) is False

        assert registry.get_by_id("HYSA") is first
        assert "already registered" in caplog.text

    def test_non_skill_rejected(self, registry):
        with pytest.raises(SkillDefinitionError):
            registry.register({"id": "x"})

    def test_skill_without_stages_rejected(self, registry):
        from finassist.skills import Skill

        with pytest.raises(SkillDefinitionError, match="no stages"):
            registry.register(Skill(id="EMPTY", matches=lambda q: True))

    def test_out_of_range_threshold_rejected(self, registry):
        with pytest.raises(SkillDefinitionError, match="min_usefulness"):
            registry.register(make_skill("X", min_usefulness=7))

    def test_definition_error_is_value_error(self, registry):
        with pytest.raises(ValueError):
            registry.register(make_skill("", priority=1))

    def test_bad_slot_schema_rejected(self, registry):
        with pytest.raises(SkillDefinitionError, match="slot 'amount'"):
            registry.register(make_skill("X", slots={"amount": "number"}))

    def test_missing_required_dependency_rejected(self, registry):
        skill = make_skill("CHILD", dependencies=(SkillDependency("PARENT"),))
        with pytest.raises(SkillDefinitionError, match="PARENT"):
            registry.register(skill)
        assert "CHILD" not in registry

    def test_optional_dependency_may_be_missing(self, registry):
        skill = make_skill("CHILD", dependencies=(SkillDependency("PARENT", required=False),))
        assert registry.register(skill) is True

    def test_error_lists_every_problem(self, registry):
        with pytest.raises(SkillDefinitionError) as exc_info:
            registry.register(make_skill("X", min_usefulness=-1, cache_ttl_ms=0))
        assert len(exc_info.value.problems) == 2


class TestUnregister:
    def test_unregister(self, registry):
        registry.register(make_skill("A"))
        assert registry.unregister("A") is True
        assert "A" not in registry

    def test_unknown_id(self, registry, caplog):
        with caplog.at_level(logging.WARNING):
            assert registry.unregister("NOPE") is False
        assert "unknown skill" in caplog.text

    def test_blocked_by_required_dependent(self, registry):
        registry.register(make_skill("PARENT"))
        registry.register(make_skill("CHILD", dependencies=(SkillDependency("PARENT"),)))

        assert registry.unregister("PARENT") is False
        assert "PARENT" in registry

        assert registry.unregister("CHILD") is True
        assert registry.unregister("PARENT") is True


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------

class TestFind:
    def test_priority_descending(self, registry):
        registry.register(make_skill("LOW", priority=1))
        registry.register(make_skill("HIGH", priority=10))
        registry.register(make_skill("MID", priority=5))

        assert [s.id for s in registry.find("q")] == ["HIGH", "MID", "LOW"]

    def test_ties_keep_registration_order(self, registry):
        for sid in ("B", "A", "C"):
            registry.register(make_skill(sid, priority=3))
        assert [s.id for s in registry.find("q")] == ["B", "A", "C"]

    def test_only_matching_skills(self, registry):
        registry.register(make_skill("CD", matches=lambda q: "cd" in q.lower()))
        registry.register(make_skill("HYSA", matches=lambda q: "hysa" in q.lower()))
        assert [s.id for s in registry.find("best CD rates")] == ["CD"]

    def test_raising_predicate_is_skipped(self, registry, caplog):
        def broken(question):
            raise RuntimeError("bad regex")

        registry.register(make_skill("BROKEN", priority=10, matches=broken))
        registry.register(make_skill("OK"))

        with caplog.at_level(logging.ERROR):
            assert [s.id for s in registry.find("q")] == ["OK"]
        assert "BROKEN" in caplog.text

    def test_require_raises_not_found(self, registry):
        with pytest.raises(SkillNotFoundError) as exc_info:
            registry.require("NOPE")
        assert str(exc_info.value) == "Skill 'NOPE' not found"
        assert isinstance(exc_info.value, KeyError)


class TestParamsAndStats:
    def test_validate_params_for_registered_skill(self, registry):
        registry.register(make_skill(
            "BUDGET",
            slots={"amount": SlotSpec(SlotType.NUMBER, required=True)},
        ))
        assert registry.validate_params("BUDGET", {"amount": 100}).valid
        assert registry.validate_params("BUDGET", {}).missing_slots == ["amount"]

    def test_validate_params_unknown_skill(self, registry):
        result = registry.validate_params("NOPE", {})
        assert not result.valid
        assert result.errors == ["Skill 'NOPE' not found"]

    def test_get_stats(self, registry):
        registry.register(make_skill("A", priority=10))
        registry.register(make_skill("B", priority=10))
        registry.register(make_skill("C", priority=1))

        stats = registry.get_stats()

        assert stats["total_skills"] == 3
        assert stats["skills_by_priority"] == {10: 2, 1: 1}
        assert stats["skill_ids"] == ["A", "B", "C"]

    def test_list_all_highest_priority_first(self, registry):
        registry.register(make_skill("LOW", priority=1))
        registry.register(make_skill("HIGH", priority=9))
        assert [info["id"] for info in registry.list_all()] == ["HIGH", "LOW"]

    def test_clear_and_iter(self, registry):
        registry.register(make_skill("A"))
        registry.register(make_skill("B"))
        assert [s.id for s in registry] == ["A", "B"]
        registry.clear()
        assert len(registry) == 0


class TestGlobalRegistry:
    def test_singleton(self, clean_registry):
        assert get_registry() is get_registry()

    def test_reset(self, clean_registry):
        get_registry().register(make_skill("A"))
        reset_registry()
        assert len(get_registry()) == 0
