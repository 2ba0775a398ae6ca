"""
Tests for the skill data contract and slot schema.

Covers:
- finassist/skills/base.py
- finassist/skills/slots.py
"""

from __future__ import annotations

from datetime import date

import pytest

from conftest import fixed_solver

from finassist.assistant.schema import ChatContext
from finassist.skills import (
    Skill,
    SkillDefinitionError,
    SkillDependency,
    SkillExecutionResult,
    SkillInterceptor,
    SkillNotFoundError,
    SkillStep,
    SkillVersion,
    SlotSpec,
    SlotType,
    validate_params,
)
from finassist.skills.slots import slot_schema_errors


# ============================================================================
# Skill
# ============================================================================


class TestSkill:
    def test_defaults(self):
        skill = Skill(id="S", matches=lambda q: True, micro_solvers=(fixed_solver(5),))
        assert skill.priority == 0
        assert skill.min_usefulness == 3.0
        assert str(skill.version) == "1.0.0"
        assert skill.definition_errors() == []

    def test_lists_become_tuples(self):
        solver = fixed_solver(5)
        skill = Skill(id="S", matches=lambda q: True, micro_solvers=[solver])
        assert skill.micro_solvers == (solver,)

    def test_is_frozen(self):
        skill = Skill(id="S", matches=lambda q: True, micro_solvers=(fixed_solver(5),))
        with pytest.raises(Exception):
            skill.priority = 99

    def test_definition_errors(self):
        skill = Skill(
            id=" ",
            matches="not callable",
            priority=True,
            min_usefulness=6,
            kb_search="nope",
            interceptors=("not an interceptor",),
        )
        errors = skill.definition_errors()
        assert "id must be a non-empty string" in errors
        assert "matches must be callable" in errors
        assert "priority must be an int" in errors
        assert "min_usefulness must be between 0 and 5" in errors
        assert "kb_search is not callable" in errors
        assert any("not a SkillInterceptor" in e for e in errors)

    def test_get_info(self):
        skill = Skill(
            id="HYSA",
            matches=lambda q: True,
            name="High-Yield Savings",
            priority=10,
            micro_solvers=(fixed_solver(5), fixed_solver(4)),
            composer=lambda q, c, d: None,
            slots={"amount": SlotSpec(SlotType.NUMBER)},
            dependencies=(SkillDependency("CD", required=False),),
            version=SkillVersion(1, 1, 0),
        )
        info = skill.get_info()
        assert info["name"] == "High-Yield Savings"
        assert info["version"] == "1.1.0"
        assert info["stages"] == {
            "micro_solvers": 2,
            "kb_search": False,
            "research_agent": False,
            "composer": True,
        }
        assert info["slots"] == {"amount": "number"}
        assert info["dependencies"] == ["CD"]


class TestSupportingTypes:
    def test_dependency_condition(self):
        dep = SkillDependency("CD", condition=lambda ctx: ctx.currency == "USD")
        assert dep.is_satisfied(ChatContext())
        assert not dep.is_satisfied(ChatContext(currency="EUR"))

    @pytest.mark.asyncio
    async def test_interceptor_defaults(self):
        interceptor = SkillInterceptor()
        assert await interceptor.before_execution("S", "q", ChatContext()) is True
        assert await interceptor.after_execution("S", None, ChatContext()) is None

    def test_execution_result_to_dict(self):
        result = SkillExecutionResult(
            skill_id="S",
            step=SkillStep.MICRO_SOLVER,
            response=None,
            usefulness=4,
            execution_time_ms=1.5,
            success=True,
            metadata={"user_id": "u"},
        )
        data = result.to_dict()
        assert data["step"] == "micro_solver"
        assert data["metadata"] == {"user_id": "u"}
        assert data["cached"] is False

    def test_errors(self):
        err = SkillDefinitionError("S", ["a", "b"])
        assert str(err) == "Invalid skill 'S': a; b"
        assert isinstance(err, ValueError)
        assert isinstance(SkillNotFoundError("S"), KeyError)


# ============================================================================
# Slots
# ============================================================================


class TestSlots:
    @pytest.mark.parametrize(
        "slot_type,good,bad",
        [
            (SlotType.STRING, "groceries", 5),
            (SlotType.NUMBER, 12.5, "12.5"),
            (SlotType.NUMBER, 3, True),
            (SlotType.NUMBER, 0, float("nan")),
            (SlotType.DATE, "2026-01-31", "next tuesday"),
            (SlotType.DATE, date(2026, 1, 31), 20260131),
            (SlotType.GOAL_ID, "goal_1", None),
        ],
    )
    def test_type_checks(self, slot_type, good, bad):
        spec = SlotSpec(slot_type)
        assert spec.check(good)
        assert not spec.check(bad)

    def test_custom_validator(self):
        spec = SlotSpec(SlotType.NUMBER, validator=lambda v: v > 0)
        assert spec.check(10)
        assert not spec.check(-1)

    def test_validate_params(self):
        slots = {
            "amount": SlotSpec(SlotType.NUMBER, required=True),
            "category": SlotSpec(SlotType.CATEGORY),
            "month": SlotSpec(SlotType.DATE),
        }
        result = validate_params(slots, {"category": 7, "extra": "x"})

        assert not result.valid
        assert result.missing_slots == ["amount"]
        assert result.invalid_slots == ["category"]
        assert result.warnings == ["Unknown slot 'extra' ignored"]

    def test_optional_slots_may_be_absent(self):
        assert validate_params({"month": SlotSpec(SlotType.DATE)}, {}).valid

    def test_schema_errors(self):
        errors = slot_schema_errors({
            "a": "string",
            "b": SlotSpec(SlotType.STRING, validator="nope"),
        })
        assert errors == ["slot 'a' is not a SlotSpec", "slot 'b' validator is not callable"]

    def test_registration_rejects_bad_slots(self):
        from finassist.skills import SkillRegistry

        skill = Skill(
            id="S",
            matches=lambda q: True,
            micro_solvers=(fixed_solver(5),),
            slots={"amount": SlotSpec(SlotType.NUMBER, validator=42)},
        )
        with pytest.raises(SkillDefinitionError):
            SkillRegistry().register(skill)
