"""
Slot schema for skill parameters.

Each slot declares one of a closed set of :class:`SlotType` variants. Every
variant has a built-in type check, and a slot may add its own validator on
top. Slot specs are checked when a skill is registered, so a malformed schema
fails at startup rather than on the request path.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Mapping, Optional


class SlotType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    CATEGORY = "category"
    MERCHANT = "merchant"
    ACCOUNT = "account"
    GOAL_ID = "goal_id"


def _is_string(value: Any) -> bool:
    return isinstance(value, str)


def _is_number(value: Any) -> bool:
    # bool is an int subclass; a True/False amount is always a caller bug
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return value == value  # NaN check
    return False


def _is_date(value: Any) -> bool:
    if isinstance(value, (date, datetime)):
        return True
    if isinstance(value, str):
        try:
            datetime.fromisoformat(value)
        except ValueError:
            return False
        return True
    return False


_TYPE_CHECKS: dict[SlotType, Callable[[Any], bool]] = {
    SlotType.STRING: _is_string,
    SlotType.NUMBER: _is_number,
    SlotType.DATE: _is_date,
    SlotType.CATEGORY: _is_string,
    SlotType.MERCHANT: _is_string,
    SlotType.ACCOUNT: _is_string,
    SlotType.GOAL_ID: _is_string,
}


@dataclass(frozen=True)
class SlotSpec:
    """Declaration of one skill parameter.

    Attributes:
        type: Slot variant, selects the built-in type check
        required: Whether the slot must be present
        description: Human-readable description
        examples: Example values, for prompts and docs
        validator: Optional extra check run after the type check
    """
    type: SlotType
    required: bool = False
    description: str = ""
    examples: tuple[str, ...] = ()
    validator: Optional[Callable[[Any], bool]] = None

    def check(self, value: Any) -> bool:
        if not _TYPE_CHECKS[self.type](value):
            return False
        return self.validator is None or bool(self.validator(value))


@dataclass
class SkillValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    missing_slots: list[str] = field(default_factory=list)
    invalid_slots: list[str] = field(default_factory=list)


def slot_schema_errors(slots: Mapping[str, Any]) -> list[str]:
    """Return problems with a slot schema; empty when it is well formed."""
    errors: list[str] = []
    for name, spec in slots.items():
        if not isinstance(spec, SlotSpec):
            errors.append(f"slot '{name}' is not a SlotSpec")
            continue
        if not isinstance(spec.type, SlotType):
            errors.append(f"slot '{name}' has unknown type {spec.type!r}")
        if spec.validator is not None and not callable(spec.validator):
            errors.append(f"slot '{name}' validator is not callable")
    return errors


def validate_params(
    slots: Mapping[str, SlotSpec],
    params: Mapping[str, Any],
) -> SkillValidationResult:
    """Validate *params* against a skill's slot schema."""
    result = SkillValidationResult(valid=True)

    for name, spec in slots.items():
        value = params.get(name)
        if value is None:
            if spec.required:
                result.missing_slots.append(name)
                result.errors.append(f"Required slot '{name}' is missing")
            continue
        if not spec.check(value):
            result.invalid_slots.append(name)
            result.errors.append(f"Slot '{name}' must be a valid {spec.type.value}")

    for name in params:
        if name not in slots:
            result.warnings.append(f"Unknown slot '{name}' ignored")

    result.valid = not result.errors
    return result
