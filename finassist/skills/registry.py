"""
Skill registry for discovery and routing.

The registry is the catalog of skills the engine may try for a question.
Lookup by question returns every skill whose predicate accepts it, highest
priority first, ties broken by registration order.

Storage is copy-on-write: writers build a new map under a lock and swap it
in, so a concurrent ``find`` always iterates a complete snapshot.

Usage:
    from finassist.skills.registry import SkillRegistry

    registry = SkillRegistry()
    registry.register(hysa_skill)

    for skill in registry.find("what is a hysa?"):
        print(skill.id, skill.priority)
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Iterator, Mapping

from .base import Skill, SkillDefinitionError, SkillNotFoundError
from .slots import SkillValidationResult, validate_params

logger = logging.getLogger(__name__)


class SkillRegistry:
    """Registry for skill discovery and routing.

    Attributes:
        _skills: Snapshot mapping of skill id to skill, in registration order

    Example:
        registry = SkillRegistry()
        registry.register(hysa_skill)
        registry.register(cd_skill)

        skill = registry.get_by_id("HYSA")
        if "CD" in registry:
            print("CD skill is registered")
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._skills: dict[str, Skill] = {}
        self._write_lock = threading.Lock()

    def register(self, skill: Skill) -> bool:
        """Register a skill.

        Duplicate ids are refused with a warning and the existing skill is
        kept. A malformed definition raises instead, so it fails at startup.

        Args:
            skill: The skill to register

        Returns:
            True if the skill was added, False if the id was already taken

        Raises:
            SkillDefinitionError: If the definition violates the skill
                contract or names a required dependency that is not registered

        Example:
            registry = SkillRegistry()
            registry.register(hysa_skill)
        """
        if not isinstance(skill, Skill):
            raise SkillDefinitionError(
                str(getattr(skill, "id", "")), ["not a Skill instance"]
            )

        problems = skill.definition_errors()

        with self._write_lock:
            current = self._skills
            if skill.id in current:
                logger.warning("Skill '%s' already registered; keeping existing", skill.id)
                return False

            for dep in skill.dependencies:
                if dep.required and dep.skill_id not in current:
                    problems.append(f"required dependency '{dep.skill_id}' is not registered")
            if problems:
                raise SkillDefinitionError(skill.id, problems)

            updated = dict(current)
            updated[skill.id] = skill
            self._skills = updated

        logger.debug("Registered skill '%s' (priority %d)", skill.id, skill.priority)
        return True

    def unregister(self, skill_id: str) -> bool:
        """Unregister a skill.

        Refused when the id is unknown or when another registered skill
        declares a required dependency on it.

        Args:
            skill_id: The id of the skill to remove

        Returns:
            True if the skill was removed, False otherwise
        """
        with self._write_lock:
            current = self._skills
            if skill_id not in current:
                logger.warning("Cannot unregister unknown skill '%s'", skill_id)
                return False

            dependents = [
                s.id for s in current.values()
                if any(d.skill_id == skill_id and d.required for d in s.dependencies)
            ]
            if dependents:
                logger.warning(
                    "Cannot unregister skill '%s': required by %s",
                    skill_id, ", ".join(dependents),
                )
                return False

            updated = dict(current)
            del updated[skill_id]
            self._skills = updated

        logger.debug("Unregistered skill '%s'", skill_id)
        return True

    def find(self, question: str) -> list[Skill]:
        """Return every skill that matches *question*, highest priority first.

        A predicate that raises is logged and treated as no match.
        """
        snapshot = self._skills
        matched: list[tuple[int, int, Skill]] = []
        for order, skill in enumerate(snapshot.values()):
            try:
                ok = skill.matches(question)
            except Exception:
                logger.exception("Match predicate for skill '%s' raised", skill.id)
                continue
            if ok:
                matched.append((-skill.priority, order, skill))
        matched.sort(key=lambda t: (t[0], t[1]))
        return [skill for _, _, skill in matched]

    def get_by_id(self, skill_id: str) -> Skill | None:
        return self._skills.get(skill_id)

    def require(self, skill_id: str) -> Skill:
        """Like :meth:`get_by_id` but raises :class:`SkillNotFoundError`."""
        skill = self._skills.get(skill_id)
        if skill is None:
            raise SkillNotFoundError(skill_id)
        return skill

    def validate_params(
        self, skill_id: str, params: Mapping[str, Any]
    ) -> SkillValidationResult:
        """Validate *params* against the slot schema of a registered skill."""
        skill = self._skills.get(skill_id)
        if skill is None:
            return SkillValidationResult(
                valid=False, errors=[f"Skill '{skill_id}' not found"]
            )
        return validate_params(skill.slots, params)

    def get_stats(self) -> dict[str, Any]:
        """Registry summary for diagnostics.

        Returns:
            ``total_skills``, ``skills_by_priority`` (priority -> count) and
            ``skill_ids`` in registration order
        """
        snapshot = self._skills
        by_priority: dict[int, int] = {}
        for skill in snapshot.values():
            by_priority[skill.priority] = by_priority.get(skill.priority, 0) + 1
        return {
            "total_skills": len(snapshot),
            "skills_by_priority": by_priority,
            "skill_ids": list(snapshot.keys()),
        }

    def list_all(self) -> list[dict[str, Any]]:
        """Metadata for every registered skill, highest priority first.

        See :meth:`Skill.get_info` for the fields.
        """
        ordered = sorted(self._skills.values(), key=lambda s: -s.priority)
        return [skill.get_info() for skill in ordered]

    def list_ids(self) -> list[str]:
        return list(self._skills.keys())

    def clear(self) -> None:
        """Remove all registered skills."""
        with self._write_lock:
            self._skills = {}

    def __len__(self) -> int:
        return len(self._skills)

    def __contains__(self, skill_id: object) -> bool:
        return skill_id in self._skills

    def __iter__(self) -> Iterator[Skill]:
        return iter(list(self._skills.values()))


# Global registry instance
_registry: SkillRegistry | None = None


def get_registry() -> SkillRegistry:
    """Get the process-wide registry, creating it on first use.

    The engine takes an explicit registry; this singleton is a convenience
    for hosts that want one shared catalog.
    """
    global _registry
    if _registry is None:
        _registry = SkillRegistry()
    return _registry


def reset_registry() -> None:
    """Reset the global registry. Primarily for tests."""
    global _registry
    if _registry is not None:
        _registry.clear()
    _registry = None
