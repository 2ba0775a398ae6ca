"""
Skill data contract for the finassist cascade.

A skill is a self-contained capability for answering one topic of question.
It declares a match predicate, an ordered set of solver stages (cheap to
expensive) and the usefulness threshold a stage's answer must reach before
the engine returns it.

Key concepts:
- Skill: immutable capability descriptor, registered once at startup
- SkillStep: which stage produced a result
- SkillStepResult: what a stage function returns
- SkillExecutionResult: immutable record of one attempt, fed to metrics
- SkillInterceptor: before / after / on-error hooks around a skill
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from finassist.assistant.schema import ChatContext, ChatResponse
from finassist.config.settings import settings

from .slots import SlotSpec, slot_schema_errors


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class FinassistError(Exception):
    """Base class for finassist errors."""


class SkillDefinitionError(FinassistError, ValueError):
    """Raised at registration time when a skill definition is malformed.

    Attributes:
        skill_id: The offending skill's id (may be empty)
        problems: Every problem found, not just the first
    """

    def __init__(self, skill_id: str, problems: list[str]):
        self.skill_id = skill_id
        self.problems = problems
        super().__init__(f"Invalid skill '{skill_id}': {'; '.join(problems)}")


class SkillNotFoundError(FinassistError, KeyError):
    """Raised by admin helpers when a skill id is not registered."""

    def __init__(self, skill_id: str):
        self.skill_id = skill_id
        super().__init__(skill_id)

    def __str__(self) -> str:
        return f"Skill '{self.skill_id}' not found"


# ---------------------------------------------------------------------------
# Stage results
# ---------------------------------------------------------------------------

class SkillStep(str, Enum):
    """Stage that produced a result, in cascade order."""
    MICRO_SOLVER = "micro_solver"
    KB_SEARCH = "kb_search"
    RESEARCH_AGENT = "research_agent"
    COMPOSER = "composer"
    CACHE = "cache"
    UNKNOWN = "unknown"


@dataclass
class SkillStepResult:
    """Return value of a stage function.

    Attributes:
        response: Candidate answer, or None when the stage only surfaced data
        matched_pattern: Diagnostic tag naming the rule that fired
        usefulness: Self-reported score; the engine scores the response when None
        data: Structured payload handed to the skill's composer
    """
    response: Optional[ChatResponse] = None
    matched_pattern: Optional[str] = None
    usefulness: Optional[float] = None
    data: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class SkillExecutionResult:
    """Immutable record of one attempt to run one skill against one question."""
    skill_id: str
    step: SkillStep
    response: Optional[ChatResponse]
    usefulness: float
    execution_time_ms: float
    success: bool
    cached: bool = False
    error: Optional[str] = None
    matched_pattern: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self, include_response: bool = False) -> dict[str, Any]:
        data = {
            "skill_id": self.skill_id,
            "step": self.step.value,
            "usefulness": self.usefulness,
            "execution_time_ms": self.execution_time_ms,
            "success": self.success,
            "cached": self.cached,
            "error": self.error,
            "matched_pattern": self.matched_pattern,
            "metadata": dict(self.metadata),
            "timestamp": self.timestamp.isoformat(),
        }
        if include_response:
            data["response"] = self.response.to_dict() if self.response is not None else None
        return data


# ---------------------------------------------------------------------------
# Stage signatures
# ---------------------------------------------------------------------------

StepOutcome = Optional[SkillStepResult]

MicroSolver = Callable[[str, ChatContext], Union[StepOutcome, Awaitable[StepOutcome]]]
"""Fast, deterministic attempt; sync or async."""

KnowledgeSearch = Callable[[str], Union[StepOutcome, Awaitable[StepOutcome]]]

ResearchAgentFn = Callable[[str, ChatContext], Awaitable[StepOutcome]]
"""Expensive stage, usually network-bound."""

Composer = Callable[
    [str, ChatContext, dict[str, Any]],
    Union[Optional[ChatResponse], Awaitable[Optional[ChatResponse]]],
]
"""Turns structured data from an earlier stage into the final response."""


# ---------------------------------------------------------------------------
# Versioning, dependencies, interceptors
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SkillVersion:
    major: int = 1
    minor: int = 0
    patch: int = 0
    deprecated: bool = False

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


@dataclass(frozen=True)
class SkillDependency:
    """Another skill this one relies on.

    A *required* dependency must be registered before the dependent skill
    and blocks unregistering it while the dependent is registered. When it
    also carries a ``condition``, the engine skips the dependent skill for
    any context the condition rejects.
    """
    skill_id: str
    required: bool = True
    condition: Optional[Callable[[ChatContext], bool]] = None

    def is_satisfied(self, context: ChatContext) -> bool:
        return self.condition is None or bool(self.condition(context))


class SkillInterceptor:
    """Hooks the engine invokes around each skill attempt.

    Subclasses override any of the three methods. Defaults are no-ops that
    let execution continue.

    Example:
        class AuditInterceptor(SkillInterceptor):
            async def after_execution(self, skill_id, result, context):
                audit_log.append(result.to_dict())
    """

    async def before_execution(
        self, skill_id: str, question: str, context: ChatContext
    ) -> bool:
        """Return False to skip this skill for the current question."""
        return True

    async def after_execution(
        self, skill_id: str, result: SkillExecutionResult, context: ChatContext
    ) -> None:
        return None

    async def on_error(
        self, skill_id: str, error: BaseException, context: ChatContext
    ) -> None:
        return None


# ---------------------------------------------------------------------------
# Skill
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Skill:
    """Static capability descriptor.

    Stages run in fixed order: every micro-solver in listed order, then the
    knowledge-base search, then the research agent, then the composer (only
    over data an earlier stage surfaced). The first stage whose usefulness
    reaches ``min_usefulness`` answers the question.

    Example:
        skill = Skill(
            id="HYSA",
            matches=lambda q: "hysa" in q.lower(),
            priority=10,
            micro_solvers=(explain_hysa,),
        )
    """
    id: str
    matches: Callable[[str], bool]
    name: str = ""
    description: str = ""
    priority: int = 0
    min_usefulness: float = field(default_factory=lambda: settings.SKILL_MIN_USEFULNESS)
    micro_solvers: tuple[MicroSolver, ...] = ()
    kb_search: Optional[KnowledgeSearch] = None
    research_agent: Optional[ResearchAgentFn] = None
    composer: Optional[Composer] = None
    slots: Mapping[str, SlotSpec] = field(default_factory=dict)
    dependencies: tuple[SkillDependency, ...] = ()
    interceptors: tuple[SkillInterceptor, ...] = ()
    version: SkillVersion = field(default_factory=SkillVersion)
    cache_ttl_ms: Optional[float] = None

    def __post_init__(self) -> None:
        # Accept lists from callers while keeping the instance immutable
        for name in ("micro_solvers", "dependencies", "interceptors"):
            value = getattr(self, name)
            if isinstance(value, list):
                object.__setattr__(self, name, tuple(value))

    @property
    def has_stages(self) -> bool:
        return bool(
            self.micro_solvers or self.kb_search or self.research_agent or self.composer
        )

    def definition_errors(self) -> list[str]:
        """Return every contract violation in this definition."""
        errors: list[str] = []
        if not isinstance(self.id, str) or not self.id.strip():
            errors.append("id must be a non-empty string")
        if not callable(self.matches):
            errors.append("matches must be callable")
        if not isinstance(self.priority, int) or isinstance(self.priority, bool):
            errors.append("priority must be an int")
        if not 0 <= self.min_usefulness <= 5:
            errors.append("min_usefulness must be between 0 and 5")
        for i, solver in enumerate(self.micro_solvers):
            if not callable(solver):
                errors.append(f"micro_solvers[{i}] is not callable")
        for name in ("kb_search", "research_agent", "composer"):
            stage = getattr(self, name)
            if stage is not None and not callable(stage):
                errors.append(f"{name} is not callable")
        if not self.has_stages:
            errors.append("skill declares no stages")
        if self.cache_ttl_ms is not None and self.cache_ttl_ms <= 0:
            errors.append("cache_ttl_ms must be positive")
        for interceptor in self.interceptors:
            if not isinstance(interceptor, SkillInterceptor):
                errors.append(f"interceptor {interceptor!r} is not a SkillInterceptor")
        errors.extend(slot_schema_errors(self.slots))
        return errors

    def get_info(self) -> dict[str, Any]:
        """Skill metadata for discovery and admin tooling."""
        return {
            "id": self.id,
            "name": self.name or self.id,
            "description": self.description,
            "priority": self.priority,
            "min_usefulness": self.min_usefulness,
            "version": str(self.version),
            "deprecated": self.version.deprecated,
            "stages": {
                "micro_solvers": len(self.micro_solvers),
                "kb_search": self.kb_search is not None,
                "research_agent": self.research_agent is not None,
                "composer": self.composer is not None,
            },
            "slots": {name: spec.type.value for name, spec in self.slots.items()},
            "dependencies": [d.skill_id for d in self.dependencies],
        }
