"""
Runtime test suites for registered skills.

A suite is a named list of question/expectation pairs that operators can
register at startup and run on demand (from the CLI or the admin API) to
check that the live skill set still answers what it should. Each case runs
through :meth:`SkillEngine.test_skill`, so the cache, circuit breaker and
interceptors never mask a regression.

Key concepts:
- SkillTestCase: one question plus what a passing answer looks like
- SkillTestSuite: named cases with optional async setup/teardown hooks
- SkillTester: suite catalog and runner bound to one engine
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Optional

from finassist.assistant.schema import ChatContext

from .base import FinassistError, SkillExecutionResult, SkillNotFoundError
from .engine import SkillEngine
from .slots import SlotSpec, SlotType, validate_params

logger = logging.getLogger(__name__)


class UnknownSuiteError(FinassistError, KeyError):
    """Raised when running a suite name that was never registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"Test suite '{self.name}' not found"


# ---------------------------------------------------------------------------
# Cases and suites
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SkillTestCase:
    """One question and the answer it must (or must not) produce.

    Attributes:
        name: Unique within its suite
        question: Text sent to the skill
        skill_id: Skill to run; None routes to the first matching skill
        params: Slot values, checked against the skill's slot schema first
        expect_answer: Whether an admitted answer is expected at all
        contains_text: Substrings the answer must contain (case-insensitive)
        excludes_text: Substrings the answer must not contain
        expected_pattern: Required ``matched_pattern`` of the answer
    """
    name: str
    question: str
    skill_id: Optional[str] = None
    context: ChatContext = field(default_factory=ChatContext)
    params: Mapping[str, Any] = field(default_factory=dict)
    expect_answer: bool = True
    contains_text: tuple[str, ...] = ()
    excludes_text: tuple[str, ...] = ()
    expected_pattern: Optional[str] = None
    description: str = ""


SuiteHook = Callable[[], Awaitable[None]]
CaseHook = Callable[[SkillTestCase], Awaitable[None]]


@dataclass
class SkillTestSuite:
    name: str
    cases: list[SkillTestCase]
    description: str = ""
    before_all: Optional[SuiteHook] = None
    after_all: Optional[SuiteHook] = None
    before_each: Optional[CaseHook] = None
    after_each: Optional[CaseHook] = None

    @property
    def skill_ids(self) -> set[str]:
        return {c.skill_id for c in self.cases if c.skill_id}


@dataclass
class SkillTestResult:
    name: str
    passed: bool
    duration_ms: float
    skill_id: Optional[str] = None
    failures: list[str] = field(default_factory=list)
    execution: Optional[SkillExecutionResult] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "passed": self.passed,
            "duration_ms": self.duration_ms,
            "skill_id": self.skill_id,
            "failures": list(self.failures),
            "execution": self.execution.to_dict() if self.execution else None,
        }


@dataclass
class SkillTestSuiteResult:
    suite_name: str
    results: list[SkillTestResult]
    duration_ms: float
    coverage: float

    @property
    def total_tests(self) -> int:
        return len(self.results)

    @property
    def passed_tests(self) -> int:
        return sum(1 for r in self.results if r.passed)

    @property
    def failed_tests(self) -> int:
        return self.total_tests - self.passed_tests

    def to_dict(self) -> dict[str, Any]:
        return {
            "suite_name": self.suite_name,
            "total_tests": self.total_tests,
            "passed_tests": self.passed_tests,
            "failed_tests": self.failed_tests,
            "duration_ms": self.duration_ms,
            "coverage": self.coverage,
            "results": [r.to_dict() for r in self.results],
        }


# ---------------------------------------------------------------------------
# Generated values
# ---------------------------------------------------------------------------

_DEFAULT_VALUES: dict[SlotType, Any] = {
    SlotType.STRING: "test_value",
    SlotType.NUMBER: 100,
    SlotType.DATE: "2026-01-01",
    SlotType.CATEGORY: "groceries",
    SlotType.MERCHANT: "Test Merchant",
    SlotType.ACCOUNT: "checking",
    SlotType.GOAL_ID: "test_goal",
}


def sample_value(spec: SlotSpec) -> Any:
    """A value for *spec*: its first example when it has one."""
    if spec.examples:
        example = spec.examples[0]
        if spec.type is SlotType.NUMBER:
            try:
                return float(example)
            except ValueError:
                return _DEFAULT_VALUES[SlotType.NUMBER]
        return example
    return _DEFAULT_VALUES[spec.type]


# ---------------------------------------------------------------------------
# SkillTester
# ---------------------------------------------------------------------------

class SkillTester:
    """Registers and runs skill test suites against one engine.

    Example:
        tester = SkillTester(engine)
        tester.register_test_suite(SkillTestSuite(
            name="smoke",
            cases=[SkillTestCase("hysa_basics", "What is a HYSA?", skill_id="HYSA",
                                 contains_text=("FDIC",))],
        ))
        report = await tester.run_test_suite("smoke")
    """

    def __init__(self, engine: SkillEngine) -> None:
        self.engine = engine
        self._suites: dict[str, SkillTestSuite] = {}

    def register_test_suite(self, suite: SkillTestSuite) -> None:
        if suite.name in self._suites:
            logger.info("Replacing test suite '%s'", suite.name)
        self._suites[suite.name] = suite

    def list_test_suites(self) -> list[str]:
        return list(self._suites)

    async def run_test_suite(self, name: str) -> SkillTestSuiteResult:
        """Run every case in suite *name*; a failing hook fails only its case."""
        suite = self._suites.get(name)
        if suite is None:
            raise UnknownSuiteError(name)

        start = time.perf_counter()
        results: list[SkillTestResult] = []

        if suite.before_all is not None:
            await suite.before_all()
        try:
            for case in suite.cases:
                case_start = time.perf_counter()
                try:
                    if suite.before_each is not None:
                        await suite.before_each(case)
                    results.append(await self.run_test_case(case))
                    if suite.after_each is not None:
                        await suite.after_each(case)
                except Exception as exc:
                    logger.exception("Test case '%s' in suite '%s' errored", case.name, name)
                    results.append(SkillTestResult(
                        name=case.name,
                        passed=False,
                        duration_ms=(time.perf_counter() - case_start) * 1000,
                        skill_id=case.skill_id,
                        failures=[f"{type(exc).__name__}: {exc}"],
                    ))
        finally:
            if suite.after_all is not None:
                await suite.after_all()

        report = SkillTestSuiteResult(
            suite_name=suite.name,
            results=results,
            duration_ms=(time.perf_counter() - start) * 1000,
            coverage=self._coverage(suite, results),
        )
        logger.info(
            "Suite '%s': %d/%d passed",
            suite.name, report.passed_tests, report.total_tests,
        )
        return report

    async def run_all_test_suites(self) -> list[SkillTestSuiteResult]:
        return [await self.run_test_suite(name) for name in list(self._suites)]

    async def run_test_case(self, case: SkillTestCase) -> SkillTestResult:
        start = time.perf_counter()
        skill_id = case.skill_id
        if skill_id is None:
            matching = self.engine.registry.find(case.question)
            if not matching:
                return SkillTestResult(
                    name=case.name,
                    passed=not case.expect_answer,
                    duration_ms=(time.perf_counter() - start) * 1000,
                    failures=["No matching skill for question"] if case.expect_answer else [],
                )
            skill_id = matching[0].id

        skill = self.engine.registry.get_by_id(skill_id)
        if skill is None:
            raise SkillNotFoundError(skill_id)

        failures: list[str] = []
        if case.params:
            failures.extend(validate_params(skill.slots, case.params).errors)

        execution = None
        if not failures:
            execution = await self.engine.test_skill(skill_id, case.question, case.context)
            failures = self.evaluate(case, execution)

        return SkillTestResult(
            name=case.name,
            passed=not failures,
            duration_ms=(time.perf_counter() - start) * 1000,
            skill_id=skill_id,
            failures=failures,
            execution=execution,
        )

    @staticmethod
    def evaluate(case: SkillTestCase, execution: Optional[SkillExecutionResult]) -> list[str]:
        """Every way *execution* misses *case*'s expectations; empty on a pass."""
        failures: list[str] = []
        answered = (
            execution is not None and execution.success and execution.response is not None
        )
        if execution is not None and execution.error:
            failures.append(f"Skill raised: {execution.error}")

        if case.expect_answer and not answered:
            if execution is not None and not execution.error:
                failures.append(
                    f"Answer too weak: usefulness {execution.usefulness:.1f}"
                )
            elif execution is None:
                failures.append("Expected an answer, got none")
            return failures
        if not case.expect_answer:
            if answered:
                failures.append("Expected no answer, got one")
            return failures

        message = execution.response.message.lower()
        for text in case.contains_text:
            if text.lower() not in message:
                failures.append(f"Answer is missing {text!r}")
        for text in case.excludes_text:
            if text.lower() in message:
                failures.append(f"Answer unexpectedly contains {text!r}")
        if case.expected_pattern is not None and execution.matched_pattern != case.expected_pattern:
            failures.append(
                f"Expected pattern {case.expected_pattern}, got {execution.matched_pattern}"
            )
        return failures

    def generate_test_cases(self, skill_id: str, count: int = 5) -> list[SkillTestCase]:
        """Scaffold *count* cases for *skill_id* from its name and slot schema.

        Required slots get a value in every case; optional slots in every
        other case. The cases expect an answer and are meant to be edited
        before being registered.
        """
        skill = self.engine.registry.get_by_id(skill_id)
        if skill is None:
            raise SkillNotFoundError(skill_id)

        subject = (skill.name or skill.id).lower()
        cases = []
        for i in range(count):
            params = {
                name: sample_value(spec)
                for name, spec in skill.slots.items()
                if spec.required or i % 2 == 1
            }
            suffix = f" with {', '.join(params)}" if params else ""
            cases.append(SkillTestCase(
                name=f"{skill_id}_test_{i + 1}",
                question=f"Show me {subject}{suffix}",
                skill_id=skill_id,
                params=params,
                description=f"Generated test case for {skill_id}",
            ))
        return cases

    def _coverage(self, suite: SkillTestSuite, results: list[SkillTestResult]) -> float:
        registered = set(self.engine.registry.list_ids())
        if not registered:
            return 0.0
        tested = suite.skill_ids | {r.skill_id for r in results if r.skill_id}
        return len(tested & registered) / len(registered) * 100
