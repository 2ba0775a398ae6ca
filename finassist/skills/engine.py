"""
Skill engine: the answer-or-decline cascade.

For each question the engine consults the execution cache, asks the
registry for matching skills (highest priority first) and tries each skill's
stages in order: micro-solvers, knowledge-base search, research agent, then
the composer over any structured data the earlier stages surfaced. The first
response whose usefulness reaches the skill's threshold is returned; if none
does the engine returns ``None`` and the host falls back to its generative
model.

A skill that raises is isolated: the failure is recorded, its circuit
breaker is charged and the cascade moves to the next skill. A stage that
outlives its time box simply yields nothing; a stage that raises its own
TimeoutError has failed like any other error. Skills whose required
dependency conditions do not hold for the context are skipped.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Optional, Sequence

from finassist.assistant.schema import ChatContext, ChatResponse
from finassist.cognition.usefulness import UsefulnessScorer, score_usefulness
from finassist.config.settings import settings

from .base import (
    Skill,
    SkillExecutionResult,
    SkillInterceptor,
    SkillStep,
    SkillStepResult,
)
from .cache import ExecutionCache, make_cache_key
from .circuit import CircuitBreaker
from .metrics import SkillMetricsCollector
from .registry import SkillRegistry

logger = logging.getLogger(__name__)

ENGINE_VERSION = "1.0.0"


@dataclass
class EngineConfig:
    """Per-call engine switches.

    Parameters
    ----------
    timeout_ms:
        Time box applied to each individual stage invocation.
    max_retries:
        Reserved; stages are currently attempted once.
    cache_ttl_ms:
        TTL for cached answers unless the skill overrides it.
    """

    enable_metrics: bool = field(default_factory=lambda: settings.ENABLE_METRICS)
    enable_caching: bool = field(default_factory=lambda: settings.ENABLE_CACHING)
    enable_circuit_breaker: bool = field(
        default_factory=lambda: settings.ENABLE_CIRCUIT_BREAKER
    )
    timeout_ms: float = field(default_factory=lambda: settings.SKILL_TIMEOUT_MS)
    max_retries: int = field(default_factory=lambda: settings.SKILL_MAX_RETRIES)
    cache_ttl_ms: float = field(default_factory=lambda: settings.SKILL_CACHE_TTL_MS)

    def with_overrides(self, **overrides: Any) -> "EngineConfig":
        return replace(self, **overrides)


@dataclass
class _SkillRun:
    """Everything one pass over a skill's stages produced."""

    admitted: Optional[SkillExecutionResult] = None
    rejected: list[SkillExecutionResult] = field(default_factory=list)
    failure: Optional[SkillExecutionResult] = None
    error: Optional[BaseException] = None

    def best_rejected(self) -> Optional[SkillExecutionResult]:
        if not self.rejected:
            return None
        return max(self.rejected, key=lambda r: r.usefulness)


class _StageError(Exception):
    """Carries an exception raised inside a stage past the time box.

    Keeps a stage's own ``TimeoutError`` from being read as the engine's
    deadline expiring.
    """

    def __init__(self, cause: Exception) -> None:
        super().__init__(str(cause))
        self.cause = cause


async def _call_stage(fn: Callable[..., Any], *args: Any) -> Any:
    """Invoke a stage that may be sync or async.

    Sync stages run in the default executor so the caller's time box also
    covers them. Anything the stage raises comes out as :class:`_StageError`.
    """
    try:
        if inspect.iscoroutinefunction(fn):
            result = await fn(*args)
        else:
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(None, functools.partial(fn, *args))
        if inspect.isawaitable(result):
            result = await result
    except Exception as exc:
        raise _StageError(exc) from exc
    return result


class SkillEngine:
    """Runs the skill cascade against a registry.

    Every collaborator is optional; omitted ones are created fresh, so two
    engines never share state unless the caller passes the same instances.

    Example:
        registry = SkillRegistry()
        register_builtin_skills(registry)
        engine = SkillEngine(registry)

        response = await engine.try_skills("What is a HYSA?", ChatContext())
        if response is None:
            ...  # fall back to the generative model
    """

    def __init__(
        self,
        registry: Optional[SkillRegistry] = None,
        cache: Optional[ExecutionCache] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        metrics: Optional[SkillMetricsCollector] = None,
        scorer: UsefulnessScorer = score_usefulness,
        config: Optional[EngineConfig] = None,
        interceptors: Sequence[SkillInterceptor] = (),
    ) -> None:
        self.registry = registry if registry is not None else SkillRegistry()
        self.cache = cache if cache is not None else ExecutionCache()
        self.circuit_breaker = (
            circuit_breaker if circuit_breaker is not None else CircuitBreaker()
        )
        self.metrics = metrics if metrics is not None else SkillMetricsCollector()
        self.scorer = scorer
        self.config = config or EngineConfig()
        self.interceptors: tuple[SkillInterceptor, ...] = tuple(interceptors)

    # ------------------------------------------------------------------
    # Cascade
    # ------------------------------------------------------------------

    async def try_skills(
        self,
        question: str,
        context: ChatContext,
        config: Optional[EngineConfig] = None,
    ) -> Optional[ChatResponse]:
        """Return an admitted skill response for *question*, or None.

        Never raises because of a skill: stage exceptions are recorded and
        the next skill is tried.
        """
        cfg = config or self.config
        key = make_cache_key(question, context)

        if cfg.enable_caching:
            lookup_start = time.perf_counter()
            entry = self.cache.get(key)
            if entry is not None:
                logger.debug("Cache hit for skill '%s'", entry.skill_id)
                if cfg.enable_metrics:
                    self.metrics.record_execution(
                        SkillExecutionResult(
                            skill_id=entry.skill_id,
                            step=SkillStep.CACHE,
                            response=entry.response,
                            usefulness=entry.usefulness,
                            execution_time_ms=(time.perf_counter() - lookup_start) * 1000,
                            success=True,
                            cached=True,
                            metadata={"user_id": context.user_id},
                        ),
                        user_id=context.user_id,
                    )
                return entry.response

        skills = self.registry.find(question)
        if not skills:
            logger.debug("No matching skills")
            return None
        logger.debug("Matching skills: %s", [s.id for s in skills])

        for skill in skills:
            if cfg.enable_circuit_breaker and self.circuit_breaker.is_open(skill.id):
                logger.debug("Circuit open for skill '%s'; skipping", skill.id)
                continue

            unmet = self._unmet_dependency(skill, context)
            if unmet is not None:
                logger.debug(
                    "Skill '%s' skipped: dependency '%s' not satisfied", skill.id, unmet,
                )
                continue

            interceptors = self.interceptors + skill.interceptors
            if not await self._before(interceptors, skill.id, question, context):
                logger.debug("Skill '%s' skipped by interceptor", skill.id)
                continue

            run = await self._run_skill(skill, question, context, cfg)

            for result in run.rejected:
                logger.debug(
                    "Skill '%s' %s too weak (usefulness %.1f < %.1f)",
                    skill.id, result.step.value, result.usefulness, skill.min_usefulness,
                )
                self._record(result, context, cfg)
                await self._after(interceptors, skill.id, result, context)

            if run.failure is not None:
                self._record(run.failure, context, cfg)
                if cfg.enable_circuit_breaker:
                    self.circuit_breaker.record_failure(skill.id)
                await self._on_error(interceptors, skill.id, run.error, context)
                continue

            if run.admitted is not None:
                result = run.admitted
                logger.debug(
                    "Skill '%s' answered via %s (usefulness %.1f)",
                    skill.id, result.step.value, result.usefulness,
                )
                self._record(result, context, cfg)
                if cfg.enable_caching:
                    self.cache.set(
                        key,
                        result.response,
                        ttl_ms=skill.cache_ttl_ms or cfg.cache_ttl_ms,
                        skill_id=skill.id,
                        usefulness=result.usefulness,
                    )
                if cfg.enable_circuit_breaker:
                    self.circuit_breaker.record_success(skill.id)
                await self._after(interceptors, skill.id, result, context)
                return result.response

        logger.debug("No skill produced a useful response (tried %d)", len(skills))
        return None

    async def test_skill(
        self,
        skill_id: str,
        question: str,
        context: ChatContext,
        config: Optional[EngineConfig] = None,
    ) -> Optional[SkillExecutionResult]:
        """Run one skill in isolation, for debugging.

        Skips the match predicate, dependency conditions, circuit breaker,
        cache and interceptors.
        Returns the admitted result, else the failure, else the most useful
        rejected attempt, else None when no stage produced a response.
        """
        cfg = config or self.config
        skill = self.registry.get_by_id(skill_id)
        if skill is None:
            logger.error("Skill '%s' not found", skill_id)
            return None

        run = await self._run_skill(skill, question, context, cfg)
        outcome = run.admitted or run.failure or run.best_rejected()
        if outcome is not None:
            self._record(outcome, context, cfg)
        return outcome

    # ------------------------------------------------------------------
    # Stage execution
    # ------------------------------------------------------------------

    async def _run_skill(
        self,
        skill: Skill,
        question: str,
        context: ChatContext,
        cfg: EngineConfig,
    ) -> _SkillRun:
        run = _SkillRun()
        timeout_s = cfg.timeout_ms / 1000
        skill_start = time.perf_counter()
        collected: dict[str, Any] = {}

        stages: list[tuple[SkillStep, Callable[..., Any], tuple[Any, ...]]] = [
            (SkillStep.MICRO_SOLVER, solver, (question, context))
            for solver in skill.micro_solvers
        ]
        if skill.kb_search is not None:
            stages.append((SkillStep.KB_SEARCH, skill.kb_search, (question,)))
        if skill.research_agent is not None:
            stages.append((SkillStep.RESEARCH_AGENT, skill.research_agent, (question, context)))

        step = SkillStep.UNKNOWN
        try:
            for step, fn, args in stages:
                stage_start = time.perf_counter()
                outcome = await self._invoke(skill.id, step, fn, args, timeout_s)
                if outcome is None:
                    continue
                if not isinstance(outcome, SkillStepResult):
                    raise TypeError(
                        f"{step.value} returned {type(outcome).__name__}, "
                        "expected SkillStepResult"
                    )
                if outcome.data:
                    collected.update(outcome.data)
                if outcome.response is None:
                    continue
                usefulness = (
                    outcome.usefulness
                    if outcome.usefulness is not None
                    else self.scorer(outcome.response, question)
                )
                result = self._result(
                    skill, step, outcome.response, usefulness,
                    stage_start, outcome.matched_pattern, context,
                )
                if usefulness >= skill.min_usefulness:
                    run.admitted = result
                    return run
                run.rejected.append(result)

            if skill.composer is not None and collected:
                step = SkillStep.COMPOSER
                stage_start = time.perf_counter()
                composed = await self._invoke(
                    skill.id, step, skill.composer,
                    (question, context, dict(collected)), timeout_s,
                )
                if composed is not None:
                    if not isinstance(composed, ChatResponse):
                        raise TypeError(
                            f"composer returned {type(composed).__name__}, "
                            "expected ChatResponse"
                        )
                    usefulness = self.scorer(composed, question)
                    result = self._result(
                        skill, step, composed, usefulness, stage_start, None, context,
                    )
                    if usefulness >= skill.min_usefulness:
                        run.admitted = result
                    else:
                        run.rejected.append(result)
        except Exception as exc:
            if isinstance(exc, _StageError):
                exc = exc.cause
            logger.error(
                "Skill '%s' failed in %s", skill.id, step.value, exc_info=exc,
            )
            run.error = exc
            run.failure = SkillExecutionResult(
                skill_id=skill.id,
                step=step,
                response=None,
                usefulness=0.0,
                execution_time_ms=(time.perf_counter() - skill_start) * 1000,
                success=False,
                error=str(exc) or type(exc).__name__,
                metadata={"user_id": context.user_id},
            )
        return run

    async def _invoke(
        self,
        skill_id: str,
        step: SkillStep,
        fn: Callable[..., Any],
        args: tuple[Any, ...],
        timeout_s: float,
    ) -> Any:
        """Run one stage under the time box; the box expiring yields None.

        Errors raised by the stage itself, timeouts included, propagate as
        :class:`_StageError`.
        """
        try:
            return await asyncio.wait_for(_call_stage(fn, *args), timeout=timeout_s)
        except asyncio.TimeoutError:
            logger.debug(
                "Skill '%s' %s timed out after %.0fms",
                skill_id, step.value, timeout_s * 1000,
            )
            return None

    @staticmethod
    def _result(
        skill: Skill,
        step: SkillStep,
        response: ChatResponse,
        usefulness: float,
        stage_start: float,
        matched_pattern: Optional[str],
        context: ChatContext,
    ) -> SkillExecutionResult:
        admitted = usefulness >= skill.min_usefulness
        return SkillExecutionResult(
            skill_id=skill.id,
            step=step,
            response=response,
            usefulness=usefulness,
            execution_time_ms=(time.perf_counter() - stage_start) * 1000,
            success=admitted,
            matched_pattern=matched_pattern,
            metadata={
                "user_id": context.user_id,
                "min_usefulness": skill.min_usefulness,
            },
        )

    def _record(
        self, result: SkillExecutionResult, context: ChatContext, cfg: EngineConfig
    ) -> None:
        if cfg.enable_metrics:
            self.metrics.record_execution(result, user_id=context.user_id)

    @staticmethod
    def _unmet_dependency(skill: Skill, context: ChatContext) -> Optional[str]:
        """Id of the first required dependency whose condition fails, else None."""
        for dep in skill.dependencies:
            if not dep.required:
                continue
            try:
                satisfied = dep.is_satisfied(context)
            except Exception:
                logger.exception(
                    "Dependency condition '%s' of skill '%s' failed", dep.skill_id, skill.id,
                )
                satisfied = False
            if not satisfied:
                return dep.skill_id
        return None

    # ------------------------------------------------------------------
    # Interceptors
    # ------------------------------------------------------------------

    @staticmethod
    async def _before(
        interceptors: Sequence[SkillInterceptor],
        skill_id: str,
        question: str,
        context: ChatContext,
    ) -> bool:
        for interceptor in interceptors:
            try:
                proceed = await interceptor.before_execution(skill_id, question, context)
            except Exception:
                logger.exception(
                    "Interceptor %s failed before skill '%s'",
                    type(interceptor).__name__, skill_id,
                )
                return False
            if proceed is False:
                return False
        return True

    @staticmethod
    async def _after(
        interceptors: Sequence[SkillInterceptor],
        skill_id: str,
        result: SkillExecutionResult,
        context: ChatContext,
    ) -> None:
        for interceptor in interceptors:
            try:
                await interceptor.after_execution(skill_id, result, context)
            except Exception:
                logger.exception(
                    "Interceptor %s failed after skill '%s'",
                    type(interceptor).__name__, skill_id,
                )

    @staticmethod
    async def _on_error(
        interceptors: Sequence[SkillInterceptor],
        skill_id: str,
        error: Optional[BaseException],
        context: ChatContext,
    ) -> None:
        if error is None:
            return
        for interceptor in interceptors:
            try:
                await interceptor.on_error(skill_id, error, context)
            except Exception:
                logger.exception(
                    "Interceptor %s failed handling error in skill '%s'",
                    type(interceptor).__name__, skill_id,
                )

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def get_stats(self) -> dict[str, Any]:
        stats = self.registry.get_stats()
        stats["engine_version"] = ENGINE_VERSION
        stats["cache_size"] = len(self.cache)
        stats["open_circuits"] = [
            sid for sid, st in self.circuit_breaker.status().items()
            if st["state"] == "open"
        ]
        return stats

    def get_cache_stats(self) -> dict[str, Any]:
        return self.cache.stats()

    def get_circuit_breaker_status(self) -> dict[str, dict[str, Any]]:
        return self.circuit_breaker.status()

    def clear_execution_cache(self) -> None:
        self.cache.clear()
        logger.info("Execution cache cleared")
