"""
finassist skill routing.

Skills are deterministic, cheap answerers for common personal-finance
questions. The engine tries every skill whose predicate matches the question,
highest priority first, and returns the first response that clears the
skill's usefulness threshold. When nothing does, the host falls back to its
generative model.

Core Components:
- Skill: Declarative definition (predicate, stages, priority, threshold)
- SkillRegistry: Priority-ordered catalog with dependency checks
- SkillEngine: The micro-solver -> KB -> research -> composer cascade
- ExecutionCache: Per-question response cache with TTL and capacity bound
- CircuitBreaker: Per-skill failure isolation
- SkillMetricsCollector: Execution history, analytics and health views
- ResearchAgent: Search / fetch / extract / rank pipeline for live data
- SkillTester: Named runtime test suites run against the live engine

Usage:
    from finassist.assistant import ChatContext
    from finassist.skills import SkillEngine, SkillRegistry, register_builtin_skills

    registry = SkillRegistry()
    register_builtin_skills(registry)
    engine = SkillEngine(registry)

    response = await engine.try_skills("What is a HYSA?", ChatContext())
    if response is None:
        ...  # hand over to the generative model
"""

# Base classes and types
from .base import (
    Composer,
    FinassistError,
    KnowledgeSearch,
    MicroSolver,
    ResearchAgentFn,
    Skill,
    SkillDefinitionError,
    SkillDependency,
    SkillExecutionResult,
    SkillInterceptor,
    SkillNotFoundError,
    SkillStep,
    SkillStepResult,
    SkillVersion,
)

# Slots
from .slots import (
    SkillValidationResult,
    SlotSpec,
    SlotType,
    validate_params,
)

# Registry
from .registry import (
    SkillRegistry,
    get_registry,
    reset_registry,
)

# Cache and circuit breaker
from .cache import (
    CacheEntry,
    ExecutionCache,
    context_fingerprint,
    make_cache_key,
)
from .circuit import (
    CircuitBreaker,
    CircuitBreakerState,
    CircuitState,
)

# Metrics
from .metrics import (
    HealthLevel,
    PerformanceThresholds,
    SkillAnalytics,
    SkillHealthReport,
    SkillMetrics,
    SkillMetricsCollector,
)

# Engine
from .engine import (
    ENGINE_VERSION,
    EngineConfig,
    SkillEngine,
)

# Research
from .research import (
    HttpWebFns,
    ResearchAgent,
    ResearchResult,
    SearchHit,
    SourcePolicy,
    WebFns,
)

# Runtime test suites
from .tester import (
    SkillTestCase,
    SkillTester,
    SkillTestResult,
    SkillTestSuite,
    SkillTestSuiteResult,
    UnknownSuiteError,
)

# Bundled packs
from .packs import (
    builtin_skills,
    register_builtin_skills,
)

__all__ = [
    # Base
    "Composer",
    "FinassistError",
    "KnowledgeSearch",
    "MicroSolver",
    "ResearchAgentFn",
    "Skill",
    "SkillDefinitionError",
    "SkillDependency",
    "SkillExecutionResult",
    "SkillInterceptor",
    "SkillNotFoundError",
    "SkillStep",
    "SkillStepResult",
    "SkillVersion",
    # Slots
    "SkillValidationResult",
    "SlotSpec",
    "SlotType",
    "validate_params",
    # Registry
    "SkillRegistry",
    "get_registry",
    "reset_registry",
    # Cache / circuit
    "CacheEntry",
    "ExecutionCache",
    "context_fingerprint",
    "make_cache_key",
    "CircuitBreaker",
    "CircuitBreakerState",
    "CircuitState",
    # Metrics
    "HealthLevel",
    "PerformanceThresholds",
    "SkillAnalytics",
    "SkillHealthReport",
    "SkillMetrics",
    "SkillMetricsCollector",
    # Engine
    "ENGINE_VERSION",
    "EngineConfig",
    "SkillEngine",
    # Research
    "HttpWebFns",
    "ResearchAgent",
    "ResearchResult",
    "SearchHit",
    "SourcePolicy",
    "WebFns",
    # Runtime test suites
    "SkillTestCase",
    "SkillTester",
    "SkillTestResult",
    "SkillTestSuite",
    "SkillTestSuiteResult",
    "UnknownSuiteError",
    # Packs
    "builtin_skills",
    "register_builtin_skills",
]
