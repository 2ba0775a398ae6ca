"""Skill engine admin endpoints."""

from __future__ import annotations

from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from finassist.assistant.schema import ChatContext
from finassist.cognition.intents import detect_intent
from finassist.skills.base import SkillNotFoundError
from finassist.skills.engine import SkillEngine

router = APIRouter(prefix="/api/skills", tags=["skills"])


def get_engine(request: Request) -> SkillEngine:
    """The engine built by the application lifespan."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Skill engine not initialised.")
    return engine


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------

class ContextPayload(BaseModel):
    user_profile: dict[str, Any] = Field(default_factory=dict)
    accounts: list[dict[str, Any]] = Field(default_factory=list)
    budgets: list[dict[str, Any]] = Field(default_factory=list)
    goals: list[dict[str, Any]] = Field(default_factory=list)
    transactions: list[dict[str, Any]] = Field(default_factory=list)
    recurring_expenses: list[dict[str, Any]] = Field(default_factory=list)
    locale: str = "en-US"
    currency: str = "USD"
    session_actions: list[str] = Field(default_factory=list)

    def to_context(self) -> ChatContext:
        return ChatContext(
            user_profile=self.user_profile,
            accounts=self.accounts,
            budgets=self.budgets,
            goals=self.goals,
            transactions=self.transactions,
            recurring_expenses=self.recurring_expenses,
            locale=self.locale,
            currency=self.currency,
            session_actions=tuple(self.session_actions),
        )


class AskPayload(BaseModel):
    question: str = Field(min_length=1)
    context: ContextPayload = Field(default_factory=ContextPayload)


class ResetPayload(BaseModel):
    skill_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

@router.get("/stats")
async def get_stats(engine: SkillEngine = Depends(get_engine)) -> dict:
    return engine.get_stats()


@router.get("")
async def list_skills(engine: SkillEngine = Depends(get_engine)) -> dict:
    """Every registered skill, highest priority first."""
    return {"skills": engine.registry.list_all()}


@router.get("/{skill_id}/info")
async def get_skill(skill_id: str, engine: SkillEngine = Depends(get_engine)) -> dict:
    return engine.registry.require(skill_id).get_info()


# ---------------------------------------------------------------------------
# Cascade
# ---------------------------------------------------------------------------

@router.post("/ask")
async def ask(payload: AskPayload, engine: SkillEngine = Depends(get_engine)) -> dict:
    """Run the full cascade; ``answered`` is false when the host must fall back."""
    response = await engine.try_skills(payload.question, payload.context.to_context())
    return {
        "intent": detect_intent(payload.question).value,
        "answered": response is not None,
        "response": response.to_dict() if response is not None else None,
    }


@router.post("/{skill_id}/test")
async def test_skill(
    skill_id: str,
    payload: AskPayload,
    engine: SkillEngine = Depends(get_engine),
) -> dict:
    """Run one skill in isolation and return its execution record."""
    if skill_id not in engine.registry:
        raise SkillNotFoundError(skill_id)
    result = await engine.test_skill(skill_id, payload.question, payload.context.to_context())
    return {
        "skill_id": skill_id,
        "result": result.to_dict(include_response=True) if result is not None else None,
    }


# ---------------------------------------------------------------------------
# Cache and circuit breaker
# ---------------------------------------------------------------------------

@router.get("/cache")
async def get_cache(engine: SkillEngine = Depends(get_engine)) -> dict:
    return engine.get_cache_stats()


@router.delete("/cache")
async def clear_cache(engine: SkillEngine = Depends(get_engine)) -> dict:
    engine.clear_execution_cache()
    return {"cleared": True}


@router.get("/circuit")
async def get_circuits(engine: SkillEngine = Depends(get_engine)) -> dict:
    return {"circuits": engine.get_circuit_breaker_status()}


@router.post("/circuit/reset")
async def reset_circuit(
    payload: ResetPayload,
    engine: SkillEngine = Depends(get_engine),
) -> dict:
    """Close one skill's circuit, or every circuit when no id is given."""
    if payload.skill_id is not None and payload.skill_id not in engine.registry:
        raise SkillNotFoundError(payload.skill_id)
    engine.circuit_breaker.reset(payload.skill_id)
    return {"reset": payload.skill_id or "all"}


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

@router.get("/metrics/health")
async def get_health(engine: SkillEngine = Depends(get_engine)) -> dict:
    return engine.metrics.get_health_report().to_dict()


@router.get("/metrics/realtime")
async def get_realtime(engine: SkillEngine = Depends(get_engine)) -> dict:
    return engine.metrics.get_real_time_monitoring()


@router.get("/metrics/top")
async def get_top(
    limit: int = Query(10, ge=1, le=100),
    engine: SkillEngine = Depends(get_engine),
) -> dict:
    return {"skills": engine.metrics.get_top_performing_skills(limit)}


@router.get("/metrics/export")
async def export_metrics(
    format: Literal["json", "csv"] = Query("json"),
    engine: SkillEngine = Depends(get_engine),
) -> PlainTextResponse:
    media_type = "text/csv" if format == "csv" else "application/json"
    return PlainTextResponse(engine.metrics.export_metrics(format), media_type=media_type)


@router.get("/metrics/{skill_id}")
async def get_skill_analytics(
    skill_id: str,
    days: int = Query(30, ge=1, le=365),
    engine: SkillEngine = Depends(get_engine),
) -> dict:
    analytics = engine.metrics.get_skill_analytics(skill_id, days)
    if analytics is None:
        raise SkillNotFoundError(skill_id)
    return {
        **analytics.to_dict(),
        "health": engine.metrics.assess_skill_health(analytics).value,
        "usage_patterns": engine.metrics.get_usage_patterns(skill_id),
        "daily": engine.metrics.get_daily_metrics(skill_id),
        "errors": engine.metrics.get_error_history(skill_id),
        "alerts": engine.metrics.get_alerts(skill_id),
    }
