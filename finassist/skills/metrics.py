"""
Skill execution metrics and analytics.

The collector receives one :class:`SkillExecutionResult` per skill attempt
and keeps enough history to answer operational questions: how fast and how
reliable each skill is, how useful its answers are, when it is used and what
is going wrong. Everything lives in process memory and is pruned past the
retention window.

Metrics are observational only. Nothing here feeds back into which answer
the engine admits.

Every attempt lands in exactly one bucket: *admitted* (its answer cleared
the skill's threshold), *rejected* (it answered, but too weakly) or *failed*
(it raised). ``success_rate`` is the share of attempts that did not fail and
``admission_rate`` the share that were admitted; both mean the same thing in
the running aggregates, the analytics and the daily roll-ups.

Key views:
- get_skill_metrics / get_all_metrics: running aggregates per skill
- get_skill_analytics: windowed performance, usage and daily trends
- get_health_report: per-skill health rolled up to one grade
- get_real_time_monitoring: last 24 hours across all skills
- export_metrics: JSON or CSV dump of the execution history
"""

from __future__ import annotations

import csv
import io
import json
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Literal, Optional

from finassist.cognition.usefulness import MAX_USEFULNESS
from finassist.config.settings import settings

from .base import SkillExecutionResult

logger = logging.getLogger(__name__)

_MAX_USEFULNESS_SAMPLES = 100


# ---------------------------------------------------------------------------
# Thresholds and report types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ThresholdBand:
    excellent: float
    good: float
    fair: float


@dataclass(frozen=True)
class PerformanceThresholds:
    """Grade boundaries. Execution time is lower-is-better, the rest higher."""
    execution_time_ms: ThresholdBand = ThresholdBand(1000, 3000, 5000)
    success_rate: ThresholdBand = ThresholdBand(95, 85, 70)
    usefulness: ThresholdBand = ThresholdBand(4.0, 3.0, 2.0)


class HealthLevel(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


@dataclass
class SkillMetrics:
    """Running aggregates for one skill.

    ``success_count`` counts admitted attempts (cache hits included),
    ``rejected_count`` attempts below the threshold and ``failure_count``
    attempts that raised.
    """
    skill_id: str
    execution_count: int = 0
    success_count: int = 0
    rejected_count: int = 0
    failure_count: int = 0
    cached_count: int = 0
    average_execution_time: float = 0.0
    usefulness_scores: list[float] = field(default_factory=list)
    last_executed: Optional[datetime] = None

    @property
    def cache_hit_rate(self) -> float:
        if not self.execution_count:
            return 0.0
        return self.cached_count / self.execution_count * 100

    @property
    def success_rate(self) -> float:
        if not self.execution_count:
            return 0.0
        return (self.execution_count - self.failure_count) / self.execution_count * 100

    @property
    def admission_rate(self) -> float:
        if not self.execution_count:
            return 0.0
        return self.success_count / self.execution_count * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "skill_id": self.skill_id,
            "execution_count": self.execution_count,
            "success_count": self.success_count,
            "rejected_count": self.rejected_count,
            "failure_count": self.failure_count,
            "success_rate": self.success_rate,
            "admission_rate": self.admission_rate,
            "average_execution_time": self.average_execution_time,
            "cache_hit_rate": self.cache_hit_rate,
            "usefulness_scores": list(self.usefulness_scores),
            "last_executed": self.last_executed.isoformat() if self.last_executed else None,
        }


@dataclass
class SkillAnalytics:
    skill_id: str
    average_execution_time: float
    success_rate: float
    cache_hit_rate: float
    usefulness_score: float
    total_executions: int
    unique_users: int
    peak_usage_hour: int
    popular_params: dict[str, int]
    execution_trend: list[int]
    usefulness_trend: list[float]
    error_trend: list[int]
    admission_rate: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "skill_id": self.skill_id,
            "performance": {
                "average_execution_time": self.average_execution_time,
                "success_rate": self.success_rate,
                "admission_rate": self.admission_rate,
                "cache_hit_rate": self.cache_hit_rate,
                "usefulness_score": self.usefulness_score,
            },
            "usage": {
                "total_executions": self.total_executions,
                "unique_users": self.unique_users,
                "peak_usage_hour": self.peak_usage_hour,
                "popular_params": dict(self.popular_params),
            },
            "trends": {
                "execution_trend": list(self.execution_trend),
                "usefulness_trend": list(self.usefulness_trend),
                "error_trend": list(self.error_trend),
            },
        }


@dataclass
class SkillHealthReport:
    overall_health: HealthLevel
    skill_count: int
    healthy_skills: int
    unhealthy_skills: int
    critical_issues: list[str]
    warnings: list[str]
    recommendations: list[str]
    last_updated: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall_health": self.overall_health.value,
            "skill_count": self.skill_count,
            "healthy_skills": self.healthy_skills,
            "unhealthy_skills": self.unhealthy_skills,
            "critical_issues": list(self.critical_issues),
            "warnings": list(self.warnings),
            "recommendations": list(self.recommendations),
            "last_updated": self.last_updated.isoformat(),
        }


@dataclass(frozen=True)
class _Record:
    result: SkillExecutionResult
    user_id: Optional[str]
    recorded_at: datetime


@dataclass
class _Day:
    execution_count: int = 0
    success_count: int = 0
    rejected_count: int = 0
    error_count: int = 0
    total_execution_time: float = 0.0
    total_usefulness: float = 0.0
    users: set[str] = field(default_factory=set)

    def to_dict(self, day: date) -> dict[str, Any]:
        n = self.execution_count or 1
        return {
            "date": day.isoformat(),
            "execution_count": self.execution_count,
            "success_count": self.success_count,
            "rejected_count": self.rejected_count,
            "error_count": self.error_count,
            "average_execution_time": self.total_execution_time / n,
            "average_usefulness": self.total_usefulness / n,
            "success_rate": (self.execution_count - self.error_count) / n * 100,
            "admission_rate": self.success_count / n * 100,
            "unique_user_count": len(self.users),
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _mean(values: Iterable[float]) -> float:
    values = list(values)
    return sum(values) / len(values) if values else 0.0


def _outcome(result: SkillExecutionResult) -> Literal["failed", "admitted", "rejected"]:
    if result.error:
        return "failed"
    return "admitted" if result.success else "rejected"


# ---------------------------------------------------------------------------
# SkillMetricsCollector
# ---------------------------------------------------------------------------

class SkillMetricsCollector:
    """In-memory metrics store for skill executions.

    Parameters
    ----------
    thresholds:
        Grade boundaries for health and alerts.
    retention_days:
        History older than this is pruned on each record. Defaults to settings.
    clock:
        Returns the current aware UTC datetime; injectable for tests.
    """

    def __init__(
        self,
        thresholds: Optional[PerformanceThresholds] = None,
        retention_days: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.thresholds = thresholds or PerformanceThresholds()
        self.retention_days = (
            retention_days if retention_days is not None else settings.METRICS_RETENTION_DAYS
        )
        self._clock = clock
        self._lock = threading.Lock()
        self._reset_state()

    def _reset_state(self) -> None:
        self._history: list[_Record] = []
        self._metrics: dict[str, SkillMetrics] = {}
        self._users: dict[str, set[str]] = defaultdict(set)
        self._hourly: dict[str, dict[int, int]] = defaultdict(lambda: defaultdict(int))
        self._params: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._daily: dict[str, dict[date, _Day]] = defaultdict(dict)
        self._errors: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self._alerts: dict[str, list[dict[str, Any]]] = defaultdict(list)

    # -- recording ----------------------------------------------------------

    def record_execution(
        self,
        result: SkillExecutionResult,
        user_id: Optional[str] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> None:
        """Record one skill attempt and update every derived view."""
        now = self._clock()
        sid = result.skill_id
        outcome = _outcome(result)
        with self._lock:
            self._history.append(_Record(result, user_id, now))

            m = self._metrics.setdefault(sid, SkillMetrics(skill_id=sid))
            m.execution_count += 1
            if outcome == "failed":
                m.failure_count += 1
            elif outcome == "admitted":
                m.success_count += 1
            else:
                m.rejected_count += 1
            if result.cached:
                m.cached_count += 1
            m.average_execution_time += (
                result.execution_time_ms - m.average_execution_time
            ) / m.execution_count
            m.usefulness_scores.append(result.usefulness)
            del m.usefulness_scores[:-_MAX_USEFULNESS_SAMPLES]
            m.last_executed = now

            if user_id:
                self._users[sid].add(user_id)
            self._hourly[sid][now.hour] += 1
            for key, value in (params or {}).items():
                self._params[sid][f"{key}={json.dumps(value, default=str)}"] += 1

            if result.error:
                self._errors[sid].append({
                    "error": result.error,
                    "timestamp": now.isoformat(),
                    "user_id": user_id,
                    "params": params,
                })

            day = self._daily[sid].setdefault(now.date(), _Day())
            day.execution_count += 1
            day.total_execution_time += result.execution_time_ms
            day.total_usefulness += result.usefulness
            if outcome == "failed":
                day.error_count += 1
            elif outcome == "admitted":
                day.success_count += 1
            else:
                day.rejected_count += 1
            if user_id:
                day.users.add(user_id)

            self._check_alerts(result, now)
            self._prune(now)

    def _check_alerts(self, result: SkillExecutionResult, now: datetime) -> None:
        t = self.thresholds
        stamp = now.isoformat()
        alerts = self._alerts[result.skill_id]
        if result.execution_time_ms > t.execution_time_ms.fair:
            alerts.append({
                "type": "performance",
                "severity": "warning",
                "message": f"Slow execution: {result.execution_time_ms:.0f}ms",
                "timestamp": stamp,
            })
        if result.error:
            alerts.append({
                "type": "error",
                "severity": "error",
                "message": f"Execution failed: {result.error}",
                "timestamp": stamp,
            })
        # Cache hits replay an admitted answer; their score is not new signal
        if not result.cached and result.usefulness < t.usefulness.fair:
            alerts.append({
                "type": "usefulness",
                "severity": "warning",
                "message": f"Low usefulness score: {result.usefulness:.1f}",
                "timestamp": stamp,
            })

    def _prune(self, now: datetime) -> None:
        cutoff = now - timedelta(days=self.retention_days)
        if self._history and self._history[0].recorded_at <= cutoff:
            self._history = [r for r in self._history if r.recorded_at > cutoff]
            for days in self._daily.values():
                for d in [d for d in days if d < cutoff.date()]:
                    del days[d]
            cutoff_s = cutoff.isoformat()
            for store in (self._errors, self._alerts):
                for sid, items in store.items():
                    store[sid] = [i for i in items if i["timestamp"] > cutoff_s]

    # -- aggregate views ----------------------------------------------------

    def get_skill_metrics(self, skill_id: str) -> Optional[SkillMetrics]:
        with self._lock:
            m = self._metrics.get(skill_id)
            if m is None:
                return None
            return SkillMetrics(
                skill_id=m.skill_id,
                execution_count=m.execution_count,
                success_count=m.success_count,
                rejected_count=m.rejected_count,
                failure_count=m.failure_count,
                cached_count=m.cached_count,
                average_execution_time=m.average_execution_time,
                usefulness_scores=list(m.usefulness_scores),
                last_executed=m.last_executed,
            )

    def get_all_metrics(self) -> dict[str, SkillMetrics]:
        with self._lock:
            ids = list(self._metrics)
        return {sid: m for sid in ids if (m := self.get_skill_metrics(sid)) is not None}

    def skill_ids(self) -> list[str]:
        with self._lock:
            return list(self._metrics)

    def get_skill_analytics(self, skill_id: str, days: int = 30) -> Optional[SkillAnalytics]:
        """Windowed analytics for one skill, or None if it has no recent history."""
        now = self._clock()
        cutoff = now - timedelta(days=days)
        with self._lock:
            recent = [
                r.result for r in self._history
                if r.result.skill_id == skill_id and r.recorded_at > cutoff
            ]
            if not recent:
                return None
            hourly = dict(self._hourly.get(skill_id, {}))
            params = dict(self._params.get(skill_id, {}))
            unique_users = len(self._users.get(skill_id, ()))
            daily = dict(self._daily.get(skill_id, {}))

        total = len(recent)
        window = [(now - timedelta(days=i)).date() for i in range(days - 1, -1, -1)]
        return SkillAnalytics(
            skill_id=skill_id,
            average_execution_time=_mean(r.execution_time_ms for r in recent),
            success_rate=sum(1 for r in recent if not r.error) / total * 100,
            cache_hit_rate=sum(1 for r in recent if r.cached) / total * 100,
            usefulness_score=_mean(r.usefulness for r in recent),
            total_executions=total,
            unique_users=unique_users,
            peak_usage_hour=max(hourly, key=lambda h: (hourly[h], -h)) if hourly else 0,
            popular_params=params,
            execution_trend=[daily[d].execution_count if d in daily else 0 for d in window],
            usefulness_trend=[
                daily[d].total_usefulness / daily[d].execution_count if d in daily else 0.0
                for d in window
            ],
            error_trend=[daily[d].error_count if d in daily else 0 for d in window],
            admission_rate=sum(1 for r in recent if r.success) / total * 100,
        )

    # -- health -------------------------------------------------------------

    def assess_skill_health(self, analytics: SkillAnalytics) -> HealthLevel:
        t = self.thresholds
        score = 0

        if analytics.average_execution_time <= t.execution_time_ms.excellent:
            score += 3
        elif analytics.average_execution_time <= t.execution_time_ms.good:
            score += 2
        elif analytics.average_execution_time <= t.execution_time_ms.fair:
            score += 1

        for value, band in (
            (analytics.success_rate, t.success_rate),
            (analytics.usefulness_score, t.usefulness),
        ):
            if value >= band.excellent:
                score += 3
            elif value >= band.good:
                score += 2
            elif value >= band.fair:
                score += 1

        if analytics.cache_hit_rate > 70:
            score += 1

        if score >= 8:
            return HealthLevel.EXCELLENT
        if score >= 6:
            return HealthLevel.GOOD
        if score >= 4:
            return HealthLevel.FAIR
        return HealthLevel.POOR

    @staticmethod
    def overall_health(healthy: int, unhealthy: int, critical_issues: int) -> HealthLevel:
        total = healthy + unhealthy
        if total == 0 or critical_issues > 0:
            return HealthLevel.POOR
        ratio = healthy / total
        if ratio >= 0.9:
            return HealthLevel.EXCELLENT
        if ratio >= 0.7:
            return HealthLevel.GOOD
        if ratio >= 0.5:
            return HealthLevel.FAIR
        return HealthLevel.POOR

    def get_health_report(self, skill_ids: Optional[Iterable[str]] = None) -> SkillHealthReport:
        """Grade every skill and roll the grades up.

        Args:
            skill_ids: Skills to include; defaults to every skill with metrics
        """
        ids = list(skill_ids) if skill_ids is not None else self.skill_ids()
        t = self.thresholds
        healthy = unhealthy = 0
        critical: list[str] = []
        warnings: list[str] = []
        recommendations: list[str] = []

        for sid in ids:
            a = self.get_skill_analytics(sid)
            if a is None:
                continue
            if self.assess_skill_health(a) in (HealthLevel.EXCELLENT, HealthLevel.GOOD):
                healthy += 1
            else:
                unhealthy += 1

            if a.success_rate < t.success_rate.fair:
                critical.append(f"Skill {sid} has low success rate: {a.success_rate:.1f}%")
            if a.average_execution_time > t.execution_time_ms.fair:
                critical.append(
                    f"Skill {sid} has slow execution time: {a.average_execution_time:.0f}ms"
                )
            if a.usefulness_score < t.usefulness.fair:
                warnings.append(f"Skill {sid} has low usefulness score: {a.usefulness_score:.1f}")
            if a.total_executions < 10:
                warnings.append(f"Skill {sid} has low usage: {a.total_executions} executions")
            if a.cache_hit_rate < 50:
                recommendations.append(
                    f"Consider enabling caching for skill {sid} "
                    f"(current hit rate: {a.cache_hit_rate:.1f}%)"
                )
            if a.average_execution_time > t.execution_time_ms.good:
                recommendations.append(
                    f"Optimize skill {sid} execution time "
                    f"(current: {a.average_execution_time:.0f}ms)"
                )

        return SkillHealthReport(
            overall_health=self.overall_health(healthy, unhealthy, len(critical)),
            skill_count=len(ids),
            healthy_skills=healthy,
            unhealthy_skills=unhealthy,
            critical_issues=critical,
            warnings=warnings,
            recommendations=recommendations,
            last_updated=self._clock(),
        )

    def performance_score(self, analytics: SkillAnalytics) -> float:
        """Weighted 0-100 composite used to rank skills."""
        t = self.thresholds
        time_score = max(0.0, 1 - analytics.average_execution_time / t.execution_time_ms.excellent)
        return (
            time_score * 0.2
            + analytics.success_rate / 100 * 0.3
            + analytics.usefulness_score / MAX_USEFULNESS * 0.25
            + analytics.cache_hit_rate / 100 * 0.15
            + min(1.0, analytics.total_executions / 100) * 0.1
        ) * 100

    def get_top_performing_skills(self, limit: int = 10) -> list[dict[str, Any]]:
        scored = []
        for sid in self.skill_ids():
            a = self.get_skill_analytics(sid)
            if a is not None:
                scored.append({"skill_id": sid, "score": self.performance_score(a)})
        scored.sort(key=lambda s: s["score"], reverse=True)
        return scored[:limit]

    # -- usage and monitoring ----------------------------------------------

    def get_usage_patterns(self, skill_id: str) -> dict[str, list[int]]:
        """Hour-of-day, day-of-week and week-of-year histograms."""
        weekday = [0] * 7
        week = [0] * 53
        with self._lock:
            hourly = dict(self._hourly.get(skill_id, {}))
            for r in self._history:
                if r.result.skill_id == skill_id:
                    weekday[r.recorded_at.weekday()] += 1
                    week[r.recorded_at.isocalendar()[1] - 1] += 1
        return {
            "hourly_distribution": [hourly.get(h, 0) for h in range(24)],
            "daily_distribution": weekday,
            "weekly_distribution": week,
        }

    def get_real_time_monitoring(self) -> dict[str, Any]:
        """Totals over the last 24 hours with the five busiest skills."""
        cutoff = self._clock() - timedelta(hours=24)
        with self._lock:
            recent = [r.result for r in self._history if r.recorded_at > cutoff]

        counts: dict[str, int] = defaultdict(int)
        for r in recent:
            counts[r.skill_id] += 1
        top = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)[:5]
        total = len(recent)
        return {
            "total_executions": total,
            "active_skills": len(counts),
            "error_rate": sum(1 for r in recent if r.error) / total * 100 if total else 0.0,
            "average_response_time": _mean(r.execution_time_ms for r in recent),
            "top_skills": [{"skill_id": sid, "executions": n} for sid, n in top],
        }

    def get_skill_comparison(self, skill_ids: Iterable[str]) -> list[dict[str, Any]]:
        rows = []
        for sid in skill_ids:
            a = self.get_skill_analytics(sid)
            if a is None:
                continue
            rows.append({
                "skill_id": sid,
                "executions": a.total_executions,
                "success_rate": a.success_rate,
                "admission_rate": a.admission_rate,
                "average_time": a.average_execution_time,
                "usefulness": a.usefulness_score,
            })
        return rows

    def get_error_history(self, skill_id: str, limit: int = 50) -> list[dict[str, Any]]:
        with self._lock:
            return list(self._errors.get(skill_id, [])[-limit:])

    def get_alerts(self, skill_id: str, limit: int = 50) -> list[dict[str, Any]]:
        with self._lock:
            return list(self._alerts.get(skill_id, [])[-limit:])

    def get_daily_metrics(self, skill_id: str, days: int = 7) -> list[dict[str, Any]]:
        """Per-day aggregates for the last *days* days that had activity."""
        today = self._clock().date()
        with self._lock:
            daily = self._daily.get(skill_id, {})
            out = []
            for i in range(days - 1, -1, -1):
                d = today - timedelta(days=i)
                if d in daily:
                    out.append(daily[d].to_dict(d))
        return out

    # -- export -------------------------------------------------------------

    def export_metrics(self, format: Literal["json", "csv"] = "json") -> str:
        """Serialise the execution history.

        ``json`` includes the per-skill user, hourly and parameter maps;
        ``csv`` is one row per execution.
        """
        with self._lock:
            history = list(self._history)
            users = {sid: sorted(u) for sid, u in self._users.items()}
            hourly = {sid: dict(h) for sid, h in self._hourly.items()}
            params = {sid: dict(p) for sid, p in self._params.items()}

        if format == "csv":
            buf = io.StringIO()
            writer = csv.writer(buf, lineterminator="\n")
            writer.writerow(["skill_id", "step", "execution_time_ms", "success",
                             "cached", "usefulness", "timestamp"])
            for r in history:
                res = r.result
                writer.writerow([res.skill_id, res.step.value, res.execution_time_ms,
                                 res.success, res.cached, res.usefulness,
                                 r.recorded_at.isoformat()])
            return buf.getvalue()
        if format != "json":
            raise ValueError(f"Unsupported export format: {format}")

        return json.dumps(
            {
                "execution_history": [
                    {**r.result.to_dict(), "user_id": r.user_id,
                     "recorded_at": r.recorded_at.isoformat()}
                    for r in history
                ],
                "user_sessions": users,
                "hourly_usage": hourly,
                "param_usage": params,
                "exported_at": self._clock().isoformat(),
            },
            indent=2,
        )

    def clear(self) -> None:
        with self._lock:
            self._reset_state()
        logger.info("Skill metrics cleared")
