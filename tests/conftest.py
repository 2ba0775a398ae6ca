"""Shared fixtures and fakes for the finassist test suite."""

from __future__ import annotations

from typing import Any, Callable, Optional

import pytest

from finassist.assistant.schema import Action, ActionKind, ChatContext, ChatResponse
from finassist.skills.base import Skill, SkillStepResult
from finassist.skills.research import SearchHit


# ---------------------------------------------------------------------------
# Clocks
# ---------------------------------------------------------------------------

class FakeClock:
    """Manually advanced seconds-since-epoch clock."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Research transport
# ---------------------------------------------------------------------------

class FakeWebFns:
    """In-memory search / fetch / extract transport.

    ``pages`` maps URL to HTML; a URL whose value is an exception instance
    raises it on fetch.
    """

    def __init__(
        self,
        hits: list[SearchHit],
        pages: dict[str, Any],
        extract: Callable[[str], dict[str, Any]],
    ) -> None:
        self.hits = hits
        self.pages = pages
        self._extract = extract
        self.queries: list[tuple[str, int]] = []
        self.fetched: list[str] = []

    async def search(self, query: str, recency_days: int = 30) -> list[SearchHit]:
        self.queries.append((query, recency_days))
        return list(self.hits)

    async def fetch_text(self, url: str) -> str:
        self.fetched.append(url)
        page = self.pages[url]
        if isinstance(page, Exception):
            raise page
        return page

    def extract(self, html: str) -> dict[str, Any]:
        return self._extract(html)


# ---------------------------------------------------------------------------
# Skill helpers
# ---------------------------------------------------------------------------

def make_response(
    message: str = "A long enough answer that clears both length checks for scoring purposes.",
    with_action: bool = True,
) -> ChatResponse:
    actions = [Action("Open Goals", ActionKind.OPEN_GOAL_WIZARD)] if with_action else []
    return ChatResponse(message=message, actions=actions)


def fixed_solver(
    usefulness: Optional[float],
    response: Optional[ChatResponse] = None,
    pattern: str = "FIXED",
) -> Callable[[str, ChatContext], SkillStepResult]:
    """Micro-solver that always answers with the given self-reported score."""

    def solver(question: str, context: ChatContext) -> SkillStepResult:
        return SkillStepResult(
            response=response or make_response(),
            matched_pattern=pattern,
            usefulness=usefulness,
        )

    return solver


def make_skill(
    skill_id: str,
    priority: int = 0,
    matches: Optional[Callable[[str], bool]] = None,
    solvers: tuple = (),
    **kwargs: Any,
) -> Skill:
    return Skill(
        id=skill_id,
        matches=matches or (lambda q: True),
        priority=priority,
        min_usefulness=kwargs.pop("min_usefulness", 3),
        micro_solvers=solvers or (fixed_solver(5),),
        **kwargs,
    )


@pytest.fixture
def context() -> ChatContext:
    return ChatContext(user_profile={"user_id": "u_1"})
