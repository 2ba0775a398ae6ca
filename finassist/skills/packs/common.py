"""Helpers shared by the bundled skill packs."""

from __future__ import annotations

import re
from typing import Optional, Sequence

from finassist.assistant.schema import (
    Action,
    ChatResponse,
    Cost,
    ModelTier,
    Source,
    SourceKind,
)
from finassist.cognition.usefulness import score_usefulness

from ..base import SkillStepResult

COMPLIANCE_NOTE = (
    "*Educational, not advice. Verify rates on the bank's site before opening. "
    "FDIC/NCUA where applicable.*"
)

_COMPLIANCE_MARKERS = (re.compile(r"educational", re.I), re.compile(r"verify", re.I))


def money(amount: float, currency: str = "USD") -> str:
    if currency == "USD":
        return f"${amount:,.2f}"
    return f"{currency} {amount:,.2f}"


def parse_amount(text: str) -> Optional[float]:
    """Parse ``"5,000"`` / ``"1500.50"``; None for anything unusable."""
    try:
        value = float(text.replace(",", "").rstrip("."))
    except ValueError:
        return None
    return value if value > 0 else None


def local_answer(
    message: str,
    actions: Sequence[Action],
    confidence: float,
    matched_pattern: str,
    usefulness: Optional[float] = None,
) -> SkillStepResult:
    """Wrap a locally computed answer as a stage result.

    When *usefulness* is not given the answer is scored on its own, without
    the question, so the score reflects the answer's shape only.
    """
    response = ChatResponse(
        message=message,
        actions=list(actions),
        sources=[Source(kind=SourceKind.LOCAL_ML)],
        cost=Cost.for_text(message, ModelTier.MINI),
        confidence=confidence,
    )
    return SkillStepResult(
        response=response,
        matched_pattern=matched_pattern,
        usefulness=usefulness if usefulness is not None else score_usefulness(response),
    )


def compliance_guard(response: ChatResponse) -> ChatResponse:
    """Append the educational disclaimer unless the message already has one."""
    if not all(rx.search(response.message) for rx in _COMPLIANCE_MARKERS):
        response.message += "\n\n" + COMPLIANCE_NOTE
    return response
