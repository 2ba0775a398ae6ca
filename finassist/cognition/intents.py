"""Coarse intent detection via ordered pattern rules.

The classifier is a cheap pre-filter the host uses to decide whether a
grounded, data-backed answer is worth attempting before the skill cascade.
It is *not* how skills are matched: every skill carries its own predicate
over the raw question text.

Rules are evaluated in order against the lower-cased text and the first
match wins; anything unmatched is ``GENERAL_QA``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

class Intent(str, Enum):
    GET_BALANCE = "GET_BALANCE"
    GET_BUDGET_STATUS = "GET_BUDGET_STATUS"
    LIST_SUBSCRIPTIONS = "LIST_SUBSCRIPTIONS"
    CATEGORIZE_TX = "CATEGORIZE_TX"
    FORECAST_SPEND = "FORECAST_SPEND"
    CREATE_BUDGET = "CREATE_BUDGET"
    GET_GOAL_PROGRESS = "GET_GOAL_PROGRESS"
    GET_SPENDING_BREAKDOWN = "GET_SPENDING_BREAKDOWN"
    GENERAL_QA = "GENERAL_QA"


@dataclass(frozen=True)
class IntentRule:
    intent: Intent
    regex: re.Pattern[str]


@dataclass(frozen=True)
class IntentMatch:
    """Classification outcome with the rule that fired, for diagnostics."""

    intent: Intent
    matched_pattern: Optional[str] = None


def _rule(intent: Intent, pattern: str) -> IntentRule:
    return IntentRule(intent=intent, regex=re.compile(pattern))


# ---------------------------------------------------------------------------
# Built-in rules (order matters)
# ---------------------------------------------------------------------------

DEFAULT_RULES: tuple[IntentRule, ...] = (
    _rule(
        Intent.GET_BALANCE,
        r"(what('| i)s|show)\s+.*balance|^balance\b|how much.*have|total.*money",
    ),
    _rule(
        Intent.GET_BUDGET_STATUS,
        r"budget|over budget|spent.*(this|last)\s*(week|month)|how much.*spent|remaining.*budget",
    ),
    _rule(
        Intent.LIST_SUBSCRIPTIONS,
        r"subscriptions?|recurring|monthly.*payments?|fixed.*expenses?",
    ),
    _rule(Intent.CATEGORIZE_TX, r"categorize|category for|what.*category|classify"),
    _rule(
        Intent.FORECAST_SPEND,
        r"forecast|project|predict.*spend|how much.*spend|future.*spending",
    ),
    _rule(Intent.CREATE_BUDGET, r"new budget|create budget|set up.*budget|start.*budget"),
    _rule(
        Intent.GET_GOAL_PROGRESS,
        r"goal|progress|how.*saving|target.*amount|savings.*goal",
    ),
    _rule(
        Intent.GET_SPENDING_BREAKDOWN,
        r"breakdown|spending.*by|category.*spending|where.*money",
    ),
)


# ---------------------------------------------------------------------------
# IntentClassifier
# ---------------------------------------------------------------------------

class IntentClassifier:
    """Ordered-rule classifier.

    Parameters
    ----------
    rules:
        Rules evaluated first-match-wins. Defaults to :data:`DEFAULT_RULES`.
    """

    def __init__(self, rules: Sequence[IntentRule] | None = None) -> None:
        self._rules: tuple[IntentRule, ...] = tuple(rules) if rules is not None else DEFAULT_RULES

    def classify(self, text: str) -> IntentMatch:
        s = text.lower()
        for rule in self._rules:
            if rule.regex.search(s):
                return IntentMatch(intent=rule.intent, matched_pattern=rule.regex.pattern)
        return IntentMatch(intent=Intent.GENERAL_QA)

    def detect(self, text: str) -> Intent:
        return self.classify(text).intent

    @property
    def rules(self) -> tuple[IntentRule, ...]:
        return self._rules


_default_classifier = IntentClassifier()


def detect_intent(text: str) -> Intent:
    """Map raw question text to an :class:`Intent`. Never raises."""
    return _default_classifier.detect(text)
