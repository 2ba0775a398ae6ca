"""
Chat context and structured response types.

The host application supplies a :class:`ChatContext` snapshot per request
and renders the :class:`ChatResponse` it gets back. Card, action, source and
model kinds are closed enums so renderers can switch over them exhaustively.

Key types:
- ChatContext: read-only snapshot of the user's financial data
- ChatResponse: message text plus cards, actions, provenance and cost
- CardKind / ActionKind: the visual summaries and buttons the UI knows
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class CardKind(str, Enum):
    """Typed visual summaries rendered inline in the chat."""
    BALANCE = "balance"
    BUDGET = "budget"
    SUBSCRIPTIONS = "subscriptions"
    FORECAST = "forecast"
    TABLE = "table"
    CHECKLIST = "checklist"
    SPENDING = "spending"
    SAVINGS = "savings"
    GOALS = "goals"
    ALERTS = "alerts"
    INSIGHTS = "insights"
    COMPARISON = "comparison"
    TRENDS = "trends"


class ActionKind(str, Enum):
    """Button actions the UI knows how to dispatch."""
    OPEN_BUDGETS = "OPEN_BUDGETS"
    ADJUST_LIMIT = "ADJUST_LIMIT"
    VIEW_RECURRING = "VIEW_RECURRING"
    VIEW_TRANSACTIONS = "VIEW_TRANSACTIONS"
    OPEN_GOAL_FORM = "OPEN_GOAL_FORM"
    OPEN_GOAL_WIZARD = "OPEN_GOAL_WIZARD"
    OPEN_BUDGET_WIZARD = "OPEN_BUDGET_WIZARD"
    OPEN_TRANSACTION_FORM = "OPEN_TRANSACTION_FORM"
    SETUP_AUTO_TRANSFER = "SETUP_AUTO_TRANSFER"
    MANAGE_SUBSCRIPTIONS = "MANAGE_SUBSCRIPTIONS"
    SET_ALERT = "SET_ALERT"
    FETCH_HYSA_PICKS = "FETCH_HYSA_PICKS"
    OPEN_ARTICLE = "OPEN_ARTICLE"
    OPEN_LINKS = "OPEN_LINKS"
    OPEN_TRANSFER_PLANNER = "OPEN_TRANSFER_PLANNER"
    OPEN_COMPOUND_CALCULATOR = "OPEN_COMPOUND_CALCULATOR"


class SourceKind(str, Enum):
    """Where an answer came from."""
    CACHE = "cache"
    LOCAL_ML = "localML"
    DB = "db"
    WEB = "web"
    GPT = "gpt"


class ModelTier(str, Enum):
    """Cost tier reported to cost-transparency UIs."""
    MINI = "mini"
    STD = "std"
    PRO = "pro"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class Card:
    kind: CardKind
    data: dict[str, Any] = field(default_factory=dict)
    title: str | None = None
    subtitle: str | None = None
    priority: Priority | None = None


@dataclass
class Action:
    label: str
    action: ActionKind
    params: dict[str, Any] = field(default_factory=dict)
    priority: Priority | None = None


@dataclass
class Source:
    kind: SourceKind
    note: str | None = None
    url: str | None = None


@dataclass
class Cost:
    model: ModelTier
    est_tokens: int

    @classmethod
    def for_text(cls, text: str, model: ModelTier = ModelTier.MINI) -> "Cost":
        """Rough token estimate: one token per four characters."""
        return cls(model=model, est_tokens=-(-len(text) // 4))


@dataclass
class ChatResponse:
    """Structured answer returned to the host.

    Attributes:
        message: Short human-readable answer
        details: Optional deeper explanation
        cards: Typed visual summaries
        actions: Buttons the UI renders
        sources: Provenance tags
        cost: Model tier and estimated tokens
        confidence: Producer's confidence, 0.0-1.0
    """
    message: str
    details: str | None = None
    cards: list[Card] = field(default_factory=list)
    actions: list[Action] = field(default_factory=list)
    sources: list[Source] = field(default_factory=list)
    cost: Cost | None = None
    confidence: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "message": self.message,
            "details": self.details,
            "cards": [
                {
                    "kind": c.kind.value,
                    "data": c.data,
                    "title": c.title,
                    "subtitle": c.subtitle,
                    "priority": c.priority.value if c.priority else None,
                }
                for c in self.cards
            ],
            "actions": [
                {
                    "label": a.label,
                    "action": a.action.value,
                    "params": a.params,
                    "priority": a.priority.value if a.priority else None,
                }
                for a in self.actions
            ],
            "sources": [
                {"kind": s.kind.value, "note": s.note, "url": s.url}
                for s in self.sources
            ],
            "cost": (
                {"model": self.cost.model.value, "est_tokens": self.cost.est_tokens}
                if self.cost
                else None
            ),
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class ChatContext:
    """Read-only snapshot of the user's financial data for one request.

    Collections hold plain dictionaries as produced by the host's data layer;
    the cascade never mutates them.

    Example:
        ctx = ChatContext(
            user_profile={"user_id": "u_1", "monthly_income": 5000},
            budgets=[{"category": "groceries", "limit": 400, "spent": 250}],
        )
    """
    user_profile: dict[str, Any] = field(default_factory=dict)
    accounts: list[dict[str, Any]] = field(default_factory=list)
    budgets: list[dict[str, Any]] = field(default_factory=list)
    goals: list[dict[str, Any]] = field(default_factory=list)
    transactions: list[dict[str, Any]] = field(default_factory=list)
    recurring_expenses: list[dict[str, Any]] = field(default_factory=list)
    locale: str = "en-US"
    currency: str = "USD"
    session_actions: tuple[str, ...] = ()

    @property
    def user_id(self) -> str | None:
        uid = self.user_profile.get("user_id")
        return str(uid) if uid is not None else None
