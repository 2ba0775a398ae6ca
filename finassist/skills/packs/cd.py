"""
Certificate of Deposit (CD) skill pack.

Estimates simple interest for a stated deposit and term, explains what a CD
is, and for "best / which" questions ranks live CD offers via the research
agent.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from finassist.assistant.schema import (
    Action,
    ActionKind,
    ChatContext,
    ChatResponse,
    Cost,
    ModelTier,
    Source,
    SourceKind,
)
from finassist.cognition.usefulness import score_usefulness

from ..base import Skill, SkillStepResult
from ..research import (
    HttpWebFns,
    ResearchAgent,
    SourcePolicy,
    WebFns,
    collapse_whitespace,
    hostname,
)
from .common import local_answer, money, parse_amount

logger = logging.getLogger(__name__)

SKILL_ID = "CD"

LOW_APY = 4.5
HIGH_APY = 5.5

_MATCH = re.compile(r"\b(cd|certificate of deposit)\b", re.I)
_ESTIMATE_ASK = re.compile(
    r"\b(if\s+i\s+put|deposit|invest)\s+\$?([\d.,]+)\s+(?:in\s+a\s+)?(\d+)[-\s]*(?:month|mo)\s+cd",
    re.I,
)
_GENERAL = re.compile(
    r"\b(what\s+is|what'?s|explain|tell\s+me\s+about)\b.*\b(cd|certificate of deposit)\b", re.I
)
_ASKS_PICKS = re.compile(r"\b(best|which|recommend|top|rates?)\b", re.I)
_TERM_IN_QUERY = re.compile(r"\b(12|6|9)\b")

GENERAL_TEXT = """A **Certificate of Deposit (CD)** is a savings account with a fixed term and interest rate, offered by banks and credit unions.

**Key features:**
• **Fixed term** - typically 3 months to 5 years
• **Fixed interest rate** - locked in when you open the CD
• **FDIC insured** up to $250,000 per bank
• **Higher rates** than regular savings accounts
• **Early withdrawal penalty** - you lose interest if you withdraw early

**How it works:**
1. Deposit money for a specific term (e.g., 12 months)
2. Earn a guaranteed interest rate for that entire term
3. Get your money back plus interest at maturity
4. Cannot withdraw early without penalty

**Best for:** Money you won't need for the CD term, earning higher guaranteed returns than savings accounts.

**Current rates:** Top CD rates are 4.5-5.5% APY depending on term length."""


@dataclass
class CdItem:
    bank: str
    term_months: int
    apy: float
    url: str
    min_deposit: Optional[float] = None


def extract_cd(html: str) -> dict[str, Any]:
    """Return the best-yielding CD offer mentioned on the page."""
    text = collapse_whitespace(html)
    offers = []
    for m in re.finditer(r"(\d+(?:\.\d+)?)\s*%[^%]{0,50}APY", text, re.I):
        apy = float(m.group(1))
        if not 0 < apy < 20:
            continue
        # Bank names precede the rate ("Ally Bank offers 5.25% APY ...")
        lead = text[max(0, m.start() - 60):m.start()]
        banks = re.findall(
            r"([A-Z][a-z]+(?:\s+[A-Z][a-z0-9]+)*\s+(?:Bank|Financial|Credit\s+Union))", lead
        )
        window = text[m.start():m.end() + 40]
        term_m = re.search(r"(\d+)[-\s]*(?:month|mo)", window, re.I)
        min_m = re.search(r"\$\s?(\d[\d,.]*)\s*(?:minimum|min)", window, re.I)
        offers.append({
            "bank": banks[-1] if banks else None,
            "apy": apy,
            "term_months": int(term_m.group(1)) if term_m else 12,
            "min_deposit": (parse_amount(min_m.group(1)) if min_m else None) or 0.0,
        })
    if not offers:
        return {}
    return max(offers, key=lambda o: o["apy"])


def normalize_cd(url: str, raw: dict[str, Any]) -> Optional[CdItem]:
    if not raw.get("apy"):
        return None
    return CdItem(
        bank=raw.get("bank") or hostname(url),
        term_months=raw.get("term_months", 12),
        apy=raw["apy"],
        url=url,
        min_deposit=raw.get("min_deposit"),
    )


def score_cd(item: CdItem, query: str) -> float:
    score = item.apy
    term = _TERM_IN_QUERY.search(query)
    if term and int(term.group(1)) == item.term_months:
        score += 0.4
    if item.min_deposit == 0:
        score += 0.3
    return score


CD_SOURCES = SourcePolicy(
    editorial_allow=("bankrate.com", "nerdwallet.com", "forbes.com"),
    domain_allow_patterns=(re.compile(r"ally\.com|capitalone\.com|discover\.com", re.I),),
)


def interest_estimator(question: str, context: ChatContext) -> Optional[SkillStepResult]:
    m = _ESTIMATE_ASK.search(question)
    if not m:
        return None
    amount = parse_amount(m.group(2))
    term = int(m.group(3))
    if amount is None or term <= 0:
        return None

    cur = context.currency
    low = amount * LOW_APY / 100 * term / 12
    high = amount * HIGH_APY / 100 * term / 12
    message = (
        f"With **{money(amount, cur)}** in a {term}-month CD:\n"
        f"• **Interest earned:** {money(low, cur)} - {money(high, cur)} "
        f"({LOW_APY}% - {HIGH_APY}% APY)\n"
        f"• **Total at maturity:** {money(amount + low, cur)} - {money(amount + high, cur)}\n\n"
        "*Note: Early withdrawal penalties apply. Rates change frequently, "
        "so verify before opening.*"
    )
    return local_answer(
        message,
        [Action("Create Savings Goal", ActionKind.OPEN_GOAL_FORM, {"type": "savings"})],
        confidence=0.9,
        matched_pattern="CD_INTEREST_ESTIMATOR",
    )


def general_knowledge(question: str, context: ChatContext) -> Optional[SkillStepResult]:
    if not _GENERAL.search(question):
        return None
    return local_answer(
        GENERAL_TEXT,
        [
            Action("Create Savings Goal", ActionKind.OPEN_GOAL_FORM, {"type": "savings"}),
            Action("Calculate CD Interest", ActionKind.OPEN_COMPOUND_CALCULATOR, {"type": "cd"}),
        ],
        confidence=0.9,
        matched_pattern="CD_GENERAL_KNOWLEDGE",
    )


def make_research_stage(agent: ResearchAgent[CdItem]):
    async def research(question: str, context: ChatContext) -> Optional[SkillStepResult]:
        if not _ASKS_PICKS.search(question):
            return None

        logger.debug("Running CD research for %r", question)
        result = await agent.run(question)
        if not result.items:
            return None

        top = result.items[:3]
        lines = "\n".join(
            f"• **{item.bank}**: {item.apy:.2f}% APY ({item.term_months} mo)" for item in top
        )
        message = (
            f"**Top CD rates (checked {result.checked_at})**\n{lines}\n\n"
            "*Note: Watch early withdrawal penalties. Rates change, so verify before opening.*"
        )
        response = ChatResponse(
            message=message,
            actions=[Action("Create Savings Goal", ActionKind.OPEN_GOAL_FORM, {"type": "savings"})],
            sources=[Source(SourceKind.WEB, note=item.bank, url=item.url) for item in top],
            cost=Cost.for_text(message, ModelTier.STD),
            confidence=0.75,
        )
        return SkillStepResult(
            response=response,
            matched_pattern="CD_RESEARCH_AGENT",
            usefulness=score_usefulness(response, question),
        )

    return research


def build_cd_skill(web_fns: Optional[WebFns] = None) -> Skill:
    """Build the CD skill; *web_fns* defaults to the HTTP transport."""
    agent: ResearchAgent[CdItem] = ResearchAgent(
        topic="high yield cd rate",
        web_fns=web_fns or HttpWebFns(extract=extract_cd),
        sources=CD_SOURCES,
        normalize=normalize_cd,
        score=score_cd,
    )
    return Skill(
        id=SKILL_ID,
        name="Certificate of Deposit Assistant",
        description="CD interest estimates, explanations and current rates",
        matches=lambda q: bool(_MATCH.search(q)),
        priority=8,
        min_usefulness=3,
        micro_solvers=(interest_estimator, general_knowledge),
        research_agent=make_research_stage(agent),
    )
