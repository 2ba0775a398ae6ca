"""
High-Yield Savings Account (HYSA) skill pack.

Answers most HYSA questions locally: interest estimates for a stated
deposit, what to look for when choosing, what a HYSA is, how rates compare
and how safe deposits are. "Best / which bank" questions go to the research
agent, which first asks for consent (the UI replies with the
``FETCH_HYSA_PICKS`` session action) and then ranks live offers. The
composer turns the ranked offers into the final answer.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Optional

from finassist.assistant.schema import (
    Action,
    ActionKind,
    Card,
    CardKind,
    ChatContext,
    ChatResponse,
    Cost,
    ModelTier,
    Source,
    SourceKind,
)

from ..base import Skill, SkillStepResult, SkillVersion
from ..research import (
    HttpWebFns,
    ResearchAgent,
    SourcePolicy,
    WebFns,
    collapse_whitespace,
    hostname,
    html_title,
)
from .common import COMPLIANCE_NOTE, compliance_guard, local_answer, money, parse_amount

logger = logging.getLogger(__name__)

SKILL_ID = "HYSA"
CONSENT_ACTION = ActionKind.FETCH_HYSA_PICKS.value

LOW_APY = 4.5
HIGH_APY = 5.0

_BANK_LINKS = [
    "https://www.marcus.com",
    "https://www.ally.com",
    "https://www.capitalone.com",
]

_MATCH = re.compile(r"\b(high[-\s]?yield\s+savings|hysa|banks?|accounts?)\b", re.I)

_INTEREST_ASK = re.compile(
    r"\b(if\s+i\s+put|deposit|save)\s+\$?([\d.,]+)\s+(?:in\s+a\s+)?"
    r"(?:hysa|high[-\s]?yield\s+savings|savings\s+account)",
    re.I,
)
_ADVISOR_TOPIC = re.compile(
    r"\b(high[-\s]?yield\s+savings|hysa|high\s+yield\s+account|high\s+yield)\b", re.I
)
_ADVISOR_ASK = re.compile(r"\b(suggest|recommend|which|any|do\s+you\s+have)\b", re.I)
_GENERAL = re.compile(
    r"\b(what\s+is|what'?s|explain|tell\s+me\s+about)\b.*\b(high[-\s]?yield\s+savings|hysa)\b",
    re.I,
)
_RATES = re.compile(
    r"\b(compare|comparison|rates?|apy|interest)\b.*\b(hysa|savings|account)\b", re.I
)
_SAFETY = re.compile(
    r"\b(safe|secure|fdic|insured|risk|protect)\b.*\b(hysa|savings|account)\b", re.I
)
_ASKS_PICKS = re.compile(r"\b(best|which|recommend|suggest|top|banks?|accounts?)\b", re.I)
_ASKS_CRITERIA = re.compile(r"\b(what|how|look\s+for|criteria|features)\b", re.I)

CRITERIA_TEXT = """**What to look for in a high-yield savings account (HYSA):**

• **FDIC/NCUA insured** at the bank/credit union level
• **APY** near the current top tier (rates change, so avoid teaser promo traps)
• **No/low fees** and **$0 minimums** if possible
• **ACH transfer speed** (1-2 business days) and decent daily limits
• **Sub-accounts/"buckets"** to separate goals
• Solid mobile app and customer support"""

GENERAL_TEXT = """A **High-Yield Savings Account (HYSA)** is a type of savings account that offers significantly higher interest rates than traditional savings accounts.

**Key features:**
• **Higher APY** - typically 4-5% vs 0.01% for regular savings
• **FDIC insured** up to $250,000 per bank
• **Online-only** - no physical branches, lower overhead costs
• **No monthly fees** and often no minimum balance requirements
• **Easy access** - can transfer money in/out as needed

**Best for:** Emergency funds, short-term savings goals, money you want to keep liquid but earning more than a checking account.

**Current rates:** Top HYSA accounts offer 4.5-5.0% APY (rates change frequently)."""

RATES_TEXT = """**Current HYSA Rate Comparison:**

**Top Tier (4.5-5.0% APY):**
• Marcus by Goldman Sachs
• Ally Bank
• Capital One 360
• Discover Bank

**Mid Tier (4.0-4.5% APY):**
• SoFi
• American Express
• Synchrony Bank

**Key factors to compare:**
• APY (Annual Percentage Yield)
• Minimum balance requirements
• Monthly fees
• ACH transfer speed
• Mobile app quality
• Customer service

*Rates change frequently. Always verify current rates on the bank's website.*"""

SAFETY_TEXT = """**HYSA Safety & Security:**

**FDIC Insurance:**
• Up to $250,000 per depositor, per bank
• Covers principal and interest
• Automatic protection, no signup required
• Covers all deposit accounts (checking, savings, CDs)

**Security Features:**
• Bank-level encryption
• Two-factor authentication
• Fraud monitoring
• Account alerts

**Risk Level:** Very low. HYSA accounts are among the safest places to keep money, especially when FDIC insured.

**What's NOT covered:**
• Investment losses
• Cryptocurrency
• Balances over $250,000 (per bank)
• Non-deposit products"""


# ---------------------------------------------------------------------------
# Research item
# ---------------------------------------------------------------------------

@dataclass
class HysaItem:
    bank: str
    product: str
    url: str
    apy: Optional[float] = None
    min_balance: float = 0.0
    fees: str = "no monthly fee"
    ach_speed: str = "unknown"
    buckets: bool = False


def extract_hysa(html: str) -> dict[str, Any]:
    """Pull APY, minimum, fees, buckets and ACH speed out of a bank page."""
    text = collapse_whitespace(html)

    apy_m = re.search(r"(\d+(?:\.\d+)?)\s*%[^%]{0,20}APY", text, re.I)
    min_m = re.search(r"\$?\s?(\d[\d,.]*)\s*(?:minimum|to\sopen)", text, re.I)
    fee_m = re.search(r"\b(no\s+monthly\s+fees?|monthly\s+fees?\s*\$?\s*\d+)", text, re.I)
    bank = re.split(r"\s+[-|•]\s+", html_title(html), maxsplit=1)[0].strip()

    if re.search(r"1-2\s*(?:business\s*)?days?|instant|same\s*day", text, re.I):
        ach = "1-2d"
    elif re.search(r"3-5\s*(?:business\s*)?days?", text, re.I):
        ach = "3-5d"
    else:
        ach = "unknown"

    return {
        "bank": bank or None,
        "apy": float(apy_m.group(1)) if apy_m else None,
        "min_balance": (parse_amount(min_m.group(1)) if min_m else None) or 0.0,
        "fees": fee_m.group(0) if fee_m else None,
        "ach_speed": ach,
        "buckets": bool(re.search(r"bucket|vault|sub-?account", text, re.I)),
        "product": "High-Yield Savings",
    }


def normalize_hysa(url: str, raw: dict[str, Any]) -> Optional[HysaItem]:
    if raw.get("apy") is None:
        return None
    return HysaItem(
        bank=raw.get("bank") or hostname(url),
        product=raw.get("product") or "High-Yield Savings",
        url=url,
        apy=raw["apy"],
        min_balance=raw.get("min_balance") or 0.0,
        fees=raw.get("fees") or "no monthly fee",
        ach_speed=raw.get("ach_speed") or "unknown",
        buckets=bool(raw.get("buckets")),
    )


def score_hysa(item: HysaItem, query: str) -> float:
    score = item.apy or 0.0
    no_fees = bool(re.search(r"no", item.fees, re.I))
    if item.min_balance == 0:
        score += 0.6
    if no_fees:
        score += 0.5
    if item.buckets:
        score += 0.3
    if item.ach_speed == "1-2d":
        score += 0.4

    if re.search(r"\bbucket|sub[-\s]?account\b", query, re.I) and item.buckets:
        score += 0.2
    if re.search(r"\bno\s+fees|avoid\s+fees\b", query, re.I) and no_fees:
        score += 0.2
    if re.search(r"\bfast\s+ach|instant\s+transfer|1-2\s*day\b", query, re.I) and item.ach_speed == "1-2d":
        score += 0.2
    return score


HYSA_SOURCES = SourcePolicy(
    editorial_allow=(
        "nerdwallet.com",
        "bankrate.com",
        "forbes.com",
        "investopedia.com",
        "thebalance.com",
        "wallethub.com",
    ),
    domain_allow_patterns=tuple(
        re.compile(p, re.I)
        for p in (
            r"ally\.com", r"marcus\.com", r"capitalone\.com", r"discover\.com",
            r"americanexpress\.com", r"synchronybank\.com", r"sofi\.com", r"barclays\.us",
        )
    ),
)


# ---------------------------------------------------------------------------
# Micro-solvers
# ---------------------------------------------------------------------------

def interest_estimator(question: str, context: ChatContext) -> Optional[SkillStepResult]:
    """Estimate interest for "If I put $3000 in a HYSA, how much interest?"."""
    m = _INTEREST_ASK.search(question)
    if not m:
        return None
    amount = parse_amount(m.group(2))
    if amount is None:
        return None

    cur = context.currency
    message = (
        f"With **{money(amount, cur)}** in a HYSA:\n"
        f"• **Monthly interest:** {money(amount * LOW_APY / 100 / 12, cur)} - "
        f"{money(amount * HIGH_APY / 100 / 12, cur)} ({LOW_APY}% - {HIGH_APY}% APY)\n"
        f"• **Yearly interest:** {money(amount * LOW_APY / 100, cur)} - "
        f"{money(amount * HIGH_APY / 100, cur)}\n\n"
        "*Rates change frequently. Check current APY before opening.*"
    )
    return local_answer(
        message,
        [Action("Create Savings Goal", ActionKind.OPEN_GOAL_FORM, {"type": "savings"})],
        confidence=0.9,
        matched_pattern="HYSA_INTEREST_ESTIMATOR",
    )


def advisor(question: str, context: ChatContext) -> Optional[SkillStepResult]:
    if not (_ADVISOR_TOPIC.search(question) and _ADVISOR_ASK.search(question)):
        return None
    return local_answer(
        CRITERIA_TEXT,
        [
            Action("Create Savings Goal", ActionKind.OPEN_GOAL_FORM, {"type": "savings"}),
            Action("Open Goals", ActionKind.OPEN_GOAL_WIZARD),
        ],
        confidence=0.9,
        matched_pattern="HYSA_CRITERIA",
    )


def general_knowledge(question: str, context: ChatContext) -> Optional[SkillStepResult]:
    if not _GENERAL.search(question):
        return None
    return local_answer(
        GENERAL_TEXT,
        [
            Action("Create Savings Goal", ActionKind.OPEN_GOAL_FORM, {"type": "savings"}),
            Action("Calculate Interest", ActionKind.OPEN_COMPOUND_CALCULATOR, {"type": "hysa"}),
        ],
        confidence=0.9,
        matched_pattern="HYSA_GENERAL_KNOWLEDGE",
    )


def rate_comparison(question: str, context: ChatContext) -> Optional[SkillStepResult]:
    if not _RATES.search(question):
        return None
    return local_answer(
        RATES_TEXT,
        [
            Action("Get Current Rates", ActionKind.FETCH_HYSA_PICKS),
            Action("Compare Accounts", ActionKind.OPEN_LINKS, {"urls": list(_BANK_LINKS)}),
        ],
        confidence=0.85,
        matched_pattern="HYSA_RATE_COMPARISON",
    )


def safety(question: str, context: ChatContext) -> Optional[SkillStepResult]:
    if not _SAFETY.search(question):
        return None
    return local_answer(
        SAFETY_TEXT,
        [
            Action("Learn More About FDIC", ActionKind.OPEN_ARTICLE, {"slug": "fdic-insurance"}),
            Action(
                "Check Bank Safety",
                ActionKind.OPEN_LINKS,
                {"urls": ["https://www.fdic.gov/resources/deposit-insurance/"]},
            ),
        ],
        confidence=0.95,
        matched_pattern="HYSA_SAFETY_SECURITY",
    )


# ---------------------------------------------------------------------------
# Research agent and composer
# ---------------------------------------------------------------------------

def _retry_actions() -> list[Action]:
    return [
        Action("Try Again", ActionKind.FETCH_HYSA_PICKS),
        Action("Check Bank Sites", ActionKind.OPEN_LINKS, {"urls": list(_BANK_LINKS)}),
    ]


def make_research_stage(agent: ResearchAgent[HysaItem]):
    """Build the HYSA research stage around *agent*."""

    async def research(question: str, context: ChatContext) -> Optional[SkillStepResult]:
        if not _ASKS_PICKS.search(question):
            return None

        if _ASKS_CRITERIA.search(question):
            message = CRITERIA_TEXT + "\n\n" + COMPLIANCE_NOTE
            return SkillStepResult(
                response=ChatResponse(
                    message=message,
                    actions=[
                        Action("Create Savings Goal", ActionKind.OPEN_GOAL_FORM, {"type": "savings"}),
                        Action("Open Goals", ActionKind.OPEN_GOAL_WIZARD),
                    ],
                    cost=Cost.for_text(message),
                    confidence=0.9,
                ),
                matched_pattern="HYSA_CRITERIA",
                usefulness=4,
            )

        if CONSENT_ACTION not in context.session_actions:
            message = (
                "I can fetch **current HYSA options** from bank sites and rank them "
                "by APY, fees, and $0 minimums.\n"
                "This is *educational, not advice* and rates change, so please "
                "verify before opening."
            )
            return SkillStepResult(
                response=ChatResponse(
                    message=message,
                    actions=[
                        Action("Fetch current HYSA picks", ActionKind.FETCH_HYSA_PICKS),
                        Action("What to look for", ActionKind.OPEN_ARTICLE, {"slug": "hysa-criteria"}),
                    ],
                    cost=Cost.for_text(message),
                    confidence=0.8,
                ),
                matched_pattern="HYSA_CONSENT",
                usefulness=4,
            )

        logger.info("Fetching HYSA picks for %r", question)
        try:
            result = await agent.run(question)
        except Exception:
            logger.exception("HYSA research failed")
            return SkillStepResult(
                response=ChatResponse(
                    message=(
                        "Sorry, I hit an error while fetching current HYSA data. "
                        "Please try again or check individual bank websites."
                    ),
                    actions=_retry_actions(),
                    sources=[Source(SourceKind.WEB, note="error_occurred")],
                    cost=Cost(ModelTier.MINI, 25),
                    confidence=0.2,
                ),
                matched_pattern="HYSA_ERROR",
                usefulness=1,
            )

        if not result.items:
            return SkillStepResult(
                response=ChatResponse(
                    message=(
                        "No current HYSA data available. Please try again later or "
                        "check individual bank websites for current rates."
                    ),
                    actions=_retry_actions(),
                    sources=[Source(SourceKind.WEB, note="no_data_available")],
                    cost=Cost(ModelTier.MINI, 20),
                    confidence=0.3,
                ),
                matched_pattern="HYSA_NO_DATA",
                usefulness=2,
            )

        return SkillStepResult(
            matched_pattern="HYSA_AGENT",
            data={
                "hysa_picks": [asdict(item) for item in result.items[:3]],
                "checked_at": result.checked_at,
            },
        )

    return research


def compose_picks(
    question: str, context: ChatContext, data: dict[str, Any]
) -> Optional[ChatResponse]:
    """Render ranked HYSA offers surfaced by the research stage."""
    picks = data.get("hysa_picks")
    if not picks:
        return None

    lines = []
    for i, p in enumerate(picks, 1):
        line = f"{i}) **{p['bank']} – {p['product']}**: {p['apy']:.2f}% APY"
        if p["min_balance"]:
            line += f", {money(p['min_balance'], context.currency)} min"
        if p["fees"]:
            line += f", {p['fees']}"
        if p["buckets"]:
            line += ", buckets"
        if p["ach_speed"] != "unknown":
            line += f", ACH {p['ach_speed']}"
        lines.append(line + ".")

    message = (
        f"**Top HYSA picks (checked {data.get('checked_at', 'today')})**\n"
        + "\n".join(lines)
        + "\n\n*Why these:* competitive APY, low/no fees, low minimums. "
        "**Verify terms on the bank page.**"
    )
    response = ChatResponse(
        message=message,
        cards=[
            Card(
                kind=CardKind.COMPARISON,
                title="HYSA picks",
                data={"rows": [
                    {"bank": p["bank"], "apy": p["apy"], "min_balance": p["min_balance"]}
                    for p in picks
                ]},
            )
        ],
        actions=[
            Action("Open bank pages", ActionKind.OPEN_LINKS, {"urls": [p["url"] for p in picks]}),
            Action("Plan monthly transfer", ActionKind.OPEN_TRANSFER_PLANNER, {"amount": 100}),
        ],
        sources=[
            Source(SourceKind.WEB, note=f"HYSA data from {p['bank']}", url=p["url"])
            for p in picks
        ],
        cost=Cost.for_text(message, ModelTier.STD),
        confidence=0.75,
    )
    return compliance_guard(response)


# ---------------------------------------------------------------------------
# Skill
# ---------------------------------------------------------------------------

def build_hysa_skill(web_fns: Optional[WebFns] = None) -> Skill:
    """Build the HYSA skill; *web_fns* defaults to the HTTP transport."""
    agent: ResearchAgent[HysaItem] = ResearchAgent(
        topic="high yield savings account",
        web_fns=web_fns or HttpWebFns(extract=extract_hysa),
        sources=HYSA_SOURCES,
        normalize=normalize_hysa,
        score=score_hysa,
    )
    return Skill(
        id=SKILL_ID,
        name="High-Yield Savings Account Assistant",
        description="Information and recommendations about high-yield savings accounts",
        matches=lambda q: bool(_MATCH.search(q)),
        priority=10,
        min_usefulness=3,
        micro_solvers=(interest_estimator, advisor, general_knowledge, rate_comparison, safety),
        research_agent=make_research_stage(agent),
        composer=compose_picks,
        version=SkillVersion(1, 1, 0),
    )
