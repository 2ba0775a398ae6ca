"""Tests for the bundled HYSA and CD skill packs."""

from __future__ import annotations

import pytest

from conftest import FakeWebFns

from finassist.assistant.schema import ActionKind, CardKind, ChatContext, ChatResponse, SourceKind
from finassist.skills import SkillEngine, SkillRegistry, SkillStep
from finassist.skills.engine import EngineConfig
from finassist.skills.packs import builtin_skills, register_builtin_skills
from finassist.skills.packs.cd import (
    build_cd_skill,
    extract_cd,
    interest_estimator as cd_interest,
    normalize_cd,
    score_cd,
    CdItem,
)
from finassist.skills.packs.common import (
    COMPLIANCE_NOTE,
    compliance_guard,
    money,
    parse_amount,
)
from finassist.skills.packs.hysa import (
    CONSENT_ACTION,
    HysaItem,
    advisor,
    build_hysa_skill,
    extract_hysa,
    general_knowledge,
    interest_estimator,
    normalize_hysa,
    rate_comparison,
    safety,
    score_hysa,
)
from finassist.skills.research import SearchHit

ALLY_PAGE = """<html><head><title>Ally Bank - Online Savings Account</title></head>
<body>Earn 4.20% APY. $0 minimum to open.
No monthly fees. Transfers in 1-2 business days. Use savings buckets.</body></html>"""

MARCUS_PAGE = """<html><head><title>Marcus | High Yield Savings</title></head>
<body>Get 4.40% APY with a $500 minimum deposit. Monthly fee $5.</body></html>"""

CD_PAGE = """<html><body>Ally Bank offers 4.75% APY on a 12-month CD with $0 minimum.
Discover Bank pays 5.10% APY on 18 month CDs.</body></html>"""


def _engine(*, hysa_web=None, cd_web=None) -> SkillEngine:
    registry = SkillRegistry()
    register_builtin_skills(registry, hysa_web_fns=hysa_web, cd_web_fns=cd_web)
    return SkillEngine(registry, config=EngineConfig(timeout_ms=2000, enable_caching=False))


def _hysa_web() -> FakeWebFns:
    return FakeWebFns(
        hits=[
            SearchHit("Ally", "https://www.ally.com/bank/online-savings-account/"),
            SearchHit("Marcus", "https://www.marcus.com/us/en/savings"),
            SearchHit("Blog", "https://someblog.example.com/best-hysa"),
        ],
        pages={
            "https://www.ally.com/bank/online-savings-account/": ALLY_PAGE,
            "https://www.marcus.com/us/en/savings": MARCUS_PAGE,
        },
        extract=extract_hysa,
    )


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

class TestCommon:
    def test_money(self):
        assert money(1234.5) == "$1,234.50"
        assert money(10, "EUR") == "EUR 10.00"

    @pytest.mark.parametrize(
        "text,expected",
        [("5,000", 5000.0), ("1500.50", 1500.5), ("3000.", 3000.0), ("0", None), ("abc", None)],
    )
    def test_parse_amount(self, text, expected):
        assert parse_amount(text) == expected

    def test_compliance_guard_appends_once(self):
        response = compliance_guard(ChatResponse(message="Top picks"))
        assert response.message.endswith(COMPLIANCE_NOTE)
        assert compliance_guard(response).message.count(COMPLIANCE_NOTE) == 1


# ---------------------------------------------------------------------------
# HYSA
# ---------------------------------------------------------------------------

class TestHysaMicroSolvers:
    def test_interest_estimator(self):
        step = interest_estimator("If I put $3000 in a HYSA, how much interest?", ChatContext())
        assert step.matched_pattern == "HYSA_INTEREST_ESTIMATOR"
        assert "$11.25 - $12.50" in step.response.message
        assert "$135.00 - $150.00" in step.response.message
        assert step.usefulness >= 3

    def test_interest_estimator_uses_context_currency(self):
        step = interest_estimator("deposit 1000 in a HYSA", ChatContext(currency="EUR"))
        assert "EUR 1,000.00" in step.response.message

    def test_interest_estimator_ignores_other_questions(self):
        assert interest_estimator("What is a HYSA?", ChatContext()) is None

    def test_advisor(self):
        step = advisor("Can you recommend a high yield savings account?", ChatContext())
        assert step.matched_pattern == "HYSA_CRITERIA"
        assert "FDIC/NCUA insured" in step.response.message

    def test_general_knowledge(self):
        step = general_knowledge("What is a HYSA?", ChatContext())
        assert step.matched_pattern == "HYSA_GENERAL_KNOWLEDGE"
        assert step.response.sources[0].kind is SourceKind.LOCAL_ML

    def test_rate_comparison(self):
        step = rate_comparison("compare rates for hysa accounts", ChatContext())
        assert step.matched_pattern == "HYSA_RATE_COMPARISON"
        assert step.response.actions[0].action is ActionKind.FETCH_HYSA_PICKS

    def test_safety(self):
        step = safety("Is my money safe in a savings account?", ChatContext())
        assert step.matched_pattern == "HYSA_SAFETY_SECURITY"
        assert "FDIC" in step.response.message


class TestHysaResearch:
    def test_extract_ally_page(self):
        raw = extract_hysa(ALLY_PAGE)
        assert raw["bank"] == "Ally Bank"
        assert raw["apy"] == 4.20
        assert raw["min_balance"] == 0.0
        assert raw["fees"].lower().startswith("no monthly fee")
        assert raw["ach_speed"] == "1-2d"
        assert raw["buckets"] is True

    def test_extract_marcus_page(self):
        raw = extract_hysa(MARCUS_PAGE)
        assert raw["bank"] == "Marcus"
        assert raw["apy"] == 4.40
        assert raw["min_balance"] == 500.0
        assert raw["buckets"] is False

    def test_normalize_requires_apy(self):
        assert normalize_hysa("https://x.com", {"apy": None}) is None
        item = normalize_hysa("https://www.ally.com/x", {"apy": 4.0})
        assert item.bank == "ally.com"

    def test_score_prefers_no_fees_and_no_minimum(self):
        cheap = HysaItem("A", "HYSA", "u", apy=4.0, min_balance=0, fees="no monthly fee")
        costly = HysaItem("B", "HYSA", "u", apy=4.0, min_balance=500, fees="monthly fee $5")
        assert score_hysa(cheap, "best") > score_hysa(costly, "best")

    @pytest.mark.asyncio
    async def test_criteria_question_answers_without_fetching(self):
        web = _hysa_web()
        engine = _engine(hysa_web=web)

        response = await engine.try_skills("What should I look for in a bank account?", ChatContext())

        assert "What to look for" in response.message
        assert web.queries == []

    @pytest.mark.asyncio
    async def test_picks_need_consent(self):
        web = _hysa_web()
        engine = _engine(hysa_web=web)

        response = await engine.try_skills("best bank for savings", ChatContext())

        assert response.actions[0].action is ActionKind.FETCH_HYSA_PICKS
        assert web.queries == []

    @pytest.mark.asyncio
    async def test_picks_with_consent_are_composed(self):
        web = _hysa_web()
        engine = _engine(hysa_web=web)
        ctx = ChatContext(session_actions=(CONSENT_ACTION,))

        response = await engine.try_skills("best bank for savings", ctx)

        assert "Top HYSA picks" in response.message
        assert response.message.index("Ally Bank") < response.message.index("Marcus")
        assert response.cards[0].kind is CardKind.COMPARISON
        assert [s.kind for s in response.sources] == [SourceKind.WEB, SourceKind.WEB]
        assert response.message.endswith(COMPLIANCE_NOTE)
        assert "https://someblog.example.com/best-hysa" not in web.fetched

        attempts = engine.metrics.get_skill_metrics("HYSA")
        assert attempts.success_count == 1

    @pytest.mark.asyncio
    async def test_no_data_is_below_threshold(self):
        web = FakeWebFns(hits=[], pages={}, extract=extract_hysa)
        engine = _engine(hysa_web=web)
        ctx = ChatContext(session_actions=(CONSENT_ACTION,))

        assert await engine.try_skills("best bank for savings", ctx) is None

        result = await engine.test_skill("HYSA", "best bank for savings", ctx)
        assert result.matched_pattern == "HYSA_NO_DATA"
        assert result.usefulness == 2

    @pytest.mark.asyncio
    async def test_search_failure_reports_error(self):
        class DownWeb(FakeWebFns):
            async def search(self, query, recency_days=30):
                raise RuntimeError("search backend down")

        engine = _engine(hysa_web=DownWeb([], {}, extract_hysa))
        ctx = ChatContext(session_actions=(CONSENT_ACTION,))

        result = await engine.test_skill("HYSA", "best bank for savings", ctx)

        assert result.step is SkillStep.RESEARCH_AGENT
        assert result.matched_pattern == "HYSA_ERROR"
        assert result.error is None


# ---------------------------------------------------------------------------
# CD
# ---------------------------------------------------------------------------

class TestCd:
    def test_interest_estimator(self):
        step = cd_interest("If I put $10,000 in a 6 month CD", ChatContext())
        assert "$225.00 - $275.00" in step.response.message
        assert step.matched_pattern == "CD_INTEREST_ESTIMATOR"

    def test_extract_picks_best_offer(self):
        raw = extract_cd(CD_PAGE)
        assert raw["apy"] == 5.10
        assert raw["bank"] == "Discover Bank"
        assert raw["term_months"] == 18

    def test_extract_first_offer_details(self):
        raw = extract_cd("Ally Bank offers 4.75% APY on a 12-month CD with $0 minimum.")
        assert raw == {"bank": "Ally Bank", "apy": 4.75, "term_months": 12, "min_deposit": 0.0}

    def test_extract_without_rates(self):
        assert extract_cd("<p>nothing here</p>") == {}

    def test_normalize_and_score(self):
        item = normalize_cd("https://www.ally.com/cd", {"apy": 4.5, "term_months": 12, "min_deposit": 0.0})
        assert item == CdItem("ally.com", 12, 4.5, "https://www.ally.com/cd", 0.0)
        assert score_cd(item, "best 12 month cd") == pytest.approx(4.5 + 0.4 + 0.3)

    @pytest.mark.parametrize(
        "term_months,query,bonus",
        [(36, "best 6 month cd", 0.0), (18, "best 6 month cd", 0.0),
         (6, "best 6 month cd", 0.4), (12, "best 9 month cd", 0.0)],
    )
    def test_term_bonus_needs_exact_term(self, term_months, query, bonus):
        item = CdItem("ally.com", term_months, 4.0, "https://www.ally.com/cd", 100.0)
        assert score_cd(item, query) == pytest.approx(4.0 + bonus)

    @pytest.mark.asyncio
    async def test_best_cd_research(self):
        web = FakeWebFns(
            hits=[SearchHit("Ally", "https://www.ally.com/cd")],
            pages={"https://www.ally.com/cd": CD_PAGE},
            extract=extract_cd,
        )
        engine = _engine(cd_web=web)

        response = await engine.try_skills("Which CD has the best rates?", ChatContext())

        assert "Top CD rates" in response.message
        assert "Discover Bank" in response.message
        assert response.sources[0].url == "https://www.ally.com/cd"

    @pytest.mark.asyncio
    async def test_what_is_a_cd(self):
        engine = _engine()
        response = await engine.try_skills("What is a certificate of deposit?", ChatContext())
        assert "Certificate of Deposit (CD)" in response.message


class TestBuiltins:
    def test_builtin_skills(self):
        skills = builtin_skills()
        assert [s.id for s in skills] == ["HYSA", "CD"]
        assert [s.priority for s in skills] == [10, 8]
        assert build_hysa_skill().composer is not None
        assert build_cd_skill().composer is None

    def test_register_builtin_skills_is_idempotent(self):
        registry = SkillRegistry()
        assert register_builtin_skills(registry) == ["HYSA", "CD"]
        assert register_builtin_skills(registry) == []
