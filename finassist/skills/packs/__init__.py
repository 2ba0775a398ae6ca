"""
Bundled finance skill packs.

Packs included:
- HYSA: high-yield savings accounts (priority 10)
- CD: certificates of deposit (priority 8)

Usage:
    from finassist.skills import SkillRegistry
    from finassist.skills.packs import register_builtin_skills

    registry = SkillRegistry()
    register_builtin_skills(registry)
"""

from __future__ import annotations

from typing import Optional

from ..base import Skill
from ..registry import SkillRegistry
from ..research import WebFns
from ..tester import SkillTestCase, SkillTestSuite
from .cd import build_cd_skill
from .hysa import build_hysa_skill


def builtin_skills(
    hysa_web_fns: Optional[WebFns] = None,
    cd_web_fns: Optional[WebFns] = None,
) -> list[Skill]:
    """Fresh instances of every bundled skill.

    Each pack's research agent uses the HTTP transport unless a transport is
    passed for it.
    """
    return [build_hysa_skill(hysa_web_fns), build_cd_skill(cd_web_fns)]


def register_builtin_skills(
    registry: SkillRegistry,
    hysa_web_fns: Optional[WebFns] = None,
    cd_web_fns: Optional[WebFns] = None,
) -> list[str]:
    """Register every bundled skill; returns the ids actually added."""
    return [
        s.id for s in builtin_skills(hysa_web_fns, cd_web_fns)
        if registry.register(s)
    ]


def builtin_smoke_suite() -> SkillTestSuite:
    """Offline checks that the bundled packs still answer their basics."""
    return SkillTestSuite(
        name="builtin-smoke",
        description="Local answers from the bundled packs; no research",
        cases=[
            SkillTestCase(
                "hysa_basics", "What is a HYSA?", skill_id="HYSA",
                contains_text=("High-Yield Savings Account",),
            ),
            SkillTestCase(
                "hysa_interest", "If I put $3000 in a HYSA", skill_id="HYSA",
                contains_text=("$11.25",), expected_pattern="HYSA_INTEREST_ESTIMATOR",
            ),
            SkillTestCase(
                "cd_basics", "What is a certificate of deposit?", skill_id="CD",
                contains_text=("Certificate of Deposit (CD)",),
            ),
            SkillTestCase(
                "cd_interest", "If I put $5000 in a 12 month CD", skill_id="CD",
                contains_text=("$225.00",), expected_pattern="CD_INTEREST_ESTIMATOR",
            ),
            SkillTestCase("off_topic", "What is the weather like?", expect_answer=False),
        ],
    )


__all__ = [
    "build_cd_skill",
    "build_hysa_skill",
    "builtin_skills",
    "builtin_smoke_suite",
    "register_builtin_skills",
]
