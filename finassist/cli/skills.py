"""
finassist CLI - Skill Commands

Commands:
    list  - List registered skills
    ask   - Run the full cascade for a question
    test  - Run one skill in isolation
    check - Run the bundled smoke suite
"""

from __future__ import annotations

import asyncio
from typing import Optional

import typer
from rich.table import Table

from finassist.assistant.schema import ChatContext
from finassist.cli import console, skills_app
from finassist.skills.engine import SkillEngine
from finassist.skills.packs import register_builtin_skills
from finassist.skills.packs.hysa import CONSENT_ACTION
from finassist.skills.registry import SkillRegistry


def _engine() -> SkillEngine:
    registry = SkillRegistry()
    register_builtin_skills(registry)
    return SkillEngine(registry)


def _context(user_id: Optional[str], currency: str, allow_research: bool) -> ChatContext:
    return ChatContext(
        user_profile={"user_id": user_id} if user_id else {},
        currency=currency,
        session_actions=(CONSENT_ACTION,) if allow_research else (),
    )


@skills_app.command("list")
def list_skills(
    format: str = typer.Option(
        "table",
        "--format",
        "-f",
        help="Output format: table, json.",
    ),
) -> None:
    """
    List registered skills, highest priority first.
    """
    from finassist.cli.output import print_json

    skills = _engine().registry.list_all()

    if format == "json":
        print_json({"skills": skills})
        return

    table = Table(title="finassist skills")
    table.add_column("ID", style="cyan")
    table.add_column("Priority", justify="right")
    table.add_column("Min usefulness", justify="right")
    table.add_column("Version")
    table.add_column("Description", max_width=40)

    for info in skills:
        table.add_row(
            info["id"],
            str(info["priority"]),
            f"{info['min_usefulness']:.1f}",
            info["version"],
            info["description"],
        )

    console.print(table)
    console.print()
    console.print(f"[dim]Total: {len(skills)} skills[/dim]")


@skills_app.command("ask")
def ask(
    question: str = typer.Argument(..., help="Question to answer."),
    user_id: Optional[str] = typer.Option(
        None,
        "--user",
        "-u",
        help="User id recorded in metrics.",
    ),
    currency: str = typer.Option(
        "USD",
        "--currency",
        help="Currency for amounts.",
    ),
    allow_research: bool = typer.Option(
        False,
        "--allow-research",
        help="Grant consent for live rate lookups.",
    ),
    json_output: bool = typer.Option(False, "--json", help="Print the response as JSON."),
) -> None:
    """
    Run the skill cascade for QUESTION.

    Exits with code 1 when no skill produces a useful answer, which is
    when a host would fall back to its generative model.
    """
    from finassist.cli.output import print_json, print_response, print_warning

    engine = _engine()
    response = asyncio.run(
        engine.try_skills(question, _context(user_id, currency, allow_research))
    )

    if response is None:
        if json_output:
            print_json({"answered": False, "response": None})
        else:
            print_warning("No skill answered; the host would fall back to its model.")
        raise typer.Exit(1)

    if json_output:
        print_json({"answered": True, "response": response.to_dict()})
    else:
        print_response(response)


@skills_app.command("test")
def test_skill(
    skill_id: str = typer.Argument(..., help="Skill id, e.g. HYSA."),
    question: str = typer.Argument(..., help="Question to run the skill against."),
    user_id: Optional[str] = typer.Option(
        None,
        "--user",
        "-u",
        help="User id recorded in metrics.",
    ),
    currency: str = typer.Option(
        "USD",
        "--currency",
        help="Currency for amounts.",
    ),
    allow_research: bool = typer.Option(
        False,
        "--allow-research",
        help="Grant consent for live rate lookups.",
    ),
    json_output: bool = typer.Option(False, "--json", help="Print the result as JSON."),
) -> None:
    """
    Run one skill in isolation, bypassing its match predicate.
    """
    from finassist.cli.output import print_error, print_execution, print_json, print_warning

    engine = _engine()
    if skill_id not in engine.registry:
        print_error(
            f"Skill '{skill_id}' not found",
            hint=f"Registered: {', '.join(engine.registry.list_ids())}",
        )
        raise typer.Exit(1)

    result = asyncio.run(
        engine.test_skill(skill_id, question, _context(user_id, currency, allow_research))
    )

    if result is None:
        if json_output:
            print_json({"skill_id": skill_id, "result": None})
        else:
            print_warning(f"Skill '{skill_id}' produced no response.")
        raise typer.Exit(1)

    if json_output:
        print_json({"skill_id": skill_id, "result": result.to_dict(include_response=True)})
    else:
        print_execution(result)


@skills_app.command("check")
def check(
    json_output: bool = typer.Option(False, "--json", help="Print the report as JSON."),
) -> None:
    """
    Run the bundled smoke suite against the built-in skills.

    Exits with code 1 when any case fails.
    """
    from finassist.cli.output import print_json, print_success, print_warning
    from finassist.skills.packs import builtin_smoke_suite
    from finassist.skills.tester import SkillTester

    suite = builtin_smoke_suite()
    tester = SkillTester(_engine())
    tester.register_test_suite(suite)
    report = asyncio.run(tester.run_test_suite(suite.name))

    if json_output:
        print_json(report.to_dict())
    else:
        table = Table(title=f"Suite: {report.suite_name}")
        table.add_column("Case", style="cyan")
        table.add_column("Skill")
        table.add_column("Result")
        table.add_column("Notes", max_width=50)
        for r in report.results:
            table.add_row(
                r.name,
                r.skill_id or "-",
                "[green]pass[/green]" if r.passed else "[red]fail[/red]",
                "; ".join(r.failures),
            )
        console.print(table)
        console.print(f"[dim]Coverage: {report.coverage:.0f}% of registered skills[/dim]")
        if report.failed_tests:
            print_warning(f"{report.failed_tests} of {report.total_tests} cases failed")
        else:
            print_success(f"All {report.total_tests} cases passed")

    if report.failed_tests:
        raise typer.Exit(1)
