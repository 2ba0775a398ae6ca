"""
finassist - Command Line Interface

Diagnostic CLI for the skill-routing cascade. Built with Typer for the
command surface and Rich for output.

Usage:
    $ finassist --help
    $ finassist status
    $ finassist intent "how much did I spend on groceries?"
    $ finassist skills list
    $ finassist skills ask "What is a HYSA?"
    $ finassist skills test CD "If I put $5000 in a 12 month CD"

Sub-command Groups:
    skills - Inspect and exercise registered skills

For detailed help on any command:
    $ finassist <command> --help
    $ finassist <group> <command> --help
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.panel import Panel

from finassist import __version__
from finassist.config.settings import settings

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="finassist",
    help="finassist - personal-finance skill engine",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)

skills_app = typer.Typer(
    name="skills",
    help="Inspect and exercise registered skills",
    no_args_is_help=True,
)

app.add_typer(skills_app, name="skills")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"finassist version {__version__}")
        raise typer.Exit()


def verbose_callback(value: bool) -> None:
    """Set verbose mode."""
    if value:
        logging.basicConfig(level=logging.DEBUG)


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        callback=verbose_callback,
        help="Log cascade tracing at debug level.",
    ),
) -> None:
    """
    finassist - personal-finance skill engine

    Answers common finance questions deterministically before a host
    falls back to its generative model.
    """
    # No-op when --verbose already configured logging.
    logging.basicConfig(level=settings.LOG_LEVEL)


@app.command()
def status(
    format: str = typer.Option(
        "table",
        "--format",
        "-f",
        help="Output format: table, json.",
    ),
) -> None:
    """
    Show engine configuration and registered skills.
    """
    from finassist.cli.output import print_json, print_key_value
    from finassist.skills.engine import ENGINE_VERSION
    from finassist.skills.packs import builtin_skills

    skills = builtin_skills()
    data = {
        "version": __version__,
        "engine_version": ENGINE_VERSION,
        "skills": [s.id for s in skills],
        "timeout_ms": settings.SKILL_TIMEOUT_MS,
        "min_usefulness": settings.SKILL_MIN_USEFULNESS,
        "cache": {
            "enabled": settings.ENABLE_CACHING,
            "ttl_ms": settings.SKILL_CACHE_TTL_MS,
            "max_size": settings.SKILL_CACHE_MAX_SIZE,
        },
        "circuit_breaker": {
            "enabled": settings.ENABLE_CIRCUIT_BREAKER,
            "failure_threshold": settings.CIRCUIT_FAILURE_THRESHOLD,
            "cooldown_ms": settings.CIRCUIT_COOLDOWN_MS,
        },
        "metrics": {
            "enabled": settings.ENABLE_METRICS,
            "retention_days": settings.METRICS_RETENTION_DAYS,
        },
        "research_search_configured": bool(settings.RESEARCH_SEARCH_URL),
    }

    if format == "json":
        print_json(data)
        return

    console.print(Panel.fit(
        f"[bold green]Engine {ENGINE_VERSION}[/bold green]",
        title=f"finassist {__version__}",
    ))
    print_key_value([
        ("Skills", ", ".join(data["skills"])),
        ("Stage timeout", f"{settings.SKILL_TIMEOUT_MS:.0f} ms"),
        ("Min usefulness", settings.SKILL_MIN_USEFULNESS),
        ("Cache", "on" if settings.ENABLE_CACHING else "off"),
        ("Circuit breaker", "on" if settings.ENABLE_CIRCUIT_BREAKER else "off"),
        ("Metrics", "on" if settings.ENABLE_METRICS else "off"),
        ("Research search", "configured" if data["research_search_configured"] else "not configured"),
    ])


@app.command()
def intent(
    text: str = typer.Argument(..., help="Question to classify."),
) -> None:
    """
    Classify a question into a coarse intent.
    """
    from rich.markup import escape

    from finassist.cognition.intents import IntentClassifier

    match = IntentClassifier().classify(text)
    console.print(f"[cyan]{match.intent.value}[/cyan]")
    if match.matched_pattern:
        console.print(f"[dim]matched {escape(match.matched_pattern)}[/dim]", highlight=False)


def _register_subcommands() -> None:
    """Register all subcommand modules."""
    from finassist.cli import skills  # noqa: F401


_register_subcommands()

__all__ = [
    "app",
    "skills_app",
    "console",
    "err_console",
]


def cli() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    cli()
