"""
finassist CLI - Rich Output Helpers

Consistent command-line output for the diagnostic CLI.

Functions:
    print_json      - Print formatted JSON
    print_error     - Print error message
    print_success   - Print success message
    print_warning   - Print warning message
    print_key_value - Print aligned key-value pairs
    print_response  - Render a ChatResponse (message, cards, actions, sources)
    print_execution - Render a SkillExecutionResult
"""

from __future__ import annotations

import json
from typing import Any, Optional

from rich.console import Console
from rich.json import JSON
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from finassist.assistant.schema import ChatResponse
from finassist.skills.base import SkillExecutionResult

console = Console()
err_console = Console(stderr=True)


def print_json(
    data: dict | list,
    indent: int = 2,
    highlight: bool = True,
) -> None:
    """
    Print formatted JSON.

    Args:
        data: Data to print as JSON
        indent: Indentation level
        highlight: Whether to syntax highlight
    """
    json_str = json.dumps(data, indent=indent, default=str)
    if highlight:
        console.print(JSON(json_str))
    else:
        console.print(json_str, markup=False)


def print_error(
    message: str,
    hint: Optional[str] = None,
) -> None:
    """
    Print error message.

    Args:
        message: Error message
        hint: Optional hint for resolving the error
    """
    err_console.print(f"[bold red]Error:[/bold red] {escape(message)}")
    if hint:
        err_console.print(f"[yellow]Hint:[/yellow] {escape(hint)}")


def print_success(message: str) -> None:
    console.print(f"[bold green]Success:[/bold green] {escape(message)}")


def print_warning(message: str) -> None:
    console.print(f"[bold yellow]Warning:[/bold yellow] {escape(message)}")


def print_key_value(
    items: list[tuple[str, Any]],
    title: Optional[str] = None,
    key_style: str = "cyan",
) -> None:
    """
    Print key-value pairs in a formatted list.

    Args:
        items: List of (key, value) tuples
        title: Optional title
        key_style: Style for keys
    """
    if title:
        console.print(f"[bold]{title}[/bold]")
        console.print()

    width = max(len(str(k)) for k, _ in items) if items else 0
    for key, value in items:
        padded = str(key).ljust(width)
        console.print(f"  [{key_style}]{padded}[/{key_style}]: {escape(str(value))}")


def print_response(response: ChatResponse, title: str = "Answer") -> None:
    """
    Render a skill response the way a chat client would lay it out.

    Args:
        response: Response to render
        title: Panel title
    """
    console.print(Panel(Markdown(response.message), title=title))

    for card in response.cards:
        table = Table(title=card.title or card.kind.value)
        rows = card.data.get("rows") if isinstance(card.data, dict) else None
        if rows:
            columns = list(rows[0].keys())
            for col in columns:
                table.add_column(str(col))
            for row in rows:
                table.add_row(*(escape(str(row.get(c, ""))) for c in columns))
        else:
            table.add_column("Field", style="cyan")
            table.add_column("Value")
            for key, value in (card.data or {}).items():
                table.add_row(str(key), escape(str(value)))
        console.print(table)

    if response.actions:
        console.print("[bold]Actions:[/bold]")
        for action in response.actions:
            console.print(f"  - {escape(action.label)} [dim]({action.action.value})[/dim]")

    if response.sources:
        console.print("[bold]Sources:[/bold]")
        for source in response.sources:
            label = source.note or source.kind.value
            suffix = f" {source.url}" if source.url else ""
            console.print(f"  - {escape(label)}{escape(suffix)}")

    if response.cost is not None:
        console.print(
            f"[dim]{response.cost.model.value} ~{response.cost.est_tokens} tokens, "
            f"confidence {response.confidence}[/dim]"
        )


def print_execution(result: SkillExecutionResult) -> None:
    """Summarise one skill run, then render its response if there is one."""
    status = "[green]admitted[/green]" if result.success else "[red]rejected[/red]"
    if result.error:
        status = "[red]failed[/red]"
    print_key_value([
        ("Skill", result.skill_id),
        ("Step", result.step.value),
        ("Pattern", result.matched_pattern or "-"),
        ("Usefulness", f"{result.usefulness:.1f}"),
        ("Time", f"{result.execution_time_ms:.1f} ms"),
        ("Error", result.error or "-"),
    ])
    console.print(f"  Outcome: {status}")
    if result.response is not None:
        console.print()
        print_response(result.response, title=result.skill_id)
