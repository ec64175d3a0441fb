"""Rich terminal reporter for host lookups."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table
from rich.text import Text

from httpsify.lookup import LookupResult
from httpsify.rules.models import RuleSet


def _state_pill(ruleset: RuleSet) -> Text:
    if ruleset.active:
        return Text(" ON ", style="bold white on green")
    return Text(" OFF ", style="bold black on bright_black")


def render(result: LookupResult, *, console: Console | None = None) -> None:
    """Print a lookup result to the terminal using Rich."""
    console = console or Console(stderr=True)

    console.print()
    if not result.rulesets:
        console.print(f"[yellow]No rulesets cover {result.host}.[/yellow]")
    else:
        table = Table(
            title=f"Rulesets for {result.host}",
            show_lines=True,
            title_style="bold",
            border_style="dim",
        )
        table.add_column("State", justify="center", width=7)
        table.add_column("Ruleset", style="cyan", min_width=20)
        table.add_column("Targets", style="magenta")
        table.add_column("Rules", justify="right", style="green")
        table.add_column("Note", style="dim")

        for ruleset in result.rulesets:
            table.add_row(
                _state_pill(ruleset),
                ruleset.display_name,
                ", ".join(ruleset.targets),
                str(len(ruleset.rules)),
                ruleset.note or "-",
            )
        console.print(table)

    if result.url is not None:
        console.print()
        if result.upgraded:
            console.print(f"[bold green]✓ {result.url}[/bold green]")
            console.print(f"  [green]→ {result.rewritten}[/green]")
        else:
            console.print(f"[yellow]✗ {result.url} is not rewritten[/yellow]")

    console.print()
    console.print(f"[dim]Rulesets:[/dim]  {len(result.rulesets)}")
    console.print(f"[dim]Active:[/dim]    {len(result.active_rulesets)}")
    console.print(f"[dim]Duration:[/dim]  {result.duration_ms:.1f}ms")
