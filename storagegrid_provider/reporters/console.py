"""Console reporter using Rich library for formatted CLI output.

Renders bucket listings as a table, single objects as an attribute
table, and diagnostics as colored error and warning lines.
"""

import json
from typing import Any, Optional

from rich import box
from rich.console import Console
from rich.rule import Rule
from rich.table import Table

from storagegrid_provider.models import CommandOutcome, OutcomeStatus
from storagegrid_provider.reporters.base import Reporter


def _cell(value: Any) -> str:
    if value is None:
        return "[dim]-[/dim]"
    if isinstance(value, bool):
        return "[green]yes[/green]" if value else "no"
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True)
    return str(value)


class ConsoleReporter(Reporter):
    """Rich-based console reporter for CLI output.

    Args:
        quiet: If True, only print diagnostics and failures
        console: Console to print to (a new one by default)
    """

    def __init__(self, quiet: bool = False, console: Optional[Console] = None):
        # Use legacy_windows=True for ASCII-safe output on Windows consoles
        self.console = console or Console(legacy_windows=True)
        self.quiet = quiet

    def on_command_start(self, command: str, target: Optional[str]) -> None:
        if self.quiet:
            return
        title = f"{command} {target}" if target else command
        self.console.print(Rule(f"[bold cyan]{title}[/bold cyan]", style="cyan", characters="-"))

    def on_command_complete(self, outcome: CommandOutcome) -> None:
        for diagnostic in outcome.diagnostics:
            if diagnostic["severity"] == "error":
                self.console.print(f"[red][ERROR][/red] {diagnostic['summary']}")
            else:
                self.console.print(f"[yellow][WARNING][/yellow] {diagnostic['summary']}")
            if diagnostic.get("detail"):
                self.console.print(f"     [dim]{diagnostic['detail']}[/dim]")

        if outcome.error_message and not outcome.diagnostics:
            self.console.print(f"[red][ERROR][/red] {outcome.error_message}")

        if outcome.command == "policy-diff":
            if outcome.status == OutcomeStatus.OK:
                self.console.print("[bold green]Policies are equivalent[/bold green]")
            elif outcome.status == OutcomeStatus.DIFFERS:
                self.console.print("[bold red]Policies differ[/bold red]")
            return

        if self.quiet or outcome.data is None:
            return

        if isinstance(outcome.data, list):
            self._print_bucket_table(outcome.data)
        else:
            self._print_attributes(outcome.data)

    def _print_bucket_table(self, buckets: list[dict]) -> None:
        if not buckets:
            self.console.print("[yellow]No buckets found.[/yellow]")
            return

        table = Table(show_header=True, header_style="bold magenta", border_style="dim", box=box.ASCII)
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Region", no_wrap=True)
        table.add_column("Object Lock", justify="center", no_wrap=True)

        for bucket in buckets:
            table.add_row(
                bucket["name"],
                bucket["region"],
                _cell(bucket["object_lock_enabled"]),
            )
        self.console.print(table)

    def _print_attributes(self, data: dict) -> None:
        table = Table(show_header=True, header_style="bold magenta", border_style="dim", box=box.ASCII)
        table.add_column("Attribute", style="cyan", no_wrap=True)
        table.add_column("Value")

        for key, value in data.items():
            table.add_row(key, _cell(value))
        self.console.print(table)

    def on_run_complete(self, outcomes: list[CommandOutcome]) -> None:
        if self.quiet:
            return
        failed = [o for o in outcomes if o.status == OutcomeStatus.ERROR]
        if failed:
            self.console.print(f"[bold red]{len(failed)} command(s) failed[/bold red]")
