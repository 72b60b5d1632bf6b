"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any, Optional, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from labbcat_cli.api.envelope import CallOutcome
from labbcat_cli.models.match_id import MatchId
from labbcat_cli.models.task import TaskStatus


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Run `labbcat-cli init <BASE_URL> <USERNAME>` to create a configuration.",
            "• Check the base URL starts with http:// or https://.",
            "• Use `labbcat-cli --show-config` to review the current settings.",
        ],
        "TransportError": [
            "• The server could not be reached or refused the request.",
            "• Check your user name and password.",
        ],
        "TaskTimeoutError": [
            "• The server is still working; try a longer --wait.",
            "• Use `labbcat-cli task <ID> --wait 0` to wait for as long as it takes.",
        ],
        "ClientConnectorError": [
            "• A network connection issue occurred.",
            "• Check the base URL in your configuration.",
        ],
        "TimeoutError": [
            "• The server took too long to respond.",
            "• Increase timeout_seconds in the configuration file.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration, hiding sensitive data."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        if key == "password" and value:
            value = "<hidden>"
        content += f"{key} = {value if value is not None else ''}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_outcome_problems(console: Console, outcome: CallOutcome) -> bool:
    """Prints an outcome's errors and messages. Returns True if there were no errors."""
    for message in outcome.messages or []:
        console.print(f"[dim]{outcome.call}:[/dim] {escape(str(message))}")
    for error in outcome.errors or []:
        target = f" ({outcome.item_id})" if outcome.item_id else ""
        console.print(f"[red]✗ {outcome.call}{escape(target)}: {escape(str(error))}[/red]")
    return outcome.ok


def print_store_info(
    console: Console,
    base_url: str,
    store_id: Any,
    layer_ids: Optional[Sequence[str]],
    corpus_ids: Optional[Sequence[str]],
):
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()
    table.add_row("Store ID:", str(store_id) if store_id is not None else "?")
    table.add_row("Corpora:", ", ".join(corpus_ids or []) or "[dim]none[/dim]")
    table.add_row("Layers:", ", ".join(layer_ids or []) or "[dim]none[/dim]")

    console.print(
        Panel(table, title=f"[bold green]{base_url}[/bold green]", border_style="green")
    )


def print_task_status(console: Console, status: TaskStatus):
    """Displays a task's status on one line."""
    if status.running:
        state = "[yellow]running[/yellow]"
    else:
        state = "[green]finished[/green]"
    percent = (
        f" {status.percent_complete:.0f}%" if status.percent_complete is not None else ""
    )
    name = f" {status.thread_name}" if status.thread_name else ""
    console.print(
        f"Task [cyan]{status.thread_id}[/cyan]{name}: {state}{percent}"
        f"{' - ' + status.status if status.status else ''}"
    )


def print_matches_table(console: Console, name: Optional[str], matches: Sequence[dict]):
    """Displays search results as a concordance."""
    table = Table(title=name or "Matches", box=box.SIMPLE_HEAVY)
    table.add_column("Transcript", style="cyan")
    table.add_column("Participant", style="dim")
    table.add_column("Before", justify="right")
    table.add_column("Match", style="bold green")
    table.add_column("After")
    for match in matches:
        table.add_row(
            str(match.get("Transcript", "")),
            str(match.get("Participant", "")),
            str(match.get("BeforeMatch", "")),
            str(match.get("Text", "")),
            str(match.get("AfterMatch", "")),
        )
    console.print(table)
    console.print(f"[dim]{len(matches)} matches[/dim]")


def print_match_id(console: Console, text: str, match_id: MatchId):
    """Displays the fields of a parsed match ID."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    rows = [
        ("Transcript:", match_id.transcript_id),
        ("Utterance:", match_id.utterance_id),
        ("Participant:", match_id.participant_id),
        ("Start anchor:", match_id.start_anchor_id),
        ("End anchor:", match_id.end_anchor_id),
        ("Start offset:", match_id.start_offset),
        ("End offset:", match_id.end_offset),
        ("Target:", match_id.target_id),
        ("Prefix:", match_id.prefix),
    ]
    for label, value in rows:
        table.add_row(label, "[dim]-[/dim]" if value is None else escape(str(value)))

    console.print(Panel(table, title=f"[bold]{escape(text)}[/bold]", border_style="cyan"))


def print_file_results(
    console: Console, labels: Sequence[str], paths: Optional[Sequence[Optional[str]]]
):
    """Displays one line per downloaded fragment, in input order."""
    paths = paths or [None] * len(labels)
    for label, path in zip(labels, paths):
        if path:
            console.print(f"[green]✓[/green] {label} → [dim]{path}[/dim]")
        else:
            console.print(f"[red]✗[/red] {label}")
