"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler

from labbcat_cli import __version__
from labbcat_cli.api.store import LabbcatAdmin, LabbcatEdit, LabbcatView
from labbcat_cli.exceptions import LabbcatCliError, TaskTimeoutError
from labbcat_cli.models.config import ClientConfig
from labbcat_cli.models.match_id import MatchId
from labbcat_cli.models.task import TaskStatus
from labbcat_cli.storage.config_manager import ConfigManager, default_config_path

from .formatters import (
    print_config,
    print_file_results,
    print_match_id,
    print_matches_table,
    print_outcome_problems,
    print_store_info,
    print_task_status,
)

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("labbcat_cli")

app = typer.Typer(
    name="labbcat-cli",
    help=(
        "Query, search and edit LaBB-CAT corpora from the command line. Use"
        " 'labbcat-cli <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)

CONFIG_FILE = default_config_path()

# -vv also traces every request the client makes
_state: dict[str, Any] = {"verbose": 0}


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-v for debug, -vv to trace requests).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """LaBB-CAT command line client"""
    if version:
        console.print(f"[bold]labbcat-cli[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    _state["verbose"] = verbose
    logging.getLogger("labbcat_cli").setLevel("DEBUG" if verbose >= 1 else "INFO")

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]labbcat-cli init[/cyan]"
                " first."
            )
            raise typer.Exit(code=1)
        config_manager = ConfigManager(CONFIG_FILE)
        config_manager._parser.read(CONFIG_FILE, encoding="utf-8")
        print_config(CONFIG_FILE, config_manager._get_config_as_dict())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


def _load_config() -> ClientConfig:
    cli_options = {"verbose": True} if _state["verbose"] >= 2 else None
    return ConfigManager(CONFIG_FILE).load_config(cli_options)


def _fail_on_errors(outcome) -> None:
    if not print_outcome_problems(console, outcome):
        raise typer.Exit(code=1)


async def _wait(store: LabbcatView, task_id: str, max_seconds: float) -> TaskStatus:
    with console.status(f"[cyan]Waiting for task {task_id}...[/cyan]"):
        outcome = await store.wait_for_task(task_id, max_seconds)
    _fail_on_errors(outcome)
    status = outcome.result
    if not isinstance(status, TaskStatus):
        raise LabbcatCliError(f"Task {task_id} not found.")
    if status.running:
        print_task_status(console, status)
        raise TaskTimeoutError(
            f"Task {task_id} was still running after {max_seconds} seconds."
        )
    return status


@app.command()
def init(
    base_url: str = typer.Argument(..., help="The LaBB-CAT server's home URL."),
    username: str = typer.Argument("", help="Your LaBB-CAT user name, if any."),
    password: str | None = typer.Option(
        None, "--password", help="Your password. Prompted for if omitted."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration without asking."
    ),
):
    """Initialize configuration with the server address and credentials."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    if username and password is None:
        password = typer.prompt("Password", hide_input=True)

    settings = {"base_url": base_url, "username": username, "password": password or ""}
    ConfigManager(CONFIG_FILE).save_new_config(settings)
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Try: [cyan]labbcat-cli info[/cyan]")


@app.command()
def info():
    """Show the store ID, corpora and layers."""
    config = _load_config()

    async def _info():
        async with LabbcatView.from_config(config) as store:
            id_outcome = await store.get_id()
            _fail_on_errors(id_outcome)
            layers = await store.get_layer_ids()
            corpora = await store.get_corpus_ids()
            print_outcome_problems(console, layers)
            print_outcome_problems(console, corpora)
            print_store_info(
                console, store.base_url, id_outcome.result, layers.result, corpora.result
            )

    asyncio.run(_info())


@app.command()
def search(
    pattern: str = typer.Argument(
        ...,
        help='Search pattern as JSON, e.g. \'{"orthography": "knox"}\'.',
    ),
    participants: list[str] | None = typer.Option(  # noqa: B008
        None, "-p", "--participant", help="Only search this participant's speech."
    ),
    wait: float = typer.Option(
        0, "--wait", help="Maximum seconds to wait for the search (0 for no limit)."
    ),
    words_context: int = typer.Option(
        0, "--words-context", help="Words of context either side of each match."
    ),
):
    """Search for tokens matching a pattern and list the matches."""
    try:
        search_pattern = json.loads(pattern)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"Invalid JSON: {e}", param_hint="PATTERN") from e

    config = _load_config()

    async def _search():
        async with LabbcatView.from_config(config) as store:
            outcome = await store.search(search_pattern, participant_ids=participants)
            _fail_on_errors(outcome)
            task_id = str(outcome.result["threadId"])
            log.debug(f"Search task {task_id} started")
            try:
                await _wait(store, task_id, wait)
                matches = await store.get_matches(task_id, words_context)
                _fail_on_errors(matches)
                result = matches.result or {}
                print_matches_table(console, result.get("name"), result.get("matches") or [])
            finally:
                await store.release_task(task_id)

    asyncio.run(_search())


@app.command()
def task(
    task_id: str = typer.Argument(..., help="The task ID."),
    wait: float | None = typer.Option(
        None, "--wait", help="Wait up to this many seconds (0 for no limit)."
    ),
    cancel: bool = typer.Option(False, "--cancel", help="Cancel the task."),
    release: bool = typer.Option(False, "--release", help="Release a finished task."),
):
    """Show, wait for, cancel or release a server task."""
    if sum([wait is not None, cancel, release]) > 1:
        raise typer.BadParameter("Use only one of --wait, --cancel and --release.")

    config = _load_config()

    async def _task():
        async with LabbcatView.from_config(config) as store:
            if cancel:
                _fail_on_errors(await store.cancel_task(task_id))
                console.print(f"[green]✓ Task {task_id} cancelled.[/green]")
            elif release:
                _fail_on_errors(await store.release_task(task_id))
                console.print(f"[green]✓ Task {task_id} released.[/green]")
            elif wait is not None:
                print_task_status(console, await _wait(store, task_id, wait))
            else:
                outcome = await store.task_status(task_id)
                _fail_on_errors(outcome)
                print_task_status(console, TaskStatus.model_validate(outcome.result))

    asyncio.run(_task())


@app.command()
def fragments(
    match_ids: list[str] = typer.Argument(  # noqa: B008
        ..., help="Match IDs with offsets, e.g. 'g_6;em_11_419;n_7-n_8;p_4;#=ew_0_1;[0]=ew_0_1;39.4-46.2'."
    ),
    directory: Path | None = typer.Option(
        None, "--dir", "-d", help="Where to save the fragments."
    ),
    layers: list[str] | None = typer.Option(  # noqa: B008
        None, "--layer", "-l", help="Layers to include in text fragments."
    ),
    mime_type: str = typer.Option(
        "text/praat-textgrid", "--mime-type", help="Format of text fragments."
    ),
    sound: bool = typer.Option(False, "--sound", help="Download WAV audio instead."),
    sample_rate: int | None = typer.Option(
        None, "--sample-rate", help="Sample rate of WAV fragments."
    ),
):
    """Download sound or transcript fragments for search matches."""
    parsed = [MatchId.parse(m) for m in match_ids]
    for text, match_id in zip(match_ids, parsed):
        if not match_id.has_offsets:
            raise typer.BadParameter(f"'{text}' has no start/end offsets.")

    config = _load_config()
    target_dir = directory or config.fragment_dir

    async def _fragments():
        transcript_ids = [m.transcript_id for m in parsed]
        starts = [m.start_offset for m in parsed]
        ends = [m.end_offset for m in parsed]
        async with LabbcatView.from_config(config) as store:
            if sound:
                outcome = await store.get_sound_fragments(
                    transcript_ids, starts, ends, sample_rate, directory=target_dir
                )
            else:
                outcome = await store.get_fragments(
                    transcript_ids, starts, ends, layers or [], mime_type, directory=target_dir
                )
        labels = [str(m) for m in parsed]
        print_file_results(console, labels, outcome.result)
        _fail_on_errors(outcome)

    asyncio.run(_fragments())


@app.command(name="match-id")
def match_id(text: str = typer.Argument(..., help="The match ID to interpret.")):
    """Show the parts of a match ID (works offline)."""
    print_match_id(console, text, MatchId.parse(text))


@app.command()
def upload(
    transcript: Path = typer.Argument(..., help="The transcript file."),
    media: list[Path] | None = typer.Option(  # noqa: B008
        None, "--media", "-m", help="Media files for the transcript."
    ),
    media_suffix: str = typer.Option("", "--media-suffix", help="Media track suffix."),
    transcript_type: str = typer.Option(..., "--type", help="The transcript type."),
    corpus: str = typer.Option(..., "--corpus", help="The corpus to add it to."),
    episode: str | None = typer.Option(None, "--episode", help="The episode name."),
    wait: float | None = typer.Option(
        None, "--wait", help="Wait up to this many seconds for annotation to finish."
    ),
):
    """Upload a new transcript with its media."""
    config = _load_config()

    async def _upload():
        async with LabbcatEdit.from_config(config) as store:
            outcome = await store.new_transcript(
                transcript, media, media_suffix, transcript_type, corpus, episode
            )
            _fail_on_errors(outcome)
            console.print(
                f"[green]✓ Uploaded {outcome.item_id}[/green] (task {outcome.result})"
            )
            if wait is not None and outcome.result:
                print_task_status(console, await _wait(store, str(outcome.result), wait))

    asyncio.run(_upload())


@app.command()
def delete(
    transcript_ids: list[str] = typer.Argument(..., help="Transcripts to delete."),  # noqa: B008
    force: bool = typer.Option(
        False, "--force", "-f", help="Bypass the confirmation prompt."
    ),
):
    """Delete transcripts and their media."""
    if not force and not typer.confirm(
        f"Delete {len(transcript_ids)} transcript(s)? This cannot be undone."
    ):
        console.print("[yellow]Operation cancelled.[/yellow]")
        raise typer.Abort()

    config = _load_config()

    async def _delete() -> int:
        failures = 0
        async with LabbcatEdit.from_config(config) as store:
            for transcript_id in transcript_ids:
                outcome = await store.delete_transcript(transcript_id)
                if print_outcome_problems(console, outcome):
                    console.print(f"[green]✓ Deleted {transcript_id}[/green]")
                else:
                    failures += 1
        return failures

    if asyncio.run(_delete()):
        raise typer.Exit(code=1)


@app.command()
def corpora(
    page: int | None = typer.Option(None, "--page", help="Zero-based page to list."),
    page_length: int | None = typer.Option(None, "--page-length", help="Records per page."),
):
    """List corpus records (requires admin access)."""
    config = _load_config()

    async def _corpora():
        async with LabbcatAdmin.from_config(config) as store:
            outcome = await store.read_corpora(page, page_length)
            _fail_on_errors(outcome)
            for record in outcome.result or []:
                console.print(
                    f"[cyan]{record.get('corpus_name')}[/cyan] "
                    f"[dim]({record.get('corpus_language') or '?'})[/dim] "
                    f"{record.get('corpus_description') or ''}"
                )

    asyncio.run(_corpora())
