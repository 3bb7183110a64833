"""Command-line interface for session-scrub.

Redacts secrets and personal data from AI-agent conversation exports and
verifies the result before it is shared.

Commands:
    redact     Redact a text file or a session JSON document
    scan       Post-redaction scan: report anything that still looks sensitive
    usernames  Show the identity strings that will be pseudonymized

Configuration:
    Supports config files: session-scrub.toml, .scrub.yml, etc.
    CLI flags override config file values.
"""

from __future__ import annotations

import json
import time
import traceback
from pathlib import Path

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from . import __version__
from .config import InputFormat, RedactionReport
from .config_loader import load_config, merge_cli_with_config, options_from_merged
from .redactor import Redactor
from .scanner import scan_for_remaining, summarize_hits
from .session import SessionFormatError, dump_session, is_session_document, parse_session
from .usernames import detect_usernames, hash_username, system_identity
from .utils import read_file_safe

# Initialize CLI app
app = typer.Typer(
    name="session-scrub",
    help="""Redact secrets and personal data from AI-agent chat transcripts.

Works on plain text exports and on normalized session JSON documents.
Every redaction run ends with a read-only re-scan of the output.

Examples:
    session-scrub redact session.json -o clean.json
    session-scrub redact notes.md --high-entropy -u my-handle
    session-scrub scan clean.json --strict
""",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


def create_spinner_progress() -> Progress:
    """Create a simple spinner progress for indeterminate tasks."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"session-scrub version {__version__}")
        raise typer.Exit()


def default_output_path(input_path: Path) -> Path:
    """Return ``<name>.redacted<suffix>`` next to the input file."""
    return input_path.with_name(f"{input_path.stem}.redacted{input_path.suffix}")


def detect_format(input_path: Path, content: str) -> InputFormat:
    """Treat .json files holding a ``messages`` list as sessions, everything else as text."""
    if input_path.suffix.lower() != ".json":
        return InputFormat.TEXT
    try:
        data = json.loads(content.lstrip("\ufeff"))
    except json.JSONDecodeError:
        return InputFormat.TEXT
    return InputFormat.SESSION if is_session_document(data) else InputFormat.TEXT


def print_redaction_summary(counts: dict[str, int]) -> None:
    """Print a table of redactions per category."""
    if not counts:
        console.print("[dim]No redactions applied.[/dim]")
        return

    table = Table(title="Redactions applied", show_header=True, header_style="cyan")
    table.add_column("Category")
    table.add_column("Count", justify="right")
    for name, count in counts.items():
        table.add_row(name, str(count))
    console.print(table)


def print_scan_hits(hits: list[str], limit: int) -> None:
    """Print post-redaction scan hits, at most ``limit`` of them."""
    if not hits:
        console.print("[green]✓[/green] No suspicious strings detected.")
        return

    console.print(
        f"[yellow]⚠  Post-redaction scan found {len(hits)} suspicious string(s) "
        f"- review before sharing:[/yellow]"
    )
    for hit in hits[:limit]:
        console.print(f"  • {hit}", markup=False, highlight=False, style="dim")
    if len(hits) > limit:
        console.print(f"  [dim]… and {len(hits) - limit} more[/dim]")

    summary = ", ".join(f"{name}: {count}" for name, count in summarize_hits(hits).items())
    console.print(f"  [dim]By category: {summary}[/dim]")


@app.command()
def redact(
    input_path: Path = typer.Argument(
        ...,
        help="Text file or session JSON document to redact.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Where to write the redacted copy. [default: <name>.redacted<ext>]",
    ),
    config_file: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file (session-scrub.toml or .scrub.yml).",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    input_format: InputFormat = typer.Option(
        InputFormat.AUTO,
        "--format",
        "-f",
        help="Input format: 'text', 'session' (JSON document) or 'auto'.",
    ),
    no_redact: bool = typer.Option(
        False,
        "--no-redact",
        help="Disable redaction (the post-redaction scan still runs).",
    ),
    high_entropy: bool | None = typer.Option(
        None,
        "--high-entropy/--no-high-entropy",
        help="Also redact high-entropy tokens. [default: off]",
    ),
    usernames: list[str] = typer.Option(
        [],
        "--username",
        "-u",
        help="Extra username or handle to pseudonymize (repeatable).",
    ),
    strings: list[str] = typer.Option(
        [],
        "--string",
        "-s",
        help="Literal string to redact (repeatable).",
    ),
    patterns: list[str] = typer.Option(
        [],
        "--pattern",
        "-p",
        help="Custom regular expression to redact (repeatable).",
    ),
    cwd: Path | None = typer.Option(
        None,
        "--cwd",
        help="Project directory whose git identity should also be pseudonymized.",
        exists=True,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
    report: Path | None = typer.Option(
        None,
        "--report",
        help="Write a JSON report of the run to this path.",
    ),
    scan_limit: int | None = typer.Option(
        None,
        "--scan-limit",
        help="Number of post-scan hits to print. [default: 5]",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Print tracebacks on errors.",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Redact secrets and personal data from a transcript.

    \b
    OUTPUT:
      The redacted copy is written next to the input unless --output is given.
      The written copy is re-scanned and anything still suspicious is listed.

    \b
    EXAMPLES:
      session-scrub redact session.json
      session-scrub redact transcript.md -o clean.md --high-entropy
      session-scrub redact session.json --cwd ~/code/project -u my-handle
    """
    start_time = time.time()

    try:
        project_config = load_config(Path.cwd(), config_file)
        if project_config._config_file:
            console.print(f"[dim]Using config: {project_config._config_file.name}[/dim]")

        merged = merge_cli_with_config(
            project_config,
            no_redact=no_redact,
            redact_high_entropy=high_entropy,
            usernames=usernames,
            strings=strings,
            patterns=patterns,
            scan_preview_limit=scan_limit,
        )

        if cwd is not None:
            # git display name, email local part and GitHub handle for the project
            merged["redact_usernames"] = detect_usernames(
                cwd, merged["redact_usernames"], identity=system_identity()
            )

        options = options_from_merged(merged)
        redactor = Redactor(options)

        content, _ = read_file_safe(input_path)
        fmt = detect_format(input_path, content) if input_format == InputFormat.AUTO else input_format

        with create_spinner_progress() as progress:
            task = progress.add_task("Redacting...", total=None)
            if fmt == InputFormat.SESSION:
                result = redactor.redact_session(parse_session(content))
                redacted_text = dump_session(result.session)
            else:
                redacted_text = redactor.redact(content).text
            progress.update(task, description="[green]✓[/green] Redaction complete")

        output_path = output or default_output_path(input_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(redacted_text, encoding="utf-8")

        if not options.enabled:
            console.print("[yellow]Redaction disabled - output is an unmodified copy.[/yellow]")

        stats = redactor.get_stats()
        console.print(f"[green]✓[/green] Wrote {output_path}")
        print_redaction_summary(stats)

        hits = scan_for_remaining(
            redacted_text,
            entropy_threshold=options.entropy_threshold,
            entropy_min_length=options.entropy_min_length,
        )
        print_scan_hits(hits, merged["scan_preview_limit"])

        if report is not None:
            run_report = RedactionReport(
                input_path=str(input_path),
                output_path=str(output_path),
                input_format=fmt.value,
                redaction_enabled=options.enabled,
                redacted_count=sum(stats.values()),
                types=list(redactor.redaction_counts),
                counts=stats,
                remaining_hits=hits,
                processing_time_seconds=time.time() - start_time,
            )
            report.parent.mkdir(parents=True, exist_ok=True)
            report.write_text(json.dumps(run_report.to_dict(), indent=2) + "\n", encoding="utf-8")
            console.print(f"[dim]Report written to {report}[/dim]")

    except SessionFormatError as e:
        console.print(f"[red]Error: invalid session document: {e}[/red]")
        raise typer.Exit(1) from None
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        if verbose:
            console.print(traceback.format_exc())
        raise typer.Exit(1) from None


@app.command()
def scan(
    input_path: Path = typer.Argument(
        ...,
        help="File to re-scan (usually an already redacted export).",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    config_file: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file.",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    limit: int | None = typer.Option(
        None,
        "--limit",
        "-l",
        help="Number of hits to print. [default: 5]",
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Exit with status 1 when anything suspicious remains.",
    ),
) -> None:
    """Report anything in a file that still looks like a secret or PII.

    Read-only: the file is never modified.

    \b
    EXAMPLES:
      session-scrub scan clean.json
      session-scrub scan clean.json --strict --limit 20
    """
    try:
        project_config = load_config(Path.cwd(), config_file)
        merged = merge_cli_with_config(project_config, scan_preview_limit=limit)
        content, _ = read_file_safe(input_path)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from None

    hits = scan_for_remaining(
        content,
        entropy_threshold=merged["entropy_threshold"],
        entropy_min_length=merged["entropy_min_length"],
    )
    console.print(f"[bold]{input_path.name}[/bold]")
    print_scan_hits(hits, merged["scan_preview_limit"])

    if hits and strict:
        raise typer.Exit(1)


@app.command()
def usernames(
    cwd: Path | None = typer.Option(
        None,
        "--cwd",
        help="Project directory to read git identity from.",
        exists=True,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
    extra: list[str] = typer.Option(
        [],
        "--username",
        "-u",
        help="Extra username or handle (repeatable).",
    ),
) -> None:
    """Show the identity strings that will be replaced and their pseudonyms.

    \b
    EXAMPLES:
      session-scrub usernames
      session-scrub usernames --cwd ~/code/project -u my-handle
    """
    names = detect_usernames(cwd, extra)
    if not names:
        console.print("[yellow]No identity strings detected.[/yellow]")
        return

    table = Table(show_header=True, header_style="cyan")
    table.add_column("Identity string")
    table.add_column("Pseudonym")
    for name in names:
        table.add_row(name, hash_username(name))
    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
