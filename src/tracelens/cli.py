# src/tracelens/cli.py
"""
tracelens Command Line Interface (CLI).

This module implements the terminal interface using `typer` and `rich`.

Every command prints exactly one JSON document on stdout:
``{"command", "tracePath", "results"}`` on success, ``{"error"}`` (exit 1) on
failure. Operator-facing text (the trace header, the interactive picker,
parser warnings, batch notes) goes to stderr so stdout stays machine-readable.

Usage
-----
    # Overview of one run
    $ tracelens summary test-results/login-test/trace.zip

    # Pick a trace interactively, then scan it for known failures
    $ tracelens diagnose

    # Screenshot index 2 with one neighbour on each side
    $ tracelens screenshot path/to/trace.zip --at 2 --context 1

    # Diagnose every trace under test-results/
    $ tracelens diagnose-all --verbose
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import Prompt

from tracelens.core.contracts.context import TraceContext
from tracelens.core.contracts.queries import (
    AroundQuery,
    ConsoleQuery,
    DiagnoseOptions,
    ScreenshotQuery,
)
from tracelens.core.errors import TraceLensError
from tracelens.core.settings import load_settings
from tracelens.diagnostics.engine import diagnose as run_diagnosis
from tracelens.pipelines.inspection import TraceSession, diagnose_all, open_trace
from tracelens.reports import projections
from tracelens.reports.envelope import render_envelope, render_error
from tracelens.trace.loader import Invocation, TraceCandidate

# Pick up TRACELENS_* / LOG_LEVEL from a local .env before settings are read
load_dotenv()

app = typer.Typer(
    help="tracelens: inspect and diagnose recorded browser-automation traces.",
    rich_markup_mode="markdown",
    no_args_is_help=True,
)
err_console = Console(stderr=True)

TracePathArg = Annotated[
    Path | None,
    typer.Argument(
        help="Trace archive (trace.zip) or extracted trace directory. Omit to pick interactively.",
        show_default=False,
    ),
]
VerboseOpt = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Also show recovered issues (and clean traces)."),
]


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #


def prompt_selector(candidates: Sequence[TraceCandidate]) -> str:
    """List discovered traces on stderr and ask for a 1-based choice."""
    err_console.print("\n💡 No trace path provided - entering interactive mode.")
    err_console.print("   Tip: Pass a path directly: tracelens <command> <path-to-trace.zip>\n")
    err_console.print("📋 Available traces:\n")
    for i, candidate in enumerate(candidates, start=1):
        stale = " [bold yellow]⚠️  STALE[/bold yellow]" if candidate.stale else ""
        when = datetime.fromtimestamp(candidate.mtime).strftime("%H:%M:%S")
        err_console.print(
            f"  {i}. {candidate.test_name}\n     {candidate.age_label} ({when}){stale}\n"
        )
    return Prompt.ask("Select trace number", console=err_console)


def _invocation() -> Invocation:
    return Invocation(settings=load_settings(), selector=prompt_selector)


def _print_header(invocation: Invocation, session: TraceSession) -> None:
    """Tell the operator which archive is analysed and how old it is."""
    archive = session.resolved.archive
    if archive is None:
        return
    info = invocation.describe(archive)
    created = datetime.fromtimestamp(info.mtime).strftime("%Y-%m-%d %H:%M:%S")
    err_console.print(f"\n📂 Analyzing: {archive}")
    err_console.print(f"⏰ Created: {info.age_label} ({created})")
    if info.stale:
        err_console.print(
            f"[bold yellow]⚠️  WARNING: This trace is {info.age_label}. "
            "Run a fresh E2E test for current results.[/bold yellow]"
        )
    err_console.print("")


def _validation_message(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in e['loc']) or 'value'}: {e['msg']}" for e in exc.errors()
    )


def _fail(message: str) -> NoReturn:
    typer.echo(render_error(message), err=True)
    raise typer.Exit(code=1)


def _build_query(factory: Callable[[], Any]) -> Any:
    """Validate command options once, at the boundary."""
    try:
        return factory()
    except ValidationError as exc:
        _fail(_validation_message(exc))


def _run(command: str, trace_path: Path | None, project: Callable[[TraceContext], Any]) -> None:
    """Open the trace, run one projection and print the envelope."""
    invocation = _invocation()
    try:
        session = open_trace(trace_path, invocation)
        _print_header(invocation, session)
        results = project(session.context)
    except TraceLensError as exc:
        _fail(str(exc))
    except OSError as exc:
        _fail(f"Cannot read trace: {exc}")
    typer.echo(render_envelope(command, session.trace_path, results))


# --------------------------------------------------------------------------- #
# Commands
# --------------------------------------------------------------------------- #


@app.command()  # type: ignore[misc]
def summary(trace_path: TracePathArg = None) -> None:
    """Overview of a test run: status, duration, error and counts."""
    _run("summary", trace_path, projections.summary)


@app.command()  # type: ignore[misc]
def errors(trace_path: TracePathArg = None) -> None:
    """Errors with two screenshots before/after and nearby console output."""
    _run("errors", trace_path, projections.errors)


@app.command()  # type: ignore[misc]
def actions(trace_path: TracePathArg = None) -> None:
    """High-level action sequence (goto, click, fill, assertions)."""
    _run("actions", trace_path, projections.actions)


@app.command()  # type: ignore[misc]
def screenshots(trace_path: TracePathArg = None) -> None:
    """List all screenshots with their index numbers."""
    _run("screenshots", trace_path, projections.screenshots)


@app.command()  # type: ignore[misc]
def screenshot(
    trace_path: TracePathArg = None,
    at: Annotated[
        str,
        typer.Option("--at", help='Screenshot index, or "error" for the error time.'),
    ] = "error",
    context: Annotated[
        int | None,
        typer.Option("--context", help="Screenshots before/after (default 2 at error, else 0)."),
    ] = None,
) -> None:
    """A specific screenshot plus its neighbours."""
    query: ScreenshotQuery = _build_query(lambda: ScreenshotQuery(at=at, context=context))
    _run("screenshot", trace_path, lambda ctx: projections.screenshot(ctx, query))


@app.command()  # type: ignore[misc]
def console(
    trace_path: TracePathArg = None,
    type_: Annotated[
        str | None,
        typer.Option("--type", help="Filter by message type (log, error, warning, trace, ...)."),
    ] = None,
    filter_: Annotated[
        str | None,
        typer.Option("--filter", help="Case-insensitive regex the message must match."),
    ] = None,
    limit: Annotated[int, typer.Option("--limit", help="Maximum messages to show.")] = 100,
) -> None:
    """Filter console messages."""
    query: ConsoleQuery = _build_query(
        lambda: ConsoleQuery(type=type_, filter=filter_, limit=limit)
    )
    _run("console", trace_path, lambda ctx: projections.console(ctx, query))


@app.command()  # type: ignore[misc]
def around(
    time: Annotated[float, typer.Option("--time", help="Target timestamp in milliseconds.")],
    trace_path: TracePathArg = None,
    window: Annotated[float, typer.Option("--window", help="Window size (ms).")] = 500.0,
) -> None:
    """Every event within a time window around a timestamp."""
    query: AroundQuery = _build_query(lambda: AroundQuery(time=time, window=window))
    _run("around", trace_path, lambda ctx: projections.around(ctx, query))


@app.command()  # type: ignore[misc]
def timeline(trace_path: TracePathArg = None) -> None:
    """Condensed chronological view of actions and errors."""
    _run("timeline", trace_path, projections.timeline)


@app.command()  # type: ignore[misc]
def diagnose(trace_path: TracePathArg = None, verbose: VerboseOpt = False) -> None:
    """Scan the trace for every known failure signature."""
    options: DiagnoseOptions = _build_query(
        lambda: DiagnoseOptions(verbose=verbose, limit=load_settings().issue_limit)
    )
    _run("diagnose", trace_path, lambda ctx: run_diagnosis(ctx, options))


@app.command("diagnose-all")  # type: ignore[misc]
def diagnose_all_command(verbose: VerboseOpt = False) -> None:
    """Diagnose every trace under the results directory."""
    options: DiagnoseOptions = _build_query(
        lambda: DiagnoseOptions(verbose=verbose, limit=load_settings().issue_limit)
    )
    invocation = _invocation()
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=err_console,
            transient=True,
        ) as progress:
            progress.add_task("[cyan]Analyzing traces...", total=None)
            batch = diagnose_all(invocation, options)
    except TraceLensError as exc:
        _fail(str(exc))

    err_console.print(f"🔍 Analyzed {batch.analyzed} trace(s)")
    if batch.clean_skipped:
        err_console.print(
            f"✅ {batch.clean_skipped} trace(s) with no issues (use --verbose to show)"
        )
    typer.echo(render_envelope("diagnose-all", invocation.results_dir, batch))


if __name__ == "__main__":
    app()
