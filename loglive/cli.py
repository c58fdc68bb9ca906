"""Typer-based CLI for LogLive."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__, config_manager
from .annotations import ConsoleAnnotationSink
from .cli_watch import watch
from .engine import FileDocument, LiveSession
from .inspector import inspect
from .scope_builder import describe_binding

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="⚡ LogLive — inline runtime values for JavaScript & TypeScript files.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(
    help="⚙️  Configuration — evaluation settings.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.add_typer(config_app, name="config")
app.command("watch")(watch)


def configure_logging(verbose: bool) -> None:
    """Send ``loglive`` logs to stderr through rich."""
    log = logging.getLogger("loglive")
    for handler in list(log.handlers):
        if isinstance(handler, RichHandler):
            log.removeHandler(handler)
    log.addHandler(RichHandler(console=err_console, show_path=False, rich_tracebacks=True))
    log.setLevel(logging.DEBUG if verbose else logging.WARNING)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"LogLive v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
):
    """LogLive: evaluate a file's expressions and show their values inline."""
    configure_logging(verbose)


@app.command("run")
def run_file(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JavaScript / TypeScript file to evaluate."),
    show_all: Optional[bool] = typer.Option(
        None, "--all/--no-all", help="Annotate every expression, not only console.log calls."
    ),
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", help="Per-evaluation time limit in seconds."),
    bindings: bool = typer.Option(False, "--bindings", help="List the bindings the file evaluated to."),
):
    """Evaluate FILE once and print it with inline values."""
    try:
        loader = config_manager.settings_loader(show_all_expressions=show_all, eval_timeout=timeout)
        loader()
    except ValueError as exc:
        raise typer.BadParameter(str(exc))

    document = FileDocument(file)
    session = LiveSession(ConsoleAnnotationSink(document, console=console), settings_loader=loader)
    session.open(document)
    report = session.run()

    if report.syntax_error:
        console.print(f"[red]✗[/red] Syntax error: {escape(report.syntax_error)}")
        raise typer.Exit(1)
    if report.error:
        console.print(f"[red]✗[/red] {escape(report.error)}")
        raise typer.Exit(1)

    failed = [outcome for outcome in report.outcomes if not outcome.ok]
    console.print(f"\n[dim]{len(report.annotations)} annotation(s), {len(failed)} failed evaluation(s)[/dim]")
    for specifier in report.skipped_imports:
        console.print(f"[yellow]![/yellow] Skipped import {escape(specifier)}")
    for name, message in report.binding_failures.items():
        console.print(f"[yellow]![/yellow] {escape(name)}: {escape(message)}")

    if bindings:
        environment = session.environments[document.document_id]
        table = Table(title="Bindings", show_lines=False)
        table.add_column("Binding", style="cyan")
        table.add_column("Value")
        for name, binding in environment.bindings.items():
            table.add_row(escape(describe_binding(binding)), escape(inspect(environment[name])))
        console.print(table)


# ------------------------------------------------------------------
# config
# ------------------------------------------------------------------

@config_app.command("show")
def config_show():
    """Show the current evaluation settings."""
    settings = config_manager.load_settings().to_dict()
    table = Table(title="Evaluation settings", show_lines=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_column("Default", style="dim")
    for key, value in settings.items():
        table.add_row(key, str(value), str(config_manager.DEFAULT_SETTINGS[key]))
    console.print(table)
    console.print(f"[dim]Config: {config_manager.CONFIG_FILE}[/dim]")


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Setting name."),
    value: str = typer.Argument(..., help="New value."),
):
    """Change one evaluation setting."""
    try:
        saved = config_manager.save_setting(key, value)
    except KeyError:
        known = ", ".join(config_manager.SETTING_PARSERS)
        console.print(f"[red]✗[/red] Unknown setting '{escape(key)}'. Known settings: {known}")
        raise typer.Exit(1)
    except ValueError as exc:
        console.print(f"[red]✗[/red] Invalid value for {escape(key)}: {escape(str(exc))}")
        raise typer.Exit(1)
    shown = getattr(saved, "value", saved)
    console.print(f"[green]✓[/green] {key} = {shown}")


@config_app.command("reset")
def config_reset():
    """Reset every evaluation setting to its default."""
    if not config_manager.reset_settings():
        console.print("[red]✗[/red] Could not write the config file.")
        raise typer.Exit(1)
    console.print("[green]✓[/green] Settings reset to defaults.")
