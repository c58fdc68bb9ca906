"""Watch mode: re-run the live evaluation whenever the file changes."""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Callable, Dict, Optional

import typer
from rich.console import Console
from rich.markup import escape
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from . import config_manager
from .annotations import ConsoleAnnotationSink
from .config import SUPPORTED_EXTENSIONS
from .engine import FileDocument, LiveSession
from .models import RunReport

console = Console()


class DocumentChangeHandler:
    """Turn file system events into session notifications.

    Changes to source files are debounced per path and delivered as
    :meth:`LiveSession.on_document_changed`; a change to the config file
    is reported through :meth:`LiveSession.on_configuration_changed` and
    never triggers a run.
    """

    def __init__(
        self,
        session: LiveSession,
        config_file: Optional[Path] = None,
        debounce_seconds: float = 0.3,
        on_report: Optional[Callable[[RunReport], None]] = None,
    ):
        self.session = session
        self.config_file = config_file.resolve() if config_file is not None else None
        self.debounce_seconds = debounce_seconds
        self.on_report = on_report
        self.run_count = 0
        self._timers: Dict[str, threading.Timer] = {}
        self._lock = threading.Lock()

    def dispatch(self, event: FileSystemEvent) -> None:
        """Route events to handler methods."""
        if event.is_directory:
            return
        src_path = getattr(event, "dest_path", "") or event.src_path
        self._handle_change(Path(src_path))

    def _handle_change(self, file_path: Path) -> None:
        file_path = file_path.resolve()
        if self.config_file is not None and file_path == self.config_file:
            self.session.on_configuration_changed()
            return
        if file_path.suffix not in SUPPORTED_EXTENSIONS:
            return

        document_id = str(file_path)
        if self.debounce_seconds <= 0:
            self._fire(document_id)
            return
        with self._lock:
            pending = self._timers.pop(document_id, None)
            if pending is not None:
                pending.cancel()
            timer = threading.Timer(self.debounce_seconds, self._fire, args=(document_id,))
            timer.daemon = True
            self._timers[document_id] = timer
            timer.start()

    def _fire(self, document_id: str) -> None:
        with self._lock:
            self._timers.pop(document_id, None)
        report = self.session.on_document_changed(document_id)
        if report is None:
            return
        self.run_count += 1
        if self.on_report is not None:
            self.on_report(report)

    def cancel(self) -> None:
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()


class WatchdogAdapter(FileSystemEventHandler):
    def __init__(self, handler: DocumentChangeHandler):
        super().__init__()
        self.handler = handler

    def on_modified(self, event):
        self.handler.dispatch(event)

    def on_created(self, event):
        self.handler.dispatch(event)

    def on_moved(self, event):
        self.handler.dispatch(event)


def print_status(report: RunReport) -> None:
    if report.syntax_error:
        console.print(f"[red]✗[/red] {escape(report.syntax_error)}")
    elif report.error:
        console.print(f"[red]✗[/red] {escape(report.error)}")
    else:
        failed = sum(1 for outcome in report.outcomes if not outcome.ok)
        console.print(
            f"[dim]{time.strftime('%H:%M:%S')}  {len(report.annotations)} annotation(s), "
            f"{failed} failed evaluation(s)[/dim]"
        )


def watch(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JavaScript / TypeScript file to watch."),
    show_all: Optional[bool] = typer.Option(
        None, "--all/--no-all", help="Annotate every expression, not only console.log calls."
    ),
    interval: float = typer.Option(0.3, "--interval", "-i", help="Debounce interval in seconds."),
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", help="Per-evaluation time limit in seconds."),
):
    """👀 Watch mode — re-evaluate a file on every save.

    Settings are re-read from the config file before each run; editing the
    config only prints a notice, the next save of the file applies it.

    Example:
      loglive watch src/main.ts
      loglive watch app.js --all --interval 1
    """
    document = FileDocument(file)
    sink = ConsoleAnnotationSink(document, console=console, clear_screen=True)
    session = LiveSession(
        sink,
        settings_loader=config_manager.settings_loader(show_all_expressions=show_all, eval_timeout=timeout),
    )
    session.open(document)

    print_status(session.run())

    handler = DocumentChangeHandler(
        session,
        config_file=config_manager.CONFIG_FILE,
        debounce_seconds=interval,
        on_report=print_status,
    )
    adapter = WatchdogAdapter(handler)
    observer = Observer()
    observer.schedule(adapter, str(document.path.parent), recursive=False)
    config_dir = config_manager.CONFIG_FILE.parent
    if config_dir.exists() and config_dir != document.path.parent:
        observer.schedule(adapter, str(config_dir), recursive=False)
    observer.start()

    console.print(f"\n[bold green]👀 Watching[/bold green] [cyan]{document.path}[/cyan] for changes...")
    console.print(f"[dim]  Debounce:  {interval}s")
    console.print("  Press Ctrl+C to stop[/dim]\n")

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        observer.stop()
        handler.cancel()
        console.print(f"\n[yellow]Stopped watching.[/yellow] Re-evaluated {handler.run_count} time(s).")

    observer.join()
