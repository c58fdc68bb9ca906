"""Tests for watch-mode change handling."""

import time
from pathlib import Path
from types import SimpleNamespace

from loglive.annotations import CollectingAnnotationSink
from loglive.cli_watch import DocumentChangeHandler, WatchdogAdapter, print_status
from loglive.config_manager import Settings
from loglive.engine import FileDocument, LiveSession
from loglive.models import RunReport


def event(path: Path, dest: str = "", is_directory: bool = False):
    return SimpleNamespace(src_path=str(path), dest_path=dest, is_directory=is_directory)


def make_handler(temp_dir: Path, debounce: float = 0.0, **kwargs):
    source = temp_dir / "main.ts"
    source.write_text("console.log(1);\n")
    sink = CollectingAnnotationSink()
    session = LiveSession(sink, settings_loader=Settings)
    session.open(FileDocument(source))
    reports = []
    handler = DocumentChangeHandler(session, debounce_seconds=debounce, on_report=reports.append, **kwargs)
    return handler, source, sink, reports


class TestDocumentChangeHandler:
    """Event routing and debouncing."""

    def test_change_to_active_file_runs(self, temp_dir: Path):
        """Test a modification of the watched file re-evaluates it."""
        handler, source, sink, reports = make_handler(temp_dir)
        source.write_text("console.log(2);\n")

        handler.dispatch(event(source))

        assert handler.run_count == 1
        assert len(reports) == 1
        assert sink.by_line() == {0: ["2"]}

    def test_other_files_are_ignored(self, temp_dir: Path):
        """Test other sources, unsupported files and directories do not run."""
        handler, _, sink, reports = make_handler(temp_dir)
        (temp_dir / "other.ts").write_text("")
        (temp_dir / "notes.txt").write_text("")

        handler.dispatch(event(temp_dir / "other.ts"))
        handler.dispatch(event(temp_dir / "notes.txt"))
        handler.dispatch(event(temp_dir, is_directory=True))

        assert handler.run_count == 0
        assert reports == []
        assert sink.clear_count == 0

    def test_move_uses_destination(self, temp_dir: Path):
        """Test an atomic save (write then rename) targets the destination path."""
        handler, source, _, _ = make_handler(temp_dir)

        handler.dispatch(event(temp_dir / ".main.ts.swp", dest=str(source)))

        assert handler.run_count == 1

    def test_config_change_notifies_without_running(self, temp_dir: Path):
        """Test a config file change reaches the session as a notification."""
        config = temp_dir / "config.toml"
        config.write_text("")
        handler, _, sink, _ = make_handler(temp_dir, config_file=config)

        handler.dispatch(event(config))

        assert sink.messages == ["Configuration updated"]
        assert handler.run_count == 0

    def test_debounce_collapses_bursts(self, temp_dir: Path):
        """Test several quick events produce a single run."""
        handler, source, _, _ = make_handler(temp_dir, debounce=0.05)

        for _ in range(5):
            handler.dispatch(event(source))
        deadline = time.monotonic() + 2.0
        while handler.run_count == 0 and time.monotonic() < deadline:
            time.sleep(0.02)
        time.sleep(0.1)

        assert handler.run_count == 1

    def test_cancel_drops_pending_runs(self, temp_dir: Path):
        """Test cancel stops timers that have not fired yet."""
        handler, source, _, _ = make_handler(temp_dir, debounce=5.0)

        handler.dispatch(event(source))
        handler.cancel()

        assert handler.run_count == 0
        assert handler._timers == {}


def test_watchdog_adapter_forwards_events(temp_dir: Path):
    """Test the watchdog handler forwards modified, created and moved events."""
    handler, source, _, _ = make_handler(temp_dir)
    adapter = WatchdogAdapter(handler)

    adapter.on_modified(event(source))
    adapter.on_created(event(source))
    adapter.on_moved(event(temp_dir / "tmp", dest=str(source)))

    assert handler.run_count == 3


def test_print_status(capsys):
    """Test the one-line status after each run."""
    print_status(RunReport(document_id="x", syntax_error="Missing '}' (line 2, col 1)"))
    print_status(RunReport(document_id="x"))

    out = capsys.readouterr().out
    assert "Missing '}'" in out
    assert "0 annotation(s), 0 failed evaluation(s)" in out
