"""Live evaluation session: parse -> build scope -> evaluate -> annotate.

A :class:`LiveSession` owns the documents it knows about, one environment per
document, and the annotation sink. Every run is serialised by a lock because
change notifications may arrive from a file-watcher thread.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from .annotations import AnnotationMapper, AnnotationSink
from .config_manager import Settings, load_settings
from .interpreter import Evaluator
from .models import EnvironmentPolicy, RunReport
from .parser import ParserUnavailable, SourceParser, SourceSyntaxError
from .runtime import Environment
from .scope_builder import ScopeBuilder
from .source_provider import FileSourceProvider, SourceProvider
from .targets import TargetSelector

logger = logging.getLogger(__name__)

__all__ = [
    "EnvironmentPolicy",
    "FileDocument",
    "InMemoryDocument",
    "LiveSession",
    "TextDocument",
]


# ===================================================================
# Documents
# ===================================================================

class TextDocument(ABC):
    """Read-only view of a document's text."""

    document_id: str
    path: Optional[Path] = None
    language: Optional[str] = None

    @abstractmethod
    def get_full_text(self) -> str:
        ...

    def lines(self) -> List[str]:
        return self.get_full_text().split("\n")

    def get_line_text(self, line: int) -> str:
        """Text of 0-based *line* without its line terminator."""
        lines = self.lines()
        if not 0 <= line < len(lines):
            return ""
        return lines[line].rstrip("\r")

    def offset_at(self, line: int, column: int) -> int:
        """Character offset of a 0-based (line, column) position."""
        lines = self.lines()
        line = max(0, min(line, len(lines) - 1))
        offset = sum(len(text) + 1 for text in lines[:line])
        return offset + max(0, min(column, len(lines[line])))

    def position_at(self, offset: int) -> Tuple[int, int]:
        """0-based (line, column) of a character offset."""
        text = self.get_full_text()
        offset = max(0, min(offset, len(text)))
        before = text[:offset]
        line = before.count("\n")
        return line, offset - (before.rfind("\n") + 1)


class InMemoryDocument(TextDocument):
    """A document whose text lives in memory (editor buffers, tests)."""

    def __init__(
        self,
        text: str,
        document_id: Optional[str] = None,
        path: Optional[Path] = None,
        language: Optional[str] = None,
    ) -> None:
        self.text = text
        self.path = Path(path) if path is not None else None
        self.document_id = document_id or (str(self.path) if self.path else "untitled")
        self.language = language

    def get_full_text(self) -> str:
        return self.text

    def set_text(self, text: str) -> None:
        self.text = text


class FileDocument(TextDocument):
    """A document backed by a file, re-read on every access."""

    def __init__(self, path: Path, encoding: str = "utf-8") -> None:
        self.path = Path(path).resolve()
        self.document_id = str(self.path)
        self.encoding = encoding

    def get_full_text(self) -> str:
        return self.path.read_text(encoding=self.encoding, errors="replace")


# ===================================================================
# Session
# ===================================================================

class LiveSession:
    """Runs the live-evaluation pipeline for the active document."""

    def __init__(
        self,
        sink: AnnotationSink,
        source_provider: Optional[SourceProvider] = None,
        parser: Optional[SourceParser] = None,
        settings_loader: Callable[[], Settings] = load_settings,
    ) -> None:
        self.sink = sink
        self.parser = parser or SourceParser()
        self.source_provider = source_provider or FileSourceProvider()
        self.settings_loader = settings_loader
        self.evaluator = Evaluator(parser=self.parser)
        self.scope_builder = ScopeBuilder(self.parser, self.source_provider, self.evaluator)
        self.documents: Dict[str, TextDocument] = {}
        self.environments: Dict[str, Environment] = {}
        self.active_document_id: Optional[str] = None
        self.last_report: Optional[RunReport] = None
        self._lock = threading.Lock()

    # -- document lifecycle -------------------------------------------

    def open(self, document: TextDocument, activate: bool = True) -> None:
        self.documents[document.document_id] = document
        if activate or self.active_document_id is None:
            self.active_document_id = document.document_id

    def activate(self, document_id: str) -> None:
        if document_id not in self.documents:
            raise KeyError(document_id)
        self.active_document_id = document_id

    def close(self, document_id: str) -> None:
        self.documents.pop(document_id, None)
        self.environments.pop(document_id, None)
        if self.active_document_id == document_id:
            self.active_document_id = None

    @property
    def active_document(self) -> Optional[TextDocument]:
        if self.active_document_id is None:
            return None
        return self.documents.get(self.active_document_id)

    # -- notifications ------------------------------------------------

    def on_document_changed(self, document_id: str) -> Optional[RunReport]:
        """Run the pipeline when *document_id* is the active document."""
        if document_id != self.active_document_id:
            logger.debug("Ignoring change to inactive document %s", document_id)
            return None
        return self.run()

    def on_configuration_changed(self) -> None:
        """Report a settings change; the next document change picks it up."""
        logger.info("Configuration updated")
        self.sink.show_message("Configuration updated")

    # -- pipeline -----------------------------------------------------

    def run(self) -> RunReport:
        """Run the pipeline once for the active document.

        Failures of any stage end up in the returned report; only calling
        this without an active document raises (``LookupError``).
        """
        document = self.active_document
        if document is None:
            raise LookupError("No active document")
        with self._lock:
            try:
                report = self._run(document)
            except Exception as exc:
                logger.exception("Run of %s failed", document.document_id)
                report = RunReport(document_id=document.document_id, error=f"{type(exc).__name__}: {exc}")
            self.last_report = report
            return report

    def _environment_for(self, document_id: str, policy: EnvironmentPolicy) -> Environment:
        environment = self.environments.get(document_id)
        if policy is EnvironmentPolicy.FRESH or environment is None:
            environment = Environment()
            self.environments[document_id] = environment
        else:
            environment.failures.clear()
            environment.skipped_imports.clear()
        return environment

    def _run(self, document: TextDocument) -> RunReport:
        report = RunReport(document_id=document.document_id)
        self.sink.clear_all()

        settings = self.settings_loader()
        self.evaluator.timeout = settings.eval_timeout
        self.evaluator.interpreter.reset_globals()

        try:
            text = document.get_full_text()
        except OSError as exc:
            logger.error("Could not read %s: %s", document.document_id, exc)
            report.error = str(exc)
            return report

        try:
            parsed = self.parser.parse(text, language=document.language, path=document.path)
        except SourceSyntaxError as exc:
            logger.warning("Syntax error in %s: %s", document.document_id, exc)
            report.syntax_error = str(exc)
            return report
        except ParserUnavailable as exc:
            logger.error("%s", exc)
            report.error = str(exc)
            return report

        environment = self._environment_for(document.document_id, settings.environment_policy)
        self.scope_builder.build_environment(parsed, environment)
        report.binding_failures = dict(environment.failures)
        report.skipped_imports = list(environment.skipped_imports)

        targets = TargetSelector(settings.show_all_expressions).select(parsed)
        mapper = AnnotationMapper(document, depth=settings.inspect_depth)
        for target in targets:
            outcome = self.evaluator.evaluate(target.source_text, environment, parsed.language)
            report.outcomes.append(outcome)
            if not outcome.ok:
                logger.debug("Line %d: %s failed: %s", target.line + 1, target.kind.value, outcome.message)
                if settings.notify_failures:
                    self.sink.show_message(f"Line {target.line + 1}: {outcome.message}")
                continue
            annotation = mapper.map(target, outcome)
            if annotation is not None:
                report.annotations.append(annotation)

        self.sink.apply(report.annotations)
        logger.debug(
            "Run of %s: %d target(s), %d annotation(s)",
            document.document_id, len(targets), len(report.annotations),
        )
        return report
