"""Annotation records and the sinks that display them."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import TYPE_CHECKING, Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.text import Text

from .inspector import DEFAULT_DEPTH, inspect
from .models import Annotation, EvaluationOutcome, EvaluationTarget
from .runtime import UNDEFINED

if TYPE_CHECKING:
    from .engine import TextDocument

logger = logging.getLogger(__name__)

# Annotation style hint -> rich style
STYLE_MAP: Dict[str, str] = {
    "gray": "grey50",
    "muted": "dim",
    "error": "red",
}


class AnnotationMapper:
    """Turns evaluated targets into line-anchored annotations."""

    def __init__(self, document: "TextDocument", depth: int = DEFAULT_DEPTH) -> None:
        self.document = document
        self.depth = depth

    def map(self, target: EvaluationTarget, outcome: EvaluationOutcome) -> Optional[Annotation]:
        """Return the annotation for *target*, or ``None`` when there is nothing to show.

        Failures and ``undefined`` results produce no annotation. The
        annotation sits at the end of the target's first line.
        """
        if not outcome.ok or outcome.value is UNDEFINED:
            return None
        line = target.line
        column = len(self.document.get_line_text(line))
        return Annotation(line=line, column=column, text=inspect(outcome.value, self.depth))


class AnnotationSink(ABC):
    """Receives the annotation batch of each run."""

    @abstractmethod
    def clear_all(self) -> None:
        ...

    @abstractmethod
    def apply(self, annotations: List[Annotation]) -> None:
        ...

    def show_message(self, text: str) -> None:
        logger.info(text)


class CollectingAnnotationSink(AnnotationSink):
    """Keeps the current batch in memory."""

    def __init__(self) -> None:
        self.annotations: List[Annotation] = []
        self.messages: List[str] = []
        self.clear_count = 0
        self.apply_count = 0

    def clear_all(self) -> None:
        self.annotations = []
        self.clear_count += 1

    def apply(self, annotations: List[Annotation]) -> None:
        self.annotations = list(annotations)
        self.apply_count += 1

    def show_message(self, text: str) -> None:
        self.messages.append(text)

    def by_line(self) -> Dict[int, List[str]]:
        grouped: Dict[int, List[str]] = defaultdict(list)
        for annotation in self.annotations:
            grouped[annotation.line].append(annotation.text)
        return dict(grouped)


class ConsoleAnnotationSink(AnnotationSink):
    """Prints the document with its annotations appended to each line."""

    def __init__(
        self,
        document: "TextDocument",
        console: Optional[Console] = None,
        clear_screen: bool = False,
        line_numbers: bool = True,
    ) -> None:
        self.document = document
        self.console = console or Console()
        self.clear_screen = clear_screen
        self.line_numbers = line_numbers

    def clear_all(self) -> None:
        if self.clear_screen:
            self.console.clear()

    def apply(self, annotations: List[Annotation]) -> None:
        self.console.print(render_annotated(self.document.get_full_text(), annotations, self.line_numbers))

    def show_message(self, text: str) -> None:
        self.console.print(f"[yellow]⚠[/yellow] {escape(text)}")


def render_annotated(text: str, annotations: List[Annotation], line_numbers: bool = True) -> Text:
    """Build a rich ``Text`` of *text* with annotations after their lines."""
    grouped: Dict[int, List[Annotation]] = defaultdict(list)
    for annotation in annotations:
        grouped[annotation.line].append(annotation)

    lines = text.split("\n")
    width = len(str(len(lines)))
    out = Text()
    for index, line in enumerate(lines):
        if line_numbers:
            out.append(f"{index + 1:>{width}} │ ", style="dim")
        out.append(line)
        for annotation in grouped.get(index, []):
            out.append(annotation.content_text, style=STYLE_MAP.get(annotation.style, annotation.style))
        if index < len(lines) - 1:
            out.append("\n")
    return out
