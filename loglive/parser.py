"""Source parser for JavaScript / TypeScript built on Tree-sitter.

Tree-sitter is error-tolerant: it always produces a tree and marks the broken
regions with ``ERROR`` / missing nodes. LogLive does not evaluate partially
valid files, so any such node turns into a :class:`SourceSyntaxError`
carrying the position of the first one.
"""

from __future__ import annotations

import importlib
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Language <-> file-extension mapping
# ---------------------------------------------------------------------------
LANGUAGE_MAP: Dict[str, str] = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascript",
}

DEFAULT_LANGUAGE = "typescript"

# Node kinds that only carry TypeScript type information.
TYPE_NODE_KINDS = frozenset({
    "type_annotation",
    "type_parameters",
    "type_arguments",
    "asserts_annotation",
    "type_predicate_annotation",
    "omitting_type_annotation",
    "opting_type_annotation",
    "adding_type_annotation",
})


class SourceSyntaxError(SyntaxError):
    """The source text is not well-formed."""

    def __init__(self, message: str, line: int = 0, column: int = 0) -> None:
        self.line = line
        self.column = column
        super().__init__(f"{message} (line {line}, col {column})")


class ParserUnavailable(RuntimeError):
    """The tree-sitter runtime or a grammar package is not installed."""


def language_for_path(path: Optional[Path]) -> str:
    if path is None:
        return DEFAULT_LANGUAGE
    return LANGUAGE_MAP.get(Path(path).suffix.lower(), DEFAULT_LANGUAGE)


@dataclass
class ParsedSource:
    """A parsed tree together with the exact bytes it was parsed from."""

    tree: Any
    source: bytes
    language: str
    path: Optional[Path] = None

    @property
    def root(self) -> Any:
        return self.tree.root_node

    @property
    def text(self) -> str:
        return self.source.decode("utf-8")

    def text_of(self, node: Any) -> str:
        return self.source[node.start_byte:node.end_byte].decode("utf-8")

    def text_without(self, node: Any, kinds: frozenset = TYPE_NODE_KINDS) -> str:
        """Slice of *node* with every descendant of the given kinds cut out."""
        cuts = [(n.start_byte, n.end_byte) for n in iter_nodes(node) if n.type in kinds]
        if not cuts:
            return self.text_of(node)
        pieces = []
        pos = node.start_byte
        for start, end in sorted(cuts):
            if start < pos:
                continue
            pieces.append(self.source[pos:start])
            pos = end
        pieces.append(self.source[pos:node.end_byte])
        return b"".join(pieces).decode("utf-8")


def iter_nodes(node: Any) -> Iterator[Any]:
    """Pre-order walk over *node* and all its descendants."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


OPTIONAL_CHAIN_TOKENS = frozenset({"optional_chain", "?."})


def is_optional_chain(node: Any) -> bool:
    """True for member accesses and calls written with ``?.``."""
    return any(child.type in OPTIONAL_CHAIN_TOKENS for child in node.children)


def node_line(node: Any) -> int:
    """0-based start row of *node*."""
    return node.start_point[0]


def _first_error(node: Any) -> Optional[Any]:
    if not node.has_error and not node.is_missing and node.type != "ERROR":
        return None
    while node.type != "ERROR" and not node.is_missing:
        child = next(
            (c for c in node.children if c.type == "ERROR" or c.is_missing or c.has_error),
            None,
        )
        if child is None:
            return node
        node = child
    return node


class SourceParser:
    """Tree-sitter parser for the JavaScript family of languages.

    Grammars are loaded lazily and shared between instances; tree-sitter
    ``Parser`` objects are not thread-safe so each use takes a lock.
    """

    # Map language name -> (module, factory) providing the tree-sitter Language
    _GRAMMAR_MODULES: Dict[str, Tuple[str, str]] = {
        "javascript": ("tree_sitter_javascript", "language"),
        "typescript": ("tree_sitter_typescript", "language_typescript"),
        "tsx": ("tree_sitter_typescript", "language_tsx"),
    }

    _parsers: Dict[str, Any] = {}
    _lock = threading.Lock()

    def supports_language(self, language: str) -> bool:
        try:
            self._parser_for(language)
        except ParserUnavailable:
            return False
        return True

    def _parser_for(self, language: str) -> Any:
        parser = SourceParser._parsers.get(language)
        if parser is not None:
            return parser

        grammar = self._GRAMMAR_MODULES.get(language)
        if grammar is None:
            raise ParserUnavailable(f"No grammar mapped for language '{language}'")
        mod_name, factory = grammar
        try:
            from tree_sitter import Language, Parser as TSParser  # type: ignore[import-untyped]
        except ImportError as exc:
            raise ParserUnavailable(
                "tree-sitter is not installed. Install with: pip install tree-sitter"
            ) from exc
        try:
            mod = importlib.import_module(mod_name)
        except ImportError as exc:
            raise ParserUnavailable(
                f"Grammar package '{mod_name}' not installed for language '{language}'. "
                f"Install with: pip install {mod_name.replace('_', '-')}"
            ) from exc

        # tree-sitter >=0.22 per-language packages expose a factory that
        # returns the Language capsule.
        ts_lang = Language(getattr(mod, factory)())
        parser = TSParser(ts_lang)
        SourceParser._parsers[language] = parser
        logger.debug("Loaded tree-sitter parser for %s", language)
        return parser

    def parse(
        self,
        text: str,
        language: Optional[str] = None,
        path: Optional[Path] = None,
    ) -> ParsedSource:
        """Parse *text*, raising :class:`SourceSyntaxError` on malformed input."""
        lang = language or language_for_path(path)
        source = text.encode("utf-8")
        parser = self._parser_for(lang)
        with SourceParser._lock:
            tree = parser.parse(source)

        error = _first_error(tree.root_node)
        if error is not None:
            row, col = error.start_point[0], error.start_point[1]
            if error.is_missing:
                message = f"Missing '{error.type}'"
            else:
                snippet = source[error.start_byte:error.end_byte].decode("utf-8", "replace")
                message = f"Unexpected token {snippet[:20]!r}" if snippet else "Unexpected end of input"
            raise SourceSyntaxError(message, row + 1, col + 1)

        return ParsedSource(tree=tree, source=source, language=lang, path=path)

    def parse_expression(self, snippet: str, language: Optional[str] = None) -> Tuple[ParsedSource, Any]:
        """Parse *snippet* as a single expression.

        The snippet is wrapped in parentheses so object literals and function
        declarations read as expressions; a comma-separated snippet yields a
        ``sequence_expression``.
        """
        parsed = self.parse(f"({snippet}\n)", language=language or DEFAULT_LANGUAGE)
        statements = [n for n in parsed.root.named_children if n.type != "comment"]
        if len(statements) != 1 or statements[0].type != "expression_statement":
            raise SourceSyntaxError("Expected a single expression", 1, 1)
        wrapper = statements[0].named_children[0]
        if wrapper.type != "parenthesized_expression":
            raise SourceSyntaxError("Expected a single expression", 1, 1)
        inner = [n for n in wrapper.named_children if n.type != "comment"]
        if not inner:
            raise SourceSyntaxError("Empty expression", 1, 1)
        return parsed, inner[0]
