"""Reconstructs an evaluation environment from a document's declarations.

Imports are followed first (depth-first, each module once per build), then
the document's own ``function`` declarations and ``const``/``let``/``var``
declarators are evaluated in source order. The first successful binding for
a name wins, so a name supplied by an import shadows a local declaration of
the same name.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, List, Optional, Set

from .interpreter import Evaluator
from .models import Binding, BindingKind
from .parser import ParsedSource, ParserUnavailable, SourceParser, SourceSyntaxError, node_line
from .runtime import UNDEFINED, Environment
from .source_provider import FileSourceProvider, SourceProvider

logger = logging.getLogger(__name__)

# Bodies of these nodes are not part of the module scope.
SCOPE_BOUNDARY_KINDS = frozenset({
    "arrow_function",
    "function_expression",
    "function",
    "generator_function",
    "generator_function_declaration",
    "method_definition",
    "class_declaration",
    "abstract_class_declaration",
    "class",
    "ambient_declaration",
    "interface_declaration",
    "type_alias_declaration",
    "internal_module",
    "module",
})

IMPORT_KINDS = frozenset({"import_statement", "export_statement"})


def import_specifiers(parsed: ParsedSource) -> Iterator[str]:
    """Yield the module specifiers of the top-level imports and re-exports."""
    for node in parsed.root.named_children:
        if node.type not in IMPORT_KINDS:
            continue
        source = node.child_by_field_name("source")
        if source is None or source.type != "string":
            continue
        yield parsed.text_of(source)[1:-1]


def collect_bindings(parsed: ParsedSource, origin: Optional[str] = None) -> List[Binding]:
    """Collect the module-level bindings of *parsed* in document order.

    Function declarations with a name and declarators whose name is a plain
    identifier are collected; destructuring declarators are skipped.
    """
    bindings: List[Binding] = []
    stack = [parsed.root]
    while stack:
        node = stack.pop()
        kind = node.type

        if kind == "function_declaration":
            name = node.child_by_field_name("name")
            if name is not None:
                bindings.append(Binding(
                    name=parsed.text_of(name),
                    kind=BindingKind.FUNCTION,
                    source_text=parsed.text_of(node),
                    value_text=parsed.text_without(node),
                    line=node_line(node),
                    origin=origin,
                ))
            continue

        if kind == "variable_declarator":
            name = node.child_by_field_name("name")
            if name is not None and name.type == "identifier":
                has_value = node.child_by_field_name("value") is not None
                bindings.append(Binding(
                    name=parsed.text_of(name),
                    kind=BindingKind.VARIABLE,
                    source_text=parsed.text_of(node),
                    value_text=parsed.text_without(node) if has_value else "undefined",
                    line=node_line(node),
                    origin=origin,
                ))
            continue

        if kind in SCOPE_BOUNDARY_KINDS:
            continue
        stack.extend(reversed(node.named_children))
    return bindings


class ScopeBuilder:
    """Builds an :class:`Environment` from a parsed document and its imports."""

    def __init__(
        self,
        parser: Optional[SourceParser] = None,
        source_provider: Optional[SourceProvider] = None,
        evaluator: Optional[Evaluator] = None,
    ) -> None:
        self.parser = parser or SourceParser()
        self.source_provider = source_provider or FileSourceProvider()
        self.evaluator = evaluator or Evaluator(parser=self.parser)

    def build_environment(
        self,
        parsed: ParsedSource,
        base_environment: Optional[Environment] = None,
    ) -> Environment:
        """Populate *base_environment* (or a new one) from *parsed*.

        Args:
            parsed: The parsed active document.
            base_environment: Environment to add to. Names it already holds
                are kept and never re-evaluated.

        Returns:
            The populated environment.
        """
        environment = base_environment if base_environment is not None else Environment()
        visited: Set[str] = set()
        if parsed.path is not None:
            visited.add(str(Path(parsed.path).resolve()))
        self._build(parsed, environment, visited, origin=None)
        return environment

    def _build(self, parsed: ParsedSource, environment: Environment, visited: Set[str], origin: Optional[str]) -> None:
        for specifier in import_specifiers(parsed):
            imported = self._load_import(specifier, parsed.path, environment, visited)
            if imported is not None:
                self._build(imported, environment, visited, origin=str(imported.path))

        for binding in collect_bindings(parsed, origin):
            self._bind(binding, environment, parsed.language)

    def _load_import(
        self,
        specifier: str,
        from_path: Optional[Path],
        environment: Environment,
        visited: Set[str],
    ) -> Optional[ParsedSource]:
        path = self.source_provider.resolve(specifier, from_path)
        if path is None:
            self._skip(environment, specifier, "could not be resolved")
            return None

        key = str(path)
        if key in visited:
            logger.debug("Import %r already loaded in this build", specifier)
            return None
        visited.add(key)

        try:
            text = self.source_provider.read_text(path)
        except OSError as exc:
            self._skip(environment, specifier, f"could not be read ({exc})")
            return None

        try:
            return self.parser.parse(text, path=path)
        except (SourceSyntaxError, ParserUnavailable) as exc:
            self._skip(environment, specifier, f"does not parse ({exc})")
            return None

    def _skip(self, environment: Environment, specifier: str, reason: str) -> None:
        logger.info("Skipping import %r: %s", specifier, reason)
        environment.skipped_imports.append(specifier)

    def _bind(self, binding: Binding, environment: Environment, language: str) -> None:
        if binding.name in environment:
            logger.debug("Binding %r already present; skipping", binding.name)
            return

        if binding.value_text == "undefined":
            environment.bind(binding.name, UNDEFINED, binding)
            return

        outcome = self.evaluator.evaluate(binding.value_text, environment, language)
        if outcome.ok:
            environment.bind(binding.name, outcome.value, binding)
            return
        environment.record_failure(binding.name, outcome.message)
        logger.debug("Binding %r failed: %s", binding.name, outcome.message)


def describe_binding(binding: Binding) -> str:
    where = binding.origin or "<document>"
    return f"{binding.kind.value} {binding.name} ({where}:{binding.line + 1})"
