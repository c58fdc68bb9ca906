"""Selection of the nodes that get evaluated and annotated."""

from __future__ import annotations

from typing import Any, List, Tuple

from .models import EvaluationTarget, TargetKind
from .parser import ParsedSource, is_optional_chain, node_line

# Declarations and expressions inside these nodes are not module level.
FUNCTION_BODY_KINDS = frozenset({
    "function_declaration",
    "generator_function_declaration",
    "function_expression",
    "function",
    "generator_function",
    "arrow_function",
    "method_definition",
    "class_body",
})


def is_debug_print(node: Any) -> bool:
    """True for calls shaped exactly like ``console.log(...)``."""
    if node.type != "call_expression":
        return False
    callee = node.child_by_field_name("function")
    if callee is None or callee.type != "member_expression":
        return False
    if is_optional_chain(node) or is_optional_chain(callee):
        return False
    obj = callee.child_by_field_name("object")
    prop = callee.child_by_field_name("property")
    return (
        obj is not None
        and obj.type == "identifier"
        and obj.text == b"console"
        and prop is not None
        and prop.type == "property_identifier"
        and prop.text == b"log"
    )


class TargetSelector:
    """Walks a parsed document and yields evaluation targets in document order.

    ``console.log(...)`` calls are always selected. Bare expression
    statements and declarator initializers outside function bodies are only
    selected when *show_all_expressions* is on.
    """

    def __init__(self, show_all_expressions: bool = False) -> None:
        self.show_all_expressions = show_all_expressions

    def select(self, parsed: ParsedSource) -> List[EvaluationTarget]:
        targets: List[EvaluationTarget] = []
        stack: List[Tuple[Any, bool]] = [(parsed.root, False)]
        while stack:
            node, in_body = stack.pop()
            self._visit(parsed, node, in_body, targets)
            child_in_body = in_body or node.type in FUNCTION_BODY_KINDS
            stack.extend((child, child_in_body) for child in reversed(node.named_children))
        return targets

    def _visit(self, parsed: ParsedSource, node: Any, in_body: bool, out: List[EvaluationTarget]) -> None:
        kind = node.type
        if self.show_all_expressions and not in_body:
            if kind == "expression_statement":
                inner = [c for c in node.named_children if c.type != "comment"]
                if inner:
                    out.append(self._target(parsed, inner[0], TargetKind.PLAIN_EXPRESSION))
            elif kind == "variable_declarator":
                value = node.child_by_field_name("value")
                if value is not None:
                    out.append(self._target(parsed, value, TargetKind.VARIABLE_INIT))

        if is_debug_print(node):
            arguments = node.child_by_field_name("arguments")
            args = [c for c in arguments.named_children if c.type != "comment"] if arguments else []
            out.append(EvaluationTarget(
                node=node,
                kind=TargetKind.DEBUG_PRINT_CALL,
                source_text=", ".join(parsed.text_of(arg) for arg in args),
                line=node_line(node),
            ))

    @staticmethod
    def _target(parsed: ParsedSource, node: Any, kind: TargetKind) -> EvaluationTarget:
        return EvaluationTarget(node=node, kind=kind, source_text=parsed.text_of(node), line=node_line(node))
