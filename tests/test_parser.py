"""Tests for the tree-sitter source parser."""

from pathlib import Path

import pytest

from loglive.parser import (
    DEFAULT_LANGUAGE,
    ParserUnavailable,
    SourceParser,
    SourceSyntaxError,
    iter_nodes,
    language_for_path,
    node_line,
)


def test_language_for_path():
    """Test language selection from file extensions."""
    assert language_for_path(Path("a.ts")) == "typescript"
    assert language_for_path(Path("a.tsx")) == "tsx"
    assert language_for_path(Path("a.mjs")) == "javascript"
    assert language_for_path(Path("a.jsx")) == "javascript"
    assert language_for_path(Path("README")) == DEFAULT_LANGUAGE
    assert language_for_path(None) == DEFAULT_LANGUAGE


def test_parse_typescript_module(parser: SourceParser, sample_typescript: str):
    """Test parsing a TypeScript module with type annotations."""
    parsed = parser.parse(sample_typescript, path=Path("sample.ts"))

    assert parsed.language == "typescript"
    assert parsed.root.type == "program"
    kinds = [n.type for n in parsed.root.named_children]
    assert "function_declaration" in kinds
    assert "lexical_declaration" in kinds


def test_parse_javascript(parser: SourceParser):
    """Test parsing plain JavaScript."""
    parsed = parser.parse("const x = 1;\nconsole.log(x);\n", language="javascript")
    calls = [n for n in iter_nodes(parsed.root) if n.type == "call_expression"]
    assert len(calls) == 1
    assert node_line(calls[0]) == 1


def test_syntax_error_carries_position(parser: SourceParser):
    """Test unbalanced braces raise SourceSyntaxError with a position."""
    with pytest.raises(SourceSyntaxError) as excinfo:
        parser.parse("function f() {\n  return 1;\n")

    assert isinstance(excinfo.value, SyntaxError)
    assert excinfo.value.line >= 1
    assert excinfo.value.column >= 1


def test_unknown_language_is_unavailable(parser: SourceParser):
    """Test requesting an unmapped grammar."""
    assert not parser.supports_language("cobol")
    with pytest.raises(ParserUnavailable):
        parser.parse("x", language="cobol")


def test_text_without_strips_type_nodes(parser: SourceParser):
    """Test structural removal of type annotations from a declaration."""
    parsed = parser.parse("function f(a: number, b: Array<string>): Map<string, number[]> { return a; }")
    func = parsed.root.named_children[0]

    stripped = parsed.text_without(func)

    assert ":" not in stripped
    assert "Map" not in stripped
    assert "function f(a" in stripped
    assert "return a;" in stripped


def test_text_without_generic_call(parser: SourceParser):
    """Test type arguments on calls are removed."""
    parsed = parser.parse("const xs = make<number[]>(3);")
    declarator = next(n for n in iter_nodes(parsed.root) if n.type == "variable_declarator")

    assert parsed.text_without(declarator).replace(" ", "") == "xs=make(3)"


def test_parse_expression(parser: SourceParser):
    """Test snippets parse as a single expression."""
    _, node = parser.parse_expression("{ a: 1 }")
    assert node.type == "object"

    _, node = parser.parse_expression("1, 2, 3")
    assert node.type == "sequence_expression"

    _, node = parser.parse_expression("function f() { return 1; }")
    assert node.type in ("function_expression", "function")


def test_parse_expression_rejects_statements(parser: SourceParser):
    """Test statements are not accepted as expressions."""
    with pytest.raises(SourceSyntaxError):
        parser.parse_expression("const x = 1")
    with pytest.raises(SourceSyntaxError):
        parser.parse_expression("1 +")


def test_parse_expression_tolerates_trailing_comment(parser: SourceParser):
    """Test a trailing line comment does not swallow the closing paren."""
    _, node = parser.parse_expression("x + 1 // note")
    assert node.type == "binary_expression"
