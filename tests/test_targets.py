"""Tests for evaluation target selection."""

import pytest

from loglive.models import TargetKind
from loglive.parser import iter_nodes
from loglive.targets import TargetSelector, is_debug_print

SOURCE = """const a = 1 + 1;
a * 3;
console.log(a);
function f() {
  const hidden = 5;
  hidden;
  console.log(hidden);
}
console.log(a, "x" /* note */);
"""


def _call(parser, text):
    parsed = parser.parse(text)
    return next(n for n in iter_nodes(parsed.root) if n.type == "call_expression")


@pytest.mark.parametrize(
    "text, expected",
    [
        ("console.log(1);", True),
        ("console.log();", True),
        ("console.info(1);", False),
        ("console?.log(1);", False),
        ("console.log?.(1);", False),
        ("logger.log(1);", False),
        ('console["log"](1);', False),
        ("log(1);", False),
    ],
)
def test_is_debug_print(parser, text, expected):
    """Test only the exact console.log call shape qualifies."""
    assert is_debug_print(_call(parser, text)) is expected


def test_default_selects_only_debug_prints(parser):
    """Test console.log calls are selected anywhere, including function bodies."""
    targets = TargetSelector().select(parser.parse(SOURCE))

    assert [t.kind for t in targets] == [TargetKind.DEBUG_PRINT_CALL] * 3
    assert [t.line for t in targets] == [2, 6, 8]
    assert [t.source_text for t in targets] == ["a", "hidden", 'a, "x"']


def test_show_all_adds_module_level_expressions(parser):
    """Test bare expressions and initializers outside function bodies."""
    targets = TargetSelector(show_all_expressions=True).select(parser.parse(SOURCE))

    summary = [(t.kind, t.line, t.source_text) for t in targets]
    assert summary == [
        (TargetKind.VARIABLE_INIT, 0, "1 + 1"),
        (TargetKind.PLAIN_EXPRESSION, 1, "a * 3"),
        (TargetKind.PLAIN_EXPRESSION, 2, "console.log(a)"),
        (TargetKind.DEBUG_PRINT_CALL, 2, "a"),
        (TargetKind.DEBUG_PRINT_CALL, 6, "hidden"),
        (TargetKind.PLAIN_EXPRESSION, 8, 'console.log(a, "x" /* note */)'),
        (TargetKind.DEBUG_PRINT_CALL, 8, 'a, "x"'),
    ]


def test_multiline_target_keeps_first_line(parser):
    """Test a target spanning lines is anchored at its first line."""
    targets = TargetSelector().select(parser.parse('console.log(\n  "a",\n  "b"\n);\n'))

    assert len(targets) == 1
    assert targets[0].line == 0
    assert targets[0].source_text == '"a", "b"'


def test_nested_debug_print_in_arguments(parser):
    """Test a console.log inside another call's arguments is selected."""
    targets = TargetSelector().select(parser.parse("wrap(console.log(1));\n"))

    assert [t.source_text for t in targets] == ["1"]
