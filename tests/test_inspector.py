"""Tests for single-line value rendering."""

import math

import pytest

from loglive.inspector import MAX_ARRAY_ITEMS, inspect, quote
from loglive.runtime import UNDEFINED, JSErrorObject, JSMap, JSObject, JSSet, NativeFunction


@pytest.mark.parametrize(
    "value, expected",
    [
        (UNDEFINED, "undefined"),
        (None, "null"),
        (True, "true"),
        (4, "4"),
        (2.5, "2.5"),
        (-0.0, "-0"),
        (math.nan, "NaN"),
        (-math.inf, "-Infinity"),
        (1e21, "1e+21"),
        ("plain", "plain"),
    ],
)
def test_primitives(value, expected):
    """Test primitives at the top level; strings are unquoted."""
    assert inspect(value) == expected


def test_nested_strings_are_quoted():
    """Test strings inside containers use single quotes with escapes."""
    assert inspect(["a", "it's", 'say "hi"\n']) == "[ 'a', \"it's\", 'say \"hi\"\\n' ]"


def test_quote_prefers_single_quotes():
    """Test quote escapes single quotes only when both kinds appear."""
    assert quote("x") == "'x'"
    assert quote("a'b\"c") == "'a\\'b\"c'"


def test_objects_and_arrays():
    """Test plain containers and key quoting."""
    obj = JSObject({"a": 1, "b-c": [1, 2], "d": JSObject()})

    assert inspect(obj) == "{ a: 1, 'b-c': [ 1, 2 ], d: {} }"
    assert inspect([]) == "[]"


def test_depth_limit():
    """Test containers below the depth limit collapse."""
    nested = JSObject({"l1": JSObject({"l2": JSObject({"l3": JSObject({"l4": 1})})}), "arr": [[[[1]]]]})

    assert inspect(nested) == "{ l1: { l2: { l3: [Object] } }, arr: [ [ [Array] ] ] }"
    assert inspect(nested, depth=0) == "{ l1: [Object], arr: [Array] }"


def test_circular_reference():
    """Test a self-referencing object is marked instead of recursing."""
    obj = JSObject({"name": "loop"})
    obj["self"] = obj

    assert inspect(obj) == "<ref *1> { name: 'loop', self: [Circular *1] }"


def test_shared_reference_is_not_circular():
    """Test the same object twice at sibling positions renders twice."""
    shared = JSObject({"v": 1})

    assert inspect([shared, shared]) == "[ { v: 1 }, { v: 1 } ]"


def test_long_array_is_truncated():
    """Test arrays past the item limit show a remainder count."""
    text = inspect(list(range(MAX_ARRAY_ITEMS + 5)))

    assert text.endswith("99, ... 5 more items ]")


def test_map_and_set():
    """Test Map and Set rendering."""
    assert inspect(JSMap([["a", 1], [2, [3]]])) == "Map(2) { 'a' => 1, 2 => [ 3 ] }"
    assert inspect(JSSet([1, "x", 1])) == "Set(2) { 1, 'x' }"
    assert inspect(JSMap()) == "Map(0) {}"


def test_functions():
    """Test named and anonymous functions."""
    assert inspect(NativeFunction("max", max)) == "[Function: max]"
    assert inspect(NativeFunction("", max)) == "[Function (anonymous)]"


def test_errors():
    """Test errors at top level and nested."""
    error = JSErrorObject.create("TypeError", "bad input")

    assert inspect(error) == "TypeError: bad input"
    assert inspect([error]) == "[ [TypeError: bad input] ]"
    assert inspect(JSErrorObject.create("Error", "")) == "Error"


def test_evaluated_values(evaluate):
    """Test rendering of values produced by the evaluator."""
    value = evaluate("(() => { function Point(x) { this.x = x; } return new Point(1); })()").value
    assert inspect(value) == "Point { x: 1 }"

    fn = evaluate("(() => { const double = (n) => n * 2; return double; })()").value
    assert inspect(fn) == "[Function: double]"
