"""Tests for the tree-walking expression evaluator."""

import math

import pytest

from loglive.interpreter import Evaluator, binary_operation, parse_number_literal, unescape
from loglive.models import FailureKind
from loglive.runtime import UNDEFINED, Environment, JSFunction, JSObject


def value_of(outcome):
    assert outcome.ok, outcome.message
    return outcome.value


class TestLiterals:
    """Literal forms."""

    @pytest.mark.parametrize(
        "snippet, expected",
        [
            ("42", 42),
            ("0.5", 0.5),
            ("1_000", 1000),
            ("0xff", 255),
            ("'a\\tb'", "a\tb"),
            ('"\\u0041"', "A"),
            ("true", True),
            ("null", None),
        ],
    )
    def test_scalars(self, evaluate, snippet, expected):
        """Test numbers, strings, booleans and null."""
        assert value_of(evaluate(snippet)) == expected

    def test_undefined(self, evaluate):
        """Test undefined evaluates to the undefined sentinel."""
        assert value_of(evaluate("undefined")) is UNDEFINED

    def test_template_string(self, evaluate):
        """Test template literals with substitutions."""
        assert value_of(evaluate("`a${1 + 1}b${'c'}`")) == "a2bc"

    def test_array_with_spread(self, evaluate):
        """Test array literal with spread."""
        assert value_of(evaluate("[1, ...[2, 3], 4]")) == [1, 2, 3, 4]

    def test_object_literal_forms(self, evaluate):
        """Test shorthand, computed keys, spread and methods."""
        obj = value_of(evaluate("{ x, ['k' + 1]: 2, ...{ y: 3 }, m() { return this.x; } }", {"x": 1}))
        assert isinstance(obj, JSObject)
        assert obj["x"] == 1
        assert obj["k1"] == 2
        assert obj["y"] == 3
        assert isinstance(obj["m"], JSFunction)

    def test_method_this(self, evaluate):
        """Test methods see their receiver as this."""
        assert value_of(evaluate("({ n: 2, m() { return this.n * 10; } }).m()")) == 20


class TestOperators:
    """Operators and coercions."""

    @pytest.mark.parametrize(
        "snippet, expected",
        [
            ("2 + 2", 4),
            ("'a' + 1", "a1"),
            ("1 + '1'", "11"),
            ("10 / 4", 2.5),
            ("7 % 3", 1),
            ("2 ** 10", 1024),
            ("'3' * '4'", 12),
            ("1 < 2 && 'yes'", "yes"),
            ("0 || 'fallback'", "fallback"),
            ("null ?? 'd'", "d"),
            ("0 ?? 'd'", 0),
            ("1 == '1'", True),
            ("1 === '1'", False),
            ("null == undefined", True),
            ("typeof 1", "number"),
            ("typeof missing", "undefined"),
            ("typeof (() => 1)", "function"),
            ("!0", True),
            ("-'5'", -5),
            ("5 & 3", 1),
            ("-1 >>> 28", 15),
            ("1 ? 'a' : 'b'", "a"),
            ("'a' in { a: 1 }", True),
            ("[] instanceof Array", True),
        ],
    )
    def test_expression(self, evaluate, snippet, expected):
        """Test operator results."""
        assert value_of(evaluate(snippet)) == expected

    def test_division_by_zero(self, evaluate):
        """Test division by zero gives Infinity / NaN."""
        assert value_of(evaluate("1 / 0")) == math.inf
        assert math.isnan(value_of(evaluate("0 / 0")))

    @pytest.mark.parametrize(
        "snippet, expected",
        [
            ("obj?.a", 1),
            ("obj?.missing?.deep", UNDEFINED),
            ("nothing?.deep", UNDEFINED),
            ("nothing?.method()", UNDEFINED),
            ("obj.nope?.()", UNDEFINED),
            ("nothing?.()", UNDEFINED),
            ("(obj.a as number) + 1", 2),
            ("obj!.a", 1),
            ("obj['a']", 1),
        ],
    )
    def test_member_access(self, evaluate, snippet, expected):
        """Test optional chaining, subscripts and TypeScript expression wrappers."""
        bindings = {"obj": JSObject({"a": 1}), "nothing": None}
        assert value_of(evaluate(snippet, bindings)) == expected

    def test_sequence_keeps_last_value(self, evaluate):
        """Test comma-separated snippets evaluate to the last element."""
        assert value_of(evaluate("1, 2, 3")) == 3

    def test_binary_operation_helper(self):
        """Test the shared operator helper directly."""
        assert binary_operation("-", 5, 2) == 3
        assert binary_operation(">=", "b", "a") is True
        assert binary_operation("<<", 1, 4) == 16


class TestFunctions:
    """Function expressions, closures and calls."""

    def test_arrow_with_defaults_and_rest(self, evaluate):
        """Test default and rest parameters."""
        snippet = "((a, b = 10, ...rest) => a + b + rest.length)(1, undefined, 7, 8)"
        assert value_of(evaluate(snippet)) == 13

    def test_destructured_parameters(self, evaluate):
        """Test object and array destructuring in parameters."""
        assert value_of(evaluate("(({ a, b: [c] }) => a + c)({ a: 1, b: [2] })")) == 3

    def test_typed_parameters(self, evaluate):
        """Test TypeScript parameter annotations are ignored."""
        assert value_of(evaluate("((a: number, b?: number): number => a + (b ?? 1))(2)")) == 3

    def test_closure_and_statements(self, evaluate):
        """Test statement bodies with loops and closures."""
        snippet = """(function () {
            let total = 0;
            for (let i = 0; i < 5; i++) {
                if (i === 3) continue;
                total += i;
            }
            const parts = [];
            for (const x of [1, 2]) parts.push(x * 2);
            for (const k in { a: 1, b: 2 }) parts.push(k);
            let n = 0;
            while (true) { n++; if (n > 2) break; }
            do { n--; } while (n > 0);
            return [total, parts.join('|'), n];
        })()"""
        assert value_of(evaluate(snippet)) == [7, "2|4|a|b", 0]

    def test_switch_fallthrough(self, evaluate):
        """Test switch with fallthrough and default."""
        snippet = """((v) => {
            let out = '';
            switch (v) {
                case 1: out += 'one';
                case 2: out += 'two'; break;
                default: out += 'other';
            }
            return out;
        })"""
        fn = value_of(evaluate(snippet))
        assert fn(1) == "onetwo"
        assert fn(2) == "two"
        assert fn(9) == "other"

    def test_try_catch_finally(self, evaluate):
        """Test thrown errors are catchable."""
        snippet = """(() => {
            const log = [];
            try { throw new Error('boom'); }
            catch (e) { log.push(e.message); }
            finally { log.push('done'); }
            try { missing(); } catch (e) { log.push(e.name); }
            return log;
        })()"""
        assert value_of(evaluate(snippet)) == ["boom", "done", "ReferenceError"]

    def test_recursion_through_named_function(self, evaluate):
        """Test a named function expression can call itself."""
        assert value_of(evaluate("(function fact(n) { return n <= 1 ? 1 : n * fact(n - 1); })(5)")) == 120

    def test_deep_recursion(self, evaluate):
        """Test ordinary recursion several hundred calls deep."""
        snippet = "(function sum(n) { if (n === 0) { return 0; } return n + sum(n - 1); })(600)"
        assert value_of(evaluate(snippet)) == 180300

    def test_constructor_function(self, evaluate):
        """Test new on a source-defined function."""
        snippet = "(() => { function P(x) { this.x = x; } const p = new P(3); return p instanceof P && p.x; })()"
        assert value_of(evaluate(snippet)) == 3

    def test_name_inference(self, evaluator):
        """Test anonymous functions take the name they are assigned to."""
        outcome = evaluator.evaluate("double = (x) => x * 2", Environment())
        assert value_of(outcome).name == "double"


class TestBuiltins:
    """Whitelisted globals reachable from snippets."""

    @pytest.mark.parametrize(
        "snippet, expected",
        [
            ("Math.max(1, 5, 3)", 5),
            ("Math.floor(2.7)", 2),
            ("JSON.stringify({ a: [1, 'x'] })", '{"a":[1,"x"]}'),
            ("JSON.parse('[1,2]').length", 2),
            ("parseInt('42px')", 42),
            ("Number('3.5')", 3.5),
            ("String(12)", "12"),
            ("[3, 1, 2].sort().join(',')", "1,2,3"),
            ("[1, 2, 3].map(x => x * 2).filter(x => x > 2)", [4, 6]),
            ("[1, 2, 3].reduce((a, b) => a + b, 0)", 6),
            ("'Hello'.toUpperCase()", "HELLO"),
            ("'a-b-c'.split('-')", ["a", "b", "c"]),
            ("(1.005).toFixed(1)", "1.0"),
            ("Object.keys({ a: 1, b: 2 })", ["a", "b"]),
            ("new Map([['a', 1]]).get('a')", 1),
            ("new Set([1, 1, 2]).size", 2),
            ("Array.isArray([])", True),
            ("[1, 2]['01']", UNDEFINED),
            ("[1, 2]['1']", 2),
            ("(() => { const a = [1]; a.label = 'x'; a[-1] = 5; return [a, a.label]; })()", [[1], UNDEFINED]),
        ],
    )
    def test_builtin(self, evaluate, snippet, expected):
        """Test built-in functions and primitive methods."""
        assert value_of(evaluate(snippet)) == expected

    def test_console_log_returns_undefined(self, evaluate, caplog):
        """Test console.log writes to the console logger and returns undefined."""
        caplog.set_level("INFO", logger="loglive.console")
        outcome = evaluate("console.log('hi', 1)")
        assert value_of(outcome) is UNDEFINED
        assert "hi 1" in caplog.text

    def test_host_is_not_reachable(self, evaluate):
        """Test names outside the whitelist are not defined."""
        for name in ("require", "process", "globalThis", "eval"):
            outcome = evaluate(name)
            assert outcome.failure_kind == FailureKind.RUNTIME
            assert outcome.message == f"ReferenceError: {name} is not defined"


class TestFailures:
    """Failures are classified, never raised."""

    def test_reference_error(self, evaluate):
        """Test unknown identifiers."""
        outcome = evaluate("nope + 1")
        assert not outcome.ok
        assert outcome.message == "ReferenceError: nope is not defined"

    def test_type_error(self, evaluate):
        """Test reading a property of undefined."""
        outcome = evaluate("undefined.x")
        assert outcome.failure_kind == FailureKind.RUNTIME
        assert outcome.message.startswith("TypeError: Cannot read properties of undefined")

    def test_not_a_function(self, evaluate):
        """Test calling a non-function."""
        outcome = evaluate("x()", {"x": 1})
        assert outcome.message == "TypeError: x is not a function"

    def test_thrown_value(self, evaluate):
        """Test throw of an error object and of a primitive."""
        assert evaluate("(() => { throw new TypeError('bad'); })()").message == "TypeError: bad"
        assert evaluate("(() => { throw 'oops'; })()").message == "Uncaught oops"

    def test_syntax_error(self, evaluate):
        """Test malformed snippets."""
        outcome = evaluate("1 +")
        assert outcome.failure_kind == FailureKind.SYNTAX

    def test_unsupported_syntax(self, evaluate):
        """Test unsupported constructs are reported by kind."""
        outcome = evaluate("class A {}")
        assert not outcome.ok
        assert "Unsupported syntax 'class'" in outcome.message

    def test_stack_overflow(self, evaluate):
        """Test runaway recursion is reported as a RangeError."""
        outcome = evaluate("(function f(n) { return f(n + 1); })(0)")
        assert outcome.failure_kind == FailureKind.RUNTIME
        assert outcome.message == "RangeError: Maximum call stack size exceeded"

    def test_timeout(self, parser):
        """Test an infinite loop stops at the deadline."""
        evaluator = Evaluator(parser=parser, timeout=0.2)
        outcome = evaluator.evaluate("(() => { while (true) {} })()", Environment())
        assert outcome.failure_kind == FailureKind.TIMEOUT

    def test_const_assignment(self, evaluate):
        """Test assignment to a const binding fails."""
        outcome = evaluate("(() => { const a = 1; a = 2; })()")
        assert outcome.message == "TypeError: Assignment to constant variable."


class TestEnvironmentIsolation:
    """Evaluation never writes into the environment."""

    def test_assignment_goes_to_overlay(self, evaluator):
        """Test assignments and updates do not rebind environment names."""
        environment = Environment()
        environment.bind("x", 1)

        assert value_of(evaluator.evaluate("x = 5, x++, x", environment)) == 6
        assert environment["x"] == 1
        assert value_of(evaluator.evaluate("y = 3", environment)) == 3
        assert "y" not in environment

    def test_environment_lookup_precedes_builtins(self, evaluator):
        """Test environment names shadow built-ins."""
        environment = Environment()
        environment.bind("Math", 7)
        assert value_of(evaluator.evaluate("Math + 1", environment)) == 8

    def test_empty_snippet_is_undefined(self, evaluator):
        """Test an empty snippet yields undefined."""
        assert value_of(evaluator.evaluate("  ", Environment())) is UNDEFINED


def test_unescape():
    """Test escape sequence decoding."""
    assert unescape(r"a\nb\\c\x41\u{1F600}") == "a\nb\\cA\U0001F600"


def test_parse_number_literal():
    """Test numeric literal forms."""
    assert parse_number_literal("1e3") == 1000
    assert parse_number_literal("0b101") == 5
    assert parse_number_literal(".5") == 0.5
