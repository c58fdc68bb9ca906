"""Tree-walking evaluator for the JavaScript subset LogLive understands.

The :class:`Interpreter` walks tree-sitter nodes directly. Identifier lookup
goes through :class:`~loglive.runtime.Scope`: local scopes, then the
environment built from the document, then the whitelisted built-ins.
Anything the interpreter does not know raises
``SyntaxError: Unsupported syntax '<kind>'`` instead of guessing.

:class:`Evaluator` is the public facade: it parses a snippet, evaluates it
under a cooperative deadline, and turns every failure into an
:class:`~loglive.models.EvaluationOutcome`.
"""

from __future__ import annotations

import logging
import math
import re
import sys
import time
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional

from .builtins import (
    get_property,
    has_property,
    instance_of,
    iterate,
    make_globals,
    own_keys,
    set_property,
    to_property_key,
)
from .models import EvaluationOutcome, FailureKind
from .parser import SourceParser, SourceSyntaxError, is_optional_chain
from .runtime import (
    UNDEFINED,
    EvaluationTimeout,
    JSError,
    JSErrorObject,
    JSFunction,
    JSObject,
    JSRangeError,
    JSReferenceError,
    JSSyntaxError,
    JSTypeError,
    NativeFunction,
    Scope,
    ThrowSignal,
    is_callable,
    js_add,
    loose_equals,
    normalize_number,
    number_to_string,
    strict_equals,
    to_display_string,
    to_int32,
    to_number,
    to_string,
    to_uint32,
    truthy,
    type_of,
)

logger = logging.getLogger(__name__)

DEFAULT_EVAL_TIMEOUT = 1.0
MAX_CALL_DEPTH = 1000
# Python frames reserved per JavaScript call while an evaluation runs.
FRAMES_PER_CALL = 30

_NATIVE_ERRORS = (TypeError, ValueError, IndexError, KeyError, AttributeError, OverflowError, ZeroDivisionError)


class ReturnSignal(Exception):
    def __init__(self, value: Any) -> None:
        self.value = value


class BreakSignal(Exception):
    pass


class ContinueSignal(Exception):
    pass


def _named(node: Any) -> List[Any]:
    return [child for child in node.named_children if child.type != "comment"]


def _text(node: Any) -> str:
    return node.text.decode("utf-8")


_ESCAPE_RE = re.compile(r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|\r\n|.)", re.DOTALL)
_SIMPLE_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0"}


def unescape(raw: str) -> str:
    def repl(match: "re.Match[str]") -> str:
        seq = match.group(1)
        if seq.startswith("u{"):
            return chr(int(seq[2:-1], 16))
        if seq.startswith("u") and len(seq) == 5:
            return chr(int(seq[1:], 16))
        if seq.startswith("x") and len(seq) == 3:
            return chr(int(seq[1:], 16))
        if seq in ("\n", "\r\n", "\r"):
            return ""
        return _SIMPLE_ESCAPES.get(seq, seq)

    return _ESCAPE_RE.sub(repl, raw)


def parse_number_literal(text: str) -> Any:
    cleaned = text.replace("_", "")
    lowered = cleaned.lower()
    if lowered.endswith("n") and not lowered.startswith("0x"):
        raise JSSyntaxError("Unsupported syntax 'bigint'")
    if lowered.startswith("0x"):
        return normalize_number(int(cleaned[2:], 16))
    if lowered.startswith("0o"):
        return normalize_number(int(cleaned[2:], 8))
    if lowered.startswith("0b"):
        return normalize_number(int(cleaned[2:], 2))
    return normalize_number(float(cleaned))


class Interpreter:
    """Evaluates tree-sitter JavaScript nodes against a :class:`Scope` chain."""

    def __init__(self, builtins: Optional[Mapping] = None) -> None:
        self._initial_builtins = builtins
        self.builtins: Dict[str, Any] = {}
        self.reset_globals()
        self.deadline: Optional[float] = None
        self._depth = 0

        self._expressions: Dict[str, Callable[[Any, Scope], Any]] = {
            "number": lambda n, s: parse_number_literal(_text(n)),
            "string": lambda n, s: unescape(_text(n)[1:-1]),
            "template_string": self._template_string,
            "true": lambda n, s: True,
            "false": lambda n, s: False,
            "null": lambda n, s: None,
            "undefined": lambda n, s: UNDEFINED,
            "identifier": lambda n, s: s.lookup(_text(n)),
            "this": lambda n, s: self._lookup_this(s),
            "parenthesized_expression": lambda n, s: self.evaluate(_named(n)[0], s),
            "sequence_expression": self._sequence,
            "array": self._array,
            "object": self._object,
            "member_expression": self._member,
            "subscript_expression": self._member,
            "call_expression": self._call,
            "new_expression": self._new,
            "unary_expression": self._unary,
            "binary_expression": self._binary,
            "assignment_expression": self._assignment,
            "augmented_assignment_expression": self._augmented_assignment,
            "update_expression": self._update,
            "ternary_expression": self._ternary,
            "arrow_function": self._function,
            "function_expression": self._function,
            "function": self._function,
            "as_expression": lambda n, s: self.evaluate(_named(n)[0], s),
            "satisfies_expression": lambda n, s: self.evaluate(_named(n)[0], s),
            "non_null_expression": lambda n, s: self.evaluate(_named(n)[0], s),
            "type_assertion": lambda n, s: self.evaluate(_named(n)[-1], s),
        }

        self._statements: Dict[str, Callable[[Any, Scope], None]] = {
            "expression_statement": lambda n, s: self._expression_statement(n, s),
            "lexical_declaration": self._declaration,
            "variable_declaration": self._declaration,
            "function_declaration": self._function_declaration,
            "return_statement": self._return,
            "if_statement": self._if,
            "statement_block": lambda n, s: self.run_statements(_named(n), s.child()),
            "for_statement": self._for,
            "for_in_statement": self._for_in,
            "while_statement": self._while,
            "do_statement": self._do,
            "break_statement": self._break,
            "continue_statement": self._continue,
            "throw_statement": lambda n, s: self._throw(n, s),
            "try_statement": self._try,
            "switch_statement": self._switch,
            "labeled_statement": lambda n, s: self.execute(n.child_by_field_name("body") or _named(n)[-1], s),
            "empty_statement": lambda n, s: None,
            "type_alias_declaration": lambda n, s: None,
            "interface_declaration": lambda n, s: None,
        }

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def reset_globals(self) -> None:
        """Rebuild the host globals in place, dropping writes such as ``Math.PI = 3``."""
        fresh = dict(self._initial_builtins) if self._initial_builtins is not None else make_globals()
        self.builtins.clear()
        self.builtins.update(fresh)

    def root_scope(self, environment: Mapping) -> Scope:
        return Scope(environment=environment, builtins=self.builtins)

    def run(self, node: Any, environment: Mapping, timeout: Optional[float] = None) -> Any:
        """Evaluate one expression node against *environment*."""
        self.deadline = time.monotonic() + timeout if timeout else None
        self._depth = 0
        limit = sys.getrecursionlimit()
        sys.setrecursionlimit(max(limit, MAX_CALL_DEPTH * FRAMES_PER_CALL))
        try:
            return self.evaluate(node, self.root_scope(environment))
        finally:
            self.deadline = None
            sys.setrecursionlimit(limit)

    def tick(self) -> None:
        if self.deadline is not None and time.monotonic() > self.deadline:
            raise EvaluationTimeout("Evaluation timed out")

    def evaluate(self, node: Any, scope: Scope) -> Any:
        handler = self._expressions.get(node.type)
        if handler is None:
            raise JSSyntaxError(f"Unsupported syntax '{node.type}'")
        return handler(node, scope)

    def execute(self, node: Any, scope: Scope) -> None:
        handler = self._statements.get(node.type)
        if handler is None:
            if node.type == "comment":
                return
            raise JSSyntaxError(f"Unsupported syntax '{node.type}'")
        handler(node, scope)

    def run_statements(self, statements: List[Any], scope: Scope) -> None:
        # Function declarations are hoisted to the top of their block.
        for stmt in statements:
            if stmt.type == "function_declaration":
                self._function_declaration(stmt, scope)
        for stmt in statements:
            if stmt.type != "function_declaration":
                self.execute(stmt, scope)

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    def make_function(self, node: Any, scope: Scope, name: str = "") -> JSFunction:
        if node.children and node.children[0].type == "async":
            raise JSSyntaxError("Unsupported syntax 'async function'")
        name_node = node.child_by_field_name("name")
        if name_node is not None:
            name = _text(name_node)
        is_arrow = node.type == "arrow_function"
        params = node.child_by_field_name("parameters")
        if params is None and is_arrow:
            params = node.child_by_field_name("parameter")
        return JSFunction(
            name=name,
            parameters=params,
            body=node.child_by_field_name("body"),
            closure=scope,
            interpreter=self,
            is_arrow=is_arrow,
        )

    def _function(self, node: Any, scope: Scope) -> JSFunction:
        fn = self.make_function(node, scope)
        if node.type != "arrow_function" and fn.name:
            # A named function expression sees its own name.
            own = scope.child()
            own.declare(fn.name, fn)
            fn.closure = own
        return fn

    def _function_declaration(self, node: Any, scope: Scope) -> None:
        fn = self.make_function(node, scope)
        scope.declare(fn.name, fn)

    def call_function(self, fn: Any, args: List[Any], this: Any = UNDEFINED) -> Any:
        if isinstance(fn, JSFunction):
            return self._call_js(fn, args, this)
        if isinstance(fn, NativeFunction) or is_callable(fn):
            try:
                return fn(*args)
            except _NATIVE_ERRORS as exc:
                raise JSTypeError(str(exc)) from exc
        raise JSTypeError(f"{to_display_string(fn)} is not a function")

    def _call_js(self, fn: JSFunction, args: List[Any], this: Any) -> Any:
        self.tick()
        if self._depth >= MAX_CALL_DEPTH:
            raise JSRangeError("Maximum call stack size exceeded")
        self._depth += 1
        try:
            scope = fn.closure.child()
            if not fn.is_arrow:
                scope.declare("this", this)
                scope.declare("arguments", list(args))
            self._bind_parameters(fn.parameters, args, scope)
            body = fn.body
            if body.type != "statement_block":
                return self.evaluate(body, scope)
            try:
                self.run_statements(_named(body), scope)
            except ReturnSignal as ret:
                return ret.value
            return UNDEFINED
        finally:
            self._depth -= 1

    def _bind_parameters(self, params: Any, args: List[Any], scope: Scope) -> None:
        if params is None:
            return
        if params.type == "identifier":
            scope.declare(_text(params), args[0] if args else UNDEFINED)
            return
        index = 0
        for param in _named(params):
            pattern, default = param, None
            if param.type in ("required_parameter", "optional_parameter"):
                pattern = param.child_by_field_name("pattern") or _named(param)[0]
                default = param.child_by_field_name("value")
            elif param.type == "assignment_pattern":
                pattern = param.child_by_field_name("left")
                default = param.child_by_field_name("right")

            if pattern.type == "rest_pattern":
                self.bind_pattern(_named(pattern)[0], list(args[index:]), scope, declare=True)
                return
            if pattern.type == "this":
                continue
            value = args[index] if index < len(args) else UNDEFINED
            if value is UNDEFINED and default is not None:
                value = self.evaluate(default, scope)
            self.bind_pattern(pattern, value, scope, declare=True)
            index += 1

    def bind_pattern(self, pattern: Any, value: Any, scope: Scope, declare: bool, constant: bool = False) -> None:
        """Bind *value* to an identifier or destructuring *pattern*."""
        kind = pattern.type
        if kind in ("identifier", "shorthand_property_identifier_pattern"):
            name = _text(pattern)
            if isinstance(value, JSFunction) and not value.name:
                value.name = name
            if declare:
                scope.declare(name, value, constant)
            else:
                scope.assign(name, value)
            return

        if kind == "assignment_pattern":
            if value is UNDEFINED:
                value = self.evaluate(pattern.child_by_field_name("right"), scope)
            self.bind_pattern(pattern.child_by_field_name("left"), value, scope, declare, constant)
            return

        if kind == "object_pattern":
            if value is UNDEFINED or value is None:
                raise JSTypeError(f"Cannot destructure '{to_string(value)}' as it is {to_string(value)}.")
            used: List[str] = []
            for prop in _named(pattern):
                if prop.type == "shorthand_property_identifier_pattern":
                    used.append(_text(prop))
                    self.bind_pattern(prop, get_property(value, _text(prop)), scope, declare, constant)
                elif prop.type == "pair_pattern":
                    key = self._property_key(prop.child_by_field_name("key"), scope)
                    used.append(key)
                    self.bind_pattern(prop.child_by_field_name("value"), get_property(value, key), scope, declare, constant)
                elif prop.type == "object_assignment_pattern":
                    left = prop.child_by_field_name("left")
                    used.append(_text(left))
                    item = get_property(value, _text(left))
                    if item is UNDEFINED:
                        item = self.evaluate(prop.child_by_field_name("right"), scope)
                    self.bind_pattern(left, item, scope, declare, constant)
                elif prop.type == "rest_pattern":
                    rest = JSObject({k: get_property(value, k) for k in own_keys(value) if k not in used})
                    self.bind_pattern(_named(prop)[0], rest, scope, declare, constant)
                else:
                    raise JSSyntaxError(f"Unsupported syntax '{prop.type}'")
            return

        if kind == "array_pattern":
            items = iterate(value)
            for i, element in enumerate(_named(pattern)):
                if element.type == "rest_pattern":
                    self.bind_pattern(_named(element)[0], items[i:], scope, declare, constant)
                    return
                self.bind_pattern(element, items[i] if i < len(items) else UNDEFINED, scope, declare, constant)
            return

        if not declare and kind in ("member_expression", "subscript_expression"):
            target, key = self._reference(pattern, scope)
            set_property(target, key, value)
            return

        raise JSSyntaxError(f"Unsupported syntax '{kind}'")

    def _lookup_this(self, scope: Scope) -> Any:
        current: Optional[Scope] = scope
        while current is not None:
            if "this" in current.vars:
                return current.vars["this"]
            current = current.parent
        return UNDEFINED

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def _template_string(self, node: Any, scope: Scope) -> str:
        raw = node.text
        base = node.start_byte
        out: List[str] = []
        pos = 1
        for child in node.named_children:
            if child.type != "template_substitution":
                continue
            out.append(unescape(raw[pos:child.start_byte - base].decode("utf-8")))
            inner = _named(child)
            out.append(to_string(self.evaluate(inner[0], scope)) if inner else "")
            pos = child.end_byte - base
        out.append(unescape(raw[pos:-1].decode("utf-8")))
        return "".join(out)

    def _sequence(self, node: Any, scope: Scope) -> Any:
        result: Any = UNDEFINED
        for child in _named(node):
            result = self.evaluate(child, scope)
        return result

    def _array(self, node: Any, scope: Scope) -> List[Any]:
        items: List[Any] = []
        for child in _named(node):
            if child.type == "spread_element":
                items.extend(iterate(self.evaluate(_named(child)[0], scope)))
            else:
                items.append(self.evaluate(child, scope))
        return items

    def _property_key(self, key: Any, scope: Scope) -> str:
        if key.type in ("property_identifier", "identifier", "private_property_identifier"):
            return _text(key)
        if key.type == "string":
            return unescape(_text(key)[1:-1])
        if key.type == "number":
            return number_to_string(parse_number_literal(_text(key)))
        if key.type == "computed_property_name":
            return to_string(to_property_key(self.evaluate(_named(key)[0], scope)))
        raise JSSyntaxError(f"Unsupported syntax '{key.type}'")

    def _object(self, node: Any, scope: Scope) -> JSObject:
        obj = JSObject()
        for prop in _named(node):
            if prop.type == "pair":
                key = self._property_key(prop.child_by_field_name("key"), scope)
                value = self.evaluate(prop.child_by_field_name("value"), scope)
                if isinstance(value, JSFunction) and not value.name:
                    value.name = key
                obj[key] = value
            elif prop.type == "shorthand_property_identifier":
                name = _text(prop)
                obj[name] = scope.lookup(name)
            elif prop.type == "spread_element":
                source = self.evaluate(_named(prop)[0], scope)
                for key in own_keys(source):
                    obj[key] = get_property(source, key)
            elif prop.type == "method_definition":
                if any(not c.is_named and c.type in ("get", "set", "async", "*") for c in prop.children):
                    raise JSSyntaxError("Unsupported syntax 'accessor method'")
                key = self._property_key(prop.child_by_field_name("name"), scope)
                obj[key] = self.make_function(prop, scope, name=key)
            else:
                raise JSSyntaxError(f"Unsupported syntax '{prop.type}'")
        return obj

    def _member_key(self, node: Any, scope: Scope) -> Any:
        if node.type == "member_expression":
            return _text(node.child_by_field_name("property"))
        return to_property_key(self.evaluate(node.child_by_field_name("index"), scope))

    def _reference(self, node: Any, scope: Scope) -> tuple:
        target = self.evaluate(node.child_by_field_name("object"), scope)
        return target, self._member_key(node, scope)

    def _member(self, node: Any, scope: Scope) -> Any:
        target = self.evaluate(node.child_by_field_name("object"), scope)
        if is_optional_chain(node) and (target is None or target is UNDEFINED):
            return UNDEFINED
        return get_property(target, self._member_key(node, scope))

    def _arguments(self, node: Any, scope: Scope) -> List[Any]:
        if node is None:
            return []
        if node.type == "template_string":
            raise JSSyntaxError("Unsupported syntax 'tagged template'")
        args: List[Any] = []
        for child in _named(node):
            if child.type == "spread_element":
                args.extend(iterate(self.evaluate(_named(child)[0], scope)))
            else:
                args.append(self.evaluate(child, scope))
        return args

    def _call(self, node: Any, scope: Scope) -> Any:
        callee = node.child_by_field_name("function")
        this: Any = UNDEFINED
        if callee.type in ("member_expression", "subscript_expression"):
            this = self.evaluate(callee.child_by_field_name("object"), scope)
            if is_optional_chain(callee) and (this is None or this is UNDEFINED):
                return UNDEFINED
            fn = get_property(this, self._member_key(callee, scope))
            label = _text(callee)
        else:
            if callee.type == "import":
                raise JSSyntaxError("Unsupported syntax 'dynamic import'")
            fn = self.evaluate(callee, scope)
            label = _text(callee) if callee.type == "identifier" else "expression"
        if is_optional_chain(node) and (fn is None or fn is UNDEFINED):
            return UNDEFINED
        args = self._arguments(node.child_by_field_name("arguments"), scope)
        if not is_callable(fn):
            raise JSTypeError(f"{label} is not a function")
        if isinstance(fn, JSFunction):
            return self._call_js(fn, args, this)
        return self.call_function(fn, args, this)

    def _new(self, node: Any, scope: Scope) -> Any:
        ctor_node = node.child_by_field_name("constructor")
        ctor = self.evaluate(ctor_node, scope)
        args = self._arguments(node.child_by_field_name("arguments"), scope)
        if isinstance(ctor, NativeFunction) and ctor.construct is not None:
            try:
                return ctor.construct(*args)
            except _NATIVE_ERRORS as exc:
                raise JSTypeError(str(exc)) from exc
        if isinstance(ctor, JSFunction) and not ctor.is_arrow:
            instance = JSObject()
            instance.constructed_by = ctor
            result = self._call_js(ctor, args, instance)
            if isinstance(result, (JSObject, list)) or is_callable(result):
                return result
            return instance
        raise JSTypeError(f"{_text(ctor_node)} is not a constructor")

    def _unary(self, node: Any, scope: Scope) -> Any:
        op = node.child_by_field_name("operator").type
        operand = node.child_by_field_name("argument")
        if op == "typeof":
            if operand.type == "identifier" and not scope.has(_text(operand)):
                return "undefined"
            return type_of(self.evaluate(operand, scope))
        if op == "delete":
            if operand.type in ("member_expression", "subscript_expression"):
                target, key = self._reference(operand, scope)
                if isinstance(target, JSObject):
                    target.pop(to_string(key), None)
                return True
            return True
        value = self.evaluate(operand, scope)
        if op == "!":
            return not truthy(value)
        if op == "-":
            num = to_number(value)
            return normalize_number(-num) if num != 0 else (-0.0 if isinstance(num, int) else -num)
        if op == "+":
            return to_number(value)
        if op == "~":
            return ~to_int32(value)
        if op == "void":
            return UNDEFINED
        raise JSSyntaxError(f"Unsupported syntax 'unary {op}'")

    def _binary(self, node: Any, scope: Scope) -> Any:
        op = node.child_by_field_name("operator").type
        left_node = node.child_by_field_name("left")
        right_node = node.child_by_field_name("right")

        if op in ("&&", "||", "??"):
            left = self.evaluate(left_node, scope)
            if op == "&&":
                return self.evaluate(right_node, scope) if truthy(left) else left
            if op == "||":
                return left if truthy(left) else self.evaluate(right_node, scope)
            return self.evaluate(right_node, scope) if left is None or left is UNDEFINED else left

        left = self.evaluate(left_node, scope)
        right = self.evaluate(right_node, scope)
        return binary_operation(op, left, right)

    def _assign_target(self, target: Any, value: Any, scope: Scope) -> None:
        if target.type == "identifier":
            if isinstance(value, JSFunction) and not value.name:
                value.name = _text(target)
            scope.assign(_text(target), value)
        elif target.type in ("member_expression", "subscript_expression"):
            obj, key = self._reference(target, scope)
            set_property(obj, key, value)
        elif target.type == "parenthesized_expression":
            self._assign_target(_named(target)[0], value, scope)
        elif target.type in ("object_pattern", "array_pattern"):
            self.bind_pattern(target, value, scope, declare=False)
        else:
            raise JSSyntaxError(f"Invalid assignment target '{target.type}'")

    def _read_target(self, target: Any, scope: Scope) -> Any:
        if target.type in ("member_expression", "subscript_expression"):
            obj, key = self._reference(target, scope)
            return get_property(obj, key)
        return self.evaluate(target, scope)

    def _assignment(self, node: Any, scope: Scope) -> Any:
        value = self.evaluate(node.child_by_field_name("right"), scope)
        self._assign_target(node.child_by_field_name("left"), value, scope)
        return value

    def _augmented_assignment(self, node: Any, scope: Scope) -> Any:
        op = node.child_by_field_name("operator").type[:-1]
        target = node.child_by_field_name("left")
        current = self._read_target(target, scope)
        right_node = node.child_by_field_name("right")
        if op == "&&":
            if not truthy(current):
                return current
            value = self.evaluate(right_node, scope)
        elif op == "||":
            if truthy(current):
                return current
            value = self.evaluate(right_node, scope)
        elif op == "??":
            if current is not None and current is not UNDEFINED:
                return current
            value = self.evaluate(right_node, scope)
        else:
            value = binary_operation(op, current, self.evaluate(right_node, scope))
        self._assign_target(target, value, scope)
        return value

    def _update(self, node: Any, scope: Scope) -> Any:
        target = node.child_by_field_name("argument")
        op = node.child_by_field_name("operator").type
        prefix = not node.children[0].is_named
        old = to_number(self._read_target(target, scope))
        new = normalize_number(old + 1 if op == "++" else old - 1)
        self._assign_target(target, new, scope)
        return new if prefix else old

    def _ternary(self, node: Any, scope: Scope) -> Any:
        if truthy(self.evaluate(node.child_by_field_name("condition"), scope)):
            return self.evaluate(node.child_by_field_name("consequence"), scope)
        return self.evaluate(node.child_by_field_name("alternative"), scope)

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def _expression_statement(self, node: Any, scope: Scope) -> None:
        for child in _named(node):
            self.evaluate(child, scope)

    def _declaration(self, node: Any, scope: Scope) -> None:
        constant = bool(node.children) and node.children[0].type == "const"
        for declarator in _named(node):
            if declarator.type != "variable_declarator":
                continue
            value_node = declarator.child_by_field_name("value")
            value = self.evaluate(value_node, scope) if value_node is not None else UNDEFINED
            self.bind_pattern(declarator.child_by_field_name("name"), value, scope, declare=True, constant=constant)

    def _return(self, node: Any, scope: Scope) -> None:
        children = _named(node)
        raise ReturnSignal(self.evaluate(children[0], scope) if children else UNDEFINED)

    def _if(self, node: Any, scope: Scope) -> None:
        if truthy(self.evaluate(node.child_by_field_name("condition"), scope)):
            self.execute(node.child_by_field_name("consequence"), scope)
            return
        alternative = node.child_by_field_name("alternative")
        if alternative is not None:
            branch = _named(alternative)[0] if alternative.type == "else_clause" else alternative
            self.execute(branch, scope)

    def _loop_body(self, body: Any, scope: Scope) -> bool:
        """Run one iteration; return False when the loop should stop."""
        try:
            self.execute(body, scope)
        except BreakSignal:
            return False
        except ContinueSignal:
            pass
        return True

    def _clause(self, node: Any, scope: Scope, default: Any = True) -> Any:
        if node is None or node.type in ("empty_statement", ";"):
            return default
        if node.type in ("lexical_declaration", "variable_declaration"):
            self._declaration(node, scope)
            return default
        if node.type == "expression_statement":
            children = _named(node)
            return self._sequence(node, scope) if children else default
        return self.evaluate(node, scope)

    def _for(self, node: Any, scope: Scope) -> None:
        loop_scope = scope.child()
        self._clause(node.child_by_field_name("initializer"), loop_scope)
        condition = node.child_by_field_name("condition")
        increment = node.child_by_field_name("increment")
        body = node.child_by_field_name("body")
        while True:
            self.tick()
            if not truthy(self._clause(condition, loop_scope)):
                break
            if not self._loop_body(body, loop_scope.child()):
                break
            if increment is not None:
                self.evaluate(increment, loop_scope)

    def _for_in(self, node: Any, scope: Scope) -> None:
        operator = node.child_by_field_name("operator")
        is_of = (operator.type if operator is not None else "") == "of" or any(
            not c.is_named and c.type == "of" for c in node.children
        )
        kind = node.child_by_field_name("kind")
        left = node.child_by_field_name("left")
        right = self.evaluate(node.child_by_field_name("right"), scope)
        body = node.child_by_field_name("body")

        if is_of:
            items = iterate(right)
        else:
            items = [] if right is None or right is UNDEFINED else own_keys(right)

        for item in items:
            self.tick()
            iteration = scope.child()
            if kind is not None:
                self.bind_pattern(left, item, iteration, declare=True, constant=kind.type == "const")
            else:
                self._assign_target(left, item, iteration)
            if not self._loop_body(body, iteration):
                break

    def _while(self, node: Any, scope: Scope) -> None:
        condition = node.child_by_field_name("condition")
        body = node.child_by_field_name("body")
        while True:
            self.tick()
            if not truthy(self.evaluate(condition, scope)):
                break
            if not self._loop_body(body, scope):
                break

    def _do(self, node: Any, scope: Scope) -> None:
        condition = node.child_by_field_name("condition")
        body = node.child_by_field_name("body")
        while True:
            self.tick()
            if not self._loop_body(body, scope):
                break
            if not truthy(self.evaluate(condition, scope)):
                break

    def _break(self, node: Any, scope: Scope) -> None:
        raise BreakSignal()

    def _continue(self, node: Any, scope: Scope) -> None:
        raise ContinueSignal()

    def _throw(self, node: Any, scope: Scope) -> None:
        raise ThrowSignal(self.evaluate(_named(node)[0], scope))

    def _try(self, node: Any, scope: Scope) -> None:
        handler = node.child_by_field_name("handler")
        finalizer = node.child_by_field_name("finalizer")
        try:
            self.execute(node.child_by_field_name("body"), scope)
        except (ThrowSignal, JSError) as exc:
            if handler is None:
                raise
            thrown = exc.value if isinstance(exc, ThrowSignal) else JSErrorObject.create(exc.name, exc.message)
            catch_scope = scope.child()
            parameter = handler.child_by_field_name("parameter")
            if parameter is not None:
                self.bind_pattern(parameter, thrown, catch_scope, declare=True)
            self.execute(handler.child_by_field_name("body"), catch_scope)
        finally:
            if finalizer is not None:
                self.execute(finalizer.child_by_field_name("body"), scope)

    def _switch(self, node: Any, scope: Scope) -> None:
        discriminant = self.evaluate(node.child_by_field_name("value"), scope)
        cases = [c for c in _named(node.child_by_field_name("body")) if c.type in ("switch_case", "switch_default")]
        start: Optional[int] = None
        for i, case in enumerate(cases):
            if case.type == "switch_case":
                test = case.child_by_field_name("value")
                if strict_equals(discriminant, self.evaluate(test, scope)):
                    start = i
                    break
        if start is None:
            start = next((i for i, c in enumerate(cases) if c.type == "switch_default"), None)
        if start is None:
            return
        block = scope.child()
        try:
            for case in cases[start:]:
                test = case.child_by_field_name("value")
                body = case.children_by_field_name("body") or [
                    c for c in _named(case) if test is None or c.id != test.id
                ]
                self.run_statements(body, block)
        except BreakSignal:
            pass


def binary_operation(op: str, left: Any, right: Any) -> Any:
    """Non-short-circuit binary operators with JavaScript coercion rules."""
    if op == "+":
        return js_add(left, right)
    if op == "===":
        return strict_equals(left, right)
    if op == "!==":
        return not strict_equals(left, right)
    if op == "==":
        return loose_equals(left, right)
    if op == "!=":
        return not loose_equals(left, right)
    if op in ("<", ">", "<=", ">="):
        return _compare(op, left, right)
    if op == "instanceof":
        return instance_of(left, right)
    if op == "in":
        return has_property(right, left)

    if op in ("&", "|", "^", "<<", ">>", ">>>"):
        a = to_int32(left)
        if op == "&":
            return to_int32(a & to_int32(right))
        if op == "|":
            return to_int32(a | to_int32(right))
        if op == "^":
            return to_int32(a ^ to_int32(right))
        shift = to_uint32(right) & 31
        if op == "<<":
            return to_int32(a << shift)
        if op == ">>":
            return a >> shift
        return to_uint32(a) >> shift

    x, y = to_number(left), to_number(right)
    if op == "-":
        return normalize_number(x - y)
    if op == "*":
        return normalize_number(x * y)
    if op == "/":
        if y == 0:
            if x == 0 or (isinstance(x, float) and math.isnan(x)):
                return math.nan
            return math.copysign(math.inf, x) * math.copysign(1, y)
        return normalize_number(x / y)
    if op == "%":
        if y == 0 or (isinstance(x, float) and (math.isnan(x) or math.isinf(x))):
            return math.nan
        if isinstance(y, float) and math.isinf(y):
            return x
        return normalize_number(math.fmod(x, y))
    if op == "**":
        if isinstance(x, int) and isinstance(y, int) and y >= 0:
            return normalize_number(x ** y)
        try:
            return normalize_number(math.pow(x, y))
        except OverflowError:
            return math.inf
        except ValueError:
            return math.nan
    raise JSSyntaxError(f"Unsupported syntax 'operator {op}'")


def _compare(op: str, left: Any, right: Any) -> bool:
    if isinstance(left, str) and isinstance(right, str):
        a, b = left, right
    else:
        a, b = to_number(left), to_number(right)
        if (isinstance(a, float) and math.isnan(a)) or (isinstance(b, float) and math.isnan(b)):
            return False
    if op == "<":
        return a < b
    if op == ">":
        return a > b
    if op == "<=":
        return a <= b
    return a >= b


class Evaluator:
    """Runs snippets against an environment and classifies the outcome.

    One evaluator (and its interpreter) is shared by the scope builder and
    the target evaluation of a session, so functions built from
    declarations observe the deadline of whichever evaluation calls them.
    """

    def __init__(
        self,
        parser: Optional[SourceParser] = None,
        timeout: Optional[float] = DEFAULT_EVAL_TIMEOUT,
        interpreter: Optional[Interpreter] = None,
    ) -> None:
        self.parser = parser or SourceParser()
        self.timeout = timeout
        self.interpreter = interpreter or Interpreter()

    def evaluate(
        self,
        snippet: str,
        environment: Mapping,
        language: Optional[str] = None,
    ) -> EvaluationOutcome:
        """Evaluate *snippet* as a single expression; never raises."""
        if not snippet.strip():
            return EvaluationOutcome.success(UNDEFINED)
        try:
            _, node = self.parser.parse_expression(snippet, language)
        except SourceSyntaxError as exc:
            return EvaluationOutcome.failure(FailureKind.SYNTAX, f"SyntaxError: {exc}")
        return self.evaluate_node(node, environment)

    def evaluate_node(self, node: Any, environment: Mapping) -> EvaluationOutcome:
        try:
            value = self.interpreter.run(node, environment, timeout=self.timeout)
        except EvaluationTimeout:
            return EvaluationOutcome.failure(
                FailureKind.TIMEOUT, f"Evaluation exceeded {self.timeout}s and was stopped"
            )
        except ThrowSignal as exc:
            return EvaluationOutcome.failure(FailureKind.RUNTIME, str(exc))
        except JSError as exc:
            return EvaluationOutcome.failure(FailureKind.RUNTIME, str(exc))
        except RecursionError:
            return EvaluationOutcome.failure(FailureKind.RUNTIME, "RangeError: Maximum call stack size exceeded")
        except Exception as exc:
            logger.debug("Internal error while evaluating %r", node.type, exc_info=True)
            return EvaluationOutcome.failure(FailureKind.RUNTIME, f"InternalError: {exc}")
        return EvaluationOutcome.success(value)
