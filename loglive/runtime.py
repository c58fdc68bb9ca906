"""Runtime value model for evaluated JavaScript.

JavaScript values map onto Python as follows:

- ``undefined`` -> :data:`UNDEFINED`, ``null`` -> ``None``
- booleans -> ``bool``, numbers -> ``int`` / ``float``, strings -> ``str``
- arrays -> ``list``, plain objects -> :class:`JSObject`
- functions -> :class:`JSFunction` (source-defined) or :class:`NativeFunction`
- ``Map`` / ``Set`` -> :class:`JSMap` / :class:`JSSet`
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

MAX_SAFE_INTEGER = 2 ** 53 - 1


class _Undefined:
    _instance: Optional["_Undefined"] = None

    def __new__(cls) -> "_Undefined":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()


# ===================================================================
# Errors
# ===================================================================

class JSError(Exception):
    """A JavaScript-level error raised by the evaluator itself."""

    name = "Error"

    def __init__(self, message: str = "") -> None:
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.name}: {self.message}" if self.message else self.name


class JSReferenceError(JSError):
    name = "ReferenceError"


class JSTypeError(JSError):
    name = "TypeError"


class JSRangeError(JSError):
    name = "RangeError"


class JSSyntaxError(JSError):
    name = "SyntaxError"


class ThrowSignal(Exception):
    """Carries a value thrown by evaluated code (``throw expr``)."""

    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(describe_thrown(value))


class EvaluationTimeout(Exception):
    """The cooperative deadline of one evaluation elapsed."""


def describe_thrown(value: Any) -> str:
    if isinstance(value, JSErrorObject):
        message = value.get("message", "")
        name = value.get("name", "Error")
        return f"{name}: {message}" if message else str(name)
    return f"Uncaught {to_display_string(value)}"


# ===================================================================
# Objects
# ===================================================================

class JSObject(dict):
    """A plain JavaScript object. Equality is identity, like JavaScript."""

    constructed_by: Any = None

    __hash__ = object.__hash__

    def __eq__(self, other: object) -> bool:
        return self is other

    def __ne__(self, other: object) -> bool:
        return self is not other


class JSErrorObject(JSObject):
    """Instances created by ``new Error(...)`` and its subclasses."""

    @classmethod
    def create(cls, name: str, message: str) -> "JSErrorObject":
        obj = cls()
        obj["name"] = name
        obj["message"] = message
        return obj


class JSFunction:
    """A function defined in evaluated source (declaration, expression or arrow)."""

    def __init__(
        self,
        name: str,
        parameters: Any,
        body: Any,
        closure: "Scope",
        interpreter: Any,
        is_arrow: bool = False,
        this_value: Any = UNDEFINED,
    ) -> None:
        self.name = name
        self.parameters = parameters
        self.body = body
        self.closure = closure
        self.interpreter = interpreter
        self.is_arrow = is_arrow
        self.this_value = this_value
        self.properties = JSObject()

    @property
    def arity(self) -> int:
        if self.parameters is None:
            return 0
        if self.parameters.type != "formal_parameters":
            return 1
        count = 0
        for param in self.parameters.named_children:
            if param.type in ("rest_pattern", "assignment_pattern", "optional_parameter"):
                break
            if param.type == "required_parameter" and param.child_by_field_name("value") is not None:
                break
            if param.type == "comment":
                continue
            count += 1
        return count

    def __call__(self, *args: Any, this: Any = UNDEFINED) -> Any:
        return self.interpreter.call_function(self, list(args), this)

    def __repr__(self) -> str:
        return f"<JSFunction {self.name or '(anonymous)'}>"


class NativeFunction:
    """A host function exposed to evaluated code, optionally constructible."""

    def __init__(
        self,
        name: str,
        func: Callable[..., Any],
        construct: Optional[Callable[..., Any]] = None,
        properties: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.name = name
        self.func = func
        self.construct = construct
        self.properties = JSObject(properties or {})

    def __call__(self, *args: Any, this: Any = UNDEFINED) -> Any:
        return self.func(*args)

    def __repr__(self) -> str:
        return f"<NativeFunction {self.name}>"


def _key_of(value: Any) -> Tuple[str, Any]:
    """SameValueZero key for Map/Set membership."""
    if value is UNDEFINED:
        return ("undefined", None)
    if value is None:
        return ("null", None)
    if isinstance(value, bool):
        return ("boolean", value)
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return ("number", "NaN")
        return ("number", value)
    if isinstance(value, str):
        return ("string", value)
    return ("object", id(value))


class JSMap:
    js_members = frozenset(
        {"get", "set", "has", "delete", "clear", "forEach", "keys", "values", "entries", "size"}
    )

    def __init__(self, entries: Optional[List[Any]] = None) -> None:
        self._data: Dict[Tuple[str, Any], Tuple[Any, Any]] = {}
        for entry in entries or []:
            if not isinstance(entry, list) or not entry:
                raise JSTypeError("Iterator value is not an entry object")
            self.set(entry[0], entry[1] if len(entry) > 1 else UNDEFINED)

    @property
    def size(self) -> int:
        return len(self._data)

    def get(self, key: Any) -> Any:
        item = self._data.get(_key_of(key))
        return UNDEFINED if item is None else item[1]

    def set(self, key: Any, value: Any = UNDEFINED) -> "JSMap":
        self._data[_key_of(key)] = (key, value)
        return self

    def has(self, key: Any) -> bool:
        return _key_of(key) in self._data

    def delete(self, key: Any) -> bool:
        return self._data.pop(_key_of(key), None) is not None

    def clear(self) -> Any:
        self._data.clear()
        return UNDEFINED

    def forEach(self, callback: Callable[..., Any]) -> Any:
        for key, value in list(self._data.values()):
            callback(value, key, self)
        return UNDEFINED

    def keys(self) -> List[Any]:
        return [k for k, _ in self._data.values()]

    def values(self) -> List[Any]:
        return [v for _, v in self._data.values()]

    def entries(self) -> List[Any]:
        return [[k, v] for k, v in self._data.values()]

    def items(self) -> Iterator[Tuple[Any, Any]]:
        return iter(list(self._data.values()))


class JSSet:
    js_members = frozenset(
        {"add", "has", "delete", "clear", "forEach", "keys", "values", "entries", "size"}
    )

    def __init__(self, values: Optional[List[Any]] = None) -> None:
        self._data: Dict[Tuple[str, Any], Any] = {}
        for value in values or []:
            self.add(value)

    @property
    def size(self) -> int:
        return len(self._data)

    def add(self, value: Any) -> "JSSet":
        self._data.setdefault(_key_of(value), value)
        return self

    def has(self, value: Any) -> bool:
        return _key_of(value) in self._data

    def delete(self, value: Any) -> bool:
        return self._data.pop(_key_of(value), None) is not None

    def clear(self) -> Any:
        self._data.clear()
        return UNDEFINED

    def forEach(self, callback: Callable[..., Any]) -> Any:
        for value in list(self._data.values()):
            callback(value, value, self)
        return UNDEFINED

    def values(self) -> List[Any]:
        return list(self._data.values())

    keys = values

    def entries(self) -> List[Any]:
        return [[v, v] for v in self._data.values()]


# ===================================================================
# Scopes
# ===================================================================

class Environment(Mapping):
    """Flat binding name -> runtime value mapping produced by the scope builder.

    The first successful binding for a name wins; :meth:`bind` refuses to
    overwrite. The evaluator only reads from it.
    """

    def __init__(self) -> None:
        self._values: Dict[str, Any] = {}
        self.bindings: Dict[str, Any] = {}
        self.failures: Dict[str, str] = {}
        self.skipped_imports: List[str] = []

    def __getitem__(self, name: str) -> Any:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def bind(self, name: str, value: Any, binding: Any = None) -> bool:
        if name in self._values:
            return False
        self._values[name] = value
        if binding is not None:
            self.bindings[name] = binding
        self.failures.pop(name, None)
        return True

    def record_failure(self, name: str, message: str) -> None:
        if name not in self._values:
            self.failures[name] = message

    def __repr__(self) -> str:
        return f"<Environment {sorted(self._values)}>"


class Scope:
    """A lexical scope used while evaluating.

    The root scope of every evaluation is an overlay on top of the
    :class:`Environment`: writes land in the overlay, reads fall through to
    the environment and then to the built-ins.
    """

    def __init__(
        self,
        parent: Optional["Scope"] = None,
        environment: Optional[Mapping] = None,
        builtins: Optional[Mapping] = None,
    ) -> None:
        self.parent = parent
        self.environment = environment if environment is not None else (
            parent.environment if parent is not None else {}
        )
        self.builtins = builtins if builtins is not None else (
            parent.builtins if parent is not None else {}
        )
        self.vars: Dict[str, Any] = {}
        self.consts: set = set()

    def child(self) -> "Scope":
        return Scope(parent=self)

    def declare(self, name: str, value: Any, constant: bool = False) -> None:
        self.vars[name] = value
        if constant:
            self.consts.add(name)
        else:
            self.consts.discard(name)

    def lookup(self, name: str) -> Any:
        scope: Optional[Scope] = self
        while scope is not None:
            if name in scope.vars:
                return scope.vars[name]
            scope = scope.parent
        if name in self.environment:
            return self.environment[name]
        if name in self.builtins:
            return self.builtins[name]
        raise JSReferenceError(f"{name} is not defined")

    def has(self, name: str) -> bool:
        scope: Optional[Scope] = self
        while scope is not None:
            if name in scope.vars:
                return True
            scope = scope.parent
        return name in self.environment or name in self.builtins

    def assign(self, name: str, value: Any) -> None:
        scope: Optional[Scope] = self
        root = self
        while scope is not None:
            if name in scope.vars:
                if name in scope.consts:
                    raise JSTypeError("Assignment to constant variable.")
                scope.vars[name] = value
                return
            root = scope
            scope = scope.parent
        root.vars[name] = value


# ===================================================================
# Coercions
# ===================================================================

def normalize_number(value: Any) -> Any:
    """Collapse integral floats to ints so results print like JavaScript numbers."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, float):
        if value.is_integer() and abs(value) <= MAX_SAFE_INTEGER:
            if value == 0 and math.copysign(1.0, value) < 0:
                return value
            return int(value)
        return value
    if isinstance(value, int) and abs(value) > MAX_SAFE_INTEGER:
        return float(value)
    return value


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_callable(value: Any) -> bool:
    return isinstance(value, (JSFunction, NativeFunction)) or (
        callable(value) and not isinstance(value, (JSObject, JSMap, JSSet, type))
    )


_NUMERIC_RE = re.compile(r"^[+-]?(\d+\.?\d*([eE][+-]?\d+)?|\.\d+([eE][+-]?\d+)?)$")


def string_to_number(text: str) -> Any:
    s = text.strip()
    if s == "":
        return 0
    lowered = s.lower()
    try:
        if lowered.startswith("0x"):
            return int(s[2:], 16)
        if lowered.startswith("0o"):
            return int(s[2:], 8)
        if lowered.startswith("0b"):
            return int(s[2:], 2)
    except ValueError:
        return math.nan
    if s in ("Infinity", "+Infinity"):
        return math.inf
    if s == "-Infinity":
        return -math.inf
    if not _NUMERIC_RE.match(s):
        return math.nan
    return normalize_number(float(s))


def to_primitive(value: Any) -> Any:
    if isinstance(value, (list, JSObject, JSMap, JSSet, JSFunction, NativeFunction)):
        return to_string(value)
    return value


def to_number(value: Any) -> Any:
    if value is UNDEFINED:
        return math.nan
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1 if value else 0
    if is_number(value):
        return value
    if isinstance(value, str):
        return string_to_number(value)
    return to_number(to_primitive(value))


def to_int32(value: Any) -> int:
    num = to_number(value)
    if isinstance(num, float) and (math.isnan(num) or math.isinf(num)):
        return 0
    num = int(num) & 0xFFFFFFFF
    return num - 0x100000000 if num >= 0x80000000 else num


def to_uint32(value: Any) -> int:
    return to_int32(value) & 0xFFFFFFFF


_EXP_RE = re.compile(r"e([+-])0*(\d+)")


def number_to_string(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    text = repr(value)
    if "e" in text:
        text = _EXP_RE.sub(lambda m: f"e{m.group(1)}{m.group(2)}", text)
        mantissa, _, exponent = text.partition("e")
        if mantissa.endswith(".0"):
            mantissa = mantissa[:-2]
        text = f"{mantissa}e{exponent}"
    return text


def to_string(value: Any) -> str:
    """JavaScript ``String(value)``."""
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return number_to_string(value)
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return ",".join("" if item is None or item is UNDEFINED else to_string(item) for item in value)
    if isinstance(value, JSErrorObject):
        return describe_thrown(value)
    if isinstance(value, JSMap):
        return "[object Map]"
    if isinstance(value, JSSet):
        return "[object Set]"
    if isinstance(value, (JSFunction, NativeFunction)):
        return f"function {value.name}() {{ [native code] }}" if isinstance(value, NativeFunction) else (
            f"function {value.name or ''}() {{ ... }}"
        )
    if isinstance(value, JSObject):
        return "[object Object]"
    return str(value)


def to_display_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    return to_string(value)


def truthy(value: Any) -> bool:
    if value is UNDEFINED or value is None:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return not (value == 0 or (isinstance(value, float) and math.isnan(value)))
    if isinstance(value, str):
        return value != ""
    return True


def type_of(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "object"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (JSFunction, NativeFunction)) or is_callable(value):
        return "function"
    return "object"


def _is_primitive(value: Any) -> bool:
    return value is UNDEFINED or value is None or isinstance(value, (bool, int, float, str))


def strict_equals(left: Any, right: Any) -> bool:
    if _is_primitive(left) and _is_primitive(right):
        if isinstance(left, bool) or isinstance(right, bool):
            return isinstance(left, bool) and isinstance(right, bool) and left == right
        if is_number(left) and is_number(right):
            return left == right
        if type(left) is not type(right):
            return False
        return left == right
    return left is right


def loose_equals(left: Any, right: Any) -> bool:
    nullish = (None, UNDEFINED)
    if left in nullish or right in nullish:
        return (left is None or left is UNDEFINED) and (right is None or right is UNDEFINED)
    if _is_primitive(left) and _is_primitive(right):
        if isinstance(left, str) and isinstance(right, str):
            return left == right
        return to_number(left) == to_number(right)
    if _is_primitive(left) != _is_primitive(right):
        obj, prim = (right, left) if _is_primitive(left) else (left, right)
        return loose_equals(to_primitive(obj), prim)
    return left is right


def js_add(left: Any, right: Any) -> Any:
    left_p, right_p = to_primitive(left), to_primitive(right)
    if isinstance(left_p, str) or isinstance(right_p, str):
        return to_string(left_p) + to_string(right_p)
    return normalize_number(to_number(left_p) + to_number(right_p))
