"""Whitelisted host built-ins and primitive methods for evaluated code.

Identifier lookup falls back to :func:`make_globals` only after the
environment; nothing outside this module is reachable from evaluated code.
"""

from __future__ import annotations

import functools
import json
import logging
import math
import random
import re
from typing import Any, Callable, Dict, Iterable, List, Optional

from .runtime import (
    UNDEFINED,
    JSErrorObject,
    JSFunction,
    JSMap,
    JSObject,
    JSRangeError,
    JSSet,
    JSSyntaxError,
    JSTypeError,
    NativeFunction,
    is_callable,
    is_number,
    normalize_number,
    number_to_string,
    strict_equals,
    string_to_number,
    to_display_string,
    to_number,
    to_string,
    truthy,
    type_of,
)

console_logger = logging.getLogger("loglive.console")


# ===================================================================
# Property access
# ===================================================================

def to_property_key(key: Any) -> Any:
    if is_number(key) and float(key).is_integer():
        return int(key)
    if isinstance(key, str):
        return key
    return to_string(key)


def _index_of(key: Any) -> Optional[int]:
    """Array index named by *key*; only canonical forms such as ``"3"`` count, never ``"03"``."""
    if isinstance(key, int) and not isinstance(key, bool):
        return key if key >= 0 else None
    if isinstance(key, str) and key.isascii() and key.isdigit() and (key == "0" or key[0] != "0"):
        return int(key)
    return None


def _describe(obj: Any) -> str:
    return "undefined" if obj is UNDEFINED else "null"


def get_property(obj: Any, key: Any) -> Any:
    """JavaScript ``obj[key]`` for every supported runtime value."""
    key = to_property_key(key)
    if obj is UNDEFINED or obj is None:
        raise JSTypeError(f"Cannot read properties of {_describe(obj)} (reading '{to_string(key)}')")

    if isinstance(obj, str):
        index = _index_of(key)
        if index is not None:
            return obj[index] if 0 <= index < len(obj) else UNDEFINED
        if key == "length":
            return len(obj)
        return _bound(STRING_METHODS, key, obj)

    if isinstance(obj, list):
        index = _index_of(key)
        if index is not None:
            return obj[index] if 0 <= index < len(obj) else UNDEFINED
        if key == "length":
            return len(obj)
        return _bound(ARRAY_METHODS, key, obj)

    if isinstance(obj, bool):
        return _bound(BOOLEAN_METHODS, key, obj)

    if is_number(obj):
        return _bound(NUMBER_METHODS, key, obj)

    if isinstance(obj, (JSMap, JSSet)):
        if key == "size":
            return obj.size
        if key in type(obj).js_members:
            return getattr(obj, key)
        return UNDEFINED

    if isinstance(obj, JSObject):
        str_key = key if isinstance(key, str) else to_string(key)
        if str_key in obj:
            return obj[str_key]
        return _bound(OBJECT_METHODS, str_key, obj)

    if isinstance(obj, (JSFunction, NativeFunction)):
        if key in obj.properties:
            return obj.properties[key]
        if key == "name":
            return obj.name or ""
        if key == "length":
            return obj.arity if isinstance(obj, JSFunction) else 0
        return _bound(FUNCTION_METHODS, key, obj)

    return UNDEFINED


def _bound(table: Dict[str, Callable[..., Any]], key: Any, receiver: Any) -> Any:
    method = table.get(key) if isinstance(key, str) else None
    if method is None:
        return UNDEFINED
    return NativeFunction(key, functools.partial(method, receiver))


def set_property(obj: Any, key: Any, value: Any) -> Any:
    key = to_property_key(key)
    if obj is UNDEFINED or obj is None:
        raise JSTypeError(f"Cannot set properties of {_describe(obj)} (setting '{to_string(key)}')")
    if isinstance(obj, list):
        index = _index_of(key)
        if index is not None:
            if index >= len(obj):
                obj.extend([UNDEFINED] * (index + 1 - len(obj)))
            obj[index] = value
            return value
        if key == "length":
            length = int(to_number(value))
            if length < 0:
                raise JSRangeError("Invalid array length")
            del obj[length:]
            obj.extend([UNDEFINED] * (length - len(obj)))
            return value
        # Named properties on arrays are not stored.
        return value
    if isinstance(obj, JSObject):
        obj[key if isinstance(key, str) else to_string(key)] = value
        return value
    if isinstance(obj, (JSFunction, NativeFunction)):
        obj.properties[to_string(key)] = value
        return value
    # Writes to primitives are silently dropped, as in sloppy-mode JavaScript.
    return value


def has_property(obj: Any, key: Any) -> bool:
    key = to_property_key(key)
    if isinstance(obj, list):
        index = _index_of(key)
        return (index is not None and 0 <= index < len(obj)) or key == "length" or key in ARRAY_METHODS
    if isinstance(obj, JSObject):
        return to_string(key) in obj or key in OBJECT_METHODS
    if isinstance(obj, (JSMap, JSSet)):
        return key in type(obj).js_members
    if isinstance(obj, (JSFunction, NativeFunction)):
        return to_string(key) in obj.properties or key in ("name", "length")
    raise JSTypeError(f"Cannot use 'in' operator to search for '{to_string(key)}' in {to_display_string(obj)}")


def own_keys(obj: Any) -> List[str]:
    if isinstance(obj, (list, str)):
        return [str(i) for i in range(len(obj))]
    if isinstance(obj, JSObject):
        return list(obj.keys())
    if isinstance(obj, (JSFunction, NativeFunction)):
        return list(obj.properties.keys())
    return []


def iterate(value: Any) -> List[Any]:
    """Materialise an iterable for ``for...of`` and spread."""
    if isinstance(value, list):
        return list(value)
    if isinstance(value, str):
        return list(value)
    if isinstance(value, JSMap):
        return value.entries()
    if isinstance(value, JSSet):
        return value.values()
    raise JSTypeError(f"{to_display_string(value) if value is not None else 'null'} is not iterable")


# ===================================================================
# Helpers
# ===================================================================

def _arg(args: tuple, index: int) -> Any:
    return args[index] if len(args) > index else UNDEFINED


def _relative(index: Any, length: int, default: int) -> int:
    if index is UNDEFINED:
        return default
    num = to_number(index)
    if isinstance(num, float) and math.isnan(num):
        return 0
    if num == math.inf:
        return length
    if num == -math.inf:
        return 0
    num = int(num)
    if num < 0:
        return max(length + num, 0)
    return min(num, length)


def _callback(fn: Any, name: str) -> Any:
    if not is_callable(fn):
        raise JSTypeError(f"{to_display_string(fn)} is not a function (in {name})")
    return fn


# ===================================================================
# String methods
# ===================================================================

def _str_slice(s: str, start: Any = UNDEFINED, end: Any = UNDEFINED) -> str:
    length = len(s)
    return s[_relative(start, length, 0):_relative(end, length, length)]


def _str_substring(s: str, start: Any = UNDEFINED, end: Any = UNDEFINED) -> str:
    length = len(s)

    def clamp(v: Any, default: int) -> int:
        if v is UNDEFINED:
            return default
        n = to_number(v)
        if isinstance(n, float) and math.isnan(n):
            return 0
        return int(min(max(n, 0), length))

    a, b = clamp(start, 0), clamp(end, length)
    return s[min(a, b):max(a, b)]


def _str_split(s: str, sep: Any = UNDEFINED, limit: Any = UNDEFINED) -> List[str]:
    if sep is UNDEFINED:
        parts = [s]
    elif to_string(sep) == "":
        parts = list(s)
    else:
        parts = s.split(to_string(sep))
    if limit is not UNDEFINED:
        parts = parts[: int(to_number(limit))]
    return parts


def _str_replace(s: str, pattern: Any, replacement: Any, replace_all: bool = False) -> str:
    needle = to_string(pattern)
    if is_callable(replacement):
        count = -1 if replace_all else 1
        out, pos, done = [], 0, 0
        while count < 0 or done < count:
            found = s.find(needle, pos)
            if found < 0:
                break
            out.append(s[pos:found])
            out.append(to_string(replacement(needle, found, s)))
            pos = found + max(len(needle), 1)
            done += 1
            if not needle and pos > len(s):
                break
        out.append(s[pos:])
        return "".join(out)
    return s.replace(needle, to_string(replacement), -1 if replace_all else 1)


def _str_pad(s: str, length: Any, fill: Any, at_start: bool) -> str:
    target = int(to_number(length))
    filler = " " if fill is UNDEFINED else to_string(fill)
    if target <= len(s) or not filler:
        return s
    needed = target - len(s)
    pad = (filler * (needed // len(filler) + 1))[:needed]
    return pad + s if at_start else s + pad


def _str_index_of(s: str, needle: Any, start: Any = UNDEFINED) -> int:
    return s.find(to_string(needle), 0 if start is UNDEFINED else max(int(to_number(start)), 0))


def _str_at(s: str, index: Any = 0) -> Any:
    i = int(to_number(index))
    if i < 0:
        i += len(s)
    return s[i] if 0 <= i < len(s) else UNDEFINED


def _str_char_code_at(s: str, index: Any = 0) -> Any:
    i = int(to_number(index))
    return ord(s[i]) if 0 <= i < len(s) else math.nan


STRING_METHODS: Dict[str, Callable[..., Any]] = {
    "at": _str_at,
    "charAt": lambda s, i=0: _str_at(s, i) if 0 <= int(to_number(i)) < len(s) else "",
    "charCodeAt": _str_char_code_at,
    "concat": lambda s, *parts: s + "".join(to_string(p) for p in parts),
    "endsWith": lambda s, x, *_: s.endswith(to_string(x)),
    "includes": lambda s, x, *_: to_string(x) in s,
    "indexOf": _str_index_of,
    "lastIndexOf": lambda s, x, *_: s.rfind(to_string(x)),
    "padEnd": lambda s, n, fill=UNDEFINED: _str_pad(s, n, fill, at_start=False),
    "padStart": lambda s, n, fill=UNDEFINED: _str_pad(s, n, fill, at_start=True),
    "repeat": lambda s, n=0: s * int(to_number(n)),
    "replace": lambda s, p, r: _str_replace(s, p, r),
    "replaceAll": lambda s, p, r: _str_replace(s, p, r, replace_all=True),
    "slice": _str_slice,
    "split": _str_split,
    "startsWith": lambda s, x, *_: s.startswith(to_string(x)),
    "substring": _str_substring,
    "toLowerCase": lambda s: s.lower(),
    "toString": lambda s: s,
    "toUpperCase": lambda s: s.upper(),
    "trim": lambda s: s.strip(),
    "trimEnd": lambda s: s.rstrip(),
    "trimStart": lambda s: s.lstrip(),
}


# ===================================================================
# Array methods
# ===================================================================

def _arr_push(arr: list, *items: Any) -> int:
    arr.extend(items)
    return len(arr)


def _arr_pop(arr: list) -> Any:
    return arr.pop() if arr else UNDEFINED


def _arr_shift(arr: list) -> Any:
    return arr.pop(0) if arr else UNDEFINED


def _arr_unshift(arr: list, *items: Any) -> int:
    arr[0:0] = items
    return len(arr)


def _arr_slice(arr: list, start: Any = UNDEFINED, end: Any = UNDEFINED) -> list:
    length = len(arr)
    return arr[_relative(start, length, 0):_relative(end, length, length)]


def _arr_splice(arr: list, start: Any = UNDEFINED, count: Any = UNDEFINED, *items: Any) -> list:
    length = len(arr)
    begin = _relative(start, length, 0)
    if count is UNDEFINED:
        stop = length
    else:
        stop = begin + max(int(to_number(count)), 0)
    removed = arr[begin:stop]
    arr[begin:stop] = items
    return removed


def _arr_concat(arr: list, *others: Any) -> list:
    out = list(arr)
    for other in others:
        if isinstance(other, list):
            out.extend(other)
        else:
            out.append(other)
    return out


def _arr_join(arr: list, sep: Any = UNDEFINED) -> str:
    joiner = "," if sep is UNDEFINED else to_string(sep)
    return joiner.join("" if x is None or x is UNDEFINED else to_string(x) for x in arr)


def _arr_reverse(arr: list) -> list:
    arr.reverse()
    return arr


def _arr_sort(arr: list, compare: Any = UNDEFINED) -> list:
    defined = [x for x in arr if x is not UNDEFINED]
    missing = len(arr) - len(defined)
    if compare is UNDEFINED:
        defined.sort(key=to_string)
    else:
        fn = _callback(compare, "sort")

        def cmp(a: Any, b: Any) -> int:
            result = to_number(fn(a, b))
            if isinstance(result, float) and math.isnan(result):
                return 0
            return (result > 0) - (result < 0)

        defined.sort(key=functools.cmp_to_key(cmp))
    arr[:] = defined + [UNDEFINED] * missing
    return arr


def _arr_index_of(arr: list, item: Any, start: Any = UNDEFINED) -> int:
    for i in range(_relative(start, len(arr), 0), len(arr)):
        if strict_equals(arr[i], item):
            return i
    return -1


def _arr_last_index_of(arr: list, item: Any, *_: Any) -> int:
    for i in range(len(arr) - 1, -1, -1):
        if strict_equals(arr[i], item):
            return i
    return -1


def _same_value_zero(a: Any, b: Any) -> bool:
    if is_number(a) and is_number(b) and isinstance(a, float) and isinstance(b, float):
        if math.isnan(a) and math.isnan(b):
            return True
    return strict_equals(a, b)


def _arr_includes(arr: list, item: Any, *_: Any) -> bool:
    return any(_same_value_zero(x, item) for x in arr)


def _arr_find(arr: list, fn: Any) -> Any:
    fn = _callback(fn, "find")
    for i, x in enumerate(list(arr)):
        if truthy(fn(x, i, arr)):
            return x
    return UNDEFINED


def _arr_find_index(arr: list, fn: Any) -> int:
    fn = _callback(fn, "findIndex")
    for i, x in enumerate(list(arr)):
        if truthy(fn(x, i, arr)):
            return i
    return -1


def _arr_find_last(arr: list, fn: Any) -> Any:
    fn = _callback(fn, "findLast")
    for i in range(len(arr) - 1, -1, -1):
        if truthy(fn(arr[i], i, arr)):
            return arr[i]
    return UNDEFINED


def _arr_filter(arr: list, fn: Any) -> list:
    fn = _callback(fn, "filter")
    return [x for i, x in enumerate(list(arr)) if truthy(fn(x, i, arr))]


def _arr_map(arr: list, fn: Any) -> list:
    fn = _callback(fn, "map")
    return [fn(x, i, arr) for i, x in enumerate(list(arr))]


def _arr_for_each(arr: list, fn: Any) -> Any:
    fn = _callback(fn, "forEach")
    for i, x in enumerate(list(arr)):
        fn(x, i, arr)
    return UNDEFINED


def _arr_reduce(arr: list, fn: Any, *initial: Any) -> Any:
    fn = _callback(fn, "reduce")
    items = list(enumerate(arr))
    if initial:
        acc = initial[0]
    elif items:
        acc = items.pop(0)[1]
    else:
        raise JSTypeError("Reduce of empty array with no initial value")
    for i, x in items:
        acc = fn(acc, x, i, arr)
    return acc


def _arr_reduce_right(arr: list, fn: Any, *initial: Any) -> Any:
    fn = _callback(fn, "reduceRight")
    items = list(enumerate(arr))[::-1]
    if initial:
        acc = initial[0]
    elif items:
        acc = items.pop(0)[1]
    else:
        raise JSTypeError("Reduce of empty array with no initial value")
    for i, x in items:
        acc = fn(acc, x, i, arr)
    return acc


def _arr_some(arr: list, fn: Any) -> bool:
    fn = _callback(fn, "some")
    return any(truthy(fn(x, i, arr)) for i, x in enumerate(list(arr)))


def _arr_every(arr: list, fn: Any) -> bool:
    fn = _callback(fn, "every")
    return all(truthy(fn(x, i, arr)) for i, x in enumerate(list(arr)))


def _flatten(items: Iterable[Any], depth: int) -> list:
    out: list = []
    for x in items:
        if isinstance(x, list) and depth > 0:
            out.extend(_flatten(x, depth - 1))
        else:
            out.append(x)
    return out


def _arr_flat(arr: list, depth: Any = UNDEFINED) -> list:
    levels = 1 if depth is UNDEFINED else to_number(depth)
    return _flatten(arr, int(levels) if not math.isinf(levels) else 10 ** 6)


def _arr_flat_map(arr: list, fn: Any) -> list:
    return _flatten(_arr_map(arr, fn), 1)


def _arr_fill(arr: list, value: Any, start: Any = UNDEFINED, end: Any = UNDEFINED) -> list:
    length = len(arr)
    for i in range(_relative(start, length, 0), _relative(end, length, length)):
        arr[i] = value
    return arr


def _arr_at(arr: list, index: Any = 0) -> Any:
    i = int(to_number(index))
    if i < 0:
        i += len(arr)
    return arr[i] if 0 <= i < len(arr) else UNDEFINED


ARRAY_METHODS: Dict[str, Callable[..., Any]] = {
    "at": _arr_at,
    "concat": _arr_concat,
    "entries": lambda arr: [[i, x] for i, x in enumerate(arr)],
    "every": _arr_every,
    "fill": _arr_fill,
    "filter": _arr_filter,
    "find": _arr_find,
    "findIndex": _arr_find_index,
    "findLast": _arr_find_last,
    "flat": _arr_flat,
    "flatMap": _arr_flat_map,
    "forEach": _arr_for_each,
    "includes": _arr_includes,
    "indexOf": _arr_index_of,
    "join": _arr_join,
    "keys": lambda arr: list(range(len(arr))),
    "lastIndexOf": _arr_last_index_of,
    "map": _arr_map,
    "pop": _arr_pop,
    "push": _arr_push,
    "reduce": _arr_reduce,
    "reduceRight": _arr_reduce_right,
    "reverse": _arr_reverse,
    "shift": _arr_shift,
    "slice": _arr_slice,
    "some": _arr_some,
    "sort": _arr_sort,
    "splice": _arr_splice,
    "toString": lambda arr: _arr_join(arr),
    "unshift": _arr_unshift,
    "values": lambda arr: list(arr),
}


# ===================================================================
# Number / boolean / object / function methods
# ===================================================================

def _to_fixed(num: Any, digits: Any = 0) -> str:
    places = int(to_number(digits)) if digits is not UNDEFINED else 0
    if not 0 <= places <= 100:
        raise JSRangeError("toFixed() digits argument must be between 0 and 100")
    if isinstance(num, float) and (math.isnan(num) or math.isinf(num)):
        return number_to_string(num)
    return f"{num:.{places}f}"


_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _num_to_string(num: Any, radix: Any = UNDEFINED) -> str:
    if radix is UNDEFINED or int(to_number(radix)) == 10:
        return number_to_string(num)
    base = int(to_number(radix))
    if not 2 <= base <= 36:
        raise JSRangeError("toString() radix must be between 2 and 36")
    if isinstance(num, float) and not num.is_integer():
        return number_to_string(num)
    value = int(num)
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    digits = []
    while value:
        value, rem = divmod(value, base)
        digits.append(_DIGITS[rem])
    return sign + "".join(reversed(digits))


NUMBER_METHODS: Dict[str, Callable[..., Any]] = {
    "toFixed": _to_fixed,
    "toString": _num_to_string,
    "valueOf": lambda num: num,
}

BOOLEAN_METHODS: Dict[str, Callable[..., Any]] = {
    "toString": lambda b: "true" if b else "false",
    "valueOf": lambda b: b,
}

OBJECT_METHODS: Dict[str, Callable[..., Any]] = {
    "hasOwnProperty": lambda obj, key: to_string(key) in obj,
    "toString": lambda obj: to_string(obj),
}


def _fn_call(fn: Any, this: Any = UNDEFINED, *args: Any) -> Any:
    return fn(*args, this=this)


def _fn_apply(fn: Any, this: Any = UNDEFINED, args: Any = UNDEFINED) -> Any:
    return fn(*([] if args is UNDEFINED or args is None else iterate(args)), this=this)


def _fn_bind(fn: Any, this: Any = UNDEFINED, *bound: Any) -> NativeFunction:
    return NativeFunction(f"bound {fn.name}", lambda *args: fn(*bound, *args, this=this))


FUNCTION_METHODS: Dict[str, Callable[..., Any]] = {
    "apply": _fn_apply,
    "bind": _fn_bind,
    "call": _fn_call,
}


# ===================================================================
# Globals
# ===================================================================

def _console_method(level: int, name: str) -> NativeFunction:
    def log(*args: Any) -> Any:
        console_logger.log(level, " ".join(to_display_string(a) for a in args))
        return UNDEFINED

    return NativeFunction(name, log)


def _math_round(x: Any) -> Any:
    num = to_number(x)
    if isinstance(num, float) and (math.isnan(num) or math.isinf(num)):
        return num
    return normalize_number(math.floor(num + 0.5))


def _numeric(fn: Callable[..., Any]) -> Callable[..., Any]:
    @functools.wraps(fn)
    def wrapper(*args: Any) -> Any:
        try:
            return normalize_number(fn(*(to_number(a) for a in args)))
        except (ValueError, OverflowError):
            return math.nan

    return wrapper


def _math_minmax(pick: Callable[..., Any], empty: float) -> Callable[..., Any]:
    def inner(*args: Any) -> Any:
        nums = [to_number(a) for a in args]
        if any(isinstance(n, float) and math.isnan(n) for n in nums):
            return math.nan
        return normalize_number(pick(nums)) if nums else empty

    return inner


def _math_sign(x: Any) -> Any:
    if isinstance(x, float) and math.isnan(x):
        return math.nan
    return (x > 0) - (x < 0)


def _parse_int(text: Any, radix: Any = UNDEFINED) -> Any:
    s = to_string(text).strip()
    base = 10 if radix is UNDEFINED else int(to_number(radix))
    sign = 1
    if s[:1] in ("+", "-"):
        sign = -1 if s[0] == "-" else 1
        s = s[1:]
    if base in (0, 16) and s.lower().startswith("0x"):
        s, base = s[2:], 16
    if base == 0:
        base = 10
    if not 2 <= base <= 36:
        return math.nan
    digits = ""
    for ch in s.lower():
        if ch in _DIGITS[:base]:
            digits += ch
        else:
            break
    if not digits:
        return math.nan
    return normalize_number(sign * int(digits, base))


_FLOAT_PREFIX = re.compile(r"^[+-]?(Infinity|\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?)")


def _parse_float(text: Any) -> Any:
    match = _FLOAT_PREFIX.match(to_string(text).strip())
    if not match:
        return math.nan
    return string_to_number(match.group(0))


def _is_nan(x: Any = UNDEFINED) -> bool:
    num = to_number(x)
    return isinstance(num, float) and math.isnan(num)


def _is_finite(x: Any = UNDEFINED) -> bool:
    num = to_number(x)
    return not (isinstance(num, float) and (math.isnan(num) or math.isinf(num)))


def _to_json_value(value: Any, seen: set) -> Any:
    if value is None or isinstance(value, (bool, str)):
        return value
    if is_number(value):
        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return None
        return value
    if isinstance(value, (list, JSObject)):
        if id(value) in seen:
            raise JSTypeError("Converting circular structure to JSON")
        seen.add(id(value))
        try:
            if isinstance(value, list):
                return [
                    None if x is UNDEFINED or is_callable(x) else _to_json_value(x, seen)
                    for x in value
                ]
            return {
                k: _to_json_value(v, seen)
                for k, v in value.items()
                if v is not UNDEFINED and not is_callable(v)
            }
        finally:
            seen.discard(id(value))
    if isinstance(value, (JSMap, JSSet)):
        return {}
    return None


def _json_stringify(value: Any = UNDEFINED, replacer: Any = UNDEFINED, indent: Any = UNDEFINED) -> Any:
    if value is UNDEFINED or is_callable(value):
        return UNDEFINED
    data = _to_json_value(value, set())
    spacing: Any = None
    if isinstance(indent, str):
        spacing = indent[:10]
    elif is_number(indent):
        spacing = min(int(indent), 10)
    if not spacing:
        return json.dumps(data, separators=(",", ":"), ensure_ascii=False)
    return json.dumps(data, indent=spacing, ensure_ascii=False)


def _from_json(data: Any) -> Any:
    if isinstance(data, dict):
        return JSObject({k: _from_json(v) for k, v in data.items()})
    if isinstance(data, list):
        return [_from_json(x) for x in data]
    if isinstance(data, float):
        return normalize_number(data)
    return data


def _json_parse(text: Any = UNDEFINED) -> Any:
    try:
        return _from_json(json.loads(to_string(text)))
    except json.JSONDecodeError as exc:
        raise JSSyntaxError(f"Unexpected token in JSON at position {exc.pos}") from exc


def _array_construct(*args: Any) -> list:
    if len(args) == 1 and is_number(args[0]):
        length = args[0]
        if length < 0 or (isinstance(length, float) and not length.is_integer()):
            raise JSRangeError("Invalid array length")
        return [UNDEFINED] * int(length)
    return list(args)


def _array_from(source: Any = UNDEFINED, fn: Any = UNDEFINED) -> list:
    if isinstance(source, JSObject) and "length" in source:
        items = [source.get(str(i), UNDEFINED) for i in range(int(to_number(source["length"])))]
    else:
        items = iterate(source)
    if fn is UNDEFINED:
        return items
    fn = _callback(fn, "Array.from")
    return [fn(x, i) for i, x in enumerate(items)]


def _object_entries(obj: Any) -> list:
    return [[k, get_property(obj, k)] for k in own_keys(obj)]


def _object_assign(target: Any, *sources: Any) -> Any:
    for source in sources:
        for key in own_keys(source):
            set_property(target, key, get_property(source, key))
    return target


def _object_from_entries(entries: Any) -> JSObject:
    out = JSObject()
    for entry in iterate(entries):
        out[to_string(get_property(entry, 0))] = get_property(entry, 1)
    return out


def _error_class(name: str) -> NativeFunction:
    def make(message: Any = UNDEFINED) -> JSErrorObject:
        return JSErrorObject.create(name, "" if message is UNDEFINED else to_string(message))

    return NativeFunction(name, make, construct=make)


def _not_callable(name: str) -> Callable[..., Any]:
    def fail(*_: Any) -> Any:
        raise JSTypeError(f"Constructor {name} requires 'new'")

    return fail


def make_globals() -> Dict[str, Any]:
    """Build the whitelist of host globals visible to evaluated code."""
    console = JSObject({
        "log": _console_method(logging.INFO, "log"),
        "info": _console_method(logging.INFO, "info"),
        "debug": _console_method(logging.DEBUG, "debug"),
        "warn": _console_method(logging.WARNING, "warn"),
        "error": _console_method(logging.ERROR, "error"),
    })

    math_obj = JSObject({
        "PI": math.pi,
        "E": math.e,
        "LN2": math.log(2),
        "LN10": math.log(10),
        "SQRT2": math.sqrt(2),
        "abs": NativeFunction("abs", _numeric(abs)),
        "floor": NativeFunction("floor", _numeric(lambda x: x if math.isinf(x) or math.isnan(x) else math.floor(x))),
        "ceil": NativeFunction("ceil", _numeric(lambda x: x if math.isinf(x) or math.isnan(x) else math.ceil(x))),
        "round": NativeFunction("round", _math_round),
        "trunc": NativeFunction("trunc", _numeric(lambda x: x if math.isinf(x) or math.isnan(x) else math.trunc(x))),
        "sign": NativeFunction("sign", _numeric(_math_sign)),
        "sqrt": NativeFunction("sqrt", _numeric(math.sqrt)),
        "cbrt": NativeFunction("cbrt", _numeric(lambda x: math.copysign(abs(x) ** (1 / 3), x))),
        "pow": NativeFunction("pow", _numeric(lambda b, e: math.pow(b, e))),
        "exp": NativeFunction("exp", _numeric(math.exp)),
        "log": NativeFunction("log", _numeric(math.log)),
        "log2": NativeFunction("log2", _numeric(math.log2)),
        "log10": NativeFunction("log10", _numeric(math.log10)),
        "sin": NativeFunction("sin", _numeric(math.sin)),
        "cos": NativeFunction("cos", _numeric(math.cos)),
        "tan": NativeFunction("tan", _numeric(math.tan)),
        "atan": NativeFunction("atan", _numeric(math.atan)),
        "atan2": NativeFunction("atan2", _numeric(math.atan2)),
        "hypot": NativeFunction("hypot", _numeric(math.hypot)),
        "max": NativeFunction("max", _math_minmax(max, -math.inf)),
        "min": NativeFunction("min", _math_minmax(min, math.inf)),
        "random": NativeFunction("random", random.random),
    })

    json_obj = JSObject({
        "stringify": NativeFunction("stringify", _json_stringify),
        "parse": NativeFunction("parse", _json_parse),
    })

    number = NativeFunction(
        "Number",
        lambda value=0: to_number(value),
        properties={
            "isInteger": NativeFunction("isInteger", lambda x=UNDEFINED: is_number(x) and _is_finite(x) and float(x).is_integer()),
            "isFinite": NativeFunction("isFinite", lambda x=UNDEFINED: is_number(x) and _is_finite(x)),
            "isNaN": NativeFunction("isNaN", lambda x=UNDEFINED: is_number(x) and _is_nan(x)),
            "parseFloat": NativeFunction("parseFloat", _parse_float),
            "parseInt": NativeFunction("parseInt", _parse_int),
            "MAX_SAFE_INTEGER": 2 ** 53 - 1,
            "MIN_SAFE_INTEGER": -(2 ** 53 - 1),
            "EPSILON": 2.0 ** -52,
        },
    )

    string = NativeFunction(
        "String",
        lambda value="": to_display_string(value),
        properties={
            "fromCharCode": NativeFunction("fromCharCode", lambda *codes: "".join(chr(int(to_number(c))) for c in codes)),
        },
    )

    array = NativeFunction(
        "Array",
        _array_construct,
        construct=_array_construct,
        properties={
            "isArray": NativeFunction("isArray", lambda x=UNDEFINED: isinstance(x, list)),
            "from": NativeFunction("from", _array_from),
            "of": NativeFunction("of", lambda *items: list(items)),
        },
    )

    obj = NativeFunction(
        "Object",
        lambda value=UNDEFINED: JSObject() if value is UNDEFINED or value is None else value,
        construct=lambda *_: JSObject(),
        properties={
            "keys": NativeFunction("keys", own_keys),
            "values": NativeFunction("values", lambda o: [get_property(o, k) for k in own_keys(o)]),
            "entries": NativeFunction("entries", _object_entries),
            "assign": NativeFunction("assign", _object_assign),
            "freeze": NativeFunction("freeze", lambda o=UNDEFINED: o),
            "fromEntries": NativeFunction("fromEntries", _object_from_entries),
        },
    )

    return {
        "console": console,
        "Math": math_obj,
        "JSON": json_obj,
        "Number": number,
        "String": string,
        "Boolean": NativeFunction("Boolean", lambda value=UNDEFINED: truthy(value)),
        "Array": array,
        "Object": obj,
        "Map": NativeFunction("Map", _not_callable("Map"), construct=lambda entries=UNDEFINED: JSMap(
            None if entries is UNDEFINED or entries is None else iterate(entries))),
        "Set": NativeFunction("Set", _not_callable("Set"), construct=lambda values=UNDEFINED: JSSet(
            None if values is UNDEFINED or values is None else iterate(values))),
        "Error": _error_class("Error"),
        "TypeError": _error_class("TypeError"),
        "RangeError": _error_class("RangeError"),
        "ReferenceError": _error_class("ReferenceError"),
        "SyntaxError": _error_class("SyntaxError"),
        "parseInt": NativeFunction("parseInt", _parse_int),
        "parseFloat": NativeFunction("parseFloat", _parse_float),
        "isNaN": NativeFunction("isNaN", _is_nan),
        "isFinite": NativeFunction("isFinite", _is_finite),
        "NaN": math.nan,
        "Infinity": math.inf,
        "undefined": UNDEFINED,
    }


def instance_of(value: Any, constructor: Any) -> bool:
    """JavaScript ``value instanceof constructor`` for the supported constructors."""
    if not is_callable(constructor):
        raise JSTypeError("Right-hand side of 'instanceof' is not callable")
    if isinstance(constructor, JSFunction):
        return isinstance(value, JSObject) and value.constructed_by is constructor
    name = getattr(constructor, "name", "")
    if name == "Array":
        return isinstance(value, list)
    if name == "Object":
        return isinstance(value, (list, JSObject, JSMap, JSSet, JSFunction, NativeFunction))
    if name == "Map":
        return isinstance(value, JSMap)
    if name == "Set":
        return isinstance(value, JSSet)
    if name == "Error":
        return isinstance(value, JSErrorObject)
    if name.endswith("Error"):
        return isinstance(value, JSErrorObject) and value.get("name") == name
    if name == "Function":
        return type_of(value) == "function"
    return False
