"""Single-line rendering of runtime values, in the style of Node's ``util.inspect``.

Rendering is bounded: containers nested deeper than *depth* collapse to
``[Array]`` / ``[Object]``, a container that contains itself is printed as
``[Circular *n]`` with a matching ``<ref *n>`` marker, and long arrays are
truncated.
"""

from __future__ import annotations

import math
import re
from typing import Any, Dict, List

from .runtime import (
    UNDEFINED,
    JSErrorObject,
    JSFunction,
    JSMap,
    JSObject,
    JSSet,
    NativeFunction,
    is_number,
    number_to_string,
)

DEFAULT_DEPTH = 2
MAX_ARRAY_ITEMS = 100
MAX_STRING_LENGTH = 10000

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][\w$]*$")


def quote(text: str) -> str:
    if "'" in text and '"' not in text:
        q = '"'
    else:
        q = "'"
    escaped = (
        text.replace("\\", "\\\\")
        .replace("\n", "\\n")
        .replace("\t", "\\t")
        .replace("\r", "\\r")
    )
    if q == "'":
        escaped = escaped.replace("'", "\\'")
    return f"{q}{escaped}{q}"


def _format_number(value: Any) -> str:
    if isinstance(value, float) and value == 0 and math.copysign(1.0, value) < 0:
        return "-0"
    return number_to_string(value)


def _format_key(key: str) -> str:
    return key if _IDENTIFIER_RE.match(key) else quote(key)


class _Inspector:
    def __init__(self, depth: int) -> None:
        self.depth = depth
        self.stack: List[Any] = []
        self.refs: Dict[int, int] = {}

    def render(self, value: Any, level: int, top: bool = False) -> str:
        if value is UNDEFINED:
            return "undefined"
        if value is None:
            return "null"
        if isinstance(value, bool):
            return "true" if value else "false"
        if is_number(value):
            return _format_number(value)
        if isinstance(value, str):
            if len(value) > MAX_STRING_LENGTH:
                value = value[:MAX_STRING_LENGTH] + "..."
            return value if top else quote(value)
        if isinstance(value, (JSFunction, NativeFunction)):
            return f"[Function: {value.name}]" if value.name else "[Function (anonymous)]"
        if isinstance(value, JSErrorObject):
            name, message = value.get("name", "Error"), value.get("message", "")
            text = f"{name}: {message}" if message else str(name)
            return text if top else f"[{text}]"
        if isinstance(value, (list, JSObject, JSMap, JSSet)):
            return self._container(value, level)
        return str(value)

    def _container(self, value: Any, level: int) -> str:
        if any(value is seen for seen in self.stack):
            ref = self.refs.setdefault(id(value), len(self.refs) + 1)
            return f"[Circular *{ref}]"
        if level > self.depth:
            if isinstance(value, list):
                return "[Array]"
            if isinstance(value, JSMap):
                return "[Map]"
            if isinstance(value, JSSet):
                return "[Set]"
            return "[Object]"

        self.stack.append(value)
        try:
            if isinstance(value, list):
                body = self._array(value, level)
            elif isinstance(value, JSMap):
                body = self._map(value, level)
            elif isinstance(value, JSSet):
                body = self._set(value, level)
            else:
                body = self._object(value, level)
        finally:
            self.stack.pop()

        ref = self.refs.get(id(value))
        return f"<ref *{ref}> {body}" if ref is not None else body

    def _array(self, items: list, level: int) -> str:
        if not items:
            return "[]"
        parts = [self.render(item, level + 1) for item in items[:MAX_ARRAY_ITEMS]]
        extra = len(items) - MAX_ARRAY_ITEMS
        if extra > 0:
            parts.append(f"... {extra} more item{'s' if extra > 1 else ''}")
        return f"[ {', '.join(parts)} ]"

    def _object(self, obj: JSObject, level: int) -> str:
        ctor = obj.constructed_by
        prefix = f"{ctor.name} " if ctor is not None and getattr(ctor, "name", "") else ""
        if not obj:
            return f"{prefix}{{}}"
        parts = [f"{_format_key(str(k))}: {self.render(v, level + 1)}" for k, v in obj.items()]
        return f"{prefix}{{ {', '.join(parts)} }}"

    def _map(self, value: JSMap, level: int) -> str:
        if not value.size:
            return "Map(0) {}"
        parts = [f"{self.render(k, level + 1)} => {self.render(v, level + 1)}" for k, v in value.items()]
        return f"Map({value.size}) {{ {', '.join(parts)} }}"

    def _set(self, value: JSSet, level: int) -> str:
        if not value.size:
            return "Set(0) {}"
        parts = [self.render(v, level + 1) for v in value.values()]
        return f"Set({value.size}) {{ {', '.join(parts)} }}"


def inspect(value: Any, depth: int = DEFAULT_DEPTH) -> str:
    """Render *value* on one line; top-level strings are not quoted."""
    return _Inspector(depth).render(value, 0, top=True)
